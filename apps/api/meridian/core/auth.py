from dataclasses import dataclass

from jose import JWTError, jwt
from starlette.requests import Request

from meridian.core.config import get_settings


@dataclass
class AuthUser:
    sub: str
    roles: list[str]
    org_id: int | None = None


def _anonymous() -> AuthUser:
    return AuthUser(sub="anonymous", roles=["guest"])


def _claim_org_id(payload: dict) -> int | None:
    value = payload.get("org_id")
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.isdigit():
        return int(value)
    return None


async def get_current_user(request: Request) -> AuthUser:
    auth_header = request.headers.get("authorization", "")
    token = auth_header.replace("Bearer ", "") if auth_header.startswith("Bearer ") else ""

    if not token:
        return _anonymous()

    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return _anonymous()

    subject = str(payload.get("sub", "anonymous"))
    roles = payload.get("roles", ["user"])
    if not isinstance(roles, list):
        roles = ["user"]
    org_id = _claim_org_id(payload)
    context = getattr(request.state, "context", None)
    if context is not None:
        context.user_id = subject
        if org_id is not None and context.org_id is None:
            context.org_id = org_id
    return AuthUser(sub=subject, roles=[str(role) for role in roles], org_id=org_id)
