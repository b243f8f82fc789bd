from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine, pool

from meridian.core.config import get_settings
from meridian.core.database import Base
import meridian.business.automation.models  # noqa: F401
import meridian.business.billing.models  # noqa: F401
import meridian.business.comms.models  # noqa: F401
import meridian.business.docs.models  # noqa: F401
import meridian.business.engagements.models  # noqa: F401
import meridian.business.workstream.models  # noqa: F401
import meridian.models  # noqa: F401

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _database_url() -> str:
    # DATABASE_URL (via Settings) wins over alembic.ini
    return get_settings().database_url or config.get_main_option("sqlalchemy.url")


def _configure(**options) -> None:  # type: ignore[no-untyped-def]
    url = options.get("url") or str(options["connection"].engine.url)
    context.configure(
        target_metadata=target_metadata,
        compare_type=True,
        render_as_batch=url.startswith("sqlite"),
        **options,
    )


def run_migrations_offline() -> None:
    _configure(url=_database_url(), literal_binds=True, dialect_opts={"paramstyle": "named"})
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    engine = create_engine(_database_url(), poolclass=pool.NullPool)
    with engine.connect() as connection:
        _configure(connection=connection)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
