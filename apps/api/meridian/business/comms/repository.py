from __future__ import annotations

from meridian.business.comms.models import CommsMessage, CommsThread
from meridian.platform.security.repository import BaseRepository


class ThreadRepository(BaseRepository[CommsThread]):
    resource = "comms.thread"
    model = CommsThread


class MessageRepository(BaseRepository[CommsMessage]):
    resource = "comms.message"
    model = CommsMessage
