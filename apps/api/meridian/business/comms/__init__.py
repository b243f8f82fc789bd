from meridian.business.comms.api import router
from meridian.business.comms.models import CommsMessage, CommsThread
from meridian.business.comms.service import CommsService, comms_service

__all__ = ["router", "CommsThread", "CommsMessage", "CommsService", "comms_service"]
