from meridian.models.work_event import WorkEvent

__all__ = ["WorkEvent"]
