from pillcount.models.enums import ChangeEventName
from pillcount.models.enums import TaskStatus
from pillcount.models.models import CacheEntry
from pillcount.models.models import DeferredTask

__all__ = [
    "CacheEntry",
    "ChangeEventName",
    "DeferredTask",
    "TaskStatus",
]
