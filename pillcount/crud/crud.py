from datetime import datetime
from datetime import timedelta
from typing import List
from typing import Optional
from uuid import uuid4

from sqlalchemy.orm import Session

from pillcount.exceptions import TaskAlreadyCompleteError
from pillcount.models.enums import TaskStatus
from pillcount.models.models import CacheEntry
from pillcount.models.models import DeferredTask
from pillcount.utils.time import utc_now_naive

# ---------------------------------------------------------------------------
# Permutation cache helpers
# ---------------------------------------------------------------------------


def get_cache_entry(db: Session, total: int) -> Optional[CacheEntry]:
    return db.get(CacheEntry, total)


def upsert_cache_entry(db: Session, *, total: int, permutations: int) -> CacheEntry:
    """Insert or overwrite the cached count for *total*.

    Concurrent writers always carry the same value for a total, so
    last-write-wins is safe.
    """

    now = utc_now_naive()
    row = db.get(CacheEntry, total)
    if row is None:
        row = CacheEntry(total=total, permutations=permutations, created_at=now, updated_at=now)
        db.add(row)
    else:
        row.permutations = permutations
        row.updated_at = now

    db.commit()
    db.refresh(row)
    return row


def list_cache_entries(db: Session, *, skip: int = 0, limit: int = 100) -> List[CacheEntry]:
    return db.query(CacheEntry).order_by(CacheEntry.total.asc()).offset(skip).limit(limit).all()


# ---------------------------------------------------------------------------
# Deferred task helpers
# ---------------------------------------------------------------------------


def create_task(db: Session, *, total: int, task_id: Optional[str] = None) -> DeferredTask:
    """Insert a new PENDING *DeferredTask* row with a fresh UUID."""

    now = utc_now_naive()
    row = DeferredTask(
        id=task_id or str(uuid4()),
        total=total,
        status=TaskStatus.PENDING,
        created_at=now,
        updated_at=now,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def get_task(db: Session, task_id: str) -> Optional[DeferredTask]:
    return db.get(DeferredTask, task_id)


def update_task_status(
    db: Session,
    task_id: str,
    *,
    status: str,
    result: Optional[int] = None,
    at: Optional[datetime] = None,
) -> Optional[DeferredTask]:
    """Move *task_id* to *status*; returns ``None`` when the row is missing.

    A COMPLETE row only accepts another COMPLETE write (same result on a
    re-run); any other status raises :class:`TaskAlreadyCompleteError`.
    """

    try:
        status_enum = TaskStatus(status)
    except ValueError:
        raise ValueError(f"Invalid task status: {status}")

    row = db.get(DeferredTask, task_id)
    if row is None:
        return None

    if row.status == TaskStatus.COMPLETE and status_enum is not TaskStatus.COMPLETE:
        raise TaskAlreadyCompleteError(task_id, status_enum.value)

    at = at or utc_now_naive()
    row.status = status_enum
    row.updated_at = at

    if status_enum is TaskStatus.IN_PROGRESS:
        row.started_at = at
    elif status_enum is TaskStatus.COMPLETE:
        row.result = result
        row.completed_at = at

    db.commit()
    db.refresh(row)
    return row


def list_stale_tasks(db: Session, *, older_than: timedelta, now: Optional[datetime] = None) -> List[DeferredTask]:
    """Return unfinished tasks whose last update is older than *older_than*."""

    cutoff = (now or utc_now_naive()) - older_than
    return (
        db.query(DeferredTask)
        .filter(
            DeferredTask.status.in_([TaskStatus.PENDING, TaskStatus.IN_PROGRESS]),
            DeferredTask.updated_at <= cutoff,
        )
        .order_by(DeferredTask.created_at.asc())
        .all()
    )
