"""Tasks router – read-only polling of deferred tasks."""

from __future__ import annotations

import logging

from fastapi import APIRouter
from fastapi import Depends
from fastapi import HTTPException

from pillcount.dependencies import get_task_store
from pillcount.exceptions import TaskStoreUnavailableError
from pillcount.models.enums import TaskStatus
from pillcount.schemas.schemas import TaskOut
from pillcount.services.ports import TaskStorePort

logger = logging.getLogger(__name__)

router = APIRouter(tags=["tasks"])


@router.get("/{task_id}", response_model=TaskOut)
async def get_task(task_id: str, task_store: TaskStorePort = Depends(get_task_store)):
    """Return the current status of a deferred task (and its result once COMPLETE)."""

    try:
        task = await task_store.get(task_id)
    except TaskStoreUnavailableError as exc:
        logger.error(f"Task lookup failed for {task_id}: {exc}")
        raise HTTPException(status_code=503, detail="Task store unavailable")

    if task is None:
        raise HTTPException(status_code=404, detail="Task not found")

    return TaskOut(
        id=task.id,
        total=task.total,
        status=task.status,
        permutations=task.result if task.status is TaskStatus.COMPLETE else None,
    )
