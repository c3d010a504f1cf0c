"""Permutations router – the public request boundary.

``GET /api/permutations?pills=N`` validates the query string, hands the
total to the :class:`~pillcount.services.dispatcher.Dispatcher` and maps its
result onto the response envelope clients expect:

* ``Completed`` → 200 ``{"success", "status": "complete", "permutations"}``
* ``Deferred``  → 202 ``{"success", "status": "deferred", "task": {"id", "url"}}``
* ``Invalid``   → 400 ``{"success": false, "message"}``
* task store down → 500 ``{"success": false, "error": "Internal Error!"}``
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from fastapi import APIRouter
from fastapi import Depends
from fastapi.responses import JSONResponse

from pillcount.config import get_settings
from pillcount.constants import TASKS_PREFIX
from pillcount.constants import get_full_path
from pillcount.dependencies import get_dispatcher
from pillcount.exceptions import TaskStoreUnavailableError
from pillcount.schemas.schemas import ErrorResponse
from pillcount.schemas.schemas import PermutationsComplete
from pillcount.schemas.schemas import PermutationsDeferred
from pillcount.schemas.schemas import TaskLink
from pillcount.services.dispatcher import Completed
from pillcount.services.dispatcher import Deferred
from pillcount.services.dispatcher import Dispatcher

logger = logging.getLogger(__name__)

router = APIRouter(tags=["permutations"])

MISSING_PILLS_MESSAGE = "You must provide the `pills` querystring parameter!"
NOT_A_NUMBER_MESSAGE = "Pills must be a valid number!"

_INTEGER_RE = re.compile(r"[+-]?[0-9]+")


def _error(status_code: int, **fields) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(**fields).model_dump(exclude_none=True))


def _parse_pills(raw: Optional[str]) -> int | None:
    # Plain ASCII digits with an optional sign; ``int()`` alone also takes
    # "4_4" and non-ASCII digits.
    value = (raw or "").strip()
    if not _INTEGER_RE.fullmatch(value):
        return None
    return int(value)


def task_poll_url(task_id: str) -> str:
    """Return the URL clients poll for *task_id*."""
    base = (get_settings().app_public_url or "").rstrip("/")
    return f"{base}{get_full_path(TASKS_PREFIX)}/{task_id}"


@router.get(
    "",
    responses={
        200: {"model": PermutationsComplete},
        202: {"model": PermutationsDeferred},
        400: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
async def get_number_of_permutations(pills: Optional[str] = None, dispatcher: Dispatcher = Depends(get_dispatcher)):
    """Return the number of ways to take *pills* pills at one or two per day."""

    if pills is None or pills.strip() == "":
        return _error(400, message=MISSING_PILLS_MESSAGE)

    total = _parse_pills(pills)
    if total is None:
        return _error(400, message=NOT_A_NUMBER_MESSAGE)

    try:
        result = await dispatcher.handle(total)
    except TaskStoreUnavailableError as exc:
        # No fallback exists for a deferred total – log and answer generically.
        logger.error(f"Deferral failed for pills={total}: {exc}")
        return _error(500, error="Internal Error!")

    if isinstance(result, Completed):
        return JSONResponse(status_code=200, content=PermutationsComplete(permutations=result.permutations).model_dump())

    if isinstance(result, Deferred):
        body = PermutationsDeferred(task=TaskLink(id=result.task_id, url=task_poll_url(result.task_id)))
        return JSONResponse(status_code=202, content=body.model_dump())

    return _error(400, message=result.message)
