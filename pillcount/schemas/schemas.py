from typing import Literal
from typing import Optional

from pydantic import BaseModel

from pillcount.models.enums import TaskStatus

# ---------------------------------------------------------------------------
# Permutation request envelopes
# ---------------------------------------------------------------------------


class PermutationsComplete(BaseModel):
    success: bool = True
    status: Literal["complete"] = "complete"
    permutations: int


class TaskLink(BaseModel):
    id: str
    url: str


class PermutationsDeferred(BaseModel):
    success: bool = True
    status: Literal["deferred"] = "deferred"
    task: TaskLink


class ErrorResponse(BaseModel):
    success: bool = False
    message: Optional[str] = None
    error: Optional[str] = None


# ---------------------------------------------------------------------------
# Task polling
# ---------------------------------------------------------------------------


class TaskOut(BaseModel):
    id: str
    total: int
    status: TaskStatus
    permutations: Optional[int] = None

    class Config:
        from_attributes = True
