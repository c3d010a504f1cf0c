from sqlalchemy import BigInteger
from sqlalchemy import Column
from sqlalchemy import DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import Integer
from sqlalchemy import String
from sqlalchemy.sql import func

# Local helpers / enums
from pillcount.database import Base
from pillcount.models.enums import TaskStatus

# ---------------------------------------------------------------------------
# Permutation cache – total -> count
# ---------------------------------------------------------------------------


class CacheEntry(Base):
    """Previously computed permutation count for a total.

    Counts are a pure function of the total, so rows are never invalidated.
    ``Count(47)`` does not fit in 32 bits, hence ``BigInteger``.
    """

    __tablename__ = "permutation_cache"

    total = Column(Integer, primary_key=True, autoincrement=False)
    permutations = Column(BigInteger, nullable=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


# ---------------------------------------------------------------------------
# Deferred tasks – work too large for the synchronous response budget
# ---------------------------------------------------------------------------


class DeferredTask(Base):
    __tablename__ = "deferred_tasks"

    # UUID4 string assigned at creation
    id = Column(String(36), primary_key=True)
    total = Column(Integer, nullable=False)

    # Lifecycle: PENDING -> IN_PROGRESS -> COMPLETE
    status = Column(
        SAEnum(TaskStatus, native_enum=False, name="task_status_enum"),
        nullable=False,
        default=TaskStatus.PENDING.value,
        index=True,
    )
    # Only meaningful once status == COMPLETE
    result = Column(BigInteger, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
