"""SQL-backed :class:`CachePort` over the ``permutation_cache`` table."""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from pillcount.crud import crud
from pillcount.database import db_session
from pillcount.database import run_in_db_thread
from pillcount.exceptions import CacheUnavailableError
from pillcount.services.ports import CachePort

logger = logging.getLogger(__name__)


class SqlCacheStore(CachePort):
    def __init__(self, session_factory=None):
        # ``None`` resolves to the application factory at call time so tests
        # can swap ``pillcount.database.default_session_factory``.
        self._session_factory = session_factory

    def _read(self, total: int) -> Optional[int]:
        with db_session(self._session_factory) as db:
            row = crud.get_cache_entry(db, total)
            return None if row is None else int(row.permutations)

    def _write(self, total: int, permutations: int) -> None:
        with db_session(self._session_factory) as db:
            crud.upsert_cache_entry(db, total=total, permutations=permutations)

    async def get(self, total: int) -> Optional[int]:
        try:
            return await run_in_db_thread(self._read, total, session_factory=self._session_factory)
        except SQLAlchemyError as exc:
            raise CacheUnavailableError(f"Cache read failed for total={total}: {exc}") from exc

    async def put(self, total: int, permutations: int) -> None:
        try:
            await run_in_db_thread(self._write, total, permutations, session_factory=self._session_factory)
        except SQLAlchemyError as exc:
            raise CacheUnavailableError(f"Cache write failed for total={total}: {exc}") from exc
        logger.debug("Cached %s permutations for total=%s", permutations, total)
