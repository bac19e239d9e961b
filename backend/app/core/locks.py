"""Per-key asyncio locks.

Serializes read-modify-write sequences for a single user (or any other
key) inside this process while leaving different keys independent.
Cross-process safety comes from the version columns on the stored rows.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, Optional, TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from .exceptions import TransientFailure

logger = logging.getLogger(__name__)

T = TypeVar("T")


class KeyedLock:
    """Registry of one ``asyncio.Lock`` per key, dropped once unused."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._holders: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._holders[key] = self._holders.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._holders[key] -= 1
            if self._holders[key] == 0:
                del self._holders[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


class SerializedWriter:
    """
    Base for services that mutate per-user records.

    ``serialized`` runs an operation in its own transaction while holding
    the key's lock. Version conflicts and duplicate inserts from other
    processes roll the attempt back and re-run it against fresh rows, up
    to ``max_retries`` times.
    """

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession],
        max_retries: int = 3,
        locks: Optional[KeyedLock] = None,
    ) -> None:
        self._session_factory = session_factory
        self.max_retries = max(1, max_retries)
        self._locks = locks or KeyedLock()

    async def serialized(
        self,
        key: str,
        operation: Callable[[AsyncSession], Awaitable[T]],
    ) -> T:
        async with self._locks.hold(key):
            for attempt in range(1, self.max_retries + 1):
                async with self._session_factory() as db:
                    try:
                        result = await operation(db)
                        await db.commit()
                        return result
                    except (StaleDataError, IntegrityError) as e:
                        await db.rollback()
                        logger.warning(
                            f"Write conflict on {key} (attempt {attempt}/{self.max_retries}): {e}"
                        )

        logger.error(f"Giving up on {key} after {self.max_retries} conflicting writes")
        raise TransientFailure(key=key)
