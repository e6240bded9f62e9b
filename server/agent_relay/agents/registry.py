from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, replace
from typing import AsyncIterator, Awaitable, Callable, Dict, NamedTuple, Optional

logger = logging.getLogger(__name__)


@dataclass
class SessionRecord:
    handle: str
    next_sequence: int = 1


class SessionLease(NamedTuple):
    handle: str
    sequence: int
    created: bool


class SessionRegistry:
    """
    In-memory mapping of user id to remote agent session, kept for the life of the process.

    Every read-modify-write for a user happens under that user's asyncio.Lock, so
    first contact creates exactly one remote session and each caller reserves a
    distinct sequence number. Users never wait on each other.
    """

    def __init__(self) -> None:
        self._records: Dict[str, SessionRecord] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    @asynccontextmanager
    async def _guard(self, user_id: str) -> AsyncIterator[None]:
        # Lookup, insert and cleanup never span an await, so they are atomic on the event loop.
        lock = self._locks.get(user_id)
        if lock is None:
            lock = self._locks[user_id] = asyncio.Lock()
        self._lock_users[user_id] = self._lock_users.get(user_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            remaining = self._lock_users[user_id] - 1
            if remaining:
                self._lock_users[user_id] = remaining
            else:
                # Nobody holds or waits on the lock; keep it only while a record exists.
                del self._lock_users[user_id]
                if user_id not in self._records:
                    del self._locks[user_id]

    async def get_or_create(self, user_id: str, create_session: Callable[[], Awaitable[str]]) -> SessionLease:
        """
        Return the user's session handle and reserve the sequence number for one message.

        ``create_session`` is awaited only when the user has no session yet.

        Creation failures propagate and leave no record behind, so the next call
        starts over.
        """
        async with self._guard(user_id):
            record = self._records.get(user_id)
            created = False
            if record is None:
                handle = await create_session()
                record = self._records[user_id] = SessionRecord(handle=handle)
                created = True
                logger.info("registry.session_bound", extra={"session_id": handle})

            sequence = record.next_sequence
            record.next_sequence += 1
            return SessionLease(handle=record.handle, sequence=sequence, created=created)

    async def release(self, user_id: str, handle: str, sequence: int) -> bool:
        """
        Give back a reserved sequence number that was never accepted remotely.

        Only the most recent reservation on the same session can be returned;
        anything else would hand out a number another caller already holds.
        """
        async with self._guard(user_id):
            record = self._records.get(user_id)
            if record is None or record.handle != handle or record.next_sequence != sequence + 1:
                return False
            record.next_sequence = sequence
            return True

    async def invalidate(self, user_id: str, handle: str) -> bool:
        """Forget the user's session if it still points at ``handle``."""
        async with self._guard(user_id):
            record = self._records.get(user_id)
            if record is None or record.handle != handle:
                return False
            del self._records[user_id]
            logger.info("registry.session_dropped", extra={"session_id": handle})
            return True

    def get(self, user_id: str) -> Optional[SessionRecord]:
        record = self._records.get(user_id)
        return replace(record) if record is not None else None

    def __len__(self) -> int:
        return len(self._records)
