"""In-memory session storage for plakait.

Sessions live only for the lifetime of the process. Concurrency follows a
two-level scheme:

- one reader/writer lock guards the session map itself (insert, delete,
  lookup)
- one asyncio.Lock per session guards that session's history

The map lock is always taken before a session lock and is only held for
the lookup, never across a caller's network round-trip. Turns on the same
session therefore serialize on the session lock while different sessions
proceed in parallel.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import AsyncIterator, Callable, Dict, List, Optional, Tuple
from uuid import uuid4

from configs.scenarios import Scenario, get_scenario_data
from exceptions.exceptions import SessionNotFoundException
from ..models.session_models import MessageHistory, Session, UserTurn
from .locks import AsyncReadWriteLock


logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class _SessionSlot:
    session: Session
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    removed: bool = False


class SessionStore:
    """Concurrent map of session_id -> Session.

    Parameters
    ----------
    clock:
        Returns the current time as an aware datetime. Used for
        `created_at` and for expiry cutoffs.
    """

    def __init__(self, clock: Callable[[], datetime] = _utcnow) -> None:
        self._slots: Dict[str, _SessionSlot] = {}
        self._map_lock = AsyncReadWriteLock()
        self._clock = clock
        self._sweeper: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # Creation / lookup
    # ------------------------------------------------------------------

    async def create(self, scenario: Scenario) -> Session:
        """Create a session holding only the scenario's seed turn."""
        seed = UserTurn(speaker_name=None, text=get_scenario_data(scenario).prompt)

        async with self._map_lock.write():
            session_id = str(uuid4())
            while session_id in self._slots:
                session_id = str(uuid4())
            session = Session(
                session_id=session_id,
                scenario=scenario,
                history=MessageHistory(turns=[seed]),
                created_at=self._clock(),
            )
            self._slots[session_id] = _SessionSlot(session=session)

        logger.debug("[STORE] created session %s for %s", session_id, scenario.value)
        return session

    async def _lookup(self, session_id: str) -> _SessionSlot:
        async with self._map_lock.read():
            slot = self._slots.get(session_id)
        if slot is None:
            raise SessionNotFoundException(session_id)
        return slot

    @asynccontextmanager
    async def get_for_mutation(self, session_id: str) -> AsyncIterator[Session]:
        """Yield the session with its exclusive lock held until the block exits.

        A second caller for the same session waits here until the first one
        leaves its block.
        """
        slot = await self._lookup(session_id)
        async with slot.lock:
            # The sweep may have removed it while we queued for the lock.
            if slot.removed:
                raise SessionNotFoundException(session_id)
            yield slot.session

    async def get_readonly(self, session_id: str) -> MessageHistory:
        """Return a snapshot of the session's history."""
        slot = await self._lookup(session_id)
        async with slot.lock:
            if slot.removed:
                raise SessionNotFoundException(session_id)
            return slot.session.history.snapshot()

    async def count(self) -> int:
        async with self._map_lock.read():
            return len(self._slots)

    # ------------------------------------------------------------------
    # Expiry
    # ------------------------------------------------------------------

    async def sweep(self, max_age: timedelta) -> int:
        """Remove sessions created more than `max_age` before this sweep began.

        Each session is checked on its own, so a session busy with a turn
        only delays its own removal. Returns the number of sessions removed.
        """
        cutoff = self._clock() - max_age

        async with self._map_lock.read():
            candidates: List[Tuple[str, _SessionSlot]] = list(self._slots.items())

        results = await asyncio.gather(
            *(
                self._expire_slot(session_id, slot, cutoff)
                for session_id, slot in candidates
            )
        )
        removed = sum(results)

        if removed:
            logger.info("[STORE] sweep removed %d expired session(s)", removed)
        return removed

    async def _expire_slot(
        self, session_id: str, slot: _SessionSlot, cutoff: datetime
    ) -> bool:
        async with slot.lock:
            expired = slot.session.created_at < cutoff
        if not expired:
            return False

        async with self._map_lock.write():
            if self._slots.get(session_id) is not slot:
                return False
            del self._slots[session_id]
            slot.removed = True
        return True

    async def _sweep_forever(self, interval: float, max_age: timedelta) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await self.sweep(max_age)
            except Exception:
                logger.exception("[STORE] session sweep failed")

    def start_sweeper(self, interval: float, max_age: timedelta) -> asyncio.Task:
        """Run `sweep` every `interval` seconds on a background task."""
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.create_task(
                self._sweep_forever(interval, max_age), name="session-sweeper"
            )
            logger.info(
                "[STORE] sweeper started (interval=%ss, max_age=%s)", interval, max_age
            )
        return self._sweeper

    async def stop_sweeper(self) -> None:
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None
