"""Background expiry of pairing sessions.

The reaper wakes on a fixed interval, marks every ACTIVE session whose
deadline has passed as EXPIRED and deletes it. Terminal sessions past
their deadline (CLOSED ones, or EXPIRED ones whose delete failed on an
earlier sweep) are deleted as well, so storage never outgrows the live
set plus one TTL of closed sessions. Between sweeps an expired
session may still be stored as ACTIVE; readers enforce expiry themselves
via ``PairingSession.is_expired``.
"""

import asyncio
import logging
import time
from typing import Callable, Optional

from ctrlw.retry import StoreCall, call_store
from ctrlw.sessions.models import SessionStatus
from ctrlw.sessions.store import SessionStore

logger = logging.getLogger(__name__)

DEFAULT_REAP_INTERVAL = 60.0  # seconds


class ExpiryReaper:
    """Periodically reaps expired sessions.

    Usage:
        reaper = ExpiryReaper(store, interval=60.0)
        await reaper.start()
        ...
        await reaper.stop()
    """

    def __init__(
        self,
        store: SessionStore,
        interval: float = DEFAULT_REAP_INTERVAL,
        clock: Callable[[], float] = time.time,
        call: StoreCall = call_store,
    ):
        """Initialize the reaper.

        Args:
            store: Session store to sweep.
            interval: Seconds between sweeps.
            clock: Returns the current Unix time (injectable for testing).
            call: Wraps every store call with timeout and transient retry.
        """
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._store = store
        self._interval = interval
        self._clock = clock
        self._call = call
        self._running = False
        self._task: Optional[asyncio.Task] = None

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def is_running(self) -> bool:
        """Whether the sweep loop is active."""
        return self._running

    async def start(self) -> None:
        """Start the sweep loop."""
        if self._running:
            return

        self._running = True
        self._task = asyncio.create_task(self._reap_loop())
        logger.info(f"ExpiryReaper started (interval={self._interval}s)")

    async def stop(self) -> None:
        """Stop the sweep loop."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("ExpiryReaper stopped")

    async def reap_once(self) -> int:
        """Expire and delete every session past its deadline.

        Returns:
            Number of sessions deleted by this sweep.
        """
        now = self._clock()
        candidates = await self._call(lambda: self._store.list_reapable(now))

        reaped = 0
        for session in candidates:
            if session.status == SessionStatus.ACTIVE:
                expected_version = session.version
                if not session.mark_expired(now):
                    continue

                # A concurrent join/leave/extend wins; the next sweep re-checks it.
                replaced = await self._call(
                    lambda: self._store.replace(session, expected_version)
                )
                if not replaced:
                    continue
                logger.info(f"Session expired: {session.session_id[:8]}...")

            if await self._call(lambda: self._store.delete(session.session_id)):
                reaped += 1

        if reaped:
            logger.debug(f"Reaped {reaped} session(s)")
        return reaped

    async def _reap_loop(self) -> None:
        """Main loop that sweeps on every interval."""
        while self._running:
            try:
                await asyncio.sleep(self._interval)
                await self.reap_once()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Reaper loop error: {e}")
