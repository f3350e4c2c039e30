"""
Sweep Scheduler.

Sweeps are point-in-time, never on a timer. The triggers are:

- cold start: once per session, guarded by an in-memory marker
- manual refresh: reload the sensor set, then sweep
- foreground: mute read-through refresh, retrying unsynced writes
"""

from __future__ import annotations

import logging

from sensorwatch.auth.session_manager import SessionManager
from sensorwatch.monitor.poller import SensorPoller, SweepResult
from sensorwatch.mute.store import MuteStateStore, RefreshResult

logger = logging.getLogger(__name__)


class SweepScheduler:
    """Maps lifecycle triggers to poller and mute-store calls."""

    def __init__(self, sessions: SessionManager, poller: SensorPoller, mute: MuteStateStore):
        self.sessions = sessions
        self.poller = poller
        self.mute = mute

        # Users whose cold-start sweep already ran this process
        self._cold_started: set[str] = set()

    def has_cold_started(self, user_id: str) -> bool:
        return user_id in self._cold_started

    async def on_cold_start(self, reload: bool = True) -> SweepResult | None:
        """
        Sweep once for the current session. Later calls return None.

        With reload=False the cached sensor set is swept, for callers that
        have just loaded it (session restore does).
        """
        session = self.sessions.session
        if session is None:
            logger.debug("Cold start without a session, nothing to sweep")
            return None
        if session.user_id in self._cold_started:
            return None

        self._cold_started.add(session.user_id)
        if reload:
            sensors = await self.poller.load_sensors(session.user_id)
        else:
            sensors = await self.poller.cached_sensors(session.user_id)
        return await self.poller.sync_once(session.user_id, sensors)

    async def on_manual_refresh(self) -> SweepResult:
        """User-initiated refresh of the sensor list. Always sweeps."""
        session = self.sessions.require_session()
        sensors = await self.poller.load_sensors(session.user_id)
        return await self.poller.sync_once(session.user_id, sensors)

    async def on_foreground(self) -> RefreshResult | None:
        session = self.sessions.session
        if session is None:
            return None
        sensors = await self.poller.cached_sensors(session.user_id)
        return await self.mute.refresh(session.user_id, [s.name for s in sensors])

    async def reset(self, user_id: str) -> None:
        """Forget the cold-start marker. Runs when the session is cleared."""
        self._cold_started.discard(user_id)
