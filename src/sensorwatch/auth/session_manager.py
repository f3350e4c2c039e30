"""
Session Manager.

Owns the authenticated/unauthenticated state machine:

    Unauthenticated --login / restore_session--> Authenticated
    Authenticated --logout / invalidate--> Unauthenticated

The persisted record is written before the in-memory session is set, and
cleared before the in-memory session is dropped, so an in-memory session
always matches what is on disk.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone

from pydantic import ValidationError

from sensorwatch.errors import (
    LogoutFailed,
    MalformedResponse,
    NetworkError,
    NotAuthenticated,
    OperationInProgress,
)
from sensorwatch.remote.base import PushTokenProvider, RemoteSessionService
from sensorwatch.schema import Credentials, Session
from sensorwatch.storage import KeyValueStore, keys

logger = logging.getLogger(__name__)

SessionListener = Callable[[Session], Awaitable[None]]
ClearListener = Callable[[str], Awaitable[None]]


class SessionManager:
    """Login, logout and session restore."""

    def __init__(
        self,
        store: KeyValueStore,
        remote: RemoteSessionService,
        push_tokens: PushTokenProvider | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.store = store
        self.remote = remote
        self.push_tokens = push_tokens
        self._clock = clock or (lambda: datetime.now(timezone.utc))

        self._session: Session | None = None
        self._login_lock = asyncio.Lock()

        # Callbacks
        self._established_listeners: list[SessionListener] = []
        self._cleared_listeners: list[ClearListener] = []

    # Listeners

    def on_session_established(self, listener: SessionListener) -> None:
        """Call listener after every login or restore."""
        self._established_listeners.append(listener)

    def on_session_cleared(self, listener: ClearListener) -> None:
        """
        Call listener with the user id when the session ends.

        Listeners delete the per-session keys their component owns.
        """
        self._cleared_listeners.append(listener)

    # State

    @property
    def session(self) -> Session | None:
        return self._session

    def is_authenticated(self) -> bool:
        return self._session is not None

    def require_session(self) -> Session:
        if self._session is None:
            raise NotAuthenticated("No active session")
        return self._session

    async def push_token(self) -> str | None:
        return await self.store.get(keys.PUSH_TOKEN)

    # Transitions

    async def login(self, credentials: Credentials) -> Session:
        """
        Authenticate and persist a new session.

        Raises InvalidCredentials, NetworkError, or OperationInProgress when
        another login has not finished yet.
        """
        if self._login_lock.locked():
            raise OperationInProgress("A login is already in progress")

        async with self._login_lock:
            payload = await self.remote.authenticate(credentials.email, credentials.password)

            if self._session is not None:
                previous = self._session.user_id
                logger.info("Replacing session of user %s", previous)
                failure = await self._invalidate_push_token(previous)
                if failure is not None:
                    logger.warning("Push token of replaced user %s may still be active", previous)
                await self._clear_local(previous)

            session = Session(
                token=payload.token,
                user_id=payload.user_id,
                role=payload.role,
                issued_at=self._clock(),
            )

            await self.store.set(keys.SESSION, session.to_record())
            await self.store.set(keys.USER_ID, session.user_id)
            await self.store.set(keys.ROLE, session.role.value)
            await self._provision_push_token(session.user_id)

            self._session = session

        logger.info("User %s logged in as %s", session.user_id, session.role.value)
        await self._notify_established(session)
        return session

    async def restore_session(self) -> Session | None:
        """Load the persisted session without contacting the backend."""
        if self._session is not None:
            return self._session

        record = await self.store.get(keys.SESSION)
        if record is None:
            return None

        try:
            session = Session.from_record(record)
        except (ValidationError, ValueError) as e:
            logger.warning("Discarding unreadable persisted session: %s", e)
            await self.store.delete_many(list(keys.SESSION_KEYS))
            return None

        self._session = session
        logger.info("Restored session for user %s", session.user_id)
        await self._notify_established(session)
        return session

    async def logout(self) -> None:
        """
        End the session.

        The backend is asked to invalidate the push token first; local
        state is cleared regardless. Raises LogoutFailed when the remote
        step failed, after local state is already gone.
        """
        session = self._session
        if session is None:
            user_id = await self.store.get(keys.USER_ID)
            if user_id:
                await self._clear_local(user_id)
            else:
                await self.store.delete_many(list(keys.SESSION_KEYS))
            return

        failure = await self._invalidate_push_token(session.user_id)
        await self._clear_local(session.user_id)

        if failure is not None:
            logger.warning("Logout of user %s was local-only", session.user_id)
            raise LogoutFailed(session.user_id, failure) from failure

        logger.info("User %s logged out", session.user_id)

    async def invalidate(self) -> None:
        """Forced invalidation: drop the session without contacting the backend."""
        session = self._session
        if session is None:
            return
        logger.warning("Session of user %s invalidated", session.user_id)
        await self._clear_local(session.user_id)

    # Private methods

    async def _provision_push_token(self, user_id: str) -> None:
        if self.push_tokens is None:
            return

        token = await self.push_tokens.get_token()
        if not token:
            logger.warning("No push token available for user %s", user_id)
            return

        await self.store.set(keys.PUSH_TOKEN, token)
        try:
            await self.remote.register_push_token(user_id, token)
        except (NetworkError, MalformedResponse) as e:
            logger.warning("Push token registration failed for user %s: %s", user_id, e)

    async def _invalidate_push_token(self, user_id: str) -> Exception | None:
        """Ask the backend to drop the stored push token. Returns the failure, if any."""
        push_token = await self.store.get(keys.PUSH_TOKEN)
        if not push_token:
            logger.warning("No push token stored for user %s, skipping remote invalidation", user_id)
            return None
        try:
            await self.remote.invalidate_token(user_id, push_token)
        except (NetworkError, MalformedResponse) as e:
            logger.warning("Push token invalidation failed for user %s: %s", user_id, e)
            return e
        return None

    async def _clear_local(self, user_id: str) -> None:
        """
        Run every cleared listener, then delete the session keys.

        A failing listener does not stop the others; the first error is
        re-raised once all of them and the key deletion have run.
        """
        error: Exception | None = None
        for listener in self._cleared_listeners:
            try:
                await listener(user_id)
            except Exception as e:
                logger.exception("Session cleanup for user %s failed in %r", user_id, listener)
                if error is None:
                    error = e

        await self.store.delete_many(list(keys.SESSION_KEYS))
        self._session = None

        if error is not None:
            raise error

    async def _notify_established(self, session: Session) -> None:
        for listener in self._established_listeners:
            await listener(session)
