"""Push-token providers."""

from __future__ import annotations

import secrets

from sensorwatch.remote.base import PushTokenProvider


class StaticPushTokenProvider(PushTokenProvider):
    """Always returns the token it was built with."""

    def __init__(self, token: str | None):
        self.token = token

    async def get_token(self) -> str | None:
        return self.token


class GeneratedPushTokenProvider(PushTokenProvider):
    """
    Issues a fresh random token per login.

    Used by headless clients (CLI, scripts) that have no platform push
    service but still need a token for the backend's logout bookkeeping.
    """

    def __init__(self, nbytes: int = 32):
        self.nbytes = nbytes

    async def get_token(self) -> str | None:
        return secrets.token_urlsafe(self.nbytes)
