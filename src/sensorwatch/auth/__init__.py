"""Session management."""

from .push import GeneratedPushTokenProvider, StaticPushTokenProvider
from .session_manager import SessionManager

__all__ = [
    "SessionManager",
    "GeneratedPushTokenProvider",
    "StaticPushTokenProvider",
]
