"""Mute preferences."""

from sensorwatch.mute.store import MuteApplied, MuteStateStore, MuteWriteResult, RefreshResult

__all__ = [
    "MuteStateStore",
    "MuteWriteResult",
    "MuteApplied",
    "RefreshResult",
]
