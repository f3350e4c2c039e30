"""
Mute-State Store.

Answers "is this user / this sensor muted" from a local cache so the
poller can ask once per sensor without a network round-trip. The remote
service is authoritative:

- Writes are optimistic. The cache changes first, then the remote is
  updated. A failed remote write is not rolled back; the key is kept in a
  pending set and retried at the next refresh.
- Refresh (session restore, login, app foreground) retries pending writes,
  then overwrites the cache with whatever the remote reports.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum

from sensorwatch.errors import MalformedResponse, NetworkError, RemoteSyncFailed
from sensorwatch.remote.base import RemoteMuteService
from sensorwatch.storage import KeyValueStore, keys

logger = logging.getLogger(__name__)

REMOTE_ERRORS = (NetworkError, MalformedResponse)


class MuteApplied(Enum):
    """Where a mute write took effect."""

    LOCAL = "local"
    LOCAL_AND_REMOTE = "local+remote"


@dataclass
class MuteWriteResult:
    """Outcome of a mute setter."""

    key: str
    muted: bool
    applied: MuteApplied
    error: RemoteSyncFailed | None = None

    @property
    def synced(self) -> bool:
        return self.applied is MuteApplied.LOCAL_AND_REMOTE

    def raise_for_sync(self) -> None:
        """Raise RemoteSyncFailed if the remote write did not succeed."""
        if self.error is not None:
            raise self.error


@dataclass
class RefreshResult:
    """Outcome of a read-through refresh."""

    confirmed: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    retried: list[str] = field(default_factory=list)


def _encode(muted: bool) -> str:
    return json.dumps(bool(muted))


def _decode(raw: str | None) -> bool | None:
    if raw is None:
        return None
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        return None
    return value if isinstance(value, bool) else None


class MuteStateStore:
    """Local mirror of global and per-sensor mute flags."""

    def __init__(self, store: KeyValueStore, remote: RemoteMuteService):
        self.store = store
        self.remote = remote

        # Keys confirmed by the remote since the last login
        self._confirmed: set[str] = set()
        # Serializes read-modify-write of the index and pending set
        self._lock = asyncio.Lock()

    # Reads (cache only)

    async def is_global_muted(self, user_id: str) -> bool:
        return await self._read(keys.global_mute(user_id))

    async def is_sensor_muted(self, user_id: str, sensor_name: str) -> bool:
        return await self._read(keys.sensor_mute(user_id, sensor_name))

    async def is_suppressed(self, user_id: str, sensor_name: str) -> bool:
        """Global mute OR sensor mute."""
        if await self.is_global_muted(user_id):
            return True
        return await self.is_sensor_muted(user_id, sensor_name)

    def is_confirmed(self, user_id: str, sensor_name: str | None = None) -> bool:
        """Whether the cached flag was confirmed by the remote since login."""
        key = keys.global_mute(user_id) if sensor_name is None else keys.sensor_mute(user_id, sensor_name)
        return key in self._confirmed

    async def pending_keys(self, user_id: str) -> list[str]:
        return list((await self.store.get_json(keys.mute_pending(user_id), {})).keys())

    # Writes (optimistic)

    async def set_global_muted(self, user_id: str, muted: bool) -> MuteWriteResult:
        key = keys.global_mute(user_id)
        await self.store.set(key, _encode(muted))
        return await self._push(user_id, key, None, muted)

    async def set_sensor_muted(self, user_id: str, sensor_name: str, muted: bool) -> MuteWriteResult:
        key = keys.sensor_mute(user_id, sensor_name)
        await self.store.set(key, _encode(muted))
        await self._index(user_id, [sensor_name])
        return await self._push(user_id, key, sensor_name, muted)

    # Refresh

    async def refresh(self, user_id: str, sensor_names: Iterable[str] = ()) -> RefreshResult:
        """
        Retry pending writes, then overwrite the cache from the remote.

        Flags that cannot be fetched keep their cached value.
        """
        result = RefreshResult()
        result.retried = await self._retry_pending(user_id)

        names = set(sensor_names) | set(await self.store.get_json(keys.mute_index(user_id), []))
        ordered = sorted(names)
        await self._index(user_id, ordered)

        targets: list[tuple[str, str | None]] = [(keys.global_mute(user_id), None)]
        targets += [(keys.sensor_mute(user_id, name), name) for name in ordered]

        fetched = await asyncio.gather(
            *(self._fetch(user_id, name) for _, name in targets),
            return_exceptions=True,
        )

        for (key, _), value in zip(targets, fetched):
            if isinstance(value, BaseException):
                if not isinstance(value, REMOTE_ERRORS):
                    raise value
                logger.warning("Mute refresh failed for %s, keeping cached value: %s", key, value)
                result.failed.append(key)
                continue

            await self.store.set(key, _encode(value))
            self._confirmed.add(key)
            result.confirmed.append(key)

        # Remote wins on refresh, including over writes still pending
        async with self._lock:
            pending = await self.store.get_json(keys.mute_pending(user_id), {})
            for key in result.confirmed:
                if pending.pop(key, None) is not None:
                    logger.warning("Unsynced mute write for %s overwritten by remote value", key)
            await self._write_pending(user_id, pending)

        return result

    async def clear(self, user_id: str) -> None:
        """Delete every mute key of the user."""
        async with self._lock:
            names = await self.store.get_json(keys.mute_index(user_id), [])
            await self.store.delete_many(
                [keys.global_mute(user_id)]
                + [keys.sensor_mute(user_id, name) for name in names]
                + [keys.mute_index(user_id), keys.mute_pending(user_id)]
            )
        self.forget_confirmations(user_id)

    def forget_confirmations(self, user_id: str) -> None:
        """Mark every cached flag of the user as unconfirmed."""
        prefix = keys.mute_prefix(user_id)
        self._confirmed = {k for k in self._confirmed if not k.startswith(prefix)}

    # Private methods

    async def _read(self, key: str) -> bool:
        value = _decode(await self.store.get(key))
        if value is None:
            # Nothing cached: do not suppress
            return False
        if key not in self._confirmed:
            logger.debug("Serving unconfirmed cached mute flag %s=%s", key, value)
        return value

    async def _fetch(self, user_id: str, sensor_name: str | None) -> bool:
        if sensor_name is None:
            return await self.remote.get_global_mute(user_id)
        return await self.remote.get_sensor_mute(user_id, sensor_name)

    async def _send(self, user_id: str, sensor_name: str | None, muted: bool) -> None:
        if sensor_name is None:
            await self.remote.set_global_mute(user_id, muted)
        else:
            await self.remote.set_sensor_mute(user_id, sensor_name, muted)

    async def _push(self, user_id: str, key: str, sensor_name: str | None, muted: bool) -> MuteWriteResult:
        try:
            await self._send(user_id, sensor_name, muted)
        except REMOTE_ERRORS as e:
            logger.warning("Mute %s=%s applied locally only: %s", key, muted, e)
            async with self._lock:
                pending = await self.store.get_json(keys.mute_pending(user_id), {})
                pending[key] = {"sensor": sensor_name, "muted": muted}
                await self._write_pending(user_id, pending)
            self._confirmed.discard(key)
            return MuteWriteResult(key, muted, MuteApplied.LOCAL, RemoteSyncFailed(key, e))

        async with self._lock:
            pending = await self.store.get_json(keys.mute_pending(user_id), {})
            if pending.pop(key, None) is not None:
                await self._write_pending(user_id, pending)
        self._confirmed.add(key)
        return MuteWriteResult(key, muted, MuteApplied.LOCAL_AND_REMOTE)

    async def _retry_pending(self, user_id: str) -> list[str]:
        pending = await self.store.get_json(keys.mute_pending(user_id), {})
        retried = []
        for key, entry in pending.items():
            try:
                await self._send(user_id, entry.get("sensor"), bool(entry.get("muted")))
            except REMOTE_ERRORS as e:
                logger.warning("Retry of unsynced mute write %s failed: %s", key, e)
                continue
            retried.append(key)

        if retried:
            async with self._lock:
                current = await self.store.get_json(keys.mute_pending(user_id), {})
                for key in retried:
                    # A newer write may have replaced the entry meanwhile
                    if current.get(key) == pending[key]:
                        current.pop(key)
                await self._write_pending(user_id, current)
        return retried

    async def _write_pending(self, user_id: str, pending: dict) -> None:
        if pending:
            await self.store.set_json(keys.mute_pending(user_id), pending)
        else:
            await self.store.delete(keys.mute_pending(user_id))

    async def _index(self, user_id: str, sensor_names: Iterable[str]) -> None:
        async with self._lock:
            index = await self.store.get_json(keys.mute_index(user_id), [])
            merged = sorted(set(index) | set(sensor_names))
            if merged != index:
                await self.store.set_json(keys.mute_index(user_id), merged)
