"""
In-memory typed cache of resolved secrets.

Entries are stored per slot, a slot being the encoded key plus the key's
context, so the same key path at two secret versions occupies two slots.
Entries are immutable; storing a new value for a slot replaces the old one.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import AsyncIterator, Iterator, Mapping
from types import MappingProxyType
from typing import Any

from .errors import DecodeFailure
from .keys import ConfigKey, ContextValue, encode_key
from .values import ConfigType, ConfigValue

logger = logging.getLogger(__name__)

Slot = tuple[str, tuple[tuple[str, str, ContextValue], ...]]


def slot_for(key: ConfigKey) -> Slot:
    return encode_key(key), key.typed_context_items


def _checked(entry: ConfigValue | None, key: ConfigKey, config_type: ConfigType) -> ConfigValue | None:
    if entry is None:
        return None
    if entry.config_type is not config_type:
        raise DecodeFailure(
            encode_key(key), config_type, f"cached value has type {entry.config_type.value}"
        )
    return entry


def _matches(entry: ConfigValue | None, key: ConfigKey, config_type: ConfigType) -> bool:
    if entry is None or entry.config_type is config_type:
        return True
    logger.debug(
        f"Skipping {entry.config_type.value} update for '{encode_key(key)}' watched as {config_type.value}"
    )
    return False


class CacheSnapshot:
    """Immutable view of the cache at one point in time."""

    def __init__(self, entries: Mapping[Slot, ConfigValue]):
        self._entries = MappingProxyType(dict(entries))

    def value(self, key: ConfigKey, config_type: ConfigType) -> ConfigValue | None:
        """Look up ``key`` with the same semantics as :meth:`SecretCache.read`."""
        return _checked(self._entries.get(slot_for(key)), key, config_type)

    def items(self) -> Iterator[tuple[ConfigKey, ConfigValue]]:
        for (encoded, context), entry in self._entries.items():
            yield ConfigKey.parse(encoded, {name: value for name, _, value in context}), entry

    def __iter__(self) -> Iterator[ConfigValue]:
        return iter(self._entries.values())

    def __contains__(self, key: object) -> bool:
        return isinstance(key, ConfigKey) and slot_for(key) in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"CacheSnapshot[{', '.join(encoded for encoded, _ in self._entries)}]"


class _Watcher:
    """Delivers cache updates to one stream on its own event loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop):
        self.loop = loop
        self.queue: asyncio.Queue[Any] = asyncio.Queue()

    def notify(self, update: Any) -> None:
        try:
            self.loop.call_soon_threadsafe(self.queue.put_nowait, update)
        except RuntimeError:
            logger.debug("Dropping cache update for a watcher whose event loop is closed")


class SecretCache:
    """Thread-safe in-memory store of :class:`ConfigValue` entries.

    Reads never perform I/O. The lock is only held for dictionary access, so
    storing one slot never waits on a remote call for another.
    """

    def __init__(self, initial_values: Mapping[ConfigKey, ConfigValue] | None = None):
        self._lock = threading.Lock()
        self._entries: dict[Slot, ConfigValue] = {}
        self._watchers: dict[Slot, list[_Watcher]] = {}
        self._snapshot_watchers: list[_Watcher] = []
        for key, value in (initial_values or {}).items():
            self._entries[slot_for(key)] = value.with_provenance(key)

    def read(self, key: ConfigKey, config_type: ConfigType) -> ConfigValue | None:
        """Return the value last stored for ``key``, or ``None``.

        Raises:
            DecodeFailure: If the stored value has a different type.
        """
        with self._lock:
            entry = self._entries.get(slot_for(key))
        return _checked(entry, key, config_type)

    def store(self, key: ConfigKey, value: ConfigValue) -> ConfigValue:
        """Store ``value`` for ``key``, replacing any previous entry."""
        slot = slot_for(key)
        entry = value.with_provenance(key)
        snapshot = None
        with self._lock:
            self._entries[slot] = entry
            watchers = list(self._watchers.get(slot, ()))
            snapshot_watchers = list(self._snapshot_watchers)
            if snapshot_watchers:
                snapshot = CacheSnapshot(self._entries)
        for watcher in watchers:
            watcher.notify(entry)
        for watcher in snapshot_watchers:
            watcher.notify(snapshot)
        return entry

    def snapshot(self) -> CacheSnapshot:
        with self._lock:
            return CacheSnapshot(self._entries)

    async def watch(
        self, key: ConfigKey, config_type: ConfigType
    ) -> AsyncIterator[ConfigValue | None]:
        """Stream the value of ``key``: the current value first, then every later store.

        The stream does not end on its own; close it (or break out of the
        ``async for``) to stop watching. Values only change when they are
        fetched again.

        Entries stored as another type are not errors here. The first element
        is ``None`` if the current entry has another type, and later stores of
        another type are skipped.
        """
        slot = slot_for(key)
        watcher = _Watcher(asyncio.get_running_loop())
        with self._lock:
            self._watchers.setdefault(slot, []).append(watcher)
            current = self._entries.get(slot)
        try:
            yield current if _matches(current, key, config_type) else None
            while True:
                entry = await watcher.queue.get()
                if _matches(entry, key, config_type):
                    yield entry
        finally:
            with self._lock:
                watchers = self._watchers.get(slot, [])
                if watcher in watchers:
                    watchers.remove(watcher)
                if not watchers:
                    self._watchers.pop(slot, None)

    async def watch_snapshot(self) -> AsyncIterator[CacheSnapshot]:
        """Stream snapshots of the whole cache: the current one first, then one per store.

        Like :meth:`watch`, the stream only ends when it is closed.
        """
        watcher = _Watcher(asyncio.get_running_loop())
        with self._lock:
            self._snapshot_watchers.append(watcher)
            current = CacheSnapshot(self._entries)
        try:
            yield current
            while True:
                yield await watcher.queue.get()
        finally:
            with self._lock:
                if watcher in self._snapshot_watchers:
                    self._snapshot_watchers.remove(watcher)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __repr__(self) -> str:
        with self._lock:
            keys = ", ".join(encoded for encoded, _ in self._entries)
        return f"SecretCache[{keys}]"
