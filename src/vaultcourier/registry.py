"""
Registry of fetch operations.

Maps configuration keys to the operation that fetches their secret from
Vault. A key without an entry has no remote source, which is not an error.
"""

import logging
import threading
from collections.abc import Awaitable, Callable, Mapping

from .keys import ConfigKey, encode_key

logger = logging.getLogger(__name__)

FetchOperation = Callable[[], Awaitable[bytes]]
"""An idempotent, argument-less coroutine function returning a raw payload.

It carries its own fetch parameters (client, mount, key or role, version)
and performs exactly one remote read per call. Nothing is cached by the
operation itself.
"""


class FetchRegistry:
    """Thread-safe mapping from :class:`ConfigKey` to :class:`FetchOperation`.

    ``set`` is linearizable: once it returns, every later ``get`` on any
    thread sees the new operation. The registry does not track in-flight
    fetches.
    """

    def __init__(self, operations: Mapping[ConfigKey, FetchOperation] | None = None):
        self._lock = threading.Lock()
        self._operations: dict[ConfigKey, FetchOperation] = dict(operations or {})

    def get(self, key: ConfigKey) -> FetchOperation | None:
        with self._lock:
            return self._operations.get(key)

    def set(self, key: ConfigKey, operation: FetchOperation) -> None:
        """Register ``operation`` for ``key``, replacing any previous one."""
        with self._lock:
            replaced = key in self._operations
            self._operations[key] = operation
        logger.debug(f"{'Replaced' if replaced else 'Registered'} fetch operation for '{encode_key(key)}'")

    def remove(self, key: ConfigKey) -> None:
        with self._lock:
            self._operations.pop(key, None)

    def keys(self) -> list[ConfigKey]:
        with self._lock:
            return list(self._operations)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._operations

    def __len__(self) -> int:
        with self._lock:
            return len(self._operations)
