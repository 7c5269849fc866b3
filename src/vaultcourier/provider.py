"""
Secret providers: typed, cached lookups of Vault secrets by config key.

``VaultSecretProvider`` resolves keys through a registry of fetch
operations built with :func:`key_value_secret` and
:func:`database_credentials`. ``VaultContextProvider`` needs no registry:
the secret engine, mount and URL travel in the key's context.

Both providers answer ``value`` from memory only, ``fetch_value`` from Vault
(refreshing the cache), and ``resolve`` from memory with a fetch on miss.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Mapping
from dataclasses import dataclass
from enum import Enum

from .cache import CacheSnapshot, SecretCache, Slot, slot_for
from .client import VaultClient
from .credentials import DatabaseRole
from .errors import (
    AddressStructurallyInvalid,
    DecodeFailure,
    InvalidMountPath,
    UnsupportedSecretEngine,
)
from .keys import ConfigKey, ContextValue, encode_key
from .paths import is_valid_mount_path
from .registry import FetchOperation, FetchRegistry
from .strategies import (
    DatabaseRoleStrategy,
    KeyValueAddressStrategy,
    KeyValueDataPathStrategy,
    ParsedAddress,
    SecretShape,
    parse_address,
)
from .values import ConfigType, ConfigValue, decode_payload

logger = logging.getLogger(__name__)


def key_value_secret(
    client: VaultClient, mount: str, key: str, version: int | None = None
) -> FetchOperation:
    """Build a fetch operation reading a key/value secret as JSON bytes."""

    async def fetch() -> bytes:
        return await client.read_key_value_secret_data(mount, key, version)

    return fetch


def database_credentials(client: VaultClient, mount: str, role: DatabaseRole) -> FetchOperation:
    """Build a fetch operation reading database role credentials.

    Static and dynamic role responses are both normalized to a
    ``{"username": ..., "password": ...}`` JSON payload.

    Raises:
        InvalidMountPath: If ``mount`` is not a valid Vault mount path.
    """
    if not is_valid_mount_path(mount):
        raise InvalidMountPath(mount)

    async def fetch() -> bytes:
        credentials = await client.database_credentials(mount, role)
        return credentials.to_payload()

    return fetch


def fetch_operation_for(client: VaultClient, address: ParsedAddress) -> FetchOperation:
    """Build the fetch operation for a parsed secret address."""
    if address.shape is SecretShape.KEY_VALUE:
        return key_value_secret(client, address.mount, address.name, address.version)
    return database_credentials(client, address.mount, DatabaseRole(address.name, address.shape))


class _CachedProvider(ABC):
    """Cache-backed read side shared by the providers."""

    def __init__(
        self,
        client: VaultClient,
        initial_values: Mapping[ConfigKey, ConfigValue] | None = None,
    ):
        self.client = client
        self.cache = SecretCache(initial_values)

    def value(self, key: ConfigKey, config_type: ConfigType) -> ConfigValue | None:
        """Read the cached value of ``key`` without contacting Vault.

        The value may be outdated; use :meth:`fetch_value` for the latest.
        """
        return self.cache.read(key, config_type)

    @abstractmethod
    async def fetch_value(self, key: ConfigKey, config_type: ConfigType) -> ConfigValue | None:
        """Fetch ``key`` from Vault, refreshing its cache slot."""

    async def resolve(self, key: ConfigKey, config_type: ConfigType) -> ConfigValue | None:
        """Return the cached value of ``key``, fetching it from Vault on a miss."""
        cached = self.cache.read(key, config_type)
        if cached is not None:
            return cached
        return await self.fetch_value(key, config_type)

    def snapshot(self) -> CacheSnapshot:
        return self.cache.snapshot()

    def watch(self, key: ConfigKey, config_type: ConfigType) -> AsyncIterator[ConfigValue | None]:
        return self.cache.watch(key, config_type)

    def watch_snapshot(self) -> AsyncIterator[CacheSnapshot]:
        return self.cache.watch_snapshot()

    def _store(self, key: ConfigKey, payload: bytes, config_type: ConfigType) -> ConfigValue:
        value = decode_payload(payload, config_type, key)
        entry = self.cache.store(key, ConfigValue(value=value, config_type=config_type, is_secret=True))
        logger.debug(f"Cached secret for '{encode_key(key)}' as {config_type.value}")
        return entry

    def __repr__(self) -> str:
        return f"{type(self).__name__}[{self.client.address}]"


@dataclass
class _InFlight:
    task: asyncio.Task[ConfigValue]
    waiters: int = 0


class VaultSecretProvider(_CachedProvider):
    """Secret provider driven by a registry of fetch operations.

    Example:
        ```python
        provider = VaultSecretProvider(client)
        provider.register(
            ConfigKey(["database", "credentials"]),
            provider.database_credentials("database", DatabaseRole.static("app")),
        )
        value = await provider.resolve(ConfigKey(["database", "credentials"]), ConfigType.STRING)
        ```

    With ``single_flight`` enabled (the default), concurrent fetches of the
    same key share one remote call. A caller that is cancelled leaves the
    cache and the other callers untouched; the shared call is only cancelled
    once no caller is waiting for it. With ``single_flight`` disabled every
    fetch calls Vault and the last one to finish wins the cache slot.
    """

    def __init__(
        self,
        client: VaultClient,
        operations: Mapping[ConfigKey, FetchOperation] | None = None,
        initial_values: Mapping[ConfigKey, ConfigValue] | None = None,
        single_flight: bool = True,
    ):
        super().__init__(client, initial_values)
        self.registry = FetchRegistry(operations)
        self.single_flight = single_flight
        self._in_flight: dict[tuple[Slot, ConfigType, asyncio.AbstractEventLoop], _InFlight] = {}
        self._in_flight_lock = threading.Lock()

    def register(self, key: ConfigKey, operation: FetchOperation) -> None:
        self.registry.set(key, operation)

    def unregister(self, key: ConfigKey) -> None:
        self.registry.remove(key)

    def key_value_secret(self, mount: str, key: str, version: int | None = None) -> FetchOperation:
        return key_value_secret(self.client, mount, key, version)

    def database_credentials(self, mount: str, role: DatabaseRole) -> FetchOperation:
        return database_credentials(self.client, mount, role)

    async def fetch_value(self, key: ConfigKey, config_type: ConfigType) -> ConfigValue | None:
        """Fetch ``key`` from Vault, cache it and return it.

        Returns ``None`` if no fetch operation is registered for ``key``.

        Raises:
            DecodeFailure: If the payload is not a valid ``config_type``.
                Nothing is cached in that case.
            RemoteError: Passed through from the client.
        """
        operation = self.registry.get(key)
        if operation is None:
            logger.debug(f"No fetch operation registered for '{encode_key(key)}'")
            return None

        if not self.single_flight:
            return await self._fetch(key, config_type, operation)
        return await self._fetch_shared(key, config_type, operation)

    async def _fetch(self, key: ConfigKey, config_type: ConfigType, operation: FetchOperation) -> ConfigValue:
        payload = await operation()
        return self._store(key, payload, config_type)

    async def _fetch_shared(
        self, key: ConfigKey, config_type: ConfigType, operation: FetchOperation
    ) -> ConfigValue:
        loop = asyncio.get_running_loop()
        flight_key = (slot_for(key), config_type, loop)

        with self._in_flight_lock:
            flight = self._in_flight.get(flight_key)
            if flight is None:
                task = loop.create_task(self._fetch(key, config_type, operation))
                flight = _InFlight(task)
                self._in_flight[flight_key] = flight
                task.add_done_callback(lambda done: self._forget(flight_key, flight))
            else:
                logger.debug(f"Joining in-flight fetch for '{encode_key(key)}'")
            flight.waiters += 1

        cancelled = False
        try:
            return await asyncio.shield(flight.task)
        except asyncio.CancelledError:
            cancelled = True
            raise
        finally:
            with self._in_flight_lock:
                flight.waiters -= 1
                abandoned = cancelled and flight.waiters == 0 and not flight.task.done()
                if abandoned and self._in_flight.get(flight_key) is flight:
                    del self._in_flight[flight_key]
            if abandoned:
                flight.task.cancel()

    def _forget(self, flight_key: tuple[Slot, ConfigType, asyncio.AbstractEventLoop], flight: _InFlight) -> None:
        with self._in_flight_lock:
            if self._in_flight.get(flight_key) is flight:
                del self._in_flight[flight_key]
        if not flight.task.cancelled():
            # Mark the outcome as retrieved when every waiter has left
            flight.task.exception()


class SecretEngine(str, Enum):
    """Secret engines readable through key context."""

    KEY_VALUE = "key_value"
    DATABASE = "database"


ENGINE_CONTEXT_KEY = "engine"
MOUNT_CONTEXT_KEY = "mount"
URL_CONTEXT_KEY = "url"


def make_context(engine: SecretEngine | str, mount: str, url: str) -> dict[str, ContextValue]:
    """Build the key context that tells :class:`VaultContextProvider` where a secret lives.

    Example:
        ```python
        key = ConfigKey(
            ["database", "credentials"],
            make_context(SecretEngine.DATABASE, "database", "/database/creds/readonly"),
        )
        ```
    """
    return {
        ENGINE_CONTEXT_KEY: SecretEngine(engine).value,
        MOUNT_CONTEXT_KEY: mount,
        URL_CONTEXT_KEY: url,
    }


class VaultContextProvider(_CachedProvider):
    """Secret provider reading the secret location from the key context.

    Keys without ``engine``, ``mount`` and ``url`` context resolve to
    ``None``. Secrets can only be read as ``string`` or ``bytes``.
    """

    SUPPORTED_TYPES = (ConfigType.STRING, ConfigType.BYTES)

    async def fetch_value(self, key: ConfigKey, config_type: ConfigType) -> ConfigValue | None:
        """Fetch the secret described by the key context, cache it and return it.

        Raises:
            UnsupportedSecretEngine: If the context names an unknown engine.
            AddressStructurallyInvalid: If the URL does not fit the engine and mount.
            DecodeFailure: If ``config_type`` is neither string nor bytes.
            RemoteError: Passed through from the client.
        """
        context = key.context
        engine = context.get(ENGINE_CONTEXT_KEY)
        mount = context.get(MOUNT_CONTEXT_KEY)
        url = context.get(URL_CONTEXT_KEY)
        if not isinstance(engine, str) or not isinstance(mount, str) or not isinstance(url, str):
            return None

        try:
            secret_engine = SecretEngine(engine)
        except ValueError as e:
            raise UnsupportedSecretEngine(engine) from e

        if config_type not in self.SUPPORTED_TYPES:
            raise DecodeFailure(encode_key(key), config_type, "secrets can only be read as string or bytes")

        address = self._parse(secret_engine, mount, self._relative(url))
        if address is None:
            raise AddressStructurallyInvalid(url, f"not a {secret_engine.value} secret for '{encode_key(key)}'")

        payload = await fetch_operation_for(self.client, address)()
        return self._store(key, payload, config_type)

    def _relative(self, url: str) -> str:
        for prefix in (f"{self.client.address}/v1", self.client.address):
            if url.startswith(prefix):
                return url[len(prefix):]
        return url

    @staticmethod
    def _parse(engine: SecretEngine, mount: str, url: str) -> ParsedAddress | None:
        if engine is SecretEngine.DATABASE:
            return DatabaseRoleStrategy(mount).parse(url)

        strategies = [KeyValueAddressStrategy(mount, api_paths=True), KeyValueDataPathStrategy()]
        return parse_address(url, strategies)

