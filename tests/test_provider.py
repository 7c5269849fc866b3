"""Tests for the registry-driven secret provider."""

import asyncio
import json

import pytest

from vaultcourier.client import VaultClient
from vaultcourier.credentials import DatabaseCredentials, DatabaseRole
from vaultcourier.errors import (
    AuthenticationRequired,
    DecodeFailure,
    InvalidMountPath,
    RemoteNotFound,
)
from vaultcourier.keys import ConfigKey
from vaultcourier.provider import VaultSecretProvider
from vaultcourier.values import ConfigType, ConfigValue


class CountingOperation:
    """Fetch operation returning a fixed payload and counting its calls."""

    def __init__(self, payload: bytes = b"s3cret", gate: asyncio.Event | None = None):
        self.payload = payload
        self.gate = gate
        self.calls = 0
        self.cancelled = 0

    async def __call__(self) -> bytes:
        self.calls += 1
        if self.gate is not None:
            try:
                await self.gate.wait()
            except asyncio.CancelledError:
                self.cancelled += 1
                raise
        return self.payload


class FailingOperation:
    def __init__(self, error: Exception):
        self.error = error
        self.calls = 0

    async def __call__(self) -> bytes:
        self.calls += 1
        raise self.error


@pytest.fixture
def provider(vault_client) -> VaultSecretProvider:
    return VaultSecretProvider(vault_client)


KEY = ConfigKey(["database", "password"])


class TestResolution:
    """Test cache-first resolution."""

    @pytest.mark.asyncio
    async def test_cache_hit_avoids_io(self, vault_client):
        """A cached value is served without invoking the fetch operation."""
        operation = CountingOperation()
        provider = VaultSecretProvider(
            vault_client,
            operations={KEY: operation},
            initial_values={KEY: ConfigValue(value="cached", config_type=ConfigType.STRING)},
        )

        assert provider.value(KEY, ConfigType.STRING).value == "cached"
        assert (await provider.resolve(KEY, ConfigType.STRING)).value == "cached"
        assert operation.calls == 0

    @pytest.mark.asyncio
    async def test_fetch_populates_cache(self, provider):
        """A fetched value is readable from the cache right after."""
        operation = CountingOperation(b"[1, 2, 3]")
        provider.register(KEY, operation)

        fetched = await provider.fetch_value(KEY, ConfigType.INT_ARRAY)
        assert fetched.value == [1, 2, 3]
        assert fetched.is_secret
        assert provider.value(KEY, ConfigType.INT_ARRAY) == fetched
        assert operation.calls == 1

    @pytest.mark.asyncio
    async def test_resolve_fetches_once(self, provider):
        """resolve fetches on a miss and serves later calls from the cache."""
        operation = CountingOperation()
        provider.register(KEY, operation)

        first = await provider.resolve(KEY, ConfigType.STRING)
        second = await provider.resolve(KEY, ConfigType.STRING)
        assert first.value == second.value == "s3cret"
        assert operation.calls == 1

    @pytest.mark.asyncio
    async def test_fetch_value_refreshes(self, provider):
        """fetch_value always goes to the source and overwrites the cache."""
        operation = CountingOperation(b"old")
        provider.register(KEY, operation)
        await provider.resolve(KEY, ConfigType.STRING)

        operation.payload = b"new"
        assert (await provider.fetch_value(KEY, ConfigType.STRING)).value == "new"
        assert provider.value(KEY, ConfigType.STRING).value == "new"
        assert operation.calls == 2

    @pytest.mark.asyncio
    async def test_no_source_is_not_an_error(self, provider):
        """A key without a registered operation resolves to None."""
        assert await provider.fetch_value(KEY, ConfigType.STRING) is None
        assert await provider.resolve(KEY, ConfigType.STRING) is None

    @pytest.mark.asyncio
    async def test_decode_failure_is_not_cached(self, provider):
        """An undecodable payload raises and leaves the slot empty."""
        provider.register(KEY, CountingOperation(b"not a number"))

        with pytest.raises(DecodeFailure, match="database.password"):
            await provider.fetch_value(KEY, ConfigType.INT)
        assert provider.value(KEY, ConfigType.INT) is None
        assert len(provider.snapshot()) == 0

    @pytest.mark.asyncio
    async def test_decode_failure_keeps_previous_value(self, provider):
        """A failed refresh leaves the previously cached value untouched."""
        operation = CountingOperation(b"7")
        provider.register(KEY, operation)
        await provider.fetch_value(KEY, ConfigType.INT)

        operation.payload = b"seven"
        with pytest.raises(DecodeFailure):
            await provider.fetch_value(KEY, ConfigType.INT)
        assert provider.value(KEY, ConfigType.INT).value == 7

    @pytest.mark.asyncio
    async def test_remote_errors_pass_through(self, provider):
        """Remote errors reach the caller unchanged and nothing is cached."""
        error = RemoteNotFound("Invalid path or permission denied", ["no secret"])
        provider.register(KEY, FailingOperation(error))

        with pytest.raises(RemoteNotFound) as exc_info:
            await provider.resolve(KEY, ConfigType.STRING)
        assert exc_info.value is error
        assert provider.value(KEY, ConfigType.STRING) is None

    @pytest.mark.asyncio
    async def test_context_distinguishes_slots(self, provider):
        """The same path at two versions occupies two cache slots."""
        v1 = KEY.with_context(version=1)
        v2 = KEY.with_context(version=2)
        provider.register(v1, CountingOperation(b"first"))
        provider.register(v2, CountingOperation(b"second"))

        assert (await provider.fetch_value(v1, ConfigType.BYTES)).value == b"first"
        assert (await provider.fetch_value(v2, ConfigType.BYTES)).value == b"second"
        assert provider.value(v1, ConfigType.BYTES).value == b"first"
        assert provider.value(v2, ConfigType.BYTES).value == b"second"
        assert provider.value(KEY, ConfigType.BYTES) is None

    @pytest.mark.asyncio
    async def test_unregister(self, provider):
        provider.register(KEY, CountingOperation())
        provider.unregister(KEY)
        assert KEY not in provider.registry
        assert await provider.fetch_value(KEY, ConfigType.STRING) is None

    @pytest.mark.asyncio
    async def test_watch_sees_fetches(self, provider):
        """A watcher receives the current value and then each fetched value."""
        operation = CountingOperation(b"v1")
        provider.register(KEY, operation)
        stream = provider.watch(KEY, ConfigType.STRING)
        assert await anext(stream) is None

        await provider.fetch_value(KEY, ConfigType.STRING)
        assert (await asyncio.wait_for(anext(stream), 1)).value == "v1"
        await stream.aclose()

    @pytest.mark.asyncio
    async def test_watch_snapshot_sees_fetches(self, provider):
        """A snapshot watcher gets the current cache and then one snapshot per fetch."""
        provider.register(KEY, CountingOperation(b"v1"))
        stream = provider.watch_snapshot()
        assert len(await anext(stream)) == 0

        await provider.fetch_value(KEY, ConfigType.STRING)
        snapshot = await asyncio.wait_for(anext(stream), 1)
        assert snapshot.value(KEY, ConfigType.STRING).value == "v1"
        await stream.aclose()

    def test_repr(self, provider):
        assert repr(provider) == "VaultSecretProvider[https://vault.example.com]"


class TestSingleFlight:
    """Test coalescing of concurrent fetches."""

    @pytest.mark.asyncio
    async def test_concurrent_fetches_share_one_call(self, provider):
        gate = asyncio.Event()
        operation = CountingOperation(gate=gate)
        provider.register(KEY, operation)

        tasks = [asyncio.create_task(provider.resolve(KEY, ConfigType.STRING)) for _ in range(5)]
        await asyncio.sleep(0)
        gate.set()
        results = await asyncio.gather(*tasks)

        assert operation.calls == 1
        assert {result.value for result in results} == {"s3cret"}

    @pytest.mark.asyncio
    async def test_disabled_single_flight_calls_every_time(self, vault_client):
        gate = asyncio.Event()
        operation = CountingOperation(gate=gate)
        provider = VaultSecretProvider(vault_client, {KEY: operation}, single_flight=False)

        tasks = [asyncio.create_task(provider.fetch_value(KEY, ConfigType.STRING)) for _ in range(3)]
        await asyncio.sleep(0)
        gate.set()
        await asyncio.gather(*tasks)

        assert operation.calls == 3
        assert provider.value(KEY, ConfigType.STRING).value == "s3cret"

    @pytest.mark.asyncio
    async def test_cancelled_waiter_does_not_affect_others(self, provider):
        """Cancelling one caller leaves the shared fetch running for the rest."""
        gate = asyncio.Event()
        operation = CountingOperation(gate=gate)
        provider.register(KEY, operation)

        cancelled = asyncio.create_task(provider.fetch_value(KEY, ConfigType.STRING))
        survivor = asyncio.create_task(provider.fetch_value(KEY, ConfigType.STRING))
        await asyncio.sleep(0)

        cancelled.cancel()
        with pytest.raises(asyncio.CancelledError):
            await cancelled
        gate.set()

        assert (await survivor).value == "s3cret"
        assert operation.calls == 1
        assert operation.cancelled == 0

    @pytest.mark.asyncio
    async def test_cancellation_has_no_side_effect(self, provider):
        """When every caller is cancelled, the fetch stops and nothing is cached."""
        gate = asyncio.Event()
        operation = CountingOperation(gate=gate)
        provider.register(KEY, operation)

        task = asyncio.create_task(provider.fetch_value(KEY, ConfigType.STRING))
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        for _ in range(3):
            await asyncio.sleep(0)

        assert operation.cancelled == 1
        assert provider.value(KEY, ConfigType.STRING) is None

        # A later fetch starts a fresh call
        gate.set()
        assert (await provider.fetch_value(KEY, ConfigType.STRING)).value == "s3cret"
        assert operation.calls == 2

    @pytest.mark.asyncio
    async def test_failure_is_shared_and_not_cached(self, provider):
        """Every waiter sees the failure of the shared call."""
        provider.register(KEY, CountingOperation(b"\xff"))

        results = await asyncio.gather(
            provider.fetch_value(KEY, ConfigType.STRING),
            provider.fetch_value(KEY, ConfigType.STRING),
            return_exceptions=True,
        )
        assert all(isinstance(result, DecodeFailure) for result in results)
        assert provider.value(KEY, ConfigType.STRING) is None


class TestFetchHelpers:
    """Test the engine-specific fetch operation builders."""

    @pytest.mark.asyncio
    async def test_key_value_secret(self, provider, mock_hvac):
        mock_hvac.secrets.kv.v2.read_secret_version.return_value = {
            "request_id": "req-1",
            "data": {"data": {"api_key": "abc"}, "metadata": {"version": 2}},
        }
        provider.register(KEY, provider.key_value_secret("secret", "service/api", version=2))

        value = await provider.resolve(KEY, ConfigType.STRING)

        assert json.loads(value.value) == {"api_key": "abc"}
        mock_hvac.secrets.kv.v2.read_secret_version.assert_called_once_with(
            path="service/api", version=2, mount_point="secret", raise_on_deleted_version=True
        )

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "role,method",
        [
            (DatabaseRole.static("app"), "get_static_credentials"),
            (DatabaseRole.dynamic("readonly"), "generate_credentials"),
        ],
    )
    async def test_database_credentials_are_normalized(self, provider, mock_hvac, role, method):
        """Static and dynamic role responses produce the same payload shape."""
        getattr(mock_hvac.secrets.database, method).return_value = {
            "data": {"username": "v-app-123", "password": "pw", "ttl": 3600, "last_vault_rotation": "x"}
        }
        provider.register(KEY, provider.database_credentials("database", role))

        value = await provider.resolve(KEY, ConfigType.STRING)

        assert DatabaseCredentials.from_config_string(value.value) == DatabaseCredentials(
            username="v-app-123", password="pw"
        )
        assert json.loads(value.value) == {"username": "v-app-123", "password": "pw"}
        getattr(mock_hvac.secrets.database, method).assert_called_once_with(
            name=role.name, mount_point="database"
        )

    @pytest.mark.parametrize("mount", ["", "/database", "Database", "sys/db", "a//b"])
    def test_database_credentials_invalid_mount(self, provider, mount):
        with pytest.raises(InvalidMountPath):
            provider.database_credentials(mount, DatabaseRole.static("app"))

    @pytest.mark.asyncio
    async def test_authentication_gate(self, anonymous_client, mock_hvac):
        """Fetching before login fails and never reaches Vault."""
        provider = VaultSecretProvider(anonymous_client)
        provider.register(KEY, provider.key_value_secret("secret", "app"))
        provider.register(
            ConfigKey(["db"]), provider.database_credentials("database", DatabaseRole.dynamic("ro"))
        )

        with pytest.raises(AuthenticationRequired):
            await provider.resolve(KEY, ConfigType.STRING)
        with pytest.raises(AuthenticationRequired):
            await provider.fetch_value(ConfigKey(["db"]), ConfigType.STRING)

        mock_hvac.constructor.assert_not_called()
        assert provider.value(KEY, ConfigType.STRING) is None

    @pytest.mark.asyncio
    async def test_token_is_sent(self, vault_client, mock_hvac):
        """Every call carries the current session token."""
        mock_hvac.secrets.kv.v2.read_secret_version.return_value = {"data": {"data": {}}}
        provider = VaultSecretProvider(vault_client)
        provider.register(KEY, provider.key_value_secret("secret", "app"))

        await provider.fetch_value(KEY, ConfigType.STRING)

        mock_hvac.constructor.assert_called_once_with(
            url="https://vault.example.com",
            token="test-token",
            namespace="tenant-a",
            timeout=30.0,
            verify=True,
        )

    def test_client_is_shared(self, vault_client):
        assert isinstance(VaultSecretProvider(vault_client).client, VaultClient)
