"""
Vault client.

The client is the only place that talks to Vault. It wraps the synchronous
hvac library: every call builds an hvac client carrying the current session
token and runs it in a worker thread, so callers can await many calls
concurrently. hvac exceptions are classified here into the ``Remote*``
errors and propagate unchanged from then on.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

import hvac
import hvac.exceptions
import requests
from opentelemetry.trace import SpanKind

from .auth import AuthMethod, auth_method_from_config
from .config import VaultClientConfigModel, load_client_config
from .credentials import DatabaseCredentials, DatabaseRole
from .errors import (
    RemoteBadRequest,
    RemoteError,
    RemoteNotFound,
    RemoteServerError,
    RemoteUnauthorized,
)
from .session import SessionState
from .telemetry import AttributeKeys, traced_operation

logger = logging.getLogger(__name__)

T = TypeVar("T")

_UNAUTHORIZED = (hvac.exceptions.Unauthorized, hvac.exceptions.Forbidden)
_BAD_REQUEST = (
    hvac.exceptions.InvalidRequest,
    hvac.exceptions.ParamValidationError,
    hvac.exceptions.UnsupportedOperation,
)


def classify_hvac_error(error: hvac.exceptions.VaultError) -> RemoteError:
    """Translate an hvac exception into the matching ``RemoteError``."""
    errors = error.errors if isinstance(error.errors, list) else []
    details = [str(item) for item in errors] or ([str(error)] if str(error) else [])

    if isinstance(error, _UNAUTHORIZED):
        return RemoteUnauthorized("Permission denied", details)
    if isinstance(error, hvac.exceptions.InvalidPath):
        return RemoteNotFound("Invalid path or permission denied", details)
    if isinstance(error, _BAD_REQUEST):
        return RemoteBadRequest("Vault returned a bad request", details)
    return RemoteServerError("Vault server error", details)


class VaultClient:
    """Async client for the Vault endpoints vaultcourier reads.

    Example:
        ```python
        client = VaultClient(VaultClientConfigModel(address="http://127.0.0.1:8200"))
        await client.login(AppRoleAuth(role_id, secret_id))
        payload = await client.read_key_value_secret_data("secret", "app/config")
        ```
    """

    def __init__(
        self,
        config: VaultClientConfigModel | None = None,
        session: SessionState | None = None,
    ):
        self.config = config or VaultClientConfigModel()
        self.session = session or SessionState()

    @classmethod
    def from_config_file(cls, config_path: Path | None = None) -> VaultClient:
        return cls(load_client_config(config_path))

    @property
    def address(self) -> str:
        return self.config.address

    @property
    def namespace(self) -> str | None:
        return self.config.namespace

    async def login(self, method: AuthMethod) -> None:
        """Authenticate with ``method`` and store the resulting session token."""
        token = await method.authenticate(self)
        self.session.set_token(token)
        logger.info(f"Vault login authorized with {method.name} method")

    async def login_from_config(self) -> None:
        """Log in with the auth method named in the client configuration."""
        await self.login(auth_method_from_config(self.config.auth))

    def session_token(self) -> str:
        """Return the current session token.

        Raises:
            AuthenticationRequired: If the client is not logged in.
        """
        return self.session.current_token()

    def reset_session(self) -> None:
        self.session.reset()

    def _make_hvac_client(self, token: str | None) -> hvac.Client:
        return hvac.Client(
            url=self.config.address,
            token=token,
            namespace=self.config.namespace,
            timeout=self.config.timeout,
            verify=self.config.verify,
        )

    async def call(self, func: Callable[[hvac.Client], T], *, token: str | None) -> T:
        """Run ``func`` against a fresh hvac client in a worker thread, then close its session.

        Raises:
            RemoteError: The classified failure reported by Vault.
        """
        hvac_client = self._make_hvac_client(token)
        try:
            return await asyncio.to_thread(func, hvac_client)
        except hvac.exceptions.VaultError as e:
            remote_error = classify_hvac_error(e)
            logger.debug(f"Operation failed with Vault server error: {remote_error}")
            raise remote_error from e
        except requests.exceptions.RequestException as e:
            raise RemoteServerError("Vault is unreachable", [str(e)]) from e
        finally:
            hvac_client.adapter.close()

    def unexpected_response(self, message: str) -> RemoteServerError:
        return RemoteServerError("Received unexpected response", [message])

    async def read_key_value_secret(
        self, mount: str, key: str, version: int | None = None
    ) -> dict[str, Any]:
        """Read the data of a key/value version 2 secret.

        Args:
            mount: Mount path of the key/value engine
            key: Path of the secret relative to the mount
            version: Version to read; ``None`` reads the latest

        Raises:
            AuthenticationRequired: If the client is not logged in.
            RemoteError: If Vault rejects the request.
        """
        token = self.session.current_token()
        mount = mount.strip("/")

        def read(hvac_client: hvac.Client) -> Any:
            return hvac_client.secrets.kv.v2.read_secret_version(
                path=key,
                version=version,
                mount_point=mount,
                raise_on_deleted_version=True,
            )

        with traced_operation(
            "vault.kv.read",
            {
                AttributeKeys.VAULT_MOUNT: mount,
                AttributeKeys.VAULT_NAMESPACE: self.namespace,
            },
            kind=SpanKind.CLIENT,
        ) as span:
            response = await self.call(read, token=token)
            span.set_attribute(AttributeKeys.VAULT_REQUEST_ID, response.get("request_id"))

        data = (response.get("data") or {}).get("data")
        if not isinstance(data, dict):
            raise self.unexpected_response(f"key/value secret '{key}' has no data")
        logger.debug(f"Read key/value secret '{key}' from mount '{mount}'")
        return data

    async def read_key_value_secret_data(
        self, mount: str, key: str, version: int | None = None
    ) -> bytes:
        """Read a key/value secret and return its data encoded as JSON."""
        data = await self.read_key_value_secret(mount, key, version)
        return json.dumps(data).encode("utf-8")

    async def database_credentials(self, mount: str, role: DatabaseRole) -> DatabaseCredentials:
        """Read credentials for a static role or generate them for a dynamic role.

        Both role kinds are normalized to :class:`DatabaseCredentials`.

        Raises:
            AuthenticationRequired: If the client is not logged in.
            RemoteError: If Vault rejects the request.
        """
        token = self.session.current_token()
        mount = mount.strip("/")

        def read(hvac_client: hvac.Client) -> Any:
            if role.is_static:
                return hvac_client.secrets.database.get_static_credentials(
                    name=role.name, mount_point=mount
                )
            return hvac_client.secrets.database.generate_credentials(
                name=role.name, mount_point=mount
            )

        with traced_operation(
            "vault.database.credentials",
            {
                AttributeKeys.VAULT_MOUNT: mount,
                AttributeKeys.VAULT_NAMESPACE: self.namespace,
                AttributeKeys.VAULT_DATABASE_ROLE: role.name,
            },
            kind=SpanKind.CLIENT,
        ) as span:
            response = await self.call(read, token=token)
            span.set_attribute(AttributeKeys.VAULT_REQUEST_ID, response.get("request_id"))

        data = response.get("data") or {}
        username, password = data.get("username"), data.get("password")
        if not username or password is None:
            raise self.unexpected_response(f"no credentials returned for role '{role.name}'")
        logger.debug(f"Read {role.shape.value} credentials for '{role.name}' from mount '{mount}'")
        return DatabaseCredentials(username=str(username), password=str(password))

    def __repr__(self) -> str:
        return f"VaultClient[{self.address}]"
