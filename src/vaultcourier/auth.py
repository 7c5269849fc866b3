"""
Authentication methods for the Vault client.

Each method exchanges its own credentials for a session token. The client
stores the token in its :class:`~vaultcourier.session.SessionState`.
"""

from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from opentelemetry.trace import SpanKind

from .config.models import AuthConfigModel
from .telemetry import AttributeKeys, traced_operation

if TYPE_CHECKING:
    from .client import VaultClient

logger = logging.getLogger(__name__)


class AuthMethod(ABC):
    """A way of obtaining a Vault session token."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Short name of the method, used in logs and span attributes."""

    @abstractmethod
    async def authenticate(self, client: VaultClient) -> str:
        """Authenticate against Vault and return a session token."""


class TokenAuth(AuthMethod):
    """Use an existing token after checking it with ``lookup-self``."""

    def __init__(self, token: str):
        if not token:
            raise ValueError("Token has not been set for token authentication")
        self._token = token

    @property
    def name(self) -> str:
        return "token"

    async def authenticate(self, client: VaultClient) -> str:
        with traced_operation(
            "vault.auth.token.lookup_self",
            {AttributeKeys.VAULT_AUTH_METHOD: self.name},
            kind=SpanKind.CLIENT,
        ) as span:
            response = await client.call(
                lambda hvac_client: hvac_client.auth.token.lookup_self(), token=self._token
            )
            span.set_attribute(AttributeKeys.VAULT_REQUEST_ID, response.get("request_id"))
            display_name = (response.get("data") or {}).get("display_name")
            logger.debug(f"Token lookup succeeded for '{display_name}'")
        return self._token

    def __repr__(self) -> str:
        return "TokenAuth(token=<REDACTED>)"


class AppRoleAuth(AuthMethod):
    """Log in with an AppRole role ID and secret ID."""

    def __init__(self, role_id: str, secret_id: str, mount: str = "approle"):
        if not role_id or not secret_id:
            raise ValueError("AppRole credentials have not been set")
        self.role_id = role_id
        self._secret_id = secret_id
        self.mount = mount.strip("/")

    @property
    def name(self) -> str:
        return "approle"

    async def authenticate(self, client: VaultClient) -> str:
        def login(hvac_client: Any) -> Any:
            return hvac_client.auth.approle.login(
                role_id=self.role_id,
                secret_id=self._secret_id,
                use_token=False,
                mount_point=self.mount,
            )

        with traced_operation(
            "vault.auth.approle.login",
            {AttributeKeys.VAULT_AUTH_METHOD: self.name, AttributeKeys.VAULT_MOUNT: self.mount},
            kind=SpanKind.CLIENT,
        ) as span:
            response = await client.call(login, token=None)
            span.set_attribute(AttributeKeys.VAULT_REQUEST_ID, response.get("request_id"))
            span.add_event("login", {AttributeKeys.VAULT_AUTH_METHOD: self.name})

        token = (response.get("auth") or {}).get("client_token")
        if not token:
            raise client.unexpected_response("AppRole login returned no client token")
        return str(token)

    def __repr__(self) -> str:
        return f"AppRoleAuth(role_id={self.role_id!r}, mount={self.mount!r})"


def auth_method_from_config(config: AuthConfigModel, environ: Mapping[str, str] | None = None) -> AuthMethod:
    """Build the configured auth method, reading its secrets from the environment.

    Raises:
        ValueError: If a required environment variable is not set.
    """
    env = os.environ if environ is None else environ

    if config.method == "approle":
        role_id = env.get(config.role_id_env)
        secret_id = env.get(config.secret_id_env)
        if not role_id:
            raise ValueError(f"AppRole role ID not found in environment variable '{config.role_id_env}'")
        if not secret_id:
            raise ValueError(
                f"AppRole secret ID not found in environment variable '{config.secret_id_env}'"
            )
        return AppRoleAuth(role_id=role_id, secret_id=secret_id, mount=config.mount)

    token = env.get(config.token_env)
    if not token:
        raise ValueError(f"Vault token not found in environment variable '{config.token_env}'")
    return TokenAuth(token)
