"""Pydantic models for the Vault client configuration.

The configuration is normally loaded from a ``config.yaml`` file:

```yaml
vault:
  address: "https://vault.example.com:8200"
  namespace: "tenant-a"
  kv_mount: "secret"
  database_mount: "database"
  auth:
    method: approle
    role_id_env: "VAULT_ROLE_ID"
    secret_id_env: "VAULT_SECRET_ID"
```
"""

from typing import Literal

from pydantic import Field, field_validator

from ..models import VaultCourierBaseModel
from ..paths import is_valid_mount_path, is_valid_namespace


class AuthConfigModel(VaultCourierBaseModel):
    """How the client obtains its session token.

    Secrets are never stored in the file: the model only names the
    environment variables holding them.

    Attributes:
        method: ``token`` or ``approle``
        token_env: Environment variable containing the Vault token
        role_id_env: Environment variable containing the AppRole role ID
        secret_id_env: Environment variable containing the AppRole secret ID
        mount: Mount path of the AppRole auth method
    """

    method: Literal["token", "approle"] = "token"
    token_env: str = "VAULT_TOKEN"
    role_id_env: str = "VAULT_ROLE_ID"
    secret_id_env: str = "VAULT_SECRET_ID"
    mount: str = "approle"


class VaultClientConfigModel(VaultCourierBaseModel):
    """Configuration for a :class:`~vaultcourier.client.VaultClient`.

    Attributes:
        address: Vault server address, e.g. ``https://127.0.0.1:8200``
        namespace: Optional Vault Enterprise / OpenBao namespace
        timeout: Request timeout in seconds
        verify: TLS verification flag, or a path to a CA bundle
        kv_mount: Default mount of the key/value version 2 engine
        database_mount: Default mount of the database engine
        auth: Authentication settings

    Example:
        >>> config = VaultClientConfigModel(address="http://127.0.0.1:8200")
        >>> config.kv_mount
        'secret'
    """

    address: str = "http://127.0.0.1:8200"
    namespace: str | None = None
    timeout: float = Field(default=30.0, gt=0)
    verify: bool | str = True
    kv_mount: str = "secret"
    database_mount: str = "database"
    auth: AuthConfigModel = Field(default_factory=AuthConfigModel)

    @field_validator("address")
    @classmethod
    def _check_address(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError(f"Vault address must be an http(s) URL, got '{value}'")
        return value.rstrip("/")

    @field_validator("namespace")
    @classmethod
    def _check_namespace(cls, value: str | None) -> str | None:
        if value is not None and not is_valid_namespace(value):
            raise ValueError(f"'{value}' is not a valid Vault namespace")
        return value

    @field_validator("kv_mount", "database_mount")
    @classmethod
    def _check_mount(cls, value: str) -> str:
        if not is_valid_mount_path(value):
            raise ValueError(f"'{value}' is not a valid Vault mount path")
        return value.rstrip("/")
