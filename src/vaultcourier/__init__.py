"""vaultcourier - typed, cached access to HashiCorp Vault secrets.

vaultcourier resolves hierarchical configuration keys into secrets fetched on
demand from Vault, caches them in memory, and hands them out by type.

## Quick Start

```python
from vaultcourier import (
    ConfigKey,
    ConfigType,
    DatabaseRole,
    VaultClient,
    VaultSecretProvider,
)

client = VaultClient.from_config_file()
await client.login_from_config()

provider = VaultSecretProvider(client)
provider.register(
    ConfigKey(["database", "credentials"]),
    provider.database_credentials("database", DatabaseRole.static("app")),
)
provider.register(
    ConfigKey(["service", "api_key"]),
    provider.key_value_secret("secret", "service/api_key"),
)

credentials = await provider.resolve(ConfigKey(["database", "credentials"]), ConfigType.STRING)
```

Secrets can also be referenced by address from configuration files, see
:class:`VaultResourceReader`.
"""

from .auth import AppRoleAuth, AuthMethod, TokenAuth, auth_method_from_config
from .cache import CacheSnapshot, SecretCache
from .client import VaultClient, classify_hvac_error
from .config import VaultClientConfigModel, load_client_config
from .credentials import DatabaseCredentials, DatabaseRole
from .errors import (
    AddressStructurallyInvalid,
    AuthenticationRequired,
    DecodeFailure,
    InvalidMountPath,
    RemoteBadRequest,
    RemoteError,
    RemoteNotFound,
    RemoteServerError,
    RemoteUnauthorized,
    UnsupportedAddress,
    UnsupportedSecretEngine,
    VaultCourierError,
)
from .keys import ConfigKey, decode_key, encode_key
from .provider import (
    SecretEngine,
    VaultContextProvider,
    VaultSecretProvider,
    database_credentials,
    key_value_secret,
    make_context,
)
from .reader import VaultResourceReader
from .registry import FetchOperation, FetchRegistry
from .session import SessionState
from .strategies import (
    AddressStrategy,
    DatabaseRoleStrategy,
    KeyValueAddressStrategy,
    KeyValueDataPathStrategy,
    ParsedAddress,
    SecretShape,
    parse_address,
)
from .values import ConfigType, ConfigValue, decode_payload
from .version import PACKAGE_VERSION as __version__

__all__ = [
    # Client
    "VaultClient",
    "VaultClientConfigModel",
    "load_client_config",
    "classify_hvac_error",
    "SessionState",
    # Auth
    "AuthMethod",
    "TokenAuth",
    "AppRoleAuth",
    "auth_method_from_config",
    # Keys and values
    "ConfigKey",
    "ConfigType",
    "ConfigValue",
    "encode_key",
    "decode_key",
    "decode_payload",
    # Resolution
    "FetchOperation",
    "FetchRegistry",
    "SecretCache",
    "CacheSnapshot",
    "VaultSecretProvider",
    "VaultContextProvider",
    "SecretEngine",
    "make_context",
    "key_value_secret",
    "database_credentials",
    "DatabaseCredentials",
    "DatabaseRole",
    # Addresses
    "AddressStrategy",
    "ParsedAddress",
    "SecretShape",
    "KeyValueAddressStrategy",
    "KeyValueDataPathStrategy",
    "DatabaseRoleStrategy",
    "parse_address",
    "VaultResourceReader",
    # Errors
    "VaultCourierError",
    "AuthenticationRequired",
    "RemoteError",
    "RemoteUnauthorized",
    "RemoteNotFound",
    "RemoteBadRequest",
    "RemoteServerError",
    "DecodeFailure",
    "AddressStructurallyInvalid",
    "UnsupportedAddress",
    "InvalidMountPath",
    "UnsupportedSecretEngine",
    "__version__",
]
