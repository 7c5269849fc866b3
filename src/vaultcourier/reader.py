"""
Resource reader for textual secret addresses.

Reads secrets referenced by address rather than by a registered key, e.g.
from a configuration file:

```yaml
database:
  password: "vault:secret/app/database#password"
  credentials: "vault:database/static-creds/app"
```

Every read is a fresh remote call; nothing is cached on this path.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit

import yaml

from .client import VaultClient
from .errors import AddressStructurallyInvalid, UnsupportedAddress
from .provider import fetch_operation_for
from .strategies import (
    AddressStrategy,
    DatabaseRoleStrategy,
    KeyValueAddressStrategy,
    KeyValueDataPathStrategy,
    parse_address,
)

logger = logging.getLogger(__name__)


def default_strategies(client: VaultClient) -> list[AddressStrategy]:
    """Strategies for the mounts named in the client configuration.

    Database role addresses are tried first, then keys under the configured
    key/value mount (``secret/team/app``, or its API path ``secret/data/team/app``),
    then KV v2 API paths under any other mount (``team-kv/data/app``).
    """
    return [
        DatabaseRoleStrategy(client.config.database_mount),
        KeyValueAddressStrategy(client.config.kv_mount, api_paths=True),
        KeyValueDataPathStrategy(),
    ]


class VaultResourceReader:
    """Reads secrets by textual address.

    An address may end with a ``#field`` fragment to select a single field of
    the secret (``secret/app#password``); the field value is returned as
    UTF-8 text, or as JSON when it is not a string.
    """

    def __init__(
        self,
        client: VaultClient,
        strategies: Sequence[AddressStrategy] | None = None,
        scheme: str = "vault",
    ):
        self.client = client
        self.strategies = list(strategies) if strategies is not None else default_strategies(client)
        self.scheme = scheme

    async def read(self, address: str) -> bytes:
        """Read the secret at ``address``.

        Raises:
            UnsupportedAddress: If no strategy recognises the address.
            AddressStructurallyInvalid: If a strategy recognises but cannot parse it,
                or the selected field does not exist.
            RemoteError: Passed through from the client.
        """
        parsed = parse_address(address, self.strategies)
        if parsed is None:
            raise UnsupportedAddress(address)

        logger.debug(f"Reading {parsed.shape.value} secret '{parsed.name}' from mount '{parsed.mount}'")
        payload = await fetch_operation_for(self.client, parsed)()

        field = urlsplit(address).fragment
        if field:
            return _select_field(address, payload, field)
        return payload

    def is_reference(self, value: Any) -> bool:
        return isinstance(value, str) and value.startswith(f"{self.scheme}:")

    async def resolve_references(self, config: Any) -> Any:
        """Recursively replace secret references in a configuration structure.

        Strings of the form ``<scheme>:<address>`` are replaced by the secret
        text; everything else is returned unchanged. Failures propagate.
        """
        if isinstance(config, dict):
            return {key: await self.resolve_references(value) for key, value in config.items()}
        if isinstance(config, list):
            return [await self.resolve_references(item) for item in config]
        if self.is_reference(config):
            address = config[len(self.scheme) + 1 :]
            payload = await self.read(address)
            logger.debug(f"Resolved reference '{config}'")
            return payload.decode("utf-8")
        return config

    async def load_config_file(self, path: Path) -> Any:
        """Load a YAML file and resolve the secret references it contains.

        Raises:
            FileNotFoundError: If the file doesn't exist
            ValueError: If the file is not valid YAML
        """
        if not path.exists():
            raise FileNotFoundError(f"Config file not found at {path}")

        try:
            with open(path) as f:
                raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Failed to parse YAML config file {path}: {e}") from e

        logger.info(f"Resolving secret references in {path}")
        return await self.resolve_references(raw_config)

    def __repr__(self) -> str:
        return f"VaultResourceReader[{self.client.address}]"


def _select_field(address: str, payload: bytes, field: str) -> bytes:
    try:
        data = json.loads(payload)
    except ValueError as e:
        raise AddressStructurallyInvalid(address, "secret is not a JSON object") from e
    if not isinstance(data, dict) or field not in data:
        raise AddressStructurallyInvalid(address, f"secret has no field '{field}'")

    value = data[field]
    if isinstance(value, str):
        return value.encode("utf-8")
    return json.dumps(value).encode("utf-8")
