"""
Secret address parsing strategies.

Each strategy handles one secret shape. Strategies are tried in the order
the caller lists them; the first match wins.
"""

from .base import (
    AddressStrategy,
    ParsedAddress,
    SecretShape,
    parse_address,
    parse_version,
    split_address,
    strip_mount,
)
from .database import DatabaseRoleStrategy
from .keyvalue import KeyValueAddressStrategy, KeyValueDataPathStrategy

__all__ = [
    "AddressStrategy",
    "DatabaseRoleStrategy",
    "KeyValueAddressStrategy",
    "KeyValueDataPathStrategy",
    "ParsedAddress",
    "SecretShape",
    "parse_address",
    "parse_version",
    "split_address",
    "strip_mount",
]
