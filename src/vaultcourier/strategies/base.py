"""
Base types for secret address parsing strategies.

A strategy translates a textual secret address (``secret/app/config?version=2``,
``vault:/database/creds/readonly``) into the parameters a Vault call needs.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from urllib.parse import parse_qs, urlsplit

from ..errors import AddressStructurallyInvalid
from ..paths import strip_leading_slash

logger = logging.getLogger(__name__)


class SecretShape(str, Enum):
    """The kind of secret an address points to."""

    KEY_VALUE = "key_value"
    STATIC_ROLE = "static_role"
    DYNAMIC_ROLE = "dynamic_role"


@dataclass(frozen=True)
class ParsedAddress:
    """Engine-call parameters extracted from an address.

    Attributes:
        mount: Mount path of the secret engine, without leading slash.
        name: Secret key for key/value secrets, role name for credentials.
        shape: Which kind of secret ``name`` refers to.
        version: Requested key/value version; ``None`` means latest.
    """

    mount: str
    name: str
    shape: SecretShape
    version: int | None = None


class AddressStrategy(ABC):
    """Parse-or-no-match strategy for one secret shape.

    ``parse`` returns ``None`` when the address does not belong to this
    strategy, so several strategies can be tried in turn. It raises
    ``AddressStructurallyInvalid`` when the address does belong to it but is
    malformed; callers must propagate that error rather than try the next
    strategy.

    Custom shapes are supported by implementing ``parse``:

    ```python
    class TransitKeyStrategy(AddressStrategy):
        def parse(self, address: str) -> ParsedAddress | None:
            path, _ = split_address(address)
            if not path.startswith("transit/keys/"):
                return None
            ...
    ```
    """

    @abstractmethod
    def parse(self, address: str) -> ParsedAddress | None:
        """Parse ``address`` or return ``None`` if it is not this strategy's shape."""


def split_address(address: str) -> tuple[str, str]:
    """Return the relative path (no leading slash) and raw query of an address.

    Any scheme (``vault:``) or authority component is ignored.
    """
    parts = urlsplit(address)
    path = parts.path
    if parts.netloc:
        # "vault://secret/app" puts the first segment in the authority
        path = f"{parts.netloc}{path}"
    return strip_leading_slash(path), parts.query


def parse_version(address: str, query: str) -> int | None:
    """Extract the ``version=N`` query parameter, if present."""
    if not query:
        return None
    values = parse_qs(query, keep_blank_values=True).get("version")
    if not values:
        return None
    try:
        version = int(values[-1])
    except ValueError as e:
        raise AddressStructurallyInvalid(address, f"version '{values[-1]}' is not an integer") from e
    if version < 0:
        raise AddressStructurallyInvalid(address, "version must not be negative")
    return version


def strip_mount(path: str, mount: str) -> str | None:
    """Return what follows ``mount`` in ``path``, or ``None`` if the mount does not match.

    The mount must match whole path segments, so mount ``secret`` does not
    match ``secrets/app``. The returned remainder keeps its leading slash.
    """
    if not mount:
        return None
    if path == mount:
        return ""
    if path.startswith(f"{mount}/"):
        return path[len(mount):]
    return None


def parse_address(address: str, strategies: Iterable[AddressStrategy]) -> ParsedAddress | None:
    """Try each strategy in order and return the first match.

    Structural errors raised by a strategy propagate immediately.
    """
    for strategy in strategies:
        parsed = strategy.parse(address)
        if parsed is not None:
            logger.debug(f"Address '{address}' matched {type(strategy).__name__}")
            return parsed
    return None
