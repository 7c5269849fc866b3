"""
Key/value secret address strategies.

``KeyValueAddressStrategy`` reads addresses prefixed with a known mount
(``secret/app/config?version=2``). ``KeyValueDataPathStrategy`` reads full
KV v2 API paths (``secret/data/app/config``) without knowing the mount.
"""

from ..errors import AddressStructurallyInvalid
from ..paths import strip_leading_slash
from .base import (
    AddressStrategy,
    ParsedAddress,
    SecretShape,
    parse_version,
    split_address,
    strip_mount,
)


class KeyValueAddressStrategy(AddressStrategy):
    """Strategy for key/value secrets under a configured mount.

    With ``api_paths`` enabled, a key starting with ``data/`` is read as the
    KV v2 API path of the key after it, so ``secret/data/app`` names the key
    ``app``. A ``data`` element deeper in the key is part of the key.
    """

    API_PREFIX = "data/"

    def __init__(self, mount: str, api_paths: bool = False):
        self.mount = strip_leading_slash(mount).rstrip("/")
        self.api_paths = api_paths

    def parse(self, address: str) -> ParsedAddress | None:
        path, query = split_address(address)
        remainder = strip_mount(path, self.mount)
        if remainder is None:
            return None

        key = remainder.lstrip("/")
        if self.api_paths and key.startswith(self.API_PREFIX):
            key = key[len(self.API_PREFIX):]
        key = key.strip("/")
        if not key:
            raise AddressStructurallyInvalid(address, f"missing secret key after mount '{self.mount}'")

        return ParsedAddress(
            mount=self.mount,
            name=key,
            shape=SecretShape.KEY_VALUE,
            version=parse_version(address, query),
        )

    def __repr__(self) -> str:
        return f"KeyValueAddressStrategy(mount={self.mount!r}, api_paths={self.api_paths!r})"


class KeyValueDataPathStrategy(AddressStrategy):
    """Strategy splitting a KV v2 API path on its ``/data/`` element."""

    DATA_ELEMENT = "/data/"

    def parse(self, address: str) -> ParsedAddress | None:
        path, query = split_address(address)
        mount, separator, key = path.partition(self.DATA_ELEMENT)
        if not separator or not mount:
            return None

        key = key.strip("/")
        if not key:
            raise AddressStructurallyInvalid(address, "missing secret key after '/data/'")

        return ParsedAddress(
            mount=mount,
            name=key,
            shape=SecretShape.KEY_VALUE,
            version=parse_version(address, query),
        )

    def __repr__(self) -> str:
        return "KeyValueDataPathStrategy()"
