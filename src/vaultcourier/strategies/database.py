"""Database credential address strategy."""

from ..errors import AddressStructurallyInvalid
from ..paths import strip_leading_slash
from .base import AddressStrategy, ParsedAddress, SecretShape, split_address, strip_mount

STATIC_CREDS = "/static-creds/"
DYNAMIC_CREDS = "/creds/"


class DatabaseRoleStrategy(AddressStrategy):
    """Strategy for database role credentials under a configured mount.

    ``database/static-creds/alice`` is the static role ``alice`` and
    ``database/creds/bob`` is the dynamic role ``bob``.
    """

    def __init__(self, mount: str):
        self.mount = strip_leading_slash(mount).rstrip("/")

    def parse(self, address: str) -> ParsedAddress | None:
        path, _ = split_address(address)
        remainder = strip_mount(path, self.mount)
        if remainder is None:
            return None

        static_count = remainder.count(STATIC_CREDS)
        dynamic_count = remainder.count(DYNAMIC_CREDS)
        if static_count + dynamic_count != 1:
            raise AddressStructurallyInvalid(
                address, f"unsupported database endpoint under mount '{self.mount}'"
            )

        if static_count:
            separator, shape = STATIC_CREDS, SecretShape.STATIC_ROLE
        else:
            separator, shape = DYNAMIC_CREDS, SecretShape.DYNAMIC_ROLE

        if not remainder.startswith(separator):
            raise AddressStructurallyInvalid(
                address, f"unsupported database endpoint under mount '{self.mount}'"
            )

        role = remainder[len(separator):]
        if not role or "/" in role:
            raise AddressStructurallyInvalid(address, "invalid database credential role name")

        return ParsedAddress(mount=self.mount, name=role, shape=shape)

    def __repr__(self) -> str:
        return f"DatabaseRoleStrategy(mount={self.mount!r})"
