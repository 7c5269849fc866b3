"""Exception hierarchy for vaultcourier.

Remote failures are classified once, by the client, into the ``Remote*``
errors below and then propagate unchanged through the cache and the
providers. Decode and address errors carry the key, type or address that
caused them.

An absent remote source is not an error: lookups return ``None``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .values import ConfigType


class VaultCourierError(Exception):
    """Base class for every error raised by vaultcourier."""


class AuthenticationRequired(VaultCourierError):
    """Raised when a remote call is attempted before a session token is set."""

    def __init__(self, message: str = "Vault client has not authenticated"):
        super().__init__(message)


class RemoteError(VaultCourierError):
    """A failure reported by the remote secret store.

    Attributes:
        errors: Error details returned by the server, if any.
        status_code: HTTP-style status code of the classified failure.
    """

    status_code: int | None = None

    def __init__(self, message: str, errors: list[str] | None = None):
        self.errors = list(errors or [])
        details = f": {', '.join(self.errors)}" if self.errors else ""
        super().__init__(f"{message}{details}")


class RemoteUnauthorized(RemoteError):
    """The session token is missing, expired or lacks permission."""

    status_code = 403


class RemoteNotFound(RemoteError):
    """The path does not exist, or the token may not see it."""

    status_code = 404


class RemoteBadRequest(RemoteError):
    """The request was rejected as invalid."""

    status_code = 400


class RemoteServerError(RemoteError):
    """Vault failed internally, is sealed, or answered unexpectedly."""

    status_code = 500


class DecodeFailure(VaultCourierError, ValueError):
    """A payload could not be converted to the requested config type."""

    def __init__(self, key: str, config_type: ConfigType, reason: str | None = None):
        self.key = key
        self.config_type = config_type
        self.reason = reason
        message = f"Config value for key '{key}' failed to convert to type {config_type.value}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class AddressStructurallyInvalid(VaultCourierError, ValueError):
    """An address matched a strategy's mount prefix but is malformed."""

    def __init__(self, address: str, reason: str):
        self.address = address
        self.reason = reason
        super().__init__(f"Invalid secret address '{address}': {reason}")


class UnsupportedAddress(VaultCourierError, ValueError):
    """No parsing strategy recognised the address."""

    def __init__(self, address: str):
        self.address = address
        super().__init__(f"Reading unsupported vault engine or path: {address}")


class InvalidMountPath(VaultCourierError, ValueError):
    """A mount path is not a valid Vault mount path."""

    def __init__(self, mount: str):
        self.mount = mount
        super().__init__(f"'{mount}' is not a valid Vault mount path")


class UnsupportedSecretEngine(VaultCourierError, ValueError):
    """A key context names a secret engine this package cannot read."""

    def __init__(self, engine: str):
        self.engine = engine
        super().__init__(f"Unsupported secret engine '{engine}'")
