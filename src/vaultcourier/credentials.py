"""Database credentials normalized from static and dynamic role responses."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import Field, ValidationError

from .models import VaultCourierBaseModel
from .strategies.base import SecretShape


class DatabaseCredentials(VaultCourierBaseModel):
    """Username/password pair issued for a database role.

    The password is kept out of ``repr`` and ``str`` so credentials can be
    logged safely::

        >>> str(DatabaseCredentials(username="alice", password="s3cret"))
        'username=alice, password=<REDACTED>'
    """

    username: str
    password: str = Field(repr=False)

    @classmethod
    def from_config_string(cls, value: str | bytes) -> DatabaseCredentials | None:
        """Parse the JSON payload produced by a credentials fetch.

        Returns ``None`` if the value is not a credentials object.
        """
        try:
            return cls.model_validate_json(value)
        except ValidationError:
            return None

    def to_payload(self) -> bytes:
        return self.model_dump_json().encode("utf-8")

    def __str__(self) -> str:
        return f"username={self.username}, password=<REDACTED>"


@dataclass(frozen=True)
class DatabaseRole:
    """A database secret engine role, either static or dynamic."""

    name: str
    shape: SecretShape

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Database role name must not be empty")
        if self.shape not in (SecretShape.STATIC_ROLE, SecretShape.DYNAMIC_ROLE):
            raise ValueError(f"'{self.shape.value}' is not a database role shape")

    @classmethod
    def static(cls, name: str) -> DatabaseRole:
        return cls(name, SecretShape.STATIC_ROLE)

    @classmethod
    def dynamic(cls, name: str) -> DatabaseRole:
        return cls(name, SecretShape.DYNAMIC_ROLE)

    @property
    def is_static(self) -> bool:
        return self.shape is SecretShape.STATIC_ROLE
