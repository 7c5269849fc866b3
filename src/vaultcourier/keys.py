"""Hierarchical configuration keys.

A :class:`ConfigKey` is a sequence of path components plus a context of
scalar attributes. Both parts identify a cache slot: the same components
with a different ``version`` context are two distinct keys.

Keys are flattened to a dot-separated string for storage and logging.
Components containing the separator are escaped, so two different
component sequences never encode to the same string::

    >>> encode_key(ConfigKey(["database", "postgres"]))
    'database.postgres'
    >>> encode_key(ConfigKey(["db.primary", "password"]))
    'db\\\\.primary.password'
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

SEPARATOR = "."
ESCAPE = "\\"

ContextValue = str | int | float | bool


@dataclass(frozen=True, init=False)
class ConfigKey:
    """An absolute configuration key with an optional context.

    Attributes:
        components: Ordered path components, e.g. ``("database", "credentials")``.
        context: Scalar attributes that further qualify the key, e.g. ``{"version": 2}``.
    """

    components: tuple[str, ...]
    _context: tuple[tuple[str, ContextValue], ...] = field(repr=False, compare=False)
    # Compared and hashed instead of _context, so True, 1 and 1.0 stay distinct
    _typed_context: tuple[tuple[str, str, ContextValue], ...] = field(repr=False)

    def __init__(
        self,
        components: Iterable[str],
        context: Mapping[str, ContextValue] | None = None,
    ) -> None:
        parts = tuple(components)
        if not parts:
            raise ValueError("A config key needs at least one component")
        for part in parts:
            if not isinstance(part, str) or not part:
                raise ValueError(f"Invalid config key component: {part!r}")

        items = tuple(sorted((context or {}).items()))
        for name, value in items:
            if not isinstance(value, str | int | float | bool):
                raise ValueError(
                    f"Context value for '{name}' must be a scalar, got {type(value).__name__}"
                )

        object.__setattr__(self, "components", parts)
        object.__setattr__(self, "_context", items)
        object.__setattr__(
            self, "_typed_context", tuple((name, type(value).__name__, value) for name, value in items)
        )

    @property
    def context(self) -> dict[str, ContextValue]:
        return dict(self._context)

    @property
    def context_items(self) -> tuple[tuple[str, ContextValue], ...]:
        """Context as a sorted, hashable tuple of pairs."""
        return self._context

    @property
    def typed_context_items(self) -> tuple[tuple[str, str, ContextValue], ...]:
        """Context as ``(name, type name, value)`` triples; identifies the key with ``components``."""
        return self._typed_context

    @classmethod
    def parse(cls, encoded: str, context: Mapping[str, ContextValue] | None = None) -> ConfigKey:
        """Build a key from its encoded string form."""
        return cls(decode_key(encoded), context)

    def with_context(self, **context: Any) -> ConfigKey:
        """Return a copy of this key with extra context entries."""
        return ConfigKey(self.components, {**self.context, **context})

    def __str__(self) -> str:
        encoded = encode_key(self)
        if not self._context:
            return encoded
        context = ", ".join(f"{name}={value!r}" for name, value in self._context)
        return f"{encoded} [{context}]"


def _escape(component: str) -> str:
    return component.replace(ESCAPE, ESCAPE * 2).replace(SEPARATOR, ESCAPE + SEPARATOR)


def encode_key(key: ConfigKey) -> str:
    """Flatten the key components into a dot-separated string."""
    return SEPARATOR.join(_escape(component) for component in key.components)


def decode_key(encoded: str) -> list[str]:
    """Split an encoded key back into its components.

    Raises:
        ValueError: If the string ends in a dangling escape or has empty components.
    """
    components: list[str] = []
    current: list[str] = []
    chars = iter(encoded)
    for char in chars:
        if char == ESCAPE:
            escaped = next(chars, None)
            if escaped is None:
                raise ValueError(f"Dangling escape in encoded key: {encoded!r}")
            current.append(escaped)
        elif char == SEPARATOR:
            components.append("".join(current))
            current = []
        else:
            current.append(char)
    components.append("".join(current))

    if any(not component for component in components):
        raise ValueError(f"Empty component in encoded key: {encoded!r}")
    return components
