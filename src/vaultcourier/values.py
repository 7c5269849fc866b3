"""Typed configuration values and payload decoding."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Annotated, Any

from pydantic import Field, TypeAdapter, ValidationError

from .errors import DecodeFailure
from .keys import ConfigKey, ContextValue, encode_key


class ConfigType(str, Enum):
    """Value types a configuration lookup can ask for."""

    STRING = "string"
    INT = "int"
    DOUBLE = "double"
    BOOL = "bool"
    BYTES = "bytes"
    STRING_ARRAY = "string_array"
    INT_ARRAY = "int_array"
    DOUBLE_ARRAY = "double_array"
    BOOL_ARRAY = "bool_array"
    BYTE_CHUNK_ARRAY = "byte_chunk_array"


_Byte = Annotated[int, Field(ge=0, le=255)]

# Structured types are decoded from JSON in strict mode, so "1" is not an int
# and true is not a number.
_ADAPTERS: dict[ConfigType, TypeAdapter[Any]] = {
    ConfigType.INT: TypeAdapter(int),
    ConfigType.DOUBLE: TypeAdapter(float),
    ConfigType.BOOL: TypeAdapter(bool),
    ConfigType.STRING_ARRAY: TypeAdapter(list[str]),
    ConfigType.INT_ARRAY: TypeAdapter(list[int]),
    ConfigType.DOUBLE_ARRAY: TypeAdapter(list[float]),
    ConfigType.BOOL_ARRAY: TypeAdapter(list[bool]),
    ConfigType.BYTE_CHUNK_ARRAY: TypeAdapter(list[list[_Byte]]),
}


@dataclass(frozen=True)
class ConfigValue:
    """An immutable cached value.

    Attributes:
        value: The decoded Python value (``str``, ``int``, ``float``, ``bool``,
            ``bytes`` or a list of those).
        config_type: The type the value was decoded as.
        is_secret: Whether the value must be redacted when displayed.
        encoded_key: Encoded form of the key the value was stored under.
        context: Context of the key the value was stored under.
    """

    value: Any = field(repr=False)
    config_type: ConfigType
    is_secret: bool = True
    encoded_key: str | None = None
    context: tuple[tuple[str, ContextValue], ...] = ()

    def with_provenance(self, key: ConfigKey) -> ConfigValue:
        return ConfigValue(
            value=self.value,
            config_type=self.config_type,
            is_secret=self.is_secret,
            encoded_key=encode_key(key),
            context=key.context_items,
        )

    def __str__(self) -> str:
        if self.is_secret:
            return "<REDACTED>"
        return str(self.value)


def decode_payload(payload: bytes, config_type: ConfigType, key: ConfigKey | str) -> Any:
    """Decode a raw payload into a Python value of ``config_type``.

    Strings are UTF-8 decoded and bytes are passed through. Every other type
    is decoded from JSON.

    Raises:
        DecodeFailure: If the payload cannot be converted.
    """
    name = key if isinstance(key, str) else encode_key(key)

    if config_type is ConfigType.BYTES:
        return bytes(payload)

    if config_type is ConfigType.STRING:
        try:
            return bytes(payload).decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeFailure(name, config_type, "payload is not valid UTF-8") from e

    adapter = _ADAPTERS[config_type]
    try:
        value = adapter.validate_json(payload, strict=True)
    except ValidationError as e:
        raise DecodeFailure(name, config_type, f"{e.error_count()} validation error(s)") from e

    if config_type is ConfigType.BYTE_CHUNK_ARRAY:
        return [bytes(chunk) for chunk in value]
    return value
