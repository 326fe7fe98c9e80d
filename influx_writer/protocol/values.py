"""
Line Protocol Field Values

Field values in line protocol come in four kinds, each with one canonical
text encoding:

    Integer:  3i
    Float:    2.5, 20, 1e+20
    Boolean:  true, false
    String:   "he said \\"hi\\""
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

from influx_writer.errors import ValidationError


class FieldKind(str, Enum):
    """Supported field value kinds"""
    STRING = "string"
    INTEGER = "integer"
    FLOAT = "float"
    BOOLEAN = "boolean"


@dataclass(frozen=True)
class FieldValue:
    """A field value tagged with its line protocol kind"""

    kind: FieldKind
    value: Union[str, int, float, bool]

    @classmethod
    def string(cls, value: str) -> "FieldValue":
        if not isinstance(value, str):
            raise ValidationError(f"String field value must be str, got {type(value).__name__}")
        return cls(FieldKind.STRING, value)

    @classmethod
    def integer(cls, value: int) -> "FieldValue":
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError(f"Integer field value must be int, got {type(value).__name__}")
        return cls(FieldKind.INTEGER, value)

    @classmethod
    def floating(cls, value: Union[int, float]) -> "FieldValue":
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValidationError(f"Float field value must be a number, got {type(value).__name__}")
        return cls(FieldKind.FLOAT, float(value))

    @classmethod
    def boolean(cls, value: bool) -> "FieldValue":
        if not isinstance(value, bool):
            raise ValidationError(f"Boolean field value must be bool, got {type(value).__name__}")
        return cls(FieldKind.BOOLEAN, value)

    @classmethod
    def of(cls, value: Any) -> "FieldValue":
        """
        Classify a plain Python value

        bool is checked before int since bool is an int subclass.

        Raises:
            ValidationError: value is not a str, int, float or bool
        """
        if isinstance(value, FieldValue):
            return value
        if isinstance(value, bool):
            return cls(FieldKind.BOOLEAN, value)
        if isinstance(value, int):
            return cls(FieldKind.INTEGER, value)
        if isinstance(value, float):
            return cls(FieldKind.FLOAT, value)
        if isinstance(value, str):
            return cls(FieldKind.STRING, value)
        raise ValidationError(f"Unsupported field value type: {type(value).__name__}")

    def encode(self) -> str:
        return encode_field_value(self)


def _encode_float(value: float) -> str:
    if math.isnan(value) or math.isinf(value):
        raise ValidationError(f"Float field value cannot be represented in line protocol: {value}")

    # repr() is the shortest string that round-trips; integral floats drop ".0"
    text = repr(value)
    if text.endswith('.0'):
        text = text[:-2]
    return text


def escape_string_value(value: str) -> str:
    """Escape backslashes and double quotes inside a string field value"""
    return value.replace('\\', '\\\\').replace('"', '\\"')


def encode_field_value(value: Any) -> str:
    """
    Encode a field value as line protocol text

    Args:
        value: FieldValue or plain str/int/float/bool

    Returns:
        Text fragment for the right-hand side of key=value
    """
    field_value = FieldValue.of(value)
    kind = field_value.kind

    if kind is FieldKind.INTEGER:
        return f"{field_value.value}i"
    if kind is FieldKind.FLOAT:
        return _encode_float(field_value.value)
    if kind is FieldKind.BOOLEAN:
        return 'true' if field_value.value else 'false'
    return f'"{escape_string_value(field_value.value)}"'
