"""
InfluxDB Line Protocol Encoder

Serializes measurement records into InfluxDB Line Protocol format.

Line Protocol Format:
    measurement[,tag_key=tag_value...] field_key=field_value[,field_key=field_value...] [timestamp]

Examples:
    cpu,host=server01,region=us-west usage_idle=90.5,usage_system=2.1 1609459200000000000
    temperature,sensor=bedroom temp=22.5
    http_requests,method=GET,status=200 count=1i
"""

import logging
from typing import Any, Iterable, List, Optional, Tuple

from influx_writer.errors import ValidationError
from influx_writer.protocol.values import encode_field_value

logger = logging.getLogger(__name__)

# Characters that must be backslash-escaped in each position
MEASUREMENT_ESCAPES = (',', ' ')
KEY_ESCAPES = (',', '=', ' ')


def _escape(text: str, reserved: Tuple[str, ...]) -> str:
    # Backslash first so the escapes we add are not doubled
    text = text.replace('\\', '\\\\')
    for char in reserved:
        text = text.replace(char, '\\' + char)
    return text


class LineProtocolEncoder:
    """Encoder for InfluxDB Line Protocol format"""

    def __init__(self, escape: bool = True):
        """
        Args:
            escape: Escape reserved characters in measurement names, tag keys,
                tag values and field keys. With escape=False they are written
                verbatim (string field values are always quote-escaped).
        """
        self.escape = escape

    def encode_measurement_name(self, name: str) -> str:
        self._check_name(name, "Measurement name")
        if not self.escape:
            if name.startswith('#'):
                raise ValidationError(f"Measurement name '{name}' would be read as a comment")
            return name
        # A leading # would turn the whole line into a comment
        escaped = _escape(name, MEASUREMENT_ESCAPES)
        return '\\' + escaped if escaped.startswith('#') else escaped

    def encode_key(self, key: str, what: str = "Key") -> str:
        self._check_name(key, what)
        return _escape(key, KEY_ESCAPES) if self.escape else key

    def encode_tag_value(self, key: str, value: str) -> str:
        if not isinstance(value, str):
            raise ValidationError(f"Tag '{key}' value must be str, got {type(value).__name__}")
        if not value:
            raise ValidationError(f"Tag '{key}' has an empty value")
        if '\n' in value:
            raise ValidationError(f"Tag '{key}' value contains a newline")
        return _escape(value, KEY_ESCAPES) if self.escape else value

    def encode_line(
        self,
        name: str,
        tags: Iterable[Tuple[str, str]],
        fields: Iterable[Tuple[str, Any]],
        timestamp: Optional[int] = None
    ) -> str:
        """
        Encode a single record as one line of line protocol

        Args:
            name: Measurement name
            tags: Ordered (key, value) tag pairs, written in the given order
            fields: Ordered (key, value) field pairs, at least one
            timestamp: Integer epoch timestamp, or None to let the server assign one

        Returns:
            Line protocol string without trailing newline

        Raises:
            ValidationError: Record cannot be expressed as valid line protocol
        """
        parts = [self.encode_measurement_name(name)]

        for key, value in tags:
            parts.append(f",{self.encode_key(key, 'Tag key')}={self.encode_tag_value(key, value)}")

        encoded_fields = [
            f"{self.encode_key(key, 'Field key')}={encode_field_value(value)}"
            for key, value in fields
        ]
        if not encoded_fields:
            raise ValidationError(f"Measurement '{name}' has no fields; at least one field is required")

        parts.append(' ')
        parts.append(','.join(encoded_fields))

        if timestamp is not None:
            if isinstance(timestamp, bool) or not isinstance(timestamp, int):
                raise ValidationError(
                    f"Timestamp must be an integer epoch value, got {type(timestamp).__name__}"
                )
            parts.append(f" {timestamp}")

        return ''.join(parts)

    def encode(self, record) -> str:
        """Encode any object satisfying the Measurement protocol"""
        return self.encode_line(
            record.measurement_name(),
            record.tags(),
            record.fields(),
            record.timestamp()
        )

    def encode_batch(self, records: Iterable) -> str:
        """
        Encode multiple records, one line each, joined by newlines

        Every record is encoded before anything is returned, so a single
        invalid record fails the whole batch.
        """
        lines: List[str] = [self.encode(record) for record in records]
        logger.debug(f"Encoded {len(lines)} records")
        return '\n'.join(lines)

    @staticmethod
    def _check_name(text: str, what: str):
        if not isinstance(text, str):
            raise ValidationError(f"{what} must be str, got {type(text).__name__}")
        if not text:
            raise ValidationError(f"{what} must not be empty")
        if '\n' in text:
            raise ValidationError(f"{what} contains a newline: {text!r}")


_default_encoder = LineProtocolEncoder()


def encode(record) -> str:
    """Encode one record with full escaping"""
    return _default_encoder.encode(record)


def encode_batch(records: Iterable) -> str:
    """Encode records with full escaping, newline-joined"""
    return _default_encoder.encode_batch(records)
