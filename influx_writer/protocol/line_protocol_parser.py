"""
InfluxDB Line Protocol Parser

Parses InfluxDB Line Protocol text back into Point records. Used to load
line protocol files for writing and to check encoder output.

Line Protocol Format:
    measurement[,tag_key=tag_value...] field_key=field_value[,field_key=field_value...] [timestamp]

Examples:
    cpu,host=server01,region=us-west usage_idle=90.5,usage_system=2.1 1609459200000000000
    temperature,sensor=bedroom temp=22.5
    http_requests,method=GET,status=200 count=1i
"""

import re
from typing import List, Optional, Tuple
import logging

from influx_writer.errors import ValidationError
from influx_writer.measurement import Point
from influx_writer.protocol.values import FieldValue

logger = logging.getLogger(__name__)

_NAME_ESCAPE = re.compile(r'\\([,= \\])')
_STRING_ESCAPE = re.compile(r'\\(["\\])')

_TRUE_VALUES = ('t', 'T', 'true', 'True', 'TRUE')
_FALSE_VALUES = ('f', 'F', 'false', 'False', 'FALSE')


class LineProtocolParser:
    """Parser for InfluxDB Line Protocol format"""

    @staticmethod
    def parse_line(line: str) -> Optional[Point]:
        """
        Parse a single line of InfluxDB Line Protocol

        Args:
            line: Line protocol string

        Returns:
            Point with tags and fields in line order,
            or None if the line is blank or a comment

        Raises:
            ValidationError: Line is not valid line protocol
        """
        line = line.strip()

        # Skip empty lines and comments
        if not line or line.startswith('#'):
            return None

        # measurement[,tags] fields [timestamp], split on unescaped spaces outside quotes
        parts = LineProtocolParser._split(line, ' ')

        if len(parts) < 2 or len(parts) > 3:
            raise ValidationError(f"Invalid line protocol: {line}")

        measurement, tags = LineProtocolParser._parse_measurement_tags(parts[0])
        fields = LineProtocolParser._parse_fields(parts[1])

        if not fields:
            raise ValidationError(f"No valid fields found in line: {line}")

        timestamp = None
        if len(parts) == 3:
            timestamp = LineProtocolParser._parse_timestamp(parts[2])

        return Point(measurement, tags=tags, fields=fields, timestamp=timestamp)

    @staticmethod
    def _split(text: str, separator: str) -> List[str]:
        """
        Split on unescaped separators outside quoted strings

        Args:
            text: String to split
            separator: Single separator character (space or comma)

        Returns:
            List of parts, escapes left in place
        """
        parts = []
        current = []
        i = 0
        in_quotes = False

        while i < len(text):
            if text[i] == '\\' and i + 1 < len(text):
                # Escaped character - include both backslash and next char
                current.append(text[i:i+2])
                i += 2
            elif text[i] == '"':
                in_quotes = not in_quotes
                current.append(text[i])
                i += 1
            elif text[i] == separator and not in_quotes:
                if current:
                    parts.append(''.join(current))
                    current = []
                i += 1
            else:
                current.append(text[i])
                i += 1

        if in_quotes:
            raise ValidationError(f"Unterminated string in: {text}")

        if current:
            parts.append(''.join(current))

        return parts

    @staticmethod
    def _split_pair(component: str) -> Tuple[str, str]:
        """Split key=value on the first unescaped equals sign"""
        i = 0
        while i < len(component):
            if component[i] == '\\':
                i += 2
                continue
            if component[i] == '=':
                return component[:i], component[i+1:]
            i += 1
        raise ValidationError(f"Missing '=' in: {component}")

    @staticmethod
    def _parse_measurement_tags(part: str) -> Tuple[str, List[Tuple[str, str]]]:
        """
        Parse measurement name and tags

        Args:
            part: measurement[,tag=value,...]

        Returns:
            Tuple of (measurement_name, ordered tag pairs)
        """
        components = LineProtocolParser._split(part, ',')

        name = components[0]
        if name.startswith('\\#'):
            # Escaped leading # keeps the line from reading as a comment
            measurement = '#' + LineProtocolParser._unescape(name[2:])
        else:
            measurement = LineProtocolParser._unescape(name)
        tags = []

        for component in components[1:]:
            key, value = LineProtocolParser._split_pair(component)
            tags.append((LineProtocolParser._unescape(key), LineProtocolParser._unescape(value)))

        return measurement, tags

    @staticmethod
    def _parse_fields(part: str) -> List[Tuple[str, FieldValue]]:
        """
        Parse field set

        Args:
            part: field_key=field_value[,field_key=field_value...]

        Returns:
            Ordered (key, FieldValue) pairs
        """
        fields = []

        for field_part in LineProtocolParser._split(part, ','):
            key, value = LineProtocolParser._split_pair(field_part)
            fields.append((LineProtocolParser._unescape(key), LineProtocolParser.parse_field_value(value)))

        return fields

    @staticmethod
    def parse_field_value(value: str) -> FieldValue:
        """
        Parse field value based on InfluxDB type indicators

        Type indicators:
            - Integer: ends with 'i' (e.g., 123i)
            - Float: numeric without 'i' (e.g., 123.45)
            - String: wrapped in quotes (e.g., "hello")
            - Boolean: t, T, true, True, TRUE, f, F, false, False, FALSE
        """
        if value in _TRUE_VALUES:
            return FieldValue.boolean(True)
        if value in _FALSE_VALUES:
            return FieldValue.boolean(False)

        if value.startswith('"'):
            if len(value) < 2 or not value.endswith('"'):
                raise ValidationError(f"Malformed quoted string: {value}")
            return FieldValue.string(_STRING_ESCAPE.sub(r'\1', value[1:-1]))

        if value.endswith('i'):
            try:
                return FieldValue.integer(int(value[:-1]))
            except ValueError:
                raise ValidationError(f"Invalid integer value: {value}") from None

        try:
            return FieldValue.floating(float(value))
        except ValueError:
            raise ValidationError(f"Invalid field value: {value}") from None

    @staticmethod
    def _parse_timestamp(timestamp_str: str) -> int:
        try:
            return int(timestamp_str)
        except ValueError:
            raise ValidationError(f"Invalid timestamp: {timestamp_str}") from None

    @staticmethod
    def _unescape(s: str) -> str:
        """
        Unescape special characters in line protocol names

        Escaped characters: comma, space, equals sign, backslash
        """
        return _NAME_ESCAPE.sub(r'\1', s)

    @classmethod
    def parse_batch(cls, lines: str) -> List[Point]:
        """
        Parse multiple lines of line protocol

        Args:
            lines: Multi-line string of line protocol

        Returns:
            List of parsed points, blank lines and comments skipped
        """
        points = []

        for number, line in enumerate(lines.split('\n'), start=1):
            try:
                point = cls.parse_line(line)
            except ValidationError as e:
                raise ValidationError(f"Line {number}: {e}") from e
            if point is not None:
                points.append(point)

        logger.debug(f"Parsed {len(points)} points")
        return points
