"""
Line Protocol Module

Field value encodings and the line protocol encoder. The parser lives in
influx_writer.protocol.line_protocol_parser.
"""

from .values import FieldKind, FieldValue, encode_field_value
from .line_protocol_encoder import LineProtocolEncoder, encode, encode_batch

__all__ = [
    'FieldKind',
    'FieldValue',
    'encode_field_value',
    'LineProtocolEncoder',
    'encode',
    'encode_batch',
]
