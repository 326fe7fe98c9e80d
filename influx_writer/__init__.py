"""
Influx Writer

Asynchronous InfluxDB write client. Records are serialized to InfluxDB line
protocol and sent in batches to the HTTP write endpoint.

    @measurement(rename="my_measure")
    class MyMeasure:
        region: str = tag()
        count: int = field(rename="amount")
        when: datetime = timestamp()

    async with BatchClient("http://localhost:8086", "my_database") as db:
        await db.add_data([MyMeasure("us-east", 3, datetime.now(timezone.utc))])
"""

from influx_writer.version import __version__
from influx_writer.errors import (
    ConfigError,
    InfluxWriterError,
    MappingError,
    ValidationError,
    WriteError,
)
from influx_writer.measurement import Measurement, Point
from influx_writer.protocol import FieldKind, FieldValue, LineProtocolEncoder
from influx_writer.protocol.line_protocol_parser import LineProtocolParser
from influx_writer.derive import field, measurement, tag, timestamp
from influx_writer.config import ClientConfig
from influx_writer.client import BatchClient, WriteResult

__all__ = [
    '__version__',
    'BatchClient',
    'ClientConfig',
    'ConfigError',
    'FieldKind',
    'FieldValue',
    'InfluxWriterError',
    'LineProtocolEncoder',
    'LineProtocolParser',
    'MappingError',
    'Measurement',
    'Point',
    'ValidationError',
    'WriteError',
    'WriteResult',
    'field',
    'measurement',
    'tag',
    'timestamp',
]
