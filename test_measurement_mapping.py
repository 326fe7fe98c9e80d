#!/usr/bin/env python3
"""
Tests for the @measurement class decorator and its directives
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import pytest

from influx_writer import Measurement, field, measurement, tag, timestamp
from influx_writer.errors import MappingError, ValidationError
from influx_writer.protocol import FieldValue, encode
from influx_writer.protocol.timestamps import to_epoch

NEW_YEAR_2020 = datetime(2020, 1, 1, tzinfo=timezone.utc)
NEW_YEAR_2020_NS = 1577836800 * 1_000_000_000


@measurement(rename="my_measure")
class MyMeasure:
    region: str = tag()
    count: int = field(rename="amount")
    when: datetime = timestamp()
    other: int = 0


def test_mapped_class_satisfies_measurement_protocol():
    record = MyMeasure(region="us-east", count=3, when=NEW_YEAR_2020)
    assert isinstance(record, Measurement)
    assert record.measurement_name() == "my_measure"
    assert record.tags() == [("region", "us-east")]
    assert record.fields() == [("amount", FieldValue.integer(3))]
    assert record.timestamp() == NEW_YEAR_2020_NS


def test_mapped_record_encodes_without_unannotated_attributes():
    record = MyMeasure(region="us-east", count=3, when=NEW_YEAR_2020, other=99)
    assert encode(record) == f"my_measure,region=us-east amount=3i {NEW_YEAR_2020_NS}"


def test_measurement_name_defaults_to_class_name():
    @measurement
    class Temperature:
        celsius: float = field()

    assert Temperature(celsius=21.5).measurement_name() == "Temperature"
    assert encode(Temperature(celsius=21.5)) == "Temperature celsius=21.5"


def test_existing_dataclass_is_accepted():
    @measurement(rename="disk")
    @dataclass
    class Disk:
        device: str = tag()
        full: bool = field()

    assert encode(Disk(device="sda1", full=False)) == "disk,device=sda1 full=false"


def test_declared_kind_drives_encoding():
    @measurement
    class Load:
        value: float = field()
        label: str = field()

    # int assigned to a float attribute is still written as a float
    assert encode(Load(value=20, label="x")) == 'Load value=20,label="x"'


def test_timestamp_precision_and_naive_datetimes():
    @measurement(precision="ms")
    class Tick:
        n: int = field()
        at: datetime = timestamp()

    assert Tick(n=1, at=NEW_YEAR_2020).timestamp() == 1577836800000
    assert Tick(n=1, at=datetime(2020, 1, 1)).timestamp() == 1577836800000
    assert Tick(n=1, at=NEW_YEAR_2020 + timedelta(microseconds=1500)).timestamp() == 1577836800001


def test_integer_and_missing_timestamps():
    @measurement
    class Event:
        n: int = field()
        at: Optional[int] = timestamp(default=None)

    assert Event(n=1, at=42).timestamp() == 42
    assert Event(n=1).timestamp() is None
    assert encode(Event(n=1)) == "Event n=1i"


def test_no_timestamp_attribute():
    @measurement
    class Counter:
        n: int = field()

    assert Counter(n=1).timestamp() is None


def test_two_timestamps_rejected():
    with pytest.raises(MappingError, match="at most one timestamp"):
        @measurement
        class Twice:
            n: int = field()
            first: datetime = timestamp()
            second: datetime = timestamp()


def test_non_string_tag_rejected():
    with pytest.raises(MappingError, match="tags must be annotated str"):
        @measurement
        class BadTag:
            host: int = tag()
            n: int = field()


def test_unsupported_field_type_rejected():
    with pytest.raises(MappingError, match="unsupported field type"):
        @measurement
        class BadField:
            values: List[int] = field()


def test_unsupported_timestamp_type_rejected():
    with pytest.raises(MappingError):
        @measurement
        class BadTime:
            n: int = field()
            at: str = timestamp()


def test_class_without_fields_rejected():
    with pytest.raises(MappingError, match="at least one field"):
        @measurement
        class OnlyTags:
            host: str = tag()


def test_unknown_precision_rejected():
    with pytest.raises(MappingError):
        @measurement(precision="weeks")
        class Weekly:
            n: int = field()


def test_attribute_clashing_with_protocol_method_rejected():
    with pytest.raises(MappingError, match="clashes"):
        @measurement
        class Clash:
            n: int = field()
            timestamp: datetime = timestamp()


def test_mapping_errors_are_type_errors():
    assert issubclass(MappingError, TypeError)


def test_wrong_runtime_value_fails_at_encode():
    record = MyMeasure(region="us-east", count="three", when=NEW_YEAR_2020)
    with pytest.raises(ValidationError):
        encode(record)


def test_to_epoch_rejects_bad_input():
    with pytest.raises(ValidationError):
        to_epoch("2020-01-01")
    with pytest.raises(ValidationError):
        to_epoch(NEW_YEAR_2020, precision="fortnight")
    assert to_epoch(NEW_YEAR_2020, precision="s") == 1577836800
    assert to_epoch(NEW_YEAR_2020, precision="h") == 1577836800 // 3600


def test_to_epoch_floors_before_1970():
    before_epoch = datetime(1969, 12, 31, 23, 59, 59, 998500, tzinfo=timezone.utc)
    assert to_epoch(before_epoch, precision="u") == -1500
    assert to_epoch(before_epoch, precision="ms") == -2
