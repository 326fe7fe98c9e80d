"""
Measurement Abstraction

Anything that can report a measurement name, ordered tags, ordered fields and
an optional timestamp can be written. The encoder and client only depend on
the Measurement protocol, never on a concrete record class.
"""

from typing import Any, Iterable, List, Optional, Protocol, Tuple, runtime_checkable

from influx_writer.protocol.values import FieldValue


@runtime_checkable
class Measurement(Protocol):
    """Structural contract for records accepted by the encoder and client"""

    def measurement_name(self) -> str:
        ...

    def tags(self) -> Iterable[Tuple[str, str]]:
        ...

    def fields(self) -> Iterable[Tuple[str, Any]]:
        ...

    def timestamp(self) -> Optional[int]:
        ...


class Point:
    """
    Generic hand-built record

    Tags and fields keep insertion order. Builder methods return self so
    points can be assembled in one expression:

        Point("cpu").tag("host", "server01").field("usage", 0.5).time(1000)
    """

    def __init__(
        self,
        name: str,
        tags: Optional[Iterable[Tuple[str, str]]] = None,
        fields: Optional[Iterable[Tuple[str, Any]]] = None,
        timestamp: Optional[int] = None
    ):
        self.name = name
        self._tags: List[Tuple[str, str]] = list(tags or [])
        self._fields: List[Tuple[str, FieldValue]] = [
            (key, FieldValue.of(value)) for key, value in (fields or [])
        ]
        self._timestamp = timestamp

    def tag(self, key: str, value: str) -> "Point":
        self._tags.append((key, value))
        return self

    def field(self, key: str, value: Any) -> "Point":
        self._fields.append((key, FieldValue.of(value)))
        return self

    def time(self, timestamp: Optional[int]) -> "Point":
        self._timestamp = timestamp
        return self

    def measurement_name(self) -> str:
        return self.name

    def tags(self) -> List[Tuple[str, str]]:
        return list(self._tags)

    def fields(self) -> List[Tuple[str, FieldValue]]:
        return list(self._fields)

    def timestamp(self) -> Optional[int]:
        return self._timestamp

    def field_dict(self):
        """Fields as a plain dict of Python values"""
        return {key: value.value for key, value in self._fields}

    def __eq__(self, other):
        if not isinstance(other, Point):
            return NotImplemented
        return (
            self.name == other.name
            and self._tags == other._tags
            and self._fields == other._fields
            and self._timestamp == other._timestamp
        )

    def __repr__(self):
        return (
            f"Point(name={self.name!r}, tags={self._tags!r}, "
            f"fields={self._fields!r}, timestamp={self._timestamp!r})"
        )
