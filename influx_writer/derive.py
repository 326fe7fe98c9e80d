"""
Measurement Mapping for Dataclasses

Implements the Measurement protocol for a user class from per-attribute
directives, at class definition time:

    @measurement(rename="my_measure")
    class MyMeasure:
        region: str = tag()
        count: int = field(rename="amount")
        when: datetime = timestamp()
        other: int = 0              # not sent

Invalid declarations raise MappingError when the decorator runs, never
during a write.
"""

import dataclasses
import logging
import typing
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from influx_writer.errors import MappingError
from influx_writer.protocol.timestamps import is_valid_precision, to_epoch
from influx_writer.protocol.values import FieldValue

logger = logging.getLogger(__name__)

METADATA_KEY = 'influx'

TAG = 'tag'
FIELD = 'field'
TIMESTAMP = 'timestamp'

# Methods installed on the class; attributes may not reuse these names
RESERVED_NAMES = ('measurement_name', 'tags', 'fields', 'timestamp')

# Annotation -> FieldValue constructor for the declared kind
FIELD_TYPES = {
    int: FieldValue.integer,
    float: FieldValue.floating,
    str: FieldValue.string,
    bool: FieldValue.boolean,
}


@dataclass(frozen=True)
class Directive:
    role: str
    rename: Optional[str] = None


def _directive_field(role: str, rename: Optional[str], kwargs: Dict[str, Any]):
    metadata = dict(kwargs.pop('metadata', None) or {})
    metadata[METADATA_KEY] = Directive(role, rename)
    return dataclasses.field(metadata=metadata, **kwargs)


def tag(rename: Optional[str] = None, **kwargs):
    """Declare an attribute as a tag (must be annotated str)"""
    return _directive_field(TAG, rename, kwargs)


def field(rename: Optional[str] = None, **kwargs):
    """Declare an attribute as a field (int, float, str or bool)"""
    return _directive_field(FIELD, rename, kwargs)


def timestamp(**kwargs):
    """Declare the attribute holding the record time (datetime or int)"""
    return _directive_field(TIMESTAMP, None, kwargs)


@dataclass(frozen=True)
class MeasurementMapping:
    """Resolved mapping stored on the class as __influx_mapping__"""

    name: str
    precision: str
    tags: Tuple[Tuple[str, str], ...]
    fields: Tuple[Tuple[str, str, Any], ...]
    timestamp: Optional[str]


def _unwrap_optional(annotation):
    if typing.get_origin(annotation) is typing.Union:
        args = [arg for arg in typing.get_args(annotation) if arg is not type(None)]
        if len(args) == 1:
            return args[0]
    return annotation


def _build_mapping(cls, rename: Optional[str], precision: str) -> MeasurementMapping:
    if not is_valid_precision(precision):
        raise MappingError(f"{cls.__name__}: unknown timestamp precision '{precision}'")

    hints = typing.get_type_hints(cls)
    tags: List[Tuple[str, str]] = []
    fields: List[Tuple[str, str, Any]] = []
    timestamps: List[str] = []

    for attr in dataclasses.fields(cls):
        directive = attr.metadata.get(METADATA_KEY)
        if directive is None:
            continue

        if attr.name in RESERVED_NAMES:
            raise MappingError(
                f"{cls.__name__}.{attr.name}: attribute name clashes with a Measurement method"
            )

        key = directive.rename or attr.name
        annotation = hints.get(attr.name)

        if directive.role == TAG:
            if annotation is not str:
                raise MappingError(
                    f"{cls.__name__}.{attr.name}: tags must be annotated str, got {annotation!r}"
                )
            tags.append((attr.name, key))

        elif directive.role == FIELD:
            constructor = FIELD_TYPES.get(annotation)
            if constructor is None:
                raise MappingError(
                    f"{cls.__name__}.{attr.name}: unsupported field type {annotation!r}; "
                    f"supported types are int, float, str and bool"
                )
            fields.append((attr.name, key, constructor))

        elif directive.role == TIMESTAMP:
            if _unwrap_optional(annotation) not in (datetime, int):
                raise MappingError(
                    f"{cls.__name__}.{attr.name}: timestamp must be annotated datetime or int, "
                    f"got {annotation!r}"
                )
            timestamps.append(attr.name)

    if not fields:
        raise MappingError(f"{cls.__name__}: InfluxDB requires that a measurement has at least one field")

    if len(timestamps) > 1:
        raise MappingError(
            f"{cls.__name__}: InfluxDB allows at most one timestamp per measurement, "
            f"found {', '.join(timestamps)}"
        )

    return MeasurementMapping(
        name=rename or cls.__name__,
        precision=precision,
        tags=tuple(tags),
        fields=tuple(fields),
        timestamp=timestamps[0] if timestamps else None,
    )


def _impl_measurement(cls, mapping: MeasurementMapping):
    def measurement_name(self) -> str:
        return mapping.name

    def tags(self) -> List[Tuple[str, str]]:
        return [(key, getattr(self, attr)) for attr, key in mapping.tags]

    def fields(self) -> List[Tuple[str, FieldValue]]:
        return [(key, constructor(getattr(self, attr))) for attr, key, constructor in mapping.fields]

    def timestamp(self) -> Optional[int]:
        if mapping.timestamp is None:
            return None
        value = getattr(self, mapping.timestamp)
        if value is None:
            return None
        return to_epoch(value, mapping.precision)

    cls.measurement_name = measurement_name
    cls.tags = tags
    cls.fields = fields
    cls.timestamp = timestamp
    cls.__influx_mapping__ = mapping
    return cls


def measurement(cls=None, *, rename: Optional[str] = None, precision: str = 'ns'):
    """
    Class decorator implementing the Measurement protocol

    Plain classes are turned into dataclasses first. Usable bare
    (@measurement) or with arguments (@measurement(rename="cpu")).

    Args:
        rename: Measurement name to emit instead of the class name
        precision: Unit datetime timestamps are converted to (ns, u, ms, s, m, h)

    Raises:
        MappingError: Invalid declaration
    """
    def wrap(cls):
        if not dataclasses.is_dataclass(cls):
            cls = dataclass(cls)
        mapping = _build_mapping(cls, rename, precision)
        logger.debug(
            f"Mapped {cls.__name__} to measurement '{mapping.name}' "
            f"({len(mapping.tags)} tags, {len(mapping.fields)} fields)"
        )
        return _impl_measurement(cls, mapping)

    if cls is None:
        return wrap
    return wrap(cls)
