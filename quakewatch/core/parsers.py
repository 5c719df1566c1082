"""Feed parsing and normalization - Pure functions.

Each feed has a FeedSchema describing where its fields live. Missing or
malformed fields never raise; they are replaced with the value from the
DEFAULTS policy table and parsing moves on to the next field, so one bad
record cannot drop the rest of the batch.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from quakewatch.core.event import SeismicEvent, Source


logger = logging.getLogger(__name__)


UNKNOWN_LOCATION = "Unknown location"

# Kandilli publishes naive timestamps in Turkey time (UTC+3, no DST)
TURKEY_TIME = timezone(timedelta(hours=3), name="TRT")

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class FeedFormatError(ValueError):
    """Raised when a feed response does not have the expected top-level shape."""


@dataclass(frozen=True)
class FieldDefaults:
    """Values substituted when a field is missing or unparsable.

    Attributes:
        magnitude: Default magnitude
        latitude: Default latitude
        longitude: Default longitude
        depth_km: Default depth
        location: Default location text

    A missing timestamp is replaced with the current UTC time at parse time.
    """
    magnitude: float = 0.0
    latitude: float = 0.0
    longitude: float = 0.0
    depth_km: float = 0.0
    location: str = UNKNOWN_LOCATION


DEFAULTS = FieldDefaults()


@dataclass(frozen=True)
class FeedSchema:
    """Field mapping for one feed.

    Paths are tuples of keys walked from the record root.

    Attributes:
        source: Feed this schema describes
        records_key: Top-level key holding the record list
        location_paths: Candidate paths for the location, first non-empty wins
        magnitude_path: Path to the magnitude
        time_paths: Candidate paths for the event time, first present wins
        coordinates_path: Path to the [lng, lat(, depth)] array
        depth_path: Path to a dedicated depth field, None to read coordinates[2]
        depth_divisor: Divisor converting the feed's depth unit to km
        naive_timezone: Zone assumed for timestamps without an offset
    """
    source: Source
    records_key: str
    location_paths: tuple[tuple[str, ...], ...]
    magnitude_path: tuple[str, ...]
    time_paths: tuple[tuple[str, ...], ...]
    coordinates_path: tuple[str, ...]
    depth_path: tuple[str, ...] | None = None
    depth_divisor: float = 1.0
    naive_timezone: timezone = timezone.utc


KANDILLI_SCHEMA = FeedSchema(
    source=Source.KANDILLI,
    records_key="result",
    location_paths=(("title",),),
    magnitude_path=("mag",),
    time_paths=(("date_time",), ("date",)),
    coordinates_path=("geojson", "coordinates"),
    depth_path=("depth",),
    naive_timezone=TURKEY_TIME,
)

USGS_SCHEMA = FeedSchema(
    source=Source.USGS,
    records_key="features",
    location_paths=(("properties", "place"),),
    magnitude_path=("properties", "mag"),
    time_paths=(("properties", "time"),),
    coordinates_path=("geometry", "coordinates"),
)

# EMSC reports depth in meters
EMSC_SCHEMA = FeedSchema(
    source=Source.EMSC,
    records_key="features",
    location_paths=(("properties", "flynn_region"), ("properties", "region")),
    magnitude_path=("properties", "mag"),
    time_paths=(("properties", "time"),),
    coordinates_path=("geometry", "coordinates"),
    depth_divisor=1000.0,
)

SCHEMAS: dict[Source, FeedSchema] = {
    Source.KANDILLI: KANDILLI_SCHEMA,
    Source.USGS: USGS_SCHEMA,
    Source.EMSC: EMSC_SCHEMA,
}


def _lookup(record: Any, path: tuple[str, ...]) -> Any:
    """Walk a key path through nested dicts, returning None on any miss."""
    value = record
    for key in path:
        if not isinstance(value, dict):
            return None
        value = value.get(key)
    return value


def coerce_float(value: Any, default: float) -> float:
    """Convert a number or numeric string to float.

    Pure function.

    Args:
        value: Raw field value
        default: Value returned when conversion is not possible

    Returns:
        Finite float, or default
    """
    if value is None or isinstance(value, bool):
        return default

    if isinstance(value, str):
        value = value.strip()

    try:
        result = float(value)
    except (TypeError, ValueError):
        return default

    if not math.isfinite(result):
        return default

    return result


def parse_timestamp(
    value: Any,
    naive_timezone: timezone = timezone.utc,
) -> datetime | None:
    """Parse an epoch-millisecond or ISO-8601 timestamp.

    Pure function.

    Args:
        value: Epoch milliseconds (int/float) or a date string
        naive_timezone: Zone assumed for strings without an offset

    Returns:
        Timezone-aware UTC datetime, or None if value is not a timestamp
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            return None
        try:
            return _EPOCH + timedelta(milliseconds=value)
        except OverflowError:
            return None

    if not isinstance(value, str) or not value.strip():
        return None

    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        # Kandilli's legacy "2023.02.06 04:17:34" form
        try:
            parsed = datetime.strptime(text, "%Y.%m.%d %H:%M:%S")
        except ValueError:
            return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=naive_timezone)

    # Dates at the edge of the calendar can fall outside datetime range in UTC
    try:
        return parsed.astimezone(timezone.utc)
    except (OverflowError, ValueError):
        return None


def _resolve_location(record: dict[str, Any], schema: FeedSchema) -> str:
    for path in schema.location_paths:
        value = _lookup(record, path)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return DEFAULTS.location


def _resolve_time(
    record: dict[str, Any],
    schema: FeedSchema,
    now: Callable[[], datetime],
) -> datetime:
    for path in schema.time_paths:
        value = _lookup(record, path)
        if value is None:
            continue
        parsed = parse_timestamp(value, schema.naive_timezone)
        if parsed is not None:
            return parsed
    return now()


def _coordinate(coords: Any, index: int, default: float) -> float:
    if not isinstance(coords, (list, tuple)) or len(coords) <= index:
        return default
    return coerce_float(coords[index], default)


def parse_record(
    record: dict[str, Any],
    schema: FeedSchema,
    now: Callable[[], datetime] | None = None,
) -> SeismicEvent:
    """Normalize one feed record into a SeismicEvent.

    Pure function (apart from the clock used for missing timestamps).

    Args:
        record: Raw feed record
        schema: Field mapping for the record's feed
        now: Clock used when the record has no usable timestamp

    Returns:
        SeismicEvent with every missing field defaulted
    """
    clock = now or (lambda: datetime.now(timezone.utc))
    coords = _lookup(record, schema.coordinates_path)

    if schema.depth_path is not None:
        raw_depth = coerce_float(_lookup(record, schema.depth_path), DEFAULTS.depth_km)
    else:
        raw_depth = _coordinate(coords, 2, DEFAULTS.depth_km)

    # GeoJSON order is [lng, lat, depth]
    return SeismicEvent(
        source=schema.source,
        location=_resolve_location(record, schema),
        magnitude=coerce_float(_lookup(record, schema.magnitude_path), DEFAULTS.magnitude),
        occurred_at=_resolve_time(record, schema, clock),
        latitude=_coordinate(coords, 1, DEFAULTS.latitude),
        longitude=_coordinate(coords, 0, DEFAULTS.longitude),
        depth_km=abs(raw_depth) / schema.depth_divisor,
        raw_payload=record,
    )


def parse_feed(
    source: Source,
    payload: Any,
    now: Callable[[], datetime] | None = None,
) -> list[SeismicEvent]:
    """Parse a full feed response into events, preserving feed order.

    Pure function.

    Args:
        source: Feed the payload came from
        payload: Decoded JSON response body
        now: Clock used for records without a usable timestamp

    Returns:
        List of events, one per record that is a JSON object

    Raises:
        FeedFormatError: If the payload does not contain a record list
    """
    schema = SCHEMAS[source]

    if not isinstance(payload, dict):
        raise FeedFormatError(
            f"{source.value}: expected a JSON object, got {type(payload).__name__}"
        )

    records = payload.get(schema.records_key)
    if not isinstance(records, list):
        raise FeedFormatError(
            f"{source.value}: missing '{schema.records_key}' list"
        )

    events = []
    skipped = 0

    for record in records:
        if not isinstance(record, dict):
            skipped += 1
            continue
        events.append(parse_record(record, schema, now))

    if skipped:
        logger.warning(
            "%s: skipped %d records that were not JSON objects",
            source.value,
            skipped,
        )

    return events
