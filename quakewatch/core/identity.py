"""Deterministic persistence identifiers - Pure functions.

The id is content-addressed so that a second process re-fetching the same
feed data writes to the same document. Matching is exact: unlike the
deduplication window there is no tolerance on any component.
"""

import re
from datetime import datetime, timedelta, timezone

from quakewatch.core.event import SeismicEvent


_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]")

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def normalize_location(location: str) -> str:
    """Replace every non-alphanumeric character with '_' and lower-case.

    Pure function.
    """
    return _NON_ALNUM.sub("_", location or "unknown").lower()


def format_coordinate(value: float) -> str:
    """Format a coordinate to 4 decimal places.

    Pure function. Zero is written as "0" to stay compatible with ids
    already present in the store.
    """
    if not value:
        return "0"
    return f"{value:.4f}"


def make_event_id(event: SeismicEvent) -> str:
    """Build the document id for an event.

    Pure function.

    Args:
        event: Normalized event

    Returns:
        "<epoch ms>_<normalized location>_<lat>_<lng>"
    """
    timestamp_ms = (event.occurred_at - _EPOCH) // timedelta(milliseconds=1)

    return "_".join([
        str(timestamp_ms),
        normalize_location(event.location),
        format_coordinate(event.latitude),
        format_coordinate(event.longitude),
    ])
