"""Seismic event data model - Pure data structures.

Every feed is normalized into SeismicEvent before it reaches the
deduplication window or the persistence gate.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class Source(str, Enum):
    """Originating feed of an event.

    Declaration order is the fixed processing order within a tick.
    """
    KANDILLI = "Kandilli"
    USGS = "USGS"
    EMSC = "EMSC"


@dataclass(frozen=True)
class SeismicEvent:
    """Immutable normalized earthquake report.

    Attributes:
        source: Feed the report came from
        location: Free-text location description
        magnitude: Reported magnitude (0.0 if unparsable)
        occurred_at: Feed-reported event time (UTC)
        latitude: Epicenter latitude (0.0 if missing)
        longitude: Epicenter longitude (0.0 if missing)
        depth_km: Depth in kilometers, non-negative
        raw_payload: Original feed record, kept for traceability only
    """
    source: Source
    location: str
    magnitude: float
    occurred_at: datetime
    latitude: float
    longitude: float
    depth_km: float
    raw_payload: Any = field(default=None, compare=False, repr=False)

    @property
    def coordinates(self) -> tuple[float, float]:
        """Return (latitude, longitude) tuple."""
        return (self.latitude, self.longitude)

    @property
    def has_null_island_coordinates(self) -> bool:
        """True when both coordinates are 0, which usually means they were missing."""
        return self.latitude == 0.0 and self.longitude == 0.0
