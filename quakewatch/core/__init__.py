"""Functional Core - Pure functions with no side effects.

This module contains all business logic as pure functions:
- Feed parsing and normalization
- Geo/distance calculations
- Cross-feed deduplication window
- Persistence id derivation
- Notification policy

Apart from the dedup window's own state, nothing here does I/O.
"""

from quakewatch.core.event import SeismicEvent, Source
from quakewatch.core.parsers import FeedFormatError, parse_feed
from quakewatch.core.geo import calculate_distance
from quakewatch.core.dedup import DedupWindow
from quakewatch.core.identity import make_event_id
from quakewatch.core.formatter import Alert, SeverityTier, build_alert, get_severity_tier

__all__ = [
    # Event
    "SeismicEvent",
    "Source",
    # Parsing
    "FeedFormatError",
    "parse_feed",
    # Geo
    "calculate_distance",
    # Dedup
    "DedupWindow",
    # Identity
    "make_event_id",
    # Notification policy
    "Alert",
    "SeverityTier",
    "build_alert",
    "get_severity_tier",
]
