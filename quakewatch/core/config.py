"""Configuration models - Pure data structures.

These are domain models for configuration. The actual loading
(I/O) is handled by the shell layer.
"""

from dataclasses import dataclass, field
from datetime import timedelta

from quakewatch.core.event import Source


KANDILLI_URL = "https://api.orhanaydogdu.com.tr/deprem/kandilli/live"
USGS_URL = "https://earthquake.usgs.gov/earthquakes/feed/v1.0/summary/2.5_day.geojson"
EMSC_URL = "https://www.seismicportal.eu/fdsnws/event/1/query?limit=50&format=json"

DEFAULT_FEED_URLS: dict[Source, str] = {
    Source.KANDILLI: KANDILLI_URL,
    Source.USGS: USGS_URL,
    Source.EMSC: EMSC_URL,
}


@dataclass(frozen=True)
class FeedConfig:
    """A feed to poll.

    Attributes:
        source: Which feed schema applies
        url: Endpoint returning the feed's JSON
        enabled: Whether the feed is polled
    """
    source: Source
    url: str
    enabled: bool = True


def default_feeds() -> list[FeedConfig]:
    """All known feeds in processing order."""
    return [FeedConfig(source=s, url=DEFAULT_FEED_URLS[s]) for s in Source]


@dataclass
class DedupConfig:
    """Cross-feed duplicate suppression thresholds.

    Attributes:
        time_tolerance_seconds: Max reported-time difference for a match
        distance_radius_km: Max epicenter distance for a match
        window_seconds: How long admitted events stay in the window
    """
    time_tolerance_seconds: float = 120
    distance_radius_km: float = 50.0
    window_seconds: float = 300

    @property
    def time_tolerance(self) -> timedelta:
        return timedelta(seconds=self.time_tolerance_seconds)

    @property
    def window_width(self) -> timedelta:
        return timedelta(seconds=self.window_seconds)


@dataclass
class PushConfig:
    """Push delivery configuration.

    Attributes:
        enabled: Whether alerts are handed off at all
        project_id: Firebase project for FCM (None for the ADC project)
        topic: Topic every alert is sent to
        timeout_seconds: Request timeout for the FCM call
    """
    enabled: bool = True
    project_id: str | None = None
    topic: str = "all_users"
    timeout_seconds: int = 10


@dataclass
class Config:
    """Application configuration.

    This is a pure data structure - no I/O or side effects.

    Attributes:
        poll_interval_seconds: Fixed interval between ticks
        fetch_timeout_seconds: Per-feed HTTP timeout
        page_size: Number of records served by the read endpoint
        feeds: Feeds to poll, in processing order
        dedup: Deduplication thresholds
        push: Push delivery settings
        firestore_database: Firestore database name (None for default)
        firestore_collection: Firestore collection holding events
    """
    poll_interval_seconds: float = 10
    fetch_timeout_seconds: float = 10
    page_size: int = 100
    feeds: list[FeedConfig] = field(default_factory=default_feeds)
    dedup: DedupConfig = field(default_factory=DedupConfig)
    push: PushConfig = field(default_factory=PushConfig)
    firestore_database: str | None = None
    firestore_collection: str = "earthquakes"

    @property
    def enabled_feeds(self) -> list[FeedConfig]:
        return [f for f in self.feeds if f.enabled]


@dataclass
class ValidationError:
    """A configuration validation error.

    Attributes:
        field: The field that has an error
        message: Human-readable error description
        severity: 'error' or 'warning'
    """
    field: str
    message: str
    severity: str = "error"


@dataclass
class ValidationResult:
    """Result of validating configuration.

    Attributes:
        valid: True if no errors (warnings are OK)
        errors: List of validation errors/warnings
    """
    valid: bool
    errors: list[ValidationError] = field(default_factory=list)

    @property
    def warnings(self) -> list[ValidationError]:
        """Get only warnings."""
        return [e for e in self.errors if e.severity == "warning"]

    @property
    def critical_errors(self) -> list[ValidationError]:
        """Get only critical errors."""
        return [e for e in self.errors if e.severity == "error"]


def _require_positive(value: float, field_name: str) -> list[ValidationError]:
    if value > 0:
        return []
    return [ValidationError(
        field=field_name,
        message=f"Must be positive, got {value}",
    )]


def validate_config(config: Config) -> ValidationResult:
    """Validate configuration for errors and warnings.

    Pure function.

    Args:
        config: Configuration to validate

    Returns:
        ValidationResult with any errors/warnings found
    """
    errors: list[ValidationError] = []

    errors.extend(_require_positive(config.poll_interval_seconds, "poll_interval_seconds"))
    errors.extend(_require_positive(config.fetch_timeout_seconds, "fetch_timeout_seconds"))
    errors.extend(_require_positive(config.page_size, "page_size"))
    errors.extend(_require_positive(config.dedup.time_tolerance_seconds, "dedup.time_tolerance_seconds"))
    errors.extend(_require_positive(config.dedup.distance_radius_km, "dedup.distance_radius_km"))
    errors.extend(_require_positive(config.dedup.window_seconds, "dedup.window_seconds"))

    # Entries expiring before their match tolerance would miss late reports
    if config.dedup.window_seconds < config.dedup.time_tolerance_seconds:
        errors.append(ValidationError(
            field="dedup.window_seconds",
            message=(
                f"Window ({config.dedup.window_seconds}s) is shorter than the "
                f"time tolerance ({config.dedup.time_tolerance_seconds}s)"
            ),
            severity="warning",
        ))

    if config.fetch_timeout_seconds > config.poll_interval_seconds:
        errors.append(ValidationError(
            field="fetch_timeout_seconds",
            message="Fetch timeout exceeds poll interval; slow feeds will delay ticks",
            severity="warning",
        ))

    seen: set[Source] = set()
    for i, feed in enumerate(config.feeds):
        if feed.source in seen:
            errors.append(ValidationError(
                field=f"feeds[{i}].source",
                message=f"Feed {feed.source.value} configured more than once",
            ))
        seen.add(feed.source)

        if not feed.url.startswith(("http://", "https://")):
            errors.append(ValidationError(
                field=f"feeds[{i}].url",
                message=f"URL must be http(s), got '{feed.url}'",
            ))

    if not config.enabled_feeds:
        errors.append(ValidationError(
            field="feeds",
            message="No feeds enabled",
            severity="warning",
        ))

    has_critical = any(e.severity == "error" for e in errors)

    return ValidationResult(
        valid=not has_critical,
        errors=errors,
    )
