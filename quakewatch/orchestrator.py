"""Orchestrator - Wires Functional Core and Imperative Shell.

This module runs one pipeline tick: it fetches every feed concurrently,
merges the results in feed order, then pushes each event through
dedup -> persistence -> notification strictly one at a time.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum

from quakewatch.core.config import Config, FeedConfig
from quakewatch.core.dedup import DedupWindow
from quakewatch.core.event import SeismicEvent, Source
from quakewatch.core.formatter import Alert, build_alert, format_event_summary
from quakewatch.core.identity import make_event_id
from quakewatch.core.parsers import FeedFormatError, parse_feed
from quakewatch.shell.feed_client import FeedClient
from quakewatch.shell.firestore_client import FirestoreClient, FirestoreConfig
from quakewatch.shell.push_client import PushClient, PushResponse


logger = logging.getLogger(__name__)


class EventOutcome(str, Enum):
    """What happened to a single event within a tick."""
    DUPLICATE = "duplicate"
    ALREADY_STORED = "already_stored"
    SAVED = "saved"
    SAVE_FAILED = "save_failed"


@dataclass
class FeedResult:
    """Events contributed by one feed in a tick.

    Attributes:
        source: Feed the events came from
        events: Parsed events (empty on failure)
        error: Error message if the feed failed
    """
    source: Source
    events: list[SeismicEvent] = field(default_factory=list)
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.error is None


@dataclass
class AlertResult:
    """Result of handing one alert to the push collaborator.

    Attributes:
        event: The stored event
        alert: The alert that was sent
        success: Whether delivery was accepted
        error: Error message if failed
    """
    event: SeismicEvent
    alert: Alert
    success: bool
    error: str | None = None


@dataclass
class EventResult:
    """Result of the per-event pipeline.

    Attributes:
        event: The processed event
        event_id: Deterministic persistence id (None for duplicates)
        outcome: What happened to the event
        alert: Push result (only for newly saved events with push enabled)
    """
    event: SeismicEvent
    event_id: str | None
    outcome: EventOutcome
    alert: AlertResult | None = None


@dataclass
class TickResult:
    """Result of a complete pipeline tick.

    Attributes:
        feeds: One result per polled feed, in feed order
        events: One result per merged event, in processing order
        errors: Feed and persistence errors that occurred
    """
    feeds: list[FeedResult] = field(default_factory=list)
    events: list[EventResult] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    def _count(self, outcome: EventOutcome) -> int:
        return sum(1 for r in self.events if r.outcome is outcome)

    @property
    def events_fetched(self) -> int:
        return len(self.events)

    @property
    def duplicates(self) -> int:
        return self._count(EventOutcome.DUPLICATE)

    @property
    def already_stored(self) -> int:
        return self._count(EventOutcome.ALREADY_STORED)

    @property
    def saved(self) -> int:
        return self._count(EventOutcome.SAVED)

    @property
    def save_failed(self) -> int:
        return self._count(EventOutcome.SAVE_FAILED)

    @property
    def alerts_sent(self) -> list[AlertResult]:
        return [r.alert for r in self.events if r.alert is not None and r.alert.success]

    @property
    def alerts_failed(self) -> list[AlertResult]:
        return [r.alert for r in self.events if r.alert is not None and not r.alert.success]

    @property
    def success(self) -> bool:
        """Returns True if no feed or persistence errors occurred."""
        return len(self.errors) == 0

    @property
    def summary(self) -> str:
        """Human-readable summary of the tick."""
        return (
            f"Fetched {self.events_fetched} events, "
            f"{self.duplicates} duplicate, "
            f"{self.already_stored} already stored, "
            f"{self.saved} saved, "
            f"{self.save_failed} failed, "
            f"{len(self.alerts_sent)} alerts sent"
        )

    def to_dict(self) -> dict:
        """JSON-friendly summary."""
        return {
            "status": "success" if self.success else "partial_failure",
            "summary": self.summary,
            "feeds": {
                f.source.value: {"events": len(f.events), "error": f.error}
                for f in self.feeds
            },
            "events_fetched": self.events_fetched,
            "duplicates": self.duplicates,
            "already_stored": self.already_stored,
            "saved": self.saved,
            "save_failed": self.save_failed,
            "alerts_sent": len(self.alerts_sent),
            "alerts_failed": len(self.alerts_failed),
            "errors": self.errors,
        }


class Orchestrator:
    """Coordinates ingestion, deduplication, persistence and alerting.

    This class wires together:
    - Feed client (fetches each feed's JSON)
    - Core functions (parsing, dedup, ids, alert policy)
    - Firestore client (persistence gate)
    - Push client (alert hand-off)

    The dedup window is owned by the instance. process() must not be called
    concurrently on the same instance; the Scheduler guarantees this.
    """

    def __init__(
        self,
        config: Config,
        feed_client: FeedClient | None = None,
        firestore_client: FirestoreClient | None = None,
        push_client: PushClient | None = None,
        dedup_window: DedupWindow | None = None,
    ) -> None:
        """Initialize orchestrator with configuration.

        Args:
            config: Application configuration
            feed_client: Feed client (created if not provided)
            firestore_client: Firestore client (created if not provided)
            push_client: Push client (created if not provided)
            dedup_window: Dedup window (created from config if not provided)
        """
        self.config = config
        self.feed_client = (
            feed_client if feed_client is not None
            else FeedClient(timeout=config.fetch_timeout_seconds)
        )
        self.firestore_client = firestore_client if firestore_client is not None else FirestoreClient(
            FirestoreConfig(
                database=config.firestore_database,
                collection=config.firestore_collection,
            )
        )
        self.push_client = push_client if push_client is not None else PushClient(
            project_id=config.push.project_id,
            timeout=config.push.timeout_seconds,
        )
        # DedupWindow defines __len__, so an empty injected window is falsy
        self.dedup_window = dedup_window if dedup_window is not None else DedupWindow(
            time_tolerance=config.dedup.time_tolerance,
            distance_radius_km=config.dedup.distance_radius_km,
            window_width=config.dedup.window_width,
        )

    def _fetch_feed(self, feed: FeedConfig) -> FeedResult:
        """Fetch and parse one feed. Never raises.

        Args:
            feed: Feed to fetch

        Returns:
            FeedResult with events, or empty with an error
        """
        response = self.feed_client.fetch_json(feed.url)

        if not response.success:
            return FeedResult(source=feed.source, error=response.error)

        try:
            events = parse_feed(feed.source, response.data)
        except FeedFormatError as e:
            logger.error("[%s] Malformed feed: %s", feed.source.value, e)
            return FeedResult(source=feed.source, error=str(e))

        logger.info("[%s] Received %d earthquakes", feed.source.value, len(events))
        return FeedResult(source=feed.source, events=events)

    def _fetch_all(self) -> list[FeedResult]:
        """Fetch every enabled feed concurrently and wait for all of them.

        Results are returned in configured feed order, regardless of which
        fetch finished first.
        """
        feeds = self.config.enabled_feeds
        if not feeds:
            return []

        with ThreadPoolExecutor(max_workers=len(feeds)) as executor:
            futures = [executor.submit(self._fetch_feed, feed) for feed in feeds]

        results = []
        for feed, future in zip(feeds, futures):
            try:
                results.append(future.result())
            except Exception as e:
                logger.exception("[%s] Unexpected fetch failure", feed.source.value)
                results.append(FeedResult(source=feed.source, error=str(e)))

        return results

    def _notify(self, event: SeismicEvent) -> AlertResult:
        """Hand the alert for a newly stored event to the push client."""
        alert = build_alert(event, topic=self.config.push.topic)
        response: PushResponse = self.push_client.send(alert)

        if response.success:
            logger.info("Sent %s alert for %s", alert.tier.value, event.location)
        else:
            logger.error(
                "Failed to send %s alert for %s: %s",
                alert.tier.value,
                event.location,
                response.error,
            )

        return AlertResult(
            event=event,
            alert=alert,
            success=response.success,
            error=response.error,
        )

    def _log_new_event(self, event: SeismicEvent) -> None:
        logger.info("NEW EARTHQUAKE DETECTED: %s", format_event_summary(event))
        if event.has_null_island_coordinates:
            logger.warning(
                "[%s] %s has (0, 0) coordinates, likely missing from the feed",
                event.source.value,
                event.location,
            )

    def process_event(self, event: SeismicEvent, errors: list[str]) -> EventResult:
        """Run one event through dedup -> persistence -> notification.

        Args:
            event: Event to process
            errors: Tick error list, appended to on persistence failures

        Returns:
            EventResult describing the outcome
        """
        if self.dedup_window.is_duplicate(event):
            logger.info(
                "Duplicate earthquake skipped: %s (%s)",
                event.location,
                event.source.value,
            )
            return EventResult(event=event, event_id=None, outcome=EventOutcome.DUPLICATE)

        self.dedup_window.admit(event)

        event_id = make_event_id(event)

        lookup = self.firestore_client.exists(event_id)
        if lookup.error:
            errors.append(f"Existence check failed for {event_id}: {lookup.error}")

        if lookup.exists:
            logger.info(
                "Earthquake already stored, skipped: %s (%s)",
                event.location,
                event.source.value,
            )
            return EventResult(event=event, event_id=event_id, outcome=EventOutcome.ALREADY_STORED)

        saved = self.firestore_client.save(event_id, event)

        if saved.already_exists:
            return EventResult(event=event, event_id=event_id, outcome=EventOutcome.ALREADY_STORED)

        if not saved.success:
            errors.append(f"Failed to store {event_id}: {saved.error}")
            return EventResult(event=event, event_id=event_id, outcome=EventOutcome.SAVE_FAILED)

        self._log_new_event(event)

        alert = None
        if self.config.push.enabled:
            alert = self._notify(event)

        return EventResult(
            event=event,
            event_id=event_id,
            outcome=EventOutcome.SAVED,
            alert=alert,
        )

    def process(self) -> TickResult:
        """Run a complete pipeline tick.

        This is the main entry point that:
        1. Fetches all feeds concurrently (partial results accepted)
        2. Merges events in feed order
        3. For each event in turn: dedup check, existence check, write, alert

        Returns:
            TickResult with details of what happened
        """
        result = TickResult()

        result.feeds = self._fetch_all()

        for feed in result.feeds:
            if feed.error:
                result.errors.append(f"{feed.source.value}: {feed.error}")

        merged = [event for feed in result.feeds for event in feed.events]

        if not merged:
            logger.warning("No earthquake data received from any feed")
            return result

        for event in merged:
            result.events.append(self.process_event(event, result.errors))

        self.dedup_window.prune()

        logger.info("Tick complete: %s (window size %d)", result.summary, len(self.dedup_window))
        return result
