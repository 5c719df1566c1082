"""Cross-feed deduplication window.

The same physical earthquake is usually reported by more than one feed,
with slightly different times and coordinates. DedupWindow keeps the events
admitted during the last few minutes and flags a candidate as a duplicate
when it is close to one of them in both time and space.

The window is in-memory and does not survive a restart; durable identity
is handled separately by the persistence gate (see core.identity).

Each check is a linear scan, O(window size). The window only ever holds a
few minutes of events from three feeds, so no index is kept.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable

from quakewatch.core.event import SeismicEvent
from quakewatch.core.geo import distance_between


DEFAULT_TIME_TOLERANCE = timedelta(minutes=2)
DEFAULT_DISTANCE_RADIUS_KM = 50.0
DEFAULT_WINDOW_WIDTH = timedelta(minutes=5)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class WindowEntry:
    """An admitted event and the local time it was admitted.

    Attributes:
        event: The admitted event
        admitted_at: Wall-clock time of admission
    """
    event: SeismicEvent
    admitted_at: datetime


def is_same_event(
    candidate: SeismicEvent,
    existing: SeismicEvent,
    time_tolerance: timedelta = DEFAULT_TIME_TOLERANCE,
    distance_radius_km: float = DEFAULT_DISTANCE_RADIUS_KM,
) -> bool:
    """Check whether two reports describe the same earthquake.

    Pure function. Both bounds are inclusive and both must hold.

    Args:
        candidate: Newly fetched event
        existing: Previously admitted event
        time_tolerance: Maximum difference between reported times
        distance_radius_km: Maximum epicenter distance

    Returns:
        True if the events are within tolerance of each other
    """
    if abs(candidate.occurred_at - existing.occurred_at) > time_tolerance:
        return False

    return distance_between(candidate, existing) <= distance_radius_km


class DedupWindow:
    """Sliding window of recently admitted events.

    Owned by a single pipeline and mutated only from its sequential phase,
    so no locking is done here.
    """

    def __init__(
        self,
        time_tolerance: timedelta = DEFAULT_TIME_TOLERANCE,
        distance_radius_km: float = DEFAULT_DISTANCE_RADIUS_KM,
        window_width: timedelta = DEFAULT_WINDOW_WIDTH,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        """Initialize an empty window.

        Args:
            time_tolerance: Maximum reported-time difference for a match
            distance_radius_km: Maximum epicenter distance for a match
            window_width: How long an admitted event stays comparable
            clock: Source of the current wall-clock time
        """
        self.time_tolerance = time_tolerance
        self.distance_radius_km = distance_radius_km
        self.window_width = window_width
        self._clock = clock
        self._entries: list[WindowEntry] = []

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> tuple[WindowEntry, ...]:
        """Snapshot of the current entries, oldest first."""
        return tuple(self._entries)

    def prune(self, now: datetime | None = None) -> int:
        """Drop entries admitted more than window_width ago.

        Args:
            now: Current time (defaults to the window's clock)

        Returns:
            Number of entries removed
        """
        now = now or self._clock()
        cutoff = now - self.window_width

        before = len(self._entries)
        self._entries = [e for e in self._entries if e.admitted_at >= cutoff]
        return before - len(self._entries)

    def is_duplicate(
        self,
        candidate: SeismicEvent,
        now: datetime | None = None,
    ) -> bool:
        """Check the candidate against every live entry; first match wins.

        Prunes before scanning.

        Args:
            candidate: Event to check
            now: Current time (defaults to the window's clock)

        Returns:
            True if the candidate matches an admitted event
        """
        self.prune(now)

        return any(
            is_same_event(
                candidate,
                entry.event,
                self.time_tolerance,
                self.distance_radius_km,
            )
            for entry in self._entries
        )

    def admit(
        self,
        candidate: SeismicEvent,
        now: datetime | None = None,
    ) -> WindowEntry:
        """Add the candidate to the window, stamped with the current time.

        Admission does not depend on whether the event is later found in
        durable storage.

        Args:
            candidate: Event to admit
            now: Admission time (defaults to the window's clock)

        Returns:
            The new window entry
        """
        entry = WindowEntry(event=candidate, admitted_at=now or self._clock())
        self._entries.append(entry)
        return entry
