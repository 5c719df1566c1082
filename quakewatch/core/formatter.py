"""Notification policy and message formatting - Pure functions.

Classifies a newly stored event into a severity tier and builds the alert
handed to the push delivery collaborator.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

from quakewatch.core.event import SeismicEvent


CRITICAL_MAGNITUDE = 5.0
WARNING_MAGNITUDE = 3.5

DEFAULT_TOPIC = "all_users"


class SeverityTier(str, Enum):
    """Alert tier derived from magnitude."""
    CRITICAL = "critical"
    WARNING = "warning"
    INFORMATIONAL = "informational"


@dataclass(frozen=True)
class PriorityHint:
    """Delivery priority per platform.

    Attributes:
        priority: Generic priority ("high" or "normal")
        android: Android message priority
        apns: APNs priority header value ("10" immediate, "5" power-saving)
    """
    priority: str
    android: str
    apns: str

    def to_dict(self) -> dict[str, str]:
        return {
            "priority": self.priority,
            "android": self.android,
            "apns": self.apns,
        }


HIGH_PRIORITY = PriorityHint(priority="high", android="high", apns="10")
NORMAL_PRIORITY = PriorityHint(priority="normal", android="normal", apns="5")


@dataclass(frozen=True)
class Alert:
    """Structured alert for the push delivery collaborator.

    Attributes:
        title: Notification title
        body: Notification body
        topic: Delivery topic
        tier: Severity tier the alert was built for
        priority_hint: Per-platform priority
    """
    title: str
    body: str
    topic: str
    tier: SeverityTier
    priority_hint: PriorityHint

    def to_payload(self) -> dict[str, Any]:
        """Hand-off payload: {title, body, topic, priorityHint}."""
        return {
            "title": self.title,
            "body": self.body,
            "topic": self.topic,
            "priorityHint": self.priority_hint.to_dict(),
        }


def get_severity_tier(magnitude: float) -> SeverityTier:
    """Map a magnitude to its severity tier.

    Pure function. Lower bounds are inclusive.
    """
    if magnitude >= CRITICAL_MAGNITUDE:
        return SeverityTier.CRITICAL
    elif magnitude >= WARNING_MAGNITUDE:
        return SeverityTier.WARNING
    else:
        return SeverityTier.INFORMATIONAL


def format_magnitude(magnitude: float) -> str:
    """Format magnitude with one decimal place."""
    return f"{magnitude:.1f}"


def build_alert(event: SeismicEvent, topic: str = DEFAULT_TOPIC) -> Alert:
    """Build the alert for a newly stored event.

    Pure function.

    Args:
        event: The stored event
        topic: Delivery topic

    Returns:
        Alert with title, body and priority for the event's tier
    """
    tier = get_severity_tier(event.magnitude)
    mag = format_magnitude(event.magnitude)

    if tier is SeverityTier.CRITICAL:
        title = "🚨 EMERGENCY: MAJOR EARTHQUAKE!"
        body = (
            f"Serious magnitude {mag} earthquake near {event.location}! "
            "Move to a safe place."
        )
        priority = HIGH_PRIORITY
    elif tier is SeverityTier.WARNING:
        title = "⚠️ Earthquake Warning"
        body = f"{event.location} - Magnitude: {mag}. May be felt."
        priority = NORMAL_PRIORITY
    else:
        title = "Info: Minor Tremor"
        body = f"{event.location} - {mag}. No cause for concern."
        priority = NORMAL_PRIORITY

    return Alert(
        title=title,
        body=body,
        topic=topic,
        tier=tier,
        priority_hint=priority,
    )


def format_event_summary(event: SeismicEvent) -> str:
    """Format a one-line summary of an event for logs.

    Pure function.
    """
    return (
        f"[{event.source.value}] M{format_magnitude(event.magnitude)} "
        f"{event.location} at {event.occurred_at.strftime('%Y-%m-%d %H:%M:%S UTC')} "
        f"({event.latitude:.4f}, {event.longitude:.4f}, {event.depth_km:.1f} km)"
    )
