"""Firestore Client - Imperative Shell.

This module is the persistence gate: an existence check and an
idempotent write per event, keyed by the deterministic id from
core.identity. It also serves the recent-events query for the read API.

Precondition: a single active poller. exists() followed by save() is not
a transaction. save() uses create-if-absent, so a second writer for the
same id is a no-op in the store, but no distributed locking is done.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from google.api_core.exceptions import AlreadyExists
from google.cloud import firestore

from quakewatch.core.event import SeismicEvent


logger = logging.getLogger(__name__)


# Default collection for stored events
DEFAULT_COLLECTION = "earthquakes"

# Number of records returned by fetch_recent by default
DEFAULT_PAGE_SIZE = 100


@dataclass
class FirestoreConfig:
    """Configuration for Firestore client.

    Attributes:
        project_id: GCP project ID (None for default)
        database: Firestore database name (None for default database)
        collection: Firestore collection name
    """
    project_id: str | None = None
    database: str | None = None
    collection: str = DEFAULT_COLLECTION


@dataclass
class LookupResult:
    """Result of an existence check.

    Attributes:
        exists: Whether the record is known to exist
        error: Error message if the store could not be queried
    """
    exists: bool
    error: str | None = None


@dataclass
class SaveResult:
    """Result of a write.

    Attributes:
        success: True only if this call created the record
        already_exists: True if a record with the id was already stored
        error: Error message if the write failed
    """
    success: bool
    already_exists: bool = False
    error: str | None = None


def event_to_document(event: SeismicEvent) -> dict[str, Any]:
    """Build the stored document for an event.

    ingestedAt is assigned by the store, distinct from the event time.
    """
    return {
        "location": event.location,
        "date": event.occurred_at,
        "mag": event.magnitude,
        "source": event.source.value,
        "lat": event.latitude,
        "lng": event.longitude,
        "depth": event.depth_km,
        "ingestedAt": firestore.SERVER_TIMESTAMP,
    }


def document_to_response(data: dict[str, Any]) -> dict[str, Any]:
    """Convert a stored document to the read API's record shape."""
    date = data.get("date")
    if isinstance(date, datetime):
        if date.tzinfo is None:
            date = date.replace(tzinfo=timezone.utc)
        date = date.isoformat()

    return {
        "location": data.get("location"),
        "date": date,
        "mag": data.get("mag"),
        "source": data.get("source"),
        "lat": data.get("lat"),
        "lng": data.get("lng"),
        "depth": data.get("depth"),
    }


class FirestoreClient:
    """Client for persisting events to Firestore.

    This is part of the imperative shell - it handles database I/O.

    Document structure (keyed by event id):
    {
        "location": str, "date": <timestamp>, "mag": float, "source": str,
        "lat": float, "lng": float, "depth": float,
        "ingestedAt": <server timestamp>
    }
    """

    def __init__(
        self,
        config: FirestoreConfig | None = None,
        client: firestore.Client | None = None,
    ) -> None:
        """Initialize Firestore client.

        Args:
            config: Firestore configuration
            client: Pre-built Firestore client (created lazily if not provided)
        """
        self.config = config or FirestoreConfig()
        self._client = client

    @property
    def client(self) -> firestore.Client:
        """Lazy initialization of Firestore client."""
        if self._client is None:
            kwargs = {}
            if self.config.project_id:
                kwargs['project'] = self.config.project_id
            if self.config.database:
                kwargs['database'] = self.config.database
            self._client = firestore.Client(**kwargs)
        return self._client

    def _collection(self) -> Any:
        return self.client.collection(self.config.collection)

    def exists(self, event_id: str) -> LookupResult:
        """Check whether an event is already stored.

        This method performs database I/O. Fails open: if the store cannot
        be reached the event is reported as not existing, accepting a
        possible duplicate write over blocking ingestion.

        Args:
            event_id: Deterministic event id

        Returns:
            LookupResult
        """
        try:
            doc = self._collection().document(event_id).get()
            return LookupResult(exists=bool(doc.exists))

        except Exception as e:
            logger.error("Firestore existence check failed for %s: %s", event_id, str(e))
            return LookupResult(exists=False, error=str(e))

    def save(self, event_id: str, event: SeismicEvent) -> SaveResult:
        """Create the record for an event if it does not exist yet.

        This method performs database I/O. Failures are logged and not
        retried.

        Args:
            event_id: Deterministic event id
            event: Event to store

        Returns:
            SaveResult (success only when this call created the record)
        """
        try:
            self._collection().document(event_id).create(event_to_document(event))
            logger.info("Stored event %s", event_id)
            return SaveResult(success=True)

        except AlreadyExists:
            logger.info("Event %s already stored, write skipped", event_id)
            return SaveResult(success=False, already_exists=True)

        except Exception as e:
            logger.error("Failed to store event %s: %s", event_id, str(e))
            return SaveResult(success=False, error=str(e))

    def fetch_recent(self, limit: int = DEFAULT_PAGE_SIZE) -> list[dict[str, Any]]:
        """Fetch the most recent events ordered by event time, newest first.

        This method performs database I/O. Unlike the ingestion methods it
        raises on failure so the caller can report the outage instead of
        returning partial data.

        Args:
            limit: Maximum number of records

        Returns:
            Records in read API shape

        Raises:
            Exception: Any error raised by the Firestore client
        """
        query = (
            self._collection()
            .order_by("date", direction=firestore.Query.DESCENDING)
            .limit(limit)
        )

        records = [document_to_response(doc.to_dict() or {}) for doc in query.stream()]

        logger.info("Fetched %d recent events from Firestore", len(records))
        return records
