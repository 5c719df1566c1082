"""Tests for the Orchestrator module.

Tests the coordination between functional core and imperative shell.
Uses mocks for shell components to test orchestration logic.
"""

import pytest
import requests
import responses
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

from google.api_core.exceptions import AlreadyExists

from quakewatch.core.config import Config, FeedConfig, PushConfig
from quakewatch.core.dedup import DedupWindow
from quakewatch.core.event import SeismicEvent, Source
from quakewatch.orchestrator import EventOutcome, Orchestrator, TickResult
from quakewatch.shell.feed_client import FeedClient, FeedResponse
from quakewatch.shell.firestore_client import FirestoreClient, LookupResult, SaveResult
from quakewatch.shell.push_client import PushResponse


KANDILLI_URL = "https://kandilli.example/live"
USGS_URL = "https://usgs.example/day.geojson"
EMSC_URL = "https://emsc.example/query"

NOW = datetime(2024, 1, 1, 12, 5, tzinfo=timezone.utc)


@pytest.fixture
def config():
    """Config with three feeds at test URLs."""
    return Config(
        feeds=[
            FeedConfig(Source.KANDILLI, KANDILLI_URL),
            FeedConfig(Source.USGS, USGS_URL),
            FeedConfig(Source.EMSC, EMSC_URL),
        ],
        push=PushConfig(project_id="demo"),
    )


@pytest.fixture
def kandilli_payload():
    """Kandilli report of the quake, in Turkey local time."""
    return {
        "result": [{
            "title": "AKHISAR (MANISA)",
            "mag": 4.2,
            "depth": 7.0,
            "date_time": "2024-01-01 15:00:00",
            "geojson": {"coordinates": [27.0, 38.0]},
        }]
    }


@pytest.fixture
def usgs_payload():
    """USGS report of the same quake, 90 s later and ~0.5 km away."""
    return {
        "features": [{
            "properties": {
                "mag": 4.1,
                "place": "5 km S of Akhisar, Turkey",
                "time": 1704110490000,
            },
            "geometry": {"coordinates": [27.004, 38.003, -10]},
        }]
    }


@pytest.fixture
def mock_store():
    """Firestore client with nothing stored and writes succeeding."""
    store = Mock(spec=FirestoreClient)
    store.exists.return_value = LookupResult(exists=False)
    store.save.return_value = SaveResult(success=True)
    return store


@pytest.fixture
def mock_push():
    push = Mock()
    push.send.return_value = PushResponse(success=True, status_code=200)
    return push


def make_event(location="AKHISAR (MANISA)", magnitude=4.2, minutes=0, latitude=38.0):
    return SeismicEvent(
        source=Source.KANDILLI,
        location=location,
        magnitude=magnitude,
        occurred_at=datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc) + timedelta(minutes=minutes),
        latitude=latitude,
        longitude=27.0,
        depth_km=7.0,
    )


def feed_client_for(payloads):
    """Mock FeedClient returning a payload (or FeedResponse) per URL."""
    def fetch(url):
        value = payloads.get(url, {"features": []})
        if isinstance(value, FeedResponse):
            return value
        return FeedResponse(success=True, data=value, status_code=200)

    client = Mock(spec=FeedClient)
    client.fetch_json.side_effect = fetch
    return client


class FakeFirestore:
    """Minimal stand-in for firestore.Client with create-if-absent documents."""

    def __init__(self):
        self.store = {}

    def collection(self, name):
        return self

    def document(self, doc_id):
        fake = self

        class Document:
            def get(self):
                return Mock(exists=doc_id in fake.store)

            def create(self, data):
                if doc_id in fake.store:
                    raise AlreadyExists(doc_id)
                fake.store[doc_id] = data

        return Document()


class TestTickResult:
    """Tests for TickResult properties."""

    def test_empty_result_is_success(self):
        result = TickResult()
        assert result.success
        assert result.events_fetched == 0
        assert result.to_dict()["status"] == "success"

    def test_errors_mark_partial_failure(self):
        result = TickResult(errors=["USGS: HTTP 500"])
        assert not result.success
        assert result.to_dict()["status"] == "partial_failure"


class TestProcessEvent:
    """Tests for the sequential per-event pipeline."""

    def test_injected_empty_window_is_used(self, config, mock_store, mock_push):
        window = DedupWindow(clock=lambda: NOW)

        orchestrator = Orchestrator(
            config,
            firestore_client=mock_store,
            push_client=mock_push,
            dedup_window=window,
        )
        orchestrator.process_event(make_event(), [])

        assert orchestrator.dedup_window is window
        assert window.entries[0].admitted_at == NOW

    def test_new_event_is_saved_and_alerted(self, config, mock_store, mock_push):
        orchestrator = Orchestrator(config, firestore_client=mock_store, push_client=mock_push)
        errors = []

        result = orchestrator.process_event(make_event(), errors)

        assert result.outcome == EventOutcome.SAVED
        assert result.event_id.endswith("_akhisar__manisa__38.0000_27.0000")
        mock_store.save.assert_called_once_with(result.event_id, make_event())
        mock_push.send.assert_called_once()
        assert result.alert.success
        assert errors == []

    def test_duplicate_skips_persistence(self, config, mock_store, mock_push):
        orchestrator = Orchestrator(config, firestore_client=mock_store, push_client=mock_push)
        orchestrator.process_event(make_event(), [])
        mock_store.reset_mock()
        mock_push.reset_mock()

        result = orchestrator.process_event(make_event(minutes=1, latitude=38.01), [])

        assert result.outcome == EventOutcome.DUPLICATE
        assert result.event_id is None
        mock_store.exists.assert_not_called()
        mock_store.save.assert_not_called()
        mock_push.send.assert_not_called()

    def test_already_stored_is_not_alerted(self, config, mock_store, mock_push):
        mock_store.exists.return_value = LookupResult(exists=True)
        orchestrator = Orchestrator(config, firestore_client=mock_store, push_client=mock_push)

        result = orchestrator.process_event(make_event(), [])

        assert result.outcome == EventOutcome.ALREADY_STORED
        mock_store.save.assert_not_called()
        mock_push.send.assert_not_called()

    def test_stored_event_still_enters_window(self, config, mock_store, mock_push):
        """Admission happens before the persistence check."""
        mock_store.exists.return_value = LookupResult(exists=True)
        orchestrator = Orchestrator(config, firestore_client=mock_store, push_client=mock_push)

        orchestrator.process_event(make_event(), [])

        assert len(orchestrator.dedup_window) == 1

    def test_lost_create_race_is_not_alerted(self, config, mock_store, mock_push):
        mock_store.save.return_value = SaveResult(success=False, already_exists=True)
        orchestrator = Orchestrator(config, firestore_client=mock_store, push_client=mock_push)

        result = orchestrator.process_event(make_event(), [])

        assert result.outcome == EventOutcome.ALREADY_STORED
        mock_push.send.assert_not_called()

    def test_failed_save_is_recorded_and_not_alerted(self, config, mock_store, mock_push):
        mock_store.save.return_value = SaveResult(success=False, error="unavailable")
        orchestrator = Orchestrator(config, firestore_client=mock_store, push_client=mock_push)
        errors = []

        result = orchestrator.process_event(make_event(), errors)

        assert result.outcome == EventOutcome.SAVE_FAILED
        assert len(errors) == 1
        assert "unavailable" in errors[0]
        mock_push.send.assert_not_called()

    def test_lookup_failure_fails_open(self, config, mock_store, mock_push):
        mock_store.exists.return_value = LookupResult(exists=False, error="timeout")
        orchestrator = Orchestrator(config, firestore_client=mock_store, push_client=mock_push)
        errors = []

        result = orchestrator.process_event(make_event(), errors)

        assert result.outcome == EventOutcome.SAVED
        assert "timeout" in errors[0]
        mock_store.save.assert_called_once()

    def test_push_disabled(self, config, mock_store, mock_push):
        config.push.enabled = False
        orchestrator = Orchestrator(config, firestore_client=mock_store, push_client=mock_push)

        result = orchestrator.process_event(make_event(), [])

        assert result.outcome == EventOutcome.SAVED
        assert result.alert is None
        mock_push.send.assert_not_called()

    def test_push_failure_does_not_change_outcome(self, config, mock_store, mock_push):
        mock_push.send.return_value = PushResponse(success=False, error="403")
        orchestrator = Orchestrator(config, firestore_client=mock_store, push_client=mock_push)
        errors = []

        result = orchestrator.process_event(make_event(), errors)

        assert result.outcome == EventOutcome.SAVED
        assert result.alert.success is False
        assert errors == []

    def test_alert_uses_configured_topic(self, config, mock_store, mock_push):
        config.push.topic = "turkey"
        orchestrator = Orchestrator(config, firestore_client=mock_store, push_client=mock_push)

        orchestrator.process_event(make_event(), [])

        alert = mock_push.send.call_args[0][0]
        assert alert.topic == "turkey"


class TestProcess:
    """Tests for a full tick."""

    def test_cross_feed_duplicate_saved_once(
        self, config, kandilli_payload, usgs_payload, mock_store, mock_push
    ):
        """Same quake in two feeds: one write, one alert."""
        feed_client = feed_client_for({
            KANDILLI_URL: kandilli_payload,
            USGS_URL: usgs_payload,
        })
        orchestrator = Orchestrator(
            config,
            feed_client=feed_client,
            firestore_client=mock_store,
            push_client=mock_push,
        )

        result = orchestrator.process()

        assert result.events_fetched == 2
        assert result.saved == 1
        assert result.duplicates == 1
        assert mock_store.save.call_count == 1
        assert mock_push.send.call_count == 1
        # Feed order decides which report wins
        assert mock_store.save.call_args[0][1].source == Source.KANDILLI
        assert result.success

    def test_events_processed_in_feed_order(self, config, mock_store, mock_push):
        feed_client = feed_client_for({
            KANDILLI_URL: {"result": [{"title": "A", "date_time": "2024-01-01T10:00:00Z",
                                       "geojson": {"coordinates": [10, 10]}}]},
            USGS_URL: {"features": [{"properties": {"place": "B", "time": 1704103200000},
                                     "geometry": {"coordinates": [20, 20]}}]},
            EMSC_URL: {"features": [{"properties": {"flynn_region": "C",
                                                    "time": "2024-01-01T12:00:00Z"},
                                     "geometry": {"coordinates": [30, 30]}}]},
        })
        orchestrator = Orchestrator(
            config,
            feed_client=feed_client,
            firestore_client=mock_store,
            push_client=mock_push,
        )

        result = orchestrator.process()

        assert [r.event.location for r in result.events] == ["A", "B", "C"]
        assert [f.source for f in result.feeds] == [Source.KANDILLI, Source.USGS, Source.EMSC]

    def test_failed_feed_does_not_block_others(self, config, usgs_payload, mock_store, mock_push):
        feed_client = feed_client_for({
            KANDILLI_URL: FeedResponse(success=False, error="Request timed out"),
            USGS_URL: usgs_payload,
            EMSC_URL: {"unexpected": True},
        })
        orchestrator = Orchestrator(
            config,
            feed_client=feed_client,
            firestore_client=mock_store,
            push_client=mock_push,
        )

        result = orchestrator.process()

        assert result.saved == 1
        assert not result.success
        assert result.errors[0] == "Kandilli: Request timed out"
        assert result.errors[1].startswith("EMSC:")
        assert result.feeds[1].success

    def test_unexpected_fetch_exception_is_contained(self, config, usgs_payload, mock_store, mock_push):
        feed_client = feed_client_for({USGS_URL: usgs_payload})
        original = feed_client.fetch_json.side_effect

        def fetch(url):
            if url == KANDILLI_URL:
                raise RuntimeError("boom")
            return original(url)

        feed_client.fetch_json.side_effect = fetch
        orchestrator = Orchestrator(
            config,
            feed_client=feed_client,
            firestore_client=mock_store,
            push_client=mock_push,
        )

        result = orchestrator.process()

        assert result.feeds[0].error == "boom"
        assert result.saved == 1

    def test_no_data_from_any_feed(self, config, mock_store, mock_push):
        feed_client = feed_client_for({
            url: FeedResponse(success=False, error="HTTP 500")
            for url in (KANDILLI_URL, USGS_URL, EMSC_URL)
        })
        orchestrator = Orchestrator(
            config,
            feed_client=feed_client,
            firestore_client=mock_store,
            push_client=mock_push,
        )

        result = orchestrator.process()

        assert result.events == []
        assert len(result.errors) == 3
        mock_store.exists.assert_not_called()

    def test_disabled_feed_is_not_fetched(self, config, mock_store, mock_push):
        config.feeds[2] = FeedConfig(Source.EMSC, EMSC_URL, enabled=False)
        feed_client = feed_client_for({})
        orchestrator = Orchestrator(
            config,
            feed_client=feed_client,
            firestore_client=mock_store,
            push_client=mock_push,
        )

        result = orchestrator.process()

        urls = [c[0][0] for c in feed_client.fetch_json.call_args_list]
        assert EMSC_URL not in urls
        assert len(result.feeds) == 2

    def test_second_tick_does_not_rewrite(self, config, kandilli_payload, mock_push):
        """Re-fetching the same data after the window expires hits the stored record."""
        now = [NOW]
        window = DedupWindow(clock=lambda: now[0])
        orchestrator = Orchestrator(
            config,
            feed_client=feed_client_for({KANDILLI_URL: kandilli_payload}),
            firestore_client=FirestoreClient(client=FakeFirestore()),
            push_client=mock_push,
            dedup_window=window,
        )

        first = orchestrator.process()
        now[0] = NOW + timedelta(minutes=10)
        second = orchestrator.process()

        assert first.saved == 1
        assert second.saved == 0
        assert second.already_stored == 1
        assert mock_push.send.call_count == 1


class TestProcessOverHttp:
    """Full tick with HTTP mocked by `responses`."""

    @responses.activate
    def test_partial_feed_failure(self, config, mock_push):
        responses.add(
            responses.GET,
            KANDILLI_URL,
            body=requests.exceptions.ReadTimeout("read timed out"),
        )
        responses.add(
            responses.GET,
            USGS_URL,
            json={"features": [
                {
                    "properties": {"mag": 3.0, "place": "Near Coast", "time": 1704096000000 + i * 3600000},
                    "geometry": {"coordinates": [27.0, 38.0, 5.0]},
                }
                for i in range(3)
            ]},
            status=200,
        )
        responses.add(responses.GET, EMSC_URL, body="{not json", status=200)

        fake = FakeFirestore()
        orchestrator = Orchestrator(
            config,
            feed_client=FeedClient(timeout=1),
            firestore_client=FirestoreClient(client=fake),
            push_client=mock_push,
        )

        result = orchestrator.process()

        assert result.saved == 3
        assert len(fake.store) == 3
        assert mock_push.send.call_count == 3
        assert result.feeds[0].error == "Request timed out"
        assert result.feeds[2].error.startswith("Invalid JSON")
