"""Unit tests for gateway routing and the static fallback store."""
from unittest.mock import MagicMock

import pytest

from conftest import TABLE_PREFIX
from processor.models import EventFilters, ImportJob, ScheduledJob
from storage.dynamodb_gateway import DynamoDBGateway
from storage.fallback import FALLBACK_EVENTS, FALLBACK_SOURCES, StaticFallbackGateway
from storage.gateway import (
    ResilientGateway,
    StorageGateway,
    StorageRejectedError,
    StorageUnavailableError,
    create_gateway,
    paginate_events,
)


@pytest.fixture
def primary():
    store = MagicMock(spec=StorageGateway)
    store.is_available.return_value = True
    store.list_sources.return_value = ["from-primary"]
    return store


class TestResilientGateway:
    """Test cases for ResilientGateway routing."""

    def test_available_primary_serves(self, primary):
        """Test calls go to the primary while it is available."""
        gateway = ResilientGateway(primary, StaticFallbackGateway())

        assert gateway.list_sources() == ["from-primary"]
        assert gateway.health() == {
            'status': 'healthy', 'storage': 'MagicMock', 'fallback_mode': False,
        }

    def test_unavailable_primary_falls_back(self, primary):
        """Test an unavailable primary is skipped."""
        primary.is_available.return_value = False
        gateway = ResilientGateway(primary, StaticFallbackGateway())

        assert len(gateway.list_sources()) == len(FALLBACK_SOURCES)
        primary.list_sources.assert_not_called()
        assert gateway.health()['fallback_mode'] is True

    def test_failing_primary_falls_back(self, primary):
        """Test a storage failure during a call is served by the fallback."""
        primary.list_jobs.side_effect = StorageUnavailableError("table gone")
        gateway = ResilientGateway(primary, StaticFallbackGateway())

        assert gateway.list_jobs(5) == []
        primary.list_jobs.assert_called_once_with(5)

    def test_other_errors_propagate(self, primary):
        """Test non-storage errors are not masked by the fallback."""
        primary.event_stats.side_effect = KeyError("bug")
        gateway = ResilientGateway(primary, StaticFallbackGateway())

        with pytest.raises(KeyError):
            gateway.event_stats()

    def test_rejected_write_propagates(self, primary):
        """Test a write the primary refuses is raised rather than discarded."""
        primary.save_job.side_effect = StorageRejectedError("item too large")
        fallback = MagicMock(spec=StorageGateway)
        gateway = ResilientGateway(primary, fallback)

        with pytest.raises(StorageRejectedError):
            gateway.save_job(MagicMock())

        fallback.save_job.assert_not_called()
        assert gateway.is_available() is True

    def test_no_primary(self):
        """Test a gateway without a primary is degraded."""
        gateway = ResilientGateway(None, StaticFallbackGateway())

        assert gateway.is_available() is False
        assert gateway.health() == {
            'status': 'degraded', 'storage': 'fallback', 'fallback_mode': True,
        }
        assert gateway.event_stats()['total_events'] == len(FALLBACK_EVENTS)


class TestCreateGateway:
    """Test cases for create_gateway."""

    def test_empty_prefix_uses_fallback(self):
        """Test storage is disabled without a table prefix."""
        gateway = create_gateway('')
        assert gateway.primary is None
        assert isinstance(gateway.fallback, StaticFallbackGateway)

    def test_prefix_uses_dynamodb(self, dynamodb):
        """Test a table prefix configures DynamoDB storage."""
        gateway = create_gateway(TABLE_PREFIX, dynamodb=dynamodb)

        assert isinstance(gateway.primary, DynamoDBGateway)
        assert gateway.health()['storage'] == 'DynamoDBGateway'


class TestStaticFallbackGateway:
    """Test cases for StaticFallbackGateway."""

    def test_sources(self):
        """Test the static sources cover the catalog with fixed totals."""
        sources = StaticFallbackGateway().list_sources()

        assert len(sources) == 10
        assert sum(source.total_events for source in sources) == 67

    def test_writes_are_discarded(self):
        """Test upserts are echoed back and jobs are not stored."""
        store = StaticFallbackGateway()
        event = FALLBACK_EVENTS[0]

        record, created = store.upsert_event(event)
        job = store.create_job(ImportJob(job_type="multi-source", sources=[],
                                         created_at="2025-08-01T12:00:00Z"))

        assert created is True
        assert record == event
        assert record is not event
        assert 1 <= job.id <= 999999
        assert store.get_job(job.id) is None
        assert store.list_jobs() == []

    def test_find_event(self):
        """Test static events can be found by key."""
        store = StaticFallbackGateway()
        assert store.find_event(FALLBACK_EVENTS[2].event_key).title == "Preschool Story Time"
        assert store.find_event("missing") is None

    def test_list_events(self):
        """Test the static events are filtered and ordered by date."""
        page = StaticFallbackGateway().list_events(EventFilters(department="library"))

        assert [event.title for event in page.events] == ["Preschool Story Time", "Adult Book Club"]

    def test_stats(self):
        """Test stats cover the static events."""
        stats = StaticFallbackGateway().event_stats()

        assert stats['total_events'] == 8
        assert {'name': 'library', 'count': 2} in stats['departments']
        assert stats['last_import'] == "2025-08-01T12:00:00Z"

    def test_default_schedules(self):
        """Test the default jobs are served and changes are not kept."""
        store = StaticFallbackGateway()

        assert [job.id for job in store.list_schedules()] == ["monthly-import", "weekly-import"]
        weekly = store.get_schedule("weekly-import")
        weekly.active = True
        store.save_schedule(weekly)
        store.save_schedule(ScheduledJob(id="nightly", description="Nightly",
                                         schedule="0 3 * * *"))

        assert store.get_schedule("weekly-import").active is False
        assert store.get_schedule("nightly") is None
        assert store.delete_schedule("weekly-import") is True
        assert store.delete_schedule("nightly") is False
        assert len(store.list_schedules()) == 2


def test_paginate_rejects_bad_page():
    """Test page numbers start at one."""
    with pytest.raises(ValueError):
        paginate_events(FALLBACK_EVENTS, EventFilters(), page=0, limit=10)
