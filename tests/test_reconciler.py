"""Unit tests for ImportReconciler."""
import asyncio
import json

import pytest
import responses

from conftest import TABLE_PREFIX
from processor.models import CalendarSource, EventFilters, JobStatus, SourceOutcome
from processor.reconciler import ImportReconciler
from scraper.coordinator import MultiSourceCoordinator
from scraper.errors import UnknownSourceError
from storage.dynamodb_gateway import DynamoDBGateway
from storage.fallback import StaticFallbackGateway
from storage.gateway import ResilientGateway

TOWN_AUGUST_URL = "https://www.wayland.ma.us/calendar/month/2025-08"


class FlakyGateway(StaticFallbackGateway):
    """Fallback store that rejects one event by title."""

    def __init__(self, bad_title):
        self.bad_title = bad_title

    def upsert_event(self, event):
        if event.title == self.bad_title:
            raise RuntimeError("write rejected")
        return super().upsert_event(event)


class BrokenCoordinator(MultiSourceCoordinator):
    """Coordinator that fails after validation."""

    async def iter_outcomes(self, sources, window):
        raise RuntimeError("event loop exploded")
        yield  # pragma: no cover


class DroppedConnectionCoordinator(MultiSourceCoordinator):
    """Coordinator that loses its connection after two sources report."""

    async def iter_outcomes(self, sources, window):
        yield await self._run_one(CalendarSource.WAYLAND_TOWN, window)
        yield SourceOutcome(CalendarSource.PATCH_COMMUNITY,
                            error="Failed to scrape patch-community: boom")
        raise RuntimeError("lost connection")


class StalledCoordinator(MultiSourceCoordinator):
    """Coordinator that stalls forever after the first source reports."""

    def __init__(self, fetcher):
        super().__init__(fetcher)
        self.stalled = asyncio.Event()

    async def iter_outcomes(self, sources, window):
        yield await self._run_one(CalendarSource.WAYLAND_TOWN, window)
        self.stalled.set()
        await asyncio.Event().wait()


@pytest.fixture
def gateway(dynamodb):
    return ResilientGateway(DynamoDBGateway(TABLE_PREFIX, dynamodb=dynamodb),
                            StaticFallbackGateway())


@pytest.fixture
def blocked_town(mocked_responses):
    mocked_responses.add(responses.GET, TOWN_AUGUST_URL, status=403)
    return mocked_responses


@pytest.fixture
def reconciler(gateway, fetcher, clock):
    return ImportReconciler(gateway, MultiSourceCoordinator(fetcher), clock=clock)


class TestImportSources:
    """Test cases for ImportReconciler.import_sources."""

    async def test_blocked_source_imports_samples(self, reconciler, blocked_town, august_window):
        """Test a blocked source still completes with its sample events."""
        outcome = await reconciler.import_sources(["wayland-town"], window=august_window)

        job = outcome.job
        assert job.status == JobStatus.COMPLETED
        assert job.id == 1
        assert job.total_events == 3
        assert job.successful_imports == 3
        assert job.errors == []
        assert any("no live events found" in warning.lower() for warning in job.warnings)
        assert reconciler.list_events().total == 3
        assert reconciler.get_job(1).status == JobStatus.COMPLETED

    async def test_repeated_import_is_idempotent(self, reconciler, blocked_town, august_window):
        """Test importing the same events twice updates rather than duplicates."""
        first = await reconciler.import_sources(["wayland-town"], window=august_window)
        ids_before = sorted(event.id for event in reconciler.list_events().events)

        second = await reconciler.import_sources(["wayland-town"], window=august_window)

        events = reconciler.list_events().events
        assert len(events) == 3
        assert sorted(event.id for event in events) == ids_before
        assert second.job_id == first.job_id + 1
        assert second.job.successful_imports == 3

    async def test_source_statistics_accumulate(self, reconciler, blocked_town, august_window):
        """Test each run adds its imports to the source record."""
        await reconciler.import_sources(["wayland-town"], window=august_window)
        await reconciler.import_sources(["wayland-town"], window=august_window)

        town = next(s for s in reconciler.list_sources() if s.id.value == "wayland-town")
        assert town.total_events == 3
        assert town.successful_imports == 6
        assert town.last_scraped is not None

    async def test_progress_reported_per_source(self, reconciler, blocked_town, august_window):
        """Test one progress report arrives per source, counting up."""
        reports = []

        await reconciler.import_sources(["wayland-town", "tcan-events", "patch-community"],
                                        progress_callback=reports.append, window=august_window)

        assert [report.processed for report in reports] == [1, 2, 3]
        assert all(report.total == 3 for report in reports)
        assert {report.current_source for report in reports} == {
            "wayland-town", "tcan-events", "patch-community",
        }
        assert all(report.status.startswith("Imported") for report in reports)

    async def test_failing_callback_is_ignored(self, reconciler, blocked_town, august_window):
        """Test an exception in the progress callback does not stop the import."""
        def callback(progress):
            raise RuntimeError("client went away")

        outcome = await reconciler.import_sources(["wayland-town"], progress_callback=callback,
                                                  window=august_window)

        assert outcome.job.status == JobStatus.COMPLETED
        assert outcome.job.successful_imports == 3

    async def test_unknown_source_records_nothing(self, reconciler, gateway, august_window):
        """Test an invalid source is rejected before any job is created."""
        with pytest.raises(UnknownSourceError):
            await reconciler.import_sources(["wayland-town", "nowhere"], window=august_window)

        assert gateway.list_jobs() == []

    async def test_fallback_storage(self, fetcher, clock, blocked_town, august_window):
        """Test imports run without storage and get a synthetic job id."""
        reconciler = ImportReconciler(ResilientGateway(None, StaticFallbackGateway()),
                                      MultiSourceCoordinator(fetcher), clock=clock)

        outcome = await reconciler.import_sources(["wayland-town"], window=august_window)

        assert outcome.job.status == JobStatus.COMPLETED
        assert 1 <= outcome.job_id <= 999999
        assert outcome.job.successful_imports == 3

    async def test_event_failure_is_recorded(self, fetcher, clock, blocked_town, august_window):
        """Test one event failing to store is a job error, not a job failure."""
        reconciler = ImportReconciler(FlakyGateway("Board of Selectmen Meeting"),
                                      MultiSourceCoordinator(fetcher), clock=clock)

        outcome = await reconciler.import_sources(["wayland-town"], window=august_window)

        job = outcome.job
        assert job.status == JobStatus.COMPLETED
        assert job.total_events == 3
        assert job.successful_imports == 2
        assert job.errors == [
            'Failed to import event "Board of Selectmen Meeting" from wayland-town: write rejected'
        ]

    async def test_unexpected_failure_fails_job(self, gateway, fetcher, clock, august_window):
        """Test an error outside per-source handling marks the job failed and re-raises."""
        reconciler = ImportReconciler(gateway, BrokenCoordinator(fetcher), clock=clock)

        with pytest.raises(RuntimeError):
            await reconciler.import_sources(["wayland-town"], window=august_window)

        job = gateway.get_job(1)
        assert job.status == JobStatus.FAILED
        assert job.errors == ["Import failed: event loop exploded"]

    async def test_failure_keeps_partial_results(self, gateway, fetcher, clock,
                                                 blocked_town, august_window):
        """Test a failed job keeps the imports and errors recorded before the failure."""
        reconciler = ImportReconciler(gateway, DroppedConnectionCoordinator(fetcher), clock=clock)

        with pytest.raises(RuntimeError):
            await reconciler.import_sources(["wayland-town", "patch-community"],
                                            window=august_window)

        job = gateway.get_job(1)
        assert job.status == JobStatus.FAILED
        assert job.errors == [
            "Failed to scrape patch-community: boom",
            "Import failed: lost connection",
        ]
        assert any("no live events found" in warning.lower() for warning in job.warnings)
        assert job.total_events == 3
        assert job.successful_imports == 3
        results = json.loads(job.results)
        assert results['total_sources'] == 2
        assert results['global_errors'] == ["Failed to scrape patch-community: boom"]
        assert [entry['source'] for entry in results['results']] == ["wayland-town"]

    async def test_cancelled_import_fails_job(self, gateway, fetcher, clock,
                                              blocked_town, august_window):
        """Test cancelling a running import records it as failed and re-raises."""
        coordinator = StalledCoordinator(fetcher)
        reconciler = ImportReconciler(gateway, coordinator, clock=clock)
        task = asyncio.ensure_future(
            reconciler.import_sources(["wayland-town", "tcan-events"], window=august_window)
        )
        await coordinator.stalled.wait()

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        job = gateway.get_job(1)
        assert job.status == JobStatus.FAILED
        assert job.completed_at is not None
        assert job.errors == ["Import failed: import was cancelled"]
        assert job.successful_imports == 3


class TestQueries:
    """Test cases for the reconciler's read operations."""

    def test_list_sources_seeds_empty_store(self, reconciler):
        """Test listing sources registers the catalog on first use."""
        sources = reconciler.list_sources()

        assert len(sources) == 10
        assert len(reconciler.active_source_ids()) == 10

    async def test_list_events_with_filters(self, reconciler, blocked_town, august_window):
        """Test event listing applies filters."""
        await reconciler.import_sources(["wayland-town", "tcan-events"], window=august_window)

        page = reconciler.list_events(EventFilters(calendar_source="tcan-events"))

        assert page.total == 2
        assert all(event.calendar_source == "tcan-events" for event in page.events)
        assert reconciler.event_stats()['total_events'] == 5
        assert [job.id for job in reconciler.list_jobs()] == [1]
