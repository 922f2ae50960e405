"""Storage interface for sources, events and import jobs, with fallback handling."""
import logging
from abc import ABC, abstractmethod
from collections import Counter
from typing import Any, Dict, Iterable, List, Optional, Tuple

from processor.models import (
    EventFilters,
    EventPage,
    ImportJob,
    PersistedEvent,
    ScheduledJob,
    SourceDescriptor,
)

logger = logging.getLogger(__name__)


class StorageUnavailableError(Exception):
    """The backing store could not be reached."""


class StorageRejectedError(Exception):
    """The store is reachable but refused a write, for example an oversized item."""


class StorageGateway(ABC):
    """Persistence operations needed by the import pipeline."""

    @abstractmethod
    def is_available(self) -> bool:
        """True when the store can currently serve requests."""

    @abstractmethod
    def seed_sources(self, descriptors: List[SourceDescriptor]) -> None:
        """Register sources that are not stored yet; existing records are left alone."""

    @abstractmethod
    def list_sources(self) -> List[SourceDescriptor]:
        ...

    @abstractmethod
    def record_source_scrape(self, source_id: str, scraped_at: str,
                             total_events: int, imported: int) -> None:
        """Store scrape statistics for a source after an import run."""

    @abstractmethod
    def find_event(self, event_key: str) -> Optional[PersistedEvent]:
        ...

    @abstractmethod
    def upsert_event(self, event: PersistedEvent) -> Tuple[PersistedEvent, bool]:
        """
        Insert an event, or update the stored event with the same logical key.

        Returns:
            Tuple of (stored record, True if it was inserted)
        """

    @abstractmethod
    def list_events(self, filters: EventFilters, page: int = 1, limit: int = 50) -> EventPage:
        ...

    @abstractmethod
    def event_stats(self) -> Dict[str, Any]:
        ...

    @abstractmethod
    def create_job(self, job: ImportJob) -> ImportJob:
        """Persist a new job and assign its id."""

    @abstractmethod
    def save_job(self, job: ImportJob) -> None:
        ...

    @abstractmethod
    def get_job(self, job_id: int) -> Optional[ImportJob]:
        ...

    @abstractmethod
    def list_jobs(self, limit: int = 10) -> List[ImportJob]:
        """Most recent jobs first."""

    @abstractmethod
    def seed_schedules(self, jobs: List[ScheduledJob]) -> None:
        """Register scheduled jobs that are not stored yet; existing records are left alone."""

    @abstractmethod
    def list_schedules(self) -> List[ScheduledJob]:
        ...

    @abstractmethod
    def get_schedule(self, job_id: str) -> Optional[ScheduledJob]:
        ...

    @abstractmethod
    def save_schedule(self, job: ScheduledJob) -> None:
        ...

    @abstractmethod
    def delete_schedule(self, job_id: str) -> bool:
        """Remove a scheduled job; False if it did not exist."""


def paginate_events(events: Iterable[PersistedEvent], filters: EventFilters,
                    page: int, limit: int) -> EventPage:
    """
    Filter, sort by date and time, and slice events into one page.

    Args:
        events: Every stored event
        filters: Listing criteria
        page: 1-based page number
        limit: Page size

    Returns:
        EventPage with the total count of matching events
    """
    if page < 1 or limit < 1:
        raise ValueError(f"Invalid page {page} or limit {limit}")

    matching = sorted(
        (event for event in events if filters.matches(event)),
        key=lambda event: (event.start_date, event.start_time or '', event.title),
    )
    offset = (page - 1) * limit
    return EventPage(events=matching[offset:offset + limit], total=len(matching),
                     page=page, limit=limit)


def _counts(values: Iterable[Optional[str]]) -> List[Dict[str, Any]]:
    counter = Counter(value for value in values if value)
    return [{'name': name, 'count': count} for name, count in sorted(counter.items())]


def summarize_events(events: List[PersistedEvent]) -> Dict[str, Any]:
    """Totals by category, department and source, plus the latest import time."""
    return {
        'total_events': len(events),
        'categories': _counts(event.category for event in events),
        'departments': _counts(event.department for event in events),
        'sources': _counts(event.calendar_source for event in events),
        'last_import': max((event.imported_at for event in events), default=None),
    }


class ResilientGateway(StorageGateway):
    """
    Routes calls to a primary store, falling back when it is unavailable.

    Each call first asks the primary whether it is available; a primary
    that is missing, unavailable, or raises StorageUnavailableError is
    replaced by the fallback for that call. A StorageRejectedError from
    a reachable primary is raised to the caller; the fallback would only
    discard the write.
    """

    def __init__(self, primary: Optional[StorageGateway], fallback: StorageGateway):
        self.primary = primary
        self.fallback = fallback

    def _call(self, operation: str, *args, **kwargs):
        if self.primary is not None:
            try:
                if self.primary.is_available():
                    return getattr(self.primary, operation)(*args, **kwargs)
                logger.warning(f"{operation}: storage unavailable, using fallback")
            except StorageUnavailableError as e:
                logger.warning(f"{operation}: storage operation failed, using fallback: {e}")
        else:
            logger.debug(f"{operation}: no storage configured, using fallback")
        return getattr(self.fallback, operation)(*args, **kwargs)

    def is_available(self) -> bool:
        if self.primary is None:
            return False
        try:
            return self.primary.is_available()
        except StorageUnavailableError:
            return False

    def health(self) -> Dict[str, Any]:
        """Report which backend is serving requests."""
        available = self.is_available()
        return {
            'status': 'healthy' if available else 'degraded',
            'storage': type(self.primary).__name__ if available else 'fallback',
            'fallback_mode': not available,
        }

    def seed_sources(self, descriptors):
        return self._call('seed_sources', descriptors)

    def list_sources(self):
        return self._call('list_sources')

    def record_source_scrape(self, source_id, scraped_at, total_events, imported):
        return self._call('record_source_scrape', source_id, scraped_at, total_events, imported)

    def find_event(self, event_key):
        return self._call('find_event', event_key)

    def upsert_event(self, event):
        return self._call('upsert_event', event)

    def list_events(self, filters, page=1, limit=50):
        return self._call('list_events', filters, page, limit)

    def event_stats(self):
        return self._call('event_stats')

    def create_job(self, job):
        return self._call('create_job', job)

    def save_job(self, job):
        return self._call('save_job', job)

    def get_job(self, job_id):
        return self._call('get_job', job_id)

    def list_jobs(self, limit=10):
        return self._call('list_jobs', limit)

    def seed_schedules(self, jobs):
        return self._call('seed_schedules', jobs)

    def list_schedules(self):
        return self._call('list_schedules')

    def get_schedule(self, job_id):
        return self._call('get_schedule', job_id)

    def save_schedule(self, job):
        return self._call('save_schedule', job)

    def delete_schedule(self, job_id):
        return self._call('delete_schedule', job_id)


def create_gateway(table_prefix: Optional[str], dynamodb=None) -> ResilientGateway:
    """
    Build the gateway used by the pipeline.

    Args:
        table_prefix: Prefix of the DynamoDB tables; empty disables storage
        dynamodb: Optional boto3 DynamoDB resource

    Returns:
        ResilientGateway over DynamoDB, or over nothing when storage is disabled
    """
    from storage.dynamodb_gateway import DynamoDBGateway
    from storage.fallback import StaticFallbackGateway

    fallback = StaticFallbackGateway()
    if not table_prefix:
        logger.warning("No table prefix configured, serving static fallback data")
        return ResilientGateway(None, fallback)

    try:
        primary = DynamoDBGateway(table_prefix, dynamodb=dynamodb)
    except StorageUnavailableError as e:
        logger.warning(f"Could not set up DynamoDB storage, serving static fallback data: {e}")
        return ResilientGateway(None, fallback)
    return ResilientGateway(primary, fallback)
