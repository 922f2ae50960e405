"""Static data served when no backing store is available."""
import logging
import random
from dataclasses import replace
from typing import Any, Dict, List, Optional, Tuple

from processor.models import (
    DEFAULT_SCHEDULES,
    CalendarSource,
    EventFilters,
    EventPage,
    ImportJob,
    PersistedEvent,
    ScheduledJob,
    SourceDescriptor,
    logical_key,
)
from scraper.sources import descriptor_for
from storage.gateway import StorageGateway, paginate_events, summarize_events

logger = logging.getLogger(__name__)

FALLBACK_TIMESTAMP = "2025-08-01T12:00:00Z"

_FALLBACK_TOTALS = {
    CalendarSource.WAYLAND_TOWN: 8,
    CalendarSource.TCAN_EVENTS: 12,
    CalendarSource.PATCH_COMMUNITY: 3,
    CalendarSource.WAYLAND_HIGH_SCHOOL: 3,
    CalendarSource.WAYLAND_WCPA: 5,
    CalendarSource.TOWN_PLANNER: 4,
    CalendarSource.ARTS_WAYLAND: 7,
    CalendarSource.WAYLAND_HIGH_ATHLETICS: 15,
    CalendarSource.WAYLAND_MIDDLE_ATHLETICS: 4,
    CalendarSource.WAYLAND_LIBRARY: 6,
}

FALLBACK_SOURCES: List[SourceDescriptor] = sorted(
    (
        replace(descriptor_for(source, FALLBACK_TIMESTAMP), total_events=total)
        for source, total in _FALLBACK_TOTALS.items()
    ),
    key=lambda source: source.display_name,
)


def _event(event_id: int, source: CalendarSource, title: str, start_date: str,
           start_time: Optional[str], category: str, department: str,
           location: str, organizer_name: str, description: str) -> PersistedEvent:
    return PersistedEvent(
        event_key=logical_key(title, start_date, source.value),
        id=event_id,
        title=title,
        description=description,
        start_date=start_date,
        start_time=start_time,
        is_all_day=start_time is None,
        calendar_source=source.value,
        category=category,
        department=department,
        location=location,
        venue=location,
        organizer_name=organizer_name,
        imported_at=FALLBACK_TIMESTAMP,
        updated_at=FALLBACK_TIMESTAMP,
    )


FALLBACK_EVENTS: List[PersistedEvent] = [
    _event(1, CalendarSource.WAYLAND_TOWN, "Board of Selectmen Meeting", "2025-08-05", "19:00",
           "meeting", "selectmen", "Wayland Town Building - Selectmen's Room",
           "Town of Wayland", "Regular meeting of the Board of Selectmen"),
    _event(2, CalendarSource.TCAN_EVENTS, "Live Music at TCAN", "2025-08-08", "20:00",
           "performance", "arts", "TCAN Main Stage",
           "The Center for Arts in Natick", "Evening concert on the TCAN main stage"),
    _event(3, CalendarSource.WAYLAND_LIBRARY, "Preschool Story Time", "2025-08-06", "10:30",
           "children", "library", "Wayland Free Public Library - Children's Room",
           "Wayland Free Public Library", "Stories and songs for children ages 2-5"),
    _event(4, CalendarSource.WAYLAND_HIGH_ATHLETICS, "Varsity Soccer vs. Weston", "2025-08-29",
           "16:00", "soccer", "athletics", "Wayland High School Field",
           "Wayland High Athletics", "Varsity soccer home game"),
    _event(5, CalendarSource.ARTS_WAYLAND, "Members Art Exhibit", "2025-08-14", None,
           "arts", "arts", "The Arts Wayland Gallery in Town Center",
           "Arts Wayland", "Members exhibition at The Arts Wayland Gallery"),
    _event(6, CalendarSource.WAYLAND_WCPA, "Family Fun Day", "2025-08-16", "10:00",
           "family", "recreation", "Wayland Town Beach",
           "Wayland WCPA", "Games and activities for Wayland families"),
    _event(7, CalendarSource.WAYLAND_LIBRARY, "Adult Book Club", "2025-08-20", "19:00",
           "literature", "library", "Wayland Free Public Library",
           "Wayland Free Public Library", "Monthly book discussion group"),
    _event(8, CalendarSource.PATCH_COMMUNITY, "Wayland Farmers Market", "2025-08-10", "14:00",
           "market", "community", "Wayland Town Center",
           "Wayland Farmers Market", "Local farms and vendors at the Town Center"),
]


class StaticFallbackGateway(StorageGateway):
    """
    Read-only stand-in for the store.

    Reads serve fixed datasets; writes are accepted and discarded.
    """

    def is_available(self) -> bool:
        return True

    def seed_sources(self, descriptors: List[SourceDescriptor]) -> None:
        logger.debug(f"Fallback storage: not seeding {len(descriptors)} sources")

    def list_sources(self) -> List[SourceDescriptor]:
        return [replace(source) for source in FALLBACK_SOURCES]

    def record_source_scrape(self, source_id: str, scraped_at: str,
                             total_events: int, imported: int) -> None:
        logger.debug(f"Fallback storage: discarding scrape statistics for {source_id}")

    def find_event(self, event_key: str) -> Optional[PersistedEvent]:
        for event in FALLBACK_EVENTS:
            if event.event_key == event_key:
                return replace(event)
        return None

    def upsert_event(self, event: PersistedEvent) -> Tuple[PersistedEvent, bool]:
        return replace(event), True

    def list_events(self, filters: EventFilters, page: int = 1, limit: int = 50) -> EventPage:
        return paginate_events(FALLBACK_EVENTS, filters, page, limit)

    def event_stats(self) -> Dict[str, Any]:
        return summarize_events(FALLBACK_EVENTS)

    def create_job(self, job: ImportJob) -> ImportJob:
        job.id = random.randint(1, 999999)
        logger.warning(f"Fallback storage: import job given synthetic id {job.id}")
        return job

    def save_job(self, job: ImportJob) -> None:
        logger.debug(f"Fallback storage: discarding state of import job {job.id}")

    def get_job(self, job_id: int) -> Optional[ImportJob]:
        return None

    def list_jobs(self, limit: int = 10) -> List[ImportJob]:
        return []

    def seed_schedules(self, jobs: List[ScheduledJob]) -> None:
        logger.debug(f"Fallback storage: not seeding {len(jobs)} scheduled jobs")

    def list_schedules(self) -> List[ScheduledJob]:
        return [ScheduledJob.from_dict(job.to_dict()) for job in DEFAULT_SCHEDULES]

    def get_schedule(self, job_id: str) -> Optional[ScheduledJob]:
        for job in self.list_schedules():
            if job.id == job_id:
                return job
        return None

    def save_schedule(self, job: ScheduledJob) -> None:
        logger.warning(f"Fallback storage: changes to scheduled job {job.id} are not kept")

    def delete_schedule(self, job_id: str) -> bool:
        logger.warning(f"Fallback storage: not deleting scheduled job {job_id}")
        return self.get_schedule(job_id) is not None
