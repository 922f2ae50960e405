"""Data models for scraping, reconciliation and import jobs."""
import hashlib
import json
from dataclasses import asdict, dataclass, field, fields
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple


class CalendarSource(str, Enum):
    """Closed set of calendars the scraper knows how to read."""
    WAYLAND_TOWN = "wayland-town"
    TCAN_EVENTS = "tcan-events"
    PATCH_COMMUNITY = "patch-community"
    WAYLAND_HIGH_SCHOOL = "wayland-high-school"
    WAYLAND_WCPA = "wayland-wcpa"
    TOWN_PLANNER = "town-planner"
    ARTS_WAYLAND = "arts-wayland"
    WAYLAND_HIGH_ATHLETICS = "wayland-high-athletics"
    WAYLAND_MIDDLE_ATHLETICS = "wayland-middle-athletics"
    WAYLAND_LIBRARY = "wayland-library"


class VerificationStatus(str, Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    STALE = "stale"
    REMOVED = "removed"


class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_JOB_STATUSES = (JobStatus.COMPLETED, JobStatus.FAILED)


def utc_now_iso() -> str:
    """Current UTC time as an ISO 8601 string."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass(frozen=True)
class DateWindow:
    """Inclusive range of calendar dates targeted by an import."""
    start: date
    end: date

    def __post_init__(self):
        if self.end < self.start:
            raise ValueError(
                f"Window end {self.end.isoformat()} is before start {self.start.isoformat()}"
            )

    @classmethod
    def default(cls, days_ahead: int = 90, today: Optional[date] = None) -> "DateWindow":
        """
        Build the default window of today through today + days_ahead.

        Args:
            days_ahead: Number of days after today to include
            today: Override for the current date (used in tests)

        Returns:
            DateWindow instance
        """
        start = today or date.today()
        return cls(start=start, end=start + timedelta(days=days_ahead))

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    def months(self) -> List[Tuple[int, int]]:
        """Distinct (year, month) pairs touched by the window, in window order."""
        months = []
        year, month = self.start.year, self.start.month
        while (year, month) <= (self.end.year, self.end.month):
            months.append((year, month))
            month += 1
            if month > 12:
                year, month = year + 1, 1
        return months

    def to_dict(self) -> Dict[str, str]:
        return {'start': self.start.isoformat(), 'end': self.end.isoformat()}


@dataclass
class CandidateEvent:
    """Event extracted from markup, before reconciliation against storage."""
    title: str
    start_date: date
    calendar_source: CalendarSource
    description: Optional[str] = None
    start_time: Optional[str] = None
    end_date: Optional[date] = None
    end_time: Optional[str] = None
    is_all_day: bool = True
    location: Optional[str] = None
    venue: Optional[str] = None
    category: Optional[str] = None
    department: Optional[str] = None
    url: Optional[str] = None
    original_id: Optional[str] = None
    organizer_name: Optional[str] = None
    image_url: Optional[str] = None
    tags: List[str] = field(default_factory=list)

    def dedupe_key(self) -> Tuple[str, str, str]:
        return (self.title, self.start_date.isoformat(), self.start_time or "no-time")

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['start_date'] = self.start_date.isoformat()
        data['end_date'] = self.end_date.isoformat() if self.end_date else None
        data['calendar_source'] = self.calendar_source.value
        return data


@dataclass
class SourceDescriptor:
    """Registered calendar source and its scrape bookkeeping."""
    id: CalendarSource
    display_name: str
    url: str
    base_url: str
    description: str = ""
    is_active: bool = True
    last_scraped: Optional[str] = None
    total_events: int = 0
    successful_imports: int = 0
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['id'] = self.id.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SourceDescriptor":
        values = _known_fields(cls, data)
        values['id'] = CalendarSource(values['id'])
        return cls(**values)


def _known_fields(cls, data: Dict[str, Any]) -> Dict[str, Any]:
    """Subset of data that names fields of the dataclass cls."""
    names = {f.name for f in fields(cls)}
    return {key: value for key, value in data.items() if key in names}


def logical_key(title: str, start_date: str, calendar_source: str) -> str:
    """
    Generate the identity of a logical event from title + start date + source.

    Two candidates with the same tuple are the same event and are updated
    in place rather than inserted twice.

    Args:
        title: Event title
        start_date: Event date (ISO 8601 format)
        calendar_source: Source identifier

    Returns:
        SHA256 hex digest
    """
    composite = f"{title}|{start_date}|{calendar_source}"
    return hashlib.sha256(composite.encode('utf-8')).hexdigest()


@dataclass
class PersistedEvent:
    """Event as stored by a storage gateway."""
    event_key: str
    title: str
    start_date: str
    calendar_source: str
    imported_at: str
    updated_at: str
    id: Optional[int] = None
    description: Optional[str] = None
    start_time: Optional[str] = None
    end_date: Optional[str] = None
    end_time: Optional[str] = None
    is_all_day: bool = False
    location: Optional[str] = None
    venue: Optional[str] = None
    category: Optional[str] = None
    department: Optional[str] = None
    url: Optional[str] = None
    original_id: Optional[str] = None
    organizer_name: Optional[str] = None
    image_url: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    last_verified: Optional[str] = None
    verification_status: VerificationStatus = VerificationStatus.PENDING

    # Fields an update may overwrite on an existing record
    MUTABLE_FIELDS = (
        'description', 'start_time', 'end_date', 'end_time', 'is_all_day',
        'location', 'venue', 'category', 'department', 'url', 'original_id',
        'organizer_name', 'image_url', 'tags',
    )

    @classmethod
    def from_candidate(cls, candidate: CandidateEvent, now: str) -> "PersistedEvent":
        """
        Convert a scraped candidate into its stored representation.

        Args:
            candidate: Candidate produced by an extractor
            now: Timestamp used for imported_at and updated_at

        Returns:
            PersistedEvent with no id and pending verification
        """
        title = candidate.title.strip()
        if not title:
            raise ValueError("Candidate event has an empty title")

        start_date = candidate.start_date.isoformat()
        source = candidate.calendar_source.value
        return cls(
            event_key=logical_key(title, start_date, source),
            title=title,
            start_date=start_date,
            calendar_source=source,
            imported_at=now,
            updated_at=now,
            description=candidate.description,
            start_time=candidate.start_time,
            end_date=candidate.end_date.isoformat() if candidate.end_date else None,
            end_time=candidate.end_time,
            is_all_day=candidate.is_all_day,
            location=candidate.location,
            venue=candidate.venue,
            category=candidate.category,
            department=candidate.department,
            url=candidate.url,
            original_id=candidate.original_id,
            organizer_name=candidate.organizer_name,
            image_url=candidate.image_url,
            tags=sorted(set(candidate.tags)),
        )

    def merged_into(self, existing: "PersistedEvent", now: str) -> "PersistedEvent":
        """Copy this record's mutable fields onto an existing record."""
        values = {name: getattr(self, name) for name in self.MUTABLE_FIELDS}
        return PersistedEvent(
            event_key=existing.event_key,
            title=existing.title,
            start_date=existing.start_date,
            calendar_source=existing.calendar_source,
            imported_at=existing.imported_at,
            updated_at=now,
            id=existing.id,
            last_verified=existing.last_verified,
            verification_status=existing.verification_status,
            **values,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['verification_status'] = self.verification_status.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PersistedEvent":
        values = _known_fields(cls, data)
        values['tags'] = list(values.get('tags') or [])
        values['verification_status'] = VerificationStatus(
            values.get('verification_status', VerificationStatus.PENDING)
        )
        return cls(**values)


@dataclass
class EventFilters:
    """Criteria for listing stored events. Unset fields do not filter."""
    search: Optional[str] = None
    category: Optional[str] = None
    department: Optional[str] = None
    calendar_source: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "EventFilters":
        """Build filters from request parameters, ignoring unknown and empty keys."""
        values = _known_fields(cls, data or {})
        for name in ('start_date', 'end_date'):
            if values.get(name):
                date.fromisoformat(values[name])
        return cls(**{key: value for key, value in values.items() if value})

    def matches(self, event: PersistedEvent) -> bool:
        if self.search and self.search.lower() not in event.title.lower():
            return False
        if self.category and event.category != self.category:
            return False
        if self.department and event.department != self.department:
            return False
        if self.calendar_source and event.calendar_source != self.calendar_source:
            return False
        if self.start_date and event.start_date < self.start_date:
            return False
        if self.end_date and event.start_date > self.end_date:
            return False
        return True


@dataclass
class EventPage:
    """One page of a filtered event listing."""
    events: List[PersistedEvent]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return max(1, -(-self.total // self.limit))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'events': [event.to_dict() for event in self.events],
            'total': self.total,
            'page': self.page,
            'limit': self.limit,
            'pages': self.pages,
        }


@dataclass
class ScrapeMetadata:
    url: str = ""
    scraped_at: str = field(default_factory=utc_now_iso)
    total_events_found: int = 0
    successfully_parsed: int = 0
    pages_fetched: int = 0


@dataclass
class SourceScrapeResult:
    """Events, errors and warnings produced by one extractor run."""
    source: CalendarSource
    events: List[CandidateEvent] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    metadata: ScrapeMetadata = field(default_factory=ScrapeMetadata)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'source': self.source.value,
            'events': [event.to_dict() for event in self.events],
            'errors': list(self.errors),
            'warnings': list(self.warnings),
            'metadata': asdict(self.metadata),
        }

    def summary(self) -> Dict[str, Any]:
        return {
            'source': self.source.value,
            'events_found': len(self.events),
            'errors': len(self.errors),
            'warnings': len(self.warnings),
            'url': self.metadata.url,
        }


@dataclass
class SourceOutcome:
    """Result of one source's extraction: either a result or a captured error."""
    source: CalendarSource
    result: Optional[SourceScrapeResult] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.result is not None


@dataclass
class BulkScrapingResult:
    """Aggregate of every per-source extraction in one run."""
    results: List[SourceScrapeResult]
    total_events: int
    total_sources: int
    successful_sources: int
    global_errors: List[str]

    @classmethod
    def from_outcomes(cls, outcomes: List[SourceOutcome], total_sources: int) -> "BulkScrapingResult":
        results = [outcome.result for outcome in outcomes if outcome.succeeded]
        return cls(
            results=results,
            total_events=sum(len(result.events) for result in results),
            total_sources=total_sources,
            successful_sources=sum(1 for result in results if result.events),
            global_errors=[outcome.error for outcome in outcomes if outcome.error],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'results': [result.to_dict() for result in self.results],
            'total_events': self.total_events,
            'total_sources': self.total_sources,
            'successful_sources': self.successful_sources,
            'global_errors': list(self.global_errors),
        }

    def snapshot(self) -> Dict[str, Any]:
        """Counts and per-source summaries, without the events themselves."""
        return {
            'results': [result.summary() for result in self.results],
            'total_events': self.total_events,
            'total_sources': self.total_sources,
            'successful_sources': self.successful_sources,
            'global_errors': list(self.global_errors),
        }

    def __iter__(self) -> Iterator[SourceScrapeResult]:
        return iter(self.results)


@dataclass
class ImportJob:
    """One invocation of the import pipeline."""
    job_type: str
    sources: List[str]
    created_at: str
    id: Optional[int] = None
    status: JobStatus = JobStatus.PENDING
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    total_events: int = 0
    successful_imports: int = 0
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    results: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_JOB_STATUSES

    def _ensure_mutable(self):
        if self.is_terminal:
            raise ValueError(f"Import job {self.id} is already {self.status.value}")

    def start(self, now: str):
        self._ensure_mutable()
        self.status = JobStatus.RUNNING
        self.started_at = now

    def complete(self, now: str, results: BulkScrapingResult, imported: int,
                 errors: List[str], warnings: List[str]):
        """
        Mark the job completed and record aggregate counts.

        Args:
            now: Completion timestamp
            results: Bulk scraping result to snapshot
            imported: Number of events successfully reconciled
            errors: Accumulated error messages
            warnings: Accumulated warning messages
        """
        self._ensure_mutable()
        self.status = JobStatus.COMPLETED
        self.completed_at = now
        self._record(results, imported, errors, warnings)

    def fail(self, now: str, error: str, results: Optional[BulkScrapingResult] = None,
             imported: int = 0, errors: Iterable[str] = (), warnings: Iterable[str] = ()):
        """
        Mark the job failed, keeping whatever was captured before the failure.

        Args:
            now: Failure timestamp
            error: Description of the failure
            results: Partial bulk result for the sources that finished
            imported: Number of events reconciled before the failure
            errors: Error messages captured so far
            warnings: Warning messages captured so far
        """
        self._ensure_mutable()
        self.status = JobStatus.FAILED
        self.completed_at = now
        self.errors = [*self.errors, *errors]
        self.warnings = [*self.warnings, *warnings]
        if results is not None:
            self._record(results, imported, self.errors, self.warnings)
        self.errors.append(f"Import failed: {error}")

    def _record(self, results: BulkScrapingResult, imported: int,
                errors: List[str], warnings: List[str]):
        self.total_events = results.total_events
        self.successful_imports = imported
        self.errors = list(errors)
        self.warnings = list(warnings)
        self.results = json.dumps(results.snapshot())

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['status'] = self.status.value
        data['results'] = json.loads(self.results) if self.results else None
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ImportJob":
        values = _known_fields(cls, data)
        values['status'] = JobStatus(values.get('status', JobStatus.PENDING))
        for name in ('sources', 'errors', 'warnings'):
            values[name] = list(values.get(name) or [])
        if isinstance(values.get('results'), dict):
            values['results'] = json.dumps(values['results'])
        return cls(**values)


@dataclass
class ImportProgress:
    """Progress report emitted after each source completes."""
    processed: int
    total: int
    status: str
    current_source: Optional[str] = None
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ImportOutcome:
    job: ImportJob
    results: BulkScrapingResult

    @property
    def job_id(self) -> Optional[int]:
        return self.job.id


@dataclass
class ScheduledJob:
    """A named import that runs on a cron schedule."""
    id: str
    description: str
    schedule: str
    sources: List[str] = field(default_factory=list)
    active: bool = False
    last_run: Optional[str] = None
    next_run: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScheduledJob":
        values = _known_fields(cls, data)
        values['sources'] = list(values.get('sources') or [])
        values['active'] = bool(values.get('active', False))
        return cls(**values)


DEFAULT_SCHEDULES = (
    ScheduledJob(
        id="monthly-import",
        description="Monthly calendar import for current and next month",
        schedule="0 2 1 * *",  # 2 AM on the 1st of every month
    ),
    ScheduledJob(
        id="weekly-import",
        description="Weekly calendar import for current month",
        schedule="0 6 * * 1",  # 6 AM every Monday
    ),
)
