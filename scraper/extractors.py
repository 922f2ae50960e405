"""Site-specific extractors, one per known calendar source."""
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Tuple, Type, Union

from processor.models import CalendarSource, DateWindow, SourceScrapeResult, utc_now_iso
from scraper.calendar_grid import CalendarGridParser
from scraper.candidates import CandidateCollector, EventProfile
from scraper.classification import (
    ARTS_CATEGORY_RULES,
    ATHLETICS_CATEGORY_RULES,
    CATEGORY_RULES,
    COMMUNITY_CATEGORY_RULES,
    LIBRARY_CATEGORY_RULES,
    SCHOOL_CATEGORY_RULES,
    TOWN_CATEGORY_RULES,
    TOWN_DEPARTMENT_RULES,
    Rule,
)
from scraper.errors import FetchError, UnknownSourceError
from scraper.event_listing import EventListingParser
from scraper.fetcher import PageFetcher
from scraper.sources import SOURCE_CATALOG, sample_events_for

logger = logging.getLogger(__name__)


class SourceExtractor(ABC):
    """
    Base class for extracting candidate events from one calendar source.

    Subclasses say which pages to fetch and how to parse them; this class
    owns fetch-failure handling, the blocked short-circuit and the
    fallback to sample events.
    """

    source: CalendarSource
    category_rules: Sequence[Rule] = tuple(CATEGORY_RULES)
    department_rules: Sequence[Rule] = ()
    default_category = 'event'
    default_department: Optional[str] = None
    default_location: Optional[str] = None
    organizer_name: Optional[str] = None
    tags: Tuple[str, ...] = ()

    def __init__(self, fetcher: PageFetcher):
        self.fetcher = fetcher
        self.descriptor = SOURCE_CATALOG[self.source]
        self.profile = EventProfile(
            source=self.source,
            base_url=self.descriptor.base_url,
            category_rules=self.category_rules,
            department_rules=self.department_rules,
            default_category=self.default_category,
            default_department=self.default_department,
            default_location=self.default_location,
            venue=self.default_location,
            organizer_name=self.organizer_name or self.descriptor.display_name,
            tags=self.tags,
        )

    @property
    def name(self) -> str:
        return self.descriptor.display_name

    @abstractmethod
    def pages(self, window: DateWindow) -> List[Tuple[str, Any]]:
        """Pages to fetch for the window, as (url, parse context) pairs in window order."""

    @abstractmethod
    def parse_page(self, html: str, context: Any, window: DateWindow,
                   collector: CandidateCollector) -> int:
        """Parse one fetched page into the collector; return the number of candidates kept."""

    async def extract(self, window: DateWindow) -> SourceScrapeResult:
        """
        Extract candidate events for the window.

        Fetch failures become warnings. When nothing live is found the
        source's sample events are returned instead, so the result is
        never empty.

        Args:
            window: Inclusive date window to extract

        Returns:
            SourceScrapeResult for this source
        """
        result = SourceScrapeResult(source=self.source)
        result.metadata.url = self.descriptor.url
        result.metadata.scraped_at = utc_now_iso()
        collector = CandidateCollector(window, result.warnings)

        pages = self.pages(window)
        logger.info(
            f"Scraping {self.name}: {len(pages)} page(s) for "
            f"{window.start.isoformat()} to {window.end.isoformat()}"
        )

        for url, context in pages:
            result.metadata.url = url
            try:
                html = await self.fetcher.fetch(url)
            except FetchError as e:
                if e.blocked:
                    message = f"{self.name} blocked the request for {url} ({e}); skipping remaining pages"
                    logger.warning(message)
                    result.warnings.append(message)
                    break
                message = f"Failed to fetch {url}: {e}"
                logger.warning(message)
                result.warnings.append(message)
                continue

            result.metadata.pages_fetched += 1
            kept = self.parse_page(html, context, window, collector)
            logger.info(f"Found {kept} events on {url}")

        result.events = collector.events
        result.metadata.total_events_found = len(collector.events) + collector.outside_window
        result.metadata.successfully_parsed = len(collector.events)

        if not result.events:
            message = f"No live events found, using sample events for {self.name}"
            logger.warning(message)
            result.warnings.append(message)
            result.events = sample_events_for(self.source, window)
            result.metadata.total_events_found = len(result.events)
            result.metadata.successfully_parsed = len(result.events)

        logger.info(f"Extracted {len(result.events)} events from {self.name}")
        return result


class MonthlyCalendarExtractor(SourceExtractor):
    """Sources that publish one calendar-grid page per month."""

    month_url: str

    def __init__(self, fetcher: PageFetcher):
        super().__init__(fetcher)
        self.parser = CalendarGridParser(self.profile)

    def pages(self, window: DateWindow) -> List[Tuple[str, Any]]:
        return [
            (self.month_url.format(year=year, month=month), (year, month))
            for year, month in window.months()
        ]

    def parse_page(self, html, context, window, collector) -> int:
        year, month = context
        return self.parser.parse(html, year, month, window, collector)


class ListingExtractor(SourceExtractor):
    """Sources that publish a single page listing upcoming events."""

    def __init__(self, fetcher: PageFetcher):
        super().__init__(fetcher)
        self.parser = EventListingParser(self.profile)

    def pages(self, window: DateWindow) -> List[Tuple[str, Any]]:
        return [(self.descriptor.url, None)]

    def parse_page(self, html, context, window, collector) -> int:
        return self.parser.parse(html, window, collector)


class WaylandTownExtractor(MonthlyCalendarExtractor):
    source = CalendarSource.WAYLAND_TOWN
    month_url = "https://www.wayland.ma.us/calendar/month/{year}-{month:02d}"
    category_rules = tuple(TOWN_CATEGORY_RULES)
    department_rules = tuple(TOWN_DEPARTMENT_RULES)
    default_category = 'meeting'
    default_department = 'general'
    default_location = "Wayland Town Building"
    organizer_name = "Town of Wayland"
    tags = ('government', 'municipal')


class TcanEventsExtractor(ListingExtractor):
    source = CalendarSource.TCAN_EVENTS
    category_rules = tuple(ARTS_CATEGORY_RULES)
    default_category = 'performance'
    default_department = 'arts'
    default_location = "TCAN Main Stage"
    organizer_name = "The Center for Arts in Natick"
    tags = ('arts', 'performance')


class PatchCommunityExtractor(ListingExtractor):
    source = CalendarSource.PATCH_COMMUNITY
    category_rules = tuple(COMMUNITY_CATEGORY_RULES)
    default_category = 'community'
    default_department = 'community'
    tags = ('community',)


class WaylandHighSchoolExtractor(ListingExtractor):
    source = CalendarSource.WAYLAND_HIGH_SCHOOL
    category_rules = tuple(SCHOOL_CATEGORY_RULES)
    default_category = 'education'
    default_department = 'school'
    default_location = "Wayland High School"
    tags = ('education', 'school')


class WaylandWcpaExtractor(ListingExtractor):
    source = CalendarSource.WAYLAND_WCPA
    category_rules = tuple(COMMUNITY_CATEGORY_RULES)
    default_category = 'family'
    default_department = 'community'
    tags = ('family', 'community')


class TownPlannerExtractor(ListingExtractor):
    source = CalendarSource.TOWN_PLANNER
    category_rules = tuple(COMMUNITY_CATEGORY_RULES)
    default_category = 'community'
    default_department = 'community'
    tags = ('community',)


class ArtsWaylandExtractor(ListingExtractor):
    source = CalendarSource.ARTS_WAYLAND
    category_rules = tuple(ARTS_CATEGORY_RULES)
    default_category = 'arts'
    default_department = 'arts'
    default_location = "Arts Wayland Gallery"
    organizer_name = "Arts Wayland"
    tags = ('arts', 'culture')


class WaylandHighAthleticsExtractor(ListingExtractor):
    source = CalendarSource.WAYLAND_HIGH_ATHLETICS
    category_rules = tuple(ATHLETICS_CATEGORY_RULES)
    default_category = 'athletics'
    default_department = 'athletics'
    tags = ('athletics', 'sports')


class WaylandMiddleAthleticsExtractor(ListingExtractor):
    source = CalendarSource.WAYLAND_MIDDLE_ATHLETICS
    category_rules = tuple(ATHLETICS_CATEGORY_RULES)
    default_category = 'athletics'
    default_department = 'athletics'
    tags = ('athletics', 'sports')


class WaylandLibraryExtractor(ListingExtractor):
    source = CalendarSource.WAYLAND_LIBRARY
    category_rules = tuple(LIBRARY_CATEGORY_RULES)
    default_category = 'library'
    default_department = 'library'
    default_location = "Wayland Free Public Library"
    organizer_name = "Wayland Free Public Library"
    tags = ('library',)


EXTRACTORS: Dict[CalendarSource, Type[SourceExtractor]] = {
    extractor.source: extractor
    for extractor in (
        WaylandTownExtractor,
        TcanEventsExtractor,
        PatchCommunityExtractor,
        WaylandHighSchoolExtractor,
        WaylandWcpaExtractor,
        TownPlannerExtractor,
        ArtsWaylandExtractor,
        WaylandHighAthleticsExtractor,
        WaylandMiddleAthleticsExtractor,
        WaylandLibraryExtractor,
    )
}

_missing = set(CalendarSource) - set(EXTRACTORS)
if _missing:
    raise RuntimeError(
        f"No extractor registered for: {', '.join(sorted(s.value for s in _missing))}"
    )


def to_source(source: Union[str, CalendarSource]) -> CalendarSource:
    """
    Resolve a source identifier against the closed set of known sources.

    Raises:
        UnknownSourceError: If the identifier is not a known source
    """
    try:
        return CalendarSource(source)
    except ValueError:
        raise UnknownSourceError([source])


def build_extractor(source: Union[str, CalendarSource], fetcher: PageFetcher) -> SourceExtractor:
    """Instantiate the extractor registered for a source."""
    return EXTRACTORS[to_source(source)](fetcher)
