"""Turning raw event text into candidate events, and collecting them per run."""
import logging
import re
from dataclasses import dataclass
from datetime import date
from typing import List, Optional, Sequence, Set, Tuple
from urllib.parse import urlparse

from processor.models import CalendarSource, CandidateEvent, DateWindow
from scraper.classification import CATEGORY_RULES, Rule, classify
from scraper.normalize import (
    clean_text,
    extract_time_token,
    is_clock_time,
    normalize_time,
    normalize_url,
)

logger = logging.getLogger(__name__)

MIN_TITLE_LENGTH = 3
ALL_DAY_PATTERN = re.compile(r'\ball[\s-]day\b', re.IGNORECASE)
LOCATION_PATTERN = re.compile(r"([\w' ]+(?:Room|Building|Hall|Center))", re.IGNORECASE)


def is_valid_title(title: str) -> bool:
    return len(title) >= MIN_TITLE_LENGTH and not title.isdigit()


def department_from_url(href: Optional[str]) -> Optional[str]:
    """Read a department slug from links shaped like /<department>/events/<id>."""
    if not href:
        return None
    parts = [part for part in urlparse(href).path.split('/') if part]
    if 'events' not in parts:
        return None
    index = parts.index('events')
    if index == 0 or parts[index - 1] == 'home':
        return None
    return parts[index - 1].replace('-', ' ')


def original_id_from_url(href: Optional[str]) -> Optional[str]:
    if not href:
        return None
    parts = [part for part in urlparse(href).path.split('/') if part]
    return parts[-1] if parts else None


def location_hint(text: str) -> Optional[str]:
    """Pick a room or building name out of free text, if one is mentioned."""
    match = LOCATION_PATTERN.search(text)
    return clean_text(match.group(1)) if match else None


@dataclass
class EventProfile:
    """How one source's raw text becomes candidate events."""
    source: CalendarSource
    base_url: str
    category_rules: Sequence[Rule] = tuple(CATEGORY_RULES)
    department_rules: Sequence[Rule] = ()
    default_category: str = 'event'
    default_department: Optional[str] = None
    default_location: Optional[str] = None
    venue: Optional[str] = None
    organizer_name: Optional[str] = None
    tags: Tuple[str, ...] = ()

    def build(self, raw_text: str, day: date, warnings: List[str],
              href: Optional[str] = None,
              end_time_text: Optional[str] = None,
              description: Optional[str] = None,
              location: Optional[str] = None,
              image_url: Optional[str] = None) -> Optional[CandidateEvent]:
        """
        Build a candidate from event text found on a given day.

        Args:
            raw_text: Text carrying the title and maybe a time ("7:30pm Board of Health")
            day: Calendar date the text belongs to
            warnings: Run warnings; unrecognized times are reported here
            href: Raw link to the event page
            end_time_text: Raw end time, if the page gives one
            description: Event description
            location: Location text found near the event
            image_url: Raw image src

        Returns:
            CandidateEvent, or None when no usable title remains
        """
        time_token, title = extract_time_token(raw_text)
        title = clean_text(ALL_DAY_PATTERN.sub(' ', title)).strip(' -–|:,')
        if not is_valid_title(title):
            return None

        is_all_day = time_token is None or bool(ALL_DAY_PATTERN.search(raw_text))
        start_time = None
        if not is_all_day:
            start_time = self._clock_time(time_token, title, warnings)
            is_all_day = start_time is None

        end_time = None
        if end_time_text and not is_all_day:
            end_time = self._clock_time(end_time_text, title, warnings)

        department = department_from_url(href) or classify(
            title, self.department_rules, self.default_department
        )
        category = classify(title, self.category_rules, self.default_category)
        tags = []
        for tag in (*self.tags, category, department):
            if tag and tag not in tags:
                tags.append(tag)

        return CandidateEvent(
            title=title,
            start_date=day,
            calendar_source=self.source,
            description=description or None,
            start_time=start_time,
            end_time=end_time,
            is_all_day=is_all_day,
            location=location or self.default_location,
            venue=self.venue or location or self.default_location,
            category=category,
            department=department,
            url=normalize_url(href, self.base_url),
            original_id=original_id_from_url(href),
            organizer_name=self.organizer_name,
            image_url=normalize_url(image_url, self.base_url),
            tags=tags,
        )

    def _clock_time(self, token: str, title: str, warnings: List[str]) -> Optional[str]:
        normalized = normalize_time(token)
        if is_clock_time(normalized):
            return normalized
        message = f"Unrecognized time '{token}' for '{title}', treating as all-day"
        logger.warning(message)
        warnings.append(message)
        return None


class CandidateCollector:
    """Accumulates candidates for one extraction run, enforcing window and uniqueness."""

    def __init__(self, window: DateWindow, warnings: List[str]):
        self.window = window
        self.warnings = warnings
        self.events: List[CandidateEvent] = []
        self.outside_window = 0
        self._seen: Set[Tuple[str, str, str]] = set()

    def add(self, candidate: Optional[CandidateEvent]) -> bool:
        """
        Keep a candidate if it is inside the window and not yet seen this run.

        Returns:
            True if the candidate was kept
        """
        if candidate is None:
            return False

        if not self.window.contains(candidate.start_date):
            self.outside_window += 1
            logger.debug(
                f"Skipping '{candidate.title}' on {candidate.start_date.isoformat()}: "
                f"outside window"
            )
            return False

        key = candidate.dedupe_key()
        if key in self._seen:
            self.warnings.append(
                f"Duplicate event filtered: {candidate.title} on "
                f"{candidate.start_date.isoformat()}"
            )
            return False

        self._seen.add(key)
        self.events.append(candidate)
        return True

    def __len__(self) -> int:
        return len(self.events)
