"""Parser for listing-style event pages (one element per event)."""
import logging
from datetime import date
from typing import List, Optional, Sequence

from bs4 import BeautifulSoup, Tag

from processor.models import DateWindow
from scraper.candidates import CandidateCollector, EventProfile
from scraper.errors import ParseAnomaly
from scraper.normalize import TIME_PATTERN, clean_text, parse_date_text

logger = logging.getLogger(__name__)

LISTING_SELECTORS = [
    '.event-list .event',
    '.calendar-events .event-item',
    '.events-listing .event',
    'article.event',
    '.event-item',
    '.event',
    '.calendar-event',
    '[class*="event"]',
    '.post',
    '.entry',
]

TITLE_SELECTOR = '.event-title, .title, .post-title, h1, h2, h3, h4'
DATE_SELECTOR = '.event-date, .date'
TIME_SELECTOR = '.event-time, .time'
LOCATION_SELECTOR = '.event-location, .location, .venue'
DESCRIPTION_SELECTOR = '.event-description, .description, .excerpt, .summary, p'


def _text(element: Tag, selector: str) -> str:
    found = element.select_one(selector)
    return clean_text(found.get_text(' ')) if found else ''


def split_time_range(time_text: str):
    """
    Split a time range into start and end parts.

    Args:
        time_text: Time text (e.g., "10:00 AM - 2:00 PM")

    Returns:
        Tuple of (start_time, end_time)
    """
    for separator in ('–', '—', '-', ' to '):
        if separator in time_text:
            start, _, end = time_text.partition(separator)
            return start.strip(), end.strip() or None
    return time_text.strip(), None


class EventListingParser:
    """Extract candidates from pages that list one element per event."""

    def __init__(self, profile: EventProfile, selectors: Sequence[str] = LISTING_SELECTORS):
        self.profile = profile
        self.selectors = list(selectors)

    def select_elements(self, soup: BeautifulSoup) -> List[Tag]:
        """Return elements for the first selector that matches anything, outermost only."""
        for selector in self.selectors:
            elements = soup.select(selector)
            if not elements:
                continue

            logger.debug(f"Found {len(elements)} event elements with selector: {selector}")
            matched = {id(element) for element in elements}
            return [
                element for element in elements
                if not any(id(parent) in matched for parent in element.parents)
            ]
        return []

    def parse(self, html: str, window: DateWindow, collector: CandidateCollector) -> int:
        """
        Parse a listing page into the collector.

        Args:
            html: Page markup
            window: Requested date window (used to infer missing years)
            collector: Run-wide candidate collector

        Returns:
            Number of candidates kept from this page
        """
        soup = BeautifulSoup(html, 'html.parser')
        return self.parse_elements(self.select_elements(soup), window, collector)

    def parse_elements(self, elements: List[Tag], window: DateWindow,
                       collector: CandidateCollector) -> int:
        kept = 0
        for element in elements:
            try:
                if collector.add(self.parse_element(element, window, collector.warnings)):
                    kept += 1
            except ParseAnomaly as e:
                collector.warnings.append(f"Skipped event element: {e}")
        return kept

    def parse_element(self, element: Tag, window: DateWindow, warnings: List[str]):
        """
        Parse a single event element.

        Raises:
            ParseAnomaly: If the element has no title or no usable date
        """
        link = element.find('a', href=True)
        title = _text(element, TITLE_SELECTOR) or (clean_text(link.get_text(' ')) if link else '')
        if not title:
            raise ParseAnomaly("element has no title")

        day = self._event_date(element, window)
        if day is None:
            raise ParseAnomaly(f"no date found for '{title[:60]}'")

        time_text = _text(element, TIME_SELECTOR)
        if not time_text:
            match = TIME_PATTERN.search(element.get_text(' '))
            time_text = match.group(1) if match else ''
        start_text, end_text = split_time_range(time_text) if time_text else ('', None)

        title_link = element.select_one('.event-title a, .title a, h2 a, h3 a') or link
        image = element.find('img', src=True)
        description = _text(element, DESCRIPTION_SELECTOR)

        return self.profile.build(
            f"{start_text} {title}".strip(),
            day,
            warnings,
            href=title_link.get('href') if title_link else None,
            end_time_text=end_text,
            description=description if description != title else None,
            location=_text(element, LOCATION_SELECTOR) or None,
            image_url=image.get('src') if image else None,
        )

    def _event_date(self, element: Tag, window: DateWindow) -> Optional[date]:
        candidates = []
        time_tag = element.find('time', attrs={'datetime': True})
        if time_tag:
            candidates.append(time_tag['datetime'])
        if element.get('data-date'):
            candidates.append(element['data-date'])
        candidates.append(_text(element, DATE_SELECTOR))
        candidates.append(element.get_text(' '))

        for text in candidates:
            if not text:
                continue
            day, explicit_year = parse_date_text(text, default_year=window.start.year)
            if day is None:
                continue
            if not explicit_year and day < window.start:
                try:
                    day = day.replace(year=day.year + 1)
                except ValueError:
                    raise ParseAnomaly(f"invalid date '{text[:40]}'")
            return day
        return None
