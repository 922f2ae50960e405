"""Parser for month-grid calendar pages."""
import copy
import logging
import re
from datetime import date
from typing import List, Optional, Tuple

from bs4 import BeautifulSoup, NavigableString, Tag

from processor.models import DateWindow
from scraper.candidates import MIN_TITLE_LENGTH, CandidateCollector, EventProfile, location_hint
from scraper.errors import ParseAnomaly
from scraper.event_listing import EventListingParser
from scraper.normalize import TIME_PATTERN, clean_text

logger = logging.getLogger(__name__)

# Day-cell strategies, most specific first. Only the first strategy that
# matches anything is used for a page.
TABLE_CELL_SELECTORS = [
    'table.calendar-month td',
    'table.calendar td',
    '.calendar table td',
    '.calendar-table td',
]
GRID_CELL_SELECTORS = [
    '.calendar-grid .day',
    '.calendar .day-cell',
    '.month-calendar .calendar-day',
    '[data-date]',
    '.day-container',
]
LIST_ITEM_SELECTORS = [
    '.event-list .event',
    '.calendar-events .event-item',
    '.events-listing .event',
    'li[class*="event"]',
]
STRATEGIES = (
    ('table', TABLE_CELL_SELECTORS),
    ('grid', GRID_CELL_SELECTORS),
    ('list', LIST_ITEM_SELECTORS),
)

DAY_NUMBER_SELECTOR = '.day-number, .date, strong'
DAY_NUMBER_PATTERN = re.compile(r'(?<![\d:])(\d{1,2})(?![\d:])')
HEADER_CLASSES = {'day-name', 'calendar-header'}
OTHER_MONTH_CLASSES = {'other-month', 'prev-month', 'next-month', 'outside-month', 'disabled'}


class CalendarGridParser:
    """Extract candidates from one month page of a calendar grid."""

    def __init__(self, profile: EventProfile):
        self.profile = profile
        self.listing = EventListingParser(profile, selectors=LIST_ITEM_SELECTORS)

    def locate_cells(self, soup: BeautifulSoup) -> Tuple[Optional[str], List[Tag]]:
        """
        Find day cells using the first strategy that matches.

        Returns:
            Tuple of (strategy name or None, matched elements)
        """
        for name, selectors in STRATEGIES:
            for selector in selectors:
                cells = soup.select(selector)
                if cells:
                    logger.debug(f"Found {len(cells)} cells with {name} selector: {selector}")
                    return name, cells
        return None, []

    def parse(self, html: str, year: int, month: int, window: DateWindow,
              collector: CandidateCollector) -> int:
        """
        Parse one month page into the collector.

        Args:
            html: Page markup
            year: Year the page shows
            month: Month the page shows
            window: Requested date window
            collector: Run-wide candidate collector

        Returns:
            Number of candidates kept from this page
        """
        soup = BeautifulSoup(html, 'html.parser')
        strategy, cells = self.locate_cells(soup)
        if strategy is None:
            collector.warnings.append(
                f"No calendar day cells found for {year}-{month:02d}; "
                f"calendar structure may have changed"
            )
            return 0

        if strategy == 'list':
            return self.listing.parse_elements(cells, window, collector)

        kept = 0
        for cell in cells:
            try:
                day = self.cell_date(cell, year, month)
            except ParseAnomaly as e:
                collector.warnings.append(f"Skipped calendar cell: {e}")
                continue
            if day is None:
                continue

            for candidate in self.cell_events(cell, day, collector.warnings):
                if collector.add(candidate):
                    kept += 1
        return kept

    def cell_date(self, cell: Tag, year: int, month: int) -> Optional[date]:
        """
        Work out which date a day cell represents.

        Returns:
            The date, or None for header, padding and other-month cells

        Raises:
            ParseAnomaly: If the cell names a date that does not exist
        """
        classes = set(cell.get('class') or [])
        if classes & HEADER_CLASSES or classes & OTHER_MONTH_CLASSES:
            return None

        date_attr = cell.get('data-date')
        if date_attr:
            try:
                return date.fromisoformat(date_attr.strip()[:10])
            except ValueError:
                raise ParseAnomaly(f"invalid data-date '{date_attr}'")

        day_number = self.day_number(cell)
        if day_number is None:
            return None
        try:
            return date(year, month, day_number)
        except ValueError:
            raise ParseAnomaly(f"day {day_number} does not exist in {year}-{month:02d}")

    @staticmethod
    def day_number(cell: Tag) -> Optional[int]:
        """Day of month from a structured child, else the first 1-2 digit number in the cell."""
        child = cell.select_one(DAY_NUMBER_SELECTOR)
        text = clean_text(child.get_text()) if child else ''
        match = re.fullmatch(r'\d{1,2}', text)
        if not match:
            match = DAY_NUMBER_PATTERN.search(cell.get_text(' '))
        if not match:
            return None

        number = int(match.group(0))
        if number < 1 or number > 31:
            return None
        return number

    def cell_events(self, cell: Tag, day: date, warnings: List[str]):
        """Candidates from a day cell's links, then from its remaining free text."""
        candidates = []
        for link in cell.find_all('a'):
            text = clean_text(link.get_text(' '))
            if not text or text.isdigit():
                continue

            if not TIME_PATTERN.search(text):
                sibling = link.next_sibling
                if isinstance(sibling, NavigableString):
                    match = TIME_PATTERN.search(str(sibling))
                    if match:
                        text = f"{match.group(1)} {text}"

            parent_text = clean_text(link.parent.get_text(' ')) if link.parent else ''
            candidates.append(self.profile.build(
                text,
                day,
                warnings,
                href=link.get('href'),
                location=location_hint(parent_text),
            ))

        remainder = copy.copy(cell)
        for link in remainder.find_all('a'):
            link.decompose()
        for child in remainder.select(DAY_NUMBER_SELECTOR):
            if re.fullmatch(r'\d{1,2}', clean_text(child.get_text())):
                child.decompose()

        for line in remainder.get_text('\n').split('\n'):
            line = clean_text(line)
            if len(line) <= MIN_TITLE_LENGTH or re.fullmatch(r'\d{1,2}', line):
                continue
            candidates.append(self.profile.build(line, day, warnings, location=location_hint(line)))

        return [candidate for candidate in candidates if candidate is not None]
