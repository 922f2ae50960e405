"""Unit tests for the site-specific extractors."""
from datetime import date

import pytest
import responses

from processor.models import CalendarSource, DateWindow
from scraper.errors import UnknownSourceError
from scraper.extractors import (
    EXTRACTORS,
    ListingExtractor,
    MonthlyCalendarExtractor,
    TcanEventsExtractor,
    WaylandTownExtractor,
    build_extractor,
)

TOWN_MONTH_URL = "https://www.wayland.ma.us/calendar/month/{}"

SEPTEMBER_PAGE = """
<table class="calendar-month"><tr>
  <td><span class="day-number">9</span><a href="/finance-committee/events/901">7pm Finance Committee</a></td>
  <td><span class="day-number">16</span><a href="/select-board/events/902">Select Board 6:30 PM</a></td>
</tr></table>
"""

TCAN_PAGE = """
<div class="events-listing">
  <div class="event">
    <h2 class="title"><a href="https://tcan.org/event/jazz">Jazz Quartet Concert</a></h2>
    <span class="date">Aug 22, 2025</span>
    <span class="time">8:00 PM</span>
  </div>
</div>
"""


class TestRegistry:
    """Test cases for the extractor registry."""

    def test_every_source_has_an_extractor(self):
        """Test the registry covers the closed source set exactly."""
        assert set(EXTRACTORS) == set(CalendarSource)

    def test_extractor_styles(self):
        """Test the town uses month pages and the others use listings."""
        assert issubclass(EXTRACTORS[CalendarSource.WAYLAND_TOWN], MonthlyCalendarExtractor)
        for source in CalendarSource:
            if source != CalendarSource.WAYLAND_TOWN:
                assert issubclass(EXTRACTORS[source], ListingExtractor)

    def test_build_extractor(self, fetcher):
        """Test extractors are built from plain identifiers."""
        extractor = build_extractor("tcan-events", fetcher)
        assert isinstance(extractor, TcanEventsExtractor)
        assert extractor.fetcher is fetcher

    def test_build_unknown_source(self, fetcher):
        """Test unknown identifiers are rejected."""
        with pytest.raises(UnknownSourceError) as exc_info:
            build_extractor("springfield-town", fetcher)
        assert exc_info.value.invalid == ["springfield-town"]


class TestWaylandTownExtractor:
    """Test cases for the month-page extractor."""

    def test_one_page_per_month(self, fetcher):
        """Test month URLs cover every month the window touches."""
        window = DateWindow(start=date(2025, 11, 20), end=date(2026, 1, 5))
        urls = [url for url, _ in WaylandTownExtractor(fetcher).pages(window)]
        assert urls == [
            TOWN_MONTH_URL.format("2025-11"),
            TOWN_MONTH_URL.format("2025-12"),
            TOWN_MONTH_URL.format("2026-01"),
        ]

    async def test_blocked_falls_back_to_samples(self, fetcher, mocked_responses):
        """Test a blocked source stops fetching and returns its sample events."""
        window = DateWindow(start=date(2025, 8, 1), end=date(2025, 10, 15))
        mocked_responses.add(responses.GET, TOWN_MONTH_URL.format("2025-08"), status=403)

        result = await WaylandTownExtractor(fetcher).extract(window)

        assert len(mocked_responses.calls) == 1
        assert len(result.events) == 3
        assert result.errors == []
        assert any("blocked" in warning for warning in result.warnings)
        assert "No live events found, using sample events for Town of Wayland" in result.warnings
        assert all(window.contains(event.start_date) for event in result.events)
        assert result.metadata.pages_fetched == 0

    async def test_failed_month_continues(self, fetcher, mocked_responses):
        """Test a failed month is a warning and later months are still parsed."""
        window = DateWindow(start=date(2025, 8, 1), end=date(2025, 9, 30))
        mocked_responses.add(responses.GET, TOWN_MONTH_URL.format("2025-08"), status=500)
        mocked_responses.add(responses.GET, TOWN_MONTH_URL.format("2025-09"),
                             body=SEPTEMBER_PAGE, status=200)

        result = await WaylandTownExtractor(fetcher).extract(window)

        assert [event.title for event in result.events] == ["Finance Committee", "Select Board"]
        finance, select_board = result.events
        assert finance.start_date == date(2025, 9, 9)
        assert finance.start_time == "19:00"
        assert finance.department == "finance committee"
        assert select_board.start_time == "18:30"
        assert any(
            warning.startswith(f"Failed to fetch {TOWN_MONTH_URL.format('2025-08')}: HTTP 500")
            for warning in result.warnings
        )
        assert result.metadata.pages_fetched == 1
        assert result.metadata.successfully_parsed == 2

    async def test_samples_clamped_to_short_window(self, fetcher, mocked_responses):
        """Test sample events stay inside a window shorter than their offsets."""
        window = DateWindow(start=date(2025, 8, 1), end=date(2025, 8, 10))

        result = await WaylandTownExtractor(fetcher).extract(window)

        assert len(result.events) == 3
        assert [event.start_date for event in result.events] == [
            date(2025, 8, 6), date(2025, 8, 10), date(2025, 8, 10),
        ]


class TestListingExtractor:
    """Test cases for listing-page extractors."""

    async def test_tcan_listing(self, fetcher, mocked_responses, august_window):
        """Test a single listing page is fetched and parsed."""
        mocked_responses.add(responses.GET, "https://tcan.org/events/", body=TCAN_PAGE, status=200)

        result = await TcanEventsExtractor(fetcher).extract(august_window)

        assert result.source == CalendarSource.TCAN_EVENTS
        assert len(result.events) == 1
        event = result.events[0]
        assert event.title == "Jazz Quartet Concert"
        assert event.start_date == date(2025, 8, 22)
        assert event.start_time == "20:00"
        assert event.category == "performance"
        assert event.url == "https://tcan.org/event/jazz"
        assert result.warnings == []
        assert result.metadata.url == "https://tcan.org/events/"

    async def test_unmatched_markup_uses_samples(self, fetcher, mocked_responses, august_window):
        """Test a page with no recognizable events degrades to samples without raising."""
        mocked_responses.add(responses.GET, "https://tcan.org/events/",
                             body="<html><body><p>Site redesign in progress</p></body></html>",
                             status=200)

        result = await TcanEventsExtractor(fetcher).extract(august_window)

        assert [event.title for event in result.events] == ["Live Music at TCAN", "Comedy Night"]
        assert result.warnings == ["No live events found, using sample events for TCAN Events"]
        assert result.metadata.pages_fetched == 1

    async def test_network_failure_uses_samples(self, fetcher, mocked_responses, august_window):
        """Test an unreachable listing page degrades to sample events."""
        result = await TcanEventsExtractor(fetcher).extract(august_window)

        assert len(result.events) == 2
        assert result.warnings[0].startswith("Failed to fetch https://tcan.org/events/")
        assert result.warnings[-1] == "No live events found, using sample events for TCAN Events"
