"""Unit tests for normalization helpers."""
from datetime import date

import pytest

from scraper.normalize import (
    clean_text,
    extract_time_token,
    is_clock_time,
    normalize_time,
    normalize_url,
    parse_date_text,
)

BASE = "https://www.wayland.ma.us"


class TestNormalizeTime:
    """Test cases for normalize_time and is_clock_time."""

    @pytest.mark.parametrize("raw, expected", [
        ("7:30pm", "19:30"),
        ("7:30 PM", "19:30"),
        ("7 PM", "19:00"),
        ("12:00 a.m.", "00:00"),
        ("12pm", "12:00"),
        ("19:30", "19:30"),
        ("9:05", "09:05"),
        ("9", "09:00"),
    ])
    def test_recognized_times(self, raw, expected):
        """Test 12-hour, 24-hour and bare-hour inputs become HH:MM."""
        assert normalize_time(raw) == expected
        assert is_clock_time(normalize_time(raw))

    def test_unrecognized_time_returned_unchanged(self):
        """Test that text which is not a time passes through untouched."""
        assert normalize_time("noon") == "noon"
        assert not is_clock_time(normalize_time("noon"))

    def test_out_of_range_minutes_fail_clock_check(self):
        """Test that a colon time with impossible minutes is not a clock time."""
        assert not is_clock_time(normalize_time("13:75"))

    def test_is_clock_time_requires_padding(self):
        """Test that only zero-padded 24-hour values pass."""
        assert is_clock_time("09:00")
        assert not is_clock_time("9:00")
        assert not is_clock_time(None)


class TestExtractTimeToken:
    """Test cases for extract_time_token."""

    def test_leading_time(self):
        """Test a time at the start of event text is split off."""
        assert extract_time_token("7:30pm Board of Health") == ("7:30pm", "Board of Health")

    def test_trailing_time(self):
        """Test a time at the end of event text is split off."""
        assert extract_time_token("Select Board 6 PM") == ("6 PM", "Select Board")

    def test_no_time(self):
        """Test text without a time is returned cleaned."""
        assert extract_time_token("  Town   Meeting ") == (None, "Town Meeting")


class TestNormalizeUrl:
    """Test cases for normalize_url."""

    @pytest.mark.parametrize("raw, expected", [
        ("/calendar/event/1", f"{BASE}/calendar/event/1"),
        ("event/5", f"{BASE}/event/5"),
        ("http://example.com/x", "https://example.com/x"),
        ("https://example.com/y", "https://example.com/y"),
        ("//cdn.example.com/a.png", "https://cdn.example.com/a.png"),
        ("mailto:clerk@wayland.ma.us", "mailto:clerk@wayland.ma.us"),
    ])
    def test_resolves_links(self, raw, expected):
        """Test relative, protocol-relative and insecure links become absolute https."""
        assert normalize_url(raw, BASE) == expected

    @pytest.mark.parametrize("raw", [None, "", "#", "/", "javascript:void(0)"])
    def test_empty_links(self, raw):
        """Test links that point nowhere are dropped."""
        assert normalize_url(raw, BASE) is None

    def test_base_trailing_slash(self):
        """Test a base with a trailing slash does not double the separator."""
        assert normalize_url("/x", "https://tcan.org/") == "https://tcan.org/x"


class TestParseDateText:
    """Test cases for parse_date_text."""

    def test_full_date_with_year(self):
        """Test a month-name date with an explicit year."""
        assert parse_date_text("Friday, August 15, 2025", 2024) == (date(2025, 8, 15), True)

    def test_abbreviated_date_without_year(self):
        """Test the default year fills in a missing year."""
        assert parse_date_text("Aug 15", 2025) == (date(2025, 8, 15), False)

    def test_ordinal_and_sept(self):
        """Test ordinal suffixes and the four-letter September abbreviation."""
        assert parse_date_text("Sept 3rd", 2025) == (date(2025, 9, 3), False)

    def test_iso_datetime(self):
        """Test an ISO timestamp is read as its date."""
        assert parse_date_text("2025-08-15T19:00:00", 2020) == (date(2025, 8, 15), True)

    def test_us_numeric_date(self):
        """Test a US month/day/year date."""
        assert parse_date_text("8/5/2025", 2020) == (date(2025, 8, 5), True)

    def test_word_that_looks_like_a_month(self):
        """Test that 'Market 12' is not read as March 12."""
        assert parse_date_text("Farmers Market 12 vendors", 2025) == (None, False)

    def test_no_date(self):
        """Test text without any date."""
        assert parse_date_text("no date here", 2025) == (None, False)


def test_clean_text():
    """Test whitespace runs collapse and ends are stripped."""
    assert clean_text("  Board \n of\tHealth  ") == "Board of Health"
    assert clean_text(None) == ""
