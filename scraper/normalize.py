"""Normalization helpers for scraped times, dates, URLs and text."""
import re
from datetime import date, datetime
from typing import Optional, Tuple

TIME_PATTERN = re.compile(
    r'\b(\d{1,2}:\d{2}(?:\s?[ap]\.?m\.?)?|\d{1,2}\s?[ap]\.?m\.?)(?!\w)',
    re.IGNORECASE,
)
CLOCK_PATTERN = re.compile(r'^([01]\d|2[0-3]):[0-5]\d$')
TWENTY_FOUR_HOUR_PATTERN = re.compile(r'^(\d{1,2}):(\d{2})')

MONTH_NAME_DATE_PATTERN = re.compile(
    r'(?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Sept|Oct|Nov|Dec)[a-z]*\.?\s+\d{1,2}'
    r'(?:st|nd|rd|th)?(?:,?\s+\d{4})?',
    re.IGNORECASE,
)
NUMERIC_DATE_PATTERN = re.compile(r'(?<!\d)(\d{4}-\d{2}-\d{2}|\d{1,2}/\d{1,2}/\d{4})(?!\d)')

DATE_FORMATS_WITH_YEAR = [
    '%Y-%m-%d',      # ISO 8601
    '%m/%d/%Y',      # US format
    '%B %d, %Y',     # Full month name
    '%b %d, %Y',     # Abbreviated month name
    '%B %d %Y',
    '%b %d %Y',
]
DATE_FORMATS_WITHOUT_YEAR = [
    '%B %d',
    '%b %d',
]

# Hrefs that do not point anywhere useful
EMPTY_URLS = ('', '#', '/')


def clean_text(text: Optional[str]) -> str:
    """Collapse runs of whitespace and strip the ends."""
    if not text:
        return ''
    return re.sub(r'\s+', ' ', text).strip()


def normalize_time(time_str: str) -> str:
    """
    Normalize a time string to 24-hour format (HH:MM).

    Strings mentioning am/pm are read as a 12-hour clock, strings with a
    colon are treated as 24-hour and left-padded, and a bare integer is an
    hour. Anything else is returned unchanged; use is_clock_time() to
    check the result.

    Args:
        time_str: Time string such as "7:30pm", "19:30" or "9"

    Returns:
        24-hour formatted time string, or the input if it cannot be parsed
    """
    cleaned = time_str.strip().lower()
    compact = cleaned.replace(' ', '').replace('.', '')

    if 'am' in compact or 'pm' in compact:
        for fmt in ('%I:%M%p', '%I%p'):
            try:
                return datetime.strptime(compact, fmt).strftime('%H:%M')
            except ValueError:
                continue
        return time_str

    if ':' in cleaned:
        match = TWENTY_FOUR_HOUR_PATTERN.match(cleaned)
        if match:
            return f"{int(match.group(1)):02d}:{match.group(2)}"
        return time_str

    if cleaned.isdigit():
        hour = int(cleaned)
        if 0 <= hour <= 23:
            return f"{hour:02d}:00"

    return time_str


def is_clock_time(value: Optional[str]) -> bool:
    """True when value is a valid 24-hour HH:MM string."""
    return bool(value) and bool(CLOCK_PATTERN.match(value))


def extract_time_token(text: str) -> Tuple[Optional[str], str]:
    """
    Pull the first time token out of a piece of event text.

    Args:
        text: Raw text, e.g. "7:30pm Board of Health"

    Returns:
        Tuple of (time token or None, text with the token removed)
    """
    match = TIME_PATTERN.search(text)
    if not match:
        return None, clean_text(text)

    remaining = text[:match.start()] + ' ' + text[match.end():]
    return match.group(1), clean_text(remaining)


def normalize_url(url: Optional[str], base_url: str) -> Optional[str]:
    """
    Resolve an href found on a source page to an absolute URL.

    Args:
        url: Raw href value
        base_url: Canonical base of the source, e.g. "https://www.wayland.ma.us"

    Returns:
        Absolute URL, or None when the href is empty or not navigable
    """
    if url is None:
        return None

    url = url.strip()
    if url in EMPTY_URLS or url.lower().startswith('javascript:'):
        return None

    base = base_url.rstrip('/')
    if url.startswith('https://') or url.startswith('mailto:'):
        return url
    if url.startswith('http://'):
        return 'https://' + url[len('http://'):]
    if url.startswith('//'):
        return f"https:{url}"
    if url.startswith('/'):
        return f"{base}{url}"
    return f"{base}/{url}"


def parse_date_text(text: str, default_year: int) -> Tuple[Optional[date], bool]:
    """
    Find and parse the first date mentioned in a piece of text.

    Args:
        text: Text that may contain a date ("Aug 15", "August 15, 2025", "2025-08-15")
        default_year: Year to use when the text does not name one

    Returns:
        Tuple of (date or None, whether the year came from the text)
    """
    match = NUMERIC_DATE_PATTERN.search(text)
    if match:
        candidate = match.group(1)
        for fmt in ('%Y-%m-%d', '%m/%d/%Y'):
            try:
                return datetime.strptime(candidate, fmt).date(), True
            except ValueError:
                continue

    # "Market 12" also matches the month pattern, so keep looking past misses
    for match in MONTH_NAME_DATE_PATTERN.finditer(text):
        candidate = re.sub(r'(\d)(st|nd|rd|th)\b', r'\1', match.group(0), flags=re.IGNORECASE)
        candidate = clean_text(candidate.replace('.', '')).replace('Sept ', 'Sep ')

        for fmt in DATE_FORMATS_WITH_YEAR:
            try:
                return datetime.strptime(candidate, fmt).date(), True
            except ValueError:
                continue

        for fmt in DATE_FORMATS_WITHOUT_YEAR:
            try:
                parsed = datetime.strptime(f"{candidate} {default_year}", f"{fmt} %Y")
                return parsed.date(), False
            except ValueError:
                continue

    return None, False
