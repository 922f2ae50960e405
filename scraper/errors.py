"""Exceptions raised while fetching and extracting calendar pages."""
from enum import Enum
from typing import Iterable, Optional


class FetchErrorKind(str, Enum):
    HTTP_STATUS = "http_status"
    NETWORK = "network"


# Statuses that mean the site is refusing us rather than failing
BLOCKED_STATUS_CODES = (403, 429)


class FetchError(Exception):
    """A page could not be retrieved."""

    def __init__(self, message: str, kind: FetchErrorKind, status_code: Optional[int] = None):
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code

    @property
    def blocked(self) -> bool:
        return (
            self.kind == FetchErrorKind.HTTP_STATUS
            and self.status_code in BLOCKED_STATUS_CODES
        )


class ParseAnomaly(Exception):
    """An element did not have the shape a parser expected."""


class UnknownSourceError(ValueError):
    """One or more source identifiers are outside the known set."""

    def __init__(self, invalid: Iterable[str]):
        self.invalid = [str(source) for source in invalid]
        super().__init__(f"Invalid sources: {', '.join(self.invalid)}")
