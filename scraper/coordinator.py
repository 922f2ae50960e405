"""Fan-out of extraction across several calendar sources."""
import asyncio
import logging
from typing import AsyncIterator, Dict, Iterable, List, Optional, Type

from processor.models import (
    BulkScrapingResult,
    CalendarSource,
    DateWindow,
    SourceOutcome,
)
from scraper.errors import UnknownSourceError
from scraper.extractors import EXTRACTORS, SourceExtractor
from scraper.fetcher import PageFetcher

logger = logging.getLogger(__name__)


class MultiSourceCoordinator:
    """Runs one extractor per requested source concurrently and isolates their failures."""

    def __init__(self, fetcher: Optional[PageFetcher] = None,
                 extractors: Optional[Dict[CalendarSource, Type[SourceExtractor]]] = None):
        """
        Initialize the coordinator.

        Args:
            fetcher: Page fetcher shared by all extractors
            extractors: Source to extractor class map (default: EXTRACTORS)
        """
        self.fetcher = fetcher or PageFetcher()
        self.extractors = extractors if extractors is not None else EXTRACTORS

    def validate_sources(self, sources: Iterable[str]) -> List[CalendarSource]:
        """
        Resolve source identifiers, rejecting the whole request if any is unknown.

        Args:
            sources: Source identifiers as received from the caller

        Returns:
            List of CalendarSource values, duplicates removed, order kept

        Raises:
            UnknownSourceError: If any identifier is not a registered source
        """
        resolved: List[CalendarSource] = []
        invalid: List[str] = []
        for source in sources:
            try:
                source_id = CalendarSource(source)
            except ValueError:
                invalid.append(str(source))
                continue
            if source_id not in self.extractors:
                invalid.append(source_id.value)
                continue
            if source_id not in resolved:
                resolved.append(source_id)

        if invalid:
            raise UnknownSourceError(invalid)
        return resolved

    async def _run_one(self, source: CalendarSource, window: DateWindow) -> SourceOutcome:
        try:
            extractor = self.extractors[source](self.fetcher)
            result = await extractor.extract(window)
        except Exception as e:
            message = f"Failed to scrape {source.value}: {e}"
            logger.error(message, exc_info=True)
            return SourceOutcome(source=source, error=message)
        return SourceOutcome(source=source, result=result)

    async def iter_outcomes(self, sources: Iterable[str],
                            window: DateWindow) -> AsyncIterator[SourceOutcome]:
        """
        Extract every source concurrently, yielding outcomes as each finishes.

        A failing source yields an outcome carrying its error; the others
        are unaffected.

        Args:
            sources: Source identifiers to extract
            window: Date window shared by every source

        Yields:
            SourceOutcome per source, in completion order

        Raises:
            UnknownSourceError: Before any fetch, if a source is unknown
        """
        resolved = self.validate_sources(sources)
        logger.info(f"Scraping {len(resolved)} sources: {', '.join(s.value for s in resolved)}")

        tasks = [asyncio.ensure_future(self._run_one(source, window)) for source in resolved]
        try:
            for next_done in asyncio.as_completed(tasks):
                yield await next_done
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()

    async def scrape_all(self, sources: Iterable[str], window: DateWindow) -> BulkScrapingResult:
        """
        Extract every source and aggregate the results.

        Args:
            sources: Source identifiers to extract
            window: Date window shared by every source

        Returns:
            BulkScrapingResult across all sources
        """
        resolved = self.validate_sources(sources)
        outcomes = [outcome async for outcome in self.iter_outcomes(resolved, window)]
        bulk = BulkScrapingResult.from_outcomes(outcomes, total_sources=len(resolved))
        logger.info(
            f"Scraped {bulk.total_events} events from {bulk.successful_sources}/"
            f"{bulk.total_sources} sources"
        )
        return bulk
