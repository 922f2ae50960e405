"""Reconciles scraped candidates against storage and tracks import jobs."""
import asyncio
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional

from processor.models import (
    BulkScrapingResult,
    DateWindow,
    EventFilters,
    EventPage,
    ImportJob,
    ImportOutcome,
    ImportProgress,
    PersistedEvent,
    SourceDescriptor,
    SourceOutcome,
    SourceScrapeResult,
    utc_now_iso,
)
from scraper.coordinator import MultiSourceCoordinator
from scraper.sources import SOURCE_CATALOG, all_descriptors
from storage.gateway import StorageGateway

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ImportProgress], None]


class ImportReconciler:
    """Runs import jobs: scrape every source, then upsert what was found."""

    def __init__(self, gateway: StorageGateway, coordinator: MultiSourceCoordinator,
                 clock: Optional[Callable[[], str]] = None, days_ahead: int = 90):
        """
        Initialize the reconciler.

        Args:
            gateway: Storage for sources, events and jobs
            coordinator: Multi-source coordinator used to scrape
            clock: Callable returning the current ISO timestamp (default: utc_now_iso)
            days_ahead: Length of the default date window
        """
        self.gateway = gateway
        self.coordinator = coordinator
        self.clock = clock or utc_now_iso
        self.days_ahead = days_ahead

    async def import_sources(self, sources: Iterable[str],
                             progress_callback: Optional[ProgressCallback] = None,
                             window: Optional[DateWindow] = None,
                             job_type: str = "multi-source") -> ImportOutcome:
        """
        Scrape the given sources and reconcile their events into storage.

        Progress is reported once per source as it finishes. A failure in
        the callback is logged and otherwise ignored.

        Args:
            sources: Source identifiers to import
            progress_callback: Optional callable receiving ImportProgress
            window: Date window to import (default: today + days_ahead)
            job_type: Job type recorded on the import job

        Returns:
            ImportOutcome with the finished job and the bulk scraping result

        Raises:
            UnknownSourceError: If any source is unknown; nothing is recorded
        """
        resolved = self.coordinator.validate_sources(sources)
        window = window or DateWindow.default(self.days_ahead)

        now = self.clock()
        self.gateway.seed_sources(all_descriptors(now))

        job = ImportJob(job_type=job_type, sources=[source.value for source in resolved],
                        created_at=now)
        job.start(now)
        job = self.gateway.create_job(job)
        logger.info(
            f"Started import job {job.id} for {len(resolved)} sources",
            extra={'job_id': job.id, 'window': window.to_dict()},
        )

        outcomes: List[SourceOutcome] = []
        errors: List[str] = []
        warnings: List[str] = []
        imported = 0

        try:
            async for outcome in self.coordinator.iter_outcomes(resolved, window):
                outcomes.append(outcome)
                if outcome.succeeded:
                    count = self._reconcile(outcome.result, errors, warnings)
                    imported += count
                    status = f"Imported {count} events from {SOURCE_CATALOG[outcome.source].display_name}"
                else:
                    errors.append(outcome.error)
                    status = f"Failed to scrape {SOURCE_CATALOG[outcome.source].display_name}"

                self._notify(progress_callback, ImportProgress(
                    processed=len(outcomes),
                    total=len(resolved),
                    status=status,
                    current_source=outcome.source.value,
                    errors=list(errors),
                    warnings=list(warnings),
                ))

            results = BulkScrapingResult.from_outcomes(outcomes, total_sources=len(resolved))
            job.complete(self.clock(), results, imported, errors, warnings)
            self.gateway.save_job(job)
        except asyncio.CancelledError:
            logger.warning(f"Import job {job.id} was cancelled")
            self._fail(job, "import was cancelled", outcomes, len(resolved),
                       imported, errors, warnings)
            raise
        except Exception as e:
            logger.error(f"Import job {job.id} failed: {e}", exc_info=True)
            self._fail(job, str(e), outcomes, len(resolved), imported, errors, warnings)
            raise

        logger.info(
            f"Import job {job.id} completed: {imported} imported, "
            f"{len(errors)} errors, {len(warnings)} warnings"
        )
        return ImportOutcome(job=job, results=results)

    def _fail(self, job: ImportJob, error: str, outcomes: List[SourceOutcome],
              total_sources: int, imported: int, errors: List[str], warnings: List[str]):
        """Record a failed job with everything captured before the failure."""
        if job.is_terminal:
            return
        partial = BulkScrapingResult.from_outcomes(outcomes, total_sources=total_sources)
        job.fail(self.clock(), error, results=partial, imported=imported,
                 errors=errors, warnings=warnings)
        self.gateway.save_job(job)

    def _reconcile(self, result: SourceScrapeResult, errors: List[str], warnings: List[str]) -> int:
        """Upsert one source's candidates and record its statistics; return the number imported."""
        now = self.clock()
        imported = 0
        for candidate in result.events:
            try:
                _, created = self.gateway.upsert_event(PersistedEvent.from_candidate(candidate, now))
                imported += 1
                logger.debug(
                    f"{'Inserted' if created else 'Updated'} '{candidate.title}' "
                    f"on {candidate.start_date.isoformat()}"
                )
            except Exception as e:
                message = (
                    f'Failed to import event "{candidate.title}" from '
                    f'{result.source.value}: {e}'
                )
                logger.warning(message)
                errors.append(message)

        errors.extend(result.errors)
        warnings.extend(result.warnings)
        self.gateway.record_source_scrape(result.source.value, now, len(result.events), imported)
        return imported

    @staticmethod
    def _notify(callback: Optional[ProgressCallback], progress: ImportProgress):
        if callback is None:
            return
        try:
            callback(progress)
        except Exception as e:
            logger.warning(f"Progress callback failed, continuing import: {e}")

    def list_sources(self) -> List[SourceDescriptor]:
        """Registered sources; an empty store is seeded from the catalog first."""
        sources = self.gateway.list_sources()
        if not sources:
            logger.info("No calendar sources found, seeding from catalog")
            self.gateway.seed_sources(all_descriptors(self.clock()))
            sources = self.gateway.list_sources()
        return sources

    def active_source_ids(self) -> List[str]:
        return [source.id.value for source in self.list_sources() if source.is_active]

    def get_job(self, job_id: int) -> Optional[ImportJob]:
        return self.gateway.get_job(job_id)

    def list_jobs(self, limit: int = 10) -> List[ImportJob]:
        return self.gateway.list_jobs(limit)

    def list_events(self, filters: Optional[EventFilters] = None,
                    page: int = 1, limit: int = 50) -> EventPage:
        return self.gateway.list_events(filters or EventFilters(), page, limit)

    def event_stats(self) -> Dict[str, Any]:
        return self.gateway.event_stats()
