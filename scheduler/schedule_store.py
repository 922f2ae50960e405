"""Registry of named recurring import jobs, kept in the storage gateway."""
import logging
from typing import Callable, List, Optional

from processor.models import DEFAULT_SCHEDULES, ImportOutcome, ScheduledJob, utc_now_iso
from processor.reconciler import ImportReconciler

logger = logging.getLogger(__name__)


def validate_schedule(schedule: str) -> str:
    """Check that a schedule is a five-field cron expression."""
    if len(schedule.split()) != 5:
        raise ValueError(f"Schedule '{schedule}' is not a five-field cron expression")
    return schedule


class ScheduleStore:
    """
    Owns scheduled import jobs and runs them on demand.

    Jobs are stored through the reconciler's storage gateway, so changes
    survive between invocations. Triggering on the cron schedule itself is
    left to the deployment (for example an EventBridge rule invoking the
    Lambda with run_job).
    """

    def __init__(self, reconciler: ImportReconciler, clock: Optional[Callable[[], str]] = None):
        self.reconciler = reconciler
        self.gateway = reconciler.gateway
        self.clock = clock or utc_now_iso

    @classmethod
    def with_defaults(cls, reconciler: ImportReconciler,
                      clock: Optional[Callable[[], str]] = None) -> "ScheduleStore":
        """Store with the inactive monthly and weekly import jobs registered if missing."""
        store = cls(reconciler, clock=clock)
        store.gateway.seed_schedules([ScheduledJob.from_dict(job.to_dict())
                                      for job in DEFAULT_SCHEDULES])
        return store

    def create(self, job_id: str, description: str, schedule: str,
               sources: Optional[List[str]] = None) -> ScheduledJob:
        """
        Register a job, replacing any job with the same id. New jobs are inactive.

        Args:
            job_id: Unique job identifier
            description: Human readable description
            schedule: Five-field cron expression
            sources: Sources to import (default: every active source)

        Returns:
            The new ScheduledJob

        Raises:
            UnknownSourceError: If any source is unknown
            ValueError: If the schedule is not a cron expression
        """
        if sources:
            sources = [source.value for source in
                       self.reconciler.coordinator.validate_sources(sources)]
        job = ScheduledJob(
            id=job_id,
            description=description,
            schedule=validate_schedule(schedule),
            sources=list(sources or []),
        )
        self.gateway.save_schedule(job)
        logger.info(f"Scheduled job {job_id} created ({schedule})")
        return job

    def _set_active(self, job_id: str, active: bool) -> Optional[ScheduledJob]:
        job = self.gateway.get_schedule(job_id)
        if job is None:
            return None
        job.active = active
        self.gateway.save_schedule(job)
        logger.info(f"{'Started' if active else 'Stopped'} scheduled job: {job_id}")
        return job

    def start(self, job_id: str) -> Optional[ScheduledJob]:
        return self._set_active(job_id, True)

    def stop(self, job_id: str) -> Optional[ScheduledJob]:
        return self._set_active(job_id, False)

    def delete(self, job_id: str) -> bool:
        if not self.gateway.delete_schedule(job_id):
            return False
        logger.info(f"Deleted scheduled job: {job_id}")
        return True

    def get(self, job_id: str) -> Optional[ScheduledJob]:
        return self.gateway.get_schedule(job_id)

    def list(self) -> List[ScheduledJob]:
        return self.gateway.list_schedules()

    async def run_now(self, job_id: str) -> Optional[ImportOutcome]:
        """
        Run a job immediately over the default window.

        Args:
            job_id: Job to run

        Returns:
            ImportOutcome of the run, or None if the job does not exist
        """
        job = self.gateway.get_schedule(job_id)
        if job is None:
            return None

        sources = job.sources or self.reconciler.active_source_ids()
        logger.info(f"Running scheduled job {job_id} for {len(sources)} sources")
        outcome = await self.reconciler.import_sources(sources, job_type="scheduled")
        job.last_run = self.clock()
        self.gateway.save_schedule(job)
        logger.info(f"Scheduled job {job_id} completed as import job {outcome.job_id}")
        return outcome
