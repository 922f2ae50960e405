"""DynamoDB-backed storage for sources, events, import jobs and schedules."""
import logging
from contextlib import contextmanager
from dataclasses import asdict
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from processor.models import (
    EventFilters,
    EventPage,
    ImportJob,
    PersistedEvent,
    ScheduledJob,
    SourceDescriptor,
)
from storage.gateway import (
    StorageGateway,
    StorageRejectedError,
    StorageUnavailableError,
    paginate_events,
    summarize_events,
)

logger = logging.getLogger(__name__)

EVENTS_COUNTER = 'events'
JOBS_COUNTER = 'import-jobs'

# Errors where the table is reachable but refuses the request itself
REJECTED_ERROR_CODES = ('ValidationException', 'ItemCollectionSizeLimitExceededException')


def _to_item(data: Dict[str, Any]) -> Dict[str, Any]:
    """Drop unset attributes; DynamoDB items only carry what is present."""
    return {key: value for key, value in data.items() if value is not None}


def _from_item(value: Any) -> Any:
    """Convert DynamoDB Decimals back to ints, recursively."""
    if isinstance(value, Decimal):
        return int(value)
    if isinstance(value, dict):
        return {key: _from_item(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_from_item(item) for item in value]
    return value


def _error_code(error: ClientError) -> Optional[str]:
    return error.response.get('Error', {}).get('Code')


def _is_conditional_failure(error: ClientError) -> bool:
    return _error_code(error) == 'ConditionalCheckFailedException'


class DynamoDBGateway(StorageGateway):
    """Storage gateway over five DynamoDB tables sharing a name prefix."""

    def __init__(self, table_prefix: str, dynamodb=None):
        """
        Initialize DynamoDB table references.

        Args:
            table_prefix: Prefix for the -events, -sources, -import-jobs, -schedules and
                -counters tables
            dynamodb: Optional boto3 DynamoDB resource (default: a new resource)

        Raises:
            StorageUnavailableError: If boto3 cannot be configured
        """
        self.table_prefix = table_prefix
        try:
            self.dynamodb = dynamodb or boto3.resource('dynamodb')
        except (BotoCoreError, ClientError) as e:
            raise StorageUnavailableError(f"Could not create DynamoDB resource: {e}") from e

        self.events_table = self.dynamodb.Table(f"{table_prefix}-events")
        self.sources_table = self.dynamodb.Table(f"{table_prefix}-sources")
        self.jobs_table = self.dynamodb.Table(f"{table_prefix}-import-jobs")
        self.schedules_table = self.dynamodb.Table(f"{table_prefix}-schedules")
        self.counters_table = self.dynamodb.Table(f"{table_prefix}-counters")
        self._available: Optional[bool] = None
        logger.info(f"Initialized DynamoDBGateway for table prefix: {table_prefix}")

    @property
    def tables(self):
        return (self.events_table, self.sources_table, self.jobs_table,
                self.schedules_table, self.counters_table)

    @contextmanager
    def _storage_errors(self, operation: str):
        try:
            yield
        except ClientError as e:
            if _error_code(e) in REJECTED_ERROR_CODES:
                logger.error(f"DynamoDB rejected {operation}: {e}")
                raise StorageRejectedError(f"{operation} rejected: {e}") from e
            self._available = None
            logger.error(f"DynamoDB {operation} failed: {e}")
            raise StorageUnavailableError(f"{operation} failed: {e}") from e
        except BotoCoreError as e:
            self._available = None
            logger.error(f"DynamoDB {operation} failed: {e}")
            raise StorageUnavailableError(f"{operation} failed: {e}") from e

    def is_available(self) -> bool:
        """Check that every table exists; a success is remembered until an operation fails."""
        if self._available:
            return True
        try:
            for table in self.tables:
                table.load()
        except (ClientError, BotoCoreError) as e:
            logger.warning(f"DynamoDB tables with prefix {self.table_prefix} unavailable: {e}")
            self._available = False
            return False
        self._available = True
        return True

    def _scan(self, table) -> List[Dict[str, Any]]:
        response = table.scan()
        items = response.get('Items', [])

        while 'LastEvaluatedKey' in response:
            response = table.scan(ExclusiveStartKey=response['LastEvaluatedKey'])
            items.extend(response.get('Items', []))

        return [_from_item(item) for item in items]

    def _next_id(self, counter: str) -> int:
        response = self.counters_table.update_item(
            Key={'name': counter},
            UpdateExpression='ADD #value :one',
            ExpressionAttributeNames={'#value': 'value'},
            ExpressionAttributeValues={':one': 1},
            ReturnValues='UPDATED_NEW',
        )
        return int(response['Attributes']['value'])

    # Sources

    def seed_sources(self, descriptors: List[SourceDescriptor]) -> None:
        seeded = 0
        with self._storage_errors('seed_sources'):
            for descriptor in descriptors:
                try:
                    self.sources_table.put_item(
                        Item=_to_item(descriptor.to_dict()),
                        ConditionExpression='attribute_not_exists(#id)',
                        ExpressionAttributeNames={'#id': 'id'},
                    )
                    seeded += 1
                except ClientError as e:
                    if not _is_conditional_failure(e):
                        raise
        if seeded:
            logger.info(f"Seeded {seeded} calendar sources")

    def list_sources(self) -> List[SourceDescriptor]:
        with self._storage_errors('list_sources'):
            items = self._scan(self.sources_table)
        sources = [SourceDescriptor.from_dict(item) for item in items]
        return sorted(sources, key=lambda source: source.display_name)

    def record_source_scrape(self, source_id: str, scraped_at: str,
                             total_events: int, imported: int) -> None:
        with self._storage_errors('record_source_scrape'):
            self.sources_table.update_item(
                Key={'id': source_id},
                UpdateExpression=(
                    'SET last_scraped = :scraped_at, updated_at = :scraped_at, '
                    'total_events = :total ADD successful_imports :imported'
                ),
                ExpressionAttributeValues={
                    ':scraped_at': scraped_at,
                    ':total': total_events,
                    ':imported': imported,
                },
            )

    # Events

    def find_event(self, event_key: str) -> Optional[PersistedEvent]:
        with self._storage_errors('find_event'):
            response = self.events_table.get_item(Key={'event_key': event_key})
        item = response.get('Item')
        return PersistedEvent.from_dict(_from_item(item)) if item else None

    def _put_event(self, event: PersistedEvent, new: bool = False):
        kwargs = {'Item': _to_item(event.to_dict())}
        if new:
            kwargs['ConditionExpression'] = 'attribute_not_exists(event_key)'
        self.events_table.put_item(**kwargs)

    def upsert_event(self, event: PersistedEvent) -> Tuple[PersistedEvent, bool]:
        """
        Insert or update an event by its logical key.

        New events are written with a condition on the key, so two writers
        racing on the same event end with one insert and one update.

        Args:
            event: Event built from a candidate

        Returns:
            Tuple of (stored record, True if it was inserted)
        """
        existing = self.find_event(event.event_key)
        with self._storage_errors('upsert_event'):
            if existing is None:
                event.id = self._next_id(EVENTS_COUNTER)
                try:
                    self._put_event(event, new=True)
                    return event, True
                except ClientError as e:
                    if not _is_conditional_failure(e):
                        raise
                    logger.debug(f"Event {event.event_key} was inserted concurrently, updating")
                response = self.events_table.get_item(Key={'event_key': event.event_key})
                existing = PersistedEvent.from_dict(_from_item(response['Item']))

            merged = event.merged_into(existing, event.updated_at)
            self._put_event(merged)
            return merged, False

    def list_events(self, filters: EventFilters, page: int = 1, limit: int = 50) -> EventPage:
        with self._storage_errors('list_events'):
            items = self._scan(self.events_table)
        events = [PersistedEvent.from_dict(item) for item in items]
        return paginate_events(events, filters, page, limit)

    def event_stats(self) -> Dict[str, Any]:
        with self._storage_errors('event_stats'):
            items = self._scan(self.events_table)
        return summarize_events([PersistedEvent.from_dict(item) for item in items])

    # Import jobs

    def _job_item(self, job: ImportJob) -> Dict[str, Any]:
        data = asdict(job)
        data['status'] = job.status.value
        return _to_item(data)

    def create_job(self, job: ImportJob) -> ImportJob:
        with self._storage_errors('create_job'):
            job.id = self._next_id(JOBS_COUNTER)
            self.jobs_table.put_item(Item=self._job_item(job))
        logger.info(f"Created import job {job.id}")
        return job

    def save_job(self, job: ImportJob) -> None:
        with self._storage_errors('save_job'):
            self.jobs_table.put_item(Item=self._job_item(job))

    def get_job(self, job_id: int) -> Optional[ImportJob]:
        with self._storage_errors('get_job'):
            response = self.jobs_table.get_item(Key={'id': job_id})
        item = response.get('Item')
        return ImportJob.from_dict(_from_item(item)) if item else None

    def list_jobs(self, limit: int = 10) -> List[ImportJob]:
        with self._storage_errors('list_jobs'):
            items = self._scan(self.jobs_table)
        jobs = sorted((ImportJob.from_dict(item) for item in items),
                      key=lambda job: job.id or 0, reverse=True)
        return jobs[:limit]

    # Scheduled jobs

    def seed_schedules(self, jobs: List[ScheduledJob]) -> None:
        with self._storage_errors('seed_schedules'):
            for job in jobs:
                try:
                    self.schedules_table.put_item(
                        Item=_to_item(job.to_dict()),
                        ConditionExpression='attribute_not_exists(#id)',
                        ExpressionAttributeNames={'#id': 'id'},
                    )
                    logger.info(f"Seeded scheduled job {job.id}")
                except ClientError as e:
                    if not _is_conditional_failure(e):
                        raise

    def list_schedules(self) -> List[ScheduledJob]:
        with self._storage_errors('list_schedules'):
            items = self._scan(self.schedules_table)
        return sorted((ScheduledJob.from_dict(item) for item in items), key=lambda job: job.id)

    def get_schedule(self, job_id: str) -> Optional[ScheduledJob]:
        with self._storage_errors('get_schedule'):
            response = self.schedules_table.get_item(Key={'id': job_id})
        item = response.get('Item')
        return ScheduledJob.from_dict(_from_item(item)) if item else None

    def save_schedule(self, job: ScheduledJob) -> None:
        with self._storage_errors('save_schedule'):
            self.schedules_table.put_item(Item=_to_item(job.to_dict()))

    def delete_schedule(self, job_id: str) -> bool:
        with self._storage_errors('delete_schedule'):
            response = self.schedules_table.delete_item(Key={'id': job_id}, ReturnValues='ALL_OLD')
        return 'Attributes' in response
