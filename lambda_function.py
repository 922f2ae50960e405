"""AWS Lambda handler for Wayland Calendar Sync."""
import asyncio
import json
import logging
import os
import time
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Callable, Dict, List, Mapping, Optional

from processor.models import DateWindow, EventFilters, ImportOutcome
from processor.reconciler import ImportReconciler
from scheduler.schedule_store import ScheduleStore
from scraper.coordinator import MultiSourceCoordinator
from scraper.errors import UnknownSourceError
from scraper.fetcher import PageFetcher
from storage.gateway import create_gateway


# Configure JSON logging
class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


@dataclass
class Config:
    """Runtime settings read from the environment."""
    table_prefix: str = 'wayland-calendar'
    log_level: str = 'INFO'
    days_ahead: int = 90
    timeout_seconds: float = 20
    request_delay: float = 1.0


def load_config(environ: Optional[Mapping[str, str]] = None) -> Config:
    """
    Read configuration from environment variables.

    An empty TABLE_PREFIX disables storage, so every call is served from
    static fallback data.
    """
    env = os.environ if environ is None else environ
    return Config(
        table_prefix=env.get('TABLE_PREFIX', 'wayland-calendar'),
        log_level=env.get('LOG_LEVEL', 'INFO'),
        days_ahead=int(env.get('DAYS_AHEAD', '90')),
        timeout_seconds=float(env.get('TIMEOUT_SECONDS', '20')),
        request_delay=float(env.get('REQUEST_DELAY', '1.0')),
    )


def build_reconciler(config: Config) -> ImportReconciler:
    """Wire storage, fetcher and coordinator into a reconciler."""
    gateway = create_gateway(config.table_prefix)
    fetcher = PageFetcher(timeout=config.timeout_seconds, delay=config.request_delay)
    return ImportReconciler(gateway, MultiSourceCoordinator(fetcher), days_ahead=config.days_ahead)


class BadRequest(ValueError):
    """The invocation payload is malformed."""


class NotFound(LookupError):
    """The invocation names a record that does not exist."""


def _parse_date(value: Any, name: str) -> date:
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise BadRequest(f"Invalid {name}: {value!r} (expected YYYY-MM-DD)")


def _parse_window(event: Dict[str, Any], days_ahead: int) -> Optional[DateWindow]:
    """Window from optional start_date / end_date; None means the default window."""
    start_value = event.get('start_date')
    end_value = event.get('end_date')
    if not start_value and not end_value:
        return None

    start = _parse_date(start_value, 'start_date') if start_value else date.today()
    end = _parse_date(end_value, 'end_date') if end_value else start + timedelta(days=days_ahead)
    try:
        return DateWindow(start=start, end=end)
    except ValueError as e:
        raise BadRequest(str(e))


def _parse_int(event: Dict[str, Any], name: str, default: Optional[int] = None) -> int:
    value = event.get(name, default)
    if value is None:
        raise BadRequest(f"Missing required parameter: {name}")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise BadRequest(f"Invalid {name}: {value!r}")


def _parse_sources(event: Dict[str, Any]) -> Optional[List[str]]:
    sources = event.get('sources')
    if not sources:
        return None
    if isinstance(sources, str):
        return [source.strip() for source in sources.split(',') if source.strip()]
    if not isinstance(sources, list):
        raise BadRequest("sources must be a list of source identifiers")
    return sources


def _import_summary(outcome: ImportOutcome) -> Dict[str, Any]:
    job = outcome.job
    return {
        'job_id': job.id,
        'status': job.status.value,
        'statistics': {
            'total_events': outcome.results.total_events,
            'successful_imports': job.successful_imports,
            'total_sources': outcome.results.total_sources,
            'successful_sources': outcome.results.successful_sources,
        },
        'results': [result.summary() for result in outcome.results.results],
        'errors': job.errors,
        'warnings': job.warnings,
    }


def handle_import(reconciler: ImportReconciler, event: Dict[str, Any], config: Config):
    sources = _parse_sources(event) or reconciler.active_source_ids()
    window = _parse_window(event, config.days_ahead)
    outcome = asyncio.run(reconciler.import_sources(sources, window=window))
    return {'message': 'Import completed successfully', **_import_summary(outcome)}


def handle_list_sources(reconciler: ImportReconciler, event: Dict[str, Any], config: Config):
    return {'sources': [source.to_dict() for source in reconciler.list_sources()]}


def handle_get_job(reconciler: ImportReconciler, event: Dict[str, Any], config: Config):
    job_id = _parse_int(event, 'job_id')
    job = reconciler.get_job(job_id)
    if job is None:
        raise NotFound(f"Import job {job_id} not found")
    return {'job': job.to_dict()}


def handle_list_jobs(reconciler: ImportReconciler, event: Dict[str, Any], config: Config):
    limit = _parse_int(event, 'limit', 10)
    return {'jobs': [job.to_dict() for job in reconciler.list_jobs(limit)]}


def handle_list_events(reconciler: ImportReconciler, event: Dict[str, Any], config: Config):
    try:
        filters = EventFilters.from_dict(event.get('filters'))
        page = reconciler.list_events(
            filters, _parse_int(event, 'page', 1), _parse_int(event, 'limit', 50)
        )
    except BadRequest:
        raise
    except ValueError as e:
        raise BadRequest(str(e))
    return page.to_dict()


def handle_stats(reconciler: ImportReconciler, event: Dict[str, Any], config: Config):
    return {'stats': reconciler.event_stats()}


def _schedule_id(event: Dict[str, Any]) -> str:
    job_id = event.get('job_id')
    if not job_id or not isinstance(job_id, str):
        raise BadRequest("Missing required parameter: job_id")
    return job_id


def handle_run_job(reconciler: ImportReconciler, event: Dict[str, Any], config: Config):
    job_id = _schedule_id(event)
    store = ScheduleStore.with_defaults(reconciler)
    outcome = asyncio.run(store.run_now(job_id))
    if outcome is None:
        raise NotFound(f"Scheduled job {job_id} not found")
    return {'message': f"Scheduled job {job_id} completed", **_import_summary(outcome)}


def handle_list_schedules(reconciler: ImportReconciler, event: Dict[str, Any], config: Config):
    store = ScheduleStore.with_defaults(reconciler)
    return {'schedules': [job.to_dict() for job in store.list()]}


def handle_create_schedule(reconciler: ImportReconciler, event: Dict[str, Any], config: Config):
    job_id = _schedule_id(event)
    schedule = event.get('schedule')
    if not schedule or not isinstance(schedule, str):
        raise BadRequest("Missing required parameter: schedule")

    store = ScheduleStore.with_defaults(reconciler)
    try:
        job = store.create(job_id, event.get('description') or job_id, schedule,
                           sources=_parse_sources(event))
    except UnknownSourceError:
        raise
    except ValueError as e:
        raise BadRequest(str(e))
    return {'message': f"Scheduled job {job_id} created", 'schedule': job.to_dict()}


def _toggle_schedule(reconciler: ImportReconciler, event: Dict[str, Any], active: bool):
    job_id = _schedule_id(event)
    store = ScheduleStore.with_defaults(reconciler)
    job = store.start(job_id) if active else store.stop(job_id)
    if job is None:
        raise NotFound(f"Scheduled job {job_id} not found")
    return {
        'message': f"Scheduled job {job_id} {'started' if active else 'stopped'}",
        'schedule': job.to_dict(),
    }


def handle_start_schedule(reconciler: ImportReconciler, event: Dict[str, Any], config: Config):
    return _toggle_schedule(reconciler, event, True)


def handle_stop_schedule(reconciler: ImportReconciler, event: Dict[str, Any], config: Config):
    return _toggle_schedule(reconciler, event, False)


def handle_delete_schedule(reconciler: ImportReconciler, event: Dict[str, Any], config: Config):
    job_id = _schedule_id(event)
    if not ScheduleStore.with_defaults(reconciler).delete(job_id):
        raise NotFound(f"Scheduled job {job_id} not found")
    return {'message': f"Scheduled job {job_id} deleted"}


def handle_health(reconciler: ImportReconciler, event: Dict[str, Any], config: Config):
    return {'health': reconciler.gateway.health()}


ACTIONS: Dict[str, Callable[[ImportReconciler, Dict[str, Any], Config], Dict[str, Any]]] = {
    'import': handle_import,
    'list_sources': handle_list_sources,
    'get_job': handle_get_job,
    'list_jobs': handle_list_jobs,
    'list_events': handle_list_events,
    'stats': handle_stats,
    'run_job': handle_run_job,
    'list_schedules': handle_list_schedules,
    'create_schedule': handle_create_schedule,
    'start_schedule': handle_start_schedule,
    'stop_schedule': handle_stop_schedule,
    'delete_schedule': handle_delete_schedule,
    'health': handle_health,
}


def _response(status_code: int, body: Dict[str, Any]) -> Dict[str, Any]:
    return {'statusCode': status_code, 'body': json.dumps(body)}


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Main Lambda handler function for Wayland Calendar Sync.

    The payload's "action" selects the operation; scheduled EventBridge
    invocations carry no action and run an import of every active source.

    Args:
        event: Invocation payload
        context: Lambda context object

    Returns:
        Response dict with statusCode and a JSON body
    """
    config = load_config()

    setup_logging(config.log_level)
    logger = logging.getLogger(__name__)

    start_time = time.time()
    event = event or {}
    action = event.get('action') or 'import'
    logger.info(
        f"Lambda execution started: {action}",
        extra={
            'action': action,
            'table_prefix': config.table_prefix,
            'days_ahead': config.days_ahead,
        }
    )

    try:
        handler = ACTIONS.get(action)
        if handler is None:
            raise BadRequest(f"Unknown action: {action}")

        reconciler = build_reconciler(config)
        body = handler(reconciler, event, config)

    except (BadRequest, UnknownSourceError) as e:
        duration = time.time() - start_time
        logger.warning(f"Rejected {action} request: {e}")
        return _response(400, {
            'message': 'Invalid request',
            'error': str(e),
            'error_type': type(e).__name__,
            'duration_seconds': round(duration, 2)
        })

    except NotFound as e:
        duration = time.time() - start_time
        return _response(404, {
            'message': 'Not found',
            'error': str(e),
            'error_type': type(e).__name__,
            'duration_seconds': round(duration, 2)
        })

    except Exception as e:
        duration = time.time() - start_time
        logger.error(
            f"Lambda execution failed: {str(e)}",
            extra={
                'duration_seconds': round(duration, 2),
                'error_type': type(e).__name__
            },
            exc_info=True
        )
        return _response(500, {
            'message': f"{action} failed",
            'error': str(e),
            'error_type': type(e).__name__,
            'duration_seconds': round(duration, 2)
        })

    duration = time.time() - start_time
    logger.info(
        "Lambda execution completed successfully",
        extra={'action': action, 'duration_seconds': round(duration, 2)}
    )
    body['duration_seconds'] = round(duration, 2)
    return _response(200, body)
