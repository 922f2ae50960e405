"""Streaming view of an import run as status, progress and terminal events."""
import asyncio
import json
import logging
from typing import Any, AsyncIterator, Dict, List, Optional, Set

from processor.models import DateWindow, ImportOutcome
from processor.reconciler import ImportReconciler

logger = logging.getLogger(__name__)

# Imports that keep running after their stream listener went away
_background_imports: Set[asyncio.Task] = set()


def running_imports() -> Set[asyncio.Task]:
    """Import tasks still running after their listener left."""
    return set(_background_imports)


def _forget(task: asyncio.Task):
    _background_imports.discard(task)
    if not task.cancelled() and task.exception() is not None:
        logger.error(f"Import failed after its listener left: {task.exception()}")


def _complete_event(outcome: ImportOutcome) -> Dict[str, Any]:
    results = outcome.results
    return {
        'type': 'complete',
        'job_id': outcome.job_id,
        'total_events': results.total_events,
        'total_sources': results.total_sources,
        'successful_sources': results.successful_sources,
        'successful_imports': outcome.job.successful_imports,
        'global_errors': list(results.global_errors),
        'results': [result.summary() for result in results.results],
    }


async def stream_import(reconciler: ImportReconciler, sources: List[str],
                        window: Optional[DateWindow] = None) -> AsyncIterator[Dict[str, Any]]:
    """
    Run an import and yield its lifecycle as events.

    The first event is always a status event. One progress event follows
    per completed source, then exactly one complete or error event.
    A listener that stops reading only stops receiving events; the import
    itself runs to completion.

    Args:
        reconciler: Reconciler that runs the import
        sources: Source identifiers to import
        window: Optional date window

    Yields:
        Event dictionaries with a 'type' key
    """
    sources = list(sources)
    yield {
        'type': 'status',
        'message': 'Connected to import stream',
        'processed': 0,
        'total': len(sources),
    }

    queue: asyncio.Queue = asyncio.Queue()
    listening = True

    def forward(progress):
        if listening:
            queue.put_nowait(progress)

    async def run() -> ImportOutcome:
        try:
            return await reconciler.import_sources(
                sources, progress_callback=forward, window=window
            )
        finally:
            queue.put_nowait(None)

    task = asyncio.ensure_future(run())
    try:
        while True:
            progress = await queue.get()
            if progress is None:
                break
            yield {'type': 'progress', **progress.to_dict()}

        try:
            outcome = await task
        except Exception as e:
            logger.error(f"Streamed import failed: {e}")
            yield {'type': 'error', 'error': 'Import failed', 'details': str(e)}
            return

        yield _complete_event(outcome)
    finally:
        if not task.done():
            listening = False
            logger.info("Import stream listener left, import continues in the background")
            _background_imports.add(task)
            task.add_done_callback(_forget)


def format_sse(event: Dict[str, Any]) -> str:
    """Format an event as a server-sent events data frame."""
    return f"data: {json.dumps(event)}\n\n"
