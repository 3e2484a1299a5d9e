"""Celery tasks for background HLS packaging.

Used when ``INGEST_ASYNC`` is enabled: the upload request stages the raw file
and returns, and a worker picks the staged directory up from here.
"""

import logging
import threading

from celery.exceptions import SoftTimeLimitExceeded

from app.core.celery_app import celery_app
from app.core.logging import log_error
from app.modules.ingest.exceptions import IngestionFailedError
from app.modules.ingest.models import IngestionState
from app.modules.ingest.schemas import StagingDirectory
from app.modules.ingest.service import create_ingestion_orchestrator

logger = logging.getLogger(__name__)


def run_staged_ingestion(staging_path: str, base_name: str, raw_file_name: str) -> dict:
    """Transcode and publish a staged upload, returning a JSON-able summary.

    Pipeline failures are reported in the summary rather than raised; the
    task is not retried. When the task's soft time limit fires, the run's
    cancel event is set and ffmpeg is stopped as the exception unwinds the
    runner.
    """
    staging = StagingDirectory(
        path=staging_path,
        base_name=base_name,
        raw_file_name=raw_file_name,
    )
    orchestrator = create_ingestion_orchestrator()
    cancel_event = threading.Event()

    try:
        result = orchestrator.process_staged(staging, cancel_event=cancel_event)
    except IngestionFailedError as e:
        return {
            "state": IngestionState.FAILED.value,
            "stage": e.stage.value,
            "error": str(e.cause),
            "base_name": base_name,
        }
    except SoftTimeLimitExceeded as e:
        cancel_event.set()
        log_error(logger, "Background ingestion hit its time limit", exception=e, base_name=base_name)
        return {
            "state": IngestionState.FAILED.value,
            "stage": None,
            "error": "time limit exceeded",
            "base_name": base_name,
        }

    return {
        "state": result.state.value,
        "base_name": result.base_name,
        "completed": result.completed,
        "uploaded": result.upload.succeeded,
        "failed": result.upload.failed,
    }


@celery_app.task(name="ingest.process_staged_video", acks_late=False)
def process_staged_video_task(staging_path: str, base_name: str, raw_file_name: str) -> dict:
    """Celery entry point for :func:`run_staged_ingestion`."""
    return run_staged_ingestion(staging_path, base_name, raw_file_name)
