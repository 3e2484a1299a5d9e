"""Video upload API router.

The blocking pipeline runs on a worker thread so the event loop keeps
serving other requests while ffmpeg works.
"""

import asyncio
import threading

from fastapi import APIRouter, Depends, File, HTTPException, Response, UploadFile, status
from pydantic import ValidationError

from app.core.config import settings
from app.modules.ingest.exceptions import IngestionFailedError, StagingConflict
from app.modules.ingest.schemas import IngestionRequest, IngestionResponse
from app.modules.ingest.service import IngestionOrchestrator, create_ingestion_orchestrator
from app.modules.ingest.tasks import process_staged_video_task

router = APIRouter(prefix="/board", tags=["videos"])


def get_ingestion_orchestrator() -> IngestionOrchestrator:
    return create_ingestion_orchestrator()


def _failure_status(error: IngestionFailedError) -> int:
    if isinstance(error.cause, StagingConflict):
        return status.HTTP_409_CONFLICT
    return status.HTTP_500_INTERNAL_SERVER_ERROR


@router.post("/upload", response_model=IngestionResponse, status_code=status.HTTP_201_CREATED)
async def upload_video(
    response: Response,
    video: UploadFile = File(...),
    orchestrator: IngestionOrchestrator = Depends(get_ingestion_orchestrator),
):
    """Upload a video and package it for HLS streaming.

    Responds 201 once the HLS artifacts are published, or 202 when packaging
    is handed to a background worker.
    """
    raw_bytes = await video.read()
    try:
        request = IngestionRequest(raw_bytes=raw_bytes, original_file_name=video.filename or "")
    except ValidationError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Upload must include a video file name",
        )

    try:
        if settings.INGEST_ASYNC:
            staging = await asyncio.to_thread(orchestrator.stage, request)
            process_staged_video_task.delay(
                staging.path, staging.base_name, staging.raw_file_name
            )
            response.status_code = status.HTTP_202_ACCEPTED
            return IngestionResponse.from_staging(staging)

        cancel_event = threading.Event()
        try:
            result = await asyncio.to_thread(orchestrator.ingest, request, cancel_event)
        except asyncio.CancelledError:
            # Outer cancellation such as server shutdown; stop ffmpeg instead of orphaning it
            cancel_event.set()
            raise
    except IngestionFailedError as e:
        raise HTTPException(
            status_code=_failure_status(e),
            detail={"stage": e.stage.value, "message": str(e.cause)},
        )

    return IngestionResponse.from_result(result)
