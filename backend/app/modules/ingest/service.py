"""Video ingestion orchestration.

A run moves strictly forward through
``received -> staged -> transcoded -> enumerated -> published -> done``.
Staging and transcoding failures end the run immediately and propagate to the
caller as ``IngestionFailedError``; nothing is retried. Upload failures of
individual artifacts do not fail the run, they are reported in the result.
"""

import logging
import threading
import time
from contextlib import contextmanager
from typing import Iterator, Optional

from app.core.config import Settings, settings
from app.core.logging import log_error, log_info
from app.core.metrics import INGESTION_RUNS_TOTAL, INGESTION_STAGE_DURATION_SECONDS
from app.core.storage import StorageConfig, create_storage_backend
from app.core.tracing import create_span
from app.modules.ingest.artifacts import enumerate_artifacts
from app.modules.ingest.exceptions import (
    IngestionError,
    IngestionFailedError,
    StagingError,
    StagingIOError,
    TranscodeProcessError,
)
from app.modules.ingest.ffmpeg import HLSTranscoder
from app.modules.ingest.models import CollisionPolicy, IngestionStage, IngestionState
from app.modules.ingest.publisher import RemotePublisher
from app.modules.ingest.schemas import IngestionRequest, IngestionResult, StagingDirectory
from app.modules.ingest.staging import StagingStore

logger = logging.getLogger(__name__)


class IngestionOrchestrator:
    """Sequences staging, transcoding, enumeration and publishing."""

    def __init__(
        self,
        staging_store: StagingStore,
        transcoder: HLSTranscoder,
        publisher: RemotePublisher,
    ):
        self.staging_store = staging_store
        self.transcoder = transcoder
        self.publisher = publisher

    def ingest(
        self,
        request: IngestionRequest,
        cancel_event: Optional[threading.Event] = None,
    ) -> IngestionResult:
        """Run the whole pipeline for one upload.

        Args:
            request: Raw bytes and original file name
            cancel_event: Set to abort the run; checked before and during ffmpeg

        Returns:
            Result in state ``done``; inspect ``completed`` and
            ``upload.failed`` for partial upload failures

        Raises:
            IngestionFailedError: Staging or transcoding failed
        """
        log_info(
            logger,
            "Ingestion received",
            file_name=request.original_file_name,
            size_bytes=len(request.raw_bytes),
            state=IngestionState.RECEIVED.value,
        )
        staging = self.stage(request)
        return self.process_staged(staging, cancel_event=cancel_event)

    def stage(self, request: IngestionRequest) -> StagingDirectory:
        """Stage the upload (``received -> staged``)."""
        try:
            with self._stage(IngestionStage.STAGING, file_name=request.original_file_name):
                staging = self.staging_store.stage(request)
        except StagingError as e:
            raise self._fail(IngestionStage.STAGING, e) from e

        self._transition(IngestionState.STAGED, staging)
        return staging

    def process_staged(
        self,
        staging: StagingDirectory,
        cancel_event: Optional[threading.Event] = None,
    ) -> IngestionResult:
        """Transcode, enumerate and publish an already staged upload."""
        try:
            with self._stage(IngestionStage.TRANSCODE, staging_path=staging.path):
                self.transcoder.transcode(staging.raw_path, staging, cancel_event=cancel_event)
        except TranscodeProcessError as e:
            raise self._fail(IngestionStage.TRANSCODE, e) from e
        self._transition(IngestionState.TRANSCODED, staging)

        try:
            with self._stage(IngestionStage.ENUMERATE, staging_path=staging.path):
                artifacts = list(enumerate_artifacts(staging))
        except OSError as e:
            raise self._fail(IngestionStage.ENUMERATE, StagingIOError(staging.path, e)) from e
        self._transition(IngestionState.ENUMERATED, staging)

        with self._stage(IngestionStage.PUBLISH, staging_path=staging.path):
            upload = self.publisher.publish(artifacts)
        self._transition(IngestionState.PUBLISHED, staging)

        result = IngestionResult(
            state=IngestionState.DONE,
            base_name=staging.base_name,
            staging_path=staging.path,
            manifest_name=staging.manifest_name,
            artifacts=artifacts,
            upload=upload,
        )
        INGESTION_RUNS_TOTAL.labels(state=IngestionState.DONE.value, stage="").inc()
        log_info(
            logger,
            "Ingestion done",
            base_name=staging.base_name,
            state=IngestionState.DONE.value,
            completed=result.completed,
            failed_artifacts=sorted(upload.failed),
        )
        return result

    @contextmanager
    def _stage(self, stage: IngestionStage, **attributes) -> Iterator[None]:
        start = time.perf_counter()
        with create_span(f"ingest.{stage.value}", attributes=attributes):
            try:
                yield
            finally:
                INGESTION_STAGE_DURATION_SECONDS.labels(stage=stage.value).observe(
                    time.perf_counter() - start
                )

    def _transition(self, state: IngestionState, staging: StagingDirectory) -> None:
        logger.debug(
            "Ingestion state changed",
            extra={"state": state.value, "base_name": staging.base_name},
        )

    def _fail(self, stage: IngestionStage, cause: IngestionError) -> IngestionFailedError:
        INGESTION_RUNS_TOTAL.labels(state=IngestionState.FAILED.value, stage=stage.value).inc()
        log_error(
            logger,
            "Ingestion failed",
            exception=cause,
            stage=stage.value,
            state=IngestionState.FAILED.value,
        )
        return IngestionFailedError(stage, cause)


def storage_config_from_settings(config: Settings) -> StorageConfig:
    """Build the object store configuration from application settings."""
    return StorageConfig(
        backend=config.STORAGE_BACKEND,
        bucket=config.STORAGE_BUCKET,
        region=config.STORAGE_REGION,
        access_key=config.STORAGE_ACCESS_KEY,
        secret_key=config.STORAGE_SECRET_KEY,
        endpoint_url=config.STORAGE_ENDPOINT_URL,
        use_ssl=config.STORAGE_USE_SSL,
        local_path=config.LOCAL_STORAGE_PATH,
        cdn_domain=config.CDN_DOMAIN,
        cdn_enabled=config.CDN_ENABLED,
    )


def create_ingestion_orchestrator(config: Optional[Settings] = None) -> IngestionOrchestrator:
    """Wire an orchestrator from settings (the composition root)."""
    config = config or settings
    return IngestionOrchestrator(
        staging_store=StagingStore(
            config.STAGING_ROOT,
            collision_policy=CollisionPolicy(config.STAGING_COLLISION_POLICY),
        ),
        transcoder=HLSTranscoder(
            ffmpeg_path=config.FFMPEG_PATH,
            segment_seconds=config.HLS_SEGMENT_SECONDS,
            list_size=config.HLS_LIST_SIZE,
            timeout=config.TRANSCODE_TIMEOUT_SECONDS,
        ),
        publisher=RemotePublisher(
            create_storage_backend(storage_config_from_settings(config)),
            key_prefix=config.STORAGE_KEY_PREFIX,
        ),
    )
