"""Publishing of HLS artifacts to object storage."""

import logging
from typing import Iterable

from app.core.logging import log_info, log_warning
from app.core.metrics import ARTIFACT_UPLOADS_TOTAL
from app.core.storage import StorageBackend
from app.modules.ingest.exceptions import PerArtifactUploadError
from app.modules.ingest.schemas import ArtifactDescriptor, ArtifactUploadResult, UploadResult

logger = logging.getLogger(__name__)


class RemotePublisher:
    """Uploads artifacts one at a time, in the order given.

    Uploads are independent: a failed artifact is recorded and the batch
    carries on with the next one.
    """

    def __init__(self, backend: StorageBackend, key_prefix: str = "videos"):
        """Initialize publisher.

        Args:
            backend: Storage backend built from explicit configuration
            key_prefix: Namespace every artifact key is placed under
        """
        self.backend = backend
        self.key_prefix = key_prefix.strip("/")

    def key_for(self, artifact_name: str) -> str:
        if not self.key_prefix:
            return artifact_name
        return f"{self.key_prefix}/{artifact_name}"

    def publish(self, artifacts: Iterable[ArtifactDescriptor]) -> UploadResult:
        """Upload every uploadable artifact exactly once.

        Returns:
            Outcome per uploaded artifact name, in upload order
        """
        result = UploadResult()

        for artifact in artifacts:
            if not artifact.uploadable:
                continue

            key = self.key_for(artifact.name)
            try:
                outcome = self._upload_one(artifact, key)
            except PerArtifactUploadError as e:
                log_warning(logger, "Artifact upload failed", artifact=artifact.name, key=key, error=e.reason)
                ARTIFACT_UPLOADS_TOTAL.labels(status="failed").inc()
                outcome = ArtifactUploadResult(
                    name=artifact.name,
                    key=key,
                    success=False,
                    error=e.reason,
                )
            else:
                ARTIFACT_UPLOADS_TOTAL.labels(status="success").inc()

            result.results[artifact.name] = outcome

        log_info(
            logger,
            "Artifacts published",
            uploaded=len(result.succeeded),
            failed=len(result.failed),
        )
        return result

    def _upload_one(self, artifact: ArtifactDescriptor, key: str) -> ArtifactUploadResult:
        try:
            stored = self.backend.upload(artifact.path, key, content_type=artifact.content_type)
        except Exception as e:
            raise PerArtifactUploadError(artifact.name, key, str(e)) from e

        if not stored.success:
            raise PerArtifactUploadError(artifact.name, key, stored.error_message or "upload rejected")

        return ArtifactUploadResult(
            name=artifact.name,
            key=key,
            success=True,
            url=stored.url,
            file_size=stored.file_size,
        )
