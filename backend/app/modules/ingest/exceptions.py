"""Exceptions raised by the video ingestion pipeline."""

from typing import Optional

from app.modules.ingest.models import IngestionStage


class IngestionError(Exception):
    """Base exception for ingestion pipeline errors."""
    pass


class StagingError(IngestionError):
    """Raised when the upload cannot be staged locally."""
    pass


class StagingConflict(StagingError):
    """Raised when the staging directory for an upload already exists."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Staging directory already exists: {path}")


class StagingIOError(StagingError):
    """Raised when writing the raw upload to disk fails."""

    def __init__(self, path: str, cause: Optional[BaseException] = None):
        self.path = path
        self.cause = cause
        message = f"Failed to stage upload at {path}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class TranscodeProcessError(IngestionError):
    """Raised when ffmpeg is missing, exits non-zero, or leaves bad output."""

    def __init__(
        self,
        message: str,
        returncode: Optional[int] = None,
        stderr: Optional[str] = None,
    ):
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(message)


class TranscodeCancelledError(TranscodeProcessError):
    """Raised when a run is cancelled before or during transcoding."""
    pass


class PerArtifactUploadError(IngestionError):
    """Raised for a single artifact that could not be published.

    Never fatal to the run; the publisher records it and moves on.
    """

    def __init__(self, artifact_name: str, key: str, reason: str):
        self.artifact_name = artifact_name
        self.key = key
        self.reason = reason
        super().__init__(f"Failed to upload {artifact_name} to {key}: {reason}")


class IngestionFailedError(IngestionError):
    """Terminal failure of a run, tagged with the stage that failed."""

    def __init__(self, stage: IngestionStage, cause: IngestionError):
        self.stage = stage
        self.cause = cause
        super().__init__(f"Ingestion failed during {stage.value}: {cause}")
