"""Pydantic schemas and value objects for video ingestion."""

import os
from dataclasses import dataclass
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from app.modules.ingest.models import (
    MANIFEST_EXTENSION,
    ArtifactKind,
    IngestionState,
)


class IngestionRequest(BaseModel):
    """A raw upload handed over by the HTTP layer."""
    raw_bytes: bytes = Field(..., description="Uploaded video content")
    original_file_name: str = Field(..., description="Client-supplied file name")

    class Config:
        frozen = True

    @field_validator("original_file_name")
    @classmethod
    def validate_file_name(cls, value: str) -> str:
        # Browsers on Windows may send a full path
        name = os.path.basename(value.replace("\\", "/")).strip()
        if not name or name in (".", ".."):
            raise ValueError("original_file_name must name a file")
        if os.path.splitext(name)[1].lower() == MANIFEST_EXTENSION:
            # Would be overwritten by the generated playlist of the same name
            raise ValueError("original_file_name must not be an HLS playlist")
        return name


def split_base_name(file_name: str) -> tuple[str, str]:
    """Split ``clip.mp4`` into ``("clip", ".mp4")``.

    Only the final extension is stripped; a leading dot does not start an
    extension (``.hidden`` has none).
    """
    base, extension = os.path.splitext(file_name)
    return base, extension


@dataclass(frozen=True)
class StagingDirectory:
    """A run-exclusive working directory holding one upload and its outputs."""
    path: str
    base_name: str
    raw_file_name: str

    @property
    def raw_path(self) -> str:
        return os.path.join(self.path, self.raw_file_name)

    @property
    def manifest_name(self) -> str:
        return f"{self.base_name}{MANIFEST_EXTENSION}"

    @property
    def manifest_path(self) -> str:
        return os.path.join(self.path, self.manifest_name)

    @property
    def source_extension(self) -> str:
        """Extension of the raw upload, lower-cased ("" if it has none)."""
        return split_base_name(self.raw_file_name)[1].lower()


class ArtifactDescriptor(BaseModel):
    """One file found in the staging directory after transcoding."""
    name: str
    path: str
    extension: str
    kind: ArtifactKind
    uploadable: bool
    content_type: str

    class Config:
        frozen = True


class ArtifactUploadResult(BaseModel):
    """Outcome of publishing a single artifact."""
    name: str
    key: str
    success: bool
    url: Optional[str] = None
    file_size: int = 0
    error: Optional[str] = None


class UploadResult(BaseModel):
    """Per-artifact publish outcomes, in upload order."""
    results: dict[str, ArtifactUploadResult] = Field(default_factory=dict)

    @property
    def succeeded(self) -> list[str]:
        return [name for name, result in self.results.items() if result.success]

    @property
    def failed(self) -> dict[str, str]:
        """Failed artifact names mapped to their error message."""
        return {
            name: result.error or "unknown error"
            for name, result in self.results.items()
            if not result.success
        }

    @property
    def all_succeeded(self) -> bool:
        return all(result.success for result in self.results.values())


class IngestionResult(BaseModel):
    """Terminal value of a run that reached the publish stage."""
    state: IngestionState
    base_name: str
    staging_path: str
    manifest_name: str
    artifacts: list[ArtifactDescriptor] = Field(default_factory=list)
    upload: UploadResult = Field(default_factory=UploadResult)

    @property
    def completed(self) -> bool:
        """True when every uploadable artifact reached the object store."""
        return self.state == IngestionState.DONE and self.upload.all_succeeded


class IngestionResponse(BaseModel):
    """API response for a video upload."""
    state: IngestionState
    base_name: str
    manifest_name: str
    completed: bool
    uploaded_keys: list[str] = Field(default_factory=list)
    failed_artifacts: dict[str, str] = Field(default_factory=dict)
    message: str

    @classmethod
    def from_result(cls, result: IngestionResult) -> "IngestionResponse":
        if result.completed:
            message = "Video uploaded and converted successfully"
        else:
            message = (
                f"Video converted; {len(result.upload.failed)} artifact(s) failed to upload"
            )
        return cls(
            state=result.state,
            base_name=result.base_name,
            manifest_name=result.manifest_name,
            completed=result.completed,
            uploaded_keys=[
                r.key for r in result.upload.results.values() if r.success
            ],
            failed_artifacts=result.upload.failed,
            message=message,
        )

    @classmethod
    def from_staging(cls, staging: StagingDirectory) -> "IngestionResponse":
        """Response for a run handed off to a background worker."""
        return cls(
            state=IngestionState.STAGED,
            base_name=staging.base_name,
            manifest_name=staging.manifest_name,
            completed=False,
            message="Video staged; conversion scheduled",
        )
