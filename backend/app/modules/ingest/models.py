"""Enumerations for the video ingestion pipeline."""

from enum import Enum


class IngestionState(str, Enum):
    """Lifecycle of a single ingestion run."""
    RECEIVED = "received"
    STAGED = "staged"
    TRANSCODED = "transcoded"
    ENUMERATED = "enumerated"
    PUBLISHED = "published"
    DONE = "done"
    FAILED = "failed"


class IngestionStage(str, Enum):
    """Pipeline stage, used to tag failures and metrics."""
    STAGING = "staging"
    TRANSCODE = "transcode"
    ENUMERATE = "enumerate"
    PUBLISH = "publish"


class ArtifactKind(str, Enum):
    """What a file in the staging directory is."""
    SOURCE = "source"
    MANIFEST = "manifest"
    SEGMENT = "segment"
    OTHER = "other"


class CollisionPolicy(str, Enum):
    """How staging handles a directory that already exists."""
    REJECT = "reject"
    SUFFIX = "suffix"


MANIFEST_EXTENSION = ".m3u8"
SEGMENT_EXTENSION = ".ts"

CONTENT_TYPES = {
    MANIFEST_EXTENSION: "application/vnd.apple.mpegurl",
    SEGMENT_EXTENSION: "video/mp2t",
}
DEFAULT_CONTENT_TYPE = "application/octet-stream"
