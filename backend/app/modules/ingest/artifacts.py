"""Enumeration and classification of staging directory contents."""

import os
import re
from typing import Iterator

from app.modules.ingest.models import (
    CONTENT_TYPES,
    DEFAULT_CONTENT_TYPE,
    MANIFEST_EXTENSION,
    SEGMENT_EXTENSION,
    ArtifactKind,
)
from app.modules.ingest.schemas import ArtifactDescriptor, StagingDirectory, split_base_name

_DIGITS_RE = re.compile(r"(\d+)")


def natural_sort_key(name: str) -> list:
    """Sort key that orders ``clip2.ts`` before ``clip10.ts``."""
    return [
        (0, int(part), "") if part.isdigit() else (1, 0, part)
        for part in _DIGITS_RE.split(name)
        if part
    ]


def classify(name: str, staging: StagingDirectory) -> tuple[ArtifactKind, bool]:
    """Classify a file name as (kind, uploadable).

    Anything sharing the raw upload's extension is the source and is never
    uploaded. When the upload itself is a .ts or .m3u8 file only the raw file
    is excluded, so its segments still get published.
    """
    extension = split_base_name(name)[1].lower()
    source_extension = staging.source_extension
    if source_extension in CONTENT_TYPES:
        is_source = name == staging.raw_file_name
    else:
        is_source = extension == source_extension
    if is_source:
        return ArtifactKind.SOURCE, False
    if extension == MANIFEST_EXTENSION:
        return ArtifactKind.MANIFEST, True
    if extension == SEGMENT_EXTENSION:
        return ArtifactKind.SEGMENT, True
    return ArtifactKind.OTHER, True


def enumerate_artifacts(staging: StagingDirectory) -> Iterator[ArtifactDescriptor]:
    """Yield a descriptor for every file in the staging directory.

    Only called once transcoding has returned, so nothing is writing to the
    directory; enumerating the same directory twice yields the same sequence.
    Sub-directories are skipped.
    """
    names = sorted(os.listdir(staging.path), key=natural_sort_key)
    for name in names:
        path = os.path.join(staging.path, name)
        if not os.path.isfile(path):
            continue
        kind, uploadable = classify(name, staging)
        extension = split_base_name(name)[1].lower()
        yield ArtifactDescriptor(
            name=name,
            path=path,
            extension=extension,
            kind=kind,
            uploadable=uploadable,
            content_type=CONTENT_TYPES.get(extension, DEFAULT_CONTENT_TYPE),
        )
