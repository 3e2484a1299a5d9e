"""Local staging of raw uploads.

Each ingestion run gets its own directory under the staging root, keyed by the
upload's base name. The directory and everything in it is left on disk after
the run; there is no rollback and no cleanup.
"""

import logging
import os
import secrets

from app.core.logging import log_info
from app.modules.ingest.exceptions import StagingConflict, StagingIOError
from app.modules.ingest.models import CollisionPolicy
from app.modules.ingest.schemas import IngestionRequest, StagingDirectory, split_base_name

logger = logging.getLogger(__name__)

SUFFIX_ATTEMPTS = 5


class StagingStore:
    """Creates per-run staging directories and writes the raw upload."""

    def __init__(
        self,
        root: str,
        collision_policy: CollisionPolicy = CollisionPolicy.REJECT,
    ):
        """Initialize the store.

        Args:
            root: Directory under which run directories are created
            collision_policy: What to do when a run directory already exists
        """
        self.root = root
        self.collision_policy = CollisionPolicy(collision_policy)

    def stage(self, request: IngestionRequest) -> StagingDirectory:
        """Create the run directory and persist the raw upload into it.

        Raises:
            StagingConflict: The directory exists and the policy is ``reject``
            StagingIOError: The directory or the raw file could not be written
        """
        base_name, _ = split_base_name(request.original_file_name)
        staging = self._create_directory(base_name, request.original_file_name)

        try:
            with open(staging.raw_path, "wb") as f:
                f.write(request.raw_bytes)
        except OSError as e:
            raise StagingIOError(staging.raw_path, e) from e

        log_info(
            logger,
            "Upload staged",
            staging_path=staging.path,
            base_name=staging.base_name,
            size_bytes=len(request.raw_bytes),
        )
        return staging

    def read_raw(self, staging: StagingDirectory) -> bytes:
        """Read back the staged upload."""
        with open(staging.raw_path, "rb") as f:
            return f.read()

    def _create_directory(self, base_name: str, raw_file_name: str) -> StagingDirectory:
        try:
            os.makedirs(self.root, exist_ok=True)
        except OSError as e:
            raise StagingIOError(self.root, e) from e

        if self.collision_policy == CollisionPolicy.REJECT:
            candidates = [base_name]
        else:
            candidates = [
                f"{base_name}-{secrets.token_hex(4)}" for _ in range(SUFFIX_ATTEMPTS)
            ]

        path = ""
        for candidate in candidates:
            path = os.path.join(self.root, candidate)
            try:
                os.mkdir(path)
            except FileExistsError:
                continue
            except OSError as e:
                raise StagingIOError(path, e) from e
            return StagingDirectory(
                path=path,
                base_name=candidate,
                raw_file_name=raw_file_name,
            )

        raise StagingConflict(path)
