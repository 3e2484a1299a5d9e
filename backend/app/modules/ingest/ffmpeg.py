"""FFmpeg HLS packaging.

Repackages a staged upload into an HLS playlist plus fixed-duration MPEG-TS
segments written beside it in the staging directory.
"""

import logging
import os
import subprocess
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from app.core.logging import log_info
from app.core.metrics import TRANSCODES_IN_PROGRESS
from app.modules.ingest.exceptions import TranscodeCancelledError, TranscodeProcessError
from app.modules.ingest.schemas import StagingDirectory

logger = logging.getLogger(__name__)

# Keep only the end of ffmpeg's stderr in error messages
STDERR_TAIL_CHARS = 2000


@dataclass
class ToolResult:
    """Exit status of an external tool run."""
    returncode: int
    stderr: str = ""


class ToolRunner(ABC):
    """Runs an external command-line tool and reports its exit status."""

    @abstractmethod
    def run(
        self,
        args: list[str],
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> ToolResult:
        """Run ``args`` to completion.

        Raises:
            FileNotFoundError: The executable does not exist
            subprocess.TimeoutExpired: ``timeout`` elapsed (process is killed)
            TranscodeCancelledError: ``cancel_event`` was set (process is killed)
        """


class SubprocessToolRunner(ToolRunner):
    """Runs tools with ``subprocess.Popen``, polling for cancellation."""

    def __init__(self, poll_interval: float = 0.5, terminate_grace: float = 5.0):
        """Initialize runner.

        Args:
            poll_interval: Seconds between cancellation/timeout checks
            terminate_grace: Seconds to wait after SIGTERM before SIGKILL
        """
        self.poll_interval = poll_interval
        self.terminate_grace = terminate_grace

    def run(
        self,
        args: list[str],
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> ToolResult:
        process = subprocess.Popen(
            args,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.PIPE,
            # ffmpeg echoes file names and metadata in whatever bytes they hold
            encoding="utf-8",
            errors="replace",
        )
        deadline = time.monotonic() + timeout if timeout is not None else None

        try:
            while True:
                try:
                    # communicate() can be retried after a timeout without losing output
                    _, stderr = process.communicate(timeout=self.poll_interval)
                    return ToolResult(returncode=process.returncode, stderr=stderr or "")
                except subprocess.TimeoutExpired:
                    if cancel_event is not None and cancel_event.is_set():
                        self._stop(process)
                        raise TranscodeCancelledError(f"{args[0]} cancelled")
                    if deadline is not None and time.monotonic() >= deadline:
                        self._stop(process)
                        raise subprocess.TimeoutExpired(args, timeout)
        finally:
            # Never leave an orphan holding the staging directory open
            if process.poll() is None:
                self._stop(process)

    def _stop(self, process: subprocess.Popen) -> None:
        process.terminate()
        try:
            # communicate() rather than wait() so a full stderr pipe cannot block exit
            process.communicate(timeout=self.terminate_grace)
        except subprocess.TimeoutExpired:
            logger.warning("Process did not terminate gracefully, killing", extra={"pid": process.pid})
            process.kill()
            process.communicate()


def build_hls_command(
    ffmpeg_path: str,
    input_path: str,
    manifest_path: str,
    segment_seconds: int = 10,
    list_size: int = 0,
) -> list[str]:
    """Build the ffmpeg command that packages ``input_path`` as HLS.

    Args:
        ffmpeg_path: ffmpeg executable
        input_path: Staged raw upload
        manifest_path: Output playlist; segments are written next to it
        segment_seconds: Target duration of each segment
        list_size: Maximum playlist entries, 0 keeps all segments

    Returns:
        FFmpeg command as list of arguments
    """
    return [
        ffmpeg_path,
        "-hide_banner",
        "-loglevel", "error",
        "-i", input_path,
        "-hls_time", str(segment_seconds),
        "-hls_list_size", str(list_size),
        manifest_path,
    ]


def parse_manifest_segments(manifest_path: str) -> list[str]:
    """Return the media segment URIs listed in an HLS playlist, in order."""
    segments = []
    with open(manifest_path, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if line and not line.startswith("#"):
                segments.append(line)
    return segments


class HLSTranscoder:
    """Packages a staged upload into an HLS playlist and segments."""

    def __init__(
        self,
        runner: Optional[ToolRunner] = None,
        ffmpeg_path: str = "ffmpeg",
        segment_seconds: int = 10,
        list_size: int = 0,
        timeout: Optional[float] = None,
    ):
        self.runner = runner or SubprocessToolRunner()
        self.ffmpeg_path = ffmpeg_path
        self.segment_seconds = segment_seconds
        self.list_size = list_size
        self.timeout = timeout

    def transcode(
        self,
        raw_path: str,
        staging: StagingDirectory,
        cancel_event: Optional[threading.Event] = None,
    ) -> str:
        """Run ffmpeg and verify its output.

        Returns:
            Path of the generated manifest

        Raises:
            TranscodeCancelledError: The run was cancelled
            TranscodeProcessError: ffmpeg failed or produced unusable output
        """
        if cancel_event is not None and cancel_event.is_set():
            raise TranscodeCancelledError("Cancelled before transcoding started")
        if not os.path.isfile(raw_path):
            raise TranscodeProcessError(f"Raw upload not found: {raw_path}")

        cmd = build_hls_command(
            self.ffmpeg_path,
            raw_path,
            staging.manifest_path,
            segment_seconds=self.segment_seconds,
            list_size=self.list_size,
        )
        log_info(logger, "Starting ffmpeg", command=cmd, staging_path=staging.path)

        TRANSCODES_IN_PROGRESS.inc()
        try:
            result = self.runner.run(cmd, timeout=self.timeout, cancel_event=cancel_event)
        except FileNotFoundError as e:
            raise TranscodeProcessError(f"ffmpeg executable not found: {self.ffmpeg_path}") from e
        except subprocess.TimeoutExpired as e:
            raise TranscodeProcessError(f"ffmpeg timed out after {e.timeout}s") from e
        except OSError as e:
            raise TranscodeProcessError(f"Could not start ffmpeg: {e}") from e
        finally:
            TRANSCODES_IN_PROGRESS.dec()

        if result.returncode != 0:
            stderr_tail = result.stderr[-STDERR_TAIL_CHARS:]
            raise TranscodeProcessError(
                f"ffmpeg exited with status {result.returncode}",
                returncode=result.returncode,
                stderr=stderr_tail,
            )

        self._verify_output(staging)
        return staging.manifest_path

    def _verify_output(self, staging: StagingDirectory) -> None:
        """Check the manifest exists and every segment it lists is on disk."""
        if not os.path.isfile(staging.manifest_path):
            raise TranscodeProcessError(f"ffmpeg produced no manifest at {staging.manifest_path}")

        try:
            segments = parse_manifest_segments(staging.manifest_path)
        except (OSError, UnicodeDecodeError) as e:
            raise TranscodeProcessError(f"Unreadable manifest: {e}") from e

        missing = [
            uri for uri in segments
            if not os.path.isfile(os.path.join(staging.path, uri))
        ]
        if missing:
            raise TranscodeProcessError(
                f"Manifest references missing segments: {', '.join(missing)}"
            )

        log_info(
            logger,
            "HLS packaging complete",
            manifest=staging.manifest_name,
            segment_count=len(segments),
        )
