"""Shared fakes and fixtures for the ingestion pipeline tests."""

import math
import os
import threading
from typing import Optional

import pytest

from app.core.storage import LocalStorage, StorageBackend, StorageConfig, StorageResult
from app.modules.ingest.ffmpeg import HLSTranscoder, ToolResult, ToolRunner
from app.modules.ingest.publisher import RemotePublisher
from app.modules.ingest.service import IngestionOrchestrator
from app.modules.ingest.staging import StagingStore


class FakeFFmpegRunner(ToolRunner):
    """Stands in for ffmpeg: writes an HLS playlist and segments to disk."""

    def __init__(
        self,
        duration_seconds: float = 25.0,
        returncode: int = 0,
        write_output: bool = True,
        drop_segment: Optional[int] = None,
        raise_on_run: Optional[BaseException] = None,
    ):
        self.duration_seconds = duration_seconds
        self.returncode = returncode
        self.write_output = write_output
        self.drop_segment = drop_segment
        self.raise_on_run = raise_on_run
        self.calls: list[list[str]] = []

    def run(
        self,
        args: list[str],
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> ToolResult:
        self.calls.append(list(args))
        if self.raise_on_run is not None:
            raise self.raise_on_run
        if self.returncode != 0:
            return ToolResult(returncode=self.returncode, stderr="Invalid data found when processing input")
        if self.write_output:
            self._write_hls(args)
        return ToolResult(returncode=0)

    def _write_hls(self, args: list[str]) -> None:
        manifest_path = args[-1]
        segment_seconds = int(args[args.index("-hls_time") + 1])
        out_dir = os.path.dirname(manifest_path)
        base = os.path.splitext(os.path.basename(manifest_path))[0]

        count = max(1, math.ceil(self.duration_seconds / segment_seconds))
        lines = [
            "#EXTM3U",
            "#EXT-X-VERSION:3",
            f"#EXT-X-TARGETDURATION:{segment_seconds}",
            "#EXT-X-MEDIA-SEQUENCE:0",
        ]
        remaining = self.duration_seconds
        for index in range(count):
            name = f"{base}{index}.ts"
            length = min(segment_seconds, remaining)
            remaining -= length
            lines.append(f"#EXTINF:{length:.6f},")
            lines.append(name)
            if index != self.drop_segment:
                with open(os.path.join(out_dir, name), "wb") as f:
                    f.write(b"\x47" * 188)
        lines.append("#EXT-X-ENDLIST")

        with open(manifest_path, "w", encoding="utf-8") as f:
            f.write("\n".join(lines) + "\n")


class FlakyStorage(StorageBackend):
    """Local storage that fails uploads for chosen artifact names."""

    def __init__(self, inner: LocalStorage, fail_names=(), raise_names=()):
        self.inner = inner
        self.fail_names = set(fail_names)
        self.raise_names = set(raise_names)
        self.attempts: list[str] = []

    def upload(self, file_path, key, content_type="application/octet-stream"):
        name = os.path.basename(key)
        self.attempts.append(name)
        if name in self.raise_names:
            raise ConnectionError("connection reset by peer")
        if name in self.fail_names:
            return StorageResult(success=False, key=key, url="", error_message="simulated outage")
        return self.inner.upload(file_path, key, content_type)

    def exists(self, key):
        return self.inner.exists(key)

    def get_url(self, key):
        return self.inner.get_url(key)

    def list_files(self, prefix=""):
        return self.inner.list_files(prefix)


def build_orchestrator(
    root: str,
    runner: ToolRunner,
    backend: StorageBackend,
    key_prefix: str = "videos",
    **staging_kwargs,
) -> IngestionOrchestrator:
    return IngestionOrchestrator(
        staging_store=StagingStore(os.path.join(root, "staging"), **staging_kwargs),
        transcoder=HLSTranscoder(runner=runner, segment_seconds=10, list_size=0),
        publisher=RemotePublisher(backend, key_prefix=key_prefix),
    )


@pytest.fixture
def staging_root(tmp_path) -> str:
    return str(tmp_path / "staging")


@pytest.fixture
def local_storage(tmp_path) -> LocalStorage:
    return LocalStorage(StorageConfig(backend="local", local_path=str(tmp_path / "bucket")))


@pytest.fixture
def fake_runner() -> FakeFFmpegRunner:
    return FakeFFmpegRunner()


@pytest.fixture
def orchestrator_factory(tmp_path):
    """Build an orchestrator rooted in the test's temp directory."""

    def factory(runner: ToolRunner, backend: StorageBackend, **kwargs) -> IngestionOrchestrator:
        return build_orchestrator(str(tmp_path), runner, backend, **kwargs)

    return factory


@pytest.fixture
def runner_factory():
    """The fake ffmpeg class, for tests that build several runners."""
    return FakeFFmpegRunner


@pytest.fixture
def flaky_storage_factory():
    return FlakyStorage


@pytest.fixture
def orchestrator_builder():
    """``build_orchestrator`` for tests that manage their own directories."""
    return build_orchestrator
