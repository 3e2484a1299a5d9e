"""Property-based tests for local staging of uploads.

**Feature: video-ingest, Property 1: Staging Round Trip**
"""

import os
import tempfile

import pytest
from hypothesis import given, settings, strategies as st
from pydantic import ValidationError

from app.modules.ingest.exceptions import StagingConflict, StagingIOError
from app.modules.ingest.models import CollisionPolicy
from app.modules.ingest.schemas import IngestionRequest, split_base_name
from app.modules.ingest.staging import StagingStore


file_name_strategy = st.from_regex(r"[A-Za-z0-9_-]{1,24}\.(mp4|mov|mkv|webm|avi)", fullmatch=True)


class TestStagingRoundTrip:
    """Staged bytes are exactly the uploaded bytes."""

    @given(raw_bytes=st.binary(max_size=4096), file_name=file_name_strategy)
    @settings(max_examples=100)
    def test_staged_file_is_byte_identical(self, raw_bytes: bytes, file_name: str) -> None:
        """**Feature: video-ingest, Property 1: Staging Round Trip**

        For any upload, reading back the staged file SHALL yield the uploaded bytes.
        """
        with tempfile.TemporaryDirectory() as root:
            store = StagingStore(root)
            staging = store.stage(IngestionRequest(raw_bytes=raw_bytes, original_file_name=file_name))

            assert store.read_raw(staging) == raw_bytes
            assert os.path.basename(staging.raw_path) == file_name

    @given(file_name=file_name_strategy)
    @settings(max_examples=100)
    def test_directory_is_keyed_by_base_name(self, file_name: str) -> None:
        """**Feature: video-ingest, Property 1: Staging Round Trip**

        For any upload, the staging directory SHALL be named after the file
        name without its final extension.
        """
        with tempfile.TemporaryDirectory() as root:
            staging = StagingStore(root).stage(
                IngestionRequest(raw_bytes=b"x", original_file_name=file_name)
            )

            expected_base = file_name.rsplit(".", 1)[0]
            assert staging.base_name == expected_base
            assert staging.path == os.path.join(root, expected_base)
            assert staging.manifest_name == f"{expected_base}.m3u8"


class TestBaseName:

    def test_only_last_extension_is_stripped(self) -> None:
        assert split_base_name("clip.mp4") == ("clip", ".mp4")
        assert split_base_name("archive.tar.gz") == ("archive.tar", ".gz")

    def test_name_without_extension(self) -> None:
        assert split_base_name("clip") == ("clip", "")


class TestRequestValidation:

    def test_directory_components_are_dropped(self) -> None:
        request = IngestionRequest(raw_bytes=b"", original_file_name="../../etc/clip.mp4")
        assert request.original_file_name == "clip.mp4"

    def test_windows_paths_are_reduced_to_base_name(self) -> None:
        request = IngestionRequest(raw_bytes=b"", original_file_name="C:\\Users\\me\\clip.mp4")
        assert request.original_file_name == "clip.mp4"

    @pytest.mark.parametrize("name", ["clip.m3u8", "CLIP.M3U8", "dir/clip.m3u8"])
    def test_playlist_names_are_rejected(self, name: str) -> None:
        with pytest.raises(ValidationError):
            IngestionRequest(raw_bytes=b"#EXTM3U", original_file_name=name)

    @pytest.mark.parametrize("name", ["", "   ", ".", "..", "videos/"])
    def test_empty_names_are_rejected(self, name: str) -> None:
        with pytest.raises(ValidationError):
            IngestionRequest(raw_bytes=b"", original_file_name=name)


class TestCollisionPolicy:

    def test_reject_policy_raises_conflict(self, staging_root: str) -> None:
        store = StagingStore(staging_root)
        request = IngestionRequest(raw_bytes=b"first", original_file_name="clip.mp4")
        store.stage(request)

        with pytest.raises(StagingConflict) as exc_info:
            store.stage(IngestionRequest(raw_bytes=b"second", original_file_name="clip.mov"))

        assert exc_info.value.path == os.path.join(staging_root, "clip")
        # The first run's upload is untouched
        with open(os.path.join(staging_root, "clip", "clip.mp4"), "rb") as f:
            assert f.read() == b"first"

    def test_suffix_policy_gives_each_run_its_own_directory(self, staging_root: str) -> None:
        store = StagingStore(staging_root, collision_policy=CollisionPolicy.SUFFIX)
        request = IngestionRequest(raw_bytes=b"data", original_file_name="clip.mp4")

        first = store.stage(request)
        second = store.stage(request)

        assert first.path != second.path
        assert first.base_name.startswith("clip-")
        assert second.base_name.startswith("clip-")
        assert first.manifest_name != second.manifest_name
        assert store.read_raw(first) == store.read_raw(second) == b"data"

    def test_policy_accepts_plain_strings(self, staging_root: str) -> None:
        store = StagingStore(staging_root, collision_policy="suffix")
        assert store.collision_policy is CollisionPolicy.SUFFIX


class TestStagingIOFailure:

    def test_unwritable_root_raises_staging_io_error(self, tmp_path) -> None:
        blocker = tmp_path / "not-a-directory"
        blocker.write_bytes(b"")
        store = StagingStore(str(blocker / "staging"))

        with pytest.raises(StagingIOError):
            store.stage(IngestionRequest(raw_bytes=b"x", original_file_name="clip.mp4"))

    def test_failed_write_leaves_directory_in_place(self, staging_root: str, monkeypatch) -> None:
        store = StagingStore(staging_root)
        original_mkdir = os.mkdir

        def mkdir_with_blocker(path, *args, **kwargs):
            original_mkdir(path, *args, **kwargs)
            # A directory where the raw file should go makes open() fail
            if os.path.basename(path) == "clip":
                original_mkdir(os.path.join(path, "clip"))

        monkeypatch.setattr(os, "mkdir", mkdir_with_blocker)

        with pytest.raises(StagingIOError):
            store.stage(IngestionRequest(raw_bytes=b"x", original_file_name="clip"))

        assert os.path.isdir(os.path.join(staging_root, "clip"))
