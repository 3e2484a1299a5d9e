"""Property-based tests for artifact publishing.

**Feature: video-ingest, Property 4: Upload Independence**
"""

import os
import tempfile
from unittest.mock import MagicMock

from hypothesis import HealthCheck, given, settings, strategies as st

from app.core.storage import LocalStorage, StorageConfig, StorageResult
from app.modules.ingest.artifacts import enumerate_artifacts
from app.modules.ingest.publisher import RemotePublisher
from app.modules.ingest.schemas import StagingDirectory


def _staging_with_segments(root: str, segment_count: int) -> StagingDirectory:
    names = ["clip.mp4", "clip.m3u8"] + [f"clip{i}.ts" for i in range(segment_count)]
    for name in names:
        with open(os.path.join(root, name), "wb") as f:
            f.write(name.encode())
    return StagingDirectory(path=root, base_name="clip", raw_file_name="clip.mp4")


class TestUploadIndependence:
    """One failed upload never stops the others."""

    @given(data=st.data(), segment_count=st.integers(min_value=1, max_value=8))
    @settings(max_examples=50, suppress_health_check=[HealthCheck.function_scoped_fixture])
    def test_every_uploadable_artifact_is_attempted_once(
        self, flaky_storage_factory, data, segment_count: int
    ) -> None:
        """**Feature: video-ingest, Property 4: Upload Independence**

        For any set of failing artifacts, every uploadable artifact SHALL be
        attempted exactly once and exactly the failing ones SHALL be reported.
        """
        with tempfile.TemporaryDirectory() as root:
            staging_dir = os.path.join(root, "staging")
            os.mkdir(staging_dir)
            staging = _staging_with_segments(staging_dir, segment_count)
            uploadable = ["clip.m3u8"] + [f"clip{i}.ts" for i in range(segment_count)]

            fail_names = data.draw(st.sets(st.sampled_from(uploadable)))
            raise_names = data.draw(st.sets(st.sampled_from(uploadable)).map(lambda s: s - fail_names))
            inner = LocalStorage(StorageConfig(backend="local", local_path=os.path.join(root, "bucket")))
            storage = flaky_storage_factory(inner, fail_names=fail_names, raise_names=raise_names)

            result = RemotePublisher(storage, key_prefix="videos").publish(enumerate_artifacts(staging))

            assert sorted(storage.attempts) == sorted(uploadable)
            assert set(result.failed) == fail_names | raise_names
            assert set(result.succeeded) == set(uploadable) - fail_names - raise_names
            for name in result.succeeded:
                assert inner.exists(f"videos/{name}")
            for name in result.failed:
                assert not inner.exists(f"videos/{name}")


class TestRemotePublisher:

    def test_one_failure_out_of_three(self, tmp_path, local_storage, flaky_storage_factory) -> None:
        staging = _staging_with_segments(str(tmp_path), 2)
        storage = flaky_storage_factory(local_storage, raise_names={"clip0.ts"})

        result = RemotePublisher(storage).publish(enumerate_artifacts(staging))

        assert storage.attempts == ["clip0.ts", "clip1.ts", "clip.m3u8"]
        assert result.succeeded == ["clip1.ts", "clip.m3u8"]
        assert list(result.failed) == ["clip0.ts"]
        assert "connection reset" in result.failed["clip0.ts"]
        assert not result.all_succeeded

    def test_rejected_upload_is_recorded_as_failure(self, tmp_path, local_storage, flaky_storage_factory) -> None:
        staging = _staging_with_segments(str(tmp_path), 1)
        storage = flaky_storage_factory(local_storage, fail_names={"clip.m3u8"})

        result = RemotePublisher(storage).publish(enumerate_artifacts(staging))

        assert result.failed == {"clip.m3u8": "simulated outage"}
        assert result.succeeded == ["clip0.ts"]

    def test_keys_and_content_types(self, tmp_path) -> None:
        staging = _staging_with_segments(str(tmp_path), 1)
        backend = MagicMock()
        backend.upload.side_effect = lambda path, key, content_type: StorageResult(
            success=True, key=key, url=f"https://cdn.example.com/{key}", file_size=1
        )

        result = RemotePublisher(backend, key_prefix="/videos/").publish(enumerate_artifacts(staging))

        calls = {call.args[1]: call.kwargs["content_type"] for call in backend.upload.call_args_list}
        assert calls == {
            "videos/clip.m3u8": "application/vnd.apple.mpegurl",
            "videos/clip0.ts": "video/mp2t",
        }
        assert result.results["clip0.ts"].url == "https://cdn.example.com/videos/clip0.ts"

    def test_source_is_never_uploaded(self, tmp_path) -> None:
        staging = _staging_with_segments(str(tmp_path), 1)
        backend = MagicMock()
        backend.upload.return_value = StorageResult(success=True, key="k", url="u")

        RemotePublisher(backend).publish(enumerate_artifacts(staging))

        uploaded_paths = [call.args[0] for call in backend.upload.call_args_list]
        assert staging.raw_path not in uploaded_paths

    def test_empty_prefix_uses_bare_names(self) -> None:
        assert RemotePublisher(MagicMock(), key_prefix="").key_for("clip.m3u8") == "clip.m3u8"
        assert RemotePublisher(MagicMock(), key_prefix="test").key_for("clip.m3u8") == "test/clip.m3u8"
