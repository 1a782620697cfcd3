"""File-level operations against a faked Supabase Storage API."""

from __future__ import annotations

import io
import tempfile

import httpx
import pytest

from supabase_fs.adapters.storage import (
    FileCopyError,
    FileDeleteError,
    FileMoveError,
    FileReadError,
    FileWriteError,
    SupabaseAdapter,
    VisibilityUnsupportedError,
)
from supabase_fs.adapters.storage import supabase as supabase_module

from .conftest import TEST_BUCKET, TEST_ENDPOINT, TEST_KEY, payload_of

PNG_HEADER = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


class _OneShotStream(io.RawIOBase):
    """Readable stream that cannot be rewound."""

    def __init__(self, data: bytes) -> None:
        self._data = io.BytesIO(data)

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        chunk = self._data.read(len(buffer))
        buffer[: len(chunk)] = chunk
        return len(chunk)


@pytest.fixture
def scratch_files(monkeypatch):
    created = []
    real_factory = tempfile.TemporaryFile

    def _tracking(*args, **kwargs):
        handle = real_factory(*args, **kwargs)
        created.append(handle)
        return handle

    monkeypatch.setattr(supabase_module.tempfile, "TemporaryFile", _tracking)
    return created


def test_file_exists_sends_authenticated_head(adapter, api) -> None:
    assert adapter.file_exists("test-file.txt") is True

    (request,) = api.sent("HEAD", f"/object/{TEST_BUCKET}/test-file.txt")
    assert request.headers["Authorization"] == f"Bearer {TEST_KEY}"
    assert request.headers["apiKey"] == TEST_KEY


@pytest.mark.parametrize("status", [404, 400, 500])
def test_file_exists_is_false_for_any_failure(adapter, api, status) -> None:
    api.respond_with(status)
    assert adapter.file_exists("test-file.txt") is False


def test_read_returns_body(adapter, api) -> None:
    api.push(200, content=b"file content")

    assert adapter.read("test-file.txt") == b"file content"
    assert len(api.sent("GET", f"/object/{TEST_BUCKET}/test-file.txt")) == 1


def test_read_failure_carries_remote_body(adapter, api) -> None:
    api.push(404, content=b"Not found")

    with pytest.raises(FileReadError) as excinfo:
        adapter.read("test-file.txt")

    assert excinfo.value.location == "test-file.txt"
    assert excinfo.value.reason == "Not found"


def test_read_stream_exposes_bytes(adapter, api) -> None:
    api.push(200, content=b"streamed")

    stream = adapter.read_stream("test-file.txt")

    assert stream.read() == b"streamed"


def test_read_stream_failure(adapter, api) -> None:
    api.push(500, content=b"boom")

    with pytest.raises(FileReadError):
        adapter.read_stream("test-file.txt")


def test_write_uploads_with_upsert_and_cleans_placeholder(adapter, api) -> None:
    api.respond_with(200, json={"Id": "file-id"})

    adapter.write("test-file.txt", b"file content")

    (upload,) = api.sent("POST", f"/object/{TEST_BUCKET}/test-file.txt")
    assert upload.headers["x-upsert"] == "true"
    assert upload.headers["Cache-Control"] == "3600"
    assert upload.headers["Content-Type"] == "text/plain"
    assert upload.content == b"file content"

    assert len(api.sent("HEAD", f"/object/{TEST_BUCKET}/.emptyFolderPlaceholder")) == 1
    (cleanup,) = api.sent("DELETE", f"/object/{TEST_BUCKET}")
    assert payload_of(cleanup) == {"prefixes": [".emptyFolderPlaceholder"]}


def test_write_in_directory_skips_delete_when_placeholder_missing(adapter, api) -> None:
    api.push(200, json={"Id": "file-id"}).push(404)

    adapter.write("docs/readme.md", b"# Readme")

    assert [request.method for request in api.requests] == ["POST", "HEAD"]
    assert str(api.requests[1].url).endswith(f"/object/{TEST_BUCKET}/docs/.emptyFolderPlaceholder")


def test_writing_the_placeholder_itself_skips_cleanup(adapter, api) -> None:
    api.push(200, json={"Id": "placeholder-id"})

    adapter.write("docs/.emptyFolderPlaceholder", b"")

    assert [request.method for request in api.requests] == ["POST"]


def test_write_failure_raises_with_body(adapter, api) -> None:
    api.respond_with(500, content=b"Error")

    with pytest.raises(FileWriteError) as excinfo:
        adapter.write("test-file.txt", b"file content")

    assert excinfo.value.reason == "Error"
    assert "test-file.txt" in str(excinfo.value)


def test_write_without_object_id_is_a_failure(adapter, api) -> None:
    api.push(200, json={"Key": "test-bucket/test-file.txt"})

    with pytest.raises(FileWriteError) as excinfo:
        adapter.write("test-file.txt", b"file content")

    assert "Key" in excinfo.value.reason
    assert len(api.requests) == 1


def test_write_sniffs_binary_content(adapter, api) -> None:
    api.push(200, json={"Id": "image-id"}).push(404)

    adapter.write("uploads/avatar", PNG_HEADER)

    assert api.requests[0].headers["Content-Type"] == "image/png"


def test_write_honours_explicit_options(adapter, api) -> None:
    api.push(200, json={"Id": "file-id"}).push(404)

    adapter.write("data.bin", b"abc", {"content_type": "application/x-custom", "cache_control": "60"})

    assert api.requests[0].headers["Content-Type"] == "application/x-custom"
    assert api.requests[0].headers["Cache-Control"] == "60"


def test_write_stream_rewinds_and_uploads_everything(adapter, api, scratch_files) -> None:
    api.push(200, json={"Id": "file-id"}).push(404)
    stream = io.BytesIO(b"stream content")
    stream.seek(7)

    adapter.write_stream("notes", stream)

    upload = api.requests[0]
    assert upload.content == b"stream content"
    assert upload.headers["Content-Type"] == "text/plain"
    assert upload.headers["x-upsert"] == "true"
    assert scratch_files and all(handle.closed for handle in scratch_files)


def test_write_stream_releases_scratch_on_failure(adapter, api, scratch_files) -> None:
    api.respond_with(500, content=b"Error")

    with pytest.raises(FileWriteError):
        adapter.write_stream("test-file.txt", io.BytesIO(b"file content"))

    assert scratch_files and all(handle.closed for handle in scratch_files)


def test_write_stream_rejects_unseekable_stream(adapter, api, scratch_files) -> None:
    with pytest.raises(FileWriteError) as excinfo:
        adapter.write_stream("test-file.txt", _OneShotStream(b"file content"))

    assert "seekable" in excinfo.value.reason
    assert api.requests == []
    assert all(handle.closed for handle in scratch_files)


def test_write_stream_rejects_text_stream(adapter, api) -> None:
    with pytest.raises(FileWriteError):
        adapter.write_stream("test-file.txt", io.StringIO("text"))

    assert api.requests == []


def test_write_stream_rejects_non_streams(adapter) -> None:
    with pytest.raises(FileWriteError):
        adapter.write_stream("test-file.txt", b"not a stream")


def test_delete_issues_batch_delete(adapter, api) -> None:
    api.push(200).push(200, json={"message": "Deleted"})

    adapter.delete("test-file.txt")

    assert len(api.sent("HEAD", f"/object/{TEST_BUCKET}/test-file.txt")) == 1
    (request,) = api.sent("DELETE", f"/object/{TEST_BUCKET}")
    assert payload_of(request) == {"prefixes": ["test-file.txt"]}


def test_delete_missing_file_only_probes(adapter, api) -> None:
    api.respond_with(404)

    adapter.delete("test-file.txt")

    assert [request.method for request in api.requests] == ["HEAD"]


def test_delete_failure(adapter, api) -> None:
    api.push(200).push(500, content=b"denied")

    with pytest.raises(FileDeleteError) as excinfo:
        adapter.delete("test-file.txt")

    assert excinfo.value.reason == "denied"


def test_copy_posts_transfer_payload(adapter, api) -> None:
    api.push(200, json={"Key": "destination-file.txt"})

    adapter.copy("source-file.txt", "destination-file.txt")

    (request,) = api.sent("POST", "/object/copy")
    assert payload_of(request) == {
        "bucketId": TEST_BUCKET,
        "sourceKey": "source-file.txt",
        "destinationKey": "destination-file.txt",
    }


@pytest.mark.parametrize(
    "status, body",
    [(500, {"error": "Error"}), (200, {"message": "ok"})],
)
def test_copy_failure(adapter, api, status, body) -> None:
    api.push(status, json=body)

    with pytest.raises(FileCopyError) as excinfo:
        adapter.copy("source-file.txt", "destination-file.txt")

    assert excinfo.value.source == "source-file.txt"
    assert excinfo.value.destination == "destination-file.txt"


def test_move_posts_transfer_payload(adapter, api) -> None:
    api.push(200, json={"message": "Moved"})

    adapter.move("source-file.txt", "destination-file.txt")

    (request,) = api.sent("POST", "/object/move")
    assert payload_of(request) == {
        "bucketId": TEST_BUCKET,
        "sourceKey": "source-file.txt",
        "destinationKey": "destination-file.txt",
    }


def test_move_failure_wraps_body(adapter, api) -> None:
    api.push(500, content=b"Error")

    with pytest.raises(FileMoveError) as excinfo:
        adapter.move("source-file.txt", "destination-file.txt")

    assert excinfo.value.reason == "Error"


def test_visibility_is_unsupported(adapter, api) -> None:
    with pytest.raises(VisibilityUnsupportedError):
        adapter.set_visibility("test-file.txt", "public")
    with pytest.raises(VisibilityUnsupportedError):
        adapter.visibility("test-file.txt")

    assert api.requests == []


def test_write_stream_in_directory_removes_placeholder(adapter, api, scratch_files) -> None:
    api.push(200, json={"Id": "file-id"}).push(200).push(200, json={"message": "Deleted"})

    adapter.write_stream("docs/x", io.BytesIO(b"stream content"))

    assert [request.method for request in api.requests] == ["POST", "HEAD", "DELETE"]
    assert len(api.sent("HEAD", f"/object/{TEST_BUCKET}/docs/.emptyFolderPlaceholder")) == 1
    (cleanup,) = api.sent("DELETE", f"/object/{TEST_BUCKET}")
    assert payload_of(cleanup) == {"prefixes": ["docs/.emptyFolderPlaceholder"]}


class _InMemoryBucket:
    """Keeps uploaded objects so they can be read back."""

    def __init__(self) -> None:
        self.objects = {}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        prefix = f"/storage/v1/object/{TEST_BUCKET}"
        url_path = request.url.path
        if url_path == f"/storage/v1/object/list/{TEST_BUCKET}":
            directory = payload_of(request)["prefix"] + "/"
            names = [key[len(directory) :] for key in self.objects if key.startswith(directory)]
            return httpx.Response(200, json=[{"name": name, "id": name} for name in names])
        if url_path == prefix and request.method == "DELETE":
            for key in payload_of(request)["prefixes"]:
                self.objects.pop(key, None)
            return httpx.Response(200, json=[])
        key = url_path[len(prefix) + 1 :]
        if request.method == "POST":
            self.objects[key] = request.content
            return httpx.Response(200, json={"Id": f"id-{key}", "Key": f"{TEST_BUCKET}/{key}"})
        if key not in self.objects:
            return httpx.Response(404, content=b"Object not found")
        if request.method == "HEAD":
            return httpx.Response(200)
        return httpx.Response(200, content=self.objects[key])


@pytest.mark.parametrize("use_stream", [False, True])
def test_write_then_read_round_trip(use_stream) -> None:
    bucket = _InMemoryBucket()
    client = httpx.Client(transport=httpx.MockTransport(bucket))
    adapter = SupabaseAdapter(
        {"endpoint": TEST_ENDPOINT, "bucket": TEST_BUCKET, "key": TEST_KEY}, client=client
    )
    payload = PNG_HEADER + bytes(range(256)) * 300

    adapter.create_directory("images")
    assert "images/.emptyFolderPlaceholder" in bucket.objects
    if use_stream:
        adapter.write_stream("images/cat.png", io.BytesIO(payload))
    else:
        adapter.write("images/cat.png", payload)

    assert adapter.read("images/cat.png") == payload
    assert adapter.read_stream("images/cat.png").read() == payload
    assert set(bucket.objects) == {"images/cat.png"}
    client.close()
