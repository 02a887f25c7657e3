# SPDX-License-Identifier: MIT
"""Unit tests for LocalObjectStore."""

import hashlib

import pytest

from safestore.config import get_local_root
from safestore.errors import StoreError, StreamError
from safestore.store.local import LocalObjectStore
from safestore.store.protocol import ObjectStore, PutObjectParams
from safestore.streams import BodyStream

pytestmark = pytest.mark.anyio


def _params(bucket: str = "uploads", key: str = "a.bin", **kwargs) -> PutObjectParams:
    kwargs.setdefault("content_type", "application/octet-stream")
    return PutObjectParams(bucket=bucket, key=key, **kwargs)


# ------------------------------------------------------------------
# Protocol conformance
# ------------------------------------------------------------------


@pytest.mark.unit
def test_local_store_is_object_store(store_root):
    assert isinstance(LocalObjectStore(store_root), ObjectStore)


@pytest.mark.unit
async def test_context_manager(store_root):
    async with LocalObjectStore(store_root) as store:
        assert isinstance(store, LocalObjectStore)


# ------------------------------------------------------------------
# put_object
# ------------------------------------------------------------------


@pytest.mark.unit
async def test_put_writes_file_and_reports_progress(store_root, chunked):
    store = LocalObjectStore(store_root)
    progress = []

    result = await store.put_object(_params(), BodyStream(chunked([b"abc", b"defg"])), on_progress=progress.append)

    path = store_root / "uploads" / "a.bin"
    assert path.read_bytes() == b"abcdefg"
    assert progress == [3, 7]
    assert result.location == path.resolve().as_uri()
    assert result.etag == f'"{hashlib.md5(b"abcdefg").hexdigest()}"'
    assert result.version_id is None


@pytest.mark.unit
async def test_put_creates_nested_directories(store_root):
    store = LocalObjectStore(store_root)

    await store.put_object(_params(key="2024/06/report.pdf"), BodyStream.from_bytes(b"%PDF"))

    assert (store_root / "uploads" / "2024" / "06" / "report.pdf").read_bytes() == b"%PDF"


@pytest.mark.unit
async def test_put_overwrites_existing_object(store_root):
    store = LocalObjectStore(store_root)

    await store.put_object(_params(), BodyStream.from_bytes(b"old"))
    await store.put_object(_params(), BodyStream.from_bytes(b"new"))

    assert (store_root / "uploads" / "a.bin").read_bytes() == b"new"


@pytest.mark.unit
async def test_put_empty_body(store_root):
    store = LocalObjectStore(store_root)
    progress = []

    await store.put_object(_params(), BodyStream.from_bytes(b""), on_progress=progress.append)

    assert (store_root / "uploads" / "a.bin").read_bytes() == b""
    assert progress == []


@pytest.mark.unit
async def test_put_path_traversal(store_root):
    store = LocalObjectStore(store_root)
    with pytest.raises(StoreError, match="path traversal") as exc_info:
        await store.put_object(_params(key="../../etc/passwd"), BodyStream.from_bytes(b"x"))
    assert exc_info.value.code == "InvalidKey"


@pytest.mark.unit
@pytest.mark.parametrize("bucket", ["", "..", "a/b"])
async def test_put_invalid_bucket(store_root, bucket):
    store = LocalObjectStore(store_root)
    with pytest.raises(StoreError) as exc_info:
        await store.put_object(_params(bucket=bucket), BodyStream.from_bytes(b"x"))
    assert exc_info.value.code == "InvalidBucketName"


@pytest.mark.unit
async def test_put_rejects_symlinked_bucket(store_root, tmp_path):
    outside = tmp_path / "outside"
    outside.mkdir()
    (store_root / "uploads").symlink_to(outside)

    store = LocalObjectStore(store_root)
    with pytest.raises(StoreError, match="symbolic link"):
        await store.put_object(_params(), BodyStream.from_bytes(b"x"))
    assert list(outside.iterdir()) == []


@pytest.mark.unit
async def test_put_rejects_symlinked_object(store_root, tmp_path):
    target = tmp_path / "target.bin"
    target.write_bytes(b"keep")
    bucket = store_root / "uploads"
    bucket.mkdir()
    (bucket / "a.bin").symlink_to(target)

    store = LocalObjectStore(store_root)
    with pytest.raises(StoreError, match="symbolic link"):
        await store.put_object(_params(), BodyStream.from_bytes(b"x"))
    assert target.read_bytes() == b"keep"


@pytest.mark.unit
async def test_failed_stream_leaves_no_object(store_root, failing_stream):
    store = LocalObjectStore(store_root)

    with pytest.raises(StreamError):
        await store.put_object(_params(), BodyStream(failing_stream([b"partial"])))

    bucket = store_root / "uploads"
    assert not (bucket / "a.bin").exists()
    assert list(bucket.iterdir()) == []


# ------------------------------------------------------------------
# delete_object
# ------------------------------------------------------------------


@pytest.mark.unit
async def test_delete_removes_object(store_root):
    store = LocalObjectStore(store_root)
    await store.put_object(_params(), BodyStream.from_bytes(b"x"))

    await store.delete_object("uploads", "a.bin")

    assert not (store_root / "uploads" / "a.bin").exists()


@pytest.mark.unit
async def test_delete_missing_object_is_noop(store_root):
    await LocalObjectStore(store_root).delete_object("uploads", "never-written")


@pytest.mark.unit
async def test_delete_path_traversal(store_root):
    with pytest.raises(StoreError, match="path traversal"):
        await LocalObjectStore(store_root).delete_object("uploads", "../../../etc/hosts")


# ------------------------------------------------------------------
# Root from environment
# ------------------------------------------------------------------


@pytest.mark.unit
async def test_root_from_env(store_root, monkeypatch):
    monkeypatch.setenv("SAFESTORE_LOCAL_ROOT", str(store_root))
    get_local_root.cache_clear()
    try:
        await LocalObjectStore().put_object(_params(key="env.txt"), BodyStream.from_bytes(b"env"))
    finally:
        get_local_root.cache_clear()

    assert (store_root / "uploads" / "env.txt").read_bytes() == b"env"
