# SPDX-License-Identifier: MIT
"""Shared pytest fixtures for safestore tests."""

import io
import pathlib
from collections.abc import AsyncIterator, Iterable

import pytest
from PIL import Image

from safestore.models import FileDescriptor
from safestore.store.protocol import PutObjectParams, PutObjectResult
from safestore.streams import BodyStream


@pytest.fixture
def anyio_backend():
    return "asyncio"


# ==================== Stream helpers ====================


async def _chunked(chunks: Iterable[bytes]) -> AsyncIterator[bytes]:
    for chunk in chunks:
        yield chunk


async def _failing(chunks: Iterable[bytes], error: Exception) -> AsyncIterator[bytes]:
    for chunk in chunks:
        yield chunk
    raise error


@pytest.fixture
def chunked():
    """Factory for an async stream yielding the given chunks one by one."""
    return _chunked


@pytest.fixture
def failing_stream():
    """Factory for a stream that yields some chunks and then fails like a dropped connection."""

    def _make(chunks: Iterable[bytes] = (), error: Exception | None = None) -> AsyncIterator[bytes]:
        return _failing(list(chunks), error or ConnectionResetError("client went away"))

    return _make


@pytest.fixture
def make_file():
    """Factory for a FileDescriptor over in-memory chunks."""

    def _make(*chunks: bytes, name: str = "upload.bin", mimetype: str = "application/octet-stream") -> FileDescriptor:
        return FileDescriptor(stream=_chunked(chunks), original_name=name, mimetype=mimetype)

    return _make


# ==================== Object store doubles ====================


class RecordingStore:
    """In-memory ObjectStore that records every call."""

    def __init__(self, progress_step: int = 4, error: Exception | None = None) -> None:
        self.progress_step = progress_step
        self.error = error
        self.puts: list[tuple[PutObjectParams, bytes]] = []
        self.deletes: list[tuple[str, str]] = []
        self.progress: list[int] = []
        self.closed = False

    async def put_object(self, params: PutObjectParams, body: BodyStream, on_progress=None) -> PutObjectResult:
        if self.error is not None:
            raise self.error
        data = bytearray()
        while chunk := await body.read(self.progress_step):
            data.extend(chunk)
            self.progress.append(len(data))
            if on_progress is not None:
                on_progress(len(data))
        self.puts.append((params, bytes(data)))
        return PutObjectResult(
            location=f"https://store.test/{params.bucket}/{params.key}",
            etag='"etag-1"',
            version_id="v1",
        )

    async def delete_object(self, bucket: str, key: str) -> None:
        if self.error is not None:
            raise self.error
        self.deletes.append((bucket, key))

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def recording_store() -> RecordingStore:
    return RecordingStore()


@pytest.fixture
def make_store():
    """Factory for RecordingStore with custom progress step or a forced error."""
    return RecordingStore


@pytest.fixture
def store_root(tmp_path: pathlib.Path) -> pathlib.Path:
    """Root directory for LocalObjectStore tests."""
    root = tmp_path / "objects"
    root.mkdir()
    return root


# ==================== Sample content ====================


@pytest.fixture
def png_bytes() -> bytes:
    """A real 20x10 RGB PNG."""
    buffer = io.BytesIO()
    Image.new("RGB", (20, 10), color=(255, 0, 0)).save(buffer, "PNG")
    return buffer.getvalue()


@pytest.fixture
def jpeg_bytes() -> bytes:
    """A real 16x16 JPEG."""
    buffer = io.BytesIO()
    Image.new("RGB", (16, 16), color=(0, 0, 255)).save(buffer, "JPEG")
    return buffer.getvalue()


@pytest.fixture
def script_svg() -> bytes:
    """SVG with an inline script next to legitimate geometry."""
    return (
        b'<svg xmlns="http://www.w3.org/2000/svg"><script>alert(1)</script>'
        b'<rect width="1" height="1"/></svg>'
    )
