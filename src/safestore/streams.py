# SPDX-License-Identifier: MIT
"""Async byte-stream helpers shared by the sniffer, the engine and the stores."""

from __future__ import annotations

from collections.abc import AsyncIterable, AsyncIterator
from typing import Any, Protocol

from .errors import StorageEngineError, StreamError

DEFAULT_CHUNK_SIZE = 64 * 1024


class AsyncReader(Protocol):
    async def read(self, size: int = -1) -> bytes: ...


class BodyStream:
    """Async file-like view over an async iterator of byte chunks.

    Supports both ``await body.read(n)`` (what S3 transfer managers expect)
    and ``async for chunk in body``.  Failures raised by the source iterator
    surface as :class:`~safestore.errors.StreamError`.
    """

    def __init__(self, chunks: AsyncIterable[bytes]) -> None:
        self._iterator = aiter(chunks)
        self._pending = bytearray()
        self._exhausted = False

    @classmethod
    def from_bytes(cls, data: bytes) -> BodyStream:
        """Create a stream that yields *data* once."""

        async def _single() -> AsyncIterator[bytes]:
            if data:
                yield data

        return cls(_single())

    async def _next_chunk(self) -> bytes | None:
        while not self._exhausted:
            try:
                chunk = await anext(self._iterator)
            except StopAsyncIteration:
                self._exhausted = True
                break
            except StorageEngineError:
                self._exhausted = True
                raise
            except Exception as e:
                self._exhausted = True
                raise StreamError(f"Failed to read upload stream: {e}") from e
            if chunk:
                return bytes(chunk)
        return None

    async def read(self, size: int = -1) -> bytes:
        """Read up to *size* bytes, or everything left when *size* is negative.

        Returns ``b""`` at end of stream.
        """
        if size is None or size < 0:
            while (chunk := await self._next_chunk()) is not None:
                self._pending.extend(chunk)
            data = bytes(self._pending)
            self._pending.clear()
            return data

        while len(self._pending) < size:
            chunk = await self._next_chunk()
            if chunk is None:
                break
            self._pending.extend(chunk)
        data = bytes(self._pending[:size])
        del self._pending[:size]
        return data

    def __aiter__(self) -> BodyStream:
        return self

    async def __anext__(self) -> bytes:
        if self._pending:
            data = bytes(self._pending)
            self._pending.clear()
            return data
        chunk = await self._next_chunk()
        if chunk is None:
            raise StopAsyncIteration
        return chunk

    async def aclose(self) -> None:
        self._pending.clear()
        self._exhausted = True
        await close_stream(self._iterator)


async def prepend(first: bytes, rest: AsyncIterator[bytes]) -> AsyncIterator[bytes]:
    """Yield *first* and then every chunk of *rest*, unbuffered."""
    if first:
        yield first
    async for chunk in rest:
        yield chunk


async def iter_chunks(reader: AsyncReader, chunk_size: int = DEFAULT_CHUNK_SIZE) -> AsyncIterator[bytes]:
    """Adapt any object with an async ``read(n)`` (e.g. an ASGI ``UploadFile``)."""
    while chunk := await reader.read(chunk_size):
        yield chunk


async def close_stream(stream: Any) -> None:
    """Close *stream* if it supports ``aclose()``; no-op otherwise."""
    aclose = getattr(stream, "aclose", None)
    if aclose is not None:
        await aclose()
