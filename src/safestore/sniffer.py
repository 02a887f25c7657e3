# SPDX-License-Identifier: MIT
"""Content-type sniffing for upload streams.

The client-declared MIME type is never used.  The first chunk of the stream
decides between two paths:

- SVG candidates are buffered in full (up to :data:`MAX_SVG_SIZE`), sanitized
  and replaced by a new stream holding only the sanitized bytes.
- Everything else passes through unmodified and unbuffered, typed by its
  byte signature.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import AsyncIterable
from dataclasses import dataclass
from typing import Any

import anyio
import filetype

from .errors import SizeLimitError, StorageEngineError, StreamError
from .models import FileDescriptor
from .streams import BodyStream, close_stream, prepend
from .svg import is_svg, sanitize_svg

logger = logging.getLogger("safestore")

MAX_SVG_SIZE = 1 * 1024 * 1024  # 1 MiB
SVG_CONTENT_TYPE = "image/svg+xml"
OCTET_STREAM = "application/octet-stream"


class SniffState(enum.Enum):
    START = "start"
    SNIFFING_FIRST_CHUNK = "sniffing_first_chunk"
    BUFFERING_SVG = "buffering_svg"
    PASS_THROUGH_STREAMING = "pass_through_streaming"
    DONE = "done"
    FAILED = "failed"


class SniffDecision(enum.Enum):
    UNDETERMINED = "undetermined"
    PASS_THROUGH = "pass_through"
    BUFFER_AS_SVG = "buffer_as_svg"


_TRANSITIONS: dict[SniffState, frozenset[SniffState]] = {
    SniffState.START: frozenset({SniffState.SNIFFING_FIRST_CHUNK, SniffState.FAILED}),
    SniffState.SNIFFING_FIRST_CHUNK: frozenset(
        {SniffState.BUFFERING_SVG, SniffState.PASS_THROUGH_STREAMING, SniffState.FAILED}
    ),
    SniffState.BUFFERING_SVG: frozenset({SniffState.DONE, SniffState.FAILED}),
    SniffState.PASS_THROUGH_STREAMING: frozenset({SniffState.DONE, SniffState.FAILED}),
    SniffState.DONE: frozenset(),
    SniffState.FAILED: frozenset(),
}


@dataclass(frozen=True)
class ContentTypeResult:
    """Outcome of content-type resolution.

    ``body``, when set, replaces the file's original stream for the upload.
    """

    content_type: str
    body: BodyStream | None = None


def classify(first_chunk: bytes) -> tuple[SniffDecision, str]:
    """Pick the sniffing branch and provisional content type for *first_chunk*."""
    kind = filetype.guess(first_chunk) if first_chunk else None
    maybe_xml = kind is None or kind.extension == "xml" or kind.mime == SVG_CONTENT_TYPE
    if maybe_xml and is_svg(first_chunk.decode("utf-8", errors="replace")):
        return SniffDecision.BUFFER_AS_SVG, SVG_CONTENT_TYPE
    return SniffDecision.PASS_THROUGH, kind.mime if kind is not None else OCTET_STREAM


class ContentSniffer:
    """Single-use sniffer for one file's stream.

    Args:
        stream: The upload stream.  The sniffer takes over reading it; on
            success the returned body continues where the sniffer stopped.
    """

    def __init__(self, stream: AsyncIterable[bytes]) -> None:
        self._iterator = aiter(stream)
        self.state = SniffState.START
        self.decision = SniffDecision.UNDETERMINED
        self.error: Exception | None = None

    def _transition(self, new_state: SniffState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Invalid sniffer transition: {self.state.name} -> {new_state.name}")
        self.state = new_state

    async def _next_chunk(self) -> bytes | None:
        """Next non-empty chunk, ``None`` at end of stream."""
        while True:
            try:
                chunk = await anext(self._iterator)
            except StopAsyncIteration:
                return None
            except StorageEngineError:
                raise
            except Exception as e:
                raise StreamError(f"Failed to read upload stream: {e}") from e
            if chunk:
                return bytes(chunk)

    async def run(self) -> ContentTypeResult:
        """Sniff the stream and establish the content type and upload body.

        Raises:
            StreamError: The stream failed before or while buffering.
            SizeLimitError: An SVG candidate exceeded :data:`MAX_SVG_SIZE`.
            SanitizationError: The complete SVG did not survive sanitization.
        """
        if self.state is not SniffState.START:
            raise RuntimeError("ContentSniffer instances are single-use")

        try:
            first_chunk = await self._next_chunk() or b""
            self._transition(SniffState.SNIFFING_FIRST_CHUNK)
            self.decision, content_type = await anyio.to_thread.run_sync(classify, first_chunk)

            if self.decision is SniffDecision.BUFFER_AS_SVG:
                self._transition(SniffState.BUFFERING_SVG)
                result = await self._buffer_svg(first_chunk)
            else:
                self._transition(SniffState.PASS_THROUGH_STREAMING)
                result = ContentTypeResult(content_type, BodyStream(prepend(first_chunk, self._iterator)))
        except Exception as e:
            self.error = e
            self._transition(SniffState.FAILED)
            await close_stream(self._iterator)
            raise

        self._transition(SniffState.DONE)
        logger.debug("Sniffed %s (%s)", result.content_type, self.decision.value)
        return result

    async def _buffer_svg(self, first_chunk: bytes) -> ContentTypeResult:
        chunks = [first_chunk]
        size = len(first_chunk)
        if size > MAX_SVG_SIZE:
            raise SizeLimitError(MAX_SVG_SIZE)

        while (chunk := await self._next_chunk()) is not None:
            size += len(chunk)
            if size > MAX_SVG_SIZE:
                raise SizeLimitError(MAX_SVG_SIZE)
            chunks.append(chunk)

        text = b"".join(chunks).decode("utf-8", errors="replace")
        chunks.clear()
        sanitized = await anyio.to_thread.run_sync(sanitize_svg, text)
        logger.debug("Sanitized SVG upload: %d -> %d bytes", size, len(sanitized))
        return ContentTypeResult(SVG_CONTENT_TYPE, BodyStream.from_bytes(sanitized.encode("utf-8")))


async def auto_content_type(request: Any, file: FileDescriptor) -> ContentTypeResult:
    """Content-type resolver that sniffs the stream (and sanitizes SVG)."""
    return await ContentSniffer(file.stream).run()


async def default_content_type(request: Any, file: FileDescriptor) -> ContentTypeResult:
    """Content-type resolver that always answers ``application/octet-stream``."""
    return ContentTypeResult(OCTET_STREAM)


AUTO_CONTENT_TYPE = auto_content_type
DEFAULT_CONTENT_TYPE = default_content_type
