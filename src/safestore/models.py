# SPDX-License-Identifier: MIT
"""Records passed into and returned from the storage engine."""

from __future__ import annotations

from collections.abc import AsyncIterable
from dataclasses import dataclass

from pydantic import BaseModel


@dataclass(frozen=True)
class FileDescriptor:
    """One file of an upload, as handed over by the middleware.

    Only ``stream`` is read by the engine.  The name and MIME type come from
    the client and are never trusted for the stored content type.
    """

    stream: AsyncIterable[bytes]
    original_name: str = ""
    mimetype: str = "application/octet-stream"
    fieldname: str = "file"
    encoding: str = "7bit"


@dataclass(frozen=True)
class ObjectRef:
    """Bucket and key of a previously stored object."""

    bucket: str
    key: str


class StoredObject(BaseModel, frozen=True):
    """Confirmation record for an object the store has accepted."""

    size: int
    bucket: str
    key: str
    acl: str | None = None
    content_type: str
    content_disposition: str | None = None
    content_encoding: str | None = None
    storage_class: str | None = None
    server_side_encryption: str | None = None
    sse_kms_key_id: str | None = None
    metadata: dict[str, str] | None = None
    location: str | None = None
    etag: str | None = None
    version_id: str | None = None
