# SPDX-License-Identifier: MIT
"""Object store protocol and shared types.

Defines the interface the storage engine needs from an object store client.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from ..streams import BodyStream

ProgressCallback = Callable[[int], None]
"""Called with the cumulative number of bytes transferred so far."""


@dataclass(frozen=True)
class PutObjectParams:
    """Everything about a write except the body."""

    bucket: str
    key: str
    content_type: str
    acl: str | None = None
    cache_control: str | None = None
    metadata: Mapping[str, str] | None = None
    storage_class: str | None = None
    server_side_encryption: str | None = None
    sse_kms_key_id: str | None = None
    content_disposition: str | None = None
    content_encoding: str | None = None

    def extra_args(self) -> dict[str, Any]:
        """S3 request arguments other than Bucket/Key/Body, unset values omitted."""
        args: dict[str, Any] = {
            "ACL": self.acl,
            "CacheControl": self.cache_control,
            "ContentType": self.content_type,
            "Metadata": dict(self.metadata) if self.metadata is not None else None,
            "StorageClass": self.storage_class,
            "ServerSideEncryption": self.server_side_encryption,
            "SSEKMSKeyId": self.sse_kms_key_id,
        }
        args = {name: value for name, value in args.items() if value is not None}
        # Sent only when non-empty, never as a blank header.
        if self.content_disposition:
            args["ContentDisposition"] = self.content_disposition
        if self.content_encoding:
            args["ContentEncoding"] = self.content_encoding
        return args


@dataclass(frozen=True)
class PutObjectResult:
    """Identifiers the store assigned to a successful write."""

    location: str | None = None
    etag: str | None = None
    version_id: str | None = None


@runtime_checkable
class ObjectStore(Protocol):
    """Protocol for object store clients used by the storage engine.

    Implementations perform the network (or disk) I/O and own any retry
    policy.  Failures are raised as :class:`~safestore.errors.StoreError`.
    """

    async def put_object(
        self,
        params: PutObjectParams,
        body: BodyStream,
        on_progress: ProgressCallback | None = None,
    ) -> PutObjectResult:
        """Write *body* under ``params.bucket``/``params.key``.

        Returns:
            Location, entity tag and version id of the stored object.
        """
        ...

    async def delete_object(self, bucket: str, key: str) -> None:
        """Delete one object.  Deleting a missing key is not an error."""
        ...

    async def aclose(self) -> None:
        """Release client resources."""
        ...
