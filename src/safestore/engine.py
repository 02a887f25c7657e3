# SPDX-License-Identifier: MIT
"""Storage engine invoked by an upload middleware for each file.

``handle_file`` resolves the file's options (sniffing and sanitizing the
content on the way), streams the body to the object store and returns a
:class:`~safestore.models.StoredObject`.  ``remove_file`` deletes one object.

Usage::

    from safestore import AUTO_CONTENT_TYPE, s3_storage

    storage = s3_storage(bucket="uploads", content_type=AUTO_CONTENT_TYPE)
    stored = await storage.handle_file(request, file)
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import Any

import anyio

from .errors import ConfigurationError
from .models import FileDescriptor, ObjectRef, StoredObject
from .options import StorageOptions, collect
from .store import ObjectStore, get_object_store
from .streams import BodyStream, close_stream

logger = logging.getLogger("safestore")

ResultCallback = Callable[..., Any]


class S3StorageEngine:
    """Pluggable storage engine for upload middlewares.

    Args:
        store: Object store client the engine writes to.
        options: Normalized per-file option sources.
    """

    def __init__(self, store: ObjectStore, options: StorageOptions) -> None:
        if not isinstance(store, ObjectStore):
            raise ConfigurationError(f"Expected store to be an ObjectStore, got {type(store).__name__}")
        self.store = store
        self.options = options

    # ------------------------------------------------------------------
    # Upload
    # ------------------------------------------------------------------

    async def handle_file(self, request: Any, file: FileDescriptor) -> StoredObject:
        """Persist one uploaded file.

        Raises:
            ResolverError, StreamError, SizeLimitError, SanitizationError:
                Before any upload is attempted.
            StoreError: If the object store rejects the write.
        """
        try:
            opts = await collect(self.options, request, file)
        except Exception:
            await close_stream(file.stream)
            raise

        body = opts.replacement_body or BodyStream(file.stream)
        size = 0

        def _on_progress(total: int) -> None:
            nonlocal size
            if total:
                size = total

        try:
            result = await self.store.put_object(opts.put_params(), body, on_progress=_on_progress)
        except Exception:
            await body.aclose()
            await close_stream(file.stream)
            raise

        logger.info("Stored %s/%s (%d bytes, %s)", opts.bucket, opts.key, size, opts.content_type)
        return StoredObject(
            size=size,
            bucket=opts.bucket,
            key=opts.key,
            acl=opts.acl,
            content_type=opts.content_type,
            content_disposition=opts.content_disposition,
            content_encoding=opts.content_encoding,
            storage_class=opts.storage_class,
            server_side_encryption=opts.server_side_encryption,
            sse_kms_key_id=opts.sse_kms_key_id,
            metadata=dict(opts.metadata) if opts.metadata is not None else None,
            location=result.location,
            etag=result.etag,
            version_id=result.version_id,
        )

    async def handle_files(
        self, request: Any, files: Sequence[FileDescriptor]
    ) -> list[StoredObject | Exception]:
        """Persist several files concurrently.

        Each file succeeds or fails on its own; the result list holds either
        the stored object or the exception, in input order.
        """
        results: list[StoredObject | Exception] = [None] * len(files)  # type: ignore[list-item]

        async def _one(index: int, file: FileDescriptor) -> None:
            try:
                results[index] = await self.handle_file(request, file)
            except Exception as e:
                logger.warning("Upload of %r failed: %s", file.original_name, e)
                results[index] = e

        async with anyio.create_task_group() as tg:
            for index, file in enumerate(files):
                tg.start_soon(_one, index, file)
        return results

    # ------------------------------------------------------------------
    # Removal
    # ------------------------------------------------------------------

    async def remove_file(self, request: Any, file: StoredObject | ObjectRef) -> None:
        """Delete a previously stored object.  No existence check, no retry."""
        await self.store.delete_object(file.bucket, file.key)
        logger.info("Removed %s/%s", file.bucket, file.key)

    # ------------------------------------------------------------------
    # Callback-style middleware contract
    # ------------------------------------------------------------------

    async def handle_file_callback(self, request: Any, file: FileDescriptor, callback: ResultCallback) -> None:
        """Run :meth:`handle_file`, reporting ``callback(None, stored)`` or ``callback(error)`` once."""
        try:
            stored = await self.handle_file(request, file)
        except Exception as e:
            callback(e)
            return
        callback(None, stored)

    async def remove_file_callback(
        self, request: Any, file: StoredObject | ObjectRef, callback: ResultCallback
    ) -> None:
        """Run :meth:`remove_file`, reporting ``callback(None)`` or ``callback(error)`` once."""
        try:
            await self.remove_file(request, file)
        except Exception as e:
            callback(e)
            return
        callback(None)


def s3_storage(store: ObjectStore | None = None, **options: Any) -> S3StorageEngine:
    """Build a storage engine.

    Args:
        store: Object store client; defaults to :func:`get_object_store`.
        **options: ``bucket`` (required), ``key``, ``acl``, ``content_type``,
            ``metadata``, ``cache_control``, ``content_disposition``,
            ``content_encoding``, ``storage_class``,
            ``server_side_encryption``, ``sse_kms_key_id``.

    Raises:
        ConfigurationError: If an option has an unsupported shape.
    """
    storage_options = StorageOptions(**options)
    return S3StorageEngine(store if store is not None else get_object_store(), storage_options)
