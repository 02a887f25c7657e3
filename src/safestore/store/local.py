# SPDX-License-Identifier: MIT
"""Local filesystem object store.

Objects live at ``<root>/<bucket>/<key>``.  Useful for development and tests;
the root comes from ``SAFESTORE_LOCAL_ROOT`` unless passed explicitly.
"""

from __future__ import annotations

import hashlib
import logging
import os
import pathlib

import aiofiles

from ..config import get_local_root
from ..errors import StoreError
from ..security import check_not_symlink, validate_safe_path
from ..streams import BodyStream
from .protocol import ProgressCallback, PutObjectParams, PutObjectResult

logger = logging.getLogger("safestore")


class LocalObjectStore:
    """Object store backed by a directory tree.

    Args:
        root: Optional root directory, used in tests to redirect I/O into
            ``tmp_path`` fixtures without touching env vars.
    """

    def __init__(self, root: pathlib.Path | None = None) -> None:
        self._root_override = root

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def aclose(self) -> None:
        """Nothing to release; present for protocol conformance."""

    async def __aenter__(self) -> LocalObjectStore:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Path helpers
    # ------------------------------------------------------------------

    def _root(self) -> pathlib.Path:
        return (self._root_override or get_local_root()).resolve()

    def _bucket_dir(self, bucket: str) -> pathlib.Path:
        if not bucket or bucket in (".", "..") or "/" in bucket or "\\" in bucket:
            raise StoreError(f"Invalid bucket name: {bucket!r}", code="InvalidBucketName")
        path = self._root() / bucket
        try:
            check_not_symlink(path, "Bucket")
        except ValueError as e:
            raise StoreError(str(e), code="InvalidBucketName") from e
        return path

    def object_path(self, bucket: str, key: str) -> pathlib.Path:
        """Filesystem path for *bucket*/*key*, rejecting traversal and symlinks."""
        base = self._bucket_dir(bucket)
        try:
            check_not_symlink(base / key, "Object")
            return validate_safe_path(base, key, allow_create=True)
        except ValueError as e:
            raise StoreError(str(e), code="InvalidKey") from e

    # ------------------------------------------------------------------
    # Object I/O
    # ------------------------------------------------------------------

    async def put_object(
        self,
        params: PutObjectParams,
        body: BodyStream,
        on_progress: ProgressCallback | None = None,
    ) -> PutObjectResult:
        path = self.object_path(params.bucket, params.key)
        path.parent.mkdir(parents=True, exist_ok=True)
        partial = path.with_name(f".{path.name}.part")

        digest = hashlib.md5(usedforsecurity=False)
        transferred = 0
        try:
            async with aiofiles.open(partial, "wb") as f:
                async for chunk in body:
                    await f.write(chunk)
                    digest.update(chunk)
                    transferred += len(chunk)
                    if on_progress is not None:
                        on_progress(transferred)
            os.replace(partial, path)
        except BaseException:
            partial.unlink(missing_ok=True)
            raise

        logger.debug("Wrote %d bytes to %s", transferred, path)
        return PutObjectResult(location=path.as_uri(), etag=f'"{digest.hexdigest()}"')

    async def delete_object(self, bucket: str, key: str) -> None:
        path = self.object_path(bucket, key)
        path.unlink(missing_ok=True)
        logger.debug("Deleted %s", path)
