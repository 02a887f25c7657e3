# SPDX-License-Identifier: MIT
"""Amazon S3 (and S3-compatible) object store.

Uses an ``aioboto3`` client opened lazily on first use and kept for the
lifetime of the store.  Credentials and retries come from the standard
botocore configuration.
"""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import aioboto3
import anyio
from botocore.exceptions import BotoCoreError, ClientError

from ..errors import StoreError
from ..streams import BodyStream
from .protocol import ProgressCallback, PutObjectParams, PutObjectResult

if TYPE_CHECKING:
    from boto3.s3.transfer import TransferConfig

logger = logging.getLogger("safestore")


def _store_error(exc: Exception, message: str) -> StoreError:
    """Map a botocore failure to :class:`StoreError`, keeping the S3 error code."""
    code = None
    detail = str(exc)
    response = getattr(exc, "response", None)
    if isinstance(response, dict):
        error = response.get("Error", {})
        code = error.get("Code")
        detail = error.get("Message") or detail
    return StoreError(f"{message}: {detail}", code=code)


class S3ObjectStore:
    """S3 object store.

    Args:
        session: Optional ``aioboto3.Session``; a default session is created
            otherwise.
        transfer_config: Optional ``boto3.s3.transfer.TransferConfig`` for
            multipart thresholds and chunk sizes.
        **client_kwargs: Passed to ``session.client("s3", ...)``, e.g.
            ``endpoint_url`` or ``region_name``.
    """

    def __init__(
        self,
        session: aioboto3.Session | None = None,
        *,
        transfer_config: TransferConfig | None = None,
        **client_kwargs: Any,
    ) -> None:
        self._session = session or aioboto3.Session()
        self._transfer_config = transfer_config
        self._client_kwargs = client_kwargs
        self._client: Any = None
        self._exit_stack = AsyncExitStack()
        self._lock: anyio.Lock | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def _get_client(self) -> Any:
        if self._lock is None:
            self._lock = anyio.Lock()
        async with self._lock:
            if self._client is None:
                self._client = await self._exit_stack.enter_async_context(
                    self._session.client("s3", **self._client_kwargs)
                )
                logger.debug("Opened S3 client (%s)", self._client_kwargs or "default configuration")
        return self._client

    @property
    def is_open(self) -> bool:
        """Whether an S3 client is currently open."""
        return self._client is not None

    async def aclose(self) -> None:
        """Close the underlying S3 client.

        Should be called during application shutdown.
        """
        await self._exit_stack.aclose()
        self._client = None

    async def __aenter__(self) -> S3ObjectStore:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Object I/O
    # ------------------------------------------------------------------

    def _location(self, client: Any, bucket: str, key: str) -> str:
        endpoint = str(client.meta.endpoint_url).rstrip("/")
        return f"{endpoint}/{bucket}/{quote(key)}"

    async def put_object(
        self,
        params: PutObjectParams,
        body: BodyStream,
        on_progress: ProgressCallback | None = None,
    ) -> PutObjectResult:
        client = await self._get_client()
        transferred = 0

        def _callback(bytes_amount: int) -> None:
            nonlocal transferred
            transferred += bytes_amount
            if on_progress is not None:
                on_progress(transferred)

        try:
            await client.upload_fileobj(
                body,
                params.bucket,
                params.key,
                ExtraArgs=params.extra_args(),
                Callback=_callback,
                Config=self._transfer_config,
            )
            head = await client.head_object(Bucket=params.bucket, Key=params.key)
        except (ClientError, BotoCoreError) as e:
            logger.exception("Error uploading s3://%s/%s", params.bucket, params.key)
            raise _store_error(e, f"Failed to upload s3://{params.bucket}/{params.key}") from e

        return PutObjectResult(
            location=self._location(client, params.bucket, params.key),
            etag=head.get("ETag"),
            version_id=head.get("VersionId"),
        )

    async def delete_object(self, bucket: str, key: str) -> None:
        client = await self._get_client()
        try:
            await client.delete_object(Bucket=bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            logger.exception("Error deleting s3://%s/%s", bucket, key)
            raise _store_error(e, f"Failed to delete s3://{bucket}/{key}") from e
