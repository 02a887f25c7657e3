# SPDX-License-Identifier: MIT
"""Object store factory.

Reads ``SAFESTORE_BACKEND`` env var (default ``"s3"``) and returns the
appropriate singleton store instance.

The S3 client is bound to the event loop that opened it, so it has to be
closed on that loop.  Call :func:`close_object_store` from the application's
shutdown hook (e.g. an ASGI lifespan handler)::

    async def lifespan(app):
        yield
        await close_object_store()
"""

from __future__ import annotations

import atexit
import logging
from functools import lru_cache

from ..config import get_backend_type, get_s3_client_kwargs
from .local import LocalObjectStore
from .protocol import ObjectStore
from .s3 import S3ObjectStore

logger = logging.getLogger("safestore")


@lru_cache(maxsize=1)
def get_object_store() -> ObjectStore:
    """Return the configured :class:`ObjectStore` (cached singleton).

    Configuration
    -------------
    ``SAFESTORE_BACKEND``
        ``"s3"`` (default) – uses ``SAFESTORE_S3_ENDPOINT_URL`` and
            ``AWS_REGION`` / ``AWS_DEFAULT_REGION`` if set; credentials come
            from the standard AWS provider chain.
        ``"local"`` – writes under ``SAFESTORE_LOCAL_ROOT``.
    """
    backend_type = get_backend_type()

    if backend_type == "local":
        logger.info("Using local object store")
        return LocalObjectStore()

    store = S3ObjectStore(**get_s3_client_kwargs())
    _register_cleanup(store)
    logger.info("Using S3 object store")
    return store


async def close_object_store() -> None:
    """Close the cached store, if one was created, and forget it."""
    if get_object_store.cache_info().currsize == 0:
        return
    store = get_object_store()
    get_object_store.cache_clear()
    await store.aclose()
    logger.debug("Object store client closed")


def _register_cleanup(store: S3ObjectStore) -> None:
    """Register an atexit check for an S3 client left open at exit.

    By then its event loop is gone, so the client is reported, not closed.
    """

    def _cleanup() -> None:
        if store.is_open:
            logger.warning("S3 client still open at exit; await close_object_store() during shutdown")

    atexit.register(_cleanup)
