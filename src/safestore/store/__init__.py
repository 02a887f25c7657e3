# SPDX-License-Identifier: MIT
"""Object store backends for safestore.

The engine talks to an :class:`ObjectStore`; two implementations ship:
S3 (default) and a local directory tree for development.

Usage::

    from safestore.store import get_object_store

    store = get_object_store()
    await store.delete_object("uploads", "0f3c...")
"""

from .factory import close_object_store, get_object_store
from .local import LocalObjectStore
from .protocol import ObjectStore, ProgressCallback, PutObjectParams, PutObjectResult
from .s3 import S3ObjectStore

__all__ = [
    "LocalObjectStore",
    "ObjectStore",
    "ProgressCallback",
    "PutObjectParams",
    "PutObjectResult",
    "S3ObjectStore",
    "close_object_store",
    "get_object_store",
]
