# SPDX-License-Identifier: MIT
"""safestore: object-store engine for file uploads with content sniffing.

Usage::

    from safestore import AUTO_CONTENT_TYPE, FileDescriptor, s3_storage

    storage = s3_storage(bucket="uploads", content_type=AUTO_CONTENT_TYPE)
    stored = await storage.handle_file(request, FileDescriptor(stream=chunks))
"""

from .engine import S3StorageEngine, s3_storage
from .errors import (
    ConfigurationError,
    ResolverError,
    SanitizationError,
    SizeLimitError,
    StorageEngineError,
    StoreError,
    StreamError,
)
from .models import FileDescriptor, ObjectRef, StoredObject
from .options import DEFAULT, Constant, ResolvedOptions, Resolver, StorageOptions
from .sniffer import AUTO_CONTENT_TYPE, DEFAULT_CONTENT_TYPE, ContentTypeResult
from .streams import BodyStream, iter_chunks

__all__ = [
    "AUTO_CONTENT_TYPE",
    "DEFAULT",
    "DEFAULT_CONTENT_TYPE",
    "BodyStream",
    "ConfigurationError",
    "Constant",
    "ContentTypeResult",
    "FileDescriptor",
    "ObjectRef",
    "ResolvedOptions",
    "Resolver",
    "ResolverError",
    "S3StorageEngine",
    "SanitizationError",
    "SizeLimitError",
    "StorageEngineError",
    "StorageOptions",
    "StoreError",
    "StoredObject",
    "StreamError",
    "iter_chunks",
    "s3_storage",
]
