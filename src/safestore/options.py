# SPDX-License-Identifier: MIT
"""Per-file storage options.

Every option accepts one of three shapes when the engine is built:

- a constant (``Constant(value)`` or the bare value),
- a resolver (``Resolver(fn)`` or a bare callable ``fn(request, file)``
  returning the value or an awaitable of it),
- nothing (``None`` / :data:`DEFAULT`), which selects the documented default.

Anything else is rejected with :class:`~safestore.errors.ConfigurationError`
before the first upload.
"""

from __future__ import annotations

import enum
import inspect
import logging
import secrets
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Generic, TypeVar

import anyio
from aioresult import ResultCapture

from .errors import ConfigurationError, ResolverError, StorageEngineError
from .models import FileDescriptor
from .sniffer import ContentTypeResult, default_content_type
from .store.protocol import PutObjectParams
from .streams import BodyStream

logger = logging.getLogger("safestore")

T = TypeVar("T")

ResolverFn = Callable[[Any, FileDescriptor], Any]


@dataclass(frozen=True)
class Constant(Generic[T]):
    """The same value for every file."""

    value: T


@dataclass(frozen=True)
class Resolver(Generic[T]):
    """A per-file function ``fn(request, file)``; may be sync or async."""

    fn: ResolverFn


class _Default(enum.Enum):
    DEFAULT = "default"


DEFAULT = _Default.DEFAULT
"""Explicit marker for "use the built-in default"."""

OptionSource = Constant[Any] | Resolver[Any]


async def default_key(request: Any, file: FileDescriptor) -> str:
    """128 bits from the OS CSPRNG, hex encoded."""
    return secrets.token_hex(16)


DEFAULT_SOURCES: Mapping[str, OptionSource] = MappingProxyType(
    {
        "key": Resolver(default_key),
        "acl": Constant("private"),
        "content_type": Resolver(default_content_type),
        "metadata": Constant(None),
        "cache_control": Constant(None),
        "content_disposition": Constant(None),
        "content_encoding": Constant(None),
        "storage_class": Constant("STANDARD"),
        "server_side_encryption": Constant(None),
        "sse_kms_key_id": Constant(None),
    }
)

# Options resolved concurrently; content_type always runs after these.
PARALLEL_OPTIONS = (
    "bucket",
    "key",
    "acl",
    "metadata",
    "cache_control",
    "content_disposition",
    "storage_class",
    "server_side_encryption",
    "sse_kms_key_id",
    "content_encoding",
)

_MAPPING_OPTIONS = frozenset({"metadata"})


def _check_constant(name: str, value: Any) -> None:
    if value is None and name not in ("bucket", "key", "content_type"):
        return
    if name in _MAPPING_OPTIONS:
        if not isinstance(value, Mapping) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in value.items()
        ):
            raise ConfigurationError(f"Expected {name} to be a mapping of str to str")
        return
    if not isinstance(value, str):
        raise ConfigurationError(f"Expected {name} constant to be a string, got {type(value).__name__}")
    if not value and name in ("bucket", "key"):
        raise ConfigurationError(f"Expected {name} constant to be a non-empty string")


def _normalize(name: str, value: Any) -> OptionSource:
    if isinstance(value, Constant):
        _check_constant(name, value.value)
        return value
    if isinstance(value, Resolver):
        if not callable(value.fn):
            raise ConfigurationError(f"Expected {name} resolver to be callable")
        return value
    if callable(value):
        return Resolver(value)
    if isinstance(value, (str, Mapping)):
        _check_constant(name, value)
        return Constant(value)
    shape = "a mapping" if name in _MAPPING_OPTIONS else "a string"
    raise ConfigurationError(f"Expected {name} to be None, {shape} or a callable, got {type(value).__name__}")


@dataclass(frozen=True)
class ResolvedOptions:
    """Every storage parameter for one file, fully resolved."""

    bucket: str
    key: str
    acl: str | None
    metadata: Mapping[str, str] | None
    cache_control: str | None
    content_disposition: str | None
    content_encoding: str | None
    storage_class: str | None
    server_side_encryption: str | None
    sse_kms_key_id: str | None
    content_type: str
    replacement_body: BodyStream | None = None

    def put_params(self) -> PutObjectParams:
        return PutObjectParams(
            bucket=self.bucket,
            key=self.key,
            content_type=self.content_type,
            acl=self.acl,
            cache_control=self.cache_control,
            metadata=self.metadata,
            storage_class=self.storage_class,
            server_side_encryption=self.server_side_encryption,
            sse_kms_key_id=self.sse_kms_key_id,
            content_disposition=self.content_disposition,
            content_encoding=self.content_encoding,
        )


class StorageOptions:
    """Normalized option sources for one storage engine.

    Each instance gets its own copy of :data:`DEFAULT_SOURCES`.
    """

    def __init__(
        self,
        *,
        bucket: Any = None,
        key: Any = None,
        acl: Any = None,
        content_type: Any = None,
        metadata: Any = None,
        cache_control: Any = None,
        content_disposition: Any = None,
        content_encoding: Any = None,
        storage_class: Any = None,
        server_side_encryption: Any = None,
        sse_kms_key_id: Any = None,
    ) -> None:
        if bucket is None or bucket is DEFAULT:
            raise ConfigurationError("bucket is required")

        supplied = {
            "bucket": bucket,
            "key": key,
            "acl": acl,
            "content_type": content_type,
            "metadata": metadata,
            "cache_control": cache_control,
            "content_disposition": content_disposition,
            "content_encoding": content_encoding,
            "storage_class": storage_class,
            "server_side_encryption": server_side_encryption,
            "sse_kms_key_id": sse_kms_key_id,
        }
        self._sources: dict[str, OptionSource] = dict(DEFAULT_SOURCES)
        for name, value in supplied.items():
            if value is None or value is DEFAULT:
                continue
            self._sources[name] = _normalize(name, value)

    def source(self, name: str) -> OptionSource:
        return self._sources[name]

    async def resolve(self, name: str, request: Any, file: FileDescriptor) -> Any:
        """Resolve a single option for one file.

        Raises:
            ResolverError: If a user resolver raises or returns an unusable value.
        """
        source = self._sources[name]
        if isinstance(source, Constant):
            return source.value

        try:
            value = source.fn(request, file)
            if inspect.isawaitable(value):
                value = await value
        except StorageEngineError:
            raise
        except Exception as e:
            raise ResolverError(name, str(e) or type(e).__name__) from e

        if name in ("bucket", "key") and (not isinstance(value, str) or not value):
            raise ResolverError(name, f"expected a non-empty string, got {value!r}")
        if name in _MAPPING_OPTIONS and value is not None and not isinstance(value, Mapping):
            raise ResolverError(name, f"expected a mapping, got {type(value).__name__}")
        return value

    async def resolve_content_type(self, request: Any, file: FileDescriptor) -> ContentTypeResult:
        value = await self.resolve("content_type", request, file)
        if isinstance(value, ContentTypeResult):
            return value
        if isinstance(value, str) and value:
            return ContentTypeResult(value)
        raise ResolverError("content_type", f"expected a string or ContentTypeResult, got {value!r}")


def _first_error(group: BaseExceptionGroup) -> BaseException:
    first = group.exceptions[0]
    if isinstance(first, BaseExceptionGroup):
        return _first_error(first)
    return first


async def collect(options: StorageOptions, request: Any, file: FileDescriptor) -> ResolvedOptions:
    """Resolve every option for *file*.

    The non-content-type options run concurrently; the content-type resolver
    runs once they have all succeeded, since it may consume the file stream.
    The first failure aborts the whole resolution.
    """
    try:
        async with anyio.create_task_group() as tg:
            captures = {
                name: ResultCapture.start_soon(tg, options.resolve, name, request, file) for name in PARALLEL_OPTIONS
            }
    except ExceptionGroup as group:
        raise _first_error(group)  # noqa: B904

    values = {name: capture.result() for name, capture in captures.items()}
    content_type = await options.resolve_content_type(request, file)

    metadata = values["metadata"]
    return ResolvedOptions(
        **{**values, "metadata": MappingProxyType(dict(metadata)) if metadata is not None else None},
        content_type=content_type.content_type,
        replacement_body=content_type.body,
    )
