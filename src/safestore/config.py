# SPDX-License-Identifier: MIT
"""Configuration management for safestore.

This module handles:
- Logging setup
- Object store backend selection
- Local store root validation
"""

import logging
import os
import pathlib
import sys
from functools import lru_cache
from typing import Literal

# ---------- Logging configuration ----------
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger("safestore")

BackendType = Literal["s3", "local"]


# ---------- Backend selection ----------
def get_backend_type() -> BackendType:
    """Return the configured object store backend.

    Raises:
        RuntimeError: If SAFESTORE_BACKEND names an unknown backend
    """
    backend = os.getenv("SAFESTORE_BACKEND", "s3").strip().lower() or "s3"
    if backend not in ("s3", "local"):
        raise RuntimeError(f"Unknown SAFESTORE_BACKEND: {backend!r}. Use 's3' or 'local'.")
    return backend  # type: ignore[return-value]


def get_s3_client_kwargs() -> dict[str, str]:
    """Keyword arguments for the aioboto3 S3 client.

    Credentials are left to the standard AWS provider chain.
    """
    kwargs: dict[str, str] = {}
    endpoint = os.getenv("SAFESTORE_S3_ENDPOINT_URL", "").strip()
    if endpoint:
        kwargs["endpoint_url"] = endpoint
    region = (os.getenv("AWS_REGION") or os.getenv("AWS_DEFAULT_REGION") or "").strip()
    if region:
        kwargs["region_name"] = region
    return kwargs


# ---------- Local store root (runtime) ----------
@lru_cache(maxsize=1)
def get_local_root() -> pathlib.Path:
    """Get and validate SAFESTORE_LOCAL_ROOT.

    Security: Rejects symlinks so a configured root cannot be redirected.

    Returns:
        Validated absolute path

    Raises:
        RuntimeError: If the variable is unset, the path doesn't exist, isn't a
            directory, or is a symlink
    """
    path_str = os.getenv("SAFESTORE_LOCAL_ROOT", "").strip()
    if not path_str:
        raise RuntimeError("Local object store root not configured. Set SAFESTORE_LOCAL_ROOT")

    original_path = pathlib.Path(path_str)
    try:
        if original_path.exists() and original_path.is_symlink():
            raise RuntimeError(f"Local object store root cannot be a symbolic link: {path_str}")
    except PermissionError as e:
        raise RuntimeError(f"Cannot validate local object store root: permission denied for {path_str}") from e

    try:
        path = original_path.resolve()
    except (ValueError, OSError) as e:
        raise RuntimeError(f"Invalid local object store root '{path_str}': {e}") from e

    if not path.exists():
        raise RuntimeError(f"SAFESTORE_LOCAL_ROOT: directory does not exist: {path}")
    if not path.is_dir():
        raise RuntimeError(f"SAFESTORE_LOCAL_ROOT: not a directory: {path}")

    return path
