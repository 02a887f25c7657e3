# SPDX-License-Identifier: MIT
"""Path safety helpers for the local object store."""

from __future__ import annotations

import pathlib


def validate_safe_path(base_path: pathlib.Path, filename: str, *, allow_create: bool = False) -> pathlib.Path:
    """Resolve *filename* under *base_path*, rejecting anything that escapes it.

    Args:
        base_path: Directory the result must stay inside.
        filename: Relative path supplied by the caller (an object key).
        allow_create: Accept paths that do not exist yet.

    Returns:
        The resolved absolute path.

    Raises:
        ValueError: On path traversal, or if the file is missing and
            ``allow_create`` is False.
    """
    base = base_path.resolve()
    try:
        candidate = (base / filename).resolve()
    except (ValueError, OSError) as e:
        raise ValueError(f"Invalid path {filename!r}: {e}") from e

    try:
        candidate.relative_to(base)
    except ValueError as e:
        raise ValueError(f"Invalid path: path traversal detected in {filename!r}") from e

    if candidate == base:
        raise ValueError(f"Invalid path: {filename!r} names the base directory")

    if not allow_create and not candidate.exists():
        raise ValueError(f"File not found: {filename}")

    return candidate


def check_not_symlink(path: pathlib.Path, description: str) -> None:
    """Raise if *path* exists and is a symbolic link."""
    if path.is_symlink():
        raise ValueError(f"{description} cannot be a symbolic link: {path.name}")
