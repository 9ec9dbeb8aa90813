"""Normalization of user-supplied relative paths against the upload root."""

from __future__ import annotations

import posixpath
from pathlib import Path

from filevault.exceptions import InvalidPathError


def normalize(user_path: str | None) -> str:
    """Normalize a user-supplied relative path to canonical ``a/b/c`` form.

    Returns ``""`` for the root. Raises InvalidPathError for paths that climb
    above the root, contain NUL bytes, or touch reserved dot-prefixed names.
    """
    if not user_path:
        return ""
    if "\x00" in user_path:
        raise InvalidPathError("Invalid path")

    unified = user_path.replace("\\", "/").strip().lstrip("/")
    if not unified:
        return ""
    candidate = posixpath.normpath(unified)
    if candidate == ".." or candidate.startswith("../"):
        raise InvalidPathError("Path escapes the upload root")
    if candidate == ".":
        return ""

    for segment in candidate.split("/"):
        if segment.startswith("."):
            raise InvalidPathError("Path contains a reserved name")
    return candidate


def resolve(root: Path, user_path: str | None) -> Path:
    """Return the absolute location of ``user_path`` inside ``root``."""
    relative = normalize(user_path)
    base = root.resolve()
    target = (base / relative).resolve() if relative else base
    if target != base and base not in target.parents:
        raise InvalidPathError("Path escapes the upload root")
    return target


def parent_of(directory: str) -> str:
    """Parent of a normalized directory; the root's parent is the root."""
    return posixpath.dirname(directory)


def join(directory: str, name: str) -> str:
    """Join a normalized directory and a leaf name into a relative path."""
    return f"{directory}/{name}" if directory else name
