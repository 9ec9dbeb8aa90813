"""Filename and input sanitization utilities."""

from __future__ import annotations

import re
import secrets
from pathlib import PurePosixPath

SUFFIX_BYTES = 6  # 12 hex characters
_SUFFIX_RE = re.compile(r"^(?P<base>.+)-(?P<suffix>[0-9a-f]{12})$")
_UNSAFE_CHARS_RE = re.compile(r'[\x00-\x1f\x7f/\\:*?"<>|]')
_WHITESPACE_RE = re.compile(r"\s+")
_MAX_BASE_LENGTH = 120


def repair_filename_encoding(name: str) -> str:
    """Undo a latin-1 decoding of UTF-8 filename bytes.

    Multipart parsers that treat every byte as one character turn ``"café.txt"``
    into ``"cafÃ©.txt"``. Reinterpreting the characters as UTF-8 bytes restores
    the original; the reinterpretation is kept only when it is clean.
    """
    try:
        raw = name.encode("latin-1")
    except UnicodeEncodeError:
        # Already decoded properly (contains characters outside latin-1)
        return name
    repaired = raw.decode("utf-8", errors="replace")
    if "\ufffd" in repaired and "\ufffd" not in name:
        return name
    return repaired


def split_extension(name: str) -> tuple[str, str]:
    """Split a display name into (base, lowercased extension)."""
    suffix = PurePosixPath(name).suffix
    if not suffix:
        return name, ""
    return name[: -len(suffix)], suffix.lower()


def safe_base(base: str) -> str:
    """Make a filename base safe for the local filesystem."""
    cleaned = _UNSAFE_CHARS_RE.sub("", base)
    cleaned = _WHITESPACE_RE.sub("_", cleaned.strip()).lstrip(".")
    return cleaned[:_MAX_BASE_LENGTH] or "file"


def new_suffix() -> str:
    return secrets.token_hex(SUFFIX_BYTES)


def extract_suffix(stored_name: str) -> str | None:
    """Return the uniqueness suffix of a stored name, if it carries one."""
    base, _ = split_extension(stored_name)
    match = _SUFFIX_RE.match(base)
    return match.group("suffix") if match else None


def build_stored_name(base: str, suffix: str, extension: str) -> str:
    return f"{safe_base(base)}-{suffix}{extension}"


def format_bytes(num_bytes: int) -> str:
    """Render a byte count as a human-readable string (base 1024)."""
    if num_bytes <= 0:
        return "0 B"
    units = ["B", "KB", "MB", "GB", "TB"]
    value = float(num_bytes)
    exponent = 0
    while value >= 1024 and exponent < len(units) - 1:
        value /= 1024
        exponent += 1
    return f"{round(value, 2):g} {units[exponent]}"
