"""Utility helpers for text sanitization and filesystem-safe names."""

from __future__ import annotations

import re
import unicodedata

MARKUP_PATTERN = re.compile(r"<[^>]*>")
SLUG_PATTERN = re.compile(r"[^a-z0-9]+")


def strip_markup(value: str | None) -> str | None:
    """Remove HTML/XML tags; blank or non-string values collapse to ``None``."""
    if not isinstance(value, str):
        return None
    cleaned = MARKUP_PATTERN.sub("", value).strip()
    return cleaned or None


def slugify(value: str, max_length: int = 80) -> str:
    """Create a filesystem-safe slug."""
    value = unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode()
    value = value.lower()
    value = SLUG_PATTERN.sub("-", value).strip("-")
    if not value:
        value = "item"
    return value[:max_length]
