"""Canonical forms for DOIs and ORCID iDs, plus reserved pseudo-identifiers."""

from __future__ import annotations

import re

from scholarsync.models import Identifier, IdentifierKind

DOI_PREFIX_PATTERN = re.compile(r"^(?:https?://(?:dx\.)?doi\.org/|doi:)", flags=re.IGNORECASE)
ORCID_PREFIX_PATTERN = re.compile(r"^https?://(?:www\.)?orcid\.org/", flags=re.IGNORECASE)
ORCID_PATTERN = re.compile(r"\d{4}-\d{4}-\d{4}-\d{3}[\dX]")
WHITESPACE_PATTERN = re.compile(r"\s+")

PSEUDO_PREFIX = "orcid-"
MANUAL_PREFIX = "manual-"
RESERVED_PREFIXES = (PSEUDO_PREFIX, MANUAL_PREFIX)


class InvalidIdentifier(ValueError):
    """Raised when a raw identifier cannot be normalized."""

    def __init__(self, kind: IdentifierKind, raw: str, reason: str) -> None:
        super().__init__(f"Invalid {kind.value.upper()} {raw!r}: {reason}")
        self.kind = kind
        self.raw = raw
        self.reason = reason


def normalize(kind: IdentifierKind, raw: str | None) -> Identifier:
    """Return the canonical identifier or raise :class:`InvalidIdentifier`."""
    if kind is IdentifierKind.DOI:
        return Identifier(kind=kind, value=normalize_doi(raw))
    return Identifier(kind=kind, value=normalize_orcid(raw))


def normalize_doi(raw: str | None) -> str:
    value = WHITESPACE_PATTERN.sub("", raw or "")
    # Stacked prefixes ("doi:https://doi.org/...") are all removed.
    while True:
        stripped = DOI_PREFIX_PATTERN.sub("", value, count=1)
        if stripped == value:
            break
        value = stripped
    if not value:
        raise InvalidIdentifier(IdentifierKind.DOI, raw or "", "empty after stripping prefixes")
    return value


def normalize_orcid(raw: str | None) -> str:
    value = ORCID_PREFIX_PATTERN.sub("", (raw or "").strip())
    value = WHITESPACE_PATTERN.sub("", value).upper()
    if not ORCID_PATTERN.fullmatch(value):
        raise InvalidIdentifier(
            IdentifierKind.ORCID, raw or "", "expected 0000-0000-0000-000X"
        )
    return value


def make_pseudo_identifier(orcid: str, put_code: int | str) -> str:
    """Stand-in identifier for a declared work that has no DOI."""
    return f"{PSEUDO_PREFIX}{orcid}-{put_code}"


def is_reserved_identifier(value: str | None) -> bool:
    """True for synthesized identifiers that must never reach a registry."""
    if not value:
        return False
    return value.strip().lower().startswith(RESERVED_PREFIXES)


def dedup_key(identifier: str) -> str:
    """Case-insensitive comparison key; real DOIs are normalized first."""
    if not is_reserved_identifier(identifier):
        try:
            return normalize_doi(identifier).lower()
        except InvalidIdentifier:
            pass
    return identifier.strip().lower()
