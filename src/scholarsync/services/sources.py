"""Adapters that turn registry responses into internal metadata records.

Every public fetch method returns ``None`` (Absent) for unknown identifiers,
reserved pseudo-identifiers and transport failures; nothing here raises.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from typing import Any, Protocol
from urllib.parse import quote

import httpx
import structlog

from scholarsync.identifiers import InvalidIdentifier, is_reserved_identifier, normalize_doi
from scholarsync.models import PaperMetadata
from scholarsync.settings import Settings
from scholarsync.utils import strip_markup

logger = structlog.get_logger(__name__)

COLLABORATION_THRESHOLD = 50
FLAT_AUTHOR_THRESHOLD = 10
VISIBLE_AUTHORS = 5

# Raised while shaping a decoded payload whose fields have unexpected types.
PAYLOAD_ERRORS = (AttributeError, IndexError, KeyError, TypeError, ValueError)


class MetadataSource(Protocol):
    """A registry able to describe a work by DOI."""

    name: str

    async def fetch_metadata(self, doi: str) -> PaperMetadata | None:
        ...


class CitationSource(Protocol):
    """A registry able to report how often a DOI is cited."""

    name: str

    async def fetch_citation_count(self, doi: str) -> int | None:
        ...


class RegistrySource:
    """Shared HTTP plumbing for the registry adapters."""

    name = "registry"

    def __init__(self, client: httpx.AsyncClient, settings: Settings) -> None:
        self._client = client
        self._settings = settings

    def _clean(self, doi: str) -> str | None:
        if is_reserved_identifier(doi):
            logger.debug("source.reserved_identifier", source=self.name, doi=doi)
            return None
        try:
            return normalize_doi(doi)
        except InvalidIdentifier:
            logger.debug("source.invalid_identifier", source=self.name, doi=doi)
            return None

    async def _get_json(self, url: str, params: dict[str, Any] | None = None) -> Any | None:
        """GET ``url``; ``None`` on 404 or any transport/decoding failure."""
        try:
            response = await self._client.get(
                url,
                params=params,
                headers={"User-Agent": self._settings.user_agent, "Accept": "application/json"},
                timeout=self._settings.request_timeout,
            )
            if response.status_code == 404:
                logger.info("source.not_found", source=self.name, url=url)
                return None
            response.raise_for_status()
            return response.json()
        except httpx.HTTPError as exc:
            logger.warning("source.error", source=self.name, error=str(exc))
            return None
        except ValueError as exc:
            logger.warning("source.bad_payload", source=self.name, error=str(exc))
            return None


class CrossrefSource(RegistrySource):
    """Primary metadata registry (Crossref Works API)."""

    name = "crossref"

    _DATE_FIELDS = ("published", "published-print", "published-online", "issued")

    async def fetch_metadata(self, doi: str) -> PaperMetadata | None:
        clean = self._clean(doi)
        if clean is None:
            return None
        payload = await self._get_json(f"{self._settings.crossref_base_url}/{quote(clean)}")
        if not isinstance(payload, dict):
            return None
        message = payload.get("message", payload)
        if not isinstance(message, dict):
            return None
        try:
            return self._parse_metadata(message)
        except PAYLOAD_ERRORS as exc:
            logger.warning("source.bad_payload", source=self.name, doi=clean, error=str(exc))
            return None

    def _parse_metadata(self, message: dict) -> PaperMetadata:
        return PaperMetadata(
            title=strip_markup(_first(message.get("title"))),
            abstract=strip_markup(message.get("abstract")),
            authors=format_author_list(message.get("author") or []),
            journal=strip_markup(_first(message.get("container-title"))),
            published_date=self._published_date(message),
        )

    def _published_date(self, message: dict) -> date | None:
        for field in self._DATE_FIELDS:
            node = message.get(field)
            parts = node.get("date-parts") if isinstance(node, dict) else None
            parsed = parse_date_parts(parts[0]) if isinstance(parts, list) and parts else None
            if parsed is not None:
                return parsed
        return None


class SemanticScholarSource(RegistrySource):
    """Secondary metadata registry and first citation source."""

    name = "semantic_scholar"

    async def fetch_metadata(self, doi: str) -> PaperMetadata | None:
        clean = self._clean(doi)
        if clean is None:
            return None
        payload = await self._get_json(
            self._paper_url(clean),
            params={"fields": "title,abstract,authors,venue,year,publicationDate"},
        )
        if not isinstance(payload, dict):
            return None
        try:
            return self._parse_metadata(payload)
        except PAYLOAD_ERRORS as exc:
            logger.warning("source.bad_payload", source=self.name, doi=clean, error=str(exc))
            return None

    def _parse_metadata(self, payload: dict) -> PaperMetadata:
        names = [
            author.get("name") or ""
            for author in payload.get("authors") or []
            if isinstance(author, dict)
        ]
        return PaperMetadata(
            title=strip_markup(payload.get("title")),
            abstract=strip_markup(payload.get("abstract")),
            authors=collapse_flat_authors(names),
            journal=strip_markup(payload.get("venue")),
            published_date=self._published_date(payload),
        )

    async def fetch_citation_count(self, doi: str) -> int | None:
        clean = self._clean(doi)
        if clean is None:
            return None
        payload = await self._get_json(self._paper_url(clean), params={"fields": "citationCount"})
        if not isinstance(payload, dict):
            return None
        return _as_count(payload.get("citationCount"))

    def _paper_url(self, doi: str) -> str:
        return f"{self._settings.semantic_scholar_base_url}/DOI:{quote(doi)}"

    def _published_date(self, payload: dict) -> date | None:
        raw = payload.get("publicationDate")
        if raw:
            try:
                return date.fromisoformat(raw)
            except (TypeError, ValueError):
                pass
        return parse_date_parts([payload.get("year")])


class OpenCitationsSource(RegistrySource):
    """Citation-only fallback (OpenCitations COCI)."""

    name = "opencitations"

    async def fetch_citation_count(self, doi: str) -> int | None:
        clean = self._clean(doi)
        if clean is None:
            return None
        payload = await self._get_json(f"{self._settings.opencitations_base_url}/{quote(clean)}")
        if not isinstance(payload, list) or not payload:
            return None
        first = payload[0]
        if not isinstance(first, dict):
            return None
        return _as_count(first.get("count"))


def format_author(entry: dict) -> str:
    """Render one structured author; collaborations keep their collective name."""
    if entry.get("name"):
        return str(entry["name"]).strip()
    given = (entry.get("given") or "").strip()
    family = (entry.get("family") or "").strip()
    return " ".join(part for part in (given, family) if part)


def format_author_list(entries: Sequence[dict]) -> list[str]:
    """Shape a structured author list, collapsing collaboration-scale lists."""
    entries = [entry for entry in entries if isinstance(entry, dict)]
    if len(entries) > COLLABORATION_THRESHOLD:
        collaboration = next((entry["name"] for entry in entries if entry.get("name")), None)
        if collaboration:
            return [str(collaboration).strip()]
        visible = [name for name in map(format_author, entries[:VISIBLE_AUTHORS]) if name]
        return visible + [f"+ {len(entries) - VISIBLE_AUTHORS} more authors"]
    return [name for name in map(format_author, entries) if name]


def collapse_flat_authors(names: Sequence[str]) -> list[str]:
    """Shape a flat name list; long lists keep the first few names."""
    names = [name.strip() for name in names if name and name.strip()]
    if len(names) > FLAT_AUTHOR_THRESHOLD:
        return names[:VISIBLE_AUTHORS] + [f"+ {len(names) - VISIBLE_AUTHORS} more authors"]
    return names


def parse_date_parts(parts: Sequence[Any]) -> date | None:
    """Build a date from ``[year, month?, day?]``; month/day default to 1."""
    if not isinstance(parts, (list, tuple)) or not parts or parts[0] in (None, ""):
        return None
    try:
        year = int(parts[0])
        month = int(parts[1]) if len(parts) > 1 and parts[1] not in (None, "") else 1
        day = int(parts[2]) if len(parts) > 2 and parts[2] not in (None, "") else 1
        return date(year, month, day)
    except (TypeError, ValueError):
        return None


def _first(value: Any) -> Any:
    """Crossref wraps titles in lists; take the first entry."""
    if isinstance(value, list):
        return value[0] if value else None
    return value


def _as_count(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value >= 0 else None
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None
