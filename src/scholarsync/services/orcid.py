"""Client for the ORCID public API's declared-works listing."""

from __future__ import annotations

from datetime import date
from typing import Any, Protocol

import httpx
import structlog

from scholarsync.models import ExternalWorkSummary, WorkGroup
from scholarsync.settings import Settings
from scholarsync.utils import strip_markup
from .sources import parse_date_parts

logger = structlog.get_logger(__name__)


class WorksSource(Protocol):
    """A registry that lists the works declared under an ORCID iD."""

    name: str

    async def fetch_works(self, orcid: str) -> list[WorkGroup]:
        ...


class WorksRegistryError(RuntimeError):
    """Raised when the works registry cannot be reached or answers garbage."""


class WorksNotFound(WorksRegistryError):
    """Raised when the registry has no record for the identifier."""


class OrcidWorksClient:
    """Lists the works a researcher has declared on their ORCID record."""

    name = "orcid"

    def __init__(self, client: httpx.AsyncClient, settings: Settings) -> None:
        self._client = client
        self._settings = settings

    async def fetch_works(self, orcid: str) -> list[WorkGroup]:
        url = f"{self._settings.orcid_base_url}/{orcid}/works"
        logger.info("orcid.fetch", orcid=orcid)
        try:
            response = await self._client.get(
                url,
                headers={"User-Agent": self._settings.user_agent, "Accept": "application/json"},
                timeout=self._settings.request_timeout,
            )
            if response.status_code == 404:
                raise WorksNotFound(f"ORCID iD {orcid} not found")
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as exc:
            logger.warning("orcid.error", orcid=orcid, error=str(exc))
            raise WorksRegistryError(str(exc)) from exc
        except ValueError as exc:
            logger.warning("orcid.bad_payload", orcid=orcid, error=str(exc))
            raise WorksRegistryError("ORCID returned an unreadable response") from exc
        if not isinstance(payload, dict):
            raise WorksRegistryError("ORCID returned an unexpected response shape")
        try:
            return [
                self._parse_group(group)
                for group in payload.get("group") or []
                if isinstance(group, dict)
            ]
        except (AttributeError, TypeError, ValueError) as exc:
            logger.warning("orcid.bad_payload", orcid=orcid, error=str(exc))
            raise WorksRegistryError("ORCID returned malformed work summaries") from exc

    def _parse_group(self, group: dict) -> WorkGroup:
        summaries = []
        for entry in group.get("work-summary") or []:
            if not isinstance(entry, dict) or entry.get("put-code") in (None, ""):
                # Without a put-code the work has no stable pseudo-identifier.
                logger.debug("orcid.summary_without_put_code")
                continue
            summaries.append(self._parse_summary(entry))
        return WorkGroup(summaries=summaries)

    def _parse_summary(self, entry: dict) -> ExternalWorkSummary:
        title = _value(_nested(entry, "title", "title"))
        return ExternalWorkSummary(
            put_code=int(entry["put-code"]),
            title=strip_markup(title),
            doi=self._extract_doi(entry),
            journal=_value(entry.get("journal-title")),
            published_date=self._parse_date(entry.get("publication-date")),
        )

    def _extract_doi(self, entry: dict) -> str | None:
        external_ids = _nested(entry, "external-ids", "external-id") or []
        for ext in external_ids:
            if not isinstance(ext, dict):
                continue
            if (ext.get("external-id-type") or "").lower() == "doi" and ext.get("external-id-value"):
                return str(ext["external-id-value"]).strip()
        return None

    def _parse_date(self, raw: Any) -> date | None:
        if not isinstance(raw, dict):
            return None
        return parse_date_parts(
            [_value(raw.get("year")), _value(raw.get("month")), _value(raw.get("day"))]
        )


def _nested(payload: dict, *keys: str) -> Any:
    current: Any = payload
    for key in keys:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def _value(node: Any) -> str | None:
    if isinstance(node, dict):
        value = node.get("value")
        return str(value) if value not in (None, "") else None
    return None
