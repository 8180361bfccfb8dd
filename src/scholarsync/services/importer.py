"""Import a researcher's declared ORCID works into candidate paper records."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

import structlog

from scholarsync.identifiers import (
    InvalidIdentifier,
    dedup_key,
    make_pseudo_identifier,
    normalize_doi,
    normalize_orcid,
)
from scholarsync.models import (
    ExternalWorkSummary,
    ImportSummary,
    PaperMetadata,
    ReconciledPaper,
    WorkGroup,
)
from .batch import guarded, run_batched
from .orcid import WorksNotFound, WorksRegistryError, WorksSource
from .resolvers import MetadataResolver

logger = structlog.get_logger(__name__)


class ImportErrorCode(str, Enum):
    INVALID_IDENTIFIER = "INVALID_IDENTIFIER"
    NOT_FOUND = "NOT_FOUND"
    NO_WORKS = "NO_WORKS"
    TRANSPORT_ERROR = "TRANSPORT_ERROR"


class ImportFailure(RuntimeError):
    """Raised when a works import cannot proceed at all."""

    def __init__(self, code: ImportErrorCode, message: str) -> None:
        super().__init__(message)
        self.code = code


@dataclass(slots=True)
class _Candidate:
    summary: ExternalWorkSummary
    identifier: str
    has_doi: bool


class WorksImporter:
    """Turns an ORCID works listing into deduplicated, enriched papers.

    Identifier collection and deduplication run sequentially against a
    single-owner set; only metadata resolution for surviving works is
    fanned out through the batch scheduler.
    """

    def __init__(
        self,
        works_client: WorksSource,
        resolver: MetadataResolver,
        *,
        batch_size: int = 5,
    ) -> None:
        self._works_client = works_client
        self._resolver = resolver
        self._batch_size = batch_size

    async def import_works(
        self,
        researcher_id: str,
        orcid_identifier: str,
        existing_corpus: Iterable[ReconciledPaper],
    ) -> ImportSummary:
        try:
            orcid = normalize_orcid(orcid_identifier)
        except InvalidIdentifier as exc:
            raise ImportFailure(
                ImportErrorCode.INVALID_IDENTIFIER,
                "Invalid ORCID iD format. Expected: 0000-0000-0000-000X",
            ) from exc

        groups = await self._fetch_groups(orcid)
        seen = {dedup_key(paper.doi) for paper in existing_corpus}
        candidates, skipped = self._collect(orcid, groups, seen)

        resolvable = [candidate.identifier for candidate in candidates if candidate.has_doi]
        outcomes = await run_batched(resolvable, self._batch_size, guarded(self._resolver.resolve))
        resolved: dict[str, PaperMetadata] = {
            doi: outcome.value
            for doi, outcome in zip(resolvable, outcomes)
            if outcome.ok and outcome.value is not None
        }

        papers: list[ReconciledPaper] = []
        enriched = 0
        for candidate in candidates:
            metadata = resolved.get(candidate.identifier)
            if metadata is not None and metadata.authors:
                enriched += 1
            papers.append(build_paper(candidate.summary, candidate.identifier, metadata))

        logger.info(
            "import.complete",
            researcher_id=researcher_id,
            orcid=orcid,
            imported=len(papers),
            skipped=skipped,
            enriched=enriched,
            total=len(groups),
        )
        return ImportSummary(
            papers_to_insert=papers,
            imported=len(papers),
            skipped=skipped,
            enriched=enriched,
            total=len(groups),
        )

    async def _fetch_groups(self, orcid: str) -> list[WorkGroup]:
        try:
            groups = await self._works_client.fetch_works(orcid)
        except WorksNotFound as exc:
            raise ImportFailure(
                ImportErrorCode.NOT_FOUND, "ORCID iD not found. Please check and try again."
            ) from exc
        except WorksRegistryError as exc:
            raise ImportFailure(
                ImportErrorCode.TRANSPORT_ERROR, "Failed to fetch from ORCID. Please try again."
            ) from exc
        if not groups:
            raise ImportFailure(ImportErrorCode.NO_WORKS, "No publications found for this ORCID iD.")
        return groups

    def _collect(
        self, orcid: str, groups: list[WorkGroup], seen: set[str]
    ) -> tuple[list[_Candidate], int]:
        candidates: list[_Candidate] = []
        skipped = 0
        for group in groups:
            summary = group.primary
            if summary is None or not summary.title:
                continue
            doi = _clean_doi(summary.doi)
            identifier = doi or make_pseudo_identifier(orcid, summary.put_code)
            key = dedup_key(identifier)
            if key in seen:
                logger.debug("import.skip", identifier=identifier)
                skipped += 1
                continue
            seen.add(key)
            candidates.append(_Candidate(summary=summary, identifier=identifier, has_doi=doi is not None))
        return candidates, skipped


def build_paper(
    summary: ExternalWorkSummary, identifier: str, metadata: PaperMetadata | None
) -> ReconciledPaper:
    """Prefer resolved metadata over the registry's own fields."""
    metadata = metadata or PaperMetadata()
    return ReconciledPaper(
        doi=identifier,
        title=metadata.title or summary.title or "Untitled",
        abstract=metadata.abstract,
        authors=list(metadata.authors),
        journal=metadata.journal or summary.journal,
        published_date=metadata.published_date or summary.published_date,
    )


def _clean_doi(raw: str | None) -> str | None:
    if not raw:
        return None
    try:
        return normalize_doi(raw)
    except InvalidIdentifier:
        return None
