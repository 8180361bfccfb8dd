"""Researcher-facing operations that tie the pipeline to the paper store."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date, datetime

import httpx
import structlog

from scholarsync.identifiers import MANUAL_PREFIX, is_reserved_identifier, normalize_doi
from scholarsync.models import (
    BibliometricSnapshot,
    CitationRefreshSummary,
    EnrichmentSummary,
    ImportSummary,
    PaperMetadata,
    ReconciledPaper,
    StoredPaper,
)
from scholarsync.settings import Settings
from scholarsync.utils import slugify, strip_markup
from .batch import guarded, run_batched
from .bibliometrics import compute_snapshot
from .importer import WorksImporter
from .orcid import OrcidWorksClient
from .resolvers import CitationResolver, MetadataResolver
from .sources import CrossrefSource, OpenCitationsSource, SemanticScholarSource
from .storage import LocalPaperStore, PaperNotFound, PaperStore

logger = structlog.get_logger(__name__)


class CitationUnavailable(LookupError):
    """Raised when no citation source reports a count for a paper."""


class MetadataUnavailable(LookupError):
    """Raised when no metadata source knows a DOI."""


class LibraryService:
    """Coordinates imports, refreshes and metrics for one paper store."""

    def __init__(
        self,
        store: PaperStore,
        importer: WorksImporter,
        metadata_resolver: MetadataResolver,
        citation_resolver: CitationResolver,
        settings: Settings,
    ) -> None:
        self._store = store
        self._importer = importer
        self._metadata = metadata_resolver
        self._citations = citation_resolver
        self._settings = settings

    async def import_from_orcid(self, researcher_id: str, orcid_identifier: str) -> ImportSummary:
        corpus = await self._store.list_papers(researcher_id)
        summary = await self._importer.import_works(researcher_id, orcid_identifier, corpus)
        await self._store.insert_many(researcher_id, summary.papers_to_insert)
        return summary

    async def refresh_all_citations(self, researcher_id: str) -> CitationRefreshSummary:
        papers = [
            paper
            for paper in await self._store.list_papers(researcher_id)
            if not is_reserved_identifier(paper.doi)
        ]

        async def refresh(paper: StoredPaper) -> int | None:
            count = await self._citations.resolve_citation_count(paper.doi)
            if count is None:
                return None
            await self._store.update_citations(paper.id, count, datetime.utcnow())
            return count

        outcomes = await run_batched(papers, self._settings.citation_batch_size, guarded(refresh))
        updated = sum(1 for outcome in outcomes if outcome.ok)
        logger.info(
            "citations.refreshed",
            researcher_id=researcher_id,
            updated=updated,
            failed=len(outcomes) - updated,
        )
        return CitationRefreshSummary(updated=updated, failed=len(outcomes) - updated)

    async def refresh_paper_citations(self, paper_id: int, researcher_id: str | None = None) -> int:
        paper = await self._store.get_paper(paper_id)
        if paper is None or (researcher_id is not None and paper.researcher_id != researcher_id):
            raise PaperNotFound(f"Paper {paper_id} not found")
        count = await self._citations.resolve_citation_count(paper.doi)
        if count is None:
            raise CitationUnavailable("Could not fetch citation count for this paper")
        await self._store.update_citations(paper.id, count, datetime.utcnow())
        return count

    async def enrich_missing_metadata(self, researcher_id: str) -> EnrichmentSummary:
        papers = [
            paper
            for paper in await self._store.list_papers(researcher_id)
            if not paper.authors and not is_reserved_identifier(paper.doi)
        ]
        if not papers:
            return EnrichmentSummary()

        async def enrich(paper: StoredPaper) -> PaperMetadata | None:
            metadata = await self._metadata.resolve(paper.doi)
            if metadata is None or not metadata.authors:
                return None
            await self._store.update_metadata(paper.id, metadata)
            return metadata

        outcomes = await run_batched(papers, self._settings.enrichment_batch_size, guarded(enrich))
        enriched = sum(1 for outcome in outcomes if outcome.ok)
        return EnrichmentSummary(enriched=enriched, failed=len(outcomes) - enriched)

    async def lookup_doi(self, raw_doi: str) -> ReconciledPaper:
        doi = normalize_doi(raw_doi)
        metadata = await self._metadata.resolve(doi)
        if metadata is None:
            raise MetadataUnavailable("DOI not found. Please check and try again.")
        return ReconciledPaper(
            doi=doi,
            title=metadata.title or "Untitled",
            abstract=metadata.abstract,
            authors=metadata.authors,
            journal=metadata.journal,
            published_date=metadata.published_date,
        )

    async def add_paper(
        self,
        researcher_id: str,
        *,
        title: str,
        doi: str | None = None,
        abstract: str | None = None,
        journal: str | None = None,
        published_date: date | None = None,
        authors: Sequence[str] = (),
    ) -> StoredPaper:
        """Add a single paper; raises ``DuplicatePaperError`` if already present."""
        title = strip_markup(title) or ""
        if not title:
            raise ValueError("Title is required")
        identifier = normalize_doi(doi) if doi and doi.strip() else f"{MANUAL_PREFIX}{slugify(title)}"
        paper = ReconciledPaper(
            doi=identifier,
            title=title,
            abstract=(abstract or "").strip() or None,
            journal=(journal or "").strip() or None,
            published_date=published_date,
            authors=[name.strip() for name in authors if name and name.strip()],
        )
        return await self._store.add_paper(researcher_id, paper)

    async def remove_paper(self, researcher_id: str, paper_id: int) -> None:
        if not await self._store.delete_paper(researcher_id, paper_id):
            raise PaperNotFound(f"Paper {paper_id} not found")
        logger.info("library.paper_removed", researcher_id=researcher_id, paper_id=paper_id)

    async def snapshot(self, researcher_id: str) -> BibliometricSnapshot:
        return compute_snapshot(await self._store.list_papers(researcher_id))


def build_library(
    client: httpx.AsyncClient,
    settings: Settings,
    store: PaperStore | None = None,
) -> LibraryService:
    """Wire the registry adapters into resolver chains and a service."""
    crossref = CrossrefSource(client=client, settings=settings)
    semantic_scholar = SemanticScholarSource(client=client, settings=settings)
    opencitations = OpenCitationsSource(client=client, settings=settings)
    metadata_resolver = MetadataResolver([crossref, semantic_scholar])
    citation_resolver = CitationResolver([semantic_scholar, opencitations])
    importer = WorksImporter(
        OrcidWorksClient(client=client, settings=settings),
        metadata_resolver,
        batch_size=settings.import_batch_size,
    )
    return LibraryService(
        store=store or LocalPaperStore(settings),
        importer=importer,
        metadata_resolver=metadata_resolver,
        citation_resolver=citation_resolver,
        settings=settings,
    )
