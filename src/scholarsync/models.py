"""Core data models used throughout the ScholarSync pipeline."""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class IdentifierKind(str, Enum):
    DOI = "doi"
    ORCID = "orcid"


class Identifier(BaseModel):
    """A normalized DOI or ORCID iD."""

    model_config = ConfigDict(frozen=True)

    kind: IdentifierKind
    value: str

    @property
    def key(self) -> str:
        """Case-insensitive deduplication key."""
        return self.value.lower()

    def __str__(self) -> str:
        return self.value


class ExternalWorkSummary(BaseModel):
    """A declared work as listed by the works registry."""

    put_code: int
    title: str | None = None
    doi: str | None = None
    journal: str | None = None
    published_date: date | None = None


class WorkGroup(BaseModel):
    """Registry-side grouping of duplicate declarations of one work."""

    summaries: list[ExternalWorkSummary] = Field(default_factory=list)

    @property
    def primary(self) -> ExternalWorkSummary | None:
        return self.summaries[0] if self.summaries else None


class PaperMetadata(BaseModel):
    """Metadata reported by a single source; every field is optional."""

    title: str | None = None
    abstract: str | None = None
    authors: list[str] = Field(default_factory=list)
    journal: str | None = None
    published_date: date | None = None


class ReconciledPaper(BaseModel):
    """Merged record produced by the pipeline, ready to upsert."""

    doi: str
    title: str
    abstract: str | None = None
    authors: list[str] = Field(default_factory=list)
    journal: str | None = None
    published_date: date | None = None
    citation_count: int = Field(default=0, ge=0)
    citations_updated_at: datetime | None = None


class StoredPaper(ReconciledPaper):
    """A paper as held by the store for one researcher."""

    id: int
    researcher_id: str
    stored_at: datetime = Field(default_factory=datetime.utcnow)


class PercentileRanking(BaseModel):
    """Percentile-of-field bands; smaller means more exceptional."""

    h_index: int
    citations: int
    publications: int
    i10: int
    overall: int | None = None


class BibliometricSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    h_index: int
    i10_index: int
    total_citations: int
    total_papers: int
    percentiles: PercentileRanking
    average_citations: int = 0
    cited_papers: int = 0
    first_year: int | None = None
    last_year: int | None = None
    publications_by_year: dict[int, int] = Field(default_factory=dict)
    top_cited: list[ReconciledPaper] = Field(default_factory=list)


class ImportSummary(BaseModel):
    """Outcome of a works import; ``papers_to_insert`` is not yet persisted."""

    papers_to_insert: list[ReconciledPaper] = Field(default_factory=list)
    imported: int = 0
    skipped: int = 0
    enriched: int = 0
    total: int = 0


class CitationRefreshSummary(BaseModel):
    updated: int = 0
    failed: int = 0


class EnrichmentSummary(BaseModel):
    enriched: int = 0
    failed: int = 0
