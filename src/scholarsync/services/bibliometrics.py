"""Pure bibliometric indices and percentile bands over a paper set."""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Sequence

from scholarsync.models import BibliometricSnapshot, PercentileRanking, ReconciledPaper

# (minimum value, percentile) steps, most exceptional first.
H_INDEX_BANDS = ((50, 1), (30, 5), (20, 10), (12, 25), (6, 50))
CITATION_BANDS = ((10000, 1), (3000, 5), (1000, 10), (300, 25), (50, 50))
PUBLICATION_BANDS = ((200, 1), (100, 5), (50, 10), (25, 25), (10, 50))
I10_BANDS = ((100, 1), (50, 5), (25, 10), (10, 25), (5, 50))
FLOOR_PERCENTILE = 100

# Weights in percent, so the overall score rounds half-up without float drift.
WEIGHTS = {"h_index": 40, "citations": 30, "publications": 15, "i10": 15}


def h_index(counts: Iterable[int]) -> int:
    ordered = sorted(counts, reverse=True)
    h = 0
    for position, count in enumerate(ordered, start=1):
        if count < position:
            break
        h = position
    return h


def i10_index(counts: Iterable[int]) -> int:
    return sum(1 for count in counts if count >= 10)


def band(value: int, bands: Sequence[tuple[int, int]]) -> int:
    """Map ``value`` through a stepped threshold table."""
    for minimum, percentile in bands:
        if value >= minimum:
            return percentile
    return FLOOR_PERCENTILE


def rank(h: int, total_citations: int, total_papers: int, i10: int) -> PercentileRanking:
    h_pct = band(h, H_INDEX_BANDS)
    citation_pct = band(total_citations, CITATION_BANDS)
    publication_pct = band(total_papers, PUBLICATION_BANDS)
    i10_pct = band(i10, I10_BANDS)
    overall = None
    if total_papers > 0:
        weighted = (
            WEIGHTS["h_index"] * h_pct
            + WEIGHTS["citations"] * citation_pct
            + WEIGHTS["publications"] * publication_pct
            + WEIGHTS["i10"] * i10_pct
        )
        overall = (weighted + 50) // 100
    return PercentileRanking(
        h_index=h_pct,
        citations=citation_pct,
        publications=publication_pct,
        i10=i10_pct,
        overall=overall,
    )


def compute_snapshot(papers: Sequence[ReconciledPaper], *, top_n: int = 5) -> BibliometricSnapshot:
    """Derive a fresh snapshot; the input papers are never modified."""
    counts = [max(paper.citation_count or 0, 0) for paper in papers]
    total_citations = sum(counts)
    total_papers = len(papers)
    h = h_index(counts)
    i10 = i10_index(counts)

    years = [paper.published_date.year for paper in papers if paper.published_date]
    by_year = Counter(years)
    top_cited = sorted(papers, key=lambda paper: paper.citation_count or 0, reverse=True)[:top_n]

    return BibliometricSnapshot(
        h_index=h,
        i10_index=i10,
        total_citations=total_citations,
        total_papers=total_papers,
        percentiles=rank(h, total_citations, total_papers, i10),
        average_citations=round(total_citations / total_papers) if total_papers else 0,
        cited_papers=sum(1 for count in counts if count > 0),
        first_year=min(years) if years else None,
        last_year=max(years) if years else None,
        publications_by_year=dict(sorted(by_year.items())),
        top_cited=[ReconciledPaper.model_validate(paper.model_dump()) for paper in top_cited],
    )
