from datetime import date

import pytest

from scholarsync.models import ReconciledPaper
from scholarsync.services.bibliometrics import compute_snapshot, h_index, i10_index, rank


def _papers(*counts: int) -> list[ReconciledPaper]:
    return [
        ReconciledPaper(doi=f"10.1/{i}", title=f"Paper {i}", citation_count=count)
        for i, count in enumerate(counts)
    ]


@pytest.mark.parametrize(
    ("counts", "expected"),
    [([10, 8, 5, 4, 3], 4), ([], 0), ([0, 0, 0], 0), ([3, 100, 1], 2), ([5, 5, 5, 5, 5], 5)],
)
def test_h_index(counts: list[int], expected: int) -> None:
    assert h_index(counts) == expected


def test_i10_index() -> None:
    assert i10_index([12, 10, 9, 50]) == 3


def test_overall_percentile_is_weighted() -> None:
    ranking = rank(h=20, total_citations=1000, total_papers=50, i10=25)
    assert (ranking.h_index, ranking.citations, ranking.publications, ranking.i10) == (10, 10, 10, 10)
    assert ranking.overall == 10


def test_overall_rounds_half_up() -> None:
    # 0.4*50 + 0.3*25 + 0.15*100 + 0.15*100 = 57.5
    ranking = rank(h=6, total_citations=300, total_papers=1, i10=0)
    assert ranking.overall == 58


def test_band_thresholds() -> None:
    assert rank(h=50, total_citations=10000, total_papers=200, i10=100).overall == 1
    low = rank(h=5, total_citations=49, total_papers=9, i10=4)
    assert (low.h_index, low.citations, low.publications, low.i10) == (100, 100, 100, 100)
    assert low.overall == 100


def test_empty_corpus_has_no_overall_percentile() -> None:
    snapshot = compute_snapshot([])
    assert snapshot.h_index == 0
    assert snapshot.total_papers == 0
    assert snapshot.percentiles.overall is None
    assert snapshot.average_citations == 0


def test_snapshot_totals_and_extras() -> None:
    papers = _papers(10, 8, 5, 4, 3, 0)
    papers[0].published_date = date(2015, 6, 1)
    papers[1].published_date = date(2019, 1, 1)
    papers[2].published_date = date(2019, 3, 1)

    snapshot = compute_snapshot(papers, top_n=2)

    assert snapshot.h_index == 4
    assert snapshot.i10_index == 1
    assert snapshot.total_citations == 30
    assert snapshot.total_papers == 6
    assert snapshot.average_citations == 5
    assert snapshot.cited_papers == 5
    assert (snapshot.first_year, snapshot.last_year) == (2015, 2019)
    assert snapshot.publications_by_year == {2015: 1, 2019: 2}
    assert [paper.citation_count for paper in snapshot.top_cited] == [10, 8]
    assert snapshot.percentiles.overall == 100
