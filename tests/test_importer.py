from datetime import date

import pytest

from scholarsync.models import ExternalWorkSummary, PaperMetadata, ReconciledPaper, WorkGroup
from scholarsync.services.importer import ImportErrorCode, ImportFailure, WorksImporter
from scholarsync.services.orcid import WorksNotFound, WorksRegistryError

ORCID = "0000-0002-1825-0097"


class StubWorks:
    name = "stub-orcid"

    def __init__(self, groups: list[WorkGroup] | None = None, error: Exception | None = None) -> None:
        self._groups = groups or []
        self._error = error
        self.calls: list[str] = []

    async def fetch_works(self, orcid: str) -> list[WorkGroup]:
        self.calls.append(orcid)
        if self._error:
            raise self._error
        return self._groups


class StubResolver:
    def __init__(self, results: dict[str, PaperMetadata] | None = None, fail: set[str] | None = None) -> None:
        self._results = results or {}
        self._fail = fail or set()
        self.calls: list[str] = []

    async def resolve(self, doi: str) -> PaperMetadata | None:
        self.calls.append(doi)
        if doi in self._fail:
            raise RuntimeError("upstream blew up")
        return self._results.get(doi)


def _group(put_code: int, title: str | None, doi: str | None = None, **extra) -> WorkGroup:
    return WorkGroup(summaries=[ExternalWorkSummary(put_code=put_code, title=title, doi=doi, **extra)])


@pytest.mark.asyncio
async def test_duplicate_dois_within_response_insert_once() -> None:
    works = StubWorks([_group(1, "First", "10.1000/ABC"), _group(2, "Second", "https://doi.org/10.1000/abc")])
    importer = WorksImporter(works, StubResolver())

    summary = await importer.import_works("r1", ORCID, [])

    assert summary.imported == 1
    assert summary.skipped == 1
    assert summary.total == 2
    assert [paper.doi for paper in summary.papers_to_insert] == ["10.1000/ABC"]


@pytest.mark.asyncio
async def test_existing_corpus_doi_is_skipped() -> None:
    works = StubWorks([_group(1, "Known", "10.1000/abc")])
    existing = [ReconciledPaper(doi="10.1000/ABC", title="Already here")]
    resolver = StubResolver()

    summary = await WorksImporter(works, resolver).import_works("r1", ORCID, existing)

    assert summary.imported == 0
    assert summary.skipped == 1
    assert summary.papers_to_insert == []
    assert resolver.calls == []


@pytest.mark.asyncio
async def test_work_without_doi_gets_pseudo_identifier_and_no_lookup() -> None:
    works = StubWorks(
        [_group(77, "Conference talk", journal="Proc. Talks", published_date=date(2018, 3, 1))]
    )
    resolver = StubResolver()

    summary = await WorksImporter(works, resolver).import_works("r1", f"https://orcid.org/{ORCID}", [])

    paper = summary.papers_to_insert[0]
    assert paper.doi == f"orcid-{ORCID}-77"
    assert paper.journal == "Proc. Talks"
    assert paper.published_date == date(2018, 3, 1)
    assert resolver.calls == []


@pytest.mark.asyncio
async def test_pseudo_identifier_deduplicates_against_corpus() -> None:
    works = StubWorks([_group(77, "Conference talk")])
    existing = [ReconciledPaper(doi=f"orcid-{ORCID}-77", title="Conference talk")]

    summary = await WorksImporter(works, StubResolver()).import_works("r1", ORCID, existing)

    assert summary.imported == 0
    assert summary.skipped == 1


@pytest.mark.asyncio
async def test_untitled_work_is_dropped_but_counted_in_total() -> None:
    works = StubWorks([_group(1, None, "10.1/untitled"), _group(2, "Titled", "10.1/titled")])

    summary = await WorksImporter(works, StubResolver()).import_works("r1", ORCID, [])

    assert summary.total == 2
    assert summary.imported == 1
    assert summary.skipped == 0


@pytest.mark.asyncio
async def test_enriched_metadata_overrides_registry_fields() -> None:
    works = StubWorks(
        [
            _group(1, "ORCID title", "10.1/rich", journal="ORCID journal"),
            _group(2, "No authors", "10.1/thin"),
            _group(3, "Unknown", "10.1/unknown"),
        ]
    )
    resolver = StubResolver(
        {
            "10.1/rich": PaperMetadata(
                title="Crossref title",
                abstract="Abstract",
                authors=["Ada Lovelace"],
                journal="Crossref journal",
                published_date=date(2020, 1, 1),
            ),
            "10.1/thin": PaperMetadata(title="Registry title"),
        }
    )

    summary = await WorksImporter(works, resolver, batch_size=2).import_works("r1", ORCID, [])

    rich, thin, unknown = summary.papers_to_insert
    assert summary.enriched == 1
    assert rich.title == "Crossref title"
    assert rich.authors == ["Ada Lovelace"]
    assert rich.journal == "Crossref journal"
    assert rich.published_date == date(2020, 1, 1)
    assert thin.title == "Registry title"
    assert thin.authors == []
    assert unknown.title == "Unknown"
    assert sorted(resolver.calls) == ["10.1/rich", "10.1/thin", "10.1/unknown"]


@pytest.mark.asyncio
async def test_resolver_failure_does_not_abort_import() -> None:
    works = StubWorks([_group(1, "Boom", "10.1/boom"), _group(2, "Fine", "10.1/fine")])
    resolver = StubResolver({"10.1/fine": PaperMetadata(authors=["X"])}, fail={"10.1/boom"})

    summary = await WorksImporter(works, resolver).import_works("r1", ORCID, [])

    assert summary.imported == 2
    assert summary.enriched == 1
    assert summary.papers_to_insert[0].title == "Boom"


@pytest.mark.asyncio
async def test_invalid_orcid_fails_before_network() -> None:
    works = StubWorks([_group(1, "x", "10.1/x")])
    with pytest.raises(ImportFailure) as excinfo:
        await WorksImporter(works, StubResolver()).import_works("r1", "123-456", [])
    assert excinfo.value.code is ImportErrorCode.INVALID_IDENTIFIER
    assert works.calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("works", "code"),
    [
        (StubWorks([]), ImportErrorCode.NO_WORKS),
        (StubWorks(error=WorksNotFound("missing")), ImportErrorCode.NOT_FOUND),
        (StubWorks(error=WorksRegistryError("timeout")), ImportErrorCode.TRANSPORT_ERROR),
    ],
)
async def test_registry_failures_are_typed(works: StubWorks, code: ImportErrorCode) -> None:
    with pytest.raises(ImportFailure) as excinfo:
        await WorksImporter(works, StubResolver()).import_works("r1", ORCID, [])
    assert excinfo.value.code is code
