from contextlib import asynccontextmanager

from fastapi.testclient import TestClient

from scholarsync.models import PaperMetadata
from scholarsync.services import (
    CitationResolver,
    DuplicatePaperError,
    LibraryService,
    LocalPaperStore,
    MetadataResolver,
    WorksImporter,
)
from scholarsync.settings import Settings
from scholarsync.web.app import create_app


class _Sources:
    name = "stub"

    async def fetch_metadata(self, doi: str) -> PaperMetadata | None:
        if doi == "10.1/known":
            return PaperMetadata(title="Known paper", authors=["Ada Lovelace"])
        return None

    async def fetch_citation_count(self, doi: str) -> int | None:
        return 42 if doi == "10.1/known" else None

    async def fetch_works(self, orcid: str):
        return []


def _stub_factory(settings: Settings):
    sources = _Sources()
    metadata = MetadataResolver([sources])
    service = LibraryService(
        store=LocalPaperStore(settings),
        importer=WorksImporter(sources, metadata),
        metadata_resolver=metadata,
        citation_resolver=CitationResolver([sources]),
        settings=settings,
    )

    @asynccontextmanager
    async def factory():
        yield service

    return factory


def test_invalid_orcid_is_rejected(tmp_path) -> None:
    client = TestClient(create_app(Settings(data_dir=tmp_path)))
    response = client.post("/researchers/r1/import", json={"orcid": "not-an-orcid"})
    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "INVALID_IDENTIFIER"


def test_empty_works_list_is_unprocessable(tmp_path) -> None:
    settings = Settings(data_dir=tmp_path)
    client = TestClient(create_app(settings, _stub_factory(settings)))
    response = client.post("/researchers/r1/import", json={"orcid": "0000-0002-1825-0097"})
    assert response.status_code == 422
    assert response.json()["detail"]["code"] == "NO_WORKS"


def test_metrics_for_empty_library(tmp_path) -> None:
    client = TestClient(create_app(Settings(data_dir=tmp_path)))
    response = client.get("/researchers/r1/metrics")
    assert response.status_code == 200
    body = response.json()
    assert body["total_papers"] == 0
    assert body["percentiles"]["overall"] is None


def test_add_paper_and_duplicate(tmp_path) -> None:
    client = TestClient(create_app(Settings(data_dir=tmp_path)))
    payload = {"title": "Field Notes", "doi": "https://doi.org/10.1/Field", "authors": ["Ada"]}

    created = client.post("/researchers/r1/papers", json=payload)
    duplicate = client.post("/researchers/r1/papers", json={**payload, "doi": "10.1/field"})
    blank = client.post("/researchers/r1/papers", json={"title": "   "})

    assert created.status_code == 201
    assert created.json()["doi"] == "10.1/Field"
    assert duplicate.status_code == 409
    assert blank.status_code == 422


def test_paper_refresh_and_lookup(tmp_path) -> None:
    settings = Settings(data_dir=tmp_path)
    client = TestClient(create_app(settings, _stub_factory(settings)))
    known = client.post("/researchers/r1/papers", json={"title": "Known", "doi": "10.1/known"}).json()
    unknown = client.post("/researchers/r1/papers", json={"title": "Other", "doi": "10.1/other"}).json()

    assert client.post(f"/papers/{known['id']}/citations/refresh").json() == {"citation_count": 42}
    assert client.post(f"/papers/{unknown['id']}/citations/refresh").status_code == 502
    assert client.post("/papers/9999/citations/refresh").status_code == 404

    summary = client.post("/researchers/r1/citations/refresh").json()
    assert summary == {"updated": 1, "failed": 1}

    lookup = client.get("/lookup", params={"doi": "doi:10.1/known"})
    assert lookup.status_code == 200
    assert lookup.json()["title"] == "Known paper"
    assert client.get("/lookup", params={"doi": "10.1/missing"}).status_code == 404
    assert client.get("/lookup", params={"doi": "   "}).status_code == 400


def test_remove_paper(tmp_path) -> None:
    client = TestClient(create_app(Settings(data_dir=tmp_path)))
    paper = client.post("/researchers/r1/papers", json={"title": "Short lived"}).json()

    assert client.delete(f"/researchers/r2/papers/{paper['id']}").status_code == 404
    assert client.delete(f"/researchers/r1/papers/{paper['id']}").status_code == 204
    assert client.get("/researchers/r1/metrics").json()["total_papers"] == 0
    assert client.delete(f"/researchers/r1/papers/{paper['id']}").status_code == 404


class _RacingImport:
    async def import_from_orcid(self, researcher_id: str, orcid: str):
        raise DuplicatePaperError("batch")


def test_import_conflict_maps_to_409(tmp_path) -> None:
    @asynccontextmanager
    async def factory():
        yield _RacingImport()

    client = TestClient(create_app(Settings(data_dir=tmp_path), factory))
    response = client.post("/researchers/r1/import", json={"orcid": "0000-0002-1825-0097"})
    assert response.status_code == 409
