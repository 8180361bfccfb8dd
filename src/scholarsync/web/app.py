"""FastAPI JSON boundary for ScholarSync."""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from datetime import date
from typing import Optional

import httpx
from fastapi import FastAPI, HTTPException, Response, status
from pydantic import BaseModel, Field

from scholarsync.identifiers import InvalidIdentifier
from scholarsync.services import (
    CitationUnavailable,
    DuplicatePaperError,
    ImportErrorCode,
    ImportFailure,
    LibraryService,
    MetadataUnavailable,
    PaperNotFound,
    build_library,
)
from scholarsync.settings import Settings, get_settings

LibraryFactory = Callable[[], AbstractAsyncContextManager[LibraryService]]

IMPORT_ERROR_STATUS = {
    ImportErrorCode.INVALID_IDENTIFIER: status.HTTP_400_BAD_REQUEST,
    ImportErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ImportErrorCode.NO_WORKS: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ImportErrorCode.TRANSPORT_ERROR: status.HTTP_502_BAD_GATEWAY,
}


class ImportRequest(BaseModel):
    orcid: str


class PaperRequest(BaseModel):
    title: str
    doi: Optional[str] = None
    abstract: Optional[str] = None
    journal: Optional[str] = None
    published_date: Optional[date] = None
    authors: list[str] = Field(default_factory=list)


def create_app(
    settings: Optional[Settings] = None,
    library_factory: Optional[LibraryFactory] = None,
) -> FastAPI:
    """Factory used by uvicorn."""
    settings = settings or get_settings()
    app = FastAPI(title="ScholarSync API")

    @asynccontextmanager
    async def default_library() -> AsyncIterator[LibraryService]:
        async with httpx.AsyncClient(timeout=settings.request_timeout) as client:
            yield build_library(client, settings)

    library = library_factory or default_library

    @app.post("/researchers/{researcher_id}/import")
    async def import_works(researcher_id: str, body: ImportRequest) -> dict:
        async with library() as service:
            try:
                summary = await service.import_from_orcid(researcher_id, body.orcid)
            except ImportFailure as exc:
                raise HTTPException(
                    status_code=IMPORT_ERROR_STATUS[exc.code],
                    detail={"code": exc.code.value, "message": str(exc)},
                ) from exc
            except DuplicatePaperError as exc:
                # Another import for the same researcher committed first.
                raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
        return summary.model_dump(exclude={"papers_to_insert"})

    @app.post("/researchers/{researcher_id}/citations/refresh")
    async def refresh_citations(researcher_id: str) -> dict:
        async with library() as service:
            summary = await service.refresh_all_citations(researcher_id)
        return summary.model_dump()

    @app.post("/papers/{paper_id}/citations/refresh")
    async def refresh_paper(paper_id: int) -> dict:
        async with library() as service:
            try:
                count = await service.refresh_paper_citations(paper_id)
            except PaperNotFound as exc:
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
            except CitationUnavailable as exc:
                raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
        return {"citation_count": count}

    @app.post("/researchers/{researcher_id}/enrich")
    async def enrich(researcher_id: str) -> dict:
        async with library() as service:
            summary = await service.enrich_missing_metadata(researcher_id)
        return summary.model_dump()

    @app.post("/researchers/{researcher_id}/papers", status_code=status.HTTP_201_CREATED)
    async def add_paper(researcher_id: str, body: PaperRequest) -> dict:
        async with library() as service:
            try:
                stored = await service.add_paper(researcher_id, **body.model_dump())
            except DuplicatePaperError as exc:
                raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
            except ValueError as exc:
                raise HTTPException(
                    status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)
                ) from exc
        return stored.model_dump(mode="json")

    @app.delete(
        "/researchers/{researcher_id}/papers/{paper_id}",
        status_code=status.HTTP_204_NO_CONTENT,
    )
    async def remove_paper(researcher_id: str, paper_id: int) -> Response:
        async with library() as service:
            try:
                await service.remove_paper(researcher_id, paper_id)
            except PaperNotFound as exc:
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @app.get("/lookup")
    async def lookup(doi: str) -> dict:
        async with library() as service:
            try:
                paper = await service.lookup_doi(doi)
            except InvalidIdentifier as exc:
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
            except MetadataUnavailable as exc:
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
        return paper.model_dump(mode="json")

    @app.get("/researchers/{researcher_id}/metrics")
    async def metrics(researcher_id: str) -> dict:
        async with library() as service:
            snapshot = await service.snapshot(researcher_id)
        return snapshot.model_dump(mode="json")

    return app
