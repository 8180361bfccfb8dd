"""Storage interfaces for researcher paper libraries backed by SQLite."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Iterable
from datetime import datetime
from typing import Protocol

import structlog
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from scholarsync.db import PaperRecord, get_engine
from scholarsync.identifiers import dedup_key
from scholarsync.models import PaperMetadata, ReconciledPaper, StoredPaper
from scholarsync.settings import Settings

logger = structlog.get_logger(__name__)


class DuplicatePaperError(RuntimeError):
    """Raised when a researcher already has a paper with the same identifier."""

    def __init__(self, doi: str) -> None:
        super().__init__(f"This paper ({doi}) is already in your library")
        self.doi = doi


class PaperNotFound(LookupError):
    """Raised when a paper id does not exist."""


class PaperStore(Protocol):
    """High-level contract for persisting researcher papers."""

    async def add_paper(self, researcher_id: str, paper: ReconciledPaper) -> StoredPaper:
        ...

    async def insert_many(
        self, researcher_id: str, papers: Iterable[ReconciledPaper]
    ) -> list[StoredPaper]:
        ...

    async def list_papers(self, researcher_id: str) -> list[StoredPaper]:
        ...

    async def get_paper(self, paper_id: int) -> StoredPaper | None:
        ...

    async def update_citations(self, paper_id: int, count: int, updated_at: datetime) -> None:
        ...

    async def update_metadata(self, paper_id: int, metadata: PaperMetadata) -> None:
        ...

    async def delete_paper(self, researcher_id: str, paper_id: int) -> bool:
        ...


class LocalPaperStore(PaperStore):
    """SQLite-backed implementation of the paper store."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._lock = asyncio.Lock()
        self._settings.ensure_directories()
        self._engine = get_engine(str(self._settings.db_path))

    async def add_paper(self, researcher_id: str, paper: ReconciledPaper) -> StoredPaper:
        stored = await self.insert_many(researcher_id, [paper])
        return stored[0]

    async def insert_many(
        self, researcher_id: str, papers: Iterable[ReconciledPaper]
    ) -> list[StoredPaper]:
        papers = list(papers)
        if not papers:
            return []
        async with self._lock:
            return await asyncio.to_thread(self._insert_sync, researcher_id, papers)

    async def list_papers(self, researcher_id: str) -> list[StoredPaper]:
        async with self._lock:
            return await asyncio.to_thread(self._list_sync, researcher_id)

    async def get_paper(self, paper_id: int) -> StoredPaper | None:
        async with self._lock:
            return await asyncio.to_thread(self._get_sync, paper_id)

    async def update_citations(self, paper_id: int, count: int, updated_at: datetime) -> None:
        async with self._lock:
            await asyncio.to_thread(self._update_citations_sync, paper_id, count, updated_at)

    async def update_metadata(self, paper_id: int, metadata: PaperMetadata) -> None:
        async with self._lock:
            await asyncio.to_thread(self._update_metadata_sync, paper_id, metadata)

    async def delete_paper(self, researcher_id: str, paper_id: int) -> bool:
        async with self._lock:
            return await asyncio.to_thread(self._delete_sync, researcher_id, paper_id)

    # Internal helpers -----------------------------------------------------

    def _insert_sync(self, researcher_id: str, papers: list[ReconciledPaper]) -> list[StoredPaper]:
        records = [self._paper_to_record(researcher_id, paper) for paper in papers]
        with Session(self._engine, expire_on_commit=False) as session:
            session.add_all(records)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                logger.warning("storage.duplicate", researcher_id=researcher_id, error=str(exc.orig))
                raise DuplicatePaperError(papers[0].doi if len(papers) == 1 else "batch") from exc
            for record in records:
                session.refresh(record)
        logger.info("storage.inserted", researcher_id=researcher_id, count=len(records))
        return [self._record_to_paper(record) for record in records]

    def _list_sync(self, researcher_id: str) -> list[StoredPaper]:
        with Session(self._engine) as session:
            statement = (
                select(PaperRecord)
                .where(PaperRecord.researcher_id == researcher_id)
                .order_by(PaperRecord.stored_at.desc(), PaperRecord.id.desc())
            )
            records = session.exec(statement).all()
            return [self._record_to_paper(record) for record in records]

    def _get_sync(self, paper_id: int) -> StoredPaper | None:
        with Session(self._engine) as session:
            record = session.get(PaperRecord, paper_id)
            return self._record_to_paper(record) if record else None

    def _update_citations_sync(self, paper_id: int, count: int, updated_at: datetime) -> None:
        with Session(self._engine) as session:
            record = self._require(session, paper_id)
            record.citation_count = count
            record.citations_updated_at = updated_at
            session.add(record)
            session.commit()

    def _update_metadata_sync(self, paper_id: int, metadata: PaperMetadata) -> None:
        with Session(self._engine) as session:
            record = self._require(session, paper_id)
            if metadata.authors:
                record.authors_json = json.dumps(metadata.authors)
            if metadata.title:
                record.title = metadata.title
            if metadata.abstract:
                record.abstract = metadata.abstract
            if metadata.journal:
                record.journal = metadata.journal
            if metadata.published_date:
                record.published_date = metadata.published_date
            session.add(record)
            session.commit()

    def _delete_sync(self, researcher_id: str, paper_id: int) -> bool:
        with Session(self._engine) as session:
            record = session.get(PaperRecord, paper_id)
            if record is None or record.researcher_id != researcher_id:
                return False
            session.delete(record)
            session.commit()
        return True

    def _require(self, session: Session, paper_id: int) -> PaperRecord:
        record = session.get(PaperRecord, paper_id)
        if record is None:
            raise PaperNotFound(f"Paper {paper_id} not found")
        return record

    def _paper_to_record(self, researcher_id: str, paper: ReconciledPaper) -> PaperRecord:
        return PaperRecord(
            researcher_id=researcher_id,
            doi=paper.doi,
            doi_key=dedup_key(paper.doi),
            title=paper.title,
            abstract=paper.abstract,
            journal=paper.journal,
            published_date=paper.published_date,
            authors_json=json.dumps(paper.authors),
            citation_count=paper.citation_count,
            citations_updated_at=paper.citations_updated_at,
        )

    def _record_to_paper(self, record: PaperRecord) -> StoredPaper:
        return StoredPaper(
            id=record.id,
            researcher_id=record.researcher_id,
            doi=record.doi,
            title=record.title,
            abstract=record.abstract,
            journal=record.journal,
            published_date=record.published_date,
            authors=json.loads(record.authors_json or "[]"),
            citation_count=record.citation_count,
            citations_updated_at=record.citations_updated_at,
            stored_at=record.stored_at,
        )
