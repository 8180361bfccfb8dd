"""SQLite persistence layer for ScholarSync."""

from __future__ import annotations

from datetime import date, datetime
from functools import lru_cache
from pathlib import Path

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel, create_engine


class PaperRecord(SQLModel, table=True):
    """One paper in one researcher's library."""

    __table_args__ = (UniqueConstraint("researcher_id", "doi_key", name="uq_paper_researcher_doi"),)

    id: int | None = Field(default=None, primary_key=True)
    researcher_id: str = Field(index=True)
    doi: str
    doi_key: str = Field(index=True)
    title: str
    abstract: str | None = None
    journal: str | None = None
    published_date: date | None = None
    authors_json: str = Field(default="[]")
    citation_count: int = Field(default=0)
    citations_updated_at: datetime | None = None
    stored_at: datetime = Field(default_factory=datetime.utcnow)


def create_engine_for_path(db_path: Path):
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return create_engine(
        f"sqlite:///{db_path}",
        echo=False,
        connect_args={"check_same_thread": False},
    )


def init_db(engine) -> None:
    SQLModel.metadata.create_all(engine)


@lru_cache(maxsize=4)
def get_engine(path_str: str):
    engine = create_engine_for_path(Path(path_str))
    init_db(engine)
    return engine
