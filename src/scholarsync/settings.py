"""Configuration helpers for ScholarSync."""

from __future__ import annotations

import logging
import os
from pathlib import Path

import structlog
from dotenv import load_dotenv
from pydantic import BaseModel, Field

from scholarsync import __version__

DEFAULT_DATA_ROOT = Path.home() / "scholarsync-data"


class Settings(BaseModel):
    """Runtime configuration loaded from env vars with sensible defaults."""

    data_dir: Path = Field(default_factory=lambda: DEFAULT_DATA_ROOT)
    db_filename: str = "papers.sqlite3"
    log_level: str = "INFO"
    crossref_base_url: str = "https://api.crossref.org/works"
    semantic_scholar_base_url: str = "https://api.semanticscholar.org/graph/v1/paper"
    opencitations_base_url: str = "https://opencitations.net/index/coci/api/v1/citation-count"
    orcid_base_url: str = "https://pub.orcid.org/v3.0"
    contact_email: str = "hello@scholarsync.org"
    request_timeout: float = 20.0
    citation_batch_size: int = Field(default=10, ge=1)
    enrichment_batch_size: int = Field(default=5, ge=1)
    import_batch_size: int = Field(default=5, ge=1)

    @property
    def db_path(self) -> Path:
        return self.data_dir / self.db_filename

    @property
    def user_agent(self) -> str:
        return f"ScholarSync/{__version__} (mailto:{self.contact_email})"

    def ensure_directories(self) -> None:
        """Create data directories if they are missing."""
        self.data_dir.mkdir(parents=True, exist_ok=True)

    @classmethod
    def load(cls) -> "Settings":
        load_dotenv()
        env = os.environ
        return cls(
            data_dir=Path(env.get("SCHOLARSYNC_DATA_DIR", DEFAULT_DATA_ROOT)),
            db_filename=env.get("SCHOLARSYNC_DB_FILENAME", "papers.sqlite3"),
            log_level=env.get("SCHOLARSYNC_LOG_LEVEL", "INFO"),
            crossref_base_url=env.get("SCHOLARSYNC_CROSSREF_URL", "https://api.crossref.org/works"),
            semantic_scholar_base_url=env.get(
                "SCHOLARSYNC_SEMANTIC_SCHOLAR_URL",
                "https://api.semanticscholar.org/graph/v1/paper",
            ),
            opencitations_base_url=env.get(
                "SCHOLARSYNC_OPENCITATIONS_URL",
                "https://opencitations.net/index/coci/api/v1/citation-count",
            ),
            orcid_base_url=env.get("SCHOLARSYNC_ORCID_URL", "https://pub.orcid.org/v3.0"),
            contact_email=env.get("SCHOLARSYNC_CONTACT_EMAIL", "hello@scholarsync.org"),
            request_timeout=float(env.get("SCHOLARSYNC_REQUEST_TIMEOUT", "20")),
            citation_batch_size=int(env.get("SCHOLARSYNC_CITATION_BATCH_SIZE", "10")),
            enrichment_batch_size=int(env.get("SCHOLARSYNC_ENRICHMENT_BATCH_SIZE", "5")),
            import_batch_size=int(env.get("SCHOLARSYNC_IMPORT_BATCH_SIZE", "5")),
        )


def get_settings() -> Settings:
    """Convenience accessor for lazy modules."""
    settings = Settings.load()
    settings.ensure_directories()
    return settings


def configure_logging(level: str) -> None:
    """Filter structlog output below ``level``."""
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        numeric = logging.INFO
    structlog.configure(wrapper_class=structlog.make_filtering_bound_logger(numeric))
