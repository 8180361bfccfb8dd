"""Resolvers that walk ordered source chains to reconcile one DOI."""

from __future__ import annotations

from collections.abc import Iterable

import structlog

from scholarsync.identifiers import is_reserved_identifier
from scholarsync.models import PaperMetadata
from .sources import CitationSource, MetadataSource

logger = structlog.get_logger(__name__)


class MetadataResolver:
    """Queries metadata sources in order until one supplies authors.

    Scalar fields are merged first-present-wins across every source that
    answered. Authors escalate to the next source only while the merged list
    is still empty.
    """

    def __init__(self, sources: Iterable[MetadataSource]) -> None:
        self._sources = list(sources)

    async def resolve(self, doi: str) -> PaperMetadata | None:
        if is_reserved_identifier(doi):
            return None
        merged: PaperMetadata | None = None
        for source in self._sources:
            logger.debug("resolver.invoke", resolver=source.name, doi=doi)
            result = await source.fetch_metadata(doi)
            if result is None:
                continue
            merged = result if merged is None else merge_metadata(merged, result)
            if merged.authors:
                logger.info("resolver.hit", resolver=source.name, doi=doi)
                return merged
        if merged is None:
            logger.warning("resolver.miss", doi=doi)
        return merged


class CitationResolver:
    """First source to report a count wins; counts are never merged."""

    def __init__(self, sources: Iterable[CitationSource]) -> None:
        self._sources = list(sources)

    async def resolve_citation_count(self, doi: str) -> int | None:
        if is_reserved_identifier(doi):
            return None
        for source in self._sources:
            count = await source.fetch_citation_count(doi)
            if count is not None:
                logger.info("citations.hit", resolver=source.name, doi=doi, count=count)
                return count
        logger.warning("citations.miss", doi=doi)
        return None


def merge_metadata(first: PaperMetadata, second: PaperMetadata) -> PaperMetadata:
    """Field-wise merge where ``first`` wins whenever it has a value."""
    return PaperMetadata(
        title=first.title or second.title,
        abstract=first.abstract or second.abstract,
        authors=list(first.authors or second.authors),
        journal=first.journal or second.journal,
        published_date=first.published_date or second.published_date,
    )
