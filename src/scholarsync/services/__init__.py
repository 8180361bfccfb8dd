"""Service abstractions for the ScholarSync pipeline."""

from .batch import BatchOutcome, guarded, run_batched
from .bibliometrics import compute_snapshot, h_index, i10_index
from .importer import ImportErrorCode, ImportFailure, WorksImporter
from .library import CitationUnavailable, LibraryService, MetadataUnavailable, build_library
from .orcid import OrcidWorksClient, WorksNotFound, WorksRegistryError, WorksSource
from .resolvers import CitationResolver, MetadataResolver, merge_metadata
from .sources import (
    CitationSource,
    CrossrefSource,
    MetadataSource,
    OpenCitationsSource,
    SemanticScholarSource,
    format_author_list,
)
from .storage import DuplicatePaperError, LocalPaperStore, PaperNotFound, PaperStore

__all__ = [
    "BatchOutcome",
    "guarded",
    "run_batched",
    "compute_snapshot",
    "h_index",
    "i10_index",
    "ImportErrorCode",
    "ImportFailure",
    "WorksImporter",
    "CitationUnavailable",
    "LibraryService",
    "MetadataUnavailable",
    "build_library",
    "OrcidWorksClient",
    "WorksNotFound",
    "WorksRegistryError",
    "WorksSource",
    "CitationResolver",
    "MetadataResolver",
    "merge_metadata",
    "CitationSource",
    "CrossrefSource",
    "MetadataSource",
    "OpenCitationsSource",
    "SemanticScholarSource",
    "format_author_list",
    "DuplicatePaperError",
    "LocalPaperStore",
    "PaperNotFound",
    "PaperStore",
]
