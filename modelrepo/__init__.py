"""modelrepo: lifecycle management for on-disk model repositories."""

from modelrepo.repository import (
    BadParameterError,
    CorrespondenceTable,
    ModelRepository,
    RepositorySettings,
)
from modelrepo.simsearch import IndexState, IndexTuning, SearchIndexManager

__all__ = [
    # Repository
    "ModelRepository",
    "RepositorySettings",
    "CorrespondenceTable",
    "BadParameterError",
    # Similarity search
    "SearchIndexManager",
    "IndexTuning",
    "IndexState",
]
