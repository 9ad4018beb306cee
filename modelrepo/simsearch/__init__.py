"""Similarity-search index lifecycle for model repositories.

This module provides:
- SearchIndexManager driving create/build/remove of a repository's index
- Pluggable backends (FAISS with optional GPU placement, Annoy)
- Backend selection fixed per process via MODELREPO_SEARCH_BACKEND

Example usage:
    >>> from modelrepo.simsearch import SearchIndexManager, IndexTuning
    >>> manager = SearchIndexManager(Path("models/clip"))
    >>> manager.create_index(512, IndexTuning(index_type="IVF64,Flat"))
    >>> manager.add(vectors, ids)
    >>> manager.build()
    >>> results = manager.search(query, k=5)
"""

from .backend import SearchBackend, get_backend_class
from .lib import SearchIndexManager
from .types import IndexState, IndexTuning, SearchBackendType, SearchResult

__all__ = [
    # Types and enums
    "SearchBackendType",
    "IndexState",
    "IndexTuning",
    "SearchResult",
    # Backends
    "SearchBackend",
    "get_backend_class",
    # Lifecycle
    "SearchIndexManager",
]
