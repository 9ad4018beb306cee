"""Similarity-search backend implementations.

Provides one backend per supported index library:
- FaissBackend: FAISS factory indexes (Flat, IVF/PQ), optional GPU
- AnnoyBackend: Annoy random projection forests

Use `get_backend_class()` to resolve the configured backend:
    >>> from modelrepo.simsearch.backend import get_backend_class
    >>> backend_cls = get_backend_class()
"""

from .base import SearchBackend
from .factory import get_backend_class

__all__ = [
    # Base class
    "SearchBackend",
    # Factory
    "get_backend_class",
]
