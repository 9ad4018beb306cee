"""Backend factory resolving the configured similarity-search backend.

The backend is a deployment choice: it is read once per process from
MODELREPO_SEARCH_BACKEND and every repository in the process uses it.
"""

from modelrepo.config import get_search_backend

from ..types import SearchBackendType
from .base import SearchBackend


def get_backend_class(
    backend: str | SearchBackendType | None = None,
) -> type[SearchBackend] | None:
    """Resolve a backend name to its implementation class.

    Implementations are imported lazily so only the configured backend's
    library needs to be installed.

    Args:
        backend: Backend to resolve. Defaults to the process-wide backend.

    Returns:
        Backend class, or None when similarity search is disabled.

    Raises:
        ValueError: If the backend name is unknown.

    Example:
        >>> cls = get_backend_class("annoy")
        >>> cls.__name__
        'AnnoyBackend'
    """
    if backend is None:
        backend = get_search_backend()

    try:
        kind = SearchBackendType(backend)
    except ValueError as e:
        available = [member.value for member in SearchBackendType]
        raise ValueError(
            f"Unknown search backend: {backend}. Available: {available}"
        ) from e

    if kind == SearchBackendType.FAISS:
        from .faiss_backend import FaissBackend

        return FaissBackend
    elif kind == SearchBackendType.ANNOY:
        from .annoy_backend import AnnoyBackend

        return AnnoyBackend
    return None


__all__ = ["get_backend_class"]
