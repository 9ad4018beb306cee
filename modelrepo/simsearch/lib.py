"""Similarity-search index lifecycle for a model repository.

The manager owns at most one backend index object, created lazily once a
vector dimension is known. Every operation is a silent no-op while no
index exists so that owners can call them unconditionally, including in
deployments where similarity search is disabled.
"""

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import numpy as np

from modelrepo.core import get_logger

from .backend import SearchBackend, get_backend_class
from .types import IndexState, IndexTuning, SearchBackendType, SearchResult

_logger = get_logger("simsearch")


class SearchIndexManager:
    """Drives create/build/remove of a repository's similarity-search index.

    State machine::

        UNINITIALIZED --create_index--> CREATED --build--> BUILT
              ^                            |                 |  ^
              +----------remove------------+-----------------+  |
                                                        build --+

    The backend implementation is fixed when the manager is constructed and
    never switched afterwards. Calls are synchronous; the manager never
    issues concurrent calls to its index.

    Example:
        >>> manager = SearchIndexManager(Path("models/clip"))
        >>> manager.create_index(512, {"index_type": "IVF64,Flat", "nprobe": 8})
        >>> manager.add(vectors, ids)
        >>> manager.build()
    """

    def __init__(
        self,
        repository: Path,
        backend: str | SearchBackendType | type[SearchBackend] | None = None,
        preload: bool = False,
        logger: logging.Logger | None = None,
    ):
        """Initialize the manager.

        Args:
            repository: Directory where index artifacts are stored.
            backend: Backend name or class. Defaults to the process-wide
                configured backend.
            preload: Preload-on-open flag forwarded to the backend.
            logger: Logger for lifecycle messages.
        """
        self._repository = Path(repository)
        if isinstance(backend, type):
            self._backend_cls: type[SearchBackend] | None = backend
        else:
            self._backend_cls = get_backend_class(backend)
        self._preload = preload
        self._logger = logger or _logger
        self._index: SearchBackend | None = None
        self._state = IndexState.UNINITIALIZED

    @property
    def enabled(self) -> bool:
        """Check whether a search backend is configured."""
        return self._backend_cls is not None

    @property
    def backend_cls(self) -> type[SearchBackend] | None:
        """Get the backend class indexes are created with."""
        return self._backend_cls

    @property
    def preload(self) -> bool:
        """Get the preload flag used when tuning leaves it unset."""
        return self._preload

    @property
    def index(self) -> SearchBackend | None:
        """Get the backend index object, if created."""
        return self._index

    @property
    def state(self) -> IndexState:
        """Get the lifecycle state."""
        return self._state

    def create_index(
        self,
        dimension: int,
        tuning: IndexTuning | Mapping[str, Any] | None = None,
    ) -> None:
        """Create the index object and its native index.

        Only the first call constructs a backend object; later calls leave
        it untouched. After :meth:`remove`, a call reopens the native index
        on the same object without re-applying tuning.

        Args:
            dimension: Vector dimension, fixed for the index lifetime.
            tuning: Backend tuning; only supplied fields are applied.
        """
        if self._backend_cls is None:
            self._logger.debug("Similarity search disabled, not creating index")
            return

        if self._index is not None:
            if self._state == IndexState.UNINITIALIZED:
                self._index.create_index()
                self._state = IndexState.CREATED
            return

        if tuning is None:
            tuning = IndexTuning()
        elif not isinstance(tuning, IndexTuning):
            tuning = IndexTuning.model_validate(tuning)
        if tuning.preload is None:
            tuning = tuning.model_copy(update={"preload": self._preload})

        index = self._backend_cls(dimension, self._repository)
        index.apply_tuning(tuning)
        index.create_index()
        self._index = index
        self._state = IndexState.CREATED
        self._logger.info(
            f"Created {index.name} search index in {self._repository} (dim={dimension})"
        )

    def build(self) -> None:
        """Update the index with buffered vectors and persist it.

        After :meth:`remove`, the native index is reopened first so the
        state passes through CREATED before reaching BUILT.
        """
        if self._index is None:
            return
        if self._state == IndexState.UNINITIALIZED:
            self._index.create_index()
            self._state = IndexState.CREATED
        self._index.update_index()
        self._state = IndexState.BUILT

    rebuild = build

    def remove(self) -> None:
        """Delete the index artifacts from the repository."""
        if self._index is None:
            return
        self._index.remove_index()
        self._state = IndexState.UNINITIALIZED

    def add(self, vectors: np.ndarray, ids: list[str]) -> None:
        """Buffer vectors for the next build; ignored without an index."""
        if self._index is None:
            return
        self._index.add(vectors, ids)

    def search(self, query: np.ndarray, k: int = 5) -> list[SearchResult]:
        """Search the index; returns no results without an index."""
        if self._index is None:
            return []
        return self._index.search(query, k)

    def close(self) -> None:
        """Release the index object."""
        if self._index is None:
            return
        self._index.close()
        self._index = None
        self._state = IndexState.UNINITIALIZED


__all__ = ["SearchIndexManager"]
