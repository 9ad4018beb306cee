"""Abstract base class for similarity-search backends."""

import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

import numpy as np

from modelrepo.core import get_logger

from ..types import INDEX_META_FILENAME, IndexTuning, SearchResult

logger = get_logger("simsearch.backend")


class SearchBackend(ABC):
    """Abstract interface for a repository-bound similarity-search index.

    A backend owns one native index stored inside the model repository.
    Vectors passed to :meth:`add` are buffered until :meth:`update_index`
    trains (when needed), inserts and persists them. Item ids are kept in
    an id map saved next to the index file.

    Subclasses implement the native index handling; the base class takes
    care of input validation, buffering and id map persistence.
    """

    #: Index file name inside the repository.
    index_filename: str = ""

    def __init__(self, dimension: int, repository: Path):
        """Bind the backend to a vector dimension and repository.

        Args:
            dimension: Vector dimension size.
            repository: Directory where index artifacts are stored.
        """
        if dimension <= 0:
            raise ValueError(f"Index dimension must be positive, got {dimension}")
        self._dimension = dimension
        self._repository = Path(repository)
        self._index: Any = None
        self._id_map: list[str] = []
        self._pending_vectors: list[np.ndarray] = []
        self._pending_ids: list[str] = []

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @abstractmethod
    def apply_tuning(self, tuning: IndexTuning) -> None:
        """Apply the supplied tuning fields over the backend defaults."""

    @abstractmethod
    def create_index(self) -> None:
        """Open the persisted index, or start a new empty one."""

    @abstractmethod
    def update_index(self) -> None:
        """Insert buffered vectors and persist the index."""

    @abstractmethod
    def _search(self, query: np.ndarray, k: int) -> list[tuple[int, float]]:
        """Return (position, score) pairs from the native index."""

    def remove_index(self) -> None:
        """Drop the in-memory index and delete its on-disk artifacts."""
        self.close()
        self._id_map = []
        self._pending_vectors = []
        self._pending_ids = []
        for path in (self.index_path, self.meta_path):
            path.unlink(missing_ok=True)
        logger.info(f"Removed {self.name} index from {self._repository}")

    def close(self) -> None:
        """Release the native index."""
        self._index = None

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def name(self) -> str:
        """Get backend name for logging."""
        return self.__class__.__name__

    @property
    def dimension(self) -> int:
        """Get vector dimension."""
        return self._dimension

    @property
    def repository(self) -> Path:
        """Get the repository the index lives in."""
        return self._repository

    @property
    def index_path(self) -> Path:
        """Get the index file path."""
        return self._repository / self.index_filename

    @property
    def meta_path(self) -> Path:
        """Get the id map file path."""
        return self._repository / INDEX_META_FILENAME

    @property
    def is_open(self) -> bool:
        """Check whether a native index is loaded."""
        return self._index is not None

    @property
    def size(self) -> int:
        """Get number of indexed vectors (excluding buffered ones)."""
        return len(self._id_map)

    @property
    def pending(self) -> int:
        """Get number of buffered vectors awaiting update_index()."""
        return len(self._pending_ids)

    # -------------------------------------------------------------------------
    # Data
    # -------------------------------------------------------------------------

    def add(self, vectors: np.ndarray, ids: list[str]) -> None:
        """Buffer vectors for the next update_index().

        Args:
            vectors: NumPy array of shape (n, dimension) or (dimension,).
            ids: List of n string identifiers.

        Raises:
            ValueError: If vectors and ids length or dimension mismatch.
        """
        vectors = np.asarray(vectors, dtype=np.float32)
        if vectors.ndim == 1:
            vectors = vectors.reshape(1, -1)

        if len(vectors) != len(ids):
            raise ValueError(
                f"Vector count ({len(vectors)}) must match ID count ({len(ids)})"
            )
        if len(vectors) == 0:
            return
        if vectors.shape[1] != self._dimension:
            raise ValueError(
                f"Vector dimension ({vectors.shape[1]}) "
                f"must match index dimension ({self._dimension})"
            )

        self._pending_vectors.append(vectors)
        self._pending_ids.extend(ids)

    def search(self, query: np.ndarray, k: int = 5) -> list[SearchResult]:
        """Search for similar vectors.

        Args:
            query: Query vector of shape (dimension,) or (1, dimension).
            k: Number of results to return.

        Returns:
            List of SearchResult sorted by similarity (highest first).
        """
        if not self.is_open or self.size == 0 or k <= 0:
            return []

        query = np.asarray(query, dtype=np.float32)
        if query.ndim == 1:
            query = query.reshape(1, -1)

        results = []
        for rank, (idx, score) in enumerate(self._search(query, min(k, self.size))):
            if 0 <= idx < len(self._id_map):
                results.append(SearchResult(id=self._id_map[idx], score=score, rank=rank))
        return results

    def _take_pending(self) -> tuple[np.ndarray, list[str]]:
        """Return and clear the buffered vectors and ids."""
        if self._pending_vectors:
            vectors = np.vstack(self._pending_vectors)
        else:
            vectors = np.empty((0, self._dimension), dtype=np.float32)
        ids = self._pending_ids
        self._pending_vectors = []
        self._pending_ids = []
        return vectors, ids

    @staticmethod
    def _normalize_vectors(vectors: np.ndarray) -> np.ndarray:
        """Normalize vectors for cosine similarity."""
        norms = np.linalg.norm(vectors, axis=1, keepdims=True)
        norms = np.where(norms == 0, 1, norms)
        return vectors / norms

    # -------------------------------------------------------------------------
    # Id map persistence
    # -------------------------------------------------------------------------

    def _save_meta(self) -> None:
        """Write the id map and index metadata."""
        meta = {
            "backend": self.name,
            "dimension": self._dimension,
            "size": len(self._id_map),
            "id_map": self._id_map,
        }
        with open(self.meta_path, "w") as f:
            json.dump(meta, f)

    def _load_meta(self) -> None:
        """Read the id map written by _save_meta()."""
        if not self.meta_path.exists():
            self._id_map = []
            return

        with open(self.meta_path) as f:
            meta = json.load(f)

        if meta.get("dimension", self._dimension) != self._dimension:
            raise ValueError(
                f"Persisted index dimension ({meta['dimension']}) "
                f"does not match requested dimension ({self._dimension})"
            )
        self._id_map = list(meta.get("id_map", []))


__all__ = ["SearchBackend"]
