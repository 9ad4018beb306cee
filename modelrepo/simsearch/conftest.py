"""Similarity-search test fixtures."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import numpy as np
import pytest

from modelrepo.simsearch.backend import SearchBackend
from modelrepo.simsearch.types import IndexTuning

if TYPE_CHECKING:
    from numpy.typing import NDArray


# =============================================================================
# Recording Backend
# =============================================================================


class RecordingBackend(SearchBackend):
    """In-memory backend recording lifecycle calls.

    Persists only the id map so tests can observe on-disk artifacts without
    an index library installed.
    """

    index_filename = "index.rec"
    instances: list[RecordingBackend] = []

    def __init__(self, dimension: int, repository: Path):
        super().__init__(dimension, repository)
        self.calls: list[str] = []
        self.tuning: IndexTuning | None = None
        self._vectors = np.empty((0, dimension), dtype=np.float32)
        RecordingBackend.instances.append(self)

    def apply_tuning(self, tuning: IndexTuning) -> None:
        self.calls.append("apply_tuning")
        self.tuning = tuning

    def create_index(self) -> None:
        self.calls.append("create_index")
        self._index = object()
        self._load_meta()

    def update_index(self) -> None:
        self.calls.append("update_index")
        if self._index is None:
            self.create_index()
        vectors, ids = self._take_pending()
        self._vectors = np.vstack([self._vectors, self._normalize_vectors(vectors)])
        self._id_map.extend(ids)
        self.index_path.write_text(str(self.size))
        self._save_meta()

    def remove_index(self) -> None:
        self.calls.append("remove_index")
        self._vectors = np.empty((0, self._dimension), dtype=np.float32)
        super().remove_index()

    def _search(self, query: np.ndarray, k: int) -> list[tuple[int, float]]:
        scores = self._vectors @ self._normalize_vectors(query)[0]
        order = np.argsort(-scores)[:k]
        return [(int(i), float(scores[i])) for i in order]


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def recording_backend() -> type[RecordingBackend]:
    """Provide the recording backend class with a clean instance list."""
    RecordingBackend.instances = []
    return RecordingBackend


@pytest.fixture
def sample_vectors() -> tuple[NDArray[np.float32], list[str]]:
    """Create sample vectors and IDs for index testing.

    Returns:
        Tuple of (vectors array, list of IDs).
    """
    rng = np.random.default_rng(42)
    vectors = rng.standard_normal((10, 16)).astype(np.float32)
    norms = np.linalg.norm(vectors, axis=1, keepdims=True)
    vectors = vectors / norms
    ids = [f"item_{i}" for i in range(10)]
    return vectors, ids
