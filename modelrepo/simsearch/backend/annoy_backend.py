"""Annoy search backend (random projection forest).

Annoy indexes are immutable once built, so every update rebuilds the
forest over the persisted items plus the buffered ones.
"""

from pathlib import Path

import numpy as np

from modelrepo.core import get_logger

from ..types import (
    ANNOY_INDEX_FILENAME,
    DEFAULT_ANNOY_METRIC,
    DEFAULT_ANNOY_TREES,
    IndexTuning,
)
from .base import SearchBackend

logger = get_logger("simsearch.annoy")


def _import_annoy():
    try:
        from annoy import AnnoyIndex
    except ImportError as e:
        raise ImportError(
            "Annoy required for the annoy search backend. "
            "Install with: pip install annoy"
        ) from e
    return AnnoyIndex


class AnnoyBackend(SearchBackend):
    """Annoy-based approximate index stored in the model repository.

    Attributes:
        n_trees: Number of trees built per update.
        metric: Annoy distance metric.
        preload: Prefault index pages into memory when opening the file.
    """

    index_filename = ANNOY_INDEX_FILENAME

    def __init__(self, dimension: int, repository: Path):
        super().__init__(dimension, repository)
        self.n_trees = DEFAULT_ANNOY_TREES
        self.metric = DEFAULT_ANNOY_METRIC
        self.preload = False
        self._built = False

    def apply_tuning(self, tuning: IndexTuning) -> None:
        """Apply the preload flag; FAISS-only fields are ignored."""
        if tuning.preload is not None:
            self.preload = tuning.preload

    def create_index(self) -> None:
        """Load the persisted forest or start an empty index."""
        AnnoyIndex = _import_annoy()
        self._index = AnnoyIndex(self._dimension, self.metric)

        if self.index_path.exists():
            self._load_meta()
            self._index.load(str(self.index_path), prefault=self.preload)
            self._built = True
            logger.info(
                f"Opened Annoy index {self.index_path} ({self.size} items, "
                f"preload={self.preload})"
            )
        else:
            self._id_map = []
            self._built = False
            logger.info(f"Created Annoy index (dim={self._dimension})")

    def update_index(self) -> None:
        """Rebuild the forest over existing and buffered items, then save."""
        AnnoyIndex = _import_annoy()
        if self._index is None:
            self.create_index()

        fresh = AnnoyIndex(self._dimension, self.metric)
        if self._built:
            for item in range(self._index.get_n_items()):
                fresh.add_item(item, self._index.get_item_vector(item))

        vectors, ids = self._take_pending()
        offset = len(self._id_map)
        for position, vector in enumerate(vectors):
            fresh.add_item(offset + position, vector.tolist())
        self._id_map.extend(ids)

        self._index.unload()
        fresh.build(self.n_trees)
        fresh.save(str(self.index_path), prefault=self.preload)
        self._index = fresh
        self._built = True
        self._save_meta()
        logger.info(f"Saved Annoy index to {self.index_path} ({self.size} items)")

    def close(self) -> None:
        """Unload the memory-mapped forest."""
        if self._index is not None:
            self._index.unload()
        super().close()
        self._built = False

    def _search(self, query: np.ndarray, k: int) -> list[tuple[int, float]]:
        if not self._built:
            return []
        items, distances = self._index.get_nns_by_vector(
            query[0].tolist(), k, include_distances=True
        )
        # Angular distance is sqrt(2 - 2 * cos), report cosine similarity
        return [
            (item, 1.0 - (distance**2) / 2.0)
            for item, distance in zip(items, distances, strict=True)
        ]


__all__ = ["AnnoyBackend"]
