"""FAISS search backend with optional GPU placement.

Supports any index described by a FAISS index factory string, from exact
``Flat`` search to trained inverted-file/quantized indexes such as
``IVF4096,PQ32``. Vectors are normalized so inner product equals cosine
similarity.
"""

from pathlib import Path

import numpy as np

from modelrepo.config import get_index_use_gpu
from modelrepo.core import get_logger

from ..types import (
    DEFAULT_FAISS_INDEX_KEY,
    DEFAULT_NPROBE,
    DEFAULT_TRAIN_SAMPLES,
    FAISS_INDEX_FILENAME,
    IndexTuning,
)
from .base import SearchBackend

logger = get_logger("simsearch.faiss")


def _import_faiss():
    try:
        import faiss
    except ImportError as e:
        raise ImportError(
            "FAISS required for the faiss search backend. "
            "Install with: pip install faiss-cpu or faiss-gpu"
        ) from e
    return faiss


class FaissBackend(SearchBackend):
    """FAISS-based index stored in the model repository.

    Features:
        - Index type chosen with a factory string (Flat, IVF, PQ, HNSW...)
        - Training on up to ``train_samples`` buffered vectors
        - Memory-mapped opening of persisted indexes (``ondisk``)
        - GPU placement on one or several devices with CPU fallback

    Example:
        >>> backend = FaissBackend(dimension=512, repository=Path("models/clip"))
        >>> backend.apply_tuning(IndexTuning(index_type="IVF64,Flat", nprobe=8))
        >>> backend.create_index()
        >>> backend.add(vectors, ids)
        >>> backend.update_index()
    """

    index_filename = FAISS_INDEX_FILENAME

    def __init__(self, dimension: int, repository: Path):
        super().__init__(dimension, repository)
        self.index_key = DEFAULT_FAISS_INDEX_KEY
        self.train_samples = DEFAULT_TRAIN_SAMPLES
        self.ondisk = True
        self.nprobe = DEFAULT_NPROBE
        self.gpu = bool(get_index_use_gpu())
        self.gpu_ids: list[int] = []
        self._is_gpu = False
        self._mmapped = False

    def apply_tuning(self, tuning: IndexTuning) -> None:
        """Apply index type, training, residency, probe and GPU settings."""
        if tuning.index_type is not None:
            self.index_key = tuning.index_type
        if tuning.train_samples is not None:
            self.train_samples = tuning.train_samples
        if tuning.ondisk is not None:
            self.ondisk = tuning.ondisk
        if tuning.nprobe is not None:
            self.nprobe = tuning.nprobe
        if tuning.index_gpu is not None:
            self.gpu = tuning.index_gpu
        if tuning.index_gpuid:
            self.gpu = True
            self.gpu_ids = list(tuning.index_gpuid)

    @property
    def is_gpu(self) -> bool:
        """Check if the index lives on GPU."""
        return self._is_gpu

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def create_index(self) -> None:
        """Open the persisted index or build an empty one from index_key."""
        faiss = _import_faiss()

        if self.index_path.exists():
            self._load_meta()
            flags = faiss.IO_FLAG_MMAP if self.ondisk else 0
            cpu_index = faiss.read_index(str(self.index_path), flags)
            self._mmapped = bool(flags)
            logger.info(
                f"Opened FAISS index {self.index_path} ({self.size} vectors, "
                f"mmap={self._mmapped})"
            )
        else:
            cpu_index = faiss.index_factory(
                self._dimension, self.index_key, faiss.METRIC_INNER_PRODUCT
            )
            self._id_map = []
            self._mmapped = False
            logger.info(
                f"Created FAISS index '{self.index_key}' (dim={self._dimension})"
            )

        self._apply_nprobe(cpu_index)
        self._index = self._place(cpu_index)

    def update_index(self) -> None:
        """Train if needed, insert buffered vectors and write the index."""
        faiss = _import_faiss()
        if self._index is None:
            self.create_index()

        if self._mmapped:
            # Memory-mapped indexes are read-only and cannot be written back
            cpu_index = faiss.read_index(str(self.index_path))
            self._apply_nprobe(cpu_index)
            self._index = self._place(cpu_index)
            self._mmapped = False

        vectors, ids = self._take_pending()
        if len(ids) > 0:
            vectors = self._normalize_vectors(vectors)
            if not self._index.is_trained:
                logger.info(
                    f"Training FAISS index on {min(len(vectors), self.train_samples)} vectors"
                )
                self._index.train(vectors[: self.train_samples])
            self._index.add(vectors)
            self._id_map.extend(ids)

        cpu_index = faiss.index_gpu_to_cpu(self._index) if self._is_gpu else self._index
        faiss.write_index(cpu_index, str(self.index_path))
        self._save_meta()
        logger.info(f"Saved FAISS index to {self.index_path} ({self.size} vectors)")

    def close(self) -> None:
        """Release the native index."""
        super().close()
        self._is_gpu = False
        self._mmapped = False

    def _search(self, query: np.ndarray, k: int) -> list[tuple[int, float]]:
        query = self._normalize_vectors(query)
        scores, indices = self._index.search(query, k)
        return [
            (int(idx), float(score))
            for score, idx in zip(scores[0], indices[0], strict=True)
        ]

    # -------------------------------------------------------------------------
    # Tuning helpers
    # -------------------------------------------------------------------------

    def _apply_nprobe(self, cpu_index) -> None:
        """Set nprobe on inverted-file indexes; other types have no probes."""
        faiss = _import_faiss()
        try:
            ivf = faiss.extract_index_ivf(cpu_index)
        except RuntimeError:
            return
        ivf.nprobe = self.nprobe

    def _detect_gpu(self) -> bool:
        """Detect if FAISS GPU is available.

        Returns:
            True if GPU available, False otherwise.
        """
        faiss = _import_faiss()
        has_gpu_support = hasattr(faiss, "StandardGpuResources")
        num_gpus = faiss.get_num_gpus() if hasattr(faiss, "get_num_gpus") else 0
        if num_gpus > 0:
            return True

        if not has_gpu_support:
            logger.warning(
                "FAISS package mismatch: faiss-cpu installed (no GPU support). "
                "To enable GPU: pip uninstall faiss-cpu && "
                "conda install -c conda-forge faiss-gpu"
            )
        else:
            logger.warning(
                "GPU not available: faiss-gpu installed but no CUDA GPU detected. "
                "Check: nvidia-smi, CUDA drivers, or GPU memory availability"
            )
        return False

    def _place(self, cpu_index):
        """Move the index to the configured GPUs, falling back to CPU."""
        self._is_gpu = False
        if not self.gpu or not self._detect_gpu():
            return cpu_index

        faiss = _import_faiss()
        try:
            if len(self.gpu_ids) == 1:
                res = faiss.StandardGpuResources()
                gpu_index = faiss.index_cpu_to_gpu(res, self.gpu_ids[0], cpu_index)
            elif self.gpu_ids:
                resources = [faiss.StandardGpuResources() for _ in self.gpu_ids]
                gpu_index = faiss.index_cpu_to_gpu_multiple_py(
                    resources, cpu_index, gpus=self.gpu_ids
                )
            else:
                gpu_index = faiss.index_cpu_to_all_gpus(cpu_index)
        except Exception as e:
            logger.warning(f"GPU index failed, falling back to CPU: {e}")
            return cpu_index

        self._is_gpu = True
        logger.info(f"Placed FAISS index on GPU (devices={self.gpu_ids or 'all'})")
        return gpu_index


__all__ = ["FaissBackend"]
