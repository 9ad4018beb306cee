"""Tests for the FAISS and Annoy search backends."""

import json

import numpy as np
import pytest

from modelrepo.simsearch.types import IndexTuning

from .annoy_backend import AnnoyBackend
from .faiss_backend import FaissBackend

# Check if index libraries are available
try:
    import faiss  # noqa: F401

    HAS_FAISS = True
except ImportError:
    HAS_FAISS = False

try:
    import annoy  # noqa: F401

    HAS_ANNOY = True
except ImportError:
    HAS_ANNOY = False

requires_faiss = pytest.mark.skipif(not HAS_FAISS, reason="FAISS not installed")
requires_annoy = pytest.mark.skipif(not HAS_ANNOY, reason="Annoy not installed")


class TestBackendInput:
    """Input validation shared by all backends (no library needed)."""

    @pytest.mark.unit
    def test_rejects_non_positive_dimension(self, tmp_path):
        with pytest.raises(ValueError, match="must be positive"):
            FaissBackend(0, tmp_path)

    @pytest.mark.unit
    def test_add_count_mismatch(self, tmp_path):
        backend = FaissBackend(4, tmp_path)
        with pytest.raises(ValueError, match="must match ID count"):
            backend.add(np.ones((2, 4)), ["only-one"])

    @pytest.mark.unit
    def test_add_dimension_mismatch(self, tmp_path):
        backend = AnnoyBackend(4, tmp_path)
        with pytest.raises(ValueError, match="must match index dimension"):
            backend.add(np.ones((1, 3)), ["a"])

    @pytest.mark.unit
    def test_add_buffers_single_vector(self, tmp_path):
        backend = AnnoyBackend(4, tmp_path)
        backend.add(np.ones(4), ["a"])
        assert backend.pending == 1
        assert backend.size == 0

    @pytest.mark.unit
    def test_search_without_index_is_empty(self, tmp_path):
        backend = FaissBackend(4, tmp_path)
        assert backend.search(np.ones(4)) == []


class TestFaissTuning:
    """Tuning is applied field by field (no library needed)."""

    @pytest.mark.unit
    def test_defaults(self, tmp_path, monkeypatch):
        monkeypatch.delenv("MODELREPO_INDEX_USE_GPU", raising=False)
        backend = FaissBackend(8, tmp_path)
        assert backend.index_key == "Flat"
        assert backend.train_samples == 100000
        assert backend.ondisk is True
        assert backend.nprobe == 2
        assert backend.gpu is False
        assert backend.gpu_ids == []

    @pytest.mark.unit
    def test_only_supplied_fields_change(self, tmp_path):
        backend = FaissBackend(8, tmp_path)
        backend.apply_tuning(IndexTuning(index_type="IVF16,PQ4", nprobe=8))
        assert backend.index_key == "IVF16,PQ4"
        assert backend.nprobe == 8
        assert backend.train_samples == 100000
        assert backend.ondisk is True

    @pytest.mark.unit
    def test_gpu_ids_imply_gpu(self, tmp_path):
        backend = FaissBackend(8, tmp_path)
        backend.apply_tuning(IndexTuning(index_gpu=False, index_gpuid=[0, 1]))
        assert backend.gpu is True
        assert backend.gpu_ids == [0, 1]

    @pytest.mark.unit
    def test_annoy_ignores_faiss_fields(self, tmp_path):
        backend = AnnoyBackend(8, tmp_path)
        backend.apply_tuning(IndexTuning(index_type="IVF16,Flat", preload=True))
        assert backend.preload is True
        assert backend.n_trees == 100


@requires_faiss
class TestFaissBackend:
    """Tests against the FAISS library."""

    @pytest.mark.unit
    def test_create_build_search(self, tmp_path, sample_vectors):
        vectors, ids = sample_vectors
        backend = FaissBackend(16, tmp_path)
        backend.create_index()
        backend.add(vectors, ids)
        backend.update_index()

        assert backend.size == 10
        assert (tmp_path / "index.faiss").exists()
        meta = json.loads((tmp_path / "index.meta.json").read_text())
        assert meta["id_map"] == ids
        assert meta["dimension"] == 16

        results = backend.search(vectors[0], k=3)
        assert results[0].id == "item_0"
        assert results[0].score == pytest.approx(1.0, abs=1e-4)

    @pytest.mark.unit
    def test_reopen_and_extend(self, tmp_path, sample_vectors):
        """A persisted index is reopened and can still be extended."""
        vectors, ids = sample_vectors
        first = FaissBackend(16, tmp_path)
        first.create_index()
        first.add(vectors[:6], ids[:6])
        first.update_index()
        first.close()

        second = FaissBackend(16, tmp_path)
        second.create_index()
        assert second.size == 6
        second.add(vectors[6:], ids[6:])
        second.update_index()
        assert second.size == 10
        assert second.search(vectors[8], k=1)[0].id == "item_8"

    @pytest.mark.unit
    def test_ivf_is_trained_on_build(self, tmp_path):
        rng = np.random.default_rng(7)
        vectors = rng.standard_normal((200, 8)).astype(np.float32)
        ids = [str(i) for i in range(200)]

        backend = FaissBackend(8, tmp_path)
        backend.apply_tuning(IndexTuning(index_type="IVF4,Flat", nprobe=4))
        backend.create_index()
        backend.add(vectors, ids)
        backend.update_index()

        assert backend.size == 200
        assert faiss.extract_index_ivf(backend._index).nprobe == 4
        assert backend.search(vectors[10], k=1)[0].id == "10"

    @pytest.mark.unit
    def test_rebuild_reopened_ivf_keeps_data(self, tmp_path):
        """Rebuilding a memory-mapped index with nothing pending keeps it intact."""
        rng = np.random.default_rng(11)
        vectors = rng.standard_normal((200, 8)).astype(np.float32)
        ids = [str(i) for i in range(200)]
        tuning = IndexTuning(index_type="IVF4,Flat", nprobe=4)

        first = FaissBackend(8, tmp_path)
        first.apply_tuning(tuning)
        first.create_index()
        first.add(vectors, ids)
        first.update_index()
        first.close()
        size_on_disk = (tmp_path / "index.faiss").stat().st_size

        reopened = FaissBackend(8, tmp_path)
        reopened.apply_tuning(tuning)
        reopened.create_index()
        reopened.update_index()
        reopened.update_index()
        reopened.close()

        assert (tmp_path / "index.faiss").stat().st_size == size_on_disk

        final = FaissBackend(8, tmp_path)
        final.apply_tuning(tuning)
        final.create_index()
        assert final.size == 200
        assert final._index.ntotal == 200
        assert final.search(vectors[42], k=1)[0].id == "42"

    @pytest.mark.unit
    def test_remove_index(self, tmp_path, sample_vectors):
        vectors, ids = sample_vectors
        backend = FaissBackend(16, tmp_path)
        backend.create_index()
        backend.add(vectors, ids)
        backend.update_index()
        backend.remove_index()

        assert not (tmp_path / "index.faiss").exists()
        assert not (tmp_path / "index.meta.json").exists()
        assert backend.is_open is False
        assert backend.size == 0

    @pytest.mark.unit
    def test_dimension_mismatch_on_reopen(self, tmp_path, sample_vectors):
        vectors, ids = sample_vectors
        backend = FaissBackend(16, tmp_path)
        backend.create_index()
        backend.add(vectors, ids)
        backend.update_index()

        with pytest.raises(ValueError, match="does not match"):
            FaissBackend(32, tmp_path).create_index()


@requires_annoy
class TestAnnoyBackend:
    """Tests against the Annoy library."""

    @pytest.mark.unit
    def test_create_build_search(self, tmp_path, sample_vectors):
        vectors, ids = sample_vectors
        backend = AnnoyBackend(16, tmp_path)
        backend.n_trees = 10
        backend.create_index()
        backend.add(vectors, ids)
        backend.update_index()

        assert backend.size == 10
        assert (tmp_path / "index.ann").exists()
        results = backend.search(vectors[4], k=2)
        assert results[0].id == "item_4"
        assert results[0].score == pytest.approx(1.0, abs=1e-4)

    @pytest.mark.unit
    def test_search_before_build_is_empty(self, tmp_path, sample_vectors):
        vectors, ids = sample_vectors
        backend = AnnoyBackend(16, tmp_path)
        backend.create_index()
        backend.add(vectors, ids)
        assert backend.search(vectors[0]) == []

    @pytest.mark.unit
    def test_rebuild_keeps_existing_items(self, tmp_path, sample_vectors):
        vectors, ids = sample_vectors
        first = AnnoyBackend(16, tmp_path)
        first.n_trees = 10
        first.create_index()
        first.add(vectors[:5], ids[:5])
        first.update_index()
        first.close()

        second = AnnoyBackend(16, tmp_path)
        second.n_trees = 10
        second.preload = True
        second.create_index()
        assert second.size == 5
        second.add(vectors[5:], ids[5:])
        second.update_index()

        assert second.size == 10
        assert second.search(vectors[1], k=1)[0].id == "item_1"
        assert second.search(vectors[7], k=1)[0].id == "item_7"

    @pytest.mark.unit
    def test_remove_index(self, tmp_path, sample_vectors):
        vectors, ids = sample_vectors
        backend = AnnoyBackend(16, tmp_path)
        backend.create_index()
        backend.add(vectors, ids)
        backend.update_index()
        backend.remove_index()

        assert not (tmp_path / "index.ann").exists()
        assert backend.is_open is False
