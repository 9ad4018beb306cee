"""Unit tests for the similarity-search lifecycle manager."""

import numpy as np
import pytest

from modelrepo.config import get_search_backend
from modelrepo.simsearch import (
    IndexState,
    IndexTuning,
    SearchBackendType,
    SearchIndexManager,
    get_backend_class,
)


class TestLifecycleWithoutIndex:
    """Operations before create_index are silent no-ops."""

    @pytest.mark.unit
    def test_build_before_create_is_noop(self, tmp_path, recording_backend):
        manager = SearchIndexManager(tmp_path, backend=recording_backend)
        manager.build()
        assert manager.index is None
        assert manager.state == IndexState.UNINITIALIZED
        assert list(tmp_path.iterdir()) == []

    @pytest.mark.unit
    def test_remove_before_create_is_noop(self, tmp_path, recording_backend):
        """Remove leaves existing files alone when no index exists."""
        (tmp_path / "index.rec").write_text("keep")
        manager = SearchIndexManager(tmp_path, backend=recording_backend)
        manager.remove()
        assert (tmp_path / "index.rec").read_text() == "keep"
        assert recording_backend.instances == []

    @pytest.mark.unit
    def test_add_and_search_without_index(self, tmp_path, recording_backend):
        manager = SearchIndexManager(tmp_path, backend=recording_backend)
        manager.add(np.ones((1, 4), dtype=np.float32), ["a"])
        assert manager.search(np.ones(4, dtype=np.float32)) == []

    @pytest.mark.unit
    def test_disabled_backend_ignores_everything(self, tmp_path):
        """The 'none' backend never creates an index."""
        manager = SearchIndexManager(tmp_path, backend="none")
        assert manager.enabled is False
        manager.create_index(8)
        manager.build()
        manager.remove()
        assert manager.index is None
        assert list(tmp_path.iterdir()) == []


class TestCreateIndex:
    """Tests for lazy, single creation of the backend index."""

    @pytest.mark.unit
    def test_create_sets_state_and_calls_backend(self, tmp_path, recording_backend):
        manager = SearchIndexManager(tmp_path, backend=recording_backend)
        manager.create_index(8)
        assert manager.state == IndexState.CREATED
        assert manager.index.dimension == 8
        assert manager.index.repository == tmp_path
        assert manager.index.calls == ["apply_tuning", "create_index"]

    @pytest.mark.unit
    def test_second_create_is_noop(self, tmp_path, recording_backend):
        """A second create keeps the first object and its dimension."""
        manager = SearchIndexManager(tmp_path, backend=recording_backend)
        manager.create_index(8)
        first = manager.index
        manager.create_index(32, {"nprobe": 4})

        assert manager.index is first
        assert manager.index.dimension == 8
        assert len(recording_backend.instances) == 1

        manager.add(np.eye(8, dtype=np.float32)[:2], ["a", "b"])
        manager.build()
        assert sorted(p.name for p in tmp_path.iterdir()) == [
            "index.meta.json",
            "index.rec",
        ]
        assert (tmp_path / "index.rec").read_text() == "2"

    @pytest.mark.unit
    def test_tuning_mapping_is_validated(self, tmp_path, recording_backend):
        manager = SearchIndexManager(tmp_path, backend=recording_backend)
        manager.create_index(8, {"index_type": "IVF16,Flat", "index_gpuid": 1})
        tuning = manager.index.tuning
        assert isinstance(tuning, IndexTuning)
        assert tuning.index_type == "IVF16,Flat"
        assert tuning.index_gpuid == [1]

    @pytest.mark.unit
    def test_preload_forwarded(self, tmp_path, recording_backend):
        """The repository preload flag fills an unset tuning preload."""
        manager = SearchIndexManager(tmp_path, backend=recording_backend, preload=True)
        manager.create_index(8)
        assert manager.index.tuning.preload is True

    @pytest.mark.unit
    def test_explicit_preload_wins(self, tmp_path, recording_backend):
        manager = SearchIndexManager(tmp_path, backend=recording_backend, preload=True)
        manager.create_index(8, IndexTuning(preload=False))
        assert manager.index.tuning.preload is False


class TestBuildAndRemove:
    """Tests for build/rebuild/remove transitions."""

    @pytest.mark.unit
    def test_build_then_rebuild(self, tmp_path, recording_backend, sample_vectors):
        vectors, ids = sample_vectors
        manager = SearchIndexManager(tmp_path, backend=recording_backend)
        manager.create_index(16)

        manager.add(vectors[:5], ids[:5])
        manager.build()
        assert manager.state == IndexState.BUILT
        assert manager.index.size == 5

        manager.add(vectors[5:], ids[5:])
        manager.rebuild()
        assert manager.state == IndexState.BUILT
        assert manager.index.size == 10

    @pytest.mark.unit
    def test_search_after_build(self, tmp_path, recording_backend, sample_vectors):
        vectors, ids = sample_vectors
        manager = SearchIndexManager(tmp_path, backend=recording_backend)
        manager.create_index(16)
        manager.add(vectors, ids)
        manager.build()

        results = manager.search(vectors[3], k=3)
        assert len(results) == 3
        assert results[0].id == "item_3"
        assert results[0].rank == 0
        assert results[0].score == pytest.approx(1.0, abs=1e-5)

    @pytest.mark.unit
    def test_remove_deletes_artifacts(self, tmp_path, recording_backend):
        manager = SearchIndexManager(tmp_path, backend=recording_backend)
        manager.create_index(4)
        manager.add(np.eye(4, dtype=np.float32), list("abcd"))
        manager.build()
        assert (tmp_path / "index.rec").exists()

        manager.remove()
        assert manager.state == IndexState.UNINITIALIZED
        assert not (tmp_path / "index.rec").exists()
        assert not (tmp_path / "index.meta.json").exists()

    @pytest.mark.unit
    def test_create_after_remove_reuses_object(self, tmp_path, recording_backend):
        manager = SearchIndexManager(tmp_path, backend=recording_backend)
        manager.create_index(4)
        first = manager.index
        manager.remove()
        manager.create_index(4)

        assert manager.index is first
        assert manager.state == IndexState.CREATED
        assert first.calls == [
            "apply_tuning",
            "create_index",
            "remove_index",
            "create_index",
        ]

    @pytest.mark.unit
    def test_build_after_remove_reopens_first(self, tmp_path, recording_backend):
        """Build after remove recreates the native index before updating."""
        manager = SearchIndexManager(tmp_path, backend=recording_backend)
        manager.create_index(4)
        manager.add(np.eye(4, dtype=np.float32), list("abcd"))
        manager.build()
        index = manager.index
        manager.remove()

        manager.add(np.eye(4, dtype=np.float32)[:1], ["e"])
        manager.build()

        assert manager.state == IndexState.BUILT
        assert index.calls[-3:] == ["remove_index", "create_index", "update_index"]
        assert (tmp_path / "index.rec").read_text() == "1"

    @pytest.mark.unit
    def test_close_releases_index(self, tmp_path, recording_backend):
        manager = SearchIndexManager(tmp_path, backend=recording_backend)
        manager.create_index(4)
        manager.close()
        assert manager.index is None
        assert manager.state == IndexState.UNINITIALIZED


class TestBackendSelection:
    """Tests for resolving the configured backend."""

    @pytest.mark.unit
    def test_none_resolves_to_disabled(self):
        assert get_backend_class(SearchBackendType.NONE) is None

    @pytest.mark.unit
    def test_unknown_backend_rejected(self):
        with pytest.raises(ValueError, match="Unknown search backend"):
            get_backend_class("hnsw")

    @pytest.mark.unit
    def test_names_resolve_lazily(self):
        """Resolving a class does not need the index library installed."""
        assert get_backend_class("faiss").__name__ == "FaissBackend"
        assert get_backend_class("annoy").__name__ == "AnnoyBackend"

    @pytest.mark.unit
    def test_manager_uses_process_backend(self, tmp_path, monkeypatch):
        monkeypatch.setenv("MODELREPO_SEARCH_BACKEND", "none")
        get_search_backend.cache_clear()
        try:
            manager = SearchIndexManager(tmp_path)
            assert manager.enabled is False
        finally:
            get_search_backend.cache_clear()
