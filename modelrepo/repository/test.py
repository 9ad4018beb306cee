"""Unit tests for model repository initialization."""

import json
import logging
import shutil
import sys

import httpx
import pytest

from modelrepo.repository import (
    ArchiveFetchError,
    ArchiveInstaller,
    ArchiveInstallError,
    BadParameterError,
    ConfigConversionError,
    ConfigParseError,
    CorrespondenceTable,
    ModelRepository,
    RepositoryConflictError,
    RepositoryNotWritableError,
    RepositorySettings,
    UnsupportedPlatformError,
    archive_basename,
    extract_archive,
    init_repository_dir,
    is_fetchable,
    load_config_overlay,
    merge_parameters,
)


def _write_config(repository, payload) -> None:
    text = payload if isinstance(payload, str) else json.dumps(payload)
    (repository / "config.json").write_text(text)


# =============================================================================
# Directory Initialization
# =============================================================================


class TestInitRepositoryDir:
    """Tests for directory validation and creation."""

    @pytest.mark.unit
    def test_file_in_the_way_is_conflict(self, tmp_path):
        target = tmp_path / "model"
        target.write_text("not a directory")
        with pytest.raises(RepositoryConflictError, match="file exists with same name"):
            init_repository_dir(RepositorySettings(repository=target))

    @pytest.mark.unit
    def test_conflict_is_bad_parameter(self, tmp_path):
        target = tmp_path / "model"
        target.write_text("x")
        with pytest.raises(BadParameterError):
            init_repository_dir(
                RepositorySettings(repository=target, create_repository=True)
            )

    @pytest.mark.unit
    def test_creates_with_group_writable_mode(self, tmp_path):
        target = tmp_path / "nested" / "model"
        path = init_repository_dir(
            RepositorySettings(repository=target, create_repository=True)
        )
        assert path == target
        assert target.is_dir()
        assert target.stat().st_mode & 0o777 == 0o775

    @pytest.mark.unit
    def test_missing_without_create_is_not_writable(self, tmp_path):
        target = tmp_path / "absent"
        with pytest.raises(RepositoryNotWritableError, match="is not writable"):
            init_repository_dir(RepositorySettings(repository=target))
        assert not target.exists()

    @pytest.mark.unit
    def test_existing_directory_is_accepted(self, tmp_path):
        assert init_repository_dir(RepositorySettings(repository=tmp_path)) == tmp_path


# =============================================================================
# Correspondence
# =============================================================================


class TestCorrespondenceTable:
    """Tests for class index to label lookups."""

    @pytest.mark.unit
    def test_labels_and_fallback(self, tmp_path):
        corresp = tmp_path / "corresp.txt"
        corresp.write_text("3 cat\n5 dog\n")
        table = CorrespondenceTable.load(corresp)
        assert table.label(3) == "cat"
        assert table.label(5) == "dog"
        assert table.label(7) == "7"
        assert len(table) == 2

    @pytest.mark.unit
    def test_label_keeps_inner_spaces(self):
        table = CorrespondenceTable.parse("1 golden retriever\n")
        assert table[1] == "golden retriever"

    @pytest.mark.unit
    def test_line_without_space_maps_to_itself(self):
        table = CorrespondenceTable.parse("12\n")
        assert table[12] == "12"

    @pytest.mark.unit
    def test_blank_and_invalid_lines_skipped(self, caplog):
        with caplog.at_level(logging.WARNING):
            table = CorrespondenceTable.parse("\n cat\nbird 4\n2 owl\n")
        assert dict(table) == {2: "owl"}
        assert "invalid index" in caplog.text

    @pytest.mark.unit
    def test_no_path_gives_empty_table(self):
        assert len(CorrespondenceTable.load(None)) == 0
        assert len(CorrespondenceTable.load("")) == 0

    @pytest.mark.unit
    def test_unreadable_file_gives_empty_table(self, tmp_path, caplog):
        with caplog.at_level(logging.WARNING):
            table = CorrespondenceTable.load(tmp_path / "missing.txt")
        assert len(table) == 0
        assert table.label(0) == "0"
        assert "cannot open model corresp file" in caplog.text

    @pytest.mark.unit
    def test_table_is_read_only(self):
        table = CorrespondenceTable({1: "a"})
        with pytest.raises(TypeError):
            table[2] = "b"


# =============================================================================
# Config Overlay
# =============================================================================


class TestConfigOverlay:
    """Tests for merging config.json into caller parameters."""

    @pytest.mark.unit
    def test_merges_parameters_namespace(self, tmp_path):
        _write_config(tmp_path, {"parameters": {"a": 1}})
        params = {"parameters": {"b": 2}, "other": {"c": 3}}

        assert load_config_overlay(tmp_path, params) is True
        assert params == {"parameters": {"a": 1, "b": 2}, "other": {"c": 3}}

    @pytest.mark.unit
    def test_persisted_leaves_win(self, tmp_path):
        _write_config(
            tmp_path, {"parameters": {"mllib": {"gpu": False, "nclasses": 10}}}
        )
        params = {"parameters": {"mllib": {"gpu": True, "batch_size": 4}}}
        load_config_overlay(tmp_path, params)
        assert params["parameters"]["mllib"] == {
            "gpu": False,
            "nclasses": 10,
            "batch_size": 4,
        }

    @pytest.mark.unit
    def test_missing_namespace_is_created(self, tmp_path):
        _write_config(tmp_path, {"parameters": {"a": 1}, "description": "x"})
        params = {}
        load_config_overlay(tmp_path, params)
        assert params == {"parameters": {"a": 1}}

    @pytest.mark.unit
    def test_absent_file_is_noop(self, tmp_path):
        params = {"parameters": {"b": 2}}
        assert load_config_overlay(tmp_path, params) is False
        assert params == {"parameters": {"b": 2}}

    @pytest.mark.unit
    def test_malformed_json_leaves_params_untouched(self, tmp_path, caplog):
        _write_config(tmp_path, '{"parameters": {"a": 1')
        params = {"parameters": {"b": 2}}
        with caplog.at_level(logging.ERROR):
            with pytest.raises(ConfigParseError) as exc_info:
                load_config_overlay(tmp_path, params)
        assert exc_info.value.raw == '{"parameters": {"a": 1'
        assert params == {"parameters": {"b": 2}}
        assert "parsing error" in caplog.text

    @pytest.mark.unit
    @pytest.mark.parametrize("value", [[1, 2], "text", None])
    def test_wrong_parameters_type_fails_conversion(self, tmp_path, value):
        _write_config(tmp_path, {"parameters": value})
        params = {"parameters": {"b": 2}}
        with pytest.raises(ConfigConversionError):
            load_config_overlay(tmp_path, params)
        assert params == {"parameters": {"b": 2}}

    @pytest.mark.unit
    def test_invalid_utf8_is_parse_error(self, tmp_path):
        (tmp_path / "config.json").write_bytes(b'{"parameters": {"a": "\xff"}}')
        params = {"parameters": {"b": 2}}
        with pytest.raises(ConfigParseError) as exc_info:
            load_config_overlay(tmp_path, params)
        assert "�" in exc_info.value.raw
        assert isinstance(exc_info.value, BadParameterError)
        assert params == {"parameters": {"b": 2}}

    @pytest.mark.unit
    def test_nan_literal_accepted(self, tmp_path):
        _write_config(tmp_path, '{"parameters": {"threshold": NaN}}')
        params = {}
        load_config_overlay(tmp_path, params)
        value = params["parameters"]["threshold"]
        assert value != value

    @pytest.mark.unit
    def test_merge_replaces_non_mapping_target(self):
        target = {"mllib": "flat"}
        merge_parameters(target, {"mllib": {"gpu": True}})
        assert target == {"mllib": {"gpu": True}}


# =============================================================================
# Archive Installation
# =============================================================================


class TestArchiveHelpers:
    """Tests for locator helpers and extraction."""

    @pytest.mark.unit
    def test_basename(self):
        assert archive_basename("https://host/a/b/model.tar.gz") == "model.tar.gz"
        assert archive_basename("model.zip") == "model.zip"

    @pytest.mark.unit
    def test_fetchable_schemes(self):
        assert is_fetchable("http://host/m.tar")
        assert is_fetchable("https://host/m.tar")
        assert is_fetchable("file:///tmp/m.tar")
        assert not is_fetchable("/tmp/m.tar")

    @pytest.mark.unit
    def test_extract_zip(self, tmp_path, model_zip):
        repo = tmp_path / "repo"
        repo.mkdir()
        extract_archive(model_zip, repo)
        assert (repo / "model.bin").read_bytes() == b"\x00weights\x01"

    @pytest.mark.unit
    def test_extract_twice_is_idempotent(self, tmp_path, model_tar):
        repo = tmp_path / "repo"
        repo.mkdir()
        extract_archive(model_tar, repo)
        first = sorted(p.name for p in repo.iterdir())
        extract_archive(model_tar, repo)
        assert sorted(p.name for p in repo.iterdir()) == first
        assert (repo / "corresp.txt").read_text() == "3 cat\n5 dog\n"

    @pytest.mark.unit
    def test_unsupported_format(self, tmp_path):
        bogus = tmp_path / "model.tar.gz"
        bogus.write_text("plain text")
        with pytest.raises(ArchiveInstallError, match="check 'init' argument"):
            extract_archive(bogus, tmp_path)

    @pytest.mark.unit
    def test_missing_archive(self, tmp_path):
        with pytest.raises(ArchiveInstallError):
            extract_archive(tmp_path / "absent.tar", tmp_path)


class TestArchiveInstaller:
    """Tests for staging and fetching init archives."""

    @pytest.fixture
    def repo(self, tmp_path):
        path = tmp_path / "repo"
        path.mkdir()
        return path

    @pytest.mark.unit
    def test_http_fetch_then_extract(self, repo, http_archive):
        client, transport = http_archive
        locator = "https://models.example.com/zoo/model.tar.gz"

        archive = ArchiveInstaller(repo, client=client, show_progress=False).install(
            locator
        )

        assert transport.requests == [locator]
        assert archive == repo / "model.tar.gz"
        assert archive.is_file()
        assert (repo / "model.bin").exists()

    @pytest.mark.unit
    def test_staged_archive_is_not_fetched(self, repo, model_tar, http_archive, caplog):
        client, transport = http_archive
        shutil.copy(model_tar, repo / "model.tar.gz")

        with caplog.at_level(logging.WARNING):
            ArchiveInstaller(repo, client=client, show_progress=False).install(
                "https://models.example.com/model.tar.gz"
            )

        assert transport.requests == []
        assert (repo / "model.bin").exists()
        assert "already in directory, not fetching it" in caplog.text

    @pytest.mark.unit
    def test_http_error_status(self, repo, http_status):
        client, _ = http_status(404)
        with pytest.raises(ArchiveFetchError, match="with code: 404") as exc_info:
            ArchiveInstaller(repo, client=client, show_progress=False).install(
                "https://models.example.com/missing.tar.gz"
            )
        assert exc_info.value.status_code == 404
        assert not (repo / "missing.tar.gz").exists()

    @pytest.mark.unit
    def test_transport_error_has_no_status(self, repo):
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with httpx.Client(transport=httpx.MockTransport(refuse)) as client:
            with pytest.raises(ArchiveFetchError) as exc_info:
                ArchiveInstaller(repo, client=client, show_progress=False).install(
                    "http://unreachable.example.com/model.tar.gz"
                )
        assert exc_info.value.status_code == -1
        assert not (repo / "model.tar.gz").exists()

    @pytest.mark.unit
    def test_malformed_url_is_fetch_error(self, repo):
        with pytest.raises(ArchiveFetchError) as exc_info:
            ArchiveInstaller(repo, show_progress=False).install(
                "http://exa mple.com:xx/model.tar.gz"
            )
        assert exc_info.value.status_code == -1
        assert not (repo / "model.tar.gz").exists()

    @pytest.mark.unit
    def test_file_url(self, repo, model_tar):
        archive = ArchiveInstaller(repo, show_progress=False).install(model_tar.as_uri())
        assert archive == repo / "model.tar.gz"
        assert archive.read_bytes() == model_tar.read_bytes()
        assert (repo / "model.bin").exists()

    @pytest.mark.unit
    def test_missing_file_url(self, repo, tmp_path):
        missing = (tmp_path / "nowhere.tar.gz").as_uri()
        with pytest.raises(ArchiveFetchError):
            ArchiveInstaller(repo, show_progress=False).install(missing)

    @pytest.mark.unit
    def test_local_path_extracted_in_place(self, repo, model_zip):
        archive = ArchiveInstaller(repo, show_progress=False).install(str(model_zip))
        assert archive == model_zip
        assert not (repo / "model.zip").exists()
        assert (repo / "model.bin").exists()

    @pytest.mark.unit
    def test_unsupported_platform(self, repo, http_archive, monkeypatch):
        client, transport = http_archive
        monkeypatch.setattr(sys, "platform", "win32")
        with pytest.raises(UnsupportedPlatformError, match="not implemented on win32"):
            ArchiveInstaller(repo, client=client, show_progress=False).install(
                "https://models.example.com/model.tar.gz"
            )
        assert transport.requests == []

    @pytest.mark.unit
    def test_timeout_from_environment(self, repo, monkeypatch):
        monkeypatch.setenv("MODELREPO_FETCH_TIMEOUT", "0")
        assert ArchiveInstaller(repo).timeout is None
        assert ArchiveInstaller(repo, timeout=5.0).timeout == 5.0


# =============================================================================
# ModelRepository
# =============================================================================


class TestModelRepository:
    """Tests for the full initialization sequence."""

    @pytest.mark.unit
    def test_init_archive_merges_config(self, tmp_path, model_tar):
        params = {"parameters": {"mllib": {"gpu": True}}, "output": {"best": 3}}
        repo = ModelRepository(
            {
                "repository": str(tmp_path / "repo"),
                "create_repository": True,
                "init": str(model_tar),
            },
            params,
            search_backend="none",
        )

        assert repo.path == tmp_path / "repo"
        assert repo.parameters is params
        assert params == {
            "parameters": {"mllib": {"gpu": True, "nclasses": 2}},
            "output": {"best": 3},
        }

    @pytest.mark.unit
    def test_config_ignored_without_init(self, tmp_path):
        _write_config(tmp_path, {"parameters": {"a": 1}})
        params = {"parameters": {"b": 2}}
        ModelRepository({"repository": tmp_path}, params, search_backend="none")
        assert params == {"parameters": {"b": 2}}

    @pytest.mark.unit
    def test_invalid_settings(self, tmp_path):
        with pytest.raises(BadParameterError, match="invalid repository parameters"):
            ModelRepository({"create_repository": True}, search_backend="none")

    @pytest.mark.unit
    def test_unknown_settings_keys_ignored(self, tmp_path):
        repo = ModelRepository(
            {"repository": tmp_path, "mllib": "caffe"}, search_backend="none"
        )
        assert repo.parameters == {}

    @pytest.mark.unit
    def test_correspondence_after_install(self, tmp_path, model_tar):
        repo = ModelRepository(
            RepositorySettings(
                repository=tmp_path / "repo",
                create_repository=True,
                init=str(model_tar),
            ),
            search_backend="none",
        )
        repo.read_correspondence(repo.path / repo.CORRESPONDENCE_FILENAME)
        assert repo.label(3) == "cat"
        assert repo.label(4) == "4"

        repo.read_correspondence("")
        assert repo.correspondence_path is None
        assert len(repo.correspondence) == 0

    @pytest.mark.unit
    def test_conventions(self, tmp_path):
        repo = ModelRepository.from_path(tmp_path, search_backend="none")
        assert repo.best_model_path == tmp_path / "best_model.txt"
        assert repo.TEMPLATE_ROOT == "templates/"
        assert repo.label(1) == "1"
        assert repr(repo) == f"ModelRepository(path={str(tmp_path)!r})"

    @pytest.mark.unit
    def test_from_path_runs_no_checks(self, tmp_path):
        repo = ModelRepository.from_path(tmp_path / "not-there", search_backend="none")
        assert not repo.path.exists()

    @pytest.mark.unit
    def test_index_preload_forwarded(self, tmp_path):
        repo = ModelRepository(
            {"repository": tmp_path, "index_preload": True}, search_backend="none"
        )
        assert repo.index_preload is True
        assert repo.search.preload is True

    @pytest.mark.unit
    def test_search_lifecycle_disabled(self, tmp_path):
        """Without a backend every index operation is a no-op."""
        with ModelRepository({"repository": tmp_path}, search_backend="none") as repo:
            repo.create_search_index(8)
            repo.build_search_index()
            repo.remove_search_index()
            assert repo.search.index is None
        assert list(tmp_path.iterdir()) == []

    @pytest.mark.unit
    def test_context_manager_closes_search(self, tmp_path, monkeypatch):
        repo = ModelRepository({"repository": tmp_path}, search_backend="none")
        closed = []
        monkeypatch.setattr(repo.search, "close", lambda: closed.append(True))
        with repo:
            pass
        assert closed
