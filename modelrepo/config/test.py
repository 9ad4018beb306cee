"""Tests for configuration management."""

import pytest

from .lib import (
    EnvConfig,
    EnvVar,
    get_environment,
    get_environment_info,
    get_fetch_timeout,
    get_index_use_gpu,
    get_log_level,
    get_search_backend,
    get_show_progress,
    list_environment_variables,
)

# =============================================================================
# Tests for get_environment (main interface)
# =============================================================================


class TestGetEnvironment:
    """Tests for the unified get_environment interface."""

    @pytest.mark.unit
    def test_returns_default_when_not_set(self, monkeypatch):
        """Returns default value when env var is not set."""
        monkeypatch.delenv("MODELREPO_FETCH_TIMEOUT", raising=False)
        result = get_environment(EnvVar.FETCH_TIMEOUT)
        assert result == 300

    @pytest.mark.unit
    def test_override_takes_priority(self, monkeypatch):
        """Override parameter takes highest priority."""
        monkeypatch.setenv("MODELREPO_FETCH_TIMEOUT", "9999")
        result = get_environment(EnvVar.FETCH_TIMEOUT, override=5)
        assert result == 5

    @pytest.mark.unit
    def test_env_var_overrides_default(self, monkeypatch):
        """Environment variable overrides default value."""
        monkeypatch.setenv("MODELREPO_FETCH_TIMEOUT", "45")
        result = get_environment(EnvVar.FETCH_TIMEOUT)
        assert result == 45
        assert isinstance(result, int)

    @pytest.mark.unit
    def test_bool_type_conversion_true(self, monkeypatch):
        """Boolean type conversion for true values."""
        for value in ("true", "1", "yes", "TRUE", "Yes"):
            monkeypatch.setenv("MODELREPO_INDEX_USE_GPU", value)
            assert get_environment(EnvVar.INDEX_USE_GPU) is True

    @pytest.mark.unit
    def test_bool_type_conversion_false(self, monkeypatch):
        """Boolean type conversion for false values."""
        for value in ("false", "0", "no", "FALSE", "No"):
            monkeypatch.setenv("MODELREPO_INDEX_USE_GPU", value)
            assert get_environment(EnvVar.INDEX_USE_GPU) is False

    @pytest.mark.unit
    def test_unrecognized_bool_returns_default(self, monkeypatch):
        """Unrecognized boolean strings fall back to the default."""
        monkeypatch.setenv("MODELREPO_SHOW_PROGRESS", "maybe")
        assert get_environment(EnvVar.SHOW_PROGRESS) is True

    @pytest.mark.unit
    def test_invalid_int_returns_default(self, monkeypatch):
        """Invalid integer value returns default."""
        monkeypatch.setenv("MODELREPO_FETCH_TIMEOUT", "not-a-number")
        assert get_environment(EnvVar.FETCH_TIMEOUT) == 300


class TestGetEnvironmentInfo:
    """Tests for environment variable metadata."""

    @pytest.mark.unit
    def test_returns_env_config(self):
        """Returns EnvConfig dataclass."""
        info = get_environment_info(EnvVar.SEARCH_BACKEND)
        assert isinstance(info, EnvConfig)
        assert info.name == "MODELREPO_SEARCH_BACKEND"
        assert info.default == "faiss"
        assert info.var_type is str
        assert info.category == "search"

    @pytest.mark.unit
    def test_description_present(self):
        """Description field is populated."""
        info = get_environment_info(EnvVar.FETCH_TIMEOUT)
        assert "timeout" in info.description


class TestListEnvironmentVariables:
    """Tests for listing environment variables."""

    @pytest.mark.unit
    def test_returns_all_variables(self):
        """Returns all EnvVar members when no category."""
        result = list_environment_variables()
        assert len(result) == len(EnvVar)

    @pytest.mark.unit
    def test_filter_by_category(self):
        """Filters by category correctly."""
        fetch_vars = list_environment_variables("fetch")
        assert EnvVar.FETCH_TIMEOUT in fetch_vars
        assert EnvVar.SHOW_PROGRESS in fetch_vars
        assert EnvVar.SEARCH_BACKEND not in fetch_vars


# =============================================================================
# Tests for convenience functions
# =============================================================================


class TestSearchBackend:
    """Tests for the process-wide backend selection."""

    @pytest.mark.unit
    def test_default_is_faiss(self, monkeypatch):
        monkeypatch.delenv("MODELREPO_SEARCH_BACKEND", raising=False)
        get_search_backend.cache_clear()
        try:
            assert get_search_backend() == "faiss"
        finally:
            get_search_backend.cache_clear()

    @pytest.mark.unit
    def test_value_is_fixed_for_the_process(self, monkeypatch):
        """Changing the environment later does not switch the backend."""
        monkeypatch.setenv("MODELREPO_SEARCH_BACKEND", " Annoy ")
        get_search_backend.cache_clear()
        try:
            assert get_search_backend() == "annoy"
            monkeypatch.setenv("MODELREPO_SEARCH_BACKEND", "faiss")
            assert get_search_backend() == "annoy"
        finally:
            get_search_backend.cache_clear()


class TestFetchSettings:
    """Tests for download related settings."""

    @pytest.mark.unit
    def test_timeout_default(self, monkeypatch):
        monkeypatch.delenv("MODELREPO_FETCH_TIMEOUT", raising=False)
        assert get_fetch_timeout() == 300.0

    @pytest.mark.unit
    def test_zero_timeout_disables(self, monkeypatch):
        monkeypatch.setenv("MODELREPO_FETCH_TIMEOUT", "0")
        assert get_fetch_timeout() is None

    @pytest.mark.unit
    def test_show_progress_override(self, monkeypatch):
        monkeypatch.setenv("MODELREPO_SHOW_PROGRESS", "true")
        assert get_show_progress(override=False) is False


class TestMiscSettings:
    """Tests for GPU and log level settings."""

    @pytest.mark.unit
    def test_gpu_unset_is_none(self, monkeypatch):
        monkeypatch.delenv("MODELREPO_INDEX_USE_GPU", raising=False)
        assert get_index_use_gpu() is None

    @pytest.mark.unit
    def test_log_level_upper_cased(self, monkeypatch):
        monkeypatch.setenv("MODELREPO_LOG_LEVEL", "debug")
        assert get_log_level() == "DEBUG"
