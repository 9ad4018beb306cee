"""Centralized environment configuration management for modelrepo.

Provides a unified interface for all environment variables with:
- Single `get_environment()` function for all configuration
- Type-safe enum with metadata (default, type, description)
- Consistent resolution: override > environment > default

Example:
    >>> from modelrepo.config import EnvVar, get_environment
    >>>
    >>> timeout = get_environment(EnvVar.FETCH_TIMEOUT)  # Returns int
    >>> backend = get_environment(EnvVar.SEARCH_BACKEND)  # Returns str
    >>>
    >>> # Override at runtime
    >>> timeout = get_environment(EnvVar.FETCH_TIMEOUT, override=30)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Any, overload

# =============================================================================
# Environment Variable Configuration
# =============================================================================


@dataclass(frozen=True)
class EnvConfig:
    """Metadata for an environment variable.

    Attributes:
        name: Environment variable name (e.g., "MODELREPO_FETCH_TIMEOUT").
        default: Default value if not set in environment.
        var_type: Python type for value conversion (str, int, bool, Path).
        description: Human-readable description.
        category: Grouping category for documentation.
    """

    name: str
    default: Any
    var_type: type
    description: str = ""
    category: str = "general"


class EnvVar(Enum):
    """All environment variables used by modelrepo.

    Each member contains an EnvConfig with name, default, type, and description.
    Use with `get_environment()` for type-safe access.

    Categories:
        - search: Similarity-search backend selection and placement
        - fetch: Remote archive download behaviour
        - logging: Log verbosity
    """

    # -------------------------------------------------------------------------
    # Similarity Search
    # -------------------------------------------------------------------------
    SEARCH_BACKEND = EnvConfig(
        name="MODELREPO_SEARCH_BACKEND",
        default="faiss",
        var_type=str,
        description="Similarity-search backend: 'faiss', 'annoy' or 'none'",
        category="search",
    )
    INDEX_USE_GPU = EnvConfig(
        name="MODELREPO_INDEX_USE_GPU",
        default=None,
        var_type=bool,
        description="Default GPU placement for FAISS indexes (None=per index)",
        category="search",
    )

    # -------------------------------------------------------------------------
    # Archive Fetch
    # -------------------------------------------------------------------------
    FETCH_TIMEOUT = EnvConfig(
        name="MODELREPO_FETCH_TIMEOUT",
        default=300,
        var_type=int,
        description="HTTP timeout in seconds for archive downloads (0=none)",
        category="fetch",
    )
    SHOW_PROGRESS = EnvConfig(
        name="MODELREPO_SHOW_PROGRESS",
        default=True,
        var_type=bool,
        description="Show a progress bar while downloading archives",
        category="fetch",
    )

    # -------------------------------------------------------------------------
    # Logging
    # -------------------------------------------------------------------------
    LOG_LEVEL = EnvConfig(
        name="MODELREPO_LOG_LEVEL",
        default="INFO",
        var_type=str,
        description="Log level name for setup_logging()",
        category="logging",
    )


# =============================================================================
# Type Conversion Helpers
# =============================================================================


def _parse_bool(value: str) -> bool | None:
    """Parse string to boolean.

    Recognizes: true/false, 1/0, yes/no (case-insensitive).
    Returns None for unrecognized values.
    """
    normalized = value.lower().strip()
    if normalized in ("true", "1", "yes"):
        return True
    if normalized in ("false", "0", "no"):
        return False
    return None


def _convert_value(value: str | None, var_type: type, default: Any) -> Any:
    """Convert string value to target type.

    Args:
        value: Raw string value from environment (or None).
        var_type: Target Python type.
        default: Default value if conversion fails or value is None.

    Returns:
        Converted value or default.
    """
    if value is None:
        return default

    if var_type is str:
        return value

    if var_type is int:
        try:
            return int(value)
        except ValueError:
            return default

    if var_type is bool:
        result = _parse_bool(value)
        return result if result is not None else default

    if var_type is Path:
        return Path(value)

    # Unknown type, return as-is
    return value


# =============================================================================
# Main Interface
# =============================================================================


@overload
def get_environment(env_var: EnvVar, override: int) -> int: ...
@overload
def get_environment(env_var: EnvVar, override: str) -> str: ...
@overload
def get_environment(env_var: EnvVar, override: bool) -> bool: ...
@overload
def get_environment(env_var: EnvVar, override: Path) -> Path: ...
@overload
def get_environment(env_var: EnvVar, override: None = None) -> Any: ...


def get_environment(env_var: EnvVar, override: Any = None) -> Any:
    """Get environment variable value with type conversion.

    Resolution priority:
        1. Explicit override parameter (highest)
        2. Environment variable value
        3. Default from EnvConfig (lowest)

    Args:
        env_var: Environment variable enum member.
        override: Optional override value (bypasses env lookup).

    Returns:
        Value converted to the appropriate type (str, int, bool, or Path).

    Example:
        >>> get_environment(EnvVar.FETCH_TIMEOUT)
        300
        >>> get_environment(EnvVar.FETCH_TIMEOUT, override=30)
        30
    """
    config: EnvConfig = env_var.value

    if override is not None:
        return override

    raw_value = os.environ.get(config.name)

    return _convert_value(raw_value, config.var_type, config.default)


def get_environment_info(env_var: EnvVar) -> EnvConfig:
    """Get metadata for an environment variable.

    Args:
        env_var: Environment variable enum member.

    Returns:
        EnvConfig with name, default, type, and description.
    """
    return env_var.value


# =============================================================================
# Convenience Functions
# =============================================================================


@lru_cache(maxsize=1)
def get_search_backend() -> str:
    """Get the similarity-search backend name for this process.

    Read once and cached: the backend is a deployment decision and is never
    switched while the process runs. Tests reset it with
    ``get_search_backend.cache_clear()``.

    Returns:
        Lower-cased backend name ("faiss", "annoy" or "none").
    """
    return str(get_environment(EnvVar.SEARCH_BACKEND)).strip().lower()


def get_index_use_gpu(override: bool | None = None) -> bool | None:
    """Get the default GPU placement for FAISS indexes.

    Resolution: override > MODELREPO_INDEX_USE_GPU > None (decide per index)
    """
    return get_environment(EnvVar.INDEX_USE_GPU, override=override)


def get_fetch_timeout(override: int | None = None) -> float | None:
    """Get the archive download timeout in seconds.

    Returns:
        Timeout in seconds, or None when disabled (0 or negative).
    """
    timeout = get_environment(EnvVar.FETCH_TIMEOUT, override=override)
    return float(timeout) if timeout and timeout > 0 else None


def get_show_progress(override: bool | None = None) -> bool:
    """Whether archive downloads display a progress bar."""
    return bool(get_environment(EnvVar.SHOW_PROGRESS, override=override))


def get_log_level(override: str | None = None) -> str:
    """Get the configured log level name."""
    return str(get_environment(EnvVar.LOG_LEVEL, override=override)).upper()


def list_environment_variables(category: str | None = None) -> list[EnvVar]:
    """List all environment variables, optionally filtered by category.

    Args:
        category: Filter by category (search, fetch, logging).
                 None returns all variables.

    Returns:
        List of EnvVar enum members.
    """
    if category is None:
        return list(EnvVar)

    return [var for var in EnvVar if var.value.category == category]


__all__ = [
    # Core types
    "EnvConfig",
    "EnvVar",
    # Main interface
    "get_environment",
    "get_environment_info",
    # Convenience functions
    "get_search_backend",
    "get_index_use_gpu",
    "get_fetch_timeout",
    "get_show_progress",
    "get_log_level",
    # Introspection
    "list_environment_variables",
]
