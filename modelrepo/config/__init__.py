"""Centralized configuration management for modelrepo.

Provides unified access to all configuration via the `get_environment()` function.

Example:
    >>> from modelrepo.config import EnvVar, get_environment
    >>>
    >>> backend = get_environment(EnvVar.SEARCH_BACKEND)  # Returns str: "faiss"
    >>> timeout = get_environment(EnvVar.FETCH_TIMEOUT, override=30)

Environment Variable Categories:
    search: Similarity-search backend selection and GPU placement
    fetch: Archive download timeout and progress display
    logging: Log verbosity
"""

from .lib import (
    # Core types
    EnvConfig,
    EnvVar,
    # Main interface
    get_environment,
    get_environment_info,
    get_fetch_timeout,
    get_index_use_gpu,
    get_log_level,
    get_search_backend,
    get_show_progress,
    # Introspection
    list_environment_variables,
)

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
