"""Root pytest configuration and fixtures.

This module provides:
- Environment setup (loads .env)
- Isolation of MODELREPO_* settings between tests
"""

from __future__ import annotations

import os
from typing import Generator

import pytest
from dotenv import load_dotenv

from modelrepo.config import EnvVar, get_search_backend

# Load environment variables from .env file
load_dotenv()


# =============================================================================
# Environment Isolation
# =============================================================================


@pytest.fixture(autouse=True)
def isolated_environment(
    monkeypatch: pytest.MonkeyPatch,
) -> Generator[None, None, None]:
    """Run each test with MODELREPO_* variables unset.

    Values loaded from a developer's .env would otherwise leak into tests
    checking defaults. The cached search backend is reset on both sides.
    """
    for var in EnvVar:
        if var.value.name in os.environ:
            monkeypatch.delenv(var.value.name)
    get_search_backend.cache_clear()
    yield
    get_search_backend.cache_clear()
