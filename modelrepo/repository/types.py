"""Type definitions and constants for model repositories."""

from pathlib import Path

from pydantic import BaseModel, ConfigDict

# Permission bits for auto-created repositories (owner/group rwx, others rx)
DEFAULT_REPOSITORY_MODE = 0o775

# Files with a fixed name inside a repository
CONFIG_FILENAME = "config.json"
PARAMETERS_KEY = "parameters"

# Locator schemes that require fetching before extraction
FETCH_SCHEMES = ("http://", "https://", "file://")

# sys.platform values without archive fetch support
FETCH_UNSUPPORTED_PLATFORMS = ("win32",)

# Default chunk size for streaming downloads (8KB)
CHUNK_SIZE = 8192


class RepositorySettings(BaseModel):
    """Caller parameters describing where and how to set up a repository.

    Attributes:
        repository: Directory holding the model artifacts.
        create_repository: Create the directory when it does not exist.
        init: Archive locator (URL or path) to install into the repository.
        index_preload: Preload the similarity-search index when opening it.
    """

    repository: Path
    create_repository: bool = False
    init: str | None = None
    index_preload: bool = False

    model_config = ConfigDict(extra="ignore")


__all__ = [
    "RepositorySettings",
    "DEFAULT_REPOSITORY_MODE",
    "CONFIG_FILENAME",
    "PARAMETERS_KEY",
    "FETCH_SCHEMES",
    "FETCH_UNSUPPORTED_PLATFORMS",
    "CHUNK_SIZE",
]
