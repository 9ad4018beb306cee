"""Model repository module.

This module provides:
- ModelRepository: validated on-disk repository owning a model's artifacts
- ArchiveInstaller: fetch (http, https, file) and extract init archives
- Config overlay: merge of a repository's config.json into runtime parameters
- CorrespondenceTable: class index to label lookup

Example usage:
    >>> from modelrepo.repository import ModelRepository
    >>> params = {}
    >>> repo = ModelRepository(
    ...     {"repository": "models/resnet", "create_repository": True,
    ...      "init": "https://example.com/resnet.tar.gz"},
    ...     params,
    ... )
    >>> params["parameters"]
"""

from .archive import ArchiveInstaller, archive_basename, extract_archive, is_fetchable
from .correspondence import CorrespondenceTable
from .errors import (
    ArchiveFetchError,
    ArchiveInstallError,
    BadParameterError,
    ConfigConversionError,
    ConfigParseError,
    RepositoryConflictError,
    RepositoryNotWritableError,
    UnsupportedPlatformError,
)
from .lib import ModelRepository, init_repository_dir, is_directory_writable
from .overlay import ConfigDocument, load_config_overlay, merge_parameters
from .types import (
    CONFIG_FILENAME,
    DEFAULT_REPOSITORY_MODE,
    FETCH_UNSUPPORTED_PLATFORMS,
    RepositorySettings,
)

__all__ = [
    # Repository
    "ModelRepository",
    "RepositorySettings",
    "init_repository_dir",
    "is_directory_writable",
    # Archive install
    "ArchiveInstaller",
    "archive_basename",
    "extract_archive",
    "is_fetchable",
    # Config overlay
    "ConfigDocument",
    "load_config_overlay",
    "merge_parameters",
    # Correspondence
    "CorrespondenceTable",
    # Errors
    "BadParameterError",
    "RepositoryConflictError",
    "RepositoryNotWritableError",
    "UnsupportedPlatformError",
    "ArchiveFetchError",
    "ArchiveInstallError",
    "ConfigParseError",
    "ConfigConversionError",
    # Constants
    "CONFIG_FILENAME",
    "DEFAULT_REPOSITORY_MODE",
    "FETCH_UNSUPPORTED_PLATFORMS",
]
