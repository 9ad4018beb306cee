"""Model repository initialization and ownership.

A model repository is the directory holding one model's artifacts. Opening
one validates (or creates) the directory, optionally installs an archive
into it, merges its persisted configuration into the caller's parameters
and exposes the class correspondence table and similarity-search index
that belong to the model.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping, MutableMapping
from pathlib import Path
from typing import Any

import httpx
import numpy as np
from pydantic import ValidationError

from modelrepo.core import get_logger
from modelrepo.simsearch import IndexTuning, SearchBackendType, SearchIndexManager
from modelrepo.simsearch.backend import SearchBackend

from .archive import ArchiveInstaller
from .correspondence import CorrespondenceTable
from .errors import BadParameterError, RepositoryConflictError, RepositoryNotWritableError
from .overlay import load_config_overlay
from .types import DEFAULT_REPOSITORY_MODE, RepositorySettings

_logger = get_logger("repository")


def is_directory_writable(path: Path) -> bool:
    """Check that ``path`` is a directory the process can write into."""
    return path.is_dir() and os.access(path, os.W_OK | os.X_OK)


def init_repository_dir(
    settings: RepositorySettings,
    logger: logging.Logger | None = None,
    client: httpx.Client | None = None,
) -> Path:
    """Produce a validated, writable repository directory.

    Creation is best effort: a directory created here is left on disk even
    if a later step fails.

    Args:
        settings: Repository location, creation flag and init archive.
        logger: Logger for diagnostics.
        client: HTTP client used to fetch a remote init archive.

    Returns:
        The repository directory.

    Raises:
        RepositoryConflictError: If a non-directory file occupies the path.
        RepositoryNotWritableError: If the directory is missing or read-only.
        UnsupportedPlatformError: If the init archive cannot be fetched here.
        ArchiveFetchError: If fetching the init archive fails.
        ArchiveInstallError: If extracting the init archive fails.
    """
    logger = logger or _logger
    path = settings.repository

    if path.exists() and not path.is_dir():
        error = RepositoryConflictError(str(path))
        logger.error(str(error))
        raise error

    if not path.exists() and settings.create_repository:
        try:
            path.mkdir(mode=DEFAULT_REPOSITORY_MODE, parents=True)
            # mkdir mode is filtered by the umask
            path.chmod(DEFAULT_REPOSITORY_MODE)
        except OSError as e:
            logger.warning(f"failed creating model directory {path}: {e}")

    if not is_directory_writable(path):
        error = RepositoryNotWritableError(str(path))
        logger.error(str(error))
        raise error

    if settings.init:
        ArchiveInstaller(path, client=client, logger=logger).install(settings.init)

    return path


class ModelRepository:
    """On-disk repository owning one model's artifacts and metadata.

    Construction runs the whole initialization sequence: directory checks,
    optional archive install and, when an archive was requested, the merge
    of the repository's ``config.json`` into the caller's parameters. Any
    failure raises a :class:`BadParameterError` subclass.

    Example:
        >>> params = {"parameters": {"mllib": {"gpu": True}}}
        >>> repo = ModelRepository(
        ...     {"repository": "models/resnet", "create_repository": True,
        ...      "init": "https://example.com/resnet.tar.gz"},
        ...     params,
        ... )
        >>> repo.read_correspondence(repo.path / repo.CORRESPONDENCE_FILENAME)
        >>> repo.label(3)
        'cat'

    Attributes:
        path: Repository directory.
        parameters: Caller parameters with the persisted overlay merged in.
        correspondence: Class index to label table.
        correspondence_path: File the table is read from, if configured.
        index_preload: Preload the similarity-search index when opening it.
        search: Owner of the optional similarity-search index.
    """

    #: Root other subsystems resolve model templates from.
    TEMPLATE_ROOT = "templates/"
    #: Marker file naming the currently best model artifact.
    BEST_MODEL_FILENAME = "best_model.txt"
    #: Conventional correspondence file name inside the repository.
    CORRESPONDENCE_FILENAME = "corresp.txt"

    def __init__(
        self,
        settings: RepositorySettings | Mapping[str, Any],
        parameters: MutableMapping[str, Any] | None = None,
        *,
        search_backend: str | SearchBackendType | type[SearchBackend] | None = None,
        client: httpx.Client | None = None,
        logger: logging.Logger | None = None,
    ):
        """Initialize the repository.

        Args:
            settings: RepositorySettings or a mapping with the keys
                ``repository``, ``create_repository``, ``init`` and
                ``index_preload``.
            parameters: Caller's mutable parameter set receiving the
                persisted ``"parameters"`` overlay.
            search_backend: Override of the process-wide search backend.
            client: HTTP client used to fetch a remote init archive.
            logger: Logger for diagnostics.

        Raises:
            BadParameterError: If initialization fails.
        """
        self._logger = logger or _logger
        settings = self._validate_settings(settings)

        self.path = init_repository_dir(settings, self._logger, client)
        self.parameters: MutableMapping[str, Any] = (
            parameters if parameters is not None else {}
        )
        self.index_preload = settings.index_preload
        self.correspondence = CorrespondenceTable()
        self.correspondence_path: Path | None = None
        self.search = SearchIndexManager(
            self.path,
            backend=search_backend,
            preload=self.index_preload,
            logger=self._logger,
        )

        if settings.init:
            load_config_overlay(self.path, self.parameters, self._logger)

    @classmethod
    def from_path(
        cls,
        path: str | Path,
        *,
        search_backend: str | SearchBackendType | type[SearchBackend] | None = None,
        logger: logging.Logger | None = None,
    ) -> ModelRepository:
        """Bind to a repository directory without running initialization.

        Args:
            path: Repository directory.
            search_backend: Override of the process-wide search backend.
            logger: Logger for diagnostics.

        Returns:
            Repository with an empty correspondence table and no index.
        """
        instance = cls.__new__(cls)
        instance._logger = logger or _logger
        instance.path = Path(path)
        instance.parameters = {}
        instance.index_preload = False
        instance.correspondence = CorrespondenceTable()
        instance.correspondence_path = None
        instance.search = SearchIndexManager(
            instance.path, backend=search_backend, logger=instance._logger
        )
        return instance

    def _validate_settings(
        self, settings: RepositorySettings | Mapping[str, Any]
    ) -> RepositorySettings:
        if isinstance(settings, RepositorySettings):
            return settings
        try:
            return RepositorySettings.model_validate(dict(settings))
        except ValidationError as e:
            self._logger.error(f"invalid repository parameters: {e}")
            raise BadParameterError(f"invalid repository parameters: {e}") from e

    # -------------------------------------------------------------------------
    # Conventions
    # -------------------------------------------------------------------------

    @property
    def best_model_path(self) -> Path:
        """Path of the best-model marker file (not read or written here)."""
        return self.path / self.BEST_MODEL_FILENAME

    # -------------------------------------------------------------------------
    # Correspondence
    # -------------------------------------------------------------------------

    def read_correspondence(self, path: str | Path | None = None) -> CorrespondenceTable:
        """Load the correspondence table.

        Args:
            path: Correspondence file. Defaults to ``correspondence_path``;
                when neither is set the table stays empty.

        Returns:
            The loaded table, also stored on ``correspondence``.
        """
        if path is not None:
            self.correspondence_path = Path(path) if path else None
        self.correspondence = CorrespondenceTable.load(
            self.correspondence_path, self._logger
        )
        return self.correspondence

    def label(self, index: int) -> str:
        """Return the label of a class index, or the index as a string."""
        return self.correspondence.label(index)

    # -------------------------------------------------------------------------
    # Similarity search
    # -------------------------------------------------------------------------

    def create_search_index(
        self,
        dimension: int,
        tuning: IndexTuning | Mapping[str, Any] | None = None,
    ) -> None:
        """Create the similarity-search index once the dimension is known."""
        self.search.create_index(dimension, tuning)

    def build_search_index(self) -> None:
        """Build (or rebuild) the similarity-search index."""
        self.search.build()

    def remove_search_index(self) -> None:
        """Remove the similarity-search index artifacts."""
        self.search.remove()

    def add_to_search_index(self, vectors: np.ndarray, ids: list[str]) -> None:
        """Buffer vectors for the next index build."""
        self.search.add(vectors, ids)

    # -------------------------------------------------------------------------
    # Release
    # -------------------------------------------------------------------------

    def close(self) -> None:
        """Release the owned search index."""
        self.search.close()

    def __enter__(self) -> ModelRepository:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def __del__(self) -> None:
        """Release the search index when the repository goes away."""
        if hasattr(self, "search"):
            self.search.close()

    def __repr__(self) -> str:
        return f"ModelRepository(path={str(self.path)!r})"


__all__ = ["ModelRepository", "init_repository_dir", "is_directory_writable"]
