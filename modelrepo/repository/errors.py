"""Errors raised while initializing a model repository.

Every error derives from BadParameterError so callers can treat a failed
initialization as a single bad-parameter failure and still inspect the
specific cause when needed.
"""


class BadParameterError(Exception):
    """Repository parameters cannot produce a usable repository."""


class RepositoryConflictError(BadParameterError):
    """A non-directory file occupies the repository path."""

    def __init__(self, path: str):
        super().__init__(f"file exists with same name as repository {path}")
        self.path = path


class RepositoryNotWritableError(BadParameterError):
    """The repository directory is missing or not writable."""

    def __init__(self, path: str):
        super().__init__(f"destination model directory {path} is not writable")
        self.path = path


class UnsupportedPlatformError(BadParameterError):
    """Remote archive fetch is not available on this platform."""

    def __init__(self, locator: str, platform: str):
        super().__init__(
            f"Fetching model archive: {locator} not implemented on {platform}"
        )
        self.locator = locator
        self.platform = platform


class ArchiveFetchError(BadParameterError):
    """Fetching the initialization archive failed."""

    def __init__(self, locator: str, status_code: int = -1):
        super().__init__(
            f"failed fetching model archive: {locator} with code: {status_code}"
        )
        self.locator = locator
        self.status_code = status_code


class ArchiveInstallError(BadParameterError):
    """Extracting the staged archive into the repository failed."""

    def __init__(self, archive: str, reason: str | None = None):
        message = "failed installing model from archive, check 'init' argument to model"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)
        self.archive = archive


class ConfigParseError(BadParameterError):
    """config.json exists but is not valid JSON."""

    def __init__(self, path: str, raw: str):
        super().__init__(f"Failed parsing config file {path}")
        self.path = path
        self.raw = raw


class ConfigConversionError(BadParameterError):
    """config.json is valid JSON but does not fit the parameter model."""

    def __init__(self, path: str, reason: str | None = None):
        message = "Failed converting JSON file to internal data format"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.path = path


__all__ = [
    "BadParameterError",
    "RepositoryConflictError",
    "RepositoryNotWritableError",
    "UnsupportedPlatformError",
    "ArchiveFetchError",
    "ArchiveInstallError",
    "ConfigParseError",
    "ConfigConversionError",
]
