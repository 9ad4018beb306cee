"""Model archive installation.

Stages an initialization archive inside a repository and extracts it:
- Archives already present in the repository are reused, not fetched again
- http(s) archives are streamed with httpx and a tqdm progress bar
- file:// archives are copied from the local filesystem
- tar (any compression tarfile understands) and zip archives are extracted
"""

import logging
import sys
import tarfile
import zipfile
from pathlib import Path
from urllib.parse import urlparse
from urllib.request import url2pathname

import httpx
from tqdm import tqdm

from modelrepo.config import get_fetch_timeout, get_show_progress
from modelrepo.core import get_logger

from .errors import ArchiveFetchError, ArchiveInstallError, UnsupportedPlatformError
from .types import CHUNK_SIZE, FETCH_SCHEMES, FETCH_UNSUPPORTED_PLATFORMS

_logger = get_logger("repository.archive")


def archive_basename(locator: str) -> str:
    """Return the archive file name: everything after the last ``/``."""
    return locator[locator.rfind("/") + 1 :]


def is_fetchable(locator: str) -> bool:
    """Check whether the locator must be fetched before extraction."""
    return locator.startswith(FETCH_SCHEMES)


def extract_archive(
    archive_path: Path,
    extract_dir: Path,
    logger: logging.Logger | None = None,
) -> None:
    """Extract an archive into a directory.

    Existing files are overwritten, so extracting the same archive twice
    leaves the directory as a single extraction would.

    Args:
        archive_path: Path to the archive file.
        extract_dir: Directory to extract contents into.
        logger: Logger for progress messages.

    Raises:
        ArchiveInstallError: If the archive is missing, of an unsupported
            format, or extraction fails.
    """
    logger = logger or _logger
    logger.info(f"Extracting {archive_path.name} into {extract_dir}")

    try:
        if tarfile.is_tarfile(archive_path):
            with tarfile.open(archive_path, "r:*") as tar:
                tar.extractall(path=extract_dir, filter="data")
        elif zipfile.is_zipfile(archive_path):
            with zipfile.ZipFile(archive_path, "r") as zf:
                zf.extractall(path=extract_dir)
        else:
            raise ArchiveInstallError(
                str(archive_path), reason="unsupported archive format"
            )
    except ArchiveInstallError:
        logger.error(f"Unsupported archive format: {archive_path}")
        raise
    except (OSError, tarfile.TarError, zipfile.BadZipFile) as e:
        logger.error(f"Failed extracting {archive_path}: {e}")
        raise ArchiveInstallError(str(archive_path), reason=str(e)) from e

    logger.info(f"Extracted to {extract_dir}")


class ArchiveInstaller:
    """Installs a model archive into a repository directory.

    Fetching (when needed) strictly precedes extraction. An archive whose
    file name is already present in the repository is treated as staged and
    reused, but is still extracted on every install.

    Example:
        >>> installer = ArchiveInstaller(Path("models/resnet"))
        >>> installer.install("https://example.com/models/resnet.tar.gz")

    Attributes:
        repository: Destination directory.
        timeout: HTTP timeout in seconds (None disables it).
        show_progress: Display a progress bar while downloading.
    """

    def __init__(
        self,
        repository: Path,
        client: httpx.Client | None = None,
        timeout: float | None = None,
        show_progress: bool | None = None,
        logger: logging.Logger | None = None,
    ):
        """Initialize the installer.

        Args:
            repository: Directory that receives the archive contents.
            client: HTTP client to use. A client is created per fetch when
                omitted.
            timeout: HTTP timeout in seconds. Defaults to
                MODELREPO_FETCH_TIMEOUT.
            show_progress: Override MODELREPO_SHOW_PROGRESS.
            logger: Logger for progress and error messages.
        """
        self.repository = Path(repository)
        self.timeout = timeout if timeout is not None else get_fetch_timeout()
        self.show_progress = get_show_progress(override=show_progress)
        self._client = client
        self._logger = logger or _logger

    def install(self, locator: str) -> Path:
        """Stage and extract the archive identified by ``locator``.

        Args:
            locator: URL (http, https, file) or local path of the archive.

        Returns:
            Path of the archive that was extracted.

        Raises:
            UnsupportedPlatformError: If fetching is not supported here.
            ArchiveFetchError: If the archive cannot be fetched.
            ArchiveInstallError: If extraction fails.
        """
        staged = self.repository / archive_basename(locator)
        if staged.is_file():
            self._logger.warning(
                f"Init model {staged} is already in directory, not fetching it"
            )
            archive = staged
        elif is_fetchable(locator):
            self.fetch(locator, staged)
            archive = staged
        else:
            archive = Path(locator)

        extract_archive(archive, self.repository, self._logger)
        return archive

    def fetch(self, locator: str, dest_path: Path) -> None:
        """Fetch an archive and write its bytes verbatim to ``dest_path``.

        Raises:
            UnsupportedPlatformError: On platforms without fetch support.
            ArchiveFetchError: On malformed URLs, non-success status or
                transport errors.
        """
        if sys.platform in FETCH_UNSUPPORTED_PLATFORMS:
            self._logger.error(f"Fetching model archive {locator} not supported")
            raise UnsupportedPlatformError(locator, sys.platform)

        self._logger.info(f"Downloading init model {locator}")
        if locator.startswith("file://"):
            self._copy_local(locator, dest_path)
        else:
            self._download(locator, dest_path)
        self._logger.info(f"Downloaded to {dest_path}")

    def _copy_local(self, locator: str, dest_path: Path) -> None:
        """Read a file:// archive and stage a copy of it."""
        source = Path(url2pathname(urlparse(locator).path))
        try:
            content = source.read_bytes()
        except OSError as e:
            self._logger.error(f"failed fetching model archive: {locator}: {e}")
            raise ArchiveFetchError(locator) from e
        try:
            dest_path.write_bytes(content)
        except OSError as e:
            dest_path.unlink(missing_ok=True)
            self._logger.error(f"failed staging model archive {dest_path}: {e}")
            raise ArchiveFetchError(locator) from e

    def _download(self, locator: str, dest_path: Path) -> None:
        """Stream an http(s) archive to disk with a progress bar."""
        status_code = -1
        client = self._client or httpx.Client(
            timeout=self.timeout, follow_redirects=True
        )
        try:
            with client.stream("GET", locator) as response:
                status_code = response.status_code
                if not response.is_success:
                    raise ArchiveFetchError(locator, status_code)

                total_size = response.headers.get("Content-Length")
                with (
                    tqdm(
                        total=int(total_size) if total_size else None,
                        unit="B",
                        unit_scale=True,
                        unit_divisor=1024,
                        desc=f"[{dest_path.name}]",
                        ncols=80,
                        disable=not self.show_progress,
                    ) as pbar,
                    open(dest_path, "wb") as f,
                ):
                    for chunk in response.iter_bytes(CHUNK_SIZE):
                        f.write(chunk)
                        pbar.update(len(chunk))
        except ArchiveFetchError as e:
            self._logger.error(str(e))
            raise
        except (httpx.HTTPError, httpx.InvalidURL, ValueError, OSError) as e:
            # Clean up partial download
            dest_path.unlink(missing_ok=True)
            error = ArchiveFetchError(locator, status_code)
            self._logger.error(f"{error}: {e}")
            raise error from e
        finally:
            if self._client is None:
                client.close()


__all__ = [
    "ArchiveInstaller",
    "archive_basename",
    "extract_archive",
    "is_fetchable",
]
