"""Persisted configuration overlay.

A repository may carry a ``config.json`` whose ``"parameters"`` object is
merged into the caller's runtime parameters when the repository is
initialized from an archive.
"""

import json
import logging
from collections.abc import MutableMapping
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError

from modelrepo.core import get_logger

from .errors import ConfigConversionError, ConfigParseError
from .types import CONFIG_FILENAME, PARAMETERS_KEY

_logger = get_logger("repository.overlay")


class ConfigDocument(BaseModel):
    """Structure of a persisted ``config.json``.

    Only the ``parameters`` namespace is used; other top-level keys are
    accepted and ignored.
    """

    parameters: dict[str, Any] = {}

    model_config = ConfigDict(extra="ignore")


def read_config_document(
    path: Path,
    logger: logging.Logger | None = None,
) -> ConfigDocument:
    """Parse and convert a ``config.json`` file.

    Args:
        path: File to read.
        logger: Logger for diagnostics.

    Returns:
        Converted document.

    Raises:
        ConfigParseError: If the file cannot be read, is not UTF-8 or is
            not valid JSON.
        ConfigConversionError: If the JSON does not fit ConfigDocument.
    """
    logger = logger or _logger
    try:
        content = path.read_bytes()
    except OSError as e:
        logger.error(f"cannot read config file {path}: {e}")
        raise ConfigParseError(str(path), "") from e

    raw = content.decode("utf-8", errors="replace")
    try:
        # json accepts NaN / Infinity literals by default
        data = json.loads(content.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.error(f"config.json parsing error on string: {raw}")
        raise ConfigParseError(str(path), raw) from e

    try:
        return ConfigDocument.model_validate(data)
    except ValidationError as e:
        logger.error(f"JSON error {e}")
        raise ConfigConversionError(str(path), reason=str(e)) from e


def merge_parameters(
    target: MutableMapping[str, Any],
    overlay: dict[str, Any],
) -> None:
    """Recursively merge ``overlay`` into ``target``.

    Nested objects are merged key by key; any other overlay value replaces
    the target value.
    """
    for key, value in overlay.items():
        current = target.get(key)
        if isinstance(value, dict) and isinstance(current, MutableMapping):
            merge_parameters(current, value)
        else:
            target[key] = value


def load_config_overlay(
    repository: str | Path,
    parameters: MutableMapping[str, Any],
    logger: logging.Logger | None = None,
) -> bool:
    """Merge a repository's persisted parameters into ``parameters``.

    A missing ``config.json`` is normal for a fresh repository and is not
    an error. The target is only modified once the whole document parsed
    and converted successfully.

    Args:
        repository: Repository directory.
        parameters: Caller's mutable parameter set; its ``"parameters"``
            namespace receives the persisted values.
        logger: Logger for diagnostics.

    Returns:
        True if a config file was found and merged.

    Raises:
        ConfigParseError: If config.json is not valid JSON.
        ConfigConversionError: If config.json cannot be converted.
    """
    config_path = Path(repository) / CONFIG_FILENAME
    if not config_path.is_file():
        return False

    document = read_config_document(config_path, logger)

    namespace = parameters.get(PARAMETERS_KEY)
    if not isinstance(namespace, MutableMapping):
        namespace = {}
        parameters[PARAMETERS_KEY] = namespace
    merge_parameters(namespace, document.parameters)
    return True


__all__ = [
    "ConfigDocument",
    "read_config_document",
    "merge_parameters",
    "load_config_overlay",
]
