"""Class index to label correspondence table."""

import logging
from collections.abc import Iterator, Mapping
from pathlib import Path
from types import MappingProxyType

from modelrepo.core import get_logger

_logger = get_logger("repository.correspondence")


class CorrespondenceTable(Mapping[int, str]):
    """Read-only mapping from output class index to human readable label.

    The table is built once from a text file with one ``"<index> <label>"``
    entry per line. Lookups through :meth:`label` never fail: an index
    without an entry is rendered as its decimal string.

    Example:
        >>> table = CorrespondenceTable({3: "cat", 5: "dog"})
        >>> table.label(3), table.label(7)
        ('cat', '7')
    """

    def __init__(self, entries: Mapping[int, str] | None = None):
        self._entries = MappingProxyType(dict(entries or {}))

    @classmethod
    def load(
        cls,
        path: str | Path | None,
        logger: logging.Logger | None = None,
    ) -> "CorrespondenceTable":
        """Load a table from a correspondence file.

        An empty path means no correspondence is configured. A file that
        cannot be read is logged and yields an empty table, since labels
        fall back to the index itself.

        Args:
            path: Correspondence file, or None/"" when not configured.
            logger: Logger for read problems.

        Returns:
            Populated (possibly empty) table.
        """
        logger = logger or _logger
        if not path:
            return cls()

        try:
            text = Path(path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"cannot open model corresp file={path}: {e}")
            return cls()

        return cls.parse(text, logger=logger)

    @classmethod
    def parse(
        cls,
        text: str,
        logger: logging.Logger | None = None,
    ) -> "CorrespondenceTable":
        """Build a table from correspondence file contents.

        Each line is split at its first space: the left part is the integer
        index and the remainder is the label. Lines with an empty index are
        skipped, as are indexes that are not integers.
        """
        logger = logger or _logger
        entries: dict[int, str] = {}
        for line in text.splitlines():
            key, sep, label = line.partition(" ")
            if not key:
                continue
            if not sep:
                label = line
            try:
                index = int(key)
            except ValueError:
                logger.warning(f"skipping corresp line with invalid index: {line!r}")
                continue
            entries[index] = label
        return cls(entries)

    def label(self, index: int) -> str:
        """Return the label for ``index``, or the index as a string."""
        return self._entries.get(index, str(index))

    def __getitem__(self, index: int) -> str:
        return self._entries[index]

    def __iter__(self) -> Iterator[int]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"CorrespondenceTable({len(self)} entries)"


__all__ = ["CorrespondenceTable"]
