"""Class label table loaded from an optional plain-text file."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LabelTable:
    """Ordered class names; position ``i`` names model output class ``i``."""

    labels: tuple[str, ...] = ()

    @classmethod
    def from_lines(cls, lines: Iterable[str]) -> LabelTable:
        """Build a table from raw lines, stripping whitespace and dropping blank lines."""
        return cls(tuple(stripped for line in lines if (stripped := line.strip())))

    def lookup(self, index: int) -> str:
        """Return the label for ``index``, or a ``class_<index>`` placeholder past the end."""
        if 0 <= index < len(self.labels):
            return self.labels[index]
        return f"class_{index}"

    def __len__(self) -> int:
        return len(self.labels)

    def __iter__(self) -> Iterator[str]:
        return iter(self.labels)


def load_labels(source: str | Path | None) -> LabelTable:
    """Load a label table from ``source``, one label per line.

    A missing source, an unreadable file, or a file without any non-blank
    lines all yield an empty table. Nothing is raised.
    """
    if source is None:
        return LabelTable()

    path = Path(source)
    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning("Could not read labels from %s (%s); using class index placeholders", path, exc)
        return LabelTable()

    table = LabelTable.from_lines(content.splitlines())
    if not table:
        logger.warning("Label file %s has no labels; using class index placeholders", path)
    else:
        logger.info("Loaded %d labels from %s", len(table), path)
    return table
