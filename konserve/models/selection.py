"""Selection set models — what the user chose to back up."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class SelectionEntry:
    """One file or directory root chosen for backup."""

    source_path: Path
    is_directory: bool = False

    @classmethod
    def from_path(cls, path: str | Path) -> SelectionEntry:
        """Build an entry, taking ``is_directory`` from the filesystem."""
        p = Path(path).absolute()
        return cls(source_path=p, is_directory=p.is_dir())