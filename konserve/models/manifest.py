"""Manifest models — the path map embedded in every archive."""

from __future__ import annotations

from dataclasses import dataclass, field

MANIFEST_NAME = "fingerprint.txt"


@dataclass(frozen=True)
class ManifestRecord:
    """One archived file and where it came from."""

    archive_relative_path: str  # '/'-separated, no leading slash
    original_source_path: str  # Absolute path at backup time, uncorrected

    @property
    def segments(self) -> list[str]:
        return [s for s in self.archive_relative_path.split("/") if s]


@dataclass
class Manifest:
    """Fingerprint plus ordered records. ``warnings`` is filled by the decoder only."""

    fingerprint: str | None = None
    records: list[ManifestRecord] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list, compare=False)

    def __len__(self) -> int:
        return len(self.records)
