"""Operation report models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path


@dataclass(frozen=True)
class ItemIssue:
    """A single item-level problem, recovered locally and reported."""

    path: str
    reason: str

    def __str__(self) -> str:
        return f"{self.path}: {self.reason}"


@dataclass
class BuildReport:
    """Result of a successful backup build."""

    archive_path: Path
    started_at: datetime
    files_archived: int = 0
    total_bytes: int = 0
    warnings: list[ItemIssue] = field(default_factory=list)

    @property
    def outcome(self) -> str:
        return "partial" if self.warnings else "success"


@dataclass
class RestoreReport:
    """Result of a restore run. Empty ``failures`` means every selected file landed."""

    total: int = 0
    restored: list[str] = field(default_factory=list)
    skipped: list[ItemIssue] = field(default_factory=list)
    failures: list[ItemIssue] = field(default_factory=list)

    @property
    def attempted(self) -> int:
        return len(self.restored) + len(self.skipped) + len(self.failures)

    @property
    def outcome(self) -> str:
        return "partial" if self.failures or self.skipped else "success"
