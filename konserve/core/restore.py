"""Restore executor — extract the selected part of an archive to corrected paths."""

from __future__ import annotations

import tarfile
import zipfile
import zlib
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING, Callable

from loguru import logger

from konserve.core.container import ArchiveContainer
from konserve.core.path_corrector import correct
from konserve.errors import RestoreCancelled
from konserve.models.reports import ItemIssue, RestoreReport

if TYPE_CHECKING:
    from konserve.config import Config
    from konserve.core.reader import OpenedArchive

ProgressFn = Callable[[int, int], None]
CancelFn = Callable[[], bool]

_EXTRACT_ERRORS = (OSError, KeyError, tarfile.TarError, zipfile.BadZipFile, zlib.error, EOFError)


class ConflictMode(StrEnum):
    """What to do when a destination file already exists."""

    OVERWRITE = "overwrite"
    SKIP = "skip"
    RENAME = "rename"


@dataclass
class PlannedFile:
    """One selected file and where it will land."""

    archive_relative_path: str
    original_source_path: str
    destination: Path
    exists_locally: bool = False


def renamed_destination(destination: Path) -> Path:
    """First free ``name (restored[ n]).ext`` next to ``destination``."""
    n = 1
    while True:
        tag = "restored" if n == 1 else f"restored {n}"
        candidate = destination.with_name(f"{destination.stem} ({tag}){destination.suffix}")
        if not candidate.exists():
            return candidate
        n += 1


class RestoreExecutor:
    """Walks the restore tree and extracts every selected file, one at a time."""

    def __init__(self, conflict_mode: ConflictMode = ConflictMode.OVERWRITE) -> None:
        self._conflict_mode = conflict_mode

    @property
    def conflict_mode(self) -> ConflictMode:
        return self._conflict_mode

    @classmethod
    def from_config(cls, config: Config) -> RestoreExecutor:
        raw = config.get("conflict_resolution_mode", ConflictMode.OVERWRITE)
        try:
            mode = ConflictMode(raw)
        except ValueError:
            logger.warning(f"Unknown conflict_resolution_mode '{raw}', using overwrite")
            mode = ConflictMode.OVERWRITE
        return cls(mode)

    def plan(self, opened: OpenedArchive, current_username: str) -> list[PlannedFile]:
        """Preview the selected files in depth-first order with their corrected destinations."""
        planned: list[PlannedFile] = []
        for node in opened.tree.selected_files():
            source = node.original_source_path or ""
            destination = Path(correct(source, current_username))
            planned.append(
                PlannedFile(
                    archive_relative_path=node.archive_relative_path,
                    original_source_path=source,
                    destination=destination,
                    exists_locally=destination.exists(),
                )
            )
        return planned

    def restore(
        self,
        opened: OpenedArchive,
        current_username: str,
        progress: ProgressFn | None = None,
        cancelled: CancelFn | None = None,
    ) -> RestoreReport:
        """
        Extract every selected file of ``opened.tree``.

        A failing file is recorded in ``RestoreReport.failures`` and the
        run moves on to the next one.  ``cancelled`` is polled between
        files; when it returns true ``RestoreCancelled`` is raised carrying
        the partial report.  Files already written stay in place.
        """
        planned = self.plan(opened, current_username)
        report = RestoreReport(total=len(planned))

        with ArchiveContainer.open(opened.path) as container:
            for done, item in enumerate(planned, start=1):
                if cancelled is not None and cancelled():
                    logger.info(f"Restore cancelled after {report.attempted} of {report.total} file(s)")
                    raise RestoreCancelled(report)
                self._restore_one(container, item, report)
                if progress is not None:
                    progress(done, report.total)

        logger.info(
            f"Restored {len(report.restored)} of {report.total} file(s) from "
            f"{opened.path.name}, {len(report.skipped)} skipped, "
            f"{len(report.failures)} failed"
        )
        return report

    def _restore_one(
        self, container: ArchiveContainer, item: PlannedFile, report: RestoreReport,
    ) -> None:
        destination = item.destination
        if not destination.name:
            logger.error(f"Cannot restore {item.archive_relative_path}: {destination} is not a file path")
            report.failures.append(ItemIssue(str(destination), "not a file path"))
            return
        if destination.exists():
            if self._conflict_mode is ConflictMode.SKIP:
                logger.debug(f"Skipping existing {destination}")
                report.skipped.append(ItemIssue(str(destination), "already exists"))
                return
            if self._conflict_mode is ConflictMode.RENAME:
                destination = renamed_destination(destination)

        tmp = destination.with_name(destination.name + ".konserve-tmp")
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            container.extract_to(item.archive_relative_path, tmp)
            tmp.replace(destination)
        except _EXTRACT_ERRORS as e:
            reason = e.strerror if isinstance(e, OSError) and e.strerror else str(e)
            if isinstance(e, KeyError):
                reason = "missing from archive"
            logger.error(f"Failed to restore {destination}: {reason}")
            report.failures.append(ItemIssue(str(destination), reason))
            if tmp.is_file():
                tmp.unlink()
            return

        logger.debug(f"Restored {item.archive_relative_path} -> {destination}")
        report.restored.append(str(destination))
