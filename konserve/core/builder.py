"""Archive builder — stage a selection set and write one timestamped archive."""

from __future__ import annotations

import os
import stat
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path, PurePath
from typing import TYPE_CHECKING, Callable, Iterable

from loguru import logger

from konserve.core import manifest_codec
from konserve.core.compression import CompressFn, backend_for, describe
from konserve.errors import BackendFailed, BuildCancelled, NothingToBackUp, OutputUnwritable
from konserve.models.manifest import MANIFEST_NAME, Manifest, ManifestRecord
from konserve.models.reports import BuildReport, ItemIssue
from konserve.utils import format_size

if TYPE_CHECKING:
    from konserve.config import Config
    from konserve.models.selection import SelectionEntry

ProgressFn = Callable[[int, int], None]
CancelFn = Callable[[], bool]


@dataclass(frozen=True)
class StagedFile:
    source: Path
    archive_name: str


def archive_filename(started_at: datetime, extension: str, n: int = 1) -> str:
    stem = f"backup_{started_at:%Y-%m-%d_%H-%M-%S}"
    if n > 1:
        stem = f"{stem}_{n}"
    return f"{stem}.{extension}"


def unique_top_name(name: str, is_dir: bool, taken: set[str]) -> str:
    """
    First claim on a name keeps it; later claims get ``_2``, ``_3``, ...

    Files keep their suffix (``notes_2.txt``).  Comparison is
    case-insensitive so archives extract cleanly on Windows.
    """
    candidate = name
    if is_dir:
        stem, suffix = name, ""
    else:
        pure = PurePath(name)
        stem, suffix = pure.stem, pure.suffix
    n = 1
    while candidate.casefold() in taken:
        n += 1
        candidate = f"{stem}_{n}{suffix}"
    taken.add(candidate.casefold())
    return candidate


class ArchiveBuilder:
    """Turns a selection set into ``backup_<date>_<time>.<ext>``."""

    def __init__(
        self,
        compress: CompressFn,
        extension: str = "tar",
        fingerprint: str | None = None,
        now: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._compress = compress
        self._extension = extension
        self._fingerprint = fingerprint
        self._now = now

    @classmethod
    def from_config(cls, config: Config, fingerprint: str | None) -> ArchiveBuilder:
        compress, extension = backend_for(config)
        return cls(compress, extension, fingerprint)

    # ── Public API ──

    def build(
        self,
        selection: Iterable[SelectionEntry],
        output_dir: Path,
        progress: ProgressFn | None = None,
        cancelled: CancelFn | None = None,
    ) -> BuildReport:
        """
        Build one archive from ``selection`` into ``output_dir``.

        Missing, unreadable, symlinked or special files are skipped and
        listed in ``BuildReport.warnings``.  Raises ``NothingToBackUp`` when
        nothing could be staged, ``OutputUnwritable`` when ``output_dir``
        cannot be created, ``BackendFailed`` on a non-zero backend status
        and ``BuildCancelled`` if ``cancelled()`` turns true before the
        backend runs.
        """
        started_at = self._now()
        report = BuildReport(archive_path=Path(), started_at=started_at)

        candidates = self._enumerate(selection, report.warnings)
        staged: list[StagedFile] = []
        total = len(candidates)

        for i, candidate in enumerate(candidates, start=1):
            if cancelled is not None and cancelled():
                logger.info(f"Backup cancelled after staging {len(staged)} file(s)")
                raise BuildCancelled(f"Cancelled after {i - 1} of {total} file(s)")
            try:
                with open(candidate.source, "rb"):
                    pass
                report.total_bytes += candidate.source.stat().st_size
            except OSError as e:
                self._skip(report.warnings, candidate.source, f"unreadable: {e.strerror or e}")
            else:
                staged.append(candidate)
                logger.debug(f"Staged {candidate.source} -> {candidate.archive_name}")
            if progress is not None:
                progress(i, total)

        if not staged:
            raise NothingToBackUp("No files could be staged from the selection")

        manifest = Manifest(
            fingerprint=self._fingerprint,
            records=[ManifestRecord(s.archive_name, str(s.source)) for s in staged],
        )
        archive_path = self._archive_path(Path(output_dir), started_at)

        logger.info(f"Writing {len(staged)} file(s) to {archive_path.name}")
        status = self._compress(
            [str(s.source) for s in staged],
            [s.archive_name for s in staged],
            manifest_codec.encode(manifest),
            str(archive_path),
        )
        if status != 0:
            logger.error(f"Compression backend failed: {describe(status)} ({status})")
            raise BackendFailed(status)

        report.archive_path = archive_path
        report.files_archived = len(staged)
        logger.info(
            f"Created backup {archive_path.name}: {report.files_archived} file(s) "
            f"({format_size(report.total_bytes)}), "
            f"{len(report.warnings)} warning(s)"
        )
        return report

    # ── Internals ──

    def _archive_path(self, output_dir: Path, started_at: datetime) -> Path:
        try:
            output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"Cannot prepare output directory {output_dir}: {e}")
            raise OutputUnwritable(f"Cannot create {output_dir}: {e.strerror or e}") from e
        n = 1
        path = output_dir / archive_filename(started_at, self._extension)
        while path.exists():
            n += 1
            path = output_dir / archive_filename(started_at, self._extension, n)
        return path

    @staticmethod
    def _skip(warnings: list[ItemIssue], path: Path | str, reason: str) -> None:
        logger.warning(f"Skipping {path}: {reason}")
        warnings.append(ItemIssue(str(path), reason))

    def _enumerate(
        self, selection: Iterable[SelectionEntry], warnings: list[ItemIssue],
    ) -> list[StagedFile]:
        """Expand the selection into files with unique archive names, in input order."""
        taken = {MANIFEST_NAME.casefold()}
        files: list[StagedFile] = []

        for entry in selection:
            source = Path(os.path.abspath(entry.source_path))
            if source.is_symlink():
                self._skip(warnings, source, "symbolic link")
                continue
            if not source.exists():
                self._skip(warnings, source, "does not exist")
                continue
            if entry.is_directory != source.is_dir():
                expected = "directory" if entry.is_directory else "file"
                self._skip(warnings, source, f"is no longer a {expected}")
                continue

            name = source.name or source.drive.rstrip(":\\/") or "root"
            top = unique_top_name(name, entry.is_directory, taken)
            if entry.is_directory:
                files.extend(self._walk(source, top, warnings))
            elif self._is_regular(source, warnings):
                files.append(StagedFile(source, top))

        return files

    def _walk(self, root: Path, top: str, warnings: list[ItemIssue]) -> list[StagedFile]:
        files: list[StagedFile] = []

        def on_error(e: OSError) -> None:
            self._skip(warnings, e.filename or root, f"cannot list: {e.strerror or e}")

        for dirpath, dirnames, filenames in os.walk(root, onerror=on_error):
            current = Path(dirpath)
            dirnames.sort()
            for name in list(dirnames):
                if (current / name).is_symlink():
                    self._skip(warnings, current / name, "symbolic link")
                    dirnames.remove(name)
            for name in sorted(filenames):
                path = current / name
                if self._is_regular(path, warnings):
                    rel = path.relative_to(root).as_posix()
                    files.append(StagedFile(path, f"{top}/{rel}"))
        return files

    def _is_regular(self, path: Path, warnings: list[ItemIssue]) -> bool:
        try:
            mode = path.lstat().st_mode
        except OSError as e:
            self._skip(warnings, path, f"cannot stat: {e.strerror or e}")
            return False
        if stat.S_ISLNK(mode):
            self._skip(warnings, path, "symbolic link")
            return False
        if not stat.S_ISREG(mode):
            self._skip(warnings, path, "not a regular file")
            return False
        return True
