"""Background workers — run builds and restores off the UI thread.

Each worker emits any number of ``progress(done, total)`` signals followed
by exactly one of ``finished(report)`` or ``error(exception)``.
"""

from __future__ import annotations

import threading
from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger
from PySide6.QtCore import QThread, Signal

from konserve.errors import KonserveError

if TYPE_CHECKING:
    from konserve.core.builder import ArchiveBuilder
    from konserve.core.reader import OpenedArchive
    from konserve.core.restore import RestoreExecutor
    from konserve.models.selection import SelectionEntry


class _OperationWorker(QThread):
    progress = Signal(int, int)  # done, total
    finished = Signal(object)  # BuildReport | RestoreReport
    error = Signal(object)  # KonserveError, or any unexpected exception

    def __init__(self, parent=None) -> None:
        super().__init__(parent)
        self._cancel = threading.Event()

    def cancel(self) -> None:
        """Ask the worker to stop before its next file."""
        self._cancel.set()
        self.requestInterruption()

    def is_cancelled(self) -> bool:
        return self._cancel.is_set() or self.isInterruptionRequested()

    def _emit_progress(self, done: int, total: int) -> None:
        self.progress.emit(done, total)


class BackupWorker(_OperationWorker):
    """Background worker for creating one archive."""

    def __init__(
        self,
        builder: ArchiveBuilder,
        selection: list[SelectionEntry],
        output_dir: Path,
        parent=None,
    ) -> None:
        super().__init__(parent)
        self._builder = builder
        self._selection = selection
        self._output_dir = output_dir

    def run(self) -> None:
        try:
            report = self._builder.build(
                self._selection,
                self._output_dir,
                progress=self._emit_progress,
                cancelled=self.is_cancelled,
            )
        except KonserveError as e:
            logger.error(f"Backup failed: {e}")
            self.error.emit(e)
            return
        except Exception as e:
            logger.exception(f"Backup crashed: {e}")
            self.error.emit(e)
            return
        self.finished.emit(report)


class RestoreWorker(_OperationWorker):
    """Background worker for restoring the selected part of an archive."""

    def __init__(
        self,
        executor: RestoreExecutor,
        opened: OpenedArchive,
        username: str,
        parent=None,
    ) -> None:
        super().__init__(parent)
        self._executor = executor
        self._opened = opened
        self._username = username

    def run(self) -> None:
        try:
            report = self._executor.restore(
                self._opened,
                self._username,
                progress=self._emit_progress,
                cancelled=self.is_cancelled,
            )
        except KonserveError as e:
            logger.error(f"Restore failed: {e}")
            self.error.emit(e)
            return
        except Exception as e:
            logger.exception(f"Restore crashed: {e}")
            self.error.emit(e)
            return
        self.finished.emit(report)
