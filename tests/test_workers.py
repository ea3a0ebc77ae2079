"""Tests for the background workers (run synchronously)."""

from __future__ import annotations

from pathlib import Path

import pytest

from konserve.core.builder import ArchiveBuilder
from konserve.core.reader import ArchiveReader
from konserve.core.restore import RestoreExecutor
from konserve.errors import BuildCancelled, NothingToBackUp, OutputUnwritable, RestoreCancelled
from konserve.models.reports import BuildReport, RestoreReport
from konserve.models.selection import SelectionEntry
from konserve.workers import BackupWorker, RestoreWorker


def _record(worker) -> list[tuple]:
    events: list[tuple] = []
    worker.progress.connect(lambda d, t: events.append(("progress", d, t)))
    worker.finished.connect(lambda r: events.append(("finished", r)))
    worker.error.connect(lambda e: events.append(("error", e)))
    return events


class TestBackupWorker:
    def test_progress_then_finished(
        self, qapp, builder: ArchiveBuilder, selection: list[SelectionEntry], tmp_path: Path,
    ) -> None:
        worker = BackupWorker(builder, selection, tmp_path / "out")
        events = _record(worker)
        worker.run()

        assert [e[0] for e in events] == ["progress", "progress", "progress", "finished"]
        assert isinstance(events[-1][1], BuildReport)
        assert events[-1][1].archive_path.exists()

    def test_error_is_emitted_once(self, qapp, builder: ArchiveBuilder, tmp_path: Path) -> None:
        worker = BackupWorker(builder, [SelectionEntry(tmp_path / "gone")], tmp_path / "out")
        events = _record(worker)
        worker.run()

        assert len(events) == 1
        assert events[0][0] == "error"
        assert isinstance(events[0][1], NothingToBackUp)

    def test_unwritable_output_dir_emits_error(
        self, qapp, builder: ArchiveBuilder, selection: list[SelectionEntry], tmp_path: Path,
    ) -> None:
        out = tmp_path / "out"
        out.write_text("in the way", encoding="utf-8")
        worker = BackupWorker(builder, selection, out)
        events = _record(worker)
        worker.run()

        assert events[-1][0] == "error"
        assert isinstance(events[-1][1], OutputUnwritable)
        assert [e[0] for e in events].count("error") == 1
        assert "finished" not in [e[0] for e in events]

    def test_unexpected_exception_still_emits_error(
        self, qapp, selection: list[SelectionEntry], tmp_path: Path,
    ) -> None:
        def broken_backend(*args) -> int:
            raise RuntimeError("backend blew up")

        worker = BackupWorker(ArchiveBuilder(broken_backend, "tar"), selection, tmp_path / "out")
        events = _record(worker)
        worker.run()

        assert events[-1][0] == "error"
        assert isinstance(events[-1][1], RuntimeError)
        assert "finished" not in [e[0] for e in events]

    def test_cancel(
        self, qapp, builder: ArchiveBuilder, selection: list[SelectionEntry], tmp_path: Path,
    ) -> None:
        worker = BackupWorker(builder, selection, tmp_path / "out")
        events = _record(worker)
        worker.cancel()
        worker.run()

        assert events[-1][0] == "error"
        assert isinstance(events[-1][1], BuildCancelled)


class TestRestoreWorker:
    @pytest.fixture
    def opened(self, builder: ArchiveBuilder, selection: list[SelectionEntry], tmp_path: Path):
        report = builder.build(selection, tmp_path / "out")
        opened = ArchiveReader().open(report.archive_path)
        opened.tree.select_all()
        return opened

    def test_restore_finishes_with_report(self, qapp, opened) -> None:
        worker = RestoreWorker(RestoreExecutor(), opened, "bob")
        events = _record(worker)
        worker.run()

        assert [e[1:] for e in events[:-1]] == [(1, 3), (2, 3), (3, 3)]
        assert events[-1][0] == "finished"
        report = events[-1][1]
        assert isinstance(report, RestoreReport)
        assert report.failures == []

    def test_cancelled_restore_reports_partial_result(self, qapp, opened) -> None:
        worker = RestoreWorker(RestoreExecutor(), opened, "bob")
        events = _record(worker)
        worker.cancel()
        worker.run()

        assert len(events) == 1
        error = events[0][1]
        assert isinstance(error, RestoreCancelled)
        assert error.report.total == 3
        assert error.report.restored == []
