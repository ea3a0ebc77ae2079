"""Shared fixtures: a small source tree and builders that write real archives."""

from __future__ import annotations

import tarfile
import time
from datetime import datetime
from io import BytesIO
from pathlib import Path

import pytest

from konserve.core.builder import ArchiveBuilder
from konserve.core.compression import tar_backend
from konserve.models.selection import SelectionEntry

FIXED_NOW = datetime(2024, 5, 1, 13, 2, 3)


@pytest.fixture(scope="session")
def qapp():
    from PySide6.QtCore import QCoreApplication

    app = QCoreApplication.instance() or QCoreApplication([])
    yield app


@pytest.fixture
def source_dir(tmp_path: Path) -> Path:
    """
    src/
      notes.txt
      docs/
        a.txt
        sub/b.txt
    """
    src = tmp_path / "src"
    (src / "docs" / "sub").mkdir(parents=True)
    (src / "notes.txt").write_text("notes", encoding="utf-8")
    (src / "docs" / "a.txt").write_text("alpha", encoding="utf-8")
    (src / "docs" / "sub" / "b.txt").write_text("bravo", encoding="utf-8")
    return src


@pytest.fixture
def selection(source_dir: Path) -> list[SelectionEntry]:
    return [
        SelectionEntry(source_dir / "notes.txt", is_directory=False),
        SelectionEntry(source_dir / "docs", is_directory=True),
    ]


@pytest.fixture
def builder() -> ArchiveBuilder:
    return ArchiveBuilder(tar_backend, "tar", fingerprint="test-fp", now=lambda: FIXED_NOW)


def write_tar(path: Path, manifest_text: str | None, files: dict[str, bytes]) -> Path:
    """Write a tar by hand, for archives the builder would never produce."""
    with tarfile.open(path, "w") as tf:
        entries = dict(files)
        if manifest_text is not None:
            entries = {"fingerprint.txt": manifest_text.encode("utf-8"), **entries}
        for name, data in entries.items():
            info = tarfile.TarInfo(name)
            info.size = len(data)
            info.mtime = int(time.time())
            tf.addfile(info, BytesIO(data))
    return path


@pytest.fixture
def make_tar():
    return write_tar
