"""Archive reader — parse an archive's manifest into a restore tree."""

from __future__ import annotations

import tarfile
import zipfile
import zlib
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from konserve.core import manifest_codec
from konserve.core.container import ArchiveContainer
from konserve.errors import ArchiveUnreadable, ManifestCorrupt, NoManifest
from konserve.models.manifest import MANIFEST_NAME, Manifest
from konserve.models.restore_tree import RestoreTree

_READ_ERRORS = (tarfile.TarError, zipfile.BadZipFile, zlib.error, EOFError, OSError)


@dataclass
class OpenedArchive:
    """An archive opened for restore: its manifest and the selectable tree."""

    path: Path
    manifest: Manifest
    tree: RestoreTree
    fingerprint_matches: bool | None = None  # None when no fingerprint is expected

    @property
    def warnings(self) -> list[str]:
        return self.manifest.warnings + self.tree.warnings


class ArchiveReader:
    """Opens archives written by ``ArchiveBuilder``."""

    def __init__(self, expected_fingerprint: str | None = None) -> None:
        self._expected_fingerprint = expected_fingerprint

    def open(self, archive_path: str | Path) -> OpenedArchive:
        """
        Read the manifest and build the restore tree.

        Records whose entry is missing from the archive are dropped with a
        warning.  Raises ``ArchiveUnreadable``, ``NoManifest`` or
        ``ManifestCorrupt``.
        """
        path = Path(archive_path)
        with ArchiveContainer.open(path) as container:
            try:
                if not container.has(MANIFEST_NAME):
                    raise NoManifest(f"{path.name} has no {MANIFEST_NAME}")
                raw = container.read_bytes(MANIFEST_NAME)
                entries = set(container.names())
            except _READ_ERRORS as e:
                raise ArchiveUnreadable(f"Cannot read {path.name}: {e}") from e

        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ManifestCorrupt(f"{MANIFEST_NAME} is not valid UTF-8") from e
        manifest = manifest_codec.decode(text)

        present = []
        for record in manifest.records:
            if record.archive_relative_path in entries:
                present.append(record)
            else:
                manifest.warnings.append(f"missing from archive: {record.archive_relative_path}")
                logger.warning(f"Manifest entry not in archive: {record.archive_relative_path}")
        manifest.records = present

        tree = RestoreTree.from_manifest(manifest)
        opened = OpenedArchive(path=path, manifest=manifest, tree=tree)

        if self._expected_fingerprint:
            opened.fingerprint_matches = manifest.fingerprint == self._expected_fingerprint
            if not opened.fingerprint_matches:
                logger.warning(
                    f"Fingerprint mismatch for {path.name}: "
                    f"archive={manifest.fingerprint!r}, expected={self._expected_fingerprint!r}"
                )

        logger.info(
            f"Opened {path.name}: {len(manifest.records)} file(s), "
            f"{len(opened.warnings)} warning(s)"
        )
        return opened
