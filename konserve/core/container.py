"""Read access to backup archives, independent of the container format."""

from __future__ import annotations

import shutil
import tarfile
import zipfile
from pathlib import Path
from typing import IO

from konserve.errors import ArchiveUnreadable


class ArchiveContainer:
    """Opened ZIP or TAR(.gz) archive. Use as a context manager."""

    def __init__(self, path: Path, zf: zipfile.ZipFile | None, tf: tarfile.TarFile | None) -> None:
        self.path = path
        self._zip = zf
        self._tar = tf

    @classmethod
    def open(cls, path: str | Path) -> ArchiveContainer:
        p = Path(path)
        if not p.is_file():
            raise ArchiveUnreadable(f"Archive not found: {p}")
        try:
            if zipfile.is_zipfile(p):
                return cls(p, zipfile.ZipFile(p, "r"), None)
            return cls(p, None, tarfile.open(p, "r:*"))
        except (zipfile.BadZipFile, tarfile.TarError, OSError, EOFError) as e:
            raise ArchiveUnreadable(f"Cannot open archive {p.name}: {e}") from e

    def __enter__(self) -> ArchiveContainer:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def close(self) -> None:
        if self._zip is not None:
            self._zip.close()
        if self._tar is not None:
            self._tar.close()

    def names(self) -> list[str]:
        """Regular-file entry names, in archive order."""
        if self._zip is not None:
            return [i.filename for i in self._zip.infolist() if not i.is_dir()]
        assert self._tar is not None
        return [m.name for m in self._tar.getmembers() if m.isfile()]

    def has(self, name: str) -> bool:
        try:
            self._member(name)
        except KeyError:
            return False
        return True

    def _member(self, name: str) -> object:
        if self._zip is not None:
            return self._zip.getinfo(name)
        assert self._tar is not None
        member = self._tar.getmember(name)
        if not member.isfile():
            raise KeyError(name)
        return member

    def _open_member(self, name: str) -> IO[bytes]:
        member = self._member(name)
        if self._zip is not None:
            return self._zip.open(member)  # type: ignore[arg-type]
        assert self._tar is not None
        stream = self._tar.extractfile(member)  # type: ignore[arg-type]
        if stream is None:
            raise KeyError(name)
        return stream

    def read_bytes(self, name: str) -> bytes:
        with self._open_member(name) as stream:
            return stream.read()

    def extract_to(self, name: str, destination: Path) -> int:
        """Stream one entry to ``destination`` (overwriting). Returns bytes written."""
        with self._open_member(name) as src, open(destination, "wb") as dst:
            shutil.copyfileobj(src, dst)
            return dst.tell()
