"""Compression backends — the single-call boundary that writes archive bytes.

A backend takes primitive arguments only and returns an integer status:
``0`` on success, any other value is an opaque failure code that the
builder surfaces verbatim.
"""

from __future__ import annotations

import tarfile
import time
import zipfile
from functools import partial
from io import BytesIO
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Sequence

from loguru import logger

from konserve.models.manifest import MANIFEST_NAME

if TYPE_CHECKING:
    from konserve.config import Config

# (source_paths, archive_names, manifest_text, output_path) -> status
CompressFn = Callable[[Sequence[str], Sequence[str], str, str], int]

STATUS_OK = 0
STATUS_OPEN_INPUT = 1
STATUS_CREATE_OUTPUT = 2
STATUS_READ = 4
STATUS_WRITE = 5
STATUS_INVALID_ARGS = 10

COMPRESSION_LEVELS = {"fast": 1, "normal": 6, "maximum": 9}


def _validate(sources: Sequence[str], names: Sequence[str], output_path: str) -> int:
    if not output_path or len(sources) != len(names):
        return STATUS_INVALID_ARGS
    if output_path in sources:
        return STATUS_INVALID_ARGS
    return STATUS_OK


class _InputError(Exception):
    def __init__(self, path: str, status: int) -> None:
        super().__init__(path)
        self.path = path
        self.status = status


def _run(write: Callable[[Path], None], output_path: str) -> int:
    """Write into ``<output>.part`` and move into place only on success."""
    out = Path(output_path)
    part = out.with_name(out.name + ".part")
    try:
        part.parent.mkdir(parents=True, exist_ok=True)
        write(part)
        part.replace(out)
    except _InputError as e:
        logger.error(f"Backend could not read {e.path}: {e.__cause__}")
        part.unlink(missing_ok=True)
        return e.status
    except OSError as e:
        logger.error(f"Backend could not write {out}: {e}")
        status = STATUS_WRITE if part.exists() else STATUS_CREATE_OUTPUT
        part.unlink(missing_ok=True)
        return status
    return STATUS_OK


def zip_backend(
    sources: Sequence[str],
    names: Sequence[str],
    manifest_text: str,
    output_path: str,
    level: int | None = 6,
) -> int:
    """ZIP container; ``level=None`` stores entries uncompressed."""
    status = _validate(sources, names, output_path)
    if status:
        return status

    method = zipfile.ZIP_STORED if level is None else zipfile.ZIP_DEFLATED

    def write(part: Path) -> None:
        with zipfile.ZipFile(
            part, "w", method, compresslevel=level, strict_timestamps=False,
        ) as zf:
            zf.writestr(MANIFEST_NAME, manifest_text.encode("utf-8"))
            for source, name in zip(sources, names):
                try:
                    zf.write(source, name)
                except FileNotFoundError as e:
                    raise _InputError(source, STATUS_OPEN_INPUT) from e
                except PermissionError as e:
                    raise _InputError(source, STATUS_READ) from e

    return _run(write, output_path)


def tar_backend(
    sources: Sequence[str],
    names: Sequence[str],
    manifest_text: str,
    output_path: str,
    gzip: bool = False,
    level: int = 6,
) -> int:
    """Plain ``.tar`` or ``.tar.gz`` container."""
    status = _validate(sources, names, output_path)
    if status:
        return status

    def write(part: Path) -> None:
        kwargs = {"compresslevel": level} if gzip else {}
        with tarfile.open(part, "w:gz" if gzip else "w", **kwargs) as tf:
            data = manifest_text.encode("utf-8")
            info = tarfile.TarInfo(MANIFEST_NAME)
            info.size = len(data)
            info.mode = 0o644
            info.mtime = int(time.time())
            tf.addfile(info, BytesIO(data))
            for source, name in zip(sources, names):
                try:
                    tf.add(source, arcname=name, recursive=False)
                except FileNotFoundError as e:
                    raise _InputError(source, STATUS_OPEN_INPUT) from e
                except PermissionError as e:
                    raise _InputError(source, STATUS_READ) from e

    return _run(write, output_path)


def backend_for(config: Config) -> tuple[CompressFn, str]:
    """Pick the backend and archive extension the configuration asks for."""
    enabled = bool(config.get("compression_enabled", False))
    level = COMPRESSION_LEVELS.get(str(config.get("compression_level", "normal")), 6)
    if config.get("archive_format", "tar") == "zip":
        return partial(zip_backend, level=level if enabled else None), "zip"
    if enabled:
        return partial(tar_backend, gzip=True, level=level), "tar.gz"
    return tar_backend, "tar"


def describe(status: int) -> str:
    return {
        STATUS_OK: "ok",
        STATUS_OPEN_INPUT: "cannot open input",
        STATUS_CREATE_OUTPUT: "cannot create output",
        STATUS_READ: "read error",
        STATUS_WRITE: "write error",
        STATUS_INVALID_ARGS: "invalid arguments",
    }.get(status, f"status {status}")
