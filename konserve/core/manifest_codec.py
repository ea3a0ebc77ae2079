"""Manifest codec — line-oriented text format stored as ``fingerprint.txt``.

Format::

    FINGERPRINT=<value or empty>
    <archive_relative_path> => <original_source_path>
    ...

Both fields and the fingerprint value percent-encode ``%``, ``=``, CR and
LF, so the `` => `` separator can never appear inside an encoded field.
"""

from __future__ import annotations

from urllib.parse import unquote

from loguru import logger

from konserve.errors import ManifestParseError
from konserve.models.manifest import Manifest, ManifestRecord

FINGERPRINT_PREFIX = "FINGERPRINT="
SEPARATOR = " => "

_ESCAPES = {"%": "%25", "=": "%3D", "\r": "%0D", "\n": "%0A"}


def escape_field(value: str) -> str:
    # '%' must go first so later escapes are not double-encoded
    for raw, encoded in _ESCAPES.items():
        value = value.replace(raw, encoded)
    return value


def unescape_field(value: str) -> str:
    return unquote(value)


def encode(manifest: Manifest) -> str:
    """Serialize a manifest to text (always newline-terminated)."""
    lines = [FINGERPRINT_PREFIX + escape_field(manifest.fingerprint or "")]
    for record in manifest.records:
        lines.append(
            escape_field(record.archive_relative_path)
            + SEPARATOR
            + escape_field(record.original_source_path)
        )
    return "\n".join(lines) + "\n"


def decode(text: str) -> Manifest:
    """
    Parse manifest text.

    Unparseable or duplicate record lines are skipped and listed in
    ``Manifest.warnings``.  Raises ``ManifestParseError`` only when the
    fingerprint header is missing.
    """
    lines = [line.rstrip("\r") for line in text.lstrip("\ufeff").split("\n")]
    if not lines[0].startswith(FINGERPRINT_PREFIX):
        raise ManifestParseError("Manifest does not start with a FINGERPRINT line")

    fingerprint = unescape_field(lines[0][len(FINGERPRINT_PREFIX) :]) or None
    manifest = Manifest(fingerprint=fingerprint)
    seen: set[str] = set()

    for lineno, line in enumerate(lines[1:], start=2):
        if not line.strip():
            continue
        archive_part, sep, source_part = line.partition(SEPARATOR)
        archive_path = unescape_field(archive_part).strip("/")
        source_path = unescape_field(source_part)
        if not sep or not archive_path or not source_path:
            manifest.warnings.append(f"line {lineno}: unparseable record")
            continue
        if archive_path in seen:
            manifest.warnings.append(f"line {lineno}: duplicate entry '{archive_path}'")
            continue
        seen.add(archive_path)
        manifest.records.append(ManifestRecord(archive_path, source_path))

    for warning in manifest.warnings:
        logger.warning(f"Manifest {warning}")
    return manifest
