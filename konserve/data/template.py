"""Backup templates — JSON lists of paths that prefill a selection set."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable

from loguru import logger

from konserve.core.path_corrector import current_username, resolve_existing
from konserve.errors import TemplateError
from konserve.models.selection import SelectionEntry


@dataclass
class TemplateLoadResult:
    """Entries that exist on this machine, plus the stored paths that did not."""

    entries: list[SelectionEntry] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)


def _stored_paths(data: Any) -> list[str]:
    # Accept both a bare array and {"paths": [...]}
    if isinstance(data, dict):
        data = data.get("paths")
    if not isinstance(data, list) or not all(isinstance(p, str) for p in data):
        raise TemplateError("Template must be a JSON array of path strings")
    return data


def load_template(path: str | Path, username: str | None = None) -> TemplateLoadResult:
    """
    Read a template and turn its paths into selection entries.

    A stored path that is absent is retried through the path corrector
    (a template saved under another account); if that is absent too it is
    listed in ``missing``.  Duplicates are dropped.
    """
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        raise TemplateError(f"Cannot read template {path}: {e}") from e

    result = TemplateLoadResult()
    user = username or current_username()
    seen: set[Path] = set()

    for raw in _stored_paths(data):
        resolved = resolve_existing(raw, user) if raw.strip() else None
        if resolved is None:
            logger.warning(f"Template path not found, skipping: {raw}")
            result.missing.append(raw)
            continue
        entry = SelectionEntry.from_path(resolved)
        if entry.source_path in seen:
            continue
        seen.add(entry.source_path)
        result.entries.append(entry)

    logger.info(
        f"Loaded template {Path(path).name}: {len(result.entries)} path(s), "
        f"{len(result.missing)} missing"
    )
    return result


def save_template(path: str | Path, selection: Iterable[SelectionEntry | str | Path]) -> None:
    """Write the selection's source paths as a JSON array."""
    path = Path(path)
    paths = [
        str(item.source_path if isinstance(item, SelectionEntry) else item)
        for item in selection
    ]
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(".tmp")
    try:
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(paths, f, ensure_ascii=False, indent=2)
        tmp.replace(path)
    except OSError as e:
        tmp.unlink(missing_ok=True)
        raise TemplateError(f"Cannot write template {path}: {e}") from e
    logger.info(f"Saved template {path.name} with {len(paths)} path(s)")
