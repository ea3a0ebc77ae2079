"""Application configuration — JSON-based, with file locking and batch update support."""

from __future__ import annotations

import json
import os
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

from loguru import logger

_instance: "Config | None" = None

# Default data directory
_DEFAULT_DATA_DIR = Path.home() / "Documents" / "Konserve"

FINGERPRINT_ENV = "KONSERVE_FINGERPRINT"


def get_config() -> Config:
    """Module-level factory — single global Config instance."""
    global _instance
    if _instance is None:
        _instance = Config()
    return _instance


def reset_config() -> None:
    """Reset the global config instance (for testing)."""
    global _instance
    _instance = None


def resolve_fingerprint(config: Config | None = None) -> str | None:
    """
    Fingerprint written into new manifests.

    The environment wins over the config file; absence is not an error.
    """
    value = os.environ.get(FINGERPRINT_ENV, "")
    if not value and config is not None:
        value = config.fingerprint
    return value or None


class Config:
    """JSON-based application configuration with file locking."""

    _DEFAULTS: dict[str, Any] = {
        "verbose_logging": False,
        "archive_format": "tar",
        "compression_enabled": False,
        "compression_level": "normal",
        "conflict_resolution_mode": "overwrite",
        "default_backup_location": "",
        "fingerprint": "",
    }

    def __init__(self, config_dir: Path | None = None) -> None:
        self._data: dict[str, Any] = {}
        self._dir = config_dir or _DEFAULT_DATA_DIR
        self._path = self._dir / "config.json"
        self._lock = threading.Lock()
        self._defer_save = False
        self._load()

    def _load(self) -> None:
        """Load config from disk, merging with defaults."""
        self._data = json.loads(json.dumps(self._DEFAULTS))  # deep copy defaults
        if self._path.exists():
            try:
                with open(self._path, encoding="utf-8") as f:
                    user_data = json.load(f)
                self._deep_merge(self._data, user_data)
            except (json.JSONDecodeError, OSError) as e:
                logger.warning(f"Failed to load config, using defaults: {e}")

    def _deep_merge(self, base: dict, override: dict) -> None:
        """Recursively merge override into base."""
        for key, value in override.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._deep_merge(base[key], value)
            else:
                base[key] = value

    def _save(self) -> None:
        """Persist config to disk with file locking."""
        if self._defer_save:
            return
        with self._lock:
            self._dir.mkdir(parents=True, exist_ok=True)
            tmp_path = self._path.with_suffix(".tmp")
            try:
                with open(tmp_path, "w", encoding="utf-8") as f:
                    json.dump(self._data, f, ensure_ascii=False, indent=2)
                tmp_path.replace(self._path)
            except OSError as e:
                logger.error(f"Failed to save config: {e}")
                if tmp_path.exists():
                    tmp_path.unlink(missing_ok=True)

    @contextmanager
    def batch_update(self) -> Iterator[None]:
        """Context manager for batching multiple config changes into a single write."""
        self._defer_save = True
        try:
            yield
        finally:
            self._defer_save = False
            self._save()

    # ── Generic access ──

    def get(self, key: str, default: Any = None) -> Any:
        """Get a config value by dot-separated key path."""
        parts = key.split(".")
        node = self._data
        for part in parts:
            if isinstance(node, dict) and part in node:
                node = node[part]
            else:
                return default
        return node

    def set(self, key: str, value: Any) -> None:
        """Set a config value by dot-separated key path."""
        parts = key.split(".")
        node = self._data
        for part in parts[:-1]:
            if part not in node or not isinstance(node[part], dict):
                node[part] = {}
            node = node[part]
        node[parts[-1]] = value
        self._save()

    # ── Typed properties ──

    @property
    def data_dir(self) -> Path:
        return self._dir

    @property
    def verbose_logging(self) -> bool:
        return bool(self._data.get("verbose_logging", False))

    @verbose_logging.setter
    def verbose_logging(self, value: bool) -> None:
        self.set("verbose_logging", value)

    @property
    def archive_format(self) -> str:
        return self._data.get("archive_format", "tar")

    @archive_format.setter
    def archive_format(self, value: str) -> None:
        self.set("archive_format", value)

    @property
    def compression_enabled(self) -> bool:
        return bool(self._data.get("compression_enabled", False))

    @compression_enabled.setter
    def compression_enabled(self, value: bool) -> None:
        self.set("compression_enabled", value)

    @property
    def compression_level(self) -> str:
        return self._data.get("compression_level", "normal")

    @compression_level.setter
    def compression_level(self, value: str) -> None:
        self.set("compression_level", value)

    @property
    def conflict_resolution_mode(self) -> str:
        return self._data.get("conflict_resolution_mode", "overwrite")

    @conflict_resolution_mode.setter
    def conflict_resolution_mode(self, value: str) -> None:
        self.set("conflict_resolution_mode", value)

    @property
    def default_backup_location(self) -> Path | None:
        raw = self._data.get("default_backup_location", "")
        return Path(raw) if raw else None

    @default_backup_location.setter
    def default_backup_location(self, value: Path | None) -> None:
        self.set("default_backup_location", str(value) if value else "")

    @property
    def backup_dir(self) -> Path:
        """Where new archives go when the caller does not choose."""
        return self.default_backup_location or self._dir / "backups"

    @property
    def fingerprint(self) -> str:
        return self._data.get("fingerprint", "")
