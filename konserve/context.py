"""Application context — service container for dependency injection."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from konserve.config import Config, get_config, resolve_fingerprint
from konserve.core.builder import ArchiveBuilder
from konserve.core.path_corrector import current_username
from konserve.core.reader import ArchiveReader
from konserve.core.restore import RestoreExecutor
from konserve.logger import setup_logger


@dataclass
class AppContext:
    """
    Central service container.

    The fingerprint and username are resolved once here and handed to the
    services that need them, instead of being read from the environment
    mid-operation.
    """

    config: Config
    fingerprint: str | None
    username: str

    builder: ArchiveBuilder
    reader: ArchiveReader
    executor: RestoreExecutor

    @property
    def backup_dir(self) -> Path:
        return self.config.backup_dir


def create_context(config: Config | None = None) -> AppContext:
    """Wire all services and return an AppContext."""
    config = config or get_config()

    # Logger
    setup_logger(config.data_dir / "logs", verbose=config.verbose_logging)

    fingerprint = resolve_fingerprint(config)

    return AppContext(
        config=config,
        fingerprint=fingerprint,
        username=current_username(),
        builder=ArchiveBuilder.from_config(config, fingerprint),
        reader=ArchiveReader(expected_fingerprint=fingerprint),
        executor=RestoreExecutor.from_config(config),
    )
