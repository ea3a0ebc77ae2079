"""Exception hierarchy for whole-operation failures.

Item-level problems never raise; they are collected as ``ItemIssue`` values
in the operation's report.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from konserve.models.reports import RestoreReport


class KonserveError(Exception):
    """Base class for all engine errors."""


# ── Build ──


class BuildError(KonserveError):
    """A backup produced no archive."""


class NothingToBackUp(BuildError):
    """Zero files could be staged from the selection."""


class BackendFailed(BuildError):
    """The compression backend returned a non-zero status."""

    def __init__(self, code: int) -> None:
        super().__init__(f"Compression backend failed with status {code}")
        self.code = code


class BuildCancelled(BuildError):
    """The build was cancelled before the backend ran."""


class OutputUnwritable(BuildError):
    """The output directory cannot be created or listed."""


# ── Open ──


class OpenError(KonserveError):
    """An archive could not be opened for restore."""


class ArchiveUnreadable(OpenError):
    """The archive container itself cannot be read."""


class NoManifest(OpenError):
    """The archive has no manifest entry."""


class ManifestCorrupt(OpenError):
    """The manifest exists but its header cannot be parsed."""


class ManifestParseError(ManifestCorrupt):
    """Raised by the manifest decoder."""


# ── Restore ──


class RestoreError(KonserveError):
    """A restore run stopped before visiting every selected file."""


class RestoreCancelled(RestoreError):
    """Cancelled between files; ``report`` holds what was done so far."""

    def __init__(self, report: RestoreReport) -> None:
        super().__init__(
            f"Restore cancelled after {report.attempted} of {report.total} file(s)"
        )
        self.report = report


# ── Templates ──


class TemplateError(KonserveError):
    """A template file cannot be read or is not a list of paths."""
