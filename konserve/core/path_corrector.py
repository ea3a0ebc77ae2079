"""Path corrector — map Windows profile paths onto the current account."""

from __future__ import annotations

import getpass
import os
import re
from pathlib import Path

# <Drive>:\Users\<user>[\rest], with "Users" matched case-insensitively
_PROFILE_RE = re.compile(
    r"^(?P<prefix>[A-Za-z]:[\\/](?i:users)[\\/])(?P<user>[^\\/]+)(?P<rest>(?:[\\/].*)?)$",
    re.DOTALL,
)

# Shared profiles that belong to no single account
_SHARED_PROFILES = frozenset({"public", "default", "default user", "all users"})


def correct(original_path: str, target_username: str) -> str:
    """
    Rewrite the user segment of a ``<Drive>:\\Users\\<name>\\...`` path.

    Paths that do not follow the convention come back unchanged, as do
    shared profiles such as ``Public`` or ``Default`` and a path that
    already belongs to ``target_username``.
    """
    match = _PROFILE_RE.match(original_path)
    if match is None or not target_username:
        return original_path
    if match.group("user").casefold() in _SHARED_PROFILES:
        return original_path
    return match.group("prefix") + target_username + match.group("rest")


def current_username() -> str:
    """
    Username of the running account, with its on-disk casing.

    The home directory's own name is preferred because it is what the
    profile folder is actually called.
    """
    home = Path.home()
    if home.name and home.parent.name.lower() == "users":
        return home.name
    return os.environ.get("USERNAME") or getpass.getuser()


def resolve_existing(path: str | Path, username: str | None = None) -> Path | None:
    """Return ``path`` if it exists, else its corrected form if that exists, else None."""
    p = Path(path)
    if p.exists():
        return p
    corrected = Path(correct(str(path), username or current_username()))
    if corrected != p and corrected.exists():
        return corrected
    return None
