"""Locating the repository and project a command runs on."""

import os
from pathlib import Path
from typing import Optional

GIT_ROOT_ENV = "SCHECK_GIT_ROOT"
STATE_DIR = ".scheck"


def _ancestors(start_path: Optional[Path]) -> list[Path]:
    start = Path.cwd() if start_path is None else Path(start_path).resolve()
    return [start, *start.parents]


def find_git_root(start_path: Optional[Path] = None) -> Optional[Path]:
    """Return the nearest directory at or above ``start_path`` holding ``.git``.

    ``.git`` may be a directory or, in worktrees and submodules, a file.
    The SCHECK_GIT_ROOT environment variable, when set, is returned as is.
    """
    override = os.environ.get(GIT_ROOT_ENV)
    if override:
        return Path(override)

    for candidate in _ancestors(start_path):
        if (candidate / ".git").exists():
            return candidate
    return None


def find_project_root(start_path: Optional[Path] = None) -> Path:
    """Get the project root for a command.

    The project root is the directory holding ``.scheck/``: the nearest
    ancestor that already has one, else the git root, else the start path.
    """
    ancestors = _ancestors(start_path)
    for candidate in ancestors:
        if (candidate / STATE_DIR).is_dir():
            return candidate
    return find_git_root(ancestors[0]) or ancestors[0]
