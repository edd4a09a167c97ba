"""Keeping a local clone of the plugin index repository up to date."""

from __future__ import annotations

import logging
import os
import subprocess
import sys

log = logging.getLogger(__name__)


class GitError(Exception):
    """A git command failed."""


def _git(pwd: str, *args: str) -> None:
    log.debug("Going to run git %s", " ".join(args))
    try:
        result = subprocess.run(
            ["git", *args],
            cwd=pwd or None,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            check=False,
        )
    except OSError as exc:
        raise GitError(f"command execution failure: {exc}") from exc
    output = (result.stdout or b"").decode(errors="replace")
    if log.isEnabledFor(logging.DEBUG):
        sys.stderr.write(output)
    if result.returncode != 0:
        raise GitError(
            f"command execution failure (exit status {result.returncode}), output={output!r}"
        )


def is_git_cloned(git_path: str) -> bool:
    """Tell whether the path holds a git working copy."""
    try:
        return os.stat(os.path.join(git_path, ".git")) is not None and os.path.isdir(
            os.path.join(git_path, ".git")
        )
    except FileNotFoundError:
        return False


def ensure_cloned(uri: str, destination_path: str) -> None:
    """Clone the repository unless the destination already holds a clone."""
    if not is_git_cloned(destination_path):
        _git("", "clone", "-v", uri, destination_path)


def _update_and_clean_untracked(destination_path: str) -> None:
    steps = (
        (("fetch", "-v"), "fetch"),
        (("reset", "--hard", "@{upstream}"), "reset"),
        (("clean", "-xfd"), "clean"),
    )
    for args, action in steps:
        try:
            _git(destination_path, *args)
        except GitError as exc:
            raise GitError(f'{action} index at "{destination_path}" failed: {exc}') from exc


def ensure_updated(uri: str, destination_path: str) -> None:
    """Make sure a clone exists and matches its upstream, with no untracked files."""
    ensure_cloned(uri, destination_path)
    _update_and_clean_untracked(destination_path)