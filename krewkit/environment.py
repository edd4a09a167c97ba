"""Locations on disk used by the plugin manager."""

from __future__ import annotations

import logging
import os
import stat
import tempfile
from dataclasses import dataclass, field

from krewkit.manifest import MANIFEST_EXTENSION

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Paths:
    """The directory layout rooted at a base directory."""

    base: str
    tmp: str = field(default_factory=tempfile.gettempdir)

    def base_path(self) -> str:
        """The base directory."""
        return self.base

    def index_path(self) -> str:
        """Where the plugin index repository is cloned."""
        return os.path.join(self.base, "index")

    def index_plugins_path(self) -> str:
        """The plugins directory of the index repository."""
        return os.path.join(self.base, "index", "plugins")

    def install_receipts_path(self) -> str:
        """Where install receipts are stored."""
        return os.path.join(self.base, "receipts")

    def bin_path(self) -> str:
        """Where links to plugin executables live; meant to be on $PATH."""
        return os.path.join(self.base, "bin")

    def download_path(self) -> str:
        """A temporary directory for downloads; the same on every call."""
        return os.path.join(self.tmp, "krew-downloads")

    def install_path(self) -> str:
        """The base directory for plugin installations."""
        return os.path.join(self.base, "store")

    def plugin_install_path(self, plugin: str) -> str:
        """The installation directory of one plugin."""
        return os.path.join(self.install_path(), plugin)

    def plugin_install_receipt_path(self, plugin: str) -> str:
        """The install receipt file of one plugin."""
        return os.path.join(self.install_receipts_path(), plugin + MANIFEST_EXTENSION)

    def plugin_version_install_path(self, plugin: str, version: str) -> str:
        """The directory of one installed version of a plugin."""
        return os.path.join(self.install_path(), plugin, version)


def get_krew_paths() -> Paths:
    """Paths rooted at ``~/.krew``, or at $KREW_ROOT when that is set."""
    base = os.path.join(os.path.expanduser("~"), ".krew")
    override = os.environ.get("KREW_ROOT", "")
    if override:
        base = override
        log.debug("using environment override KREW_ROOT=%s", override)
    return Paths(os.path.abspath(base))


def realpath(path: str) -> str:
    """Resolve one level of symbolic link and return the cleaned path.

    Raises OSError when the path cannot be read and ValueError when the
    link target is relative.
    """
    try:
        info = os.lstat(path)
    except OSError as exc:
        raise OSError(
            exc.errno, f'failed to stat the currently executed path ("{path}"): {exc.strerror}', path
        ) from exc
    if stat.S_ISLNK(info.st_mode):
        try:
            path = os.readlink(path)
        except OSError as exc:
            raise OSError(
                exc.errno,
                f"failed to resolve the symlink of the currently executed version: {exc.strerror}",
                path,
            ) from exc
        if not os.path.isabs(path):
            raise ValueError(f"symbolic link is relative ({path})")
    return os.path.normpath(path)