"""Helpers behind the plugin manager's commands: choosing plugins and checking the home."""

from __future__ import annotations

import logging
import os
import urllib.error
import urllib.parse
import urllib.request
from collections.abc import Iterable, Sequence
from typing import Any

from krewkit.environment import Paths
from krewkit.gitutil import is_git_cloned
from krewkit.manifest import Plugin
from krewkit.scanner import load_plugin_by_name, read_plugin, read_plugin_from_file

log = logging.getLogger(__name__)


class CommandError(Exception):
    """A command cannot go ahead with what it was given."""


def read_plugin_from_url(url: str) -> Plugin:
    """Download a manifest over HTTP(S), then decode and validate it.

    Raises CommandError when the request fails or the response is not a
    2xx, and ValueError when the manifest is invalid.
    """
    log.debug("downloading manifest from url %s", url)
    scheme = urllib.parse.urlsplit(url).scheme
    if scheme not in ("http", "https"):
        raise CommandError(f'request to url failed ({url}): unsupported protocol scheme "{scheme}"')
    try:
        response = urllib.request.urlopen(url)  # noqa: S310 - scheme checked above
    except urllib.error.HTTPError as exc:
        exc.close()
        raise CommandError(f"unexpected status code (http {exc.code}) from url") from exc
    except (OSError, ValueError) as exc:
        raise CommandError(f"request to url failed ({url}): {exc}") from exc
    status = getattr(response, "status", 200)
    log.debug("manifest downloaded from url, status=%s headers=%s", status, response.headers)
    if not 200 <= status < 300:
        response.close()
        raise CommandError(f"unexpected status code (http {status}) from url")
    return read_plugin(response)


def read_plugin_names(stream: Iterable[str]) -> list[str]:
    """Read plugin names, one per line, leaving out empty lines."""
    names = []
    for line in stream:
        name = line.removesuffix("\n").removesuffix("\r")
        if name:
            names.append(name)
    return names


def select_plugins(
    paths: Paths,
    plugin_names: Sequence[str],
    manifest: str = "",
    manifest_url: str = "",
    archive_file_override: str = "",
) -> list[Plugin]:
    """Resolve what an install asks for into the manifests to install.

    Plugins are named either by ``plugin_names`` (looked up in the index) or
    by a local ``manifest`` or a ``manifest_url``, never both. An empty list
    means nothing was asked for.
    """
    if manifest and manifest_url:
        raise CommandError("cannot specify --manifest and --manifest-url at the same time")
    if plugin_names and (manifest or manifest_url):
        raise CommandError(
            "must specify either specify either plugin names (via positional arguments or "
            "STDIN), or --manifest/--manifest-url; not both"
        )
    if archive_file_override and not manifest and not manifest_url:
        raise CommandError("--archive can be specified only with --manifest or --manifest-url")

    selected: list[Plugin] = []
    for name in plugin_names:
        try:
            selected.append(load_plugin_by_name(paths.index_plugins_path(), name))
        except FileNotFoundError as exc:
            raise CommandError(f'plugin "{name}" does not exist in the plugin index') from exc
        except (OSError, ValueError) as exc:
            raise CommandError(f'failed to load plugin "{name}" from the index: {exc}') from exc

    if manifest:
        try:
            selected.append(read_plugin_from_file(manifest))
        except (OSError, ValueError) as exc:
            raise CommandError(f"failed to load plugin manifest from file: {exc}") from exc
    elif manifest_url:
        try:
            selected.append(read_plugin_from_url(manifest_url))
        except (CommandError, ValueError) as exc:
            raise CommandError(f"failed to read plugin manifest file from url: {exc}") from exc

    for plugin in selected:
        log.debug("Will install plugin: %s", plugin.name)
    return selected


def ensure_dirs(*args: str) -> None:
    """Create each directory, with its parents, if it is missing."""
    for path in args:
        log.debug("Ensure creating dir: %r", path)
        try:
            os.makedirs(path, 0o755, exist_ok=True)
        except OSError as exc:
            raise CommandError(f'failed to ensure create directory "{path}": {exc}') from exc


def check_index(paths: Paths) -> None:
    """Raise CommandError unless the local plugin index has been cloned."""
    try:
        cloned = is_git_cloned(paths.index_path())
    except OSError as exc:
        raise CommandError(f"failed to check local index git repository: {exc}") from exc
    if not cloned:
        raise CommandError(
            'krew local plugin index is not initialized (run "kubectl krew update")'
        )


def is_terminal(stream: Any) -> bool:
    """Tell whether a stream is attached to a terminal."""
    isatty = getattr(stream, "isatty", None)
    if isatty is None:
        return False
    try:
        return bool(isatty())
    except (ValueError, OSError):
        return False