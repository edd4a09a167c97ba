"""Reading plugin manifests from an index directory."""

from __future__ import annotations

import errno
import logging
import os
from contextlib import closing
from typing import IO, Any

import yaml

from krewkit.manifest import MANIFEST_EXTENSION, Plugin, plugin_from_dict
from krewkit.validation import ValidationError, is_safe_plugin_name, validate_plugin

log = logging.getLogger(__name__)


def _extension(name: str) -> str:
    dot = name.rfind(".")
    return name[dot:] if dot >= 0 else ""


def _find_plugin_manifest_files(index_dir: str) -> list[str]:
    try:
        with os.scandir(index_dir) as entries:
            return sorted(
                entry.name
                for entry in entries
                if entry.is_file(follow_symlinks=False)
                and _extension(entry.name) == MANIFEST_EXTENSION
            )
    except OSError as exc:
        raise OSError(exc.errno, f"failed to open index dir: {exc.strerror}", index_dir) from exc


def load_plugin_list_from_fs(index_dir: str) -> list[Plugin]:
    """Load every readable, valid manifest in a directory.

    A manifest that fails to load is logged and left out.
    """
    resolved = os.path.realpath(index_dir)
    if not os.path.exists(resolved):
        raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), index_dir)
    files = _find_plugin_manifest_files(resolved)
    log.debug("found %d plugins in dir %s", len(files), resolved)

    plugins = []
    for file_name in files:
        plugin_name = file_name[: -len(_extension(file_name))]
        try:
            plugins.append(load_plugin_by_name(resolved, plugin_name))
        except (OSError, ValueError) as exc:
            log.error("failed to read or parse plugin manifest %r: %s", plugin_name, exc)
    return plugins


def load_plugin_by_name(plugins_dir: str, plugin_name: str) -> Plugin:
    """Load the manifest of a named plugin; FileNotFoundError when it is absent."""
    if not is_safe_plugin_name(plugin_name):
        raise ValueError(f'plugin name "{plugin_name}" not allowed')
    log.debug("Reading plugin %r", plugin_name)
    return read_plugin_from_file(os.path.join(plugins_dir, plugin_name + MANIFEST_EXTENSION))


def read_plugin_from_file(path: str) -> Plugin:
    """Read and validate a manifest file; FileNotFoundError when it is absent."""
    try:
        stream = open(path, "rb")
    except FileNotFoundError:
        raise
    except OSError as exc:
        raise OSError(exc.errno, f"failed to open index file: {exc.strerror}", path) from exc
    return read_plugin(stream)


def read_plugin(stream: IO[Any]) -> Plugin:
    """Decode and validate a manifest from a stream, closing the stream."""
    with closing(stream):
        try:
            plugin = decode_plugin_file(stream)
        except ValueError as exc:
            raise ValueError(f"failed to decode plugin manifest: {exc}") from exc
    try:
        validate_plugin(plugin.name, plugin)
    except ValidationError as exc:
        raise ValidationError(f"plugin manifest validation error: {exc}") from exc
    return plugin


def decode_plugin_file(stream: IO[Any]) -> Plugin:
    """Decode a manifest from a stream without validating it."""
    try:
        document = yaml.safe_load(stream.read())
    except yaml.YAMLError as exc:
        raise ValueError(str(exc)) from exc
    return plugin_from_dict(document)