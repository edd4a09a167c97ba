"""Finding a plugin manifest among receipts or in the index."""

from __future__ import annotations

import logging

from krewkit.environment import Paths
from krewkit.manifest import Plugin
from krewkit.scanner import load_plugin_by_name

log = logging.getLogger(__name__)


def load_manifest_from_receipt_or_index(paths: Paths, name: str) -> Plugin:
    """Load a plugin's manifest from its receipt, else from the index.

    FileNotFoundError is raised when neither place has it.
    """
    try:
        receipt = load_plugin_by_name(paths.install_receipts_path(), name)
    except FileNotFoundError:
        log.debug("Plugin manifest for %r not found in the receipts dir", name)
    except ValueError as exc:
        raise ValueError(f'loading plugin "{name}" from receipts dir: {exc}') from exc
    except OSError as exc:
        raise OSError(
            exc.errno, f'loading plugin "{name}" from receipts dir: {exc.strerror}', exc.filename
        ) from exc
    else:
        log.debug("Found plugin manifest for %r in the receipts dir", name)
        return receipt
    return load_plugin_by_name(paths.index_plugins_path(), name)