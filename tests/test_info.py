import os

import pytest
import yaml

from krewkit.environment import Paths
from krewkit.info import load_manifest_from_receipt_or_index
from krewkit.manifest import LabelSelector, Platform, Plugin, PluginSpec, plugin_to_dict

PLUGIN_NAME = "some-plugin"


def _plugin(short_description="short description"):
    return Plugin(
        name=PLUGIN_NAME,
        spec=PluginSpec(
            version="v1.0.0",
            short_description=short_description,
            platforms=[
                Platform(
                    uri="https://example.com/plugin.zip",
                    sha256="a" * 64,
                    bin="kubectl-some-plugin",
                    selector=LabelSelector(match_labels={"os": "linux"}),
                )
            ],
        ),
    )


def _write(path, content):
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8") as handle:
        handle.write(content)


def _yaml(plugin):
    return yaml.safe_dump(plugin_to_dict(plugin))


def _receipt_path(paths):
    return paths.plugin_install_receipt_path(PLUGIN_NAME)


def _index_path(paths):
    return os.path.join(paths.index_plugins_path(), PLUGIN_NAME + ".yaml")


@pytest.mark.parametrize("where", [_receipt_path, _index_path])
def test_load_manifest_found(tmp_path, where):
    paths = Paths(str(tmp_path))
    _write(where(paths), _yaml(_plugin()))
    assert load_manifest_from_receipt_or_index(paths, PLUGIN_NAME) == _plugin()


@pytest.mark.parametrize("where", [_receipt_path, _index_path])
def test_load_manifest_invalid(tmp_path, where):
    paths = Paths(str(tmp_path))
    _write(where(paths), "invalid yaml file")
    with pytest.raises(ValueError):
        load_manifest_from_receipt_or_index(paths, PLUGIN_NAME)


def test_receipt_takes_precedence(tmp_path):
    paths = Paths(str(tmp_path))
    _write(_receipt_path(paths), _yaml(_plugin("from receipt")))
    _write(_index_path(paths), _yaml(_plugin("from index")))
    loaded = load_manifest_from_receipt_or_index(paths, PLUGIN_NAME)
    assert loaded.spec.short_description == "from receipt"


def test_invalid_receipt_error_names_receipts_dir(tmp_path):
    paths = Paths(str(tmp_path))
    _write(_receipt_path(paths), "invalid yaml file")
    _write(_index_path(paths), _yaml(_plugin()))
    with pytest.raises(ValueError, match="from receipts dir"):
        load_manifest_from_receipt_or_index(paths, PLUGIN_NAME)


def test_missing_plugin_is_not_found(tmp_path):
    paths = Paths(str(tmp_path))
    with pytest.raises(FileNotFoundError):
        load_manifest_from_receipt_or_index(paths, "non-existing-plugin")