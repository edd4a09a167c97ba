# krewkit

krewkit works with kubectl plugin manifests as they are kept in a plugin
index: a directory of `<name>.yaml` files, each describing one plugin. It can:

- parse plugin manifests (YAML) into dataclasses and check that they are well
  formed;
- scan a directory of manifests and load plugins by name;
- work out where plugins, receipts and the index live on disk;
- download plugin archives, check their SHA-256 checksum and unpack `.zip`
  and `.tar.gz` archives;
- keep a local git clone of the plugin index up to date;
- render plugin information, aligned tables and a Markdown overview of an
  index.

## Installation

```
pip install krewkit
```

To run the test suite:

```
pip install "krewkit[test]"
pytest
```

## Command-line tools

### validate-krew-manifest

Checks a single plugin manifest file:

```
validate-krew-manifest --manifest path/to/my-plugin.yaml
```

The file must have a `.yaml` extension and pass the structural checks, with
the plugin name inside it matching the file name. Every
`spec.platforms[].selector` must match at least one supported `<os, arch>`
pair (windows, linux and darwin on 386 and amd64, plus linux on arm and
arm64), and no supported pair may be matched by more than one platform.
Finally it tries an installation for each platform by running
`kubectl krew install --manifest <file> -v=4` with `KREW_ROOT` pointing at a
throw-away directory and `KREW_OS`/`KREW_ARCH` set to the matched pair, so
`kubectl` with its `krew` plugin must be on your `PATH` for that step. The
exit status is 0 when everything passes and 1 otherwise.

### generate-plugin-overview

Prints a Markdown page listing every plugin in a directory of manifests, with
name (linked to its home page), short description and a star badge for
plugins whose home page is on GitHub:

```
generate-plugin-overview --plugins-dir path/to/index/plugins > plugins.md
```

Manifests that cannot be read or are invalid are logged and left out.
Without `--plugins-dir` it prints its usage and exits.

## Library use

```python
from krewkit.environment import get_krew_paths
from krewkit.scanner import load_plugin_by_name, load_plugin_list_from_fs
from krewkit.validation import validate_plugin, ValidationError

paths = get_krew_paths()          # ~/.krew, or $KREW_ROOT when set
print(paths.index_plugins_path())

for plugin in load_plugin_list_from_fs(paths.index_plugins_path()):
    print(plugin.name, plugin.spec.version)

plugin = load_plugin_by_name(paths.index_plugins_path(), "my-plugin")
try:
    validate_plugin("my-plugin", plugin)
except ValidationError as exc:
    print("invalid manifest:", exc)
```

Loading a plugin that has no manifest file raises `FileNotFoundError`, so a
missing plugin can be told apart from a broken one.

`krewkit.manifest` holds the data model (`Plugin`, `PluginSpec`, `Platform`,
`FileOperation`, `LabelSelector`, `SelectorRequirement`, `OSArchPair`) and
`plugin_from_dict` / `plugin_to_dict` for converting to and from the decoded
YAML document. `LabelSelector.matches(labels)` evaluates `matchLabels` and
`matchExpressions` (`In`, `NotIn`, `Exists`, `DoesNotExist`).

Downloading and unpacking an archive with checksum verification:

```python
from krewkit.download import Downloader, HTTPFetcher, Sha256Verifier

downloader = Downloader(Sha256Verifier("<expected sha256 hex digest>"), HTTPFetcher())
downloader.get(uri, "/tmp/unpacked")
```

`FileFetcher(path)` reads a local file instead of fetching over HTTP. The
archive format is recognised from its content; only zip and gzipped tar are
accepted. Archives whose entries contain `..` or start with `/` or `\` are
refused, and failures raise `DownloadError`.

Other entry points:

- `krewkit.info.load_manifest_from_receipt_or_index(paths, name)` looks for an
  installed receipt first and falls back to the index.
- `krewkit.gitutil.ensure_updated(uri, path)` clones the repository if needed,
  then fetches, hard-resets to the upstream branch and removes untracked
  files; `is_git_cloned` and `ensure_cloned` do the individual steps. Git
  failures raise `GitError`.
- `krewkit.formatting` holds `print_plugin_info`, `print_table`,
  `sort_by_first_column`, `indent`, `limit_string` and
  `print_security_notice`.
- `krewkit.commands` holds the plugin selection logic an installer needs:
  `select_plugins`, `read_plugin_names`, `read_plugin_from_url`,
  `check_index`, `ensure_dirs` and `is_terminal`; invalid requests raise
  `CommandError`.

## What krewkit does not do

krewkit is not a complete plugin manager. It has no `install`, `uninstall`,
`upgrade`, `list` or `search` command, and it does not place plugin files
into the install directory, create links in the bin directory or write
install receipts. It can read receipts that already exist, choose which
manifests an installation would use, and fetch and unpack their archives,
but putting an installed plugin in place is left to the caller.