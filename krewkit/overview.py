"""Render a markdown overview page of the plugins in a manifest directory."""

from __future__ import annotations

import argparse
import logging
import re
import sys
from collections.abc import Sequence
from typing import TextIO

from krewkit.manifest import Plugin
from krewkit.scanner import load_plugin_list_from_fs

log = logging.getLogger(__name__)

SEPARATOR = " | "

PAGE_HEADER = """## Available kubectl plugins

To install these kubectl plugins:

1. Install Krew
2. Run `kubectl krew install PLUGIN_NAME` to install a plugin via Krew.

The following kubectl plugins are currently available on the Krew plugin index.
Note that this table may be outdated. For the most up-to-date list of plugins,
run <code>kubectl krew search</code>.
"""

PAGE_FOOTER = """

---

_This page is generated by running the generate-plugin-overview tool._
"""

_GITHUB_REPO = re.compile(r".*github\.com/([^/]+/[^/#]+)")

# Home pages that are not on GitHub but whose sources are, mapped to owner/repo.
KNOWN_HOME_PAGES: dict[str, str] = {}


def print_row(out: TextIO, *args: str) -> None:
    """Write one table row."""
    out.write(SEPARATOR.join(args) + "\n")


def print_table_header(out: TextIO) -> None:
    """Write the table's header and its delimiter row."""
    print_row(out, "Name", "Description", "Stars")
    print_row(out, "----", "-----------", "-----")


def find_repo(home_page: str) -> str:
    """The owner/repo of a GitHub project behind a home page, or an empty string."""
    match = _GITHUB_REPO.search(home_page)
    if match:
        return match.group(1)
    return KNOWN_HOME_PAGES.get(home_page, "")


def make_github_shield(home_page: str) -> str:
    """A markdown star badge for the home page's repository, or an empty string."""
    repo = find_repo(home_page)
    if not repo:
        return ""
    return (
        "![GitHub stars](https://img.shields.io/github/stars/"
        + repo
        + ".svg?label=stars&logo=github)"
    )


def print_table_row_for_plugin(out: TextIO, plugin: Plugin) -> None:
    """Write the row describing one plugin."""
    name = plugin.name
    homepage = plugin.spec.homepage
    if homepage:
        name = f"[{name.strip()}]({homepage})"
    description = plugin.spec.short_description.strip()
    print_row(out, name, description, make_github_shield(homepage))


def main(argv: Sequence[str] | None = None) -> int:
    """Command entry point; returns the exit status."""
    parser = argparse.ArgumentParser(
        prog="generate-plugin-overview",
        description="Create a markdown overview page from a directory of plugin manifests.",
    )
    parser.add_argument(
        "-plugins-dir",
        "--plugins-dir",
        dest="plugins_dir",
        default="",
        help="The directory containing the plugin manifests",
    )
    args = parser.parse_args(argv)
    if not args.plugins_dir:
        parser.print_usage(sys.stderr)
        return 0

    try:
        plugins = load_plugin_list_from_fs(args.plugins_dir)
    except OSError as exc:
        logging.basicConfig(stream=sys.stderr)
        log.error("%s", exc)
        return 1

    out = sys.stdout
    out.write(PAGE_HEADER + "\n")
    print_table_header(out)
    for plugin in plugins:
        print_table_row_for_plugin(out, plugin)
    out.write(PAGE_FOOTER + "\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())