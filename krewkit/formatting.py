"""Text output shared by the plugin manager's commands."""

from __future__ import annotations

import os
import re
import sys
from collections.abc import Sequence
from typing import TextIO

from krewkit.manifest import Platform, Plugin

SECURITY_NOTICE = (
    "You installed a plugin from the krew-index plugin repository.\n"
    "   These plugins are not audited for security by the Krew maintainers.\n"
    "   Run them at your own risk."
)

_TABLE_PADDING = 2
_LINE_START = re.compile(r"^", re.MULTILINE)
_BOLD_RED = "\x1b[31;1m"
_RESET = "\x1b[0m"


def indent(s: str) -> str:
    """Frame a block of text for printing.

    Trailing whitespace is dropped, every line is prefixed with `` | ``,
    and the block is opened with a backslash and closed with a slash.
    """
    body = _LINE_START.sub(" | ", s.rstrip())
    return "\\\n" + body + "\n/"


def print_plugin_info(out: TextIO, plugin: Plugin, platform: Platform | None = None) -> None:
    """Write what is known about a plugin.

    ``platform`` is the plugin's platform that matches this machine, if any;
    its download location is shown only when it has one.
    """
    out.write(f"NAME: {plugin.name}\n")
    if platform is not None and platform.uri:
        out.write(f"URI: {platform.uri}\n")
        out.write(f"SHA256: {platform.sha256}\n")
    spec = plugin.spec
    if spec.version:
        out.write(f"VERSION: {spec.version}\n")
    if spec.homepage:
        out.write(f"HOMEPAGE: {spec.homepage}\n")
    if spec.description:
        out.write(f"DESCRIPTION: \n{spec.description}\n")
    if spec.caveats:
        out.write(f"CAVEATS:\n{indent(spec.caveats)}\n")


def _align(text: str, padding: int) -> str:
    """Align tab-separated cells into columns, column by column in blocks.

    A column block is a run of consecutive lines that all have a
    tab-terminated cell in that column; the last cell of a line is never
    padded.
    """
    lines = [line.split("\t") for line in text.split("\n")]
    if lines and lines[-1] == [""]:
        lines.pop()

    out: list[str] = []
    widths: list[int] = []

    def write_lines(start: int, end: int) -> None:
        for line in lines[start:end]:
            cells = (
                cell.ljust(widths[column]) if column < len(widths) else cell
                for column, cell in enumerate(line)
            )
            out.append("".join(cells) + "\n")

    def format_block(line0: int, line1: int) -> None:
        column = len(widths)
        current = line0
        while current < line1:
            if column >= len(lines[current]) - 1:
                current += 1
                continue
            write_lines(line0, current)
            line0 = current
            width = 0
            while current < line1 and column < len(lines[current]) - 1:
                width = max(width, len(lines[current][column]) + padding)
                current += 1
            widths.append(width)
            format_block(line0, current)
            widths.pop()
            line0 = current
        write_lines(line0, line1)

    format_block(0, len(lines))
    return "".join(out)


def print_table(out: TextIO, columns: Sequence[str], rows: Sequence[Sequence[str]]) -> None:
    """Write a header and rows as space-aligned columns."""
    text = "".join("\t".join(values) + "\n" for values in [columns, *rows])
    out.write(_align(text, _TABLE_PADDING))


def sort_by_first_column(rows: list[list[str]]) -> list[list[str]]:
    """Sort rows in place by their first cell and return them."""
    rows.sort(key=lambda row: row[0])
    return rows


def limit_string(s: str, length: int) -> str:
    """Shorten a string to ``length`` characters, ending it with an ellipsis.

    Limits of 3 or less leave the string as it is.
    """
    if len(s) > length and length > 3:
        return s[: length - 3] + "..."
    return s


def _wants_color(out: TextIO) -> bool:
    if os.environ.get("TERM") == "dumb":
        return False
    isatty = getattr(out, "isatty", None)
    return bool(isatty and isatty())


def print_security_notice(out: TextIO | None = None) -> None:
    """Warn that plugins from the index are not audited for security."""
    stream = sys.stderr if out is None else out
    label = "WARNING"
    if _wants_color(stream):
        label = f"{_BOLD_RED}{label}{_RESET}"
    stream.write(f"{label}: {SECURITY_NOTICE}\n")