import io

import pytest

from krewkit.formatting import (
    SECURITY_NOTICE,
    indent,
    limit_string,
    print_plugin_info,
    print_security_notice,
    print_table,
    sort_by_first_column,
)
from krewkit.manifest import Platform, Plugin, PluginSpec


class _TTY(io.StringIO):
    def isatty(self):
        return True


def _plugin(**spec):
    return Plugin(name="foo", spec=PluginSpec(**spec))


def test_indent_worked_example():
    text = (
        "This plugin is great, use it with great care.\n"
        "Also, plugin will require the following programs to run:\n"
        " * jq\n"
        " * base64\n"
    )
    expected = (
        "\\\n"
        " | This plugin is great, use it with great care.\n"
        " | Also, plugin will require the following programs to run:\n"
        " |  * jq\n"
        " |  * base64\n"
        "/"
    )
    assert indent(text) == expected


def test_indent_trims_trailing_whitespace():
    assert indent("one line \n\n\t ") == "\\\n | one line\n/"


def test_indent_empty_string_still_framed():
    result = indent("")
    assert result.startswith("\\\n")
    assert result.endswith("\n/")
    assert result.count("\n") == 2


def test_print_plugin_info_full():
    plugin = _plugin(
        version="v1.2.3",
        homepage="https://example.com/foo",
        description="Does foo.",
        caveats="Needs bar.",
    )
    platform = Platform(uri="https://example.com/foo.tar.gz", sha256="a" * 64)
    out = io.StringIO()
    print_plugin_info(out, plugin, platform)
    assert out.getvalue().splitlines() == [
        "NAME: foo",
        "URI: https://example.com/foo.tar.gz",
        "SHA256: " + "a" * 64,
        "VERSION: v1.2.3",
        "HOMEPAGE: https://example.com/foo",
        "DESCRIPTION: ",
        "Does foo.",
        "CAVEATS:",
        "\\",
        " | Needs bar.",
        "/",
    ]


def test_print_plugin_info_minimal():
    out = io.StringIO()
    print_plugin_info(out, _plugin(), None)
    assert out.getvalue() == "NAME: foo\n"


def test_print_plugin_info_platform_without_uri_is_not_shown():
    out = io.StringIO()
    print_plugin_info(out, _plugin(version="v1.0.0"), Platform(sha256="b" * 64))
    text = out.getvalue()
    assert "URI:" not in text
    assert "SHA256:" not in text
    assert "VERSION: v1.0.0\n" in text


def test_print_table_simple():
    out = io.StringIO()
    print_table(out, ["PLUGIN", "VERSION"], [["foo", "v1"]])
    assert out.getvalue() == "PLUGIN  VERSION\nfoo     v1\n"


def test_print_table_columns_aligned():
    out = io.StringIO()
    rows = [["a", "x", "last"], ["a-much-longer-name", "yy", "z"], ["mid", "", "q"]]
    print_table(out, ["NAME", "DESCRIPTION", "INSTALLED"], rows)
    lines = out.getvalue().splitlines()
    assert len(lines) == 4
    starts = {line.index(last) for line, last in zip(lines, ["INSTALLED", "last", "z", "q"])}
    assert len(starts) == 1
    second = {line.index(cell) for line, cell in zip(lines[:3], ["DESCRIPTION", "x", "yy"])}
    assert second == {len("a-much-longer-name") + 2}


def test_print_table_last_column_not_padded():
    out = io.StringIO()
    print_table(out, ["A", "B"], [["1", "long value"], ["2", "v"]])
    for line in out.getvalue().splitlines():
        assert line == line.rstrip()


def test_sort_by_first_column():
    rows = [["b", "2"], ["c", "3"], ["a", "1"]]
    result = sort_by_first_column(rows)
    assert result == [["a", "1"], ["b", "2"], ["c", "3"]]
    assert result is rows


@pytest.mark.parametrize(
    "s,length",
    [("short", 50), ("exactly", 7), ("abcdef", 3), ("abcdef", 0)],
)
def test_limit_string_unchanged(s, length):
    assert limit_string(s, length) == s


def test_limit_string_shortens():
    s = "x" * 60 + "tail"
    result = limit_string(s, 50)
    assert len(result) == 50
    assert result.endswith("...")
    assert result[:-3] == s[:47]


def test_security_notice_plain(monkeypatch):
    monkeypatch.delenv("TERM", raising=False)
    out = io.StringIO()
    print_security_notice(out)
    assert out.getvalue() == "WARNING: " + SECURITY_NOTICE + "\n"
    assert "\x1b[" not in out.getvalue()


def test_security_notice_colored_on_terminal(monkeypatch):
    monkeypatch.setenv("TERM", "xterm")
    out = _TTY()
    print_security_notice(out)
    text = out.getvalue()
    assert text.startswith("\x1b[31;1mWARNING\x1b[0m: ")
    assert text.endswith(SECURITY_NOTICE + "\n")


def test_security_notice_dumb_terminal(monkeypatch):
    monkeypatch.setenv("TERM", "dumb")
    out = _TTY()
    print_security_notice(out)
    assert out.getvalue().startswith("WARNING: You installed a plugin")