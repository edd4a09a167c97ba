import subprocess
from unittest import mock

import pytest
import yaml

from krewkit.manifest import (
    LabelSelector,
    OSArchPair,
    Platform,
    Plugin,
    PluginSpec,
    SelectorRequirement,
    plugin_to_dict,
)
from krewkit.validate_manifest import (
    all_platforms,
    find_any_matching_platform,
    install_platform_spec,
    is_overlapping_platform_selectors,
    main,
    selector_matches_os_arch,
    validate_manifest_file,
)

SHA = "deadbeef" * 8


def with_os(name):
    return LabelSelector(match_labels={"os": name})


def with_os_arch(os_name, arch):
    return LabelSelector(match_labels={"os": os_name, "arch": arch})


def with_oses(*names):
    return LabelSelector(match_expressions=[SelectorRequirement("os", "In", list(names))])


def make_platform(selector=None):
    return Platform(
        uri="https://example.com/plugin.tar.gz",
        sha256=SHA,
        bin="kubectl-foo",
        selector=selector if selector is not None else with_os("linux"),
    )


def make_plugin(name, *platforms):
    return Plugin(
        name=name,
        spec=PluginSpec(
            version="v1.0.0",
            short_description="short",
            platforms=list(platforms) or [make_platform()],
        ),
    )


def write_manifest(directory, filename, plugin):
    path = directory / filename
    path.write_text(yaml.safe_dump(plugin_to_dict(plugin)))
    return str(path)


@pytest.mark.parametrize(
    "filename, plugin, message",
    [
        ("test.yaml", None, "failed to read plugin file"),
        ("test.yml", make_plugin("test"), 'expected manifest extension ".yaml"'),
        ("foo.yaml", make_plugin("not-foo"), "plugin validation error"),
        (
            "test.yaml",
            make_plugin("test", make_platform(with_os_arch("darwin", "arm"))),
            "doesn't match any supported platforms",
        ),
        (
            "test.yaml",
            make_plugin(
                "test",
                make_platform(with_os("linux")),
                make_platform(with_os_arch("linux", "amd64")),
            ),
            "overlapping platform selectors found",
        ),
    ],
)
def test_validate_manifest_file_errors(tmp_path, filename, plugin, message):
    if plugin is None:
        path = str(tmp_path / filename)
    else:
        path = write_manifest(tmp_path, filename, plugin)
    with pytest.raises(ValueError) as excinfo:
        validate_manifest_file(path)
    assert message in str(excinfo.value)


def test_validate_manifest_file_installs_every_platform(tmp_path):
    plugin = make_plugin("test", make_platform(with_os("linux")), make_platform(with_os("darwin")))
    path = write_manifest(tmp_path, "test.yaml", plugin)
    with mock.patch(
        "krewkit.validate_manifest.subprocess.run",
        return_value=subprocess.CompletedProcess([], 0, b""),
    ) as run:
        result = validate_manifest_file(path)
    assert result is None
    assert run.call_count == 2
    envs = [call.kwargs["env"] for call in run.call_args_list]
    assert [env["KREW_OS"] for env in envs] == ["linux", "darwin"]


def test_validate_manifest_file_reports_install_failure(tmp_path):
    path = write_manifest(tmp_path, "test.yaml", make_plugin("test"))
    with mock.patch(
        "krewkit.validate_manifest.subprocess.run",
        return_value=subprocess.CompletedProcess([], 1, b"boom\nbad"),
    ):
        with pytest.raises(RuntimeError, match=r"spec\.platforms\[0\] failed to install"):
            validate_manifest_file(path)


def test_install_platform_spec_passes_environment():
    with mock.patch(
        "krewkit.validate_manifest.subprocess.run",
        return_value=subprocess.CompletedProcess([], 0, b""),
    ) as run:
        result = install_platform_spec(
            "/tmp/foo.yaml", make_platform(with_os_arch("linux", "arm64"))
        )
    assert result is None
    args = run.call_args.args[0]
    env = run.call_args.kwargs["env"]
    assert args == ["kubectl", "krew", "install", "--manifest", "/tmp/foo.yaml", "-v=4"]
    assert env["KREW_OS"] == "linux"
    assert env["KREW_ARCH"] == "arm64"
    assert env["KREW_ROOT"]


def test_install_platform_spec_failure_output_is_indented():
    with mock.patch(
        "krewkit.validate_manifest.subprocess.run",
        return_value=subprocess.CompletedProcess([], 1, b"boom\nbad"),
    ):
        with pytest.raises(RuntimeError) as excinfo:
            install_platform_spec("/tmp/foo.yaml", make_platform())
    assert "plugin install command failed" in str(excinfo.value)
    assert "boom\n\tbad" in str(excinfo.value)


def test_install_platform_spec_unmatched_selector():
    with pytest.raises(ValueError, match="no supported platform matched"):
        install_platform_spec("/tmp/foo.yaml", make_platform(with_os("plan9")))


@pytest.mark.parametrize(
    "selector, env, want",
    [
        (with_os("darwin"), OSArchPair("windows", "amd64"), False),
        (with_os("darwin"), OSArchPair("darwin", "amd64"), True),
        (with_oses("darwin", "linux"), OSArchPair("windows", "amd64"), False),
        (with_oses("darwin", "linux"), OSArchPair("darwin", "amd64"), True),
    ],
)
def test_selector_matches_os_arch(selector, env, want):
    assert selector_matches_os_arch(selector, env) is want


def test_selector_matches_os_arch_nil_selector():
    assert selector_matches_os_arch(None, OSArchPair("linux", "amd64")) is False


def test_find_any_matching_platform():
    env = find_any_matching_platform(with_os("darwin"))
    assert env.os == "darwin"
    assert env.arch

    assert find_any_matching_platform(with_os("non-existing")) == OSArchPair()

    env3 = find_any_matching_platform(with_oses("darwin", "linux"))
    assert env3.os in ("darwin", "linux")
    assert env3.arch


def test_is_overlapping_platform_selectors_no_overlap():
    p1 = make_platform(with_oses("darwin", "linux"))
    p2 = make_platform(with_oses("windows"))
    assert is_overlapping_platform_selectors([p1, p2]) is None
    assert find_any_matching_platform(p1.selector).os in ("darwin", "linux")
    assert find_any_matching_platform(p2.selector).os == "windows"


def test_is_overlapping_platform_selectors_overlap():
    p1 = make_platform(with_os("darwin"))
    p2 = make_platform(with_oses("darwin", "linux"))
    with pytest.raises(ValueError, match=r"at indexes \[0 1\]"):
        is_overlapping_platform_selectors([p1, p2])


def test_all_platforms_are_distinct_and_complete():
    platforms = all_platforms()
    assert len(set(platforms)) == len(platforms) == 8
    assert OSArchPair("linux", "amd64") in platforms
    assert all(p.os and p.arch for p in platforms)


def test_main_requires_manifest():
    assert main([]) == 1


def test_main_reports_missing_file(tmp_path):
    assert main(["-manifest", str(tmp_path / "missing.yaml")]) == 1


def test_main_success(tmp_path):
    path = write_manifest(tmp_path, "test.yaml", make_plugin("test"))
    with mock.patch(
        "krewkit.validate_manifest.subprocess.run",
        return_value=subprocess.CompletedProcess([], 0, b""),
    ) as run:
        assert main(["--manifest", path]) == 0
    assert run.call_count == 1