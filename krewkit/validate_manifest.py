"""Check that a plugin manifest file is valid and installs on every platform it names."""

from __future__ import annotations

import argparse
import logging
import os
import subprocess
import sys
import tempfile
from collections.abc import Sequence

from krewkit.manifest import MANIFEST_EXTENSION, LabelSelector, OSArchPair, Platform
from krewkit.scanner import read_plugin_from_file
from krewkit.validation import ValidationError, validate_plugin

log = logging.getLogger(__name__)

_SUPPORTED_PLATFORMS = (
    OSArchPair("windows", "386"),
    OSArchPair("windows", "amd64"),
    OSArchPair("linux", "386"),
    OSArchPair("linux", "amd64"),
    OSArchPair("linux", "arm"),
    OSArchPair("linux", "arm64"),
    OSArchPair("darwin", "386"),
    OSArchPair("darwin", "amd64"),
)


def _extension(name: str) -> str:
    dot = name.rfind(".")
    return name[dot:] if dot >= 0 else ""


def _describe(env: OSArchPair) -> str:
    return f"{env.os}/{env.arch}"


def all_platforms() -> list[OSArchPair]:
    """Every <os,arch> pair the plugin manager supports."""
    return list(_SUPPORTED_PLATFORMS)


def selector_matches_os_arch(selector: LabelSelector | None, env: OSArchPair) -> bool:
    """Tell whether a platform selector picks the given <os,arch> pair."""
    if selector is None:
        return False
    try:
        return selector.matches({"os": env.os, "arch": env.arch})
    except ValueError:
        log.warning("Failed to convert label selector: %r", selector)
        return False


def find_any_matching_platform(selector: LabelSelector | None) -> OSArchPair:
    """The first supported pair the selector picks, or an empty pair."""
    for env in all_platforms():
        if selector_matches_os_arch(selector, env):
            log.debug("%r MATCHED <%s>", selector, _describe(env))
            return env
        log.debug("%r didn't match <%s>", selector, _describe(env))
    return OSArchPair()


def is_overlapping_platform_selectors(platforms: Sequence[Platform]) -> None:
    """Raise ValueError when one supported pair is picked by several platforms."""
    for env in all_platforms():
        matched = [
            position
            for position, platform in enumerate(platforms)
            if selector_matches_os_arch(platform.selector, env)
        ]
        if len(matched) > 1:
            indexes = "[" + " ".join(str(position) for position in matched) + "]"
            raise ValueError(
                f"multiple spec.platforms (at indexes {indexes}) have overlapping "
                f"selectors that select {_describe(env)}"
            )


def install_platform_spec(manifest_file: str, platform: Platform) -> None:
    """Install the manifest for the platform into a throwaway root.

    Raises ValueError when no supported pair matches the platform and
    RuntimeError when the install command fails.
    """
    env = find_any_matching_platform(platform.selector)
    if not env.os or not env.arch:
        raise ValueError(
            f"no supported platform matched platform selector: {platform.selector!r}"
        )

    command = ["kubectl", "krew", "install", "--manifest", manifest_file, "-v=4"]
    with tempfile.TemporaryDirectory(prefix="krew-test", ignore_cleanup_errors=True) as tmp_dir:
        command_env = {"KREW_ROOT": tmp_dir, "KREW_OS": env.os, "KREW_ARCH": env.arch}
        log.debug("installing plugin with: %r", command_env)
        command_env["PATH"] = os.environ.get("PATH", "")
        try:
            result = subprocess.run(
                command,
                env=command_env,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                check=False,
            )
        except OSError as exc:
            raise RuntimeError(f"plugin install command failed: {exc}") from exc

    if result.returncode != 0:
        raw = result.stdout or b""
        text = raw.decode(errors="replace") if isinstance(raw, bytes) else str(raw)
        output = text.replace("\n", "\n\t")
        raise RuntimeError(
            f"plugin install command failed (exit status {result.returncode}): {output}"
        )


def validate_manifest_file(path: str) -> None:
    """Validate a manifest file and exercise its installation on each platform.

    Raises ValueError for invalid manifests and RuntimeError when an
    installation fails.
    """
    log.debug("reading file %s", path)
    try:
        plugin = read_plugin_from_file(path)
    except (OSError, ValueError) as exc:
        raise ValueError(f"failed to read plugin file: {exc}") from exc

    filename = os.path.basename(path)
    extension = _extension(filename)
    if extension != MANIFEST_EXTENSION:
        raise ValueError(
            f'expected manifest extension "{MANIFEST_EXTENSION}" but found "{extension}"'
        )
    name_from_file = filename[: -len(extension)]
    log.debug("inferred plugin name as %s", name_from_file)

    try:
        validate_plugin(name_from_file, plugin)
    except ValidationError as exc:
        raise ValueError(f"plugin validation error: {exc}") from exc
    log.info("structural validation OK")

    for position, platform in enumerate(plugin.spec.platforms):
        env = find_any_matching_platform(platform.selector)
        if not env.os or not env.arch:
            raise ValueError(
                f"spec.platform[{position}]'s selector ({platform.selector!r}) "
                "doesn't match any supported platforms"
            )
    log.info("all spec.platform[] items are used")

    try:
        is_overlapping_platform_selectors(plugin.spec.platforms)
    except ValueError as exc:
        raise ValueError(f"overlapping platform selectors found: {exc}") from exc
    log.info("no overlapping spec.platform[].selector")

    for position, platform in enumerate(plugin.spec.platforms):
        log.info("installing spec.platform[%d]", position)
        try:
            install_platform_spec(path, platform)
        except (RuntimeError, ValueError) as exc:
            raise RuntimeError(f"spec.platforms[{position}] failed to install: {exc}") from exc
        log.info("installed  spec.platforms[%d]", position)
    log.info("all %d spec.platforms installed fine", len(plugin.spec.platforms))


def main(argv: Sequence[str] | None = None) -> int:
    """Command entry point; returns the exit status."""
    parser = argparse.ArgumentParser(
        prog="validate-krew-manifest", description="Make sure a plugin manifest file is valid."
    )
    parser.add_argument(
        "-manifest", "--manifest", default="", help="path to plugin manifest file"
    )
    args = parser.parse_args(argv)
    logging.basicConfig(stream=sys.stderr, level=logging.INFO, format="%(levelname)s %(message)s")

    if not args.manifest:
        log.error("-manifest must be specified")
        return 1
    try:
        validate_manifest_file(args.manifest)
    except (OSError, ValueError, RuntimeError) as exc:
        log.error("%s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())