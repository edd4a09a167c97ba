"""Structural validation of plugin manifests."""

from __future__ import annotations

import re

from krewkit.manifest import (
    CURRENT_API_VERSION,
    PLUGIN_KIND,
    FileOperation,
    LabelSelector,
    Platform,
    Plugin,
)

SAFE_PLUGIN_PATTERN = r"^[\w-]+$"
SHA256_PATTERN = r"^[a-f0-9]{64}$"

_SAFE_PLUGIN = re.compile(r"[\w-]+", re.ASCII)
_SHA256 = re.compile(r"[a-f0-9]{64}")

_NUMBER = r"(?:0|[1-9][0-9]*)"
_PRERELEASE_ID = r"(?:0|[1-9][0-9]*|[0-9]*[A-Za-z-][0-9A-Za-z-]*)"
_BUILD_ID = r"[0-9A-Za-z-]+"
_VERSION = re.compile(
    rf"v{_NUMBER}\.{_NUMBER}\.{_NUMBER}"
    rf"(?:-{_PRERELEASE_ID}(?:\.{_PRERELEASE_ID})*)?"
    rf"(?:\+{_BUILD_ID}(?:\.{_BUILD_ID})*)?"
)

WINDOWS_FORBIDDEN = frozenset(
    ["CON", "PRN", "AUX", "NUL"]
    + [f"COM{n}" for n in range(1, 10)]
    + [f"LPT{n}" for n in range(1, 10)]
)

_SUPPORTED_SELECTOR_KEYS = ("os", "arch")


class ValidationError(ValueError):
    """A plugin manifest is structurally invalid."""


def is_safe_plugin_name(name: str) -> bool:
    """Tell whether a plugin name is safe to use as a file name."""
    if not _SAFE_PLUGIN.fullmatch(name):
        return False
    return name.upper() not in WINDOWS_FORBIDDEN


def is_supported_api_version(api_version: str) -> bool:
    """Tell whether the manifest API version is the one this tool reads."""
    return api_version == CURRENT_API_VERSION


def _check_version(version: str) -> None:
    if not version.startswith("v"):
        raise ValidationError(f"version string {version!r} does not start with 'v'")
    if not _VERSION.fullmatch(version):
        raise ValidationError(f"version string {version!r} is not a valid semantic version")


def validate_plugin(name: str, plugin: Plugin) -> None:
    """Check a plugin manifest that is expected to be named ``name``."""
    if not is_supported_api_version(plugin.api_version):
        raise ValidationError(
            f'plugin manifest has apiVersion="{plugin.api_version}", not supported in this '
            "version of krew (try updating plugin index or install a newer version of krew)"
        )
    if plugin.kind != PLUGIN_KIND:
        raise ValidationError(
            f'plugin manifest has kind="{plugin.kind}", but only "{PLUGIN_KIND}" is supported'
        )
    if not is_safe_plugin_name(name):
        raise ValidationError(
            f'the plugin name "{name}" is not allowed, must match "{SAFE_PLUGIN_PATTERN}"'
        )
    if plugin.name != name:
        raise ValidationError(f'plugin should be named "{name}", not "{plugin.name}"')
    spec = plugin.spec
    if not spec.short_description:
        raise ValidationError("should have a short description")
    if any(ch in spec.short_description for ch in "\r\n"):
        raise ValidationError("should not have line breaks in short description")
    if not spec.platforms:
        raise ValidationError("should have a platform specified")
    if not spec.version:
        raise ValidationError("should have a version specified")
    try:
        _check_version(spec.version)
    except ValidationError as exc:
        raise ValidationError(f"failed to parse plugin version: {exc}") from exc
    for platform in spec.platforms:
        try:
            validate_platform(platform)
        except ValidationError as exc:
            raise ValidationError(f"platform ({platform!r}) is badly constructed: {exc}") from exc


def validate_platform(platform: Platform) -> None:
    """Check a platform entry for structural validity."""
    if not platform.uri:
        raise ValidationError("`uri` has to be set")
    if not platform.sha256:
        raise ValidationError("`sha256` sum has to be set")
    if not _SHA256.fullmatch(platform.sha256):
        raise ValidationError(
            f"`sha256` value {platform.sha256} is not valid, must match pattern {SHA256_PATTERN}"
        )
    if not platform.bin:
        raise ValidationError("`bin` has to be set")
    try:
        validate_files(platform.files)
    except ValidationError as exc:
        raise ValidationError(f"`files` is invalid: {exc}") from exc
    try:
        validate_selector(platform.selector)
    except ValidationError as exc:
        raise ValidationError(f"invalid platform selector: {exc}") from exc


def validate_files(files: list[FileOperation] | None) -> None:
    """Check file operations: unspecified is fine, empty is not."""
    if files is None:
        return
    if not files:
        raise ValidationError("`files` has to be unspecified or non-empty")
    for operation in files:
        if not operation.from_:
            raise ValidationError("`from` field has to be set")
        if not operation.to:
            raise ValidationError("`to` field has to be set")


def validate_selector(selector: LabelSelector | None) -> None:
    """Check that a platform selector is present, non-empty and uses supported keys."""
    if selector is None:
        raise ValidationError("nil selector is not supported")
    if selector.match_labels is None and not selector.match_expressions:
        raise ValidationError("empty selector is not supported")

    keys = list(selector.match_labels or {})
    keys.extend(expression.key for expression in selector.match_expressions or [])
    for key in keys:
        if key not in _SUPPORTED_SELECTOR_KEYS:
            raise ValidationError(f'key "{key}" not supported')

    if selector.match_labels is not None and not selector.match_labels:
        raise ValidationError("`matchLabels` specified but empty")
    if selector.match_expressions is not None and not selector.match_expressions:
        raise ValidationError("`matchExpressions` specified but empty")