"""Plugin manifest data model and its YAML-shaped dictionary form."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

MANIFEST_EXTENSION = ".yaml"
CURRENT_API_VERSION = "krew.googlecontainertools.github.com/v1alpha2"
PLUGIN_KIND = "Plugin"


class SelectorOperator(str, Enum):
    """Operators allowed in a label selector requirement."""

    IN = "In"
    NOT_IN = "NotIn"
    EXISTS = "Exists"
    DOES_NOT_EXIST = "DoesNotExist"


@dataclass
class SelectorRequirement:
    """A single match expression of a label selector."""

    key: str
    operator: str
    values: list[str] = field(default_factory=list)

    def _matches(self, labels: Mapping[str, str]) -> bool:
        try:
            operator = SelectorOperator(self.operator)
        except ValueError:
            raise ValueError(f"{self.operator!r} is not a valid selector operator") from None
        if operator in (SelectorOperator.IN, SelectorOperator.NOT_IN):
            if not self.values:
                raise ValueError(
                    f"values for operator {operator.value!r} on key {self.key!r} must be non-empty"
                )
            present = self.key in labels and labels[self.key] in self.values
            return present if operator is SelectorOperator.IN else not present
        if self.values:
            raise ValueError(
                f"values for operator {operator.value!r} on key {self.key!r} must be empty"
            )
        if operator is SelectorOperator.EXISTS:
            return self.key in labels
        return self.key not in labels


@dataclass
class LabelSelector:
    """Selects label sets by exact labels and by match expressions.

    ``None`` and an empty container are kept apart, as manifests distinguish
    an unspecified field from an empty one.
    """

    match_labels: dict[str, str] | None = None
    match_expressions: list[SelectorRequirement] | None = None

    def matches(self, labels: Mapping[str, str]) -> bool:
        """Tell whether the label set satisfies every part of the selector.

        An empty selector matches everything. Raises ValueError when an
        expression is malformed.
        """
        requirements = [
            SelectorRequirement(key, SelectorOperator.IN.value, [value])
            for key, value in sorted((self.match_labels or {}).items())
        ]
        requirements.extend(self.match_expressions or [])
        results = [requirement._matches(labels) for requirement in requirements]
        return all(results)


@dataclass
class FileOperation:
    """Copies files matching ``from_`` into ``to`` during installation."""

    from_: str = ""
    to: str = ""


@dataclass
class Platform:
    """A downloadable build of a plugin for the platforms its selector picks."""

    uri: str = ""
    sha256: str = ""
    bin: str = ""
    files: list[FileOperation] | None = None
    selector: LabelSelector | None = None


@dataclass
class PluginSpec:
    """The descriptive and installable part of a plugin manifest."""

    version: str = ""
    short_description: str = ""
    description: str = ""
    caveats: str = ""
    homepage: str = ""
    platforms: list[Platform] = field(default_factory=list)


@dataclass
class Plugin:
    """A plugin manifest."""

    name: str = ""
    spec: PluginSpec = field(default_factory=PluginSpec)
    api_version: str = CURRENT_API_VERSION
    kind: str = PLUGIN_KIND


@dataclass(frozen=True)
class OSArchPair:
    """An operating system and architecture pair."""

    os: str = ""
    arch: str = ""


def _mapping(value: Any, where: str) -> Mapping[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ValueError(f"{where}: expected a mapping, got {type(value).__name__}")
    return value


def _list(value: Any, where: str) -> list[Any] | None:
    if value is None:
        return None
    if not isinstance(value, list):
        raise ValueError(f"{where}: expected a list, got {type(value).__name__}")
    return value


def _string(data: Mapping[str, Any], key: str, where: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"{where}.{key}: expected a string, got {type(value).__name__}")
    return value


def _string_map(value: Any, where: str) -> dict[str, str] | None:
    if value is None:
        return None
    items = _mapping(value, where)
    result = {}
    for key, item in items.items():
        if not isinstance(key, str) or not isinstance(item, str):
            raise ValueError(f"{where}: keys and values must be strings")
        result[key] = item
    return result


def _selector_from_dict(value: Any, where: str) -> LabelSelector | None:
    if value is None:
        return None
    data = _mapping(value, where)
    expressions = _list(data.get("matchExpressions"), f"{where}.matchExpressions")
    requirements = None
    if expressions is not None:
        requirements = []
        for position, item in enumerate(expressions):
            item_where = f"{where}.matchExpressions[{position}]"
            entry = _mapping(item, item_where)
            values = _list(entry.get("values"), f"{item_where}.values") or []
            if not all(isinstance(v, str) for v in values):
                raise ValueError(f"{item_where}.values: expected strings")
            requirements.append(
                SelectorRequirement(
                    key=_string(entry, "key", item_where),
                    operator=_string(entry, "operator", item_where),
                    values=list(values),
                )
            )
    return LabelSelector(
        match_labels=_string_map(data.get("matchLabels"), f"{where}.matchLabels"),
        match_expressions=requirements,
    )


def _platform_from_dict(value: Any, where: str) -> Platform:
    data = _mapping(value, where)
    files = _list(data.get("files"), f"{where}.files")
    operations = None
    if files is not None:
        operations = []
        for position, item in enumerate(files):
            item_where = f"{where}.files[{position}]"
            entry = _mapping(item, item_where)
            operations.append(
                FileOperation(
                    from_=_string(entry, "from", item_where),
                    to=_string(entry, "to", item_where),
                )
            )
    return Platform(
        uri=_string(data, "uri", where),
        sha256=_string(data, "sha256", where),
        bin=_string(data, "bin", where),
        files=operations,
        selector=_selector_from_dict(data.get("selector"), f"{where}.selector"),
    )


def plugin_from_dict(data: Any) -> Plugin:
    """Build a Plugin from the mapping a manifest document decodes to.

    Raises ValueError when the document does not have the manifest's shape.
    """
    root = _mapping(data, "manifest")
    metadata = _mapping(root.get("metadata"), "metadata")
    spec = _mapping(root.get("spec"), "spec")
    platforms = _list(spec.get("platforms"), "spec.platforms") or []
    return Plugin(
        api_version=_string(root, "apiVersion", "manifest"),
        kind=_string(root, "kind", "manifest"),
        name=_string(metadata, "name", "metadata"),
        spec=PluginSpec(
            version=_string(spec, "version", "spec"),
            short_description=_string(spec, "shortDescription", "spec"),
            description=_string(spec, "description", "spec"),
            caveats=_string(spec, "caveats", "spec"),
            homepage=_string(spec, "homepage", "spec"),
            platforms=[
                _platform_from_dict(item, f"spec.platforms[{position}]")
                for position, item in enumerate(platforms)
            ],
        ),
    )


def _selector_to_dict(selector: LabelSelector) -> dict[str, Any]:
    out: dict[str, Any] = {}
    if selector.match_labels is not None:
        out["matchLabels"] = dict(selector.match_labels)
    if selector.match_expressions is not None:
        expressions = []
        for requirement in selector.match_expressions:
            entry: dict[str, Any] = {"key": requirement.key, "operator": requirement.operator}
            if requirement.values:
                entry["values"] = list(requirement.values)
            expressions.append(entry)
        out["matchExpressions"] = expressions
    return out


def _platform_to_dict(platform: Platform) -> dict[str, Any]:
    out: dict[str, Any] = {
        key: value
        for key, value in (("uri", platform.uri), ("sha256", platform.sha256), ("bin", platform.bin))
        if value
    }
    if platform.files is not None:
        out["files"] = [{"from": op.from_, "to": op.to} for op in platform.files]
    if platform.selector is not None:
        out["selector"] = _selector_to_dict(platform.selector)
    return out


def plugin_to_dict(plugin: Plugin) -> dict[str, Any]:
    """Turn a Plugin into the mapping a manifest document is written from."""
    spec: dict[str, Any] = {
        key: value
        for key, value in (
            ("version", plugin.spec.version),
            ("homepage", plugin.spec.homepage),
            ("shortDescription", plugin.spec.short_description),
            ("description", plugin.spec.description),
            ("caveats", plugin.spec.caveats),
        )
        if value
    }
    if plugin.spec.platforms:
        spec["platforms"] = [_platform_to_dict(p) for p in plugin.spec.platforms]
    return {
        "apiVersion": plugin.api_version,
        "kind": plugin.kind,
        "metadata": {"name": plugin.name},
        "spec": spec,
    }