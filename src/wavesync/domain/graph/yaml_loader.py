"""YAML parsing that refuses silently-overwritten mapping keys."""

from __future__ import annotations

from typing import Any

import yaml

from wavesync.domain.model import ConfigError, ConflictError


class _StrictLoader(yaml.SafeLoader):
    pass


def _construct_mapping(
    loader: _StrictLoader, node: yaml.MappingNode, deep: bool = False
) -> dict[Any, Any]:
    loader.flatten_mapping(node)
    mapping: dict[Any, Any] = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if key in mapping:
            line = key_node.start_mark.line + 1
            raise ConflictError(f"Duplicate key {key!r} at line {line}")
        mapping[key] = loader.construct_object(value_node, deep=deep)
    return mapping


_StrictLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG,
    _construct_mapping,
)


def load_document(text: str, *, origin: str) -> Any:
    """Parse a single YAML document, mapping syntax errors to ``ConfigError``."""

    try:
        return yaml.load(text, Loader=_StrictLoader)  # noqa: S506
    except yaml.YAMLError as exc:
        raise ConfigError(f"Malformed YAML in {origin}: {exc}") from exc


def load_documents(text: str, *, origin: str) -> list[Any]:
    """Parse a multi-document YAML stream, dropping empty documents."""

    try:
        documents = list(yaml.load_all(text, Loader=_StrictLoader))  # noqa: S506
        return [doc for doc in documents if doc is not None]
    except yaml.YAMLError as exc:
        raise ConfigError(f"Malformed YAML in {origin}: {exc}") from exc
