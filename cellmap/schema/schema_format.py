"""
YAML/JSON declaration format for attribute registries.

Lets attribute declarations live in a document instead of code, so the
same declarations can be shared between services and reviewed as data.

Example document:
    name: Page
    strict: true
    attributes:
      count: integer
      meta:author: string
      meta:published: date

Attributes may also be given as a list of {name, kind, description}
mappings when descriptions are wanted.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml

from .registry import AttributeRegistry
from .types import AttrKind

VALID_KINDS = {kind.value for kind in AttrKind} | {"str", "int", "bool", "time", "any"}


def validate_document(data: Any) -> list[str]:
    """Validate a registry document, returning error messages."""
    if not isinstance(data, dict):
        return ["Registry document must be a mapping"]
    errors = []
    if not isinstance(data.get("strict", False), bool):
        errors.append("'strict' must be a boolean")

    attributes = data.get("attributes") or {}
    if isinstance(attributes, dict):
        pairs = list(attributes.items())
    elif isinstance(attributes, list):
        pairs = []
        for item in attributes:
            if not isinstance(item, dict) or not item.get("name"):
                errors.append(f"Attribute entry needs a name: {item!r}")
                continue
            pairs.append((item["name"], item.get("kind", "untyped")))
    else:
        return errors + ["'attributes' must be a mapping or a list"]

    for name, kind in pairs:
        if kind is not None and kind not in VALID_KINDS:
            errors.append(f"Attribute '{name}': invalid kind '{kind}'. Valid: {sorted(VALID_KINDS)}")
    return errors


def parse_registry(data: dict[str, Any]) -> AttributeRegistry:
    """Build an AttributeRegistry from a parsed document.

    Raises:
        ValueError: If the document is invalid
    """
    errors = validate_document(data)
    if errors:
        raise ValueError(f"Invalid registry document: {'; '.join(errors)}")
    return AttributeRegistry.from_dict(data)


def load_registry_yaml(yaml_str: str) -> AttributeRegistry:
    """Build an AttributeRegistry from a YAML string."""
    return parse_registry(yaml.safe_load(yaml_str) or {})


def load_registry_json(json_str: str) -> AttributeRegistry:
    """Build an AttributeRegistry from a JSON string."""
    return parse_registry(json.loads(json_str))


def load_registry_file(path: str | Path) -> AttributeRegistry:
    """Build an AttributeRegistry from a .yaml/.yml/.json file."""
    path = Path(path)
    text = path.read_text()
    if path.suffix == ".json":
        return load_registry_json(text)
    return load_registry_yaml(text)
