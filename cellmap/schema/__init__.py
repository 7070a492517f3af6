"""
Schema declarations for cellmap.

This package provides:
- AttrKind / AttrDef / attr(): attribute type declarations
- AttributeRegistry: per-type conversion rules with strict mode
- Column address helpers and resolve_attribute_name()
- YAML/JSON loading of registry documents
"""

from .names import (
    ROW_TIMESTAMP,
    family_of,
    make_address,
    qualifier_of,
    resolve_attribute_name,
    split_address,
    suggest_names,
)
from .registry import AttributeRegistry, encode_value
from .schema_format import (
    load_registry_file,
    load_registry_json,
    load_registry_yaml,
    validate_document,
)
from .types import AttrDef, AttrKind, attr

__all__ = [
    # Types
    "AttrKind",
    "AttrDef",
    "attr",
    # Registry
    "AttributeRegistry",
    "encode_value",
    # Names
    "ROW_TIMESTAMP",
    "split_address",
    "family_of",
    "qualifier_of",
    "make_address",
    "resolve_attribute_name",
    "suggest_names",
    # Documents
    "validate_document",
    "load_registry_yaml",
    "load_registry_json",
    "load_registry_file",
]
