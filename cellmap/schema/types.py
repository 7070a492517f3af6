"""
Attribute types for cellmap schemas.

This module provides the type definitions used by attribute registries:
- AttrKind: Supported attribute kinds
- AttrDef: One declared attribute (name + kind)

Attribute names are either plain names (JSON cell attributes, column
family qualifiers) or column addresses ("meta:author", or a bare family
name for family-level columns) when declared on an entity.

Invariants:
    - Kinds are a closed set; "untyped" passes values through unchanged
    - AttrDef is immutable once created

Example:
    >>> count = attr("count", "integer")
    >>> count.kind
    <AttrKind.INTEGER: 'integer'>
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from enum import Enum
from typing import Any

# Shorthand spellings accepted by AttrKind.from_str
_KIND_ALIASES = {
    "str": "string",
    "int": "integer",
    "bool": "boolean",
    "time": "datetime",
    "any": "untyped",
}


class AttrKind(Enum):
    """Supported attribute kinds."""

    STRING = "string"
    INTEGER = "integer"
    FLOAT = "float"
    DATE = "date"
    DATETIME = "datetime"
    BOOLEAN = "boolean"
    UNTYPED = "untyped"

    @classmethod
    def from_str(cls, value: str) -> AttrKind:
        """Convert string to AttrKind."""
        value = _KIND_ALIASES.get(value, value)
        for kind in cls:
            if kind.value == value:
                return kind
        raise ValueError(f"Invalid attribute kind: {value}")

    @property
    def python_type(self) -> type | tuple[type, ...] | None:
        """Python type a converted value must be an instance of."""
        return _PYTHON_TYPES[self]

    def accepts(self, value: Any) -> bool:
        """Whether a value already has this kind's Python type."""
        if value is None or self is AttrKind.UNTYPED:
            return True
        if self is AttrKind.INTEGER:
            return isinstance(value, int) and not isinstance(value, bool)
        if self is AttrKind.FLOAT:
            return isinstance(value, float)
        if self is AttrKind.DATE:
            return isinstance(value, dt.date) and not isinstance(value, dt.datetime)
        return isinstance(value, self.python_type)


_PYTHON_TYPES: dict[AttrKind, Any] = {
    AttrKind.STRING: str,
    AttrKind.INTEGER: int,
    AttrKind.FLOAT: float,
    AttrKind.DATE: dt.date,
    AttrKind.DATETIME: dt.datetime,
    AttrKind.BOOLEAN: bool,
    AttrKind.UNTYPED: None,
}


@dataclass(frozen=True)
class AttrDef:
    """A declared attribute.

    Attributes:
        name: Attribute name or column address
        kind: Attribute kind
        description: Documentation
    """

    name: str
    kind: AttrKind = AttrKind.UNTYPED
    description: str = ""

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Attribute name cannot be empty")

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        result: dict[str, Any] = {"name": self.name, "kind": self.kind.value}
        if self.description:
            result["description"] = self.description
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AttrDef:
        """Create from dictionary."""
        return cls(
            name=data["name"],
            kind=AttrKind.from_str(data.get("kind", "untyped")),
            description=data.get("description", ""),
        )


def attr(name: str, kind: str | AttrKind = AttrKind.UNTYPED, *, description: str = "") -> AttrDef:
    """Create an attribute definition.

    Args:
        name: Attribute name or column address
        kind: Kind as AttrKind or string ("integer", "int", "date", ...)
        description: Documentation

    Returns:
        AttrDef instance
    """
    if isinstance(kind, str):
        kind = AttrKind.from_str(kind)
    return AttrDef(name=name, kind=kind, description=description)
