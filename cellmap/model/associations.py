"""
Association declarations.

An association exposes one column family of an entity (or an overlay of
several) as a typed object:

- has_many(name, cell_class): CellsProxy, one cell per column
- has_one(name, family_class): ColumnFamily view of the whole family
- has_merged(name, sources): read-only overlay of has_many associations
- has_one_merged(name, sources): read-only overlay of has_one associations

Declarations are immutable and shared by every instance of an entity type;
build() creates the per-row proxy.

Example:
    >>> schema = EntitySchema(
    ...     families=("links", "edits"),
    ...     associations=(
    ...         has_many("links", Link),
    ...         has_many("edits", Link, optional=True),
    ...         has_merged("all_links", ["links", "edits"]),
    ...     ),
    ... )
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from .cell import Cell
from .family import ColumnFamily, ColumnFamilyProxy
from .merged import MergedCellsProxy, MergedFamilyProxy
from .proxy import CellsProxy

if TYPE_CHECKING:
    from .entity import Entity


class AssociationKind(Enum):
    """Supported association kinds."""

    HAS_MANY = "has_many"
    HAS_ONE = "has_one"
    HAS_MERGED = "has_merged"
    HAS_ONE_MERGED = "has_one_merged"

    @classmethod
    def from_str(cls, value: str) -> AssociationKind:
        """Convert string to AssociationKind."""
        for kind in cls:
            if kind.value == value:
                return kind
        raise ValueError(f"Invalid association kind: {value}")

    @property
    def merged(self) -> bool:
        return self in (AssociationKind.HAS_MERGED, AssociationKind.HAS_ONE_MERGED)


@dataclass(frozen=True)
class AssociationDef:
    """One association of an entity type.

    Attributes:
        name: Association name (attribute of the entity)
        kind: Association kind
        family: Column family (None for merged associations)
        element_class: Cell class (has_many) or ColumnFamily class (has_one)
        sources: Source association names of a merged association
        optional: has_many only; hidden (None) while the family is empty
        validate: Whether the association counts toward entity validity
    """

    name: str
    kind: AssociationKind
    family: str | None = None
    element_class: type | None = None
    sources: tuple[str, ...] = ()
    optional: bool = False
    validate: bool = True

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Association name cannot be empty")
        if self.kind.merged and not self.sources:
            raise ValueError(f"Merged association '{self.name}' needs at least one source")
        if not self.kind.merged and not self.family:
            raise ValueError(f"Association '{self.name}' needs a column family")
        if self.optional and self.kind is not AssociationKind.HAS_MANY:
            raise ValueError(f"Only has_many associations can be optional ('{self.name}')")

    @property
    def merged(self) -> bool:
        return self.kind.merged

    def build(self, row: Entity) -> Any:
        """Create the per-row proxy of this association."""
        if self.kind is AssociationKind.HAS_MANY:
            return CellsProxy(
                row,
                self.name,
                self.family,
                self.element_class or Cell,
                optional=self.optional,
                validate=self.validate,
            )
        if self.kind is AssociationKind.HAS_ONE:
            return ColumnFamilyProxy(
                row, self.name, self.family, self.element_class or ColumnFamily,
                validate=self.validate,
            )
        if self.kind is AssociationKind.HAS_MERGED:
            return MergedCellsProxy(
                row, self.name, self.sources, self.element_class, validate=self.validate
            )
        return MergedFamilyProxy(
            row, self.name, self.sources, self.element_class, validate=self.validate
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        result: dict[str, Any] = {"name": self.name, "kind": self.kind.value}
        if self.family:
            result["family"] = self.family
        if self.element_class is not None:
            result["element_class"] = self.element_class.__name__
        if self.sources:
            result["sources"] = list(self.sources)
        if self.optional:
            result["optional"] = True
        if not self.validate:
            result["validate"] = False
        return result


def has_many(
    name: str,
    cell_class: type[Cell] = Cell,
    *,
    family: str | None = None,
    optional: bool = False,
    validate: bool = True,
) -> AssociationDef:
    """Declare a collection of cells over a family (default: family = name)."""
    return AssociationDef(
        name=name,
        kind=AssociationKind.HAS_MANY,
        family=family or name,
        element_class=cell_class,
        optional=optional,
        validate=validate,
    )


def has_one(
    name: str,
    family_class: type[ColumnFamily] = ColumnFamily,
    *,
    family: str | None = None,
    validate: bool = True,
) -> AssociationDef:
    """Declare a ColumnFamily view over a family (default: family = name)."""
    return AssociationDef(
        name=name,
        kind=AssociationKind.HAS_ONE,
        family=family or name,
        element_class=family_class,
        validate=validate,
    )


def has_merged(
    name: str,
    sources: Sequence[str],
    cell_class: type[Cell] | None = None,
    *,
    validate: bool = True,
) -> AssociationDef:
    """Declare a read-only overlay of has_many sources, lowest precedence first."""
    return AssociationDef(
        name=name,
        kind=AssociationKind.HAS_MERGED,
        element_class=cell_class,
        sources=tuple(sources),
        validate=validate,
    )


def has_one_merged(
    name: str,
    sources: Sequence[str],
    family_class: type[ColumnFamily] | None = None,
    *,
    validate: bool = True,
) -> AssociationDef:
    """Declare a read-only overlay of has_one sources, lowest precedence first."""
    return AssociationDef(
        name=name,
        kind=AssociationKind.HAS_ONE_MERGED,
        element_class=family_class,
        sources=tuple(sources),
        validate=validate,
    )
