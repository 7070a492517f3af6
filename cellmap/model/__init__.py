"""
Row/column data model for cellmap.

This package maps typed objects onto wide-column rows:
- AttributeStore: per-row column values and timestamps
- Cell / JsonCell: one column as a typed element
- ColumnFamily: typed view over one family (has_one)
- CellsProxy: lazy collection of cells over one family (has_many)
- MergedCellsProxy / MergedFamilyProxy: read-only overlays
- Entity / EntitySchema: the row aggregate and its configuration
- Repository: binds an entity type to a table
"""

from .associations import (
    AssociationDef,
    AssociationKind,
    has_many,
    has_merged,
    has_one,
    has_one_merged,
)
from .attributes import AttributeStore
from .cell import Cell, JsonCell, Mergeable
from .entity import Entity, EntitySchema
from .family import ColumnFamily, ColumnFamilyProxy
from .merged import MergedCellsProxy, MergedFamilyProxy, merge_cells
from .proxy import CellsProxy, CellsView, diff_cells
from .repository import Repository
from .validation import Validatable, length, one_of, required

__all__ = [
    # Row state
    "AttributeStore",
    # Elements
    "Cell",
    "JsonCell",
    "Mergeable",
    "ColumnFamily",
    # Proxies
    "CellsView",
    "CellsProxy",
    "ColumnFamilyProxy",
    "MergedCellsProxy",
    "MergedFamilyProxy",
    "merge_cells",
    "diff_cells",
    # Associations
    "AssociationKind",
    "AssociationDef",
    "has_many",
    "has_one",
    "has_merged",
    "has_one_merged",
    # Entities
    "Entity",
    "EntitySchema",
    "Repository",
    # Validation
    "Validatable",
    "required",
    "one_of",
    "length",
]
