"""
cellmap - typed objects on wide-column rows.

Maps application objects onto rows of a sparse, versioned, column-family
key space (row key -> family:qualifier -> timestamped value):
- Typed attribute conversion with optional strict mode
- Lazy collection proxies over column families with diff-based replace
- Read-only merged associations folding several families by precedence
- Entities saved as one put, loaded from one get
- An abstract store contract plus an in-memory store

Example:
    >>> from cellmap import Entity, EntitySchema, InMemoryConnection, Repository, has_many
    >>>
    >>> class Page(Entity):
    ...     schema = EntitySchema(families=("title", "links"), associations=(has_many("links"),))
    >>>
    >>> pages = Repository(Page, InMemoryConnection())
    >>> pages.create_table()
    >>> page = pages.new("com.example", {"title": "Example"})
    >>> page.links.add({"example.org": "Example Org"})
    >>> page.save()
    >>> pages.get("com.example").links.keys()
    ['example.org']

Invariants:
    - One AttributeStore per row; all mutations funnel through it
    - Merged associations never write
    - Store errors propagate unchanged

Version: 1.0.0
"""

__version__ = "1.0.0"

from .config import Settings, get_settings, reset_settings, setup_logging
from .errors import (
    CellMapError,
    ConstraintViolation,
    MergedAssociationViolation,
    RegistryFrozenError,
    TypeViolation,
    UnexpectedAttribute,
    UnknownAttribute,
)
from .model import (
    AttributeStore,
    Cell,
    CellsProxy,
    ColumnFamily,
    ColumnFamilyProxy,
    Entity,
    EntitySchema,
    JsonCell,
    MergedCellsProxy,
    MergedFamilyProxy,
    Repository,
    has_many,
    has_merged,
    has_one,
    has_one_merged,
    length,
    one_of,
    required,
)
from .schema import (
    AttrDef,
    AttributeRegistry,
    AttrKind,
    attr,
    load_registry_json,
    load_registry_yaml,
    resolve_attribute_name,
)
from .store import (
    CellValue,
    Connection,
    InMemoryConnection,
    InMemoryTable,
    RowNotFound,
    RowSnapshot,
    StoreError,
    Table,
    TableNotFound,
)

__all__ = [
    "__version__",
    # Config
    "Settings",
    "get_settings",
    "reset_settings",
    "setup_logging",
    # Errors
    "CellMapError",
    "TypeViolation",
    "UnexpectedAttribute",
    "UnknownAttribute",
    "ConstraintViolation",
    "MergedAssociationViolation",
    "RegistryFrozenError",
    "StoreError",
    "RowNotFound",
    "TableNotFound",
    # Schema
    "AttrKind",
    "AttrDef",
    "attr",
    "AttributeRegistry",
    "resolve_attribute_name",
    "load_registry_yaml",
    "load_registry_json",
    # Model
    "AttributeStore",
    "Cell",
    "JsonCell",
    "ColumnFamily",
    "CellsProxy",
    "ColumnFamilyProxy",
    "MergedCellsProxy",
    "MergedFamilyProxy",
    "Entity",
    "EntitySchema",
    "Repository",
    "has_many",
    "has_one",
    "has_merged",
    "has_one_merged",
    "required",
    "one_of",
    "length",
    # Store
    "Table",
    "Connection",
    "CellValue",
    "RowSnapshot",
    "InMemoryConnection",
    "InMemoryTable",
]
