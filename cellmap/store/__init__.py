"""
Store contract for cellmap.

This package defines the adapter interface the model layer consumes:
- Table / Connection protocols (get, put, scan, delete_row, table lifecycle)
- RowSnapshot / CellValue exchanged with the model layer
- In-memory implementation for tests and local development

Adapters for real clusters (RPC, native bindings) live outside this
package and only have to satisfy the protocols.

Invariants:
    - Column addresses are "family:qualifier" strings on the wire
    - None values in a put are deletes
    - RowNotFound and TableNotFound propagate unchanged to callers
"""

from .base import (
    CellValue,
    Connection,
    RowNotFound,
    RowSnapshot,
    StoreError,
    Table,
    TableNotFound,
    now_ms,
)
from .memory import InMemoryConnection, InMemoryTable, PutRecord

__all__ = [
    # Protocol and types
    "Table",
    "Connection",
    "CellValue",
    "RowSnapshot",
    "now_ms",
    # Errors
    "StoreError",
    "RowNotFound",
    "TableNotFound",
    # Implementations
    "InMemoryConnection",
    "InMemoryTable",
    "PutRecord",
]
