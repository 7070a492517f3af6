"""
Base protocol and types for the wide-column store contract.

This module defines the Table and Connection protocols that every store
adapter must implement, along with the snapshot types exchanged with the
model layer and the store errors.

Wire format:
    - A column address is always the literal string "family:qualifier"
    - A family-level column (no qualifier) is addressed as "family:"
    - A None value in a put means "delete this cell"

Invariants:
    - get() returns the newest version of every cell at or below the
      timestamp ceiling, and fails with RowNotFound when nothing is left
    - scan() start bound is inclusive, stop bound is exclusive
    - put() returns the timestamp that was applied to the written cells

How to change safely:
    - Protocol changes require updating all adapters
    - Add new methods as optional with default implementations
"""

from __future__ import annotations

import time
from abc import abstractmethod
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from ..errors import CellMapError


class StoreError(CellMapError):
    """Base exception for store adapter operations."""

    def __init__(self, message: str, code: str | None = None, **details: Any) -> None:
        super().__init__(message, code=code or "STORE_ERROR", details=details)


class RowNotFound(StoreError):
    """No row exists for the key (at the given timestamp ceiling)."""

    def __init__(self, table_name: str, key: str, timestamp: int | None = None) -> None:
        msg = f"No row found in '{table_name}' with key '{key}'"
        if timestamp is not None:
            msg += f" at or before {timestamp}"
        super().__init__(
            msg, code="ROW_NOT_FOUND", table_name=table_name, key=key, timestamp=timestamp
        )
        self.table_name = table_name
        self.key = key
        self.timestamp = timestamp


class TableNotFound(StoreError):
    """The table does not exist."""

    def __init__(self, table_name: str) -> None:
        super().__init__(
            f"Table not found: {table_name}", code="TABLE_NOT_FOUND", table_name=table_name
        )
        self.table_name = table_name


def now_ms() -> int:
    """Current wall-clock time in Unix milliseconds."""
    return int(time.time() * 1000)


@dataclass(frozen=True)
class CellValue:
    """A stored cell value bundled with its write timestamp.

    Attributes:
        value: Raw wire value (string, or None for a delete marker)
        timestamp: Write time in Unix milliseconds
    """

    value: Any
    timestamp: int


@dataclass
class RowSnapshot:
    """One row as returned by get() or scan().

    Attributes:
        key: Row key
        cells: Column address -> CellValue
        timestamp: Maximum cell timestamp in the snapshot
    """

    key: str
    cells: dict[str, CellValue] = field(default_factory=dict)
    timestamp: int | None = None

    def values(self) -> dict[str, Any]:
        """Column address -> raw value, without timestamps."""
        return {address: cell.value for address, cell in self.cells.items()}

    def __len__(self) -> int:
        return len(self.cells)


@runtime_checkable
class Table(Protocol):
    """Protocol for one table of a wide-column store.

    Example:
        >>> table = connection.table("pages")
        >>> ts = table.put("com.example", {"title:": "Example"})
        >>> table.get("com.example").cells["title:"].value
        'Example'
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Table name."""
        ...

    @abstractmethod
    def get(
        self,
        key: str,
        *,
        timestamp: int | None = None,
        columns: Iterable[str] | None = None,
    ) -> RowSnapshot:
        """Read one row.

        Args:
            key: Row key
            timestamp: Optional ceiling; newer versions are ignored
            columns: Optional column addresses or "family:" prefixes

        Raises:
            RowNotFound: If no cell of the row is visible
            TableNotFound: If the table does not exist
        """
        ...

    @abstractmethod
    def put(
        self,
        key: str,
        data: Mapping[str, Any],
        timestamp: int | None = None,
    ) -> int:
        """Upsert (or delete, for None values) the given columns of a row.

        Returns:
            The timestamp applied to the written cells
        """
        ...

    @abstractmethod
    def scan(
        self,
        *,
        start_row: str | None = None,
        stop_row: str | None = None,
        prefix: str | None = None,
        columns: Iterable[str] | None = None,
    ) -> Iterator[RowSnapshot]:
        """Lazily iterate rows in key order."""
        ...

    @abstractmethod
    def delete_row(self, key: str, *, timestamp: int | None = None) -> None:
        """Delete a row (every version at or below the timestamp, if given)."""
        ...

    @abstractmethod
    def delete_all_rows(self) -> None:
        """Delete every row of the table."""
        ...

    @abstractmethod
    def create_table(self, column_families: Iterable[str]) -> None:
        """Create the table with the given column families."""
        ...

    @abstractmethod
    def delete_table(self) -> None:
        """Drop the table and all of its rows."""
        ...

    @abstractmethod
    def exists(self) -> bool:
        """Whether the table exists."""
        ...


@runtime_checkable
class Connection(Protocol):
    """Protocol for a store connection handing out tables."""

    @abstractmethod
    def table(self, name: str) -> Table:
        """Get the table handle for a name (the table need not exist yet)."""
        ...

    @abstractmethod
    def table_names(self) -> list[str]:
        """Names of existing tables."""
        ...


def family_matches(address: str, columns: Iterable[str] | None) -> bool:
    """Whether a column address is selected by a columns filter.

    A filter entry selects an exact address, or every column of a family
    when given as "family:" (or a bare family name).
    """
    if columns is None:
        return True
    family = address.split(":", 1)[0]
    for column in columns:
        if column == address:
            return True
        if column.rstrip(":") == family and (column.endswith(":") or ":" not in column):
            return True
    return False
