"""
In-memory store implementation for testing.

This module provides a versioned, in-process wide-column store for:
- Unit tests
- Integration tests
- Local development without a running cluster

Every cell keeps its full version history, so reads with a timestamp
ceiling return the row as it was at that time. A put with a None value
records a delete marker that hides older versions of the cell.

Invariants:
    - All data is lost on process exit
    - Versions of a cell are kept sorted by timestamp
    - Scans visit rows in lexical key order
    - Not thread-safe; one writer at a time

How to change safely:
    - This is test-only code, changes don't affect production adapters
    - Keep interface compatible with the Table protocol
    - Add features to help with testing scenarios
"""

from __future__ import annotations

import bisect
import logging
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any

from .base import (
    CellValue,
    RowNotFound,
    RowSnapshot,
    TableNotFound,
    family_matches,
    now_ms,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PutRecord:
    """One recorded put (testing helper)."""

    key: str
    data: dict[str, Any]
    timestamp: int


@dataclass
class InMemoryTableData:
    """Rows of one in-memory table.

    rows maps row key -> column address -> sorted list of (timestamp, value).
    """

    column_families: list[str] = field(default_factory=list)
    rows: dict[str, dict[str, list[tuple[int, Any]]]] = field(default_factory=dict)


class InMemoryConnection:
    """In-memory implementation of the Connection protocol.

    Example:
        >>> conn = InMemoryConnection()
        >>> table = conn.table("pages")
        >>> table.create_table(["title", "links"])
        >>> table.put("com.example", {"title:": "Example"})
    """

    def __init__(self) -> None:
        self._tables: dict[str, InMemoryTableData] = {}
        self._handles: dict[str, InMemoryTable] = {}

    def table(self, name: str) -> InMemoryTable:
        """Get (or create) the handle for a table name."""
        if name not in self._handles:
            self._handles[name] = InMemoryTable(self, name)
        return self._handles[name]

    def table_names(self) -> list[str]:
        """Names of existing tables."""
        return sorted(self._tables)

    def _create(self, name: str, column_families: Iterable[str]) -> None:
        self._tables[name] = InMemoryTableData(column_families=list(column_families))
        logger.debug("In-memory table created", extra={"table": name})

    def _drop(self, name: str) -> None:
        self._tables.pop(name, None)
        logger.debug("In-memory table dropped", extra={"table": name})

    def _data(self, name: str) -> InMemoryTableData:
        try:
            return self._tables[name]
        except KeyError:
            raise TableNotFound(name) from None


class InMemoryTable:
    """In-memory implementation of the Table protocol.

    Attributes:
        put_log: Every put issued against this table, in order

    Example:
        >>> table.put("k", {"links:a": "x"}, timestamp=10)
        10
        >>> table.put("k", {"links:a": None}, timestamp=20)
        20
        >>> table.get("k", timestamp=15).cells["links:a"].value
        'x'
    """

    def __init__(self, connection: InMemoryConnection, name: str) -> None:
        self._connection = connection
        self._name = name
        self.put_log: list[PutRecord] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def column_families(self) -> list[str]:
        return list(self._connection._data(self._name).column_families)

    def exists(self) -> bool:
        return self._name in self._connection._tables

    def create_table(self, column_families: Iterable[str]) -> None:
        self._connection._create(self._name, column_families)

    def delete_table(self) -> None:
        self._connection._drop(self._name)

    def get(
        self,
        key: str,
        *,
        timestamp: int | None = None,
        columns: Iterable[str] | None = None,
    ) -> RowSnapshot:
        if not key:
            raise ValueError("get requires a key")
        data = self._connection._data(self._name)
        snapshot = self._snapshot(key, data.rows.get(key), timestamp, columns)
        if snapshot is None:
            raise RowNotFound(self._name, key, timestamp)
        return snapshot

    def put(
        self,
        key: str,
        data: Mapping[str, Any],
        timestamp: int | None = None,
    ) -> int:
        if not key:
            raise ValueError("put requires a key")
        table = self._connection._data(self._name)
        timestamp = now_ms() if timestamp is None else int(timestamp)

        row = table.rows.setdefault(key, {})
        for address, value in data.items():
            versions = row.setdefault(address, [])
            stamps = [ts for ts, _ in versions]
            index = bisect.bisect_left(stamps, timestamp)
            if index < len(versions) and versions[index][0] == timestamp:
                # same timestamp overwrites the version in place
                versions[index] = (timestamp, value)
            else:
                versions.insert(index, (timestamp, value))

        self.put_log.append(PutRecord(key=key, data=dict(data), timestamp=timestamp))
        logger.debug(
            "Row put to in-memory table",
            extra={"table": self._name, "key": key, "columns": len(data), "timestamp": timestamp},
        )
        return timestamp

    def scan(
        self,
        *,
        start_row: str | None = None,
        stop_row: str | None = None,
        prefix: str | None = None,
        columns: Iterable[str] | None = None,
    ) -> Iterator[RowSnapshot]:
        table = self._connection._data(self._name)
        columns = list(columns) if columns is not None else None
        for key in sorted(table.rows):
            if start_row is not None and key < start_row:
                continue
            if stop_row is not None and key >= stop_row:
                break
            if prefix is not None and not key.startswith(prefix):
                continue
            # rows may be deleted while the scan is suspended
            snapshot = self._snapshot(key, table.rows.get(key), None, columns)
            if snapshot is not None:
                yield snapshot

    def delete_row(self, key: str, *, timestamp: int | None = None) -> None:
        table = self._connection._data(self._name)
        if timestamp is None:
            table.rows.pop(key, None)
            return
        row = table.rows.get(key, {})
        for address in list(row):
            row[address] = [(ts, v) for ts, v in row[address] if ts > timestamp]
            if not row[address]:
                del row[address]
        if not row:
            table.rows.pop(key, None)

    def delete_all_rows(self) -> None:
        self._connection._data(self._name).rows.clear()

    # Testing helpers

    def clear_put_log(self) -> None:
        """Forget recorded puts (testing helper)."""
        self.put_log.clear()

    def row_keys(self) -> list[str]:
        """Keys of rows with at least one live cell (testing helper)."""
        return [snapshot.key for snapshot in self.scan()]

    @staticmethod
    def _snapshot(
        key: str,
        row: dict[str, list[tuple[int, Any]]] | None,
        timestamp: int | None,
        columns: Iterable[str] | None,
    ) -> RowSnapshot | None:
        if not row:
            return None
        cells: dict[str, CellValue] = {}
        for address, versions in row.items():
            if not family_matches(address, columns):
                continue
            visible = [(ts, v) for ts, v in versions if timestamp is None or ts <= timestamp]
            if not visible:
                continue
            ts, value = visible[-1]
            if value is None:
                continue
            cells[address] = CellValue(value=value, timestamp=ts)
        if not cells:
            return None
        return RowSnapshot(
            key=key,
            cells=cells,
            timestamp=max(cell.timestamp for cell in cells.values()),
        )
