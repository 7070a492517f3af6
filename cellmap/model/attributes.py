"""
Per-row attribute store.

The AttributeStore is the single source of truth for one row's columns.
Entity setters, column family views and cell proxies all read from it and
write back into it, so one save serializes one consistent snapshot.

Invariants:
    - Keys are full column addresses ("family:qualifier")
    - delete() marks a column with None; the key stays until purged after
      the next successful write
    - timestamp_of() falls back to the current time for columns that were
      never loaded or written
    - The row-level timestamp is the max cell timestamp of the last load
      or save, and None on an unsaved row

How to change safely:
    - Everything that mutates a row must go through set()/delete()
    - Keep values typed; encoding to wire strings happens at save time
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Any

from ..schema.names import family_of
from ..store.base import CellValue, RowSnapshot, now_ms


class AttributeStore:
    """Column address -> value mapping for one row, with cell timestamps.

    Attributes:
        timestamp: Row-level timestamp (None until loaded or saved)

    Example:
        >>> store = AttributeStore()
        >>> store.set("links:a", CellValue("x", 10))
        >>> store.get("links:a"), store.timestamp_of("links:a")
        ('x', 10)
        >>> store.keys_matching_family("links")
        ['links:a']
    """

    def __init__(self, data: Mapping[str, Any] | None = None) -> None:
        self._values: dict[str, Any] = {}
        self._timestamps: dict[str, int] = {}
        self.timestamp: int | None = None
        if data:
            self.update(data)

    @classmethod
    def from_snapshot(cls, snapshot: RowSnapshot) -> AttributeStore:
        """Populate a store from one store round-trip."""
        store = cls(snapshot.cells)
        store.timestamp = snapshot.timestamp
        return store

    def set(self, address: str, value: Any) -> None:
        """Store a value, recording its timestamp when one is bundled."""
        if isinstance(value, CellValue):
            self._values[address] = value.value
            self._timestamps[address] = value.timestamp
        else:
            self._values[address] = value

    def get(self, address: str, default: Any = None) -> Any:
        value = self._values.get(address)
        return default if value is None else value

    def delete(self, address: str) -> None:
        """Mark a column for deletion on the next write."""
        self._values[address] = None

    def update(self, data: Mapping[str, Any]) -> None:
        for address, value in data.items():
            self.set(address, value)

    def timestamp_of(self, address: str) -> int:
        """Recorded timestamp of a column, or now for unwritten columns."""
        timestamp = self._timestamps.get(address)
        return now_ms() if timestamp is None else timestamp

    def has_timestamp(self, address: str) -> bool:
        return address in self._timestamps

    def set_timestamp(self, address: str, timestamp: int) -> None:
        self._timestamps[address] = timestamp

    def keys_matching_family(self, family: str) -> list[str]:
        """Addresses (deleted ones included) whose family is `family`."""
        return [address for address in self._values if family_of(address) == family]

    def is_deleted(self, address: str) -> bool:
        """Whether a column is present but marked for deletion."""
        return address in self._values and self._values[address] is None

    def live_items(self) -> list[tuple[str, Any]]:
        """(address, value) pairs that are not delete markers."""
        return [(a, v) for a, v in self._values.items() if v is not None]

    def purge_deleted(self) -> list[str]:
        """Drop delete markers after they were written; returns their addresses."""
        purged = [address for address, value in self._values.items() if value is None]
        for address in purged:
            del self._values[address]
            self._timestamps.pop(address, None)
        return purged

    def to_dict(self) -> dict[str, Any]:
        return dict(self._values)

    def clear(self) -> None:
        self._values.clear()
        self._timestamps.clear()
        self.timestamp = None

    def keys(self) -> list[str]:
        return list(self._values)

    def items(self) -> list[tuple[str, Any]]:
        return list(self._values.items())

    def __contains__(self, address: object) -> bool:
        return address in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._values))

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"AttributeStore({self._values!r}, timestamp={self.timestamp})"
