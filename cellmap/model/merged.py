"""
Merged associations: read-only overlays of several sources.

A merged association folds named sources of the same row in precedence
order; later sources win per key. Nothing is cached or persisted: the
merged view is recomputed from the sources on every read.

Collection form (MergedCellsProxy), for each key in the ordered union of
the source keys:
    1. Collect the cell at that key from every source that has one
    2. Clone the first one, then merge every later one into the clone:
       attributes present in the later cell overwrite, absent ones stay,
       and the greater timestamp is kept

Single-view form (MergedFamilyProxy) folds whole column families the same
way, qualifier by qualifier.

Invariants:
    - Optional sources that are empty take no part in the fold
    - A merged timestamp is the max over contributing cells, so it can be
      newer than the winning source's own timestamp
    - Every mutation raises MergedAssociationViolation and leaves the
      sources untouched; write_all() does nothing
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, NoReturn

from ..errors import MergedAssociationViolation
from .cell import Cell
from .family import ColumnFamily
from .proxy import CellsProxy, CellsView

if TYPE_CHECKING:
    from .entity import Entity

logger = logging.getLogger(__name__)


def merge_cells(sources: Sequence[CellsView | None]) -> list[Cell]:
    """Fold keyed cells of ordered sources, later sources winning."""
    present_sources = [source for source in sources if source is not None]
    keys: dict[str, None] = {}
    for source in present_sources:
        for key in source.keys():
            keys.setdefault(key, None)

    merged: list[Cell] = []
    for key in keys:
        present = [
            cell for cell in (source.find(key) for source in present_sources) if cell is not None
        ]
        if not present:
            continue
        accumulator = present[0].merged_clone()
        for cell in present[1:]:
            accumulator.merge_cell(cell)
        merged.append(accumulator)
    return merged


class MergedCellsProxy(CellsView):
    """Read-only overlay of has_many associations.

    Args:
        row: Owning entity
        name: Association name
        sources: Source association names, lowest precedence first
        cell_class: Expected element type (for validity only)
    """

    def __init__(
        self,
        row: Entity,
        name: str,
        sources: Sequence[str],
        cell_class: type[Cell] | None = None,
        *,
        validate: bool = True,
    ) -> None:
        self.row = row
        self.name = name
        self.sources = tuple(sources)
        self.cell_class = cell_class
        self.validate = validate
        self.errors: list[str] = []

    def resolve_sources(self) -> list[CellsProxy | None]:
        """Source proxies in precedence order (None for absent optional ones)."""
        return [self.row.association(name) for name in self.sources]

    def load(self, force: bool = False) -> MergedCellsProxy:
        for source in self.resolve_sources():
            if source is not None:
                source.load(force=force)
        return self

    def _elements(self) -> list[Cell]:
        return merge_cells(self.resolve_sources())

    def is_valid(self) -> bool:
        errors: list[str] = []
        for cell in self._elements():
            if self.cell_class is not None and not isinstance(cell, self.cell_class):
                errors.append(f"{cell.key} is not a {self.cell_class.__name__}")
            elif not cell.is_valid():
                errors.extend(f"{message} in cell {cell.key}" for message in cell.errors)
        self.errors = errors
        return not errors

    def write_all(self) -> None:
        return None

    def reset(self) -> None:
        return None

    def _reject(self, operation: str) -> NoReturn:
        raise MergedAssociationViolation(self.name, operation)

    def add(self, *items: Any) -> NoReturn:
        self._reject("add")

    def __lshift__(self, item: Any) -> NoReturn:
        self._reject("add")

    def concat(self, items: Any) -> NoReturn:
        self._reject("concat")

    def delete(self, *items: Any) -> NoReturn:
        self._reject("delete")

    def delete_if(self, predicate: Any) -> NoReturn:
        self._reject("delete_if")

    def replace(self, items: Any) -> NoReturn:
        self._reject("replace")

    def __setitem__(self, index: Any, value: Any) -> NoReturn:
        self._reject("set")

    def __delitem__(self, index: Any) -> NoReturn:
        self._reject("delete")


class MergedFamilyProxy:
    """Read-only overlay of has_one associations.

    Args:
        row: Owning entity
        name: Association name
        sources: Source association names, lowest precedence first
        family_class: ColumnFamily subclass of the merged view
    """

    def __init__(
        self,
        row: Entity,
        name: str,
        sources: Sequence[str],
        family_class: type[ColumnFamily] | None = None,
        *,
        validate: bool = True,
    ) -> None:
        self.row = row
        self.name = name
        self.sources = tuple(sources)
        self.family_class = family_class or ColumnFamily
        self.validate = validate
        self.errors: list[str] = []

    def resolve_sources(self) -> list[ColumnFamily | None]:
        return [self.row.association(name) for name in self.sources]

    def load(self, force: bool = False) -> ColumnFamily:
        """Fold the source views into a fresh read-only view."""
        values: dict[str, Any] = {}
        timestamps: dict[str, int] = {}
        for view in self.resolve_sources():
            if view is None:
                continue
            if force:
                view.load(force=True)
            for qualifier, value in view.attributes.items():
                values[qualifier] = value
                timestamp = view.timestamp_of(qualifier)
                timestamps[qualifier] = max(timestamps.get(qualifier, timestamp), timestamp)

        merged = self.family_class(family=self.name)
        merged._attributes = values
        merged._timestamps = timestamps
        merged.loaded = True
        merged.read_only = True
        return merged

    def replace(self, value: Any) -> NoReturn:
        raise MergedAssociationViolation(self.name, "replace")

    def write_all(self) -> None:
        return None

    def is_valid(self) -> bool:
        view = self.load()
        valid = view.is_valid()
        self.errors = list(view.errors)
        return valid

    def reset(self) -> None:
        return None

    def __repr__(self) -> str:
        return f"MergedFamilyProxy({self.name!r}, sources={self.sources!r})"
