"""
Collection proxies over one column family of a row.

A CellsProxy is a lazy, cached, ordered collection of cells: one cell per
live column of its family. It loads from the owning row's AttributeStore
on first read and writes every mutation back into that store, so the
proxy never holds row state of its own beyond its element list.

Read operations (shared with merged proxies through CellsView):
    keys(), len(), iteration, first/last, proxy[0], proxy["qualifier"],
    find(matcher) and select(matcher), where a matcher is an exact key
    string, a compiled regular expression searched in the key, or a
    predicate taking a cell.

Mutations:
    add(...) / proxy << cell / concat(...), delete(...), delete_if(...),
    replace(...), write_all()

Invariants:
    - load() is a no-op on a loaded proxy and on an unsaved row
    - Mutations on a saved row write through to the AttributeStore but
      never save the row
    - replace() yields the same element set whichever diff strategy runs
    - Deleting by a pattern that matches nothing is a silent no-op

How to change safely:
    - Keep every row mutation going through Cell.write()/Cell.delete()
    - The linear/set threshold only affects speed; test both sides of it
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Iterator, Mapping
from typing import TYPE_CHECKING, Any, Union

from ..config import get_settings
from ..errors import TypeViolation
from ..schema.names import qualifier_of
from .cell import Cell

if TYPE_CHECKING:
    from .entity import Entity

logger = logging.getLogger(__name__)

Matcher = Union[str, "re.Pattern[str]", Callable[[Cell], bool]]


def key_matcher(matcher: Matcher) -> Callable[[Cell], bool]:
    """Predicate for an exact key, a key pattern or a cell predicate."""
    if isinstance(matcher, str):
        return lambda cell: cell.key == matcher
    if isinstance(matcher, re.Pattern):
        return lambda cell: matcher.search(cell.key) is not None
    if callable(matcher):
        return matcher
    raise TypeViolation(
        f"Expected a key, a pattern or a predicate, got {type(matcher).__name__}",
        expected="str | re.Pattern | callable",
    )


class CellsView(ABC):
    """Read operations over an ordered list of cells."""

    name: str

    @abstractmethod
    def _elements(self) -> list[Cell]:
        """Current cells, in order."""

    def keys(self) -> list[str]:
        return [cell.key for cell in self._elements()]

    def to_list(self) -> list[Cell]:
        return list(self._elements())

    def __len__(self) -> int:
        return len(self._elements())

    def __iter__(self) -> Iterator[Cell]:
        return iter(list(self._elements()))

    def __bool__(self) -> bool:
        return True

    def __contains__(self, item: object) -> bool:
        if isinstance(item, str):
            return item in self.keys()
        return any(cell is item or cell == item for cell in self._elements())

    def __getitem__(self, index: int | slice | str) -> Any:
        """Cell at an index, cells in a slice, or the cell with a key (or None)."""
        if isinstance(index, str):
            return self.find(index)
        return self._elements()[index]

    @property
    def first(self) -> Cell | None:
        elements = self._elements()
        return elements[0] if elements else None

    @property
    def last(self) -> Cell | None:
        elements = self._elements()
        return elements[-1] if elements else None

    def find(self, matcher: Matcher) -> Cell | None:
        """First cell matching an exact key, a key pattern or a predicate."""
        predicate = key_matcher(matcher)
        for cell in self._elements():
            if predicate(cell):
                return cell
        return None

    def select(self, matcher: Matcher) -> list[Cell]:
        """All cells matching an exact key, a key pattern or a predicate."""
        predicate = key_matcher(matcher)
        return [cell for cell in self._elements() if predicate(cell)]

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r}, {self._elements()!r})"


class CellsProxy(CellsView):
    """Lazy collection of the cells of one column family.

    Args:
        row: Owning entity
        name: Association name
        family: Column family
        cell_class: Element type built for loaded columns
        optional: Whether the entity hides the association while empty
        validate: Whether the association counts toward entity validity

    Example:
        >>> page.links << Cell("example.com", "Example")
        >>> page.links.keys()
        ['example.com']
        >>> page.links.replace({"other.org": "Other"})
        >>> page.links.keys()
        ['other.org']
    """

    def __init__(
        self,
        row: Entity,
        name: str,
        family: str,
        cell_class: type[Cell] = Cell,
        *,
        optional: bool = False,
        validate: bool = True,
    ) -> None:
        self.row = row
        self.name = name
        self.family = family
        self.cell_class = cell_class
        self.optional = optional
        self.validate = validate
        self.loaded = False
        self.errors: list[str] = []
        self._target: list[Cell] = []

    def load(self, force: bool = False) -> CellsProxy:
        """Build one cell per live column of the family.

        Args:
            force: Reload even if already loaded
        """
        if (self.loaded and not force) or self.row.new_record:
            return self
        attributes = self.row.attributes
        target = []
        for address in attributes.keys_matching_family(self.family):
            value = attributes.get(address)
            if value is not None:
                target.append(self.cell_class.from_store(qualifier_of(address), value, self))
        self._target = target
        self.loaded = True
        logger.debug(
            "Cells proxy loaded",
            extra={"association": self.name, "family": self.family, "cells": len(target)},
        )
        return self

    def reset(self) -> None:
        """Forget loaded cells; the next read reloads them."""
        self._target = []
        self.loaded = False

    def _elements(self) -> list[Cell]:
        self.load()
        return self._target

    # Mutations

    def add(self, *items: Cell | Iterable[Cell] | Mapping[str, Any]) -> CellsProxy:
        """Append cells, writing them through on a saved row.

        Accepts cells, lists of cells, and mappings of key -> contents
        (a cell of the configured class is built per entry). A cell whose
        key is already present replaces the existing cell.
        """
        self.load()
        for cell in self._coerce(items):
            for existing in [c for c in self._target if c.key == cell.key and c is not cell]:
                self._target.remove(existing)
            if all(c is not cell for c in self._target):
                self._target.append(cell)
            cell.attach(self)
            if not self.row.new_record:
                cell.write(validate=False)
        return self

    def __lshift__(self, item: Cell | Iterable[Cell] | Mapping[str, Any]) -> CellsProxy:
        return self.add(item)

    def concat(self, items: Iterable[Cell] | Mapping[str, Any]) -> CellsProxy:
        return self.add(items)

    def delete(self, *items: Cell | str | re.Pattern[str] | Iterable[Any]) -> list[Cell]:
        """Remove cells given as cells, exact keys or key patterns.

        Lists, sets and other iterables of those are flattened.

        Returns:
            The removed cells (empty when nothing matched)

        Raises:
            TypeViolation: For arguments of any other type
        """
        self.load()
        removed: list[Cell] = []
        for item in items:
            for cell in self._resolve(item):
                if all(cell is not r for r in removed):
                    removed.append(cell)
        for cell in removed:
            self._target = [c for c in self._target if c is not cell]
            cell.delete()
        if removed:
            logger.debug(
                "Cells deleted",
                extra={"association": self.name, "keys": [c.key for c in removed]},
            )
        return removed

    def delete_if(self, predicate: Callable[[Cell], bool]) -> list[Cell]:
        """Remove every cell for which the predicate holds."""
        return self.delete(*[cell for cell in self._elements() if predicate(cell)])

    def replace(self, items: Iterable[Cell] | Mapping[str, Any] | CellsView) -> CellsProxy:
        """Make the collection equal to `items`, touching only the difference.

        Cells equal in key and contents are kept; cells only in the current
        collection are deleted and cells only in `items` are added.

        On an unsaved row the proxy does not load, so columns set through
        the entity (for example constructor data such as "links:a") are not
        part of the current collection and survive the replace.
        """
        self.load()
        new_cells = self._coerce([items])
        old_cells = list(self._target)
        removed, added = diff_cells(old_cells, new_cells, get_settings().replace_linear_threshold)
        self.delete(*removed)
        self.add(*added)
        logger.debug(
            "Cells replaced",
            extra={"association": self.name, "deleted": len(removed), "added": len(added)},
        )
        return self

    def write_all(self) -> None:
        """Write every loaded cell into the row's AttributeStore."""
        for cell in self._target:
            cell.write(validate=self.validate)

    def is_valid(self) -> bool:
        """Every cell is valid and an instance of the configured class."""
        errors: list[str] = []
        for cell in self._elements():
            if not isinstance(cell, self.cell_class):
                errors.append(f"{cell.key} is not a {self.cell_class.__name__}")
            elif not cell.is_valid():
                errors.extend(f"{message} in cell {cell.key}" for message in cell.errors)
        self.errors = errors
        return not errors

    # Helpers

    def _resolve(self, item: Any) -> list[Cell]:
        if isinstance(item, Cell):
            for cell in self._target:
                if cell is item:
                    return [cell]
            return [cell for cell in self._target if cell == item][:1]
        if isinstance(item, (str, re.Pattern)):
            return self.select(item)
        if isinstance(item, Iterable) and not isinstance(item, (bytes, Mapping)):
            return [cell for sub in list(item) for cell in self._resolve(sub)]
        raise TypeViolation(
            f"Cannot delete {type(item).__name__} from '{self.name}'; "
            f"expected a cell, a key, a pattern or an iterable of them",
            attr_name=self.name,
            expected="Cell | str | re.Pattern | Iterable",
        )

    def _coerce(self, items: Iterable[Any]) -> list[Cell]:
        cells: list[Cell] = []
        for item in items:
            if isinstance(item, Cell):
                cells.append(item)
            elif isinstance(item, Mapping):
                cells.extend(self.cell_class(key, contents) for key, contents in item.items())
            elif isinstance(item, Iterable) and not isinstance(item, (str, bytes)):
                cells.extend(self._coerce(list(item)))
            else:
                raise TypeViolation(
                    f"Cannot add {type(item).__name__} to '{self.name}'; "
                    f"expected cells or a mapping of key to contents",
                    attr_name=self.name,
                    expected="Cell | Iterable[Cell] | Mapping",
                )
        return cells


def diff_cells(
    old: list[Cell],
    new: list[Cell],
    threshold: int = 100,
) -> tuple[list[Cell], list[Cell]]:
    """Split two cell lists into (only in old, only in new) by value equality.

    Small inputs use linear containment checks, larger ones identity sets.
    Both strategies return the same cells in the same order.
    """
    if len(old) + len(new) < threshold:
        removed = [cell for cell in old if cell not in new]
        added = [cell for cell in new if cell not in old]
    else:
        old_ids = {cell.identity() for cell in old}
        new_ids = {cell.identity() for cell in new}
        removed = [cell for cell in old if cell.identity() not in new_ids]
        added = [cell for cell in new if cell.identity() not in old_ids]
    return removed, added
