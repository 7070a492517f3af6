"""
Column family views (has_one associations).

A ColumnFamily is a typed projection of every column of one family of a
row: qualifier -> value, converted through the class registry. Changes
made through the view stay in its snapshot until write() pushes them into
the row's AttributeStore (the owning entity calls it on save).

Invariants:
    - load() reads live columns only; delete markers are skipped
    - write() validates first and touches nothing when invalid
    - Qualifiers removed through the view (or dropped by a replacement)
      are deleted from the row on write()
    - A read-only view (merged families) rejects every mutation
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from typing import TYPE_CHECKING, Any, ClassVar

from ..errors import MergedAssociationViolation, TypeViolation
from ..schema.names import make_address, qualifier_of
from ..schema.registry import AttributeRegistry
from ..store.base import now_ms
from .validation import Validatable

if TYPE_CHECKING:
    from .entity import Entity

logger = logging.getLogger(__name__)


class ColumnFamily(Validatable):
    """Typed view over all columns of one family.

    Subclasses declare qualifiers on their own `registry`:

        >>> class Meta(ColumnFamily):
        ...     registry = AttributeRegistry("Meta")
        ...     registry.define("published", "date")
        >>> page.meta["published"]
        datetime.date(2024, 5, 1)

    Args:
        row: Owning entity (None for a detached view)
        family: Column family name
        data: Initial qualifier -> value mapping
    """

    registry: ClassVar[AttributeRegistry] = AttributeRegistry("ColumnFamily")

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        if "registry" not in cls.__dict__:
            cls.registry = cls.registry.copy(cls.__name__)

    def __init__(
        self,
        row: Entity | None = None,
        family: str | None = None,
        data: Mapping[str, Any] | None = None,
    ) -> None:
        self.row = row
        self.family = family
        self.loaded = False
        self.read_only = False
        self.errors: list[str] = []
        self._attributes: dict[str, Any] = {}
        self._timestamps: dict[str, int] = {}
        self._removed: set[str] = set()
        if data is not None:
            self.loaded = True
            self.update(data)

    def load(self, force: bool = False) -> ColumnFamily:
        """Repopulate the snapshot from the row's AttributeStore."""
        if (self.loaded and not force) or self.row is None:
            return self
        store = self.row.attributes
        attributes = {}
        for address in store.keys_matching_family(self.family):
            value = store.get(address)
            if value is not None:
                qualifier = qualifier_of(address)
                attributes[qualifier] = type(self).registry.convert(qualifier, value)
        self._attributes = attributes
        self._removed.clear()
        self.loaded = True
        return self

    # Snapshot access

    @property
    def attributes(self) -> dict[str, Any]:
        """Qualifier -> value for live columns."""
        self.load()
        return {q: v for q, v in self._attributes.items() if v is not None}

    @property
    def column_names(self) -> list[str]:
        return list(self.attributes)

    @property
    def column_full_names(self) -> list[str]:
        return [make_address(self.family, qualifier) for qualifier in self.column_names]

    def timestamp_of(self, qualifier: str) -> int:
        if qualifier in self._timestamps:
            return self._timestamps[qualifier]
        if self.row is not None:
            return self.row.attributes.timestamp_of(make_address(self.family, qualifier))
        return now_ms()

    def get(self, qualifier: str, default: Any = None) -> Any:
        value = self[qualifier]
        return default if value is None else value

    def __getitem__(self, qualifier: str) -> Any:
        self.load()
        type(self).registry.check(qualifier)
        return self._attributes.get(qualifier)

    def __setitem__(self, qualifier: str, value: Any) -> None:
        self._check_writable("set")
        self.load()
        value = type(self).registry.convert(qualifier, value)
        self._attributes[qualifier] = value
        if value is None:
            self._removed.add(qualifier)
        else:
            self._removed.discard(qualifier)

    def __delitem__(self, qualifier: str) -> None:
        self._check_writable("delete")
        self.load()
        self._attributes.pop(qualifier, None)
        self._removed.add(qualifier)

    def __contains__(self, qualifier: object) -> bool:
        return qualifier in self.attributes

    def __iter__(self) -> Iterator[str]:
        return iter(self.attributes)

    def __len__(self) -> int:
        return len(self.attributes)

    def keys(self) -> list[str]:
        return self.column_names

    def items(self) -> list[tuple[str, Any]]:
        return list(self.attributes.items())

    def update(self, data: Mapping[str, Any]) -> None:
        for qualifier, value in data.items():
            self[qualifier] = value

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ColumnFamily):
            return NotImplemented
        return self.attributes == other.attributes

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.family!r}, {self.attributes!r})"

    # Persistence

    def write(self) -> None:
        """Push the snapshot into the row's AttributeStore.

        Raises:
            ConstraintViolation: If the view is invalid
        """
        if self.read_only or self.row is None:
            return
        self.validate()
        store = self.row.attributes
        registry = type(self).registry
        for qualifier, value in self.attributes.items():
            store.set(make_address(self.family, qualifier), registry.encode(qualifier, value))
        for qualifier in self._removed:
            address = make_address(self.family, qualifier)
            if address in store:
                store.delete(address)
        self._removed.clear()

    def sync(self, qualifier: str, value: Any) -> None:
        """Mirror a change made directly on the row into a loaded snapshot."""
        if not self.loaded:
            return
        value = type(self).registry.convert(qualifier, value)
        if value is None:
            self._attributes.pop(qualifier, None)
        else:
            self._attributes[qualifier] = value

    def bind(self, row: Entity, family: str, removed: set[str] | None = None) -> ColumnFamily:
        """Attach a detached view to a row as the replacement of its family."""
        self.row = row
        self.family = family
        self.loaded = True
        self._removed = (self._removed | set(removed or ())) - set(self.attributes)
        return self

    def _check_writable(self, operation: str) -> None:
        if self.read_only:
            raise MergedAssociationViolation(self.family, operation)


class ColumnFamilyProxy:
    """has_one association: hands out the ColumnFamily view of a row.

    Args:
        row: Owning entity
        name: Association name
        family: Column family
        family_class: ColumnFamily subclass of the view
        validate: Whether the association counts toward entity validity
    """

    def __init__(
        self,
        row: Entity,
        name: str,
        family: str,
        family_class: type[ColumnFamily] = ColumnFamily,
        *,
        validate: bool = True,
    ) -> None:
        self.row = row
        self.name = name
        self.family = family
        self.family_class = family_class
        self.validate = validate
        self.errors: list[str] = []
        self.target: ColumnFamily | None = None

    def load(self, force: bool = False) -> ColumnFamily:
        if self.target is None or force:
            self.target = self.family_class(self.row, self.family).load()
        return self.target

    def replace(self, value: Mapping[str, Any] | ColumnFamily) -> ColumnFamily:
        """Replace the whole family with a mapping or a view instance.

        Raises:
            TypeViolation: If value is neither a mapping nor a family_class
        """
        old_qualifiers = set(self.load().attributes)
        if isinstance(value, self.family_class):
            replacement = value
            replacement.load()
        elif isinstance(value, Mapping):
            replacement = self.family_class(data=value)
        else:
            raise TypeViolation(
                f"Cannot assign {type(value).__name__} to '{self.name}'; "
                f"expected a mapping or {self.family_class.__name__}",
                attr_name=self.name,
                expected=self.family_class.__name__,
            )
        self.target = replacement.bind(self.row, self.family, old_qualifiers)
        logger.debug(
            "Column family replaced",
            extra={"association": self.name, "removed": sorted(self.target._removed)},
        )
        return self.target

    def write_all(self) -> None:
        if self.target is not None:
            self.target.write()

    def is_valid(self) -> bool:
        if self.target is None:
            self.errors = []
            return True
        valid = self.target.is_valid()
        self.errors = list(self.target.errors)
        return valid

    def reset(self) -> None:
        self.target = None

    def __repr__(self) -> str:
        return f"ColumnFamilyProxy({self.name!r}, family={self.family!r})"
