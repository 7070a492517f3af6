"""
Cell elements: one column of a family, as seen through a CellsProxy.

A Cell is a (key, contents) pair where the key is the column qualifier and
the contents the column value. Cells attached to a proxy address the column
"<family>:<key>" of the proxy's row and read their timestamp from the row's
AttributeStore.

- Cell: contents is the raw column value
- JsonCell: contents is a JSON document of typed attributes, converted
  through the class registry (optionally strict)

Invariants:
    - A cell holds a weak reference to its proxy, never ownership
    - Two cells are equal when their keys and serialized contents are equal
    - Merging overwrites the attributes present in the later cell and keeps
      the greater timestamp

How to change safely:
    - serialized_contents() is the wire value; changing it breaks rows
    - Keep identity() consistent with __eq__; replace() depends on both
"""

from __future__ import annotations

import copy
import json
import logging
import weakref
from abc import ABC, abstractmethod
from collections.abc import Iterator, Mapping
from typing import TYPE_CHECKING, Any, ClassVar

from ..errors import CellMapError, TypeViolation
from ..schema.names import make_address
from ..schema.registry import AttributeRegistry, encode_value
from ..store.base import now_ms
from .validation import Validatable

if TYPE_CHECKING:
    from .entity import Entity
    from .proxy import CellsProxy

logger = logging.getLogger(__name__)


class Mergeable(ABC):
    """Capability of elements that can be folded by a merged association."""

    @abstractmethod
    def merged_clone(self) -> Mergeable:
        """Detached deep copy used to seed a merge."""
        ...

    @abstractmethod
    def merge_cell(self, other: Any) -> None:
        """Fold a later, higher-precedence element into this one."""
        ...


class Cell(Validatable, Mergeable):
    """One column of a family.

    Args:
        key: Column qualifier
        contents: Column value
        proxy: Owning proxy (held weakly)
        timestamp: Explicit timestamp for detached cells
    """

    def __init__(
        self,
        key: str,
        contents: Any = None,
        *,
        proxy: CellsProxy | None = None,
        timestamp: int | None = None,
    ) -> None:
        self.key = key
        self.contents = contents
        self.errors: list[str] = []
        self._timestamp = timestamp
        self._proxy_ref: weakref.ReferenceType[CellsProxy] | None = None
        if proxy is not None:
            self.attach(proxy)

    @classmethod
    def from_store(cls, key: str, value: Any, proxy: CellsProxy | None = None) -> Cell:
        """Element factory used by proxies when loading a family."""
        return cls(key, value, proxy=proxy)

    # Ownership

    def attach(self, proxy: CellsProxy) -> None:
        self._proxy_ref = weakref.ref(proxy)

    def detach(self) -> None:
        self._proxy_ref = None

    @property
    def proxy(self) -> CellsProxy | None:
        return self._proxy_ref() if self._proxy_ref is not None else None

    @property
    def row(self) -> Entity | None:
        proxy = self.proxy
        return proxy.row if proxy is not None else None

    @property
    def family(self) -> str | None:
        proxy = self.proxy
        return proxy.family if proxy is not None else None

    @property
    def address(self) -> str:
        """Column address of this cell in its row."""
        return make_address(self._require_proxy().family, self.key)

    @property
    def timestamp(self) -> int:
        if self._timestamp is not None:
            return self._timestamp
        row = self.row
        if row is not None and self.family is not None:
            return row.attributes.timestamp_of(self.address)
        return now_ms()

    def _require_proxy(self) -> CellsProxy:
        proxy = self.proxy
        if proxy is None:
            raise CellMapError(f"Cell '{self.key}' is not attached to a row", code="DETACHED_CELL")
        return proxy

    # Values

    def get(self, name: str, default: Any = None) -> Any:
        """Value of `key`, `contents` or `timestamp` (for validation rules)."""
        if name in ("key", "contents", "timestamp"):
            value = getattr(self, name)
            return default if value is None else value
        return default

    def serialized_contents(self) -> str | None:
        """Wire value of this cell."""
        if self.contents is None:
            return None
        return encode_value(self.contents)

    def identity(self) -> tuple[str, str | None]:
        """Hashable value identity: key plus serialized contents."""
        return (self.key, self.serialized_contents())

    def __eq__(self, other: object) -> bool:
        if self is other:
            return True
        if not isinstance(other, Cell):
            return NotImplemented
        return self.identity() == other.identity()

    def __hash__(self) -> int:
        return hash(self.identity())

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.key!r}, {self.contents!r})"

    # Persistence

    def write(self, *, validate: bool = True) -> None:
        """Write this cell's value into the row's AttributeStore.

        Raises:
            ConstraintViolation: If validate and the cell is invalid
        """
        if validate:
            self.validate()
        proxy = self._require_proxy()
        proxy.row.attributes.set(self.address, self.serialized_contents())

    def delete(self) -> None:
        """Mark this cell's column deleted if the row holds it."""
        row = self.row
        if row is None:
            return
        address = self.address
        if address in row.attributes:
            row.attributes.delete(address)

    def rename(self, new_key: str) -> None:
        """Change the qualifier: delete the old column, write the new one."""
        if new_key == self.key:
            return
        if self.proxy is None:
            self.key = new_key
            return
        self.delete()
        old_key, self.key = self.key, new_key
        self.write(validate=False)
        logger.debug("Cell renamed", extra={"old_key": old_key, "new_key": new_key})

    def save(self, timestamp: int | None = None) -> int:
        """Write this cell and put only its column to the table.

        Returns:
            The timestamp applied by the store
        """
        self.write()
        row = self._require_proxy().row
        address = self.address
        applied = row.table.put(row.key, {address: self.serialized_contents()}, timestamp)
        row.attributes.set_timestamp(address, applied)
        self._timestamp = None
        return applied

    def destroy(self) -> None:
        """Remove this cell from its proxy and save the whole row."""
        proxy = self._require_proxy()
        row = proxy.row
        proxy.delete(self)
        row.save()

    # Merging

    def merged_clone(self) -> Cell:
        clone = copy.copy(self)
        clone.contents = copy.deepcopy(self.contents)
        clone.errors = []
        clone._timestamp = self.timestamp
        clone._proxy_ref = None
        return clone

    def merge_cell(self, other: Cell) -> None:
        if other.contents is not None:
            self.contents = copy.deepcopy(other.contents)
        other_timestamp = other.timestamp
        if other_timestamp > self.timestamp:
            self._timestamp = other_timestamp


class JsonCell(Cell):
    """Cell whose contents is a JSON document of typed attributes.

    Subclasses declare attributes on their own `registry` and rules in
    `validators`. Attribute access goes through item syntax:

        >>> class Link(JsonCell):
        ...     registry = AttributeRegistry("Link", strict=True)
        ...     registry.define("rank", "integer")
        >>> link = Link("example.com", rank="3")
        >>> link["rank"]
        3
        >>> link.to_json()
        '{"rank":3}'

    Args:
        key: Column qualifier
        contents: Mapping of attributes, or a JSON document string
        strict: Per-instance override of the registry's strict flag
        **attributes: More attributes
    """

    registry: ClassVar[AttributeRegistry] = AttributeRegistry("JsonCell")

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        if "registry" not in cls.__dict__:
            cls.registry = cls.registry.copy(cls.__name__)

    def __init__(
        self,
        key: str,
        contents: Mapping[str, Any] | str | bytes | None = None,
        *,
        proxy: CellsProxy | None = None,
        timestamp: int | None = None,
        strict: bool | None = None,
        **attributes: Any,
    ) -> None:
        self._data: dict[str, Any] = {}
        self._strict = strict
        super().__init__(key, None, proxy=proxy, timestamp=timestamp)
        self.contents = contents
        self.update(attributes)

    @property
    def strict(self) -> bool:
        return type(self).registry.strict if self._strict is None else self._strict

    @property
    def contents(self) -> dict[str, Any]:
        return dict(self._data)

    @contents.setter
    def contents(self, value: Mapping[str, Any] | str | bytes | None) -> None:
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        if isinstance(value, str):
            try:
                value = json.loads(value) if value.strip() else {}
            except json.JSONDecodeError as e:
                raise TypeViolation(
                    f"{type(self).__name__} '{self.key}' contents are not valid JSON: {e}",
                    attr_name=self.key,
                    expected="JSON object",
                ) from e
        if value is not None and not isinstance(value, Mapping):
            raise TypeViolation(
                f"{type(self).__name__} '{self.key}' contents must be a mapping or JSON object, "
                f"got {type(value).__name__}",
                attr_name=self.key,
                expected="JSON object",
            )
        self._data = {}
        self.update(value or {})

    def __getitem__(self, name: str) -> Any:
        type(self).registry.check(name, strict=self.strict)
        return self._data.get(name)

    def __setitem__(self, name: str, value: Any) -> None:
        self._data[name] = type(self).registry.convert(name, value, strict=self.strict)

    def __delitem__(self, name: str) -> None:
        self._data.pop(name, None)

    def __contains__(self, name: object) -> bool:
        return name in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def get(self, name: str, default: Any = None) -> Any:
        if name in ("key", "timestamp"):
            return super().get(name, default)
        value = self[name]
        return default if value is None else value

    def update(self, attributes: Mapping[str, Any]) -> None:
        for name, value in attributes.items():
            self[name] = value

    def keys(self) -> list[str]:
        return list(self._data)

    def items(self) -> list[tuple[str, Any]]:
        return list(self._data.items())

    def serializable_hash(self) -> dict[str, Any]:
        """Attributes as JSON-compatible values (dates as ISO strings)."""
        result = {}
        for name, value in self._data.items():
            if value is None or isinstance(value, (bool, int, float, str, list, dict)):
                result[name] = value
            else:
                result[name] = encode_value(value)
        return result

    def to_json(self) -> str:
        return json.dumps(self.serializable_hash(), sort_keys=True, separators=(",", ":"))

    def serialized_contents(self) -> str:
        return self.to_json()

    def merged_clone(self) -> JsonCell:
        clone = super().merged_clone()
        clone._data = copy.deepcopy(self._data)
        return clone

    def merge_cell(self, other: Cell) -> None:
        if isinstance(other, JsonCell):
            for name, value in other.items():
                if value is not None:
                    self._data[name] = copy.deepcopy(value)
            other_timestamp = other.timestamp
            if other_timestamp > self.timestamp:
                self._timestamp = other_timestamp
        else:
            super().merge_cell(other)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.key!r}, {self._data!r})"
