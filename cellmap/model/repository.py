"""
Repository: binds an entity class to a table of a store connection.

    >>> pages = Repository(Page, InMemoryConnection())
    >>> pages.create_table()
    >>> page = pages.create("com.example", {"title": "Example"})
    >>> pages.get("com.example") == page
    True

Invariants:
    - get() propagates RowNotFound; find() turns it into None
    - scan() is lazy; start_row is inclusive, stop_row exclusive
    - The table name is fixed at construction (settings prefix applied)
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping
from typing import Any, Generic, TypeVar

from ..config import get_settings
from ..store.base import Connection, RowNotFound, Table
from .entity import Entity

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Entity)


class Repository(Generic[E]):
    """Loads, creates and scans entities of one type.

    Args:
        entity_class: Entity subclass stored in the table
        connection: Store connection
        table_name: Base table name (default: the entity's table name)
    """

    def __init__(
        self,
        entity_class: type[E],
        connection: Connection,
        *,
        table_name: str | None = None,
    ) -> None:
        self.entity_class = entity_class
        self.connection = connection
        self.table_name = get_settings().table_name(
            table_name or entity_class.default_table_name()
        )

    @property
    def table(self) -> Table:
        return self.connection.table(self.table_name)

    # Table lifecycle

    def create_table(self) -> None:
        """Create the table with the entity's declared families."""
        self.table.create_table(self.entity_class.schema.families)
        logger.info(f"Created table {self.table_name}")

    def delete_table(self) -> None:
        self.table.delete_table()
        logger.info(f"Deleted table {self.table_name}")

    def table_exists(self) -> bool:
        return self.table.exists()

    # Entities

    def new(self, key: str | None = None, data: Mapping[str, Any] | None = None) -> E:
        """Unsaved entity bound to this repository."""
        return self.entity_class(key, data, repository=self)

    def create(
        self,
        key: str,
        data: Mapping[str, Any] | None = None,
        *,
        timestamp: int | None = None,
    ) -> E:
        """Build and save an entity.

        Raises:
            ConstraintViolation: If the entity is invalid
        """
        entity = self.new(key, data)
        entity.save(timestamp)
        return entity

    def load(self, snapshot: Any) -> E:
        """Entity for a row snapshot read from the table."""
        return self.entity_class.from_snapshot(snapshot, repository=self)

    def get(
        self,
        key: str,
        *,
        timestamp: int | None = None,
        columns: Iterable[str] | None = None,
    ) -> E:
        """Load one entity (as of a timestamp ceiling, if given).

        Raises:
            RowNotFound: If the row does not exist
        """
        return self.load(self.table.get(key, timestamp=timestamp, columns=columns))

    def find(self, key: str, **options: Any) -> E | None:
        """Like get(), returning None for a missing row."""
        try:
            return self.get(key, **options)
        except RowNotFound:
            return None

    def find_all(self, keys: Iterable[str], **options: Any) -> list[E]:
        """Entities for the keys that exist, in key order given."""
        entities = []
        for key in keys:
            entity = self.find(key, **options)
            if entity is not None:
                entities.append(entity)
        return entities

    def scan(
        self,
        *,
        start_row: str | None = None,
        stop_row: str | None = None,
        prefix: str | None = None,
        columns: Iterable[str] | None = None,
    ) -> Iterator[E]:
        """Lazily iterate entities in key order."""
        for snapshot in self.table.scan(
            start_row=start_row, stop_row=stop_row, prefix=prefix, columns=columns
        ):
            yield self.load(snapshot)

    def get_all(self, **options: Any) -> list[E]:
        """All entities of a scan, as a list."""
        return list(self.scan(**options))

    def delete_all(self) -> None:
        """Delete every row of the table."""
        self.table.delete_all_rows()
        logger.info(f"Deleted all rows of {self.table_name}")

    def __repr__(self) -> str:
        return f"Repository({self.entity_class.__name__}, table={self.table_name!r})"
