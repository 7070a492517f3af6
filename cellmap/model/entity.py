"""
Entities: typed objects mapped onto one row each.

An Entity owns one AttributeStore and exposes its columns in three ways:
- Item access by resolved name: page["meta:author"], page["meta_author"],
  page["title"] (family-level column "title:"), aliases
- Associations by name: page.links (CellsProxy), page.meta (ColumnFamily),
  page.all_links (merged, read-only)
- The row timestamp as page.timestamp / page["timestamp"]

Each entity type carries one immutable EntitySchema, built once at import
time and shared by all instances:

    class Page(Entity):
        schema = EntitySchema(
            families=("title", "meta", "links"),
            associations=(has_many("links", Link), has_one("meta", Meta)),
            registry=page_registry,
        )

Lifecycle: new -> persisted on the first successful save(). destroy()
deletes the row but does not change local state; do not save the object
again afterwards.

Invariants:
    - Every row mutation goes through the AttributeStore
    - save() validates first and writes nothing when invalid
    - save() issues exactly one put for the whole row
    - Columns of association families bypass the entity registry; their
      values belong to the cells and views

How to change safely:
    - Keep name resolution in resolve_attribute_name(); do not add
      dynamic attribute dispatch here
    - New association kinds need a proxy with load/replace/write_all/is_valid
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, ClassVar

from ..errors import CellMapError, ConstraintViolation, MergedAssociationViolation, UnknownAttribute
from ..schema.names import (
    ROW_TIMESTAMP,
    family_of,
    qualifier_of,
    resolve_attribute_name,
    suggest_names,
)
from ..schema.registry import AttributeRegistry, encode_value
from ..store.base import RowSnapshot, Table
from .associations import AssociationDef, AssociationKind
from .attributes import AttributeStore
from .family import ColumnFamilyProxy
from .proxy import CellsProxy
from .validation import Rule, Validatable, run_rules

if TYPE_CHECKING:
    from .repository import Repository

logger = logging.getLogger(__name__)

RESERVED_NAMES = frozenset(
    {
        "key",
        "attributes",
        "errors",
        "repository",
        "schema",
        "table",
        "new_record",
        "was_new_record",
        ROW_TIMESTAMP,
    }
)


def attribute_name(address: str) -> str:
    """Registry name of a column: the family for "family:", else the address."""
    if not qualifier_of(address):
        return family_of(address)
    return address


@dataclass(frozen=True, eq=False)
class EntitySchema:
    """Immutable per-type configuration of an entity.

    Attributes:
        families: Declared column families
        associations: Association declarations
        aliases: Alias name -> column address
        registry: Attribute declarations for plain columns, keyed by column
            address, or by family name for family-level columns
        validators: Entity-level validation rules
        table_name: Table name (default: lowercased class name + "s")
    """

    families: tuple[str, ...]
    associations: tuple[AssociationDef, ...] = ()
    aliases: Mapping[str, str] = field(default_factory=dict)
    registry: AttributeRegistry = field(default_factory=AttributeRegistry)
    validators: tuple[Rule, ...] = ()
    table_name: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "families", tuple(self.families))
        object.__setattr__(self, "associations", tuple(self.associations))
        object.__setattr__(self, "aliases", MappingProxyType(dict(self.aliases)))
        object.__setattr__(self, "validators", tuple(self.validators))
        errors = self.check()
        if errors:
            raise ValueError(f"Invalid entity schema: {'; '.join(errors)}")

    def check(self) -> list[str]:
        """Consistency errors of the declarations."""
        errors = []
        for family in self.families:
            if not family or ":" in family:
                errors.append(f"Invalid family name '{family}'")
        if len(set(self.families)) != len(self.families):
            errors.append("Duplicate family names")

        names = [a.name for a in self.associations]
        if len(set(names)) != len(names):
            errors.append("Duplicate association names")
        for association in self.associations:
            if association.name in RESERVED_NAMES:
                errors.append(f"Association name '{association.name}' is reserved")
            if association.family and association.family not in self.families:
                errors.append(
                    f"Association '{association.name}' uses undeclared family "
                    f"'{association.family}'"
                )
            for source in association.sources:
                source_def = self.association(source)
                if source_def is None:
                    errors.append(f"Association '{association.name}' has unknown source '{source}'")
                elif source_def.merged:
                    errors.append(f"Source '{source}' of '{association.name}' is itself merged")
                elif (association.kind is AssociationKind.HAS_MERGED) != (
                    source_def.kind is AssociationKind.HAS_MANY
                ):
                    errors.append(
                        f"Source '{source}' of '{association.name}' is a {source_def.kind.value}"
                    )

        for alias, address in self.aliases.items():
            if resolve_attribute_name(address, self.families) is None:
                errors.append(f"Alias '{alias}' targets unknown column '{address}'")
        return errors

    def association(self, name: str) -> AssociationDef | None:
        for association in self.associations:
            if association.name == name:
                return association
        return None

    @property
    def association_names(self) -> frozenset[str]:
        return frozenset(a.name for a in self.associations)

    @property
    def association_families(self) -> frozenset[str]:
        """Families owned by has_many / has_one associations."""
        return frozenset(a.family for a in self.associations if a.family)

    def resolve(self, candidate: str) -> str | None:
        return resolve_attribute_name(candidate, self.families, self.aliases)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        result: dict[str, Any] = {
            "families": list(self.families),
            "associations": [a.to_dict() for a in self.associations],
            "registry": self.registry.to_dict(),
        }
        if self.aliases:
            result["aliases"] = dict(self.aliases)
        if self.table_name:
            result["table_name"] = self.table_name
        return result


class Entity(Validatable):
    """Base class of row-mapped entities.

    Args:
        key: Row key
        data: Initial values by attribute or association name
        repository: Repository binding the entity to its table

    Attributes:
        key: Row key
        attributes: The row's AttributeStore
        new_record: True until the first successful save
        was_new_record: True when the last save created the row
        errors: Messages of the last validation
    """

    schema: ClassVar[EntitySchema] = EntitySchema(families=())

    def __init__(
        self,
        key: str | None = None,
        data: Mapping[str, Any] | None = None,
        *,
        repository: Repository | None = None,
    ) -> None:
        self.key = key
        self.attributes = AttributeStore()
        self.new_record = True
        self.was_new_record = False
        self.errors: list[str] = []
        self.repository = repository
        self._associations: dict[str, Any] = {}
        for name, value in (data or {}).items():
            self[name] = value

    @classmethod
    def from_snapshot(
        cls,
        snapshot: RowSnapshot,
        repository: Repository | None = None,
    ) -> Entity:
        """Entity for a row read from the store."""
        entity = cls(snapshot.key, repository=repository)
        entity.attributes = AttributeStore.from_snapshot(snapshot)
        entity.new_record = False
        return entity

    @classmethod
    def default_table_name(cls) -> str:
        return cls.schema.table_name or f"{cls.__name__.lower()}s"

    # Names

    def resolve(self, name: str) -> str:
        """Column address of an attribute name.

        Raises:
            UnknownAttribute: If the name does not resolve
        """
        address = type(self).schema.resolve(name)
        if address is None:
            schema = type(self).schema
            known = [*schema.families, *schema.aliases, *schema.association_names]
            raise UnknownAttribute(name, type(self).__name__, suggest_names(name, known))
        return address

    def _owned_by_association(self, address: str) -> bool:
        return family_of(address) in type(self).schema.association_families

    def _convert(self, address: str, value: Any) -> Any:
        if self._owned_by_association(address):
            return value
        return type(self).schema.registry.convert(attribute_name(address), value)

    def _encode(self, address: str, value: Any) -> str | None:
        if value is None:
            return None
        if self._owned_by_association(address):
            return value if isinstance(value, str) else encode_value(value)
        return type(self).schema.registry.encode(attribute_name(address), value)

    # Attribute access

    @property
    def timestamp(self) -> int | None:
        """Row timestamp of the last load or save."""
        return self.attributes.timestamp

    def __getitem__(self, name: str) -> Any:
        if name == ROW_TIMESTAMP:
            return self.timestamp
        if name in type(self).schema.association_names:
            return self.association(name)
        address = self.resolve(name)
        return self._convert(address, self.attributes.get(address))

    def __setitem__(self, name: str, value: Any) -> None:
        if name == ROW_TIMESTAMP:
            self.attributes.timestamp = value
            return
        if name in type(self).schema.association_names:
            self.replace_association(name, value)
            return
        address = self.resolve(name)
        value = self._convert(address, value)
        self.attributes.set(address, value)
        self._sync_associations(address, value)

    def __delitem__(self, name: str) -> None:
        address = self.resolve(name)
        self.attributes.delete(address)
        self._sync_associations(address, None)

    def __contains__(self, name: object) -> bool:
        if not isinstance(name, str):
            return False
        address = type(self).schema.resolve(name)
        return address is not None and self.attributes.get(address) is not None

    def get(self, name: str, default: Any = None) -> Any:
        value = self[name]
        return default if value is None else value

    def update(self, data: Mapping[str, Any]) -> None:
        for name, value in data.items():
            self[name] = value

    def to_dict(self) -> dict[str, Any]:
        """Live columns as address -> typed value."""
        return {a: self._convert(a, v) for a, v in self.attributes.live_items()}

    @property
    def column_names(self) -> list[str]:
        return [address for address, _ in self.attributes.live_items()]

    def _sync_associations(self, address: str, value: Any) -> None:
        family = family_of(address)
        for proxy in self._associations.values():
            if getattr(proxy, "family", None) != family:
                continue
            if isinstance(proxy, ColumnFamilyProxy) and proxy.target is not None:
                proxy.target.sync(qualifier_of(address), value)
            elif isinstance(proxy, CellsProxy) and proxy.loaded:
                proxy.reset()

    # Associations

    def __getattr__(self, name: str) -> Any:
        if not name.startswith("_") and name in type(self).schema.association_names:
            return self.association(name)
        raise AttributeError(f"{type(self).__name__!r} object has no attribute {name!r}")

    def __setattr__(self, name: str, value: Any) -> None:
        if name in type(self).schema.association_names:
            self.replace_association(name, value)
        else:
            object.__setattr__(self, name, value)

    def association_proxy(self, name: str) -> Any:
        """The cached per-row proxy of an association."""
        proxy = self._associations.get(name)
        if proxy is None:
            definition = type(self).schema.association(name)
            if definition is None:
                schema = type(self).schema
                raise UnknownAttribute(
                    name, type(self).__name__, suggest_names(name, schema.association_names)
                )
            proxy = definition.build(self)
            self._associations[name] = proxy
        return proxy

    def association(self, name: str, force: bool = False) -> Any:
        """Value of an association.

        Returns the CellsProxy (has_many, merged has_many) or the ColumnFamily
        view (has_one, merged has_one). An optional has_many returns None
        while its family is empty, unless forced.
        """
        definition = type(self).schema.association(name)
        proxy = self.association_proxy(name)
        if definition.kind is AssociationKind.HAS_MANY:
            if definition.optional and not force and len(proxy) == 0:
                return None
            return proxy
        if definition.kind is AssociationKind.HAS_MERGED:
            return proxy
        return proxy.load()

    def replace_association(self, name: str, value: Any) -> None:
        """Assign to an association (replace its contents).

        Raises:
            MergedAssociationViolation: For merged associations
            TypeViolation: For values the association cannot take
        """
        definition = type(self).schema.association(name)
        if definition is not None and definition.merged:
            raise MergedAssociationViolation(name, "replace")
        proxy = self.association_proxy(name)
        if value is None and definition.kind is AssociationKind.HAS_MANY:
            value = []
        proxy.replace(value)

    # Validation

    def validation_errors(self) -> list[str]:
        errors = []
        if not self.key:
            errors.append("key is required")
        errors.extend(run_rules(self, type(self).schema.validators))
        for name, proxy in self._associations.items():
            if proxy.validate and not proxy.is_valid():
                errors.extend(f"{message} in association {name}" for message in proxy.errors)
        return errors

    # Persistence

    @property
    def table(self) -> Table:
        if self.repository is None:
            raise CellMapError(
                f"{type(self).__name__} '{self.key}' is not bound to a repository",
                code="UNBOUND_ENTITY",
            )
        return self.repository.table

    def save(self, timestamp: int | None = None) -> int:
        """Validate, then put the whole row in one write.

        Args:
            timestamp: Explicit write timestamp

        Returns:
            The timestamp applied by the store

        Raises:
            ConstraintViolation: If the entity or an association is invalid
        """
        if not self.is_valid():
            raise ConstraintViolation(type(self).__name__, list(self.errors))
        table = self.table

        for proxy in self._associations.values():
            proxy.write_all()

        # the row timestamp is kept outside the columns and never sent
        data = {address: self._encode(address, value) for address, value in self.attributes.items()}
        applied = table.put(self.key, data, timestamp)

        for address, value in data.items():
            if value is not None:
                self.attributes.set_timestamp(address, applied)
        self.attributes.timestamp = applied
        self.attributes.purge_deleted()
        self.was_new_record = self.new_record
        self.new_record = False
        logger.debug(
            "Entity saved",
            extra={
                "entity": type(self).__name__,
                "key": self.key,
                "columns": len(data),
                "timestamp": applied,
                "created": self.was_new_record,
            },
        )
        return applied

    def destroy(self) -> None:
        """Delete the row from the store."""
        self.table.delete_row(self.key)
        logger.debug("Entity destroyed", extra={"entity": type(self).__name__, "key": self.key})

    def reload(self, timestamp: int | None = None) -> Entity:
        """Re-read the row and drop cached associations.

        Raises:
            RowNotFound: If the row no longer exists
        """
        snapshot = self.table.get(self.key, timestamp=timestamp)
        self.attributes = AttributeStore.from_snapshot(snapshot)
        self.new_record = False
        self._associations.clear()
        return self

    # Comparison

    def __eq__(self, other: object) -> bool:
        if self is other:
            return True
        if type(other) is not type(self):
            return False
        return (
            not self.new_record
            and self.key == other.key
            and self.to_dict() == other.to_dict()
        )

    def __hash__(self) -> int:
        return hash((type(self).__name__, self.key))

    def __repr__(self) -> str:
        state = "new" if self.new_record else "persisted"
        return f"{type(self).__name__}(key={self.key!r}, {state}, columns={self.column_names!r})"
