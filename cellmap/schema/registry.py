"""
Attribute registry for cellmap.

The AttributeRegistry is the per-type authority for attribute declarations.
It provides:
- Declaration of attribute name -> kind
- Conversion of raw store values to typed Python values (convert)
- Encoding of typed values back to wire strings (encode)
- Strict mode: undeclared attributes fail instead of passing through
- Fingerprinting and freeze, as for any start-up configuration

Invariants:
    - Registry is mutable while types are being declared, then frozen
    - Once frozen, no new attributes can be defined
    - convert() returns None or an instance of the declared kind's type
    - For every declared kind, convert(encode(convert(raw))) == convert(raw)

How to change safely:
    - Declare all attributes before the first entity is loaded
    - New kinds need a converter, an encoder and a round-trip test
    - Never change the encoding of an existing kind; stored rows depend on it

Example:
    >>> registry = AttributeRegistry(strict=True)
    >>> registry.define("count", "integer")
    >>> registry.convert("count", "12")
    12
    >>> registry.encode("count", 12)
    '12'
"""

from __future__ import annotations

import datetime as dt
import hashlib
import json
import logging
import threading
from collections.abc import Iterator
from typing import Any

import yaml

from ..errors import RegistryFrozenError, TypeViolation, UnexpectedAttribute
from .types import AttrDef, AttrKind, attr

logger = logging.getLogger(__name__)

TRUE_VALUES = frozenset({"t", "true", "1", "yes"})
FALSE_VALUES = frozenset({"f", "false", "0", "no"})


class AttributeRegistry:
    """Attribute declarations and conversions for one type.

    Thread-safety:
        - Definition is thread-safe (uses internal lock)
        - Conversions read declarations without locking; declare once
          at start-up before concurrent use

    Attributes:
        name: Owner name, used in error messages
        strict: Whether undeclared attributes are rejected
        frozen: Whether the registry is frozen (immutable)
        fingerprint: SHA-256 hash of the declarations (computed on freeze)
    """

    def __init__(self, name: str | None = None, *, strict: bool = False) -> None:
        self.name = name
        self.strict = strict
        self._attrs: dict[str, AttrDef] = {}
        self._frozen = False
        self._fingerprint: str | None = None
        self._lock = threading.Lock()

    @property
    def frozen(self) -> bool:
        """Whether the registry is frozen."""
        return self._frozen

    @property
    def fingerprint(self) -> str | None:
        """Declaration fingerprint (available after freeze)."""
        return self._fingerprint

    def define(
        self,
        name: str | AttrDef,
        kind: str | AttrKind = AttrKind.UNTYPED,
        *,
        description: str = "",
    ) -> AttrDef:
        """Declare an attribute.

        Redefining an attribute replaces its kind.

        Args:
            name: Attribute name, or a ready AttrDef
            kind: Attribute kind
            description: Documentation

        Returns:
            The stored AttrDef

        Raises:
            RegistryFrozenError: If registry is frozen
        """
        attr_def = name if isinstance(name, AttrDef) else attr(name, kind, description=description)
        with self._lock:
            if self._frozen:
                raise RegistryFrozenError(
                    f"Cannot define attribute '{attr_def.name}': registry is frozen"
                )
            self._attrs[attr_def.name] = attr_def
        logger.debug(f"Defined attribute: {attr_def.name} ({attr_def.kind.value})")
        return attr_def

    def get(self, name: str) -> AttrDef | None:
        """Get the declaration for an attribute, if any."""
        return self._attrs.get(name)

    def kind_of(self, name: str) -> AttrKind | None:
        attr_def = self._attrs.get(name)
        return attr_def.kind if attr_def else None

    def names(self) -> list[str]:
        """Declared attribute names, in declaration order."""
        return list(self._attrs)

    def __contains__(self, name: object) -> bool:
        return name in self._attrs

    def __iter__(self) -> Iterator[AttrDef]:
        yield from self._attrs.values()

    def __len__(self) -> int:
        return len(self._attrs)

    def check(self, name: str, *, strict: bool | None = None) -> AttrDef | None:
        """Look up an attribute, enforcing strict mode.

        Args:
            name: Attribute name
            strict: Override for the registry's strict flag

        Returns:
            The declaration, or None for an undeclared non-strict attribute

        Raises:
            UnexpectedAttribute: If undeclared and strict
        """
        attr_def = self._attrs.get(name)
        if attr_def is None and (self.strict if strict is None else strict):
            raise UnexpectedAttribute(name, self.name)
        return attr_def

    def convert(self, name: str, raw: Any, *, strict: bool | None = None) -> Any:
        """Convert a raw value to the declared type of an attribute.

        Args:
            name: Attribute name
            raw: Raw value (usually a wire string)
            strict: Override for the registry's strict flag

        Returns:
            Typed value, None, or raw unchanged for undeclared attributes

        Raises:
            UnexpectedAttribute: If undeclared and strict
            TypeViolation: If the value cannot be converted
        """
        attr_def = self.check(name, strict=strict)
        if attr_def is None:
            return raw
        kind = attr_def.kind
        if raw is None or kind.accepts(raw):
            return raw

        value = _CONVERTERS[kind](name, raw)

        if not kind.accepts(value):
            raise TypeViolation(
                f"Attribute '{name}' converted to {type(value).__name__}, expected {kind.value}",
                attr_name=name,
                expected=kind.value,
            )
        return value

    def encode(self, name: str, value: Any, *, strict: bool | None = None) -> str | None:
        """Encode a typed value as a wire string.

        Args:
            name: Attribute name
            value: Typed (or raw) value
            strict: Override for the registry's strict flag

        Returns:
            Wire string, or None for a delete marker

        Raises:
            UnexpectedAttribute: If undeclared and strict
            TypeViolation: If the value does not fit the declared kind
        """
        attr_def = self.check(name, strict=strict)
        if value is None:
            return None
        if attr_def is not None and attr_def.kind is not AttrKind.UNTYPED:
            value = self.convert(name, value, strict=strict)
            if value is None:
                return None
        return encode_value(value)

    def freeze(self) -> str:
        """Freeze the registry and compute its fingerprint.

        Returns:
            Fingerprint string

        Raises:
            RegistryFrozenError: If already frozen
        """
        with self._lock:
            if self._frozen:
                raise RegistryFrozenError("Registry is already frozen")
            self._fingerprint = self._compute_fingerprint()
            self._frozen = True
        logger.info(
            f"Attribute registry '{self.name}' frozen with {len(self._attrs)} attributes, "
            f"fingerprint={self._fingerprint}"
        )
        return self._fingerprint

    def _compute_fingerprint(self) -> str:
        canonical = json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"))
        return f"sha256:{hashlib.sha256(canonical.encode('utf-8')).hexdigest()}"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation (declaration order kept)."""
        result: dict[str, Any] = {
            "strict": self.strict,
            "attributes": {a.name: a.kind.value for a in self._attrs.values()},
        }
        if self.name:
            result["name"] = self.name
        return result

    def to_yaml(self) -> str:
        """Convert to a YAML document."""
        return yaml.safe_dump(self.to_dict(), sort_keys=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AttributeRegistry:
        """Create a (not frozen) registry from dictionary representation."""
        registry = cls(data.get("name"), strict=bool(data.get("strict", False)))
        attributes = data.get("attributes") or {}
        if isinstance(attributes, dict):
            for name, kind in attributes.items():
                registry.define(name, kind or AttrKind.UNTYPED)
        else:
            for item in attributes:
                registry.define(AttrDef.from_dict(item))
        return registry

    def copy(self, name: str | None = None) -> AttributeRegistry:
        """Unfrozen copy with the same declarations."""
        registry = AttributeRegistry(name or self.name, strict=self.strict)
        registry._attrs = dict(self._attrs)
        return registry

    def __repr__(self) -> str:
        return (
            f"AttributeRegistry(name={self.name!r}, strict={self.strict}, "
            f"attributes={self.names()!r})"
        )


def encode_value(value: Any) -> str:
    """Encode a single typed value as a wire string."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dt.date, dt.datetime)):
        return value.isoformat()
    return str(value)


def _violation(name: str, raw: Any, kind: AttrKind) -> TypeViolation:
    return TypeViolation(
        f"Cannot convert {raw!r} to {kind.value} for attribute '{name}'",
        attr_name=name,
        expected=kind.value,
    )


def _text(raw: Any) -> str | None:
    """Stripped text of a raw value; None when it is empty."""
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8")
    text = str(raw).strip()
    return text or None


def _to_string(name: str, raw: Any) -> str:
    if isinstance(raw, bytes):
        return raw.decode("utf-8")
    return encode_value(raw)


def _to_integer(name: str, raw: Any) -> int | None:
    if isinstance(raw, float):
        if not raw.is_integer():
            raise _violation(name, raw, AttrKind.INTEGER)
        return int(raw)
    if isinstance(raw, bool):
        raise _violation(name, raw, AttrKind.INTEGER)
    text = _text(raw)
    if text is None:
        return None
    try:
        return int(text)
    except ValueError:
        raise _violation(name, raw, AttrKind.INTEGER) from None


def _to_float(name: str, raw: Any) -> float | None:
    if isinstance(raw, int) and not isinstance(raw, bool):
        return float(raw)
    if isinstance(raw, bool):
        raise _violation(name, raw, AttrKind.FLOAT)
    text = _text(raw)
    if text is None:
        return None
    try:
        return float(text)
    except ValueError:
        raise _violation(name, raw, AttrKind.FLOAT) from None


def _to_date(name: str, raw: Any) -> dt.date | None:
    if isinstance(raw, dt.datetime):
        return raw.date()
    text = _text(raw)
    if text is None:
        return None
    try:
        return dt.date.fromisoformat(text)
    except ValueError:
        raise _violation(name, raw, AttrKind.DATE) from None


def _to_datetime(name: str, raw: Any) -> dt.datetime | None:
    if isinstance(raw, dt.date):
        return dt.datetime(raw.year, raw.month, raw.day)
    text = _text(raw)
    if text is None:
        return None
    try:
        return dt.datetime.fromisoformat(text)
    except ValueError:
        raise _violation(name, raw, AttrKind.DATETIME) from None


def _to_boolean(name: str, raw: Any) -> bool | None:
    text = _text(raw)
    if text is None:
        return None
    text = text.lower()
    if text in TRUE_VALUES:
        return True
    if text in FALSE_VALUES:
        return False
    raise _violation(name, raw, AttrKind.BOOLEAN)


_CONVERTERS = {
    AttrKind.STRING: _to_string,
    AttrKind.INTEGER: _to_integer,
    AttrKind.FLOAT: _to_float,
    AttrKind.DATE: _to_date,
    AttrKind.DATETIME: _to_datetime,
    AttrKind.BOOLEAN: _to_boolean,
}
