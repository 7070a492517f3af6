"""
Error types for cellmap.

This module defines the local, synchronous failures raised by the model
layer:
- CellMapError: Base exception
- TypeViolation: A value cannot be converted to its declared type
- UnexpectedAttribute: Undeclared attribute referenced in strict mode
- UnknownAttribute: A name does not resolve to a column of the entity
- ConstraintViolation: Validation failed at write/save time
- MergedAssociationViolation: Mutation attempted on a merged association
- RegistryFrozenError: Declaration attempted on a frozen registry

Store errors (RowNotFound, TableNotFound) are defined next to the store
contract in cellmap.store.base and re-exported from the package root.

Invariants:
    - All errors inherit from CellMapError
    - Nothing here is retried; callers decide what to do
    - Errors include context for debugging
"""

from __future__ import annotations

from typing import Any


class CellMapError(Exception):
    """Base exception for all cellmap errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "CELLMAP_ERROR"
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


class TypeViolation(CellMapError, TypeError):
    """A raw value could not be converted to, or violates, its declared type.

    Also raised for malformed arguments handed to proxies (an element of
    the wrong type passed to delete/replace).
    """

    def __init__(
        self,
        message: str,
        attr_name: str | None = None,
        expected: str | None = None,
    ) -> None:
        super().__init__(
            message,
            code="TYPE_VIOLATION",
            details={"attr_name": attr_name, "expected": expected},
        )
        self.attr_name = attr_name
        self.expected = expected


class UnexpectedAttribute(CellMapError):
    """Undeclared attribute referenced on a strict type."""

    def __init__(self, attr_name: str, owner: str | None = None) -> None:
        msg = f"Unexpected attribute '{attr_name}'"
        if owner:
            msg += f" for strict type '{owner}'"
        super().__init__(
            msg,
            code="UNEXPECTED_ATTRIBUTE",
            details={"attr_name": attr_name, "owner": owner},
        )
        self.attr_name = attr_name
        self.owner = owner


class UnknownAttribute(CellMapError, KeyError):
    """A name could not be resolved to a column address of an entity.

    Includes suggestions for similar names.
    """

    def __init__(
        self,
        attr_name: str,
        owner: str,
        suggestions: list[str] | None = None,
    ) -> None:
        suggestions = suggestions or []
        msg = f"Unknown attribute '{attr_name}' for '{owner}'"
        if suggestions:
            msg += f". Did you mean: {', '.join(suggestions)}?"
        super().__init__(
            msg,
            code="UNKNOWN_ATTRIBUTE",
            details={
                "attr_name": attr_name,
                "owner": owner,
                "suggestions": suggestions,
            },
        )
        self.attr_name = attr_name
        self.owner = owner
        self.suggestions = suggestions


class ConstraintViolation(CellMapError):
    """An entity or element failed validation at write/save time.

    Attributes:
        owner: Name of the failing type
        errors: Aggregated validation messages
    """

    def __init__(self, owner: str, errors: list[str] | None = None) -> None:
        errors = errors or []
        msg = f"{owner} failed constraint"
        if errors:
            msg += f": {'; '.join(errors)}"
        super().__init__(
            msg,
            code="CONSTRAINT_VIOLATION",
            details={"owner": owner, "errors": errors},
        )
        self.owner = owner
        self.errors = errors


class MergedAssociationViolation(CellMapError):
    """Mutation attempted on a read-only merged association."""

    def __init__(self, association: str | None = None, operation: str | None = None) -> None:
        msg = "Cannot modify merged associations"
        if association:
            msg += f" ('{association}'"
            msg += f", {operation})" if operation else ")"
        super().__init__(
            msg,
            code="MERGED_ASSOCIATION_VIOLATION",
            details={"association": association, "operation": operation},
        )
        self.association = association
        self.operation = operation


class RegistryFrozenError(CellMapError):
    """Registry is frozen and cannot be modified."""

    def __init__(self, message: str = "Cannot define: registry is frozen") -> None:
        super().__init__(message, code="REGISTRY_FROZEN")
