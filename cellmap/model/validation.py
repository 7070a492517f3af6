"""
Validation capability for entities, cells and column families.

A type opts in by mixing in Validatable and listing rules in its
`validators` class attribute. A rule is any callable taking the object
and returning None (valid), an error message, or a list of messages.

Rule factories cover the common cases:
- required(name): value must be present and non-empty
- one_of(name, values): value must be in a fixed set
- length(name, minimum, maximum): string/collection length bounds

Invariants:
    - Validation errors are deterministic
    - is_valid() never raises for invalid data; it fills `errors`
    - validate() raises ConstraintViolation with the collected errors

Example:
    >>> class Link(JsonCell):
    ...     validators = (required("title"), length("title", maximum=80))
"""

from __future__ import annotations

from collections.abc import Callable, Collection, Iterable
from typing import Any, ClassVar

from ..errors import ConstraintViolation

Rule = Callable[[Any], "str | list[str] | None"]


class Validatable:
    """Mixin giving a type rule-based validation.

    Implementers provide get(name) for the rule factories to read values.
    """

    validators: ClassVar[tuple[Rule, ...]] = ()

    def validation_errors(self) -> list[str]:
        """Run every rule and collect error messages."""
        return run_rules(self, type(self).validators)

    def is_valid(self) -> bool:
        """Validate, storing messages in `errors`."""
        self.errors = self.validation_errors()
        return not self.errors

    def validate(self) -> None:
        """Raise ConstraintViolation unless valid.

        Raises:
            ConstraintViolation: With the collected errors
        """
        if not self.is_valid():
            raise ConstraintViolation(type(self).__name__, list(self.errors))


def run_rules(obj: Any, rules: Iterable[Rule]) -> list[str]:
    errors: list[str] = []
    for rule in rules:
        result = rule(obj)
        if not result:
            continue
        if isinstance(result, str):
            errors.append(result)
        else:
            errors.extend(result)
    return errors


def required(name: str, message: str | None = None) -> Rule:
    """Value must be present and not an empty string."""

    def rule(obj: Any) -> str | None:
        value = obj.get(name)
        if value is None or value == "":
            return message or f"{name} is required"
        return None

    rule.__name__ = f"required_{name}"
    return rule


def one_of(name: str, values: Collection[Any], message: str | None = None) -> Rule:
    """Value, when present, must be one of `values`."""

    def rule(obj: Any) -> str | None:
        value = obj.get(name)
        if value is not None and value not in values:
            return message or f"{name} must be one of {sorted(map(str, values))}"
        return None

    rule.__name__ = f"one_of_{name}"
    return rule


def length(
    name: str,
    minimum: int | None = None,
    maximum: int | None = None,
) -> Rule:
    """Value length, when present, must be within [minimum, maximum]."""

    def rule(obj: Any) -> str | None:
        value = obj.get(name)
        if value is None:
            return None
        size = len(value)
        if minimum is not None and size < minimum:
            return f"{name} is too short (minimum is {minimum})"
        if maximum is not None and size > maximum:
            return f"{name} is too long (maximum is {maximum})"
        return None

    rule.__name__ = f"length_{name}"
    return rule
