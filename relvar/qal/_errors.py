"""Errors that are raised when relational expressions are malformed or used incorrectly.

All errors are raised at the point where the violation is detected and are never handled within relvar itself.
"""
from __future__ import annotations

from collections.abc import Iterable
from typing import Any


class RelvarError(ValueError):
    """Common base class of all errors related to the construction, compilation or fetching of relvars."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)


class InvalidStandaloneOperator(RelvarError):
    """Indicates that a union or negation was used as a relation on its own, rather than as a restriction.

    Parameters
    ----------
    operator : str
        The offending operator, e.g. *union*
    """

    def __init__(self, operator: str) -> None:
        super().__init__(f"The {operator} operator can only be used as a restriction")
        self.operator = operator


class DuplicateAttribute(RelvarError):
    """Indicates that a header would contain multiple attributes with the same name.

    Parameters
    ----------
    attribute : str
        The name that occurs multiple times
    """

    def __init__(self, attribute: str) -> None:
        super().__init__(f"Duplicate attribute '{attribute}'")
        self.attribute = attribute


class UnknownAttribute(RelvarError):
    """Indicates that an attribute specification references an attribute that is not part of the header.

    Parameters
    ----------
    attribute : str
        The name of the missing attribute
    available : Iterable[str], optional
        The attributes that would have been available instead
    """

    def __init__(self, attribute: str, available: Iterable[str] = ()) -> None:
        available = list(available)
        msg = f"Attribute '{attribute}' does not exist"
        if available:
            msg += f". Available attributes: {', '.join(available)}"
        super().__init__(msg)
        self.attribute = attribute
        self.available = available


class TypeMismatch(RelvarError):
    """Indicates that two attributes with the same name cannot be matched because their types are incompatible."""

    def __init__(self, attribute: str, left_type: Any, right_type: Any) -> None:
        super().__init__(f"Cannot join on attribute '{attribute}': types {left_type} and {right_type} are incompatible")
        self.attribute = attribute
        self.left_type = left_type
        self.right_type = right_type


class BlobJoinKey(RelvarError):
    """Indicates that a natural join or aggregation would have to match tuples on blob attributes."""

    def __init__(self, attributes: Iterable[str]) -> None:
        attributes = list(attributes)
        super().__init__(f"Join cannot be done on blob attributes: {', '.join(attributes)}")
        self.attributes = attributes


class AggregateRequiresComputation(RelvarError):
    """Indicates that an aggregation does not compute any new attribute."""

    def __init__(self) -> None:
        super().__init__("Aggregate operators must define at least one computation")


class BlobInRestriction(RelvarError):
    """Indicates that a tuple set tried to restrict a blob attribute."""

    def __init__(self, attribute: str) -> None:
        super().__init__(f"Restrictions must not include blob attribute '{attribute}'")
        self.attribute = attribute


class NonScalarLiteral(RelvarError):
    """Indicates that the value of a tuple set cannot be expressed as a SQL literal of the attribute's type."""

    def __init__(self, attribute: str, value: Any, expected: str) -> None:
        super().__init__(f"Value for '{attribute}' must be a {expected}, but was {value!r}")
        self.attribute = attribute
        self.value = value
        self.expected = expected


class ArityMismatch(RelvarError):
    """Indicates that the number of requested outputs does not match the number of fetched attributes."""

    def __init__(self, requested: int, provided: int) -> None:
        super().__init__(f"The number of outputs ({requested}) must match the number of requested attributes ({provided})")
        self.requested = requested
        self.provided = provided


class NotScalar(RelvarError):
    """Indicates that a single tuple was expected, but the relation contained none or multiple tuples."""

    def __init__(self, n_tuples: int) -> None:
        super().__init__(f"Expected exactly one tuple, but the relation contains {n_tuples}")
        self.n_tuples = n_tuples


class MultiRestrictionShapeError(RelvarError):
    """Indicates that a restriction was supplied in a form that cannot be interpreted."""

    def __init__(self, restriction: Any, reason: str = "") -> None:
        msg = f"Cannot interpret restriction {restriction!r}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)
        self.restriction = restriction
