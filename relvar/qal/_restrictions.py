"""Restrictions narrow a relation down to the tuples that satisfy some condition.

Each relational operator node carries a list of restrictions that are combined conjunctively. The different kinds of
restrictions are modelled as distinct classes:

- `SqlCondition` is an arbitrary SQL boolean expression that is inserted verbatim
- `TupleSet` restricts the relation to tuples that match any of a set of records
- `RelationRestriction` restricts the relation to tuples that have a matching tuple in another relation (semijoin)
- `NOT` negates the restriction that immediately follows it, turning semijoins into antijoins
- `UnionRestriction` combines multiple restrictions disjunctively
- `NegatedRestriction` negates an entire relation that is used as a restriction

The WHERE clause for a list of restrictions is computed by `relvar.qal.compiler.make_where_clause`.
"""
from __future__ import annotations

import abc
from collections.abc import Iterable, Mapping, Sequence
from typing import TYPE_CHECKING, Any, Optional

from .. import util

if TYPE_CHECKING:
    from .relalg import Negation, RelNode, Union


class Restriction(abc.ABC):
    """Base class of all restriction kinds. Restrictions are immutable."""

    @abc.abstractmethod
    def __hash__(self) -> int:
        raise NotImplementedError

    @abc.abstractmethod
    def __eq__(self, other: object) -> bool:
        raise NotImplementedError

    def __repr__(self) -> str:
        return str(self)


class SqlCondition(Restriction):
    """A restriction in the form of a raw SQL boolean expression, e.g. ``session_date > '2012-01-01'``.

    The expression is trusted and inserted into the WHERE clause without any escaping.
    """

    def __init__(self, expression: str) -> None:
        self._expression = expression

    @property
    def expression(self) -> str:
        return self._expression

    def __hash__(self) -> int:
        return hash(self._expression)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, type(self)) and self._expression == other._expression

    def __str__(self) -> str:
        return self._expression


class TupleSet(Restriction):
    """A restriction to all tuples that match at least one of the given records.

    A record matches a tuple if all of the record's attributes that are also part of the relation's header have the same
    values. Attributes of the records that are not part of the header are ignored.

    Notice that the fields of the tuple set are tracked independently from the actual records. This way, an empty tuple
    set can still have fields (e.g. an empty data frame with some columns). The distinction is important because the
    restriction behaves differently depending on whether the tuple set shares any fields with the restricted relation.

    Parameters
    ----------
    records : Iterable[Mapping[str, Any]]
        The accepted records
    fields : Optional[Iterable[str]], optional
        The fields of the tuple set. By default, all keys of all records are used.
    """

    def __init__(self, records: Iterable[Mapping[str, Any]], fields: Optional[Iterable[str]] = None) -> None:
        self._records = tuple(util.frozendict(record) for record in records)
        if fields is None:
            fields = dict.fromkeys(key for record in self._records for key in record)
        self._fields = tuple(fields)

    @property
    def records(self) -> Sequence[Mapping[str, Any]]:
        return self._records

    @property
    def fields(self) -> Sequence[str]:
        return self._fields

    def project(self, names: Iterable[str]) -> TupleSet:
        """Restricts the records to the given field names, dropping all other fields."""
        names = [name for name in names if name in self._fields]
        return TupleSet([util.project(record, names) for record in self._records], fields=names)

    def __len__(self) -> int:
        return len(self._records)

    def __hash__(self) -> int:
        # record values may be unhashable (e.g. arrays), these are rejected only once the literals are encoded
        return hash((self._fields, len(self._records)))

    def __eq__(self, other: object) -> bool:
        return isinstance(other, type(self)) and self._records == other._records and self._fields == other._fields

    def __str__(self) -> str:
        return f"TupleSet({len(self._records)} records on {', '.join(self._fields)})"


class RelationRestriction(Restriction):
    """A restriction to all tuples that have a matching tuple in another relation (a semijoin).

    Tuples match if they agree on all common non-blob attributes.
    """

    def __init__(self, node: RelNode) -> None:
        self._node = node

    @property
    def node(self) -> RelNode:
        return self._node

    def __hash__(self) -> int:
        return hash(self._node)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, type(self)) and self._node == other._node

    def __str__(self) -> str:
        return f"⋉ {self._node}"


class NegationMarker(Restriction):
    """Negates the restriction that immediately follows in the restriction list. Use the `NOT` singleton."""

    def __hash__(self) -> int:
        return hash(type(self))

    def __eq__(self, other: object) -> bool:
        return isinstance(other, type(self))

    def __str__(self) -> str:
        return "NOT"


NOT = NegationMarker()
"""The marker to negate the next restriction."""


class UnionRestriction(Restriction):
    """A disjunction of multiple restrictions, as created by the union operator."""

    def __init__(self, node: Union) -> None:
        self._node = node

    @property
    def node(self) -> Union:
        return self._node

    @property
    def operands(self) -> Sequence[Restriction]:
        return self._node.operands

    def __hash__(self) -> int:
        return hash(self._node)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, type(self)) and self._node == other._node

    def __str__(self) -> str:
        return str(self._node)


class NegatedRestriction(Restriction):
    """The negation of an entire relation used as a restriction, as created by the negation operator."""

    def __init__(self, node: Negation) -> None:
        self._node = node

    @property
    def node(self) -> Negation:
        return self._node

    def __hash__(self) -> int:
        return hash(self._node)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, type(self)) and self._node == other._node

    def __str__(self) -> str:
        return str(self._node)
