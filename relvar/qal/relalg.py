"""relalg provides the operator tree that relational expressions are composed of.

The central component of our algebra implementation is the `RelNode` class. All relational operators inherit from this
abstract class. All algebraic trees are immutable data structures: once a tree has been generated, it can no longer be
modified. The only thing that changes over the lifetime of a relvar is *which* tree it refers to (see `relvar.Relvar`).

The following operators are available:

- `Table` is a leaf node that refers to a physical table
- `Projection` selects, renames and computes attributes
- `Aggregation` computes attributes over the matching tuples of a second relation, grouped by the primary key
- `NaturalJoin` combines two relations on all common attributes
- `Union` and `Negation` are special operators that can only be used to restrict other relations

In contrast to textbook relational algebra, selections are not modelled as separate nodes. Instead, each node carries a
list of restrictions that are applied to its output. This mirrors the way SQL statements are generated: restrictions
become the WHERE clause of the statement that computes the node. See `relvar.qal.compiler` for details.
"""
from __future__ import annotations

import abc
import typing
from collections.abc import Generator, Iterable, Mapping, Sequence
from typing import Protocol, runtime_checkable

import pandas as pd

from ._errors import InvalidStandaloneOperator, MultiRestrictionShapeError
from ._header import Header
from ._restrictions import (
    NOT,
    NegatedRestriction,
    RelationRestriction,
    Restriction,
    SqlCondition,
    TupleSet,
    UnionRestriction,
)
from .._core import TableReference

VisitorResult = typing.TypeVar("VisitorResult")


class RelNode(abc.ABC):
    """Models a fundamental operator in relational algebra. All specific operators like joins inherit from it.

    Parameters
    ----------
    restrictions : Iterable[Restriction], optional
        The restrictions that are applied to the output of the operator. They are combined conjunctively.
    """

    def __init__(self, restrictions: Iterable[Restriction] = ()) -> None:
        self._restrictions = tuple(restrictions)
        self._node_type = type(self).__name__
        self._hash_val = hash((self._node_type, self._recalc_hash_val(), self._restrictions))

    @property
    def node_type(self) -> str:
        """Get the current operator as a string."""
        return self._node_type

    @property
    def restrictions(self) -> Sequence[Restriction]:
        """Get the restrictions that are applied to the output of this operator."""
        return self._restrictions

    @abc.abstractmethod
    def children(self) -> Sequence[RelNode]:
        """Provides all input nodes of the current operator.

        Returns
        -------
        Sequence[RelNode]
            The input nodes. For leaf nodes, the sequence is empty. Otherwise the children are provided from left to right.
        """
        raise NotImplementedError

    @abc.abstractmethod
    def accept_visitor(self, visitor: RelNodeVisitor[VisitorResult]) -> VisitorResult:
        """Enables processing of the current algebraic expression by an expression visitor."""
        raise NotImplementedError

    def with_restrictions(self, *restrictions: Restriction) -> RelNode:
        """Creates a copy of the current node with additional restrictions.

        The new restrictions are appended to the existing ones. The current node is left unchanged.
        """
        if not restrictions:
            return self
        return self._copy_with(self._restrictions + restrictions)

    def without_restrictions(self) -> RelNode:
        """Creates a copy of the current node that does not apply any restrictions to its output."""
        return self._copy_with(()) if self._restrictions else self

    def tables(self) -> frozenset[TableReference]:
        """Provides all base tables that are referenced by the operator tree, excluding restrictions."""
        return frozenset(table for child in self.children() for table in child.tables())

    def dfs_walk(self) -> Generator[RelNode, None, None]:
        """Performs a depth-first search on the algebraic expression. The current node is included in the output."""
        yield self
        for child in self.children():
            yield from child.dfs_walk()

    def inspect(self, *, _indentation: int = 0) -> str:
        """Provides a nice hierarchical string representation of the algebraic expression.

        Parameters
        ----------
        _indentation : int, optional
            Internal parameter to the `inspect` function. Should not be modified by the user.

        Returns
        -------
        str
            A string representation of the algebraic expression, spanning multiple lines
        """
        padding = " " * _indentation
        prefix = f"{padding}<- " if padding else ""
        own_str = prefix + str(self)
        if self._restrictions:
            own_str += " σ[" + ", ".join(str(restriction) for restriction in self._restrictions) + "]"
        inspections = [own_str]
        for child in self.children():
            inspections.append(child.inspect(_indentation=_indentation + 2))
        return "\n".join(inspections)

    @abc.abstractmethod
    def _copy_with(self, restrictions: tuple[Restriction, ...]) -> RelNode:
        """Creates a new node of the same type with the same inputs, but the given restrictions."""
        raise NotImplementedError

    @abc.abstractmethod
    def _recalc_hash_val(self) -> int:
        """Calculates the hash value of the node-specific attributes."""
        raise NotImplementedError

    def __hash__(self) -> int:
        return self._hash_val

    @abc.abstractmethod
    def __eq__(self, other: object) -> bool:
        raise NotImplementedError

    def __repr__(self) -> str:
        child_reprs = ", ".join(repr(child) for child in self.children())
        return f"{self.node_type}({child_reprs})"

    @abc.abstractmethod
    def __str__(self) -> str:
        raise NotImplementedError


class Table(RelNode):
    """A table is the leaf node of every operator tree. It provides all tuples of a physical table.

    Parameters
    ----------
    table : TableReference
        The table
    header : Header
        The attributes of the table, as provided by the database schema
    restrictions : Iterable[Restriction], optional
        Restrictions on the tuples of the table
    """

    def __init__(self, table: TableReference, header: Header, restrictions: Iterable[Restriction] = ()) -> None:
        self._table = table
        self._header = header
        super().__init__(restrictions)

    @property
    def table(self) -> TableReference:
        return self._table

    @property
    def header(self) -> Header:
        """Get the attributes of the table. The header is borrowed from the database schema."""
        return self._header

    def children(self) -> Sequence[RelNode]:
        return []

    def tables(self) -> frozenset[TableReference]:
        return frozenset([self._table])

    def accept_visitor(self, visitor: RelNodeVisitor[VisitorResult]) -> VisitorResult:
        return visitor.visit_table(self)

    def _copy_with(self, restrictions: tuple[Restriction, ...]) -> Table:
        return Table(self._table, self._header, restrictions)

    def _recalc_hash_val(self) -> int:
        return hash(self._table)

    __hash__ = RelNode.__hash__

    def __eq__(self, other: object) -> bool:
        return (isinstance(other, type(self))
                and self._table == other._table
                and self._restrictions == other._restrictions)

    def __repr__(self) -> str:
        return f"Table({self._table!r})"

    def __str__(self) -> str:
        return self._table.qualified_name()


class Projection(RelNode):
    """A projection selects attributes of its input relation. Attributes may also be renamed or computed.

    Parameters
    ----------
    input_node : RelNode
        The relation to project
    specs : Sequence[str]
        The attribute specifications. See `relvar.qal.parse_attribute_spec` for the allowed forms.
    restrictions : Iterable[Restriction], optional
        Restrictions on the projected tuples

    Notes
    -----
    Primary key attributes are always contained in the projection.
    """

    def __init__(self, input_node: RelNode, specs: Sequence[str], restrictions: Iterable[Restriction] = ()) -> None:
        self._input_node = input_node
        self._specs = tuple(specs)
        super().__init__(restrictions)

    @property
    def input_node(self) -> RelNode:
        return self._input_node

    @property
    def specs(self) -> Sequence[str]:
        return self._specs

    def children(self) -> Sequence[RelNode]:
        return [self._input_node]

    def accept_visitor(self, visitor: RelNodeVisitor[VisitorResult]) -> VisitorResult:
        return visitor.visit_projection(self)

    def _copy_with(self, restrictions: tuple[Restriction, ...]) -> Projection:
        return Projection(self._input_node, self._specs, restrictions)

    def _recalc_hash_val(self) -> int:
        return hash((self._input_node, self._specs))

    __hash__ = RelNode.__hash__

    def __eq__(self, other: object) -> bool:
        return (isinstance(other, type(self))
                and self._input_node == other._input_node
                and self._specs == other._specs
                and self._restrictions == other._restrictions)

    def __str__(self) -> str:
        return f"π ({', '.join(self._specs)})"


class Aggregation(RelNode):
    """An aggregation computes attributes for each tuple of its input based on all matching tuples of another relation.

    The computed attributes may use SQL aggregate functions (e.g. *count* or *avg*) on the attributes of the grouping
    relation. Tuples of both relations match if they agree on all common attributes. The result contains one tuple for each
    input tuple that has at least one matching tuple.

    Parameters
    ----------
    input_node : RelNode
        The relation whose tuples are extended
    grouping_node : RelNode
        The relation whose tuples are aggregated
    specs : Sequence[str]
        The attribute specifications. At least one attribute must be computed or renamed.
    restrictions : Iterable[Restriction], optional
        Restrictions on the aggregated tuples
    """

    def __init__(self, input_node: RelNode, grouping_node: RelNode, specs: Sequence[str],
                 restrictions: Iterable[Restriction] = ()) -> None:
        self._input_node = input_node
        self._grouping_node = grouping_node
        self._specs = tuple(specs)
        super().__init__(restrictions)

    @property
    def input_node(self) -> RelNode:
        return self._input_node

    @property
    def grouping_node(self) -> RelNode:
        return self._grouping_node

    @property
    def specs(self) -> Sequence[str]:
        return self._specs

    def children(self) -> Sequence[RelNode]:
        return [self._input_node, self._grouping_node]

    def accept_visitor(self, visitor: RelNodeVisitor[VisitorResult]) -> VisitorResult:
        return visitor.visit_aggregation(self)

    def _copy_with(self, restrictions: tuple[Restriction, ...]) -> Aggregation:
        return Aggregation(self._input_node, self._grouping_node, self._specs, restrictions)

    def _recalc_hash_val(self) -> int:
        return hash((self._input_node, self._grouping_node, self._specs))

    __hash__ = RelNode.__hash__

    def __eq__(self, other: object) -> bool:
        return (isinstance(other, type(self))
                and self._input_node == other._input_node
                and self._grouping_node == other._grouping_node
                and self._specs == other._specs
                and self._restrictions == other._restrictions)

    def __str__(self) -> str:
        return f"γ ({', '.join(self._specs)})"


class NaturalJoin(RelNode):
    """A natural join combines all tuples of two relations that agree on their common attributes.

    Parameters
    ----------
    left_input : RelNode
        The first relation
    right_input : RelNode
        The second relation
    restrictions : Iterable[Restriction], optional
        Restrictions on the joined tuples

    Notes
    -----
    To prevent an attribute from being joined on, rename it in one of the inputs. Blob attributes cannot be joined on.
    """

    def __init__(self, left_input: RelNode, right_input: RelNode, restrictions: Iterable[Restriction] = ()) -> None:
        self._left_input = left_input
        self._right_input = right_input
        super().__init__(restrictions)

    @property
    def left_input(self) -> RelNode:
        return self._left_input

    @property
    def right_input(self) -> RelNode:
        return self._right_input

    def children(self) -> Sequence[RelNode]:
        return [self._left_input, self._right_input]

    def accept_visitor(self, visitor: RelNodeVisitor[VisitorResult]) -> VisitorResult:
        return visitor.visit_natural_join(self)

    def _copy_with(self, restrictions: tuple[Restriction, ...]) -> NaturalJoin:
        return NaturalJoin(self._left_input, self._right_input, restrictions)

    def _recalc_hash_val(self) -> int:
        return hash((self._left_input, self._right_input))

    __hash__ = RelNode.__hash__

    def __eq__(self, other: object) -> bool:
        return (isinstance(other, type(self))
                and self._left_input == other._left_input
                and self._right_input == other._right_input
                and self._restrictions == other._restrictions)

    def __str__(self) -> str:
        return "⋈"


class Union(RelNode):
    """A union of restrictions. Tuples satisfy the union if they satisfy any of its operands.

    Unions cannot be evaluated on their own and can only be used to restrict other relations. Use `union` to create new
    instances, which takes care of flattening nested unions.

    Parameters
    ----------
    operands : Iterable[Restriction]
        The restrictions to combine. At least two are required.

    Raises
    ------
    ValueError
        If less than two operands are given
    """

    def __init__(self, operands: Iterable[Restriction]) -> None:
        self._operands = tuple(operands)
        if len(self._operands) < 2:
            raise ValueError("Union requires at least two operands")
        super().__init__()

    @property
    def operands(self) -> Sequence[Restriction]:
        return self._operands

    def children(self) -> Sequence[RelNode]:
        return [operand.node for operand in self._operands if isinstance(operand, RelationRestriction)]

    def accept_visitor(self, visitor: RelNodeVisitor[VisitorResult]) -> VisitorResult:
        return visitor.visit_union(self)

    def _copy_with(self, restrictions: tuple[Restriction, ...]) -> Union:
        raise InvalidStandaloneOperator("union")

    def _recalc_hash_val(self) -> int:
        return hash(self._operands)

    __hash__ = RelNode.__hash__

    def __eq__(self, other: object) -> bool:
        return isinstance(other, type(self)) and self._operands == other._operands

    def __str__(self) -> str:
        return " ∪ ".join(f"({operand})" for operand in self._operands)


class Negation(RelNode):
    """The negation of a relation. Tuples satisfy the negation if they have no matching tuple in the relation.

    Negations cannot be evaluated on their own and can only be used to restrict other relations. Use `negate` to create
    new instances, which takes care of cancelling double negations.

    Parameters
    ----------
    input_node : RelNode
        The negated relation
    """

    def __init__(self, input_node: RelNode) -> None:
        self._input_node = input_node
        super().__init__()

    @property
    def input_node(self) -> RelNode:
        return self._input_node

    def children(self) -> Sequence[RelNode]:
        return [self._input_node]

    def accept_visitor(self, visitor: RelNodeVisitor[VisitorResult]) -> VisitorResult:
        return visitor.visit_negation(self)

    def _copy_with(self, restrictions: tuple[Restriction, ...]) -> Negation:
        raise InvalidStandaloneOperator("negation")

    def _recalc_hash_val(self) -> int:
        return hash(self._input_node)

    __hash__ = RelNode.__hash__

    def __eq__(self, other: object) -> bool:
        return isinstance(other, type(self)) and self._input_node == other._input_node

    def __str__(self) -> str:
        return f"¬ ({self._input_node})"


class RelNodeVisitor(abc.ABC, typing.Generic[VisitorResult]):
    """Basic visitor to operate on arbitrary relational algebra trees.

    See Also
    --------
    RelNode

    References
    ----------

    .. Visitor pattern: https://en.wikipedia.org/wiki/Visitor_pattern
    """

    @abc.abstractmethod
    def visit_table(self, table: Table) -> VisitorResult:
        raise NotImplementedError

    @abc.abstractmethod
    def visit_projection(self, projection: Projection) -> VisitorResult:
        raise NotImplementedError

    @abc.abstractmethod
    def visit_aggregation(self, aggregation: Aggregation) -> VisitorResult:
        raise NotImplementedError

    @abc.abstractmethod
    def visit_natural_join(self, join: NaturalJoin) -> VisitorResult:
        raise NotImplementedError

    @abc.abstractmethod
    def visit_union(self, union: Union) -> VisitorResult:
        raise NotImplementedError

    @abc.abstractmethod
    def visit_negation(self, negation: Negation) -> VisitorResult:
        raise NotImplementedError


@runtime_checkable
class SupportsRelNode(Protocol):
    """Protocol for all objects that are backed by an operator tree, most importantly `relvar.Relvar`."""

    @abc.abstractmethod
    def as_relnode(self) -> RelNode:
        raise NotImplementedError


def as_restrictions(*conditions: object) -> list[Restriction]:
    """Converts arbitrary restriction arguments into proper `Restriction` instances.

    The following shapes are supported:

    - strings are raw SQL conditions. The string ``"not"`` (in any case) negates the next restriction.
    - mappings are a tuple set containing a single record
    - data frames are a tuple set containing all rows. The columns of the frame are the fields of the tuple set.
    - lists or tuples that only contain mappings are a tuple set containing these records
    - all other lists or tuples are flattened and each element is treated as a separate restriction. Empty lists do not
      produce any restriction.
    - relvars and operator nodes are semijoin restrictions. Unions and negations are handled accordingly.
    - `Restriction` instances are used as-is

    Raises
    ------
    MultiRestrictionShapeError
        If any of the conditions has a different shape
    """
    restrictions: list[Restriction] = []
    for condition in conditions:
        if isinstance(condition, Restriction):
            restrictions.append(condition)
        elif isinstance(condition, str):
            restrictions.append(NOT if condition.strip().lower() == "not" else SqlCondition(condition))
        elif isinstance(condition, Mapping):
            restrictions.append(TupleSet([condition]))
        elif isinstance(condition, pd.DataFrame):
            restrictions.append(TupleSet(condition.to_dict(orient="records"), fields=[str(col) for col in condition.columns]))
        elif isinstance(condition, (list, tuple)):
            if condition and all(isinstance(record, Mapping) for record in condition):
                restrictions.append(TupleSet(condition))
            else:
                restrictions.extend(as_restrictions(*condition))
        elif isinstance(condition, (RelNode, SupportsRelNode)):
            restrictions.append(_node_restriction(condition))
        else:
            raise MultiRestrictionShapeError(condition, f"unsupported type {type(condition).__name__}")
    return restrictions


def as_restriction(condition: object) -> Restriction:
    """Converts an argument into exactly one restriction. Negation markers are not permitted.

    Raises
    ------
    MultiRestrictionShapeError
        If the argument cannot be converted or does not correspond to exactly one restriction
    """
    restrictions = as_restrictions(condition)
    if len(restrictions) != 1 or restrictions[0] is NOT:
        raise MultiRestrictionShapeError(condition, "expected exactly one restriction")
    return restrictions[0]


def _node_restriction(condition: RelNode | SupportsRelNode) -> Restriction:
    node = condition if isinstance(condition, RelNode) else condition.as_relnode()
    if isinstance(node, Union):
        return UnionRestriction(node)
    if isinstance(node, Negation):
        return NegatedRestriction(node)
    return RelationRestriction(node)


def union(left: object, right: object) -> Union:
    """Creates the union of two restrictions.

    If any of the arguments is already a union, its operands are merged into the new union rather than nesting it.
    """
    return Union(_union_operands(left) + _union_operands(right))


def _union_operands(operand: object) -> tuple[Restriction, ...]:
    restriction = as_restriction(operand)
    if isinstance(restriction, UnionRestriction):
        return tuple(restriction.operands)
    return (restriction,)


def negate(node: RelNode) -> RelNode:
    """Negates a relation. If the relation already is a negation, the negated relation is returned instead."""
    if isinstance(node, Negation):
        return node.input_node
    return Negation(node)
