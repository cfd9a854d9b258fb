"""The compiler turns an operator tree into a SQL statement.

Compilation works bottom-up: each node produces a `CompiledRelation`, i.e. its header together with a SQL fragment that
can be placed in the *FROM* clause of a statement. Afterwards, the restrictions of the node are turned into a *WHERE*
clause.

Whether a fragment must be enclosed in a subquery depends on its consumer. For example, a natural join can consume plain
tables directly (``a NATURAL JOIN b``), whereas a restricted table has to be enclosed first
(``a NATURAL JOIN (SELECT ... FROM b WHERE ...) AS x``). The consumer communicates its requirements via the `Enclosure`
mode. Of course, we could simply always enclose all fragments in subqueries, but we try to keep the SQL statements as
simple as possible.

Enclosing a fragment also resolves all aliases of its header: renamed and computed attributes become actual columns of the
subquery. Since *WHERE* clauses cannot reference the aliases of the select list, a fragment is also enclosed before its
restrictions are applied if its header contains any aliases. The same happens if the fragment already ends with a
*WHERE* clause, e.g. for a restricted projection of a restricted table.

Each subquery receives a unique alias. The aliases are drawn from a `CompilationContext`, which is created per statement
and shared by all (nested) compilation steps of that statement.
"""
from __future__ import annotations

import enum
import itertools
from collections.abc import Sequence
from typing import NamedTuple, Optional

from ._errors import AggregateRequiresComputation, BlobJoinKey, InvalidStandaloneOperator
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
from .literals import encode_tuples
from .relalg import (
    Aggregation,
    NaturalJoin,
    Negation,
    Projection,
    RelNode,
    RelNodeVisitor,
    Table,
    Union,
    as_restrictions,
)
from .. import util
from .._core import quote


class Enclosure(enum.IntEnum):
    """Controls under which circumstances a compiled fragment is enclosed in a subquery."""
    Never = 0
    """Do not enclose the fragment."""
    Aliased = 1
    """Enclose only if some attributes are still aliased."""
    Derived = 2
    """Enclose unless the fragment is an unrestricted table or natural join."""
    Aggregate = 3
    """Enclose only if the fragment is an aggregation (i.e. it has a *GROUP BY* clause)."""


class CompiledRelation(NamedTuple):
    """The result of compiling an operator tree: the header of the relation and the SQL fragment that computes it."""
    header: Header
    sql: str


class CompilationContext:
    """Provides unique aliases for the subqueries of a single statement.

    Parameters
    ----------
    prefix : str, optional
        Common prefix of all generated aliases. Defaults to ``$``.
    """

    def __init__(self, prefix: str = "$") -> None:
        self._prefix = prefix
        self._counter = itertools.count(1)

    def next_alias(self, kind: str) -> str:
        """Generates a new quoted alias, e.g. ```$a1f```. The `kind` is a short tag that indicates why a subquery is needed."""
        return quote(f"{self._prefix}{kind}{next(self._counter):x}")


def enclose(compiled: CompiledRelation, alias: str) -> CompiledRelation:
    """Wraps a fragment into a subquery with the given alias and resolves all aliases of its header."""
    header, sql = compiled
    return CompiledRelation(header.strip_aliases(), f"(SELECT {header.select_list()} FROM {sql}) AS {alias}")


def compile_relalg(node: RelNode, enclosure: Enclosure = Enclosure.Never, *,
                   context: Optional[CompilationContext] = None) -> CompiledRelation:
    """Compiles an operator tree into its header and the SQL fragment that computes it.

    Parameters
    ----------
    node : RelNode
        The root of the operator tree
    enclosure : Enclosure, optional
        Under which circumstances the resulting fragment has to be enclosed in a subquery. Does not enclose by default.
    context : Optional[CompilationContext], optional
        The context to draw subquery aliases from. If omitted, a new context is created. Pass the context explicitly when
        multiple fragments end up in the same statement.

    Returns
    -------
    CompiledRelation
        The header and SQL fragment

    Raises
    ------
    InvalidStandaloneOperator
        If the tree contains a union or negation outside of a restriction
    """
    context = context if context is not None else CompilationContext()
    return _RelalgCompiler(context, enclosure).compile(node)


def compile_statement(node: RelNode, *, context: Optional[CompilationContext] = None, suffix: str = "") -> str:
    """Compiles an operator tree into a complete *SELECT* statement that retrieves all attributes of the relation.

    Parameters
    ----------
    node : RelNode
        The root of the operator tree
    context : Optional[CompilationContext], optional
        The context to draw subquery aliases from
    suffix : str, optional
        Additional clauses such as *ORDER BY* or *LIMIT* that are appended to the statement

    Returns
    -------
    str
        The statement
    """
    header, sql = compile_relalg(node, context=context)
    statement = f"SELECT {header.select_list()} FROM {sql}"
    return f"{statement} {suffix.strip()}" if suffix.strip() else statement


class _RelalgCompiler(RelNodeVisitor[CompiledRelation]):
    """Compiles a single node of the operator tree, delegating to new compiler instances for all child nodes."""

    def __init__(self, context: CompilationContext, enclosure: Enclosure) -> None:
        self._context = context
        self._enclosure = enclosure
        self._has_where_clause = False

    def compile(self, node: RelNode) -> CompiledRelation:
        compiled = node.accept_visitor(self)

        if node.restrictions:
            if compiled.header.has_aliases or self._has_where_clause:
                compiled = enclose(compiled, self._context.next_alias("s"))
                self._has_where_clause = False
            where_clause = make_where_clause(compiled.header, node.restrictions, context=self._context)
            if where_clause:
                compiled = CompiledRelation(compiled.header, f"{compiled.sql} WHERE {where_clause}")
                self._has_where_clause = True

        if self._needs_enclosure(node, compiled.header):
            compiled = enclose(compiled, self._context.next_alias("a"))
            self._has_where_clause = False
        return compiled

    def visit_table(self, table: Table) -> CompiledRelation:
        return CompiledRelation(table.header.strip_aliases(), table.table.sql())

    def visit_projection(self, projection: Projection) -> CompiledRelation:
        child_compiler = _RelalgCompiler(self._context, Enclosure.Aliased)
        header, sql = child_compiler.compile(projection.input_node)
        # a restricted child that did not need to be enclosed still ends with its WHERE clause
        self._has_where_clause = child_compiler._has_where_clause
        return CompiledRelation(header.project(projection.specs), sql)

    def visit_aggregation(self, aggregation: Aggregation) -> CompiledRelation:
        header, sql = self._compile_child(aggregation.input_node, Enclosure.Derived)
        grouping_header, grouping_sql = self._compile_child(aggregation.grouping_node, Enclosure.Derived)

        common_blobs = [name for name in header.blob_names if name in grouping_header.blob_names]
        if common_blobs:
            raise BlobJoinKey(common_blobs)

        group_columns = ",".join(quote(name) for name in header.primary_key)
        aggregated_header = header.project(aggregation.specs)
        if not aggregated_header.has_aliases:
            raise AggregateRequiresComputation()
        return CompiledRelation(aggregated_header, f"{sql} NATURAL JOIN {grouping_sql} GROUP BY {group_columns}")

    def visit_natural_join(self, join: NaturalJoin) -> CompiledRelation:
        left_header, left_sql = self._compile_child(join.left_input, Enclosure.Derived)
        right_header, right_sql = self._compile_child(join.right_input, Enclosure.Derived)
        return CompiledRelation(left_header.join(right_header), f"{left_sql} NATURAL JOIN {right_sql}")

    def visit_union(self, union: Union) -> CompiledRelation:
        raise InvalidStandaloneOperator("union")

    def visit_negation(self, negation: Negation) -> CompiledRelation:
        raise InvalidStandaloneOperator("negation")

    def _compile_child(self, node: RelNode, enclosure: Enclosure) -> CompiledRelation:
        return _RelalgCompiler(self._context, enclosure).compile(node)

    def _needs_enclosure(self, node: RelNode, header: Header) -> bool:
        match self._enclosure:
            case Enclosure.Aliased:
                return header.has_aliases
            case Enclosure.Derived:
                return not isinstance(node, (Table, NaturalJoin)) or bool(node.restrictions)
            case Enclosure.Aggregate:
                return isinstance(node, Aggregation)
            case _:
                return False


def make_where_clause(header: Header, restrictions: Sequence[Restriction], *,
                      context: Optional[CompilationContext] = None) -> str:
    """Generates the condition that corresponds to a list of restrictions.

    All restrictions are combined conjunctively. A `NOT` marker negates the restriction that immediately follows it.

    Restrictions that do not share any attributes with the header have a special meaning: a semijoin with such a
    restriction does not remove any tuples, whereas an antijoin removes all tuples. If the restriction does share
    attributes with the header but does not contain any tuples, it is the other way around.

    Parameters
    ----------
    header : Header
        The header of the relation that should be restricted. It must not contain any aliases.
    restrictions : Sequence[Restriction]
        The restrictions
    context : Optional[CompilationContext], optional
        The context to draw subquery aliases from. This is required if any of the restrictions is another relation.

    Returns
    -------
    str
        The condition, without the *WHERE* keyword. Can be empty if none of the restrictions actually restricts the
        relation.

    Raises
    ------
    InvariantViolationError
        If the header still contains aliases
    """
    if header.has_aliases:
        raise util.InvariantViolationError("Aliases must be resolved before restriction")
    context = context if context is not None else CompilationContext()

    conditions: list[str] = []
    negated = False
    for restriction in restrictions:
        if restriction is NOT:
            negated = True
            continue
        condition = _evaluate_restriction(header, restriction, negated=negated, context=context)
        if condition:
            conditions.append(condition)
        negated = False
    return " AND ".join(conditions)


def _evaluate_restriction(header: Header, restriction: Restriction, *, negated: bool,
                          context: CompilationContext) -> str:
    not_prefix = "NOT " if negated else ""

    if isinstance(restriction, SqlCondition):
        return f"{not_prefix}({restriction.expression})"

    if isinstance(restriction, TupleSet):
        restriction = restriction.project(header.names)
        if not restriction.fields:
            return _empty_restrictor(negated, common_attributes=False)
        if not restriction.records:
            return _empty_restrictor(negated, common_attributes=True)
        condition = encode_tuples(restriction.records, header)
        if len(restriction.records) > 1 or negated:
            condition = f"{not_prefix}({condition})"
        return condition

    if isinstance(restriction, RelationRestriction):
        return _evaluate_semijoin(header, restriction.node, negated=negated, context=context)

    if isinstance(restriction, UnionRestriction):
        operand_conditions = [make_where_clause(header, [operand], context=context) or "TRUE"
                              for operand in restriction.operands]
        disjunction = " OR ".join(f"({condition})" for condition in operand_conditions)
        return f"{not_prefix}({disjunction})"

    if isinstance(restriction, NegatedRestriction):
        inner = make_where_clause(header, as_restrictions(restriction.node.input_node), context=context) or "TRUE"
        # negating a negation yields the original condition
        return f"({inner})" if negated else f"NOT ({inner})"

    raise util.InvariantViolationError(f"Unknown restriction type: {restriction!r}")


def _evaluate_semijoin(header: Header, node: RelNode, *, negated: bool, context: CompilationContext) -> str:
    compiled = compile_relalg(node, Enclosure.Derived, context=context)
    if isinstance(node, (Projection, Aggregation)) and not node.restrictions and compiled.header.has_aliases:
        compiled = enclose(compiled, context.next_alias("u"))
    condition_header, condition_sql = compiled

    common_attributes = [name for name in header.non_blobs if name in condition_header.non_blobs]
    if not common_attributes:
        return _empty_restrictor(negated, common_attributes=False)

    columns = ",".join(quote(name) for name in common_attributes)
    not_prefix = "NOT " if negated else ""
    return f"(({columns}) {not_prefix}IN (SELECT {columns} FROM {condition_sql}))"


def _empty_restrictor(negated: bool, *, common_attributes: bool) -> str:
    """Handles restrictions without any effective tuples.

    A restrictor without common attributes matches every tuple: the semijoin is a no-op and the antijoin is empty.
    A restrictor with common attributes but without tuples matches nothing: the semijoin is empty and the antijoin is a
    no-op.
    """
    if common_attributes:
        return "" if negated else "FALSE"
    return "FALSE" if negated else ""
