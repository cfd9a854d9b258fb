"""Provides the `Relvar`, the user-facing handle to build relational expressions and to fetch their tuples."""
from __future__ import annotations

import numbers
from collections.abc import Mapping, Sequence
from typing import Any, Optional

import pandas as pd

from . import util
from ._core import TableReference
from .db import Database
from .qal import relalg
from .qal._errors import ArityMismatch, MultiRestrictionShapeError, NotScalar
from .qal._header import Header, parse_attribute_spec
from .qal._restrictions import NOT, Restriction
from .qal.compiler import CompilationContext, Enclosure, compile_relalg, compile_statement, make_where_clause


def split_limit_clause(args: Sequence[Any]) -> tuple[str, tuple[Any, ...]]:
    """Separates a trailing *ORDER BY* or *LIMIT* argument from the attribute specifications of a fetch call.

    If the last argument is a string that starts with *ORDER BY* or *LIMIT*, it is used as-is. If it is an integer, it
    becomes a *LIMIT* clause.

    Returns
    -------
    tuple[str, tuple[Any, ...]]
        The SQL suffix (possibly empty) and the remaining arguments
    """
    if not args:
        return "", ()
    *remaining, last = args
    if isinstance(last, str) and last.strip().startswith(("ORDER BY", "LIMIT ")):
        return last.strip(), tuple(remaining)
    if isinstance(last, numbers.Integral) and not isinstance(last, bool):
        return f"LIMIT {int(last)}", tuple(remaining)
    return "", tuple(args)


class Relvar:
    """A relvar (relational variable) is a handle to a relational expression whose tuples can be fetched from a database.

    Relvars are combined by means of the usual Python operators:

    - ``a & cond`` restricts `a` to all tuples that satisfy `cond` (see `restrict` for the supported conditions)
    - ``a - cond`` restricts `a` to all tuples that do **not** satisfy `cond` (antijoin)
    - ``a * b`` computes the natural join of `a` and `b`
    - ``b | c`` is the union of two restrictions and ``~b`` is the negation of a restriction. Both can only be used to
      restrict other relvars, e.g. ``a & (b | c)`` or ``a & ~b``.

    Furthermore, `pro` projects, renames and computes attributes and `aggr` computes aggregates over a second relvar.

    All operators produce new relvars and leave their operands unchanged. The only exception is `restrict`, which
    modifies the relvar in place. Since the underlying operator trees are immutable, this never affects any other relvar
    that was derived from the current one.

    Parameters
    ----------
    database : Database
        The database that stores the tables of the expression
    node : relalg.RelNode
        The root of the operator tree

    See Also
    --------
    Database.relvar
    """

    @staticmethod
    def table(database: Database, name: str | TableReference, *, schema: Optional[str] = None) -> Relvar:
        """Creates a relvar that provides all tuples of a physical table.

        The header of the table is obtained from the schema of the database.
        """
        table = name if isinstance(name, TableReference) else TableReference.parse(name, schema=schema)
        header = database.schema().table_header(table)
        return Relvar(database, relalg.Table(table, header))

    def __init__(self, database: Database, node: relalg.RelNode) -> None:
        self._db = database
        self._node = node

    @property
    def database(self) -> Database:
        return self._db

    @property
    def node(self) -> relalg.RelNode:
        """Get the root of the operator tree that the relvar currently refers to."""
        return self._node

    @property
    def header(self) -> Header:
        """Get the header of the relation. Attributes that are renamed or computed still carry their alias."""
        return compile_relalg(self._node).header

    @property
    def sql(self) -> str:
        """Get the *SELECT* statement that computes all tuples of the relation."""
        return compile_statement(self._node)

    @property
    def primary_key(self) -> Sequence[str]:
        return self.header.primary_key

    @property
    def non_key_attributes(self) -> Sequence[str]:
        return self.header.dependent_attributes

    @property
    def restrictions(self) -> Sequence[Restriction]:
        """Get the restrictions that are applied to the output of the top-most operator."""
        return self._node.restrictions

    def as_relnode(self) -> relalg.RelNode:
        return self._node

    def where_clause(self) -> str:
        """Provides the condition that corresponds to the restrictions of the top-most operator.

        The condition does not contain the *WHERE* keyword and is empty if the restrictions do not filter anything.
        """
        context = CompilationContext()
        header, _ = compile_relalg(self._node.without_restrictions(), context=context)
        return make_where_clause(header.strip_aliases(), self._node.restrictions, context=context)

    def show(self) -> str:
        """Provides a description of the header, listing the primary key attributes followed by all other attributes."""
        return self.header.describe()

    def inspect(self) -> str:
        """Provides a hierarchical string representation of the operator tree."""
        return self._node.inspect()

    # relational operators

    def restrict(self, *conditions: Any) -> None:
        """Restricts the relvar in place. All conditions must hold for a tuple to be retained.

        Conditions can be SQL boolean expressions, dictionaries (tuple sets of a single record), lists of dictionaries,
        data frames, or other relvars (semijoin). The special string ``"not"`` negates the immediately following condition.
        Lists of conditions are flattened.

        Examples
        --------
        >>> session.restrict("session_date > '2012-01-01'", "not", {"anesthesia": "urethane"})
        >>> scan.restrict(session)  # all scans that belong to at least one session

        Raises
        ------
        MultiRestrictionShapeError
            If any of the conditions cannot be interpreted
        InvalidStandaloneOperator
            If the current relvar is a union or negation
        """
        self._node = self._node.with_restrictions(*relalg.as_restrictions(*conditions))

    def __and__(self, condition: Any) -> Relvar:
        restricted = Relvar(self._db, self._node)
        restricted.restrict(condition)
        return restricted

    def __sub__(self, condition: Any) -> Relvar:
        if isinstance(condition, (list, tuple)) and not all(isinstance(record, Mapping) for record in condition):
            raise MultiRestrictionShapeError(condition, "antijoin only accepts single restrictions")
        restricted = Relvar(self._db, self._node)
        restricted.restrict(NOT, relalg.as_restriction(condition))
        return restricted

    def __or__(self, other: Any) -> Relvar:
        return Relvar(self._db, relalg.union(self, other))

    def __ror__(self, other: Any) -> Relvar:
        return Relvar(self._db, relalg.union(other, self))

    def __invert__(self) -> Relvar:
        return Relvar(self._db, relalg.negate(self._node))

    def __mul__(self, other: object) -> Relvar:
        if not isinstance(other, Relvar):
            return NotImplemented
        return Relvar(self._db, relalg.NaturalJoin(self._node, other._node))

    def pro(self, *args: Relvar | str) -> Relvar:
        """Projects, renames and computes attributes.

        Primary key attributes are always included. Other attributes are specified as

        - ``"name"`` to include an attribute
        - ``"*"`` to include all attributes
        - ``"old->new"`` to rename an attribute
        - ``"expression->new"`` to compute a new attribute from a SQL expression, e.g. ``"datediff(now(), dob)->age"``

        If the first argument is another relvar, the aggregation operator is applied instead. See `aggr` for details.

        Raises
        ------
        TypeError
            If any of the specifications is not a string
        """
        if args and isinstance(args[0], Relvar):
            return self.aggr(args[0], *args[1:])
        _assert_specs(args, "pro")
        return Relvar(self._db, relalg.Projection(self._node, args))

    def aggr(self, other: Relvar, *specs: str) -> Relvar:
        """Computes attributes over all tuples of `other` that match each tuple of this relvar.

        The specifications follow the same rules as in `pro`, but computations may use aggregate functions like
        *count*, *avg* or *max* over the attributes of `other`. Tuples without any matching tuple in `other` are dropped.

        Examples
        --------
        >>> mouse.aggr(session, "count(*)->n_sessions")
        """
        _assert_specs(specs, "aggr")
        return Relvar(self._db, relalg.Aggregation(self._node, other._node, specs))

    def pair(self, *attributes: str) -> Relvar:
        """Joins the relvar with itself, renaming each of the given attributes to ``<attr>1`` and ``<attr>2`` respectively.

        This is useful to examine pairs of tuples. Only the primary key and the renamed attributes are retained.
        """
        first = self.pro(*[f"{attr}->{attr}1" for attr in attributes])
        second = self.pro(*[f"{attr}->{attr}2" for attr in attributes])
        return first * second

    # fetching data

    def exists(self) -> bool:
        """Checks, whether the relation contains any tuples."""
        _, sql = compile_relalg(self._node, Enclosure.Aggregate)
        return bool(self._db.execute_query(f"SELECT EXISTS(SELECT 1 FROM {sql} LIMIT 1) AS yes"))

    def count(self) -> int:
        """Determines the number of tuples in the relation."""
        _, sql = compile_relalg(self._node, Enclosure.Aggregate)
        return int(self._db.execute_query(f"SELECT COUNT(*) AS n FROM {sql}"))

    def fetch(self, *args: Relvar | str | int, with_keys: bool = False,
              as_frame: bool = False) -> list[dict[str, Any]] | pd.DataFrame | tuple:
        """Retrieves the tuples of the relation.

        Parameters
        ----------
        *args : Relvar | str | int
            The attributes to retrieve. These follow the rules of `pro`, including aggregations if the first argument is
            another relvar. By default, only the primary key is retrieved. Use ``"*"`` to retrieve all attributes.
            If the last argument starts with *ORDER BY* or *LIMIT*, it is appended to the statement. If the last argument
            is an integer, only that many tuples are fetched.
        with_keys : bool, optional
            Whether the primary keys of the tuples should be returned as well
        as_frame : bool, optional
            Whether the tuples should be provided as a data frame rather than a list of dictionaries

        Returns
        -------
        list[dict[str, Any]] | pd.DataFrame | tuple
            The tuples. If `with_keys` is enabled, a pair of the tuples and their keys is returned.

        Examples
        --------
        >>> mouse.fetch("*", "ORDER BY dob DESC")
        >>> mouse.fetch(session, "count(*)->n", 10)
        """
        suffix, specs = split_limit_clause(args)
        projected = self.pro(*specs)
        header, sql = compile_relalg(projected._node)
        statement = f"SELECT {header.select_list()} FROM {sql}"
        if suffix:
            statement += f" {suffix}"
        records = self._db.fetch_records(statement)

        primary_key = header.primary_key
        if as_frame:
            frame = pd.DataFrame(records, columns=header.names)
            return (frame, frame[primary_key]) if with_keys else frame
        if with_keys:
            return records, [util.project(record, primary_key) for record in records]
        return records

    def fetch1(self, *args: Relvar | str, arity: Optional[int] = None) -> Any:
        """Retrieves attributes of a relation that contains exactly one tuple.

        Parameters
        ----------
        *args : Relvar | str
            The attributes to retrieve, following the same rules as `fetch`. Wildcards are not allowed.
        arity : Optional[int], optional
            The number of values that the caller expects. If given, it must match the number of attributes.

        Returns
        -------
        Any
            The value of the attribute if a single attribute is requested, otherwise a tuple of all values in the order
            in which they were requested.

        Raises
        ------
        ValueError
            If no attributes or a wildcard are requested
        ArityMismatch
            If the `arity` does not match the number of requested attributes
        NotScalar
            If the relation does not contain exactly one tuple
        """
        _, remaining = split_limit_clause(args)
        specs = _output_specs(remaining, "fetch1")
        if arity is not None and arity != len(specs):
            raise ArityMismatch(arity, len(specs))

        records = self.fetch(*args)
        if len(records) != 1:
            raise NotScalar(len(records))
        record = records[0]
        values = tuple(record[parse_attribute_spec(spec).output_name] for spec in specs)
        return values[0] if len(values) == 1 else values

    def fetchn(self, *args: Relvar | str | int, with_keys: bool = False, arity: Optional[int] = None) -> Any:
        """Retrieves attributes of all tuples of the relation, one list per attribute.

        Parameters
        ----------
        *args : Relvar | str | int
            The attributes to retrieve, following the same rules as `fetch`. Wildcards are not allowed.
        with_keys : bool, optional
            Whether the primary keys of the tuples should be returned as an additional list of records.
        arity : Optional[int], optional
            The number of values that the caller expects, including the keys. If given, it must match the number of
            attributes (plus one if `with_keys` is enabled).

        Returns
        -------
        Any
            The list of values if a single attribute is requested without keys. Otherwise a tuple of lists: one for each
            attribute in the order in which they were requested, followed by the keys if requested.

        Raises
        ------
        ValueError
            If no attributes or a wildcard are requested
        ArityMismatch
            If the `arity` does not match the number of outputs
        """
        _, remaining = split_limit_clause(args)
        specs = _output_specs(remaining, "fetchn")
        n_outputs = len(specs) + 1 if with_keys else len(specs)
        if arity is not None and arity != n_outputs:
            raise ArityMismatch(arity, n_outputs)

        records, keys = self.fetch(*args, with_keys=True)
        columns = [[record[parse_attribute_spec(spec).output_name] for record in records] for spec in specs]
        if with_keys:
            return (*columns, keys)
        return columns[0] if len(columns) == 1 else tuple(columns)

    def __len__(self) -> int:
        return self.count()

    def __bool__(self) -> bool:
        return self.exists()

    def __repr__(self) -> str:
        return f"Relvar({self._node!r})"

    def __str__(self) -> str:
        return self.inspect()


def _assert_specs(specs: Sequence[Any], operation: str) -> None:
    if not all(isinstance(spec, str) for spec in specs):
        raise TypeError(f"{operation}() requires attribute specifications as strings")


def _output_specs(args: Sequence[Any], operation: str) -> list[str]:
    specs = [arg for arg in args if isinstance(arg, str)]
    if not specs:
        raise ValueError(f"{operation}() requires at least one attribute")
    if any(spec.strip() == "*" for spec in specs):
        raise ValueError(f'"*" is not allowed in {operation}()')
    return specs
