"""Contains the **query abstraction layer** that turns relational expressions into SQL statements.

The qal is structured around 3 fundamental concepts:

1. the `Header` describes the schema of a relation, i.e. its attributes, their types and the primary key. Headers track
   which attributes still carry a pending rename or computation (an *alias*).
2. the `relalg` module provides the operator tree. Each operator node carries a list of `Restriction` values that narrow
   down its output, e.g. raw SQL conditions, tuple sets or other relations.
3. the `compiler` module walks the operator tree bottom-up and produces the SQL statement, enclosing intermediate results
   in subqueries where necessary. Tuple sets are encoded as SQL conditions by the `literals` module.

All concepts in the qal are modelled as immutable data objects. In order to restrict a relation, a new operator tree has to
be constructed (which is what `relvar.Relvar` takes care of).

All errors that are caused by malformed expressions derive from `RelvarError`.
"""
from __future__ import annotations

from . import compiler, literals, relalg
from ._errors import (
    AggregateRequiresComputation,
    ArityMismatch,
    BlobInRestriction,
    BlobJoinKey,
    DuplicateAttribute,
    InvalidStandaloneOperator,
    MultiRestrictionShapeError,
    NonScalarLiteral,
    NotScalar,
    RelvarError,
    TypeMismatch,
    UnknownAttribute,
)
from ._header import (
    Attribute,
    AttributeSpec,
    AttributeSpecKind,
    AttributeType,
    Header,
    make_header,
    parse_attribute_spec,
)
from ._restrictions import (
    NOT,
    NegatedRestriction,
    NegationMarker,
    RelationRestriction,
    Restriction,
    SqlCondition,
    TupleSet,
    UnionRestriction,
)
from .compiler import (
    CompilationContext,
    CompiledRelation,
    Enclosure,
    compile_relalg,
    compile_statement,
    make_where_clause,
)
from .literals import LongRestrictionWarning, encode_tuples
from .relalg import RelNode, as_restrictions

__all__ = [
    "compiler",
    "literals",
    "relalg",
    "RelvarError",
    "InvalidStandaloneOperator",
    "DuplicateAttribute",
    "UnknownAttribute",
    "TypeMismatch",
    "BlobJoinKey",
    "AggregateRequiresComputation",
    "BlobInRestriction",
    "NonScalarLiteral",
    "ArityMismatch",
    "NotScalar",
    "MultiRestrictionShapeError",
    "AttributeType",
    "Attribute",
    "AttributeSpec",
    "AttributeSpecKind",
    "Header",
    "make_header",
    "parse_attribute_spec",
    "Restriction",
    "SqlCondition",
    "TupleSet",
    "RelationRestriction",
    "NegationMarker",
    "NOT",
    "UnionRestriction",
    "NegatedRestriction",
    "CompilationContext",
    "CompiledRelation",
    "Enclosure",
    "compile_relalg",
    "compile_statement",
    "make_where_clause",
    "LongRestrictionWarning",
    "encode_tuples",
    "RelNode",
    "as_restrictions",
]
