"""Encoding of tuple sets as SQL conditions.

A tuple set such as ``[{"a": 1, "b": "x"}, {"a": 2, "b": "y"}]`` is turned into a disjunction of conjunctions:
``(`a`=1 AND `b`='x') OR (`a`=2 AND `b`='y')``. The literal values are formatted according to the type of the attribute
they are compared to.
"""
from __future__ import annotations

import datetime
import decimal
import numbers
import warnings
from collections.abc import Mapping, Sequence
from typing import Any

import numpy as np

from ._errors import BlobInRestriction, NonScalarLiteral
from ._header import Attribute, Header
from .._core import quote

LongRestrictionThreshold = 512
"""Tuple sets with more records than this threshold trigger a `LongRestrictionWarning`."""


class LongRestrictionWarning(UserWarning):
    """Warning to indicate that a tuple set is so large that a different restriction should be considered."""

    def __init__(self, msg: str) -> None:
        super().__init__(msg)


def escape_string(value: str) -> str:
    """Escapes a string such that it can be placed between single quotes in a MySQL statement.

    Single quotes are doubled. Backslashes are doubled as well to prevent MySQL from interpreting escape sequences.
    """
    return value.replace("'", "''").replace("\\", "\\\\")


def format_literal(attribute: Attribute, value: Any) -> str:
    """Formats a single value as a SQL literal that can be compared to the given attribute.

    Parameters
    ----------
    attribute : Attribute
        The attribute that the value belongs to
    value : Any
        The value. String attributes require strings (or date/time values), all other attributes require numeric or boolean
        scalars.

    Returns
    -------
    str
        The SQL literal

    Raises
    ------
    BlobInRestriction
        If the attribute is a blob
    NonScalarLiteral
        If the value does not fit the attribute type
    """
    name = attribute.output_name
    if attribute.is_blob:
        raise BlobInRestriction(name)

    if attribute.is_string:
        if isinstance(value, (datetime.date, datetime.time)):
            value = value.isoformat(sep=" ") if isinstance(value, datetime.datetime) else value.isoformat()
        if not isinstance(value, str):
            raise NonScalarLiteral(name, value, "string")
        return f"'{escape_string(value)}'"

    if isinstance(value, (bool, np.bool_)):
        return "1" if value else "0"
    if isinstance(value, numbers.Integral):
        return str(int(value))
    if isinstance(value, decimal.Decimal):
        return str(value)
    if isinstance(value, numbers.Real):
        # repr() provides the shortest representation that still round-trips exactly
        return repr(float(value))
    raise NonScalarLiteral(name, value, "numeric or boolean scalar")


def _encode_record(record: Mapping[str, Any], header: Header) -> str:
    conditions = []
    for field, value in record.items():
        attribute = header.by_name(field)
        if value is None and not attribute.is_blob:
            conditions.append(f"{quote(field)} IS NULL")
            continue
        conditions.append(f"{quote(field)}={format_literal(attribute, value)}")
    return " AND ".join(conditions) if conditions else "TRUE"


def encode_tuples(records: Sequence[Mapping[str, Any]], header: Header) -> str:
    """Generates the SQL condition that accepts exactly the tuples that match any of the records.

    All fields of the records must be attributes of the header. A single record produces a plain conjunction, multiple
    records produce a disjunction of parenthesized conjunctions.

    Parameters
    ----------
    records : Sequence[Mapping[str, Any]]
        The records. Must not be empty.
    header : Header
        The header of the restricted relation. It is used to determine how values have to be formatted.

    Returns
    -------
    str
        The SQL condition

    Raises
    ------
    ValueError
        If no records are given
    BlobInRestriction
        If any of the fields is a blob attribute
    NonScalarLiteral
        If any of the values does not fit its attribute type

    Warns
    -----
    LongRestrictionWarning
        If there are more than `LongRestrictionThreshold` records
    """
    if not records:
        raise ValueError("At least one record is required")
    if len(records) > LongRestrictionThreshold:
        warnings.warn(LongRestrictionWarning(f"Restriction by {len(records)} tuples. Consider replacing the long list of "
                                             "tuples by a more succinct condition or a restriction by another relation"),
                      stacklevel=2)
    if len(records) == 1:
        return _encode_record(records[0], header)
    return " OR ".join(f"({_encode_record(record, header)})" for record in records)
