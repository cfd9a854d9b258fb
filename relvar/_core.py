"""Fundamental types that are shared by the query abstraction and the database layer."""
from __future__ import annotations

import re
from typing import Optional

_IdentifierPattern = re.compile(r"^[A-Za-z_$][\w$]*$")


def quote(identifier: str) -> str:
    """Wraps an identifier in MySQL backticks.

    In contrast to plain SQL identifiers, relvar quotes all identifiers unconditionally. This ensures that attribute names
    which happen to be reserved keywords (e.g. *key* or *order*) can be used safely. Backticks that are part of the
    identifier itself are escaped by doubling them.

    Parameters
    ----------
    identifier : str
        The identifier to quote. Empty strings are returned as-is.

    Returns
    -------
    str
        The quoted identifier
    """
    if not identifier:
        return ""
    escaped = identifier.replace("`", "``")
    return f"`{escaped}`"


def is_identifier(text: str) -> bool:
    """Checks, whether a piece of text can be used as an attribute name without further processing."""
    return bool(_IdentifierPattern.fullmatch(text))


class TableReference:
    """A table reference designates a physical database table, optionally qualified by its schema (i.e. MySQL database).

    Table references are immutable and can be compared and hashed.

    Parameters
    ----------
    full_name : str
        The name of the table, corresponding to the name of a physical database table (or a view)
    schema : str, optional
        The schema in which the table is located. Defaults to an empty string if the table is in the default schema of the
        current connection.

    Raises
    ------
    ValueError
        If the table name is empty
    """

    @staticmethod
    def parse(name: str, *, schema: Optional[str] = None) -> TableReference:
        """Creates a table reference from a potentially qualified name like ``lab.mouse``.

        Backticks around the individual parts are removed. If an explicit `schema` is given, it takes precedence over the
        qualification in the name.
        """
        parts = [part.strip().strip("`") for part in name.split(".", 1)]
        if len(parts) == 2:
            parsed_schema, table_name = parts
        else:
            parsed_schema, table_name = "", parts[0]
        return TableReference(table_name, schema if schema is not None else parsed_schema)

    def __init__(self, full_name: str, schema: str = "") -> None:
        if not full_name:
            raise ValueError("Table name is required")
        self._full_name = full_name
        self._schema = schema
        self._hash_val = hash((full_name, schema))

    @property
    def full_name(self) -> str:
        """Get the name of the table without any schema qualification.

        Returns
        -------
        str
            The table name
        """
        return self._full_name

    @property
    def schema(self) -> str:
        """Get the schema (MySQL database) that contains the table.

        Returns
        -------
        str
            The schema name. Can be empty if the table is located in the default database of the connection.
        """
        return self._schema

    def qualified_name(self) -> str:
        """Provides the unquoted, dot-separated name of the table."""
        return f"{self._schema}.{self._full_name}" if self._schema else self._full_name

    def sql(self) -> str:
        """Provides the fully-qualified and quoted name of the table, e.g. ```lab`.`mouse```."""
        if self._schema:
            return f"{quote(self._schema)}.{quote(self._full_name)}"
        return quote(self._full_name)

    def __hash__(self) -> int:
        return self._hash_val

    def __eq__(self, other: object) -> bool:
        return (isinstance(other, type(self))
                and self._full_name == other._full_name
                and self._schema == other._schema)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, type(self)):
            return NotImplemented
        return (self._schema, self._full_name) < (other._schema, other._full_name)

    def __repr__(self) -> str:
        return f"TableReference(full_name='{self._full_name}', schema='{self._schema}')"

    def __str__(self) -> str:
        return self.qualified_name()
