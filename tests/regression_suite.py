from __future__ import annotations

import abc
import sqlite3
import unittest
from collections.abc import Iterable, Mapping
from typing import Any

import mysql.connector

from relvar import TableReference
from relvar.db import _db as db
from relvar.db import mysql as relvar_mysql
from relvar.qal import Attribute, AttributeType, Header
from relvar._core import quote


class SqliteSchema(db.DatabaseSchema):
    """Reads table headers from the SQLite catalog, since SQLite does not provide an *information_schema*."""

    def __init__(self, sqlite_db: SqliteDatabase) -> None:
        super().__init__(sqlite_db, prep_placeholder="?")

    def _fetch_header(self, table: TableReference) -> Header:
        cursor = self._db.cursor()
        cursor.execute(f"PRAGMA table_info({quote(table.full_name)})")
        result_set = cursor.fetchall()
        if not result_set:
            raise ValueError(f"Table {table} does not exist")

        attributes = []
        for _, name, sql_type, not_null, default, pk_position in result_set:
            attributes.append(Attribute(name=name, type=AttributeType.from_sql_type(sql_type), sql_type=sql_type.lower(),
                                        is_key=pk_position > 0, nullable=not not_null and not pk_position,
                                        default=default))
        return Header(attributes)


class SqliteDatabase(db.Database):
    """In-memory database to execute compiled relvars end to end.

    SQLite understands backtick identifiers, natural joins and row values, which is all that the compiled statements
    need. All executed statements are recorded in `statements`.
    """

    def __init__(self, script: str = "", *, debug: bool = False) -> None:
        self._cnx = sqlite3.connect(":memory:")
        self._cur = self._cnx.cursor()
        if script:
            self._cnx.executescript(script)
        self._db_schema = SqliteSchema(self)
        self.statements: list[str] = []
        super().__init__("SQLite", debug=debug)

    def schema(self) -> SqliteSchema:
        return self._db_schema

    def execute_query(self, statement: str, *, raw: bool = False) -> Any:
        result_set = self._execute(statement)
        return result_set if raw else db.simplify_result_set(result_set)

    def fetch_records(self, statement: str) -> list[dict[str, Any]]:
        result_set = self._execute(statement)
        return db.records_from_cursor(self._cur, result_set)

    def database_name(self) -> str:
        return "main"

    def cursor(self) -> db.Cursor:
        return self._cur

    def close(self) -> None:
        self._cnx.close()

    def _execute(self, statement: str) -> db.ResultSet:
        self._log_statement(statement)
        self.statements.append(statement)
        try:
            self._cur.execute(statement)
            return self._cur.fetchall()
        except sqlite3.OperationalError as e:
            raise db.DatabaseUserError(db.format_error(statement, e), e)
        except sqlite3.Error as e:
            raise db.DatabaseServerError(db.format_error(statement, e), e)


def _stringify_records(records: list[Mapping[str, Any]]) -> str:
    """Transforms records into a string representation.

    Since result sets can become quite large, this cuts the records to only contain the first 5 values if
    necessary.
    """
    if len(records) > 5:
        return f"records ({len(records)} total) :: first 5 = {records[:5]}"
    return f"records ({len(records)}) :: contents = {records}"


class DatabaseTestCase(unittest.TestCase, abc.ABC):
    """Abstract test case that provides assertions on the records of actually executed relvars."""

    def assertRecordsEqual(self, first_records: Iterable[Mapping[str, Any]], second_records: Iterable[Mapping[str, Any]],
                           *, ordered: bool = False) -> None:
        """Assertion that fails if the two lists of records differ.

        Ordering can be accounted for by the `ordered` argument. By default, records are assumed to be unordered.
        """
        first_records = [dict(record) for record in first_records]
        second_records = [dict(record) for record in second_records]
        if len(first_records) != len(second_records):
            raise AssertionError(f"Records have different length: {_stringify_records(first_records)} and "
                                 f"{_stringify_records(second_records)}")

        if ordered:
            equal = first_records == second_records
        else:
            first_set = {tuple(sorted(record.items())) for record in first_records}
            second_set = {tuple(sorted(record.items())) for record in second_records}
            equal = first_set == second_set
        if not equal:
            raise AssertionError(f"Records differ: {_stringify_records(first_records)} vs. "
                                 f"{_stringify_records(second_records)}")


class QueryTestCase(unittest.TestCase, abc.ABC):
    """Abstract test case that provides assertions on the structure of compiled statements."""

    def assertQueriesEqual(self, first_query: object, second_query: object, message: str = "") -> None:
        """Assertion that fails if the two queries differ in a _significant_ way.

        This method is heavily heuristic and compares the two query strings according to the following rules:

        - leading/trailing whitespace is ignored
        - a trailing semicolon is ignored
        - upper/lowercase is ignored throughout the query

        Each other difference results in failure of the assertion. This includes optional parentheses as well as
        insignificant whitespace within the query.
        """
        first_query = str(first_query).strip().removesuffix(";").lower()
        second_query = str(second_query).strip().removesuffix(";").lower()
        return self.assertEqual(first_query, second_query, message)


def skip_if_no_db(config_file):
    """Decorator to conditionally skip a test if a database connection cannot be established.

    Parameters
    ----------
    config_file : str
        The config file that describes the connection to the database. Must be compatible with the mysql.connect()
    """
    try:
        mysql_instance = relvar_mysql.connect(config_file=config_file, private=True)
        mysql_instance.close()
        return lambda f: f
    except (ValueError, mysql.connector.Error):
        return unittest.skip(f"Cannot connect to database with config file '{config_file}'")
