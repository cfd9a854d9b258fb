"""This module provides relvar's basic interaction with databases.

More specifically, this includes

- an interface to execute the compiled statements (the `Database` interface)
- an interface to retrieve the headers of physical tables (the `DatabaseSchema` interface)
- a utility to easily obtain database connections (the `DatabasePool` singleton class).

Take a look at the central `Database` class for more details. All concrete database systems need to implement this
interface.
"""
from __future__ import annotations

import abc
import atexit
import textwrap
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, Optional, Protocol

from .. import util
from .._core import TableReference
from ..qal import Attribute, AttributeType, Header

if TYPE_CHECKING:
    from .._relvar import Relvar

ResultRow = tuple
"""Simple type alias to denote a single tuple from a result set."""

ResultSet = Sequence[ResultRow]
"""Simple type alias to denote the result relation of a query."""


class Cursor(Protocol):
    """Interface for database cursors that adhere to the Python Database API specification.

    This is not a complete representation and only focuses on the parts of the specification that are important for
    relvar right now.

    This type is only intended to denote the expected return type of certain methods, the cursors themselves are
    supplied by the respective database integrations. There should be no need to implement one manually and all cursors
    should be compatible with this interface by default (since they are DB API 2.0 cursor objects).

    See PEP 249 for details (https://peps.python.org/pep-0249/)
    """

    @property
    @abc.abstractmethod
    def description(self) -> Optional[Sequence[Sequence[Any]]]:
        raise NotImplementedError

    @abc.abstractmethod
    def close(self) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def execute(self, operation: str, parameters: Optional[dict | Sequence] = None) -> Optional[Cursor]:
        raise NotImplementedError

    @abc.abstractmethod
    def fetchone(self) -> Optional[ResultRow]:
        raise NotImplementedError

    @abc.abstractmethod
    def fetchall(self) -> Optional[ResultSet]:
        raise NotImplementedError


def simplify_result_set(result_set: ResultSet) -> Any:
    """Default implementation of the result set simplification logic outlined in `Database.execute_query`.

    Parameters
    ----------
    result_set : ResultSet
        Result set to simplify: each entry in the list corresponds to one row in the result set and each component of the
        tuples corresponds to one column in the result set

    Returns
    -------
    Any
        The simplified result set: if the result set consists just of a single row, this row is unwrapped from the list. If the
        result set contains just a single column, this is unwrapped from the tuple. Both simplifications are also combined,
        such that a result set of a single row of a single column is turned into the single value.
    """
    # [(42, 24)] becomes (42, 24) and [(1,), (2,)] becomes [1, 2], [(42, 24), (4.2, 2.4)] is left as-is
    if not result_set:
        return []

    result_structure = result_set[0]
    if len(result_structure) == 1:
        result_set = [row[0] for row in result_set]

    if len(result_set) == 1:
        return result_set[0]
    return result_set


def records_from_cursor(cursor: Cursor, result_set: Optional[ResultSet]) -> list[dict[str, Any]]:
    """Turns the result set of a cursor into a list of records, using the column names from the cursor's description."""
    if not result_set:
        return []
    columns = [column[0] for column in cursor.description]
    return [dict(zip(columns, row)) for row in result_set]


class Database(abc.ABC):
    """A `Database` is relvar's logical abstraction of the physical database management system that stores the tables.

    Each `Database` instance supports the following functionality:

    - executing the statements that have been compiled from relvars
    - retrieving the headers of physical tables, most importantly their primary keys and column types
    - creating relvars for physical tables

    Parameters
    ----------
    system_name : str
        The name of the database system for which the connection is established. This is only really important to
        distinguish different instances of the interface in a convenient manner.
    debug : bool, optional
        Whether all statements should be logged to stderr before they are executed. Defaults to *False*.

    Notes
    -----
    When the `__init__` method is called, the connection to the specific database system has to be established already,
    i.e. calling any of the public methods should provide a valid result.
    """

    def __init__(self, system_name: str, *, debug: bool = False) -> None:
        self.system_name = system_name
        self._debug = debug
        self._log = util.make_logger(debug, prefix=util.timestamp)
        atexit.register(self.close)

    @property
    def debug(self) -> bool:
        """Get whether statements are logged before they are executed."""
        return self._debug

    @abc.abstractmethod
    def schema(self) -> DatabaseSchema:
        """Provides access to the underlying schema information of the database.

        Returns
        -------
        DatabaseSchema
            An object implementing the schema interface for the actual database system. This should normally be
            completely stateless.
        """
        raise NotImplementedError

    @abc.abstractmethod
    def execute_query(self, statement: str, *, raw: bool = False) -> Any:
        """Executes the given statement and returns the associated result set.

        Parameters
        ----------
        statement : str
            The statement to execute
        raw : bool, optional
            Whether the result set should be returned as-is. By default, the result set is simplified. Raw mode skips this
            step.

        Returns
        -------
        Any
            Result set of the statement. This is a list of equal-length tuples in the most general case. However, many
            statements do not provide a 2-dimensional result set (e.g. *COUNT(\\*)* queries). Therefore, this method tries to
            simplify the result set for more convenient use (if `raw` mode is disabled). See `simplify_result_set` for
            details.

        Raises
        ------
        DatabaseUserError
            If the statement is malformed or references unknown tables or attributes
        DatabaseServerError
            If the server failed to execute the statement for any other reason
        """
        raise NotImplementedError

    @abc.abstractmethod
    def fetch_records(self, statement: str) -> list[dict[str, Any]]:
        """Executes the given statement and provides each result row as a record that maps column names to values.

        Parameters
        ----------
        statement : str
            The statement to execute

        Returns
        -------
        list[dict[str, Any]]
            The records, in the order in which they were produced by the database

        Raises
        ------
        DatabaseUserError
            If the statement is malformed or references unknown tables or attributes
        DatabaseServerError
            If the server failed to execute the statement for any other reason
        """
        raise NotImplementedError

    @abc.abstractmethod
    def database_name(self) -> str:
        """Provides the name of the (physical) database that the database interface is connected to.

        Returns
        -------
        str
            The database name, e.g. *lab*
        """
        raise NotImplementedError

    def database_system_name(self) -> str:
        """Provides the name of the database management system that this interface is connected to.

        Returns
        -------
        str
            The database system name, e.g. *MySQL*
        """
        return self.system_name

    @abc.abstractmethod
    def cursor(self) -> Cursor:
        """Provides a cursor to execute queries and iterate over result sets manually.

        Returns
        -------
        Cursor
            A cursor compatible with the Python DB API specification 2.0 (PEP 249). The specific cursor type depends on
            the concrete database implementation however.
        """
        raise NotImplementedError

    @abc.abstractmethod
    def close(self) -> None:
        """Shuts down all currently open connections to the database."""
        raise NotImplementedError

    def relvar(self, name: str | TableReference, *, schema: Optional[str] = None) -> Relvar:
        """Creates a relvar for a physical table of this database.

        Parameters
        ----------
        name : str | TableReference
            The table. Plain names may be qualified by their schema, e.g. ``lab.mouse``.
        schema : Optional[str], optional
            The schema of the table. Takes precedence over the qualification in `name`.

        Returns
        -------
        Relvar
            A relvar that provides all tuples of the table

        See Also
        --------
        Relvar.table
        """
        from .._relvar import Relvar
        return Relvar.table(self, name, schema=schema)

    def _log_statement(self, statement: str) -> None:
        self._log(f"[{self.system_name}] {statement}")

    def __repr__(self) -> str:
        return str(self)

    def __str__(self) -> str:
        return f"{self.database_name()} @ {self.database_system_name()}"


class DatabaseSchema(abc.ABC):
    """This interface provides access to the headers of the physical tables of a database.

    The default implementation reads the *information_schema* of the database. Since reading the metadata requires a
    round trip to the server and headers are immutable, all headers are cached by the schema instance.

    Parameters
    ----------
    db : Database
        The database for which the schema information should be read. This is required to obtain cursors that request
        the desired data.
    prep_placeholder : str, optional
        The placeholder that is used for prepared statements. Some systems use `?` as a placeholder, while others use *%s*
        (the default). This needs to be specified to ensure that the information_schema queries are correctly formatted.
    """

    def __init__(self, db: Database, *, prep_placeholder: str = "%s") -> None:
        self._db = db
        self._prep_placeholder = prep_placeholder
        self._headers: dict[TableReference, Header] = {}

    def table_header(self, table: TableReference | str) -> Header:
        """Provides the header of a physical table.

        Parameters
        ----------
        table : TableReference | str
            The table. If the table does not have an explicit schema, the current database of the connection is used.

        Returns
        -------
        Header
            The attributes of the table, in the order in which they were defined

        Raises
        ------
        ValueError
            If the table does not exist
        """
        table = TableReference.parse(table) if isinstance(table, str) else table
        if table not in self._headers:
            self._headers[table] = self._fetch_header(table)
        return self._headers[table]

    def reset(self) -> None:
        """Removes all cached headers, e.g. after the table definitions have been changed."""
        self._headers.clear()

    def _fetch_header(self, table: TableReference) -> Header:
        placeholder = self._prep_placeholder
        query_template = textwrap.dedent(f"""
            SELECT column_name, column_type, column_key = 'PRI', is_nullable = 'YES', column_default,
                column_comment, extra
            FROM information_schema.columns
            WHERE table_schema = COALESCE({placeholder}, DATABASE()) AND table_name = {placeholder}
            ORDER BY ordinal_position
        """)
        cursor = self._db.cursor()
        cursor.execute(query_template, (table.schema or None, table.full_name))
        result_set = cursor.fetchall()
        if not result_set:
            raise ValueError(f"Table {table} does not exist")

        attributes = []
        for name, sql_type, is_key, nullable, default, comment, extra in result_set:
            attributes.append(Attribute(name=name, type=AttributeType.from_sql_type(sql_type), sql_type=sql_type,
                                        is_key=bool(is_key), nullable=bool(nullable),
                                        default=str(default) if default is not None else None,
                                        comment=comment or "", auto_increment="auto_increment" in (extra or "").lower()))
        return Header(attributes)

    def __repr__(self) -> str:
        return str(self)

    def __str__(self) -> str:
        return f"Database schema of {self._db}"


class DatabasePool:
    """The database pool allows different parts of the code base to easily obtain access to a database.

    This is achieved by maintaining one global pool of database connections which is shared by the entire system.
    New database instances can be registered and retrieved via unique keys. As long as there is just a single database
    instance, it can be accessed via the `current_database` method.

    The database pool implementation follows the singleton pattern. Use the static `get_instance` method to retrieve
    the database pool instance. All other functionality is provided based on that pool instance.

    References
    ----------

    .. Singleton pattern: https://en.wikipedia.org/wiki/Singleton_pattern
    """

    @staticmethod
    def get_instance() -> DatabasePool:
        """Provides access to the singleton database pool, creating a new pool instance if necessary.

        Returns
        -------
        DatabasePool
            The current pool instance
        """
        global _DB_POOL
        if _DB_POOL is None:
            _DB_POOL = DatabasePool()
        return _DB_POOL

    def __init__(self) -> None:
        self._pool: dict[str, Database] = {}

    def current_database(self) -> Database:
        """Provides the database that is currently stored in the pool, provided there is just one.

        Returns
        -------
        Database
            The only database in the pool

        Raises
        ------
        ValueError
            If there are multiple database instances registered in the pool
        """
        return util.dicts.value(self._pool)

    def register_database(self, key: str, db: Database) -> None:
        """Stores a new database in the pool.

        This method is typically called by the connect methods of the respective database system implementations.

        Parameters
        ----------
        key : str
            A unique identifier under which the database can be retrieved
        db : Database
            The database to store
        """
        self._pool[key] = db

    def retrieve_database(self, key: str) -> Database:
        """Provides the database that is registered under a specific key.

        Raises
        ------
        KeyError
            If no database was registered under the given key.
        """
        return self._pool[key]

    def empty(self) -> bool:
        """Checks, whether the database pool is currently emtpy (i.e. no database are registered)."""
        return len(self._pool) == 0

    def clear(self) -> None:
        """Removes all currently registered databases from the pool."""
        self._pool.clear()

    def __contains__(self, key: str) -> bool:
        return key in self._pool

    def __repr__(self) -> str:
        return str(self)

    def __str__(self) -> str:
        return f"DatabasePool {self._pool}"


_DB_POOL: Optional[DatabasePool] = None


def current_database() -> Database:
    """Provides the current database from the `DatabasePool`.

    Returns
    -------
    Database
        The current database instance. If there is not exactly one database in the pool, a `ValueError` is raised.

    See Also
    --------
    DatabasePool.current_database
    """
    return DatabasePool.get_instance().current_database()


class DatabaseServerError(RuntimeError):
    """Indicates an error caused by the database server occured while executing a database operation.

    The error was **not** due to a mistake in the user input (such as an SQL syntax error or access privilege
    violation), but an implementation issue instead (such as a lost connection).

    Parameters
    ----------
    message : str, optional
        A textual description of the error, e.g. *lost connection*. Can be left empty by default.
    context : Optional[object], optional
        Additional context information for when the error occurred, e.g. the driver's original exception. Mainly
        intended for debugging purposes.
    """

    def __init__(self, message: str = "", context: Optional[object] = None) -> None:
        super().__init__(message)
        self.ctx = context


class DatabaseUserError(RuntimeError):
    """Indicates that a database operation failed due to an error on the user's end.

    The error could be due to an SQL syntax error, an unknown attribute in a raw SQL restriction, etc.

    Parameters
    ----------
    message : str, optional
        A textual description of the error, e.g. *no such table*. Can be left empty by default.
    context : Optional[object], optional
        Additional context information for when the error occurred, e.g. the driver's original exception. Mainly
        intended for debugging purposes.
    """

    def __init__(self, message: str = "", context: Optional[object] = None) -> None:
        super().__init__(message)
        self.ctx = context


def format_error(statement: str, error: Exception) -> str:
    """Builds the message of a transport error, including the failed statement."""
    return "\n".join([f"At {util.timestamp()}", "For query:", statement, "Message:", str(error)])
