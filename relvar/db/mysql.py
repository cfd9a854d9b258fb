"""Contains the MySQL implementation of the Database interface.

Connections are established via *mysql-connector-python*. The easiest way to connect is the `connect` function, which
reads the connection parameters from a config file. Such a file looks like this:

.. code-block:: ini

    [MYSQL]
    User = lab_user
    Database = lab
    Password = secret
    Host = db.example.org

Only the *User* and *Database* keys are required, all other keys correspond to the optional fields of the
`MysqlConnectionArguments`.

By default, the session uses the *TRADITIONAL* SQL mode. In contrast to the *ANSI* mode, this retains the MySQL
interpretation of backticks and backslash escapes which the compiled statements depend on. It also does not enable
*ONLY_FULL_GROUP_BY*, which would reject the select lists of aggregations.
"""
from __future__ import annotations

import configparser
import dataclasses
import os
from typing import Any, Optional

import mysql.connector

from . import _db as db
from .. import util


@dataclasses.dataclass(frozen=True)
class MysqlConnectionArguments:
    """Captures all relevant parameters that customize the way the connection to a MySQL instance is establised.

    The only required parameters are the user that should connect to the database and the name of the database to
    connect to.
    See [1]_ for the different parameters' meaning.

    References
    ----------
    .. [1] https://dev.mysql.com/doc/connector-python/en/connector-python-connectargs.html
    """
    user: str
    database: str
    password: str = ""
    host: str = "127.0.0.1"
    port: int = 3306
    use_unicode: bool = True
    charset: str = "utf8mb4"
    autocommit: bool = True
    sql_mode: str = "TRADITIONAL"

    def parameters(self) -> dict[str, str | int | bool]:
        """Provides all arguments in one neat ``dict``.

        Returns
        -------
        dict[str, str | int | bool]
            A mapping from parameter name to parameter value.
        """
        return dataclasses.asdict(self)


class MysqlInterface(db.Database):
    """MySQL-specific implementation of the general `Database` interface."""

    def __init__(self, connection_args: MysqlConnectionArguments, system_name: str = "MySQL", *,
                 debug: bool = False) -> None:
        """Generates a new database interface and establishes a connection to the specified database server.

        Parameters
        ----------
        connection_args : MysqlConnectionArguments
            Configuration and required information to establish a connection to some MySQL instance.
        system_name : str, optional
            The name of the current database. Typically, this can be used to query the `DatabasePool` for this very
            instance. Defaults to ``"MySQL"``.
        debug : bool, optional
            Whether all statements should be logged before they are executed. Defaults to ``False``.
        """
        self.connection_args = connection_args
        self._cnx = mysql.connector.connect(**connection_args.parameters())
        self._cur = self._cnx.cursor(buffered=True)

        self._db_schema = MysqlSchemaInterface(self)
        super().__init__(system_name, debug=debug)

    def schema(self) -> MysqlSchemaInterface:
        return self._db_schema

    def execute_query(self, statement: str, *, raw: bool = False) -> Any:
        query_result = self._execute(statement)
        return query_result if raw else db.simplify_result_set(query_result)

    def fetch_records(self, statement: str) -> list[dict[str, Any]]:
        query_result = self._execute(statement)
        return db.records_from_cursor(self._cur, query_result)

    def database_name(self) -> str:
        self._cur.execute("SELECT DATABASE();")
        db_name = self._cur.fetchone()[0]
        return db_name

    def server_mode(self) -> str:
        """Provides the current settings in the ``sql_mode`` MySQL variable.

        Returns
        -------
        str
            The ``sql_mode`` value, exactly as it is returned by the server. Typically, this is a list of
            comma-separated features.
        """
        self._cur.execute("SELECT @@session.sql_mode")
        return self._cur.fetchone()[0]

    def reset_connection(self) -> None:
        """Obtains a new cursor on a reset session. The former cursor is no longer valid afterwards."""
        self._cur.close()
        self._cnx.cmd_reset_connection()
        self._cur = self._cnx.cursor(buffered=True)

    def cursor(self) -> db.Cursor:
        return self._cur

    def close(self) -> None:
        self._cur.close()
        self._cnx.close()

    def _execute(self, statement: str) -> db.ResultSet:
        self._log_statement(statement)
        try:
            self._cur.execute(statement)
            return self._cur.fetchall()
        except (mysql.connector.ProgrammingError, mysql.connector.DataError, mysql.connector.IntegrityError,
                mysql.connector.NotSupportedError) as e:
            raise db.DatabaseUserError(db.format_error(statement, e), e)
        except mysql.connector.Error as e:
            raise db.DatabaseServerError(db.format_error(statement, e), e)


class MysqlSchemaInterface(db.DatabaseSchema):
    def __init__(self, mysql_db: MysqlInterface) -> None:
        super().__init__(mysql_db)


def _parse_mysql_connection(config_file: str) -> MysqlConnectionArguments:
    config = configparser.ConfigParser()
    config.read(config_file)
    if "MYSQL" not in config:
        raise ValueError("Malformed MySQL config file: no [MYSQL] section found.")
    mysql_config = config["MYSQL"]

    if "User" not in mysql_config or "Database" not in mysql_config:
        raise ValueError("Malformed MySQL config file: "
                         "'User' and 'Database' keys are required in the [MYSQL] section.")
    user = mysql_config["User"]
    database = mysql_config["Database"]

    optional_settings: dict[str, str | int | bool] = {}
    for key in ["Password", "Host", "Charset", "SqlMode"]:
        if key in mysql_config:
            optional_settings[util.camel_case2snake_case(key)] = mysql_config[key]
    if "Port" in mysql_config:
        optional_settings["port"] = mysql_config.getint("Port")
    for key in ["UseUnicode", "Autocommit"]:
        if key in mysql_config:
            optional_settings[util.camel_case2snake_case(key)] = mysql_config.getboolean(key)
    return MysqlConnectionArguments(user, database, **optional_settings)


def connect(*, name: str = "mysql", connection_args: Optional[MysqlConnectionArguments] = None,
            config_file: str = ".mysql_connection.config", debug: bool = False,
            private: bool = False) -> MysqlInterface:
    """Convenience function to seamlessly connect to a MySQL instance.

    The connection parameters are either supplied directly via `connection_args`, or read from the `config_file`. See the
    module documentation for the structure of the config file.

    Parameters
    ----------
    name : str, optional
        A name to identify the current connection if multiple connections to different MySQL instances should be
        maintained. This is used to register the instance on the `DatabasePool`. Defaults to *mysql*.
    connection_args : Optional[MysqlConnectionArguments], optional
        The connection parameters. If given, the config file is ignored.
    config_file : str, optional
        A file containing the connection parameters. Defaults to *.mysql_connection.config* in the current directory.
    debug : bool, optional
        Whether all statements should be logged before they are executed. Defaults to *False*.
    private : bool, optional
        If enabled, the connection is not registered on the `DatabasePool`. Defaults to *False*.

    Returns
    -------
    MysqlInterface
        The MySQL database object

    Raises
    ------
    ValueError
        If neither connection arguments nor an existing config file are given, or if the config file is malformed
    """
    db_pool = db.DatabasePool.get_instance()
    if config_file and not connection_args:
        if not os.path.exists(config_file):
            raise ValueError("Config file was given, but does not exist: " + config_file)
        connection_args = _parse_mysql_connection(config_file)
    elif not connection_args:
        raise ValueError("Connection arguments or config file are required to connect to MySQL")

    mysql_db = MysqlInterface(connection_args, system_name=name, debug=debug)
    if not private:
        db_pool.register_database(name, mysql_db)
    return mysql_db
