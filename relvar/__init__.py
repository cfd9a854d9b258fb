"""relvar - A relational algebra layer for MySQL databases.

relvar lets callers build relational variables (*relvars*) by composing operators on physical tables: restriction by
SQL conditions, tuple sets or other relvars, projection with renamed and computed attributes, natural joins,
aggregations, as well as union and negation of restrictions. Each relational expression is compiled into a single
*SELECT* statement, which is executed on the database only when tuples are actually fetched.

A typical session looks like this:

>>> import relvar
>>> from relvar.db import mysql
>>> lab = mysql.connect(config_file=".mysql_connection.config")
>>> mouse, session = lab.relvar("lab.mouse"), lab.relvar("lab.session")
>>> busy_mice = mouse.aggr(session, "count(*)->n_sessions") & "n_sessions > 10"
>>> busy_mice.fetch("*", "ORDER BY n_sessions DESC")

On a high-level, the relvar project is structured as follows:

- this module contains the `Relvar`, which is the main entry point to build and fetch relational expressions
- the `qal` package provides the query abstraction: the headers of relations, the operator tree and the compiler that
  turns the tree into SQL
- the `db` package contains all parts of relvar that concern database interaction, i.e. executing statements and
  reading the headers of physical tables
- the `util` package contains helpers that do not belong to specific parts of relvar and are more general in nature
"""
from . import db, qal, util
from ._core import TableReference
from ._relvar import Relvar, split_limit_clause
from .db import Database
from .qal import NOT, Header, RelvarError

__version__ = "0.1.0"

__all__ = [
    "db", "qal", "util",
    "TableReference",
    "Relvar", "split_limit_clause",
    "Database",
    "NOT", "Header", "RelvarError",
]
