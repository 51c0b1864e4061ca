from __future__ import annotations

import logging
import sys
import typing as t
from contextlib import contextmanager

import mysql.connector

from dbbatch.config import Environment

logger = logging.getLogger(__name__)

_DIALECTS = {"mysql": "mysql", "pymysql": "mysql", "MySQLdb": "mysql", "mariadb": "mysql",
             "sqlite3": "sqlite", "psycopg": "postgresql", "psycopg2": "postgresql"}


def _driver_module(raw: t.Any) -> t.Any:
    """Find the DB‑API module (the one declaring ``paramstyle``) behind *raw*."""
    parts = type(raw).__module__.split(".")
    for i in range(len(parts), 0, -1):
        module = sys.modules.get(".".join(parts[:i]))
        if module is not None and hasattr(module, "paramstyle"):
            return module
    return None


class Statement:
    """
    One prepared statement: a cursor plus the SQL it will run.  Mirrors what
    the engine needs from a driver statement and nothing more.
    """

    def __init__(self, handle: ConnectionHandle, cursor: t.Any, sql: str) -> None:
        self.handle = handle
        self.cursor = cursor
        self.sql = sql
        self.params: t.Any = None

    def execute(self, params: t.Any = None) -> None:
        self.params = params
        if params:
            self.cursor.execute(self.sql, params)
        else:
            self.cursor.execute(self.sql)
        self.handle.last_row_id = getattr(self.cursor, "lastrowid", None)

    @property
    def row_count(self) -> int:
        count = self.cursor.rowcount
        return count if count and count > 0 else 0

    @property
    def columns(self) -> list[str]:
        return [col[0] for col in self.cursor.description or ()]

    def fetch_rows(self, dictionary: bool = True) -> list:
        if not self.cursor.description:
            return []
        rows = self.cursor.fetchall()
        if dictionary:
            names = self.columns
            return [dict(zip(names, row)) for row in rows]
        return [tuple(row) for row in rows]

    def fetch_column(self, index: int = 0) -> list:
        rows = self.fetch_rows(dictionary=False)
        if rows and not 0 <= index < len(rows[0]):
            raise IndexError(f"Column #{index} is not in the result set")
        return [row[index] for row in rows]

    def close(self) -> None:
        self.cursor.close()

    def dump(self) -> str:
        """Text dump of the statement and its parameters, for debug output."""
        lines = [f"SQL: [{len(self.sql)}] {self.sql}"]
        params = self.params or ()
        items = params.items() if isinstance(params, dict) else enumerate(params, 1)
        lines.append(f"Params:  {len(params)}")
        for key, value in items:
            lines.append(f"Key: {key}  value={value!r}  type={type(value).__name__}")
        lines.append(f"Rows: {self.cursor.rowcount}")
        return "\n".join(lines)


class ConnectionHandle:
    """
    Thin adapter over a DB‑API connection giving the engine one vocabulary
    for prepare / begin / commit / rollback / last insert id.  The handle
    never closes the connection it wraps.
    """

    def __init__(
        self, raw: t.Any, *, dialect: str | None = None, paramstyle: str | None = None
    ) -> None:
        self.raw = raw
        module = _driver_module(raw)
        module_name = module.__name__ if module is not None else type(raw).__module__
        self.dialect: str = dialect or _DIALECTS.get(module_name.split(".")[0], module_name)
        self.paramstyle: str = paramstyle or getattr(module, "paramstyle", "qmark")
        self.not_supported: type[Exception] = getattr(
            module, "NotSupportedError", mysql.connector.NotSupportedError
        )
        # Connector/Python refuses a new statement while an unbuffered result is open
        self.buffered: bool = module_name == "mysql.connector"
        self.last_row_id: t.Any = None
        self._began = False
        self._time_limit: int | None = None

    # --------------------------------------------------------------------- #
    # Statements
    # --------------------------------------------------------------------- #
    def prepare(self, sql: str) -> Statement:
        cursor = self.raw.cursor(buffered=True) if self.buffered else self.raw.cursor()
        return Statement(self, cursor, sql)

    def last_insert_id(self) -> str:
        if self.last_row_id is None:
            raise self.not_supported(
                f"{self.dialect} driver did not report a last insert id"
            )
        return str(self.last_row_id)

    def set_time_limit(self, seconds: int) -> None:
        """Pass the run‑time hint on to the server, once per distinct value."""
        if seconds == self._time_limit:
            return
        self._time_limit = seconds
        if self.dialect != "mysql":
            return
        server = str(getattr(self.raw, "get_server_info", lambda: "")())
        if "mariadb" in server.lower():
            stmt = f"SET SESSION max_statement_time = {int(seconds)}"
        else:
            stmt = f"SET SESSION max_execution_time = {int(seconds) * 1000}"
        self._run(stmt)

    # --------------------------------------------------------------------- #
    # Transactions
    # --------------------------------------------------------------------- #
    @property
    def in_transaction(self) -> bool:
        state = getattr(self.raw, "in_transaction", None)
        return self._began if state is None else bool(state)

    def begin(self) -> None:
        if hasattr(self.raw, "start_transaction"):
            self.raw.start_transaction()
        elif hasattr(self.raw, "begin"):
            self.raw.begin()
        else:
            self._run("BEGIN")
        self._began = True

    def commit(self) -> None:
        self.raw.commit()
        self._began = False

    def rollback(self) -> None:
        self.raw.rollback()
        self._began = False

    def _run(self, stmt: str) -> None:
        cursor = self.raw.cursor()
        try:
            cursor.execute(stmt)
        finally:
            cursor.close()


def as_handle(conn: t.Any) -> ConnectionHandle:
    return conn if isinstance(conn, ConnectionHandle) else ConnectionHandle(conn)


class MySQLProvider:
    """Opens Connector/Python connections for an :class:`Environment`."""

    def __init__(self, env: Environment) -> None:
        self.env = env

    def acquire(self) -> ConnectionHandle:
        logger.debug("Connecting to %s:%s/%s", self.env.host, self.env.port, self.env.database)
        return ConnectionHandle(mysql.connector.connect(**self.env.dsn(), autocommit=True))


@contextmanager
def connection(env: Environment) -> t.Iterator[ConnectionHandle]:
    """
    Context‑manager that yields a :class:`ConnectionHandle` **already inside
    the target database** and closes the connection on the way out.

    The connection runs in autocommit mode; the engine opens explicit
    transactions for transactional batches.
    """
    handle = MySQLProvider(env).acquire()
    try:
        yield handle
    finally:
        handle.raw.close()
