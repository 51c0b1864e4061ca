"""Shared test fixtures."""

import sqlite3

import pytest

from dbbatch.driver import ConnectionHandle
from dbbatch.engine import Engine

SCHEMA = """
CREATE TABLE items (
    id    INTEGER PRIMARY KEY AUTOINCREMENT,
    name  TEXT NOT NULL,
    grp   INTEGER NOT NULL,
    qty   INTEGER NOT NULL DEFAULT 0
);
INSERT INTO items (name, grp, qty) VALUES
    ('apple', 1, 5), ('apricot', 1, 3),
    ('banana', 2, 7), ('blueberry', 2, 0),
    ('cherry', 3, 2), ('coconut', 3, 9);
"""


@pytest.fixture
def db():
    """In-memory SQLite database in autocommit mode with a seeded table."""
    conn = sqlite3.connect(":memory:", isolation_level=None)
    conn.executescript(SCHEMA)
    yield conn
    conn.close()


@pytest.fixture
def engine(db):
    return Engine(db, sleep=1)


@pytest.fixture
def sleeps(monkeypatch):
    """Capture retry sleeps instead of blocking."""
    calls = []
    monkeypatch.setattr("dbbatch.engine.time.sleep", calls.append)
    return calls


class DeadlockError(Exception):
    """Looks like Connector/Python's error for InnoDB deadlocks."""

    errno = 1213
    sqlstate = "40001"

    def __init__(self, msg="Deadlock found when trying to get lock; try restarting transaction"):
        super().__init__(msg)


class FakeStatement:
    def __init__(self, handle, sql):
        self.handle = handle
        self.sql = sql
        self.params = None
        self.closed = False

    def execute(self, params=None):
        self.params = params
        self.handle.executed.append(self.sql)
        failure = self.handle.failures.get(self.sql)
        if failure:
            exc = failure.pop(0)
            if exc is not None:
                raise exc
        self.handle.last_row_id = self.handle.next_id

    @property
    def row_count(self):
        return self.handle.rows_per_statement

    def fetch_rows(self, dictionary=True):
        rows = self.handle.rows
        return [dict(r) for r in rows] if dictionary else [tuple(r.values()) for r in rows]

    def fetch_column(self, index=0):
        return [list(r.values())[index] for r in self.handle.rows]

    def close(self):
        self.closed = True
        self.handle.closed += 1

    def dump(self):
        return f"SQL: {self.sql} params={self.params}"


class FakeHandle(ConnectionHandle):
    """
    Scripted connection handle.  ``failures`` maps SQL text to a list of
    exceptions (or None for success) consumed one per execution.
    """

    def __init__(self, *, last_id_supported=True):
        self.raw = None
        self.dialect = "fake"
        self.paramstyle = "qmark"
        self.not_supported = sqlite3.NotSupportedError
        self.buffered = False
        self.last_row_id = None
        self._began = False
        self._time_limit = None
        self.calls = []
        self.executed = []
        self.failures = {}
        self.rows = []
        self.rows_per_statement = 1
        self.next_id = 42
        self.closed = 0
        self.last_id_supported = last_id_supported

    def prepare(self, sql):
        self.calls.append(("prepare", sql))
        return FakeStatement(self, sql)

    def begin(self):
        self.calls.append(("begin",))
        self._began = True

    def commit(self):
        self.calls.append(("commit",))
        self._began = False

    def rollback(self):
        self.calls.append(("rollback",))
        self._began = False

    def set_time_limit(self, seconds):
        self.calls.append(("time_limit", seconds))

    def last_insert_id(self):
        if not self.last_id_supported:
            raise self.not_supported("no lastInsertId")
        return super().last_insert_id()


@pytest.fixture
def fake():
    return FakeHandle()
