"""
Convenience wrappers over :meth:`Engine.query` that pick the flavor for you.
"""
from __future__ import annotations

import re
import typing as t

from dbbatch.batch import Bindings
from dbbatch.classify import is_insert, is_select
from dbbatch.engine import Engine
from dbbatch.errors import ValidationError
from dbbatch.flavors import All, Check, Column, Count, Pair, Row, Unique, Value
from dbbatch.utils import split_statements

_COUNT_RE = re.compile(r"\A\s*SELECT\s+COUNT\b", re.IGNORECASE)


class Select:
    """Read helpers; every query must be SELECT‑like."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def _run(self, query: str, bindings: Bindings | None, flavor: t.Any) -> t.Any:
        is_select(query)
        return self.engine.query(query, bindings, flavor)

    def all(self, query: str, bindings: Bindings | None = None, *, dictionary: bool = True) -> list:
        return self._run(query, bindings, All(dictionary=dictionary))

    def row(self, query: str, bindings: Bindings | None = None, *, dictionary: bool = True):
        """First row only; ``LIMIT 0,1`` is added when the query has no LIMIT."""
        return self._run(query, bindings, Row(dictionary=dictionary))

    def column(self, query: str, bindings: Bindings | None = None, column: int = 0) -> list:
        return self._run(query, bindings, Column(column))

    def value(self, query: str, bindings: Bindings | None = None, column: int = 0) -> t.Any:
        return self._run(query, bindings, Value(column))

    def pair(self, query: str, bindings: Bindings | None = None) -> dict:
        return self._run(query, bindings, Pair())

    def unique(self, query: str, bindings: Bindings | None = None) -> dict:
        return self._run(query, bindings, Unique())

    def count(self, query: str, bindings: Bindings | None = None) -> int:
        if not _COUNT_RE.match(query):
            raise ValidationError("Query is not SELECT COUNT.")
        return self.engine.query(query, bindings, Count())

    def check(self, query: str, bindings: Bindings | None = None) -> bool:
        """True when the query matches at least one row."""
        return self._run(query, bindings, Check())


class Modify:
    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def insert_ai(self, query: str, bindings: Bindings | None = None) -> str | bool:
        """
        Run one ``INSERT`` into an AUTO_INCREMENT table and return the new id,
        or *False* when the driver cannot report it.
        """
        is_insert(query)
        if len(split_statements(query)) > 1:
            raise ValidationError("String provided seems to contain multiple queries.")
        return self.engine.query(query, bindings, "increment")
