"""
Return flavors.

A flavor decides two things about a :meth:`Engine.query` call: which batch
shapes it is valid for, and how the finished run is turned into the value
handed back to the caller.  Each variant carries only the fetch parameters
it uses, e.g. :class:`Column` knows which column to read while
:class:`Affected` knows nothing at all.
"""
from __future__ import annotations

import dataclasses
import decimal
import re
import typing as t

from dbbatch.errors import ValidationError

if t.TYPE_CHECKING:
    from dbbatch.driver import Statement
    from dbbatch.state import ResultEnvelope

_LEADING_INT_RE = re.compile(r"\s*[+-]?\d+")


def _loose_int(value: t.Any) -> int:
    """Integer from a driver value; text without leading digits counts as 0."""
    if isinstance(value, (int, float, decimal.Decimal)):
        return int(value)
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8", "replace")
    match = _LEADING_INT_RE.match(str(value))
    return int(match.group()) if match else 0


@dataclasses.dataclass(frozen=True)
class Flavor:
    name: t.ClassVar[str] = ""

    def accepts(self, size: int, select: bool, insert: bool) -> bool:
        if size > 1:
            return False
        return select

    def fetch(self, statement: Statement) -> t.Any:
        """Pull the result set of a single select off *statement*."""
        return statement.fetch_rows(dictionary=True)

    def shape(self, envelope: ResultEnvelope) -> t.Any:
        raise NotImplementedError

    @staticmethod
    def parse(value: Flavor | str | None) -> Flavor:
        """Turn a flavor name (``"row"``, ``"affected"`` …) into a variant."""
        if value is None:
            return Bool()
        if isinstance(value, Flavor):
            return value
        try:
            return FLAVORS[value.strip().lower()]()
        except (KeyError, AttributeError):
            raise ValidationError(
                f"Return flavor `{value}` provided to `query()` function but it is not supported."
            ) from None

    def __str__(self) -> str:
        return self.name


# ------------------------------------------------------------------------- #
# Flavors valid for any batch
# ------------------------------------------------------------------------- #
@dataclasses.dataclass(frozen=True)
class Bool(Flavor):
    name: t.ClassVar[str] = "bool"

    def accepts(self, size: int, select: bool, insert: bool) -> bool:
        return True

    def shape(self, envelope: ResultEnvelope) -> bool:
        return True


@dataclasses.dataclass(frozen=True)
class Affected(Flavor):
    name: t.ClassVar[str] = "affected"

    def accepts(self, size: int, select: bool, insert: bool) -> bool:
        return True

    def shape(self, envelope: ResultEnvelope) -> int:
        return envelope.affected


@dataclasses.dataclass(frozen=True)
class Increment(Flavor):
    name: t.ClassVar[str] = "increment"

    def accepts(self, size: int, select: bool, insert: bool) -> bool:
        return size == 1 and not select and insert

    def shape(self, envelope: ResultEnvelope) -> str | bool | None:
        return envelope.insert_id


# ------------------------------------------------------------------------- #
# Flavors that need one select-like statement
# ------------------------------------------------------------------------- #
@dataclasses.dataclass(frozen=True)
class All(Flavor):
    name: t.ClassVar[str] = "all"
    dictionary: bool = True

    def fetch(self, statement: Statement) -> list:
        return statement.fetch_rows(dictionary=self.dictionary)

    def shape(self, envelope: ResultEnvelope) -> list:
        return envelope.result or []


@dataclasses.dataclass(frozen=True)
class Row(Flavor):
    name: t.ClassVar[str] = "row"
    dictionary: bool = True

    def fetch(self, statement: Statement) -> list:
        return statement.fetch_rows(dictionary=self.dictionary)

    def shape(self, envelope: ResultEnvelope) -> dict | tuple:
        if envelope.result:
            return envelope.result[0]
        return {} if self.dictionary else ()


@dataclasses.dataclass(frozen=True)
class Column(Flavor):
    name: t.ClassVar[str] = "column"
    index: int = 0

    def fetch(self, statement: Statement) -> list:
        return statement.fetch_column(self.index)

    def shape(self, envelope: ResultEnvelope) -> list:
        return envelope.result or []


@dataclasses.dataclass(frozen=True)
class Value(Column):
    name: t.ClassVar[str] = "value"

    def shape(self, envelope: ResultEnvelope) -> t.Any:
        return envelope.result[0] if envelope.result else None


@dataclasses.dataclass(frozen=True)
class Count(Column):
    name: t.ClassVar[str] = "count"

    def shape(self, envelope: ResultEnvelope) -> int:
        if not envelope.result or envelope.result[0] is None:
            return 0
        return _loose_int(envelope.result[0])


@dataclasses.dataclass(frozen=True)
class Pair(Flavor):
    """``{first column: second column}`` for every row."""

    name: t.ClassVar[str] = "pair"

    def fetch(self, statement: Statement) -> dict:
        rows = statement.fetch_rows(dictionary=False)
        if rows and len(rows[0]) != 2:
            raise ValidationError(
                "Return flavor `pair` requires a result set with exactly 2 columns."
            )
        return {row[0]: row[1] for row in rows}

    def shape(self, envelope: ResultEnvelope) -> dict:
        return envelope.result or {}


@dataclasses.dataclass(frozen=True)
class Unique(Flavor):
    """Rows keyed by their first column; later duplicates replace earlier ones."""

    name: t.ClassVar[str] = "unique"

    def fetch(self, statement: Statement) -> dict:
        result: dict = {}
        for row in statement.fetch_rows(dictionary=True):
            key, *_ = row.values()
            result[key] = dict(list(row.items())[1:])
        return result

    def shape(self, envelope: ResultEnvelope) -> dict:
        return envelope.result or {}


@dataclasses.dataclass(frozen=True)
class Check(Flavor):
    name: t.ClassVar[str] = "check"
    dictionary: bool = True

    def fetch(self, statement: Statement) -> list:
        return statement.fetch_rows(dictionary=self.dictionary)

    def shape(self, envelope: ResultEnvelope) -> bool:
        return bool(envelope.result)


FLAVORS: dict[str, type[Flavor]] = {
    f.name: f
    for f in (Bool, Increment, Affected, All, Column, Row, Value, Pair, Unique, Count, Check)
}
