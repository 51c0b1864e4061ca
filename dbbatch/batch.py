"""
Turn whatever the caller handed to :meth:`Engine.query` into a canonical
:class:`Batch`.

Accepted shapes::

    "INSERT …; UPDATE …"                       # split on ';'
    ["INSERT …", "UPDATE …"]
    [("INSERT … :id", {":id": 1}), …]
    [{"query": "INSERT … :id", "bindings": {":id": 1}}, …]
"""
from __future__ import annotations

import dataclasses
import logging
import types
import typing as t

from dbbatch.classify import add_row_limit, is_insert, is_select
from dbbatch.errors import ValidationError
from dbbatch.flavors import Flavor, Row
from dbbatch.utils import is_comment, split_statements

logger = logging.getLogger(__name__)

Bindings = t.Mapping[t.Any, t.Any]
RawQueries = t.Union[str, t.Sequence[t.Any]]


@dataclasses.dataclass(frozen=True)
class StatementUnit:
    text: str
    bindings: Bindings = dataclasses.field(default_factory=dict)

    def __post_init__(self) -> None:
        # read-only view so a built unit cannot drift between retries
        object.__setattr__(self, "bindings", types.MappingProxyType(dict(self.bindings)))


@dataclasses.dataclass
class Batch:
    """Statements in execution order plus how they are to be run."""

    units: list[StatementUnit]
    flavor: Flavor
    transaction: bool = True
    single_select: bool = False

    def __len__(self) -> int:
        return len(self.units)


def _unit(index: int, item: t.Any, bindings: Bindings) -> StatementUnit:
    local: t.Any = {}
    if isinstance(item, t.Mapping):
        text = item.get("query", item.get(0))
        local = item.get("bindings", item.get(1)) or {}
    elif isinstance(item, (list, tuple)):
        text = item[0] if item else None
        local = (item[1] if len(item) > 1 else None) or {}
    else:
        text = item

    if not isinstance(text, str) or not text.strip():
        raise ValidationError(f"Query #{index} is not a valid string.")
    if not isinstance(local, t.Mapping):
        raise ValidationError(f"Bindings for query #{index} must be a mapping.")

    merged = dict(bindings)
    merged.update(local)
    return StatementUnit(text, merged)


def build_batch(
    queries: RawQueries,
    bindings: Bindings | None = None,
    flavor: Flavor | str | None = None,
    *,
    transaction: bool = True,
) -> Batch:
    """
    Normalize *queries*, merge *bindings* into every statement and check that
    *flavor* makes sense for the result.  Raises :class:`ValidationError`
    before anything touches the database.
    """
    flavor = Flavor.parse(flavor)
    bindings = bindings or {}
    if not isinstance(bindings, t.Mapping):
        raise ValidationError("Global bindings must be a mapping.")

    if isinstance(queries, str):
        if not queries.strip():
            raise ValidationError("Query is an empty string.")
        queries = split_statements(queries)
    elif not isinstance(queries, t.Sequence):
        raise ValidationError(
            f"Queries must be a string or a sequence, got {type(queries).__name__}."
        )

    units = [_unit(i, item, bindings) for i, item in enumerate(queries)]

    # A batch cannot hand back rows from several statements, so SELECTs and
    # bare comments are skipped when there is more than one statement.
    if len(units) > 1:
        kept = []
        for unit in units:
            if is_comment(unit.text) or is_select(unit.text, strict=False):
                logger.debug("Skipping %r in multi-statement batch", unit.text)
                continue
            kept.append(unit)
        units = kept

    if not units:
        raise ValidationError(
            "No queries were provided to `query()` function or all of them were "
            "identified as SELECT-like statements."
        )

    return _check_flavor(Batch(units, flavor, transaction=transaction))


def _check_flavor(batch: Batch) -> Batch:
    flavor = batch.flavor
    if len(batch) > 1:
        if not flavor.accepts(len(batch), False, False):
            raise ValidationError(
                f"Return flavor `{flavor}` provided to `query()` function but there "
                "are multiple queries provided."
            )
        return batch

    unit = batch.units[0]
    select = is_select(unit.text, strict=False)
    insert = is_insert(unit.text, strict=False)
    if not flavor.accepts(1, select, insert):
        if select:
            kind = "a `SELECT`-like query was provided"
        elif flavor.accepts(1, True, False):
            kind = "the query is not a `SELECT`"
        else:
            kind = "the query is not an `INSERT`"
        raise ValidationError(
            f"Return flavor `{flavor}` provided to `query()` function but {kind}."
        )

    if select:
        batch.single_select = True
        batch.transaction = False
        if isinstance(flavor, Row):
            batch.units[0] = StatementUnit(add_row_limit(unit.text), unit.bindings)
    return batch
