"""
Statement classification: does a statement return rows, is it an INSERT,
does it already carry a LIMIT clause.
"""
from __future__ import annotations

import re

from dbbatch.constants import SELECTS
from dbbatch.errors import ValidationError

_CTE_RE = re.compile(r"\A\s*WITH\b", re.IGNORECASE)
_SELECT_RE = re.compile(
    r"\A\s*(?:\(\s*)*(?:" + "|".join(SELECTS) + r")\b", re.IGNORECASE
)
_INSERT_RE = re.compile(r"\A\s*INSERT\s+INTO\b", re.IGNORECASE)

_LIMIT_ARG = r"(?:\d+|\?|:\w+|%s|%\(\w+\)s)"
_LIMIT_RE = re.compile(
    rf"\bLIMIT\s+{_LIMIT_ARG}(?:\s*,\s*{_LIMIT_ARG}|\s+OFFSET\s+{_LIMIT_ARG})?\s*;?\s*\Z",
    re.IGNORECASE,
)
_TERMINATOR_RE = re.compile(r"\s*;?\s*\Z")


def is_select(sql: str, strict: bool = True) -> bool:
    """
    Return *True* if *sql* is expected to return rows (``SELECT`` and its
    siblings, or a ``WITH`` CTE).  With *strict* a non‑select raises
    :class:`ValidationError` instead.
    """
    if _CTE_RE.match(sql) or _SELECT_RE.match(sql):
        return True
    if strict:
        raise ValidationError(f"Query is not one of {', '.join(SELECTS)}.")
    return False


def is_insert(sql: str, strict: bool = True) -> bool:
    if _INSERT_RE.match(sql):
        return True
    if strict:
        raise ValidationError("Query is not INSERT.")
    return False


def has_limit(sql: str) -> bool:
    """Whether the statement already ends with a LIMIT clause."""
    return _LIMIT_RE.search(sql) is not None


def add_row_limit(sql: str) -> str:
    """Append ``LIMIT 0,1`` unless a LIMIT is already present, keeping any terminator."""
    if has_limit(sql):
        return sql
    body = _TERMINATOR_RE.sub("", sql, count=1)
    terminator = ";" if sql.rstrip().endswith(";") else ""
    return f"{body} LIMIT 0,1{terminator}"
