"""
Generic helpers that are reused across sub‑modules.
"""
from __future__ import annotations

import re

import sqlparse
from sqlparse import lexer
from sqlparse import tokens as T

_HASH_COMMENT_RE = re.compile(r"\A\s*#[^\n]*\Z")


def split_statements(sql: str) -> list[str]:
    """
    Split a string containing one or many SQL statements into individual
    statements.

    The text is walked with the sqlparse lexer, so a ``;`` inside a quoted
    literal or a comment never ends a statement.  Nor does one inside a
    parenthesized group: ``(a; b)`` stays in one piece.  Every piece keeps
    its terminator, is stripped, and blank pieces are dropped.
    """
    statements: list[str] = []
    current: list[str] = []
    depth = 0
    hash_comment = False

    for ttype, value in lexer.tokenize(sql):
        current.append(value)
        # sqlparse only knows `# ` comments; MySQL also takes `#text`
        if hash_comment:
            hash_comment = ttype is not T.Newline
            continue
        if value.startswith("#") and ttype not in T.Comment:
            hash_comment = True
            continue
        if ttype is not T.Punctuation:
            continue
        if value == "(":
            depth += 1
        elif value == ")":
            depth = max(depth - 1, 0)
        elif value == ";" and depth == 0:
            statements.append("".join(current))
            current = []

    statements.append("".join(current))
    return [s.strip() for s in statements if s.strip()]


def is_comment(sql: str) -> bool:
    """Return *True* when *sql* holds nothing but comments (and terminators)."""
    if _HASH_COMMENT_RE.match(sql):
        return True
    return not sqlparse.format(sql, strip_comments=True).strip().rstrip(";").strip()
