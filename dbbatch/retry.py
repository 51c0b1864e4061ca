"""
Failure classification for the retry loop.

Lock contention is worth another attempt; everything else (syntax errors,
constraint violations, lost connections …) is not.
"""
from __future__ import annotations

import enum
import re
import typing as t

from mysql.connector import errorcode

from dbbatch.constants import DEADLOCK_SQLSTATE

# Unbuffered-result complaints count as lock contention too.
_DEADLOCK_RE = re.compile(
    r"deadlock"
    r"|try restarting transaction"
    r"|Cannot execute queries while other unbuffered queries are active"
    r"|Unread result found"
    r"|database is locked",
    re.IGNORECASE | re.MULTILINE,
)
_LOCK_ERRNOS = frozenset({errorcode.ER_LOCK_DEADLOCK, errorcode.ER_LOCK_WAIT_TIMEOUT})


class Outcome(enum.Enum):
    RETRYABLE = "retryable"
    FATAL = "fatal"


def is_deadlock(exc: BaseException) -> bool:
    """Driver error code or message says the failure came from lock contention."""
    if getattr(exc, "sqlstate", None) == DEADLOCK_SQLSTATE:
        return True
    if getattr(exc, "errno", None) in _LOCK_ERRNOS:
        return True
    return _DEADLOCK_RE.search(str(exc)) is not None


def classify(exc: BaseException, statement: t.Any) -> Outcome:
    """
    Decide what the retry loop does with *exc*.  Only failures that happened
    with a statement in flight are retried; a failed BEGIN is always fatal.
    """
    if statement is not None and is_deadlock(exc):
        return Outcome.RETRYABLE
    return Outcome.FATAL
