"""Exception hierarchy shared by every dbbatch module."""
from __future__ import annotations

import json
import typing as t


class DbBatchError(RuntimeError):
    """Base class for everything dbbatch raises on purpose."""


class ValidationError(DbBatchError, ValueError):
    """Malformed batch, empty batch or a flavor the batch cannot satisfy.

    Always raised before the database is touched and never retried.
    """


class BindingError(ValidationError):
    """A binding is missing or its value cannot be coerced to the declared type."""


class ExecutionError(DbBatchError):
    """A statement failed to prepare, bind or execute."""

    def __init__(
        self,
        message: str,
        *,
        statement: str | None = None,
        bindings: t.Mapping[t.Any, t.Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.statement = statement
        self.bindings = dict(bindings) if bindings else {}

    @classmethod
    def for_statement(
        cls, statement: str, bindings: t.Mapping[t.Any, t.Any] | None
    ) -> "ExecutionError":
        message = f"Failed to run query `{statement}`"
        if bindings:
            try:
                dumped = json.dumps(
                    {str(k): v for k, v in bindings.items()}, default=_encode
                )
            except (TypeError, ValueError):
                dumped = "`Failed to JSON Encode bindings`"
            message += f" with following bindings: {dumped}"
        return cls(message, statement=statement, bindings=bindings)


class TransactionError(ExecutionError):
    """BEGIN or COMMIT failed outside of any statement."""

    def __init__(self, message: str = "Failed to start or end transaction") -> None:
        super().__init__(message)


def _encode(value: t.Any) -> t.Any:
    # dates, decimals and other driver-side types
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=repr)
    if hasattr(value, "isoformat"):
        return value.isoformat()
    if isinstance(value, bytes):
        raise TypeError("bytes are not JSON serializable")
    return str(value)
