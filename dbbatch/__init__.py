"""
dbbatch – run SQL batches with deadlock retries and shaped results.
"""
from __future__ import annotations

from dbbatch.classify import is_insert, is_select
from dbbatch.engine import Engine
from dbbatch.errors import (
    BindingError,
    DbBatchError,
    ExecutionError,
    TransactionError,
    ValidationError,
)
from dbbatch.utils import split_statements

__version__ = "0.3.0"

__all__ = [
    "BindingError",
    "DbBatchError",
    "Engine",
    "ExecutionError",
    "TransactionError",
    "ValidationError",
    "is_insert",
    "is_select",
    "split_statements",
]
