from __future__ import annotations

# Statements that may return rows
SELECTS: tuple[str, ...] = (
    "SELECT", "SHOW", "HANDLER", "ANALYZE", "CHECK", "DESCRIBE", "DESC", "EXPLAIN", "HELP",
)

DEFAULT_MAX_RUN_TIME = 3600
DEFAULT_MAX_TRIES = 5
DEFAULT_SLEEP = 5

# SQLSTATE "serialization failure"; raised by InnoDB for deadlocks
DEADLOCK_SQLSTATE = "40001"

DEFAULT_CONFIG_FILE = "dbbatch.config.yml"
