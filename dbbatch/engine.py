"""
The batch engine.

    engine = Engine(conn, max_tries=3)
    engine.query("UPDATE a SET x = 1; UPDATE b SET y = 2", flavor="affected")
    engine.query("SELECT * FROM t WHERE id = :id", {":id": 5}, flavor="row")

A call is preprocessed into a :class:`~dbbatch.batch.Batch`, run inside a
transaction unless it is a single SELECT, retried on deadlocks up to
``max_tries`` times and finally shaped according to its flavor.

Retry semantics differ with the transaction mode: a transactional batch is
rolled back and replayed from the first statement, while a batch run without
a transaction resumes after the statements that already completed.
"""
from __future__ import annotations

import logging
import time
import typing as t

from dbbatch.batch import Batch, Bindings, RawQueries, StatementUnit, build_batch
from dbbatch.binder import Binder
from dbbatch.driver import ConnectionHandle, Statement, as_handle
from dbbatch.errors import ExecutionError, TransactionError
from dbbatch.flavors import Flavor
from dbbatch.retry import Outcome, classify
from dbbatch.state import ResultEnvelope, Settings
from dbbatch.stats import RunStats

logger = logging.getLogger(__name__)


class ConnectionProvider(t.Protocol):
    def acquire(self) -> t.Any: ...


class Engine:
    """
    Runs SQL batches against one connection.  Not thread-safe: use one
    engine per connection and per thread.
    """

    def __init__(
        self,
        conn: t.Any = None,
        *,
        provider: ConnectionProvider | None = None,
        settings: Settings | None = None,
        max_run_time: int | None = None,
        max_tries: int | None = None,
        sleep: int | None = None,
        stats: RunStats | None = None,
    ) -> None:
        if conn is None:
            if provider is None:
                raise ValueError("Engine needs a connection or a connection provider.")
            conn = provider.acquire()
            if conn is None:
                raise ValueError("Connection provider returned no connection.")
        self.handle: ConnectionHandle = as_handle(conn)
        self.binder = Binder(self.handle.paramstyle)
        self.settings = settings or Settings()
        self.settings.update(max_run_time=max_run_time, max_tries=max_tries, sleep=sleep)
        self.stats = stats or RunStats()
        self.last = ResultEnvelope()
        self._statement: Statement | None = None
        self._unit: StatementUnit | None = None

    # --------------------------------------------------------------------- #
    # Configuration
    # --------------------------------------------------------------------- #
    def set_handle(self, conn: t.Any) -> None:
        self.handle = as_handle(conn)
        self.binder = Binder(self.handle.paramstyle)

    def set_max_run_time(self, seconds: int) -> None:
        self.settings.update(max_run_time=seconds)

    def set_max_tries(self, tries: int) -> None:
        self.settings.update(max_tries=tries)

    def set_sleep(self, seconds: int) -> None:
        self.settings.update(sleep=seconds)

    @property
    def debug(self) -> bool:
        return self.settings.debug

    @property
    def last_result(self) -> t.Any:
        return self.last.result

    @property
    def last_affected(self) -> int:
        return self.last.affected

    @property
    def last_insert_id(self) -> str | bool | None:
        return self.last.insert_id

    # --------------------------------------------------------------------- #
    # Entry point
    # --------------------------------------------------------------------- #
    def query(
        self,
        queries: RawQueries,
        bindings: Bindings | None = None,
        flavor: Flavor | str | None = "bool",
        *,
        transaction: bool = True,
        debug: bool = False,
    ) -> t.Any:
        """
        Run *queries* and return a value shaped by *flavor*.

        *bindings* apply to every statement; per-statement bindings win on
        key collisions.  Raises :class:`ValidationError` for unusable input,
        :class:`ExecutionError` when the database refuses a statement or
        deadlocks more than ``max_tries`` times.
        """
        self.settings.debug = debug
        batch = build_batch(queries, bindings, flavor, transaction=transaction)
        self.last = ResultEnvelope()

        tries = self.settings.max_tries
        error: BaseException | None = None
        for attempt in range(1, tries + 1):
            logger.debug("Attempt %d/%d for %d statement(s)", attempt, tries, len(batch))
            affected = self.last.affected
            try:
                self._attempt(batch)
            except Exception as exc:
                if self._recover(exc, batch) is Outcome.FATAL:
                    raise self._fatal(exc) from exc
                if batch.transaction:
                    # rolled back, so those rows never happened
                    self.last.affected = affected
                error = exc
                logger.warning(
                    "Deadlock on attempt %d/%d: %s", attempt, tries, exc
                )
                if attempt < tries:
                    time.sleep(self.settings.sleep)
                continue
            return batch.flavor.shape(self.last)

        raise ExecutionError(
            f"Deadlock encountered for set maximum of {tries} tries."
        ) from error

    # --------------------------------------------------------------------- #
    # One attempt
    # --------------------------------------------------------------------- #
    def _attempt(self, batch: Batch) -> None:
        self._statement = None
        self._unit = None
        if batch.transaction:
            self.handle.begin()

        for unit in list(batch.units):
            self._unit = unit
            self._statement = None
            sql, params = self.binder.bind_all(unit.text, unit.bindings)
            statement = self._statement = self.handle.prepare(sql)
            self.handle.set_time_limit(self.settings.max_run_time)
            self.stats.count()

            start = time.perf_counter()
            statement.execute(params)
            self.stats.record(unit.text, time.perf_counter() - start)
            if self.settings.debug:
                logger.debug("Executed statement\n%s", statement.dump())

            if batch.single_select:
                self.last.result = batch.flavor.fetch(statement)
            else:
                self.last.affected += statement.row_count
            statement.close()

            if not batch.transaction:
                # drivers outside autocommit open an implicit transaction
                if self.handle.in_transaction:
                    self.handle.commit()
                # done for good; a retry must not run it again
                batch.units.pop(0)

        self._unit = None
        try:
            self.last.insert_id = self.handle.last_insert_id()
        except Exception:
            # unsupported by the driver, or it wants a sequence name
            self.last.insert_id = False

        if batch.transaction and self.handle.in_transaction:
            self.handle.commit()

    # --------------------------------------------------------------------- #
    # Failure handling
    # --------------------------------------------------------------------- #
    def _recover(self, exc: Exception, batch: Batch) -> Outcome:
        """Release the cursor, roll back, and say whether to try again."""
        statement = self._statement
        if statement is not None and self.settings.debug:
            logger.debug("Statement failed with %s\n%s", exc, statement.dump())

        outcome = classify(exc, statement)
        if statement is not None:
            try:
                statement.close()
            except Exception:
                # usually the cursor is already gone
                pass

        try:
            if self.handle.in_transaction:
                self.handle.rollback()
        except Exception:
            logger.warning("Rollback failed after %s", exc, exc_info=True)
        return outcome

    def _fatal(self, exc: Exception) -> ExecutionError:
        if self._unit is not None:
            return ExecutionError.for_statement(self._unit.text, self._unit.bindings)
        return TransactionError()
