"""Deadlock retry behaviour, driven by a scripted fake handle."""

import pytest

from dbbatch.engine import Engine
from dbbatch.errors import ExecutionError, TransactionError, ValidationError
from dbbatch.retry import Outcome, classify, is_deadlock

from tests.conftest import DeadlockError, FakeHandle


def test_classify_by_code_and_message():
    stmt = object()
    assert classify(DeadlockError(), stmt) is Outcome.RETRYABLE
    assert classify(RuntimeError("Lock wait timeout exceeded; try restarting transaction"), stmt) is Outcome.RETRYABLE
    assert classify(RuntimeError("SQLSTATE[HY000]: Cannot execute queries while other unbuffered queries are active"), stmt) is Outcome.RETRYABLE
    assert classify(RuntimeError("Syntax error near FROM"), stmt) is Outcome.FATAL


def test_classify_needs_a_statement():
    assert classify(DeadlockError(), None) is Outcome.FATAL


def test_deadlock_by_errno_only():
    class LockWait(Exception):
        errno = 1205

    assert is_deadlock(LockWait("timeout"))


def test_gives_up_after_max_tries(fake, sleeps):
    fake.failures["UPDATE t SET a = 1"] = [DeadlockError() for _ in range(10)]
    engine = Engine(fake, max_tries=3, sleep=2)

    with pytest.raises(ExecutionError, match="3 tries") as info:
        engine.query("UPDATE t SET a = 1")

    assert fake.executed == ["UPDATE t SET a = 1"] * 3
    assert sleeps == [2, 2]
    assert isinstance(info.value.__cause__, DeadlockError)
    assert [c[0] for c in fake.calls].count("rollback") == 3
    assert ("commit",) not in fake.calls


def test_recovers_after_deadlock(fake, sleeps):
    fake.failures["UPDATE t SET a = 1"] = [DeadlockError(), None]
    engine = Engine(fake, max_tries=3, sleep=1)

    assert engine.query("UPDATE t SET a = 1", flavor="affected") == 1
    assert fake.executed == ["UPDATE t SET a = 1"] * 2
    assert sleeps == [1]
    assert fake.calls[-1] == ("commit",)


def test_fatal_error_is_not_retried(fake, sleeps):
    fake.failures["UPDATE t SET a = 1"] = [RuntimeError("Unknown column 'a'")]
    engine = Engine(fake, max_tries=5)

    with pytest.raises(ExecutionError, match="Failed to run query `UPDATE t SET a = 1`"):
        engine.query("UPDATE t SET a = 1")

    assert fake.executed == ["UPDATE t SET a = 1"]
    assert sleeps == []
    assert ("rollback",) in fake.calls


def test_transactional_retry_restarts_from_first_statement(fake, sleeps):
    fake.failures["UPDATE b SET y = 2"] = [DeadlockError(), None]
    engine = Engine(fake, max_tries=3)

    assert engine.query(["UPDATE a SET x = 1", "UPDATE b SET y = 2"], flavor="affected") == 2
    assert fake.executed == [
        "UPDATE a SET x = 1",
        "UPDATE b SET y = 2",
        "UPDATE a SET x = 1",
        "UPDATE b SET y = 2",
    ]


def test_non_transactional_retry_resumes(fake, sleeps):
    fake.failures["UPDATE b SET y = 2"] = [DeadlockError(), None]
    engine = Engine(fake, max_tries=3)

    result = engine.query(
        ["UPDATE a SET x = 1", "UPDATE b SET y = 2"], flavor="affected", transaction=False
    )
    assert fake.executed == ["UPDATE a SET x = 1", "UPDATE b SET y = 2", "UPDATE b SET y = 2"]
    assert result == 2
    assert ("begin",) not in fake.calls


def test_cursor_closed_on_success_and_failure(fake, sleeps):
    fake.failures["UPDATE b SET y = 2"] = [RuntimeError("boom")]
    engine = Engine(fake)
    with pytest.raises(ExecutionError):
        engine.query(["UPDATE a SET x = 1", "UPDATE b SET y = 2"])
    assert fake.closed == 2


def test_failed_begin_is_a_transaction_error(sleeps):
    class BrokenBegin(FakeHandle):
        def begin(self):
            raise DeadlockError()

    fake = BrokenBegin()
    with pytest.raises(TransactionError, match="Failed to start or end transaction"):
        Engine(fake, max_tries=3).query("DELETE FROM t")
    assert fake.executed == []
    assert sleeps == []


def test_failed_commit_is_a_transaction_error(sleeps):
    class BrokenCommit(FakeHandle):
        def commit(self):
            raise RuntimeError("server has gone away")

    fake = BrokenCommit()
    with pytest.raises(TransactionError):
        Engine(fake).query("DELETE FROM t")


def test_rollback_failure_does_not_mask_error(sleeps):
    class BrokenRollback(FakeHandle):
        def rollback(self):
            raise RuntimeError("rollback exploded")

    fake = BrokenRollback()
    fake.failures["DELETE FROM t"] = [RuntimeError("real problem")]
    with pytest.raises(ExecutionError) as info:
        Engine(fake).query("DELETE FROM t")
    assert str(info.value.__cause__) == "real problem"


def test_validation_happens_before_any_connection_call(fake):
    with pytest.raises(ValidationError):
        Engine(fake).query("UPDATE t SET a = 1", flavor="increment")
    assert fake.calls == []


def test_missing_last_insert_id_is_false():
    fake = FakeHandle(last_id_supported=False)
    engine = Engine(fake)
    assert engine.query("INSERT INTO t VALUES (1)", flavor="increment") is False
    assert engine.last_insert_id is False


def test_last_insert_id_as_text(fake):
    assert Engine(fake).query("INSERT INTO t VALUES (1)", flavor="increment") == "42"


def test_single_select_skips_transaction(fake):
    fake.rows = [{"a": 1, "b": 2}]
    assert Engine(fake).query("SELECT a, b FROM t", flavor="row") == {"a": 1, "b": 2}
    names = [c[0] for c in fake.calls]
    assert "begin" not in names and "commit" not in names
    assert fake.calls[0] == ("prepare", "SELECT a, b FROM t LIMIT 0,1")


def test_run_time_hint_passed_to_handle(fake):
    Engine(fake, max_run_time=30).query("DELETE FROM t")
    assert ("time_limit", 30) in fake.calls
