"""Tests for synchronous CRUD execution against SQLite."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from types import SimpleNamespace
from typing import Optional

import pytest
from sqlalchemy import text
from sqlalchemy.exc import OperationalError, ProgrammingError
from sqlalchemy.orm import Session

from entsql import CrudExecutor, NotFoundError, StatementCache, column, create_config
from entsql.engine.cache import Operation
from entsql.utils.exceptions import ExecutionError, MetadataError, QueryTimeoutError, ScanError
from tests.entities import Account, AuditEntry, Document, Membership, StampedAccount


def _count(conn, table: str) -> int:
    return conn.execute(text(f"SELECT COUNT(*) FROM {table}")).scalar_one()


def test_insert_returns_last_insert_id(conn):
    executor = CrudExecutor()
    first = executor.insert(Account(email="a@x.com"), conn)
    second = executor.insert(Account(email="b@x.com"), conn)

    assert first == 1
    assert second == 2


def test_load_fills_entity(conn):
    executor = CrudExecutor()
    new_id = executor.insert(Account(email="a@x.com"), conn)

    account = Account(id=new_id)
    executor.load(account, conn)

    assert account.email == "a@x.com"
    assert account.created_at is None  # bound as NULL on insert


def test_load_missing_row_is_not_found(conn):
    with pytest.raises(NotFoundError) as excinfo:
        CrudExecutor().load(Account(id=42), conn)

    assert excinfo.value.table == "account"
    assert excinfo.value.operation == "select"


def test_update_changes_row(conn):
    executor = CrudExecutor()
    account = Account(email="a@x.com")
    account.id = executor.insert(account, conn)

    account.email = "new@x.com"
    executor.update(account, conn)

    reloaded = Account(id=account.id)
    executor.load(reloaded, conn)
    assert reloaded.email == "new@x.com"


def test_update_missing_row_is_not_found(conn):
    with pytest.raises(NotFoundError):
        CrudExecutor().update(Account(id=99, email="ghost@x.com"), conn)


def test_delete_removes_row_and_tolerates_missing(conn):
    executor = CrudExecutor()
    account = Account(email="a@x.com")
    account.id = executor.insert(account, conn)

    executor.delete(account, conn)
    assert _count(conn, "account") == 0

    executor.delete(account, conn)  # no matching row, still fine
    with pytest.raises(NotFoundError):
        executor.load(account, conn)


def test_returning_insert_populates_entity(conn):
    account = StampedAccount(email="a@x.com")
    result = CrudExecutor().insert(account, conn)

    assert result is None
    assert account.created_at is not None
    assert account.id is None  # not part of the RETURNING list


def test_returning_insert_and_update(conn):
    executor = CrudExecutor()
    doc = Document(title="draft")
    executor.insert(doc, conn)

    assert doc.id == 1
    assert doc.created_at is not None
    assert doc.updated_at == "never"

    doc.title = "final"
    doc.updated_at = None
    executor.update(doc, conn)

    assert doc.updated_at == "never"
    assert conn.execute(text("SELECT title FROM document WHERE id = 1")).scalar_one() == "final"


def test_returning_update_missing_row_is_not_found(conn):
    with pytest.raises(NotFoundError) as excinfo:
        CrudExecutor().update(Document(id=5, title="x"), conn)
    assert excinfo.value.operation == "update"


def test_composite_primary_key_round_trip(conn):
    executor = CrudExecutor()
    executor.insert(Membership(org_id=1, user_id=2, role="owner"), conn)
    executor.insert(Membership(org_id=1, user_id=3), conn)

    member = Membership(org_id=1, user_id=3)
    member.role = "admin"
    executor.update(member, conn)

    loaded = Membership(org_id=1, user_id=3, role="")
    executor.load(loaded, conn)
    assert loaded.role == "admin"

    owner = Membership(org_id=1, user_id=2, role="")
    executor.load(owner, conn)
    assert owner.role == "owner"


def test_postgres_dialect_reports_no_last_insert_id(conn):
    executor = CrudExecutor(config=create_config(dialect="pgx"))
    assert executor.insert(Account(email="a@x.com"), conn) is None
    assert _count(conn, "account") == 1


def test_mysql_dialect_override_uses_backticks(conn):
    cache = StatementCache()
    executor = CrudExecutor(cache=cache, config=create_config(dialect="mysql"))
    new_id = executor.insert(Account(email="a@x.com"), conn)

    assert new_id == 1
    assert cache.get(Operation.INSERT, Account, "mysql") == (
        "INSERT INTO `account` (`email`, `created_at`) VALUES (:email, :created_at)"
    )


def test_statements_are_cached_per_type(conn):
    cache = StatementCache()
    executor = CrudExecutor(cache=cache)
    for email in ("a@x.com", "b@x.com", "c@x.com"):
        executor.insert(Account(email=email), conn)
    executor.load(Account(id=1), conn)
    executor.load(Account(id=2), conn)

    assert cache.builds == 2
    assert cache.get(Operation.SELECT, Account, "sqlite") == (
        'SELECT "id", "email", "created_at" FROM "account" WHERE "id" = :id LIMIT 1'
    )


def test_cache_is_shared_between_executors(conn):
    cache = StatementCache()
    CrudExecutor(cache=cache).insert(Account(email="a@x.com"), conn)
    CrudExecutor(cache=cache).insert(Account(email="b@x.com"), conn)
    assert cache.builds == 1


def test_metadata_error_for_missing_primary_key(conn):
    with pytest.raises(MetadataError):
        CrudExecutor().load(AuditEntry(message="hi"), conn)


def test_metadata_error_for_plain_object(conn):
    class NotAnEntity:
        pass

    with pytest.raises(MetadataError, match="not a dataclass"):
        CrudExecutor().insert(NotAnEntity(), conn)


def test_driver_error_keeps_original_message(conn):
    @dataclass
    class Missing:
        __tablename__ = "missing_table"

        id: Optional[int] = column(primary_key=True, default=None)

    with pytest.raises(ExecutionError) as excinfo:
        CrudExecutor().load(Missing(id=1), conn)

    assert "no such table: missing_table" in excinfo.value.message
    assert excinfo.value.orig is not None
    assert excinfo.value.__cause__ is excinfo.value.orig
    assert "table does not exist" in str(excinfo.value)


def test_scan_into_frozen_entity_fails(conn):
    @dataclass(frozen=True)
    class FrozenAccount:
        __tablename__ = "account"

        id: Optional[int] = column(primary_key=True, auto_increment=True, default=None)
        email: str = ""

    executor = CrudExecutor()
    new_id = executor.insert(FrozenAccount(email="a@x.com"), conn)

    with pytest.raises(ScanError, match="scanning result into entity failed because"):
        executor.load(FrozenAccount(id=new_id), conn)


def test_expired_deadline_executes_nothing(conn):
    with pytest.raises(QueryTimeoutError):
        CrudExecutor().insert(Account(email="late@x.com"), conn, timeout=1e-9)
    assert _count(conn, "account") == 0


def test_config_timeout_is_the_default_deadline(conn):
    executor = CrudExecutor(config=create_config(query_timeout=1e-9))
    with pytest.raises(QueryTimeoutError):
        executor.delete(Account(id=1), conn)


def test_generous_timeout_runs(conn):
    assert CrudExecutor().insert(Account(email="a@x.com"), conn, timeout=30) == 1


def test_works_with_orm_session(sqlite_engine):
    executor = CrudExecutor()
    with Session(sqlite_engine) as session:
        new_id = executor.insert(Account(email="s@x.com"), session)
        session.commit()

    with Session(sqlite_engine) as session:
        account = Account(id=new_id)
        executor.load(account, session)
        assert account.email == "s@x.com"


def test_statement_logging_hides_parameters_by_default(conn, caplog):
    with caplog.at_level(logging.DEBUG, logger="entsql.engine.execution"):
        CrudExecutor().insert(Account(email="secret@x.com"), conn)

    assert "Executing insert" in caplog.text
    assert "secret@x.com" not in caplog.text


def test_statement_logging_with_parameters(conn, caplog):
    executor = CrudExecutor(config=create_config(log_parameters=True))
    with caplog.at_level(logging.DEBUG, logger="entsql.engine.execution"):
        executor.insert(Account(email="shown@x.com"), conn)

    assert "shown@x.com" in caplog.text


class FakeHandle:
    """Handle stand-in whose ``execute`` is supplied by the test."""

    def __init__(self, dialect: str, execute):
        self.dialect = SimpleNamespace(name=dialect)
        self.execute = execute


def test_lock_wait_timeout_within_deadline_is_execution_error():
    def execute(stmt, params):
        raise OperationalError(
            "UPDATE `account` ...",
            {},
            Exception("(1205, 'Lock wait timeout exceeded; try restarting transaction')"),
        )

    with pytest.raises(ExecutionError) as excinfo:
        CrudExecutor().update(
            Account(id=1, email="a@x.com"), FakeHandle("mysql", execute), timeout=60
        )

    assert not isinstance(excinfo.value, QueryTimeoutError)
    assert "Lock wait timeout exceeded" in excinfo.value.message


def test_statement_running_past_deadline_is_timeout():
    seen = {}

    def execute(stmt, params):
        seen["timeout"] = stmt.get_execution_options()["timeout"]
        time.sleep(0.1)
        raise OperationalError(
            'DELETE FROM "account" ...',
            {},
            Exception("canceling statement due to statement timeout"),
        )

    with pytest.raises(QueryTimeoutError) as excinfo:
        CrudExecutor().delete(Account(id=1), FakeHandle("postgresql", execute), timeout=0.05)

    assert 0 < seen["timeout"] <= 0.05
    assert "canceling statement due to statement timeout" in excinfo.value.message
    assert excinfo.value.context["timeout_seconds"] == 0.05


def test_returning_rejected_by_mysql_suggests_dropping_flags():
    def execute(stmt, params):
        raise ProgrammingError(
            str(stmt),
            params,
            Exception("(1064, 'You have an error in your SQL syntax near RETURNING')"),
        )

    with pytest.raises(ExecutionError) as excinfo:
        CrudExecutor().insert(StampedAccount(email="a@x.com"), FakeHandle("mysql", execute))

    assert "mysql dialect does not support RETURNING" in excinfo.value.suggestion
    assert excinfo.value.context["dialect"] == "mysql"


def test_row_returning_statement_logs_no_rowcount(conn, caplog):
    executor = CrudExecutor()
    new_id = executor.insert(Account(email="a@x.com"), conn)

    with caplog.at_level(logging.DEBUG, logger="entsql.engine.execution"):
        executor.load(Account(id=new_id), conn)

    assert "Statement returned rows" in caplog.text
    assert "-1 rows" not in caplog.text


def test_update_without_returning_missing_row_reports_table(conn):
    with pytest.raises(NotFoundError) as excinfo:
        CrudExecutor().update(Account(id=99, email="ghost@x.com"), conn)

    assert excinfo.value.table == "account"
    assert excinfo.value.operation == "update"
    assert "No account row matched the primary key (update)" in excinfo.value.message
