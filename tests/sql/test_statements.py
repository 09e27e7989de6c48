"""Tests for CRUD statement generation."""

from __future__ import annotations

from dataclasses import dataclass

import pytest

from entsql import column
from entsql.engine.dialects import get_dialect
from entsql.sql.statements import build_delete, build_insert, build_select, build_update
from entsql.table.metadata import get_metadata
from entsql.utils.exceptions import MetadataError
from tests.entities import Account, AuditEntry, Document, Membership, StampedAccount

POSTGRES = get_dialect("postgresql")
MYSQL = get_dialect("mysql")


def test_select_lists_columns_and_limits_to_one_row():
    sql = build_select(get_metadata(Account), POSTGRES)
    assert sql == (
        'SELECT "id", "email", "created_at" FROM "account" WHERE "id" = :id LIMIT 1'
    )


def test_select_composite_key():
    sql = build_select(get_metadata(Membership), MYSQL)
    assert sql == (
        "SELECT `org_id`, `user_id`, `role` FROM `membership` "
        "WHERE `org_id` = :org_id AND `user_id` = :user_id LIMIT 1"
    )
    where = sql.split(" WHERE ", 1)[1].removesuffix(" LIMIT 1")
    assert len(where.split(" AND ")) == len(get_metadata(Membership).primary_keys)


def test_insert_skips_auto_increment():
    sql = build_insert(get_metadata(Account), POSTGRES)
    assert sql == 'INSERT INTO "account" ("email", "created_at") VALUES (:email, :created_at)'


def test_insert_with_returning():
    sql = build_insert(get_metadata(StampedAccount), POSTGRES)
    assert sql == 'INSERT INTO "account" ("email") VALUES (:email) RETURNING "created_at"'


def test_insert_returning_columns_never_bound():
    sql = build_insert(get_metadata(Document), POSTGRES)
    assert sql == (
        'INSERT INTO "document" ("title") VALUES (:title) '
        'RETURNING "id", "created_at", "updated_at"'
    )
    values = sql.split("VALUES", 1)[1].split("RETURNING", 1)[0]
    assert ":created_at" not in values
    assert ":updated_at" not in values


def test_insert_returning_is_not_gated_on_dialect_support():
    sql = build_insert(get_metadata(StampedAccount), MYSQL)
    assert sql == "INSERT INTO `account` (`email`) VALUES (:email) RETURNING `created_at`"


def test_insert_renamed_column_and_qualified_table():
    sql = build_insert(get_metadata(AuditEntry), POSTGRES)
    assert sql == 'INSERT INTO "audit"."entry" ("message", "severity") VALUES (:message, :severity)'


def test_update_excludes_refused_columns():
    sql = build_update(get_metadata(Account), POSTGRES)
    assert sql == 'UPDATE "account" SET "email" = :email WHERE "id" = :id'


def test_update_with_returning():
    sql = build_update(get_metadata(Document), POSTGRES)
    assert sql == (
        'UPDATE "document" SET "title" = :title WHERE "id" = :id RETURNING "updated_at"'
    )


def test_update_composite_key():
    sql = build_update(get_metadata(Membership), MYSQL)
    assert sql == (
        "UPDATE `membership` SET `role` = :role WHERE `org_id` = :org_id AND `user_id` = :user_id"
    )


def test_delete():
    assert build_delete(get_metadata(Account), POSTGRES) == 'DELETE FROM "account" WHERE "id" = :id'
    assert build_delete(get_metadata(Membership), MYSQL) == (
        "DELETE FROM `membership` WHERE `org_id` = :org_id AND `user_id` = :user_id"
    )


@pytest.mark.parametrize("builder", [build_select, build_update, build_delete])
def test_primary_key_required(builder):
    with pytest.raises(MetadataError, match="no primary key"):
        builder(get_metadata(AuditEntry), POSTGRES)


def test_update_without_settable_columns():
    @dataclass
    class Tag:
        __tablename__ = "tag"

        name: str = column(primary_key=True)

    with pytest.raises(MetadataError, match="no updatable columns"):
        build_update(get_metadata(Tag), POSTGRES)


def test_builders_are_deterministic():
    md = get_metadata(Document)
    for builder in (build_select, build_insert, build_update, build_delete):
        assert builder(md, POSTGRES) == builder(md, POSTGRES)
