"""Pytest configuration helpers."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Generator

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Connection, Engine

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
for path in (SRC, ROOT):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

from tests.entities import SCHEMA  # noqa: E402


@pytest.fixture
def sqlite_engine(tmp_path) -> Generator[Engine, None, None]:
    """Create a temporary SQLite database with the test tables."""
    db_path = tmp_path / "test.db"
    # Use as_posix() to ensure forward slashes for SQLite URLs (required on Windows)
    engine = create_engine(f"sqlite:///{db_path.as_posix()}")
    with engine.begin() as conn:
        for ddl in SCHEMA:
            conn.execute(text(ddl))
    yield engine
    engine.dispose()


@pytest.fixture
def conn(sqlite_engine) -> Generator[Connection, None, None]:
    """A connection inside a transaction that commits on success."""
    with sqlite_engine.begin() as connection:
        yield connection


@pytest.fixture
def async_db_url(tmp_path) -> str:
    db_path = tmp_path / "async.db"
    return f"sqlite+aiosqlite:///{db_path.as_posix()}"
