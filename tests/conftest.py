from __future__ import annotations

import pytest

from tableimport.db.core import SQLiteEngine
from tableimport.importer.models import ColumnDefinition
from tableimport.sources.base import RowSource

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class ListRowSource(RowSource):
    """In-memory source that records how the importer drove it."""

    def __init__(self, columns, rows, setup_ok: bool = True) -> None:
        self._columns = [
            ColumnDefinition(*c) if isinstance(c, tuple) else ColumnDefinition(c)
            for c in columns
        ]
        self._rows = rows
        self.setup_ok = setup_ok
        self.setup_calls = 0
        self.teardown_calls = 0

    def setup(self, config) -> bool:
        self.setup_calls += 1
        return self.setup_ok

    def columns(self) -> list[ColumnDefinition]:
        return list(self._columns)

    def rows(self):
        yield from self._rows

    def teardown(self) -> None:
        self.teardown_calls += 1


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def make_source():
    return ListRowSource


@pytest.fixture
def sqlite_engine():
    engine = SQLiteEngine(":memory:")
    yield engine
    engine.close()


@pytest.fixture
def table_rows():
    """Return every row of a table as a list of tuples, in rowid order."""

    def _rows(engine, table: str) -> list[tuple]:
        sql = f"select * from {engine.dialect.wrap_if_needed(table)} order by rowid"
        return engine.connection.execute(sql).fetchall()

    return _rows
