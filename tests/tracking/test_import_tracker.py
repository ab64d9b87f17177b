from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from tableimport.db.dialects import SQLITE
from tableimport.tracking.import_tracker import ImportRun, ImportTracker

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_engine():
    engine = MagicMock()
    engine.dialect = SQLITE
    engine.execute.return_value = 1
    return engine


@pytest.fixture
def tracker(mock_engine):
    return ImportTracker(engine=mock_engine)


# ---------------------------------------------------------------------------
# ImportTracker tests
# ---------------------------------------------------------------------------


class TestImportTracker:
    def test_track_creates_successful_run(self, tracker):
        with tracker.track("people.csv", "people") as run:
            run.rows_imported = 42
        assert run.status == "success"
        assert run.rows_imported == 42
        assert tracker.last_run is run

    def test_track_records_failure(self, tracker):
        with pytest.raises(ValueError, match="boom"):
            with tracker.track("people.csv", "people") as run:
                raise ValueError("boom")
        assert run.status == "failed"
        assert "boom" in run.error

    def test_runs_accumulate(self, tracker):
        with tracker.track("s", "t1"):
            pass
        with tracker.track("s", "t2"):
            pass
        assert len(tracker.runs) == 2

    def test_persist_run_parameters(self, tracker, mock_engine):
        with tracker.track("people.csv", "people") as run:
            run.rows_imported = 95
            run.rows_failed = 5
            run.table_created = True

        sql, params = mock_engine.execute.call_args[0]
        assert sql.startswith("insert into import_log (source, target_table, status")
        assert sql.count("?") == len(ImportTracker.COLUMNS)
        assert params[:6] == ("people.csv", "people", "success", 95, 5, True)

    def test_failed_run_is_persisted(self, tracker, mock_engine):
        with pytest.raises(RuntimeError):
            with tracker.track("people.csv", "people"):
                raise RuntimeError("db down")
        params = mock_engine.execute.call_args[0][1]
        assert params[2] == "failed"
        assert params[-1] == "db down"

    def test_persist_handles_engine_error_gracefully(self, tracker, mock_engine):
        mock_engine.execute.side_effect = RuntimeError("db down")
        with tracker.track("people.csv", "people") as run:
            run.rows_imported = 10

        assert run.status == "success"

    def test_memory_only_without_engine(self):
        tracker = ImportTracker(engine=None)
        with tracker.track("s", "t"):
            pass
        assert tracker.last_run.status == "success"

    def test_last_run_is_none_when_empty(self):
        assert ImportTracker(engine=None).last_run is None

    def test_persists_to_sqlite(self, sqlite_engine):
        sqlite_engine.execute(
            "create table import_log (source text, target_table text, status text, "
            "rows_imported integer, rows_failed integer, table_created integer, "
            "started_at text, completed_at text, error_message text)"
        )
        tracker = ImportTracker(engine=sqlite_engine)
        with tracker.track("people.csv", "people") as run:
            run.rows_imported = 3

        df = sqlite_engine.query("select source, status, rows_imported from import_log")
        assert df.to_dict("records") == [
            {"source": "people.csv", "status": "success", "rows_imported": 3}
        ]


# ---------------------------------------------------------------------------
# ImportRun tests
# ---------------------------------------------------------------------------


class TestImportRun:
    def test_context_manager_sets_timestamps(self):
        run = ImportRun(source="s", target_table="t")
        with run:
            assert run.started_at is not None
        assert run.completed_at is not None
        assert run.completed_at >= run.started_at

    def test_context_manager_captures_error(self):
        run = ImportRun(source="s", target_table="t")
        with pytest.raises(KeyError):
            with run:
                raise KeyError("missing")
        assert run.status == "failed"
        assert "missing" in run.error
