from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class ImportRun:
    """Tracks a single import run's state."""

    source: str
    target_table: str
    rows_imported: int = 0
    rows_failed: int = 0
    table_created: bool = False
    status: str = "running"
    started_at: datetime | None = None
    completed_at: datetime | None = None
    error: str | None = None

    def __enter__(self) -> ImportRun:
        self.started_at = datetime.now(UTC)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.completed_at = datetime.now(UTC)
        if exc_type is not None:
            self.status = "failed"
            self.error = str(exc_val)
        else:
            self.status = "success"
        return False


class ImportTracker:
    """
    Keeps a history of import runs.

    When backed by an engine, every finished run is also written to
    *table_name* at the destination. Without one it works in memory only
    (useful for testing).
    """

    COLUMNS = (
        "source",
        "target_table",
        "status",
        "rows_imported",
        "rows_failed",
        "table_created",
        "started_at",
        "completed_at",
        "error_message",
    )

    def __init__(self, engine: Any | None = None, table_name: str = "import_log") -> None:
        self.engine = engine
        self.table_name = table_name
        self.logger = logging.getLogger("import_tracker")
        self._runs: list[ImportRun] = []

    @contextmanager
    def track(self, source: str, target_table: str) -> Iterator[ImportRun]:
        """Create, yield, and persist an ImportRun, failed or not."""
        run = ImportRun(source=source, target_table=target_table)
        self._runs.append(run)
        try:
            with run:
                yield run
        finally:
            self._persist_run(run)

    def _persist_run(self, run: ImportRun) -> None:
        if self.engine is None:
            return
        dialect = self.engine.dialect
        try:
            self.engine.execute(
                f"insert into {dialect.wrap_if_needed(self.table_name)} "
                f"({', '.join(self.COLUMNS)}) "
                f"values ({dialect.placeholders(len(self.COLUMNS))})",
                (
                    run.source,
                    run.target_table,
                    run.status,
                    run.rows_imported,
                    run.rows_failed,
                    run.table_created,
                    run.started_at.isoformat() if run.started_at else None,
                    run.completed_at.isoformat() if run.completed_at else None,
                    run.error,
                ),
            )
        except Exception as e:
            self.logger.error("Failed to persist import run: %s", e)

    @property
    def runs(self) -> list[ImportRun]:
        return list(self._runs)

    @property
    def last_run(self) -> ImportRun | None:
        return self._runs[-1] if self._runs else None
