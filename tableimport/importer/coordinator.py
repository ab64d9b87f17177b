from __future__ import annotations

import enum
import logging
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor

from tableimport.db.core import BaseEngine
from tableimport.importer.cancellation import CancellationToken
from tableimport.importer.config import ImportConfig
from tableimport.importer.exceptions import (
    CancellationError,
    ConfigurationError,
    ImportFailure,
)
from tableimport.importer.models import RunOutcome
from tableimport.importer.notify import Notifier, RecordingNotifier
from tableimport.importer.schema import SchemaReconciler
from tableimport.importer.writer import TransactionalWriter
from tableimport.sources.base import RowSource
from tableimport.tracking.import_tracker import ImportTracker


class ImportState(enum.Enum):
    IDLE = "idle"
    SOURCE_PREPARED = "source_prepared"
    SCHEMA_RECONCILED = "schema_reconciled"
    TABLE_ENSURED = "table_ensured"
    ROWS_INSERTED = "rows_inserted"
    COMMITTED = "committed"
    FAILED = "failed"


class ImportCoordinator:
    """
    Runs one import of *source* into *table*.

    Every run ends in exactly one RunOutcome: the source is torn down once,
    finished listeners are called once, and any failure is reported to the
    notifier and rolled back (unless the config skips transactions).

    Usage:
        coordinator = ImportCoordinator(engine, CsvRowSource("people.csv"), "people")
        coordinator.on_table_created(lambda engine, table: cache.invalidate(table))
        future = coordinator.start()
        ...
        coordinator.interrupt()
        outcome = future.result()
    """

    def __init__(
        self,
        engine: BaseEngine,
        source: RowSource,
        table: str,
        config: ImportConfig | None = None,
        schema: str | None = None,
        notifier: Notifier | None = None,
        tracker: ImportTracker | None = None,
    ) -> None:
        self.engine = engine
        self.source = source
        self.table = table
        self.schema = schema
        self.config = config or ImportConfig()
        self.notifier = RecordingNotifier(notifier)
        self.tracker = tracker or ImportTracker()
        self.cancel_token = CancellationToken()
        self.state = ImportState.IDLE
        self.table_created = False
        self.logger = logging.getLogger("import_coordinator")

        self._table_created_listeners: list[Callable[[BaseEngine, str], None]] = []
        self._finished_listeners: list[Callable[[bool], None]] = []
        self._torn_down = False

    def on_table_created(self, callback: Callable[[BaseEngine, str], None]) -> None:
        self._table_created_listeners.append(callback)

    def on_finished(self, callback: Callable[[bool], None]) -> None:
        self._finished_listeners.append(callback)

    def interrupt(self) -> None:
        """Ask a running import to stop. Safe to call from any thread."""
        self.cancel_token.cancel()

    def start(self) -> Future[RunOutcome]:
        """Run the import on its own worker thread."""
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="tableimport")
        try:
            return executor.submit(self.run)
        finally:
            executor.shutdown(wait=False)

    def run(self) -> RunOutcome:
        if self.state is not ImportState.IDLE:
            raise RuntimeError("An ImportCoordinator can only run once")

        writer = TransactionalWriter(
            engine=self.engine,
            table=self.table,
            config=self.config,
            cancel_token=self.cancel_token,
            notifier=self.notifier,
            schema=self.schema,
        )
        try:
            with self.tracker.track(self.source.name, self.table) as record:
                try:
                    self._import(writer)
                except Exception:
                    writer.rollback()
                    raise
                finally:
                    record.rows_imported = writer.rows_imported
                    record.rows_failed = writer.rows_failed
                    record.table_created = self.table_created
        except Exception as e:
            return self._fail(e, writer)

        if self.table_created:
            self._emit(self._table_created_listeners, self.engine, self.table)
        self._teardown_source()
        self.logger.info(
            "Imported %d rows into %s (%d ignored)",
            writer.rows_imported,
            self.table,
            writer.rows_failed,
        )
        self._emit(self._finished_listeners, True)
        return RunOutcome.succeeded(
            table_created=self.table_created,
            rows_imported=writer.rows_imported,
            rows_failed=writer.rows_failed,
            warnings=tuple(self.notifier.warnings),
        )

    def _import(self, writer: TransactionalWriter) -> None:
        if not self.source.setup(self.config):
            raise ConfigurationError("The import source could not be prepared.")

        source_columns = list(self.source.columns())
        if not source_columns:
            raise ConfigurationError("No columns provided by the import source.")
        self.state = ImportState.SOURCE_PREPARED

        existing_columns = self.engine.list_existing_columns(self.table, self.schema)
        reconciled = SchemaReconciler(self.notifier).reconcile(
            self.table, existing_columns, source_columns
        )
        self.state = ImportState.SCHEMA_RECONCILED

        writer.begin_transaction()
        self.table_created = writer.ensure_table(reconciled, source_columns)
        self.state = ImportState.TABLE_ENSURED

        if self.cancel_token.is_cancelled():
            raise CancellationError()

        writer.insert_all(self.source.rows(), reconciled.columns)
        self.state = ImportState.ROWS_INSERTED

        writer.commit()
        self.state = ImportState.COMMITTED

    def _fail(self, error: Exception, writer: TransactionalWriter) -> RunOutcome:
        if isinstance(error, ImportFailure):
            failure = error
        else:
            self.logger.exception("Unexpected error while importing into %s", self.table)
            failure = ImportFailure(f"Error while importing data: {error}")

        self.state = ImportState.FAILED
        self.notifier.error(str(failure))
        self._teardown_source()
        self._emit(self._finished_listeners, False)
        return RunOutcome.failed(
            str(failure),
            # a created table only survives a failed run without a transaction
            table_created=self.table_created and self.config.skip_transaction,
            rows_imported=writer.rows_imported if self.config.skip_transaction else 0,
            rows_failed=writer.rows_failed,
            warnings=tuple(self.notifier.warnings),
        )

    def _teardown_source(self) -> None:
        if self._torn_down:
            return
        self._torn_down = True
        try:
            self.source.teardown()
        except Exception as e:
            self.logger.warning("Teardown of %s failed: %s", self.source.name, e)

    def _emit(self, listeners: list[Callable], *args) -> None:
        for callback in listeners:
            try:
                callback(*args)
            except Exception:
                self.logger.exception("Import listener %r failed", callback)
