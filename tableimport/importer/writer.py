from __future__ import annotations

import logging
import time
from collections.abc import Iterable, Sequence

from tableimport.db.core import BaseEngine, DestinationError, ExecFlag
from tableimport.importer.cancellation import CancellationToken
from tableimport.importer.config import ImportConfig
from tableimport.importer.exceptions import (
    CancellationError,
    RowError,
    SchemaError,
    TransactionError,
)
from tableimport.importer.models import ColumnDefinition, ReconciledSchema, Row
from tableimport.importer.notify import Notifier
from tableimport.importer.schema import build_create_table, build_insert


def fit_row(row: Row, column_count: int) -> list:
    """Pad *row* with NULLs or cut it down to exactly *column_count* values."""
    values = list(row[:column_count])
    if len(values) < column_count:
        values.extend([None] * (column_count - len(values)))
    return values


class TransactionalWriter:
    """
    Writes one import run into the destination table.

    Owns the transaction for the run: begin_transaction() and commit() are
    no-ops when the config skips transactions, and rollback() only does
    anything while a transaction it opened is still open. On engines whose
    DDL commits implicitly, rollback() also drops a table this run created.
    """

    CANCEL_POLL_INTERVAL = 100
    PROGRESS_INTERVAL = 1000

    def __init__(
        self,
        engine: BaseEngine,
        table: str,
        config: ImportConfig,
        cancel_token: CancellationToken,
        notifier: Notifier,
        schema: str | None = None,
    ) -> None:
        self.engine = engine
        self.table = table
        self.schema = schema
        self.config = config
        self.cancel_token = cancel_token
        self.notifier = notifier
        self.logger = logging.getLogger("transactional_writer")

        self._transaction_open = False
        self._created_in_transaction = False
        self.rows_imported = 0
        self.rows_failed = 0

    @property
    def qualified_table(self) -> str:
        return self.engine.dialect.qualify(self.table, self.schema)

    def begin_transaction(self) -> None:
        if self.config.skip_transaction:
            return
        try:
            self.engine.begin()
        except DestinationError as e:
            raise TransactionError(
                f"Could not start transaction in order to import data: {e}"
            ) from e
        self._transaction_open = True

    def ensure_table(
        self, reconciled: ReconciledSchema, source_columns: Sequence[ColumnDefinition]
    ) -> bool:
        """Create the destination if reconciliation asked for it; True if created."""
        if not reconciled.create_table:
            return False

        ddl = build_create_table(
            self.qualified_table, source_columns, self.engine.dialect
        )
        # Without a transaction nothing else guards the table, skip the lock
        flags = ExecFlag.NO_LOCK if self.config.skip_transaction else ExecFlag.NONE
        try:
            self.engine.execute(ddl, flags=flags)
        except DestinationError as e:
            raise SchemaError(f"Could not create table to import to: {e}") from e

        self.logger.info("Created table %s", self.qualified_table)
        self._created_in_transaction = self._transaction_open
        return True

    def insert_all(self, rows: Iterable[Row], columns: Sequence[str]) -> None:
        """
        Insert rows in source order, one statement execution per row.

        Raises RowError on the first failing row unless errors are ignored,
        and CancellationError when a stop is requested. Cancellation is only
        polled every CANCEL_POLL_INTERVAL rows.
        """
        column_count = len(columns)
        sql = build_insert(self.qualified_table, columns, self.engine.dialect)
        statement = self.engine.prepare(sql, flags=ExecFlag.NO_LOCK)

        started = time.monotonic()
        with statement:
            for index, row in enumerate(rows):
                row_number = index + 1
                statement.bind(fit_row(row, column_count))
                try:
                    statement.execute()
                except DestinationError as e:
                    if not self.config.ignore_errors:
                        raise RowError(row_number, str(e)) from e

                    self.rows_failed += 1
                    self.logger.debug(
                        "Could not import data row number %d. The row was ignored. "
                        "Problem details: %s",
                        row_number,
                        e,
                    )
                    self.notifier.warn(
                        f"Could not import data row number {row_number}. "
                        f"The row was ignored. Problem details: {e}"
                    )
                else:
                    self.rows_imported += 1

                if index % self.CANCEL_POLL_INTERVAL == 0 and self.cancel_token.is_cancelled():
                    raise CancellationError()

                if row_number % self.PROGRESS_INTERVAL == 0:
                    self.logger.info(
                        "%d rows processed for %s, last %d took %.2fs",
                        row_number,
                        self.qualified_table,
                        self.PROGRESS_INTERVAL,
                        time.monotonic() - started,
                    )
                    started = time.monotonic()

    def commit(self) -> None:
        if self.config.skip_transaction:
            return
        try:
            self.engine.commit()
        except DestinationError as e:
            raise TransactionError(
                f"Could not commit transaction for imported data: {e}"
            ) from e
        self._transaction_open = False

    def rollback(self) -> None:
        if not self._transaction_open:
            return
        self._transaction_open = False
        try:
            self.engine.rollback()
        except DestinationError as e:
            self.logger.error("Rollback of import into %s failed: %s", self.qualified_table, e)
        else:
            self.logger.info("Rolled back import into %s", self.qualified_table)

        if self._created_in_transaction and not self.engine.transactional_ddl:
            self._drop_created_table()

    def _drop_created_table(self) -> None:
        """Undo a CREATE TABLE the rollback could not reach."""
        try:
            self.engine.execute(f"DROP TABLE {self.qualified_table}")
        except DestinationError as e:
            self.logger.error(
                "Could not drop table %s created by the failed import: %s",
                self.qualified_table,
                e,
            )
        else:
            self.logger.info("Dropped table %s created by the failed import", self.qualified_table)
