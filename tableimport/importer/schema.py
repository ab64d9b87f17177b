from __future__ import annotations

import logging
from collections.abc import Sequence

from tableimport.db.dialects import Dialect
from tableimport.importer.models import ColumnDefinition, ReconciledSchema
from tableimport.importer.notify import Notifier

logger = logging.getLogger(__name__)


def build_create_table(
    qualified_table: str,
    columns: Sequence[ColumnDefinition],
    dialect: Dialect,
) -> str:
    col_defs = ", ".join(
        f"{dialect.wrap_if_needed(col.name)} {col.type}".strip() for col in columns
    )
    return f"CREATE TABLE {qualified_table} ({col_defs})"


def build_insert(qualified_table: str, columns: Sequence[str], dialect: Dialect) -> str:
    col_list = ", ".join(dialect.wrap_names_if_needed(columns))
    return (
        f"INSERT INTO {qualified_table} ({col_list}) "
        f"VALUES ({dialect.placeholders(len(columns))})"
    )


class SchemaReconciler:
    """
    Decides which destination columns an import writes to.

    A destination with no columns doesn't exist yet and gets created with
    exactly the source's columns. Otherwise the column lists are matched
    by position: excess source columns are dropped, and destination
    columns past the source's width are left for their defaults.
    """

    def __init__(self, notifier: Notifier) -> None:
        self.notifier = notifier

    def reconcile(
        self,
        table: str,
        existing_columns: Sequence[str],
        source_columns: Sequence[ColumnDefinition],
    ) -> ReconciledSchema:
        source_names = tuple(col.name for col in source_columns)

        if not existing_columns:
            logger.info("Table %s doesn't exist, it will be created", table)
            return ReconciledSchema(columns=source_names, create_table=True)

        if len(existing_columns) < len(source_names):
            self.notifier.warn(
                f"Table '{table}' has less columns than there are columns in the "
                "data to be imported. Excessive data columns will be ignored."
            )
            columns = tuple(existing_columns)
        elif len(existing_columns) > len(source_names):
            self.notifier.info(
                f"Table '{table}' has more columns than there are columns in the "
                "data to be imported. Some columns in the table will be left empty."
            )
            columns = tuple(existing_columns[: len(source_names)])
        else:
            columns = tuple(existing_columns)

        return ReconciledSchema(columns=columns, create_table=False)
