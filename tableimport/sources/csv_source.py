from __future__ import annotations

import csv
import logging
from collections.abc import Iterator
from pathlib import Path
from typing import IO

from tableimport.importer.config import ImportConfig
from tableimport.importer.models import ColumnDefinition, Row
from tableimport.sources.base import RowSource

logger = logging.getLogger(__name__)


class CsvRowSource(RowSource):
    """
    Stream rows out of a CSV file.

    Args:
        filepath:     Path to .csv file.
        delimiter:    Field delimiter.
        encoding:     File encoding.
        header:       First line holds column names. Without a header the
                      columns are named column1, column2, ...
        column_type:  Type declared for every column when the importer
                      has to create the table. Empty leaves it to the
                      database.

    Empty fields come through as NULL, blank lines are skipped.

    Usage:
        source = CsvRowSource("data.csv")
        ImportCoordinator(engine, source, "people").run()
    """

    def __init__(
        self,
        filepath: str | Path,
        delimiter: str = ",",
        encoding: str = "utf-8",
        header: bool = True,
        column_type: str = "",
    ) -> None:
        self.filepath = Path(filepath)
        self.delimiter = delimiter
        self.encoding = encoding
        self.header = header
        self.column_type = column_type

        self._file: IO[str] | None = None
        self._reader = None
        self._columns: list[ColumnDefinition] = []
        self._first_row: list[str] | None = None

    @property
    def name(self) -> str:
        return self.filepath.name

    def setup(self, config: ImportConfig) -> bool:
        if not self.filepath.exists():
            logger.error("CSV file not found: %s", self.filepath)
            return False

        self._file = open(self.filepath, encoding=self.encoding, newline="")
        self._reader = csv.reader(self._file, delimiter=self.delimiter)
        first = next((r for r in self._reader if r), None)
        if first is None:
            self._columns = []
        elif self.header:
            self._columns = [ColumnDefinition(n, self.column_type) for n in first]
        else:
            self._columns = [
                ColumnDefinition(f"column{i}", self.column_type)
                for i in range(1, len(first) + 1)
            ]
            self._first_row = first
        return True

    def columns(self) -> list[ColumnDefinition]:
        return list(self._columns)

    def rows(self) -> Iterator[Row]:
        if self._reader is None:
            return
        if self._first_row is not None:
            first, self._first_row = self._first_row, None
            yield self._to_values(first)
        for record in self._reader:
            # blank lines
            if not record:
                continue
            yield self._to_values(record)

    @staticmethod
    def _to_values(record: list[str]) -> list[str | None]:
        return [v if v != "" else None for v in record]

    def teardown(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None
            self._reader = None
