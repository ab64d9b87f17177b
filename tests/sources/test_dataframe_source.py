import numpy as np
import pandas as pd

from tableimport.importer.models import ColumnDefinition
from tableimport.sources.dataframe_source import DataFrameRowSource, declared_type


class TestDeclaredType:
    def test_dtype_mapping(self):
        df = pd.DataFrame(
            {
                "id": [1, 2],
                "score": [1.5, 2.5],
                "active": [True, False],
                "seen": pd.to_datetime(["2024-01-01", "2024-01-02"]),
                "name": ["a", "b"],
            }
        )
        assert [declared_type(t) for t in df.dtypes] == [
            "INTEGER",
            "REAL",
            "BOOLEAN",
            "TIMESTAMP",
            "TEXT",
        ]


class TestDataFrameRowSource:
    def test_columns_from_dtypes(self):
        df = pd.DataFrame({"id": [1], "name": ["a"]})
        assert DataFrameRowSource(df).columns() == [
            ColumnDefinition("id", "INTEGER"),
            ColumnDefinition("name", "TEXT"),
        ]

    def test_explicit_types_win(self):
        df = pd.DataFrame({"id": [1], "name": ["a"]})
        source = DataFrameRowSource(df, column_types={"name": "VARCHAR(40)"})
        assert source.columns()[1] == ColumnDefinition("name", "VARCHAR(40)")

    def test_missing_values_become_none(self):
        df = pd.DataFrame({"id": [1, 2], "score": [1.5, np.nan], "name": ["a", None]})
        rows = list(DataFrameRowSource(df).rows())
        assert rows == [[1, 1.5, "a"], [2, None, None]]

    def test_values_are_python_scalars(self):
        df = pd.DataFrame({"id": np.array([7], dtype="int64"), "flag": [True]})
        (row,) = DataFrameRowSource(df).rows()
        assert type(row[0]) is int
        assert type(row[1]) is bool

    def test_timestamps_as_iso_text(self):
        df = pd.DataFrame({"seen": pd.to_datetime(["2024-01-01 12:30"])})
        assert list(DataFrameRowSource(df).rows()) == [["2024-01-01T12:30:00"]]

    def test_import_into_sqlite(self, sqlite_engine, table_rows):
        from tableimport.importer.coordinator import ImportCoordinator

        df = pd.DataFrame({"id": [1, 2], "name": ["alice", None]})
        outcome = ImportCoordinator(sqlite_engine, DataFrameRowSource(df), "people").run()
        assert outcome.success
        assert sqlite_engine.list_existing_columns("people") == ["id", "name"]
        assert table_rows(sqlite_engine, "people") == [(1, "alice"), (2, None)]
