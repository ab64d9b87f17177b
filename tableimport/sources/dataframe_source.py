from __future__ import annotations

from collections.abc import Iterator, Mapping

import pandas as pd

from tableimport.importer.models import ColumnDefinition, Row
from tableimport.sources.base import RowSource


def declared_type(dtype) -> str:
    if pd.api.types.is_bool_dtype(dtype):
        return "BOOLEAN"
    if pd.api.types.is_integer_dtype(dtype):
        return "INTEGER"
    if pd.api.types.is_float_dtype(dtype):
        return "REAL"
    if pd.api.types.is_datetime64_any_dtype(dtype):
        return "TIMESTAMP"
    return "TEXT"


class DataFrameRowSource(RowSource):
    """
    Rows from an in-memory DataFrame.

    Column types come from *column_types* where given, otherwise from the
    frame's dtypes. Missing values (NaN, NaT, None) are imported as NULL.
    """

    def __init__(
        self,
        df: pd.DataFrame,
        column_types: Mapping[str, str] | None = None,
        name: str = "dataframe",
    ) -> None:
        self.df = df
        self.column_types = dict(column_types or {})
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    def columns(self) -> list[ColumnDefinition]:
        return [
            ColumnDefinition(
                str(col), self.column_types.get(str(col), declared_type(dtype))
            )
            for col, dtype in self.df.dtypes.items()
        ]

    def rows(self) -> Iterator[Row]:
        for record in self.df.itertuples(index=False, name=None):
            yield [self._to_value(v) for v in record]

    @staticmethod
    def _to_value(value):
        if value is None or (pd.api.types.is_scalar(value) and pd.isna(value)):
            return None
        if isinstance(value, pd.Timestamp):
            return value.isoformat()
        if hasattr(value, "item"):
            return value.item()
        return value
