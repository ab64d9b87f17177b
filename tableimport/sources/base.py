from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterator

from tableimport.importer.config import ImportConfig
from tableimport.importer.models import ColumnDefinition, Row


class RowSource(ABC):
    """
    Something that produces rows for an import run.

    The coordinator calls setup() first, then columns() once, then drains
    rows(), and always finishes with a single teardown() call, whatever the
    outcome of the run.
    """

    @property
    def name(self) -> str:
        return type(self).__name__

    def setup(self, config: ImportConfig) -> bool:
        """Prepare the source. Returning False aborts the run untouched."""
        return True

    @abstractmethod
    def columns(self) -> list[ColumnDefinition]:
        """Ordered column definitions; must not be empty."""

    @abstractmethod
    def rows(self) -> Iterator[Row]:
        """Rows in source order. Not restartable within a run."""

    def teardown(self) -> None:
        pass
