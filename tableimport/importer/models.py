from __future__ import annotations

from dataclasses import dataclass, field
from typing import NamedTuple, Sequence

Value = None | int | float | str | bytes
Row = Sequence[Value]


class ColumnDefinition(NamedTuple):
    """A source column: its name and the type it declares (may be empty)."""

    name: str
    type: str = ""


@dataclass(frozen=True)
class ReconciledSchema:
    """
    Destination columns the INSERT targets, fixed before the first row.

    create_table is True when the destination didn't exist and has to be
    created from the source's column definitions.
    """

    columns: tuple[str, ...]
    create_table: bool = False


@dataclass(frozen=True)
class RunOutcome:
    success: bool
    reason: str | None = None
    table_created: bool = False
    rows_imported: int = 0
    rows_failed: int = 0
    warnings: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def succeeded(cls, **kwargs) -> RunOutcome:
        return cls(success=True, **kwargs)

    @classmethod
    def failed(cls, reason: str, **kwargs) -> RunOutcome:
        return cls(success=False, reason=reason, **kwargs)
