from __future__ import annotations


class ImportFailure(Exception):
    """An import run can't continue. The message is shown to the user."""


class ConfigurationError(ImportFailure):
    """The source can't be imported as configured (no columns, setup refused)."""


class TransactionError(ImportFailure):
    """The transaction couldn't be started or committed."""


class SchemaError(ImportFailure):
    """The destination table couldn't be created."""


class RowError(ImportFailure):
    """A row couldn't be inserted and errors aren't being ignored."""

    def __init__(self, row_number: int, detail: str) -> None:
        super().__init__(f"Error while importing data: {detail}")
        self.row_number = row_number
        self.detail = detail


class CancellationError(ImportFailure):
    def __init__(self) -> None:
        super().__init__("Error while importing data: Interrupted.")
