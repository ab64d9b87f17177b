from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class ImportConfig:
    """
    Options for a single import run.

    Attributes:
        skip_transaction:  Don't wrap the run in a transaction. Every row is
                           committed as soon as it is inserted, and the
                           CREATE TABLE statement skips the engine's write
                           lock.
        ignore_errors:     Turn row insertion failures into warnings and
                           carry on with the next row instead of aborting.
    """

    skip_transaction: bool = False
    ignore_errors: bool = False

    OPTION_NAMES = {
        "skipTransaction": "skip_transaction",
        "skip_transaction": "skip_transaction",
        "ignoreErrors": "ignore_errors",
        "ignore_errors": "ignore_errors",
    }

    @classmethod
    def from_options(cls, options: Mapping[str, Any]) -> ImportConfig:
        unknown = set(options) - set(cls.OPTION_NAMES)
        if unknown:
            raise ValueError(f"Unknown import options: {sorted(unknown)}")
        return cls(**{cls.OPTION_NAMES[k]: bool(v) for k, v in options.items()})
