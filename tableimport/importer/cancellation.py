from __future__ import annotations

import threading


class CancellationToken:
    """Stop flag set from any thread and polled by the import worker."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._cancelled = False

    def cancel(self) -> None:
        with self._lock:
            self._cancelled = True

    def is_cancelled(self) -> bool:
        with self._lock:
            return self._cancelled
