from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


class Notifier:
    """
    Sink for messages meant for whoever started the import.

    The default implementation just logs them. Subclass it to forward
    messages to a UI or a chat channel; methods must not block or raise.
    """

    def warn(self, text: str) -> None:
        logger.warning(text)

    def info(self, text: str) -> None:
        logger.info(text)

    def error(self, text: str) -> None:
        logger.error(text)


class RecordingNotifier(Notifier):
    """Forwards to another sink and keeps what was sent during one run."""

    def __init__(self, sink: Notifier | None = None) -> None:
        self.sink = sink or Notifier()
        self.warnings: list[str] = []
        self.infos: list[str] = []
        self.errors: list[str] = []

    def warn(self, text: str) -> None:
        self.warnings.append(text)
        self.sink.warn(text)

    def info(self, text: str) -> None:
        self.infos.append(text)
        self.sink.info(text)

    def error(self, text: str) -> None:
        self.errors.append(text)
        self.sink.error(text)
