import logging
import threading
from unittest.mock import MagicMock

from tableimport.importer.cancellation import CancellationToken
from tableimport.importer.notify import Notifier, RecordingNotifier


class TestNotifier:
    def test_default_sink_logs(self, caplog):
        with caplog.at_level(logging.INFO, logger="tableimport.importer.notify"):
            Notifier().warn("careful")
            Notifier().info("fyi")
            Notifier().error("broken")
        levels = [(r.levelname, r.getMessage()) for r in caplog.records]
        assert levels == [("WARNING", "careful"), ("INFO", "fyi"), ("ERROR", "broken")]

    def test_recording_notifier_forwards_and_keeps(self):
        sink = MagicMock(spec=Notifier)
        notifier = RecordingNotifier(sink)
        notifier.warn("w")
        notifier.info("i")
        notifier.error("e")

        assert notifier.warnings == ["w"]
        assert notifier.infos == ["i"]
        assert notifier.errors == ["e"]
        sink.warn.assert_called_once_with("w")
        sink.error.assert_called_once_with("e")


class TestCancellationToken:
    def test_starts_clear(self):
        assert CancellationToken().is_cancelled() is False

    def test_cancel_from_another_thread(self):
        token = CancellationToken()
        worker = threading.Thread(target=token.cancel)
        worker.start()
        worker.join()
        assert token.is_cancelled() is True

    def test_cancel_is_idempotent(self):
        token = CancellationToken()
        token.cancel()
        token.cancel()
        assert token.is_cancelled()
