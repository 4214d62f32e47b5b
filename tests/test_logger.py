"""
Tests for Logging Setup
=======================
"""

import logging
import threading

import pytest

from gesture_pipeline.core.pipeline import build_classifier
from gesture_pipeline.utils.config import AppConfig, LoggingConfig, ModelPaths
from gesture_pipeline.utils.logger import log_timing, setup_logging


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


class TestSetupLogging:
    """Test suite for setup_logging()."""

    def test_console_only(self):
        root = setup_logging(LoggingConfig(level="warning"))
        assert root.level == logging.WARNING
        assert len(root.handlers) == 1

    def test_repeated_setup_replaces_handlers(self):
        setup_logging()
        root = setup_logging()
        assert len(root.handlers) == 1

    def test_file_records_thread_name(self, tmp_path):
        """Records emitted from a stage thread are tagged with its name."""
        log_file = tmp_path / "logs" / "pipeline.log"
        setup_logging(LoggingConfig(level="DEBUG", file=str(log_file)))

        worker = threading.Thread(
            target=lambda: logging.getLogger("gesture_pipeline.test").info("frame skipped"),
            name="recognizer",
        )
        worker.start()
        worker.join()
        for handler in logging.getLogger().handlers:
            handler.flush()

        line = log_file.read_text().strip().splitlines()[-1]
        assert "recognizer" in line
        assert "gesture_pipeline.test" in line
        assert line.endswith("| frame skipped")


class TestLogTiming:
    """Test suite for the log_timing decorator."""

    def test_returns_result(self, caplog):
        @log_timing
        def load():
            return 42

        with caplog.at_level(logging.INFO):
            assert load() == 42
        assert "load finished in" in caplog.text

    def test_build_classifier_timed(self, tmp_path, caplog):
        config = AppConfig(models=ModelPaths(gesture_classifier=str(tmp_path / "none.onnx")))
        with caplog.at_level(logging.INFO):
            classifier = build_classifier(config)
        assert classifier is not None
        assert "build_classifier finished in" in caplog.text


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
