import logging
import os
import threading
from unittest.mock import patch

import pytest

from sdklib.logging_config import (
    AvdLogContext,
    RelativePathFormatter,
    build_formatter,
    init_error_reporting,
    setup_logger,
)
from sdklib.utils.ansi_colors import RED, strip_ansi


def make_record(level=logging.INFO, pathname="/somewhere/else/module.py", msg="hello"):
    return logging.LogRecord("avd.test", level, pathname, 42, msg, None, None)


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield root
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


class TestRelativePathFormatter:
    def test_short_path_kept(self):
        formatter = RelativePathFormatter(timezone="UTC")
        assert formatter.shorten_path("a/b.py") == "a/b.py"

    def test_project_path_made_relative(self):
        formatter = RelativePathFormatter(timezone="UTC")
        path = os.path.join(formatter.project_root, "sdklib", "config.py")
        assert formatter.shorten_path(path) == os.path.join("sdklib", "config.py")

    def test_long_path_keeps_file_name(self):
        formatter = RelativePathFormatter(timezone="UTC")
        shortened = formatter.shorten_path("/very/long/directory/structure/avd_registry.py")

        assert len(shortened) <= formatter.max_path_length
        assert shortened.startswith("...")
        assert shortened.endswith("avd_registry.py")

    def test_timezone(self):
        formatter = RelativePathFormatter(timezone="America/New_York")
        record = make_record()
        record.created = 0

        assert formatter.formatTime(record).endswith("EST")
        assert formatter.formatTime(record, "%H:%M") == "19:00"

    def test_colors_only_non_info_levels(self):
        formatter = build_formatter(True)

        assert f"{RED}[ERROR]" in formatter.format(make_record(logging.ERROR))
        assert "[ INFO]" in formatter.format(make_record(logging.INFO))

    def test_plain_formatter_has_no_escape_codes(self):
        formatted = build_formatter(False).format(make_record(logging.ERROR, msg="failed"))

        assert formatted == strip_ansi(formatted)
        assert formatted.startswith("[ERROR]")
        assert formatted.endswith("failed")


def test_setup_logger_writes_log_file(tmp_path, restore_root_logger):
    root = setup_logger(str(tmp_path), level="WARNING")

    assert len(root.handlers) == 2
    logging.getLogger("avd.test").debug("debug goes to the file")
    for handler in root.handlers:
        handler.flush()

    with open(tmp_path / "avd_manager.log") as f:
        assert "debug goes to the file" in f.read()


class TestAvdLogContext:
    def test_disabled_without_log_dir(self):
        with AvdLogContext("Pixel", None) as context:
            assert context.handler is None
        assert not logging.getLogger("avd").handlers

    def test_only_records_from_own_thread(self, tmp_path, caplog):
        logger = logging.getLogger("avd.core.test")
        entered = threading.Event()
        logged = threading.Event()

        def other_operation():
            entered.wait()
            logger.warning("from another AVD")
            logged.set()

        other = threading.Thread(target=other_operation)
        other.start()

        with caplog.at_level(logging.DEBUG):
            with AvdLogContext("Pixel", str(tmp_path)):
                logger.info("from this AVD")
                entered.set()
                logged.wait(5)
            logger.info("after the context")
        other.join()

        with open(tmp_path / "avd_logs" / "Pixel.log") as f:
            content = f.read()

        assert "from this AVD" in content
        assert "from another AVD" not in content
        assert "after the context" not in content
        assert not logging.getLogger("avd").handlers

    def test_handler_removed_on_exception(self, tmp_path):
        with pytest.raises(RuntimeError):
            with AvdLogContext("Pixel", str(tmp_path)):
                raise RuntimeError("boom")

        assert not logging.getLogger("avd").handlers


class TestErrorReporting:
    def test_no_dsn(self, monkeypatch, caplog):
        monkeypatch.delenv("SENTRY_DSN", raising=False)

        with patch("sdklib.logging_config.sentry_sdk.init") as mock_init:
            assert not init_error_reporting()

        mock_init.assert_not_called()
        assert "Sentry not initialized" in caplog.text

    def test_with_dsn(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "Staging")

        with patch("sdklib.logging_config.sentry_sdk.init") as mock_init:
            assert init_error_reporting("https://key@sentry.example.com/1")

        kwargs = mock_init.call_args.kwargs
        assert kwargs["dsn"] == "https://key@sentry.example.com/1"
        assert kwargs["environment"] == "staging"
        assert kwargs["send_default_pii"] is False
