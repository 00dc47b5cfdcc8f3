"""
Tests for shared/log.py and shared/logging_config.py.
"""

import json
import logging

import pytest


class TestCreateLogger:
    """Tests for create_logger() component functions."""

    def test_returns_five_functions(self):
        """create_logger returns trace/debug/info/warn/error callables."""
        from shared.log import create_logger

        funcs = create_logger("Test")

        assert len(funcs) == 5
        assert all(callable(f) for f in funcs)

    def test_component_logger_name(self):
        """Components log under sparkwms.<component>."""
        from shared.log import get_component_logger

        assert get_component_logger("Manager").name == "sparkwms.manager"
        assert get_component_logger().name == "sparkwms"

    def test_messages_prefixed_with_component(self, caplog):
        """Messages carry a [Component] prefix."""
        from shared.log import create_logger

        _, _, log_info, log_warn, _ = create_logger("Queue")

        with caplog.at_level(logging.INFO, logger="sparkwms"):
            log_info("hello")
            log_warn("careful")

        messages = [r.getMessage() for r in caplog.records]
        assert messages == ["[Queue] hello", "[Queue] careful"]
        assert caplog.records[1].levelno == logging.WARNING
        assert caplog.records[0].name == "sparkwms.queue"

    def test_trace_level(self, caplog):
        """log_trace emits at the custom TRACE level below DEBUG."""
        from shared.log import TRACE, create_logger

        log_trace = create_logger("Deep")[0]

        with caplog.at_level(TRACE, logger="sparkwms"):
            log_trace("details")

        assert caplog.records[0].levelno == TRACE
        assert logging.getLevelName(TRACE) == "TRACE"


class TestConfigureLogging:
    """Tests for configure_logging()."""

    @pytest.fixture(autouse=True)
    def restore_root(self):
        root = logging.getLogger()
        handlers, level = list(root.handlers), root.level
        yield
        root.handlers[:] = handlers
        root.setLevel(level)

    def test_json_output(self, capsys):
        """JSON mode emits one JSON object per line with renamed fields."""
        from shared.logging_config import configure_logging

        configure_logging("info", json_output=True)
        logging.getLogger("sparkwms.test").info("delivered")

        line = capsys.readouterr().err.strip().splitlines()[-1]
        record = json.loads(line)
        assert record["msg"] == "delivered"
        assert record["level"] == "INFO"
        assert record["name"] == "sparkwms.test"
        assert "ts" in record

    def test_plain_output(self, capsys):
        """Plain mode emits human-readable lines."""
        from shared.logging_config import configure_logging

        configure_logging("info", json_output=False)
        logging.getLogger("sparkwms.test").warning("offline")

        err = capsys.readouterr().err
        assert "[WARNING] sparkwms.test: offline" in err

    def test_level_filtering(self, capsys):
        """Records below the configured level are dropped."""
        from shared.logging_config import configure_logging

        configure_logging("warning", json_output=False)
        logging.getLogger("sparkwms.test").info("hidden")

        assert "hidden" not in capsys.readouterr().err

    def test_trace_level_name(self):
        """'trace' maps to the custom TRACE level."""
        from shared.log import TRACE
        from shared.logging_config import configure_logging

        configure_logging("trace", json_output=False)

        assert logging.getLogger().level == TRACE

    def test_replaces_existing_handlers(self):
        """Repeated configuration does not duplicate handlers."""
        from shared.logging_config import configure_logging

        configure_logging("info")
        configure_logging("info")

        assert len(logging.getLogger().handlers) == 1
