"""
Unit tests for the entry point.
"""

import logging

import json_log_formatter
import pytest
from fastapi import FastAPI

from controlplane.varadhi_server import main as main_module
from controlplane.varadhi_server.config import ObservabilityConfig, ServerConfig


@pytest.fixture
def root_logger():
    """Root logger with its handlers and level restored afterwards."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    root.handlers = handlers
    root.setLevel(level)


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_json_format(self, root_logger):
        main_module.setup_logging(ServerConfig())
        assert len(root_logger.handlers) == 1
        assert isinstance(root_logger.handlers[0].formatter, json_log_formatter.JSONFormatter)
        assert root_logger.level == logging.INFO

    def test_text_format_and_level(self, root_logger):
        config = ServerConfig(
            observability=ObservabilityConfig(log_level="debug", log_format="text")
        )
        main_module.setup_logging(config)
        formatter = root_logger.handlers[0].formatter
        assert not isinstance(formatter, json_log_formatter.JSONFormatter)
        assert root_logger.level == logging.DEBUG
        assert logging.getLogger("kazoo").level == logging.WARNING


class TestMain:
    """Tests for main()."""

    def test_invalid_config_exits(self, monkeypatch, capsys):
        monkeypatch.setenv("METASTORE_BACKEND", "etcd")
        with pytest.raises(SystemExit) as exc_info:
            main_module.main()
        assert exc_info.value.code == 1
        assert "Configuration error" in capsys.readouterr().err

    def test_serves_app(self, monkeypatch, root_logger):
        monkeypatch.setenv("METASTORE_BACKEND", "memory")
        monkeypatch.setenv("DEPLOYED_REGION", "r1")
        monkeypatch.setenv("VARADHI_PORT", "9090")
        calls = []
        monkeypatch.setattr(
            main_module.uvicorn, "run", lambda app, **kwargs: calls.append((app, kwargs))
        )

        main_module.main()

        (app, kwargs), = calls
        assert isinstance(app, FastAPI)
        assert kwargs == {"host": "0.0.0.0", "port": 9090, "log_config": None}
