"""Tests for environment configuration and the recent-log buffer."""

import logging
from pathlib import Path

from sheetgraph.core import MAX_HISTORY_SIZE, RecentLogHandler, SheetGraphConfig
from sheetgraph.start_http_server import apply_args, build_parser


class TestSheetGraphConfig:
    def test_defaults(self, monkeypatch):
        for name in ("SG_HISTORY_SIZE", "SG_CACHE_DIR", "SG_CACHE_MAX_BYTES", "SG_ANALYZER_URL",
                     "SG_TRANSLATOR_URL", "SG_REPAIR_GRAPHS"):
            monkeypatch.delenv(name, raising=False)

        config = SheetGraphConfig.from_env()
        assert config.history_size == MAX_HISTORY_SIZE
        assert config.cache_max_bytes is None
        assert config.analyzer_url is None
        assert config.repair_graphs is True

    def test_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("SG_HISTORY_SIZE", "4")
        monkeypatch.setenv("SG_CACHE_DIR", str(tmp_path))
        monkeypatch.setenv("SG_CACHE_MAX_BYTES", "2048")
        monkeypatch.setenv("SG_ANALYZER_URL", "http://localhost:9000")
        monkeypatch.setenv("SG_COLLABORATOR_TIMEOUT", "5.5")
        monkeypatch.setenv("SG_REPAIR_GRAPHS", "no")

        config = SheetGraphConfig.from_env()
        assert config.history_size == 4
        assert config.cache_dir == Path(tmp_path)
        assert config.cache_max_bytes == 2048
        assert config.analyzer_url == "http://localhost:9000"
        assert config.collaborator_timeout == 5.5
        assert config.repair_graphs is False


class TestRecentLogHandler:
    def make_logger(self, handler):
        logger = logging.getLogger("sheetgraph.tests.buffer")
        logger.setLevel(logging.DEBUG)
        logger.propagate = False
        logger.addHandler(handler)
        return logger

    def test_newest_first_and_bounded(self):
        handler = RecentLogHandler(capacity=3)
        logger = self.make_logger(handler)
        try:
            for i in range(5):
                logger.warning(f"event {i}")
        finally:
            logger.removeHandler(handler)

        records = handler.records()
        assert [r["message"] for r in records] == ["event 4", "event 3", "event 2"]
        assert records[0]["level"] == "warning"
        assert records[0]["logger"] == "sheetgraph.tests.buffer"

    def test_level_filter_and_clear(self):
        handler = RecentLogHandler()
        logger = self.make_logger(handler)
        try:
            logger.debug("hidden")
            logger.info("shown")
        finally:
            logger.removeHandler(handler)

        assert [r["message"] for r in handler.records()] == ["shown"]
        handler.clear()
        assert handler.records() == []


class TestServerOptions:
    def test_given_options_override_environment(self):
        environ = {"SG_HTTP_PORT": "8765", "SG_CACHE_DIR": "/var/cache/sg"}
        args = build_parser().parse_args(["--port", "9001", "--log-level", "debug", "--history-size", "4"])
        apply_args(args, environ)

        assert environ == {
            "SG_HTTP_PORT": "9001",
            "SG_CACHE_DIR": "/var/cache/sg",
            "SG_LOG_LEVEL": "DEBUG",
            "SG_HISTORY_SIZE": "4",
        }

    def test_cleanup_interval_from_env(self, monkeypatch):
        monkeypatch.setenv("SG_CLEANUP_INTERVAL", "2.5")
        assert SheetGraphConfig.from_env().cleanup_interval == 2.5
