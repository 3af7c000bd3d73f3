"""Tests for the logging setup."""
import logging

import pytest

from hr_etl.common.logging import (
    LOG_LEVEL_ENV,
    configure_logging,
    create_run_log_file,
    resolve_level,
)


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    sql_level = logging.getLogger("sqlalchemy.engine").level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
    logging.getLogger("sqlalchemy.engine").setLevel(sql_level)


class TestResolveLevel:
    """Tests for resolve_level."""

    def test_name(self):
        assert resolve_level("debug") == logging.DEBUG

    def test_constant(self):
        assert resolve_level(logging.WARNING) == logging.WARNING

    def test_environment(self, monkeypatch):
        monkeypatch.setenv(LOG_LEVEL_ENV, "error")
        assert resolve_level() == logging.ERROR

    def test_default_info(self, monkeypatch):
        monkeypatch.delenv(LOG_LEVEL_ENV, raising=False)
        assert resolve_level() == logging.INFO

    def test_unknown(self):
        with pytest.raises(ValueError):
            resolve_level("chatty")


class TestConfigureLogging:
    """Tests for configure_logging and create_run_log_file."""

    def test_run_log_file_name(self, tmp_path):
        path = create_run_log_file(str(tmp_path / "logs"))
        assert (tmp_path / "logs").is_dir()
        assert path.endswith(".log")
        assert "hr_etl_run_" in path

    def test_writes_log_file(self, tmp_path, restore_root_logger):
        log_file = tmp_path / "nested" / "run.log"
        configure_logging(level="INFO", log_file=str(log_file))
        logging.getLogger("hr_etl.test").info("cleaner started")
        for handler in logging.getLogger().handlers:
            handler.flush()
        assert "cleaner started" in log_file.read_text(encoding="utf-8")

    def test_sql_echo_off_by_default(self, restore_root_logger):
        configure_logging(level="DEBUG")
        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
        configure_logging(level="DEBUG", echo_sql=True)
        assert logging.getLogger("sqlalchemy.engine").level == logging.INFO
