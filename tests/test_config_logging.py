"""Settings and logging test cases."""
import sys
import pytest
from loguru import logger

from genrepo.config import Settings
from genrepo.database.sql_driver import SQLDriver
from genrepo.logging.logger import LogConfig, get_logger


@pytest.fixture
def records():
    """Capture loguru records emitted during the test."""
    captured = []
    handler_id = logger.add(lambda message: captured.append(message.record), level="DEBUG")
    yield captured
    logger.remove(handler_id)


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("QUERY_TIMEOUT_SECONDS", "2.5")
    monkeypatch.setenv("database_url", "sqlite:///./other.db")

    settings = Settings()

    assert settings.QUERY_TIMEOUT_SECONDS == 2.5
    assert settings.DATABASE_URL == "sqlite:///./other.db"


def test_settings_defaults(monkeypatch):
    monkeypatch.delenv("QUERY_TIMEOUT_SECONDS", raising=False)

    settings = Settings(_env_file=None)

    assert settings.QUERY_TIMEOUT_SECONDS is None
    assert settings.LOG_TO_FILE is False


def test_get_logger_binds_trace_id(records):
    get_logger("tests", trace_id="abc123").info("hello")

    assert records[-1]["extra"]["trace_id"] == "abc123"
    assert records[-1]["extra"]["name"] == "tests"


def test_unit_of_work_binds_trace_id(sync_driver: SQLDriver, records):
    with sync_driver.unit_of_work() as unit:
        get_logger("tests").info("inside")
        trace_id = unit.trace_id

    get_logger("tests").info("outside")

    assert records[-2]["extra"]["trace_id"] == trace_id
    assert records[-1]["extra"]["trace_id"] == "system"


def test_setup_logging_writes_files(tmp_path, monkeypatch):
    from genrepo.config import settings

    monkeypatch.setattr(settings, "LOG_DIR", str(tmp_path / "logs"))
    try:
        LogConfig.setup_logging(level="DEBUG", to_file=True)
        get_logger("tests").info("to file")
        logger.complete()
    finally:
        logger.remove()
        logger.add(sys.stderr)

    assert list((tmp_path / "logs").glob("genrepo_*.log"))
