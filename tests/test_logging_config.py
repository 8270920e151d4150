"""Tests for logging setup."""

import pytest
from loguru import logger

from parcelai.config import TrackerConfig
from parcelai.logging_config import TrackingLogger, setup_logging


@pytest.fixture
def log_dir(tmp_path):
    yield tmp_path / "logs"
    # flushes the enqueued file sinks
    logger.remove()


class TestSetupLogging:
    """Tests for setup_logging file sinks."""

    def test_lookup_log_only_has_lookups(self, log_dir):
        """Test lookups are tagged and split into their own file."""
        setup_logging(TrackerConfig(log_file=str(log_dir / "tracker.log")), console=False)

        logger.info("Cache sweep finished")
        TrackingLogger("1Z999AA10123456784").info("Scrape started")
        logger.error("Fetcher closed unexpectedly")
        logger.remove()

        main_log = (log_dir / "tracker.log").read_text()
        lookups = (log_dir / "lookups.log").read_text()
        errors = (log_dir / "error.log").read_text()

        assert "Cache sweep finished" in main_log
        assert "1Z999AA10123456784" in main_log
        assert "[Track:1Z999AA10123456784] Scrape started" in lookups
        assert "Cache sweep finished" not in lookups
        assert "Fetcher closed unexpectedly" in errors
        assert "Scrape started" not in errors

    def test_console_only(self, log_dir):
        """Test no files are written without LOG_FILE."""
        setup_logging(TrackerConfig(), console=False)

        TrackingLogger("ABC123").warning("nothing to write")

        assert not log_dir.exists()
