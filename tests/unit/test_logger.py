"""
Unit tests for logging setup and log rotation (host_backup/logger.py).
"""

import logging
from datetime import datetime

from host_backup.logger import LOG_FILE_NAME, configure_logging, rotate_logs


class TestRotateLogs:
    def test_renames_current_log_with_timestamp(self, tmp_path):
        (tmp_path / LOG_FILE_NAME).write_text("previous run\n")

        rotated = rotate_logs(tmp_path, now=datetime(2024, 5, 1, 3, 0, 9))

        assert rotated == tmp_path / "backup_2024-05-01_03-00-09.log"
        assert rotated.read_text() == "previous run\n"
        assert not (tmp_path / LOG_FILE_NAME).exists()

    def test_keeps_only_newest_archives(self, tmp_path):
        for day in range(1, 36):
            (tmp_path / f"backup_2024-01-{day:02d}_00-00-00.log").write_text("")

        rotate_logs(tmp_path, max_logs=30)

        remaining = sorted(p.name for p in tmp_path.glob("backup_*.log"))
        assert len(remaining) == 30
        assert remaining[0] == "backup_2024-01-06_00-00-00.log"

    def test_creates_missing_directory(self, tmp_path):
        assert rotate_logs(tmp_path / "logs") is None
        assert (tmp_path / "logs").is_dir()


def test_configure_logging_writes_to_file(tmp_path, restore_root_logger):
    configure_logging("DEBUG", tmp_path)
    logging.getLogger("host_backup.test").debug("hello from the test")

    for handler in logging.getLogger().handlers:
        handler.flush()

    assert logging.getLogger().level == logging.DEBUG
    assert "hello from the test" in (tmp_path / LOG_FILE_NAME).read_text()
