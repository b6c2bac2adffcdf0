"""
Unit tests for prune scheduling (host_backup/retention.py).
"""

from host_backup.retention import SECONDS_PER_DAY, FilePruneStateStore, RetentionScheduler, is_prune_due

PRUNED_AT = 1_700_000_000


class TestIsPruneDue:
    def test_due_without_previous_prune(self):
        assert is_prune_due(None, PRUNED_AT) is True

    def test_not_due_right_after_prune(self):
        assert is_prune_due(PRUNED_AT, PRUNED_AT + 1) is False

    def test_due_exactly_at_interval(self):
        assert is_prune_due(PRUNED_AT, PRUNED_AT + 30 * SECONDS_PER_DAY) is True

    def test_not_due_one_second_before_interval(self):
        assert is_prune_due(PRUNED_AT, PRUNED_AT + 30 * SECONDS_PER_DAY - 1) is False

    def test_custom_interval(self):
        assert is_prune_due(PRUNED_AT, PRUNED_AT + 7 * SECONDS_PER_DAY, interval_days=7) is True


class TestFilePruneStateStore:
    def test_missing_file_reads_none(self, tmp_path):
        assert FilePruneStateStore(tmp_path / ".last_prune").read() is None

    def test_write_then_read(self, tmp_path):
        store = FilePruneStateStore(tmp_path / ".last_prune")
        store.write(PRUNED_AT)

        assert store.read() == PRUNED_AT
        assert (tmp_path / ".last_prune").read_text() == f"{PRUNED_AT}\n"

    def test_garbage_reads_none(self, tmp_path):
        path = tmp_path / ".last_prune"
        path.write_text("yesterday")

        assert FilePruneStateStore(path).read() is None

    def test_binary_content_reads_none(self, tmp_path):
        path = tmp_path / ".last_prune"
        path.write_bytes(b"\xff\xfe\x00garbage")

        assert FilePruneStateStore(path).read() is None

    def test_directory_in_place_of_file_reads_none(self, tmp_path):
        path = tmp_path / ".last_prune"
        path.mkdir()

        assert FilePruneStateStore(path).read() is None


class TestRetentionScheduler:
    def test_record_then_query(self, tmp_path):
        scheduler = RetentionScheduler(FilePruneStateStore(tmp_path / ".last_prune"))

        assert scheduler.is_prune_due(PRUNED_AT) is True
        scheduler.record_prune_completed(PRUNED_AT)

        assert scheduler.last_prune() == PRUNED_AT
        assert scheduler.is_prune_due(PRUNED_AT + 1) is False
        assert scheduler.is_prune_due(PRUNED_AT + 30 * SECONDS_PER_DAY) is True

    def test_logs_days_until_next_prune(self, tmp_path, caplog):
        store = FilePruneStateStore(tmp_path / ".last_prune")
        store.write(PRUNED_AT)
        scheduler = RetentionScheduler(store)

        with caplog.at_level("INFO"):
            scheduler.is_prune_due(PRUNED_AT + 10 * SECONDS_PER_DAY)

        assert "20 days until the next prune." in caplog.text
