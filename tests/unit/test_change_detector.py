"""
Unit tests for dump change detection (host_backup/dumps/change_detector.py).
"""

from host_backup.dumps.change_detector import ChangeDecision, ChangeDetector, file_digest


class TestChangeDetector:
    """Test ChangeDetector keep/replace decisions."""

    def test_missing_previous_always_replaces(self, tmp_path):
        previous = tmp_path / "svc_app.sql"
        candidate = tmp_path / "svc_app.sql.tmp"
        candidate.write_bytes(b"first dump")

        decision = ChangeDetector().decide(previous, candidate)

        assert decision is ChangeDecision.REPLACE
        assert previous.read_bytes() == b"first dump"
        assert not candidate.exists()

    def test_equal_content_keeps_previous(self, tmp_path):
        previous = tmp_path / "svc_app.sql"
        candidate = tmp_path / "svc_app.sql.tmp"
        previous.write_bytes(b"same")
        candidate.write_bytes(b"same")
        mtime = previous.stat().st_mtime_ns

        decision = ChangeDetector().decide(previous, candidate)

        assert decision is ChangeDecision.KEEP_PREVIOUS
        assert not candidate.exists()
        assert previous.read_bytes() == b"same"
        assert previous.stat().st_mtime_ns == mtime

    def test_different_content_replaces_previous(self, tmp_path):
        previous = tmp_path / "svc_app.sql"
        candidate = tmp_path / "svc_app.sql.tmp"
        previous.write_bytes(b"old rows")
        candidate.write_bytes(b"new rows")

        decision = ChangeDetector().decide(previous, candidate)

        assert decision is ChangeDecision.REPLACE
        assert previous.read_bytes() == b"new rows"
        assert not candidate.exists()

    def test_file_digest_is_content_based(self, tmp_path):
        one = tmp_path / "one"
        two = tmp_path / "two"
        one.write_bytes(b"x" * 3_000_000)
        two.write_bytes(b"x" * 3_000_000)

        assert file_digest(one) == file_digest(two)
        two.write_bytes(b"x" * 2_999_999 + b"y")
        assert file_digest(one) != file_digest(two)
