"""Integration tests for file-backed session persistence."""
import json
import os
import time
from datetime import datetime, timedelta, timezone
import pytest
from cartpilot.core.enums import SessionStatus
from cartpilot.core.exceptions import SessionPersistenceError
from cartpilot.schemas.workers import SlotScoutRecord
from cartpilot.services.session_store import SessionStore
from tests.factories.cart_factory import make_session


def days_ago(days):
    return datetime.now(timezone.utc) - timedelta(days=days)


@pytest.mark.integration
class TestSaveAndLoad:
    """Test saving and loading sessions."""

    def test_save_creates_directory_and_file(self, session_store):
        """Test save writes <dir>/<id>.json and leaves no staging file."""
        path = session_store.save(make_session("s-1"))

        assert path == session_store.session_dir / "s-1.json"
        assert path.exists()
        assert not (session_store.session_dir / "s-1.json.tmp").exists()

    def test_file_is_pretty_printed_json(self, session_store):
        """Test the session file is indented JSON with snake_case keys."""
        path = session_store.save(make_session("s-1"))

        text = path.read_text()
        data = json.loads(text)
        assert "\n  " in text
        assert data["session_id"] == "s-1"
        assert data["status"] == "initializing"

    def test_load_round_trip(self, session_store):
        """Test a saved session loads back with the same state."""
        session = make_session("s-1", status=SessionStatus.LOADING_CART)
        session.screenshots.append("shot.png")
        session_store.save(session)

        loaded = session_store.load("s-1")

        assert loaded.session_id == "s-1"
        assert loaded.status == SessionStatus.LOADING_CART
        assert loaded.screenshots == ["shot.png"]
        assert loaded.start_time == session.start_time

    def test_save_overwrites(self, session_store):
        """Test saving again replaces the stored state."""
        session = make_session("s-1")
        session_store.save(session)
        session.status = SessionStatus.AUTHENTICATING
        session_store.save(session)

        assert session_store.load("s-1").status == SessionStatus.AUTHENTICATING

    def test_load_missing_returns_none(self, session_store):
        """Test loading an unknown id is not an error."""
        assert session_store.load("nope") is None

    def test_load_corrupt_raises(self, session_store):
        """Test unparsable JSON raises SessionPersistenceError."""
        session_store.session_dir.mkdir(parents=True)
        (session_store.session_dir / "bad.json").write_text("{not json")

        with pytest.raises(SessionPersistenceError, match="Failed to read session bad"):
            session_store.load("bad")

    def test_load_non_utf8_raises(self, session_store):
        """Test a file that is not UTF-8 raises SessionPersistenceError."""
        session_store.session_dir.mkdir(parents=True)
        (session_store.session_dir / "bad.json").write_bytes(b"\xff\xfe\x00garbage")

        with pytest.raises(SessionPersistenceError, match="Failed to read session bad"):
            session_store.load("bad")

    def test_load_invalid_raises(self, session_store):
        """Test schema-invalid JSON raises SessionPersistenceError."""
        session_store.session_dir.mkdir(parents=True)
        (session_store.session_dir / "odd.json").write_text(json.dumps({"session_id": "odd"}))

        with pytest.raises(SessionPersistenceError, match="is invalid"):
            session_store.load("odd")

    def test_save_failure_cleans_up(self, tmp_path):
        """Test a failed write raises and leaves no staging file behind."""
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("file in the way")
        store = SessionStore(blocker / "sessions")

        with pytest.raises(SessionPersistenceError, match="Failed to save session s-1"):
            store.save(make_session("s-1"))

    def test_save_unserializable_report_raises(self, session_store):
        """Test an extra report field that is not JSON-safe raises and writes nothing."""
        session = make_session("s-1")
        session.workers.slot_scout = SlotScoutRecord(
            success=True,
            report={"summary": {"days_checked": 1}, "raw_page": object()},
        )

        with pytest.raises(SessionPersistenceError, match="Failed to serialize session s-1"):
            session_store.save(session)

        assert not session_store.path_for("s-1").exists()
        assert not session_store.session_dir.exists()

    def test_default_directory_from_settings(self, monkeypatch, tmp_path):
        """Test the store falls back to SESSION_DIR."""
        monkeypatch.setenv("SESSION_DIR", str(tmp_path / "configured"))

        assert SessionStore().session_dir == tmp_path / "configured"


@pytest.mark.integration
class TestListAndDelete:
    """Test listing and deleting stored sessions."""

    def test_list_missing_directory(self, tmp_path):
        """Test a missing directory lists no sessions."""
        assert SessionStore(tmp_path / "absent").list_sessions() == []

    def test_list_newest_first(self, session_store):
        """Test sessions are listed by modification time, newest first."""
        for session_id in ("old", "mid", "new"):
            session_store.save(make_session(session_id))
        now = time.time()
        for offset, session_id in enumerate(("new", "mid", "old")):
            path = session_store.path_for(session_id)
            os.utime(path, (now - offset * 60, now - offset * 60))

        assert session_store.list_sessions() == ["new", "mid", "old"]

    def test_list_ignores_other_files(self, session_store):
        """Test staging files and other files are not listed."""
        session_store.save(make_session("s-1"))
        (session_store.session_dir / "s-2.json.tmp").write_text("{}")
        (session_store.session_dir / "notes.txt").write_text("hi")

        assert session_store.list_sessions() == ["s-1"]

    def test_delete(self, session_store):
        """Test delete reports whether a file was removed."""
        session_store.save(make_session("s-1"))

        assert session_store.delete("s-1") is True
        assert session_store.delete("s-1") is False
        assert session_store.load("s-1") is None


@pytest.mark.integration
class TestCleanup:
    """Test retention cleanup of old sessions."""

    def test_cleanup_deletes_only_old_terminal_sessions(self, session_store):
        """Test old finished sessions go, recent and running ones stay."""
        old_done = make_session("old-done", status=SessionStatus.COMPLETED, end_time=days_ago(10))
        recent_done = make_session("recent-done", status=SessionStatus.CANCELLED, end_time=days_ago(1))
        old_running = make_session("old-running", status=SessionStatus.LOADING_CART, start_time=days_ago(30))
        for session in (old_done, recent_done, old_running):
            session_store.save(session)

        deleted = session_store.cleanup_old_sessions(timedelta(days=7))

        assert deleted == 1
        assert sorted(session_store.list_sessions()) == ["old-running", "recent-done"]

    def test_cleanup_uses_start_time_without_end_time(self, session_store):
        """Test a terminal session without end time ages from its start."""
        session_store.save(
            make_session("no-end", status=SessionStatus.CANCELLED, start_time=days_ago(10))
        )

        assert session_store.cleanup_old_sessions(timedelta(days=7)) == 1

    def test_cleanup_skips_corrupt_files(self, session_store, caplog):
        """Test unreadable files are logged and left in place."""
        session_store.save(make_session("old", status=SessionStatus.COMPLETED, end_time=days_ago(10)))
        (session_store.session_dir / "broken.json").write_text("{")

        deleted = session_store.cleanup_old_sessions(timedelta(days=7))

        assert deleted == 1
        assert session_store.list_sessions() == ["broken"]
        assert "Skipping session broken" in caplog.text

    def test_cleanup_skips_non_utf8_files(self, session_store, caplog):
        """Test a binary file does not stop the rest of the cleanup."""
        session_store.save(make_session("old", status=SessionStatus.COMPLETED, end_time=days_ago(10)))
        (session_store.session_dir / "binary.json").write_bytes(b"\xff\xfe")

        deleted = session_store.cleanup_old_sessions(timedelta(days=7))

        assert deleted == 1
        assert session_store.list_sessions() == ["binary"]
        assert "Skipping session binary" in caplog.text

    def test_cleanup_default_retention(self, session_store, monkeypatch):
        """Test the default max age comes from SESSION_RETENTION_DAYS."""
        monkeypatch.setenv("SESSION_RETENTION_DAYS", "2")
        session_store.save(make_session("three-days", status=SessionStatus.COMPLETED, end_time=days_ago(3)))

        assert session_store.cleanup_old_sessions() == 1

    def test_cleanup_missing_directory(self, tmp_path):
        """Test cleaning a missing directory deletes nothing."""
        assert SessionStore(tmp_path / "absent").cleanup_old_sessions(timedelta(days=1)) == 0
