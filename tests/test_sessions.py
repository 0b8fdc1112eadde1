"""
Tests for quillguard.sessions: session creation, records, TTL cleanup.
"""

import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

from quillguard.models import SessionRecord
from quillguard.sessions import (
    _TIMESTAMP_FORMAT,
    StorageUnavailableError,
    cleanup_expired_sessions,
    create_session,
    delete_session,
    get_session_dir,
    load_session,
    save_session,
)


def _backdate(sessions_root, session_id, hours):
    created_file = sessions_root / session_id / ".created"
    old_time = datetime.now(timezone.utc) - timedelta(hours=hours)
    created_file.write_text(old_time.strftime(_TIMESTAMP_FORMAT), encoding="utf-8")


# ===================================================================
# create_session
# ===================================================================

class TestCreateSession:
    """Tests for create_session()."""

    def test_returns_32char_hex_id(self, sessions_root):
        sid = create_session(sessions_root)
        assert len(sid) == 32
        assert all(c in "0123456789abcdef" for c in sid)

    def test_creates_directory_and_empty_record(self, sessions_root):
        sid = create_session(sessions_root)
        assert (sessions_root / sid).is_dir()
        assert load_session(sessions_root, sid) == SessionRecord()

    def test_creates_timestamp_file(self, sessions_root):
        sid = create_session(sessions_root)
        ts = (sessions_root / sid / ".created").read_text(encoding="utf-8").strip()
        parsed = datetime.strptime(ts, _TIMESTAMP_FORMAT)
        assert parsed.tzinfo is not None

    def test_unique_ids(self, sessions_root):
        ids = {create_session(sessions_root) for _ in range(20)}
        assert len(ids) == 20

    def test_unwritable_root_raises_storage_error(self, tmp_path):
        not_a_dir = tmp_path / "file"
        not_a_dir.write_text("x")
        with pytest.raises(StorageUnavailableError):
            create_session(not_a_dir)


# ===================================================================
# get_session_dir
# ===================================================================

class TestGetSessionDir:
    """Tests for get_session_dir()."""

    def test_returns_existing_session_dir(self, sessions_root):
        sid = create_session(sessions_root)
        assert get_session_dir(sessions_root, sid) == sessions_root / sid

    def test_raises_for_nonexistent_session(self, sessions_root):
        with pytest.raises(ValueError, match="Session not found"):
            get_session_dir(sessions_root, "deadbeef" * 4)

    @pytest.mark.parametrize("bad_id", ["", "../../etc", "ABCDEF" * 6, "deadbeef"])
    def test_raises_for_malformed_id(self, sessions_root, bad_id):
        with pytest.raises(ValueError, match="Session not found"):
            get_session_dir(sessions_root, bad_id)


# ===================================================================
# load_session / save_session / delete_session
# ===================================================================

class TestSessionRecords:
    """Tests for record persistence."""

    def test_save_then_load(self, sessions_root):
        sid = create_session(sessions_root)
        record = SessionRecord(initiated=True, csrf_token="ab" * 32, csrf_issued_at=10.0)
        save_session(sessions_root, sid, record)
        assert load_session(sessions_root, sid) == record

    def test_load_expired_session_raises(self, sessions_root):
        sid = create_session(sessions_root)
        _backdate(sessions_root, sid, hours=25)
        with pytest.raises(ValueError):
            load_session(sessions_root, sid)

    def test_load_corrupt_record_raises_value_error(self, sessions_root):
        sid = create_session(sessions_root)
        (sessions_root / sid / "session.json").write_text("{not json", encoding="utf-8")
        with pytest.raises(ValueError):
            load_session(sessions_root, sid)

    def test_load_unreadable_record_raises_storage_error(self, sessions_root):
        sid = create_session(sessions_root)
        # The expiry check also reads a file; bypass it so only the record
        # read fails.
        with patch("quillguard.sessions._is_expired", return_value=False), \
                patch("pathlib.Path.read_text", side_effect=PermissionError("denied")):
            with pytest.raises(StorageUnavailableError):
                load_session(sessions_root, sid)

    def test_save_to_missing_session_raises(self, sessions_root):
        with pytest.raises(ValueError):
            save_session(sessions_root, "0" * 32, SessionRecord())

    def test_delete_session(self, sessions_root):
        sid = create_session(sessions_root)
        assert delete_session(sessions_root, sid) is True
        assert not (sessions_root / sid).exists()

    def test_delete_missing_session(self, sessions_root):
        assert delete_session(sessions_root, "0" * 32) is False


# ===================================================================
# cleanup_expired_sessions
# ===================================================================

class TestCleanupExpiredSessions:
    """Tests for cleanup_expired_sessions()."""

    def test_removes_expired_session(self, sessions_root):
        sid = create_session(sessions_root)
        _backdate(sessions_root, sid, hours=25)

        removed = cleanup_expired_sessions(sessions_root)
        assert removed == 1
        assert not (sessions_root / sid).exists()

    def test_keeps_fresh_session(self, sessions_root):
        sid = create_session(sessions_root)
        assert cleanup_expired_sessions(sessions_root) == 0
        assert (sessions_root / sid).is_dir()

    def test_removes_session_without_timestamp(self, sessions_root):
        orphan = sessions_root / "orphan00"
        orphan.mkdir()
        assert cleanup_expired_sessions(sessions_root) == 1
        assert not orphan.exists()

    def test_custom_ttl(self, sessions_root):
        sid = create_session(sessions_root)
        _backdate(sessions_root, sid, hours=2)
        assert cleanup_expired_sessions(sessions_root, ttl=timedelta(hours=1)) == 1

    def test_mixed_sessions(self, sessions_root):
        """Mix of fresh, expired, and orphan sessions."""
        fresh = create_session(sessions_root)
        expired = create_session(sessions_root)
        orphan_dir = sessions_root / "orphanxx"
        orphan_dir.mkdir()
        _backdate(sessions_root, expired, hours=48)

        removed = cleanup_expired_sessions(sessions_root)
        assert removed == 2
        assert (sessions_root / fresh).is_dir()
        assert not (sessions_root / expired).exists()
        assert not orphan_dir.exists()

    def test_missing_root_returns_zero(self, tmp_path):
        assert cleanup_expired_sessions(tmp_path / "nope") == 0
