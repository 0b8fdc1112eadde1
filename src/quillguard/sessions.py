"""
Server-side session persistence with automatic TTL cleanup for Quillguard.

Each visitor session gets its own directory under the sessions root holding
a ``session.json`` record (see ``models.SessionRecord``) and a ``.created``
timestamp. Sessions auto-expire after the configured TTL (24 hours by
default) to prevent unbounded disk growth.

Session IDs are 128-bit random values, hex encoded. They are only ever
generated here; an ID supplied by a client is looked up, never created.
"""

import os
import re
import secrets
import shutil
from datetime import datetime, timedelta, timezone
from pathlib import Path

from .models import SessionRecord

SESSION_TTL = timedelta(hours=24)
_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S%z"
_RECORD_NAME = "session.json"

# Session IDs must be exactly 32 lowercase hex characters.
_SESSION_ID_RE = re.compile(r"^[a-f0-9]{32}$")


class StorageUnavailableError(OSError):
    """Raised when session records cannot be read or written."""


def is_valid_session_id(session_id: str | None) -> bool:
    return bool(session_id) and bool(_SESSION_ID_RE.match(session_id))


def create_session(sessions_root: Path) -> str:
    """
    Create a new session directory with an empty record and return its ID.

    A ``.created`` file is written inside the directory containing an
    ISO-8601 UTC timestamp that is later used by ``cleanup_expired_sessions``
    and ``load_session`` to determine age.

    Raises:
        StorageUnavailableError: If the directory or files cannot be written.
    """
    session_id = secrets.token_hex(16)
    session_dir = sessions_root / session_id
    try:
        session_dir.mkdir(parents=True, exist_ok=False)
        timestamp = datetime.now(timezone.utc).strftime(_TIMESTAMP_FORMAT)
        (session_dir / ".created").write_text(timestamp, encoding="utf-8")
    except OSError as exc:
        raise StorageUnavailableError(f"Cannot create session: {exc}") from exc

    save_session(sessions_root, session_id, SessionRecord())
    return session_id


def get_session_dir(sessions_root: Path, session_id: str) -> Path:
    """
    Return the directory path for an existing session.

    Raises:
        ValueError: If the session ID is malformed or no session directory
            exists for the given ID.
    """
    if not is_valid_session_id(session_id):
        raise ValueError(f"Session not found: {session_id}")
    session_dir = sessions_root / session_id
    # The regex already excludes separators; the containment check guards
    # against a symlinked entry pointing outside the root.
    root = sessions_root.resolve()
    resolved = session_dir.resolve()
    if resolved.parent != root:
        raise ValueError(f"Session not found: {session_id}")
    if not session_dir.is_dir():
        raise ValueError(f"Session not found: {session_id}")
    return session_dir


def _is_expired(session_dir: Path, now: datetime, ttl: timedelta) -> bool:
    created_file = session_dir / ".created"
    # Fail-secure: a missing or unparseable timestamp counts as expired.
    if not created_file.is_file():
        return True
    try:
        raw = created_file.read_text(encoding="utf-8").strip()
        created_at = datetime.strptime(raw, _TIMESTAMP_FORMAT)
    except (ValueError, OSError):
        return True
    return (now - created_at) >= ttl


def load_session(
    sessions_root: Path,
    session_id: str,
    ttl: timedelta = SESSION_TTL,
) -> SessionRecord:
    """
    Load the record for an existing, unexpired session.

    Raises:
        ValueError: If the session does not exist, has expired, or its record
            is not valid JSON for ``SessionRecord``.
        StorageUnavailableError: If the record exists but cannot be read.
    """
    session_dir = get_session_dir(sessions_root, session_id)
    if _is_expired(session_dir, datetime.now(timezone.utc), ttl):
        raise ValueError(f"Session not found: {session_id}")

    record_file = session_dir / _RECORD_NAME
    try:
        raw = record_file.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise ValueError(f"Session not found: {session_id}")
    except OSError as exc:
        raise StorageUnavailableError(f"Cannot read session {session_id}: {exc}") from exc
    return SessionRecord.model_validate_json(raw)


def save_session(sessions_root: Path, session_id: str, record: SessionRecord) -> None:
    """
    Persist *record* for *session_id*.

    The record is written to a temporary file and moved into place with
    ``os.replace`` so concurrent readers never observe a partial write.

    Raises:
        ValueError: If the session does not exist.
        StorageUnavailableError: If the record cannot be written.
    """
    session_dir = get_session_dir(sessions_root, session_id)
    record_file = session_dir / _RECORD_NAME
    tmp_file = session_dir / f".{_RECORD_NAME}.tmp"
    try:
        tmp_file.write_text(record.model_dump_json(), encoding="utf-8")
        os.replace(tmp_file, record_file)
    except OSError as exc:
        raise StorageUnavailableError(f"Cannot write session {session_id}: {exc}") from exc


def delete_session(sessions_root: Path, session_id: str) -> bool:
    """Remove a session directory. Returns False if it did not exist."""
    try:
        session_dir = get_session_dir(sessions_root, session_id)
    except ValueError:
        return False
    shutil.rmtree(session_dir, ignore_errors=True)
    return True


def cleanup_expired_sessions(sessions_root: Path, ttl: timedelta = SESSION_TTL) -> int:
    """
    Remove session directories that are older than *ttl*.

    Sessions without a readable ``.created`` file are treated as expired and
    removed as well, since their age cannot be verified.

    Returns:
        The number of session directories that were removed.
    """
    if not sessions_root.is_dir():
        return 0

    now = datetime.now(timezone.utc)
    removed = 0

    for entry in sessions_root.iterdir():
        if not entry.is_dir():
            continue
        if _is_expired(entry, now, ttl):
            shutil.rmtree(entry, ignore_errors=True)
            removed += 1

    return removed
