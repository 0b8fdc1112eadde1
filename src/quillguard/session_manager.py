"""
Per-request session handle: CSRF tokens and CAPTCHA answers.

A ``SessionHandle`` is opened once per request from the session cookie,
mutated by the editor routes and the submission guard, and written back to
the response with ``bind_cookie``. Persistence is delegated to
``quillguard.sessions``.

Fixation resistance: an ID presented by the client is only used if a live
server-side record exists for it. Otherwise a new ID is generated, so an
attacker cannot plant a session ID in a victim's browser and have it adopted.

Failure semantics: if the session storage cannot be read or written the
handle is marked unavailable and every CSRF/CAPTCHA validation returns False.
"""

from __future__ import annotations

import hmac
import random
import secrets
import time
from datetime import timedelta
from pathlib import Path
from typing import Callable

import structlog
from starlette.responses import Response

from .models import SessionRecord
from .sanitizer import sanitize_filename
from .sessions import (
    SESSION_TTL,
    StorageUnavailableError,
    cleanup_expired_sessions,
    create_session,
    delete_session,
    load_session,
    save_session,
)

logger = structlog.get_logger(__name__)

CSRF_TOKEN_TTL = 1800  # seconds
DEFAULT_COOKIE_NAME = "quillguard_session"

_CSRF_TOKEN_BYTES = 32
DEFAULT_GC_PROBABILITY = 0.01


def _constant_time_equals(expected: str, candidate: str) -> bool:
    return hmac.compare_digest(expected.encode("utf-8"), candidate.encode("utf-8"))


class SessionHandle:
    """
    One visitor's session for the duration of a request.

    Use ``SessionHandle.open()`` rather than the constructor.
    """

    def __init__(
        self,
        sessions_root: Path,
        *,
        csrf_ttl: int = CSRF_TOKEN_TTL,
        session_ttl: timedelta = SESSION_TTL,
        cookie_name: str = DEFAULT_COOKIE_NAME,
        secure: bool = False,
        clock: Callable[[], float] = time.time,
        gc_probability: float = DEFAULT_GC_PROBABILITY,
    ) -> None:
        self.sessions_root = sessions_root
        self.csrf_ttl = csrf_ttl
        self.session_ttl = session_ttl
        self.cookie_name = cookie_name
        self.secure = secure
        self.clock = clock
        self.gc_probability = gc_probability

        self.session_id: str | None = None
        self.available = False
        self.is_new = False
        self.destroyed = False
        self._record = SessionRecord()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @classmethod
    def open(
        cls,
        sessions_root: Path,
        session_id: str | None,
        **kwargs,
    ) -> "SessionHandle":
        """
        Bind to the session named by *session_id* (usually the cookie value).

        Unknown, expired or malformed IDs are discarded and a fresh session
        is created in their place.
        """
        handle = cls(sessions_root, **kwargs)
        handle._bind(session_id)
        return handle

    def _bind(self, presented_id: str | None) -> None:
        if presented_id:
            try:
                self._record = load_session(self.sessions_root, presented_id, self.session_ttl)
                self.session_id = presented_id
            except StorageUnavailableError as exc:
                logger.error("Session storage unavailable", error=str(exc))
                return
            except ValueError:
                logger.info("Discarding unknown session id")
                # Removes the directory of an expired or corrupt record.
                delete_session(self.sessions_root, presented_id)

        if self.session_id is None:
            self._start_new()
        elif not self._record.initiated:
            self.regenerate_id()
        else:
            self.available = True

    def _start_new(self) -> None:
        try:
            self.session_id = create_session(self.sessions_root)
        except StorageUnavailableError as exc:
            logger.error("Session storage unavailable", error=str(exc))
            return
        self._record = SessionRecord(initiated=True)
        self.available = True
        self.is_new = True
        self._save()
        logger.info("Session created", session_id=self.session_id)
        if random.random() < self.gc_probability:
            self._collect_garbage()

    def _collect_garbage(self) -> None:
        """Remove every expired session record under the sessions root."""
        try:
            removed = cleanup_expired_sessions(self.sessions_root, self.session_ttl)
        except OSError as exc:
            logger.error("Session cleanup failed", error=str(exc))
            return
        if removed:
            logger.info("Cleaned up expired sessions", count=removed)

    def regenerate_id(self) -> None:
        """Move the current state to a freshly generated session ID."""
        old_id = self.session_id
        try:
            self.session_id = create_session(self.sessions_root)
        except StorageUnavailableError as exc:
            logger.error("Session storage unavailable", error=str(exc))
            self.available = False
            return
        self._record.initiated = True
        self.available = True
        self.is_new = True
        self._save()
        if old_id:
            delete_session(self.sessions_root, old_id)
        logger.info("Session id regenerated", session_id=self.session_id)

    def _save(self) -> None:
        if not self.available or self.session_id is None:
            return
        try:
            save_session(self.sessions_root, self.session_id, self._record)
        except (StorageUnavailableError, ValueError) as exc:
            logger.error(
                "Failed to persist session", session_id=self.session_id, error=str(exc)
            )
            self.available = False

    def destroy(self) -> None:
        """Clear all session fields, delete the record and expire the cookie."""
        if self.session_id is not None:
            delete_session(self.sessions_root, self.session_id)
            logger.info("Session destroyed", session_id=self.session_id)
        self._record = SessionRecord()
        self.session_id = None
        self.available = False
        self.destroyed = True

    def bind_cookie(self, response: Response) -> Response:
        """
        Write the session cookie to *response* (or expire it after ``destroy``).

        The cookie is host-only (no Domain attribute), HTTP-only,
        ``SameSite=Strict``, ``Secure`` when the request arrived over TLS, and
        lives for the browser session.
        """
        if self.destroyed:
            response.delete_cookie(
                self.cookie_name,
                path="/",
                secure=self.secure,
                httponly=True,
                samesite="strict",
            )
        elif self.available and self.session_id:
            response.set_cookie(
                self.cookie_name,
                self.session_id,
                path="/",
                secure=self.secure,
                httponly=True,
                samesite="strict",
            )
        return response

    # ------------------------------------------------------------------
    # CSRF
    # ------------------------------------------------------------------

    def _csrf_expired(self) -> bool:
        issued_at = self._record.csrf_issued_at
        if issued_at is None:
            return True
        return (self.clock() - issued_at) > self.csrf_ttl

    def issue_csrf_token(self) -> str:
        """
        Return the live CSRF token, creating one if absent or expired.

        Repeated calls inside the expiry window return the same token, so a
        form re-rendered after a failed CAPTCHA still matches the token the
        visitor was already shown.
        """
        if self._record.csrf_token is None or self._csrf_expired():
            self._record.csrf_token = secrets.token_hex(_CSRF_TOKEN_BYTES)
            self._record.csrf_issued_at = self.clock()
            self._save()
        return self._record.csrf_token

    def validate_csrf_token(self, candidate: str | None) -> bool:
        """
        True iff a token exists, has not expired and equals *candidate*.

        The candidate is compared exactly as received, in constant time.
        """
        if not self.available or not isinstance(candidate, str):
            return False
        token = self._record.csrf_token
        if not token or self._csrf_expired():
            return False
        return _constant_time_equals(token, candidate)

    # ------------------------------------------------------------------
    # CAPTCHA
    # ------------------------------------------------------------------

    def get_captcha_answer(self) -> str:
        return self._record.captcha_answer or ""

    def set_captcha_answer(self, answer: str) -> None:
        self._record.captcha_answer = answer
        self._save()

    def clear_captcha_answer(self) -> None:
        self._record.captcha_answer = None
        self._save()

    def validate_captcha_answer(self, candidate: str | None) -> bool:
        """
        Case-sensitive match of the sanitized *candidate* against the stored
        answer. Always False when no challenge is outstanding.
        """
        if not self.available or not isinstance(candidate, str):
            return False
        expected = self._record.captcha_answer
        if not expected:
            return False
        return _constant_time_equals(expected, sanitize_filename(candidate))
