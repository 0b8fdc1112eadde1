"""
Submission guard: the only path by which articles are written from the web.

A submission is checked in a fixed order (method, CSRF token, CAPTCHA answer,
required fields) and nothing is persisted unless every check passes. The
CAPTCHA answer is cleared only after a successful write, so a rejected
attempt can be corrected and resubmitted against the same challenge.
"""

from __future__ import annotations

from typing import Mapping

import structlog

from .articles import ArticleStore
from .models import RejectReason, SubmissionResult
from .session_manager import SessionHandle

logger = structlog.get_logger(__name__)

WRITE_METHOD = "POST"


class SubmissionGuard:
    """Validates form submissions against a session before saving articles."""

    def __init__(self, store: ArticleStore) -> None:
        self.store = store

    def accept_submission(
        self,
        method: str,
        form: Mapping[str, str],
        session: SessionHandle,
    ) -> SubmissionResult:
        """
        Validate and, if valid, persist one article submission.

        Args:
            method: HTTP method of the inbound request.
            form: Submitted fields: ``csrf_token``, ``captcha_answer``,
                ``title`` and ``body``.
            session: The visitor's open session.

        Returns:
            ``SubmissionResult.accepted(title)`` on success, otherwise
            ``SubmissionResult.rejected(reason)``.

        Raises:
            OSError: If the article file cannot be written. The CAPTCHA
                answer is left in place in that case.

        If the CAPTCHA answer cannot be cleared after a save, the session is
        destroyed so the answer cannot be replayed.
        """
        if method.upper() != WRITE_METHOD:
            return self._reject(RejectReason.METHOD_NOT_ALLOWED, session)

        if not session.validate_csrf_token(form.get("csrf_token")):
            return self._reject(RejectReason.CSRF_INVALID, session)

        if not session.validate_captcha_answer(form.get("captcha_answer")):
            return self._reject(RejectReason.CAPTCHA_INVALID, session)

        article = self.store.prepare(form.get("title") or "", form.get("body") or "")
        if not article.title or not article.body:
            return self._reject(RejectReason.MISSING_FIELD, session)

        self.store.write(article)
        session.clear_captcha_answer()
        if not session.available:
            # The stored answer is still on disk and could be replayed.
            logger.error(
                "CAPTCHA answer could not be cleared, dropping session",
                session_id=session.session_id,
            )
            session.destroy()
        logger.info("Submission accepted", session_id=session.session_id, title=article.title)
        return SubmissionResult.accepted(article.title)

    @staticmethod
    def _reject(reason: RejectReason, session: SessionHandle) -> SubmissionResult:
        logger.info("Submission rejected", session_id=session.session_id, reason=reason.value)
        return SubmissionResult.rejected(reason)
