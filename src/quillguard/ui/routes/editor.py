"""
Editor routes for Quillguard.

GET / renders the create/edit form (CSRF token, CAPTCHA, preview, article
list). POST / runs the submission guard and either redirects to the saved
article or re-renders the form with the reason for the rejection.
"""

from __future__ import annotations

from datetime import timedelta
from urllib.parse import quote

import structlog
from fastapi import APIRouter, Depends, Form, HTTPException, Request
from fastapi.responses import RedirectResponse

from ...articles import ArticleNotFoundError
from ...captcha import challenge_for_session
from ...models import RejectReason
from ...session_manager import SessionHandle

logger = structlog.get_logger(__name__)

router = APIRouter()

_REJECT_MESSAGES = {
    RejectReason.METHOD_NOT_ALLOWED: "Submissions must be sent with POST.",
    RejectReason.CSRF_INVALID: "Your form has expired. Please submit it again.",
    RejectReason.CAPTCHA_INVALID: "The CAPTCHA answer was not correct.",
    RejectReason.MISSING_FIELD: "Both a title and a body are required.",
}


def open_session(request: Request) -> SessionHandle:
    """FastAPI dependency: open the visitor's session from the cookie."""
    settings = request.app.state.settings
    return SessionHandle.open(
        settings.sessions_dir,
        request.cookies.get(settings.cookie_name),
        csrf_ttl=settings.csrf_ttl_seconds,
        session_ttl=timedelta(hours=settings.session_ttl_hours),
        cookie_name=settings.cookie_name,
        secure=request.url.scheme == "https",
        gc_probability=settings.session_gc_probability,
    )


def _render_editor(
    request: Request,
    session: SessionHandle,
    *,
    title: str = "",
    body: str | None = None,
    error: str | None = None,
    status_code: int = 200,
):
    """Render the editor page with a CSRF token and a session-bound CAPTCHA."""
    store = request.app.state.store

    if body is None:
        try:
            body = store.fetch(title) if title else ""
        except ArticleNotFoundError:
            body = ""

    context = {
        "csrf_token": session.issue_csrf_token(),
        "captcha": challenge_for_session(session),
        "title": title,
        "body": body,
        "error": error,
        "articles": store.list_articles(),
        "word_count": store.word_count(),
    }
    response = request.app.state.templates.TemplateResponse(
        request, "index.html", context, status_code=status_code
    )
    return session.bind_cookie(response)


@router.get("/")
async def editor(
    request: Request,
    title: str = "",
    session: SessionHandle = Depends(open_session),
):
    """Show the editor, preloaded with the article named by ``?title=``."""
    return _render_editor(request, session, title=title)


@router.post("/")
async def submit_article(
    request: Request,
    title: str = Form(""),
    body: str = Form(""),
    csrf_token: str = Form(""),
    captcha_answer: str = Form(""),
    session: SessionHandle = Depends(open_session),
):
    """
    Save an article through the submission guard.

    On success redirects (303) to the saved article. On rejection re-renders
    the form (400) with the entered values, the same CSRF token and the same
    outstanding CAPTCHA answer.
    """
    guard = request.app.state.guard
    form = {
        "title": title,
        "body": body,
        "csrf_token": csrf_token,
        "captcha_answer": captcha_answer,
    }

    try:
        result = guard.accept_submission(request.method, form, session)
    except OSError as exc:
        logger.error("Failed to save article", session_id=session.session_id, error=str(exc))
        raise HTTPException(status_code=500, detail="Failed to save article.") from exc

    if result.saved:
        response = RedirectResponse(url=f"/?title={quote(result.title)}", status_code=303)
        return session.bind_cookie(response)

    return _render_editor(
        request,
        session,
        title=title,
        body=body,
        error=_REJECT_MESSAGES[result.reason],
        status_code=400,
    )


@router.post("/logout")
async def logout(
    csrf_token: str = Form(""),
    session: SessionHandle = Depends(open_session),
):
    """Destroy the session. Requires the session's CSRF token."""
    if not session.validate_csrf_token(csrf_token):
        raise HTTPException(status_code=403, detail="Invalid CSRF token.")
    session.destroy()
    return session.bind_cookie(RedirectResponse(url="/", status_code=303))
