"""
FastAPI application factory for the Quillguard web UI.

A create_app() factory function wires up routes, static files, templates,
shared services and startup hooks.
"""

from __future__ import annotations

import threading
import webbrowser
from datetime import timedelta
from pathlib import Path

import structlog
import uvicorn
from fastapi import FastAPI, Request
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from .. import __version__
from ..articles import ArticleStore
from ..config import Settings
from ..guard import SubmissionGuard
from ..sessions import cleanup_expired_sessions
from .routes.api import router as api_router
from .routes.editor import router as editor_router

logger = structlog.get_logger(__name__)

_UI_DIR = Path(__file__).parent
_STATIC_DIR = _UI_DIR / "static"
_TEMPLATES_DIR = _UI_DIR / "templates"


class _SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security-related HTTP headers to every response."""

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "same-origin"
        response.headers["Permissions-Policy"] = "camera=(), microphone=(), geolocation=()"
        # data: images are needed for the inline CAPTCHA.
        response.headers["Content-Security-Policy"] = "default-src 'self'; img-src 'self' data:"
        return response


def create_app(settings: Settings | None = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    - Builds the article store and submission guard from *settings*
      (read from the environment when omitted) and exposes them on ``app.state``
    - Mounts static files at /static and configures Jinja2 templates
    - Includes the editor routes at / and the JSON API under /api
    - Registers a startup hook that removes expired session records
    """
    settings = settings or Settings()

    application = FastAPI(
        title="Quillguard",
        description="Minimal article publishing with CSRF and CAPTCHA protected submission.",
        version=__version__,
    )

    # --- Shared services ---
    store = ArticleStore(
        settings.articles_dir,
        max_title_length=settings.max_title_length,
        max_body_length=settings.max_body_length,
    )
    application.state.settings = settings
    application.state.store = store
    application.state.guard = SubmissionGuard(store)
    application.state.templates = Jinja2Templates(directory=str(_TEMPLATES_DIR))

    # --- Security headers ---
    application.add_middleware(_SecurityHeadersMiddleware)

    # --- Static files ---
    application.mount("/static", StaticFiles(directory=str(_STATIC_DIR)), name="static")

    # --- Routers ---
    application.include_router(editor_router)
    application.include_router(api_router, prefix="/api")

    # --- Startup hook ---
    @application.on_event("startup")
    async def on_startup():
        removed = cleanup_expired_sessions(
            settings.sessions_dir, timedelta(hours=settings.session_ttl_hours)
        )
        if removed:
            logger.info("Cleaned up expired sessions", count=removed)
        logger.info(
            "Quillguard web server started",
            articles_dir=str(settings.articles_dir),
        )

    return application


def start_server(
    host: str = "127.0.0.1",
    port: int = 8000,
    open_browser: bool = True,
    settings: Settings | None = None,
) -> None:
    """
    Start the uvicorn server and optionally open the browser.

    Args:
        host: Bind address. Defaults to localhost.
        port: Port number. Defaults to 8000.
        open_browser: If True, opens the default browser to the app URL
            after a short delay.
        settings: Settings to build the app with. Defaults to the environment.
    """
    if open_browser:
        url = f"http://{host}:{port}"

        def _open():
            import time
            time.sleep(1.5)
            webbrowser.open(url)

        thread = threading.Thread(target=_open, daemon=True)
        thread.start()

    uvicorn.run(
        create_app(settings),
        host=host,
        port=port,
        log_level="info",
    )
