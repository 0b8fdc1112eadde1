"""
Shared pytest fixtures for all Quillguard tests.

Provides temporary storage directories, a controllable clock for expiry
tests, open session handles, and a TestClient wired to temporary settings.
"""

import re
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from quillguard.articles import ArticleStore
from quillguard.config import Settings
from quillguard.session_manager import SessionHandle
from quillguard.sessions import load_session

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_CSRF_INPUT_RE = re.compile(r'<input type="hidden" name="csrf_token" value="([^"]+)">')


class FakeClock:
    """A callable clock that only moves when told to."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def extract_csrf_token(html: str) -> str:
    """Pull the CSRF token out of a rendered editor page."""
    match = _CSRF_INPUT_RE.search(html)
    assert match, "CSRF token input not found in page"
    return match.group(1)


def captcha_answer_for(client: TestClient, settings: Settings) -> str:
    """Read the outstanding CAPTCHA answer from the client's session record."""
    session_id = client.cookies.get(settings.cookie_name)
    assert session_id, "client has no session cookie"
    record = load_session(settings.sessions_dir, session_id)
    assert record.captcha_answer, "no CAPTCHA challenge outstanding"
    return record.captcha_answer


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def sessions_root(tmp_path) -> Path:
    root = tmp_path / "sessions"
    root.mkdir()
    return root


@pytest.fixture
def articles_dir(tmp_path) -> Path:
    directory = tmp_path / "articles"
    directory.mkdir()
    return directory


@pytest.fixture
def settings(sessions_root, articles_dir) -> Settings:
    return Settings(articles_dir=articles_dir, sessions_dir=sessions_root)


@pytest.fixture
def store(articles_dir) -> ArticleStore:
    return ArticleStore(articles_dir)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def session(sessions_root, clock) -> SessionHandle:
    """A freshly opened session using the fake clock."""
    return SessionHandle.open(sessions_root, None, clock=clock)


@pytest.fixture
def client(settings) -> TestClient:
    from quillguard.ui.app import create_app

    return TestClient(create_app(settings))
