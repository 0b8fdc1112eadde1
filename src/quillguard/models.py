"""
Pydantic models for all Quillguard data structures.

All data structures are defined here for single-source-of-truth.
Pydantic provides built-in JSON serialization and validation for the
session records persisted to disk.
"""

from pydantic import BaseModel, Field
from enum import Enum


# --- Enums ---

class RejectReason(str, Enum):
    METHOD_NOT_ALLOWED = "method_not_allowed"
    CSRF_INVALID = "csrf_invalid"
    CAPTCHA_INVALID = "captcha_invalid"
    MISSING_FIELD = "missing_field"


# --- Articles ---

class Article(BaseModel):
    """A stored article. Both fields hold already-sanitized text."""
    title: str
    body: str


# --- Sessions ---

class SessionRecord(BaseModel):
    """
    Server-side state for one visitor, persisted as JSON.

    ``csrf_issued_at`` is epoch seconds; ``None`` means no token was issued.
    """
    initiated: bool = False
    csrf_token: str | None = None
    csrf_issued_at: float | None = None
    captcha_answer: str | None = None


# --- CAPTCHA ---

class CaptchaChallenge(BaseModel):
    """A rendered CAPTCHA: the expected phrase and an inline PNG."""
    phrase: str = Field(min_length=1)
    image_data_uri: str  # "data:image/png;base64,..."


# --- Submission ---

class SubmissionResult(BaseModel):
    """Outcome of a form submission passed through the submission guard."""
    saved: bool
    reason: RejectReason | None = None
    title: str | None = None  # Sanitized title of the saved article

    @classmethod
    def accepted(cls, title: str) -> "SubmissionResult":
        return cls(saved=True, title=title)

    @classmethod
    def rejected(cls, reason: RejectReason) -> "SubmissionResult":
        return cls(saved=False, reason=reason)
