"""
Quillguard: minimal article publishing with CSRF and CAPTCHA protected submission.

Articles are stored as plain files; every write passes through the
submission guard and every read through the path sanitization gate.
"""

__version__ = "0.1.0"

from .models import (
    Article,
    CaptchaChallenge,
    RejectReason,
    SessionRecord,
    SubmissionResult,
)

__all__ = [
    "Article",
    "CaptchaChallenge",
    "RejectReason",
    "SessionRecord",
    "SubmissionResult",
]
