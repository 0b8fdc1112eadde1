"""
Image CAPTCHA challenges for the article form.

A challenge is a short random phrase rendered into a small PNG with Pillow,
returned as a ``data:`` URI so the template can inline it without a second
request. The expected phrase lives in the visitor's session until a
submission succeeds.
"""

from __future__ import annotations

import base64
import secrets
from io import BytesIO

from PIL import Image, ImageDraw, ImageFont

from .models import CaptchaChallenge
from .session_manager import SessionHandle

# Lowercase letters and digits without look-alikes (no 0/o, 1/l/i).
PHRASE_ALPHABET = "abcdefghjkmnpqrstuvwxyz23456789"
PHRASE_LENGTH = 5

IMAGE_WIDTH = 150
IMAGE_HEIGHT = 40
_FONT_SIZE = 26
_NOISE_LINES = 6


def generate_phrase(length: int = PHRASE_LENGTH) -> str:
    """Return a random phrase drawn from ``PHRASE_ALPHABET``."""
    if length < 1:
        raise ValueError(f"CAPTCHA phrase length must be positive, got {length}")
    return "".join(secrets.choice(PHRASE_ALPHABET) for _ in range(length))


def _random_color(low: int, high: int) -> tuple[int, int, int]:
    span = high - low + 1
    return tuple(low + secrets.randbelow(span) for _ in range(3))


def render_image(phrase: str) -> bytes:
    """Draw *phrase* with per-character jitter and noise lines; return PNG bytes."""
    image = Image.new("RGB", (IMAGE_WIDTH, IMAGE_HEIGHT), _random_color(220, 255))
    draw = ImageDraw.Draw(image)
    font = ImageFont.load_default(size=_FONT_SIZE)

    step = (IMAGE_WIDTH - 20) // max(len(phrase), 1)
    for index, char in enumerate(phrase):
        x = 10 + index * step + secrets.randbelow(5)
        y = secrets.randbelow(8)
        draw.text((x, y), char, font=font, fill=_random_color(0, 120))

    for _ in range(_NOISE_LINES):
        start = (secrets.randbelow(IMAGE_WIDTH), secrets.randbelow(IMAGE_HEIGHT))
        end = (secrets.randbelow(IMAGE_WIDTH), secrets.randbelow(IMAGE_HEIGHT))
        draw.line([start, end], fill=_random_color(80, 200), width=1)

    buffer = BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def build_challenge(phrase: str | None = None) -> CaptchaChallenge:
    """Build a challenge for *phrase* (a new random phrase if omitted)."""
    phrase = phrase or generate_phrase()
    encoded = base64.b64encode(render_image(phrase)).decode("ascii")
    return CaptchaChallenge(phrase=phrase, image_data_uri=f"data:image/png;base64,{encoded}")


def challenge_for_session(session: SessionHandle) -> CaptchaChallenge:
    """
    Return a challenge bound to *session*.

    An outstanding answer is reused (re-rendered with fresh noise) so that
    opening the form in a second tab does not invalidate the first one.
    """
    phrase = session.get_captcha_answer()
    if not phrase:
        phrase = generate_phrase()
        session.set_captcha_answer(phrase)
    return build_challenge(phrase)
