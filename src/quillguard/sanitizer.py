"""
String sanitization helpers for Quillguard.

Every value that reaches disk or HTML output passes through one of these
functions. They are pure and hold no state:

- ``escape_html``: entity-escape ``& < > " '``
- ``sanitize_filename``: delete everything outside ``[A-Za-z0-9_-]``
- ``strip_dangerous_tags``: drop tags outside a fixed allow-list (bleach)
- ``limit_length``: truncate to a maximum number of characters
- ``full_sanitize``: strip, escape, truncate (in that order)
"""

from __future__ import annotations

import html
import re

import bleach

# Tags that survive ``strip_dangerous_tags``. Everything else is removed, but
# the text inside removed tags is kept.
ALLOWED_TAGS: frozenset[str] = frozenset(
    {"p", "a", "b", "i", "strong", "em", "ul", "ol", "li", "br"}
)
ALLOWED_ATTRIBUTES: dict[str, list[str]] = {"a": ["href", "title"]}
ALLOWED_PROTOCOLS: frozenset[str] = frozenset({"http", "https", "mailto"})

DEFAULT_MAX_LENGTH = 255

_FILENAME_DISALLOWED_RE = re.compile(r"[^a-zA-Z0-9_-]")


def escape_html(value: str) -> str:
    """Escape HTML special characters, including both quote styles."""
    return html.escape(value, quote=True)


def sanitize_filename(value: str) -> str:
    """
    Reduce *value* to the filename-safe character set.

    Disallowed characters (path separators, dots, whitespace, punctuation,
    non-ASCII letters) are deleted rather than replaced, so ``"../etc"``
    becomes ``"etc"`` and ``"My Title!"`` becomes ``"MyTitle"``.
    """
    return _FILENAME_DISALLOWED_RE.sub("", value)


def strip_dangerous_tags(value: str) -> str:
    """
    Remove every HTML tag that is not in ``ALLOWED_TAGS``.

    The text content of stripped tags is preserved. Attributes are limited to
    ``href``/``title`` on links, and link protocols to http(s)/mailto.
    """
    return bleach.clean(
        value,
        tags=ALLOWED_TAGS,
        attributes=ALLOWED_ATTRIBUTES,
        protocols=ALLOWED_PROTOCOLS,
        strip=True,
        strip_comments=True,
    )


def limit_length(value: str, max_length: int = DEFAULT_MAX_LENGTH) -> str:
    """Truncate *value* to at most *max_length* characters."""
    if max_length < 0:
        raise ValueError(f"max_length must be non-negative, got {max_length}")
    return value[:max_length]


def full_sanitize(value: str, max_length: int = DEFAULT_MAX_LENGTH) -> str:
    """
    Strip disallowed tags, escape the result and truncate it.

    bleach entity-encodes the text it keeps; that output is unescaped before
    ``escape_html`` so characters are escaped exactly once.
    """
    stripped = html.unescape(strip_dangerous_tags(value))
    return limit_length(escape_html(stripped), max_length)
