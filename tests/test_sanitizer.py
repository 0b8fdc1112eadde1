"""
Tests for quillguard.sanitizer: escaping, filename whitelisting, tag stripping.
"""

import pytest

from quillguard.sanitizer import (
    escape_html,
    full_sanitize,
    limit_length,
    sanitize_filename,
    strip_dangerous_tags,
)


# ===================================================================
# escape_html
# ===================================================================

class TestEscapeHtml:
    """Tests for escape_html()."""

    def test_escapes_tags_quotes_and_ampersand(self):
        result = escape_html("<p>Hello, 'World' & \"welcome\"!</p>")
        assert "<" not in result and ">" not in result
        assert "'" not in result and '"' not in result
        assert "&amp;" in result
        assert result.startswith("&lt;p&gt;")

    def test_empty_string(self):
        assert escape_html("") == ""


# ===================================================================
# sanitize_filename
# ===================================================================

class TestSanitizeFilename:
    """Tests for sanitize_filename()."""

    def test_removes_special_characters(self):
        assert sanitize_filename("test@file.jpg!%") == "testfilejpg"

    def test_keeps_dash_and_underscore(self):
        assert sanitize_filename("my-article_2") == "my-article_2"

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("../../etc/passwd", "etcpasswd"),
            ("..\\..\\windows", "windows"),
            ("My Title!", "MyTitle"),
            ("café", "caf"),
            ("a\x00b", "ab"),
        ],
    )
    def test_deletes_rather_than_replaces(self, raw, expected):
        assert sanitize_filename(raw) == expected

    def test_empty_string(self):
        assert sanitize_filename("") == ""


# ===================================================================
# strip_dangerous_tags
# ===================================================================

class TestStripDangerousTags:
    """Tests for strip_dangerous_tags()."""

    def test_strips_script_keeps_paragraph(self):
        result = strip_dangerous_tags("<script>alert(1)</script><p>Test</p>")
        assert "<script>" not in result
        assert "</script>" not in result
        assert "<p>Test</p>" in result

    def test_keeps_allowed_tags(self):
        result = strip_dangerous_tags(
            "<p>Hello World!</p><a href='https://example.com'>Example</a>"
        )
        assert result == '<p>Hello World!</p><a href="https://example.com">Example</a>'

    def test_drops_event_handler_attributes(self):
        result = strip_dangerous_tags('<b onclick="steal()">bold</b>')
        assert result == "<b>bold</b>"

    def test_drops_javascript_links(self):
        result = strip_dangerous_tags('<a href="javascript:alert(1)">x</a>')
        assert "javascript:" not in result

    def test_removes_comments(self):
        assert strip_dangerous_tags("a<!-- hidden -->b") == "ab"


# ===================================================================
# limit_length / full_sanitize
# ===================================================================

class TestLimitLength:
    """Tests for limit_length()."""

    def test_truncates(self):
        assert limit_length("abcdef", 3) == "abc"

    def test_short_input_unchanged(self):
        assert limit_length("abc") == "abc"

    def test_default_is_255(self):
        assert len(limit_length("x" * 1000)) == 255

    def test_negative_rejected(self):
        with pytest.raises(ValueError):
            limit_length("abc", -1)


class TestFullSanitize:
    """Tests for full_sanitize()."""

    def test_strips_then_escapes_once(self):
        assert full_sanitize("Test <br/> data &") == "Test &lt;br&gt; data &amp;"

    def test_removes_script_tags(self):
        result = full_sanitize("<script>alert(1)</script>hello")
        assert "script" not in result
        assert result.endswith("hello")

    def test_plain_text_unchanged(self):
        assert full_sanitize("World") == "World"

    def test_applies_length_limit(self):
        assert full_sanitize("a" * 50, max_length=10) == "a" * 10

    def test_limit_applies_after_escaping(self):
        # The cut counts escaped characters and may split an entity.
        assert full_sanitize("a&b", max_length=4) == "a&am"
