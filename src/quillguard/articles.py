"""
File-backed article storage for Quillguard.

One file per article inside a single storage directory:

- filename: the title reduced to ``[A-Za-z0-9_-]`` (no extension)
- content:  the body after tag stripping, HTML escaping and truncation,
  UTF-8, no embedded metadata

Content is sanitized before it is written, so the directory only ever holds
pre-escaped text. Reads go through ``resolve_safe_article_path``, which
refuses anything that is not a plain, enumerated, readable file inside the
storage directory.
"""

from __future__ import annotations

import html
import os
from pathlib import Path

import structlog

from .models import Article
from .sanitizer import DEFAULT_MAX_LENGTH, full_sanitize, limit_length, sanitize_filename

logger = structlog.get_logger(__name__)


class ArticleNotFoundError(LookupError):
    """
    The requested article cannot be served.

    Raised both for titles that do not exist and for titles rejected by the
    path checks, so callers cannot tell the two apart.
    """


def list_article_names(storage_dir: Path) -> list[str]:
    """
    Return the names of all article files in *storage_dir*, sorted.

    Only regular files whose name is already filename-safe are listed, which
    excludes hidden files and anything with an extension.
    """
    if not storage_dir.is_dir():
        return []
    names = []
    for entry in storage_dir.iterdir():
        if entry.is_file() and entry.name and sanitize_filename(entry.name) == entry.name:
            names.append(entry.name)
    return sorted(names)


def resolve_safe_article_path(raw_title: str, storage_dir: Path) -> Path:
    """
    Map an untrusted title to the article file it names.

    The title is stripped to the filename-safe character set, joined to the
    storage directory and canonicalized. The result is accepted only if it
    lies inside the canonical storage directory, appears in a fresh listing of
    that directory, and is readable.

    Raises:
        ArticleNotFoundError: If any of those checks fails.
    """
    safe_name = sanitize_filename(raw_title or "")
    if not safe_name:
        raise ArticleNotFoundError(raw_title)

    try:
        root = storage_dir.resolve(strict=True)
        candidate = (root / safe_name).resolve(strict=True)
    except (OSError, RuntimeError):
        raise ArticleNotFoundError(raw_title) from None

    if candidate == root or not candidate.is_relative_to(root):
        raise ArticleNotFoundError(raw_title)
    if safe_name not in list_article_names(root):
        raise ArticleNotFoundError(raw_title)
    if not candidate.is_file() or not os.access(candidate, os.R_OK):
        raise ArticleNotFoundError(raw_title)
    return candidate


class ArticleStore:
    """Reads and writes articles under a single storage directory."""

    def __init__(
        self,
        storage_dir: Path,
        *,
        max_title_length: int = DEFAULT_MAX_LENGTH,
        max_body_length: int = 10_000,
    ) -> None:
        self.storage_dir = Path(storage_dir)
        self.max_title_length = max_title_length
        self.max_body_length = max_body_length
        self._word_count: int | None = None

    # --- Sanitization ---

    def sanitize_title(self, raw_title: str) -> str:
        return limit_length(sanitize_filename(raw_title.strip()), self.max_title_length)

    def sanitize_body(self, raw_body: str) -> str:
        return full_sanitize(raw_body.strip(), self.max_body_length)

    def prepare(self, raw_title: str, raw_body: str) -> Article:
        """Sanitize a raw title/body pair. Either field may come back empty."""
        return Article(title=self.sanitize_title(raw_title), body=self.sanitize_body(raw_body))

    # --- Writes ---

    def write(self, article: Article) -> Path:
        """
        Write an already-prepared article, overwriting any previous version.

        Raises:
            ValueError: If the title or body is empty, or the title is not
                filename-safe.
            OSError: If the file cannot be written, or the target is a
                symlink or otherwise resolves outside the storage directory.
        """
        if not article.title or not article.body:
            raise ValueError("Article title and body must not be empty.")
        if sanitize_filename(article.title) != article.title:
            raise ValueError(f"Unsafe article title: {article.title!r}")

        self.storage_dir.mkdir(parents=True, exist_ok=True)
        path = self.storage_dir / article.title
        if path.is_symlink() or path.resolve().parent != self.storage_dir.resolve():
            logger.warning("Refusing to write outside storage", title=article.title)
            raise PermissionError(f"Article path escapes storage: {article.title!r}")
        path.write_text(article.body, encoding="utf-8")
        self._word_count = None
        logger.info("Article saved", title=article.title, length=len(article.body))
        return path

    def save(self, raw_title: str, raw_body: str) -> Article:
        """Sanitize and write an article in one step."""
        article = self.prepare(raw_title, raw_body)
        self.write(article)
        return article

    # --- Reads ---

    def fetch(self, title: str) -> str:
        """
        Return the stored body for *title*.

        Raises:
            ArticleNotFoundError: If the article does not exist or the title
                was rejected by ``resolve_safe_article_path``.
        """
        path = resolve_safe_article_path(title, self.storage_dir)
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            raise ArticleNotFoundError(title) from None

    def list_articles(self) -> list[str]:
        return list_article_names(self.storage_dir)

    def prefix_search(self, prefix: str) -> list[str]:
        """Case-insensitive prefix match over the article names."""
        needle = prefix.lower()
        return [name for name in self.list_articles() if name.lower().startswith(needle)]

    def word_count(self) -> int:
        """
        Total number of whitespace-separated words across all articles.

        The value is cached on the store and invalidated by every write.
        """
        if self._word_count is None:
            total = 0
            for name in self.list_articles():
                try:
                    content = self.fetch(name)
                except ArticleNotFoundError:
                    continue
                total += len(html.unescape(content).split())
            self._word_count = total
        return self._word_count
