"""
Read-only JSON API for Quillguard.

GET /api/articles answers three kinds of query, checked in this order:

- no parameters:     {"content": [all article names]}
- ?prefixsearch=...: {"content": [names starting with the prefix]}
- ?title=...:        {"content": "<stored body>"} ("" when not found)

The submission guard is not involved; nothing here writes.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from ...articles import ArticleNotFoundError

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get("/articles")
async def articles(request: Request, title: str = "", prefixsearch: str = ""):
    store = request.app.state.store
    title = title.strip()
    prefixsearch = prefixsearch.strip()

    if not title and not prefixsearch:
        return JSONResponse(content={"content": store.list_articles()})

    if prefixsearch:
        return JSONResponse(content={"content": store.prefix_search(prefixsearch)})

    try:
        content = store.fetch(title)
    except ArticleNotFoundError:
        # Not found and rejected paths look the same to the caller.
        logger.info("Article not served", title=title)
        content = ""
    return JSONResponse(content={"content": content})
