"""
Public nice URL routes.

Key behaviors:
- /route resolves the nice path in ``qs`` and redirects to the internal URL
- Unresolved paths show a 404 in debug mode, otherwise redirect to the site root
- /rewrite inverts a batch of internal URLs scraped from a rendered page
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import RedirectResponse
from pydantic import BaseModel, Field

from src.api.deps import Settings, get_settings, get_url_router
from src.components.nice_urls import (
    ConvertInput,
    RewriteInput,
    UrlRouter,
    run_convert,
    run_rewrite,
)

logger = logging.getLogger(__name__)

router = APIRouter()

MAX_REWRITE_BATCH = 1000


class RewriteRequest(BaseModel):
    """Internal URLs found on a page."""

    urls: list[str] = Field(..., max_length=MAX_REWRITE_BATCH)


class RewriteResponse(BaseModel):
    """Original URL -> nice URL for every URL that inverted."""

    urls: dict[str, str]


@router.get("/route")
def route_nice_url(
    qs: str = Query(..., description="Nice path, e.g. course/intro-to-cs/syllabus"),
    url_router: UrlRouter = Depends(get_url_router),
    settings: Settings = Depends(get_settings),
) -> RedirectResponse:
    """Redirect a nice path to the internal URL it maps to."""
    result = run_convert(ConvertInput(path=qs), router=url_router)

    if result.success and result.url:
        return RedirectResponse(url=result.url, status_code=302)

    for error in result.errors:
        logger.debug("No route for %r: %s", qs, error.message)

    if settings.debug:
        raise HTTPException(
            status_code=404,
            detail=f"The requested URL {qs} was not found on this server.",
        )
    return RedirectResponse(url=f"{settings.base_url}/", status_code=302)


@router.post("/api/rewrite", response_model=RewriteResponse)
def rewrite_urls(
    request: RewriteRequest,
    url_router: UrlRouter = Depends(get_url_router),
) -> RewriteResponse:
    """Map internal URLs to nice URLs; URLs that do not invert are omitted."""
    result = run_rewrite(RewriteInput(urls=tuple(request.urls)), router=url_router)
    return RewriteResponse(urls=result.urls)
