"""
Main API module for LinkTrail.

Responsibilities:
    - Expose REST endpoints for shortening, resolving, deleting and listing links
    - Log a click event for every successful resolution
    - Serve bucketed click analytics per link

Architecture:
    - App Factory pattern (create_app) for test isolation and DI.
    - Store chosen by LINKTRAIL_STORE_BACKEND (in-memory by default).
    - LinkManager holds the business rules; routes only translate HTTP.
    - Authentication happens upstream; the gateway forwards the caller's
      "provider#subject" identity in the X-Owner-Id header.

LLM Prompt Example:
    "Explain how to structure a FastAPI service with an application factory,
    injected dependencies, and a clean separation between API and business logic."
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Header, HTTPException, Query, Request, Response
from fastapi.responses import RedirectResponse
from pydantic import BaseModel

from linktrail.analytics.click_writer import RequestContext
from linktrail.analytics.geolocation import BaseGeolocator, IpApiGeolocator
from linktrail.config import settings
from linktrail.errors import (
    AliasConflict,
    AllocationExhausted,
    Forbidden,
    LinkTrailError,
    MalformedInput,
    NotFound,
    UpstreamUnavailable,
)
from linktrail.manager.link_manager import LinkManager
from linktrail.storage.base import BaseKeyValueStore
from linktrail.storage.repository import LinkRecordRepository
from linktrail.storage.store_factory import get_store


class ShortenRequest(BaseModel):
    """Request payload for creating a new short link."""
    url: str
    alias: Optional[str] = None
    tag: Optional[str] = None
    is_private: bool = False


class BulkShortenItem(BaseModel):
    url: str
    tag: Optional[str] = None
    is_private: bool = False


_STATUS_BY_ERROR = (
    (NotFound, 404),
    (AliasConflict, 409),
    (Forbidden, 403),
    (MalformedInput, 400),
    (AllocationExhausted, 503),
    (UpstreamUnavailable, 503),
)


def _http_error(exc: LinkTrailError) -> HTTPException:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))


def create_app(
    store: Optional[BaseKeyValueStore] = None,
    geolocator: Optional[BaseGeolocator] = None,
) -> FastAPI:
    """
    Factory function to build and configure a new FastAPI app instance.

    Args:
        store: Key-value backend; chosen from the environment when omitted.
        geolocator: Country lookup for click events; ip-api.com when omitted.

    Returns:
        FastAPI: A configured application with its own store and manager.
    """
    app = FastAPI(
        title="LinkTrail",
        description="URL shortener with per-click analytics over a wide-column store",
        docs_url="/docs",
    )
    log = logging.getLogger("linktrail")

    if not logging.getLogger().handlers:
        logging.basicConfig(level=settings.LOG_LEVEL)

    # ----------------------------------------------------------------
    # Per-app instances (isolated for tests, swappable for production)
    # ----------------------------------------------------------------
    store = store if store is not None else get_store()
    repository = LinkRecordRepository(store)
    manager = LinkManager(repository, geolocator=geolocator or IpApiGeolocator())
    app.state.manager = manager
    log.info("LinkTrail store backend: %s", type(store).__name__)

    # ----------------------------------------------------------------
    # Routes
    # ----------------------------------------------------------------
    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.post("/api/shorten")
    def shorten(
        req: ShortenRequest,
        request: Request,
        owner_id: Optional[str] = Header(None, alias="X-Owner-Id"),
    ) -> Dict[str, Any]:
        """
        Create a short link.

        Raises:
            HTTPException: 400 invalid URL/alias, 403 private link without
            identity, 409 alias taken, 503 allocation or store failure.
        """
        try:
            short_id = manager.shorten(
                req.url, alias=req.alias, tag=req.tag, owner_id=owner_id, is_private=req.is_private
            )
        except LinkTrailError as exc:
            raise _http_error(exc)

        body: Dict[str, Any] = {
            "short_id": short_id,
            "short_url": str(request.url_for("resolve_link", short_id=short_id)),
            "is_private": req.is_private,
            "original_url": req.url,
        }
        if owner_id:
            body["owner_id"] = owner_id
        return body

    @app.post("/api/bulk-shorten")
    def bulk_shorten(
        items: List[BulkShortenItem],
        owner_id: Optional[str] = Header(None, alias="X-Owner-Id"),
    ) -> Dict[str, Any]:
        payload = [{"url": i.url, "tag": i.tag, "is_private": i.is_private} for i in items]
        results = manager.bulk_shorten(payload, owner_id=owner_id)
        return {"shortened_urls": results}

    @app.get("/api/urls")
    def list_urls(
        tag: Optional[str] = Query(None, description="Tag to search for."),
        owner_id: Optional[str] = Header(None, alias="X-Owner-Id"),
    ) -> Any:
        """
        List links.

        Authenticated callers get all their links (no tag) or their links with
        the tag. Anonymous callers must give a tag and only see public links.
        """
        tag = (tag or "").strip()
        if owner_id:
            records = manager.list_by_owner(owner_id) if not tag else manager.list_by_tag(tag, owner_id)
            return [r.to_dict() for r in records]
        if not tag:
            return {"message": "Please provide a tag to search or login to view all your URLs"}
        records = manager.list_by_tag(tag)
        if not records:
            return {"message": "No URLs found for this tag"}
        return [r.to_dict() for r in records]

    @app.get("/api/{short_id}/analytics")
    def analytics(
        short_id: str,
        granularity: str = Query("daily", description="daily, weekly or monthly."),
        date: Optional[str] = Query(None, description="Reference day, YYYY-MM-DD."),
        owner_id: Optional[str] = Header(None, alias="X-Owner-Id"),
    ) -> Dict[str, Any]:
        try:
            manager.get_link(short_id, owner_id)
            return manager.get_analytics(short_id, granularity, date)
        except LinkTrailError as exc:
            raise _http_error(exc)

    @app.get("/api/{short_id}", name="resolve_link")
    def resolve_link(
        short_id: str,
        request: Request,
        owner_id: Optional[str] = Header(None, alias="X-Owner-Id"),
    ) -> Response:
        """Redirect to the destination (302) and log the click."""
        try:
            url = manager.resolve(short_id, owner_id)
            context = RequestContext(
                remote_addr=request.client.host if request.client else "",
                headers=dict(request.headers),
            )
            manager.log_click(short_id, context)
        except LinkTrailError as exc:
            raise _http_error(exc)
        return RedirectResponse(url=url, status_code=302)

    @app.delete("/api/{short_id}")
    def delete_link(
        short_id: str,
        owner_id: Optional[str] = Header(None, alias="X-Owner-Id"),
    ) -> Dict[str, str]:
        if not owner_id:
            raise HTTPException(status_code=401, detail="Authentication required")
        try:
            manager.delete(short_id, owner_id)
        except LinkTrailError as exc:
            raise _http_error(exc)
        return {"message": "URL successfully deleted"}

    return app


# `uvicorn main:app --reload` and `from main import app` keep working.
app = create_app()
