"""
HTTP API module for the link shortener.

Responsibilities:
    - Expose REST endpoints for shortening, redirecting, listing and deleting
    - Map service-layer error kinds onto HTTP status codes
    - Give every request its own deadline (settings.REQUEST_TIMEOUT)

Architecture:
    - App Factory pattern (create_app) for test isolation and DI.
    - The storage backend is chosen once from configuration and owned by the
      ShortenerService; routes only talk to the service.
    - Owners are identified by the X-User-ID header. A fresh id is minted
      (and echoed back) when the header is missing.

Status mapping:
    NotFound / InvalidInput -> 400, Gone -> 410, Conflict -> 409,
    DeadlineExceeded -> 503, other storage errors -> 500.
"""

import logging
import uuid
from contextlib import asynccontextmanager
from typing import Dict, List, Optional

from fastapi import Body, FastAPI, HTTPException, Request, Response
from fastapi.responses import JSONResponse, PlainTextResponse, RedirectResponse
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from shortener.config import settings
from shortener.context import Context
from shortener.errors import (
    ConflictError,
    DeadlineExceededError,
    GoneError,
    InvalidInputError,
    NotFoundError,
    StorageError,
)
from shortener.service.link_service import ShortenerService

USER_HEADER = "X-User-ID"


class ShortenRequest(BaseModel):
    """Request payload for creating a new short link."""
    url: str


class BatchItem(BaseModel):
    correlation_id: str
    original_url: str


def create_app(service: Optional[ShortenerService] = None) -> FastAPI:
    """
    Factory function to build and configure a new FastAPI app instance.

    Args:
        service: Pre-built service (tests inject one wired to a fresh
            MemoryStorage). When omitted, it is built from settings.

    Returns:
        FastAPI: A configured application whose service is shut down with the app.
    """
    log = logging.getLogger("shortener")

    if not logging.getLogger().handlers:
        logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL, logging.INFO))

    svc = service or ShortenerService.from_settings(settings)
    log.info("shortener storage backend: %s", type(svc.storage).__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Stop the deletion workers (draining queued jobs) on shutdown."""
        try:
            yield
        finally:
            await run_in_threadpool(svc.close)

    app = FastAPI(
        title="Shortener",
        description="URL shortener with pluggable storage and asynchronous soft-delete",
        lifespan=lifespan,
    )
    app.state.service = svc

    # ----------------------------------------------------------------
    # Utilities
    # ----------------------------------------------------------------
    def _owner(request: Request, response: Response) -> str:
        owner = request.headers.get(USER_HEADER)
        if not owner:
            owner = str(uuid.uuid4())
            response.headers[USER_HEADER] = owner
        return owner

    def _echo_owner(response: Response) -> Optional[Dict[str, str]]:
        owner = response.headers.get(USER_HEADER)
        return {USER_HEADER: owner} if owner else None

    def _short_url(short_id: str) -> str:
        return f"{settings.BASE_URL}/{short_id}"

    def _ctx() -> Context:
        return Context(timeout=settings.REQUEST_TIMEOUT)

    def _http_error(exc: StorageError) -> HTTPException:
        if isinstance(exc, (NotFoundError, InvalidInputError)):
            return HTTPException(status_code=400, detail=str(exc))
        if isinstance(exc, GoneError):
            return HTTPException(status_code=410, detail=str(exc))
        if isinstance(exc, ConflictError):
            return HTTPException(status_code=409, detail=str(exc))
        if isinstance(exc, DeadlineExceededError):
            return HTTPException(status_code=503, detail=str(exc))
        log.error("storage failure: %s", exc)
        return HTTPException(status_code=500, detail="internal server error")

    # ----------------------------------------------------------------
    # Routes
    # ----------------------------------------------------------------
    @app.get("/ping")
    def ping() -> Dict[str, str]:
        try:
            svc.ping(_ctx())
        except StorageError as exc:
            raise HTTPException(status_code=500, detail="internal server error") from exc
        return {"status": "ok"}

    @app.post("/", response_class=PlainTextResponse)
    async def shorten_text(request: Request, response: Response):
        """Plain-text variant: body is the long URL, response is the short URL."""
        url = (await request.body()).decode("utf-8", errors="replace").strip()
        if not url:
            raise HTTPException(status_code=400, detail="Body cannot be empty.")
        owner = _owner(request, response)
        try:
            short_id, created = await run_in_threadpool(svc.shorten, owner, url, _ctx())
        except StorageError as exc:
            raise _http_error(exc) from exc
        response.status_code = 201 if created else 409
        return _short_url(short_id)

    @app.post("/api/shorten")
    def shorten_json(req: ShortenRequest, request: Request, response: Response) -> Dict[str, str]:
        if not req.url:
            raise HTTPException(status_code=400, detail="url cannot be empty")
        owner = _owner(request, response)
        try:
            short_id, created = svc.shorten(owner, req.url, _ctx())
        except StorageError as exc:
            raise _http_error(exc) from exc
        response.status_code = 201 if created else 409
        return {"result": _short_url(short_id)}

    @app.post("/api/shorten/batch", status_code=201)
    def shorten_batch(items: List[BatchItem], request: Request, response: Response) -> List[Dict[str, str]]:
        owner = _owner(request, response)
        try:
            ids = svc.shorten_batch(owner, {i.correlation_id: i.original_url for i in items}, _ctx())
        except StorageError as exc:
            raise _http_error(exc) from exc
        return [{"correlation_id": cid, "short_url": _short_url(sid)} for cid, sid in ids.items()]

    @app.get("/api/user/urls")
    def user_urls(request: Request, response: Response):
        owner = _owner(request, response)
        try:
            urls = svc.find_urls_by_owner(owner, _ctx())
        except NotFoundError:
            return Response(status_code=204, headers=_echo_owner(response))
        except StorageError as exc:
            raise _http_error(exc) from exc
        body = [{"short_url": _short_url(sid), "original_url": url} for sid, url in urls.items()]
        return JSONResponse(body, headers=_echo_owner(response))

    @app.delete("/api/user/urls", status_code=202)
    def delete_urls(request: Request, response: Response, short_ids: List[str] = Body(...)) -> Dict[str, str]:
        if not short_ids:
            raise HTTPException(status_code=400, detail="Body cannot be empty.")
        owner = _owner(request, response)
        svc.delete_urls(owner, short_ids)
        return {"status": "accepted"}

    @app.get("/{short_id}")
    def redirect(short_id: str) -> Response:
        try:
            original = svc.find_original_url(short_id, _ctx())
        except StorageError as exc:
            raise _http_error(exc) from exc
        return RedirectResponse(url=original, status_code=307)

    return app


if __name__ == "__main__":  # pragma: no cover
    import uvicorn

    uvicorn.run(create_app(), host="localhost", port=8080)
