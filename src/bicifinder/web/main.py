"""
FastAPI application exposing bicycle search, vocabularies and the image relay.
"""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncGenerator, Awaitable, Callable, Dict, Optional
from uuid import uuid4

import structlog
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from fastapi.staticfiles import StaticFiles
from prometheus_client import CONTENT_TYPE_LATEST
from pydantic import ValidationError

from bicifinder import __version__
from bicifinder.config import Config, get_settings
from bicifinder.errors import ImageRelayError, VocabularyUnavailableError
from bicifinder.models import SearchFilters
from bicifinder.observability import export_prometheus
from bicifinder.service import BicycleSearchService

logger = structlog.get_logger(__name__)

STATIC_DIR = Path(__file__).parent / "static"


def get_service(request: Request) -> BicycleSearchService:
    return request.app.state.service


def create_app(config: Optional[Config] = None, service: Optional[BicycleSearchService] = None) -> FastAPI:
    """Build the application. A pre-built ``service`` is used as is and never closed."""
    config = config or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        owned: Optional[BicycleSearchService] = None
        if app.state.service is None:
            owned = BicycleSearchService(config)
            await owned.start()
            app.state.service = owned
        app.state.start_time = time.time()
        logger.info("bicifinder API started", version=__version__)
        try:
            yield
        finally:
            if owned is not None:
                await owned.close()
                app.state.service = None
            logger.info("bicifinder API stopped")

    app = FastAPI(title="bicifinder", version=__version__, lifespan=lifespan)
    app.state.config = config
    app.state.service = service
    app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.web.cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["Content-Type", "X-Request-ID"],
    )

    @app.middleware("http")
    async def bind_request_context(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid4())
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id, path=request.url.path)
        start = time.time()
        try:
            response = await call_next(request)
        finally:
            structlog.contextvars.clear_contextvars()
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = f"{time.time() - start:.4f}"
        return response

    @app.get("/api/bicycles")
    async def search_bicycles(request: Request, service: BicycleSearchService = Depends(get_service)) -> JSONResponse:
        """Search recovered bicycles. Every filter is an optional query parameter."""
        try:
            filters = SearchFilters.model_validate(dict(request.query_params))
            bicycles = await service.search(filters)
        except ValidationError as e:
            logger.error("Invalid search filters", errors=e.errors(include_url=False))
            return JSONResponse({"success": False, "error": "Failed to fetch bicycles"}, status_code=500)
        except Exception as e:
            logger.exception("Search failed", error=str(e))
            return JSONResponse({"success": False, "error": "Failed to fetch bicycles"}, status_code=500)

        return JSONResponse(
            {"success": True, "count": len(bicycles), "data": [bike.to_dict() for bike in bicycles]}
        )

    async def _vocabulary(kind: str, fetch: Callable[[], Awaitable[list]]) -> JSONResponse:
        try:
            entries = await fetch()
        except VocabularyUnavailableError as e:
            logger.error("Vocabulary unavailable", kind=kind, reason=e.reason)
            return JSONResponse({"success": False, "error": f"Failed to fetch {kind}"}, status_code=500)
        return JSONResponse(
            {"success": True, "count": len(entries), "data": [entry.to_dict() for entry in entries]}
        )

    @app.get("/api/config/brands")
    async def brands(service: BicycleSearchService = Depends(get_service)) -> JSONResponse:
        return await _vocabulary("brands", service.brands)

    @app.get("/api/config/colors")
    async def colors(service: BicycleSearchService = Depends(get_service)) -> JSONResponse:
        return await _vocabulary("colors", service.colors)

    @app.get("/api/proxy-image")
    async def proxy_image(
        url: Optional[str] = None, service: BicycleSearchService = Depends(get_service)
    ) -> Response:
        """Relay an image hosted by the registry."""
        try:
            image = await service.relay_image(url)
        except ImageRelayError as e:
            return JSONResponse({"error": str(e)}, status_code=e.status_code)
        return Response(
            content=image.body,
            media_type=image.content_type,
            headers={"Cache-Control": image.cache_control},
        )

    @app.get("/health")
    async def health_check(request: Request) -> Dict[str, Any]:
        start_time = getattr(request.app.state, "start_time", None)
        return {
            "status": "healthy",
            "timestamp": time.time(),
            "version": __version__,
            "uptime_seconds": time.time() - start_time if start_time else 0.0,
            "strategies": request.app.state.config.acquisition.strategy_order,
        }

    @app.get("/metrics")
    async def get_prometheus_metrics() -> Response:
        """Endpoint for Prometheus to scrape."""
        return Response(export_prometheus(), media_type=CONTENT_TYPE_LATEST)

    return app


app = create_app()
