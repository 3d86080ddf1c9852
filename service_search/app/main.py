"""Search service main application."""

import time
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.routing import Match
import structlog

from libs.common.config import SearchConfig
from libs.common.logging import configure_logging, request_context
from .api.routes import router as api_router
from .hybrid.search_manager import SearchManager
from .runtime.metrics import get_metrics_collector

logger = structlog.get_logger("search_service")

SERVICE_NAME = "search-service"
SERVICE_VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the search manager from the environment and tear it down on exit."""
    config = SearchConfig()
    configure_logging(SERVICE_NAME, config.ml_log_level, config.ml_log_format)

    logger.info(
        "Starting search service",
        environment=config.ml_env,
        fusion_algorithm=config.ml_search_fusion_algorithm,
        query_rewrite_enabled=config.ml_query_rewrite_enabled
    )

    app.state.metrics_collector = get_metrics_collector(SERVICE_NAME)
    app.state.search_manager = SearchManager(config, metrics_collector=app.state.metrics_collector)
    await app.state.search_manager.initialize()

    logger.info("Search service started successfully", port=config.ml_search_port)

    yield

    logger.info("Shutting down search service")
    await app.state.search_manager.cleanup()
    logger.info("Search service shutdown complete")


app = FastAPI(
    title="Hybrid Search Service",
    description="Document search fusing lexical (OpenSearch) and semantic (vector index) results",
    version=SERVICE_VERSION,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix="/api")


def route_template(request: Request) -> str:
    """Path template used as the metrics label, e.g. ``/api/documents/{document_id}``."""
    for route in request.app.routes:
        match, _ = route.matches(request.scope)
        if match == Match.FULL:
            return getattr(route, "path", request.url.path)
    return "unmatched"


@app.middleware("http")
async def request_middleware(request: Request, call_next):
    """Tag logs with a request id, time the request and record HTTP metrics."""
    with request_context(request.headers.get("X-Request-ID"), path=request.url.path) as request_id:
        start_time = time.time()

        try:
            response = await call_next(request)
        except Exception:
            logger.exception("Unhandled error", method=request.method)
            response = JSONResponse(
                status_code=500,
                content={"error": "Internal server error", "requestId": request_id}
            )

        duration = time.time() - start_time
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = str(duration)

        if hasattr(app.state, 'metrics_collector'):
            app.state.metrics_collector.record_http_request(
                method=request.method,
                endpoint=route_template(request),
                status=response.status_code,
                duration=duration
            )

        return response


@app.get("/health")
async def health_check():
    """Health check endpoint.

    A down lexical backend reports ``degraded`` with 200 because searches
    still answer from the vector index.
    """
    if not hasattr(app.state, 'search_manager'):
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "service": SERVICE_NAME}
        )

    components = await app.state.search_manager.health_check()
    status = "healthy" if all(components.values()) else "degraded"
    return {"status": status, "service": SERVICE_NAME, "components": components}


@app.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint."""
    if hasattr(app.state, 'metrics_collector'):
        return Response(content=app.state.metrics_collector.get_metrics(), media_type="text/plain")
    return Response(content="# No metrics available\n", media_type="text/plain")


@app.get("/")
async def root():
    """Service summary and entry points."""
    return {
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "status": "running",
        "endpoints": {
            "health": "/health",
            "metrics": "/metrics",
            "hybrid_search": "/api/search/hybrid",
            "lexical_search": "/api/search/lexical",
            "semantic_search": "/api/search/semantic",
            "documents": "/api/documents",
            "document_batch": "/api/documents/batch",
            "index_stats": "/api/documents/stats"
        }
    }


if __name__ == "__main__":
    uvicorn.run(
        "service_search.app.main:app",
        host="0.0.0.0",
        port=SearchConfig().ml_search_port,
        log_level="info"
    )
