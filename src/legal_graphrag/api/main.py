"""
FastAPI application entry point.
"""

import asyncio
import contextlib
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from legal_graphrag import __version__
from legal_graphrag.config import get_settings
from legal_graphrag.log_config import configure_logging
from legal_graphrag.storage.neo4j_adapter import GraphStoreUnavailable
from legal_graphrag.storage.rate_limit import RateLimitExceeded, get_rate_limiter, sweep_periodically

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    # Startup
    settings = get_settings()
    configure_logging(settings)
    logger.info("application_starting")
    logger.info(
        "configuration_loaded",
        environment=settings.environment,
        debug=settings.debug,
        llm_configured=settings.anthropic_configured or bool(settings.openai_api_key),
        rate_limit_backend=settings.rate_limit_backend,
    )

    sweeper = asyncio.create_task(
        sweep_periodically(get_rate_limiter(), settings.rate_limit_sweep_interval)
    )

    yield

    # Shutdown
    logger.info("application_shutting_down")
    sweeper.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await sweeper

    from legal_graphrag.services.llm_service import get_llm_service
    from legal_graphrag.storage.neo4j_adapter import get_graph_store

    await get_graph_store().close()
    await get_llm_service().close()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Legal GraphRAG API",
        description="AI legal risk diagnosis and legal document generation",
        version=__version__,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.debug else settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        content = exc.detail if isinstance(exc.detail, dict) else {"error": exc.detail}
        return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.info("request_validation_failed", path=request.url.path, errors=len(exc.errors()))
        return JSONResponse(
            status_code=400,
            content={
                "error": "リクエストの形式が不正です",
                "details": [
                    {"loc": list(err.get("loc", ())), "msg": err.get("msg")} for err in exc.errors()
                ],
            },
        )

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
        logger.info("rate_limit_exceeded", path=request.url.path, reset_time=exc.result.reset_time)
        return JSONResponse(status_code=429, content=exc.body(), headers=exc.headers())

    @app.exception_handler(GraphStoreUnavailable)
    async def graph_unavailable_handler(request: Request, exc: GraphStoreUnavailable) -> JSONResponse:
        logger.error("graph_store_unavailable", path=request.url.path, error=str(exc))
        return JSONResponse(status_code=503, content={"error": "Database connection failed"})

    @app.exception_handler(Exception)
    async def global_exception_handler(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        logger.error(
            "unhandled_exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
        )
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal server error",
                "detail": str(exc) if settings.debug else None,
            },
        )

    # Include routers
    from legal_graphrag.api.routes import (
        chat,
        diagnosis,
        documents,
        generator,
        graph,
        learn,
        members,
        upload,
        web,
    )

    app.include_router(diagnosis.router, prefix="/api/diagnosis", tags=["diagnosis"])
    app.include_router(generator.router, prefix="/api/generator", tags=["generator"])
    app.include_router(graph.router, prefix="/api", tags=["search"])
    app.include_router(web.router, prefix="/api", tags=["search"])
    app.include_router(learn.router, prefix="/api", tags=["learn"])
    app.include_router(upload.router, prefix="/api", tags=["upload"])
    app.include_router(documents.router, prefix="/api", tags=["documents"])
    app.include_router(members.router, prefix="/api", tags=["members"])
    app.include_router(chat.router, prefix="/api", tags=["chat"])

    # Health check
    @app.get("/health")
    async def health_check() -> dict:
        """Health check endpoint."""
        from legal_graphrag.services.llm_service import get_llm_service
        from legal_graphrag.storage.neo4j_adapter import get_graph_store

        llm_status = get_llm_service().health_check()
        neo4j_status = await get_graph_store().health_check()

        return {
            "status": "healthy",
            "services": {
                "llm": llm_status,
                "neo4j": neo4j_status,
            },
        }

    # Root endpoint
    @app.get("/")
    async def root() -> dict:
        """Root endpoint."""
        return {
            "name": "Legal GraphRAG API",
            "version": __version__,
            "docs": "/docs",
        }

    return app


# Create default app instance
app = create_app()
