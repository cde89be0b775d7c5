"""FastAPI application factory"""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from networth_gateway.api.middleware import RequestIDMiddleware, MetricsMiddleware
from networth_gateway.api.v1 import estimate
from networth_gateway.domain.exceptions import FallbackTableError
from networth_gateway.infrastructure.database.session import create_tables
from networth_gateway.infrastructure.observability.logging import setup_logging
from networth_gateway.config import settings

# Setup structured logging
setup_logging(settings.log_level, settings.service_name)


@asynccontextmanager
async def lifespan(app: FastAPI):
    create_tables()
    yield


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Net Worth Estimation Gateway",
        description="Demographic net worth range estimation with optional AI refinement",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # Static tables that fail to load while wiring dependencies are a deployment defect
    @app.exception_handler(FallbackTableError)
    async def fallback_table_error_handler(request: Request, exc: FallbackTableError):
        logging.error(f"Fallback tables invalid: {exc}", extra={"path": request.url.path})
        return JSONResponse(status_code=500, content={"detail": "Estimator misconfigured"})

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(estimate.router, prefix="/v1", tags=["networth"])

    return app


app = create_app()


def run() -> None:
    """Serve the gateway with uvicorn; logging stays on the JSON handlers configured above"""
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        log_config=None,
    )


if __name__ == "__main__":
    run()
