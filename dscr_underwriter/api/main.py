"""FastAPI application factory"""

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from dscr_underwriter.api.middleware import RequestIDMiddleware, MetricsMiddleware
from dscr_underwriter.api.v1 import rates, rate_changes
from dscr_underwriter.infrastructure.observability.logging import setup_logging
from dscr_underwriter.config import settings

# Setup structured logging
setup_logging(settings.log_level)


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="DSCR Underwriter",
        description="Interest rate underwriting and rate change approval service",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(rates.router, prefix="/v1", tags=["rates"])
    app.include_router(rate_changes.router, prefix="/v1", tags=["rate-changes"])

    return app


app = create_app()
