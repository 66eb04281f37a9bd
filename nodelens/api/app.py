"""FastAPI application factory.

The REST API is mounted under ``/api/v1``; Prometheus metrics are served
at ``/metrics``.  Collaborators are attached to ``app.state`` so route
handlers stay free of construction logic.
"""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI
from prometheus_client import make_asgi_app

from nodelens import __version__
from nodelens.api.routes import router
from nodelens.models.config import NodeLensConfig

API_PREFIX = "/api/v1"


def create_app(
    coordinator: Any,
    config: NodeLensConfig | None = None,
) -> FastAPI:
    """Build the FastAPI app around an AlertCoordinator (or a test double)."""
    app = FastAPI(
        title="NodeLens",
        version=__version__,
        description="Alert correlation and metrics enrichment for node diagnostics.",
        openapi_url=f"{API_PREFIX}/openapi.json",
        docs_url=f"{API_PREFIX}/docs",
        redoc_url=None,
    )
    app.state.coordinator = coordinator
    app.state.config = config or NodeLensConfig()

    app.include_router(router, prefix=API_PREFIX)
    app.mount("/metrics", make_asgi_app())
    return app
