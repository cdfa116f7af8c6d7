"""
Inference Router - EndpointPicker aware HTTP router

Matches inference requests against routing.yml, asks the EndpointPicker
which model server should handle each one, and proxies the request to it
through the pool's internal location.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from services.common.core.logging_config import setup_logging

from .api.deps import InferenceRouteDep, RequestProcessorDep
from .config import RouterConfig, config
from .core.proxy import filter_response_headers
from .exceptions import register_exception_handlers
from .lifecycle import manage_lifespan
from .middleware import request_id_middleware
from .services.processor import build_request_context

# Logger setup
setup_logging(config.LOG_CONFIG_PATH)
logger = logging.getLogger("inference_router.main")


async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}


async def inference_handler(
    request: Request,
    path: str,
    route: InferenceRouteDep,
    processor: RequestProcessorDep,
):
    """
    Catch-all route: resolve the workload endpoint and proxy the request.

    Route resolution is handled via DI; routing errors map to responses
    through the registered exception handlers.
    """
    ctx = build_request_context(
        route,
        method=request.method,
        path=request.url.path,
        headers=request.headers.items(),
        query_items=request.query_params.multi_items(),
        body=await request.body(),
    )

    upstream_response = await processor.process_request(ctx)

    return StreamingResponse(
        upstream_response.aiter_raw(),
        status_code=upstream_response.status_code,
        headers=filter_response_headers(upstream_response.headers),
        background=BackgroundTask(upstream_response.aclose),
    )


def create_app(router_config: RouterConfig) -> FastAPI:
    """Assemble the FastAPI application for the given configuration."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        async with manage_lifespan(app, router_config):
            yield

    app = FastAPI(
        title="Inference Router",
        version="1.0.0",
        lifespan=lifespan,
        root_path=router_config.root_path,
    )

    app.middleware("http")(request_id_middleware)
    register_exception_handlers(app, precondition_status=router_config.PRECONDITION_FAILURE_STATUS)

    app.add_api_route("/health", health_check, methods=["GET"])
    app.add_api_route(
        "/{path:path}",
        inference_handler,
        methods=["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"],
    )
    return app


app = create_app(config)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
