"""
Where: services/inference_router/exceptions.py
What: Router exception handler registration and custom HTTP mappings.
Why: Keep error handling setup isolated from route and lifecycle concerns.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.exceptions import (
    EndpointResolutionError,
    InferenceRoutingError,
    global_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)

logger = logging.getLogger("inference_router.main")


def make_precondition_handler(status_code: int):
    async def endpoint_resolution_handler(request: Request, exc: EndpointResolutionError):
        logger.error(
            f"Inference route misconfigured: {exc}",
            extra={"path": request.url.path, "method": request.method},
        )
        return JSONResponse(
            status_code=status_code,
            content={"message": "Inference route misconfigured", "detail": str(exc)},
        )

    return endpoint_resolution_handler


async def inference_routing_handler(request: Request, exc: InferenceRoutingError):
    if exc.status_code >= 500:
        logger.error(
            str(exc),
            extra={"path": request.url.path, "method": request.method},
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": str(exc)},
    )


def register_exception_handlers(app: FastAPI, precondition_status: int = 500) -> None:
    app.add_exception_handler(Exception, global_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)  # ty: ignore[invalid-argument-type]  # Starlette type stubs incomplete
    app.add_exception_handler(RequestValidationError, validation_exception_handler)  # ty: ignore[invalid-argument-type]  # Starlette type stubs incomplete
    precondition_handler = make_precondition_handler(precondition_status)
    app.add_exception_handler(EndpointResolutionError, precondition_handler)  # ty: ignore[invalid-argument-type]  # Starlette type stubs incomplete
    app.add_exception_handler(InferenceRoutingError, inference_routing_handler)  # ty: ignore[invalid-argument-type]  # Starlette type stubs incomplete
