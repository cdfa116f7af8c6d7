"""
Custom exception classes.

Two families:
- EndpointResolutionError: fatal precondition failures of the EndpointPicker
  filter (the route is misconfigured, nothing was sent to the picker).
- InferenceRoutingError: failures of the host routing layer around it.
"""

import logging
from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class EndpointResolutionError(Exception):
    """Base exception class for EndpointPicker precondition failures."""

    pass


class MissingRoutingVariablesError(EndpointResolutionError):
    """Raised when epp_host and/or epp_port are not set for the request."""

    def __init__(self, host_var: str = "epp_host", port_var: str = "epp_port"):
        super().__init__(f"Missing required variables: {host_var} and/or {port_var}")


class MissingInternalPathError(EndpointResolutionError):
    """Raised when epp_internal_path is not set for the request."""

    def __init__(self, path_var: str = "epp_internal_path"):
        super().__init__(f"Missing required variable: {path_var}")


class InferenceRoutingError(Exception):
    """Base exception class for the routing layer."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class RouteNotFoundError(InferenceRoutingError):
    """Raised when no external route matches the request path."""

    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"No route for path: {path}")


class InternalRedirectError(InferenceRoutingError):
    """Raised when an internal redirect cannot be dispatched."""

    def __init__(self, path: str, reason: str):
        self.path = path
        super().__init__(f"Internal redirect to {path} failed: {reason}")


class NoUpstreamError(InferenceRoutingError):
    """Raised when a FailClose pool has no endpoint picked for the request."""

    def __init__(self, internal_path: str):
        self.internal_path = internal_path
        super().__init__(f"No inference endpoint selected for {internal_path}")


class UpstreamUnavailableError(InferenceRoutingError):
    """Raised when the selected upstream cannot be reached."""

    status_code = status.HTTP_502_BAD_GATEWAY

    def __init__(self, upstream: str, cause: Exception):
        self.upstream = upstream
        self.cause = cause
        super().__init__(f"Upstream {upstream} unavailable: {cause}")


# ===========================================
# Exception Handlers
# ===========================================


async def global_exception_handler(request: Request, exc: Exception):
    """
    Catch-all handler for unhandled exceptions.
    """
    logger.error(
        f"Global exception handler caught: {exc}",
        exc_info=True,
        extra={
            "path": request.url.path,
            "method": request.method,
        },
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"message": "Internal Server Error", "detail": str(exc)},
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """
    Handler for HTTPException.
    """
    return JSONResponse(status_code=exc.status_code, content={"message": exc.detail})


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Handler for validation errors.
    """
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"message": "Validation Error", "detail": str(exc.errors())},
    )
