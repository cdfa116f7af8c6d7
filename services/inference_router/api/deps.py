"""
Dependency Injection for the Inference Router API.

Manage request handler dependencies using FastAPI Depends.
"""

from typing import Annotated
from fastapi import Depends, Request

from ..core.exceptions import RouteNotFoundError
from ..models import InferenceRoute
from ..services.processor import InferenceRequestProcessor
from ..services.route_matcher import RouteMatcher


# ==========================================
# 1. Service Accessors
# ==========================================


def get_route_matcher(request: Request) -> RouteMatcher:
    return request.app.state.route_matcher


def get_request_processor(request: Request) -> InferenceRequestProcessor:
    return request.app.state.request_processor


# Service Dependency Type Aliases
RouteMatcherDep = Annotated[RouteMatcher, Depends(get_route_matcher)]
RequestProcessorDep = Annotated[InferenceRequestProcessor, Depends(get_request_processor)]


# ==========================================
# 2. Logic Dependencies (Resolution)
# ==========================================


async def resolve_inference_route(request: Request, route_matcher: RouteMatcherDep) -> InferenceRoute:
    """
    Resolve the inference route from the request path.

    Raises:
        RouteNotFoundError: 404 when no route matches
    """
    route = route_matcher.match_route(request.url.path)
    if route is None:
        raise RouteNotFoundError(request.url.path)
    return route


# Logic Dependency Type Aliases
InferenceRouteDep = Annotated[InferenceRoute, Depends(resolve_inference_route)]
