"""
Inference Request Processor - Service Layer

Standardizes the flow: RequestContext -> EndpointPicker decision ->
internal redirect -> upstream response.
"""

import logging
from typing import Dict, Iterable, List, Optional, Tuple, Union

import httpx

from services.inference_router.core.epp import EndpointResolver
from services.inference_router.core.exceptions import (
    InternalRedirectError,
    NoUpstreamError,
    UpstreamUnavailableError,
)
from services.inference_router.core.proxy import proxy_to_upstream, select_upstream
from services.inference_router.models.context import RequestContext
from services.inference_router.models.routing import InferenceRoute
from services.inference_router.services.route_matcher import RouteMatcher

logger = logging.getLogger("inference_router.processor")


def parse_query_args(items: Iterable[Tuple[str, str]]) -> Dict[str, Union[str, List[str]]]:
    """Group query items by key; repeated keys become lists."""
    args: Dict[str, Union[str, List[str]]] = {}
    for key, value in items:
        if key not in args:
            args[key] = value
        elif isinstance(args[key], list):
            args[key].append(value)
        else:
            args[key] = [args[key], value]
    return args


def build_request_context(
    route: InferenceRoute,
    method: str,
    path: str,
    headers: List[Tuple[str, str]],
    query_items: Iterable[Tuple[str, str]],
    body: bytes,
) -> RequestContext:
    """Create the per-request routing context for a matched inference route."""
    return RequestContext(
        method=method,
        path=path,
        headers=headers,
        args=parse_query_args(query_items),
        body=body,
        epp_host=route.epp_host,
        epp_port=route.epp_port,
        epp_internal_path=route.internal_path,
    )


class InternalRedirect:
    """
    Continuation handed to the EndpointPicker filter.

    Re-enters routing at an internal location, picks the upstream from the
    request context and opens the proxied response. Can be used once.
    """

    def __init__(self, client: httpx.AsyncClient, route_matcher: RouteMatcher, ctx: RequestContext):
        self.client = client
        self.route_matcher = route_matcher
        self.ctx = ctx
        self.path: Optional[str] = None
        self.upstream: Optional[str] = None
        self.response: Optional[httpx.Response] = None

    async def __call__(self, path: str) -> None:
        if self.path is not None:
            raise InternalRedirectError(path, f"request already redirected to {self.path}")
        self.path = path

        internal_path, _, query = path.partition("?")
        route = self.route_matcher.match_internal(internal_path)
        if route is None:
            raise InternalRedirectError(internal_path, "no internal location")

        upstream = select_upstream(self.ctx.inference_workload_endpoint, route)
        if upstream is None:
            raise NoUpstreamError(internal_path)
        self.upstream = upstream

        try:
            self.response = await proxy_to_upstream(self.client, upstream, self.ctx, query)
        except httpx.HTTPError as e:
            logger.error(
                f"Upstream request failed for {upstream}",
                extra={
                    "upstream": upstream,
                    "error_type": type(e).__name__,
                    "error_detail": str(e),
                },
            )
            raise UpstreamUnavailableError(upstream, e) from e


class InferenceRequestProcessor:
    """
    Orchestrates the routing lifecycle of one inference request.
    """

    def __init__(
        self, client: httpx.AsyncClient, route_matcher: RouteMatcher, resolver: EndpointResolver
    ):
        self.client = client
        self.route_matcher = route_matcher
        self.resolver = resolver

    async def process_request(self, ctx: RequestContext) -> httpx.Response:
        """
        Resolve the workload endpoint and proxy the request.

        Returns:
            Streaming upstream response; the caller closes it.
        """
        redirect = InternalRedirect(self.client, self.route_matcher, ctx)
        result = await self.resolver.resolve(ctx, redirect)

        logger.debug(
            f"Routed {ctx.method} {ctx.path} via {result.redirect_path} to {redirect.upstream}",
            extra={"resolved": result.resolved, "upstream": redirect.upstream},
        )
        return redirect.response
