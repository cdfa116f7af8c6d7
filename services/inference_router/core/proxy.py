"""
Upstream selection and request forwarding.

Picks the model server for a request from the EndpointPicker decision and the
pool's failure mode, then streams the original request to it.
"""

import logging
from typing import Iterable, List, Optional, Tuple

import httpx
from starlette.datastructures import Headers

from ..models.context import RequestContext
from ..models.routing import FailureMode, InferenceRoute
from .epp import encode_header_pairs

logger = logging.getLogger("inference_router.proxy")

HOP_BY_HOP_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailers",
        "transfer-encoding",
        "upgrade",
    }
)


def select_upstream(endpoint: Optional[str], route: InferenceRoute) -> Optional[str]:
    """
    Resolve the upstream address for an internal location.

    Args:
        endpoint: inference_workload_endpoint set by the EndpointPicker filter
        route: route owning the internal location

    Returns:
        ``host:port`` to proxy to, or None when a FailClose pool has no endpoint
    """
    if endpoint:
        return endpoint
    if route.failure_mode == FailureMode.FAIL_OPEN:
        return route.upstream
    return None


def filter_request_headers(headers: Iterable[Tuple[str, str]]) -> List[Tuple[bytes, bytes]]:
    """Drop hop-by-hop headers and the ones httpx recomputes for the upstream."""
    return encode_header_pairs(
        (k, v)
        for k, v in headers
        if k.lower() not in HOP_BY_HOP_HEADERS and k.lower() not in ("host", "content-length")
    )


def filter_response_headers(headers: httpx.Headers) -> Headers:
    # Raw pairs so repeated headers such as set-cookie stay separate.
    raw = []
    for key, value in headers.raw:
        name = key.lower()
        if name.decode("latin-1") in HOP_BY_HOP_HEADERS or name == b"content-length":
            continue
        raw.append((name, value))
    return Headers(raw=raw)


async def proxy_to_upstream(
    client: httpx.AsyncClient, upstream: str, ctx: RequestContext, query: str = ""
) -> httpx.Response:
    """
    Forward the original request to the selected upstream.

    The response is opened in streaming mode; the caller owns closing it.
    """
    url = f"http://{upstream}{ctx.path}"
    if query:
        url = f"{url}?{query}"

    request = client.build_request(
        ctx.method,
        url,
        headers=filter_request_headers(ctx.headers),
        content=ctx.body,
    )
    logger.info(f"Proxying {ctx.method} {ctx.path} to {upstream}")
    return await client.send(request, stream=True)
