"""
EndpointPicker filter.

For each inference request, asks the EndpointPicker (through the local shim)
which model server should handle it, records the answer in the request
context and hands the request to the internal location of its pool.
A failed decision never fails the request: it continues without an endpoint
and the internal location applies the pool's failure mode.
"""

import logging
from typing import Awaitable, Callable, Iterable, List, Mapping, Tuple, Union
from urllib.parse import quote, urlencode

import httpx

from ..models.context import RequestContext
from ..models.result import ResolutionResult
from .exceptions import MissingInternalPathError, MissingRoutingVariablesError

logger = logging.getLogger("inference_router.epp")

EPP_HOST_HEADER = "X-EPP-Host"
EPP_PORT_HEADER = "X-EPP-Port"
ENDPOINT_HEADER = "X-Gateway-Destination-Endpoint"
SHIM_URI = "http://127.0.0.1:54800"

# Continuation capability: re-enters routing at the given internal path.
Forward = Callable[[str], Awaitable[None]]


def encode_header_pairs(pairs: Iterable[Tuple[str, str]]) -> List[Tuple[bytes, bytes]]:
    """Encode latin-1 decoded header pairs back to their raw bytes."""
    return [(k.encode("latin-1"), v.encode("latin-1")) for k, v in pairs]


def build_epp_headers(ctx: RequestContext) -> List[Tuple[bytes, bytes]]:
    """
    Inbound headers, byte-exact and in order, plus the EndpointPicker address
    headers. Inbound copies of the address headers are replaced.
    """
    overlaid = {EPP_HOST_HEADER.lower(), EPP_PORT_HEADER.lower()}
    pairs = [(k, v) for k, v in ctx.headers if k.lower() not in overlaid]
    pairs.append((EPP_HOST_HEADER, ctx.epp_host))
    pairs.append((EPP_PORT_HEADER, ctx.epp_port))
    return encode_header_pairs(pairs)


def serialize_args(args: Mapping[str, Union[str, List[str]]]) -> str:
    """
    Serialize parsed query arguments back into ``key=value&...``.

    Repeated keys are written once per value; escaping matches URI component
    encoding.
    """
    return urlencode(args, doseq=True, quote_via=quote, safe="!'()*")


class EndpointResolver:
    def __init__(self, client: httpx.AsyncClient, shim_uri: str = SHIM_URI):
        """
        Args:
            client: Shared httpx.AsyncClient; its timeout bounds the query
            shim_uri: EndpointPicker shim address
        """
        self.client = client
        self.shim_uri = shim_uri

    async def resolve(self, ctx: RequestContext, forward: Forward) -> ResolutionResult:
        """
        Resolve the workload endpoint for a request and redirect it internally.

        Args:
            ctx: Request context; ``inference_workload_endpoint`` is set on success
            forward: Internal redirect, awaited exactly once after the query settled

        Returns:
            ResolutionResult describing the decision

        Raises:
            MissingRoutingVariablesError: epp_host or epp_port is not set
            MissingInternalPathError: epp_internal_path is not set
        """
        if not ctx.epp_host or not ctx.epp_port:
            raise MissingRoutingVariablesError()
        if not ctx.epp_internal_path:
            raise MissingInternalPathError()

        ctx.inference_workload_endpoint = None
        status_code = None
        error = None

        try:
            response = await self.client.request(
                ctx.method,
                self.shim_uri,
                headers=build_epp_headers(ctx),
                content=ctx.body,
            )
        except httpx.HTTPError as e:
            error = str(e) or type(e).__name__
            logger.error(
                f"Error contacting EndpointPicker: {error}",
                extra={
                    "epp_host": ctx.epp_host,
                    "epp_port": ctx.epp_port,
                    "error_type": type(e).__name__,
                },
            )
        else:
            status_code = response.status_code
            endpoint = response.headers.get(ENDPOINT_HEADER)
            if status_code == 200 and endpoint:
                ctx.inference_workload_endpoint = endpoint
                logger.info(f"found inference endpoint from EndpointPicker: {endpoint}")
            else:
                body = response.text
                error = f"status: {status_code}; body: {body}"
                logger.error(
                    "could not get specific inference endpoint from EndpointPicker; "
                    f"status: {status_code}; body: {body}",
                    extra={"epp_host": ctx.epp_host, "epp_port": ctx.epp_port},
                )

        # The internal redirect replaces the request URI, so the original
        # query string has to travel with it.
        args = serialize_args(ctx.args)
        redirect_path = ctx.epp_internal_path + (f"?{args}" if args else "")

        await forward(redirect_path)

        return ResolutionResult(
            redirect_path=redirect_path,
            endpoint=ctx.inference_workload_endpoint,
            status_code=status_code,
            error=error,
        )
