"""
Where: services/inference_router/lifecycle.py
What: Router startup/shutdown orchestration for shared resources.
Why: Keep main.py focused on app assembly while preserving lifecycle behavior.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from services.common.core.http_client import HttpClientFactory

from .config import RouterConfig
from .core.epp import EndpointResolver
from .services.processor import InferenceRequestProcessor
from .services.route_matcher import RouteMatcher

logger = logging.getLogger("inference_router.main")


@asynccontextmanager
async def manage_lifespan(app: FastAPI, router_config: RouterConfig) -> AsyncIterator[None]:
    """Manage application lifecycle."""
    factory = HttpClientFactory(router_config)
    factory.configure_global_settings()
    client = factory.create_async_client(timeout=router_config.HTTP_CLIENT_TIMEOUT)

    try:
        route_matcher = RouteMatcher(router_config.ROUTING_CONFIG_PATH)
        route_matcher.load_routing_config()

        resolver = EndpointResolver(client, shim_uri=router_config.EPP_SHIM_URI)

        app.state.route_matcher = route_matcher
        app.state.request_processor = InferenceRequestProcessor(client, route_matcher, resolver)

        logger.info(
            "Inference router initialized with EndpointPicker shim: %s",
            router_config.EPP_SHIM_URI,
        )

        yield
    finally:
        logger.info("Inference router shutting down, closing http client.")
        await client.aclose()
