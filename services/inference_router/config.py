"""
Inference router configuration definition.

Loads configuration from environment variables and provides a Pydantic model.
Uses pydantic-settings for type safety and defaults.
"""

import sys
from pydantic import Field
from services.common.core.config import BaseAppConfig


class RouterConfig(BaseAppConfig):
    """
    Configuration management for the Inference Router service.
    """

    # EndpointPicker sidecar (translates HTTP queries into ext_proc calls)
    EPP_SHIM_URI: str = Field(
        default="http://127.0.0.1:54800", description="Local EndpointPicker shim address"
    )

    # Shared HTTP client; also the only timeout applied to EndpointPicker queries
    HTTP_CLIENT_TIMEOUT: float = Field(default=60.0, description="HTTP client timeout (seconds)")

    # Path settings
    ROUTING_CONFIG_PATH: str = Field(
        default="/app/config/routing.yml", description="Inference routing definition file path"
    )
    LOG_CONFIG_PATH: str = Field(
        default="/app/config/router_log.yml", description="Logging dictConfig YAML path"
    )

    # Response status for requests whose route lacks EndpointPicker variables
    PRECONDITION_FAILURE_STATUS: int = Field(
        default=500,
        ge=400,
        le=599,
        description="Status returned when routing variables are missing",
    )

    # FastAPI settings
    root_path: str = Field(default="", description="API root path (for proxy)")


# Load config as a singleton.
# pydantic-settings reads environment variables during instantiation.
try:
    config = RouterConfig()
except Exception as e:
    sys.stderr.write(f"Failed to load configuration: {e}\n")
    raise
