"""
Core logic package.

Provides the EndpointPicker filter and upstream proxying.
"""

from .epp import EndpointResolver, build_epp_headers, serialize_args
from .proxy import proxy_to_upstream, select_upstream

__all__ = [
    "EndpointResolver",
    "build_epp_headers",
    "serialize_args",
    "proxy_to_upstream",
    "select_upstream",
]
