"""
Data model definitions package.

Aggregates Pydantic models for use in other modules.
"""

from .context import RequestContext
from .result import ResolutionResult
from .routing import FailureMode, InferenceRoute

__all__ = [
    "RequestContext",
    "ResolutionResult",
    "FailureMode",
    "InferenceRoute",
]
