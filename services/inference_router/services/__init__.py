"""
Services package.

Provides routing business logic.
"""

from .processor import InferenceRequestProcessor, InternalRedirect
from .route_matcher import RouteMatcher

__all__ = [
    "InferenceRequestProcessor",
    "InternalRedirect",
    "RouteMatcher",
]
