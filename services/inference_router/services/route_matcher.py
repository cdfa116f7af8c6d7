"""
Route matching service.

Loads routing.yml and resolves inference routes from request paths.

Note:
    Provides functionality different from FastAPI's APIRouter.
    External routes match by path prefix; internal locations are reachable
    only through an internal redirect and match their exact path.
"""

import logging
from typing import List, Optional

import yaml
from pydantic import ValidationError

from ..config import config
from ..models.routing import InferenceRoute

logger = logging.getLogger("inference_router.route_matcher")


def _prefix_matches(prefix: str, path: str) -> bool:
    if prefix == "/" or path == prefix:
        return True
    return path.startswith(prefix.rstrip("/") + "/")


class RouteMatcher:
    def __init__(self, config_path: Optional[str] = None):
        """
        Args:
            config_path: routing.yml path (defaults to ROUTING_CONFIG_PATH)
        """
        self.config_path = config_path or config.ROUTING_CONFIG_PATH
        self._routes: List[InferenceRoute] = []
        self._loaded = False

    @property
    def routes(self) -> List[InferenceRoute]:
        return list(self._routes)

    def load_routing_config(self, force: bool = False) -> List[InferenceRoute]:
        """
        Load routing.yml and cache it.

        A file that fails to parse or validate keeps the previously loaded routes.
        """
        if self._loaded and not force:
            return self._routes

        try:
            with open(self.config_path, "r", encoding="utf-8") as f:
                cfg = yaml.safe_load(f) or {}
            routes = [InferenceRoute.model_validate(r) for r in cfg.get("routes") or []]
        except FileNotFoundError:
            logger.warning(f"Routing config not found at {self.config_path}")
            self._routes = []
        except (yaml.YAMLError, ValidationError) as e:
            logger.error(f"Error parsing routing config: {e}")
        else:
            self._routes = routes
            logger.info(f"Loaded {len(routes)} routes from {self.config_path}")

        self._loaded = True
        return self._routes

    def _is_internal(self, path: str) -> bool:
        return any(r.internal_path == path for r in self._routes)

    def match_route(self, request_path: str) -> Optional[InferenceRoute]:
        """
        Resolve the external route for a request path.

        Args:
            request_path: request path (e.g., "/v1/completions")

        Returns:
            The route with the longest matching prefix, or None. Internal
            location paths never match.
        """
        if not self._loaded:
            self.load_routing_config()

        if self._is_internal(request_path):
            return None

        candidates = [r for r in self._routes if _prefix_matches(r.path, request_path)]
        if not candidates:
            return None
        return max(candidates, key=lambda r: len(r.path))

    def match_internal(self, internal_path: str) -> Optional[InferenceRoute]:
        """Resolve the route owning an internal location."""
        if not self._loaded:
            self.load_routing_config()

        for route in self._routes:
            if route.internal_path and route.internal_path == internal_path:
                return route
        return None
