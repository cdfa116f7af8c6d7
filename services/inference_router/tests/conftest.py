import os

import pytest

# Config is initialized at import time, so point it away from /app before any import.
os.environ.setdefault("ROUTING_CONFIG_PATH", "/nonexistent/routing.yml")
os.environ.setdefault("LOG_CONFIG_PATH", "/nonexistent/router_log.yml")

from services.inference_router.models import FailureMode, InferenceRoute, RequestContext  # noqa: E402


ROUTING_YAML = """
routes:
  - path: /v1/completions
    epp_host: epp.test
    epp_port: 9002
    internal_path: /_internal/pool-open
    upstream: pool-open:8000
    failure_mode: FailOpen
  - path: /v1/chat/completions
    epp_host: epp.test
    epp_port: "9002"
    internal_path: /_internal/pool-close
    upstream: pool-close:8000
  - path: /v1/broken
    internal_path: /_internal/pool-broken
    upstream: pool-broken:8000
"""


@pytest.fixture
def routing_yaml():
    return ROUTING_YAML


@pytest.fixture
def routing_file(tmp_path):
    path = tmp_path / "routing.yml"
    path.write_text(ROUTING_YAML, encoding="utf-8")
    return str(path)


@pytest.fixture
def open_route():
    return InferenceRoute(
        path="/v1/completions",
        epp_host="host",
        epp_port="1234",
        internal_path="/foo",
        upstream="pool:8000",
        failure_mode=FailureMode.FAIL_OPEN,
    )


@pytest.fixture
def make_context():
    """Factory for request contexts with the routing variables filled in."""

    def _make(**overrides):
        values = {
            "method": "POST",
            "path": "/v1/completions",
            "headers": {},
            "args": {},
            "body": b"",
            "epp_host": "host",
            "epp_port": "1234",
            "epp_internal_path": "/foo",
        }
        values.update(overrides)
        return RequestContext(**values)

    return _make
