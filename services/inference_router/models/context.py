"""
Request context models.

Holds everything the routing pipeline reads or writes for one request.
"""

from typing import Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, Field, field_validator


class RequestContext(BaseModel):
    """
    Per-request routing state.

    Decouples the EndpointPicker filter from FastAPI's Request object.
    The `epp_*` fields are set by route matching before the filter runs;
    `inference_workload_endpoint` is written by the filter only when the
    EndpointPicker returned a usable endpoint.

    `headers` keeps inbound headers in arrival order, repeats included, with
    names and values decoded as latin-1 so they encode back to the raw bytes.
    """

    method: str
    path: str = "/"
    headers: List[Tuple[str, str]] = Field(default_factory=list)
    args: Dict[str, Union[str, List[str]]] = Field(default_factory=dict)
    body: bytes = b""

    epp_host: Optional[str] = None
    epp_port: Optional[str] = None
    epp_internal_path: Optional[str] = None

    inference_workload_endpoint: Optional[str] = None

    @field_validator("headers", mode="before")
    @classmethod
    def _headers_as_pairs(cls, value):
        if isinstance(value, dict):
            return list(value.items())
        return value
