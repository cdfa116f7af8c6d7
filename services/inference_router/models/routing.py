"""
Inference route models.

One entry of routing.yml: an external path prefix served by an inference
pool, the EndpointPicker guarding it and the internal location requests are
redirected to once a decision was made.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class FailureMode(str, Enum):
    """What the internal location does when no endpoint was picked."""

    FAIL_OPEN = "FailOpen"
    FAIL_CLOSE = "FailClose"


class InferenceRoute(BaseModel):
    path: str
    upstream: str
    internal_path: Optional[str] = None
    epp_host: Optional[str] = None
    epp_port: Optional[str] = None
    failure_mode: FailureMode = Field(default=FailureMode.FAIL_CLOSE)

    @field_validator("epp_port", mode="before")
    @classmethod
    def _port_as_string(cls, value):
        # YAML reads an unquoted port as int.
        if isinstance(value, int):
            return str(value)
        return value

    @field_validator("path", "internal_path")
    @classmethod
    def _absolute_path(cls, value):
        if value is not None and not value.startswith("/"):
            raise ValueError(f"path must start with '/': {value}")
        return value
