"""
Endpoint resolution result models.
"""

from typing import Optional

from pydantic import BaseModel


class ResolutionResult(BaseModel):
    """
    Outcome of one EndpointPicker resolution that passed its preconditions.

    Precondition failures never produce a result; they are raised instead.
    """

    redirect_path: str
    endpoint: Optional[str] = None
    status_code: Optional[int] = None
    error: Optional[str] = None

    @property
    def resolved(self) -> bool:
        """Returns True if the EndpointPicker chose an endpoint."""
        return self.endpoint is not None
