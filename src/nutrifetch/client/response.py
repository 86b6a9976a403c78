"""
Response types for client operations.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ApiResponse(BaseModel):
    """A successful HTTP response.

    Attributes:
        data: Parsed JSON body, the raw text when the body is not JSON,
            or None for an empty body
        status: HTTP status code
        status_text: Reason phrase
        headers: Response headers (lower-cased names)
    """

    model_config = ConfigDict(populate_by_name=True)

    data: Any = None
    status: int
    status_text: str = Field(default="", alias="statusText")
    headers: dict[str, str] = Field(default_factory=dict)

    @property
    def is_success(self) -> bool:
        """Check for a 2xx status."""
        return 200 <= self.status < 300
