"""
Error envelope shared by every endpoint, for the OpenAPI docs.
"""
from typing import Any, Optional
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """`{code, message, details}`. VALIDATION_ERROR puts field errors in details.errors."""
    code: str
    message: str
    details: Optional[dict[str, Any]] = None
