"""
Response envelope schemas
"""

from typing import Any, Optional
from pydantic import BaseModel

class StandardResponse(BaseModel):
    success: bool
    message: str
    data: Optional[Any] = None

class ErrorResponse(BaseModel):
    """Error envelope; ``retryable`` marks conflicts and store outages"""
    success: bool = False
    message: str
    error_code: str
    details: Optional[Any] = None
    retryable: bool = False
