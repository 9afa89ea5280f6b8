"""Response models for API endpoints"""

from pydantic import BaseModel
from typing import Optional


class ErrorResponse(BaseModel):
    """Error response format"""
    error: str
    detail: Optional[str] = None
    error_code: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "error": "Invalid request",
                "detail": "Please enter a company name",
                "error_code": "VALIDATION_ERROR"
            }
        }


class MessageResponse(BaseModel):
    """Plain success acknowledgement"""
    success: bool = True
    message: str


class HealthResponse(BaseModel):
    """Health check payload"""
    status: str
    version: str
    environment: str
    store_status: str
