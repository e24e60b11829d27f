"""
models/response.py
All outgoing (non-streamed) response schemas.
"""

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    error: str


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str
    model: str
    record_store: str
