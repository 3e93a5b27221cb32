"""
Pydantic models for API request/response schemas shared across routes.
"""
from typing import Optional, Dict, Any
from pydantic import BaseModel, Field
from datetime import datetime


class RunMetadataOutput(BaseModel):
    """Audit record returned with every successful pipeline call."""
    input_hash: str = Field(..., description="sha256 of the canonical inputs (first 16 hex chars)")
    processing_time_ms: int
    tokens_used: int
    model: Optional[str] = None


class PipelineResponse(BaseModel):
    """
    Common envelope for pipeline endpoints.

    On failure, success is false and error/error_type/stage/details describe
    the terminal error; no partial result fields are populated.
    """
    success: bool
    metadata: Optional[RunMetadataOutput] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    stage: Optional[str] = None
    details: Optional[Dict[str, Any]] = None


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str
    timestamp: datetime
