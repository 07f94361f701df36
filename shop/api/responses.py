"""
Pydantic models for API responses.

Most endpoints return domain models directly. This file contains only
response models that are specific to API concerns.
"""

from datetime import datetime

from pydantic import BaseModel


class HealthCheckResponse(BaseModel):
    """Response for health check endpoint."""

    status: str
    version: str
    timestamp: datetime
