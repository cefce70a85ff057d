"""
API Schemas

Response models specific to the HTTP layer. Consumer payloads are the
orchestrator's own result models.
"""
from datetime import datetime

from pydantic import BaseModel


class HealthCheck(BaseModel):
    """Health check response."""
    status: str = "healthy"
    version: str
    integration_running: bool = False
    timestamp: datetime


class IntegrationAccepted(BaseModel):
    """Response for a scheduled integration run."""
    accepted: bool = True
    message: str = "Integration started"


class IntegrationStopped(BaseModel):
    stopped: bool
    message: str

