"""
Pydantic schemas for JSON responses.

Telemetry and settings travel as plain comma-separated text, so the only
JSON surface is the health check.
"""
from pydantic import BaseModel


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str
    settings_pending: bool
    last_signal_ms: int
