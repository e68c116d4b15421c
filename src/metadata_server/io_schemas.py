"""
Pydantic schemas for the administrative API.
"""

import time
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class HealthResponse(BaseModel):
    """Health status of the metadata server."""
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "status": "ok",
                "state": "ready",
                "version": "0.1.0",
                "git": "abc1234",
                "versions": ["2015-07-25", "2016-01-01"],
                "reloadCount": 3,
                "lastReloadAt": 1695825600.0,
                "lastError": None,
                "timestamp": 1695825605.2
            }
        }
    )

    status: str = Field(..., description="ok, or degraded when the last reload failed")
    state: str = Field(..., description="Store state (ready or reloading)")
    version: str = Field(..., description="Server version")
    git: str = Field(..., description="Git commit SHA")
    versions: list[str] = Field(..., description="Versions in the published answers")
    reloadCount: int = Field(..., ge=0, description="Successful loads since startup")
    lastReloadAt: Optional[float] = Field(None, description="Time of the last successful load")
    lastError: Optional[str] = Field(None, description="Error of the last failed reload")
    timestamp: float = Field(default_factory=time.time, description="Response timestamp")
