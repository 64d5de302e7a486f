"""
Pydantic schemas for offline operation payloads.

Queued payloads are plain dictionaries on disk; these models validate them
at the executor boundary so a malformed record fails before it reaches the
remote API.
"""

from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any, Type

from pydantic import BaseModel, Field, field_validator

from safehorizon.shared.types import OperationType


class LocationUpdatePayload(BaseModel):
    """A device position report."""
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    accuracy_meters: Optional[float] = Field(default=None, ge=0)
    recorded_at: Optional[datetime] = None


class AlertSeverity(str, Enum):
    """Severity levels for device alerts."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class AlertCreatePayload(BaseModel):
    """An alert raised on the device (e.g. panic button)."""
    alert_type: str = Field(min_length=1, max_length=50)
    message: str = Field(default="", max_length=1000)
    severity: AlertSeverity = AlertSeverity.MEDIUM
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)


class DataUpdatePayload(BaseModel):
    """A generic update of a remote resource."""
    resource: str = Field(min_length=1, max_length=200)
    data: Dict[str, Any] = Field(default_factory=dict)

    @field_validator('resource')
    @classmethod
    def validate_resource(cls, v):
        if not v.strip():
            raise ValueError('Resource cannot be empty')
        return v.strip()


PAYLOAD_SCHEMAS: Dict[str, Type[BaseModel]] = {
    OperationType.LOCATION_UPDATE.value: LocationUpdatePayload,
    OperationType.ALERT_CREATE.value: AlertCreatePayload,
    OperationType.DATA_UPDATE.value: DataUpdatePayload,
}
