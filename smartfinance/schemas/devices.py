"""
Pydantic models for device session responses.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class LocationSchema(BaseModel):
    """Approximate location of a session."""
    ip: Optional[str] = None
    country: str = "Unknown"
    city: str = "Unknown"
    region: str = "Unknown"
    timezone: str = "UTC"
    isp: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    formatted: str = "Unknown Location"


class DeviceSessionSchema(BaseModel):
    """Device session in API responses."""
    deviceId: str
    deviceName: Optional[str] = None
    deviceType: Optional[str] = Field(None, description="mobile | tablet | desktop")
    browser: Optional[str] = None
    os: Optional[str] = None
    location: LocationSchema = Field(default_factory=LocationSchema)
    lastActive: Optional[datetime] = None
    loginTime: Optional[datetime] = None
    isActive: bool = False
    isCurrent: bool = Field(default=False, description="Session of the requesting device")
