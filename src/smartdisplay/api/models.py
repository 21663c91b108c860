from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ..core.config import is_valid_time
from ..core.state import Mode


# Base Models
class BaseResponse(BaseModel):
    """Acknowledgment returned by every command endpoint"""

    status: str
    message: str


class ImageResponse(BaseResponse):
    """Acknowledgment for an image upload"""

    url: str


# State Models
class MediaModel(BaseModel):
    """Currently playing media"""

    isPlaying: bool
    title: str
    artist: str
    album: str
    coverUrl: str
    progressMs: int


class ScheduleModel(BaseModel):
    """Daily sleep/wake schedule"""

    weekdayWakeTime: str
    sleepTime: str
    enabled: bool


class StateModel(BaseModel):
    """Full device state as broadcast to subscribers"""

    currentMode: Mode
    lastMode: Optional[Mode] = None
    isSleeping: bool
    imageUrl: Optional[str] = None
    displaySubscriberPresent: bool
    media: MediaModel
    schedule: ScheduleModel


# Request Models
class ModeRequest(BaseModel):
    """Request to switch mode"""

    mode: Mode


class ScheduleRequest(BaseModel):
    """Partial schedule update; omitted fields keep their value"""

    weekdayWakeTime: Optional[str] = Field(None, description="HH:MM, 24-hour")
    sleepTime: Optional[str] = Field(None, description="HH:MM, 24-hour")
    enabled: Optional[bool] = None

    @field_validator("weekdayWakeTime", "sleepTime")
    @classmethod
    def validate_time(cls, v):
        if v is not None and not is_valid_time(v):
            raise ValueError("Time must be HH:MM in 24-hour format")
        return v


class ImageRequest(BaseModel):
    """Image pushed as a data URL or bare base64 string"""

    image: Optional[str] = None
