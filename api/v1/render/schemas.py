"""
Render job Pydantic schemas: storyboard request shape, webhook payload, responses.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Literal
from uuid import UUID

from pydantic import AliasChoices, BaseModel, Field, HttpUrl, field_validator


class StoryboardAspect(str, Enum):
    WIDESCREEN = "16:9"
    VERTICAL = "9:16"
    SQUARE = "1:1"


class StoryboardStyle(str, Enum):
    CINEMATIC = "cinematic"
    TRAVEL_MAGAZINE = "travel_magazine"
    VLOG = "vlog"
    DOCUMENTARY = "documentary"


class Shot(BaseModel):
    """A single shot inside a scene."""

    prompt: str = Field(..., min_length=1, description="Visual prompt for the shot")
    vo: str | None = Field(default=None, description="Voice-over line")
    duration_sec: int | None = Field(
        default=None,
        ge=1,
        le=30,
        validation_alias=AliasChoices("duration_sec", "durationSec"),
    )
    camera: str | None = None
    motion: str | None = None
    location: str | None = None
    notes: str | None = None
    image_url: HttpUrl | None = None


class Scene(BaseModel):
    """A scene groups shots under a title and summary."""

    id: str = Field(..., min_length=1)
    title: str
    summary: str
    duration_sec: int | None = Field(
        default=None,
        ge=1,
        le=120,
        validation_alias=AliasChoices("duration_sec", "durationSec"),
    )
    shots: list[Shot] = Field(..., min_length=1)
    music_hint: str | None = Field(
        default=None, validation_alias=AliasChoices("music_hint", "musicHint")
    )
    transition: str | None = None


class Storyboard(BaseModel):
    """Content descriptor handed to the render provider."""

    title: str = Field(..., min_length=1)
    aspect: StoryboardAspect
    fps: Literal[24, 25, 30]
    style: StoryboardStyle
    scenes: list[Scene] = Field(..., min_length=1)


class RenderJobCreate(BaseModel):
    """Request body for creating a render job."""

    session_id: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("session_id", "sessionId"),
        description="Content session the render belongs to",
    )
    storyboard: Storyboard
    job_type: str = Field(default="storyboard", min_length=1)
    params: dict[str, Any] = Field(
        default_factory=dict, description="Extra processing parameters"
    )


class RenderJobCreated(BaseModel):
    """Response for a newly created render job."""

    job_id: UUID
    status: str
    provider_job_id: str | None = None


class RenderJobUpdate(BaseModel):
    """
    Progress or terminal update for a render job.

    Accepts both our field names and the provider's webhook names
    (jobId, videoUrl, error). Provider status "completed" means succeeded.
    """

    job_id: UUID | None = Field(
        default=None, validation_alias=AliasChoices("job_id", "jobId", "id")
    )
    status: str | None = None
    progress: int | None = None
    output_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("output_url", "outputUrl", "videoUrl"),
    )
    error_message: str | None = Field(
        default=None,
        validation_alias=AliasChoices("error_message", "errorMessage", "error"),
    )

    @field_validator("status")
    @classmethod
    def normalize_status(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip().lower()
        aliases = {"completed": "succeeded", "running": "processing", "cancelled": "canceled"}
        value = aliases.get(value, value)
        if value not in {"processing", "succeeded", "failed", "canceled"}:
            raise ValueError(f"Unsupported render status: {value}")
        return value


class RenderJobResponse(BaseModel):
    """Full render job row, returned verbatim for polling."""

    id: UUID
    user_id: UUID
    session_id: str | None = None
    job_type: str
    params: dict[str, Any]
    status: str
    progress: int
    provider: str
    provider_job_id: str | None = None
    output_url: str | None = None
    error_message: str | None = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
