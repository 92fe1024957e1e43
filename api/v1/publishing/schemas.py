from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field


class RunOneRequest(BaseModel):
    """Operator re-queue of a single schedule entry."""

    id: UUID = Field(..., description="Publish schedule entry id")


class BatchRunResponse(BaseModel):
    processed: int = Field(default=0, ge=0)
    failed: int = Field(default=0, ge=0)


class DryRunResponse(BaseModel):
    mode: Literal["dry"] = "dry"
    due: int = Field(default=0, ge=0, description="Entries a real pass would claim")
