"""
Render job models: user-triggered media processing tracked in the job store.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import JSON, TIMESTAMP, CheckConstraint, Index, Integer, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from api.infra.database import Base


class RenderJobStatus(str, Enum):
    """Render job status enumeration."""

    QUEUED = "queued"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELED = "canceled"


TERMINAL_RENDER_STATUSES = frozenset(
    {
        RenderJobStatus.SUCCEEDED.value,
        RenderJobStatus.FAILED.value,
        RenderJobStatus.CANCELED.value,
    }
)


def is_terminal_render_status(status: str | None) -> bool:
    """Terminal statuses never transition again."""
    return status in TERMINAL_RENDER_STATUSES


class RenderJob(Base):
    """
    A render job row doubles as the job's lock and its audit record.

    - Created queued by the producer, moved to processing once the provider
      returns a correlation id
    - Advanced by the provider webhook (or the simulator)
    - Becomes terminal exactly once; progress and outputs are frozen afterwards
    - Never deleted here; the owner controls its lifetime
    """

    __tablename__ = "render_jobs"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        Uuid, nullable=False, comment="Owner of the job"
    )
    session_id: Mapped[str | None] = mapped_column(
        Text, nullable=True, comment="Content session the render belongs to"
    )
    job_type: Mapped[str] = mapped_column(
        Text, nullable=False, default="storyboard", comment="Render kind"
    )
    params: Mapped[dict[str, Any]] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
        comment="Validated storyboard and processing parameters",
    )

    status: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default=RenderJobStatus.QUEUED.value,
        comment="queued|processing|succeeded|failed|canceled",
    )
    progress: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, comment="Percent complete, 0-100"
    )

    provider: Mapped[str] = mapped_column(
        Text, nullable=False, default="mock", comment="External processor name"
    )
    provider_job_id: Mapped[str | None] = mapped_column(
        Text, nullable=True, comment="Provider correlation id"
    )

    output_url: Mapped[str | None] = mapped_column(
        Text, nullable=True, comment="Artifact reference, set on success"
    )
    error_message: Mapped[str | None] = mapped_column(
        Text, nullable=True, comment="Failure message, set on failure"
    )

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('queued', 'processing', 'succeeded', 'failed', 'canceled')",
            name="render_jobs_status_check",
        ),
        CheckConstraint(
            "progress BETWEEN 0 AND 100", name="render_jobs_progress_check"
        ),
        Index("ix_render_jobs_user_id_created_at", "user_id", "created_at"),
        Index("ix_render_jobs_provider_job_id", "provider_job_id"),
    )

    def is_terminal(self) -> bool:
        """Check if the job reached succeeded, failed or canceled."""
        return is_terminal_render_status(self.status)
