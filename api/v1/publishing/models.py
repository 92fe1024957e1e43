"""
Publish schedule models: time-triggered publishing claimed by the cron pass.
"""

from datetime import UTC, datetime
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import (
    TIMESTAMP,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from api.infra.database import Base
from api.v1.content.models import Visibility


class ScheduleStatus(str, Enum):
    """Publish schedule status enumeration."""

    SCHEDULED = "scheduled"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"


class PublishScheduleEntry(Base):
    """
    One scheduled publish of a content session.

    The status column is the only lock: the claimer flips due rows to
    running in a single best-effort UPDATE. A failed entry is not requeued
    here; an operator (or run-one) flips it back to scheduled.
    """

    __tablename__ = "publish_schedule"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    session_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("content_sessions.id", ondelete="CASCADE"),
        nullable=False,
        comment="Content session to publish",
    )
    run_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, comment="Due time"
    )
    visibility: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default=Visibility.PUBLIC.value,
        comment="Visibility applied on publish",
    )
    note: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default=ScheduleStatus.SCHEDULED.value,
        comment="scheduled|running|done|failed",
    )
    attempts: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, comment="Processing attempts made"
    )
    last_error: Mapped[str | None] = mapped_column(
        Text, nullable=True, comment="Error of the most recent failed attempt"
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
            "status IN ('scheduled', 'running', 'done', 'failed')",
            name="publish_schedule_status_check",
        ),
        CheckConstraint("attempts >= 0", name="publish_schedule_attempts_check"),
        Index("ix_publish_schedule_status_run_at", "status", "run_at"),
    )
