"""
Content tables the publishing worker reads and writes.

Sessions and snippets are owned by the editing UI; this service only reads
them and stamps publish fields. Events and metrics are best-effort writes.
"""

from datetime import UTC, datetime
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import TIMESTAMP, ForeignKey, Index, Integer, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from api.infra.database import Base


class ContentStatus(str, Enum):
    DRAFT = "draft"
    SCHEDULED = "scheduled"
    APPROVED = "approved"
    ARCHIVED = "archived"


class Visibility(str, Enum):
    PUBLIC = "public"
    UNLISTED = "unlisted"
    PRIVATE = "private"


class PublishEventType(str, Enum):
    PUBLISH = "publish"
    SCHEDULE = "schedule"


class ContentSession(Base):
    """A creator's story; published by stamping the publish fields."""

    __tablename__ = "content_sessions"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    owner_id: Mapped[UUID] = mapped_column(Uuid, nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False, default="")
    status: Mapped[str] = mapped_column(
        Text, nullable=False, default=ContentStatus.DRAFT.value
    )
    visibility: Mapped[str] = mapped_column(
        Text, nullable=False, default=Visibility.PRIVATE.value
    )

    # Publish fields, written column by column by the scheduler
    published_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )
    rating: Mapped[int | None] = mapped_column(Integer, nullable=True)
    insights: Mapped[str | None] = mapped_column(Text, nullable=True)
    content_hash: Mapped[str | None] = mapped_column(
        Text, nullable=True, comment="sha256 of the published text"
    )
    analysis_updated_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
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


class SessionSnippet(Base):
    """An ordered text fragment of a content session."""

    __tablename__ = "session_snippets"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    session_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("content_sessions.id", ondelete="CASCADE"), nullable=False
    )
    content: Mapped[str | None] = mapped_column(Text, nullable=True)
    order_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )

    __table_args__ = (
        Index("ix_session_snippets_session_order", "session_id", "order_index"),
    )


class PublishEvent(Base):
    """Audit trail of publish attempts."""

    __tablename__ = "publish_events"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    session_id: Mapped[UUID] = mapped_column(Uuid, nullable=False)
    type: Mapped[str] = mapped_column(Text, nullable=False)
    visibility: Mapped[str | None] = mapped_column(Text, nullable=True)
    scheduled_for: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )
    rating: Mapped[int | None] = mapped_column(Integer, nullable=True)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )


class SessionMetrics(Base):
    """Engagement counters, seeded when a session is first published."""

    __tablename__ = "session_metrics"

    session_id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    impressions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    views: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
