"""add render jobs and publish schedule tables

Revision ID: 3b7e91c0d2a4
Revises:
Create Date: 2026-10-19 09:12:40.118204

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "3b7e91c0d2a4"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "content_sessions",
        sa.Column("id", sa.UUID(as_uuid=True), primary_key=True),
        sa.Column("owner_id", sa.UUID(as_uuid=True), nullable=False),
        sa.Column("title", sa.Text, nullable=False, server_default=""),
        sa.Column("status", sa.Text, nullable=False, server_default="draft"),
        sa.Column("visibility", sa.Text, nullable=False, server_default="private"),
        sa.Column("published_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("rating", sa.Integer, nullable=True),
        sa.Column("insights", sa.Text, nullable=True),
        sa.Column(
            "content_hash",
            sa.Text,
            nullable=True,
            comment="sha256 of the analyzed text",
        ),
        sa.Column("analysis_updated_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    )

    op.create_table(
        "session_snippets",
        sa.Column("id", sa.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "session_id",
            sa.UUID(as_uuid=True),
            sa.ForeignKey("content_sessions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("content", sa.Text, nullable=True),
        sa.Column("order_index", sa.Integer, nullable=False, server_default="0"),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    )
    op.create_index(
        "ix_session_snippets_session_order",
        "session_snippets",
        ["session_id", "order_index"],
    )

    op.create_table(
        "publish_events",
        sa.Column("id", sa.UUID(as_uuid=True), primary_key=True),
        sa.Column("session_id", sa.UUID(as_uuid=True), nullable=False),
        sa.Column("type", sa.Text, nullable=False, comment="publish|schedule"),
        sa.Column("visibility", sa.Text, nullable=True),
        sa.Column("scheduled_for", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("rating", sa.Integer, nullable=True),
        sa.Column("note", sa.Text, nullable=True),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    )

    op.create_table(
        "session_metrics",
        sa.Column("session_id", sa.UUID(as_uuid=True), primary_key=True),
        sa.Column("impressions", sa.Integer, nullable=False, server_default="0"),
        sa.Column("views", sa.Integer, nullable=False, server_default="0"),
    )

    # Render jobs: the row is both the lock and the audit record
    op.create_table(
        "render_jobs",
        sa.Column("id", sa.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", sa.UUID(as_uuid=True), nullable=False, comment="Job owner"),
        sa.Column("session_id", sa.Text, nullable=True, comment="Content session reference"),
        sa.Column("job_type", sa.Text, nullable=False, server_default="storyboard"),
        sa.Column("params", sa.JSON, nullable=False, comment="Render parameters"),
        sa.Column(
            "status",
            sa.Text,
            nullable=False,
            server_default="queued",
            comment="queued|processing|succeeded|failed|canceled",
        ),
        sa.Column("progress", sa.Integer, nullable=False, server_default="0"),
        sa.Column("provider", sa.Text, nullable=False),
        sa.Column("provider_job_id", sa.Text, nullable=True),
        sa.Column("output_url", sa.Text, nullable=True),
        sa.Column("error_message", sa.Text, nullable=True),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.CheckConstraint(
            "status IN ('queued', 'processing', 'succeeded', 'failed', 'canceled')",
            name="render_jobs_status_check",
        ),
        sa.CheckConstraint(
            "progress BETWEEN 0 AND 100", name="render_jobs_progress_check"
        ),
    )
    op.create_index(
        "ix_render_jobs_user_id_created_at", "render_jobs", ["user_id", "created_at"]
    )
    op.create_index(
        "ix_render_jobs_provider_job_id", "render_jobs", ["provider_job_id"]
    )

    # Publish schedule: status is the claim marker
    op.create_table(
        "publish_schedule",
        sa.Column("id", sa.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "session_id",
            sa.UUID(as_uuid=True),
            sa.ForeignKey("content_sessions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("run_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("visibility", sa.Text, nullable=False, server_default="public"),
        sa.Column("note", sa.Text, nullable=True),
        sa.Column(
            "status",
            sa.Text,
            nullable=False,
            server_default="scheduled",
            comment="scheduled|running|done|failed",
        ),
        sa.Column("attempts", sa.Integer, nullable=False, server_default="0"),
        sa.Column("last_error", sa.Text, nullable=True),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.CheckConstraint(
            "status IN ('scheduled', 'running', 'done', 'failed')",
            name="publish_schedule_status_check",
        ),
        sa.CheckConstraint("attempts >= 0", name="publish_schedule_attempts_check"),
    )
    # Claim query: WHERE status = 'scheduled' AND run_at <= now() ORDER BY run_at
    op.create_index(
        "ix_publish_schedule_status_run_at", "publish_schedule", ["status", "run_at"]
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("ix_publish_schedule_status_run_at", table_name="publish_schedule")
    op.drop_table("publish_schedule")
    op.drop_index("ix_render_jobs_provider_job_id", table_name="render_jobs")
    op.drop_index("ix_render_jobs_user_id_created_at", table_name="render_jobs")
    op.drop_table("render_jobs")
    op.drop_table("session_metrics")
    op.drop_table("publish_events")
    op.drop_index("ix_session_snippets_session_order", table_name="session_snippets")
    op.drop_table("session_snippets")
    op.drop_table("content_sessions")
