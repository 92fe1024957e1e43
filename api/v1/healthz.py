from datetime import UTC, datetime

from fastapi import APIRouter
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from api.config.logging import get_logger
from api.config.settings import Settings, SettingsDep
from api.infra.database import Database, DatabaseDep, SessionDep
from api.v1.core.exceptions import create_success_response
from api.v1.publishing.models import PublishScheduleEntry, ScheduleStatus
from api.v1.render.models import TERMINAL_RENDER_STATUSES, RenderJob

logger = get_logger(__name__)
router = APIRouter()


class DatabaseHealth(BaseModel):
    """Database health status."""

    connected: bool
    response_time_ms: float | None = None
    error: str | None = None


class QueueHealth(BaseModel):
    """Depth of both job tables."""

    render_active: int = 0
    publish_due: int = 0
    publish_running: int = 0
    publish_failed: int = 0


class HealthResponse(BaseModel):
    ok: bool
    version: str
    environment: str
    timestamp: str
    database: DatabaseHealth
    queues: QueueHealth | None = None


@router.get("/healthz", response_model=dict)
async def health_check(
    settings: Settings = SettingsDep,
    database: Database = DatabaseDep,
    session: AsyncSession = SessionDep,
):
    """Health check with database connectivity and queue depth."""

    timestamp = datetime.now(UTC).isoformat()

    db_health = await _check_database_health(database, session)

    queue_health = None
    if db_health.connected:
        try:
            queue_health = await _check_queue_health(session)
        except Exception as e:
            # Queue stats are informational and never fail the probe
            logger.warning("Queue health check failed", error=str(e))
            queue_health = QueueHealth()

    health_data = HealthResponse(
        ok=db_health.connected,
        version=settings.version,
        environment=settings.environment,
        timestamp=timestamp,
        database=db_health,
        queues=queue_health,
    )

    return create_success_response(data=health_data.model_dump())


async def _check_database_health(
    database: Database, session: AsyncSession
) -> DatabaseHealth:
    try:
        response_time_ms = await database.ping(session)
    except Exception as e:
        return DatabaseHealth(connected=False, error=str(e))
    return DatabaseHealth(connected=True, response_time_ms=response_time_ms)


async def _check_queue_health(session: AsyncSession) -> QueueHealth:
    render_active = await session.execute(
        select(func.count(RenderJob.id)).where(
            RenderJob.status.not_in(TERMINAL_RENDER_STATUSES)
        )
    )

    publish_counts = await session.execute(
        select(PublishScheduleEntry.status, func.count(PublishScheduleEntry.id))
        .where(
            PublishScheduleEntry.status.in_(
                [
                    ScheduleStatus.RUNNING.value,
                    ScheduleStatus.FAILED.value,
                ]
            )
        )
        .group_by(PublishScheduleEntry.status)
    )
    by_status = dict(publish_counts.all())

    publish_due = await session.execute(
        select(func.count(PublishScheduleEntry.id)).where(
            PublishScheduleEntry.status == ScheduleStatus.SCHEDULED.value,
            PublishScheduleEntry.run_at <= datetime.now(UTC),
        )
    )

    return QueueHealth(
        render_active=render_active.scalar() or 0,
        publish_due=publish_due.scalar() or 0,
        publish_running=by_status.get(ScheduleStatus.RUNNING.value, 0),
        publish_failed=by_status.get(ScheduleStatus.FAILED.value, 0),
    )
