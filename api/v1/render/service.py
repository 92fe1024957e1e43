"""
Render job service: the producer and the progress reporter.
"""

import logging
import uuid
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import case, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from api.config.settings import Settings
from api.v1.core.exceptions import NotFoundError, ProviderError, ValidationError
from api.v1.core.registries import RenderProvider
from api.v1.core.security import Principal
from api.v1.render.models import (
    TERMINAL_RENDER_STATUSES,
    RenderJob,
    RenderJobStatus,
)
from api.v1.render.providers import StartRequest
from api.v1.render.schemas import RenderJobCreate, RenderJobCreated, RenderJobUpdate

logger = logging.getLogger(__name__)

WEBHOOK_PATH = "/v1/render/webhook"


def clamp_progress(value: int) -> int:
    return max(0, min(100, value))


class RenderJobService:
    """Service for creating render jobs and applying provider progress."""

    def __init__(self, settings: Settings):
        self.settings = settings

    @property
    def webhook_url(self) -> str:
        return self.settings.public_base_url.rstrip("/") + WEBHOOK_PATH

    async def create_job(
        self,
        session: AsyncSession,
        job_create: RenderJobCreate,
        principal: Principal,
        provider: RenderProvider,
    ) -> RenderJobCreated:
        """
        Insert a queued render job and hand it to the provider.

        Every call creates a new row; there is no deduplication at this layer.
        If the provider hand-off fails the row stays queued and ProviderError
        propagates to the caller.
        """
        storyboard = job_create.storyboard.model_dump(mode="json")
        job = RenderJob(
            id=uuid.uuid4(),
            user_id=principal.user_uuid,
            session_id=job_create.session_id,
            job_type=job_create.job_type,
            params={**job_create.params, "storyboard": storyboard},
            status=RenderJobStatus.QUEUED.value,
            progress=0,
            provider=provider.name,
        )
        session.add(job)
        await session.commit()
        await session.refresh(job)

        logger.info(
            "Render job created",
            extra={
                "job_id": str(job.id),
                "session_id": job.session_id,
                "provider": job.provider,
            },
        )

        try:
            result = await provider.start(
                StartRequest(
                    job_id=job.id,
                    storyboard=storyboard,
                    webhook_url=self.webhook_url,
                    metadata={"session_id": job.session_id},
                )
            )
        except ProviderError:
            logger.exception(
                "Render provider hand-off failed", extra={"job_id": str(job.id)}
            )
            raise
        except Exception as e:
            logger.exception(
                "Render provider hand-off failed", extra={"job_id": str(job.id)}
            )
            raise ProviderError(f"Render provider failed: {e}") from e

        # A webhook may already have moved the job on; only queued becomes processing
        await session.execute(
            update(RenderJob)
            .where(
                RenderJob.id == job.id,
                RenderJob.status.not_in(TERMINAL_RENDER_STATUSES),
            )
            .values(
                provider_job_id=result.provider_job_id,
                status=case(
                    (
                        RenderJob.status == RenderJobStatus.QUEUED.value,
                        RenderJobStatus.PROCESSING.value,
                    ),
                    else_=RenderJob.status,
                ),
                updated_at=datetime.now(UTC),
            )
        )
        await session.commit()
        await session.refresh(job)

        logger.info(
            "Render job handed to provider",
            extra={
                "job_id": str(job.id),
                "provider_job_id": result.provider_job_id,
            },
        )

        return RenderJobCreated(
            job_id=job.id, status=job.status, provider_job_id=job.provider_job_id
        )

    async def get_job_by_id(
        self, session: AsyncSession, job_id: UUID
    ) -> RenderJob | None:
        """Get a render job by ID."""
        result = await session.execute(select(RenderJob).where(RenderJob.id == job_id))
        return result.scalar_one_or_none()

    async def apply_update(
        self, session: AsyncSession, job_id: UUID, job_update: RenderJobUpdate
    ) -> RenderJob:
        """
        Apply a progress and/or status update from the provider or simulator.

        Terminal jobs are returned unchanged. Progress only moves forward and
        is clamped to 0-100. The UPDATE re-checks non-terminal status so a
        concurrent terminal write always wins.
        """
        job = await self.get_job_by_id(session, job_id)
        if job is None:
            raise NotFoundError("Render job not found", details={"job_id": str(job_id)})

        if job.is_terminal():
            logger.info(
                "Ignoring update for terminal render job",
                extra={"job_id": str(job_id), "status": job.status},
            )
            return job

        if job_update.status is None and job_update.progress is None:
            raise ValidationError("Update must carry a status or a progress value")

        values = self._build_update_values(job_update)

        result = await session.execute(
            update(RenderJob)
            .where(
                RenderJob.id == job_id,
                RenderJob.status.not_in(TERMINAL_RENDER_STATUSES),
            )
            .values(**values)
        )
        await session.commit()
        await session.refresh(job)

        if result.rowcount == 0:
            logger.info(
                "Render job turned terminal concurrently; update dropped",
                extra={"job_id": str(job_id), "status": job.status},
            )
        elif job.is_terminal():
            logger.info(
                "Render job finished",
                extra={
                    "job_id": str(job_id),
                    "status": job.status,
                    "output_url": job.output_url,
                },
            )

        return job

    def _build_update_values(self, job_update: RenderJobUpdate) -> dict:
        values: dict = {"updated_at": datetime.now(UTC)}

        if job_update.progress is not None:
            new_progress = clamp_progress(job_update.progress)
            values["progress"] = case(
                (RenderJob.progress < new_progress, new_progress),
                else_=RenderJob.progress,
            )

        status = job_update.status
        if status == RenderJobStatus.SUCCEEDED.value:
            if not job_update.output_url:
                raise ValidationError("A succeeded update requires output_url")
            values.update(status=status, progress=100, output_url=job_update.output_url)
        elif status == RenderJobStatus.FAILED.value:
            values.update(
                status=status,
                error_message=job_update.error_message or "Render failed",
            )
        elif status is not None:
            # processing or canceled; progress stays as computed above
            values["status"] = status

        return values
