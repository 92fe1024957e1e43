"""
Synthetic progress stepper for environments without a real render provider.
"""

import asyncio
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from api.config.logging import get_logger
from api.config.settings import Settings
from api.infra.storage import ArtifactStorage
from api.v1.core.exceptions import NotFoundError
from api.v1.render.models import RenderJob, RenderJobStatus
from api.v1.render.schemas import RenderJobUpdate
from api.v1.render.service import RenderJobService

logger = get_logger(__name__)

SIMULATED_PROGRESS_STEPS = (8, 22, 37, 55, 72, 88, 100)


class RenderSimulator:
    """
    Walks a job through a fixed progress sequence, then finalizes it.

    Every write goes through RenderJobService.apply_update, so the simulator
    obeys the same terminal guard as the provider webhook.
    """

    def __init__(
        self,
        settings: Settings,
        storage: ArtifactStorage,
        service: RenderJobService | None = None,
    ):
        self.settings = settings
        self.storage = storage
        self.service = service or RenderJobService(settings)
        self.step_delay_s = settings.render_simulate_step_delay_ms / 1000

    async def run(self, session: AsyncSession, job_id: UUID) -> RenderJob:
        job = await self.service.get_job_by_id(session, job_id)
        if job is None:
            raise NotFoundError("Render job not found", details={"job_id": str(job_id)})

        if job.is_terminal():
            return job

        sim_logger = logger.bind(job_id=str(job_id))
        sim_logger.info("Simulating render progress")

        job = await self.service.apply_update(
            session, job_id, RenderJobUpdate(status=RenderJobStatus.PROCESSING.value)
        )

        for step in SIMULATED_PROGRESS_STEPS:
            await asyncio.sleep(self.step_delay_s)
            job = await self.service.apply_update(
                session, job_id, RenderJobUpdate(progress=step)
            )
            if job.is_terminal():
                sim_logger.info("Job turned terminal during simulation", status=job.status)
                return job

        return await self._finalize(session, job)

    async def _finalize(self, session: AsyncSession, job: RenderJob) -> RenderJob:
        path = f"{job.user_id}/{job.id}.txt"
        body = (
            f"Render complete\njob: {job.id}\nwhen: {datetime.now(UTC).isoformat()}"
        ).encode()

        try:
            output_url = await self.storage.upload(
                self.settings.artifact_bucket, path, body, "text/plain"
            )
        except Exception as e:
            logger.error("Simulated artifact upload failed", job_id=str(job.id), error=str(e))
            return await self.service.apply_update(
                session,
                job.id,
                RenderJobUpdate(
                    status=RenderJobStatus.FAILED.value, error_message=str(e)
                ),
            )

        return await self.service.apply_update(
            session,
            job.id,
            RenderJobUpdate(
                status=RenderJobStatus.SUCCEEDED.value, output_url=output_url
            ),
        )
