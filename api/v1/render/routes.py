"""
Render job endpoints: create, read (polling), provider webhook, simulator.
"""

import logging
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.config.settings import Settings, SettingsDep
from api.infra.database import SessionDep
from api.infra.storage import ArtifactStorage, get_artifact_storage
from api.v1.core.exceptions import (
    ForbiddenError,
    NotFoundError,
    ValidationError,
    create_success_response,
)
from api.v1.core.registries import RenderProvider
from api.v1.core.security import Principal, PrincipalDep, WebhookSignatureDep
from api.v1.render.providers import get_render_provider
from api.v1.render.schemas import RenderJobCreate, RenderJobResponse, RenderJobUpdate
from api.v1.render.service import RenderJobService
from api.v1.render.simulator import RenderSimulator

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/render", tags=["render"])


@router.post("/jobs", response_model=dict)
async def create_render_job(
    job_request: RenderJobCreate,
    principal: Principal = PrincipalDep,
    session: AsyncSession = SessionDep,
    settings: Settings = SettingsDep,
    provider: RenderProvider = Depends(get_render_provider),
) -> dict[str, Any]:
    """Create a render job and hand it to the configured provider."""

    job_service = RenderJobService(settings)
    result = await job_service.create_job(session, job_request, principal, provider)

    return create_success_response(data=result.model_dump(mode="json"))


@router.get("/jobs/{job_id}", response_model=dict)
async def get_render_job(
    job_id: UUID,
    session: AsyncSession = SessionDep,
    settings: Settings = SettingsDep,
) -> dict[str, Any]:
    """Return the current job row verbatim (polling read path)."""

    job_service = RenderJobService(settings)
    job = await job_service.get_job_by_id(session, job_id)

    if not job:
        raise NotFoundError("Render job not found", details={"job_id": str(job_id)})

    job_data = RenderJobResponse.model_validate(job)
    return create_success_response(data=job_data.model_dump(mode="json"))


@router.post("/webhook", response_model=dict, dependencies=[WebhookSignatureDep])
async def render_webhook(
    job_update: RenderJobUpdate,
    session: AsyncSession = SessionDep,
    settings: Settings = SettingsDep,
) -> dict[str, Any]:
    """Progress and terminal updates pushed by the render provider."""

    if job_update.job_id is None:
        raise ValidationError("jobId is required")

    job_service = RenderJobService(settings)
    job = await job_service.apply_update(session, job_update.job_id, job_update)

    logger.info(
        "Render webhook applied",
        extra={
            "job_id": str(job.id),
            "status": job.status,
            "progress": job.progress,
        },
    )

    job_data = RenderJobResponse.model_validate(job)
    return create_success_response(data=job_data.model_dump(mode="json"))


@router.post("/jobs/{job_id}/simulate", response_model=dict)
async def simulate_render_job(
    job_id: UUID,
    session: AsyncSession = SessionDep,
    settings: Settings = SettingsDep,
    storage: ArtifactStorage = Depends(get_artifact_storage),
) -> dict[str, Any]:
    """Drive a job to completion without a provider (non-production only)."""

    if not settings.simulation_allowed:
        raise ForbiddenError("Render simulation is disabled in this environment")

    simulator = RenderSimulator(settings, storage)
    job = await simulator.run(session, job_id)

    job_data = RenderJobResponse.model_validate(job)
    return create_success_response(data=job_data.model_dump(mode="json"))
