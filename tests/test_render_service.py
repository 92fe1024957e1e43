"""Tests for the render job producer and progress reporter."""

from unittest.mock import AsyncMock

import pytest

from api.v1.core.exceptions import NotFoundError, ProviderError, ValidationError
from api.v1.render.models import RenderJob, RenderJobStatus
from api.v1.render.providers import MockRenderProvider, StartResult
from api.v1.render.schemas import RenderJobCreate, RenderJobUpdate
from api.v1.render.service import RenderJobService, clamp_progress


@pytest.fixture
def service(test_settings):
    return RenderJobService(test_settings)


@pytest.fixture
def job_create(storyboard_payload):
    return RenderJobCreate.model_validate(
        {"sessionId": "session-1", "storyboard": storyboard_payload}
    )


async def _create_job(service, db_session, job_create, mock_principal) -> RenderJob:
    created = await service.create_job(
        db_session, job_create, mock_principal, MockRenderProvider()
    )
    return await service.get_job_by_id(db_session, created.job_id)


@pytest.mark.asyncio
async def test_create_job_hands_off_to_provider(
    service, db_session, job_create, mock_principal
):
    provider = MockRenderProvider()
    created = await service.create_job(db_session, job_create, mock_principal, provider)

    assert created.status == RenderJobStatus.PROCESSING.value
    assert created.provider_job_id.startswith("mock_")

    job = await service.get_job_by_id(db_session, created.job_id)
    assert job.progress == 0
    assert job.user_id == mock_principal.user_uuid
    assert job.session_id == "session-1"
    assert job.provider == "mock"
    assert job.params["storyboard"]["title"] == "Lisbon in a day"


@pytest.mark.asyncio
async def test_create_job_passes_webhook_url(
    service, db_session, job_create, mock_principal
):
    provider = AsyncMock()
    provider.name = "mock"
    provider.start.return_value = StartResult(provider_job_id="p-1")

    await service.create_job(db_session, job_create, mock_principal, provider)

    request = provider.start.await_args.args[0]
    assert request.webhook_url == "http://test/v1/render/webhook"
    assert request.metadata == {"session_id": "session-1"}


@pytest.mark.asyncio
async def test_create_job_provider_failure_leaves_job_queued(
    service, db_session, job_create, mock_principal
):
    provider = AsyncMock()
    provider.name = "http"
    provider.start.side_effect = ConnectionError("provider down")

    with pytest.raises(ProviderError):
        await service.create_job(db_session, job_create, mock_principal, provider)

    jobs = (await db_session.execute(RenderJob.__table__.select())).all()
    assert len(jobs) == 1
    assert jobs[0].status == RenderJobStatus.QUEUED.value
    assert jobs[0].provider_job_id is None


@pytest.mark.asyncio
async def test_create_job_twice_creates_two_rows(
    service, db_session, job_create, mock_principal
):
    first = await service.create_job(
        db_session, job_create, mock_principal, MockRenderProvider()
    )
    second = await service.create_job(
        db_session, job_create, mock_principal, MockRenderProvider()
    )

    assert first.job_id != second.job_id


@pytest.mark.asyncio
async def test_progress_never_decreases(
    service, db_session, job_create, mock_principal
):
    job = await _create_job(service, db_session, job_create, mock_principal)

    seen = []
    for value in (10, 40, 25, 60, 150, -5):
        updated = await service.apply_update(
            db_session, job.id, RenderJobUpdate(progress=value)
        )
        seen.append(updated.progress)

    assert seen == [10, 40, 40, 60, 100, 100]
    assert all(0 <= value <= 100 for value in seen)


@pytest.mark.asyncio
async def test_terminal_job_is_frozen(service, db_session, job_create, mock_principal):
    job = await _create_job(service, db_session, job_create, mock_principal)

    finished = await service.apply_update(
        db_session,
        job.id,
        RenderJobUpdate(status="succeeded", output_url="media-renders/a.txt"),
    )
    assert finished.status == "succeeded"
    assert finished.progress == 100

    after = await service.apply_update(
        db_session,
        job.id,
        RenderJobUpdate(status="failed", progress=5, error_message="late failure"),
    )

    assert after.status == "succeeded"
    assert after.progress == 100
    assert after.output_url == "media-renders/a.txt"
    assert after.error_message is None


@pytest.mark.asyncio
async def test_failed_update_records_error(
    service, db_session, job_create, mock_principal
):
    job = await _create_job(service, db_session, job_create, mock_principal)
    await service.apply_update(db_session, job.id, RenderJobUpdate(progress=30))

    failed = await service.apply_update(
        db_session, job.id, RenderJobUpdate(status="failed")
    )

    assert failed.status == "failed"
    assert failed.error_message == "Render failed"
    assert failed.progress == 30


@pytest.mark.asyncio
async def test_succeeded_requires_output_url(
    service, db_session, job_create, mock_principal
):
    job = await _create_job(service, db_session, job_create, mock_principal)

    with pytest.raises(ValidationError):
        await service.apply_update(
            db_session, job.id, RenderJobUpdate(status="succeeded")
        )


@pytest.mark.asyncio
async def test_empty_update_rejected(service, db_session, job_create, mock_principal):
    job = await _create_job(service, db_session, job_create, mock_principal)

    with pytest.raises(ValidationError):
        await service.apply_update(db_session, job.id, RenderJobUpdate())


@pytest.mark.asyncio
async def test_update_unknown_job(service, db_session):
    import uuid

    with pytest.raises(NotFoundError):
        await service.apply_update(db_session, uuid.uuid4(), RenderJobUpdate(progress=1))


def test_clamp_progress():
    assert clamp_progress(-1) == 0
    assert clamp_progress(55) == 55
    assert clamp_progress(101) == 100


def test_webhook_update_accepts_provider_names():
    update = RenderJobUpdate.model_validate(
        {
            "jobId": "6f1c1c3e-8d7a-4a53-a0e7-3c1f7f3b4a10",
            "status": "COMPLETED",
            "videoUrl": "https://cdn.example.com/v.mp4",
        }
    )

    assert str(update.job_id) == "6f1c1c3e-8d7a-4a53-a0e7-3c1f7f3b4a10"
    assert update.status == "succeeded"
    assert update.output_url == "https://cdn.example.com/v.mp4"


def test_webhook_update_rejects_unknown_status():
    with pytest.raises(ValueError):
        RenderJobUpdate(status="exploded")
