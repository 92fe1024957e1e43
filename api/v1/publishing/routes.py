"""
Scheduled publishing endpoints, invoked by the cron trigger.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Query

from api.config.settings import Settings, SettingsDep, get_settings
from api.infra.database import Database, DatabaseDep
from api.v1.core.exceptions import create_success_response
from api.v1.core.registries import StoryAnalyzer, analyzer_registry
from api.v1.core.security import CronCallerDep
from api.v1.publishing.claimer import ScheduleClaimer
from api.v1.publishing.schemas import BatchRunResponse, DryRunResponse, RunOneRequest

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/publish", tags=["publishing"])


def get_story_analyzer(settings: Settings = Depends(get_settings)) -> StoryAnalyzer:
    """Dependency returning the configured analyzer from the registry."""
    return analyzer_registry.get(settings.story_analyzer.value)


@router.api_route("/run", methods=["GET", "POST"], response_model=dict)
async def run_scheduled_publishes(
    dry: bool = Query(default=False, description="Count due entries without claiming"),
    dry_run: bool = Query(default=False, alias="dryRun"),
    mode: str | None = Query(default=None, description="'dry' is the same as dry=1"),
    caller: str = CronCallerDep,
    database: Database = DatabaseDep,
    settings: Settings = SettingsDep,
    analyzer: StoryAnalyzer = Depends(get_story_analyzer),
) -> dict[str, Any]:
    """Claim due schedule entries and publish them through the worker pool."""

    claimer = ScheduleClaimer(settings, database.SessionLocal, analyzer)

    if dry or dry_run or mode == "dry":
        async with database.SessionLocal() as session:
            due = await claimer.count_due(session)
        return create_success_response(data=DryRunResponse(due=due).model_dump())

    result = await claimer.run()

    logger.info(
        "Scheduled publish run triggered",
        extra={
            "caller": caller,
            "processed": result.processed,
            "failed": result.failed,
        },
    )

    response = BatchRunResponse(processed=result.processed, failed=result.failed)
    return create_success_response(data=response.model_dump())


@router.post("/run-one", response_model=dict)
async def run_one_scheduled_publish(
    run_request: RunOneRequest,
    caller: str = CronCallerDep,
    database: Database = DatabaseDep,
    settings: Settings = SettingsDep,
    analyzer: StoryAnalyzer = Depends(get_story_analyzer),
) -> dict[str, Any]:
    """Flip one entry back to scheduled, then run a normal pass."""

    claimer = ScheduleClaimer(settings, database.SessionLocal, analyzer)
    await claimer.requeue(run_request.id)
    result = await claimer.run()

    logger.info(
        "Schedule entry re-run requested",
        extra={"caller": caller, "entry_id": str(run_request.id)},
    )

    response = BatchRunResponse(processed=result.processed, failed=result.failed)
    return create_success_response(data=response.model_dump())
