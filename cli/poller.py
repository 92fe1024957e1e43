"""Render job poller: start a job, then follow it until it settles."""

import asyncio
import logging
from collections.abc import Callable
from enum import Enum
from typing import Any

from .client.base import AsyncAPIClient, StudioJobsError

logger = logging.getLogger(__name__)

TERMINAL_JOB_STATUSES = frozenset({"succeeded", "failed", "canceled"})
DEFAULT_POLL_INTERVAL = 2.0


class PollerState(str, Enum):
    IDLE = "idle"
    STARTING = "starting"
    POLLING = "polling"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    ERROR = "error"


class RenderJobPoller:
    """
    Client-side control loop for one render job at a time.

    ``idle -> starting -> polling -> succeeded | failed | error``. Polling
    stops on the first terminal job status or the first failed request;
    transport failures are not retried, a fresh ``start`` is required.
    ``cancel`` only stops polling, the render itself keeps going.
    """

    def __init__(
        self,
        client: AsyncAPIClient,
        interval: float = DEFAULT_POLL_INTERVAL,
        simulate: bool = False,
        on_change: Callable[["RenderJobPoller"], None] | None = None,
    ):
        self.client = client
        self.interval = interval
        self.simulate = simulate
        self.on_change = on_change

        self.state = PollerState.IDLE
        self.job: dict[str, Any] | None = None
        self.error: str | None = None
        self.polls = 0

        self._task: asyncio.Task | None = None
        self._simulation: asyncio.Task | None = None

    @property
    def job_id(self) -> str | None:
        if self.job is None:
            return None
        return self.job.get("id") or self.job.get("job_id")

    def _set_state(self, state: PollerState) -> None:
        self.state = state
        self._notify()

    def _notify(self) -> None:
        if self.on_change is not None:
            self.on_change(self)

    async def start(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Create the job and begin polling it in the background."""
        self.cancel()
        self.job = None
        self.error = None
        self.polls = 0
        self._set_state(PollerState.STARTING)

        try:
            created = await self.client.post("/render/jobs", json=payload)
        except StudioJobsError as e:
            self.error = str(e)
            self._set_state(PollerState.ERROR)
            raise

        self.job = {
            "id": created["job_id"],
            "status": created.get("status"),
            "progress": 0,
            "provider_job_id": created.get("provider_job_id"),
        }

        if self.simulate:
            self._simulation = asyncio.create_task(self._fire_simulation(self.job_id))

        self._set_state(PollerState.POLLING)
        self._task = asyncio.create_task(self._run(self.job_id))
        return self.job

    async def _fire_simulation(self, job_id: str) -> None:
        try:
            await self.client.post(f"/render/jobs/{job_id}/simulate")
        except StudioJobsError as e:
            # The polling loop reports what actually happened to the job
            logger.debug("Simulation request failed: %s", e)

    async def poll_once(self, job_id: str) -> bool:
        """Fetch the job once. Returns True while polling should continue."""
        try:
            job = await self.client.get(f"/render/jobs/{job_id}")
        except StudioJobsError as e:
            self.error = str(e)
            self._set_state(PollerState.ERROR)
            return False

        self.polls += 1
        self.job = job
        status = job.get("status")

        if status in TERMINAL_JOB_STATUSES:
            self._set_state(
                PollerState.SUCCEEDED if status == "succeeded" else PollerState.FAILED
            )
            return False

        self._notify()
        return True

    async def _run(self, job_id: str) -> None:
        while await self.poll_once(job_id):
            await asyncio.sleep(self.interval)

    def cancel(self) -> None:
        """Stop polling. No effect on the render job itself."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def wait(self) -> dict[str, Any] | None:
        """Wait for polling to stop and return the last seen job."""
        task = self._task
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass
        if self._simulation is not None and not self._simulation.done():
            await self._simulation
        return self.job
