"""API Endpoint Wrappers"""

from typing import Any

from ..utils.config_manager import config
from .base import APIClient, AsyncAPIClient, StudioJobsError, TransportError

__all__ = [
    "StudioJobsClient",
    "StudioJobsError",
    "TransportError",
    "create_async_client",
]


def _api_settings(base_url: str | None, headers: dict[str, str] | None):
    api_config = config.load_config().get("api", {})
    final_base_url = base_url or api_config.get("base_url", "http://localhost:8000")
    final_headers = headers or dict(api_config.get("headers") or {})
    return final_base_url, float(api_config.get("timeout", 30)), final_headers


def create_async_client(
    base_url: str | None = None, headers: dict[str, str] | None = None
) -> AsyncAPIClient:
    """Async client configured like StudioJobsClient, for the poller"""
    final_base_url, timeout, final_headers = _api_settings(base_url, headers)
    return AsyncAPIClient(
        base_url=final_base_url, timeout=timeout, headers=final_headers
    )


class StudioJobsClient:
    """High-level client with typed endpoint methods"""

    def __init__(
        self,
        base_url: str | None = None,
        headers: dict[str, str] | None = None,
        cron_secret: str | None = None,
    ):
        final_base_url, timeout, final_headers = _api_settings(base_url, headers)
        self.cron_secret = cron_secret if cron_secret is not None else config.get(
            "cron.secret", ""
        )
        self.api = APIClient(
            base_url=final_base_url, timeout=timeout, headers=final_headers
        )

    def __enter__(self):
        self.api.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.api.__exit__(exc_type, exc_val, exc_tb)

    def _cron_headers(self) -> dict[str, str]:
        return {"X-Cron-Secret": self.cron_secret} if self.cron_secret else {}

    # Health Check
    def health_check(self) -> dict[str, Any]:
        """Check API health status"""
        return self.api.get("/healthz")

    # Render Endpoints
    def create_render_job(
        self,
        session_id: str,
        storyboard: dict[str, Any],
        job_type: str = "storyboard",
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Create a render job"""
        return self.api.post(
            "/render/jobs",
            json={
                "session_id": session_id,
                "storyboard": storyboard,
                "job_type": job_type,
                "params": params or {},
            },
        )

    def get_render_job(self, job_id: str) -> dict[str, Any]:
        """Read a render job row"""
        return self.api.get(f"/render/jobs/{job_id}")

    def simulate_render_job(self, job_id: str) -> dict[str, Any]:
        """Drive a job through the synthetic stepper"""
        return self.api.post(f"/render/jobs/{job_id}/simulate")

    # Publishing Endpoints
    def run_publish(self, dry: bool = False) -> dict[str, Any]:
        """Trigger one scheduled publish pass"""
        params = {"dry": 1} if dry else None
        return self.api.post("/publish/run", params=params, headers=self._cron_headers())

    def run_publish_one(self, entry_id: str) -> dict[str, Any]:
        """Re-queue one schedule entry and run a pass"""
        return self.api.post(
            "/publish/run-one", json={"id": entry_id}, headers=self._cron_headers()
        )
