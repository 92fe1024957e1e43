"""
Render provider adapters.

The provider performs the actual render and reports back through the webhook.
Only the hand-off is modelled here: start a job, get a correlation id.
"""

import uuid
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

import httpx
from fastapi import Depends

from api.config.logging import get_logger
from api.config.settings import Settings, get_settings
from api.infra.token_cache import TokenCache
from api.v1.core.exceptions import ProviderError
from api.v1.core.registries import RenderProvider, provider_registry

logger = get_logger(__name__)


@dataclass
class StartRequest:
    job_id: UUID
    storyboard: dict[str, Any]
    webhook_url: str
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class StartResult:
    provider_job_id: str


class MockRenderProvider:
    """
    Provider stand-in for development and tests.

    Accepts every job and returns a synthetic correlation id. Progress is
    driven by the simulator endpoint instead of real callbacks.
    """

    name = "mock"

    async def start(self, request: StartRequest) -> StartResult:
        provider_job_id = f"mock_{uuid.uuid4().hex[:12]}"
        logger.info(
            "Mock provider accepted render job",
            job_id=str(request.job_id),
            provider_job_id=provider_job_id,
        )
        return StartResult(provider_job_id=provider_job_id)


class HttpRenderProvider:
    """
    Render provider reached over HTTP with OAuth client credentials.

    The bearer token lives in a TokenCache owned by this adapter, so it is
    reused until it nears expiry and dropped when the provider answers 401.
    """

    name = "http"

    def __init__(
        self,
        settings: Settings,
        client: httpx.AsyncClient | None = None,
        token_cache: TokenCache | None = None,
    ):
        self.settings = settings
        self._client = client
        self.token_cache = token_cache or TokenCache()

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.settings.render_provider_url.rstrip("/"),
                timeout=self.settings.render_provider_timeout_s,
            )
        return self._client

    async def _fetch_token(self) -> tuple[str, float]:
        response = await self._get_client().post(
            "/oauth/token",
            data={
                "grant_type": "client_credentials",
                "client_id": self.settings.render_provider_client_id,
                "client_secret": self.settings.render_provider_client_secret,
            },
        )
        response.raise_for_status()
        body = response.json()
        return body["access_token"], float(body.get("expires_in", 300))

    async def start(self, request: StartRequest) -> StartResult:
        client = self._get_client()
        try:
            token = await self.token_cache.get_or_refresh(self._fetch_token)
            response = await client.post(
                "/v1/renders",
                headers={"Authorization": f"Bearer {token}"},
                json={
                    "reference_id": str(request.job_id),
                    "storyboard": request.storyboard,
                    "webhook_url": request.webhook_url,
                    "metadata": request.metadata,
                },
            )
        except httpx.HTTPStatusError as e:
            raise ProviderError(
                "Render provider authentication failed",
                details={"status_code": e.response.status_code},
            ) from e
        except (httpx.RequestError, KeyError, ValueError) as e:
            raise ProviderError(f"Render provider unreachable: {e}") from e

        if response.status_code == 401:
            self.token_cache.invalidate()

        if response.status_code >= 400:
            raise ProviderError(
                "Render provider rejected the job",
                details={"status_code": response.status_code, "body": response.text[:500]},
            )

        try:
            provider_job_id = str(response.json()["id"])
        except (ValueError, KeyError, TypeError) as e:
            raise ProviderError("Render provider returned no job id") from e

        return StartResult(provider_job_id=provider_job_id)

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


def get_render_provider(settings: Settings = Depends(get_settings)) -> RenderProvider:
    """Dependency returning the configured provider from the registry."""
    return provider_registry.get(settings.render_provider.value)


async def close_providers() -> None:
    """Release network clients held by registered providers."""
    for name in provider_registry.list():
        close = getattr(provider_registry.get(name), "aclose", None)
        if close is None:
            continue
        try:
            await close()
        except Exception:
            logger.exception("Failed to close render provider", provider=name)


# Provider instances for registry
mock_provider = MockRenderProvider()
