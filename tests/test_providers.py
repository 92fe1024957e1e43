"""Tests for render provider adapters."""

import uuid

import httpx
import pytest

from api.config.settings import RenderProviderType, Settings
from api.infra.token_cache import TokenCache
from api.v1.core.exceptions import ProviderError
from api.v1.render.providers import (
    HttpRenderProvider,
    MockRenderProvider,
    StartRequest,
    get_render_provider,
)


def _settings() -> Settings:
    return Settings(
        render_provider=RenderProviderType.HTTP,
        render_provider_url="https://render.example.com",
        render_provider_client_id="client",
        render_provider_client_secret="secret",
    )


def _start_request() -> StartRequest:
    return StartRequest(
        job_id=uuid.uuid4(),
        storyboard={"title": "t"},
        webhook_url="http://test/v1/render/webhook",
    )


def _provider(handler) -> HttpRenderProvider:
    client = httpx.AsyncClient(
        base_url="https://render.example.com", transport=httpx.MockTransport(handler)
    )
    return HttpRenderProvider(_settings(), client=client, token_cache=TokenCache())


@pytest.mark.asyncio
async def test_mock_provider_returns_correlation_id():
    result = await MockRenderProvider().start(_start_request())

    assert result.provider_job_id.startswith("mock_")


@pytest.mark.asyncio
async def test_http_provider_reuses_token():
    token_calls = 0
    render_auth = []

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal token_calls
        if request.url.path == "/oauth/token":
            token_calls += 1
            return httpx.Response(200, json={"access_token": "tok", "expires_in": 3600})
        render_auth.append(request.headers["Authorization"])
        return httpx.Response(201, json={"id": "prov-123"})

    provider = _provider(handler)

    first = await provider.start(_start_request())
    second = await provider.start(_start_request())

    assert first.provider_job_id == "prov-123"
    assert second.provider_job_id == "prov-123"
    assert token_calls == 1
    assert render_auth == ["Bearer tok", "Bearer tok"]
    await provider.aclose()


@pytest.mark.asyncio
async def test_http_provider_401_invalidates_token():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/oauth/token":
            return httpx.Response(200, json={"access_token": "tok", "expires_in": 3600})
        return httpx.Response(401, json={"error": "expired"})

    provider = _provider(handler)

    with pytest.raises(ProviderError):
        await provider.start(_start_request())

    assert provider.token_cache.token is None


@pytest.mark.asyncio
async def test_http_provider_rejection_is_provider_error():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/oauth/token":
            return httpx.Response(200, json={"access_token": "tok"})
        return httpx.Response(500, text="boom")

    with pytest.raises(ProviderError) as exc_info:
        await _provider(handler).start(_start_request())

    assert exc_info.value.details["status_code"] == 500
    assert exc_info.value.status_code == 502


@pytest.mark.asyncio
async def test_http_provider_unreachable_is_provider_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(ProviderError, match="unreachable"):
        await _provider(handler).start(_start_request())


@pytest.mark.asyncio
async def test_http_provider_missing_id_is_provider_error():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/oauth/token":
            return httpx.Response(200, json={"access_token": "tok"})
        return httpx.Response(200, json={"status": "accepted"})

    with pytest.raises(ProviderError, match="no job id"):
        await _provider(handler).start(_start_request())


def test_get_render_provider_uses_registry():
    import api.v1.render.registry_init  # noqa: F401

    assert get_render_provider(Settings()).name == "mock"


@pytest.mark.asyncio
async def test_http_provider_aclose_releases_client():
    provider = _provider(lambda request: httpx.Response(200))
    client = provider._client

    await provider.aclose()

    assert client.is_closed
    assert provider._client is None
    await provider.aclose()


class _ClosingProvider(MockRenderProvider):
    def __init__(self):
        self.closed = False

    async def aclose(self) -> None:
        self.closed = True


@pytest.mark.asyncio
async def test_app_shutdown_closes_provider_clients(monkeypatch):
    from api.main import create_app
    from api.v1.core.registries import provider_registry

    closing = _ClosingProvider()
    monkeypatch.setitem(provider_registry._implementations, "closing", closing)
    app = create_app()

    async with app.router.lifespan_context(app):
        assert closing.closed is False

    assert closing.closed is True
