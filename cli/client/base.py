"""Base HTTP Clients for the Studio Jobs API"""

from typing import Any

import httpx
from rich.console import Console
from rich.panel import Panel

console = Console()


class StudioJobsError(Exception):
    """Base exception for Studio Jobs API errors"""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class TransportError(StudioJobsError):
    """The API could not be reached at all"""

    pass


def extract_data(response: httpx.Response) -> Any:
    """Unwrap the response envelope, raising StudioJobsError on failures"""
    try:
        data = response.json()
    except ValueError:
        raise StudioJobsError(
            f"Invalid JSON response: {response.status_code}",
            status_code=response.status_code,
        ) from None

    if response.status_code >= 400:
        error = data.get("error") if isinstance(data, dict) else None
        error_msg = (error or {}).get("message", "Unknown error")
        raise StudioJobsError(
            f"API Error {response.status_code}: {error_msg}",
            status_code=response.status_code,
        )

    # Handle envelope format (with "ok" field)
    if isinstance(data, dict) and "ok" in data:
        if not data.get("ok", False):
            error_msg = (data.get("error") or {}).get("message", "Request failed")
            raise StudioJobsError(error_msg, status_code=response.status_code)
        return data.get("data", {})

    # Handle direct response format (no envelope)
    return data


class APIClient:
    """Blocking HTTP client used by one-shot commands"""

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        timeout: float = 30,
        headers: dict[str, str] | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.default_headers = headers or {}
        self.client = httpx.Client(
            base_url=self.base_url,
            timeout=timeout,
            headers=self.default_headers,
            transport=transport,
        )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.client.close()

    def _handle_response(self, response: httpx.Response) -> Any:
        try:
            return extract_data(response)
        except StudioJobsError as e:
            console.print(Panel(f"[red]{e}[/red]", title="API Error"))
            raise

    def request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        try:
            response = self.client.request(
                method, f"/v1{path}", params=params, json=json, headers=headers
            )
        except httpx.RequestError as e:
            console.print(f"[red]Connection error: {e}[/red]")
            raise TransportError(f"Connection failed: {e}") from None
        return self._handle_response(response)

    def get(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """Make GET request"""
        return self.request("GET", path, params=params, headers=headers)

    def post(
        self,
        path: str,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """Make POST request"""
        return self.request("POST", path, params=params, json=json, headers=headers)


class AsyncAPIClient:
    """Non-blocking HTTP client used by the render job poller"""

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        timeout: float = 30,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            headers=headers or {},
            transport=transport,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.client.aclose()

    async def request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> Any:
        try:
            response = await self.client.request(
                method, f"/v1{path}", params=params, json=json
            )
        except httpx.RequestError as e:
            raise TransportError(f"Connection failed: {e}") from None
        return extract_data(response)

    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, json: dict[str, Any] | None = None) -> Any:
        return await self.request("POST", path, json=json)
