from __future__ import annotations

from typing import Any

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential_jitter

from suasor.core.config import settings


class ExternalAPIError(Exception):
    pass


class ClientAuthError(Exception):
    """Raised when a client rejects the configured credentials."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


async def fetch_json(
    url: str,
    *,
    headers: dict[str, str] | None = None,
    params: dict | None = None,
    method: str = "GET",
    data: dict | None = None,
    timeout: float | None = None,
) -> Any:
    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(3),
        wait=wait_exponential_jitter(initial=1, max=8),
        retry=retry_if_exception_type((httpx.TransportError, ExternalAPIError)),
        reraise=True,
    ):
        with attempt:
            async with httpx.AsyncClient(timeout=timeout or settings.client_request_timeout_seconds) as client:
                response = await client.request(
                    method, url, headers=headers, params=params, data=data
                )
                if response.status_code >= 500:
                    raise ExternalAPIError(f"Server error {response.status_code}")
                if response.status_code in {401, 403}:
                    raise ClientAuthError(
                        f"Authentication failed ({response.status_code})",
                        status_code=response.status_code,
                    )
                response.raise_for_status()
                if not response.content:
                    return {}
                return response.json()
    raise ExternalAPIError("Unreachable")
