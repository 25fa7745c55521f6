from __future__ import annotations

import logging
from typing import Any

import httpx

from ..models.config_models import AppConfig, Credentials, HttpSettings, RetryPolicy
from .retry import call_with_retry

"""Shared async HTTP client for the remote OData services.

One ``httpx.AsyncClient`` (keep-alive pool, basic auth, fixed per-call timeout)
is opened per run and shared by every stage; each individual call goes
through the linear retry policy.
"""

__all__ = [
    "RemoteClient",
]

logger = logging.getLogger(__name__)


class RemoteClient:
    """Thin wrapper adding auth, OData headers and retries to httpx."""

    def __init__(
        self,
        credentials: Credentials,
        http: HttpSettings | None = None,
        retry: RetryPolicy | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        http = http or HttpSettings()
        self.retry = retry or RetryPolicy()
        self._client = httpx.AsyncClient(
            auth=httpx.BasicAuth(credentials.username, credentials.password),
            timeout=http.timeout_seconds,
            headers={
                "Accept": "application/json",
                "Prefer": f"odata.maxpagesize={http.page_size}",
            },
            limits=httpx.Limits(
                max_connections=http.max_connections,
                max_keepalive_connections=http.max_connections,
            ),
            transport=transport,
        )

    @classmethod
    def from_config(
        cls, config: AppConfig, *, transport: httpx.AsyncBaseTransport | None = None
    ) -> RemoteClient:
        return cls(config.credentials, config.http, config.retry, transport=transport)

    async def __aenter__(self) -> RemoteClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _get_once(self, url: str, params: dict[str, str] | None) -> Any:
        resp = await self._client.get(url, params=params)
        resp.raise_for_status()
        return resp.json()

    async def get_json(self, url: str, params: dict[str, str] | None = None) -> Any:
        """GET a JSON document, retrying transport errors and non-2xx statuses."""
        logger.debug(f"GET {url} params={params}")
        return await call_with_retry(self.retry, self._get_once, url, params, description=f"GET {url}")

    async def _post_once(self, url: str, payload: dict[str, Any]) -> httpx.Response:
        resp = await self._client.post(url, json=payload)
        resp.raise_for_status()
        return resp

    async def post_json(self, url: str, payload: dict[str, Any]) -> httpx.Response:
        """POST a JSON body, retrying per policy; the last error propagates."""
        return await call_with_retry(self.retry, self._post_once, url, payload, description=f"POST {url}")
