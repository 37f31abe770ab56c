"""Shared HTTP plumbing for the catalog and lineage API clients."""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT = 30.0


class _ResponsePayload(BaseModel):
    data: list[Any] = []


class ResponseEnvelope(BaseModel):
    """Expected ``{"response": {"data": [...]}}`` wrapper of every API reply."""

    response: _ResponsePayload


class ApiClient:
    """Thin async wrapper around the data catalog REST API.

    :meth:`_post_rows` returns ``None`` on failure so that callers can
    degrade gracefully when the service is unavailable.  Errors are logged
    but never propagated.

    Parameters
    ----------
    base_url:
        Root URL of the API (e.g. ``https://catalog.example.com``).
    client_id:
        Value of the ``client-id`` authentication header.
    client_secret:
        Value of the ``client-secret`` authentication header.
    timeout:
        Per-request timeout in seconds.
    http_client:
        Optional ``httpx.AsyncClient`` for testing.  A default client is
        created if not provided.
    """

    def __init__(
        self,
        base_url: str,
        client_id: str,
        client_secret: str,
        *,
        timeout: float = _DEFAULT_TIMEOUT,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._headers: dict[str, str] = {
            "Content-Type": "application/json",
            "client-id": client_id,
            "client-secret": client_secret,
        }
        self._client = http_client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))
        self._owns_client = http_client is None

    async def close(self) -> None:
        """Close the HTTP client if we own it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> ApiClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def _post_rows(self, path: str, payload: dict[str, Any]) -> list[Any] | None:
        """POST *payload* and return the ``response.data`` rows, or ``None`` on error.

        A reply whose shape does not match :class:`ResponseEnvelope` is
        treated exactly like a transport failure.
        """
        url = f"{self._base_url}{path}"
        try:
            response = await self._client.post(url, json=payload, headers=self._headers)
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as exc:
            logger.error(
                "API returned %d for %s: %s",
                exc.response.status_code,
                path,
                exc.response.text[:500],
            )
            return None
        except httpx.RequestError as exc:
            logger.error("API request to %s failed: %s", path, str(exc) or type(exc).__name__)
            return None
        except ValueError as exc:
            logger.error("API response from %s is not valid JSON: %s", path, exc)
            return None

        try:
            envelope = ResponseEnvelope.model_validate(body)
        except ValidationError as exc:
            logger.error("Unexpected response shape from %s: %d validation error(s)", path, exc.error_count())
            return None
        return envelope.response.data
