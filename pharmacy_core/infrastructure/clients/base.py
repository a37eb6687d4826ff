"""Shared HTTP plumbing for the pharmacy REST API"""

import logging
from typing import Any, Callable, Dict, Optional

import httpx

from pharmacy_core.config import settings
from pharmacy_core.domain.exceptions import RemoteError
from pharmacy_core.infrastructure.observability.metrics import record_remote_failure, remote_request_histogram

TokenProvider = Callable[[], Optional[str]]


def _error_message(response: httpx.Response) -> str:
    """Pull a human-readable message out of an error body"""
    try:
        body = response.json()
    except ValueError:
        return response.text.strip() or response.reason_phrase
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error") or body.get("detail") or body)
    return str(body)


class PharmacyApiClient:
    """
    Base client: bearer auth, timeout, and error mapping.

    The bearer token comes from an external session manager through
    `token_provider`. 401/403 are surfaced as RemoteError and never retried;
    tearing the session down is the caller's job.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        token_provider: TokenProvider | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self.timeout = timeout or settings.http_timeout_seconds
        self.token_provider = token_provider
        self.transport = transport

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        token = self.token_provider() if self.token_provider else None
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        endpoint: str,
        params: Dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        """
        Send one request and decode the JSON body (None for empty bodies).

        Raises:
            RemoteError: On timeout, network failure, HTTP errors, or invalid JSON
        """
        async with httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout, transport=self.transport) as client:
            try:
                with remote_request_histogram.labels(endpoint=endpoint).time():
                    response = await client.request(method, path, params=params, json=json, headers=self._headers())
                response.raise_for_status()

            except httpx.TimeoutException as e:
                record_remote_failure(endpoint, None)
                raise RemoteError(None, f"Pharmacy API timeout after {self.timeout}s") from e
            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                record_remote_failure(endpoint, status)
                logging.error(
                    "Pharmacy API error",
                    extra={"endpoint": endpoint, "method": method, "path": path, "status": status},
                )
                raise RemoteError(status, _error_message(e.response)) from e
            except httpx.RequestError as e:
                record_remote_failure(endpoint, None)
                raise RemoteError(None, f"Pharmacy API unavailable: {e}") from e

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise RemoteError(response.status_code, "Pharmacy API returned invalid JSON") from e
