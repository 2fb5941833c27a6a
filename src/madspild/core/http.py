"""
HTTP helpers.

This module centralizes the minimal HTTP client logic used by ingestion clients
(offer lookup, geocoder) and by the proxy route.

Design goals:
- Small surface area (GET JSON, GET raw response).
- Deterministic defaults (timeout + User-Agent).
- Raise on non-2xx so callers can map status codes to domain errors.

All calls are async: the search core is single-threaded and suspends only at
these network calls.
"""

from __future__ import annotations

from typing import Any

import httpx


DEFAULT_USER_AGENT = "madspild/0.1.0 (+https://local)"


def _merge_headers(headers: dict[str, str] | None) -> dict[str, str]:
    request_headers = {"User-Agent": DEFAULT_USER_AGENT}
    if headers:
        request_headers.update(headers)
    return request_headers


async def get_json(
    url: str,
    *,
    params: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
    timeout_seconds: float = 15,
) -> Any:
    """GET `url` and return the decoded JSON response.

    Raises:
        httpx.HTTPError: On transport errors or non-2xx status codes.
        ValueError: If the response body is not valid JSON.
    """
    async with httpx.AsyncClient(timeout=timeout_seconds) as client:
        resp = await client.get(url, params=params, headers=_merge_headers(headers))
        resp.raise_for_status()
        return resp.json()


async def get_response(
    url: str,
    *,
    params: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
    timeout_seconds: float = 15,
) -> httpx.Response:
    """GET `url` and return the response without raising on status.

    Used by the proxy, which mirrors upstream status codes verbatim.

    Raises:
        httpx.TransportError: On connection/timeout failures.
    """
    async with httpx.AsyncClient(timeout=timeout_seconds) as client:
        resp = await client.get(url, params=params, headers=_merge_headers(headers))
        return resp
