"""
Food-waste offer lookup client (Salling Group API).

This module is responsible only for:
- building the radius lookup request (`geo=<lat>,<lng>&radius=<km>`),
- attaching the bearer credential when calling the provider directly,
- translating failure classes into domain errors.

It returns the raw JSON body untouched; validation is the normalizer's job
(`madspild.catalog.normalizer`).

Two modes:
- direct: `food_waste.base_url` with `Authorization: Bearer <api_key>`;
- proxy: `food_waste.proxy_url` (see `madspild.api.routes`) with `lat`, `lng`,
  `radius` and no credential, so the client never holds the key.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from madspild.config.settings import Settings
from madspild.core.geo import api_radius_km
from madspild.core.http import get_json
from madspild.domain.errors import (
    UpstreamGenericError,
    UpstreamRadiusTooLarge,
    UpstreamRateLimited,
    ValidationError,
)
from madspild.domain.models import GeoPoint

logger = logging.getLogger(__name__)


def build_lookup_params(center: GeoPoint, radius_km: float) -> dict[str, Any]:
    """Query parameters for the provider's radius lookup."""
    return {"geo": f"{center.lat},{center.lon}", "radius": api_radius_km(radius_km)}


class FoodWasteClient:
    """Radius-based clearance lookup around a point."""

    def __init__(self, settings: Settings):
        self._settings = settings

    def _request(self, center: GeoPoint, radius_km: float) -> tuple[str, dict[str, Any], dict[str, str]]:
        conf = self._settings.food_waste
        if conf.proxy_url:
            params = {"lat": center.lat, "lng": center.lon, "radius": api_radius_km(radius_km)}
            return conf.proxy_url, params, {}

        if not conf.api_key:
            raise ValidationError("API key not found. Set SALLING_API_KEY in the environment or .env file.")
        headers = {"Authorization": f"Bearer {conf.api_key}"}
        return conf.base_url, build_lookup_params(center, radius_km), headers

    async def lookup(self, center: GeoPoint, radius_km: float) -> Any:
        """Fetch raw clearance records within `radius_km` of `center`.

        Raises:
            UpstreamRateLimited: on HTTP 429.
            UpstreamRadiusTooLarge: on HTTP 500 (the provider's answer to oversized radii).
            UpstreamGenericError: on any other non-2xx, request failure or invalid JSON.
            ValidationError: if no credential is configured for direct calls.
        """
        url, params, headers = self._request(center, radius_km)
        logger.info(
            "Looking up food-waste offers lat=%.4f lon=%.4f radius=%skm",
            center.lat,
            center.lon,
            params["radius"],
        )
        try:
            return await get_json(
                url,
                params=params,
                headers=headers,
                timeout_seconds=self._settings.app.http_timeout_seconds,
            )
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            body = exc.response.text
            logger.warning("Food-waste lookup failed with status=%s", status)
            if status == 429:
                raise UpstreamRateLimited(body=body) from exc
            if status == 500:
                raise UpstreamRadiusTooLarge(radius_km, body=body) from exc
            raise UpstreamGenericError(status_code=status, body=body) from exc
        except httpx.HTTPError as exc:
            # Transport failures, redirect loops, undecodable bodies, bad URLs.
            logger.warning("Food-waste lookup request error: %s", exc)
            raise UpstreamGenericError(status_code=None, body=str(exc)) from exc
        except ValueError as exc:
            logger.warning("Food-waste lookup returned invalid JSON: %s", exc)
            raise UpstreamGenericError(status_code=None, body="invalid JSON response") from exc
