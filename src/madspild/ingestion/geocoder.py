"""
Geocoding client (OpenStreetMap Nominatim).

Turns what a user types into a search center:
- a 4-digit Danish postal code is looked up as `postalcode=<zip>&country=<country>`,
- anything else as a free-text `q=<text>,<country>` query.

Only the first result is used. An empty result list is a "not found" outcome
(`GeocodeNotFound`), not a transport error.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any

import httpx

from madspild.config.settings import Settings
from madspild.core.http import get_json
from madspild.domain.errors import GeocodeFailed, GeocodeNotFound, ValidationError
from madspild.domain.models import GeoPoint

logger = logging.getLogger(__name__)

_POSTAL_CODE_RE = re.compile(r"^\d{4}$")


@dataclass(frozen=True)
class GeocodeResult:
    point: GeoPoint
    display_name: str


def is_postal_code(query: str) -> bool:
    return bool(_POSTAL_CODE_RE.match(query.strip()))


class NominatimGeocoder:
    def __init__(self, settings: Settings):
        self._settings = settings

    def _params(self, query: str) -> dict[str, Any]:
        country = self._settings.geocoder.country
        if is_postal_code(query):
            return {"postalcode": query, "country": country, "format": "json", "limit": 1}
        return {"q": f"{query},{country}", "format": "json", "limit": 1}

    async def geocode(self, query: str) -> GeocodeResult:
        """Resolve a postal code or address to coordinates.

        Raises:
            ValidationError: if `query` is blank.
            GeocodeNotFound: if the geocoder has no result.
            GeocodeFailed: on transport errors, non-2xx status codes or invalid JSON.
        """
        cleaned = query.strip()
        if not cleaned:
            raise ValidationError("Please enter a zip code or address")

        logger.info("Geocoding %r", cleaned)
        try:
            data = await get_json(
                self._settings.geocoder.base_url,
                params=self._params(cleaned),
                headers={"User-Agent": self._settings.app.user_agent},
                timeout_seconds=self._settings.app.http_timeout_seconds,
            )
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Geocoding error for %s: %s", cleaned, exc)
            raise GeocodeFailed(cleaned) from exc

        if not isinstance(data, list) or not data:
            logger.warning("No geocoding results for: %s", cleaned)
            raise GeocodeNotFound(cleaned, postal_code=is_postal_code(cleaned))

        top = data[0]
        try:
            point = GeoPoint(lat=float(top["lat"]), lon=float(top["lon"]))
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Unusable geocoding result for %s: %r", cleaned, top)
            raise GeocodeNotFound(cleaned, postal_code=is_postal_code(cleaned)) from exc
        return GeocodeResult(point=point, display_name=str(top.get("display_name") or cleaned))
