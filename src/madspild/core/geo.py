from __future__ import annotations
from dataclasses import dataclass
from math import asin, ceil, cos, radians, sin, sqrt

from madspild.domain.models import GeoPoint, ViewportBounds

"""
Geospatial helpers.

Turns map geometry into a search radius the offer-lookup API accepts:
- viewport searches cover the whole visible map (farthest corner + buffer),
- explicit/geolocation searches are rounded up to whole kilometers,
- every radius is capped, and the caller is told when that happened.
"""

EARTH_RADIUS_M = 6_371_000
VIEWPORT_BUFFER_FACTOR = 1.2
MAX_RADIUS_KM = 25.0
MIN_RADIUS_KM = 1.0


@dataclass(frozen=True)
class RadiusResolution:
    """A search radius after capping, plus what was asked for before the cap."""

    radius_km: float
    was_capped: bool
    requested_km: float


def haversine_m(a: GeoPoint, b: GeoPoint) -> float:
    """Compute great-circle distance in meters between two points."""
    lat1 = radians(a.lat)
    lon1 = radians(a.lon)
    lat2 = radians(b.lat)
    lon2 = radians(b.lon)

    dlat = lat2 - lat1
    dlon = lon2 - lon1

    h = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlon / 2) ** 2
    return 2 * EARTH_RADIUS_M * asin(sqrt(min(1.0, h)))


def clamp_radius(radius_km: float, *, max_radius_km: float = MAX_RADIUS_KM) -> RadiusResolution:
    """Apply the hard radius cap (inclusive)."""
    if radius_km > max_radius_km:
        return RadiusResolution(radius_km=max_radius_km, was_capped=True, requested_km=radius_km)
    return RadiusResolution(radius_km=radius_km, was_capped=False, requested_km=radius_km)


def resolve_viewport_radius(
    bounds: ViewportBounds,
    *,
    buffer_factor: float = VIEWPORT_BUFFER_FACTOR,
    max_radius_km: float = MAX_RADIUS_KM,
    min_radius_km: float = MIN_RADIUS_KM,
) -> RadiusResolution:
    """Return a radius covering the whole viewport, buffered for edge distortion and capped.

    The distance to the farthest of the four corners is used, so the circle
    always contains the visible rectangle. Tiny or zero-size viewports (every
    corner on the center) are raised to `min_radius_km`.
    """
    farthest_m = max(haversine_m(bounds.center, corner) for corner in bounds.corners())
    buffered_km = max(farthest_m / 1000 * buffer_factor, min_radius_km)
    return clamp_radius(buffered_km, max_radius_km=max_radius_km)


def resolve_search_radius(requested_km: float, *, min_radius_km: float = MIN_RADIUS_KM) -> float:
    """Round a requested radius up to the next whole kilometer (the API is integer-only)."""
    return float(max(ceil(min_radius_km), ceil(requested_km)))


def api_radius_km(radius_km: float) -> int:
    """Integer radius for the lookup query string."""
    return max(1, ceil(radius_km))
