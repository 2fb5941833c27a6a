"""
Domain errors.

Every failure is scoped to a single search attempt; none of these is fatal to the
process. Messages are written for end users so callers can surface them as-is.
"""

from __future__ import annotations


class MadspildError(Exception):
    """Base class for all domain errors."""


class ValidationError(MadspildError, ValueError):
    """Missing or invalid request parameters."""


class UpstreamError(MadspildError):
    """The offer lookup failed; carries the upstream status and raw body when known."""

    def __init__(self, message: str, *, status_code: int | None = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class UpstreamRateLimited(UpstreamError):
    def __init__(self, *, body: str = ""):
        super().__init__(
            "Rate limit exceeded. Please wait a few minutes and try again.",
            status_code=429,
            body=body,
        )


class UpstreamRadiusTooLarge(UpstreamError):
    """The lookup answered 500, which in practice means the radius was too large."""

    def __init__(self, radius_km: float, *, body: str = ""):
        super().__init__(
            f"The search area is too large ({radius_km:.1f} km radius). "
            "Try zooming in closer or searching a smaller area.",
            status_code=500,
            body=body,
        )
        self.radius_km = radius_km


class UpstreamGenericError(UpstreamError):
    def __init__(self, *, status_code: int | None, body: str = ""):
        message = f"API error: {status_code}" if status_code is not None else f"API request failed: {body}"
        super().__init__(message, status_code=status_code, body=body)


class GeocodeNotFound(MadspildError):
    def __init__(self, query: str, *, postal_code: bool = False):
        if postal_code:
            message = "Zip code not found. Try a Copenhagen area code (e.g., 2200, 1050)"
        else:
            message = 'Address not found. Try adding "Copenhagen" to your search'
        super().__init__(message)
        self.query = query


class GeocodeFailed(MadspildError):
    """The geocoder could not be reached or answered with an error."""

    def __init__(self, query: str):
        super().__init__("Failed to find location. Please try again.")
        self.query = query


class GeolocationUnavailable(MadspildError):
    def __init__(self, reason: str = ""):
        super().__init__("Could not get your location. Please enter a zip code or address.")
        self.reason = reason


class MalformedRecord(MadspildError):
    """A raw offer record that cannot become a catalog entry; dropped, never escalated."""
