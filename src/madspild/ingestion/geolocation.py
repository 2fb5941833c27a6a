"""
Device geolocation.

The platform location API lives outside this package; anything that can answer
"where am I?" once, asynchronously, satisfies `Locator`. Denial or
unavailability is reported as `GeolocationUnavailable` so the caller can prompt
for a manual search instead. No retry is built in.
"""

from __future__ import annotations

from typing import Protocol

from madspild.config.settings import Settings
from madspild.domain.errors import GeolocationUnavailable
from madspild.domain.models import GeoPoint


class Locator(Protocol):
    async def locate(self) -> GeoPoint:
        """Return the current position or raise `GeolocationUnavailable`."""
        ...


class StaticLocator:
    """A fixed position, e.g. a configured fallback for headless deployments."""

    def __init__(self, position: GeoPoint | None):
        self._position = position

    @classmethod
    def from_settings(cls, settings: Settings) -> StaticLocator:
        return cls(settings.geolocation.fallback_position)

    async def locate(self) -> GeoPoint:
        if self._position is None:
            raise GeolocationUnavailable("Geolocation is not supported by this client")
        return self._position
