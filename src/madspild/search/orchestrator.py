"""
Search orchestration.

One `SearchOrchestrator` instance is the single owner of everything a map
session mutates: the current catalog, the active filters and their view, the
search state and the search generation. Nothing here is module-level.

Flow for every search:
1. resolve the radius (GeoMath policies: round up, minimum, hard cap),
2. await the offer lookup (the only suspension point besides geocoding/geolocation),
3. map failures to domain errors, or normalize the raw body,
4. replace the catalog wholesale and reset filters to the full-catalog view.

Superseding: each search takes a new generation number when it starts. When its
awaits resolve, results (and errors) from anything but the latest generation are
discarded, so a slow earlier response never overwrites a newer search.
Errors from the latest search leave the previous catalog and view untouched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

from madspild.catalog.normalizer import normalize
from madspild.config.settings import Settings
from madspild.core.geo import RadiusResolution, clamp_radius, resolve_search_radius, resolve_viewport_radius
from madspild.domain.errors import MadspildError, ValidationError
from madspild.domain.models import (
    Catalog,
    FilterView,
    GeoPoint,
    QuickFilter,
    SearchRequest,
    SearchSource,
    ViewportBounds,
)
from madspild.filtering.engine import FilterState
from madspild.ingestion.food_waste_client import FoodWasteClient
from madspild.ingestion.geocoder import GeocodeResult, NominatimGeocoder
from madspild.ingestion.geolocation import Locator

logger = logging.getLogger(__name__)


class SearchState(str, Enum):
    IDLE = "idle"
    SEARCHING = "searching"
    READY = "ready"
    FAILED = "failed"


class OfferLookup(Protocol):
    async def lookup(self, center: GeoPoint, radius_km: float) -> Any: ...


class Geocoder(Protocol):
    async def geocode(self, query: str) -> GeocodeResult: ...


@dataclass(frozen=True)
class SearchResult:
    """Outcome of the latest successful search."""

    request: SearchRequest
    catalog: Catalog
    view: FilterView
    radius_capped: bool = False
    requested_radius_km: float | None = None
    location_name: str | None = None

    @property
    def notice(self) -> str | None:
        """User-facing warning when the radius had to be reduced."""
        if not self.radius_capped or self.requested_radius_km is None:
            return None
        return (
            f"The search area is too large ({self.requested_radius_km:.1f} km radius needed). "
            f"Please zoom in closer for better results. "
            f"Searching with {self.request.radius_km:g}km radius instead."
        )


class SearchOrchestrator:
    """Runs searches and owns the resulting catalog and filter state."""

    def __init__(
        self,
        settings: Settings,
        *,
        lookup: OfferLookup | None = None,
        geocoder: Geocoder | None = None,
    ):
        self._settings = settings
        self._lookup = lookup or FoodWasteClient(settings)
        self._geocoder = geocoder or NominatimGeocoder(settings)

        self._catalog: Catalog = []
        self._filters = FilterState()
        self._state = SearchState.IDLE
        self._generation = 0
        self._last_error: MadspildError | None = None
        self._last_result: SearchResult | None = None

    @property
    def state(self) -> SearchState:
        return self._state

    @property
    def catalog(self) -> Catalog:
        return self._catalog

    @property
    def view(self) -> FilterView:
        return self._filters.view

    @property
    def active_terms(self) -> tuple[str, ...]:
        return self._filters.active.terms

    @property
    def last_error(self) -> MadspildError | None:
        return self._last_error

    @property
    def last_result(self) -> SearchResult | None:
        return self._last_result

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def quick_filters(self) -> list[QuickFilter]:
        return list(self._settings.filters.quick_filters)

    # -- searching -----------------------------------------------------------------

    def _begin(self) -> int:
        self._generation += 1
        self._state = SearchState.SEARCHING
        return self._generation

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    def _record_failure(self, generation: int, exc: MadspildError) -> bool:
        """Record `exc` for the latest search; return False if the search was superseded."""
        if not self._is_current(generation):
            logger.info("Discarding failure of superseded search #%s: %s", generation, exc)
            return False
        self._state = SearchState.FAILED
        self._last_error = exc
        return True

    def resolve_request(self, request: SearchRequest) -> tuple[SearchRequest, RadiusResolution]:
        """Apply radius policy: whole km for explicit/geolocation searches, hard cap for all."""
        conf = self._settings.search
        radius_km = request.radius_km
        if request.source != SearchSource.VIEWPORT_SEARCH:
            radius_km = resolve_search_radius(radius_km, min_radius_km=conf.min_radius_km)
        resolution = clamp_radius(radius_km, max_radius_km=conf.max_radius_km)
        if resolution.was_capped:
            logger.warning(
                "Requested radius %.1fkm exceeds the %.0fkm cap; searching with the cap.",
                resolution.requested_km,
                conf.max_radius_km,
            )
        return request.model_copy(update={"radius_km": resolution.radius_km}), resolution

    async def _run(
        self,
        generation: int,
        request: SearchRequest,
        *,
        prior: RadiusResolution | None = None,
        location_name: str | None = None,
    ) -> SearchResult | None:
        resolved, resolution = self.resolve_request(request)

        try:
            raw = await self._lookup.lookup(resolved.center, resolved.radius_km)
        except MadspildError as exc:
            if not self._record_failure(generation, exc):
                return None
            raise
        except Exception:
            # Unmapped lookup failure: end the search, keep the previous catalog.
            if self._is_current(generation):
                self._state = SearchState.FAILED
            raise

        if not self._is_current(generation):
            logger.info("Discarding response of superseded search #%s", generation)
            return None

        catalog = normalize(raw)
        self._catalog = catalog
        view = self._filters.reset(catalog)
        self._state = SearchState.READY
        self._last_error = None

        result = SearchResult(
            request=resolved,
            catalog=catalog,
            view=view,
            radius_capped=resolution.was_capped or bool(prior and prior.was_capped),
            requested_radius_km=prior.requested_km if prior else resolution.requested_km,
            location_name=location_name,
        )
        self._last_result = result
        logger.info("Search #%s found %s stores", generation, len(catalog))
        return result

    async def search(self, request: SearchRequest) -> SearchResult | None:
        """Run a search; returns None if a newer search started before this one resolved.

        Raises:
            MadspildError: lookup failures of the latest search (catalog left untouched).
        """
        return await self._run(self._begin(), request)

    async def load_initial(self) -> SearchResult | None:
        """Search around the configured default center."""
        conf = self._settings.search
        return await self.search(
            SearchRequest(center=conf.default_center, radius_km=conf.initial_radius_km)
        )

    async def search_viewport(self, bounds: ViewportBounds) -> SearchResult | None:
        """Search the currently visible map area."""
        conf = self._settings.search
        resolution = resolve_viewport_radius(
            bounds,
            buffer_factor=conf.viewport_buffer_factor,
            max_radius_km=conf.max_radius_km,
            min_radius_km=conf.min_radius_km,
        )
        if resolution.was_capped:
            logger.warning(
                "Visible area needs a %.1fkm radius; searching with %.0fkm instead.",
                resolution.requested_km,
                resolution.radius_km,
            )
        request = SearchRequest(
            center=bounds.center,
            radius_km=resolution.radius_km,
            source=SearchSource.VIEWPORT_SEARCH,
        )
        return await self._run(self._begin(), request, prior=resolution)

    async def search_location(self, query: str, *, radius_km: float | None = None) -> SearchResult | None:
        """Geocode a postal code or address, then search around it."""
        generation = self._begin()
        try:
            found = await self._geocoder.geocode(query)
        except MadspildError as exc:
            if not self._record_failure(generation, exc):
                return None
            raise

        if not self._is_current(generation):
            return None
        request = SearchRequest(
            center=found.point,
            radius_km=radius_km or self._settings.search.location_radius_km,
            source=SearchSource.EXPLICIT_LOCATION,
        )
        return await self._run(generation, request, location_name=found.display_name)

    async def search_my_location(self, locator: Locator, *, radius_km: float | None = None) -> SearchResult | None:
        """Ask the device for its position, then search around it."""
        generation = self._begin()
        try:
            point = await locator.locate()
        except MadspildError as exc:
            if not self._record_failure(generation, exc):
                return None
            raise

        if not self._is_current(generation):
            return None
        request = SearchRequest(
            center=point,
            radius_km=radius_km or self._settings.search.location_radius_km,
            source=SearchSource.GEOLOCATION,
        )
        return await self._run(generation, request, location_name="Your location")

    # -- filtering -----------------------------------------------------------------

    def add_term(self, term: str) -> FilterView:
        return self._filters.add_term(term, self._catalog)

    def add_quick_filter(self, quick: QuickFilter | str) -> FilterView:
        """Add both language variants of a quick filter (by object or English label)."""
        if isinstance(quick, str):
            match = next((q for q in self._settings.filters.quick_filters if q.en == quick), None)
            if match is None:
                raise ValidationError(f"Unknown quick filter: {quick}")
            quick = match
        return self._filters.add_quick_filter(quick, self._catalog)

    def remove_term(self, term: str) -> FilterView:
        return self._filters.remove_term(term, self._catalog)

    def clear_filters(self) -> FilterView:
        return self._filters.clear_all(self._catalog)
