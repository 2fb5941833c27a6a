import asyncio
from math import degrees

import pytest
from pydantic import ValidationError as PydanticValidationError

from conftest import make_record
from madspild.core.geo import EARTH_RADIUS_M
from madspild.domain.errors import (
    GeocodeNotFound,
    GeolocationUnavailable,
    UpstreamRadiusTooLarge,
    UpstreamRateLimited,
    ValidationError,
)
from madspild.domain.models import GeoPoint, SearchRequest, SearchSource, ViewportBounds
from madspild.ingestion.geocoder import GeocodeResult
from madspild.ingestion.geolocation import StaticLocator
from madspild.search.orchestrator import SearchOrchestrator, SearchState

CPH = GeoPoint(lat=55.6761, lon=12.5683)
AARHUS = GeoPoint(lat=56.1629, lon=10.2039)


class StubLookup:
    def __init__(self, responses=None):
        self.responses = list(responses or [])
        self.calls: list[tuple[GeoPoint, float]] = []

    async def lookup(self, center, radius_km):
        self.calls.append((center, radius_km))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class ControlledLookup:
    """Each call suspends until the test resolves its future."""

    def __init__(self):
        self.calls: list[tuple[GeoPoint, float, asyncio.Future]] = []

    async def lookup(self, center, radius_km):
        fut = asyncio.get_running_loop().create_future()
        self.calls.append((center, radius_km, fut))
        return await fut


class StubGeocoder:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.queries: list[str] = []

    async def geocode(self, query):
        self.queries.append(query)
        if self.error:
            raise self.error
        return self.result


async def _wait_for_calls(lookup, n):
    while len(lookup.calls) < n:
        await asyncio.sleep(0)


def _ids(stores):
    return [b.store.id for b in stores]


@pytest.mark.asyncio
async def test_search_replaces_catalog_and_shows_full_view(settings):
    lookup = StubLookup([[make_record("S1", ["Rugbrød"]), make_record("S2", ["Øl"])]])
    orch = SearchOrchestrator(settings, lookup=lookup)

    result = await orch.search(SearchRequest(center=CPH, radius_km=5))

    assert result is not None
    assert orch.state is SearchState.READY
    assert _ids(orch.catalog) == ["S1", "S2"]
    assert orch.view.filtered is False
    assert _ids(orch.view.visible_stores) == ["S1", "S2"]


@pytest.mark.asyncio
async def test_explicit_radius_is_rounded_up(settings):
    lookup = StubLookup([[]])
    orch = SearchOrchestrator(settings, lookup=lookup)

    result = await orch.search(SearchRequest(center=CPH, radius_km=3.2))

    assert lookup.calls == [(CPH, 4.0)]
    assert result.request.radius_km == 4.0
    assert result.radius_capped is False


@pytest.mark.asyncio
async def test_explicit_radius_is_capped(settings):
    lookup = StubLookup([[]])
    orch = SearchOrchestrator(settings, lookup=lookup)

    result = await orch.search(SearchRequest(center=CPH, radius_km=40))

    assert lookup.calls[0][1] == 25
    assert result.radius_capped is True
    assert result.notice is not None


@pytest.mark.asyncio
async def test_new_search_resets_filters(settings):
    lookup = StubLookup([[make_record("S1", ["Rugbrød"])], [make_record("S2", ["Mælk"])]])
    orch = SearchOrchestrator(settings, lookup=lookup)
    await orch.search(SearchRequest(center=CPH, radius_km=5))
    orch.add_term("brød")
    assert orch.active_terms == ("brød",)

    await orch.search(SearchRequest(center=AARHUS, radius_km=5))

    assert orch.active_terms == ()
    assert _ids(orch.view.visible_stores) == ["S2"]


@pytest.mark.asyncio
async def test_upstream_500_keeps_previous_catalog(settings):
    lookup = StubLookup([[make_record("S1", ["Rugbrød"])], UpstreamRadiusTooLarge(25)])
    orch = SearchOrchestrator(settings, lookup=lookup)
    await orch.search(SearchRequest(center=CPH, radius_km=5))
    orch.add_term("rug")
    view_before = orch.view

    with pytest.raises(UpstreamRadiusTooLarge):
        await orch.search(SearchRequest(center=CPH, radius_km=25))

    assert orch.state is SearchState.FAILED
    assert isinstance(orch.last_error, UpstreamRadiusTooLarge)
    assert _ids(orch.catalog) == ["S1"]
    assert orch.view == view_before
    assert orch.active_terms == ("rug",)


@pytest.mark.asyncio
async def test_failed_then_successful_search_clears_error(settings):
    lookup = StubLookup([UpstreamRateLimited(), [make_record("S1", [])]])
    orch = SearchOrchestrator(settings, lookup=lookup)

    with pytest.raises(UpstreamRateLimited):
        await orch.search(SearchRequest(center=CPH, radius_km=5))
    await orch.search(SearchRequest(center=CPH, radius_km=5))

    assert orch.state is SearchState.READY
    assert orch.last_error is None


@pytest.mark.parametrize("radius", [float("inf"), float("nan")])
def test_search_request_rejects_non_finite_radius(radius):
    with pytest.raises(PydanticValidationError):
        SearchRequest(center=CPH, radius_km=radius)


@pytest.mark.asyncio
async def test_unexpected_lookup_error_ends_search_as_failed(settings):
    lookup = StubLookup([[make_record("S1", [])], RuntimeError("boom")])
    orch = SearchOrchestrator(settings, lookup=lookup)
    await orch.search(SearchRequest(center=CPH, radius_km=5))

    with pytest.raises(RuntimeError):
        await orch.search(SearchRequest(center=CPH, radius_km=5))

    assert orch.state is SearchState.FAILED
    assert _ids(orch.catalog) == ["S1"]


@pytest.mark.asyncio
async def test_stale_response_does_not_overwrite_newer_search(settings):
    lookup = ControlledLookup()
    orch = SearchOrchestrator(settings, lookup=lookup)

    first = asyncio.create_task(orch.search(SearchRequest(center=CPH, radius_km=5)))
    await _wait_for_calls(lookup, 1)
    second = asyncio.create_task(orch.search(SearchRequest(center=AARHUS, radius_km=5)))
    await _wait_for_calls(lookup, 2)

    lookup.calls[1][2].set_result([make_record("aarhus", ["Ost"])])
    second_result = await second
    lookup.calls[0][2].set_result([make_record("cph", ["Brød"])])
    first_result = await first

    assert second_result is not None
    assert first_result is None
    assert _ids(orch.catalog) == ["aarhus"]
    assert _ids(orch.view.visible_stores) == ["aarhus"]
    assert orch.state is SearchState.READY


@pytest.mark.asyncio
async def test_stale_failure_is_discarded(settings):
    lookup = ControlledLookup()
    orch = SearchOrchestrator(settings, lookup=lookup)

    first = asyncio.create_task(orch.search(SearchRequest(center=CPH, radius_km=5)))
    await _wait_for_calls(lookup, 1)
    second = asyncio.create_task(orch.search(SearchRequest(center=AARHUS, radius_km=5)))
    await _wait_for_calls(lookup, 2)

    lookup.calls[0][2].set_exception(UpstreamRateLimited())
    assert await first is None
    assert orch.state is SearchState.SEARCHING

    lookup.calls[1][2].set_result([make_record("aarhus", [])])
    await second
    assert orch.state is SearchState.READY
    assert orch.last_error is None


@pytest.mark.asyncio
async def test_viewport_search_uses_buffered_radius(settings):
    lookup = StubLookup([[]])
    orch = SearchOrchestrator(settings, lookup=lookup)
    corner = GeoPoint(lat=CPH.lat + degrees(3000 / EARTH_RADIUS_M), lon=CPH.lon)
    bounds = ViewportBounds(center=CPH, north_east=corner, north_west=CPH, south_east=CPH, south_west=CPH)

    result = await orch.search_viewport(bounds)

    assert lookup.calls[0][1] == pytest.approx(3.6)
    assert result.request.source is SearchSource.VIEWPORT_SEARCH
    assert result.radius_capped is False


@pytest.mark.asyncio
async def test_viewport_search_reports_cap(settings):
    lookup = StubLookup([[]])
    orch = SearchOrchestrator(settings, lookup=lookup)
    corner = GeoPoint(lat=CPH.lat + degrees(30_000 / EARTH_RADIUS_M), lon=CPH.lon)
    bounds = ViewportBounds(center=CPH, north_east=corner, north_west=CPH, south_east=CPH, south_west=CPH)

    result = await orch.search_viewport(bounds)

    assert lookup.calls[0][1] == 25
    assert result.radius_capped is True
    assert result.requested_radius_km == pytest.approx(36.0)
    assert "36.0 km radius needed" in result.notice


@pytest.mark.asyncio
async def test_zero_size_viewport_searches_minimum_radius(settings):
    lookup = StubLookup([[]])
    orch = SearchOrchestrator(settings, lookup=lookup)
    bounds = ViewportBounds(center=CPH, north_east=CPH, north_west=CPH, south_east=CPH, south_west=CPH)

    result = await orch.search_viewport(bounds)

    assert lookup.calls[0][1] == settings.search.min_radius_km
    assert orch.state is SearchState.READY
    assert result.radius_capped is False


@pytest.mark.asyncio
async def test_search_location_geocodes_then_searches(settings):
    lookup = StubLookup([[make_record("S1", [])]])
    geocoder = StubGeocoder(GeocodeResult(point=AARHUS, display_name="8000 Aarhus C"))
    orch = SearchOrchestrator(settings, lookup=lookup, geocoder=geocoder)

    result = await orch.search_location("8000")

    assert geocoder.queries == ["8000"]
    assert lookup.calls == [(AARHUS, settings.search.location_radius_km)]
    assert result.location_name == "8000 Aarhus C"
    assert result.request.source is SearchSource.EXPLICIT_LOCATION


@pytest.mark.asyncio
async def test_search_location_not_found_keeps_catalog(settings):
    lookup = StubLookup([[make_record("S1", [])]])
    orch = SearchOrchestrator(settings, lookup=lookup, geocoder=StubGeocoder(error=GeocodeNotFound("0000")))
    await orch.search(SearchRequest(center=CPH, radius_km=5))

    with pytest.raises(GeocodeNotFound):
        await orch.search_location("0000")

    assert _ids(orch.catalog) == ["S1"]
    assert orch.state is SearchState.FAILED


@pytest.mark.asyncio
async def test_search_my_location(settings):
    lookup = StubLookup([[]])
    orch = SearchOrchestrator(settings, lookup=lookup)

    result = await orch.search_my_location(StaticLocator(CPH), radius_km=2)

    assert lookup.calls == [(CPH, 2.0)]
    assert result.request.source is SearchSource.GEOLOCATION


@pytest.mark.asyncio
async def test_search_my_location_unavailable(settings):
    orch = SearchOrchestrator(settings, lookup=StubLookup([]))

    with pytest.raises(GeolocationUnavailable):
        await orch.search_my_location(StaticLocator(None))

    assert orch.state is SearchState.FAILED


@pytest.mark.asyncio
async def test_load_initial_uses_default_center(settings):
    lookup = StubLookup([[]])
    orch = SearchOrchestrator(settings, lookup=lookup)

    await orch.load_initial()

    assert lookup.calls == [(settings.search.default_center, settings.search.initial_radius_km)]


@pytest.mark.asyncio
async def test_filter_operations_use_current_catalog(settings):
    lookup = StubLookup([[make_record("S1", ["Rugbrød", "Mælk"]), make_record("S2", ["Øl"])]])
    orch = SearchOrchestrator(settings, lookup=lookup)
    await orch.search(SearchRequest(center=CPH, radius_km=5))

    view = orch.add_quick_filter("milk")
    assert orch.active_terms == ("milk", "mælk")
    assert _ids(view.visible_stores) == ["S1"]

    orch.add_term("øl")
    assert _ids(orch.view.visible_stores) == ["S1", "S2"]

    orch.remove_term("milk")
    orch.remove_term("mælk")
    assert _ids(orch.view.visible_stores) == ["S2"]

    view = orch.clear_filters()
    assert view.filtered is False
    assert _ids(view.visible_stores) == ["S1", "S2"]


def test_unknown_quick_filter_is_validation_error(settings):
    orch = SearchOrchestrator(settings, lookup=StubLookup([]))

    with pytest.raises(ValidationError):
        orch.add_quick_filter("caviar")
