"""
API routes.

Endpoints:
- GET `/api/food-waste`: credential-injecting proxy to the offer lookup. The browser
  never sees the key; upstream status codes are mirrored verbatim.
- GET `/api/offers`: server-side search (normalize + filter) returning a filtered view.
- GET `/api/quick-filters`: configured bilingual quick filters.
- GET `/api/health`: liveness.
"""

from __future__ import annotations

import logging
import math
from functools import lru_cache

import httpx
from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from madspild.config.settings import get_settings
from madspild.core.geo import api_radius_km
from madspild.core.http import get_response
from madspild.domain.errors import MadspildError, UpstreamError, ValidationError
from madspild.domain.models import GeoPoint, SearchRequest
from madspild.ingestion.food_waste_client import FoodWasteClient, build_lookup_params
from madspild.search.orchestrator import OfferLookup, SearchOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter()


@lru_cache
def _offer_lookup() -> OfferLookup:
    return FoodWasteClient(get_settings())


def _error(status_code: int, error: str, **extra: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, **extra})


@router.get("/api/health")
def get_health() -> dict:
    return {"status": "ok"}


@router.get("/api/quick-filters")
def get_quick_filters() -> dict:
    """Return the bilingual quick filters shown in the UI."""
    conf = get_settings().filters
    return {
        "quick_filters": [q.model_dump() for q in conf.quick_filters],
        "shown": conf.quick_filters_shown,
    }


@router.get("/api/food-waste")
async def proxy_food_waste(
    lat: str | None = None,
    lng: str | None = None,
    radius: str | None = None,
) -> JSONResponse:
    """Forward a radius lookup to the provider with the server-side bearer token."""
    if not lat or not lng or not radius:
        return _error(400, "Missing required parameters: lat, lng, radius")

    try:
        center = GeoPoint(lat=float(lat), lon=float(lng))
        radius_km = float(radius)
    except ValueError:
        return _error(400, "Invalid parameters: lat, lng and radius must be numbers")
    if not (math.isfinite(radius_km) and radius_km > 0):
        return _error(400, "Invalid parameters: radius must be positive")

    settings = get_settings()
    api_key = settings.food_waste.api_key
    if not api_key:
        logger.error("Offer lookup credential is not configured")
        return _error(500, "Server configuration error")

    params = build_lookup_params(center, radius_km)
    logger.info("Proxying food-waste lookup geo=%s radius=%s", params["geo"], params["radius"])
    try:
        resp = await get_response(
            settings.food_waste.base_url,
            params=params,
            headers={"Authorization": f"Bearer {api_key}"},
            timeout_seconds=settings.app.http_timeout_seconds,
        )
    except httpx.TransportError as exc:
        logger.error("Proxy transport error: %s", exc)
        return _error(500, "Internal server error", message=str(exc))

    if not resp.is_success:
        logger.warning("Upstream food-waste API error: status=%s", resp.status_code)
        return _error(resp.status_code, f"API error: {resp.status_code}", details=resp.text)

    try:
        payload = resp.json()
    except ValueError as exc:
        logger.error("Upstream returned invalid JSON: %s", exc)
        return _error(500, "Internal server error", message="Upstream returned invalid JSON")
    return JSONResponse(status_code=200, content=payload)


@router.get("/api/offers")
async def get_offers(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    radius: float | None = Query(default=None, gt=0),
    term: list[str] = Query(default=[]),
) -> dict:
    """Search offers around a point and apply product filter terms server-side."""
    settings = get_settings()
    orchestrator = SearchOrchestrator(settings, lookup=_offer_lookup())

    try:
        request = SearchRequest(
            center=GeoPoint(lat=lat, lon=lng),
            radius_km=radius or settings.search.location_radius_km,
        )
        result = await orchestrator.search(request)
    except (ValidationError, PydanticValidationError) as e:
        raise HTTPException(status_code=400, detail={"code": "VALIDATION_ERROR", "message": str(e)}) from e
    except UpstreamError as e:
        status = e.status_code if e.status_code and e.status_code >= 400 else 502
        raise HTTPException(status_code=status, detail={"code": type(e).__name__, "message": str(e)}) from e
    except MadspildError as e:
        raise HTTPException(status_code=500, detail={"code": "INTERNAL_ERROR", "message": str(e)}) from e

    for t in term:
        orchestrator.add_term(t)

    view = orchestrator.view
    return {
        "center": {"lat": lat, "lon": lng},
        "radius_km": result.request.radius_km if result else None,
        "api_radius_km": api_radius_km(result.request.radius_km) if result else None,
        "notice": result.notice if result else None,
        "store_count": len(orchestrator.catalog),
        "view": view.model_dump(mode="json"),
    }
