"""
Offer-lookup response normalizer.

The food-waste API returns a JSON array of entries shaped roughly like:

    {"store": {"id", "name", "brand", "address": {...}, "coordinates": [lng, lat], "distance_km"},
     "clearances": [{"offer": {...}, "product": {...}}, ...]}

Nothing about that shape is guaranteed. This module turns it into typed
`StoreOfferBundle`s and drops whatever cannot be trusted:
- a store without usable coordinates is removed from the catalog entirely,
- a single unreadable clearance is removed without dropping its store.

Axis order: the API delivers coordinates as `[longitude, latitude]`. The swap to
`GeoPoint(lat=..., lon=...)` happens here and nowhere else.

`normalize` never raises; input order is preserved and nothing is de-duplicated.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from madspild.domain.errors import MalformedRecord
from madspild.domain.models import Address, Catalog, GeoPoint, Offer, Store, StoreOfferBundle

logger = logging.getLogger(__name__)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def _optional_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value)
    return text or None


def _optional_float(value: Any) -> float | None:
    if not _is_number(value):
        return None
    try:
        out = float(value)
    except OverflowError:
        return None
    return out if math.isfinite(out) else None


def _optional_datetime(value: Any) -> datetime | None:
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None


def parse_coordinates(value: Any) -> GeoPoint:
    """Parse an upstream `[longitude, latitude]` pair into a `GeoPoint`.

    Raises:
        MalformedRecord: unless `value` is exactly two finite numbers within range.
    """
    if isinstance(value, (str, bytes)) or not isinstance(value, Sequence):
        raise MalformedRecord("coordinates are not a sequence")
    if len(value) != 2:
        raise MalformedRecord(f"coordinates have {len(value)} elements, expected 2")
    lon, lat = value
    if not (_is_number(lon) and _is_number(lat)):
        raise MalformedRecord("coordinates are not numeric")
    try:
        lon, lat = float(lon), float(lat)
    except OverflowError as exc:
        raise MalformedRecord("coordinates are not finite") from exc
    if not (math.isfinite(lon) and math.isfinite(lat)):
        raise MalformedRecord("coordinates are not finite")
    try:
        return GeoPoint(lat=lat, lon=lon)
    except PydanticValidationError as exc:
        raise MalformedRecord("coordinates are out of range") from exc


def parse_store(raw: Any) -> Store:
    """Build a `Store` from the upstream store descriptor.

    Raises:
        MalformedRecord: if the descriptor or its coordinates are unusable.
    """
    if not isinstance(raw, Mapping):
        raise MalformedRecord("store descriptor is missing")
    if raw.get("coordinates") is None:
        raise MalformedRecord("store has no coordinates")
    coordinates = parse_coordinates(raw["coordinates"])

    store_id = _text(raw.get("id"))
    if not store_id:
        # Id-less stores share one key in FilterView.matched_offers_by_store.
        logger.debug("Store %r has no id", raw.get("name"))

    address = raw.get("address")
    if not isinstance(address, Mapping):
        address = {}

    return Store(
        id=store_id,
        name=_text(raw.get("name")),
        brand=_text(raw.get("brand")),
        address=Address(
            street=_text(address.get("street")),
            zip=_text(address.get("zip")),
            city=_text(address.get("city")),
        ),
        coordinates=coordinates,
        distance_km=_optional_float(raw.get("distance_km")),
    )


def parse_offer(raw: Any) -> Offer:
    """Build an `Offer` from one upstream clearance entry (`{"offer": ..., "product": ...}`).

    Raises:
        MalformedRecord: if the entry is not a mapping.
    """
    if not isinstance(raw, Mapping):
        raise MalformedRecord("clearance entry is not a mapping")
    offer = raw.get("offer")
    product = raw.get("product")
    if not isinstance(offer, Mapping):
        offer = {}
    if not isinstance(product, Mapping):
        product = {}
    categories = product.get("categories")
    if not isinstance(categories, Mapping):
        categories = {}

    return Offer(
        product_description=_text(product.get("description")),
        category_en=_optional_text(categories.get("en")),
        category_da=_optional_text(categories.get("da")),
        image_url=_optional_text(product.get("image")),
        ean=_optional_text(product.get("ean") or offer.get("ean")),
        new_price=_optional_float(offer.get("newPrice")),
        original_price=_optional_float(offer.get("originalPrice")),
        percent_discount=_optional_float(offer.get("percentDiscount")) or 0.0,
        discount=_optional_float(offer.get("discount")),
        currency=_optional_text(offer.get("currency")),
        stock=_optional_float(offer.get("stock")) or 0.0,
        stock_unit=_text(offer.get("stockUnit")),
        start_time=_optional_datetime(offer.get("startTime")),
        end_time=_optional_datetime(offer.get("endTime")),
    )


def parse_bundle(raw: Any) -> StoreOfferBundle:
    """Build one `StoreOfferBundle`; raises `MalformedRecord` if the store is unusable."""
    if not isinstance(raw, Mapping):
        raise MalformedRecord("entry is not a mapping")
    store = parse_store(raw.get("store"))

    clearances = raw.get("clearances")
    if isinstance(clearances, (str, bytes)) or not isinstance(clearances, Sequence):
        clearances = []

    offers: list[Offer] = []
    for item in clearances:
        try:
            offers.append(parse_offer(item))
        except MalformedRecord as exc:
            logger.debug("Dropping clearance for store id=%s: %s", store.id, exc)
    return StoreOfferBundle(store=store, offers=offers)


def normalize(raw: Any) -> Catalog:
    """Validate a raw lookup response into a catalog, dropping malformed entries."""
    if isinstance(raw, (str, bytes)) or not isinstance(raw, Sequence):
        logger.warning("Offer lookup returned a non-list payload (%s); using an empty catalog.", type(raw).__name__)
        return []

    catalog: Catalog = []
    for index, entry in enumerate(raw):
        try:
            catalog.append(parse_bundle(entry))
        except MalformedRecord as exc:
            logger.debug("Dropping offer record #%s: %s", index, exc)

    dropped = len(raw) - len(catalog)
    if dropped:
        logger.info("Dropped %s of %s offer records without valid store coordinates.", dropped, len(raw))
    return catalog
