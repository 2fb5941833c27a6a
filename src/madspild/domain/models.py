"""
Domain models (Pydantic).

These types are the contract between layers:
- search inputs (`SearchRequest`, `ViewportBounds`)
- catalog entities produced by the normalizer (`Store`, `Offer`, `StoreOfferBundle`)
- the filtered view handed to the presentation layer (`FilterView`)

Raw upstream payloads never flow past `madspild.catalog.normalizer`; everything
downstream can assume these shapes.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class GeoPoint(BaseModel):
    """A geographic point in decimal degrees."""

    model_config = ConfigDict(frozen=True)

    lat: float = Field(..., ge=-90, le=90)
    lon: float = Field(..., ge=-180, le=180)


class ViewportBounds(BaseModel):
    """The visible map region: its center plus the four corners."""

    model_config = ConfigDict(frozen=True)

    center: GeoPoint
    north_east: GeoPoint
    north_west: GeoPoint
    south_east: GeoPoint
    south_west: GeoPoint

    def corners(self) -> tuple[GeoPoint, GeoPoint, GeoPoint, GeoPoint]:
        return (self.north_east, self.north_west, self.south_east, self.south_west)


class SearchSource(str, Enum):
    EXPLICIT_LOCATION = "explicit_location"
    GEOLOCATION = "geolocation"
    VIEWPORT_SEARCH = "viewport_search"


class SearchRequest(BaseModel):
    """Where to look for offers. The radius is resolved/capped by the orchestrator."""

    center: GeoPoint
    radius_km: float = Field(..., gt=0, allow_inf_nan=False)
    source: SearchSource = SearchSource.EXPLICIT_LOCATION


class Address(BaseModel):
    street: str = ""
    zip: str = ""
    city: str = ""


class Store(BaseModel):
    """A store that has at least a valid position."""

    id: str
    name: str = ""
    brand: str = ""
    address: Address = Field(default_factory=Address)
    coordinates: GeoPoint
    distance_km: float | None = None


class Offer(BaseModel):
    """One clearance listing: a product plus its discounted price and stock."""

    product_description: str = ""
    category_en: str | None = None
    category_da: str | None = None
    image_url: str | None = None
    ean: str | None = None

    new_price: float | None = None
    original_price: float | None = None
    percent_discount: float = 0.0
    discount: float | None = None
    currency: str | None = None

    # Stock is kept raw; units below 1 are fractions of `stock_unit` (e.g. kg).
    stock: float = 0.0
    stock_unit: str = ""

    start_time: datetime | None = None
    end_time: datetime | None = None


class StoreOfferBundle(BaseModel):
    """A store with its offers, in the order the upstream API returned them."""

    store: Store
    offers: list[Offer] = Field(default_factory=list)


Catalog = list[StoreOfferBundle]


class QuickFilter(BaseModel):
    """A bilingual product shortcut (English label + Danish variant)."""

    en: str
    da: str


class FilterView(BaseModel):
    """Result of filtering a catalog with a set of terms.

    `filtered=False` means no terms were active and the full catalog is shown;
    this is different from an active filter that happens to match nothing.
    """

    terms: list[str] = Field(default_factory=list)
    visible_stores: list[StoreOfferBundle] = Field(default_factory=list)
    matched_offers_by_store: dict[str, list[Offer]] = Field(default_factory=dict)
    filtered: bool = False

    @property
    def is_empty_match(self) -> bool:
        return self.filtered and not self.visible_stores
