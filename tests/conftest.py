from __future__ import annotations

from typing import Any

import pytest

from madspild.config.settings import Settings, get_settings


@pytest.fixture
def settings() -> Settings:
    # Start from the packaged defaults, with a credential and direct (non-proxy) calls.
    base = get_settings()
    food_waste = base.food_waste.model_copy(update={"api_key": "test-key", "proxy_url": None})
    return base.model_copy(update={"food_waste": food_waste})


def make_record(
    store_id: str,
    descriptions: list[str],
    *,
    coordinates: Any = (12.5683, 55.6761),
    categories: dict[str, str] | None = None,
) -> dict[str, Any]:
    """Build one raw lookup entry the way the upstream API shapes it."""
    return {
        "store": {
            "id": store_id,
            "name": f"Store {store_id}",
            "brand": "netto",
            "address": {"street": "Nørrebrogade 1", "zip": "2200", "city": "København N"},
            "coordinates": list(coordinates) if isinstance(coordinates, tuple) else coordinates,
            "distance_km": 1.25,
        },
        "clearances": [
            {
                "offer": {
                    "newPrice": 10.0,
                    "originalPrice": 20.0,
                    "percentDiscount": 50.0,
                    "stock": 3,
                    "stockUnit": "each",
                    "endTime": "2026-10-20T21:59:59.000Z",
                },
                "product": {
                    "description": d,
                    "categories": categories or {},
                    "image": None,
                },
            }
            for d in descriptions
        ],
    }
