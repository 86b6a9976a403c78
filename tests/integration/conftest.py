"""
Integration test helper utilities.

Shared fixtures and response builders for integration tests.
"""

from __future__ import annotations

import pytest

FOODS_API = "https://foods.example.com/v2/"
PRICES_API = "https://prices.example.com/api/"


def food_payload(food_id: int, name: str, kcal: float) -> dict:
    """Create a food search result."""
    return {
        "id": food_id,
        "description": name,
        "nutrients": [{"name": "Energy", "unit": "kcal", "amount": kcal}],
    }


def price_payload(sku: str, cents: int) -> dict:
    """Create a price lookup result."""
    return {"sku": sku, "price": {"amount": cents, "currency": "USD"}}


@pytest.fixture
def foods_api() -> str:
    """Base URL of the mocked food database."""
    return FOODS_API


@pytest.fixture
def prices_api() -> str:
    """Base URL of the mocked pricing service."""
    return PRICES_API
