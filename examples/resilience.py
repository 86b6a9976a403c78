#!/usr/bin/env python3
"""
Resilient fetching example.

This example demonstrates:
- A nutrition API client with retry and response caching
- Per-call retry overrides and cancellation
- Batched lookups
- Application caches from a settings file

Usage:
    export FOODS_API_URL="https://api.nal.usda.gov/fdc/v1/"
    export FOODS_API_KEY="your-api-key"
    export NUTRIFETCH_CACHE_CONFIG="cache.yaml"   # optional
    python examples/resilience.py
"""

import asyncio
import os

from nutrifetch import (
    CacheRegistry,
    CancelToken,
    RetryOverrides,
    batch,
    create_nutrition_api_client,
    load_cache_settings,
    measure_time,
)
from nutrifetch.errors import ApiError
from nutrifetch.telemetry import LogLevel, NutriFetchLogger


async def cached_search(base_url: str, api_key: str | None) -> None:
    """Search twice: the second call is served from the response cache."""
    print("Searching foods...")
    async with create_nutrition_api_client(base_url, api_key) as client:
        for attempt in (1, 2):
            timed = await measure_time(
                lambda: client.get("foods/search", params={"query": "apple", "pageSize": 5})
            )
            foods = timed.result.data.get("foods", [])
            print(f"  call {attempt}: {len(foods)} foods in {timed.duration_ms:.1f} ms")

        stats = client.cache.get_stats()
        print(f"  cache hit rate: {stats.hit_rate:.0%}")


async def batched_lookup(base_url: str, api_key: str | None, food_ids: list[int]) -> None:
    """Look up several foods, three at a time."""
    print("\nLooking up foods in batches...")
    token = CancelToken()

    async with create_nutrition_api_client(base_url, api_key) as client:

        async def lookup(food_id: int) -> dict:
            response = await client.get(
                f"food/{food_id}",
                retry=RetryOverrides(attempts=2, cancel_token=token),
            )
            return response.data

        try:
            foods = await batch(food_ids, lookup, batch_size=3)
        except ApiError as e:
            print(f"  lookup failed: {e.to_dict()}")
            return

    for food in foods:
        print(f"  {food.get('fdcId')}: {food.get('description')}")


def application_caches() -> None:
    """Use the registry-owned caches for derived data."""
    print("\nApplication caches...")
    with CacheRegistry.from_settings(load_cache_settings()) as registry:
        registry.session_cache.set("plan:today", {"kcal_target": 2200})
        print(f"  session plan: {registry.session_cache.get('plan:today')}")
        for name, stats in registry.stats().items():
            print(f"  {name}: size={stats['size']} hits={stats['hits']}")


async def main() -> None:
    """Run all examples."""
    NutriFetchLogger.configure(level=LogLevel.INFO, format="text")

    base_url = os.getenv("FOODS_API_URL", "https://api.nal.usda.gov/fdc/v1/")
    api_key = os.getenv("FOODS_API_KEY")

    await cached_search(base_url, api_key)
    await batched_lookup(base_url, api_key, [171688, 173944, 169910, 170567])
    application_caches()


if __name__ == "__main__":
    asyncio.run(main())
