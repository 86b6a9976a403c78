"""
Integration tests for fetching through caches and retries.

Covers ApiClient, CacheManager, the cache registry and the batch helper
working together against mocked HTTP services.
"""

import pytest

from nutrifetch.batch import batch
from nutrifetch.cache import CacheManager, CacheOptions, SessionStorage
from nutrifetch.client import (
    ApiClient,
    ApiClientConfig,
    CachePolicy,
    create_economics_api_client,
    create_nutrition_api_client,
)
from nutrifetch.config import CacheProfile, CacheSettings
from nutrifetch.errors import HttpStatusError, RequestTimeoutError
from nutrifetch.registry import CacheRegistry
from tests.integration.conftest import food_payload, price_payload


class TestNutritionClient:
    """Food lookups through the nutrition client preset."""

    @pytest.mark.asyncio
    async def test_search_cached_across_calls(self, httpx_mock, foods_api, recorded_sleep) -> None:
        """Test a flaky search is retried once and then served from cache."""
        url = f"{foods_api}foods/search?query=apple&pageSize=5"
        httpx_mock.add_response(url=url, status_code=503)
        httpx_mock.add_response(url=url, json={"foods": [food_payload(1, "Apple, raw", 52)]})

        config = create_nutrition_api_client(foods_api, "demo-key").config
        async with ApiClient(config, sleep=recorded_sleep) as client:
            first = await client.get("foods/search", params={"query": "apple", "pageSize": 5})
            second = await client.get("foods/search", params={"pageSize": 5, "query": "apple"})

        assert first.data == second.data
        assert len(httpx_mock.get_requests()) == 2
        assert recorded_sleep.delays == [1.0]
        assert all(r.headers["X-API-Key"] == "demo-key" for r in httpx_mock.get_requests())

    @pytest.mark.asyncio
    async def test_batch_lookup(self, httpx_mock, foods_api) -> None:
        """Test batched food lookups come back in input order."""
        ids = [11, 12, 13, 14, 15, 16, 17]
        for food_id in ids:
            httpx_mock.add_response(
                url=f"{foods_api}food/{food_id}",
                json=food_payload(food_id, f"food {food_id}", food_id * 10),
            )

        async with create_nutrition_api_client(foods_api) as client:

            async def lookup(food_id: int) -> dict:
                response = await client.get(f"food/{food_id}")
                return response.data

            foods = await batch(ids, lookup, batch_size=3)

        assert [food["id"] for food in foods] == ids


class TestEconomicsClient:
    """Price lookups through the economics client preset."""

    @pytest.mark.asyncio
    async def test_bearer_auth_and_retry_policy(self, httpx_mock, prices_api, recorded_sleep) -> None:
        """Test two attempts with a two second base delay."""
        httpx_mock.add_response(status_code=500)
        httpx_mock.add_response(status_code=500)

        config = create_economics_api_client(prices_api, "secret").config
        async with ApiClient(config, sleep=recorded_sleep) as client:
            with pytest.raises(HttpStatusError):
                await client.get("prices/sku-1")

        requests = httpx_mock.get_requests()
        assert len(requests) == 2
        assert requests[0].headers["Authorization"] == "Bearer secret"
        assert recorded_sleep.delays == [2.0]

    @pytest.mark.asyncio
    async def test_timeout_surfaces_without_retry(self, httpx_mock, prices_api, recorded_sleep) -> None:
        """Test a timed out lookup fails after a single attempt."""
        import httpx

        httpx_mock.add_exception(httpx.ConnectTimeout("connect timed out"))

        config = create_economics_api_client(prices_api).config
        async with ApiClient(config, sleep=recorded_sleep) as client:
            with pytest.raises(RequestTimeoutError):
                await client.get("prices/sku-1")

        assert len(httpx_mock.get_requests()) == 1


class TestSharedCaches:
    """Clients and application code sharing registry caches."""

    @pytest.mark.asyncio
    async def test_client_uses_session_cache(self, httpx_mock, prices_api) -> None:
        """Test a client can cache into a registry-owned session cache."""
        httpx_mock.add_response(json=price_payload("sku-1", 199))

        session = SessionStorage()
        registry = CacheRegistry.from_settings(session=session)
        config = ApiClientConfig(base_url=prices_api, cache=CachePolicy(enabled=True, ttl=60))

        async with ApiClient(config, cache=registry.session_cache) as client:
            await client.get("prices/sku-1")
            cached = await client.get("prices/sku-1")

        assert cached.data["price"]["amount"] == 199
        assert session.item_keys() == ["session:GET:https://prices.example.com/api/prices/sku-1"]
        registry.close()

    @pytest.mark.asyncio
    async def test_disabled_session_falls_back_to_network(self, httpx_mock, prices_api) -> None:
        """Test an unavailable cache store never breaks requests."""
        httpx_mock.add_response(json=price_payload("sku-1", 199))
        httpx_mock.add_response(json=price_payload("sku-1", 205))

        session = SessionStorage()
        registry = CacheRegistry.from_settings(session=session)
        config = ApiClientConfig(base_url=prices_api, cache=CachePolicy(enabled=True))

        async with ApiClient(config, cache=registry.session_cache) as client:
            await client.get("prices/sku-1")
            session.disable()
            response = await client.get("prices/sku-1")

        assert response.data["price"]["amount"] == 205
        assert registry.session_cache.get_stats().backend_errors > 0

    @pytest.mark.asyncio
    async def test_persistent_cache_survives_restart(self, httpx_mock, foods_api, tmp_path) -> None:
        """Test a persistent response cache is reused by a new client."""
        httpx_mock.add_response(json=food_payload(1, "Oats", 389))

        settings = CacheSettings(
            persistent=CacheProfile(storage="persistent", path=str(tmp_path), prefix="foods:")
        )
        config = ApiClientConfig(base_url=foods_api, cache=CachePolicy(enabled=True))

        with CacheRegistry.from_settings(settings) as registry:
            async with ApiClient(config, cache=registry.persistent_cache) as client:
                await client.get("food/1")

        with CacheRegistry.from_settings(settings) as registry:
            async with ApiClient(config, cache=registry.persistent_cache) as client:
                response = await client.get("food/1")

        assert response.data["description"] == "Oats"
        assert len(httpx_mock.get_requests()) == 1

    @pytest.mark.asyncio
    async def test_get_or_set_around_client(self, httpx_mock, foods_api) -> None:
        """Test application code caching derived values with get_or_set."""
        httpx_mock.add_response(json=food_payload(1, "Rice", 130))

        cache = CacheManager(CacheOptions(ttl=600, coalesce=True))
        async with ApiClient(ApiClientConfig(base_url=foods_api)) as client:

            async def load_kcal() -> float:
                response = await client.get("food/1")
                return response.data["nutrients"][0]["amount"]

            values = [await cache.get_or_set("kcal:1", load_kcal) for _ in range(3)]

        assert values == [130, 130, 130]
        assert cache.get_stats().hits == 2
