#!/usr/bin/env python3
"""
Cache and retry performance benchmarks.

Measures per-operation overhead of the cache manager on each backend and
of the retry loop when no retry is needed.
"""

import asyncio
import tempfile
import time
from typing import Any

from nutrifetch.cache import CacheManager, CacheOptions, SessionBackend
from nutrifetch.resilience import RetryConfig, execute_with_retry

PAYLOAD = {
    "id": 171688,
    "description": "Apples, raw, with skin",
    "nutrients": [{"name": "Energy", "unit": "kcal", "amount": 52}] * 8,
}


def _result(name: str, iterations: int, elapsed: float) -> dict[str, Any]:
    return {
        "name": name,
        "iterations": iterations,
        "elapsed_seconds": elapsed,
        "throughput_ops": iterations / elapsed,
        "latency_us": (elapsed / iterations) * 1_000_000,
    }


def benchmark_set_get(name: str, cache: CacheManager, iterations: int) -> dict[str, Any]:
    """Benchmark a set followed by a hit."""
    start = time.perf_counter()
    for i in range(iterations):
        key = f"food:{i % 100}"
        cache.set(key, PAYLOAD)
        cache.get(key)
    elapsed = time.perf_counter() - start
    return _result(name, iterations, elapsed)


def benchmark_eviction(iterations: int = 2000) -> dict[str, Any]:
    """Benchmark writes into a full cache."""
    cache = CacheManager(CacheOptions(max_size=100))
    for i in range(100):
        cache.set(f"seed:{i}", i)

    start = time.perf_counter()
    for i in range(iterations):
        cache.set(f"new:{i}", i)
    elapsed = time.perf_counter() - start
    return _result("Memory (full, evicting)", iterations, elapsed)


async def noop_operation() -> str:
    return "ok"


async def benchmark_retry(iterations: int = 10000) -> dict[str, Any]:
    """Benchmark retry loop overhead (no retries triggered)."""
    config = RetryConfig(attempts=3)

    start = time.perf_counter()
    for _ in range(iterations):
        await execute_with_retry(noop_operation, config)
    elapsed = time.perf_counter() - start
    return _result("execute_with_retry (no retries)", iterations, elapsed)


async def run_benchmarks() -> None:
    """Run all benchmarks and print results."""
    print("=" * 60)
    print("Cache Benchmarks")
    print("=" * 60)
    print()

    with tempfile.TemporaryDirectory() as cache_dir:
        results = [
            benchmark_set_get("Memory set+get", CacheManager(), 10000),
            benchmark_set_get(
                "Session set+get", CacheManager(backend=SessionBackend()), 10000
            ),
            benchmark_set_get(
                "Persistent set+get",
                CacheManager(CacheOptions(storage="persistent", path=cache_dir)),
                1000,
            ),
            benchmark_eviction(),
            await benchmark_retry(),
        ]

    for result in results:
        print(f"{result['name']}:")
        print(f"  Throughput: {result['throughput_ops']:.0f} ops/sec")
        print(f"  Latency: {result['latency_us']:.2f} µs/op")
        print()


if __name__ == "__main__":
    asyncio.run(run_benchmarks())
