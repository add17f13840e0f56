"""Resolution cache tests against a mocked Redis client."""

import datetime

import pytest
import redis.asyncio as redis

from shortlinks.cache import ResolutionCache
from shortlinks.schemas import CachedLinkEntry


@pytest.fixture
def entry() -> CachedLinkEntry:
    return CachedLinkEntry(
        id="0b7c7f5e-2f55-4b55-a0b4-6a52a1d0e001",
        short_code="abc123",
        target_url="https://example.com/a",
        is_active=True,
        expires_at=datetime.datetime(2030, 1, 1, tzinfo=datetime.timezone.utc),
    )


@pytest.mark.asyncio
async def test_put_writes_snapshot_with_fixed_ttl(cache: ResolutionCache, mock_redis, redis_data, entry) -> None:
    await cache.put(entry)

    mock_redis.setex.assert_awaited_once()
    key, ttl, _ = mock_redis.setex.await_args.args
    assert key == "link:abc123"
    assert ttl == 3600
    assert CachedLinkEntry.model_validate_json(redis_data["link:abc123"]) == entry


@pytest.mark.asyncio
async def test_get_returns_none_on_miss(cache: ResolutionCache, mock_redis) -> None:
    assert await cache.get("nope00") is None
    mock_redis.get.assert_awaited_once_with("link:nope00")


@pytest.mark.asyncio
async def test_get_round_trips_entry(cache: ResolutionCache, entry) -> None:
    await cache.put(entry)
    assert await cache.get("abc123") == entry


@pytest.mark.asyncio
async def test_undecodable_payload_is_a_miss(cache: ResolutionCache, redis_data) -> None:
    redis_data["link:abc123"] = "{not json"
    assert await cache.get("abc123") is None


@pytest.mark.asyncio
async def test_redis_errors_degrade_to_miss(cache: ResolutionCache, mock_redis, entry) -> None:
    mock_redis.get.side_effect = redis.ConnectionError("down")
    mock_redis.setex.side_effect = redis.ConnectionError("down")

    assert await cache.get("abc123") is None
    await cache.put(entry)  # must not raise


@pytest.mark.asyncio
async def test_invalidate_deletes_key(cache: ResolutionCache, redis_data, entry) -> None:
    await cache.put(entry)
    await cache.invalidate("abc123")
    assert "link:abc123" not in redis_data


def test_rejects_non_positive_ttl(mock_redis) -> None:
    with pytest.raises(AssertionError):
        ResolutionCache(mock_redis, ttl_seconds=0)
