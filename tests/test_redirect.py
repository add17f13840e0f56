"""Redirect endpoint behavior tests."""

import pytest
from httpx import AsyncClient


async def _create(client: AsyncClient, headers: dict, **payload) -> dict:
    response = await client.post("/api/links", json=payload, headers=headers)
    assert response.status_code == 201
    return response.json()


@pytest.mark.asyncio
async def test_redirect_valid_code(client: AsyncClient, auth, owner) -> None:
    link = await _create(client, auth(owner), url="https://www.google.com")

    # httpx won't follow by default
    response = await client.get(f"/{link['short_code']}", follow_redirects=False)
    assert response.status_code == 307
    assert response.headers["location"] == "https://www.google.com"


@pytest.mark.asyncio
async def test_redirect_is_anonymous(client: AsyncClient, auth, owner) -> None:
    await _create(client, auth(owner), url="https://www.github.com", custom_code="ghub")
    response = await client.get("/ghub", follow_redirects=False)
    assert response.status_code == 307
    assert response.headers["location"] == "https://www.github.com"


@pytest.mark.asyncio
async def test_redirect_invalid_code(client: AsyncClient) -> None:
    response = await client.get("/nonexistent", follow_redirects=False)
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "NOT_FOUND"


@pytest.mark.asyncio
async def test_redirect_expired_link_is_gone(client: AsyncClient, auth, owner) -> None:
    link = await _create(client, auth(owner), url="https://www.python.org", expires_at="2000-01-01T00:00:00Z")
    response = await client.get(f"/{link['short_code']}", follow_redirects=False)
    assert response.status_code == 410
    assert response.json()["error"]["code"] == "GONE"


@pytest.mark.asyncio
async def test_redirect_deactivated_link_is_gone(client: AsyncClient, auth, owner) -> None:
    link = await _create(client, auth(owner), url="https://www.python.org")
    await client.patch(f"/api/links/{link['id']}", json={"is_active": False}, headers=auth(owner))

    response = await client.get(f"/{link['short_code']}", follow_redirects=False)
    assert response.status_code == 410


@pytest.mark.asyncio
async def test_redirect_records_visits(client: AsyncClient, auth, owner) -> None:
    link = await _create(client, auth(owner), url="https://www.python.org")

    for _ in range(3):
        await client.get(
            f"/{link['short_code']}",
            follow_redirects=False,
            headers={"X-Forwarded-For": "198.51.100.4, 10.0.0.1", "Referer": "https://news.example"},
        )

    stats = await client.get(f"/api/links/{link['id']}/stats", headers=auth(owner))
    assert stats.status_code == 200
    data = stats.json()
    assert data["total_clicks"] == 3
    assert len(data["recent_visits"]) == 3
    assert data["recent_visits"][0]["ip_address"] == "198.51.100.4"
    assert data["recent_visits"][0]["referrer"] == "https://news.example"


@pytest.mark.asyncio
async def test_reserved_paths_are_not_short_codes(client: AsyncClient) -> None:
    assert (await client.get("/health")).status_code == 200
    assert (await client.get("/metrics")).status_code == 200


@pytest.mark.asyncio
@pytest.mark.parametrize("forwarded", ["not-an-ip", "x" * 80, "999.1.1.1, 10.0.0.1"])
async def test_malformed_forwarded_for_falls_back_to_peer(client: AsyncClient, auth, owner, forwarded: str) -> None:
    link = await _create(client, auth(owner), url="https://www.python.org")

    await client.get(f"/{link['short_code']}", follow_redirects=False, headers={"X-Forwarded-For": forwarded})

    data = (await client.get(f"/api/links/{link['id']}/stats", headers=auth(owner))).json()
    assert data["total_clicks"] == 1
    assert data["recent_visits"][0]["ip_address"] == "127.0.0.1"
