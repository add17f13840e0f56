"""Stats, update, delete and admin listing endpoint tests."""

import pytest
from httpx import AsyncClient


async def _create(client: AsyncClient, headers: dict, url: str = "https://www.example.com") -> dict:
    response = await client.post("/api/links", json={"url": url}, headers=headers)
    assert response.status_code == 201
    return response.json()


@pytest.mark.asyncio
async def test_stats_for_new_link(client: AsyncClient, auth, owner) -> None:
    link = await _create(client, auth(owner))

    response = await client.get(f"/api/links/{link['id']}/stats", headers=auth(owner))
    assert response.status_code == 200
    data = response.json()
    assert data["link"]["id"] == link["id"]
    assert data["total_clicks"] == 0
    assert data["last_visit"] is None
    assert data["visits_by_date"] == {}
    assert data["recent_visits"] == []


@pytest.mark.asyncio
async def test_stats_histogram(client: AsyncClient, auth, owner) -> None:
    link = await _create(client, auth(owner))
    for _ in range(2):
        await client.get(f"/{link['short_code']}", follow_redirects=False)

    data = (await client.get(f"/api/links/{link['id']}/stats", headers=auth(owner))).json()
    assert sum(data["visits_by_date"].values()) == 2
    assert data["last_visit"] == data["recent_visits"][0]["visited_at"]


@pytest.mark.asyncio
async def test_stats_access_control(client: AsyncClient, auth, owner, stranger, admin) -> None:
    link = await _create(client, auth(owner))

    assert (await client.get(f"/api/links/{link['id']}/stats", headers=auth(stranger))).status_code == 403
    assert (await client.get(f"/api/links/{link['id']}/stats", headers=auth(admin))).status_code == 200
    assert (await client.get(f"/api/links/{link['id']}/stats")).status_code == 401


@pytest.mark.asyncio
async def test_stats_unknown_link(client: AsyncClient, auth, stranger) -> None:
    response = await client.get("/api/links/does-not-exist/stats", headers=auth(stranger))
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_update_link_partial(client: AsyncClient, auth, owner) -> None:
    link = await _create(client, auth(owner))

    response = await client.patch(
        f"/api/links/{link['id']}", json={"expires_at": "2031-05-01T00:00:00Z"}, headers=auth(owner)
    )
    assert response.status_code == 200
    assert response.json()["is_active"] is True
    assert response.json()["expires_at"].startswith("2031-05-01")

    response = await client.patch(f"/api/links/{link['id']}", json={"expires_at": None}, headers=auth(owner))
    assert response.json()["expires_at"] is None


@pytest.mark.asyncio
async def test_update_link_forbidden_for_stranger(client: AsyncClient, auth, owner, stranger) -> None:
    link = await _create(client, auth(owner))
    response = await client.patch(f"/api/links/{link['id']}", json={"is_active": False}, headers=auth(stranger))
    assert response.status_code == 403
    assert response.json()["error"]["code"] == "FORBIDDEN"


@pytest.mark.asyncio
async def test_update_link_rejects_null_is_active(client: AsyncClient, auth, owner) -> None:
    link = await _create(client, auth(owner))
    response = await client.patch(f"/api/links/{link['id']}", json={"is_active": None}, headers=auth(owner))
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_delete_link(client: AsyncClient, auth, owner, admin) -> None:
    link = await _create(client, auth(owner))
    await client.get(f"/{link['short_code']}", follow_redirects=False)

    response = await client.delete(f"/api/links/{link['id']}", headers=auth(admin))
    assert response.status_code == 204
    assert (await client.get(f"/api/links/{link['id']}/stats", headers=auth(owner))).status_code == 404
    assert (await client.delete(f"/api/links/{link['id']}", headers=auth(owner))).status_code == 404


@pytest.mark.asyncio
async def test_delete_link_forbidden_for_stranger(client: AsyncClient, auth, owner, stranger) -> None:
    link = await _create(client, auth(owner))
    assert (await client.delete(f"/api/links/{link['id']}", headers=auth(stranger))).status_code == 403


@pytest.mark.asyncio
async def test_admin_listing(client: AsyncClient, auth, owner, admin) -> None:
    for i in range(3):
        await _create(client, auth(owner), url=f"https://example.com/{i}")

    response = await client.get("/api/admin/links", params={"page": 1, "limit": 2}, headers=auth(admin))
    assert response.status_code == 200
    data = response.json()
    assert (data["total"], data["page"], data["limit"], data["pages"]) == (3, 1, 2, 2)
    assert [item["target_url"] for item in data["items"]] == ["https://example.com/2", "https://example.com/1"]


@pytest.mark.asyncio
async def test_admin_listing_forbidden_for_users(client: AsyncClient, auth, owner) -> None:
    response = await client.get("/api/admin/links", headers=auth(owner))
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_admin_listing_rejects_bad_paging(client: AsyncClient, auth, admin) -> None:
    response = await client.get("/api/admin/links", params={"page": 0}, headers=auth(admin))
    assert response.status_code == 422
