"""Pydantic schemas for request/response validation and the cache snapshot.

This module defines Pydantic models for API input parsing and output serialization,
plus the ``CachedLinkEntry`` snapshot stored in Redis by the resolution cache.

Schema Hierarchy
=================
::
    LinkCreate (Input)
    ├─ url: str
    ├─ custom_code: str | None
    └─ expires_at: datetime | None

    LinkUpdate (Input, partial)
    ├─ is_active: bool | None
    └─ expires_at: datetime | None

    LinkResponse (Output)
    ├─ id, short_code, target_url, short_url (computed)
    ├─ owner_id, is_active, expires_at, clicks
    └─ created_at, updated_at

    LinkStatsResponse (Output)
    ├─ link: LinkResponse
    ├─ total_clicks, last_visit, visits_by_date
    └─ recent_visits: list[VisitResponse]

    LinkPageResponse (Output)
    └─ items, total, page, limit, pages

    CachedLinkEntry (Redis value)
    └─ id, short_code, target_url, is_active, expires_at

How to Use
===========
**Step 1 — Input parsing**::
    @router.post("/api/links")
    async def create_link(payload: LinkCreate): ...

**Step 2 — Response serialization**::
    return LinkResponse.from_link(link, settings.BASE_URL)

**Step 3 — Cache snapshot**::
    entry = CachedLinkEntry.model_validate(link)
    raw = entry.model_dump_json()

Key Behaviours
===============
- Semantic validation (absolute URL, custom code shape) lives in the link
  service so that every caller gets it, not only HTTP.
- LinkUpdate distinguishes absent fields from explicit nulls through
  ``model_fields_set``.
- Models are configured for ORM attribute mapping.

Classes:
    LinkCreate, LinkUpdate:  Input schemas.
    LinkResponse, VisitResponse, LinkStatsResponse, LinkPageResponse:  Output schemas.
    HealthResponse:  Output schema for health checks.
    CachedLinkEntry:  Serialized resolution snapshot held in Redis.
"""

import datetime

from pydantic import BaseModel, Field

from shortlinks.enums import HealthStatus

__all__ = [
    "LinkCreate",
    "LinkUpdate",
    "LinkResponse",
    "VisitResponse",
    "LinkStatsResponse",
    "LinkPageResponse",
    "HealthResponse",
    "CachedLinkEntry",
]


class LinkCreate(BaseModel):
    url: str = Field(..., description="Absolute target URL", examples=["https://example.com/a"])
    custom_code: str | None = Field(None, description="Optional 3-20 character alphanumeric code")
    expires_at: datetime.datetime | None = None


class LinkUpdate(BaseModel):
    is_active: bool | None = None
    expires_at: datetime.datetime | None = None


class LinkResponse(BaseModel):
    id: str
    short_code: str
    target_url: str
    short_url: str
    owner_id: str
    is_active: bool
    expires_at: datetime.datetime | None
    clicks: int
    created_at: datetime.datetime
    updated_at: datetime.datetime

    @classmethod
    def from_link(cls, link, base_url: str) -> "LinkResponse":
        return cls(
            id=link.id,
            short_code=link.short_code,
            target_url=link.target_url,
            short_url=f"{base_url.rstrip('/')}/{link.short_code}",
            owner_id=link.owner_id,
            is_active=link.is_active,
            expires_at=link.expires_at,
            clicks=link.clicks,
            created_at=link.created_at,
            updated_at=link.updated_at,
        )


class VisitResponse(BaseModel):
    id: str
    visited_at: datetime.datetime
    ip_address: str
    user_agent: str | None
    referrer: str | None

    model_config = {"from_attributes": True}


class LinkStatsResponse(BaseModel):
    link: LinkResponse
    total_clicks: int
    last_visit: datetime.datetime | None
    visits_by_date: dict[str, int]
    recent_visits: list[VisitResponse]


class LinkPageResponse(BaseModel):
    items: list[LinkResponse]
    total: int
    page: int
    limit: int
    pages: int


class HealthResponse(BaseModel):
    status: HealthStatus
    database: HealthStatus
    cache: HealthStatus


class CachedLinkEntry(BaseModel):
    """Redis snapshot of the resolution-relevant fields of a link."""

    id: str
    short_code: str
    target_url: str
    is_active: bool
    expires_at: datetime.datetime | None = None

    model_config = {"from_attributes": True}
