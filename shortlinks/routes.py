"""FastAPI route definitions for the short link REST API.

This module is a thin transport over ``LinkService``: it parses requests,
threads the caller identity and visit context in explicitly, and serializes
results. Typed failures are turned into status codes by
``shortlinks.error_handlers``.

API Endpoint Overview
=====================
::
    GET    /health
        └─ HealthResponse (200)

    POST   /api/links                     (caller required)
        ├─ LinkCreate (request body)
        └─ LinkResponse (201) or 409/422/503

    GET    /api/links                     (caller required)
        └─ list[LinkResponse] (200)

    GET    /api/links/:id/stats           (owner or admin)
        └─ LinkStatsResponse (200) or 403/404

    PATCH  /api/links/:id                 (owner or admin)
        ├─ LinkUpdate (partial body)
        └─ LinkResponse (200) or 403/404/422

    DELETE /api/links/:id                 (owner or admin)
        └─ 204 or 403/404

    GET    /api/admin/links?page&limit    (admin)
        └─ LinkPageResponse (200) or 403/422

    GET    /:short_code                   (anonymous)
        └─ 307 Redirect or 404/410

Key Behaviours
===============
- Caller identity comes from X-User-Id / X-User-Role set by the upstream
  authentication layer; protected routes answer 401 without it.
- PATCH only forwards the fields present in the body.
- The redirect route is registered last so it never shadows /health or /api.
- 307 redirects preserve the HTTP method.
"""

from fastapi import APIRouter, Depends, Query, Response
from fastapi.responses import RedirectResponse

from shortlinks.accounting import VisitContext
from shortlinks.dependencies import (
    RequestContext,
    ServiceManager,
    get_link_service,
    get_request_context,
    get_service_manager,
    get_visit_context,
    require_caller,
)
from shortlinks.enums import HealthStatus
from shortlinks.link_service import LinkService
from shortlinks.policy import CallerIdentity
from shortlinks.schemas import (
    HealthResponse,
    LinkCreate,
    LinkPageResponse,
    LinkResponse,
    LinkStatsResponse,
    LinkUpdate,
    VisitResponse,
)

__all__ = ["router"]

router = APIRouter()


@router.get("/health", response_model=HealthResponse, tags=["health"])
async def health_check(manager: ServiceManager = Depends(get_service_manager)) -> HealthResponse:
    db_status = HealthStatus.HEALTHY
    cache_status = HealthStatus.HEALTHY

    try:
        await manager.database.ping()
    except Exception as e:
        manager.logger.error(f"Database health check failed: {e}")
        db_status = HealthStatus.UNHEALTHY

    try:
        await manager.cache.ping()
    except Exception as e:
        manager.logger.error(f"Cache health check failed: {e}")
        cache_status = HealthStatus.UNHEALTHY

    status = (
        HealthStatus.HEALTHY
        if db_status is HealthStatus.HEALTHY and cache_status is HealthStatus.HEALTHY
        else HealthStatus.UNHEALTHY
    )
    return HealthResponse(status=status, database=db_status, cache=cache_status)


@router.post("/api/links", response_model=LinkResponse, status_code=201, tags=["links"])
async def create_link(
    payload: LinkCreate,
    caller: CallerIdentity = Depends(require_caller),
    ctx: RequestContext = Depends(get_request_context),
    service: LinkService = Depends(get_link_service),
) -> LinkResponse:
    link = await service.create(
        payload.url,
        owner_id=caller.id,
        custom_code=payload.custom_code,
        expires_at=payload.expires_at,
    )
    ctx.logger.debug(f"create_link finished in {ctx.get_duration():.1f}ms")
    return LinkResponse.from_link(link, ctx.settings.BASE_URL)


@router.get("/api/links", response_model=list[LinkResponse], tags=["links"])
async def list_owned_links(
    caller: CallerIdentity = Depends(require_caller),
    ctx: RequestContext = Depends(get_request_context),
    service: LinkService = Depends(get_link_service),
) -> list[LinkResponse]:
    links = await service.get_owned(caller.id)
    return [LinkResponse.from_link(link, ctx.settings.BASE_URL) for link in links]


@router.get("/api/links/{link_id}/stats", response_model=LinkStatsResponse, tags=["links"])
async def get_link_stats(
    link_id: str,
    caller: CallerIdentity = Depends(require_caller),
    ctx: RequestContext = Depends(get_request_context),
    service: LinkService = Depends(get_link_service),
) -> LinkStatsResponse:
    stats = await service.get_stats(link_id, caller)
    return LinkStatsResponse(
        link=LinkResponse.from_link(stats.link, ctx.settings.BASE_URL),
        total_clicks=stats.total_clicks,
        last_visit=stats.last_visit,
        visits_by_date=stats.visits_by_date,
        recent_visits=[VisitResponse.model_validate(v) for v in stats.recent_visits],
    )


@router.patch("/api/links/{link_id}", response_model=LinkResponse, tags=["links"])
async def update_link(
    link_id: str,
    payload: LinkUpdate,
    caller: CallerIdentity = Depends(require_caller),
    ctx: RequestContext = Depends(get_request_context),
    service: LinkService = Depends(get_link_service),
) -> LinkResponse:
    changes = {name: getattr(payload, name) for name in payload.model_fields_set}
    link = await service.update(link_id, caller, **changes)
    return LinkResponse.from_link(link, ctx.settings.BASE_URL)


@router.delete("/api/links/{link_id}", status_code=204, tags=["links"])
async def delete_link(
    link_id: str,
    caller: CallerIdentity = Depends(require_caller),
    service: LinkService = Depends(get_link_service),
) -> Response:
    await service.delete(link_id, caller)
    return Response(status_code=204)


@router.get("/api/admin/links", response_model=LinkPageResponse, tags=["admin"])
async def list_all_links(
    page: int = Query(1),
    limit: int = Query(10),
    caller: CallerIdentity = Depends(require_caller),
    ctx: RequestContext = Depends(get_request_context),
    service: LinkService = Depends(get_link_service),
) -> LinkPageResponse:
    result = await service.list_all(caller, page=page, limit=limit)
    return LinkPageResponse(
        items=[LinkResponse.from_link(link, ctx.settings.BASE_URL) for link in result.items],
        total=result.total,
        page=result.page,
        limit=result.limit,
        pages=result.pages,
    )


@router.get("/{short_code}", tags=["redirect"])
async def redirect_to_target(
    short_code: str,
    visit: VisitContext = Depends(get_visit_context),
    service: LinkService = Depends(get_link_service),
) -> RedirectResponse:
    target_url = await service.resolve(short_code, visit)
    return RedirectResponse(url=target_url, status_code=307)
