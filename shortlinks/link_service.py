"""Link Service Layer - Core Business Logic

This module is the only entry point external callers use for short links.
It orchestrates code generation, the link store, the resolution cache, the
lifecycle policy and visit accounting, and reports typed failures from
``shortlinks.errors``.

Architecture Overview
==================
::
    ┌─────────────────────────────────────────────────────────────┐
    │                        LinkService                          │
    │  ┌──────────────┐  ┌──────────────┐  ┌───────────────────┐  │
    │  │ Code Gen     │  │ Policy       │  │ Visit Accountant  │  │
    │  │ • nanoid     │  │ • active?    │  │ • INSERT visit    │  │
    │  │ • retry ≤ N  │  │ • expired?   │  │ • clicks + 1      │  │
    │  │              │  │ • owner/admin│  │                   │  │
    │  └──────────────┘  └──────────────┘  └───────────────────┘  │
    └─────────────────────────────────────────────────────────────┘
                │                                    │
                ▼                                    ▼
    ┌─────────────────┐                  ┌─────────────────┐
    │   Link Store    │                  │ Resolution Cache│
    │  (PostgreSQL)   │                  │   (Redis TTL)   │
    └─────────────────┘                  └─────────────────┘

Request Flow Diagrams
=====================

Link Creation Flow
-----------------
::
    ┌─────────────┐
    │ create()    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Validate URL │
    │ & Custom Code│
    └──────┬──────┘
    CUSTOM?│
    ┌─────┴──────────────┐
    │ YES                 │ NO
    ▼                     ▼
┌──────────┐       ┌─────────────┐
│ Exists?  │       │ generate()  │◄──┐
│ → 409    │       └──────┬──────┘   │ unique
└────┬─────┘              ▼          │ violation
     ▼             ┌─────────────┐   │ (≤ N tries)
┌──────────┐       │ INSERT      │───┘
│ INSERT   │       └──────┬──────┘
│ (unique  │              ▼ exhausted → 503
│  → 409)  │
└──────────┘

Link Resolution Flow
---------------------------
::
    ┌─────────────┐
    │ resolve()   │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Check Redis  │
    └──────┬──────┘
    HIT?  │
    ┌─────┴─────┐
    │ NO         │ YES
    ▼            ▼
┌─────────┐  ┌─────────┐
│ Query   │  │ Use     │
│ store   │  │ snapshot│
│ → 404   │  │         │
└────┬────┘  └────┬────┘
     ▼            │
┌─────────┐       │
│ SETEX   │       │
│ 3600s   │       │
└────┬────┘       │
     └─────┬──────┘
           ▼
    ┌─────────────┐
    │ Policy:     │
    │ active and  │
    │ unexpired?  │──NO──► GoneError
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Account     │
    │ visit+click │
    └──────┬──────┘
           ▼
      target URL

Usage Examples
=============

```python
# In route handlers
@router.get("/{short_code}")
async def redirect(
    short_code: str,
    service: LinkService = Depends(get_link_service),
    visit: VisitContext = Depends(get_visit_context),
) -> RedirectResponse:
    target = await service.resolve(short_code, visit)
    return RedirectResponse(target, status_code=307)
```

Known Staleness Window
======================
A cache hit is trusted without consulting the store. A link deactivated,
expired or deleted after being cached keeps resolving for up to one cache
TTL unless ``CACHE_INVALIDATE_ON_WRITE`` is enabled.
"""

import datetime
import logging
import math
import time
from collections import Counter as TallyCounter
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Optional

from prometheus_client import Counter, Histogram

from shortlinks.accounting import VisitAccountant, VisitContext
from shortlinks.cache import ResolutionCache
from shortlinks.codegen import generate_short_code, validate_custom_code, validate_target_url
from shortlinks.config import Settings, get_settings
from shortlinks.enums import CacheStatus, RequestStatus
from shortlinks.errors import (
    ConflictError,
    ForbiddenError,
    LinkServiceError,
    LinkValidationError,
    NotFoundError,
    ResourceExhaustedError,
)
from shortlinks.models import Link, Visit
from shortlinks.policy import CallerIdentity, as_utc, ensure_can_manage, ensure_usable
from shortlinks.schemas import CachedLinkEntry
from shortlinks.store import LinkStore

__all__ = ["UNSET", "LinkStats", "LinkPage", "LinkService"]


# ============================================================================
# PROMETHEUS METRICS
# ============================================================================

LINK_CREATION_REQUESTS_TOTAL = Counter(
    "shortlinks_creation_requests_total",
    "Total link creation requests",
    ["status"],
)
LINK_RESOLUTION_REQUESTS_TOTAL = Counter(
    "shortlinks_resolution_requests_total",
    "Total link resolution requests",
    ["status", "cache_hit"],
)
LINK_CREATION_DURATION = Histogram(
    "shortlinks_creation_duration_seconds",
    "Time taken to create links",
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)
LINK_RESOLUTION_DURATION = Histogram(
    "shortlinks_resolution_duration_seconds",
    "Time taken to resolve a short code before accounting",
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25],
)
CACHE_HITS_TOTAL = Counter(
    "shortlinks_cache_hits_total",
    "Total cache hits for link resolutions",
)
CACHE_MISSES_TOTAL = Counter(
    "shortlinks_cache_misses_total",
    "Total cache misses for link resolutions",
)
CODE_COLLISIONS_TOTAL = Counter(
    "shortlinks_code_collisions_total",
    "Generated short codes rejected by the store as duplicates",
)

_STATUS_BY_CODE = {
    "VALIDATION_ERROR": RequestStatus.VALIDATION_ERROR,
    "CONFLICT": RequestStatus.CONFLICT,
    "NOT_FOUND": RequestStatus.NOT_FOUND,
    "GONE": RequestStatus.GONE,
    "FORBIDDEN": RequestStatus.FORBIDDEN,
    "RESOURCE_EXHAUSTED": RequestStatus.EXHAUSTED,
}


def _status_for(exc: LinkServiceError) -> RequestStatus:
    return _STATUS_BY_CODE.get(exc.code, RequestStatus.ERROR)


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"


UNSET: Any = _Unset()


# ============================================================================
# DATA STRUCTURES
# ============================================================================


@dataclass
class LinkStats:
    """A link plus aggregates over its most recent visits."""

    link: Link
    total_clicks: int
    last_visit: Optional[datetime.datetime]
    visits_by_date: dict[str, int] = field(default_factory=dict)
    recent_visits: list[Visit] = field(default_factory=list)


@dataclass
class LinkPage:
    items: list[Link]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


# ============================================================================
# CORE SERVICE CLASS
# ============================================================================


class LinkService:
    """Core service class for short link operations.

    Each request gets its own instance; the only shared state lives in the
    store and the cache.

    Example:
        >>> service = LinkService.from_context(ctx)
        >>> link = await service.create("https://example.com/a", owner_id="u1", custom_code="abc123")
        >>> await service.resolve("abc123", VisitContext(ip_address="203.0.113.7"))
        'https://example.com/a'
    """

    def __init__(
        self,
        store: LinkStore,
        cache: ResolutionCache,
        settings: Settings | None = None,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
        code_generator: Callable[[], str] | None = None,
    ) -> None:
        self._store = store
        self._cache = cache
        self._settings = settings or get_settings()
        self._logger = logger or logging.getLogger("shortlinks")
        self._accountant = VisitAccountant(store, self._logger)
        self._generate_code = code_generator or (
            lambda: generate_short_code(self._settings.SHORT_CODE_LENGTH)
        )

    @classmethod
    def from_context(cls, ctx: "RequestContext") -> "LinkService":  # noqa: F821
        """Factory method to create a service from a RequestContext.

        Args:
            ctx: Request context with the per-request session and shared resources

        Returns:
            LinkService: Service instance bound to this request
        """
        return cls(
            store=LinkStore(ctx.database),
            cache=ctx.cache,
            settings=ctx.settings,
            logger=ctx.logger,
        )

    # ========================================================================
    # PUBLIC API METHODS
    # ========================================================================

    async def create(
        self,
        target_url: str,
        owner_id: str,
        custom_code: Optional[str] = None,
        expires_at: Optional[datetime.datetime] = None,
    ) -> Link:
        """Create a new link for ``owner_id``.

        Input is validated before the store is touched. The cache is not
        populated here; the first resolve does that.

        Args:
            target_url: Absolute URL to redirect to
            owner_id: Identifier of the owning user
            custom_code: Optional caller-chosen short code (3-20 alphanumerics)
            expires_at: Optional expiry timestamp

        Returns:
            Link: The persisted link

        Raises:
            LinkValidationError: Malformed URL, owner or custom code
            ConflictError: Custom code already taken
            ResourceExhaustedError: No free generated code within the retry bound
        """
        start_time = time.perf_counter()

        try:
            target_url = validate_target_url(target_url)
            if not owner_id:
                raise LinkValidationError("Owner id is required")

            if custom_code is not None:
                validate_custom_code(custom_code)
                link = await self._insert_with_custom_code(target_url, owner_id, custom_code, expires_at)
            else:
                link = await self._insert_with_generated_code(target_url, owner_id, expires_at)

        except LinkServiceError as exc:
            LINK_CREATION_REQUESTS_TOTAL.labels(status=_status_for(exc)).inc()
            self._logger.warning(f"Link creation failed: {exc}")
            raise

        except Exception as exc:
            LINK_CREATION_REQUESTS_TOTAL.labels(status=RequestStatus.ERROR).inc()
            self._logger.error(f"Link creation error: {exc}")
            raise

        finally:
            LINK_CREATION_DURATION.observe(time.perf_counter() - start_time)

        LINK_CREATION_REQUESTS_TOTAL.labels(status=RequestStatus.SUCCESS).inc()
        self._logger.info(f"Link created: {link.short_code} -> {link.target_url} (owner {owner_id})")
        return link

    async def resolve(self, short_code: str, visit: VisitContext) -> str:
        """Resolve ``short_code`` to its target URL and account the visit.

        Args:
            short_code: Code taken from the request path
            visit: Client metadata for the visit record

        Returns:
            str: The target URL

        Raises:
            NotFoundError: No link has this code
            GoneError: The link is inactive or expired
        """
        start_time = time.perf_counter()
        cache_status = CacheStatus.MISS

        try:
            entry = await self._cache.get(short_code) if short_code else None
            if entry is not None:
                cache_status = CacheStatus.HIT
                CACHE_HITS_TOTAL.inc()
                self._logger.debug(f"Cache hit for {short_code}")
            else:
                CACHE_MISSES_TOTAL.inc()
                entry = await self._load_and_cache(short_code)

            if entry is None:
                raise NotFoundError(f"Short code '{short_code}' not found")

            ensure_usable(entry)

        except LinkServiceError as exc:
            LINK_RESOLUTION_REQUESTS_TOTAL.labels(status=_status_for(exc), cache_hit=cache_status).inc()
            self._logger.warning(f"Resolution failed for {short_code}: {exc}")
            raise

        finally:
            LINK_RESOLUTION_DURATION.observe(time.perf_counter() - start_time)

        await self._accountant.account(entry.id, visit)

        LINK_RESOLUTION_REQUESTS_TOTAL.labels(status=RequestStatus.SUCCESS, cache_hit=cache_status).inc()
        self._logger.info(f"Resolved {short_code} -> {entry.target_url}")
        return entry.target_url

    async def get_owned(self, owner_id: str) -> list[Link]:
        """Return every link owned by ``owner_id``, newest first."""
        return await self._store.list_by_owner(owner_id)

    async def get_stats(self, link_id: str, caller: CallerIdentity) -> LinkStats:
        """Return a link with aggregates over its most recent visits.

        The window is bounded by ``STATS_RECENT_VISITS_LIMIT``; older visits
        stay in the store but are not surfaced here.
        """
        link = await self._get_managed_link(link_id, caller)

        visits = await self._store.recent_visits(link.id, self._settings.STATS_RECENT_VISITS_LIMIT)
        visits_by_date = TallyCounter(as_utc(v.visited_at).date().isoformat() for v in visits)

        return LinkStats(
            link=link,
            total_clicks=link.clicks,
            last_visit=visits[0].visited_at if visits else None,
            visits_by_date=dict(visits_by_date),
            recent_visits=visits,
        )

    async def update(
        self,
        link_id: str,
        caller: CallerIdentity,
        *,
        is_active: Any = UNSET,
        expires_at: Any = UNSET,
    ) -> Link:
        """Partially update the mutable fields of a link.

        Fields left as ``UNSET`` are unchanged. ``expires_at=None`` clears
        the expiry; ``is_active=None`` is rejected.
        """
        if is_active is not UNSET and not isinstance(is_active, bool):
            raise LinkValidationError("is_active must be a boolean")

        link = await self._get_managed_link(link_id, caller)

        changed = []
        if is_active is not UNSET:
            link.is_active = is_active
            changed.append("is_active")
        if expires_at is not UNSET:
            link.expires_at = expires_at
            changed.append("expires_at")

        if not changed:
            return link

        link = await self._store.save(link)
        await self._evict_if_configured(link.short_code)

        self._logger.info(f"Link {link.id} updated by {caller.id}: {', '.join(changed)}")
        return link

    async def delete(self, link_id: str, caller: CallerIdentity) -> None:
        """Delete a link after deleting all of its visits."""
        link = await self._get_managed_link(link_id, caller)
        short_code = link.short_code

        await self._store.delete_with_visits(link)
        await self._evict_if_configured(short_code)

        self._logger.info(f"Link {link_id} ({short_code}) deleted by {caller.id}")

    async def list_all(self, caller: CallerIdentity, page: int = 1, limit: int = 10) -> LinkPage:
        """Admin listing of every link, newest first."""
        if not caller.is_admin:
            raise ForbiddenError("Admin privileges required")
        if page < 1:
            raise LinkValidationError("page must be >= 1")
        if limit < 1 or limit > self._settings.ADMIN_PAGE_MAX_LIMIT:
            raise LinkValidationError(f"limit must be between 1 and {self._settings.ADMIN_PAGE_MAX_LIMIT}")

        items = await self._store.list_page(offset=(page - 1) * limit, limit=limit)
        total = await self._store.count()
        return LinkPage(items=items, total=total, page=page, limit=limit)

    # ========================================================================
    # PRIVATE HELPER METHODS
    # ========================================================================

    async def _insert_with_custom_code(
        self,
        target_url: str,
        owner_id: str,
        custom_code: str,
        expires_at: Optional[datetime.datetime],
    ) -> Link:
        if await self._store.get_by_code(custom_code) is not None:
            raise ConflictError(f"Custom code '{custom_code}' is already taken")

        # The pre-check races with concurrent creates; the unique constraint decides.
        return await self._store.add(
            Link(short_code=custom_code, target_url=target_url, owner_id=owner_id, expires_at=expires_at)
        )

    async def _insert_with_generated_code(
        self,
        target_url: str,
        owner_id: str,
        expires_at: Optional[datetime.datetime],
    ) -> Link:
        max_attempts = self._settings.SHORT_CODE_MAX_ATTEMPTS

        for attempt in range(1, max_attempts + 1):
            short_code = self._generate_code()
            try:
                return await self._store.add(
                    Link(short_code=short_code, target_url=target_url, owner_id=owner_id, expires_at=expires_at)
                )
            except ConflictError:
                CODE_COLLISIONS_TOTAL.inc()
                self._logger.debug(f"Generated code collision on {short_code} (attempt {attempt}/{max_attempts})")

        raise ResourceExhaustedError(f"Could not allocate a free short code after {max_attempts} attempts")

    async def _load_and_cache(self, short_code: str) -> Optional[CachedLinkEntry]:
        link = await self._store.get_by_code(short_code)
        if link is None:
            return None

        entry = CachedLinkEntry.model_validate(link)
        await self._cache.put(entry)
        self._logger.debug(f"Store hit and cached for {short_code}")
        return entry

    async def _get_managed_link(self, link_id: str, caller: CallerIdentity) -> Link:
        link = await self._store.get_by_id(link_id)
        if link is None:
            raise NotFoundError(f"Link '{link_id}' not found")
        ensure_can_manage(link, caller)
        return link

    async def _evict_if_configured(self, short_code: str) -> None:
        if self._settings.CACHE_INVALIDATE_ON_WRITE:
            await self._cache.invalidate(short_code)
