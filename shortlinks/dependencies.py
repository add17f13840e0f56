"""Dependency injection for the HTTP boundary.

Shared resources (database handle, Redis client, logger) live on a
``ServiceManager`` that the entry point constructs and whose ``init()`` /
``close()`` it drives from the application lifespan. Dependencies read it
from ``app.state``; there is no module-level client.
"""

import ipaddress
import logging
import time
import uuid
from collections.abc import AsyncGenerator
from dataclasses import dataclass, field
from typing import Optional

import redis.asyncio as redis
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from shortlinks.accounting import VisitContext
from shortlinks.cache import ResolutionCache, connect_redis
from shortlinks.config import Settings
from shortlinks.database import Database
from shortlinks.enums import Role
from shortlinks.errors import UnauthenticatedError
from shortlinks.link_service import LinkService
from shortlinks.policy import CallerIdentity

__all__ = [
    "ServiceManager",
    "RequestContext",
    "get_service_manager",
    "get_db",
    "get_request_context",
    "get_link_service",
    "get_caller",
    "require_caller",
    "get_visit_context",
    "get_client_ip",
]

CALLER_ID_HEADER = "X-User-Id"
CALLER_ROLE_HEADER = "X-User-Role"


# ============================================================================
# SHARED RESOURCES
# ============================================================================


class ServiceManager:
    """Owner of the resources shared across requests.

    Constructed by the entry point. Anything passed in is used as-is; anything
    missing is created from settings in ``init()``.
    """

    def __init__(
        self,
        settings: Settings,
        database: Optional[Database] = None,
        redis_client: Optional[redis.Redis] = None,
    ) -> None:
        self.settings = settings
        self.database = database
        self.redis_client = redis_client
        self.logger = self._setup_logger()
        self.cache: Optional[ResolutionCache] = None
        if redis_client is not None:
            self.cache = self._build_cache(redis_client)
        self._initialized = False

    async def init(self) -> None:
        """Initialize shared resources once at startup."""
        if self._initialized:
            return
        if self.database is None:
            self.database = Database.from_settings(self.settings)
        await self.database.init()
        if self.redis_client is None:
            self.redis_client = connect_redis(self.settings.REDIS_URL)
            self.cache = self._build_cache(self.redis_client)
        self._initialized = True
        self.logger.info(f"{self.settings.APP_NAME} resources initialized ({self.settings.APP_ENV})")

    async def close(self) -> None:
        """Release shared resources at shutdown."""
        if self.redis_client is not None:
            await self.redis_client.aclose()
        if self.database is not None:
            await self.database.close()
        self._initialized = False

    def _setup_logger(self) -> logging.Logger:
        """Setup logger once."""
        logger = logging.getLogger("shortlinks")
        if not logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
            handler.setFormatter(formatter)
            logger.addHandler(handler)
        logger.setLevel(self.settings.LOG_LEVEL.upper())
        return logger

    def _build_cache(self, client: redis.Redis) -> ResolutionCache:
        return ResolutionCache(
            client,
            ttl_seconds=self.settings.CACHE_TTL_SECONDS,
            key_prefix=self.settings.CACHE_KEY_PREFIX,
            logger=self.logger,
        )


# ============================================================================
# REQUEST CONTEXT
# ============================================================================


@dataclass
class RequestContext:
    """Per-request bundle handed to the service factory.

    Attributes:
        database: Async database session (only per-request resource)
        service_manager: Shared resources
        request_id: Unique identifier for this request
        user_agent: Client user agent string
        client_ip: Client IP address
        start_time: Request start timestamp
    """

    database: AsyncSession
    service_manager: ServiceManager
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    user_agent: Optional[str] = None
    client_ip: Optional[str] = None
    start_time: float = field(default_factory=time.time)

    @property
    def cache(self) -> ResolutionCache:
        return self.service_manager.cache

    @property
    def settings(self) -> Settings:
        return self.service_manager.settings

    @property
    def logger(self) -> logging.LoggerAdapter:
        """Shared logger carrying this request's context."""
        return logging.LoggerAdapter(
            self.service_manager.logger,
            {
                "request_id": self.request_id,
                "client_ip": self.client_ip,
                "user_agent": self.user_agent,
            },
        )

    def get_duration(self) -> float:
        """Get request duration in milliseconds."""
        return (time.time() - self.start_time) * 1000


# ============================================================================
# DEPENDENCY FUNCTIONS
# ============================================================================


def get_service_manager(request: Request) -> ServiceManager:
    return request.app.state.service_manager


async def get_db(manager: ServiceManager = Depends(get_service_manager)) -> AsyncGenerator[AsyncSession, None]:
    async with manager.database.session() as session:
        try:
            yield session
        finally:
            await session.close()


def _normalize_ip(value: str) -> Optional[str]:
    try:
        ip = str(ipaddress.ip_address(value))
    except ValueError:
        return None
    # Fits Visit.ip_address
    return ip if len(ip) <= 45 else None


def get_client_ip(request: Request) -> str:
    """Extract the client IP, preferring the leftmost X-Forwarded-For entry.

    X-Forwarded-For can be "client, proxy1, proxy2"; the original client is first.
    A leftmost entry that is not a plain IP address is ignored in favour of
    the socket peer.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        ips = [ip.strip() for ip in forwarded.split(",") if ip.strip()]
        if ips:
            client_ip = _normalize_ip(ips[0])
            if client_ip is not None:
                return client_ip

    if request.client:
        return request.client.host

    return "unknown"


async def get_request_context(
    request: Request,
    db: AsyncSession = Depends(get_db),
    manager: ServiceManager = Depends(get_service_manager),
) -> RequestContext:
    return RequestContext(
        database=db,
        service_manager=manager,
        request_id=request.headers.get("x-request-id") or str(uuid.uuid4()),
        user_agent=request.headers.get("user-agent"),
        client_ip=get_client_ip(request),
    )


def get_link_service(ctx: RequestContext = Depends(get_request_context)) -> LinkService:
    return LinkService.from_context(ctx)


def get_caller(request: Request) -> Optional[CallerIdentity]:
    """Caller identity resolved upstream by the authentication collaborator."""
    caller_id = request.headers.get(CALLER_ID_HEADER)
    if not caller_id:
        return None
    return CallerIdentity(id=caller_id, role=Role.from_str(request.headers.get(CALLER_ROLE_HEADER)))


def require_caller(caller: Optional[CallerIdentity] = Depends(get_caller)) -> CallerIdentity:
    if caller is None:
        raise UnauthenticatedError("Authentication required")
    return caller


def get_visit_context(request: Request) -> VisitContext:
    return VisitContext(
        ip_address=get_client_ip(request),
        user_agent=request.headers.get("user-agent"),
        referrer=request.headers.get("referer"),
    )
