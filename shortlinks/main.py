"""FastAPI application entry point for the short link service.

The entry point owns the shared resources: it constructs the
``ServiceManager`` and drives its ``init()`` / ``close()`` from the lifespan.

Application Lifecycle Diagram
===========================
::
    ┌─────────────┐
    │  uvicorn    │
    │  startup    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ create_app()│
    │ manager on  │
    │ app.state   │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ lifespan()  │
    │ manager.    │
    │ init()      │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Serve HTTP  │
    │ requests    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ lifespan()  │
    │ manager.    │
    │ close()     │
    └─────────────┘

How to Use
===========
**Step 1 — Run with uvicorn**::
    uvicorn shortlinks.main:app --host 0.0.0.0 --port 8080

**Step 2 — Make API calls**::
    curl -X POST http://localhost:8080/api/links \
         -H "Content-Type: application/json" -H "X-User-Id: u1" \
         -d '{"url": "https://example.com/a", "custom_code": "abc123"}'

    curl -i http://localhost:8080/abc123

Key Behaviours
===============
- Tables are created on startup; Redis and the engine are closed on shutdown.
- Prometheus metrics are exposed at /metrics.
- Auto-generated OpenAPI documentation is available at /docs and /redoc.
"""

__all__ = ["app", "create_app"]

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator

from shortlinks.config import Settings, get_settings
from shortlinks.dependencies import ServiceManager
from shortlinks.error_handlers import register_error_handlers
from shortlinks.routes import router


def create_app(settings: Settings | None = None, manager: ServiceManager | None = None) -> FastAPI:
    settings = settings or get_settings()
    manager = manager or ServiceManager(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        await app.state.service_manager.init()
        yield
        await app.state.service_manager.close()

    app = FastAPI(
        title=settings.APP_NAME,
        version="1.0.0",
        description="Short link resolution and lifecycle service",
        lifespan=lifespan,
    )
    app.state.service_manager = manager

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=False,
        should_respect_env_var=False,
    ).instrument(app).expose(app)

    register_error_handlers(app)
    app.include_router(router)
    return app


app = create_app()
