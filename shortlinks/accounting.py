"""Visit accounting for resolved links.

Flow Diagram — account()
========================
::
    ┌─────────────┐
    │ valid       │
    │ resolve     │
    └──────┬──────┘
           ▼
    ┌─────────────┐   fails → log, count
    │ record()    │──────────────────────┐
    │ INSERT visit│                      │
    └──────┬──────┘                      │
           ▼                             ▼
    ┌─────────────┐   fails → log, count
    │ increment_  │
    │ clicks()    │
    │ clicks + 1  │
    └─────────────┘

Key Behaviours
===============
- The two writes are separate commits, not one transaction. Each runs in
  its own SAVEPOINT, so a failed step leaves the session usable.
- A failure in one step does not stop the other, nor the redirect.
- The click counter and the visit log can therefore diverge. Accounting is
  best-effort; nothing reconciles them afterwards.
"""

import logging
from dataclasses import dataclass

from prometheus_client import Counter
from sqlalchemy.exc import SQLAlchemyError

from shortlinks.models import Visit
from shortlinks.store import LinkStore

__all__ = ["VisitContext", "VisitAccountant"]

VISIT_ACCOUNTING_FAILURES_TOTAL = Counter(
    "shortlinks_visit_accounting_failures_total",
    "Visit accounting writes that failed, by step",
    ["step"],
)


@dataclass(frozen=True)
class VisitContext:
    """Client metadata captured by the transport for one resolution."""

    ip_address: str
    user_agent: str | None = None
    referrer: str | None = None


class VisitAccountant:
    def __init__(self, store: LinkStore, logger: logging.Logger | logging.LoggerAdapter | None = None) -> None:
        self._store = store
        self._logger = logger or logging.getLogger("shortlinks")

    async def record(self, link_id: str, visit: VisitContext) -> Visit:
        return await self._store.add_visit(
            Visit(
                link_id=link_id,
                ip_address=visit.ip_address,
                user_agent=visit.user_agent,
                referrer=visit.referrer,
            )
        )

    async def increment_clicks(self, link_id: str) -> None:
        await self._store.increment_clicks(link_id)

    async def account(self, link_id: str, visit: VisitContext) -> None:
        """Record the visit and bump the counter, each independently."""
        try:
            await self.record(link_id, visit)
        except SQLAlchemyError as exc:
            VISIT_ACCOUNTING_FAILURES_TOTAL.labels(step="record").inc()
            self._logger.error(f"Visit record failed for link {link_id}: {exc}")

        try:
            await self.increment_clicks(link_id)
        except SQLAlchemyError as exc:
            VISIT_ACCOUNTING_FAILURES_TOTAL.labels(step="increment").inc()
            self._logger.error(f"Click increment failed for link {link_id}: {exc}")
