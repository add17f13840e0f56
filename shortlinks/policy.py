"""Link lifecycle and ownership policy.

Pure decision functions over a link record. They accept anything exposing
``is_active`` / ``expires_at`` (a ``Link`` row or a ``CachedLinkEntry``
snapshot) and, for ownership, ``owner_id``.

Decision Table
==============
::
    is_active  expires_at        usable?
    ─────────  ───────────────   ───────
    False      any               no  → GoneError
    True       None              yes
    True       >= now            yes
    True       <  now            no  → GoneError

    caller.id == owner_id  OR  caller.role == ADMIN  → may manage
    otherwise                                        → ForbiddenError

Key Behaviours
===============
- Naive timestamps (e.g. read back from SQLite) are interpreted as UTC.
- An expiry equal to ``now`` still counts as usable.
- Ownership is only checked once existence is known; callers raise
  NotFoundError first.
"""

import datetime
from dataclasses import dataclass

from shortlinks.enums import Role
from shortlinks.errors import ForbiddenError, GoneError

__all__ = [
    "CallerIdentity",
    "as_utc",
    "is_usable",
    "ensure_usable",
    "can_manage",
    "ensure_can_manage",
]


@dataclass(frozen=True)
class CallerIdentity:
    """Resolved caller supplied by the authentication collaborator."""

    id: str
    role: Role = Role.USER

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN


def as_utc(value: datetime.datetime) -> datetime.datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=datetime.timezone.utc)
    return value.astimezone(datetime.timezone.utc)


def is_usable(link, now: datetime.datetime | None = None) -> bool:
    if not link.is_active:
        return False
    if link.expires_at is None:
        return True
    now = as_utc(now) if now is not None else datetime.datetime.now(datetime.timezone.utc)
    return as_utc(link.expires_at) >= now


def ensure_usable(link, now: datetime.datetime | None = None) -> None:
    if not is_usable(link, now):
        raise GoneError("This link is inactive or has expired")


def can_manage(link, caller: CallerIdentity) -> bool:
    return caller.is_admin or caller.id == link.owner_id


def ensure_can_manage(link, caller: CallerIdentity) -> None:
    if not can_manage(link, caller):
        raise ForbiddenError("You do not have access to this link")
