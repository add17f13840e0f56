"""Lifecycle and ownership policy tests."""

import datetime
from types import SimpleNamespace

import pytest

from shortlinks.enums import Role
from shortlinks.errors import ForbiddenError, GoneError
from shortlinks.policy import CallerIdentity, can_manage, ensure_can_manage, ensure_usable, is_usable

NOW = datetime.datetime(2026, 10, 18, 12, 0, tzinfo=datetime.timezone.utc)


def _link(is_active=True, expires_at=None, owner_id="user-1"):
    return SimpleNamespace(is_active=is_active, expires_at=expires_at, owner_id=owner_id)


def test_active_link_without_expiry_is_usable() -> None:
    assert is_usable(_link(), NOW)


def test_inactive_link_is_not_usable() -> None:
    assert not is_usable(_link(is_active=False), NOW)


def test_expiry_boundary_is_inclusive() -> None:
    assert is_usable(_link(expires_at=NOW), NOW)
    assert not is_usable(_link(expires_at=NOW - datetime.timedelta(microseconds=1)), NOW)


def test_naive_expiry_is_treated_as_utc() -> None:
    naive_future = (NOW + datetime.timedelta(hours=1)).replace(tzinfo=None)
    naive_past = (NOW - datetime.timedelta(hours=1)).replace(tzinfo=None)
    assert is_usable(_link(expires_at=naive_future), NOW)
    assert not is_usable(_link(expires_at=naive_past), NOW)


def test_ensure_usable_raises_gone() -> None:
    with pytest.raises(GoneError):
        ensure_usable(_link(is_active=False), NOW)


@pytest.mark.parametrize(
    "caller, allowed",
    [
        (CallerIdentity(id="user-1"), True),
        (CallerIdentity(id="user-2"), False),
        (CallerIdentity(id="user-2", role=Role.ADMIN), True),
    ],
)
def test_can_manage(caller: CallerIdentity, allowed: bool) -> None:
    assert can_manage(_link(owner_id="user-1"), caller) is allowed


def test_ensure_can_manage_raises_forbidden() -> None:
    with pytest.raises(ForbiddenError):
        ensure_can_manage(_link(owner_id="user-1"), CallerIdentity(id="user-2"))


def test_role_from_str_falls_back_to_user() -> None:
    assert Role.from_str("admin") is Role.ADMIN
    assert Role.from_str("superuser") is Role.USER
    assert Role.from_str(None) is Role.USER
