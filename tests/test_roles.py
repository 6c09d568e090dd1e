import itertools

import pytest

from rolegate.core.roles import (
    ROLE_HIERARCHY,
    AppRole,
    has_access,
    meets_minimum,
    parse_role,
    role_rank,
    roles_at_or_below,
)

ORDER = ["view-only", "member", "admin", "superadmin", "owner"]


def test_hierarchy_order():
    assert [r.value for r in ROLE_HIERARCHY] == ORDER


@pytest.mark.parametrize("r1, r2", list(itertools.product(ORDER, ORDER)))
def test_rank_follows_hierarchy_order(r1, r2):
    assert (role_rank(r1) < role_rank(r2)) == (ORDER.index(r1) < ORDER.index(r2))


def test_rank_accepts_enum_and_string():
    assert role_rank(AppRole.ADMIN) == role_rank("admin") == 2


@pytest.mark.parametrize("value", ["guest", "", "OWNER", None, 3])
def test_unknown_roles_rank_below_everything(value):
    assert role_rank(value) == -1
    assert parse_role(value) is None
    assert not meets_minimum(value, AppRole.VIEW_ONLY)
    assert not has_access(value, [AppRole.VIEW_ONLY])


def test_meets_minimum():
    assert meets_minimum("owner", "admin")
    assert meets_minimum("admin", "admin")
    assert not meets_minimum("member", "admin")


def test_unknown_requirement_cannot_be_met():
    assert not meets_minimum("owner", "root")


def test_allowed_roles_act_as_floor():
    # superadmin is not listed but outranks the lowest listed role
    assert has_access("superadmin", ["admin", "owner"])
    assert has_access("admin", ["owner", "admin"])
    assert not has_access("member", ["admin", "owner"])


def test_has_access_ignores_unknown_entries_in_allowed_set():
    assert has_access("member", ["bogus", "member"])
    assert not has_access("owner", ["bogus"])


def test_has_access_empty_set_is_unrestricted():
    assert has_access("view-only", [])


def test_roles_at_or_below():
    assert roles_at_or_below("admin") == [AppRole.VIEW_ONLY, AppRole.MEMBER, AppRole.ADMIN]
    assert roles_at_or_below("nobody") == []
