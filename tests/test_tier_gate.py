import pytest

from rolegate.core.tier_gate import TierCheck, can_customize, get_org_tier


def test_missing_subscription_resolves_to_free(db, make_org):
    org = make_org("nosub")
    check = can_customize(db, org.id)
    assert check.allowed is False
    assert check.tier_name == "free"


def test_business_tier_allows_customization(db, business_org):
    check = can_customize(db, business_org.id)
    assert check.allowed is True
    assert check.tier_name == "business"


def test_enterprise_tier_allows_customization(db, make_org):
    org = make_org("bigco", tier="enterprise")
    assert can_customize(db, org.id).allowed is True


def test_pro_tier_does_not(db, make_org):
    org = make_org("proco", tier="pro")
    check = can_customize(db, org.id)
    assert check.allowed is False
    assert check.tier_name == "pro"


def test_inactive_subscription_falls_back_to_free(db, make_org):
    org = make_org("lapsed", tier="business", status="canceled")
    check = can_customize(db, org.id)
    assert check.allowed is False
    assert check.tier_name == "free"


def test_trialing_subscription_counts(db, make_org):
    org = make_org("trial", tier="business", status="trialing")
    assert can_customize(db, org.id).allowed is True


def test_org_tier_info(db, business_org, free_org):
    info = get_org_tier(db, business_org.id)
    assert info.is_business_plus
    assert info.is_active
    assert info.max_projects == 100

    free = get_org_tier(db, free_org.id)
    assert not free.is_business_plus
    assert free.allows_custom_permissions is False


@pytest.mark.parametrize("status, active", [
    ("active", True),
    ("trialing", True),
    ("past_due", False),
    ("canceled", False),
])
def test_subscription_activity(db, make_org, status, active):
    org = make_org(f"org-{status}", tier="business", status=status)
    assert org.subscription.is_active is active
    assert can_customize(db, org.id).allowed is active


def test_tier_info_converts_to_check(db, business_org):
    check = get_org_tier(db, business_org.id).as_check()
    assert check == TierCheck(allowed=True, tier_name="business")
