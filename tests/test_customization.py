import pytest
from sqlalchemy.exc import SQLAlchemyError

from rolegate.core.exceptions import InvalidationFailed
from rolegate.core.resolver import get_effective_state
from rolegate.core.roles import AppRole
from rolegate.schemas.capability import CapabilityChange
from rolegate.services import customization
from rolegate.services.customization import apply_changes, grant, reset_role, revoke
from rolegate.services.sessions import REASON_CAPABILITIES_CHANGED, InvalidationOutcome


class FailingInvalidator:
    def invalidate_role(self, org_id, role):
        raise InvalidationFailed("session store unavailable")


class CrashingInvalidator:
    def invalidate_role(self, org_id, role):
        raise RuntimeError("can't start new thread")


class RecordingInvalidator:
    def __init__(self):
        self.calls = []

    def invalidate_role(self, org_id, role):
        self.calls.append((org_id, role))
        return InvalidationOutcome(affected_users=2, affected_sessions=3)


def changes(*pairs):
    return [CapabilityChange(capability_key=key, granted=granted) for key, granted in pairs]


@pytest.fixture
def recorder():
    return RecordingInvalidator()


def test_business_owner_grants_and_revokes(db, business_org, owner_claims, recorder):
    result = apply_changes(db, owner_claims, business_org.id, "member",
                           changes(("projects.delete", True)), invalidator=recorder)

    assert result.success
    assert result.changes_applied == 1
    assert get_effective_state(db, business_org.id, "member", "projects.delete") is True

    result = apply_changes(db, owner_claims, business_org.id, "member",
                           changes(("projects.delete", False)), invalidator=recorder)

    assert result.success
    assert get_effective_state(db, business_org.id, "member", "projects.delete") is False
    assert recorder.calls == [(business_org.id, AppRole.MEMBER)] * 2


def test_success_message_reports_counts(db, business_org, owner_claims, recorder):
    result = apply_changes(db, owner_claims, business_org.id, "member",
                           changes(("projects.delete", True), ("reports.export", True)),
                           invalidator=recorder)

    assert result.message == "2 changes applied to member role. 2 users will be prompted to re-login."
    assert result.affected_users == 2
    assert result.affected_sessions == 3


def test_free_tier_is_rejected_without_writes(db, free_org, make_user, login, count_overrides, recorder):
    _, claims, _ = login(make_user(free_org, AppRole.OWNER))

    result = apply_changes(db, claims, free_org.id, "member",
                           changes(("projects.delete", True)), invalidator=recorder)

    assert not result.success
    assert result.error == "tier_not_eligible"
    assert result.message == "Upgrade to Business tier to customize role capabilities. Current tier: free"
    assert count_overrides() == 0
    assert recorder.calls == []


def test_org_without_subscription_is_treated_as_free(db, make_org, make_user, login, recorder):
    org = make_org("nosub")
    _, claims, _ = login(make_user(org, AppRole.OWNER))

    result = apply_changes(db, claims, org.id, "member", changes(("projects.delete", True)), invalidator=recorder)

    assert result.error == "tier_not_eligible"
    assert result.message.endswith("Current tier: free")


def test_owner_role_cannot_be_customized(db, business_org, owner_claims, count_overrides, recorder):
    result = apply_changes(db, owner_claims, business_org.id, "owner",
                           changes(("org.delete", False)), invalidator=recorder)

    assert not result.success
    assert result.error == "authorization_denied"
    assert count_overrides() == 0
    assert get_effective_state(db, business_org.id, "owner", "org.delete") is True


@pytest.mark.parametrize("role", [AppRole.ADMIN, AppRole.SUPERADMIN, AppRole.MEMBER])
def test_non_owner_is_denied(db, business_org, make_user, login, count_overrides, recorder, role):
    _, claims, _ = login(make_user(business_org, role))

    result = apply_changes(db, claims, business_org.id, "member",
                           changes(("projects.delete", True)), invalidator=recorder)

    assert not result.success
    assert result.error == "authorization_denied"
    assert result.message == "Only organization owners can customize role capabilities"
    assert count_overrides() == 0


def test_missing_actor_requires_authentication(db, business_org, recorder):
    result = apply_changes(db, None, business_org.id, "member",
                           changes(("projects.delete", True)), invalidator=recorder)

    assert not result.success
    assert result.error == "authentication_required"


def test_owner_of_another_org_is_denied(db, business_org, make_org, make_user, login, count_overrides, recorder):
    other = make_org("globex", tier="business")
    _, claims, _ = login(make_user(other, AppRole.OWNER))

    result = apply_changes(db, claims, business_org.id, "member",
                           changes(("projects.delete", True)), invalidator=recorder)

    assert result.error == "authorization_denied"
    assert count_overrides() == 0


def test_unknown_target_role(db, business_org, owner_claims, recorder):
    result = apply_changes(db, owner_claims, business_org.id, "guest",
                           changes(("projects.delete", True)), invalidator=recorder)

    assert result.error == "validation_failed"
    assert result.message == "Unknown role: guest"


def test_only_unknown_keys_fails(db, business_org, owner_claims, count_overrides, recorder):
    result = apply_changes(db, owner_claims, business_org.id, "member",
                           changes(("nonexistent.key", True)), invalidator=recorder)

    assert not result.success
    assert result.message == "No valid changes to apply"
    assert result.skipped_keys == ["nonexistent.key"]
    assert count_overrides() == 0
    assert recorder.calls == []


def test_unknown_keys_are_skipped_in_mixed_batch(db, business_org, owner_claims, count_overrides, recorder):
    result = apply_changes(db, owner_claims, business_org.id, "member",
                           changes(("nonexistent.key", True), ("projects.delete", True)),
                           invalidator=recorder)

    assert result.success
    assert result.changes_applied == 1
    assert result.skipped_keys == ["nonexistent.key"]
    assert count_overrides() == 1


def test_empty_batch(db, business_org, owner_claims, recorder):
    result = apply_changes(db, owner_claims, business_org.id, "member", [], invalidator=recorder)

    assert not result.success
    assert result.message == "No changes provided"


def test_reapplying_a_batch_is_a_no_op(db, business_org, owner_claims, count_overrides, recorder):
    batch = changes(("projects.delete", True), ("reports.export", True))
    apply_changes(db, owner_claims, business_org.id, "member", batch, invalidator=recorder)

    again = apply_changes(db, owner_claims, business_org.id, "member", batch, invalidator=recorder)

    assert again.success
    assert again.changes_applied == 0
    assert again.no_op_count == 2
    assert count_overrides() == 2
    # nothing changed, nobody logged out
    assert len(recorder.calls) == 1


def test_last_duplicate_key_wins(db, business_org, owner_claims, count_overrides, recorder):
    result = apply_changes(db, owner_claims, business_org.id, "member",
                           changes(("projects.delete", True), ("projects.delete", False)),
                           invalidator=recorder)

    assert result.changes_applied == 1
    assert count_overrides() == 1
    assert get_effective_state(db, business_org.id, "member", "projects.delete") is False


def test_override_matching_default_is_still_stored(db, business_org, owner_claims, count_overrides, recorder):
    apply_changes(db, owner_claims, business_org.id, "admin",
                  changes(("projects.delete", True)), invalidator=recorder)

    assert count_overrides(business_org.id) == 1


def test_persistence_failure_returns_generic_message(db, business_org, owner_claims, count_overrides,
                                                     recorder, monkeypatch):
    def broken_upsert(db, rows):
        raise SQLAlchemyError("duplicate key value violates constraint on org_role_capabilities")

    monkeypatch.setattr(customization, "upsert_overrides", broken_upsert)

    result = apply_changes(db, owner_claims, business_org.id, "member",
                           changes(("projects.delete", True)), invalidator=recorder)

    assert not result.success
    assert result.error == "persistence_failed"
    assert result.message == "Failed to save capability changes. Please try again."
    assert "org_role_capabilities" not in result.message
    assert count_overrides() == 0
    assert recorder.calls == []


def test_invalidation_failure_does_not_fail_the_update(db, business_org, owner_claims, count_overrides):
    result = apply_changes(db, owner_claims, business_org.id, "member",
                           changes(("projects.delete", True)), invalidator=FailingInvalidator())

    assert result.success
    assert result.changes_applied == 1
    assert result.affected_users == 0
    assert count_overrides() == 1
    assert get_effective_state(db, business_org.id, "member", "projects.delete") is True


@pytest.mark.parametrize("invalidator", [FailingInvalidator(), CrashingInvalidator()], ids=["invalidation", "crash"])
def test_any_invalidation_error_after_commit_is_swallowed(db, business_org, owner_claims, count_overrides,
                                                          invalidator):
    result = apply_changes(db, owner_claims, business_org.id, "member",
                           changes(("projects.delete", True)), invalidator=invalidator)

    assert result.success
    assert result.error is None
    assert result.changes_applied == 1
    assert count_overrides() == 1

    reset = reset_role(db, owner_claims, business_org.id, "member", invalidator=invalidator)
    assert reset.success
    assert reset.deleted_count == 1

def test_only_target_role_is_logged_out(db, business_org, owner, owner_claims, make_user, login, make_org):
    member_session, _, _ = login(make_user(business_org, AppRole.MEMBER))
    second_member_session, _, _ = login(make_user(business_org, AppRole.MEMBER))
    admin_session, _, _ = login(make_user(business_org, AppRole.ADMIN))
    owner_session, _, _ = login(owner)
    other_org = make_org("globex", tier="business")
    foreign_member_session, _, _ = login(make_user(other_org, AppRole.MEMBER))

    result = apply_changes(db, owner_claims, business_org.id, "member", changes(("projects.delete", True)))

    assert result.success
    assert result.affected_users == 2
    assert result.affected_sessions == 2

    db.expire_all()
    assert member_session.revoked_at is not None
    assert member_session.revoked_reason == REASON_CAPABILITIES_CHANGED
    assert second_member_session.revoked_at is not None
    assert admin_session.revoked_at is None
    assert owner_session.revoked_at is None
    assert foreign_member_session.revoked_at is None


def test_grant_and_revoke_wrappers(db, business_org, owner_claims, recorder):
    granted = grant(db, owner_claims, business_org.id, "member", "projects.delete", invalidator=recorder)
    assert granted.success
    assert granted.message == "Capability 'projects.delete' granted to member"

    revoked = revoke(db, owner_claims, business_org.id, "member", "projects.delete", invalidator=recorder)
    assert revoked.success
    assert revoked.message == "Capability 'projects.delete' revoked from member"
    assert get_effective_state(db, business_org.id, "member", "projects.delete") is False


def test_grant_unknown_capability(db, business_org, owner_claims, recorder):
    result = grant(db, owner_claims, business_org.id, "member", "nonexistent.key", invalidator=recorder)

    assert not result.success
    assert result.message == "Capability not found"


def test_reset_restores_defaults(db, business_org, owner_claims, count_overrides, recorder):
    apply_changes(db, owner_claims, business_org.id, "member",
                  changes(("projects.delete", True), ("projects.view", False)), invalidator=recorder)

    result = reset_role(db, owner_claims, business_org.id, "member", invalidator=recorder)

    assert result.success
    assert result.deleted_count == 2
    assert result.message == "member role reset to default capabilities"
    assert count_overrides() == 0
    assert get_effective_state(db, business_org.id, "member", "projects.delete") is False
    assert get_effective_state(db, business_org.id, "member", "projects.view") is True


def test_reset_without_overrides_is_harmless(db, business_org, owner_claims, recorder):
    result = reset_role(db, owner_claims, business_org.id, "member", invalidator=recorder)

    assert result.success
    assert result.deleted_count == 0
    assert recorder.calls == []


def test_reset_leaves_other_roles_alone(db, business_org, owner_claims, count_overrides, recorder):
    apply_changes(db, owner_claims, business_org.id, "member",
                  changes(("projects.delete", True)), invalidator=recorder)
    apply_changes(db, owner_claims, business_org.id, "admin",
                  changes(("billing.view", False)), invalidator=recorder)

    reset_role(db, owner_claims, business_org.id, "member", invalidator=recorder)

    assert count_overrides() == 1
    assert get_effective_state(db, business_org.id, "admin", "billing.view") is False


def test_reset_is_allowed_after_downgrade(db, make_org, make_user, login, count_overrides, recorder):
    org = make_org("shrinking", tier="business")
    _, claims, _ = login(make_user(org, AppRole.OWNER))
    apply_changes(db, claims, org.id, "member", changes(("projects.delete", True)), invalidator=recorder)

    org.subscription.status = "canceled"
    db.commit()

    # existing overrides keep applying after the downgrade
    assert get_effective_state(db, org.id, "member", "projects.delete") is True
    blocked = apply_changes(db, claims, org.id, "member", changes(("reports.export", True)), invalidator=recorder)
    assert blocked.error == "tier_not_eligible"

    result = reset_role(db, claims, org.id, "member", invalidator=recorder)
    assert result.success
    assert count_overrides(org.id) == 0


def test_reset_denied_for_owner_role_and_non_owner(db, business_org, owner_claims, make_user, login, recorder):
    assert reset_role(db, owner_claims, business_org.id, "owner", invalidator=recorder).error == "authorization_denied"

    _, admin_claims, _ = login(make_user(business_org, AppRole.ADMIN))
    denied = reset_role(db, admin_claims, business_org.id, "member", invalidator=recorder)
    assert denied.error == "authorization_denied"
    assert denied.message == "Only organization owners can reset role capabilities"

