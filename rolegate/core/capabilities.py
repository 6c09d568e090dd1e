"""
Capability Catalog

Static, cross-tenant set of capability keys. Each capability names the
lowest role that holds it by default; organizations on an eligible tier
can then override that default per role (see rolegate.core.overrides).

The catalog is append-only in practice: keys are stable identifiers
referenced by stored overrides, so never rename or remove one.
"""
import enum
from dataclasses import dataclass
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from rolegate.core.roles import AppRole
from rolegate.models.capability import Capability
from rolegate.utils.logging import get_logger

logger = get_logger(__name__)


class CapabilityCategory(str, enum.Enum):
    PROJECTS = "projects"
    TEAM = "team"
    BILLING = "billing"
    ORGANIZATION = "organization"
    ANALYTICS = "analytics"
    PROFILE = "profile"
    SECURITY = "security"
    NOTIFICATIONS = "notifications"


@dataclass(frozen=True)
class CapabilityDefinition:
    key: str
    name: str
    description: str
    category: CapabilityCategory
    min_role_required: Optional[AppRole]


def _cap(key, name, description, category, min_role):
    return CapabilityDefinition(key, name, description, category, min_role)


_DEFINITIONS = [
    # Projects
    _cap("projects.create", "Create Projects", "Create new projects", CapabilityCategory.PROJECTS, AppRole.MEMBER),
    _cap("projects.view", "View Projects", "View all org projects", CapabilityCategory.PROJECTS, AppRole.VIEW_ONLY),
    _cap("projects.edit", "Edit Projects", "Edit project settings", CapabilityCategory.PROJECTS, AppRole.MEMBER),
    _cap("projects.delete", "Delete Projects", "Delete projects", CapabilityCategory.PROJECTS, AppRole.ADMIN),
    _cap("projects.archive", "Archive Projects", "Archive projects", CapabilityCategory.PROJECTS, AppRole.ADMIN),
    # Team
    _cap("team.invite", "Invite Members", "Invite new team members", CapabilityCategory.TEAM, AppRole.ADMIN),
    _cap("team.remove", "Remove Members", "Remove team members", CapabilityCategory.TEAM, AppRole.ADMIN),
    _cap("team.view", "View Team", "View team members", CapabilityCategory.TEAM, AppRole.VIEW_ONLY),
    _cap("team.manage_roles", "Manage Roles", "Change member roles", CapabilityCategory.TEAM, AppRole.SUPERADMIN),
    # Billing
    _cap("billing.view", "View Billing", "View billing information", CapabilityCategory.BILLING, AppRole.ADMIN),
    _cap("billing.manage", "Manage Billing", "Update billing details", CapabilityCategory.BILLING, AppRole.OWNER),
    _cap("subscription.upgrade", "Upgrade Subscription", "Upgrade subscription tier", CapabilityCategory.BILLING, AppRole.OWNER),
    # Organization
    _cap("org.settings.view", "View Settings", "View org settings", CapabilityCategory.ORGANIZATION, AppRole.ADMIN),
    _cap("org.settings.edit", "Edit Settings", "Edit org settings", CapabilityCategory.ORGANIZATION, AppRole.SUPERADMIN),
    _cap("org.delete", "Delete Organization", "Delete organization", CapabilityCategory.ORGANIZATION, AppRole.OWNER),
    # Analytics
    _cap("analytics.view", "View Analytics", "View usage analytics", CapabilityCategory.ANALYTICS, AppRole.MEMBER),
    _cap("reports.generate", "Generate Reports", "Generate usage reports", CapabilityCategory.ANALYTICS, AppRole.ADMIN),
    _cap("reports.export", "Export Reports", "Export report data", CapabilityCategory.ANALYTICS, AppRole.ADMIN),
    # Profile
    _cap("profile.edit_own", "Edit Own Profile", "Edit your own profile", CapabilityCategory.PROFILE, AppRole.VIEW_ONLY),
    _cap("profile.edit_others", "Edit Other Profiles", "Edit other members' profiles", CapabilityCategory.PROFILE, AppRole.ADMIN),
    _cap("profile.upload_picture", "Upload Picture", "Upload a profile picture", CapabilityCategory.PROFILE, AppRole.VIEW_ONLY),
    # Security
    _cap("security.view_own", "View Own Security", "View your own security settings", CapabilityCategory.SECURITY, AppRole.VIEW_ONLY),
    _cap("security.edit_own", "Edit Own Security", "Change your own security settings", CapabilityCategory.SECURITY, AppRole.VIEW_ONLY),
    _cap("security.view_org_audit", "View Audit Log", "View the organization audit log", CapabilityCategory.SECURITY, AppRole.SUPERADMIN),
    _cap("security.manage_sessions", "Manage Sessions", "Force logout members", CapabilityCategory.SECURITY, AppRole.SUPERADMIN),
    # Notifications
    _cap("notifications.edit_own", "Edit Notifications", "Edit your notification preferences", CapabilityCategory.NOTIFICATIONS, AppRole.VIEW_ONLY),
]

CAPABILITY_CATALOG: Dict[str, CapabilityDefinition] = {d.key: d for d in _DEFINITIONS}


def is_valid_capability(key: str) -> bool:
    """Check if a capability key exists in the catalog."""
    return key in CAPABILITY_CATALOG


def get_capabilities_by_category(category: CapabilityCategory) -> List[CapabilityDefinition]:
    return [d for d in CAPABILITY_CATALOG.values() if d.category == category]


def sync_catalog(db: Session) -> int:
    """
    Insert catalog entries missing from the capabilities table.

    Existing rows are left alone and nothing is ever deleted. Returns the
    number of rows inserted. Commits.
    """
    existing = set(db.scalars(select(Capability.key)))
    missing = [d for d in CAPABILITY_CATALOG.values() if d.key not in existing]

    for definition in missing:
        db.add(Capability(
            key=definition.key,
            name=definition.name,
            description=definition.description,
            category=definition.category.value,
            min_role_required=definition.min_role_required,
        ))

    if missing:
        db.commit()
        logger.info(f"Seeded {len(missing)} capabilities")
    return len(missing)
