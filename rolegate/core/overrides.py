"""
Override Store

Read/write access to org_role_capabilities. Nothing in here commits:
callers own the transaction.

The unique constraint on (org_id, role, capability_id) is the merge
point for concurrent writers. Upserts target it directly, so the last
writer wins and re-applying a row is harmless.
"""
from typing import Dict, Iterable, List, Optional, Tuple
import uuid

from sqlalchemy import delete, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from rolegate.core.roles import AppRole
from rolegate.models.capability import Capability, OrgRoleCapability

CONFLICT_COLUMNS = ["org_id", "role", "capability_id"]


def fetch_role_overrides(db: Session, org_id: str, role: AppRole) -> Dict[str, OrgRoleCapability]:
    """All overrides for one (org, role), keyed by capability_id."""
    rows = db.scalars(
        select(OrgRoleCapability).where(
            OrgRoleCapability.org_id == org_id,
            OrgRoleCapability.role == role,
        )
    )
    return {row.capability_id: row for row in rows}


def fetch_override(db: Session, org_id: str, role: AppRole, capability_id: str) -> Optional[OrgRoleCapability]:
    return db.scalars(
        select(OrgRoleCapability).where(
            OrgRoleCapability.org_id == org_id,
            OrgRoleCapability.role == role,
            OrgRoleCapability.capability_id == capability_id,
        )
    ).first()


def list_org_overrides(db: Session, org_id: str) -> List[Tuple[OrgRoleCapability, Capability]]:
    """Every override in an organization with its capability, ordered by role then key."""
    rows = db.execute(
        select(OrgRoleCapability, Capability)
        .join(Capability, Capability.id == OrgRoleCapability.capability_id)
        .where(OrgRoleCapability.org_id == org_id)
        .order_by(OrgRoleCapability.role, Capability.key)
    )
    return [(override, capability) for override, capability in rows]


def _dialect_insert(db: Session):
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert
    if dialect == "sqlite":
        return sqlite.insert
    raise NotImplementedError(f"Override upsert is not supported on {dialect}")


def upsert_overrides(db: Session, rows: Iterable[dict]) -> int:
    """
    Insert or update override rows in one statement.

    Each row needs org_id, role, capability_id, granted, updated_by and
    updated_at. Returns the number of rows sent.
    """
    rows = [dict(row) for row in rows]
    if not rows:
        return 0
    for row in rows:
        row.setdefault("id", str(uuid.uuid4()))

    insert = _dialect_insert(db)
    stmt = insert(OrgRoleCapability).values(rows)
    stmt = stmt.on_conflict_do_update(
        index_elements=CONFLICT_COLUMNS,
        set_={
            "granted": stmt.excluded.granted,
            "updated_by": stmt.excluded.updated_by,
            "updated_at": stmt.excluded.updated_at,
        },
    )
    db.execute(stmt)
    return len(rows)


def delete_role_overrides(db: Session, org_id: str, role: AppRole) -> int:
    """Remove every override for (org, role). Returns rows deleted."""
    result = db.execute(
        delete(OrgRoleCapability).where(
            OrgRoleCapability.org_id == org_id,
            OrgRoleCapability.role == role,
        )
    )
    return result.rowcount or 0
