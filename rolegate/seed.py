"""
Reference data

The capability catalog and subscription tiers are global rows every
organization depends on. Seeding is append-only and safe to re-run.
"""
from sqlalchemy.orm import Session

from rolegate.core.capabilities import sync_catalog
from rolegate.models.subscription import seed_subscription_tiers


def seed_reference_data(db: Session) -> None:
    sync_catalog(db)
    seed_subscription_tiers(db)
