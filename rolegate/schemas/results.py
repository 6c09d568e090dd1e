"""
Operation Result Schemas

Every public customization operation returns one of these instead of
raising, so handlers can render `message` directly. `error` carries the
machine-readable failure code (see rolegate.core.exceptions).
"""
from pydantic import BaseModel, Field
from typing import List, Optional


class ActionResult(BaseModel):
    """Outcome of a customization operation."""
    success: bool
    message: str
    error: Optional[str] = None


class BatchUpdateResult(ActionResult):
    """Outcome of applying a set of capability changes to one role."""
    changes_applied: int = 0
    # Valid changes that matched the stored state already
    no_op_count: int = 0
    skipped_keys: List[str] = Field(default_factory=list)
    affected_users: int = 0
    affected_sessions: int = 0


class ResetResult(ActionResult):
    """Outcome of resetting a role to its default capabilities."""
    deleted_count: int = 0
    affected_users: int = 0
    affected_sessions: int = 0


class ForceLogoutResult(ActionResult):
    """Outcome of an explicit forced logout."""
    affected_users: int = 0
    affected_sessions: int = 0
