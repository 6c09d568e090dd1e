"""
Custom Exceptions

Two families live here:

- HTTP exceptions raised by FastAPI dependencies at the request boundary
  (bad token, wrong organization). FastAPI turns these into responses.
- RBACError and its subclasses, raised inside the customization services
  and converted to success=False results before they leave the service
  layer. Their `message` is safe to show to end users.
"""
from fastapi import HTTPException, status


class AuthenticationError(HTTPException):
    """Raised when authentication fails."""

    def __init__(self, detail: str = "Could not validate credentials"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class TenantIsolationError(HTTPException):
    """
    Raised when a token issued for one organization is used against another.

    This is a security event and is logged as one.
    """

    def __init__(self, detail: str = "Tenant isolation violation"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail
        )


class PermissionDenied(HTTPException):
    """Raised by role/capability dependencies."""

    def __init__(self, detail: str = "Permission denied"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail
        )


# ============================================================================
# DOMAIN ERRORS
# ============================================================================

class RBACError(Exception):
    """Base for capability customization failures."""

    code = "rbac_error"
    default_message = "Capability update failed"

    def __init__(self, message: str = None, **details):
        self.message = message or self.default_message
        # Extra result fields (e.g. skipped_keys) for the failure result
        self.details = details
        super().__init__(self.message)


class AuthenticationRequired(RBACError):
    code = "authentication_required"
    default_message = "Authentication required"


class AuthorizationDenied(RBACError):
    code = "authorization_denied"
    default_message = "Only organization owners can customize role capabilities"


class TierNotEligible(RBACError):
    code = "tier_not_eligible"

    def __init__(self, tier_name: str):
        self.tier_name = tier_name
        super().__init__(
            f"Upgrade to Business tier to customize role capabilities. Current tier: {tier_name}"
        )


class ValidationFailed(RBACError):
    code = "validation_failed"
    default_message = "No valid changes to apply"


class PersistenceFailed(RBACError):
    code = "persistence_failed"
    default_message = "Failed to save capability changes. Please try again."


class InvalidationFailed(RBACError):
    """Forced logout failed. Logged only, never returned to callers."""

    code = "invalidation_failed"
    default_message = "Failed to force logout affected users"
