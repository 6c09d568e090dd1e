"""
Rolegate

Role-based access control for a multi-tenant SaaS: a fixed role
hierarchy, a capability catalog with per-role defaults, per-organization
overrides gated by subscription tier, and selective forced logout when a
role's capabilities change.
"""

__version__ = "1.0.0"
