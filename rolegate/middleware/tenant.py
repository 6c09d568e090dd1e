"""
Tenant Middleware

Resolves the organization for every tenant request and stores it on
request.state. Routes read it through the get_current_org dependency.

Resolution order:
1. X-Tenant-Slug header (API clients)
2. Subdomain of the Host header (acme.rolegate.io -> "acme")
3. X-Tenant-ID header
"""
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from sqlalchemy import or_, select
from sqlalchemy.orm import Session
from typing import Optional
import logging

from rolegate.database import SessionLocal
from rolegate.models.organization import Organization

logger = logging.getLogger(__name__)


class TenantMiddleware(BaseHTTPMiddleware):
    """Extract and validate the organization of each request."""

    NON_TENANT_SUBDOMAINS = ("www", "api", "app")

    def __init__(self, app):
        super().__init__(app)
        self.excluded_paths = [
            "/docs",
            "/redoc",
            "/openapi.json",
            "/health",
        ]

    async def dispatch(self, request: Request, call_next):
        if request.url.path == "/" or any(request.url.path.startswith(path) for path in self.excluded_paths):
            return await call_next(request)

        identifier = self._extract_tenant_identifier(request)

        if not identifier:
            logger.warning(f"No tenant identifier in request: {request.url}")
            return JSONResponse(
                status_code=400,
                content={"detail": "Tenant identifier required (subdomain or X-Tenant-Slug header)"}
            )

        db = SessionLocal()
        try:
            organization = self._load_organization(db, identifier)
        finally:
            db.close()

        if not organization:
            logger.warning(f"Organization not found: {identifier}")
            return JSONResponse(
                status_code=404,
                content={"detail": f"Organization not found: {identifier}"}
            )

        if not organization.is_active:
            logger.warning(f"Inactive organization attempted access: {identifier}")
            return JSONResponse(
                status_code=403,
                content={"detail": "Organization account is inactive"}
            )

        request.state.organization = organization
        request.state.org_id = organization.id
        logger.debug(f"Request for organization: {organization.slug} ({organization.id})")

        return await call_next(request)

    def _extract_tenant_identifier(self, request: Request) -> Optional[str]:
        slug = request.headers.get("X-Tenant-Slug")
        if slug:
            return slug

        host = request.headers.get("Host", "")
        parts = host.split(":")[0].split(".")
        if len(parts) >= 3 and parts[0] not in self.NON_TENANT_SUBDOMAINS:
            return parts[0]

        org_id = request.headers.get("X-Tenant-ID")
        if org_id:
            logger.debug("Using X-Tenant-ID header")
            return org_id

        return None

    def _load_organization(self, db: Session, identifier: str) -> Optional[Organization]:
        """Look up by slug, subdomain, then id."""
        return db.scalars(
            select(Organization).where(
                or_(
                    Organization.slug == identifier,
                    Organization.subdomain == identifier,
                    Organization.id == identifier,
                )
            )
        ).first()
