# Overview: Tenant validation and org-scoped query helpers.

"""
Tenant Service

WHY: Payments and notifications of one organization must never leak into
another's responses. The X-Org-Id header is resolved once per request by
@require_tenant; from there on org_id travels as an explicit argument.

RULES:
- A request is rejected unless its organization exists and is active
- Every service query starts from scoped_query(model, org_id)
- Another tenant's row is reported as "not found", never as forbidden
"""

from flask import current_app, has_request_context, request

from ..extensions import db
from ..models import Organization


class TenantAccessError(Exception):
    """The request's organization is unknown or deactivated."""


def validate_org_active(org_id: int) -> Organization:
    """
    Resolve an organization that may serve requests.

    Raises:
        TenantAccessError: Unknown or inactive organization
    """
    org = db.session.get(Organization, org_id)

    if org is None:
        log_tenant_rejection(f"Organization {org_id} not found", org_id=org_id)
        raise TenantAccessError("Organization not found")

    if not org.is_active:
        log_tenant_rejection(f"Organization {org_id} is inactive", org_id=org_id)
        raise TenantAccessError("Organization is not active")

    return org


def scoped_query(model, org_id: int):
    """Base query over model rows owned by org_id."""
    return db.session.query(model).filter(model.org_id == org_id)


def log_tenant_rejection(reason: str, org_id: int | None = None) -> None:
    if has_request_context():
        current_app.logger.warning(
            "Tenant rejected: %s (path=%s, ip=%s)",
            reason, request.path, request.remote_addr,
        )
    else:
        current_app.logger.warning("Tenant rejected: %s (org_id=%s)", reason, org_id)
