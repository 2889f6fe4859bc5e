# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services.tenant_service import TenantAccessError, validate_org_active, log_tenant_rejection


TENANT_HEADER = "X-Org-Id"


def require_tenant(f):
    """
    Establish tenant context from the X-Org-Id header.

    MULTI-TENANT: Sets g.org_id (int) and g.organization.

    SECURITY: Returns 401 if:
    - Header missing or not an integer
    - Organization does not exist
    - Organization deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw = (request.headers.get(TENANT_HEADER) or "").strip()

        if not raw:
            log_tenant_rejection("missing tenant header")
            return jsonify({"error": "Tenant context required"}), 401

        try:
            org_id = int(raw)
        except ValueError:
            log_tenant_rejection(f"malformed tenant header {raw!r}")
            return jsonify({"error": "Invalid tenant header"}), 401

        try:
            org = validate_org_active(org_id)
        except TenantAccessError as e:
            return jsonify({"error": str(e)}), 401

        g.org_id = org.id
        g.organization = org

        return f(*args, **kwargs)

    return decorated_function
