# Overview: Flask API routes for payments; parses input and returns JSON responses.

"""
Payment API Routes

WHY: Record invoice payments and manage their lifecycle over REST.

DESIGN:
- List / search / paginate payments, plus invoice and customer views
- Register payments (number allocated server-side)
- Status changes follow the payment state machine
- Full and partial refunds of completed payments
- Only pending payments can be deleted

ERRORS:
- 400 ValidationError, 404 NotFoundError, 409 InvalidStateError or ConflictError
- 401 when the tenant header is missing or unknown (see @require_tenant)
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_tenant
from ..services import payment_service, payment_stats_service
from ..validation import ConflictError, InvalidStateError, NotFoundError, ValidationError


payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")
    return data


# =============================================================================
# PAYMENT QUERIES
# =============================================================================

@payments_bp.get("")
@require_tenant
def list_payments_route():
    """
    List payments.

    Query params: search, status, method, customer_id, invoice_id,
    start_date, end_date, min_amount, max_amount, sort_by, sort_order,
    page, limit.

    Returns:
        200: {"data": [...], "meta": {"total", "page", "limit", "total_pages"}}
        400: Invalid filter value
    """
    try:
        result = payment_service.list_payments(g.org_id, request.args.to_dict())
        return jsonify(result), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to list payments")
        return jsonify({"error": "Internal server error"}), 500


@payments_bp.get("/stats")
@require_tenant
def payment_stats_route():
    """Dashboard aggregates (totals, counts per status/method, today, week)."""
    try:
        return jsonify(payment_stats_service.get_payment_stats(g.org_id)), 200
    except Exception:
        current_app.logger.exception("Failed to compute payment stats")
        return jsonify({"error": "Internal server error"}), 500


@payments_bp.get("/recent")
@require_tenant
def recent_payments_route():
    try:
        payments = payment_service.get_recent_payments(g.org_id)
        return jsonify([p.to_dict() for p in payments]), 200
    except Exception:
        current_app.logger.exception("Failed to load recent payments")
        return jsonify({"error": "Internal server error"}), 500


@payments_bp.get("/invoice/<invoice_id>")
@require_tenant
def invoice_payments_route(invoice_id: str):
    try:
        payments = payment_service.get_payments_by_invoice(g.org_id, invoice_id)
        return jsonify([p.to_dict() for p in payments]), 200
    except Exception:
        current_app.logger.exception("Failed to load payments for invoice %s", invoice_id)
        return jsonify({"error": "Internal server error"}), 500


@payments_bp.get("/customer/<customer_id>")
@require_tenant
def customer_payments_route(customer_id: str):
    try:
        payments = payment_service.get_payments_by_customer(g.org_id, customer_id)
        return jsonify([p.to_dict() for p in payments]), 200
    except Exception:
        current_app.logger.exception("Failed to load payments for customer %s", customer_id)
        return jsonify({"error": "Internal server error"}), 500


@payments_bp.get("/<int:payment_id>")
@require_tenant
def get_payment_route(payment_id: int):
    try:
        payment = payment_service.get_payment(g.org_id, payment_id)
        return jsonify(payment.to_dict()), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to load payment %s", payment_id)
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# PAYMENT MUTATIONS
# =============================================================================

@payments_bp.post("")
@require_tenant
def create_payment_route():
    """
    Register a payment.

    Request body:
    {
        "invoice_id": "INV-1",
        "customer_id": "C-9",
        "customer_name": "Ferreteria El Tornillo",  (optional)
        "invoice_number": "FAC-0001",  (optional)
        "amount": 1000000,
        "method": "BANK_TRANSFER",
        "status": "PENDING",  (optional, default PENDING)
        "payment_date": "2024-05-01T10:00:00Z",  (optional, default now)
        "reference_number": "TRX-123",  (optional)
        "notes": "..."  (optional)
    }

    Returns:
        201: Payment created
        400: Invalid input
        409: Payment number could not be allocated
    """
    try:
        payment = payment_service.create_payment(g.org_id, _json_body())
        return jsonify(payment.to_dict()), 201
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create payment")
        return jsonify({"error": "Internal server error"}), 500


@payments_bp.patch("/<int:payment_id>")
@require_tenant
def update_payment_route(payment_id: int):
    """
    Update amount, method, notes, reference_number or payment_date.

    Completed, refunded and cancelled payments only accept notes; other
    fields are ignored.
    """
    try:
        payment = payment_service.update_payment(g.org_id, payment_id, _json_body())
        return jsonify(payment.to_dict()), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to update payment %s", payment_id)
        return jsonify({"error": "Internal server error"}), 500


@payments_bp.patch("/<int:payment_id>/status")
@require_tenant
def update_payment_status_route(payment_id: int):
    """
    Change payment status.

    Request body: {"status": "COMPLETED"}

    Returns:
        200: Updated payment
        400: Unknown status
        404: Payment not found
        409: Transition not allowed
    """
    try:
        data = _json_body()
        status = data.get("status")
        if not status or not isinstance(status, str):
            return jsonify({"error": "status is required"}), 400

        payment = payment_service.update_payment_status(g.org_id, payment_id, status)
        return jsonify(payment.to_dict()), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except InvalidStateError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to change status of payment %s", payment_id)
        return jsonify({"error": "Internal server error"}), 500


@payments_bp.post("/<int:payment_id>/refund")
@require_tenant
def refund_payment_route(payment_id: int):
    """
    Refund a completed payment.

    Request body: {"amount": 500000}  (optional; omitted = full refund)

    Returns:
        200: Original payment (full refund) or the refund record (partial)
        400: Invalid amount
        404: Payment not found
        409: Payment is not completed
    """
    try:
        data = _json_body()
        amount = data.get("amount", data.get("refund_amount"))
        result = payment_service.refund_payment(g.org_id, payment_id, amount)
        return jsonify(result.to_dict()), 200
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except InvalidStateError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to refund payment %s", payment_id)
        return jsonify({"error": "Internal server error"}), 500


@payments_bp.delete("/<int:payment_id>")
@require_tenant
def delete_payment_route(payment_id: int):
    try:
        payment_service.delete_payment(g.org_id, payment_id)
        return jsonify({"success": True}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except InvalidStateError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to delete payment %s", payment_id)
        return jsonify({"error": "Internal server error"}), 500
