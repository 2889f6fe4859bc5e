# Overview: Service-layer operations for payments; encapsulates business logic and database work.

"""
Payment Lifecycle Service

WHY: Payments move through a small lifecycle (pending -> completed -> refunded
or cancelled) and the business rules about what may change at each step live
here, not in the routes.

DESIGN PRINCIPLES:
- Every function takes org_id explicitly; rows of other tenants are "not found"
- Status transitions are validated against the current status under a row lock
- Completed, refunded and cancelled payments only accept note edits
- Full refunds flip the original; partial refunds add a negative offset record
- Mutations run in run_with_retry so lock/version conflicts are retried

STATE MACHINE:
    PENDING / PROCESSING / FAILED -> any status
    COMPLETED -> REFUNDED | CANCELLED
    REFUNDED, CANCELLED -> (terminal)
"""

from __future__ import annotations

import math

from flask import current_app
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Payment
from ..time_utils import utcnow
from ..validation import (
    ConflictError,
    InvalidStateError,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    enforce_rules_payment,
    parse_datetime_arg,
    parse_int_arg,
    validate_payload,
)
from .concurrency import lock_for_update, run_with_retry
from .payment_number_service import generate_payment_number
from .tenant_service import scoped_query


# =============================================================================
# PAYMENT STATUS (CONSTANTS)
# =============================================================================

STATUS_PENDING = "PENDING"
STATUS_PROCESSING = "PROCESSING"
STATUS_COMPLETED = "COMPLETED"
STATUS_FAILED = "FAILED"
STATUS_REFUNDED = "REFUNDED"
STATUS_CANCELLED = "CANCELLED"

VALID_STATUSES = (
    STATUS_PENDING,
    STATUS_PROCESSING,
    STATUS_COMPLETED,
    STATUS_FAILED,
    STATUS_REFUNDED,
    STATUS_CANCELLED,
)

# Statuses whose payments only accept note edits through update_payment
NOTES_ONLY_STATUSES = {STATUS_COMPLETED, STATUS_REFUNDED, STATUS_CANCELLED}

COMPLETED_TARGETS = {STATUS_REFUNDED, STATUS_CANCELLED}


# =============================================================================
# PAYMENT METHODS (CONSTANTS)
# =============================================================================

METHOD_CASH = "CASH"
METHOD_CREDIT_CARD = "CREDIT_CARD"
METHOD_DEBIT_CARD = "DEBIT_CARD"
METHOD_BANK_TRANSFER = "BANK_TRANSFER"
METHOD_WIRE_TRANSFER = "WIRE_TRANSFER"
METHOD_CHECK = "CHECK"
METHOD_PSE = "PSE"
METHOD_OTHER = "OTHER"

VALID_METHODS = (
    METHOD_CASH,
    METHOD_CREDIT_CARD,
    METHOD_DEBIT_CARD,
    METHOD_BANK_TRANSFER,
    METHOD_WIRE_TRANSFER,
    METHOD_CHECK,
    METHOD_PSE,
    METHOD_OTHER,
)


# =============================================================================
# MESSAGES
# =============================================================================

MSG_NOT_FOUND = "Pago no encontrado"
MSG_REFUNDED_STATUS_LOCKED = "No se puede cambiar el estado de un pago reembolsado"
MSG_CANCELLED_STATUS_LOCKED = "No se puede cambiar el estado de un pago cancelado"
MSG_COMPLETED_TARGETS = "Un pago completado solo puede ser reembolsado o cancelado"
MSG_REFUND_REQUIRES_COMPLETED = "Solo se pueden reembolsar pagos completados"
MSG_REFUND_NOT_POSITIVE = "El monto de reembolso debe ser mayor a cero"
MSG_REFUND_EXCEEDS_AMOUNT = "El monto de reembolso no puede exceder el monto del pago"
MSG_DELETE_REQUIRES_PENDING = "Solo se pueden eliminar pagos pendientes"
MSG_NUMBER_CONFLICT = "No se pudo asignar un numero de pago, intente nuevamente"

NOTE_FULL_REFUND = "Reembolso completo procesado"
NOTE_PARTIAL_REFUND = "Reembolso parcial: ${amount}"
NOTE_SEPARATOR = " | "
REFUND_REFERENCE_PREFIX = "REF-"


# =============================================================================
# VALIDATION POLICIES
# =============================================================================

PAYMENT_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={
        "invoice_id",
        "customer_id",
        "customer_name",
        "invoice_number",
        "amount",
        "method",
        "status",
        "payment_date",
        "reference_number",
        "notes",
    },
    required_on_create={"invoice_id", "customer_id", "amount", "method"},
    choices={"method": VALID_METHODS, "status": VALID_STATUSES},
)

PAYMENT_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={"amount", "method", "notes", "reference_number", "payment_date"},
    choices={"method": VALID_METHODS},
)

SORTABLE_COLUMNS = {
    "payment_number": Payment.payment_number,
    "amount": Payment.amount,
    "payment_date": Payment.payment_date,
    "status": Payment.status,
    "method": Payment.method,
    "customer_name": func.coalesce(Payment.customer_name, ""),
    "created_at": Payment.created_at,
}
DEFAULT_SORT = "payment_date"


# =============================================================================
# QUERIES
# =============================================================================

def _get_payment(org_id: int, payment_id: int, *, lock: bool = False) -> Payment:
    query = scoped_query(Payment, org_id).filter(Payment.id == payment_id)
    if lock:
        query = lock_for_update(query)
    payment = query.first()
    if not payment:
        current_app.logger.warning("Payment not found: %s (org %s)", payment_id, org_id)
        raise NotFoundError(MSG_NOT_FOUND)
    return payment


def get_payment(org_id: int, payment_id: int) -> Payment:
    """
    Get a single payment.

    Raises:
        NotFoundError: If the payment does not exist in this tenant
    """
    return _get_payment(org_id, payment_id)


def list_payments(org_id: int, filters: dict | None = None) -> dict:
    """
    List payments with filtering, sorting and pagination.

    Filters (all optional):
        search: Case-insensitive match on payment number, customer name,
            invoice number or reference number
        status, method, customer_id, invoice_id: Exact matches
        start_date, end_date: Inclusive payment_date bounds (ISO-8601)
        min_amount, max_amount: Inclusive amount bounds
        sort_by: payment_number, amount, payment_date, status, method,
            customer_name, created_at (unknown values fall back to payment_date)
        sort_order: asc or desc (default desc)
        page, limit: 1-based page and page size

    Returns:
        {"data": [...], "meta": {"total", "page", "limit", "total_pages"}}
    """
    filters = filters or {}
    page = parse_int_arg("page", filters.get("page"), default=1, minimum=1)
    limit = parse_int_arg(
        "limit", filters.get("limit"),
        default=current_app.config.get("PAGINATION_DEFAULT_LIMIT", 10),
        minimum=1,
    )

    query = scoped_query(Payment, org_id)

    search = (filters.get("search") or "").strip()
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(
            Payment.payment_number.ilike(pattern),
            Payment.customer_name.ilike(pattern),
            Payment.invoice_number.ilike(pattern),
            Payment.reference_number.ilike(pattern),
        ))

    status = filters.get("status")
    if status:
        status = str(status).upper()
        if status not in VALID_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(VALID_STATUSES)}")
        query = query.filter(Payment.status == status)

    method = filters.get("method")
    if method:
        method = str(method).upper()
        if method not in VALID_METHODS:
            raise ValidationError(f"method must be one of: {', '.join(VALID_METHODS)}")
        query = query.filter(Payment.method == method)

    if filters.get("customer_id"):
        query = query.filter(Payment.customer_id == str(filters["customer_id"]))
    if filters.get("invoice_id"):
        query = query.filter(Payment.invoice_id == str(filters["invoice_id"]))

    start_date = parse_datetime_arg("start_date", filters.get("start_date"))
    if start_date:
        query = query.filter(Payment.payment_date >= start_date)
    end_date = parse_datetime_arg("end_date", filters.get("end_date"))
    if end_date:
        query = query.filter(Payment.payment_date <= end_date)

    min_amount = parse_int_arg("min_amount", filters.get("min_amount"))
    if min_amount is not None:
        query = query.filter(Payment.amount >= min_amount)
    max_amount = parse_int_arg("max_amount", filters.get("max_amount"))
    if max_amount is not None:
        query = query.filter(Payment.amount <= max_amount)

    sort_column = SORTABLE_COLUMNS.get(filters.get("sort_by") or DEFAULT_SORT, SORTABLE_COLUMNS[DEFAULT_SORT])
    if (filters.get("sort_order") or "desc").lower() == "asc":
        query = query.order_by(sort_column.asc(), Payment.id.asc())
    else:
        query = query.order_by(sort_column.desc(), Payment.id.desc())

    total = query.count()
    payments = query.offset((page - 1) * limit).limit(limit).all()

    return {
        "data": [p.to_dict() for p in payments],
        "meta": {
            "total": total,
            "page": page,
            "limit": limit,
            "total_pages": math.ceil(total / limit) if total > 0 else 0,
        },
    }


def get_payments_by_invoice(org_id: int, invoice_id: str) -> list[Payment]:
    return (
        scoped_query(Payment, org_id)
        .filter(Payment.invoice_id == str(invoice_id))
        .order_by(Payment.payment_date.desc(), Payment.id.desc())
        .all()
    )


def get_payments_by_customer(org_id: int, customer_id: str) -> list[Payment]:
    return (
        scoped_query(Payment, org_id)
        .filter(Payment.customer_id == str(customer_id))
        .order_by(Payment.payment_date.desc(), Payment.id.desc())
        .all()
    )


def get_recent_payments(org_id: int, limit: int = 5) -> list[Payment]:
    """Most recently created payments (dashboard widget)."""
    return (
        scoped_query(Payment, org_id)
        .order_by(Payment.created_at.desc(), Payment.id.desc())
        .limit(limit)
        .all()
    )


# =============================================================================
# PAYMENT CREATION
# =============================================================================

def create_payment(org_id: int, data: dict) -> Payment:
    """
    Register a new payment.

    Status defaults to PENDING and payment_date to now. The payment number
    is allocated inside the transaction; a collision with a concurrent
    creation is retried.

    Raises:
        ValidationError: If the payload is invalid
        ConflictError: If a payment number could not be allocated after retries
    """
    patch = validate_payload(model=Payment, payload=data, policy=PAYMENT_CREATE_POLICY, partial=False)
    enforce_rules_payment(patch)

    def _op():
        now = utcnow()
        payment = Payment(
            org_id=org_id,
            payment_number=generate_payment_number(org_id),
            invoice_id=patch["invoice_id"],
            customer_id=patch["customer_id"],
            customer_name=patch.get("customer_name"),
            invoice_number=patch.get("invoice_number"),
            amount=patch["amount"],
            method=patch["method"],
            status=patch.get("status") or STATUS_PENDING,
            payment_date=patch.get("payment_date") or now,
            reference_number=patch.get("reference_number"),
            notes=patch.get("notes"),
            created_at=now,
            updated_at=now,
        )
        db.session.add(payment)
        db.session.commit()
        return payment

    try:
        payment = run_with_retry(_op, retry_on=(IntegrityError,))
    except IntegrityError:
        raise ConflictError(MSG_NUMBER_CONFLICT)
    current_app.logger.info(
        "Payment created: %s (%s) amount=%s status=%s",
        payment.payment_number, payment.id, payment.amount, payment.status,
    )
    return payment


# =============================================================================
# UPDATES
# =============================================================================

def update_payment(org_id: int, payment_id: int, data: dict) -> Payment:
    """
    Apply a partial update to a payment.

    Completed, refunded and cancelled payments only accept notes; any other
    requested field is dropped (the call still succeeds).

    Raises:
        NotFoundError: If the payment does not exist in this tenant
        ValidationError: If an applied field is invalid
    """
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")

    def _op():
        payment = _get_payment(org_id, payment_id, lock=True)

        if payment.status in NOTES_ONLY_STATUSES:
            dropped = sorted(k for k in data if k != "notes")
            if dropped:
                current_app.logger.warning(
                    "Ignoring fields %s on %s payment %s; only notes can change",
                    ", ".join(dropped), payment.status, payment.payment_number,
                )
            allowed = {"notes": data["notes"]} if "notes" in data else {}
            patch = validate_payload(model=Payment, payload=allowed, policy=PAYMENT_UPDATE_POLICY, partial=True)
        else:
            patch = validate_payload(model=Payment, payload=data, policy=PAYMENT_UPDATE_POLICY, partial=True)
            enforce_rules_payment(patch)

        if not patch:
            return payment

        for key, value in patch.items():
            setattr(payment, key, value)
        payment.updated_at = utcnow()
        db.session.commit()
        return payment

    return run_with_retry(_op)


def update_payment_status(org_id: int, payment_id: int, status: str) -> Payment:
    """
    Move a payment to a new status.

    Raises:
        NotFoundError: If the payment does not exist in this tenant
        ValidationError: If status is not a known status
        InvalidStateError: If the transition is not allowed
    """
    target = (status or "").upper().strip()
    if target not in VALID_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(VALID_STATUSES)}")

    def _op():
        payment = _get_payment(org_id, payment_id, lock=True)

        if payment.status == STATUS_REFUNDED:
            raise InvalidStateError(MSG_REFUNDED_STATUS_LOCKED)
        if payment.status == STATUS_CANCELLED:
            raise InvalidStateError(MSG_CANCELLED_STATUS_LOCKED)
        if payment.status == STATUS_COMPLETED and target not in COMPLETED_TARGETS:
            raise InvalidStateError(MSG_COMPLETED_TARGETS)

        previous = payment.status
        payment.status = target
        payment.updated_at = utcnow()
        db.session.commit()

        current_app.logger.info(
            "Payment %s status changed: %s -> %s", payment.payment_number, previous, target,
        )
        return payment

    return run_with_retry(_op)


# =============================================================================
# REFUNDS
# =============================================================================

def format_amount(amount: int) -> str:
    """Thousands-separated amount, e.g. 500000 -> "500,000"."""
    return f"{amount:,}"


def _append_note(existing: str | None, note: str) -> str:
    if existing:
        return f"{existing}{NOTE_SEPARATOR}{note}"
    return note


def _coerce_refund_amount(refund_amount) -> int:
    if isinstance(refund_amount, bool):
        raise ValidationError("El monto de reembolso debe ser un numero entero")
    if isinstance(refund_amount, float):
        if not refund_amount.is_integer():
            raise ValidationError("El monto de reembolso debe ser un numero entero")
        return int(refund_amount)
    if isinstance(refund_amount, int):
        return refund_amount
    try:
        return int(str(refund_amount).strip())
    except ValueError:
        raise ValidationError("El monto de reembolso debe ser un numero entero")


def refund_payment(org_id: int, payment_id: int, refund_amount=None) -> Payment:
    """
    Refund a completed payment, fully or partially.

    Full refund (amount omitted or equal to the payment amount): the original
    becomes REFUNDED and is returned.

    Partial refund: the original keeps its status and gets a note; a new
    REFUNDED record with a negative amount is created and returned.

    Full vs partial is decided by numeric equality with the original amount.

    Raises:
        NotFoundError: If the payment does not exist in this tenant
        InvalidStateError: If the payment is not COMPLETED
        ValidationError: If the refund amount is <= 0 or exceeds the amount
    """
    requested = None if refund_amount is None else _coerce_refund_amount(refund_amount)

    def _op():
        original = _get_payment(org_id, payment_id, lock=True)

        if original.status != STATUS_COMPLETED:
            raise InvalidStateError(MSG_REFUND_REQUIRES_COMPLETED)

        amount = original.amount if requested is None else requested
        if amount <= 0:
            raise ValidationError(MSG_REFUND_NOT_POSITIVE)
        if amount > original.amount:
            raise ValidationError(MSG_REFUND_EXCEEDS_AMOUNT)

        now = utcnow()

        if amount == original.amount:
            original.status = STATUS_REFUNDED
            original.refund_amount = amount
            original.refunded_at = now
            original.notes = _append_note(original.notes, NOTE_FULL_REFUND)
            original.updated_at = now
            db.session.commit()
            return original

        original.notes = _append_note(
            original.notes, NOTE_PARTIAL_REFUND.format(amount=format_amount(amount)),
        )
        original.updated_at = now

        offset = Payment(
            org_id=org_id,
            payment_number=generate_payment_number(org_id),
            invoice_id=original.invoice_id,
            customer_id=original.customer_id,
            customer_name=original.customer_name,
            invoice_number=original.invoice_number,
            amount=-amount,
            method=original.method,
            status=STATUS_REFUNDED,
            payment_date=now,
            reference_number=f"{REFUND_REFERENCE_PREFIX}{original.payment_number}",
            refund_amount=amount,
            refunded_at=now,
            original_payment_id=original.id,
            created_at=now,
            updated_at=now,
        )
        db.session.add(offset)
        db.session.commit()
        return offset

    try:
        result = run_with_retry(_op, retry_on=(IntegrityError,))
    except IntegrityError:
        raise ConflictError(MSG_NUMBER_CONFLICT)
    current_app.logger.info(
        "Refund processed on payment %s: %s (%s)",
        payment_id, result.refund_amount,
        "full" if result.id == payment_id else f"partial, offset {result.payment_number}",
    )
    return result


# =============================================================================
# DELETION
# =============================================================================

def delete_payment(org_id: int, payment_id: int) -> None:
    """
    Permanently delete a pending payment.

    Raises:
        NotFoundError: If the payment does not exist in this tenant
        InvalidStateError: If the payment is not PENDING
    """
    def _op():
        payment = _get_payment(org_id, payment_id, lock=True)
        if payment.status != STATUS_PENDING:
            raise InvalidStateError(MSG_DELETE_REQUIRES_PENDING)
        number = payment.payment_number
        db.session.delete(payment)
        db.session.commit()
        return number

    number = run_with_retry(_op)
    current_app.logger.info("Payment deleted: %s (%s)", number, payment_id)
