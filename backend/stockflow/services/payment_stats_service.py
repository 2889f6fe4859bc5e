# Overview: Dashboard aggregates over a tenant's payments.

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from ..extensions import db
from ..models import Payment
from ..time_utils import start_of_day, start_of_week, utcnow
from .payment_service import (
    STATUS_COMPLETED,
    STATUS_PENDING,
    STATUS_PROCESSING,
    VALID_METHODS,
    VALID_STATUSES,
)


def _as_naive_utc(dt: datetime | None) -> datetime | None:
    if dt is None or dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def get_payment_stats(org_id: int, now: datetime | None = None) -> dict:
    """
    Summarize a tenant's payments for the dashboard.

    Totals are sums of amounts per status; counts include every payment
    (refund offset records too). today_total / week_total only add up
    COMPLETED payments dated inside the window. Windows are half-open:
    today is [00:00, next 00:00) UTC, the week is [preceding Sunday 00:00,
    following Sunday 00:00). Future-dated payments fall outside both.

    Every status and method key is always present, so the UI can render
    zeros without guarding.
    """
    now = _as_naive_utc(now) or utcnow()
    today_start = start_of_day(now)
    today_end = today_start + timedelta(days=1)
    week_start = start_of_week(now)
    week_end = week_start + timedelta(days=7)

    rows = (
        db.session.query(
            Payment.status,
            Payment.method,
            Payment.amount,
            Payment.refund_amount,
            Payment.payment_date,
        )
        .filter(Payment.org_id == org_id)
        .all()
    )

    by_status = {status: 0 for status in VALID_STATUSES}
    by_method = {method: 0 for method in VALID_METHODS}
    totals = {STATUS_COMPLETED: 0, STATUS_PENDING: 0, STATUS_PROCESSING: 0}
    total_refunded = 0
    positive_sum = 0
    positive_count = 0
    today_payments = today_total = 0
    week_payments = week_total = 0

    for status, method, amount, refund_amount, payment_date in rows:
        by_status[status] = by_status.get(status, 0) + 1
        by_method[method] = by_method.get(method, 0) + 1

        if status in totals:
            totals[status] += amount
        if refund_amount:
            total_refunded += refund_amount
        if amount > 0:
            positive_sum += amount
            positive_count += 1

        payment_date = _as_naive_utc(payment_date)
        if payment_date is None:
            continue
        if today_start <= payment_date < today_end:
            today_payments += 1
            if status == STATUS_COMPLETED:
                today_total += amount
        if week_start <= payment_date < week_end:
            week_payments += 1
            if status == STATUS_COMPLETED:
                week_total += amount

    return {
        "total_payments": len(rows),
        "total_received": totals[STATUS_COMPLETED],
        "total_pending": totals[STATUS_PENDING],
        "total_refunded": total_refunded,
        "total_processing": totals[STATUS_PROCESSING],
        "average_payment_value": (positive_sum / positive_count) if positive_count else 0,
        "payments_by_status": by_status,
        "payments_by_method": by_method,
        "today_payments": today_payments,
        "today_total": today_total,
        "week_payments": week_payments,
        "week_total": week_total,
    }
