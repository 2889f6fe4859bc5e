# Overview: Service-layer operations for in-app notifications.

"""
Notification Service

WHY: The header bell and the notifications page both read the same
per-tenant feed and unread counter. Read/unread toggles are idempotent so a
client retrying after a timeout never double-counts.

All functions take org_id explicitly. Bulk operations only touch rows of the
given tenant; ids belonging to another tenant are silently skipped.
"""

from __future__ import annotations

import math

from flask import current_app
from sqlalchemy import func, or_

from ..extensions import db
from ..models import Notification
from ..time_utils import utcnow
from ..validation import (
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    parse_bool_arg,
    parse_int_arg,
    validate_payload,
)
from .tenant_service import scoped_query


NOTIFICATION_TYPES = (
    "LOW_STOCK",
    "OUT_OF_STOCK",
    "NEW_INVOICE",
    "INVOICE_PAID",
    "INVOICE_OVERDUE",
    "PAYMENT_RECEIVED",
    "PAYMENT_FAILED",
    "NEW_CUSTOMER",
    "REPORT_READY",
    "SYSTEM",
    "INFO",
    "WARNING",
    "SUCCESS",
    "ERROR",
)

NOTIFICATION_PRIORITIES = ("LOW", "MEDIUM", "HIGH", "URGENT")
DEFAULT_PRIORITY = "MEDIUM"

MSG_NOT_FOUND = "Notificacion no encontrada"

NOTIFICATION_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={"user_id", "type", "title", "message", "priority", "link"},
    required_on_create={"type", "title", "message"},
    choices={"type": NOTIFICATION_TYPES, "priority": NOTIFICATION_PRIORITIES},
)


def _get_notification(org_id: int, notification_id: int) -> Notification:
    notification = (
        scoped_query(Notification, org_id)
        .filter(Notification.id == notification_id)
        .first()
    )
    if not notification:
        current_app.logger.warning("Notification not found: %s (org %s)", notification_id, org_id)
        raise NotFoundError(MSG_NOT_FOUND)
    return notification


def _parse_ids(ids) -> list[int]:
    if not isinstance(ids, (list, tuple)):
        raise ValidationError("ids must be a list of notification ids")
    parsed = []
    for value in ids:
        if isinstance(value, bool):
            raise ValidationError("ids must contain integers")
        try:
            parsed.append(int(value))
        except (TypeError, ValueError):
            raise ValidationError("ids must contain integers")
    return parsed


# =============================================================================
# QUERIES
# =============================================================================

def get_notification(org_id: int, notification_id: int) -> Notification:
    return _get_notification(org_id, notification_id)


def get_unread_count(org_id: int) -> int:
    return scoped_query(Notification, org_id).filter(Notification.read.is_(False)).count()


def get_unread_summary(org_id: int) -> dict:
    """
    Unread counter for the header badge, broken down by type and priority.

    Every known type and priority key is present (zero when none).
    """
    rows = (
        db.session.query(Notification.type, Notification.priority, func.count(Notification.id))
        .filter(Notification.org_id == org_id, Notification.read.is_(False))
        .group_by(Notification.type, Notification.priority)
        .all()
    )

    by_type = {t: 0 for t in NOTIFICATION_TYPES}
    by_priority = {p: 0 for p in NOTIFICATION_PRIORITIES}
    total = 0
    for notification_type, priority, count in rows:
        by_type[notification_type] = by_type.get(notification_type, 0) + count
        by_priority[priority] = by_priority.get(priority, 0) + count
        total += count

    return {"count": total, "by_type": by_type, "by_priority": by_priority}


def get_recent_notifications(org_id: int, limit=5) -> list[Notification]:
    """Newest notifications for the header dropdown; limit is capped."""
    cap = current_app.config.get("NOTIFICATIONS_RECENT_MAX", 20)
    limit = min(parse_int_arg("limit", limit, default=5, minimum=1), cap)
    return (
        scoped_query(Notification, org_id)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(limit)
        .all()
    )


def list_notifications(org_id: int, filters: dict | None = None) -> dict:
    """
    List notifications, newest first.

    Filters: type, priority, read (true/false), search (title or message),
    page, limit. meta.unread_count is the tenant-wide unread counter and is
    not affected by the filters.
    """
    filters = filters or {}
    page = parse_int_arg("page", filters.get("page"), default=1, minimum=1)
    limit = parse_int_arg(
        "limit", filters.get("limit"),
        default=current_app.config.get("PAGINATION_DEFAULT_LIMIT", 10),
        minimum=1,
    )

    query = scoped_query(Notification, org_id)

    if filters.get("type"):
        query = query.filter(Notification.type == str(filters["type"]).upper())
    if filters.get("priority"):
        query = query.filter(Notification.priority == str(filters["priority"]).upper())

    read = parse_bool_arg("read", filters.get("read"))
    if read is not None:
        query = query.filter(Notification.read.is_(read))

    search = (filters.get("search") or "").strip()
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(
            Notification.title.ilike(pattern),
            Notification.message.ilike(pattern),
        ))

    total = query.count()
    rows = (
        query.order_by(Notification.created_at.desc(), Notification.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    return {
        "data": [n.to_dict() for n in rows],
        "meta": {
            "total": total,
            "page": page,
            "limit": limit,
            "total_pages": math.ceil(total / limit) if total > 0 else 0,
            "unread_count": get_unread_count(org_id),
        },
    }


# =============================================================================
# MUTATIONS
# =============================================================================

def create_notification(org_id: int, data: dict) -> Notification:
    """
    Create a notification for the tenant (optionally addressed to user_id).

    Raises:
        ValidationError: If the payload is invalid
    """
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")

    payload = dict(data)
    metadata = payload.pop("metadata", None)
    if metadata is not None and not isinstance(metadata, dict):
        raise ValidationError("metadata must be an object")

    patch = validate_payload(
        model=Notification, payload=payload, policy=NOTIFICATION_CREATE_POLICY, partial=False,
    )

    now = utcnow()
    notification = Notification(
        org_id=org_id,
        user_id=patch.get("user_id"),
        type=patch["type"],
        title=patch["title"],
        message=patch["message"],
        priority=patch.get("priority") or DEFAULT_PRIORITY,
        link=patch.get("link"),
        metadata_json=metadata,
        read=False,
        created_at=now,
        updated_at=now,
    )
    db.session.add(notification)
    db.session.commit()

    current_app.logger.info(
        "Notification created: %s [%s/%s] %s",
        notification.id, notification.type, notification.priority, notification.title,
    )
    return notification


def mark_as_read(org_id: int, notification_id: int) -> Notification:
    notification = _get_notification(org_id, notification_id)
    if notification.read:
        return notification
    now = utcnow()
    notification.read = True
    notification.read_at = now
    notification.updated_at = now
    db.session.commit()
    return notification


def mark_as_unread(org_id: int, notification_id: int) -> Notification:
    notification = _get_notification(org_id, notification_id)
    if not notification.read:
        return notification
    notification.read = False
    notification.read_at = None
    notification.updated_at = utcnow()
    db.session.commit()
    return notification


def mark_many_as_read(org_id: int, ids) -> dict:
    """Mark the given notifications as read; updated_count counts actual changes."""
    parsed = _parse_ids(ids)
    if not parsed:
        return {"success": True, "updated_count": 0}

    now = utcnow()
    updated = (
        scoped_query(Notification, org_id)
        .filter(Notification.id.in_(parsed), Notification.read.is_(False))
        .update(
            {"read": True, "read_at": now, "updated_at": now},
            synchronize_session=False,
        )
    )
    db.session.commit()
    current_app.logger.info("Marked %s notifications as read (org %s)", updated, org_id)
    return {"success": True, "updated_count": updated}


def mark_all_as_read(org_id: int) -> dict:
    now = utcnow()
    updated = (
        scoped_query(Notification, org_id)
        .filter(Notification.read.is_(False))
        .update(
            {"read": True, "read_at": now, "updated_at": now},
            synchronize_session=False,
        )
    )
    db.session.commit()
    current_app.logger.info("Marked all %s notifications as read (org %s)", updated, org_id)
    return {"success": True, "updated_count": updated}


def delete_notification(org_id: int, notification_id: int) -> None:
    notification = _get_notification(org_id, notification_id)
    db.session.delete(notification)
    db.session.commit()


def delete_many(org_id: int, ids) -> dict:
    parsed = _parse_ids(ids)
    if not parsed:
        return {"success": True, "deleted_count": 0}

    deleted = (
        scoped_query(Notification, org_id)
        .filter(Notification.id.in_(parsed))
        .delete(synchronize_session=False)
    )
    db.session.commit()
    current_app.logger.info("Deleted %s notifications (org %s)", deleted, org_id)
    return {"success": True, "deleted_count": deleted}


def clear_read(org_id: int) -> dict:
    """Delete every read notification of the tenant."""
    deleted = (
        scoped_query(Notification, org_id)
        .filter(Notification.read.is_(True))
        .delete(synchronize_session=False)
    )
    db.session.commit()
    current_app.logger.info("Cleared %s read notifications (org %s)", deleted, org_id)
    return {"success": True, "deleted_count": deleted}
