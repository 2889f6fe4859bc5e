from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Notification(db.Model):
    """
    In-app notification shown in the header dropdown and notifications page.

    INVARIANT: read_at is set if and only if read is True.
    user_id is optional; NULL means the notification is visible org-wide.
    """
    __tablename__ = "notifications"
    __table_args__ = (
        db.Index("ix_notifications_org_read", "org_id", "read"),
        db.Index("ix_notifications_org_created", "org_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    user_id = db.Column(db.String(64), nullable=True, index=True)

    type = db.Column(db.String(32), nullable=False, index=True)
    title = db.Column(db.String(255), nullable=False)
    message = db.Column(db.Text, nullable=False)
    priority = db.Column(db.String(16), nullable=False, default="MEDIUM")  # LOW, MEDIUM, HIGH, URGENT

    read = db.Column(db.Boolean, nullable=False, default=False)
    read_at = db.Column(db.DateTime(timezone=True), nullable=True)

    link = db.Column(db.String(512), nullable=True)
    # "metadata" is reserved on declarative models
    metadata_json = db.Column("metadata", db.JSON, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self):
        return {
            "id": self.id,
            "org_id": self.org_id,
            "user_id": self.user_id,
            "type": self.type,
            "title": self.title,
            "message": self.message,
            "priority": self.priority,
            "read": self.read,
            "read_at": to_utc_z(self.read_at),
            "link": self.link,
            "metadata": self.metadata_json,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
