from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Payment(db.Model):
    """
    Payment recorded against an invoice.

    WHY: Track how customers pay invoices and what happens to the money
    afterwards (processing, failure, cancellation, refunds).

    STATUSES:
    - PENDING: Registered, not yet confirmed (default)
    - PROCESSING: Confirmation in progress (card/PSE gateways)
    - COMPLETED: Money received
    - FAILED: Attempt rejected
    - REFUNDED: Fully refunded, or a partial-refund offset record
    - CANCELLED: Voided by the business

    REFUNDS: A full refund flips the original to REFUNDED. A partial refund
    leaves the original COMPLETED and adds an offset record with a negative
    amount pointing back through original_payment_id.

    AMOUNTS: Whole currency units (COP has no minor unit in practice).
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.UniqueConstraint("org_id", "payment_number", name="uq_payments_org_number"),
        # Composite index for tenant-scoped listing by status and date
        db.Index("ix_payments_org_status_date", "org_id", "status", "payment_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)

    # Human-readable number (e.g., "PAG-2024-0001")
    payment_number = db.Column(db.String(32), nullable=False)

    # Invoice/customer references are owned by other modules
    invoice_id = db.Column(db.String(64), nullable=False, index=True)
    customer_id = db.Column(db.String(64), nullable=False, index=True)
    customer_name = db.Column(db.String(255), nullable=True)
    invoice_number = db.Column(db.String(64), nullable=True)

    # Positive for payments, negative for partial-refund offsets
    amount = db.Column(db.Integer, nullable=False)
    method = db.Column(db.String(32), nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default="PENDING", index=True)

    payment_date = db.Column(db.DateTime(timezone=True), nullable=False)
    reference_number = db.Column(db.String(128), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    # Refund tracking
    refund_amount = db.Column(db.Integer, nullable=True)
    refunded_at = db.Column(db.DateTime(timezone=True), nullable=True)
    original_payment_id = db.Column(db.Integer, db.ForeignKey("payments.id"), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    original_payment = db.relationship(
        "Payment",
        remote_side=[id],
        backref=db.backref("refund_records", lazy=True),
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Payment id={self.id} number={self.payment_number!r} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "payment_number": self.payment_number,
            "invoice_id": self.invoice_id,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "invoice_number": self.invoice_number,
            "amount": self.amount,
            "method": self.method,
            "status": self.status,
            "payment_date": to_utc_z(self.payment_date),
            "reference_number": self.reference_number,
            "notes": self.notes,
            "refund_amount": self.refund_amount,
            "refunded_at": to_utc_z(self.refunded_at) if self.refunded_at else None,
            "original_payment_id": self.original_payment_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
