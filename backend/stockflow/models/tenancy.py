from __future__ import annotations

from ..extensions import db


class Organization(db.Model):
    """
    Tenant. Payments and notifications each carry the org_id they belong to.

    Deactivating an organization keeps its data but makes @require_tenant
    reject its requests.
    """
    __tablename__ = "organizations"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    # Used by the CLI (`system init --code`, `orgs create --code`)
    code = db.Column(db.String(32), nullable=True, unique=True, index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Organization {self.id} {self.code or self.name!r}>"
