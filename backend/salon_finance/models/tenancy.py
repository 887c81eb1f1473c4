from __future__ import annotations

from ..extensions import db
from salon_finance.time_utils import to_utc_z

class Company(db.Model):
    """
    Tenant root: every salon business is a Company.

    WHY: Accounts, transactions, sessions and sales are all scoped to one
    company. No data may cross company boundaries.

    DESIGN:
    - Branches belong to companies (company_id FK)
    - Every service call carries company_id explicitly
    """
    __tablename__ = "companies"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    code = db.Column(db.String(32), nullable=True, unique=True, index=True)
    currency = db.Column(db.String(8), nullable=False, default="EGP")

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Company id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "currency": self.currency,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

class Branch(db.Model):
    """
    Salon branch within a company.

    Branch names and codes are unique within a company, not globally.
    Stock levels, register sessions and sale numbering are per branch.
    """
    __tablename__ = "branches"
    __table_args__ = (
        db.UniqueConstraint("company_id", "name", name="uq_branches_company_name"),
        db.UniqueConstraint("company_id", "code", name="uq_branches_company_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    code = db.Column(db.String(32), nullable=True, index=True)

    timezone = db.Column(db.String(64), nullable=False, default="UTC")
    tax_rate_bps = db.Column(db.Integer, nullable=False, default=0)  # Basis points (e.g., 1400 = 14%)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )

    company = db.relationship("Company", backref=db.backref("branches", lazy=True))

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Branch id={self.id} name={self.name!r} company_id={self.company_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "name": self.name,
            "code": self.code,
            "timezone": self.timezone,
            "tax_rate_bps": self.tax_rate_bps,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
        }
