from __future__ import annotations

from ..extensions import db
from posledger.time_utils import to_utc_z


class Branch(db.Model):
    """
    Business branch (sales outlet).

    Sales, receivables and payables are reported per branch; warehouses
    belong to a branch.
    """
    __tablename__ = "branches"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    code = db.Column(db.String(32), nullable=False, unique=True, index=True)
    location = db.Column(db.String(255), nullable=True)

    status = db.Column(db.String(16), nullable=False, default="active", index=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Branch id={self.id} code={self.code!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "location": self.location,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
        }
