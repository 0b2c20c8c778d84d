from __future__ import annotations

from ..extensions import db
from inventario.time_utils import to_utc_z


class Setting(db.Model):
    """
    Organization-level key/value setting.

    Values are stored as strings; the owning service parses them
    (e.g., exchange_rate -> Decimal).
    """
    __tablename__ = "settings"
    __table_args__ = (
        db.UniqueConstraint("organization_id", "key", name="uq_settings_org_key"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(
        db.Integer, db.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    key = db.Column(db.String(64), nullable=False)
    value = db.Column(db.String(255), nullable=False)

    updated_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self) -> dict:
        return {
            "organization_id": self.organization_id,
            "key": self.key,
            "value": self.value,
            "updated_by_user_id": self.updated_by_user_id,
            "updated_at": to_utc_z(self.updated_at),
        }
