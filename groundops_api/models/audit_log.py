# groundops_api/models/audit_log.py
from __future__ import annotations

from datetime import datetime
from typing import Optional, Dict, Any

from sqlalchemy import CheckConstraint, Index
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from groundops_api.extensions import db

ACTIONS = ("CREATE", "UPDATE", "DELETE", "LOGIN", "LOGOUT")

# JSONB on postgres, plain JSON elsewhere (sqlite in tests)
_Snapshot = db.JSON().with_variant(JSONB(), "postgresql")


class AuditLog(db.Model):
    """
    Append-only trail of mutations on tracked entities.

    old_values / new_values hold point-in-time snapshots (plain dicts), never
    references to live rows. No updated_at: rows are never modified.
    """

    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(index=True, nullable=False)  # actor
    action: Mapped[str] = mapped_column(db.String(50), nullable=False)
    entity_type: Mapped[str] = mapped_column(db.String(50), index=True, nullable=False)
    entity_id: Mapped[int] = mapped_column(nullable=False)
    old_values: Mapped[Optional[Dict[str, Any]]] = mapped_column(_Snapshot, nullable=True)
    new_values: Mapped[Optional[Dict[str, Any]]] = mapped_column(_Snapshot, nullable=True)
    source_address: Mapped[Optional[str]] = mapped_column(db.String(45), nullable=True)
    client_agent: Mapped[Optional[str]] = mapped_column(db.Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=datetime.utcnow)

    __table_args__ = (
        CheckConstraint(
            "action in ('CREATE','UPDATE','DELETE','LOGIN','LOGOUT')", name="ck_audit_action"
        ),
        Index("ix_audit_entity", "entity_type", "entity_id"),
        Index("ix_audit_created_at", "created_at"),
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "action": self.action,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "old_values": self.old_values,
            "new_values": self.new_values,
            "source_address": self.source_address,
            "client_agent": self.client_agent,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
