"""
AuditLog model.

Audit logs provide an append-only trail of every effectful action.
"""

from sqlalchemy import Column, DateTime, Index, Integer, String, Text, Enum as SQLEnum

from governance.database import Base
from governance.domain.actor import ActorKind
from governance.models.resource import JSONType, utcnow


class AuditLog(Base):
    """
    AuditLog: Append-only trail of governance actions.

    Audit logs are NEVER modified or deleted (a database trigger rejects
    UPDATE and DELETE). The integer id is the insertion order and the
    pagination cursor.
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # Who
    actor_id = Column(String(255), nullable=True)  # null for system and ai actors
    actor_type = Column(
        SQLEnum(ActorKind, name="actor_kind", values_callable=lambda x: [e.value for e in x]),
        nullable=False
    )

    # What
    action = Column(String(100), nullable=False)  # e.g. knowledge.approve
    resource_type = Column(String(50), nullable=False)
    resource_id = Column(String(255), nullable=True)
    details = Column(JSONType, nullable=False, default=dict)

    # Provenance
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(Text, nullable=True)
    request_id = Column(String(64), nullable=True)
    timestamp = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        Index("idx_audit_logs_resource", "resource_type", "resource_id", "id"),
        Index("idx_audit_logs_actor", "actor_id", "id"),
        Index("idx_audit_logs_action", "action"),
        Index("idx_audit_logs_timestamp", "timestamp"),
    )

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', resource='{self.resource_type}:{self.resource_id}')>"
