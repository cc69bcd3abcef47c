"""
Pydantic schemas for the audit ledger.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from governance.domain.actor import ActorKind
from governance.schemas.pagination import PaginationParams


class AuditEvent(BaseModel):
    """What happened. The ledger adds who, when and from where."""
    action: str = Field(..., description="e.g. knowledge.approve")
    resource_type: str = Field(..., description="e.g. knowledge_item")
    resource_id: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)


class AuditLogRecord(BaseModel):
    """Row to be inserted. Built by the ledger from actor + event."""
    actor_id: Optional[str] = None
    actor_type: ActorKind
    action: str
    resource_type: str
    resource_id: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    request_id: Optional[str] = None


class AuditLogEntry(AuditLogRecord):
    """Stored, immutable audit entry."""
    id: int
    timestamp: datetime

    class Config:
        from_attributes = True


class AuditQuery(PaginationParams):
    """Filters for querying the ledger."""
    actor_id: Optional[str] = None
    actor_type: Optional[ActorKind] = None
    action: Optional[str] = None
    resource_type: Optional[str] = None
    resource_id: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    def normalized(self) -> "AuditQuery":
        page = super().normalized()
        return self.model_copy(update={"limit": page.limit})
