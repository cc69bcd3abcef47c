"""
ApprovalRequest model.

Opened when a governed resource is submitted for review; resolved by a
reviewer (approved/rejected) or withdrawn by the requester (canceled).
"""

from uuid import uuid4

from sqlalchemy import Column, DateTime, Index, String, Text, Uuid, Enum as SQLEnum

from governance.database import Base
from governance.models.resource import utcnow
from governance.schemas.approval import ApprovalAction, ApprovalStatus


class ApprovalRequest(Base):
    """
    ApprovalRequest: Review request for one governed resource.

    Safety invariants:
    - Only pending requests change status
    - Every status change is logged to the audit ledger
    """
    __tablename__ = "approval_requests"

    id = Column(Uuid, primary_key=True, default=uuid4)

    # Target resource
    resource_type = Column(String(50), nullable=False)
    resource_id = Column(String(255), nullable=False)
    action = Column(
        SQLEnum(ApprovalAction, name="approval_action", values_callable=lambda x: [e.value for e in x]),
        nullable=False
    )

    status = Column(
        SQLEnum(ApprovalStatus, name="approval_status", values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        default=ApprovalStatus.PENDING
    )

    requester_id = Column(String(255), nullable=False)
    request_notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    # Review information (filled when resolved)
    reviewer_id = Column(String(255), nullable=True)
    review_notes = Column(Text, nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("idx_approval_requests_status", "status", "created_at"),
        Index("idx_approval_requests_resource", "resource_type", "resource_id"),
    )

    def __repr__(self):
        return f"<ApprovalRequest(id={self.id}, action='{self.action.value}', status='{self.status.value}')>"
