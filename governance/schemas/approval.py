"""
Pydantic schemas for approval requests.

An approval request is opened when a governed resource is submitted for
review, and is resolved by a reviewer independently of the resource itself.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class ApprovalAction(str, Enum):
    """What the requester wants done once the resource is approved."""
    PUBLISH = "publish"
    ACTIVATE = "activate"
    ARCHIVE = "archive"


class ApprovalStatus(str, Enum):
    """Status of approval requests."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELED = "canceled"


class ApprovalRequestCreate(BaseModel):
    """Parameters for opening an approval request."""
    resource_type: str = Field(..., description="knowledge_item or system_prompt")
    resource_id: str
    action: ApprovalAction
    notes: Optional[str] = None


class ApprovalRequestResponse(BaseModel):
    """Stored approval request."""
    id: UUID
    resource_type: str
    resource_id: str
    action: ApprovalAction
    status: ApprovalStatus
    requester_id: str
    reviewer_id: Optional[str] = None
    request_notes: Optional[str] = None
    review_notes: Optional[str] = None
    created_at: datetime
    reviewed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ApprovalRequestFilters(BaseModel):
    """Filters for listing approval requests."""
    resource_type: Optional[str] = None
    status: Optional[ApprovalStatus] = ApprovalStatus.PENDING


class ApprovalReviewRequest(BaseModel):
    """Body for approving or rejecting a request over HTTP."""
    notes: Optional[str] = Field(None, description="Review notes")
