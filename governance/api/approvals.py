"""
Approvals API Router.

Reviewer queue for approval requests opened on submit.

Safety invariants:
- Only pending requests can be approved, rejected or canceled
- Every approval/rejection/cancellation is logged to the audit ledger
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from governance.api.dependencies import get_actor, get_approval_service
from governance.api.responses import respond
from governance.config import settings
from governance.domain.actor import ActorContext
from governance.schemas.approval import ApprovalRequestFilters, ApprovalReviewRequest, ApprovalStatus
from governance.schemas.pagination import PaginationParams
from governance.services.approval_requests import ApprovalRequestService

router = APIRouter(prefix="/approvals", tags=["approvals"])


@router.get("")
async def list_approval_requests(
    status: Optional[ApprovalStatus] = Query(ApprovalStatus.PENDING, description="Filter by status"),
    resource_type: Optional[str] = Query(None, description="knowledge_item or system_prompt"),
    cursor: Optional[str] = Query(None),
    limit: int = Query(settings.default_page_limit),
    actor: ActorContext = Depends(get_actor),
    service: ApprovalRequestService = Depends(get_approval_service)
) -> JSONResponse:
    """
    List approval requests, oldest first.

    Requires a review permission.
    """
    result = await service.list_pending(
        actor,
        ApprovalRequestFilters(status=status, resource_type=resource_type),
        PaginationParams(cursor=cursor, limit=limit),
    )
    return respond(result, actor)


@router.get("/{request_id}")
async def get_approval_request(
    request_id: UUID,
    actor: ActorContext = Depends(get_actor),
    service: ApprovalRequestService = Depends(get_approval_service)
) -> JSONResponse:
    return respond(await service.get(actor, request_id), actor)


@router.post("/{request_id}/approve")
async def approve_request(
    request_id: UUID,
    body: ApprovalReviewRequest = ApprovalReviewRequest(),
    actor: ActorContext = Depends(get_actor),
    service: ApprovalRequestService = Depends(get_approval_service)
) -> JSONResponse:
    """Approve a pending request. The requester cannot approve their own."""
    return respond(await service.approve(actor, request_id, body.notes), actor)


@router.post("/{request_id}/reject")
async def reject_request(
    request_id: UUID,
    body: ApprovalReviewRequest = ApprovalReviewRequest(),
    actor: ActorContext = Depends(get_actor),
    service: ApprovalRequestService = Depends(get_approval_service)
) -> JSONResponse:
    return respond(await service.reject(actor, request_id, body.notes), actor)


@router.post("/{request_id}/cancel")
async def cancel_request(
    request_id: UUID,
    actor: ActorContext = Depends(get_actor),
    service: ApprovalRequestService = Depends(get_approval_service)
) -> JSONResponse:
    """Withdraw a pending request. Requester only."""
    return respond(await service.cancel(actor, request_id), actor)
