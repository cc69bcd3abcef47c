"""
Approval Request Service.

Review requests opened when a governed resource is submitted.

GUARDRAILS:
- AI actors cannot open, approve, reject or cancel requests
- Listing and resolving requires a review permission (knowledge or prompt)
- Requesters cannot approve their own request; the system actor is exempt
- Only the requester (or the system actor) can cancel
- Only pending requests change status
- Every effect is logged to the audit ledger as approval.*
"""

from typing import List, Optional, Protocol
from uuid import UUID

from governance.domain.actor import ActorContext, ActorKind
from governance.domain.lifecycle import KNOWLEDGE_PROFILE, PROMPT_PROFILE
from governance.domain.permissions import actor_user_id, has_permission
from governance.domain.result import ErrorCode, Result, failure, success
from governance.logging import get_logger
from governance.schemas.approval import (
    ApprovalRequestCreate,
    ApprovalRequestFilters,
    ApprovalRequestResponse,
    ApprovalStatus,
)
from governance.schemas.audit import AuditEvent
from governance.schemas.pagination import Page, PaginationParams, normalize_pagination
from governance.services.audit_ledger import AuditLedger
from governance.services.ports import InvalidCursorError, ResourceNotFoundError, StaleStateError

logger = get_logger(__name__)

APPROVAL_RESOURCE_TYPE = "approval_request"

REVIEW_PERMISSIONS: List[str] = [
    KNOWLEDGE_PROFILE.permissions.review,
    PROMPT_PROFILE.permissions.review,
]


class ApprovalStore(Protocol):
    """Persistence for approval requests."""

    async def create(self, requester_id: str, params: ApprovalRequestCreate) -> ApprovalRequestResponse:
        ...

    async def get(self, request_id: UUID) -> Optional[ApprovalRequestResponse]:
        ...

    async def list(
        self,
        filters: ApprovalRequestFilters,
        pagination: PaginationParams
    ) -> Page[ApprovalRequestResponse]:
        ...

    async def resolve(
        self,
        request_id: UUID,
        status: ApprovalStatus,
        reviewer_id: Optional[str],
        notes: Optional[str] = None,
    ) -> ApprovalRequestResponse:
        """Move a pending request to status. Raises StaleStateError if no longer pending."""
        ...


def has_review_permission(actor: ActorContext) -> bool:
    """Any review grant (knowledge or prompt) lets an actor work the queue."""
    return any(has_permission(actor, permission) for permission in REVIEW_PERMISSIONS)


class ApprovalRequestService:
    """
    Approval request service.

    Implements the port the workflow engine uses to open requests on submit.
    Resolving a request is a separate reviewer action and does not move the
    underlying resource.
    """

    def __init__(self, store: ApprovalStore, ledger: AuditLedger):
        self.store = store
        self.ledger = ledger

    async def _audit(self, actor: ActorContext, action: str, request: ApprovalRequestResponse, **extra) -> None:
        details = {
            "target_resource_type": request.resource_type,
            "target_resource_id": request.resource_id,
            "requested_action": request.action.value,
        }
        details.update(extra)
        await self.ledger.log(actor, AuditEvent(
            action=action,
            resource_type=APPROVAL_RESOURCE_TYPE,
            resource_id=str(request.id),
            details=details,
        ))

    async def open(self, actor: ActorContext, params: ApprovalRequestCreate) -> Result[ApprovalRequestResponse]:
        """Open a pending request on behalf of the actor."""
        if actor.kind == ActorKind.AI:
            return failure(ErrorCode.PERMISSION_DENIED, "AI cannot create approval requests")

        try:
            request = await self.store.create(actor_user_id(actor), params)
        except Exception as e:
            logger.store_failure(operation="approval.open", request_id=actor.request_id, error=str(e))
            return failure(ErrorCode.INTERNAL_ERROR, "Failed to create approval request")

        await self._audit(actor, "approval.request_created", request)
        logger.approval_request_opened(
            request_id=str(request.id),
            resource_type=request.resource_type,
            resource_id=request.resource_id,
            action=request.action.value,
            requester_id=request.requester_id
        )
        return success(request)

    async def _fetch(self, actor: ActorContext, request_id: UUID, operation: str) -> Result[ApprovalRequestResponse]:
        try:
            request = await self.store.get(request_id)
        except Exception as e:
            logger.store_failure(operation=operation, request_id=actor.request_id, error=str(e))
            return failure(ErrorCode.INTERNAL_ERROR, "Failed to read approval request")
        if request is None:
            return failure(ErrorCode.NOT_FOUND, f"Approval request not found: {request_id}")
        return success(request)

    async def get(self, actor: ActorContext, request_id: UUID) -> Result[ApprovalRequestResponse]:
        """Reviewers, the requester and the system actor can read a request."""
        fetched = await self._fetch(actor, request_id, "approval.get")
        if not fetched.ok:
            return fetched
        request = fetched.value

        if not has_review_permission(actor) and actor.user_id != request.requester_id:
            return failure(ErrorCode.PERMISSION_DENIED, "Cannot access this approval request")

        return success(request)

    async def list_pending(
        self,
        actor: ActorContext,
        filters: Optional[ApprovalRequestFilters] = None,
        pagination: Optional[PaginationParams] = None
    ) -> Result[Page[ApprovalRequestResponse]]:
        """Oldest-first queue of requests. Requires a review permission."""
        if not has_review_permission(actor):
            return failure(
                ErrorCode.PERMISSION_DENIED,
                "Requires review permission to list pending requests"
            )

        try:
            page = await self.store.list(filters or ApprovalRequestFilters(), normalize_pagination(pagination))
        except InvalidCursorError as e:
            return failure(ErrorCode.VALIDATION_ERROR, str(e))
        except Exception as e:
            logger.store_failure(operation="approval.list", request_id=actor.request_id, error=str(e))
            return failure(ErrorCode.INTERNAL_ERROR, "Failed to list approval requests")
        return success(page)

    async def _resolve(
        self,
        actor: ActorContext,
        request_id: UUID,
        status: ApprovalStatus,
        notes: Optional[str],
        verb: str,
    ) -> Result[ApprovalRequestResponse]:
        fetched = await self._fetch(actor, request_id, f"approval.{verb}")
        if not fetched.ok:
            return fetched
        request = fetched.value

        if request.status != ApprovalStatus.PENDING:
            return failure(
                ErrorCode.INVALID_STATE,
                f"Cannot {verb} request in {request.status.value} state"
            )

        if status == ApprovalStatus.APPROVED and actor.kind != ActorKind.SYSTEM \
                and actor.user_id == request.requester_id:
            return failure(ErrorCode.PERMISSION_DENIED, "Cannot approve your own request")

        if status == ApprovalStatus.CANCELED and actor.kind != ActorKind.SYSTEM \
                and actor.user_id != request.requester_id:
            return failure(ErrorCode.PERMISSION_DENIED, "Only the requester can cancel the request")

        reviewer_id = actor_user_id(actor)
        try:
            resolved = await self.store.resolve(request_id, status, reviewer_id, notes)
        except ResourceNotFoundError:
            return failure(ErrorCode.NOT_FOUND, f"Approval request not found: {request_id}")
        except StaleStateError as e:
            return failure(ErrorCode.CONFLICT, str(e))
        except Exception as e:
            logger.store_failure(operation=f"approval.{verb}", request_id=actor.request_id, error=str(e))
            return failure(ErrorCode.INTERNAL_ERROR, f"Failed to {verb} approval request")

        extra = {"notes": notes} if status != ApprovalStatus.CANCELED else {}
        await self._audit(actor, f"approval.{status.value}", resolved, **extra)
        logger.approval_request_resolved(
            request_id=str(resolved.id),
            status=status.value,
            reviewer_id=reviewer_id
        )
        return success(resolved)

    async def approve(
        self,
        actor: ActorContext,
        request_id: UUID,
        notes: Optional[str] = None
    ) -> Result[ApprovalRequestResponse]:
        if actor.kind == ActorKind.AI:
            return failure(ErrorCode.PERMISSION_DENIED, "AI cannot approve requests")
        if not has_review_permission(actor):
            return failure(ErrorCode.PERMISSION_DENIED, "Requires review permission to approve requests")
        return await self._resolve(actor, request_id, ApprovalStatus.APPROVED, notes, "approve")

    async def reject(
        self,
        actor: ActorContext,
        request_id: UUID,
        notes: str
    ) -> Result[ApprovalRequestResponse]:
        if actor.kind == ActorKind.AI:
            return failure(ErrorCode.PERMISSION_DENIED, "AI cannot reject requests")
        if not has_review_permission(actor):
            return failure(ErrorCode.PERMISSION_DENIED, "Requires review permission to reject requests")
        return await self._resolve(actor, request_id, ApprovalStatus.REJECTED, notes, "reject")

    async def cancel(self, actor: ActorContext, request_id: UUID) -> Result[ApprovalRequestResponse]:
        if actor.kind == ActorKind.AI:
            return failure(ErrorCode.PERMISSION_DENIED, "AI cannot cancel requests")
        return await self._resolve(actor, request_id, ApprovalStatus.CANCELED, None, "cancel")
