"""
API Dependencies - Actor resolution and service wiring.

Every service is built per request around the request's database session.
"""

from typing import Callable

from fastapi import Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from governance.database import get_db
from governance.domain.actor import ActorContext
from governance.domain.lifecycle import GovernanceProfile
from governance.services.approval_requests import ApprovalRequestService
from governance.services.audit_ledger import AuditLedger
from governance.services.governance_workflow import GovernanceWorkflow
from governance.stores import KnowledgeStore, PromptStore, SqlApprovalStore, SqlAuditStore

RESOURCE_STORES = {
    "knowledge_item": KnowledgeStore,
    "system_prompt": PromptStore,
}


def get_actor(request: Request) -> ActorContext:
    """
    FastAPI dependency returning the caller's ActorContext.

    The deployment's authentication middleware is expected to set
    request.state.actor. Requests without one are rejected.

    Raises:
        HTTPException: 401 if no actor was resolved
    """
    actor = getattr(request.state, "actor", None)
    if not isinstance(actor, ActorContext):
        raise HTTPException(status_code=401, detail="Authentication required")
    return actor


def get_ledger(db: AsyncSession = Depends(get_db)) -> AuditLedger:
    return AuditLedger(SqlAuditStore(db))


def get_approval_service(
    db: AsyncSession = Depends(get_db),
    ledger: AuditLedger = Depends(get_ledger)
) -> ApprovalRequestService:
    return ApprovalRequestService(SqlApprovalStore(db), ledger)


def workflow_dependency(profile: GovernanceProfile) -> Callable[..., GovernanceWorkflow]:
    """
    Build a dependency that returns the workflow engine for one profile.

    Usage:
        get_workflow = workflow_dependency(KNOWLEDGE_PROFILE)

        @router.post("/{resource_id}/approve")
        async def approve(workflow: GovernanceWorkflow = Depends(get_workflow)):
            ...
    """
    store_class = RESOURCE_STORES[profile.resource_type]

    def get_workflow(
        db: AsyncSession = Depends(get_db),
        ledger: AuditLedger = Depends(get_ledger),
        approvals: ApprovalRequestService = Depends(get_approval_service)
    ) -> GovernanceWorkflow:
        return GovernanceWorkflow(profile, store_class(db), ledger, approvals)

    return get_workflow
