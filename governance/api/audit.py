"""
Audit API Router.

Read-only access to the audit ledger. There are no write endpoints: entries
are only produced as a side effect of governance operations.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from governance.api.dependencies import get_actor, get_ledger
from governance.api.responses import respond
from governance.config import settings
from governance.domain.actor import ActorContext, ActorKind
from governance.schemas.audit import AuditQuery
from governance.schemas.pagination import PaginationParams
from governance.services.audit_ledger import AuditLedger

router = APIRouter(prefix="/audit", tags=["audit"])


@router.get("")
async def query_audit_logs(
    actor_id: Optional[str] = Query(None),
    actor_type: Optional[ActorKind] = Query(None),
    action: Optional[str] = Query(None, description="e.g. knowledge.approve"),
    resource_type: Optional[str] = Query(None),
    resource_id: Optional[str] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    cursor: Optional[str] = Query(None),
    limit: int = Query(settings.default_page_limit),
    actor: ActorContext = Depends(get_actor),
    ledger: AuditLedger = Depends(get_ledger)
) -> JSONResponse:
    """
    Query the ledger, newest first.

    Requires audit:read.
    """
    query = AuditQuery(
        actor_id=actor_id,
        actor_type=actor_type,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        start_date=start_date,
        end_date=end_date,
        cursor=cursor,
        limit=limit,
    )
    return respond(await ledger.query_logs(actor, query), actor)


@router.get("/resources/{resource_type}/{resource_id}")
async def get_resource_history(
    resource_type: str,
    resource_id: str,
    actor: ActorContext = Depends(get_actor),
    ledger: AuditLedger = Depends(get_ledger)
) -> JSONResponse:
    """Full history of one resource, oldest first."""
    return respond(await ledger.get_resource_history(actor, resource_type, resource_id), actor)


@router.get("/actors/{target_actor_id}")
async def get_actor_history(
    target_actor_id: str,
    cursor: Optional[str] = Query(None),
    limit: int = Query(settings.default_page_limit),
    actor: ActorContext = Depends(get_actor),
    ledger: AuditLedger = Depends(get_ledger)
) -> JSONResponse:
    """Everything one actor did, newest first."""
    result = await ledger.get_actor_history(
        actor, target_actor_id, PaginationParams(cursor=cursor, limit=limit)
    )
    return respond(result, actor)
