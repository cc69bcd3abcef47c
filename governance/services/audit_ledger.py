"""
Audit Ledger Service.

Append-only record of every effectful action.

- Writes are never permission-checked: any component may always record.
- Writes never raise: store failures come back as a failed Result and are
  logged, so an audit outage cannot abort a governance transition that
  already happened.
- Reads require the ledger's own read permission (audit:read), a wildcard
  grant, or the system actor.
"""

from typing import List, Optional

from governance.domain.actor import ActorContext, ActorKind
from governance.domain.permissions import AUDIT_READ, WILDCARD
from governance.domain.result import ErrorCode, Result, failure, success
from governance.logging import get_logger
from governance.schemas.audit import AuditEvent, AuditLogEntry, AuditLogRecord, AuditQuery
from governance.schemas.pagination import Page, PaginationParams, normalize_pagination
from governance.services.ports import AuditStore, InvalidCursorError

logger = get_logger(__name__)


def can_read_audit_logs(actor: ActorContext) -> bool:
    """Ledger reads need audit:read; admin-namespace grants do not cover it."""
    if actor.kind == ActorKind.SYSTEM:
        return True
    return WILDCARD in actor.permissions or AUDIT_READ in actor.permissions


def build_record(actor: ActorContext, event: AuditEvent) -> AuditLogRecord:
    """Stamp an event with the actor snapshot and request provenance."""
    return AuditLogRecord(
        actor_id=actor.user_id,
        actor_type=actor.kind,
        action=event.action,
        resource_type=event.resource_type,
        resource_id=event.resource_id,
        details=dict(event.details),
        ip_address=actor.ip,
        user_agent=actor.user_agent,
        request_id=actor.request_id,
    )


class AuditLedger:
    """
    Audit ledger service.

    CRITICAL: There is no update or delete path. Entries are inserted one at
    a time or as one batch, in the order given.
    """

    def __init__(self, store: AuditStore):
        """
        Initialize the ledger.

        Args:
            store: AuditStore implementation
        """
        self.store = store

    async def log(self, actor: ActorContext, event: AuditEvent) -> Result[AuditLogEntry]:
        """
        Record one event.

        Returns:
            Result with the stored entry, or INTERNAL_ERROR if the store failed
        """
        try:
            entry = await self.store.insert_one(build_record(actor, event))
        except Exception as e:
            logger.audit_write_failed(action=event.action, request_id=actor.request_id, error=str(e))
            return failure(ErrorCode.INTERNAL_ERROR, "Failed to write audit log")
        return success(entry)

    async def log_batch(self, actor: ActorContext, events: List[AuditEvent]) -> Result[int]:
        """
        Record several events as one storage batch.

        Every entry carries the same actor snapshot.

        Returns:
            Result with the number of entries written
        """
        if not events:
            return success(0)

        records = [build_record(actor, event) for event in events]
        try:
            count = await self.store.insert_batch(records)
        except Exception as e:
            logger.audit_write_failed(
                action=events[0].action,
                request_id=actor.request_id,
                error=str(e),
                batch_size=len(events)
            )
            return failure(ErrorCode.INTERNAL_ERROR, "Failed to write batch audit logs")
        return success(count)

    async def query_logs(self, actor: ActorContext, query: Optional[AuditQuery] = None) -> Result[Page[AuditLogEntry]]:
        """Filtered, paginated ledger query. Requires audit:read."""
        if not can_read_audit_logs(actor):
            return failure(ErrorCode.PERMISSION_DENIED, "Actor lacks audit:read permission")

        normalized = (query or AuditQuery()).normalized()
        try:
            page = await self.store.query(normalized)
        except InvalidCursorError as e:
            return failure(ErrorCode.VALIDATION_ERROR, str(e))
        except Exception as e:
            logger.store_failure(operation="audit.query", request_id=actor.request_id, error=str(e))
            return failure(ErrorCode.INTERNAL_ERROR, "Failed to query audit logs")
        return success(page)

    async def get_resource_history(
        self,
        actor: ActorContext,
        resource_type: str,
        resource_id: str
    ) -> Result[List[AuditLogEntry]]:
        """All entries for one resource, in insertion order. Requires audit:read."""
        if not can_read_audit_logs(actor):
            return failure(ErrorCode.PERMISSION_DENIED, "Actor lacks audit:read permission")

        try:
            entries = await self.store.by_resource(resource_type, resource_id)
        except Exception as e:
            logger.store_failure(operation="audit.by_resource", request_id=actor.request_id, error=str(e))
            return failure(ErrorCode.INTERNAL_ERROR, "Failed to read resource history")
        return success(entries)

    async def get_actor_history(
        self,
        actor: ActorContext,
        target_actor_id: str,
        pagination: Optional[PaginationParams] = None
    ) -> Result[Page[AuditLogEntry]]:
        """Entries recorded for one actor id. Requires audit:read."""
        if not can_read_audit_logs(actor):
            return failure(ErrorCode.PERMISSION_DENIED, "Actor lacks audit:read permission")

        try:
            page = await self.store.by_actor(target_actor_id, normalize_pagination(pagination))
        except InvalidCursorError as e:
            return failure(ErrorCode.VALIDATION_ERROR, str(e))
        except Exception as e:
            logger.store_failure(operation="audit.by_actor", request_id=actor.request_id, error=str(e))
            return failure(ErrorCode.INTERNAL_ERROR, "Failed to read actor history")
        return success(page)
