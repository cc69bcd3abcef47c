"""
SQLAlchemy audit store.

Insert and select only. The audit_logs table rejects UPDATE and DELETE at
the database level.
"""

from typing import List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from governance.models import AuditLog
from governance.schemas.audit import AuditLogEntry, AuditLogRecord, AuditQuery
from governance.schemas.pagination import Page, PaginationParams
from governance.stores.cursors import decode_id


def _page(rows: List[AuditLog], limit: int) -> Page[AuditLogEntry]:
    has_more = len(rows) > limit
    rows = rows[:limit]
    next_cursor = str(rows[-1].id) if has_more and rows else None
    return Page(
        items=[AuditLogEntry.model_validate(row) for row in rows],
        next_cursor=next_cursor,
        has_more=has_more,
    )


class SqlAuditStore:
    """AuditStore over the audit_logs table. The id is the cursor."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def insert_one(self, entry: AuditLogRecord) -> AuditLogEntry:
        row = AuditLog(**entry.model_dump())
        self.db.add(row)
        await self.db.commit()
        await self.db.refresh(row)
        return AuditLogEntry.model_validate(row)

    async def insert_batch(self, entries: List[AuditLogRecord]) -> int:
        """All entries in one transaction, ids in the order given."""
        rows = [AuditLog(**entry.model_dump()) for entry in entries]
        self.db.add_all(rows)
        await self.db.commit()
        return len(rows)

    async def query(self, query: AuditQuery) -> Page[AuditLogEntry]:
        """Newest first."""
        stmt = select(AuditLog)
        if query.actor_id is not None:
            stmt = stmt.where(AuditLog.actor_id == query.actor_id)
        if query.actor_type is not None:
            stmt = stmt.where(AuditLog.actor_type == query.actor_type)
        if query.action is not None:
            stmt = stmt.where(AuditLog.action == query.action)
        if query.resource_type is not None:
            stmt = stmt.where(AuditLog.resource_type == query.resource_type)
        if query.resource_id is not None:
            stmt = stmt.where(AuditLog.resource_id == query.resource_id)
        if query.start_date is not None:
            stmt = stmt.where(AuditLog.timestamp >= query.start_date)
        if query.end_date is not None:
            stmt = stmt.where(AuditLog.timestamp <= query.end_date)
        if query.cursor:
            stmt = stmt.where(AuditLog.id < decode_id(query.cursor))

        rows = list(await self.db.scalars(stmt.order_by(AuditLog.id.desc()).limit(query.limit + 1)))
        return _page(rows, query.limit)

    async def by_resource(self, resource_type: str, resource_id: str) -> List[AuditLogEntry]:
        """Full history of one resource, oldest first."""
        rows = await self.db.scalars(
            select(AuditLog)
            .where(AuditLog.resource_type == resource_type, AuditLog.resource_id == resource_id)
            .order_by(AuditLog.id.asc())
        )
        return [AuditLogEntry.model_validate(row) for row in rows]

    async def by_actor(self, actor_id: str, pagination: PaginationParams) -> Page[AuditLogEntry]:
        """Newest first."""
        stmt = select(AuditLog).where(AuditLog.actor_id == actor_id)
        if pagination.cursor:
            stmt = stmt.where(AuditLog.id < decode_id(pagination.cursor))

        rows = list(await self.db.scalars(stmt.order_by(AuditLog.id.desc()).limit(pagination.limit + 1)))
        return _page(rows, pagination.limit)
