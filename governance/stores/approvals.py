"""
SQLAlchemy approval request store.
"""

from typing import Optional
from uuid import UUID

from sqlalchemy import and_, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from governance.models import ApprovalRequest
from governance.models.resource import utcnow
from governance.schemas.approval import (
    ApprovalRequestCreate,
    ApprovalRequestFilters,
    ApprovalRequestResponse,
    ApprovalStatus,
)
from governance.schemas.pagination import Page, PaginationParams
from governance.services.ports import ResourceNotFoundError, StaleStateError
from governance.stores.cursors import decode_keyset, encode_keyset


class SqlApprovalStore:
    """ApprovalStore over the approval_requests table."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, requester_id: str, params: ApprovalRequestCreate) -> ApprovalRequestResponse:
        row = ApprovalRequest(
            resource_type=params.resource_type,
            resource_id=params.resource_id,
            action=params.action,
            status=ApprovalStatus.PENDING,
            requester_id=requester_id,
            request_notes=params.notes,
        )
        self.db.add(row)
        await self.db.commit()
        await self.db.refresh(row)
        return ApprovalRequestResponse.model_validate(row)

    async def get(self, request_id: UUID) -> Optional[ApprovalRequestResponse]:
        row = await self.db.get(ApprovalRequest, request_id, populate_existing=True)
        return ApprovalRequestResponse.model_validate(row) if row is not None else None

    async def list(
        self,
        filters: ApprovalRequestFilters,
        pagination: PaginationParams
    ) -> Page[ApprovalRequestResponse]:
        """Oldest first, so reviewers work the queue in submission order."""
        stmt = select(ApprovalRequest)
        if filters.status is not None:
            stmt = stmt.where(ApprovalRequest.status == filters.status)
        if filters.resource_type is not None:
            stmt = stmt.where(ApprovalRequest.resource_type == filters.resource_type)
        if pagination.cursor:
            created_at, row_id = decode_keyset(pagination.cursor)
            stmt = stmt.where(or_(
                ApprovalRequest.created_at > created_at,
                and_(ApprovalRequest.created_at == created_at, ApprovalRequest.id > row_id),
            ))

        stmt = stmt.order_by(ApprovalRequest.created_at.asc(), ApprovalRequest.id.asc()).limit(pagination.limit + 1)
        rows = list(await self.db.scalars(stmt))

        has_more = len(rows) > pagination.limit
        rows = rows[:pagination.limit]
        next_cursor = encode_keyset(rows[-1].created_at, rows[-1].id) if has_more and rows else None
        return Page(
            items=[ApprovalRequestResponse.model_validate(row) for row in rows],
            next_cursor=next_cursor,
            has_more=has_more,
        )

    async def resolve(
        self,
        request_id: UUID,
        status: ApprovalStatus,
        reviewer_id: Optional[str],
        notes: Optional[str] = None,
    ) -> ApprovalRequestResponse:
        result = await self.db.execute(
            update(ApprovalRequest)
            .where(ApprovalRequest.id == request_id, ApprovalRequest.status == ApprovalStatus.PENDING)
            .values(status=status, reviewer_id=reviewer_id, review_notes=notes, reviewed_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await self.db.rollback()
            actual = await self.db.scalar(select(ApprovalRequest.status).where(ApprovalRequest.id == request_id))
            if actual is None:
                raise ResourceNotFoundError(str(request_id))
            raise StaleStateError(request_id, ApprovalStatus.PENDING.value, actual.value)

        await self.db.commit()
        return await self.get(request_id)
