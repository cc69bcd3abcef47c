"""
SQLAlchemy resource stores.

Status and content writes are conditional UPDATEs: the WHERE clause carries
the expected prior status (or version), and a zero rowcount is re-read to
tell a vanished row (ResourceNotFoundError) from a lost race
(StaleStateError).
"""

from typing import Any, Dict, List, Optional, Type
from uuid import UUID

from sqlalchemy import and_, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from governance.domain.lifecycle import (
    EDITABLE_STATUSES,
    KNOWLEDGE_PROFILE,
    PROMPT_PROFILE,
    GovernanceProfile,
    ResourceStatus,
)
from governance.models import KnowledgeItem, KnowledgeVersion, PromptVersion, SystemPrompt
from governance.models.resource import utcnow
from governance.schemas.pagination import Page, PaginationParams
from governance.schemas.resource import (
    GovernedResource,
    ResourceCreate,
    ResourceFilters,
    ResourceVersion,
)
from governance.services.ports import DuplicateResourceError, ResourceNotFoundError, StaleStateError
from governance.stores.cursors import decode_keyset, encode_keyset


class SqlResourceStore:
    """ResourceStore over one resource table and its version table."""

    model: Type[Any]
    version_model: Type[Any]
    version_fk: str
    profile: GovernanceProfile

    def __init__(self, db: AsyncSession):
        self.db = db

    def _to_schema(self, row: Any) -> GovernedResource:
        return GovernedResource(
            id=row.id,
            resource_type=self.profile.resource_type,
            title=row.title,
            content=row.content,
            status=row.status,
            author_id=row.author_id,
            reviewer_id=row.reviewer_id,
            version=row.version,
            category=row.category,
            description=row.description,
            metadata=row.metadata_ or {},
            is_default=getattr(row, "is_default", False),
            published_at=getattr(row, "published_at", None),
            activated_at=getattr(row, "activated_at", None),
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    async def _load(self, resource_id: UUID) -> GovernedResource:
        resource = await self.get(resource_id)
        if resource is None:
            raise ResourceNotFoundError(str(resource_id))
        return resource

    async def _raise_lost_write(self, resource_id: UUID, expected: Any) -> None:
        """Conditional write matched nothing: roll back and say why."""
        await self.db.rollback()
        actual = await self.db.scalar(select(self.model.status).where(self.model.id == resource_id))
        if actual is None:
            raise ResourceNotFoundError(str(resource_id))
        raise StaleStateError(resource_id, expected, actual.value)

    async def create(self, author_id: str, fields: ResourceCreate) -> GovernedResource:
        row = self.model(
            title=fields.title,
            content=fields.content,
            category=fields.category,
            description=fields.description,
            metadata_=dict(fields.metadata),
            status=ResourceStatus.DRAFT,
            version=1,
            author_id=author_id,
        )
        self.db.add(row)
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise DuplicateResourceError(str(e.orig)) from e
        await self.db.refresh(row)
        return self._to_schema(row)

    async def get(self, resource_id: UUID) -> Optional[GovernedResource]:
        row = await self.db.get(self.model, resource_id, populate_existing=True)
        return self._to_schema(row) if row is not None else None

    async def update(
        self,
        resource_id: UUID,
        changes: Dict[str, Any],
        expected_version: int,
    ) -> GovernedResource:
        values = dict(changes)
        if "metadata" in values:
            values["metadata_"] = values.pop("metadata")
        values["updated_at"] = utcnow()

        result = await self.db.execute(
            update(self.model)
            .where(
                self.model.id == resource_id,
                self.model.version == expected_version,
                self.model.status.in_(sorted(EDITABLE_STATUSES)),
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await self._raise_lost_write(resource_id, f"editable at version {expected_version}")

        await self.db.commit()
        return await self._load(resource_id)

    def _status_values(
        self,
        status: ResourceStatus,
        reviewer_id: Optional[str],
        clear_reviewer: bool,
    ) -> Dict[str, Any]:
        values: Dict[str, Any] = {"status": status, "updated_at": utcnow()}
        if reviewer_id is not None:
            values["reviewer_id"] = reviewer_id
        if clear_reviewer:
            values["reviewer_id"] = None
        return values

    async def _swap_status(self, resource_id: UUID, expected_status: ResourceStatus, values: Dict[str, Any]) -> None:
        result = await self.db.execute(
            update(self.model)
            .where(self.model.id == resource_id, self.model.status == expected_status)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await self._raise_lost_write(resource_id, expected_status.value)

    async def update_status(
        self,
        resource_id: UUID,
        status: ResourceStatus,
        expected_status: ResourceStatus,
        reviewer_id: Optional[str] = None,
        clear_reviewer: bool = False,
    ) -> GovernedResource:
        await self._swap_status(
            resource_id, expected_status, self._status_values(status, reviewer_id, clear_reviewer)
        )
        await self.db.commit()
        return await self._load(resource_id)

    async def publish(self, resource_id: UUID, expected_status: ResourceStatus) -> GovernedResource:
        await self._swap_status(resource_id, expected_status, {
            "status": self.profile.live_status,
            "published_at": utcnow(),
            "updated_at": utcnow(),
        })
        await self.db.commit()
        return await self._load(resource_id)

    async def create_version_snapshot(
        self,
        resource_id: UUID,
        version: int,
        title: str,
        content: str,
        author_id: str,
    ) -> ResourceVersion:
        """
        Stage a snapshot row. It is committed together with the update that
        follows it, so a lost update race leaves no orphan snapshot.
        """
        row = self.version_model(
            **{self.version_fk: resource_id},
            version=version,
            title=title,
            content=content,
            author_id=author_id,
        )
        self.db.add(row)
        try:
            await self.db.flush()
        except IntegrityError as e:
            await self.db.rollback()
            raise StaleStateError(resource_id, f"at version {version}") from e
        return ResourceVersion.model_validate(row)

    async def list_version_history(self, resource_id: UUID) -> List[ResourceVersion]:
        fk = getattr(self.version_model, self.version_fk)
        rows = await self.db.scalars(
            select(self.version_model).where(fk == resource_id).order_by(self.version_model.version.desc())
        )
        return [ResourceVersion.model_validate(row) for row in rows]

    async def list(self, filters: ResourceFilters, pagination: PaginationParams) -> Page[GovernedResource]:
        """Newest first. The cursor is (created_at, id) of the last item returned."""
        stmt = select(self.model)
        if filters.status is not None:
            stmt = stmt.where(self.model.status == filters.status)
        if filters.category is not None:
            stmt = stmt.where(self.model.category == filters.category)
        if filters.author_id is not None:
            stmt = stmt.where(self.model.author_id == filters.author_id)
        if pagination.cursor:
            created_at, row_id = decode_keyset(pagination.cursor)
            stmt = stmt.where(or_(
                self.model.created_at < created_at,
                and_(self.model.created_at == created_at, self.model.id < row_id),
            ))

        stmt = stmt.order_by(self.model.created_at.desc(), self.model.id.desc()).limit(pagination.limit + 1)
        rows = list(await self.db.scalars(stmt))

        has_more = len(rows) > pagination.limit
        rows = rows[:pagination.limit]
        next_cursor = encode_keyset(rows[-1].created_at, rows[-1].id) if has_more and rows else None
        return Page(items=[self._to_schema(row) for row in rows], next_cursor=next_cursor, has_more=has_more)

    async def get_live(self) -> Optional[GovernedResource]:
        return None


class KnowledgeStore(SqlResourceStore):
    """Knowledge items: many may be published at once."""
    model = KnowledgeItem
    version_model = KnowledgeVersion
    version_fk = "item_id"
    profile = KNOWLEDGE_PROFILE


class PromptStore(SqlResourceStore):
    """System prompts: activation moves the single default flag."""
    model = SystemPrompt
    version_model = PromptVersion
    version_fk = "prompt_id"
    profile = PROMPT_PROFILE

    async def update_status(
        self,
        resource_id: UUID,
        status: ResourceStatus,
        expected_status: ResourceStatus,
        reviewer_id: Optional[str] = None,
        clear_reviewer: bool = False,
    ) -> GovernedResource:
        values = self._status_values(status, reviewer_id, clear_reviewer)
        if status == ResourceStatus.ARCHIVED:
            # an archived prompt cannot stay the default
            values["is_default"] = False
        await self._swap_status(resource_id, expected_status, values)
        await self.db.commit()
        return await self._load(resource_id)

    async def publish(self, resource_id: UUID, expected_status: ResourceStatus) -> GovernedResource:
        """Clear the previous default and activate this prompt in one transaction."""
        await self.db.execute(
            update(SystemPrompt)
            .where(SystemPrompt.is_default.is_(True), SystemPrompt.id != resource_id)
            .values(is_default=False, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        await self._swap_status(resource_id, expected_status, {
            "status": ResourceStatus.ACTIVE,
            "is_default": True,
            "activated_at": utcnow(),
            "updated_at": utcnow(),
        })
        await self.db.commit()
        return await self._load(resource_id)

    async def get_live(self) -> Optional[GovernedResource]:
        row = await self.db.scalar(
            select(SystemPrompt)
            .where(SystemPrompt.is_default.is_(True), SystemPrompt.status == ResourceStatus.ACTIVE)
            .execution_options(populate_existing=True)
        )
        return self._to_schema(row) if row is not None else None
