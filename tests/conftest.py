"""
Shared pytest fixtures.

Provides actors, in-memory implementations of the service ports, and wired
services. Store and API tests build their own SQLite-backed fixtures.
"""

import os

# Must be set before governance.config is imported anywhere
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional
from uuid import UUID, uuid4

import pytest

from governance.domain.actor import ActorContext
from governance.domain.lifecycle import (
    EDITABLE_STATUSES,
    KNOWLEDGE_PROFILE,
    PROMPT_PROFILE,
    GovernanceProfile,
    ResourceStatus,
)
from governance.schemas.approval import (
    ApprovalRequestCreate,
    ApprovalRequestFilters,
    ApprovalRequestResponse,
    ApprovalStatus,
)
from governance.schemas.audit import AuditLogEntry, AuditLogRecord, AuditQuery
from governance.schemas.pagination import Page, PaginationParams
from governance.schemas.resource import (
    GovernedResource,
    ResourceCreate,
    ResourceFilters,
    ResourceVersion,
)
from governance.services.approval_requests import ApprovalRequestService
from governance.services.audit_ledger import AuditLedger
from governance.services.governance_workflow import GovernanceWorkflow
from governance.services.ports import InvalidCursorError, ResourceNotFoundError, StaleStateError


class _Clock:
    """Strictly increasing timestamps so ordering is deterministic."""

    def __init__(self):
        self.current = datetime(2026, 1, 1, tzinfo=timezone.utc)

    def now(self) -> datetime:
        self.current += timedelta(seconds=1)
        return self.current


def _paginate(items: list, pagination: PaginationParams) -> Page:
    """Offset cursors; anything that is not an integer is rejected like the SQL stores do."""
    try:
        start = int(pagination.cursor) if pagination.cursor else 0
    except ValueError as e:
        raise InvalidCursorError(pagination.cursor) from e
    window = items[start:start + pagination.limit]
    has_more = start + pagination.limit < len(items)
    return Page(
        items=window,
        next_cursor=str(start + pagination.limit) if has_more else None,
        has_more=has_more,
    )


# ============================================================================
# IN-MEMORY PORTS
# ============================================================================

class InMemoryResourceStore:
    """ResourceStore with the same conditional-write semantics as the SQL store."""

    def __init__(self, profile: GovernanceProfile):
        self.profile = profile
        self.rows: Dict[UUID, GovernedResource] = {}
        self.versions: Dict[UUID, List[ResourceVersion]] = defaultdict(list)
        self.clock = _Clock()
        self.fail_with: Optional[Exception] = None

    def _maybe_fail(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    def _require(self, resource_id: UUID) -> GovernedResource:
        row = self.rows.get(resource_id)
        if row is None:
            raise ResourceNotFoundError(str(resource_id))
        return row

    async def create(self, author_id: str, fields: ResourceCreate) -> GovernedResource:
        self._maybe_fail()
        now = self.clock.now()
        row = GovernedResource(
            id=uuid4(),
            resource_type=self.profile.resource_type,
            title=fields.title,
            content=fields.content,
            status=ResourceStatus.DRAFT,
            author_id=author_id,
            version=1,
            category=fields.category,
            description=fields.description,
            metadata=dict(fields.metadata),
            created_at=now,
            updated_at=now,
        )
        self.rows[row.id] = row
        return row

    async def get(self, resource_id: UUID) -> Optional[GovernedResource]:
        self._maybe_fail()
        return self.rows.get(resource_id)

    async def update(self, resource_id, changes, expected_version):
        self._maybe_fail()
        row = self._require(resource_id)
        if row.version != expected_version or row.status not in EDITABLE_STATUSES:
            raise StaleStateError(resource_id, f"editable at version {expected_version}", row.status.value)
        updated = row.model_copy(update={**changes, "updated_at": self.clock.now()})
        self.rows[resource_id] = updated
        return updated

    async def update_status(self, resource_id, status, expected_status, reviewer_id=None, clear_reviewer=False):
        self._maybe_fail()
        row = self._require(resource_id)
        if row.status != expected_status:
            raise StaleStateError(resource_id, expected_status.value, row.status.value)
        values = {"status": status, "updated_at": self.clock.now()}
        if reviewer_id is not None:
            values["reviewer_id"] = reviewer_id
        if clear_reviewer:
            values["reviewer_id"] = None
        if status == ResourceStatus.ARCHIVED:
            values["is_default"] = False
        updated = row.model_copy(update=values)
        self.rows[resource_id] = updated
        return updated

    async def publish(self, resource_id, expected_status):
        self._maybe_fail()
        row = self._require(resource_id)
        if row.status != expected_status:
            raise StaleStateError(resource_id, expected_status.value, row.status.value)
        now = self.clock.now()
        values = {"status": self.profile.live_status, "updated_at": now}
        if self.profile.single_live:
            for other_id, other in list(self.rows.items()):
                if other.is_default:
                    self.rows[other_id] = other.model_copy(update={"is_default": False})
            values.update(is_default=True, activated_at=now)
        else:
            values["published_at"] = now
        updated = row.model_copy(update=values)
        self.rows[resource_id] = updated
        return updated

    async def create_version_snapshot(self, resource_id, version, title, content, author_id):
        self._maybe_fail()
        snapshot = ResourceVersion(
            resource_id=resource_id,
            version=version,
            title=title,
            content=content,
            author_id=author_id,
            created_at=self.clock.now(),
        )
        self.versions[resource_id].append(snapshot)
        return snapshot

    async def list_version_history(self, resource_id):
        self._maybe_fail()
        return sorted(self.versions[resource_id], key=lambda v: v.version, reverse=True)

    async def list(self, filters: ResourceFilters, pagination: PaginationParams):
        self._maybe_fail()
        items = [
            row for row in self.rows.values()
            if (filters.status is None or row.status == filters.status)
            and (filters.category is None or row.category == filters.category)
            and (filters.author_id is None or row.author_id == filters.author_id)
        ]
        items.sort(key=lambda r: r.created_at, reverse=True)
        return _paginate(items, pagination)

    async def get_live(self):
        self._maybe_fail()
        for row in self.rows.values():
            if row.is_default and row.status == self.profile.live_status:
                return row
        return None


class InMemoryAuditStore:
    """Append-only list. Set fail_with to make every insert raise."""

    def __init__(self):
        self.entries: List[AuditLogEntry] = []
        self.batches: List[int] = []
        self.clock = _Clock()
        self.fail_with: Optional[Exception] = None

    def _append(self, record: AuditLogRecord) -> AuditLogEntry:
        entry = AuditLogEntry(id=len(self.entries) + 1, timestamp=self.clock.now(), **record.model_dump())
        self.entries.append(entry)
        return entry

    async def insert_one(self, entry: AuditLogRecord) -> AuditLogEntry:
        if self.fail_with is not None:
            raise self.fail_with
        return self._append(entry)

    async def insert_batch(self, entries: List[AuditLogRecord]) -> int:
        if self.fail_with is not None:
            raise self.fail_with
        for record in entries:
            self._append(record)
        self.batches.append(len(entries))
        return len(entries)

    async def query(self, query: AuditQuery) -> Page[AuditLogEntry]:
        self.last_query = query
        items = [
            e for e in reversed(self.entries)
            if (query.actor_id is None or e.actor_id == query.actor_id)
            and (query.actor_type is None or e.actor_type == query.actor_type)
            and (query.action is None or e.action == query.action)
            and (query.resource_type is None or e.resource_type == query.resource_type)
            and (query.resource_id is None or e.resource_id == query.resource_id)
        ]
        return _paginate(items, query)

    async def by_resource(self, resource_type: str, resource_id: str) -> List[AuditLogEntry]:
        return [e for e in self.entries if e.resource_type == resource_type and e.resource_id == resource_id]

    async def by_actor(self, actor_id: str, pagination: PaginationParams) -> Page[AuditLogEntry]:
        self.last_pagination = pagination
        items = [e for e in reversed(self.entries) if e.actor_id == actor_id]
        return _paginate(items, pagination)

    def for_resource(self, resource_id) -> List[AuditLogEntry]:
        """Test helper: entries whose resource_id matches."""
        return [e for e in self.entries if e.resource_id == str(resource_id)]


class InMemoryApprovalStore:
    """Approval rows keyed by id. Set fail_with to make every call raise."""

    def __init__(self):
        self.rows: Dict[UUID, ApprovalRequestResponse] = {}
        self.clock = _Clock()
        self.fail_with: Optional[Exception] = None

    def _maybe_fail(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    async def create(self, requester_id: str, params: ApprovalRequestCreate) -> ApprovalRequestResponse:
        self._maybe_fail()
        row = ApprovalRequestResponse(
            id=uuid4(),
            resource_type=params.resource_type,
            resource_id=params.resource_id,
            action=params.action,
            status=ApprovalStatus.PENDING,
            requester_id=requester_id,
            request_notes=params.notes,
            created_at=self.clock.now(),
        )
        self.rows[row.id] = row
        return row

    async def get(self, request_id: UUID) -> Optional[ApprovalRequestResponse]:
        self._maybe_fail()
        return self.rows.get(request_id)

    async def list(self, filters: ApprovalRequestFilters, pagination: PaginationParams):
        self._maybe_fail()
        items = [
            r for r in self.rows.values()
            if (filters.status is None or r.status == filters.status)
            and (filters.resource_type is None or r.resource_type == filters.resource_type)
        ]
        items.sort(key=lambda r: r.created_at)
        return _paginate(items, pagination)

    async def resolve(self, request_id, status, reviewer_id, notes=None):
        self._maybe_fail()
        row = self.rows.get(request_id)
        if row is None:
            raise ResourceNotFoundError(str(request_id))
        if row.status != ApprovalStatus.PENDING:
            raise StaleStateError(request_id, ApprovalStatus.PENDING.value, row.status.value)
        resolved = row.model_copy(update={
            "status": status,
            "reviewer_id": reviewer_id,
            "review_notes": notes,
            "reviewed_at": self.clock.now(),
        })
        self.rows[request_id] = resolved
        return resolved


# ============================================================================
# ACTOR FIXTURES
# ============================================================================

@pytest.fixture
def author() -> ActorContext:
    """Content author: read and write on both resource types."""
    return ActorContext.user(
        "u1",
        ["knowledge:read", "knowledge:write", "prompt:read", "prompt:write"],
        ip="10.0.0.1",
        user_agent="pytest",
    )


@pytest.fixture
def reviewer() -> ActorContext:
    """Reviewer/publisher who is not the author."""
    return ActorContext.user("r1", [
        "knowledge:read", "knowledge:review", "knowledge:publish",
        "prompt:read", "prompt:review", "prompt:publish",
    ])


@pytest.fixture
def admin() -> ActorContext:
    return ActorContext.admin("admin-1", ["admin:all"])


@pytest.fixture
def outsider() -> ActorContext:
    """Authenticated user with no grants."""
    return ActorContext.user("nobody")


@pytest.fixture
def reader() -> ActorContext:
    return ActorContext.user("reader-1", ["knowledge:read", "prompt:read"])


@pytest.fixture
def auditor() -> ActorContext:
    return ActorContext.user("auditor-1", ["audit:read"])


@pytest.fixture
def system_actor() -> ActorContext:
    return ActorContext.system()


@pytest.fixture
def ai_actor() -> ActorContext:
    """AI actor carrying every grant; governance must still refuse it."""
    return ActorContext.ai(["*", "knowledge:write", "knowledge:review", "knowledge:publish"])


# ============================================================================
# SERVICE FIXTURES
# ============================================================================

@pytest.fixture
def audit_store() -> InMemoryAuditStore:
    return InMemoryAuditStore()


@pytest.fixture
def ledger(audit_store) -> AuditLedger:
    return AuditLedger(audit_store)


@pytest.fixture
def approval_store() -> InMemoryApprovalStore:
    return InMemoryApprovalStore()


@pytest.fixture
def approval_service(approval_store, ledger) -> ApprovalRequestService:
    return ApprovalRequestService(approval_store, ledger)


@pytest.fixture
def knowledge_store() -> InMemoryResourceStore:
    return InMemoryResourceStore(KNOWLEDGE_PROFILE)


@pytest.fixture
def prompt_store() -> InMemoryResourceStore:
    return InMemoryResourceStore(PROMPT_PROFILE)


@pytest.fixture
def knowledge(knowledge_store, ledger, approval_service) -> GovernanceWorkflow:
    return GovernanceWorkflow(KNOWLEDGE_PROFILE, knowledge_store, ledger, approval_service)


@pytest.fixture
def prompts(prompt_store, ledger, approval_service) -> GovernanceWorkflow:
    return GovernanceWorkflow(PROMPT_PROFILE, prompt_store, ledger, approval_service)


@pytest.fixture
def doc_fields() -> ResourceCreate:
    return ResourceCreate(title="Doc", content="Refund policy: 30 days.", category="billing")
