"""
Ports required by the governance services.

The workflow engine and the audit ledger only talk to these protocols.
Concrete SQLAlchemy adapters live in governance.stores; tests use in-memory
implementations.
"""

from typing import Any, Dict, List, Optional, Protocol
from uuid import UUID

from governance.domain.actor import ActorContext
from governance.domain.lifecycle import ResourceStatus
from governance.domain.result import Result
from governance.schemas.approval import ApprovalRequestCreate
from governance.schemas.audit import AuditLogEntry, AuditLogRecord, AuditQuery
from governance.schemas.pagination import Page, PaginationParams
from governance.schemas.resource import (
    GovernedResource,
    ResourceCreate,
    ResourceFilters,
    ResourceVersion,
)


class StoreError(Exception):
    """Base class for expected store-level failures."""


class ResourceNotFoundError(StoreError):
    """Row vanished between read and write."""


class StaleStateError(StoreError):
    """
    Conditional write lost: the row no longer matches the expected prior state.

    Raised instead of silently overwriting a concurrent transition.
    """

    def __init__(self, resource_id: Any, expected: Any, actual: Any = None):
        super().__init__(
            f"Resource {resource_id} is no longer {expected}"
            + (f" (now {actual})" if actual is not None else "")
        )
        self.resource_id = resource_id
        self.expected = expected
        self.actual = actual


class DuplicateResourceError(StoreError):
    """Unique constraint violated on insert."""


class InvalidCursorError(StoreError):
    """Pagination cursor the store did not issue."""

    def __init__(self, cursor: str):
        super().__init__(f"Invalid pagination cursor: {cursor!r}")
        self.cursor = cursor


class ResourceStore(Protocol):
    """Persistence for one governed resource type."""

    async def create(self, author_id: str, fields: ResourceCreate) -> GovernedResource:
        ...

    async def get(self, resource_id: UUID) -> Optional[GovernedResource]:
        ...

    async def update(
        self,
        resource_id: UUID,
        changes: Dict[str, Any],
        expected_version: int,
    ) -> GovernedResource:
        """Apply field changes. Raises StaleStateError if version moved."""
        ...

    async def update_status(
        self,
        resource_id: UUID,
        status: ResourceStatus,
        expected_status: ResourceStatus,
        reviewer_id: Optional[str] = None,
        clear_reviewer: bool = False,
    ) -> GovernedResource:
        """
        Compare-and-swap the status.

        reviewer_id is written when given; clear_reviewer nulls it.
        Raises StaleStateError if the row is no longer in expected_status.
        """
        ...

    async def publish(self, resource_id: UUID, expected_status: ResourceStatus) -> GovernedResource:
        """Move to the live status, stamping published/activated time."""
        ...

    async def create_version_snapshot(
        self,
        resource_id: UUID,
        version: int,
        title: str,
        content: str,
        author_id: str,
    ) -> ResourceVersion:
        ...

    async def list_version_history(self, resource_id: UUID) -> List[ResourceVersion]:
        ...

    async def list(self, filters: ResourceFilters, pagination: PaginationParams) -> Page[GovernedResource]:
        ...

    async def get_live(self) -> Optional[GovernedResource]:
        """The current default live resource, if the type has one."""
        ...


class AuditStore(Protocol):
    """Append-only persistence for audit entries."""

    async def insert_one(self, entry: AuditLogRecord) -> AuditLogEntry:
        ...

    async def insert_batch(self, entries: List[AuditLogRecord]) -> int:
        ...

    async def query(self, query: AuditQuery) -> Page[AuditLogEntry]:
        ...

    async def by_resource(self, resource_type: str, resource_id: str) -> List[AuditLogEntry]:
        ...

    async def by_actor(self, actor_id: str, pagination: PaginationParams) -> Page[AuditLogEntry]:
        ...


class ApprovalRequestPort(Protocol):
    """Opens a review request when a resource is submitted."""

    async def open(self, actor: ActorContext, params: ApprovalRequestCreate) -> Result[Any]:
        ...
