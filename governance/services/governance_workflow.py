"""
Governance Workflow Engine.

Generic lifecycle state machine for governed resources (knowledge items,
system prompts):

    create -> draft -> submit -> pending_review -> approve -> approved -> publish
                                 pending_review -> reject  -> draft
              any non-archived status -> archive -> archived

Every operation runs the same steps in the same order:
    1. permission check (AI actors are refused before anything is read)
    2. load + status guard
    3. author / self-approval check
    4. conditional write through the ResourceStore
    5. exactly one audit entry

Status writes are compare-and-swap on the prior status, so a transition that
lost a race comes back as CONFLICT instead of overwriting the winner.
Expected failures are returned as Result values; unexpected store exceptions
are caught here and returned as INTERNAL_ERROR.
"""

import functools
from typing import Any, Dict, List, Optional
from uuid import UUID

from governance.domain.actor import ActorContext, ActorKind
from governance.domain.lifecycle import (
    KNOWLEDGE_PROFILE,
    PROMPT_PROFILE,
    GovernanceProfile,
    ResourceStatus,
    Transition,
    can_transition,
)
from governance.domain.permissions import actor_user_id, has_permission
from governance.domain.result import ErrorCode, Result, failure, success
from governance.domain.visibility import can_view, is_editable
from governance.logging import get_logger
from governance.schemas.approval import ApprovalAction, ApprovalRequestCreate
from governance.schemas.audit import AuditEvent
from governance.schemas.pagination import Page, PaginationParams, normalize_pagination
from governance.schemas.resource import (
    GovernedResource,
    ResourceCreate,
    ResourceFilters,
    ResourcePatch,
    ResourceVersion,
)
from governance.services.audit_ledger import AuditLedger
from governance.services.ports import (
    ApprovalRequestPort,
    DuplicateResourceError,
    InvalidCursorError,
    ResourceNotFoundError,
    ResourceStore,
    StaleStateError,
)

logger = get_logger(__name__)


def store_boundary(verb: str):
    """
    Convert store exceptions raised inside a workflow method into Results.

    The decorated method must take (self, actor, *args); args[0], when a UUID,
    is logged as the resource id.
    """
    def decorator(method):
        @functools.wraps(method)
        async def wrapper(self: "GovernanceWorkflow", actor: ActorContext, *args, **kwargs):
            resource_id = str(args[0]) if args and isinstance(args[0], UUID) else None
            action = self.profile.action(verb)
            try:
                return await method(self, actor, *args, **kwargs)
            except StaleStateError as e:
                return self._deny(actor, action, resource_id, ErrorCode.CONFLICT, str(e))
            except DuplicateResourceError as e:
                return self._deny(actor, action, resource_id, ErrorCode.ALREADY_EXISTS, str(e))
            except InvalidCursorError as e:
                return self._deny(actor, action, resource_id, ErrorCode.VALIDATION_ERROR, str(e))
            except ResourceNotFoundError:
                return self._deny(
                    actor, action, resource_id, ErrorCode.NOT_FOUND,
                    f"{self.profile.label} not found: {resource_id}"
                )
            except Exception as e:
                logger.store_failure(operation=action, request_id=actor.request_id, error=str(e))
                return failure(ErrorCode.INTERNAL_ERROR, f"Unexpected error during {action}")
        return wrapper
    return decorator


class GovernanceWorkflow:
    """
    Lifecycle engine for one governed resource type.

    Holds only its collaborators; no state is kept between calls.
    """

    def __init__(
        self,
        profile: GovernanceProfile,
        store: ResourceStore,
        ledger: AuditLedger,
        approvals: ApprovalRequestPort,
    ):
        """
        Initialize the workflow engine.

        Args:
            profile: Names, permissions and live status of the resource type
            store: ResourceStore for that type
            ledger: Audit ledger every effect is recorded in
            approvals: Port used to open review requests on submit
        """
        self.profile = profile
        self.store = store
        self.ledger = ledger
        self.approvals = approvals

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _deny(
        self,
        actor: ActorContext,
        action: str,
        resource_id: Optional[str],
        code: ErrorCode,
        message: str
    ) -> Result[Any]:
        logger.transition_denied(
            action=action,
            resource_id=resource_id,
            actor_type=actor.kind.value,
            request_id=actor.request_id,
            code=code.value,
            reason=message
        )
        return failure(code, message)

    def _not_found(self, actor: ActorContext, verb: str, resource_id: UUID) -> Result[Any]:
        return self._deny(
            actor, self.profile.action(verb), str(resource_id), ErrorCode.NOT_FOUND,
            f"{self.profile.label} not found: {resource_id}"
        )

    def _invalid_state(
        self,
        actor: ActorContext,
        verb: str,
        resource: GovernedResource,
        message: Optional[str] = None
    ) -> Result[Any]:
        return self._deny(
            actor, self.profile.action(verb), str(resource.id), ErrorCode.INVALID_STATE,
            message or f"Cannot {verb.replace('_', ' ')} {self.profile.label.lower()} in {resource.status.value} status"
        )

    def _ai_refused(self, actor: ActorContext, verb: str, resource_id: Optional[UUID]) -> Result[Any]:
        return self._deny(
            actor, self.profile.action(verb), str(resource_id) if resource_id else None,
            ErrorCode.PERMISSION_DENIED, "Governance actions require a human actor"
        )

    def _missing_permission(
        self,
        actor: ActorContext,
        verb: str,
        resource_id: Optional[UUID],
        permission: str
    ) -> Result[Any]:
        return self._deny(
            actor, self.profile.action(verb), str(resource_id) if resource_id else None,
            ErrorCode.PERMISSION_DENIED, f"Missing {permission} permission"
        )

    def _is_owner_or_moderator(self, actor: ActorContext, resource: GovernedResource) -> bool:
        """Author, admin-kind actor, reviewer, or system."""
        if actor.kind == ActorKind.SYSTEM:
            return True
        if resource.author_id == actor_user_id(actor):
            return True
        return actor.kind == ActorKind.ADMIN or has_permission(actor, self.profile.permissions.review)

    async def _record(
        self,
        actor: ActorContext,
        verb: str,
        resource: GovernedResource,
        details: Dict[str, Any],
        from_status: Optional[ResourceStatus] = None
    ) -> None:
        """Write the audit entry for a completed effect. Never raises."""
        action = self.profile.action(verb)
        await self.ledger.log(actor, AuditEvent(
            action=action,
            resource_type=self.profile.resource_type,
            resource_id=str(resource.id),
            details=details,
        ))
        logger.transition_applied(
            action=action,
            resource_id=str(resource.id),
            actor_type=actor.kind.value,
            request_id=actor.request_id,
            from_status=from_status.value if from_status else None,
            to_status=resource.status.value
        )

    # ------------------------------------------------------------------
    # Authoring
    # ------------------------------------------------------------------

    @store_boundary("create")
    async def create(self, actor: ActorContext, fields: ResourceCreate) -> Result[GovernedResource]:
        """
        Create a resource in draft status, version 1, authored by the actor.

        Requires the write permission. AI actors are refused whatever
        permissions they carry.
        """
        if actor.kind == ActorKind.AI:
            return self._ai_refused(actor, "create", None)

        permission = self.profile.permissions.write
        if not has_permission(actor, permission):
            return self._missing_permission(actor, "create", None, permission)

        if not fields.title.strip():
            return self._deny(actor, self.profile.action("create"), None,
                              ErrorCode.VALIDATION_ERROR, "Title is required")
        if not fields.content.strip():
            return self._deny(actor, self.profile.action("create"), None,
                              ErrorCode.VALIDATION_ERROR, "Content is required")

        resource = await self.store.create(actor_user_id(actor), fields)

        await self._record(actor, "create", resource, {"title": resource.title})
        return success(resource)

    @store_boundary("update")
    async def update(
        self,
        actor: ActorContext,
        resource_id: UUID,
        patch: ResourcePatch
    ) -> Result[GovernedResource]:
        """
        Apply a partial update while the resource is editable.

        A content change snapshots the prior content into version history
        and bumps the version by one. Metadata-only edits keep the version.
        """
        if actor.kind == ActorKind.AI:
            return self._ai_refused(actor, "update", resource_id)

        resource = await self.store.get(resource_id)
        if resource is None:
            return self._not_found(actor, "update", resource_id)

        if not is_editable(resource):
            return self._invalid_state(actor, "update", resource)

        if not self._is_owner_or_moderator(actor, resource):
            return self._deny(
                actor, self.profile.action("update"), str(resource_id), ErrorCode.PERMISSION_DENIED,
                f"Only the author or an admin can update this {self.profile.label.lower()}"
            )

        changes = patch.changed_fields()
        content_changed = "content" in changes and changes["content"] != resource.content

        if content_changed:
            await self.store.create_version_snapshot(
                resource_id,
                version=resource.version,
                title=resource.title,
                content=resource.content,
                author_id=resource.author_id,
            )
            changes["version"] = resource.version + 1
        else:
            changes.pop("content", None)

        updated = await self.store.update(resource_id, changes, expected_version=resource.version)

        await self._record(actor, "update", updated, {
            "updates": sorted(k for k in changes if k != "version"),
            "content_changed": content_changed,
            "version": updated.version,
        })
        return success(updated)

    # ------------------------------------------------------------------
    # Review workflow
    # ------------------------------------------------------------------

    @store_boundary("submit_review")
    async def submit_for_review(
        self,
        actor: ActorContext,
        resource_id: UUID,
        notes: Optional[str] = None
    ) -> Result[GovernedResource]:
        """
        Move a draft to pending_review and open an approval request.

        Only the author (or the system actor) may submit.
        """
        verb = Transition.SUBMIT.value
        if actor.kind == ActorKind.AI:
            return self._ai_refused(actor, verb, resource_id)

        resource = await self.store.get(resource_id)
        if resource is None:
            return self._not_found(actor, verb, resource_id)

        if not can_transition(Transition.SUBMIT, resource.status):
            return self._invalid_state(actor, verb, resource)

        if actor.kind != ActorKind.SYSTEM and resource.author_id != actor_user_id(actor):
            return self._deny(
                actor, self.profile.action(verb), str(resource_id), ErrorCode.PERMISSION_DENIED,
                "Only the author can submit for review"
            )

        updated = await self.store.update_status(
            resource_id,
            self.profile.target_status(Transition.SUBMIT),
            expected_status=resource.status,
        )

        request = await self.approvals.open(actor, ApprovalRequestCreate(
            resource_type=self.profile.resource_type,
            resource_id=str(resource_id),
            action=ApprovalAction(self.profile.publish_verb),
            notes=notes,
        ))

        details: Dict[str, Any] = {"notes": notes}
        if request.ok and request.value is not None:
            details["approval_request_id"] = str(request.value.id)
        await self._record(actor, verb, updated, details, from_status=resource.status)
        return success(updated)

    @store_boundary("approve")
    async def approve(
        self,
        actor: ActorContext,
        resource_id: UUID,
        notes: Optional[str] = None
    ) -> Result[GovernedResource]:
        """
        Approve a pending resource. Requires the review permission.

        Authors cannot approve their own submission; only the system actor
        is exempt.
        """
        verb = Transition.APPROVE.value
        if actor.kind == ActorKind.AI:
            return self._ai_refused(actor, verb, resource_id)

        permission = self.profile.permissions.review
        if not has_permission(actor, permission):
            return self._missing_permission(actor, verb, resource_id, permission)

        resource = await self.store.get(resource_id)
        if resource is None:
            return self._not_found(actor, verb, resource_id)

        if not can_transition(Transition.APPROVE, resource.status):
            return self._invalid_state(actor, verb, resource)

        reviewer_id = actor_user_id(actor)
        if actor.kind != ActorKind.SYSTEM and resource.author_id == reviewer_id:
            return self._deny(
                actor, self.profile.action(verb), str(resource_id), ErrorCode.PERMISSION_DENIED,
                f"Cannot approve own {self.profile.label.lower()}"
            )

        updated = await self.store.update_status(
            resource_id,
            self.profile.target_status(Transition.APPROVE),
            expected_status=resource.status,
            reviewer_id=reviewer_id,
        )

        await self._record(actor, verb, updated, {"notes": notes}, from_status=resource.status)
        return success(updated)

    @store_boundary("reject")
    async def reject(
        self,
        actor: ActorContext,
        resource_id: UUID,
        reason: str
    ) -> Result[GovernedResource]:
        """
        Send a pending resource back to draft and clear its reviewer.

        A non-empty reason is required.
        """
        verb = Transition.REJECT.value
        if actor.kind == ActorKind.AI:
            return self._ai_refused(actor, verb, resource_id)

        permission = self.profile.permissions.review
        if not has_permission(actor, permission):
            return self._missing_permission(actor, verb, resource_id, permission)

        if not reason or not reason.strip():
            return self._deny(
                actor, self.profile.action(verb), str(resource_id), ErrorCode.VALIDATION_ERROR,
                "Reason is required"
            )

        resource = await self.store.get(resource_id)
        if resource is None:
            return self._not_found(actor, verb, resource_id)

        if not can_transition(Transition.REJECT, resource.status):
            return self._invalid_state(actor, verb, resource)

        updated = await self.store.update_status(
            resource_id,
            self.profile.target_status(Transition.REJECT),
            expected_status=resource.status,
            clear_reviewer=True,
        )

        await self._record(actor, verb, updated, {"reason": reason.strip()}, from_status=resource.status)
        return success(updated)

    @store_boundary("publish")
    async def publish(self, actor: ActorContext, resource_id: UUID) -> Result[GovernedResource]:
        """
        Make an approved resource live. Requires the publish permission.

        For single-live types (system prompts) the store moves the default
        flag to this resource in the same transaction.
        """
        verb = self.profile.publish_verb
        if actor.kind == ActorKind.AI:
            return self._ai_refused(actor, verb, resource_id)

        permission = self.profile.permissions.publish
        if not has_permission(actor, permission):
            return self._missing_permission(actor, verb, resource_id, permission)

        resource = await self.store.get(resource_id)
        if resource is None:
            return self._not_found(actor, verb, resource_id)

        if not can_transition(Transition.PUBLISH, resource.status):
            return self._invalid_state(
                actor, verb, resource,
                f"Cannot {verb} {self.profile.label.lower()} in {resource.status.value} status (must be approved first)"
            )

        updated = await self.store.publish(resource_id, expected_status=resource.status)

        await self._record(actor, verb, updated, {"version": updated.version}, from_status=resource.status)
        return success(updated)

    @store_boundary("archive")
    async def archive(
        self,
        actor: ActorContext,
        resource_id: UUID,
        reason: Optional[str] = None
    ) -> Result[GovernedResource]:
        """
        Retire a resource. Terminal: archiving twice is INVALID_STATE.

        Allowed for the author, admins, reviewers and the system actor.
        """
        verb = Transition.ARCHIVE.value
        resource = await self.store.get(resource_id)
        if resource is None:
            return self._not_found(actor, verb, resource_id)

        if not self._is_owner_or_moderator(actor, resource):
            return self._deny(
                actor, self.profile.action(verb), str(resource_id), ErrorCode.PERMISSION_DENIED,
                f"Only the author or an admin can archive this {self.profile.label.lower()}"
            )

        if not can_transition(Transition.ARCHIVE, resource.status):
            return self._invalid_state(
                actor, verb, resource, f"{self.profile.label} is already archived"
            )

        updated = await self.store.update_status(
            resource_id,
            self.profile.target_status(Transition.ARCHIVE),
            expected_status=resource.status,
        )

        await self._record(actor, verb, updated, {"reason": reason}, from_status=resource.status)
        return success(updated)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @store_boundary("read")
    async def get(self, actor: ActorContext, resource_id: UUID) -> Result[GovernedResource]:
        """Fetch one resource if the visibility guard allows it."""
        resource = await self.store.get(resource_id)
        if resource is None:
            return self._not_found(actor, "read", resource_id)

        if not can_view(actor, resource, self.profile):
            return self._deny(
                actor, self.profile.action("read"), str(resource_id), ErrorCode.PERMISSION_DENIED,
                f"Cannot view this {self.profile.label.lower()}"
            )
        return success(resource)

    @store_boundary("list")
    async def list(
        self,
        actor: ActorContext,
        filters: Optional[ResourceFilters] = None,
        pagination: Optional[PaginationParams] = None
    ) -> Result[Page[GovernedResource]]:
        """
        List resources. Requires the read permission (AI may list).

        Items the actor cannot view are dropped from the page; the cursor
        still reflects the underlying store page.
        """
        permission = self.profile.permissions.read
        if actor.kind != ActorKind.AI and not has_permission(actor, permission):
            return self._missing_permission(actor, "list", None, permission)

        page = await self.store.list(filters or ResourceFilters(), normalize_pagination(pagination))
        visible = [item for item in page.items if can_view(actor, item, self.profile)]
        return success(Page(items=visible, next_cursor=page.next_cursor, has_more=page.has_more))

    @store_boundary("history")
    async def get_version_history(
        self,
        actor: ActorContext,
        resource_id: UUID
    ) -> Result[List[ResourceVersion]]:
        """Prior content versions, newest first. Same visibility as get()."""
        resource = await self.store.get(resource_id)
        if resource is None:
            return self._not_found(actor, "history", resource_id)

        if not can_view(actor, resource, self.profile):
            return self._deny(
                actor, self.profile.action("history"), str(resource_id), ErrorCode.PERMISSION_DENIED,
                f"Cannot view this {self.profile.label.lower()}"
            )

        versions = await self.store.list_version_history(resource_id)
        return success(versions)

    @store_boundary("read_live")
    async def get_live(self, actor: ActorContext) -> Result[GovernedResource]:
        """
        Current default live resource (the active system prompt).

        AI and system actors are always allowed; others need read permission.
        """
        permission = self.profile.permissions.read
        if actor.kind not in (ActorKind.AI, ActorKind.SYSTEM) and not has_permission(actor, permission):
            return self._missing_permission(actor, "read_live", None, permission)

        resource = await self.store.get_live()
        if resource is None:
            return self._deny(
                actor, self.profile.action("read_live"), None, ErrorCode.NOT_FOUND,
                f"No {self.profile.publish_verb}d {self.profile.label.lower()} found"
            )
        return success(resource)


def knowledge_workflow(
    store: ResourceStore,
    ledger: AuditLedger,
    approvals: ApprovalRequestPort
) -> GovernanceWorkflow:
    """Workflow engine for knowledge items (live status: published)."""
    return GovernanceWorkflow(KNOWLEDGE_PROFILE, store, ledger, approvals)


def prompt_workflow(
    store: ResourceStore,
    ledger: AuditLedger,
    approvals: ApprovalRequestPort
) -> GovernanceWorkflow:
    """Workflow engine for system prompts (live status: active, single default)."""
    return GovernanceWorkflow(PROMPT_PROFILE, store, ledger, approvals)
