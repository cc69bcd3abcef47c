"""
Governed Resources API Routers.

One router per governed resource type (knowledge items, system prompts),
built from the type's GovernanceProfile. Routes are thin: parse input, call
the workflow engine, render the Result.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from governance.api.dependencies import get_actor, workflow_dependency
from governance.api.responses import respond
from governance.config import settings
from governance.domain.actor import ActorContext
from governance.domain.lifecycle import (
    KNOWLEDGE_PROFILE,
    PROMPT_PROFILE,
    GovernanceProfile,
    ResourceStatus,
)
from governance.schemas.pagination import PaginationParams
from governance.schemas.resource import ResourceCreate, ResourceFilters, ResourcePatch
from governance.services.governance_workflow import GovernanceWorkflow


class SubmitRequest(BaseModel):
    notes: Optional[str] = Field(None, description="Notes for the reviewer")


class ApproveRequest(BaseModel):
    notes: Optional[str] = Field(None, description="Approval notes")


class RejectRequest(BaseModel):
    reason: str = Field(..., description="Why the resource goes back to draft")


class ArchiveRequest(BaseModel):
    reason: Optional[str] = None


def build_resource_router(profile: GovernanceProfile, prefix: str) -> APIRouter:
    """
    Build the CRUD and workflow routes for one resource type.

    Single-live types also get GET {prefix}/live for the current default.
    """
    router = APIRouter(prefix=prefix, tags=[prefix.strip("/")])
    get_workflow = workflow_dependency(profile)

    @router.post("", status_code=201)
    async def create_resource(
        body: ResourceCreate,
        actor: ActorContext = Depends(get_actor),
        workflow: GovernanceWorkflow = Depends(get_workflow)
    ) -> JSONResponse:
        """Create a draft."""
        return respond(await workflow.create(actor, body), actor, status_code=201)

    @router.get("")
    async def list_resources(
        status: Optional[ResourceStatus] = Query(None, description="Filter by status"),
        category: Optional[str] = Query(None),
        author_id: Optional[str] = Query(None),
        cursor: Optional[str] = Query(None, description="Cursor from a previous page"),
        limit: int = Query(settings.default_page_limit, description="Clamped to [1, max_page_limit]"),
        actor: ActorContext = Depends(get_actor),
        workflow: GovernanceWorkflow = Depends(get_workflow)
    ) -> JSONResponse:
        """
        List resources visible to the caller, newest first.

        Drafts of other authors are hidden unless the caller is a reviewer.
        """
        result = await workflow.list(
            actor,
            ResourceFilters(status=status, category=category, author_id=author_id),
            PaginationParams(cursor=cursor, limit=limit),
        )
        return respond(result, actor)

    if profile.single_live:
        @router.get("/live")
        async def get_live_resource(
            actor: ActorContext = Depends(get_actor),
            workflow: GovernanceWorkflow = Depends(get_workflow)
        ) -> JSONResponse:
            """Current default live resource."""
            return respond(await workflow.get_live(actor), actor)

    @router.get("/{resource_id}")
    async def get_resource(
        resource_id: UUID,
        actor: ActorContext = Depends(get_actor),
        workflow: GovernanceWorkflow = Depends(get_workflow)
    ) -> JSONResponse:
        return respond(await workflow.get(actor, resource_id), actor)

    @router.patch("/{resource_id}")
    async def update_resource(
        resource_id: UUID,
        body: ResourcePatch,
        actor: ActorContext = Depends(get_actor),
        workflow: GovernanceWorkflow = Depends(get_workflow)
    ) -> JSONResponse:
        """Edit a draft or pending resource. Content edits bump the version."""
        return respond(await workflow.update(actor, resource_id, body), actor)

    @router.get("/{resource_id}/versions")
    async def get_version_history(
        resource_id: UUID,
        actor: ActorContext = Depends(get_actor),
        workflow: GovernanceWorkflow = Depends(get_workflow)
    ) -> JSONResponse:
        return respond(await workflow.get_version_history(actor, resource_id), actor)

    @router.post("/{resource_id}/submit")
    async def submit_resource(
        resource_id: UUID,
        body: SubmitRequest = SubmitRequest(),
        actor: ActorContext = Depends(get_actor),
        workflow: GovernanceWorkflow = Depends(get_workflow)
    ) -> JSONResponse:
        return respond(await workflow.submit_for_review(actor, resource_id, body.notes), actor)

    @router.post("/{resource_id}/approve")
    async def approve_resource(
        resource_id: UUID,
        body: ApproveRequest = ApproveRequest(),
        actor: ActorContext = Depends(get_actor),
        workflow: GovernanceWorkflow = Depends(get_workflow)
    ) -> JSONResponse:
        return respond(await workflow.approve(actor, resource_id, body.notes), actor)

    @router.post("/{resource_id}/reject")
    async def reject_resource(
        resource_id: UUID,
        body: RejectRequest,
        actor: ActorContext = Depends(get_actor),
        workflow: GovernanceWorkflow = Depends(get_workflow)
    ) -> JSONResponse:
        return respond(await workflow.reject(actor, resource_id, body.reason), actor)

    @router.post(f"/{{resource_id}}/{profile.publish_verb}")
    async def publish_resource(
        resource_id: UUID,
        actor: ActorContext = Depends(get_actor),
        workflow: GovernanceWorkflow = Depends(get_workflow)
    ) -> JSONResponse:
        """Make an approved resource live."""
        return respond(await workflow.publish(actor, resource_id), actor)

    @router.post("/{resource_id}/archive")
    async def archive_resource(
        resource_id: UUID,
        body: ArchiveRequest = ArchiveRequest(),
        actor: ActorContext = Depends(get_actor),
        workflow: GovernanceWorkflow = Depends(get_workflow)
    ) -> JSONResponse:
        return respond(await workflow.archive(actor, resource_id, body.reason), actor)

    return router


knowledge_router = build_resource_router(KNOWLEDGE_PROFILE, "/knowledge")
prompt_router = build_resource_router(PROMPT_PROFILE, "/prompts")
