"""
Governance workflow engine tests.

Runs the lifecycle against in-memory ports: permission checks, status
guards, self-approval, version history, audit entries and store failure
handling.
"""

import pytest
from uuid import uuid4

from governance.domain.actor import ActorContext, ActorKind
from governance.domain.lifecycle import ResourceStatus
from governance.domain.result import ErrorCode
from governance.schemas.approval import ApprovalStatus
from governance.schemas.pagination import PaginationParams
from governance.schemas.resource import ResourceCreate, ResourceFilters, ResourcePatch
from governance.services.ports import DuplicateResourceError

pytestmark = pytest.mark.asyncio


async def create_item(workflow, actor, fields):
    result = await workflow.create(actor, fields)
    assert result.ok, result.error
    return result.value


async def pending_item(workflow, author, fields):
    item = await create_item(workflow, author, fields)
    assert (await workflow.submit_for_review(author, item.id)).ok
    return item


async def approved_item(workflow, author, reviewer, fields):
    item = await pending_item(workflow, author, fields)
    assert (await workflow.approve(reviewer, item.id)).ok
    return item


class TestScenarios:
    """End-to-end lifecycle scenarios."""

    async def test_create_submit_approve_publish(self, knowledge, author, reviewer, doc_fields):
        created = await knowledge.create(author, doc_fields)
        assert created.ok
        item = created.value
        assert item.status == ResourceStatus.DRAFT
        assert item.version == 1
        assert item.author_id == "u1"
        assert item.title == "Doc"

        submitted = await knowledge.submit_for_review(author, item.id)
        assert submitted.value.status == ResourceStatus.PENDING_REVIEW

        approved = await knowledge.approve(reviewer, item.id)
        assert approved.value.status == ResourceStatus.APPROVED
        assert approved.value.reviewer_id == "r1"

        published = await knowledge.publish(reviewer, item.id)
        assert published.ok
        assert published.value.status == ResourceStatus.PUBLISHED
        assert published.value.published_at is not None

    async def test_author_with_review_permission_cannot_self_approve(self, knowledge, author, doc_fields):
        item = await pending_item(knowledge, author, doc_fields)
        author_reviewer = ActorContext.user("u1", ["knowledge:review"])

        result = await knowledge.approve(author_reviewer, item.id)

        assert result.code == ErrorCode.PERMISSION_DENIED
        assert "own" in result.error.message

    async def test_reject_from_approved_is_invalid_state(self, knowledge, author, reviewer, doc_fields):
        item = await approved_item(knowledge, author, reviewer, doc_fields)

        result = await knowledge.reject(reviewer, item.id, "needs more detail")

        assert result.code == ErrorCode.INVALID_STATE

    async def test_ai_cannot_create_with_any_permissions(self, knowledge, ai_actor, doc_fields, audit_store):
        result = await knowledge.create(ai_actor, doc_fields)

        assert result.code == ErrorCode.PERMISSION_DENIED
        assert audit_store.entries == []


class TestCreate:

    async def test_requires_write_permission(self, knowledge, reader, doc_fields):
        result = await knowledge.create(reader, doc_fields)
        assert result.code == ErrorCode.PERMISSION_DENIED

    async def test_system_can_create(self, knowledge, system_actor, doc_fields):
        result = await knowledge.create(system_actor, doc_fields)
        assert result.ok
        assert result.value.author_id == "system"

    async def test_admin_prefix_grant_can_create(self, knowledge, admin, doc_fields):
        result = await knowledge.create(admin, doc_fields)
        assert result.value.author_id == "admin-1"

    @pytest.mark.parametrize("title,content", [("", "body"), ("   ", "body"), ("Doc", ""), ("Doc", "  ")])
    async def test_blank_fields_rejected(self, knowledge, author, title, content):
        result = await knowledge.create(author, ResourceCreate(title=title, content=content))
        assert result.code == ErrorCode.VALIDATION_ERROR

    async def test_duplicate_surfaces_as_already_exists(self, knowledge, knowledge_store, author, doc_fields):
        knowledge_store.fail_with = DuplicateResourceError("duplicate key")

        result = await knowledge.create(author, doc_fields)

        assert result.code == ErrorCode.ALREADY_EXISTS

    async def test_unexpected_store_error_is_internal_error(self, knowledge, knowledge_store, author, doc_fields):
        knowledge_store.fail_with = RuntimeError("connection reset")

        result = await knowledge.create(author, doc_fields)

        assert result.code == ErrorCode.INTERNAL_ERROR
        assert "connection reset" not in result.error.message


class TestUpdate:

    async def test_content_change_snapshots_and_bumps_version(self, knowledge, author, doc_fields):
        item = await create_item(knowledge, author, doc_fields)

        result = await knowledge.update(author, item.id, ResourcePatch(content="Refund policy: 14 days."))

        assert result.value.version == 2
        assert result.value.content == "Refund policy: 14 days."
        history = (await knowledge.get_version_history(author, item.id)).value
        assert [(v.version, v.content) for v in history] == [(1, "Refund policy: 30 days.")]

    async def test_metadata_change_keeps_version(self, knowledge, author, doc_fields):
        item = await create_item(knowledge, author, doc_fields)

        result = await knowledge.update(author, item.id, ResourcePatch(title="Refunds", category="support"))

        assert result.value.version == 1
        assert result.value.title == "Refunds"
        assert result.value.category == "support"
        assert (await knowledge.get_version_history(author, item.id)).value == []

    async def test_same_content_is_not_a_change(self, knowledge, author, doc_fields):
        item = await create_item(knowledge, author, doc_fields)

        result = await knowledge.update(author, item.id, ResourcePatch(content=doc_fields.content))

        assert result.value.version == 1

    async def test_successive_edits_build_history(self, knowledge, author, doc_fields):
        item = await create_item(knowledge, author, doc_fields)
        await knowledge.update(author, item.id, ResourcePatch(content="v2"))
        result = await knowledge.update(author, item.id, ResourcePatch(content="v3"))

        assert result.value.version == 3
        history = (await knowledge.get_version_history(author, item.id)).value
        assert [v.version for v in history] == [2, 1]
        assert history[0].content == "v2"

    async def test_pending_is_still_editable(self, knowledge, author, doc_fields):
        item = await pending_item(knowledge, author, doc_fields)
        result = await knowledge.update(author, item.id, ResourcePatch(content="fixed typo"))
        assert result.value.status == ResourceStatus.PENDING_REVIEW

    async def test_approved_is_not_editable(self, knowledge, author, reviewer, doc_fields):
        item = await approved_item(knowledge, author, reviewer, doc_fields)
        result = await knowledge.update(author, item.id, ResourcePatch(content="sneaky"))
        assert result.code == ErrorCode.INVALID_STATE

    async def test_other_user_cannot_update(self, knowledge, author, doc_fields):
        item = await create_item(knowledge, author, doc_fields)
        other = ActorContext.user("u2", ["knowledge:write"])
        result = await knowledge.update(other, item.id, ResourcePatch(title="mine now"))
        assert result.code == ErrorCode.PERMISSION_DENIED

    async def test_reviewer_admin_and_system_can_update(self, knowledge, author, reviewer, admin, system_actor, doc_fields):
        item = await create_item(knowledge, author, doc_fields)
        for actor in (reviewer, admin, system_actor):
            assert (await knowledge.update(actor, item.id, ResourcePatch(description="ok"))).ok

    async def test_ai_denied(self, knowledge, author, ai_actor, doc_fields):
        item = await create_item(knowledge, author, doc_fields)
        result = await knowledge.update(ai_actor, item.id, ResourcePatch(title="x"))
        assert result.code == ErrorCode.PERMISSION_DENIED

    async def test_not_found(self, knowledge, author):
        result = await knowledge.update(author, uuid4(), ResourcePatch(title="x"))
        assert result.code == ErrorCode.NOT_FOUND


class TestSubmit:

    async def test_opens_approval_request(self, knowledge, author, doc_fields, approval_store):
        item = await create_item(knowledge, author, doc_fields)

        await knowledge.submit_for_review(author, item.id, notes="please check")

        [request] = approval_store.rows.values()
        assert request.resource_type == "knowledge_item"
        assert request.resource_id == str(item.id)
        assert request.action.value == "publish"
        assert request.requester_id == "u1"
        assert request.request_notes == "please check"
        assert request.status == ApprovalStatus.PENDING

    async def test_prompt_requests_activation(self, prompts, author, doc_fields, approval_store):
        prompt = await create_item(prompts, author, doc_fields)
        await prompts.submit_for_review(author, prompt.id)
        [request] = approval_store.rows.values()
        assert request.action.value == "activate"

    @pytest.mark.parametrize("steps", [1, 2, 3])
    async def test_only_from_draft(self, knowledge, author, reviewer, doc_fields, steps):
        item = await pending_item(knowledge, author, doc_fields)
        if steps >= 2:
            await knowledge.approve(reviewer, item.id)
        if steps >= 3:
            await knowledge.publish(reviewer, item.id)

        result = await knowledge.submit_for_review(author, item.id)

        assert result.code == ErrorCode.INVALID_STATE

    async def test_archived_cannot_be_submitted(self, knowledge, author, doc_fields):
        item = await create_item(knowledge, author, doc_fields)
        await knowledge.archive(author, item.id)
        result = await knowledge.submit_for_review(author, item.id)
        assert result.code == ErrorCode.INVALID_STATE

    async def test_only_author_or_system(self, knowledge, author, reviewer, system_actor, doc_fields):
        item = await create_item(knowledge, author, doc_fields)
        assert (await knowledge.submit_for_review(reviewer, item.id)).code == ErrorCode.PERMISSION_DENIED
        assert (await knowledge.submit_for_review(system_actor, item.id)).ok

    async def test_ai_denied(self, knowledge, author, ai_actor, doc_fields):
        item = await create_item(knowledge, author, doc_fields)
        assert (await knowledge.submit_for_review(ai_actor, item.id)).code == ErrorCode.PERMISSION_DENIED


class TestApproveReject:

    async def test_requires_review_permission(self, knowledge, author, doc_fields):
        item = await pending_item(knowledge, author, doc_fields)
        writer = ActorContext.user("u2", ["knowledge:write", "knowledge:read"])
        assert (await knowledge.approve(writer, item.id)).code == ErrorCode.PERMISSION_DENIED

    async def test_system_may_approve_own_item(self, knowledge, system_actor, doc_fields):
        item = await pending_item(knowledge, system_actor, doc_fields)

        result = await knowledge.approve(system_actor, item.id)

        assert result.value.status == ResourceStatus.APPROVED
        assert result.value.reviewer_id == "system"

    async def test_approve_requires_pending(self, knowledge, author, reviewer, doc_fields):
        item = await create_item(knowledge, author, doc_fields)
        assert (await knowledge.approve(reviewer, item.id)).code == ErrorCode.INVALID_STATE

    async def test_approve_not_found(self, knowledge, reviewer):
        assert (await knowledge.approve(reviewer, uuid4())).code == ErrorCode.NOT_FOUND

    async def test_reject_returns_to_draft_and_allows_resubmit(self, knowledge, author, reviewer, doc_fields):
        item = await pending_item(knowledge, author, doc_fields)

        rejected = await knowledge.reject(reviewer, item.id, "cite a source")

        assert rejected.value.status == ResourceStatus.DRAFT
        assert rejected.value.reviewer_id is None
        assert (await knowledge.submit_for_review(author, item.id)).ok

    async def test_prompt_reject_clears_reviewer(self, prompts, author, reviewer, doc_fields):
        prompt = await pending_item(prompts, author, doc_fields)
        rejected = await prompts.reject(reviewer, prompt.id, "too long")
        assert rejected.value.reviewer_id is None

    @pytest.mark.parametrize("reason", ["", "   "])
    async def test_reject_requires_reason(self, knowledge, author, reviewer, doc_fields, reason):
        item = await pending_item(knowledge, author, doc_fields)
        assert (await knowledge.reject(reviewer, item.id, reason)).code == ErrorCode.VALIDATION_ERROR

    async def test_ai_denied(self, knowledge, author, ai_actor, doc_fields):
        item = await pending_item(knowledge, author, doc_fields)
        assert (await knowledge.approve(ai_actor, item.id)).code == ErrorCode.PERMISSION_DENIED
        assert (await knowledge.reject(ai_actor, item.id, "no")).code == ErrorCode.PERMISSION_DENIED

    async def test_lost_race_is_conflict(self, knowledge, knowledge_store, author, reviewer, doc_fields, monkeypatch):
        item = await pending_item(knowledge, author, doc_fields)
        stale = await knowledge_store.get(item.id)
        assert (await knowledge.approve(reviewer, item.id)).ok

        async def stale_get(resource_id):
            return stale

        monkeypatch.setattr(knowledge_store, "get", stale_get)
        second_reviewer = ActorContext.user("r2", ["knowledge:review"])

        result = await knowledge.approve(second_reviewer, item.id)

        assert result.code == ErrorCode.CONFLICT
        assert knowledge_store.rows[item.id].reviewer_id == "r1"


class TestPublish:

    async def test_requires_approved(self, knowledge, author, reviewer, doc_fields):
        item = await pending_item(knowledge, author, doc_fields)
        result = await knowledge.publish(reviewer, item.id)
        assert result.code == ErrorCode.INVALID_STATE
        assert "approved" in result.error.message

    async def test_requires_publish_permission(self, knowledge, author, reviewer, doc_fields):
        item = await approved_item(knowledge, author, reviewer, doc_fields)
        review_only = ActorContext.user("r2", ["knowledge:review"])
        assert (await knowledge.publish(review_only, item.id)).code == ErrorCode.PERMISSION_DENIED

    async def test_ai_denied(self, knowledge, author, reviewer, ai_actor, doc_fields):
        item = await approved_item(knowledge, author, reviewer, doc_fields)
        assert (await knowledge.publish(ai_actor, item.id)).code == ErrorCode.PERMISSION_DENIED

    async def test_activating_prompt_moves_default(self, prompts, author, reviewer, doc_fields):
        first = await approved_item(prompts, author, reviewer, doc_fields)
        second = await approved_item(prompts, author, reviewer, ResourceCreate(title="P2", content="Be brief."))

        activated = await prompts.publish(reviewer, first.id)
        assert activated.value.status == ResourceStatus.ACTIVE
        assert activated.value.is_default
        assert activated.value.activated_at is not None
        assert (await prompts.get_live(ActorContext.ai())).value.id == first.id

        await prompts.publish(reviewer, second.id)

        assert (await prompts.get_live(ActorContext.ai())).value.id == second.id
        assert not (await prompts.get(reviewer, first.id)).value.is_default

    async def test_no_live_prompt(self, prompts, reader):
        assert (await prompts.get_live(reader)).code == ErrorCode.NOT_FOUND

    async def test_get_live_requires_read(self, prompts, outsider):
        assert (await prompts.get_live(outsider)).code == ErrorCode.PERMISSION_DENIED


class TestArchive:

    @pytest.mark.parametrize("stage", ["draft", "pending", "approved", "published"])
    async def test_archive_from_any_live_or_working_status(self, knowledge, author, reviewer, doc_fields, stage):
        item = await create_item(knowledge, author, doc_fields)
        if stage != "draft":
            await knowledge.submit_for_review(author, item.id)
        if stage in ("approved", "published"):
            await knowledge.approve(reviewer, item.id)
        if stage == "published":
            await knowledge.publish(reviewer, item.id)

        result = await knowledge.archive(author, item.id, "outdated")

        assert result.value.status == ResourceStatus.ARCHIVED

    async def test_double_archive_is_invalid_state(self, knowledge, author, doc_fields):
        item = await create_item(knowledge, author, doc_fields)
        assert (await knowledge.archive(author, item.id)).ok

        result = await knowledge.archive(author, item.id)

        assert result.code == ErrorCode.INVALID_STATE
        assert "already archived" in result.error.message

    async def test_outsider_cannot_archive(self, knowledge, author, outsider, doc_fields):
        item = await create_item(knowledge, author, doc_fields)
        assert (await knowledge.archive(outsider, item.id)).code == ErrorCode.PERMISSION_DENIED

    async def test_outsider_cannot_learn_archived_status(self, knowledge, author, outsider, doc_fields):
        item = await create_item(knowledge, author, doc_fields)
        await knowledge.archive(author, item.id)

        result = await knowledge.archive(outsider, item.id)

        assert result.code == ErrorCode.PERMISSION_DENIED
        assert "archived" not in result.error.message

    async def test_admin_kind_can_archive_without_grants(self, knowledge, author, doc_fields):
        item = await create_item(knowledge, author, doc_fields)
        assert (await knowledge.archive(ActorContext.admin("a2"), item.id)).ok

    async def test_ai_gated_by_ownership(self, knowledge, author, doc_fields):
        item = await create_item(knowledge, author, doc_fields)
        assert (await knowledge.archive(ActorContext.ai(), item.id)).code == ErrorCode.PERMISSION_DENIED

    async def test_archiving_active_prompt_clears_default(self, prompts, author, reviewer, doc_fields):
        prompt = await approved_item(prompts, author, reviewer, doc_fields)
        await prompts.publish(reviewer, prompt.id)

        archived = await prompts.archive(reviewer, prompt.id, "replaced")

        assert not archived.value.is_default
        assert (await prompts.get_live(reviewer)).code == ErrorCode.NOT_FOUND

    async def test_not_found(self, knowledge, author):
        assert (await knowledge.archive(author, uuid4())).code == ErrorCode.NOT_FOUND


class TestReads:

    async def test_draft_hidden_from_readers_and_ai(self, knowledge, author, reader, doc_fields):
        item = await create_item(knowledge, author, doc_fields)
        assert (await knowledge.get(reader, item.id)).code == ErrorCode.PERMISSION_DENIED
        assert (await knowledge.get(ActorContext.ai(), item.id)).code == ErrorCode.PERMISSION_DENIED
        assert (await knowledge.get(author, item.id)).ok

    async def test_published_visible_to_ai(self, knowledge, author, reviewer, doc_fields):
        item = await approved_item(knowledge, author, reviewer, doc_fields)
        await knowledge.publish(reviewer, item.id)
        assert (await knowledge.get(ActorContext.ai(), item.id)).value.id == item.id

    async def test_get_not_found(self, knowledge, author):
        assert (await knowledge.get(author, uuid4())).code == ErrorCode.NOT_FOUND

    async def test_list_filters_by_visibility(self, knowledge, author, reviewer, reader, doc_fields):
        draft = await create_item(knowledge, author, doc_fields)
        live = await approved_item(knowledge, author, reviewer, ResourceCreate(title="Live", content="x"))
        await knowledge.publish(reviewer, live.id)

        reader_ids = [i.id for i in (await knowledge.list(reader)).value.items]
        author_ids = [i.id for i in (await knowledge.list(author)).value.items]
        ai_ids = [i.id for i in (await knowledge.list(ActorContext.ai())).value.items]

        assert reader_ids == [live.id]
        assert ai_ids == [live.id]
        assert set(author_ids) == {draft.id, live.id}

    async def test_list_requires_read(self, knowledge, outsider):
        assert (await knowledge.list(outsider)).code == ErrorCode.PERMISSION_DENIED

    async def test_list_filters_and_clamps(self, knowledge, knowledge_store, author, doc_fields):
        for _ in range(3):
            await create_item(knowledge, author, doc_fields)

        page = (await knowledge.list(
            author, ResourceFilters(status=ResourceStatus.DRAFT), PaginationParams(limit=0)
        )).value

        assert len(page.items) == 1
        assert page.has_more
        assert page.next_cursor is not None

    async def test_malformed_cursor_is_validation_error(self, knowledge, author):
        result = await knowledge.list(author, None, PaginationParams(cursor="garbage"))

        assert result.code == ErrorCode.VALIDATION_ERROR
        assert "garbage" in result.error.message

    async def test_store_outage_is_internal_error(self, knowledge, knowledge_store, author):
        knowledge_store.fail_with = RuntimeError("db down")

        result = await knowledge.list(author)

        assert result.code == ErrorCode.INTERNAL_ERROR

    async def test_history_hidden_like_resource(self, knowledge, author, reader, doc_fields):
        item = await create_item(knowledge, author, doc_fields)
        assert (await knowledge.get_version_history(reader, item.id)).code == ErrorCode.PERMISSION_DENIED


class TestAuditTrail:

    async def test_each_mutation_writes_one_matching_entry(self, knowledge, audit_store, author, reviewer, doc_fields):
        item = await create_item(knowledge, author, doc_fields)
        calls = [
            (author, lambda: knowledge.update(author, item.id, ResourcePatch(content="v2"))),
            (author, lambda: knowledge.submit_for_review(author, item.id)),
            (reviewer, lambda: knowledge.approve(reviewer, item.id, "lgtm")),
            (reviewer, lambda: knowledge.publish(reviewer, item.id)),
            (reviewer, lambda: knowledge.archive(reviewer, item.id, "retired")),
        ]
        for actor, call in calls:
            before = len(audit_store.for_resource(item.id))
            assert (await call()).ok
            entries = audit_store.for_resource(item.id)
            assert len(entries) == before + 1
            assert entries[-1].actor_type == actor.kind
            assert entries[-1].actor_id == actor.user_id

        actions = [e.action for e in audit_store.for_resource(item.id)]
        assert actions == [
            "knowledge.create", "knowledge.update", "knowledge.submit_review",
            "knowledge.approve", "knowledge.publish", "knowledge.archive",
        ]

    async def test_details_carry_context(self, knowledge, audit_store, author, reviewer, doc_fields):
        item = await pending_item(knowledge, author, doc_fields)
        await knowledge.reject(reviewer, item.id, "cite a source")
        await knowledge.update(author, item.id, ResourcePatch(content="v2", title="Doc 2"))

        reject_entry, update_entry = audit_store.for_resource(item.id)[-2:]
        assert reject_entry.details == {"reason": "cite a source"}
        assert update_entry.details["updates"] == ["content", "title"]
        assert update_entry.details["content_changed"] is True
        assert update_entry.details["version"] == 2

    async def test_entry_carries_provenance(self, knowledge, audit_store, author, doc_fields):
        item = await create_item(knowledge, author, doc_fields)
        [entry] = audit_store.for_resource(item.id)
        assert entry.resource_type == "knowledge_item"
        assert entry.ip_address == "10.0.0.1"
        assert entry.user_agent == "pytest"
        assert entry.request_id == author.request_id

    async def test_failed_operations_are_not_audited(self, knowledge, audit_store, author, reviewer, doc_fields):
        item = await create_item(knowledge, author, doc_fields)
        count = len(audit_store.entries)
        await knowledge.approve(reviewer, item.id)
        await knowledge.publish(reviewer, item.id)
        assert len(audit_store.entries) == count

    async def test_audit_outage_does_not_fail_transition(self, knowledge, knowledge_store, audit_store, author, doc_fields):
        item = await create_item(knowledge, author, doc_fields)
        audit_store.fail_with = RuntimeError("audit db down")

        result = await knowledge.submit_for_review(author, item.id)

        assert result.ok
        assert knowledge_store.rows[item.id].status == ResourceStatus.PENDING_REVIEW

    async def test_system_and_ai_recorded_by_kind(self, knowledge, audit_store, system_actor, doc_fields):
        item = await create_item(knowledge, system_actor, doc_fields)
        [entry] = audit_store.for_resource(item.id)
        assert entry.actor_type == ActorKind.SYSTEM
        assert entry.actor_id is None
