"""
Governed-resource lifecycle.

    draft -> pending_review -> approved -> <live>
    pending_review -> draft                      (reject)
    any status except archived -> archived       (archive, terminal)

<live> is "published" for knowledge items and "active" for system prompts.
A GovernanceProfile binds one resource type to its status names, permission
namespace and audit action prefix; the workflow engine is written once
against the profile.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet

from governance.domain.permissions import (
    KNOWLEDGE_PERMISSIONS,
    PROMPT_PERMISSIONS,
    PermissionSet,
)


class ResourceStatus(str, Enum):
    """Lifecycle status of a governed resource."""
    DRAFT = "draft"
    PENDING_REVIEW = "pending_review"
    APPROVED = "approved"
    PUBLISHED = "published"  # live status for knowledge items
    ACTIVE = "active"        # live status for system prompts
    ARCHIVED = "archived"


class Transition(str, Enum):
    """Workflow operations that move a resource between statuses."""
    SUBMIT = "submit_review"
    APPROVE = "approve"
    REJECT = "reject"
    PUBLISH = "publish"
    ARCHIVE = "archive"


EDITABLE_STATUSES: FrozenSet[ResourceStatus] = frozenset({
    ResourceStatus.DRAFT,
    ResourceStatus.PENDING_REVIEW,
})

# Required prior status for each forward transition.
# ARCHIVE is handled separately: legal from every status except ARCHIVED.
REQUIRED_STATUS: Dict[Transition, ResourceStatus] = {
    Transition.SUBMIT: ResourceStatus.DRAFT,
    Transition.APPROVE: ResourceStatus.PENDING_REVIEW,
    Transition.REJECT: ResourceStatus.PENDING_REVIEW,
    Transition.PUBLISH: ResourceStatus.APPROVED,
}

TARGET_STATUS: Dict[Transition, ResourceStatus] = {
    Transition.SUBMIT: ResourceStatus.PENDING_REVIEW,
    Transition.APPROVE: ResourceStatus.APPROVED,
    Transition.REJECT: ResourceStatus.DRAFT,
    Transition.ARCHIVE: ResourceStatus.ARCHIVED,
}


def can_transition(transition: Transition, current: ResourceStatus) -> bool:
    """Is `transition` legal from `current`."""
    if transition == Transition.ARCHIVE:
        return current != ResourceStatus.ARCHIVED
    return REQUIRED_STATUS[transition] == current


@dataclass(frozen=True)
class GovernanceProfile:
    """Binds a resource type to its names, permissions and live status."""
    resource_type: str         # audit resource_type, e.g. "knowledge_item"
    action_prefix: str         # audit action prefix, e.g. "knowledge"
    label: str                 # human-readable, used in error messages
    permissions: PermissionSet
    live_status: ResourceStatus
    publish_verb: str          # "publish" or "activate"
    single_live: bool = False  # only one resource may be live/default at a time

    def action(self, verb: str) -> str:
        """Audit action name, e.g. "knowledge.approve"."""
        return f"{self.action_prefix}.{verb}"

    def is_live(self, status: ResourceStatus) -> bool:
        return status == self.live_status

    def target_status(self, transition: Transition) -> ResourceStatus:
        if transition == Transition.PUBLISH:
            return self.live_status
        return TARGET_STATUS[transition]


KNOWLEDGE_PROFILE = GovernanceProfile(
    resource_type="knowledge_item",
    action_prefix="knowledge",
    label="Knowledge item",
    permissions=KNOWLEDGE_PERMISSIONS,
    live_status=ResourceStatus.PUBLISHED,
    publish_verb="publish",
)

PROMPT_PROFILE = GovernanceProfile(
    resource_type="system_prompt",
    action_prefix="prompt",
    label="System prompt",
    permissions=PROMPT_PERMISSIONS,
    live_status=ResourceStatus.ACTIVE,
    publish_verb="activate",
    single_live=True,
)
