"""
Resource visibility guard.

Read access is a separate policy from write/transition access:
live content is broadly readable (including by the assistant, which consumes
it for retrieval), unpublished content is visible to its author and to
reviewers only.
"""

from governance.domain.actor import ActorContext, ActorKind
from governance.domain.lifecycle import EDITABLE_STATUSES, GovernanceProfile
from governance.domain.permissions import actor_user_id, has_permission
from governance.schemas.resource import GovernedResource


def can_view(actor: ActorContext, resource: GovernedResource, profile: GovernanceProfile) -> bool:
    """May `actor` read `resource`."""
    if actor.kind == ActorKind.SYSTEM:
        return True

    if profile.is_live(resource.status):
        return actor.kind == ActorKind.AI or has_permission(actor, profile.permissions.read)

    # draft, pending_review, approved, archived
    if actor.kind == ActorKind.AI:
        return False

    if resource.author_id == actor_user_id(actor):
        return True

    return has_permission(actor, profile.permissions.review)


def is_editable(resource: GovernedResource) -> bool:
    """Content edits are only allowed before approval."""
    return resource.status in EDITABLE_STATUSES
