"""
Permission resolver.

The only place that interprets permission strings. Matching rules:
- exact string match ("knowledge:review")
- the wildcard "*"
- any admin-namespaced grant ("admin:*", "admin:users", ...) acts as a superset

SYSTEM actors are always authorized. Both functions are total: they never
raise for any ActorContext.
"""

from dataclasses import dataclass

from governance.config import settings
from governance.domain.actor import (
    ActorContext,
    ActorKind,
    AI_USER_ID,
    SYSTEM_USER_ID,
    UNKNOWN_USER_ID,
)

WILDCARD = "*"
AUDIT_READ = "audit:read"


def has_permission(actor: ActorContext, permission: str) -> bool:
    """
    Answer "may this actor do `permission`".

    Example:
        >>> has_permission(ActorContext.user("u1", ["knowledge:write"]), "knowledge:write")
        True
        >>> has_permission(ActorContext.system(), "anything:at_all")
        True
    """
    if actor.kind == ActorKind.SYSTEM:
        return True

    granted = actor.permissions
    if permission in granted or WILDCARD in granted:
        return True

    prefix = settings.admin_permission_prefix
    return any(p.startswith(prefix) for p in granted)


def actor_user_id(actor: ActorContext) -> str:
    """
    Identity used when comparing against author_id / reviewer_id.

    SYSTEM and AI have no user row, so they get fixed sentinels.
    """
    if actor.kind == ActorKind.SYSTEM:
        return SYSTEM_USER_ID
    if actor.kind == ActorKind.AI:
        return AI_USER_ID
    return actor.user_id or UNKNOWN_USER_ID


@dataclass(frozen=True)
class PermissionSet:
    """Permission strings for one governed resource namespace."""
    namespace: str

    @property
    def read(self) -> str:
        return f"{self.namespace}:read"

    @property
    def write(self) -> str:
        return f"{self.namespace}:write"

    @property
    def review(self) -> str:
        return f"{self.namespace}:review"

    @property
    def publish(self) -> str:
        return f"{self.namespace}:publish"


KNOWLEDGE_PERMISSIONS = PermissionSet("knowledge")
PROMPT_PERMISSIONS = PermissionSet("prompt")
