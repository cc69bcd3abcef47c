"""
Actor model.

Every service call runs under an ActorContext: who is acting, with which
permission strings, and the request provenance that ends up in the audit log.

ActorKind is a closed set. Decision points check the kind explicitly instead
of relying on subclasses, so the rules stay easy to enumerate and test.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Iterable, Optional
from uuid import uuid4


class ActorKind(str, Enum):
    """Who is acting."""
    USER = "user"      # Authenticated end user
    ADMIN = "admin"    # Authenticated operator with an admin role
    SYSTEM = "system"  # Background jobs, migrations, triggers
    AI = "ai"          # Orchestrator acting on behalf of the assistant


# Stand-in identities compared against author_id / reviewer_id fields
SYSTEM_USER_ID = "system"
AI_USER_ID = "ai"
UNKNOWN_USER_ID = "unknown"


def _new_request_id() -> str:
    return uuid4().hex


@dataclass(frozen=True)
class ActorContext:
    """
    Identity and permission set under which an operation runs.

    Instances are plain values: construct them per request (or per job) and
    pass them down. user_id is only meaningful for USER and ADMIN actors.
    """
    kind: ActorKind
    user_id: Optional[str] = None
    permissions: FrozenSet[str] = field(default_factory=frozenset)
    request_id: str = field(default_factory=_new_request_id)
    ip: Optional[str] = None
    user_agent: Optional[str] = None

    def __post_init__(self):
        # Accept any iterable of permission strings from callers
        if not isinstance(self.permissions, frozenset):
            object.__setattr__(self, "permissions", frozenset(self.permissions))
        if self.kind in (ActorKind.SYSTEM, ActorKind.AI) and self.user_id is not None:
            raise ValueError(f"{self.kind.value} actors do not carry a user_id")

    @classmethod
    def user(
        cls,
        user_id: str,
        permissions: Iterable[str] = (),
        request_id: Optional[str] = None,
        ip: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> "ActorContext":
        return cls(
            kind=ActorKind.USER,
            user_id=user_id,
            permissions=frozenset(permissions),
            request_id=request_id or _new_request_id(),
            ip=ip,
            user_agent=user_agent,
        )

    @classmethod
    def admin(
        cls,
        user_id: str,
        permissions: Iterable[str] = (),
        request_id: Optional[str] = None,
        ip: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> "ActorContext":
        return cls(
            kind=ActorKind.ADMIN,
            user_id=user_id,
            permissions=frozenset(permissions),
            request_id=request_id or _new_request_id(),
            ip=ip,
            user_agent=user_agent,
        )

    @classmethod
    def system(cls, request_id: Optional[str] = None) -> "ActorContext":
        """System actor. Holds no permission strings; the resolver trusts the kind."""
        return cls(kind=ActorKind.SYSTEM, request_id=request_id or _new_request_id())

    @classmethod
    def ai(
        cls,
        permissions: Iterable[str] = (),
        request_id: Optional[str] = None,
    ) -> "ActorContext":
        return cls(
            kind=ActorKind.AI,
            permissions=frozenset(permissions),
            request_id=request_id or _new_request_id(),
        )

    @property
    def is_system(self) -> bool:
        return self.kind == ActorKind.SYSTEM

    @property
    def is_ai(self) -> bool:
        return self.kind == ActorKind.AI

    @property
    def is_admin(self) -> bool:
        return self.kind == ActorKind.ADMIN
