"""
SystemPrompt and PromptVersion models.

At most one system prompt is the default at any time; the partial unique
index enforces it at the database level.
"""

from uuid import uuid4

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    text,
)

from governance.database import Base
from governance.models.resource import GovernedResourceMixin, utcnow


class SystemPrompt(GovernedResourceMixin, Base):
    """
    SystemPrompt: Governed instructions for the assistant.

    Lifecycle: draft -> pending_review -> approved -> active. Activating a
    prompt makes it the default and clears the previous default.
    """
    __tablename__ = "system_prompts"

    is_default = Column(Boolean, nullable=False, default=False)
    activated_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("idx_system_prompts_status", "status"),
        Index("idx_system_prompts_created", "created_at"),
        Index(
            "uq_system_prompts_single_default",
            "is_default",
            unique=True,
            postgresql_where=text("is_default"),
            sqlite_where=text("is_default = 1"),
        ),
    )

    def __repr__(self):
        return f"<SystemPrompt(id={self.id}, title='{self.title}', status='{self.status.value}', default={self.is_default})>"


class PromptVersion(Base):
    """PromptVersion: Immutable snapshot of prompt content replaced by an edit."""
    __tablename__ = "prompt_versions"

    id = Column(Uuid, primary_key=True, default=uuid4)
    prompt_id = Column(Uuid, ForeignKey("system_prompts.id", ondelete="CASCADE"), nullable=False)
    version = Column(Integer, nullable=False)
    title = Column(String(500), nullable=False)
    content = Column(Text, nullable=False)
    author_id = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("prompt_id", "version", name="uq_prompt_versions_prompt_version"),
    )

    @property
    def resource_id(self):
        return self.prompt_id

    def __repr__(self):
        return f"<PromptVersion(prompt_id={self.prompt_id}, version={self.version})>"
