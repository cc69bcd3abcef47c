"""
KnowledgeItem and KnowledgeVersion models.

Knowledge items are retrieved by the assistant only once published.
"""

from uuid import uuid4

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint, Uuid

from governance.database import Base
from governance.models.resource import GovernedResourceMixin, utcnow


class KnowledgeItem(GovernedResourceMixin, Base):
    """
    KnowledgeItem: Governed reference content for the assistant.

    Lifecycle: draft -> pending_review -> approved -> published, archivable
    from any status. Content edits are only allowed in draft and
    pending_review.
    """
    __tablename__ = "knowledge_items"

    published_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("idx_knowledge_items_status", "status"),
        Index("idx_knowledge_items_category", "category"),
        Index("idx_knowledge_items_author", "author_id"),
        Index("idx_knowledge_items_created", "created_at"),
    )

    def __repr__(self):
        return f"<KnowledgeItem(id={self.id}, title='{self.title}', status='{self.status.value}', v{self.version})>"


class KnowledgeVersion(Base):
    """
    KnowledgeVersion: Immutable snapshot of content replaced by an edit.

    One row per replaced version; (item_id, version) is unique.
    """
    __tablename__ = "knowledge_versions"

    id = Column(Uuid, primary_key=True, default=uuid4)
    item_id = Column(Uuid, ForeignKey("knowledge_items.id", ondelete="CASCADE"), nullable=False)
    version = Column(Integer, nullable=False)
    title = Column(String(500), nullable=False)
    content = Column(Text, nullable=False)
    author_id = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("item_id", "version", name="uq_knowledge_versions_item_version"),
    )

    @property
    def resource_id(self):
        return self.item_id

    def __repr__(self):
        return f"<KnowledgeVersion(item_id={self.item_id}, version={self.version})>"
