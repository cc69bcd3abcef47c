"""
Shared columns for governed resources.

Knowledge items and system prompts have the same lifecycle columns; the
concrete models add their type-specific fields and their version table.
"""

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import JSON, Column, DateTime, Integer, String, Text, Uuid, Enum as SQLEnum
from sqlalchemy.dialects.postgresql import JSONB

from governance.domain.lifecycle import ResourceStatus

# JSONB on Postgres, plain JSON elsewhere
JSONType = JSON().with_variant(JSONB, "postgresql")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def resource_status_enum() -> SQLEnum:
    return SQLEnum(
        ResourceStatus,
        name="resource_status",
        values_callable=lambda x: [e.value for e in x],
    )


class GovernedResourceMixin:
    """
    Lifecycle columns.

    `metadata` is reserved on declarative classes, so the attribute is
    `metadata_` mapped onto a column named "metadata".
    """
    id = Column(Uuid, primary_key=True, default=uuid4)

    title = Column(String(500), nullable=False)
    content = Column(Text, nullable=False)
    category = Column(String(100), nullable=True)
    description = Column(Text, nullable=True)
    metadata_ = Column("metadata", JSONType, nullable=False, default=dict)

    status = Column(resource_status_enum(), nullable=False, default=ResourceStatus.DRAFT)
    version = Column(Integer, nullable=False, default=1)

    # Provenance
    author_id = Column(String(255), nullable=False)
    reviewer_id = Column(String(255), nullable=True)  # set by approve, cleared by reject

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
