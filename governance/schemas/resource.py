"""
Pydantic schemas for governed resources (knowledge items, system prompts).
"""

from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from governance.domain.lifecycle import ResourceStatus


class GovernedResource(BaseModel):
    """Read model returned by resource stores."""
    id: UUID
    resource_type: str
    title: str
    content: str
    status: ResourceStatus
    author_id: str
    reviewer_id: Optional[str] = None
    version: int = 1
    category: Optional[str] = None
    description: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    is_default: bool = False
    published_at: Optional[datetime] = None
    activated_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ResourceCreate(BaseModel):
    """Fields accepted when creating a resource."""
    title: str = Field(..., max_length=500)
    content: str
    category: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class ResourcePatch(BaseModel):
    """
    Partial update. Fields left as None are not touched.

    Only `content` is version-bearing: changing it snapshots the prior
    content and bumps the version. Everything else is metadata.
    """
    title: Optional[str] = Field(None, max_length=500)
    content: Optional[str] = None
    category: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None

    def changed_fields(self) -> Dict[str, Any]:
        """Fields the caller actually set."""
        return self.model_dump(exclude_none=True)


class ResourceVersion(BaseModel):
    """Immutable snapshot of content as it was before a content change."""
    resource_id: UUID
    version: int
    title: str
    content: str
    author_id: str
    created_at: datetime

    class Config:
        from_attributes = True


class ResourceFilters(BaseModel):
    """List filters."""
    status: Optional[ResourceStatus] = None
    category: Optional[str] = None
    author_id: Optional[str] = None
