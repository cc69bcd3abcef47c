"""
SQLAlchemy ORM models for the governance kernel.

Import all models here to ensure they're registered with Base.metadata.
This is required for Alembic autogenerate to work correctly.
"""

from governance.models.knowledge import KnowledgeItem, KnowledgeVersion
from governance.models.prompt import SystemPrompt, PromptVersion
from governance.models.audit import AuditLog
from governance.models.approval import ApprovalRequest

__all__ = [
    # Knowledge
    "KnowledgeItem",
    "KnowledgeVersion",
    # Prompts
    "SystemPrompt",
    "PromptVersion",
    # Audit
    "AuditLog",
    # Approvals
    "ApprovalRequest",
]
