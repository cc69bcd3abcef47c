"""
Async SQLAlchemy implementations of the service ports.

Each store wraps one AsyncSession and commits its own writes.
"""

from governance.stores.resources import KnowledgeStore, PromptStore, SqlResourceStore
from governance.stores.audit import SqlAuditStore
from governance.stores.approvals import SqlApprovalStore

__all__ = [
    "SqlResourceStore",
    "KnowledgeStore",
    "PromptStore",
    "SqlAuditStore",
    "SqlApprovalStore",
]
