"""
Governance services.

- AuditLedger: Append-only audit trail (never raises on write)
- GovernanceWorkflow: Lifecycle engine for governed resources
- ApprovalRequestService: Review requests opened on submit
"""

from governance.services.audit_ledger import AuditLedger
from governance.services.governance_workflow import (
    GovernanceWorkflow,
    knowledge_workflow,
    prompt_workflow,
)
from governance.services.approval_requests import ApprovalRequestService

__all__ = [
    "AuditLedger",
    "GovernanceWorkflow",
    "knowledge_workflow",
    "prompt_workflow",
    "ApprovalRequestService",
]
