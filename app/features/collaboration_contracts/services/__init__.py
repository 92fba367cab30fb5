"""
Service layer for the collaboration contract feature.
"""

from .action_service import ActionResult, ActionService, ActionSubmission, action_service
from .contract_service import (
    ContractPreparation,
    ContractService,
    SaveResult,
    SendResult,
    ViewResult,
    contract_service,
)
from .notification_service import ContractEmail, EmailSender, compose_contract_email, email_sender
from .override_store import OverrideCache, OverrideStore, override_store
from .record_source import CollaborationRecordSource
from .timeline_service import TIMELINE_WARNING, TimelineService, timeline_service

__all__ = [
    "TIMELINE_WARNING",
    "ActionResult",
    "ActionService",
    "ActionSubmission",
    "CollaborationRecordSource",
    "ContractEmail",
    "ContractPreparation",
    "ContractService",
    "EmailSender",
    "OverrideCache",
    "OverrideStore",
    "SaveResult",
    "SendResult",
    "TimelineService",
    "ViewResult",
    "action_service",
    "compose_contract_email",
    "contract_service",
    "email_sender",
    "override_store",
    "timeline_service",
]
