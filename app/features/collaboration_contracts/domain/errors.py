"""
Exceptions raised by the collaboration contract feature.

Service functions raise these; the API router maps them to HTTP status
codes. Resolution misses are never errors and have no class here.
"""

from app.db.helpers import DatabaseError


class CollaborationContractError(Exception):
    """Base exception for collaboration contract operations."""

    def __init__(
        self, message: str, collaboration_id: str | None = None, recoverable: bool = True
    ):
        super().__init__(message)
        self.collaboration_id = collaboration_id
        self.recoverable = recoverable


class TemplateNotFoundError(CollaborationContractError):
    """Contract record or its template content is missing."""


class ActionValidationError(CollaborationContractError):
    """Submitted action snapshot is not an acceptable transition."""


class ShareTokenMissingError(CollaborationContractError):
    """No share token exists yet; the contract must be rendered and saved first."""

    def __init__(self, collaboration_id: str | None = None):
        super().__init__(
            "Share link not ready. Update the contract to generate the share link, then send again.",
            collaboration_id=collaboration_id,
        )


class RecipientMissingError(CollaborationContractError):
    """Influencer has no email address to send the contract to."""


class EmailDispatchError(CollaborationContractError):
    """External email sender rejected the message or was unreachable."""

    def __init__(
        self, message: str, collaboration_id: str | None = None, status_code: int | None = None
    ):
        super().__init__(message, collaboration_id=collaboration_id)
        self.status_code = status_code


class OverrideStoreError(DatabaseError):
    """Override record persistence failure."""


class ActionStoreError(DatabaseError):
    """Action record persistence failure."""


class ContractAlreadySignedError(CollaborationContractError):
    """The shared contract already carries the influencer's signature."""
