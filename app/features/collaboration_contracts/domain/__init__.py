"""
Domain subpackage for the collaboration contract feature.
"""

from .errors import (
    ActionStoreError,
    ActionValidationError,
    CollaborationContractError,
    ContractAlreadySignedError,
    EmailDispatchError,
    OverrideStoreError,
    RecipientMissingError,
    ShareTokenMissingError,
    TemplateNotFoundError,
)
from .identity import (
    NO_ENTITY,
    HashIdGenerator,
    IdGenerator,
    Uuid5IdGenerator,
    build_collaboration_key,
    get_id_generator,
    is_canonical_id,
    resolve_entity_key,
)
from .models import (
    ACTION_LABELS,
    ACTION_OPTIONS,
    MISSING_DISPLAY,
    ActionRecord,
    CollaborationKey,
    CollaborationRef,
    DeclaredVariable,
    OverrideRecord,
    RenderedContract,
    TemplateDocument,
    TimelineEntry,
    TokenOccurrence,
    VariableDescriptor,
    VariableEntry,
)

__all__ = [
    "ACTION_LABELS",
    "ACTION_OPTIONS",
    "MISSING_DISPLAY",
    "NO_ENTITY",
    "ActionRecord",
    "ActionStoreError",
    "ActionValidationError",
    "CollaborationContractError",
    "CollaborationKey",
    "ContractAlreadySignedError",
    "CollaborationRef",
    "DeclaredVariable",
    "EmailDispatchError",
    "HashIdGenerator",
    "IdGenerator",
    "OverrideRecord",
    "OverrideStoreError",
    "RecipientMissingError",
    "RenderedContract",
    "ShareTokenMissingError",
    "TemplateDocument",
    "TemplateNotFoundError",
    "TimelineEntry",
    "TokenOccurrence",
    "Uuid5IdGenerator",
    "VariableDescriptor",
    "VariableEntry",
    "build_collaboration_key",
    "get_id_generator",
    "is_canonical_id",
    "resolve_entity_key",
]
