"""
Collaboration contract routes.

`router` holds the authenticated endpoints used by the internal dashboard;
`share_router` holds the public share-link endpoints, where possession of
the token is the only access control.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import HTMLResponse

from app.auth.verify import auth_dependency
from app.config import settings
from app.db.helpers import DatabaseError
from app.features.collaboration_contracts.api.schemas import (
    ActionRequest,
    ActionResponse,
    ClearTimelineResponse,
    CollaborationKeyResponse,
    CollaborationRefRequest,
    ContractVariablesRequest,
    ContractVariablesResponse,
    DeleteCollaborationResponse,
    RenderContractResponse,
    SendContractRequest,
    SendContractResponse,
    SignContractRequest,
    SignContractResponse,
    SignedRequest,
    StoredContractResponse,
    TimelineEntryResponse,
    TimelineResponse,
    VariableEntryResponse,
)
from app.features.collaboration_contracts.domain import (
    ActionValidationError,
    CollaborationContractError,
    ContractAlreadySignedError,
    EmailDispatchError,
    RecipientMissingError,
    ShareTokenMissingError,
    TemplateNotFoundError,
)
from app.features.collaboration_contracts.services import (
    ActionService,
    ActionSubmission,
    ContractService,
    TimelineService,
    action_service,
    contract_service,
    timeline_service,
)
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/collaborations", tags=["collaborations"])
share_router = APIRouter(prefix="/share/contract", tags=["contract-share"])

ERROR_STATUS_CODES: tuple[tuple[type[Exception], int], ...] = (
    (TemplateNotFoundError, status.HTTP_404_NOT_FOUND),
    (ActionValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (ShareTokenMissingError, status.HTTP_409_CONFLICT),
    (ContractAlreadySignedError, status.HTTP_409_CONFLICT),
    (RecipientMissingError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (EmailDispatchError, status.HTTP_502_BAD_GATEWAY),
    (DatabaseError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def get_contract_service() -> ContractService:
    return contract_service


def get_action_service() -> ActionService:
    return action_service


def get_timeline_service() -> TimelineService:
    return timeline_service


def _actor_id(claims: dict) -> str:
    user_id = claims.get("sub")
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    return user_id


def _http_error(e: Exception) -> HTTPException:
    for error_type, status_code in ERROR_STATUS_CODES:
        if isinstance(e, error_type):
            detail = str(e)
            if isinstance(e, DatabaseError):
                detail = "Collaboration storage is temporarily unavailable"
            return HTTPException(status_code=status_code, detail=detail)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Collaboration request failed"
    )


@router.post("/key", response_model=CollaborationKeyResponse)
async def compute_collaboration_key(
    payload: CollaborationRefRequest,
    claims: dict = Depends(auth_dependency),
    service: ContractService = Depends(get_contract_service),
):
    """Derive the composite key for a (campaign, influencer, contract) triple."""
    _actor_id(claims)
    try:
        key = service.collaboration_key(payload.to_ref())
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e

    return CollaborationKeyResponse(
        collaboration_id=key.composite,
        campaign_key=key.campaign_key,
        influencer_key=key.influencer_key,
        contract_key=key.contract_key,
    )


@router.post("/contract/variables", response_model=ContractVariablesResponse)
async def resolve_contract_variables(
    payload: ContractVariablesRequest,
    claims: dict = Depends(auth_dependency),
    service: ContractService = Depends(get_contract_service),
):
    """Resolve every placeholder of the contract, merged with saved values."""
    _actor_id(claims)
    try:
        preparation = await service.prepare(payload.to_ref(), payload.overrides)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e
    except (CollaborationContractError, DatabaseError) as e:
        raise _http_error(e) from e

    stored = preparation.stored
    return ContractVariablesResponse(
        collaboration_id=preparation.key.composite,
        entries=[VariableEntryResponse.from_entry(entry) for entry in preparation.entries],
        share_link=settings.share_link(stored.share_token) if stored and stored.share_token else None,
    )


@router.post("/contract/render", response_model=RenderContractResponse)
async def render_contract(
    payload: ContractVariablesRequest,
    claims: dict = Depends(auth_dependency),
    service: ContractService = Depends(get_contract_service),
):
    """Render the contract with the given values and save it for the collaboration."""
    actor_id = _actor_id(claims)
    try:
        result = await service.render_and_save(
            payload.to_ref(), payload.overrides, actor_id=actor_id
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e
    except (CollaborationContractError, DatabaseError) as e:
        raise _http_error(e) from e

    return RenderContractResponse(
        collaboration_id=result.record.collaboration_id,
        share_token=result.record.share_token,
        share_link=result.share_link,
        variables=result.record.variables,
        rendered_html=result.record.rendered_html,
        warnings=result.warnings,
    )


@router.get("/{collaboration_id}/contract", response_model=StoredContractResponse)
async def get_saved_contract(
    collaboration_id: str,
    claims: dict = Depends(auth_dependency),
    service: ContractService = Depends(get_contract_service),
):
    actor_id = _actor_id(claims)
    try:
        result = await service.view(collaboration_id, actor_id=actor_id)
    except (CollaborationContractError, DatabaseError) as e:
        raise _http_error(e) from e

    record = result.record
    return StoredContractResponse(
        collaboration_id=record.collaboration_id,
        rendered_html=record.rendered_html,
        variables=record.variables,
        share_token=record.share_token,
        share_link=result.share_link,
        updated_at=record.updated_at,
        warnings=result.warnings,
    )


@router.post("/{collaboration_id}/contract/send", response_model=SendContractResponse)
async def send_contract(
    collaboration_id: str,
    payload: SendContractRequest,
    claims: dict = Depends(auth_dependency),
    service: ContractService = Depends(get_contract_service),
):
    """Mark the contract sent and compose the signing email for the influencer."""
    actor_id = _actor_id(claims)
    try:
        result = await service.send(
            collaboration_id,
            payload.to_ref(),
            actor_id=actor_id,
            sender_name=payload.sender_name,
            sender_email=claims.get("email"),
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e
    except (CollaborationContractError, DatabaseError) as e:
        raise _http_error(e) from e

    return SendContractResponse(
        collaboration_id=collaboration_id,
        recipient=result.email.recipient,
        subject=result.email.subject,
        body=result.email.body,
        share_link=result.email.share_link,
        dispatched=result.dispatched,
        is_contract_sent=bool(result.action and result.action.is_contract_sent),
        warnings=result.warnings,
    )


@router.post("/{collaboration_id}/action", response_model=ActionResponse)
async def submit_action(
    collaboration_id: str,
    payload: ActionRequest,
    claims: dict = Depends(auth_dependency),
    service: ActionService = Depends(get_action_service),
):
    actor_id = _actor_id(claims)
    submission = ActionSubmission(
        action=payload.action,
        remark=payload.remark,
        callback_date=payload.callback_date,
        callback_time=payload.callback_time,
    )
    try:
        result = await service.submit(
            collaboration_id,
            submission,
            actor_id=actor_id,
            campaign_id=payload.campaign_id,
            influencer_id=payload.influencer_id,
            contract_id=payload.contract_id,
        )
    except (CollaborationContractError, DatabaseError) as e:
        raise _http_error(e) from e

    return ActionResponse.from_record(result.record, changed=result.changed, warnings=result.warnings)


@router.get("/{collaboration_id}/action", response_model=ActionResponse)
async def get_action(
    collaboration_id: str,
    claims: dict = Depends(auth_dependency),
    service: ActionService = Depends(get_action_service),
):
    _actor_id(claims)
    try:
        record = await service.get_action(collaboration_id)
    except DatabaseError as e:
        raise _http_error(e) from e

    if record is None:
        return ActionResponse(collaboration_id=collaboration_id)
    return ActionResponse.from_record(record)


@router.put("/{collaboration_id}/signed", response_model=ActionResponse)
async def set_signed(
    collaboration_id: str,
    payload: SignedRequest,
    claims: dict = Depends(auth_dependency),
    service: ActionService = Depends(get_action_service),
):
    actor_id = _actor_id(claims)
    try:
        result = await service.set_signed(
            collaboration_id,
            payload.signed,
            actor_id=actor_id,
            campaign_id=payload.campaign_id,
            influencer_id=payload.influencer_id,
            contract_id=payload.contract_id,
        )
    except DatabaseError as e:
        raise _http_error(e) from e

    return ActionResponse.from_record(result.record, changed=True, warnings=result.warnings)


@router.get("/{collaboration_id}/timeline", response_model=TimelineResponse)
async def get_timeline(
    collaboration_id: str,
    claims: dict = Depends(auth_dependency),
    service: TimelineService = Depends(get_timeline_service),
):
    _actor_id(claims)
    try:
        entries = await service.list_entries(collaboration_id)
    except DatabaseError as e:
        raise _http_error(e) from e

    return TimelineResponse(
        collaboration_id=collaboration_id,
        entries=[TimelineEntryResponse.from_entry(entry) for entry in entries],
    )


@router.delete("/{collaboration_id}/timeline", response_model=ClearTimelineResponse)
async def clear_timeline(
    collaboration_id: str,
    claims: dict = Depends(auth_dependency),
    service: TimelineService = Depends(get_timeline_service),
):
    actor_id = _actor_id(claims)
    try:
        deleted = await service.clear(collaboration_id)
    except DatabaseError as e:
        raise _http_error(e) from e

    logger.info(
        "Timeline cleared by user",
        collaboration_id=collaboration_id,
        actor_id=actor_id,
        deleted=deleted,
    )
    return ClearTimelineResponse(collaboration_id=collaboration_id, deleted=deleted)


@router.delete("/{collaboration_id}", response_model=DeleteCollaborationResponse)
async def delete_collaboration(
    collaboration_id: str,
    claims: dict = Depends(auth_dependency),
    service: ContractService = Depends(get_contract_service),
):
    """Remove the saved contract, action and timeline of one collaboration."""
    actor_id = _actor_id(claims)
    try:
        deleted = await service.delete_collaboration(collaboration_id)
    except DatabaseError as e:
        raise _http_error(e) from e

    logger.info("Collaboration removed", collaboration_id=collaboration_id, actor_id=actor_id)
    return DeleteCollaborationResponse(collaboration_id=collaboration_id, deleted=deleted)


@share_router.get("/{share_token}", response_class=HTMLResponse)
async def view_shared_contract(
    share_token: str,
    service: ContractService = Depends(get_contract_service),
):
    """Read-only rendering of a saved contract."""
    try:
        record = await service.load_shared(share_token)
    except (CollaborationContractError, DatabaseError) as e:
        raise _http_error(e) from e
    return HTMLResponse(content=record.rendered_html)


@share_router.post("/{share_token}/sign", response_model=SignContractResponse)
async def sign_shared_contract(
    share_token: str,
    payload: SignContractRequest,
    service: ContractService = Depends(get_contract_service),
):
    """Counter-party signature through the share link."""
    try:
        await service.sign_shared(share_token, payload.signature)
    except (CollaborationContractError, DatabaseError) as e:
        raise _http_error(e) from e
    return SignContractResponse(signed=True)
