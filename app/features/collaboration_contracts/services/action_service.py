"""
Action state for a collaboration.

One latest-wins ActionRecord per key. A submission is validated, compared
against the stored record, and only written when something changed; every
accepted write appends an ``action_taken`` timeline entry.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime

from app.features.collaboration_contracts.domain import (
    ACTION_LABELS,
    ACTION_OPTIONS,
    ActionRecord,
    ActionValidationError,
)
from app.features.collaboration_contracts.repository.action_repository import ActionRepository
from app.features.collaboration_contracts.services.timeline_service import (
    TIMELINE_WARNING,
    TimelineService,
    timeline_service,
)
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


@dataclass(slots=True)
class ActionSubmission:
    action: str | None
    remark: str | None = None
    callback_date: str | None = None
    callback_time: str | None = None


@dataclass(slots=True)
class ActionResult:
    record: ActionRecord | None
    changed: bool
    warnings: list[str] = field(default_factory=list)


def _parse_callback(collaboration_id: str, callback_date: str, callback_time: str) -> datetime:
    try:
        parsed = datetime.fromisoformat(f"{callback_date.strip()}T{callback_time.strip()}")
    except ValueError as e:
        raise ActionValidationError(
            "Callback date or time is not valid", collaboration_id=collaboration_id
        ) from e
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def build_remark(submission: ActionSubmission) -> str | None:
    """Callback prefix plus the free-text remark, joined with ``" | "``."""
    parts = []
    if submission.action == "callback":
        parts.append(
            f"Callback scheduled for {submission.callback_date.strip()} "
            f"at {submission.callback_time.strip()}"
        )
    if submission.remark and submission.remark.strip():
        parts.append(submission.remark.strip())
    return " | ".join(parts) or None


class ActionService:
    def __init__(
        self,
        repository: type[ActionRepository] = ActionRepository,
        timeline: TimelineService = timeline_service,
    ):
        self.repository = repository
        self.timeline = timeline

    def validate(self, collaboration_id: str, submission: ActionSubmission) -> datetime | None:
        """
        Check a submission and return its callback time, if any.

        Raises:
            ActionValidationError: empty or unknown action, or callback without date and time
        """
        action = (submission.action or "").strip()
        if not action:
            raise ActionValidationError(
                "Select an action before saving", collaboration_id=collaboration_id
            )
        if action not in ACTION_OPTIONS:
            raise ActionValidationError(
                f"Unknown action: {action}", collaboration_id=collaboration_id
            )
        if action != "callback":
            return None

        if not (submission.callback_date or "").strip() or not (submission.callback_time or "").strip():
            raise ActionValidationError(
                "A callback needs both a date and a time", collaboration_id=collaboration_id
            )
        return _parse_callback(collaboration_id, submission.callback_date, submission.callback_time)

    async def get_action(self, collaboration_id: str) -> ActionRecord | None:
        return await self.repository.load(collaboration_id)

    async def submit(
        self,
        collaboration_id: str,
        submission: ActionSubmission,
        *,
        actor_id: str | None = None,
        campaign_id: str | None = None,
        influencer_id: str | None = None,
        contract_id: str | None = None,
    ) -> ActionResult:
        submission.action = (submission.action or "").strip()
        callback_at = self.validate(collaboration_id, submission)
        remark = build_remark(submission)

        current = await self.repository.load(collaboration_id)
        if (
            current is not None
            and current.action == submission.action
            and current.callback_at == callback_at
            and (current.remark or None) == remark
        ):
            logger.debug("Action unchanged, skipping write", collaboration_id=collaboration_id)
            return ActionResult(record=current, changed=False)

        occurred_at = datetime.now(UTC)
        saved = await self.repository.upsert_action(
            ActionRecord(
                collaboration_id=collaboration_id,
                action=submission.action,
                remark=remark,
                occurred_at=occurred_at,
                callback_at=callback_at,
                campaign_id=campaign_id,
                influencer_id=influencer_id,
                contract_id=contract_id,
                user_id=actor_id,
            )
        )

        metadata = {"timestamp": occurred_at.isoformat()}
        if callback_at is not None:
            metadata["callback_at"] = callback_at.isoformat()

        result = ActionResult(record=saved, changed=True)
        recorded = await self.timeline.record(
            collaboration_id,
            "action_taken",
            ACTION_LABELS[submission.action],
            actor_id=actor_id,
            remark=remark,
            action=submission.action,
            metadata=metadata,
        )
        if not recorded:
            result.warnings.append(TIMELINE_WARNING)
        return result

    async def set_signed(
        self,
        collaboration_id: str,
        signed: bool,
        *,
        actor_id: str | None = None,
        campaign_id: str | None = None,
        influencer_id: str | None = None,
        contract_id: str | None = None,
    ) -> ActionResult:
        saved = await self.repository.set_signed(
            ActionRecord(
                collaboration_id=collaboration_id,
                campaign_id=campaign_id,
                influencer_id=influencer_id,
                contract_id=contract_id,
                user_id=actor_id,
            ),
            signed,
        )

        result = ActionResult(record=saved, changed=True)
        recorded = await self.timeline.record(
            collaboration_id,
            "status_changed",
            "Contract marked as signed" if signed else "Contract marked as not signed",
            actor_id=actor_id,
            metadata={"is_signed": signed},
        )
        if not recorded:
            result.warnings.append(TIMELINE_WARNING)
        return result


action_service = ActionService()
