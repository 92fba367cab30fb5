from dataclasses import replace
from datetime import UTC, datetime

import pytest

from app.auth.verify import auth_dependency
from app.features.collaboration_contracts.domain import (
    ActionRecord,
    OverrideRecord,
    TimelineEntry,
)


@pytest.fixture
def auth_override():
    def _override():
        return {"sub": "user-123", "email": "ops@example.com"}

    return _override


class FakeRedis:
    def __init__(self):
        self.store: dict[str, str] = {}

    async def set_with_ttl(self, key: str, value: str, ttl_s: int | None = None) -> bool:
        self.store[key] = value
        return True

    async def get(self, key: str) -> str | None:
        return self.store.get(key)

    async def delete(self, key: str) -> bool:
        return self.store.pop(key, None) is not None


class FakeOverrideRepository:
    """In-memory stand-in with the same first-token-wins upsert semantics."""

    def __init__(self):
        self.rows: dict[str, OverrideRecord] = {}
        self.saves = 0

    async def save(self, record: OverrideRecord) -> OverrideRecord:
        self.saves += 1
        existing = self.rows.get(record.collaboration_id)
        saved = replace(
            record,
            share_token=existing.share_token if existing else record.share_token,
            influencer_id=record.influencer_id or (existing.influencer_id if existing else None),
            updated_at=datetime.now(UTC),
        )
        self.rows[record.collaboration_id] = saved
        return saved

    async def load(self, collaboration_id: str) -> OverrideRecord | None:
        return self.rows.get(collaboration_id)

    async def load_by_share_token(self, share_token: str) -> OverrideRecord | None:
        for record in self.rows.values():
            if record.share_token == share_token:
                return record
        return None

    async def delete_collaboration(self, collaboration_id: str) -> dict[str, int]:
        removed = 1 if self.rows.pop(collaboration_id, None) else 0
        return {
            "collaboration_variable_overrides": removed,
            "collaboration_timeline": 0,
            "collaboration_actions": 0,
        }


class FakeActionRepository:
    def __init__(self):
        self.rows: dict[str, ActionRecord] = {}
        self.writes = 0

    def _current(self, record: ActionRecord) -> ActionRecord:
        return self.rows.get(record.collaboration_id) or ActionRecord(
            collaboration_id=record.collaboration_id
        )

    async def load(self, collaboration_id: str) -> ActionRecord | None:
        return self.rows.get(collaboration_id)

    async def upsert_action(self, record: ActionRecord) -> ActionRecord:
        self.writes += 1
        current = self._current(record)
        saved = replace(
            record,
            is_contract_sent=current.is_contract_sent,
            is_signed=current.is_signed,
        )
        self.rows[record.collaboration_id] = saved
        return saved

    async def mark_contract_sent(self, record: ActionRecord) -> ActionRecord:
        self.writes += 1
        saved = replace(self._current(record), is_contract_sent=True)
        self.rows[record.collaboration_id] = saved
        return saved

    async def set_signed(self, record: ActionRecord, signed: bool) -> ActionRecord:
        self.writes += 1
        saved = replace(self._current(record), is_signed=signed)
        self.rows[record.collaboration_id] = saved
        return saved


class FakeTimelineRepository:
    def __init__(self, fail: bool = False):
        self.entries: list[TimelineEntry] = []
        self.fail = fail

    async def insert(self, entry: TimelineEntry) -> TimelineEntry:
        if self.fail:
            raise RuntimeError("timeline table unavailable")
        entry.id = str(len(self.entries) + 1)
        self.entries.append(entry)
        return entry

    async def list_for(self, collaboration_id: str, limit: int = 200) -> list[TimelineEntry]:
        found = [e for e in self.entries if e.collaboration_id == collaboration_id]
        return list(reversed(found))[:limit]

    async def clear(self, collaboration_id: str) -> int:
        before = len(self.entries)
        self.entries = [e for e in self.entries if e.collaboration_id != collaboration_id]
        return before - len(self.entries)

    def types_for(self, collaboration_id: str) -> list[str]:
        return [e.action_type for e in self.entries if e.collaboration_id == collaboration_id]


class FakeRecordRepository:
    """Related records keyed by table, then by id or public id."""

    def __init__(self, tables: dict[str, dict[str, dict]] | None = None):
        self.tables = tables or {}
        self.calls: list[tuple[str, str | None]] = []

    def _get(self, table: str, *keys: str | None) -> dict | None:
        for key in keys:
            self.calls.append((table, key))
            if key and key in self.tables.get(table, {}):
                return self.tables[table][key]
        return None

    async def get_campaign(self, campaign_id):
        return self._get("campaigns", campaign_id)

    async def get_influencer(self, influencer_id=None, influencer_pid=None):
        return self._get("influencers", influencer_id, influencer_pid)

    async def get_contract(self, contract_id=None, contract_pid=None):
        return self._get("contracts", contract_id, contract_pid)

    async def get_company(self, company_id):
        return self._get("companies", company_id)

    async def get_user_profile(self, user_id):
        return self._get("user_profiles", user_id)


class FakeEmailSender:
    def __init__(self, enabled: bool = False):
        self.enabled = enabled
        self.sent = []

    async def send(self, email, collaboration_id=None) -> None:
        self.sent.append((email, collaboration_id))


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def override_repository():
    return FakeOverrideRepository()


@pytest.fixture
def action_repository():
    return FakeActionRepository()


@pytest.fixture
def timeline_repository():
    return FakeTimelineRepository()


@pytest.fixture
def apply_auth_override(auth_override):
    def _apply(app):
        app.dependency_overrides[auth_dependency] = auth_override

    return _apply


@pytest.fixture
def failing_timeline_repository():
    return FakeTimelineRepository(fail=True)


@pytest.fixture
def make_record_repository():
    return FakeRecordRepository


@pytest.fixture
def make_email_sender():
    return FakeEmailSender
