"""
Unit Tests for Supabase Record Store
Query building and error wrapping against a mocked Supabase client
"""
from unittest.mock import MagicMock

import pytest

from cadence.core.config import Settings
from cadence.domain.interfaces.record_store import PersistenceError
from cadence.domain.models.actions import AuditEntry
from cadence.domain.models.lead import CadencePhase, CadenceStateName
from cadence.infrastructure.storage.supabase_store import SupabaseRecordStore


def make_table(rows):
    """Table mock whose select chain returns `rows`"""
    table = MagicMock()
    query = table.select.return_value
    for method in ("eq", "in_", "gt", "order", "limit"):
        getattr(query, method).return_value = query
    query.execute.return_value = MagicMock(data=rows)
    return table


@pytest.fixture
def tables():
    return {
        "leads": make_table([
            {"id": "lead-1", "cadence_state": "ACTIVE", "cadence_phase": "BLITZ_1", "blitz_attempts": 1},
        ]),
        "lead_phones": make_table([
            {"id": "p1", "lead_id": "lead-1", "number": "+15550001", "type": "MOBILE", "phone_status": "VALID"},
            {"id": "p9", "lead_id": "lead-9", "number": "+15550009"},
        ]),
        "lead_tasks": make_table([]),
        "lead_activity_log": make_table([]),
    }


@pytest.fixture
def mock_supabase(tables):
    mock = MagicMock()
    mock.table.side_effect = lambda name: tables[name]
    return mock


class TestSupabaseReads:
    """Tests for get_lead and list_leads"""

    @pytest.mark.asyncio
    async def test_get_lead_attaches_phones(self, mock_supabase):
        store = SupabaseRecordStore(mock_supabase)

        lead = await store.get_lead("lead-1")

        assert lead.cadence_phase == CadencePhase.BLITZ_1
        assert lead.cadence_state == CadenceStateName.ACTIVE
        assert [p.id for p in lead.phones] == ["p1"]

    @pytest.mark.asyncio
    async def test_get_missing_lead(self, mock_supabase, tables):
        tables["leads"].select.return_value.execute.return_value = MagicMock(data=[])
        store = SupabaseRecordStore(mock_supabase)

        assert await store.get_lead("ghost") is None

    @pytest.mark.asyncio
    async def test_list_leads_filters_and_pages(self, mock_supabase, tables):
        store = SupabaseRecordStore(mock_supabase)

        await store.list_leads(states=[CadenceStateName.SNOOZED], after_id="lead-0", limit=50)

        query = tables["leads"].select.return_value
        query.in_.assert_called_once_with("cadence_state", ["SNOOZED"])
        query.gt.assert_called_once_with("id", "lead-0")
        query.order.assert_called_once_with("id", desc=False)
        query.limit.assert_called_once_with(50)

    @pytest.mark.asyncio
    async def test_malformed_rows_are_skipped_and_page_refilled(self, mock_supabase, tables):
        query = tables["leads"].select.return_value
        query.execute.side_effect = [
            MagicMock(data=[
                {"id": "lead-1", "cadence_state": "ACTIVE", "cadence_phase": "BLITZ_1"},
                {"id": "lead-2", "cadence_state": "ACTIVE", "temperature_band": "LUKEWARM"},
            ]),
            MagicMock(data=[
                {"id": "lead-3", "cadence_state": "ACTIVE", "cadence_phase": "NEW"},
            ]),
        ]
        store = SupabaseRecordStore(mock_supabase)

        leads = await store.list_leads(limit=2)

        assert [lead.id for lead in leads] == ["lead-1", "lead-3"]
        query.gt.assert_called_once_with("id", "lead-2")
        assert [c.args for c in query.limit.call_args_list] == [(2,), (1,)]

    @pytest.mark.asyncio
    async def test_malformed_single_lead_raises(self, mock_supabase, tables):
        tables["leads"].select.return_value.execute.return_value = MagicMock(
            data=[{"id": "lead-2", "cadence_state": "ACTIVE", "temperature_band": "LUKEWARM"}]
        )
        store = SupabaseRecordStore(mock_supabase)

        with pytest.raises(PersistenceError) as exc_info:
            await store.get_lead("lead-2")

        assert exc_info.value.operation == "get_lead"

    @pytest.mark.asyncio
    async def test_read_failure_is_wrapped(self, mock_supabase, tables):
        tables["leads"].select.side_effect = Exception("connection refused")
        store = SupabaseRecordStore(mock_supabase)

        with pytest.raises(PersistenceError, match="connection refused"):
            await store.get_lead("lead-1")


class TestSupabaseWrites:
    """Tests for update, insert and audit writes"""

    @pytest.mark.asyncio
    async def test_update_lead(self, mock_supabase, tables):
        store = SupabaseRecordStore(mock_supabase)

        await store.update_lead("lead-1", {"cadence_phase": "DEEP_PROSPECT"})

        tables["leads"].update.assert_called_once_with({"cadence_phase": "DEEP_PROSPECT"})
        tables["leads"].update.return_value.eq.assert_called_once_with("id", "lead-1")

    @pytest.mark.asyncio
    async def test_empty_update_is_skipped(self, mock_supabase, tables):
        store = SupabaseRecordStore(mock_supabase)

        await store.update_lead("lead-1", {})

        tables["leads"].update.assert_not_called()

    @pytest.mark.asyncio
    async def test_write_failure_is_wrapped(self, mock_supabase, tables):
        tables["leads"].update.side_effect = Exception("timeout")
        store = SupabaseRecordStore(mock_supabase)

        with pytest.raises(PersistenceError) as exc_info:
            await store.update_lead("lead-1", {"cadence_phase": "NEW"})

        assert exc_info.value.operation == "update_lead"
        assert exc_info.value.lead_id == "lead-1"

    @pytest.mark.asyncio
    async def test_append_audit(self, mock_supabase, tables, now):
        store = SupabaseRecordStore(mock_supabase)
        entry = AuditEntry(lead_id="lead-1", action="pause", field="paused_reason", new_value="Vacation", timestamp=now)

        await store.append_audit([entry])

        rows = tables["lead_activity_log"].insert.call_args[0][0]
        assert rows[0]["lead_id"] == "lead-1"
        assert rows[0]["field"] == "paused_reason"
        assert rows[0]["source"] == "engine"


class TestSupabaseSettings:
    """Tests for from_settings"""

    def test_missing_url_raises(self, monkeypatch):
        monkeypatch.delenv("SUPABASE_URL", raising=False)

        with pytest.raises(RuntimeError, match="SUPABASE_URL"):
            SupabaseRecordStore.from_settings(Settings(supabase_url=None, supabase_service_key="key"))
