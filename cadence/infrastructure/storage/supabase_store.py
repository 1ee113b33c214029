"""
Supabase Record Store
Lead persistence on Supabase tables:
- leads: one row per lead, cadence columns flattened (see Lead.to_record)
- lead_phones: phones keyed by lead_id
- lead_tasks: tasks keyed by lead_id
- lead_activity_log: append-only audit trail
"""
import logging
import os
from typing import Any, Dict, Iterable, List, Optional

from supabase import Client, create_client

from cadence.core.config import Settings
from cadence.domain.interfaces.record_store import PersistenceError, RecordStore
from cadence.domain.models.actions import AuditEntry
from cadence.domain.models.lead import CadencePhase, CadenceStateName, Lead
from cadence.domain.models.phone import Phone

logger = logging.getLogger(__name__)


class SupabaseRecordStore(RecordStore):
    """Record store backed by the Supabase client"""

    LEADS_TABLE = "leads"
    PHONES_TABLE = "lead_phones"
    TASKS_TABLE = "lead_tasks"
    AUDIT_TABLE = "lead_activity_log"

    def __init__(self, supabase: Client):
        """
        Initialize the store.

        Args:
            supabase: Supabase client for database operations
        """
        self._supabase = supabase

    @classmethod
    def from_settings(cls, settings: Settings) -> "SupabaseRecordStore":
        """
        Build a store from settings, falling back to SUPABASE_* env vars.

        Raises:
            RuntimeError: If the URL or service key is not configured
        """
        url = settings.supabase_url or os.getenv("SUPABASE_URL")
        key = settings.supabase_service_key or os.getenv("SUPABASE_SERVICE_KEY")
        if not url:
            raise RuntimeError("SUPABASE_URL is not configured. Set LCE_SUPABASE_URL or SUPABASE_URL.")
        if not key:
            raise RuntimeError(
                "SUPABASE_SERVICE_KEY is not configured. "
                "Set LCE_SUPABASE_SERVICE_KEY or SUPABASE_SERVICE_KEY."
            )
        return cls(create_client(url, key))

    async def _hydrate(self, rows: List[Dict[str, Any]], skip_invalid: bool = True) -> List[Lead]:
        """
        Attach phones and tasks to lead rows.

        Rows that fail validation are logged and dropped unless
        `skip_invalid` is False, in which case the ValueError propagates.
        """
        if not rows:
            return []
        ids = [row["id"] for row in rows]

        phones_response = self._supabase.table(self.PHONES_TABLE).select("*").in_("lead_id", ids).execute()
        tasks_response = self._supabase.table(self.TASKS_TABLE).select("*").in_("lead_id", ids).execute()

        phones_by_lead: Dict[str, List[Dict[str, Any]]] = {}
        for phone in phones_response.data or []:
            phones_by_lead.setdefault(phone["lead_id"], []).append(phone)
        tasks_by_lead: Dict[str, List[Dict[str, Any]]] = {}
        for task in tasks_response.data or []:
            tasks_by_lead.setdefault(task["lead_id"], []).append(task)

        leads = []
        for row in rows:
            try:
                leads.append(Lead.from_record(
                    row, phones_by_lead.get(row["id"], []), tasks_by_lead.get(row["id"], [])
                ))
            except ValueError as e:
                if not skip_invalid:
                    raise
                logger.warning(f"Skipping malformed lead record {row['id']}: {e}")
        return leads

    async def get_lead(self, lead_id: str) -> Optional[Lead]:
        try:
            response = (
                self._supabase.table(self.LEADS_TABLE)
                .select("*")
                .eq("id", lead_id)
                .limit(1)
                .execute()
            )
            leads = await self._hydrate(response.data or [], skip_invalid=False)
        except Exception as e:
            logger.error(f"Failed to load lead {lead_id}: {e}")
            raise PersistenceError("get_lead", lead_id, str(e)) from e
        return leads[0] if leads else None

    async def list_leads(
        self,
        states: Optional[Iterable[CadenceStateName]] = None,
        phases: Optional[Iterable[CadencePhase]] = None,
        after_id: Optional[str] = None,
        limit: int = 100
    ) -> List[Lead]:
        state_values = [CadenceStateName(s).value for s in states] if states else None
        phase_values = [CadencePhase(p).value for p in phases] if phases else None

        leads: List[Lead] = []
        cursor = after_id
        try:
            # Refill until the page is full so skipped rows do not end paging early
            while len(leads) < limit:
                wanted = limit - len(leads)
                query = self._supabase.table(self.LEADS_TABLE).select("*")
                if state_values:
                    query = query.in_("cadence_state", state_values)
                if phase_values:
                    query = query.in_("cadence_phase", phase_values)
                if cursor is not None:
                    query = query.gt("id", cursor)
                rows = query.order("id", desc=False).limit(wanted).execute().data or []
                leads.extend(await self._hydrate(rows))
                if len(rows) < wanted:
                    break
                cursor = rows[-1]["id"]
        except Exception as e:
            logger.error(f"Failed to list leads after {cursor}: {e}")
            raise PersistenceError("list_leads", message=str(e)) from e
        return leads

    async def update_lead(self, lead_id: str, fields: Dict[str, Any]) -> None:
        if not fields:
            return
        try:
            self._supabase.table(self.LEADS_TABLE).update(fields).eq("id", lead_id).execute()
        except Exception as e:
            logger.error(f"Failed to update lead {lead_id}: {e}")
            raise PersistenceError("update_lead", lead_id, str(e)) from e

    async def update_phone(self, lead_id: str, phone_id: str, fields: Dict[str, Any]) -> None:
        try:
            (
                self._supabase.table(self.PHONES_TABLE)
                .update(fields)
                .eq("id", phone_id)
                .eq("lead_id", lead_id)
                .execute()
            )
        except Exception as e:
            logger.error(f"Failed to update phone {phone_id} on lead {lead_id}: {e}")
            raise PersistenceError("update_phone", lead_id, str(e)) from e

    async def add_phone(self, lead_id: str, phone: Phone) -> None:
        try:
            self._supabase.table(self.PHONES_TABLE).insert({**phone.to_record(), "lead_id": lead_id}).execute()
        except Exception as e:
            logger.error(f"Failed to add phone to lead {lead_id}: {e}")
            raise PersistenceError("add_phone", lead_id, str(e)) from e

    async def append_audit(self, entries: List[AuditEntry]) -> None:
        if not entries:
            return
        try:
            self._supabase.table(self.AUDIT_TABLE).insert([e.to_record() for e in entries]).execute()
        except Exception as e:
            logger.error(f"Failed to write {len(entries)} audit entries: {e}")
            raise PersistenceError("append_audit", entries[0].lead_id, str(e)) from e
