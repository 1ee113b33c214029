"""
In-Memory Record Store
Dict-backed store for local runs and tests
"""
import logging
from typing import Any, Dict, Iterable, List, Optional

from cadence.domain.interfaces.record_store import PersistenceError, RecordStore
from cadence.domain.models.actions import AuditEntry
from cadence.domain.models.lead import CadencePhase, CadenceStateName, Lead
from cadence.domain.models.phone import Phone

logger = logging.getLogger(__name__)


class InMemoryRecordStore(RecordStore):
    """
    Keeps leads as persisted rows, exactly as a database would.

    Rows go through Lead.to_record / Lead.from_record so every read
    exercises the same normalization as a real store.
    """

    def __init__(self, leads: Optional[Iterable[Lead]] = None):
        self._leads: Dict[str, Dict[str, Any]] = {}
        self._phones: Dict[str, List[Dict[str, Any]]] = {}
        self._tasks: Dict[str, List[Dict[str, Any]]] = {}
        self.audit_log: List[AuditEntry] = []
        for lead in leads or []:
            self.add_lead(lead)

    def add_lead(self, lead: Lead) -> None:
        """Seed a lead"""
        self._leads[lead.id] = lead.to_record()
        self._phones[lead.id] = [p.to_record() for p in lead.phones]
        self._tasks[lead.id] = [t.model_dump(mode="json") for t in lead.tasks]

    def add_raw_lead(
        self,
        record: Dict[str, Any],
        phones: Optional[List[Dict[str, Any]]] = None,
        tasks: Optional[List[Dict[str, Any]]] = None
    ) -> None:
        """Seed a lead from a raw row, bypassing model validation"""
        self._leads[record["id"]] = dict(record)
        self._phones[record["id"]] = [dict(p) for p in phones or []]
        self._tasks[record["id"]] = [dict(t) for t in tasks or []]

    def get_record(self, lead_id: str) -> Optional[Dict[str, Any]]:
        """Raw persisted row, for inspection"""
        record = self._leads.get(lead_id)
        return dict(record) if record is not None else None

    def _build(self, lead_id: str) -> Lead:
        """
        Raises:
            ValueError: If the stored row does not validate
        """
        return Lead.from_record(
            self._leads[lead_id],
            phones=self._phones.get(lead_id, []),
            tasks=self._tasks.get(lead_id, []),
        )

    async def get_lead(self, lead_id: str) -> Optional[Lead]:
        if lead_id not in self._leads:
            return None
        try:
            return self._build(lead_id)
        except ValueError as e:
            raise PersistenceError("get_lead", lead_id, f"malformed record: {e}") from e

    async def list_leads(
        self,
        states: Optional[Iterable[CadenceStateName]] = None,
        phases: Optional[Iterable[CadencePhase]] = None,
        after_id: Optional[str] = None,
        limit: int = 100
    ) -> List[Lead]:
        state_values = {CadenceStateName(s).value for s in states} if states else None
        phase_values = {CadencePhase(p).value for p in phases} if phases else None

        page = []
        for lead_id in sorted(self._leads):
            if after_id is not None and lead_id <= after_id:
                continue
            record = self._leads[lead_id]
            if state_values is not None and record.get("cadence_state") not in state_values:
                continue
            if phase_values is not None and record.get("cadence_phase") not in phase_values:
                continue
            try:
                page.append(self._build(lead_id))
            except ValueError as e:
                logger.warning(f"Skipping malformed lead record {lead_id}: {e}")
                continue
            if len(page) >= limit:
                break
        return page

    async def update_lead(self, lead_id: str, fields: Dict[str, Any]) -> None:
        if lead_id not in self._leads:
            raise PersistenceError("update_lead", lead_id, "lead not found")
        self._leads[lead_id].update(fields)

    async def update_phone(self, lead_id: str, phone_id: str, fields: Dict[str, Any]) -> None:
        for phone in self._phones.get(lead_id, []):
            if phone.get("id") == phone_id:
                phone.update(fields)
                return
        raise PersistenceError("update_phone", lead_id, f"phone {phone_id} not found")

    async def add_phone(self, lead_id: str, phone: Phone) -> None:
        if lead_id not in self._leads:
            raise PersistenceError("add_phone", lead_id, "lead not found")
        self._phones.setdefault(lead_id, []).append(phone.to_record())

    async def append_audit(self, entries: List[AuditEntry]) -> None:
        self.audit_log.extend(entries)
