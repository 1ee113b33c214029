"""
Record Store Interface
Abstract base class for lead persistence
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional

from cadence.domain.models.actions import AuditEntry
from cadence.domain.models.lead import CadencePhase, CadenceStateName, Lead
from cadence.domain.models.phone import Phone


class PersistenceError(Exception):
    """Raised when a record store read or write fails."""
    def __init__(self, operation: str, lead_id: Optional[str] = None, message: str = ""):
        self.operation = operation
        self.lead_id = lead_id
        self.message = f"{operation} failed" + (f" for lead {lead_id}" if lead_id else "") + (f": {message}" if message else "")
        super().__init__(self.message)


class RecordStore(ABC):
    """
    Lead persistence used by the engine and the maintenance sweep.

    Writes are partial: only the changed columns are sent. Callers
    serialize writes per lead; the store gives no ordering guarantee.
    """

    @abstractmethod
    async def get_lead(self, lead_id: str) -> Optional[Lead]:
        """Load a lead with its phones and tasks, or None if missing"""
        pass

    @abstractmethod
    async def list_leads(
        self,
        states: Optional[Iterable[CadenceStateName]] = None,
        phases: Optional[Iterable[CadencePhase]] = None,
        after_id: Optional[str] = None,
        limit: int = 100
    ) -> List[Lead]:
        """
        Page through leads ordered by id.

        Args:
            states: Only leads in these cadence states
            phases: Only leads in these phases
            after_id: Cursor; only ids greater than this
            limit: Page size

        Returns:
            Up to `limit` leads; fewer only when no more leads match.
            Rows that fail validation are logged and skipped.
        """
        pass

    @abstractmethod
    async def update_lead(self, lead_id: str, fields: Dict[str, Any]) -> None:
        """Apply a partial update to the lead row"""
        pass

    @abstractmethod
    async def update_phone(self, lead_id: str, phone_id: str, fields: Dict[str, Any]) -> None:
        """Apply a partial update to one phone"""
        pass

    @abstractmethod
    async def add_phone(self, lead_id: str, phone: Phone) -> None:
        """Attach a new phone to a lead"""
        pass

    @abstractmethod
    async def append_audit(self, entries: List[AuditEntry]) -> None:
        """Append audit entries"""
        pass
