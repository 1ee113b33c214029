"""
Maintenance Worker
Daily sweep that moves leads along without user action:
wakes expired snoozes, re-enrolls finished cadences, marks stale engaged
leads, flags phone exhaustion, reactivates deep prospects with new numbers
and refreshes queue tiers.

Run as separate process:
    python -m cadence.workers.maintenance_worker
    python -m cadence.workers.maintenance_worker --loop
"""
import argparse
import asyncio
import logging
import signal
from datetime import datetime
from typing import Callable, Iterable, List, Optional

from dotenv import load_dotenv

from cadence.core.config import ConfigManager, Settings
from cadence.domain.interfaces.record_store import RecordStore
from cadence.domain.models.actions import ActionOutcome
from cadence.domain.models.cadence_config import load_cadence_config
from cadence.domain.models.lead import CadencePhase, CadenceStateName, Lead
from cadence.domain.models.maintenance import PageSummary, SweepError, SweepStep, SweepSummary
from cadence.domain.services.engine import CadenceEngine
from cadence.infrastructure.storage.supabase_store import SupabaseRecordStore
from cadence.utils.time_utils import ensure_utc, utc_now

logger = logging.getLogger(__name__)


LeadFilter = Callable[[Lead, datetime], Optional[ActionOutcome]]


class MaintenanceSweep:
    """
    One pass over every lead that may need time-based changes.

    Each step pages through the store by id, so a sweep that dies halfway
    can simply be run again: leads already moved no longer match the step's
    filter and unchanged leads produce no writes.
    """

    def __init__(
        self,
        store: RecordStore,
        engine: Optional[CadenceEngine] = None,
        page_size: int = 100
    ):
        if page_size < 1:
            raise ValueError("page_size must be at least 1")
        self.store = store
        self.engine = engine or CadenceEngine(store)
        self.page_size = page_size

    def _steps(self):
        engine = self.engine
        states = self.engine.config.states
        return [
            (
                SweepStep.UNSNOOZE,
                [CadenceStateName.SNOOZED],
                None,
                engine.compute_unsnooze,
            ),
            (
                SweepStep.RE_ENROLL,
                sorted(states.re_enroll_candidates, key=lambda s: s.value),
                None,
                self._re_enroll_if_due,
            ),
            (
                SweepStep.STALE_ENGAGED,
                [CadenceStateName.EXITED_ENGAGED],
                None,
                self._mark_stale_engaged,
            ),
            (
                SweepStep.PHONE_EXHAUSTION,
                [CadenceStateName.ACTIVE],
                None,
                engine.compute_phone_exhaustion,
            ),
            (
                SweepStep.DEEP_PROSPECT_REACTIVATION,
                None,
                [CadencePhase.DEEP_PROSPECT],
                engine.compute_deep_prospect_reactivation,
            ),
            (
                SweepStep.QUEUE_REFRESH,
                sorted(states.queue_visible, key=lambda s: s.value),
                None,
                engine.compute_queue_refresh,
            ),
        ]

    def _re_enroll_if_due(self, lead: Lead, now: datetime) -> Optional[ActionOutcome]:
        if lead.re_enrollment_date is None or lead.re_enrollment_date > now:
            return None
        return self.engine.compute_re_enrollment(lead, now)

    def _mark_stale_engaged(self, lead: Lead, now: datetime) -> Optional[ActionOutcome]:
        if not self.engine.phase_manager.is_stale_engaged(lead, now):
            return None
        return self.engine.compute_re_enrollment(lead, now, stale_engaged=True)

    async def run_sweep(self, now: Optional[datetime] = None) -> SweepSummary:
        """
        Run every step in order.

        Args:
            now: Reference time (defaults to the current time)

        Returns:
            SweepSummary; status is PARTIAL when any lead failed
        """
        now = ensure_utc(now) if now else utc_now()
        summary = SweepSummary(started_at=now)
        logger.info(f"Maintenance sweep started at {now.isoformat()}")

        for step, states, phases, compute in self._steps():
            before = summary
            async for page in self._run_step(step, states, phases, compute, now):
                summary = summary.merge(page)
            logger.info(
                f"Step {step.value}: {getattr(summary, step.value) - getattr(before, step.value)} changed, "
                f"{len(summary.errors) - len(before.errors)} errors"
            )

        summary = summary.model_copy(update={"finished_at": utc_now()})
        logger.info(f"Maintenance sweep finished: {summary.status.value} {summary.to_dict()}")
        return summary

    async def _run_step(
        self,
        step: SweepStep,
        states: Optional[Iterable[CadenceStateName]],
        phases: Optional[Iterable[CadencePhase]],
        compute: LeadFilter,
        now: datetime
    ):
        after_id = None
        while True:
            try:
                leads = await self.store.list_leads(
                    states=states, phases=phases, after_id=after_id, limit=self.page_size
                )
            except Exception as e:
                # The rest of this step is skipped; later steps still run
                logger.error(f"Sweep step {step.value} query error after {after_id}: {e}", exc_info=True)
                yield PageSummary(
                    step=step,
                    errors=(SweepError(step=step, message=f"{step.value} query error: {e}"),),
                )
                return
            if not leads:
                return
            yield await self._process_page(step, leads, compute, now)
            if len(leads) < self.page_size:
                return
            after_id = leads[-1].id

    async def _process_page(
        self,
        step: SweepStep,
        leads: List[Lead],
        compute: LeadFilter,
        now: datetime
    ) -> PageSummary:
        changed = 0
        errors = []
        for lead in leads:
            try:
                outcome = compute(lead, now)
                if outcome is None:
                    continue
                await self.engine.persist_outcome(lead, outcome)
                changed += 1
            except Exception as e:
                logger.error(f"Sweep step {step.value} failed for lead {lead.id}: {e}", exc_info=True)
                errors.append(SweepError(lead_id=lead.id, step=step, message=str(e)))
        return PageSummary(step=step, scanned=len(leads), changed=changed, errors=tuple(errors))


class MaintenanceWorker:
    """
    Process wrapper around MaintenanceSweep.

    Runs one sweep and exits, or with `loop=True` repeats every
    SWEEP_INTERVAL seconds until stopped.
    """

    SWEEP_INTERVAL = 24 * 60 * 60

    def __init__(self, settings: Optional[Settings] = None, store: Optional[RecordStore] = None):
        self.settings = settings or Settings()
        self._store = store
        self._sweep: Optional[MaintenanceSweep] = None

        self.running = False

        # Stats
        self._sweeps_run = 0
        self._sweeps_partial = 0
        self._last_summary: Optional[SweepSummary] = None

    async def initialize(self) -> None:
        """Build the record store and the sweep."""
        logger.info("Initializing Maintenance Worker...")
        if self._store is None:
            self._store = SupabaseRecordStore.from_settings(self.settings)
        config = load_cadence_config(ConfigManager(env=self.settings.environment), self.settings)
        self._sweep = MaintenanceSweep(
            self._store,
            CadenceEngine(self._store, config),
            page_size=self.settings.sweep_page_size,
        )
        logger.info("Maintenance Worker initialized successfully")

    async def run_once(self, now: Optional[datetime] = None) -> SweepSummary:
        if self._sweep is None:
            await self.initialize()
        summary = await self._sweep.run_sweep(now)
        self._sweeps_run += 1
        if summary.errors:
            self._sweeps_partial += 1
        self._last_summary = summary
        return summary

    async def run(self, loop: bool = False) -> None:
        """Run one sweep, or keep sweeping until `running` is cleared."""
        await self.initialize()
        self.running = True

        while self.running:
            await self.run_once()
            if not loop:
                break
            slept = 0
            while self.running and slept < self.SWEEP_INTERVAL:
                await asyncio.sleep(1)
                slept += 1

        self.running = False

    async def shutdown(self) -> None:
        logger.info("Shutting down Maintenance Worker...")
        self.running = False
        logger.info("Maintenance Worker shutdown complete")

    def get_stats(self) -> dict:
        """Get worker statistics."""
        return {
            "running": self.running,
            "sweeps_run": self._sweeps_run,
            "sweeps_partial": self._sweeps_partial,
            "last_summary": self._last_summary.to_dict() if self._last_summary else None,
        }


async def main(argv: Optional[List[str]] = None):
    """Entry point for running the maintenance sweep as a separate process."""
    parser = argparse.ArgumentParser(description="Lead cadence maintenance sweep")
    parser.add_argument("--loop", action="store_true", help="Repeat the sweep daily until stopped")
    args = parser.parse_args(argv)

    load_dotenv()
    settings = Settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    worker = MaintenanceWorker(settings)

    loop = asyncio.get_event_loop()

    def signal_handler():
        logger.info("Received shutdown signal")
        worker.running = False

    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, signal_handler)
        except NotImplementedError:
            pass

    try:
        await worker.run(loop=args.loop)
    except KeyboardInterrupt:
        logger.info("Worker interrupted by user")
    finally:
        await worker.shutdown()


def run_cli():
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run_cli()
