"""
Rotation Scheduler

Background process that drives running experiments forward:
- Rotation pass (hourly): advance experiments whose rotation interval elapsed
- Expiry sweep (six-hourly): complete experiments whose duration elapsed

Time is always passed in, so passes can be driven by a real timer or by
tests with synthetic timestamps.
"""

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
import structlog

from listab.config import Settings, get_settings
from listab.integrations.publisher import ListingPublisher
from listab.models import Experiment, ExperimentStatus
from listab.services.experiment_service import ExperimentService

logger = structlog.get_logger()


@dataclass
class PassReport:
    """Outcome of one scheduler pass."""
    name: str
    ran_at: datetime
    processed: int = 0
    acted: List[uuid.UUID] = field(default_factory=list)
    skipped: int = 0
    failed: Dict[uuid.UUID, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "ran_at": self.ran_at.isoformat(),
            "processed": self.processed,
            "acted": [str(i) for i in self.acted],
            "skipped": self.skipped,
            "failed": {str(k): v for k, v in self.failed.items()},
        }


class RotationScheduler:
    """
    Runs the rotation pass and the expiry sweep on fixed cadences.

    Each experiment is handled in its own session; an error for one
    experiment is logged and the pass moves on to the next.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        publisher: Optional[ListingPublisher] = None,
        settings: Optional[Settings] = None,
    ):
        self.session_factory = session_factory
        self.publisher = publisher
        self.settings = settings or get_settings()
        self.rotation_interval = timedelta(seconds=self.settings.rotation_pass_interval_seconds)
        self.expiry_interval = timedelta(seconds=self.settings.expiry_sweep_interval_seconds)
        self.last_rotation_pass: Optional[datetime] = None
        self.last_expiry_sweep: Optional[datetime] = None

    def _service(self, session: AsyncSession) -> ExperimentService:
        return ExperimentService(session, publisher=self.publisher, settings=self.settings)

    async def _testing_experiment_ids(self, started_only: bool = False) -> List[uuid.UUID]:
        async with self.session_factory() as session:
            query = select(Experiment.id).where(
                Experiment.status == ExperimentStatus.TESTING.value
            )
            if started_only:
                query = query.where(Experiment.started_at.is_not(None))
            result = await session.execute(query.order_by(Experiment.started_at))
            return list(result.scalars().all())

    async def _run_pass(
        self,
        report: PassReport,
        experiment_ids: List[uuid.UUID],
        action: Callable[[ExperimentService, uuid.UUID], Awaitable[bool]],
    ) -> PassReport:
        for experiment_id in experiment_ids:
            report.processed += 1
            try:
                async with self.session_factory() as session:
                    acted = await action(self._service(session), experiment_id)
            except Exception as e:
                report.failed[experiment_id] = str(e)
                logger.error(
                    "Scheduler pass failed for experiment",
                    pass_name=report.name,
                    experiment_id=str(experiment_id),
                    error=str(e),
                )
                continue

            if acted:
                report.acted.append(experiment_id)
            else:
                report.skipped += 1

        logger.info(
            "Scheduler pass finished",
            pass_name=report.name,
            processed=report.processed,
            acted=len(report.acted),
            failed=len(report.failed),
        )
        return report

    async def rotation_pass(self, now: datetime) -> PassReport:
        """Rotate every testing experiment whose rotation interval has elapsed."""
        experiment_ids = await self._testing_experiment_ids()
        report = await self._run_pass(
            PassReport(name="rotation", ran_at=now),
            experiment_ids,
            lambda service, experiment_id: service.rotate_if_due(experiment_id, now),
        )
        self.last_rotation_pass = now
        return report

    async def expiry_sweep(self, now: datetime) -> PassReport:
        """Complete every started experiment whose duration has elapsed."""
        experiment_ids = await self._testing_experiment_ids(started_only=True)
        report = await self._run_pass(
            PassReport(name="expiry", ran_at=now),
            experiment_ids,
            lambda service, experiment_id: service.expire_if_due(experiment_id, now),
        )
        self.last_expiry_sweep = now
        return report

    async def tick(self, now: datetime) -> List[PassReport]:
        """Run whichever passes are due at `now`."""
        reports = []
        if self.last_expiry_sweep is None or now - self.last_expiry_sweep >= self.expiry_interval:
            reports.append(await self.expiry_sweep(now))
        if self.last_rotation_pass is None or now - self.last_rotation_pass >= self.rotation_interval:
            reports.append(await self.rotation_pass(now))
        return reports

    async def run_forever(self, stop_event: Optional[asyncio.Event] = None) -> None:
        """Poll tick() until stop_event is set."""
        stop_event = stop_event or asyncio.Event()
        poll = self.settings.scheduler_poll_seconds

        logger.info(
            "Rotation scheduler started",
            rotation_interval_seconds=self.rotation_interval.total_seconds(),
            expiry_interval_seconds=self.expiry_interval.total_seconds(),
        )

        while not stop_event.is_set():
            try:
                await self.tick(datetime.utcnow())
            except Exception as e:
                logger.error("Scheduler tick failed", error=str(e))
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=poll)
            except asyncio.TimeoutError:
                pass

        logger.info("Rotation scheduler stopped")
