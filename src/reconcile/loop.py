"""Periodic status reconciliation."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import aiosqlite

from src.errors import StatusSourceError
from src.messaging.notifier import Notifier
from src.reconcile.policy import Action, decide
from src.tracker.models import Category, TrackedApplication
from src.utils.logging import get_logger

logger = get_logger("reconcile")


@dataclass
class ReconcileReport:
    """Counters for one reconciliation pass."""

    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    completed_at: datetime | None = None
    total: int = 0
    checked: int = 0
    changed: int = 0
    stale: int = 0
    ready: int = 0
    unchanged: int = 0
    skipped: int = 0
    failed: int = 0
    notify_failed: int = 0

    def summary(self) -> str:
        """Format a one-line summary of the pass."""
        duration = ""
        if self.completed_at:
            elapsed = (self.completed_at - self.started_at).total_seconds()
            duration = f" in {elapsed:.1f}s"
        return (
            f"Reconciled {self.total} record(s){duration}: "
            f"checked={self.checked} changed={self.changed} stale={self.stale} "
            f"ready={self.ready} unchanged={self.unchanged} skipped={self.skipped} "
            f"failed={self.failed} notify_failed={self.notify_failed}"
        )


class Reconciler:
    """Poll the status source for every eligible record and notify users.

    Usage:
        reconciler = Reconciler(
            repository=repo, status_source=source, notifier=notifier, threshold=48
        )
        report = await reconciler.run_once()
        print(report.summary())
    """

    def __init__(
        self,
        *,
        repository: Any,
        status_source: Any,
        notifier: Notifier,
        threshold: int = 48,
    ) -> None:
        self.repository = repository
        self.status_source = status_source
        self.notifier = notifier
        self.threshold = threshold

    async def run_once(self) -> ReconcileReport:
        """Process a snapshot of all records, one after the other."""
        report = ReconcileReport()

        try:
            records = await self.repository.list_all()
        except aiosqlite.Error:
            logger.exception("Could not load tracked applications; skipping this pass")
            report.failed += 1
            report.completed_at = datetime.now(UTC)
            return report

        report.total = len(records)
        for record in records:
            try:
                await self._reconcile(record, report)
            except aiosqlite.Error:
                logger.exception("Store failure while reconciling record %s", record.id)
                report.failed += 1

        report.completed_at = datetime.now(UTC)
        return report

    async def _poll(self, record: TrackedApplication) -> str:
        if record.category == Category.LONG_VALIDITY:
            return await self.status_source.lookup_status(
                record.application_number, city_id=record.city_id
            )
        return await self.status_source.lookup_status(record.application_number)

    async def _reconcile(self, record: TrackedApplication, report: ReconcileReport) -> None:
        if not record.is_eligible() or not self.status_source.supports(record.category):
            report.skipped += 1
            return

        try:
            status = await self._poll(record)
        except StatusSourceError as e:
            # Transient; the next pass retries
            logger.warning("Status lookup for record %s failed: %s", record.id, e)
            report.failed += 1
            return

        report.checked += 1
        decision = decide(record, status, self.threshold)

        if decision.action == Action.READY:
            applied = await self.repository.delete(record.id)
        else:
            applied = await self.repository.update_fields(
                record.id,
                decision.updates,
                expected={
                    "status": record.status,
                    "checks_since_change": record.checks_since_change,
                },
            )
        if not applied:
            logger.info("Record %s changed during reconciliation; left for next pass", record.id)
            report.skipped += 1
            return

        if decision.action == Action.READY:
            report.ready += 1
        elif decision.action == Action.CHANGED:
            report.changed += 1
        elif decision.action == Action.STALE:
            report.stale += 1
        else:
            report.unchanged += 1

        if decision.message_id is None:
            return
        sent = await self.notifier.notify(record.user_id, decision.message_id, Status=status)
        if not sent:
            report.notify_failed += 1


class ReconciliationTask:
    """Run a Reconciler at a fixed rate until stopped.

    The first pass runs immediately; later passes are scheduled on a fixed
    grid, so a slow pass does not push every following one back.
    """

    def __init__(self, reconciler: Reconciler, interval_seconds: float) -> None:
        self.reconciler = reconciler
        self.interval_seconds = interval_seconds
        self.last_report: ReconcileReport | None = None
        self.passes = 0

    async def run(self, stop_event: asyncio.Event | None = None) -> None:
        stop_event = stop_event or asyncio.Event()
        loop = asyncio.get_running_loop()
        next_run = loop.time()

        while not stop_event.is_set():
            report = await self.reconciler.run_once()
            self.last_report = report
            self.passes += 1
            logger.info(report.summary())

            # Slots missed by an overlong pass are dropped, not replayed
            now = loop.time()
            next_run += self.interval_seconds
            while next_run <= now:
                next_run += self.interval_seconds
            delay = next_run - now
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=delay)
            except asyncio.TimeoutError:
                continue
