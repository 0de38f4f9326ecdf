"""
Background mailbox synchronisation.

One initial scan over the configured history window, then delta scans
over a short window on a fixed cadence. Scans are idempotent (every
write is an upsert keyed by the message's source identity), so overlap
between windows only costs time.

Failure containment:
- a folder that cannot be fetched is logged and skipped
- a message that fails processing is logged and skipped
- an unexpected failure of a whole tick is logged and the next tick runs
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel

from inbox_facts.config import (
    DEFAULT_FOLDERS,
    HISTORY_DAYS_KEY,
    SYNC_INTERVAL_KEY,
    Settings,
    SyncFolder,
)
from inbox_facts.pipeline import ExtractionPipeline
from inbox_facts.sources.protocol import MailSource
from inbox_facts.storage.protocols import RelationalStore

logger = logging.getLogger(__name__)


class SyncPhase(str, Enum):
    INITIAL_SCAN = "initial_scan"
    STEADY_STATE = "steady_state"


def _positive_float(raw: Optional[str], key: str, default: float) -> float:
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning(f"Ignoring non-numeric config value {key}={raw!r}")
        return default
    if value <= 0:
        logger.warning(f"Ignoring non-positive config value {key}={raw!r}")
        return default
    return value


class SyncSettings(BaseModel):
    history_days: float = 90.0
    delta_window_days: float = 1.0
    sync_interval_minutes: float = 2.0
    folders: List[SyncFolder] = DEFAULT_FOLDERS

    @property
    def interval_seconds(self) -> float:
        return self.sync_interval_minutes * 60

    @classmethod
    def resolve(
        cls, settings: Settings, store: Optional[RelationalStore] = None
    ) -> "SyncSettings":
        """
        Scheduler settings with runtime overrides applied.

        history_days and sync_interval (minutes) in the relational config
        table win over process settings.
        """
        history_days = settings.history_days
        interval_minutes = settings.sync_interval_minutes

        if store is not None:
            history_days = _positive_float(
                store.get_config(HISTORY_DAYS_KEY), HISTORY_DAYS_KEY, history_days
            )
            interval_minutes = _positive_float(
                store.get_config(SYNC_INTERVAL_KEY), SYNC_INTERVAL_KEY, interval_minutes
            )

        return cls(
            history_days=history_days,
            delta_window_days=settings.delta_window_days,
            sync_interval_minutes=interval_minutes,
            folders=settings.folders,
        )


@dataclass
class ScanReport:
    """Outcome of one scan across all folders."""

    kind: str
    window_days: float
    folders_ok: List[str] = field(default_factory=list)
    folders_failed: List[str] = field(default_factory=list)
    processed: int = 0
    failed: int = 0

    @property
    def clean(self) -> bool:
        return not self.folders_failed and self.failed == 0


class SyncManager:
    """
    Drives the pipeline from a mail source.

    Example:
        >>> manager = SyncManager(source, pipeline, SyncSettings())
        >>> task = asyncio.create_task(manager.run_forever())
        >>> ...
        >>> manager.stop()
        >>> await task
    """

    def __init__(
        self,
        source: MailSource,
        pipeline: ExtractionPipeline,
        settings: Optional[SyncSettings] = None,
        relational_store: Optional[RelationalStore] = None,
    ):
        self.source = source
        self.pipeline = pipeline
        self.settings = settings or SyncSettings()
        self.relational_store = relational_store or pipeline.relational_store
        self.phase = SyncPhase.INITIAL_SCAN
        self._stop_event: Optional[asyncio.Event] = None
        self._stop_requested = False

        logger.info(
            f"SyncManager initialized: folders={[f.name for f in self.settings.folders]}, "
            f"history={self.settings.history_days}d, "
            f"interval={self.settings.sync_interval_minutes}min"
        )

    async def _scan(self, kind: str, window_days: float) -> ScanReport:
        report = ScanReport(kind=kind, window_days=window_days)

        for folder in self.settings.folders:
            try:
                messages = await self.source.fetch_recent(folder.folder_id, window_days)
            except Exception as e:
                logger.error(f"Failed to fetch messages from {folder.name}: {e}")
                report.folders_failed.append(folder.name)
                continue

            report.folders_ok.append(folder.name)
            logger.info(f"Found {len(messages)} messages in {folder.name}")

            for message in messages:
                try:
                    await self.pipeline.process(message)
                    report.processed += 1
                except Exception as e:
                    logger.error(
                        f"Failed to process message '{message.subject}' from {folder.name}: {e}"
                    )
                    report.failed += 1

        logger.info(
            f"{kind} scan finished: processed={report.processed}, failed={report.failed}, "
            f"failed_folders={report.folders_failed}"
        )
        return report

    async def run_initial_scan(self) -> ScanReport:
        logger.info(f"Running initial {self.settings.history_days}-day sync for all folders...")
        self.phase = SyncPhase.INITIAL_SCAN
        return await self._scan("initial", self.settings.history_days)

    async def run_delta_scan(self) -> ScanReport:
        logger.info("Running periodic delta scan for all folders...")
        return await self._scan("delta", self.settings.delta_window_days)

    async def force_resync(self, window_days: Optional[float] = None) -> ScanReport:
        """On-demand scan; defaults to the full history window."""
        window = window_days if window_days is not None else self.settings.history_days
        logger.info(f"Forced resync over {window} days")
        return await self._scan("forced", window)

    async def reprocess_unextracted(self, limit: Optional[int] = None) -> ScanReport:
        """Re-run the pipeline for stored messages that never got facts."""
        messages = self.relational_store.get_messages_without_facts(limit)
        report = ScanReport(kind="reprocess", window_days=0.0)

        logger.info(f"Reprocessing {len(messages)} messages without facts")
        for message in messages:
            try:
                await self.pipeline.process(message)
                report.processed += 1
            except Exception as e:
                logger.error(
                    f"Failed to reprocess message '{message.subject}' from {message.folder}: {e}"
                )
                report.failed += 1

        return report

    async def run_forever(self) -> None:
        """
        Initial scan, then a delta scan immediately and every interval.

        Ticks are scheduled on a fixed cadence from the first one; a tick
        that overruns the interval pushes the schedule forward instead of
        bursting. Returns once stop() is called.
        """
        self._stop_event = asyncio.Event()
        if self._stop_requested:
            self._stop_event.set()

        logger.info("Starting background sync manager")

        try:
            await self.run_initial_scan()
        except Exception as e:
            logger.error(f"Initial scan failed: {e}")

        self.phase = SyncPhase.STEADY_STATE
        loop = asyncio.get_running_loop()
        next_tick = loop.time()

        while not self._stop_event.is_set():
            try:
                await self.run_delta_scan()
            except Exception as e:
                logger.error(f"Delta scan failed: {e}")

            next_tick += self.settings.interval_seconds
            delay = next_tick - loop.time()
            if delay < 0:
                next_tick = loop.time()
                delay = 0

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
            except asyncio.TimeoutError:
                pass

        self._stop_requested = False
        logger.info("Sync manager stopped")

    def stop(self) -> None:
        """Ask run_forever to return after the current tick."""
        self._stop_requested = True
        if self._stop_event is not None:
            self._stop_event.set()
