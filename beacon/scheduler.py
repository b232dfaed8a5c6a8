"""
Scheduler - periodic priority and progress classification

Each domain gets a SchedulingHarness: an APScheduler interval job (30 min
for priority, 45 min for progress by default, first run immediately) plus
a manual trigger sharing the same cycle logic. BeaconScheduler hosts both
harnesses for the command line.

Cycle:
1. Skip when disabled or today's token budget is spent
2. Progress: staleness sweep
3. Fetch pending items and their correlated items
4. Extraction -> inference -> resolution (retry policy inside)
5. Upsert scores + mark analysed, append ledger row, update statistics

Usage:
    python -m beacon.scheduler                    # Run scheduler daemon
    python -m beacon.scheduler --once             # Run one cycle per domain and exit
    python -m beacon.scheduler --once --domain progress
"""
import asyncio
import random
import sys
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional, Sequence

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from loguru import logger

from beacon.config import HarnessConfig, Settings, settings as default_settings
from beacon.constants import Domain, ProgressState
from beacon.data_transformers import WorkItem
from beacon.exceptions import QuotaExceeded
from beacon.llm import LLMClient
from beacon.processor import ClassificationPipeline, LedgerEntry, PipelineResult, Score
from beacon.processor.resolver import detect_stale
from beacon.store import WorkItemStore
from beacon.utils.logger import EventReporter, LoguruReporter, set_log_context

MAX_RELATED_PER_ITEM = 10


class HarnessState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"


class CycleStatus(str, Enum):
    COMPLETED = "completed"
    DISABLED = "disabled"
    QUOTA_EXCEEDED = "quota_exceeded"
    NO_PENDING = "no_pending"
    FAILED = "failed"


@dataclass
class CycleReport:
    """What one classification cycle did."""
    run_id: str
    domain: Domain
    status: CycleStatus
    items_processed: int = 0
    tokens_used: int = 0
    stale_detected: int = 0
    error: Optional[str] = None


@dataclass
class HarnessStatistics:
    """Observable state of a harness. Daily counters reset on date change."""
    domain: Domain
    daily_token_limit: int
    state: HarnessState = HarnessState.IDLE
    stats_date: date = field(default_factory=date.today)
    items_processed_today: int = 0
    tokens_used_today: int = 0
    stale_items_detected: int = 0
    last_run_at: Optional[datetime] = None
    last_error: Optional[str] = None
    last_error_at: Optional[datetime] = None
    next_run_at: Optional[datetime] = None

    @property
    def usage_percentage(self) -> float:
        if self.daily_token_limit <= 0:
            return 100.0
        return min(self.tokens_used_today / self.daily_token_limit * 100.0, 100.0)

    @property
    def limit_reached(self) -> bool:
        return self.tokens_used_today >= self.daily_token_limit

    def to_dict(self) -> Dict:
        return {
            "domain": self.domain.value,
            "state": self.state.value,
            "items_processed_today": self.items_processed_today,
            "tokens_used_today": self.tokens_used_today,
            "daily_token_limit": self.daily_token_limit,
            "usage_percentage": round(self.usage_percentage, 1),
            "limit_reached": self.limit_reached,
            "stale_items_detected": self.stale_items_detected,
            "last_run_at": self.last_run_at.isoformat() if self.last_run_at else None,
            "last_error": self.last_error,
            "last_error_at": self.last_error_at.isoformat() if self.last_error_at else None,
            "next_run_at": self.next_run_at.isoformat() if self.next_run_at else None,
        }


class SchedulingHarness:
    """
    Drives repeated classification cycles for one domain.

    Example:
        harness = SchedulingHarness(Domain.PROGRESS, config, store, client)
        harness.start()              # interval job, first run now
        report = await harness.trigger_now()
        harness.stop()
    """

    def __init__(
        self,
        domain: Domain,
        config: HarnessConfig,
        store: WorkItemStore,
        client: LLMClient,
        reporter: Optional[EventReporter] = None,
        scheduler: Optional[AsyncIOScheduler] = None,
        *,
        clock: Callable[[], datetime] = datetime.now,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rand: Callable[[], float] = random.random,
    ):
        """
        Args:
            domain: Classification axis this harness runs
            config: Per-domain configuration
            store: Work item / score / ledger persistence
            client: LLM client
            reporter: Event sink, loguru by default
            scheduler: Shared APScheduler; the harness creates its own when omitted
            clock: Time source
            sleep: Backoff sleep for the retry policy
            rand: Jitter source for the retry policy
        """
        self.domain = Domain(domain)
        if Domain(config.domain) != self.domain:
            raise ValueError(f"Config is for {config.domain}, harness is for {self.domain.value}")
        self.config = config
        self.store = store
        self.client = client
        self.reporter = reporter or LoguruReporter(f"{self.domain.value}_harness")
        self.pipeline = ClassificationPipeline(config, client, sleep=sleep, rand=rand)

        self._scheduler = scheduler
        self._owns_scheduler = scheduler is None
        self._clock = clock
        self._running_cycles = 0
        self._stats = HarnessStatistics(
            domain=self.domain,
            daily_token_limit=config.daily_token_limit,
            stats_date=clock().date(),
        )

    @property
    def job_id(self) -> str:
        return f"classify_{self.domain.value}"

    # ============================================
    # LIFECYCLE
    # ============================================

    def start(self) -> None:
        """Register the interval job; the first run fires immediately."""
        if self._scheduler is None:
            self._scheduler = AsyncIOScheduler()

        self._scheduler.add_job(
            self.run_cycle,
            IntervalTrigger(minutes=self.config.interval_minutes),
            id=self.job_id,
            name=f"Classify {self.domain.value}",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            next_run_time=datetime.now(),
        )
        if self._owns_scheduler and not self._scheduler.running:
            self._scheduler.start()

        self.reporter.info(
            f"{self.domain.value} harness started, every {self.config.interval_minutes} min",
            domain=self.domain.value,
        )

    def stop(self) -> None:
        """Remove the timer. A cycle already in flight runs to completion."""
        if self._scheduler is None:
            return
        if self._scheduler.get_job(self.job_id) is not None:
            self._scheduler.remove_job(self.job_id)
        if self._owns_scheduler and self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
        self.reporter.info(f"{self.domain.value} harness stopped", domain=self.domain.value)

    async def trigger_now(self) -> CycleReport:
        """Run a cycle immediately, outside the timer."""
        return await self.run_cycle()

    @property
    def statistics(self) -> HarnessStatistics:
        self._roll_day(self._clock().date())
        job = self._scheduler.get_job(self.job_id) if self._scheduler is not None else None
        next_run = getattr(job, "next_run_time", None) if job is not None else None
        if next_run is not None and next_run.tzinfo is not None:
            next_run = next_run.astimezone().replace(tzinfo=None)
        self._stats.next_run_at = next_run
        self._stats.state = HarnessState.RUNNING if self._running_cycles else HarnessState.IDLE
        return self._stats

    # ============================================
    # CYCLE
    # ============================================

    async def run_cycle(self) -> CycleReport:
        """
        One classification cycle.

        Never raises: failures are recorded as `last_error` and reported.
        """
        now = self._clock()
        self._roll_day(now.date())
        run_id = f"{self.domain.value}_{now:%Y%m%d%H%M%S}_{uuid.uuid4().hex[:6]}"
        set_log_context(domain=self.domain.value, run_id=run_id)
        report = CycleReport(run_id=run_id, domain=self.domain, status=CycleStatus.COMPLETED)

        if not self.config.enabled:
            self.reporter.info(f"{self.domain.value} classification disabled, skipping", run_id=run_id)
            report.status = CycleStatus.DISABLED
            return report

        self._running_cycles += 1
        try:
            await self._run(now, report)
        except QuotaExceeded as e:
            report.status = CycleStatus.QUOTA_EXCEEDED
            report.error = str(e)
            self._record_error(e, now, expected=True)
        except Exception as e:
            report.status = CycleStatus.FAILED
            report.error = str(e)
            self._record_error(e, now)
        finally:
            self._running_cycles -= 1
            self._stats.last_run_at = now

        return report

    async def _run(self, now: datetime, report: CycleReport) -> None:
        used = await self.store.get_today_token_usage(self.domain)
        self._stats.tokens_used_today = used
        if used >= self.config.daily_token_limit:
            raise QuotaExceeded(self.domain.value, used, self.config.daily_token_limit)

        if self.domain == Domain.PROGRESS:
            report.stale_detected = await self._sweep_stale(now)

        items = await self.store.get_pending_items(self.domain, self.config.batch_size)
        if not items:
            report.status = CycleStatus.NO_PENDING
            self.reporter.info(f"No pending {self.domain.value} items", run_id=report.run_id)
            return

        related_by_item = await self._fetch_related(items)
        existing = await self.store.get_scores(self.domain, [item.id for item in items])

        result = await self.pipeline.run(items, related_by_item, existing, now=now)

        if result.scores or result.analyzed_item_ids:
            versions = {item.id: item.updated_at for item in items}
            await self.store.upsert_scores(self.domain, result.scores, result.analyzed_item_ids, versions)

        tokens = await self._record_usage(result, now)

        processed = len(result.analyzed_item_ids)
        report.items_processed = processed
        report.tokens_used = tokens
        self._stats.items_processed_today += processed
        self._stats.tokens_used_today += tokens

        if result.error is not None:
            report.status = CycleStatus.FAILED
            report.error = str(result.error)
            self._record_error(result.error, now)
            return

        self.reporter.info(
            f"{self.domain.value} cycle complete: {processed} items, {tokens} tokens "
            f"({result.heuristic_count} heuristic, {result.dropped_count} dropped)",
            run_id=report.run_id,
            items=processed,
            tokens=tokens,
        )

    async def _sweep_stale(self, now: datetime) -> int:
        in_progress = await self.store.get_scores_by_label(self.domain, ProgressState.IN_PROGRESS.value)
        stale = detect_stale(in_progress, now, timedelta(days=self.config.staleness_days))
        if not stale:
            return 0
        # Sweep results don't count as analysis of the item's latest content
        await self.store.upsert_scores(self.domain, stale, [])
        self._stats.stale_items_detected += len(stale)
        self.reporter.info(f"Marked {len(stale)} items stale", stale=len(stale))
        return len(stale)

    async def _fetch_related(self, items: Sequence[WorkItem]) -> Dict[str, List[WorkItem]]:
        lookups = [
            self.store.get_related_items(item.id, item.ticket_refs, MAX_RELATED_PER_ITEM)
            for item in items
        ]
        results = await asyncio.gather(*lookups)
        return {item.id: list(related) for item, related in zip(items, results)}

    async def _record_usage(self, result: PipelineResult, now: datetime) -> int:
        if not result.items_sent_to_model:
            return 0
        estimated = result.tokens_used is None
        tokens = (
            self.config.estimated_tokens_per_item * result.items_sent_to_model
            if estimated else result.tokens_used
        )
        await self.store.append_ledger(LedgerEntry(
            run_date=now.date(),
            domain=self.domain,
            items_processed=len(result.analyzed_item_ids),
            tokens_used=tokens,
            model_used=result.model_used or self.config.model,
            estimated=estimated,
            created_at=now,
        ))
        return tokens

    def _record_error(self, error: BaseException, at: datetime, expected: bool = False) -> None:
        self._stats.last_error = f"{type(error).__name__}: {error}"
        self._stats.last_error_at = at
        # Quota exhaustion is reported at info level
        if expected:
            self.reporter.info(str(error), domain=self.domain.value)
            return
        self.reporter.error(
            f"{self.domain.value} cycle failed: {self._stats.last_error}",
            domain=self.domain.value,
        )

    def _roll_day(self, today: date) -> None:
        if today != self._stats.stats_date:
            self._stats.stats_date = today
            self._stats.items_processed_today = 0
            self._stats.tokens_used_today = 0
            self._stats.stale_items_detected = 0

    # ============================================
    # MANUAL OVERRIDES
    # ============================================

    async def set_manual_label(self, item_id: str, label: str, reasoning: str = "") -> Score:
        score = await self.store.set_manual_label(self.domain, item_id, label, reasoning)
        self.reporter.info(f"Manual {self.domain.value} label {score.label} set on {item_id}")
        return score

    async def clear_manual_override(self, item_id: str) -> bool:
        cleared = await self.store.clear_manual_override(self.domain, item_id)
        if cleared:
            self.reporter.info(f"Manual {self.domain.value} override cleared on {item_id}")
        return cleared


# =============================================================================
# Host runner
# =============================================================================

class BeaconScheduler:
    """
    Hosts one harness per enabled domain on a shared AsyncIOScheduler.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        domains: Sequence[Domain] = (Domain.PRIORITY, Domain.PROGRESS),
        client: Optional[LLMClient] = None,
        store: Optional[WorkItemStore] = None,
    ):
        self.settings = settings or default_settings
        self.domains = [Domain(d) for d in domains]
        self.scheduler = AsyncIOScheduler()
        self._client = client
        self._store = store
        self.harnesses: Dict[Domain, SchedulingHarness] = {}

    async def setup(self) -> None:
        """Initialise the database, the LLM client and the harnesses."""
        from beacon.config import ensure_directories
        from beacon.database import create_tables, init_engine
        from beacon.llm import get_client
        from beacon.store import SqlWorkItemStore

        ensure_directories()
        await init_engine()
        await create_tables()

        self._client = self._client or get_client(settings=self.settings)
        self._store = self._store or SqlWorkItemStore()

        for domain in self.domains:
            self.harnesses[domain] = SchedulingHarness(
                domain,
                self.settings.harness_config(domain),
                self._store,
                self._client,
                scheduler=self.scheduler,
            )
        logger.info(f"Scheduler setup complete with {len(self.harnesses)} harnesses")

    def _log_schedule(self):
        jobs = self.scheduler.get_jobs()
        logger.info(f"Scheduled jobs ({len(jobs)}):")
        for job in jobs:
            logger.info(f"  - {job.name}: {job.trigger}")

    def start(self) -> None:
        for harness in self.harnesses.values():
            harness.start()
        self.scheduler.start()
        self._log_schedule()
        logger.info("Scheduler started - Press Ctrl+C to stop")

    async def stop(self) -> None:
        for harness in self.harnesses.values():
            harness.stop()
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        if self._client is not None:
            await self._client.aclose()

        from beacon.database import close_engine
        await close_engine()
        logger.info("Scheduler stopped")

    async def run_once(self) -> bool:
        """Run one cycle per harness. True when none failed."""
        ok = True
        for harness in self.harnesses.values():
            report = await harness.trigger_now()
            logger.info(f"{report.domain.value}: {report.status.value} ({report.items_processed} items)")
            ok = ok and report.status != CycleStatus.FAILED
        return ok


async def _serve(scheduler: BeaconScheduler) -> None:
    import signal

    await scheduler.setup()
    scheduler.start()

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    await stop_event.wait()
    logger.info("Received shutdown signal")
    await scheduler.stop()


async def _run_once(scheduler: BeaconScheduler) -> bool:
    await scheduler.setup()
    try:
        return await scheduler.run_once()
    finally:
        await scheduler.stop()


def main():
    """Main entry point with CLI arguments."""
    import argparse

    from beacon.utils.logger import init_logging, setup_logging

    parser = argparse.ArgumentParser(description="Beacon Triage Scheduler")
    parser.add_argument("--once", action="store_true", help="Run one cycle per domain and exit")
    parser.add_argument(
        "--domain",
        choices=[d.value for d in Domain] + ["all"],
        default="all",
        help="Classification domain to run",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")

    args = parser.parse_args()

    if args.verbose:
        setup_logging(log_level="DEBUG", app_name="scheduler")
    else:
        init_logging(app_name="scheduler")

    domains = list(Domain) if args.domain == "all" else [Domain(args.domain)]
    scheduler = BeaconScheduler(domains=domains)

    if args.once:
        result = asyncio.run(_run_once(scheduler))
        sys.exit(0 if result else 1)

    try:
        asyncio.run(_serve(scheduler))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
