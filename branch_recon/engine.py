from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Union

import pytz

from .adapters import adapter_for, branch_from_raw, branches_from_rows
from .aggregate import aggregate
from .client import BaseFetcher
from .cutoff import local_now, resolve_cutoff
from .envelope import normalize_envelope
from .errors import BranchPipelineFailure, SourceUnavailable
from .isolation import isolate
from .merge import merge_sources
from .models import (
    LEDGER_SOURCES,
    Branch,
    BranchStatisticsSnapshot,
    DateRange,
    Source,
)
from .settings import DEFAULT_SETTINGS, ReconSettings

logger = logging.getLogger(__name__)

BranchLike = Union[Branch, Dict[str, Any]]


# -----------------------------
# Helpers
# -----------------------------
def coerce_branch(value: BranchLike) -> Branch:
    if isinstance(value, Branch):
        return value
    if isinstance(value, dict):
        branch = branch_from_raw(value)
        if branch is not None:
            return branch
        # Still reported (as a failed row) so the dashboard table keeps its shape
        return Branch(branch_id="", branch_name=str(value.get("branch_name") or value.get("name") or "Unknown Branch"))
    return Branch(branch_id=str(value).strip())

def fetch_date_range(now: datetime, settings: ReconSettings) -> DateRange:
    today = now.date()
    return DateRange(start=today - timedelta(days=max(settings.lookback_days, 0)), end=today)


@dataclass
class SourceFetch:
    source: Source
    rows: List[Dict[str, Any]] = field(default_factory=list)
    available: bool = True


@dataclass
class BranchResult:
    """Outcome of one branch task: a snapshot, or the error that stopped it"""
    branch: Branch
    snapshot: Optional[BranchStatisticsSnapshot] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.snapshot is not None

    def to_snapshot(self) -> BranchStatisticsSnapshot:
        if self.ok:
            return self.snapshot
        return BranchStatisticsSnapshot.failed(self.branch, str(self.error) if self.error else "")


# -----------------------------
# Source fetches
# -----------------------------
async def _call_source(fetcher: BaseFetcher, source: Source, branch_id: str, date_range: DateRange):
    if source == Source.SALES:
        return await fetcher.fetch_sales(branch_id, date_range)
    if source == Source.BILLS:
        return await fetcher.fetch_bills(branch_id, date_range)
    return await fetcher.fetch_orders(branch_id)

async def fetch_source(
    fetcher: BaseFetcher,
    source: Source,
    branch_id: str,
    date_range: DateRange,
    settings: ReconSettings,
) -> SourceFetch:
    """Fetch one source; failures and timeouts degrade to an empty, unavailable result"""
    try:
        envelope = await asyncio.wait_for(
            _call_source(fetcher, source, branch_id, date_range),
            timeout=settings.fetch_timeout_secs,
        )
    except asyncio.TimeoutError:
        logger.warning("%s", SourceUnavailable(source.value, branch_id, f"timed out after {settings.fetch_timeout_secs}s"))
        return SourceFetch(source, available=False)
    except Exception as e:
        err = e if isinstance(e, SourceUnavailable) else SourceUnavailable(source.value, branch_id, str(e) or type(e).__name__)
        logger.warning("%s", err)
        return SourceFetch(source, available=False)

    result = normalize_envelope(envelope)
    if result.problem:
        logger.warning("%s for branch %s: %s (%s)", source.value, branch_id, result.problem, result.shape.value)
    return SourceFetch(source, rows=result.records)


# -----------------------------
# Per-branch pipeline
# -----------------------------
async def reconcile_branch(
    branch: Branch,
    fetcher: BaseFetcher,
    settings: ReconSettings = DEFAULT_SETTINGS,
    now: Optional[datetime] = None,
) -> BranchStatisticsSnapshot:
    """Cutoff + sources (concurrently) -> map -> isolate -> merge -> aggregate"""
    if not branch.branch_id:
        raise BranchPipelineFailure(branch.branch_id, "branch has no id")

    now = now or local_now(settings)
    date_range = fetch_date_range(now, settings)
    branch_id = branch.branch_id

    cutoff, *fetches = await asyncio.gather(
        resolve_cutoff(fetcher, branch_id, settings, now=now),
        fetch_source(fetcher, Source.SALES, branch_id, date_range, settings),
        fetch_source(fetcher, Source.BILLS, branch_id, date_range, settings),
        fetch_source(fetcher, Source.ORDERS, branch_id, date_range, settings),
    )
    by_source = {f.source: f for f in fetches}
    unavailable = [f.source.value for f in fetches if not f.available]
    if len(unavailable) == len(fetches):
        raise BranchPipelineFailure(branch_id, "all sources unavailable")

    tz = pytz.timezone(settings.timezone)
    isolated = {
        source: isolate(adapter_for(source, tz).parse(f.rows), branch_id)
        for source, f in by_source.items()
    }

    ledger = merge_sources([(source, isolated[source]) for source in LEDGER_SOURCES])
    orders = merge_sources([(Source.ORDERS, isolated[Source.ORDERS])])
    totals = aggregate(ledger.records, orders.records, cutoff, now.date())

    counts = {source.value: len(records) for source, records in isolated.items()}
    counts["ledger"] = len(ledger.records)

    snapshot = BranchStatisticsSnapshot(
        branch_id=branch_id,
        branch_name=branch.branch_name,
        daily_sales=totals.daily_sales,
        running_orders=totals.running_orders,
        complete_bills=totals.reported_complete_bills,
        credit_sales_total=totals.credit_sales_total,
        cutoff=cutoff,
        unavailable_sources=unavailable,
        record_counts=counts,
        amount_conflicts=ledger.amount_conflicts,
        payment_breakdown=totals.payment_breakdown,
    )
    logger.info(
        "branch %s (%s): sales=%s running=%d bills=%d credit=%s cutoff=%s%s",
        branch_id, branch.branch_name, snapshot.daily_sales, snapshot.running_orders,
        snapshot.complete_bills, snapshot.credit_sales_total, cutoff.instant.isoformat(),
        "" if cutoff.from_dayend else " (start of day)",
    )
    return snapshot

async def _run_branch(
    branch: Branch,
    fetcher: BaseFetcher,
    settings: ReconSettings,
    now: Optional[datetime],
) -> BranchResult:
    try:
        snapshot = await reconcile_branch(branch, fetcher, settings, now=now)
    except Exception as e:
        logger.exception("statistics failed for branch %s (%s)", branch.branch_id, branch.branch_name)
        return BranchResult(branch, error=e)
    return BranchResult(branch, snapshot=snapshot)


# -----------------------------
# Orchestrator
# -----------------------------
async def compute_branch_results(
    branches: Iterable[BranchLike],
    fetcher: BaseFetcher,
    settings: ReconSettings = DEFAULT_SETTINGS,
    now: Optional[datetime] = None,
) -> List[BranchResult]:
    targets = [coerce_branch(b) for b in branches]
    # _run_branch never raises, so gather never short-circuits
    return list(await asyncio.gather(*(_run_branch(b, fetcher, settings, now) for b in targets)))

async def compute_branch_statistics(
    branches: Iterable[BranchLike],
    fetcher: BaseFetcher,
    settings: ReconSettings = DEFAULT_SETTINGS,
    now: Optional[datetime] = None,
) -> List[BranchStatisticsSnapshot]:
    """One snapshot per input branch, in input order; failed branches come back with error=True."""
    results = await compute_branch_results(branches, fetcher, settings, now=now)
    failed = sum(1 for r in results if not r.ok)
    if failed:
        logger.warning("%d of %d branches failed", failed, len(results))
    return [r.to_snapshot() for r in results]

async def compute_single_branch(
    branch: BranchLike,
    fetcher: BaseFetcher,
    settings: ReconSettings = DEFAULT_SETTINGS,
    now: Optional[datetime] = None,
) -> BranchStatisticsSnapshot:
    """Recompute one branch, e.g. when the dashboard retries a failed row"""
    result = await _run_branch(coerce_branch(branch), fetcher, settings, now)
    return result.to_snapshot()

async def fetch_branch_list(fetcher: BaseFetcher) -> List[Branch]:
    """Branch list from upstream. Raises SourceUnavailable; there is nothing to show without it."""
    try:
        envelope = await fetcher.fetch_branches()
    except SourceUnavailable:
        raise
    except Exception as e:
        raise SourceUnavailable("branches", reason=str(e) or type(e).__name__) from e
    result = normalize_envelope(envelope)
    if result.problem:
        logger.warning("branch list: %s (%s)", result.problem, result.shape.value)
    return branches_from_rows(result.records)
