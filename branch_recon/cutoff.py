"""
Temporal Cutoff Resolver

"Daily" figures reset when a branch manager closes the day, not at midnight. The
cutoff is the latest dayend closing for the branch, or the start of the current
local day when the branch has never been closed or the lookup fails.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import List, Optional

import pytz

from .adapters import BRANCH_ID_FIELDS, DAYEND_CLOSING_FIELDS, clean_id, parse_timestamp, resolve_field
from .client import BaseFetcher
from .envelope import normalize_envelope
from .errors import DayendUnavailable
from .models import Cutoff, DayendCheckpoint
from .settings import ReconSettings

logger = logging.getLogger(__name__)


def local_now(settings: ReconSettings) -> datetime:
    """Current wall-clock time in the configured zone, as a naive datetime"""
    tz = pytz.timezone(settings.timezone)
    return datetime.now(tz).replace(tzinfo=None)


def start_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


async def fetch_checkpoints(
    fetcher: BaseFetcher,
    branch_id: str,
    settings: ReconSettings,
) -> List[DayendCheckpoint]:
    """Closing events for the branch. Raises DayendUnavailable when the lookup fails."""
    try:
        envelope = await asyncio.wait_for(
            fetcher.fetch_last_dayend(branch_id), timeout=settings.fetch_timeout_secs
        )
    except asyncio.TimeoutError:
        raise DayendUnavailable(branch_id, f"timed out after {settings.fetch_timeout_secs}s")
    except DayendUnavailable:
        raise
    except Exception as e:
        raise DayendUnavailable(branch_id, str(e) or type(e).__name__) from e

    result = normalize_envelope(envelope)
    if result.problem:
        logger.warning("dayend for branch %s: %s (%s)", branch_id, result.problem, result.shape.value)

    tz = pytz.timezone(settings.timezone)
    checkpoints: List[DayendCheckpoint] = []
    for row in result.records:
        # The lookup is branch-scoped; only drop rows that name a different branch
        row_branch = clean_id(resolve_field(row, BRANCH_ID_FIELDS))
        if row_branch is not None and row_branch != str(branch_id).strip():
            continue
        closing = parse_timestamp(resolve_field(row, DAYEND_CLOSING_FIELDS), tz)
        if closing is None:
            continue
        checkpoints.append(DayendCheckpoint(branch_id=str(branch_id), closing_instant=closing))
    return checkpoints


def latest_checkpoint(checkpoints: List[DayendCheckpoint]) -> Optional[DayendCheckpoint]:
    if not checkpoints:
        return None
    return max(checkpoints, key=lambda c: c.closing_instant)


async def resolve_cutoff(
    fetcher: BaseFetcher,
    branch_id: str,
    settings: ReconSettings,
    now: Optional[datetime] = None,
) -> Cutoff:
    """Start of the current accounting period; never raises for dayend failures"""
    now = now or local_now(settings)
    try:
        checkpoint = latest_checkpoint(await fetch_checkpoints(fetcher, branch_id, settings))
    except DayendUnavailable as e:
        logger.warning("%s; using start of day", e)
        checkpoint = None

    if checkpoint is None:
        return Cutoff(instant=start_of_day(now), from_dayend=False)
    return Cutoff(instant=checkpoint.closing_instant, from_dayend=True)
