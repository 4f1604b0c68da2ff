import asyncio
from datetime import datetime

from conftest import FakeFetcher

from branch_recon.cutoff import latest_checkpoint, resolve_cutoff, start_of_day
from branch_recon.models import Cutoff, DayendCheckpoint

NOW = datetime(2024, 1, 15, 20, 0)


def test_latest_checkpoint_is_the_maximum():
    checkpoints = [
        DayendCheckpoint("5", datetime(2024, 1, 14, 18)),
        DayendCheckpoint("5", datetime(2024, 1, 15, 18)),
        DayendCheckpoint("5", datetime(2024, 1, 13, 18)),
    ]
    assert latest_checkpoint(checkpoints).closing_instant == datetime(2024, 1, 15, 18)
    assert latest_checkpoint([]) is None


def test_start_of_day():
    assert start_of_day(datetime(2024, 1, 15, 20, 5, 7, 11)) == datetime(2024, 1, 15)


def test_resolve_cutoff_uses_latest_dayend_for_the_branch(settings):
    fetcher = FakeFetcher(dayends={"5": {"success": True, "data": [
        {"closing_date_time": "2024-01-14 23:00:00"},
        {"closing_date_time": "2024-01-15 18:00:00", "branch_id": 5},
        {"closing_date_time": "2024-01-15 19:00:00", "branch_id": 6},
        {"closing_date_time": "garbage", "branch_id": 5},
    ]}})
    cutoff = asyncio.run(resolve_cutoff(fetcher, "5", settings, now=NOW))
    assert cutoff.from_dayend
    assert cutoff.instant == datetime(2024, 1, 15, 18, 0)


def test_resolve_cutoff_falls_back_when_never_closed(settings):
    cutoff = asyncio.run(resolve_cutoff(FakeFetcher(), "5", settings, now=NOW))
    assert not cutoff.from_dayend
    assert cutoff.instant == datetime(2024, 1, 15)


def test_resolve_cutoff_falls_back_when_lookup_fails(settings):
    fetcher = FakeFetcher(fail=[("dayend", "5")])
    cutoff = asyncio.run(resolve_cutoff(fetcher, "5", settings, now=NOW))
    assert cutoff == Cutoff(instant=datetime(2024, 1, 15), from_dayend=False)


def test_resolve_cutoff_falls_back_on_timeout(settings):
    fetcher = FakeFetcher(
        dayends={"5": [{"closing_date_time": "2024-01-15 18:00:00"}]},
        delays={("dayend", "5"): 0.5},
    )
    fast = settings.with_overrides(fetch_timeout_secs=0.05)
    cutoff = asyncio.run(resolve_cutoff(fetcher, "5", fast, now=NOW))
    assert not cutoff.from_dayend


def test_resolve_cutoff_handles_failed_envelope(settings):
    fetcher = FakeFetcher(dayends={"5": {"success": False, "message": "no dayend"}})
    cutoff = asyncio.run(resolve_cutoff(fetcher, "5", settings, now=NOW))
    assert not cutoff.from_dayend
