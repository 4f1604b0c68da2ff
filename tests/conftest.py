from __future__ import annotations

import asyncio
from typing import Any, Dict, Iterable, List, Optional, Tuple

import pytest

from branch_recon.client import BaseFetcher
from branch_recon.settings import ReconSettings


class FakeFetcher(BaseFetcher):
    """
    In-memory stand-in for the POS API.

    Each source maps branch id -> envelope. ``fail`` holds (source, branch_id) pairs
    that raise; a branch_id of None fails that source for every branch. ``delays``
    holds (source, branch_id) -> seconds to sleep before answering.
    """

    def __init__(
        self,
        sales: Optional[Dict[str, Any]] = None,
        bills: Optional[Dict[str, Any]] = None,
        orders: Optional[Dict[str, Any]] = None,
        dayends: Optional[Dict[str, Any]] = None,
        branches: Any = None,
        fail: Iterable[Tuple[str, Optional[str]]] = (),
        delays: Optional[Dict[Tuple[str, str], float]] = None,
    ):
        self.answers = {
            "sales": sales or {},
            "bills": bills or {},
            "orders": orders or {},
            "dayend": dayends or {},
        }
        self.branches = branches if branches is not None else []
        self.fail = set(fail)
        self.delays = delays or {}
        self.calls: List[Tuple[str, str]] = []

    async def _answer(self, source: str, branch_id: str) -> Any:
        self.calls.append((source, branch_id))
        delay = self.delays.get((source, branch_id))
        if delay:
            await asyncio.sleep(delay)
        if (source, branch_id) in self.fail or (source, None) in self.fail:
            raise RuntimeError(f"{source} exploded for {branch_id}")
        return self.answers[source].get(branch_id, [])

    async def fetch_sales(self, branch_id, date_range):
        return await self._answer("sales", branch_id)

    async def fetch_bills(self, branch_id, date_range):
        return await self._answer("bills", branch_id)

    async def fetch_orders(self, branch_id):
        return await self._answer("orders", branch_id)

    async def fetch_last_dayend(self, branch_id):
        return await self._answer("dayend", branch_id)

    async def fetch_branches(self):
        if ("branches", None) in self.fail:
            raise RuntimeError("branch list exploded")
        return self.branches


def fail_branch(branch_id: str) -> List[Tuple[str, str]]:
    """Every upstream call for one branch raises"""
    return [(source, branch_id) for source in ("sales", "bills", "orders", "dayend")]


@pytest.fixture()
def settings() -> ReconSettings:
    return ReconSettings(
        api_base_url="http://pos.test/api",
        api_token="",
        terminal=1,
        fetch_timeout_secs=1.0,
        timezone="UTC",
        lookback_days=1,
    )
