"""
Aggregator

Turns a branch's merged sales ledger and its order list into dashboard numbers.
Daily figures honour the accounting-period cutoff; running orders do not, since an
order still in the kitchen is current whichever business day it was opened in.
"""
from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Sequence

from .credit import is_credit, payment_method_display
from .models import CanonicalRecord, Cutoff

# Rows that are not sales: customer sign-ups posted through the sales endpoint, cancellations
EXCLUDED_STATUSES = frozenset({
    "cancelled",
    "canceled",
    "customer_registration",
    "customer registration",
    "registration",
})

OPEN_ORDER_STATUSES = frozenset({"pending", "preparing", "ready", "confirmed"})


@dataclass
class Aggregates:
    daily_sales: Decimal = Decimal("0")
    complete_bills: int = 0
    running_orders: int = 0
    credit_sales_total: Decimal = Decimal("0")
    todays_orders: int = 0
    payment_breakdown: Dict[str, Decimal] = field(default_factory=dict)

    @property
    def reported_complete_bills(self) -> int:
        """Orders are created before their bills, so a nonzero order count wins"""
        return self.todays_orders or self.complete_bills


def in_period(record: CanonicalRecord, cutoff: Cutoff, today: date) -> bool:
    if record.occurred_at is None:
        return False
    if cutoff.from_dayend:
        return record.occurred_at > cutoff.instant
    return record.occurred_at.date() == today


def is_excluded(record: CanonicalRecord) -> bool:
    return record.status in EXCLUDED_STATUSES


def is_running(record: CanonicalRecord) -> bool:
    return record.status in OPEN_ORDER_STATUSES


def period_records(records: Iterable[CanonicalRecord], cutoff: Cutoff, today: date) -> List[CanonicalRecord]:
    """In-period records that count as sales"""
    return [r for r in records if in_period(r, cutoff, today) and not is_excluded(r)]


def count_complete(records: Sequence[CanonicalRecord]) -> int:
    return sum(1 for r in records if r.amount > 0)


def aggregate(
    ledger: Sequence[CanonicalRecord],
    orders: Sequence[CanonicalRecord],
    cutoff: Cutoff,
    today: date,
) -> Aggregates:
    out = Aggregates()

    sales = period_records(ledger, cutoff, today)
    breakdown: Dict[str, Decimal] = defaultdict(Decimal)
    for record in sales:
        out.daily_sales += record.amount
        breakdown[payment_method_display(record)] += record.amount
    out.complete_bills = count_complete(sales)
    # Credit covers every in-period record; status exclusions do not apply
    out.credit_sales_total = sum(
        (r.amount for r in ledger if in_period(r, cutoff, today) and is_credit(r)),
        Decimal("0"),
    )
    out.payment_breakdown = dict(breakdown)

    out.running_orders = sum(1 for r in orders if is_running(r))
    out.todays_orders = count_complete(period_records(orders, cutoff, today))
    return out
