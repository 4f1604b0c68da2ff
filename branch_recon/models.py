"""
Branch Statistics Data Models

This module defines the core data structures for per-branch sales reconciliation:
- Raw upstream rows (sales, bills, orders) are mapped into CanonicalRecord objects
- The latest dayend closing becomes the Cutoff that starts the accounting period
- Each branch pipeline produces one BranchStatisticsSnapshot for the dashboard

Key concepts:
- Records carry their source only for merge tie-breaking, never for business logic
- Snapshots are recomputed on demand and never stored
- A failed branch still produces a snapshot, zeroed and flagged with error=True
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional


# =============================================================================
# Enums
# =============================================================================

class Source(str, Enum):
    """Upstream record sources, in merge priority order"""
    SALES = "sales"     # Sales-aggregate endpoint (authoritative for totals)
    BILLS = "bills"     # Raw bills endpoint (payment/customer metadata)
    ORDERS = "orders"   # Order management endpoint (order lifecycle)


# Sales first, bills second. Orders are reconciled separately (running orders).
LEDGER_SOURCES = (Source.SALES, Source.BILLS)


# =============================================================================
# Core Data Models
# =============================================================================

@dataclass
class Branch:
    """A branch as listed by the dashboard"""
    branch_id: str
    branch_name: str = "Unknown Branch"


@dataclass(frozen=True)
class DateRange:
    """Inclusive date range sent to the sales/bills endpoints"""
    start: date
    end: date

    def to_params(self) -> Dict[str, str]:
        return {"from_date": self.start.isoformat(), "to_date": self.end.isoformat()}


@dataclass
class CanonicalRecord:
    """
    A sales/bill/order row after field-name normalization.
    All adapters convert their source rows into this common schema.
    """
    record_id: Optional[str]                # Identity for dedup (order id, bill id, id)
    branch_id: Optional[str]                # None = never trusted for any branch
    source_origin: Source                   # Merge tie-break only
    occurred_at: Optional[datetime] = None  # Naive local time; None = not in any period
    amount: Decimal = Decimal("0")
    status: str = ""                        # Lower-cased order/bill status
    payment_method: str = ""
    payment_mode: str = ""
    payment_status: str = ""
    credit_flag: Any = None                 # Raw is_credit value as sent upstream
    customer_id: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    # Fields a later source may backfill when they are empty here
    FILLABLE = (
        "branch_id",
        "occurred_at",
        "status",
        "payment_method",
        "payment_mode",
        "payment_status",
        "credit_flag",
        "customer_id",
    )

    def is_missing(self, name: str) -> bool:
        value = getattr(self, name)
        if value is None:
            return True
        if isinstance(value, str) and not value.strip():
            return True
        return False


@dataclass(frozen=True)
class DayendCheckpoint:
    """The most recent 'day closed' event for a branch"""
    branch_id: str
    closing_instant: datetime


@dataclass(frozen=True)
class Cutoff:
    """Start of the current accounting period for one branch"""
    instant: datetime
    from_dayend: bool   # False = fell back to local midnight

    def to_dict(self) -> Dict[str, Any]:
        return {"instant": self.instant.isoformat(), "from_dayend": self.from_dayend}


@dataclass
class BranchStatisticsSnapshot:
    """
    Reconciled statistics for one branch.
    This is the primary output consumed by the dashboard.
    """
    branch_id: str
    branch_name: str

    daily_sales: Decimal = Decimal("0")
    running_orders: int = 0
    complete_bills: int = 0
    credit_sales_total: Decimal = Decimal("0")

    # Pipeline failed; the numbers above are a zeroed placeholder
    error: bool = False
    error_message: Optional[str] = None

    # Diagnostics
    cutoff: Optional[Cutoff] = None
    unavailable_sources: List[str] = field(default_factory=list)
    record_counts: Dict[str, int] = field(default_factory=dict)
    amount_conflicts: int = 0
    payment_breakdown: Dict[str, Decimal] = field(default_factory=dict)

    @classmethod
    def failed(cls, branch: Branch, message: str = "") -> "BranchStatisticsSnapshot":
        return cls(
            branch_id=branch.branch_id,
            branch_name=branch.branch_name,
            error=True,
            error_message=message or None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "branch_id": self.branch_id,
            "branch_name": self.branch_name,
            "daily_sales": float(self.daily_sales),
            "running_orders": self.running_orders,
            "complete_bills": self.complete_bills,
            "credit_sales_total": float(self.credit_sales_total),
            "error": self.error,
            "error_message": self.error_message,
            "cutoff": self.cutoff.instant.isoformat() if self.cutoff else None,
            "cutoff_from_dayend": self.cutoff.from_dayend if self.cutoff else False,
            "unavailable_sources": list(self.unavailable_sources),
            "record_counts": dict(self.record_counts),
            "amount_conflicts": self.amount_conflicts,
            "payment_breakdown": {k: float(v) for k, v in self.payment_breakdown.items()},
        }
