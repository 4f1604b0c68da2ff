"""
Source Adapters

Each adapter converts rows from one upstream endpoint into CanonicalRecord objects.
This abstraction allows the reconciliation pipeline to be source-agnostic.

Supported sources:
- Sales (api/get_sales.php, daily sales aggregate rows)
- Bills (api/bills_management.php, raw bills with payment/customer metadata)
- Orders (api/order_management.php, order lifecycle rows)

Upstream field names are inconsistent between (and sometimes within) endpoints, so
every canonical field is resolved from an ordered list of candidate names: the
first present, non-empty value wins. The order is a business decision, e.g.
grand_total beats total because it includes service charge and discounts.
"""
from __future__ import annotations

import math
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Optional, Tuple

import pandas as pd
import pytz

from .models import Branch, CanonicalRecord, Source


# =============================================================================
# Field mapping table
# =============================================================================

FIELD_MAP: Dict[str, Tuple[str, ...]] = {
    "record_id": ("order_id", "orderId", "id", "bill_id", "billId", "sale_id"),
    "branch_id": ("branch_id", "branchId", "branch_ID", "BranchID"),
    "occurred_at": ("created_at", "date", "order_date", "bill_date", "createdAt"),
    "amount": (
        "grand_total",
        "net_total",
        "total",
        "amount",
        "total_amount",
        "bill_amount",
        "paid_amount",
    ),
    "status": ("status", "order_status", "bill_status"),
    "payment_method": ("payment_method", "paymentMethod"),
    "payment_mode": ("payment_mode", "paymentMode"),
    "payment_status": ("payment_status", "paymentStatus"),
    "credit_flag": ("is_credit", "isCredit"),
    "customer_id": ("customer_id", "customerId"),
}

BRANCH_ID_FIELDS = FIELD_MAP["branch_id"]
BRANCH_NAME_FIELDS = ("branch_name", "name", "branchName", "BranchName")
DAYEND_CLOSING_FIELDS = ("closing_date_time", "closing_datetime", "closed_at")


# =============================================================================
# Generic resolver + value parsers
# =============================================================================

def is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if isinstance(value, str) and not value.strip():
        return True
    return False


def resolve_field(raw: Dict[str, Any], candidates: Iterable[str]) -> Any:
    """Return the value of the first candidate present and non-empty in ``raw``"""
    for name in candidates:
        if name in raw and not is_empty(raw[name]):
            return raw[name]
    return None


def parse_amount(value: Any) -> Optional[Decimal]:
    """Parse amount from various formats; None if it is not a number"""
    if is_empty(value) or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        return Decimal(str(value))
    # Handle string amounts
    s = str(value).strip().replace(",", "").replace("PKR", "").replace("Rs.", "").strip()
    # Handle parentheses for negative
    if s.startswith("(") and s.endswith(")"):
        s = "-" + s[1:-1]
    try:
        out = Decimal(s)
    except InvalidOperation:
        return None
    if not out.is_finite():
        return None
    return out


def resolve_amount(raw: Dict[str, Any], candidates: Iterable[str]) -> Decimal:
    """
    Amount variant of resolve_field: a candidate holding 0 or something that is
    not a number counts as empty, so "grand_total": "0.00" falls through to total.
    """
    for name in candidates:
        amount = parse_amount(raw.get(name))
        if amount is not None and amount != 0:
            return amount
    return Decimal("0")


def parse_timestamp(value: Any, tz: Optional[pytz.BaseTzInfo] = None) -> Optional[datetime]:
    """Parse a timestamp to naive local time; None for missing or unparseable values"""
    if is_empty(value) or isinstance(value, bool):
        return None
    try:
        if isinstance(value, (int, float)):
            ts = pd.to_datetime(value, unit="s", utc=True, errors="coerce")
        elif isinstance(value, datetime):
            ts = pd.Timestamp(value)
        elif isinstance(value, date):
            ts = pd.Timestamp(datetime.combine(value, datetime.min.time()))
        else:
            ts = pd.to_datetime(str(value).strip(), errors="coerce")
    except (ValueError, OverflowError, TypeError):
        return None
    if ts is None or pd.isna(ts):
        return None
    if ts.tzinfo is not None:
        ts = ts.tz_convert(tz or pytz.utc).tz_localize(None)
    return ts.to_pydatetime()


def clean_id(value: Any) -> Optional[str]:
    """Identifiers compare as trimmed strings; 5, "5" and " 5 " are the same id"""
    if is_empty(value) or isinstance(value, bool):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


# =============================================================================
# Base Adapter
# =============================================================================

class BaseAdapter:
    """Base class for all source adapters"""

    source: Source

    # Source-specific candidates, tried before the shared FIELD_MAP entry
    FIELD_OVERRIDES: Dict[str, Tuple[str, ...]] = {}

    def __init__(self, tz: Optional[pytz.BaseTzInfo] = None):
        self.tz = tz

    def candidates(self, field_name: str) -> Tuple[str, ...]:
        extra = self.FIELD_OVERRIDES.get(field_name, ())
        shared = tuple(c for c in FIELD_MAP[field_name] if c not in extra)
        return extra + shared

    def map_record(self, raw: Dict[str, Any]) -> CanonicalRecord:
        status = resolve_field(raw, self.candidates("status"))
        return CanonicalRecord(
            record_id=clean_id(resolve_field(raw, self.candidates("record_id"))),
            branch_id=clean_id(resolve_field(raw, self.candidates("branch_id"))),
            source_origin=self.source,
            occurred_at=parse_timestamp(resolve_field(raw, self.candidates("occurred_at")), self.tz),
            amount=resolve_amount(raw, self.candidates("amount")),
            status=str(status).strip().lower() if status is not None else "",
            payment_method=_text(resolve_field(raw, self.candidates("payment_method"))),
            payment_mode=_text(resolve_field(raw, self.candidates("payment_mode"))),
            payment_status=_text(resolve_field(raw, self.candidates("payment_status"))),
            credit_flag=resolve_field(raw, self.candidates("credit_flag")),
            customer_id=clean_id(resolve_field(raw, self.candidates("customer_id"))),
            raw=raw,
        )

    def parse(self, rows: Iterable[Dict[str, Any]]) -> List[CanonicalRecord]:
        return [self.map_record(row) for row in rows]


def _text(value: Any) -> str:
    return "" if value is None else str(value).strip()


# =============================================================================
# Concrete adapters
# =============================================================================

class SalesAdapter(BaseAdapter):
    """
    Sales-aggregate rows. The sales endpoint stamps rows with the business date
    first and the creation time second, so "date" is preferred here.
    """

    source = Source.SALES
    FIELD_OVERRIDES = {
        "occurred_at": ("date", "created_at"),
    }


class BillsAdapter(BaseAdapter):
    """Raw bills. Bill status lives in bill_status on older installs."""

    source = Source.BILLS
    FIELD_OVERRIDES = {
        "status": ("bill_status", "status"),
    }


class OrdersAdapter(BaseAdapter):
    """Order management rows; the order's own status drives running orders"""

    source = Source.ORDERS
    FIELD_OVERRIDES = {
        "record_id": ("order_id", "id"),
        "status": ("order_status", "status"),
    }


ADAPTERS = {
    Source.SALES: SalesAdapter,
    Source.BILLS: BillsAdapter,
    Source.ORDERS: OrdersAdapter,
}


def adapter_for(source: Source, tz: Optional[pytz.BaseTzInfo] = None) -> BaseAdapter:
    return ADAPTERS[source](tz)


# =============================================================================
# Branch rows
# =============================================================================

def branch_from_raw(raw: Dict[str, Any]) -> Optional[Branch]:
    """Map a branch_management row; rows without any id are skipped"""
    branch_id = clean_id(resolve_field(raw, BRANCH_ID_FIELDS + ("id", "ID")))
    if branch_id is None:
        return None
    name = resolve_field(raw, BRANCH_NAME_FIELDS)
    return Branch(branch_id=branch_id, branch_name=str(name).strip() if name is not None else "Unknown Branch")


def branches_from_rows(rows: Iterable[Dict[str, Any]]) -> List[Branch]:
    out: List[Branch] = []
    for row in rows:
        branch = branch_from_raw(row)
        if branch is not None:
            out.append(branch)
    return out
