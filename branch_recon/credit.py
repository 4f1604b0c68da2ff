"""
Credit Classifier

No single upstream field reliably flags a credit sale (billed to a registered
customer's account) across sales, bills and orders, so classification is a
disjunction of independent signals: any one is sufficient, none is necessary.
"""
from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Callable, Tuple

from .models import CanonicalRecord

CREDIT = "credit"
UNSETTLED_PAYMENT_STATUSES = frozenset({"unpaid", "pending"})


def _norm(value: object) -> str:
    return "" if value is None else str(value).strip().lower()


def has_credit_flag(record: CanonicalRecord) -> bool:
    """is_credit sent as true, 1 or "1"."""
    flag = record.credit_flag
    if flag is True:
        return True
    if isinstance(flag, bool):
        return False
    if isinstance(flag, int):
        return flag == 1
    if isinstance(flag, str):
        return flag.strip() == "1"
    return False


def has_credit_method(record: CanonicalRecord) -> bool:
    return _norm(record.payment_method) == CREDIT or _norm(record.payment_mode) == CREDIT


def has_credit_status(record: CanonicalRecord) -> bool:
    return _norm(record.payment_status) == CREDIT


def has_customer_id(record: CanonicalRecord) -> bool:
    if record.customer_id is None:
        return False
    try:
        return Decimal(str(record.customer_id).strip()) > 0
    except InvalidOperation:
        return False


def is_unsettled_customer_sale(record: CanonicalRecord) -> bool:
    """Unpaid/pending bill that belongs to a registered customer."""
    return _norm(record.payment_status) in UNSETTLED_PAYMENT_STATUSES and has_customer_id(record)


CREDIT_PREDICATES: Tuple[Callable[[CanonicalRecord], bool], ...] = (
    has_credit_flag,
    has_credit_method,
    has_credit_status,
    is_unsettled_customer_sale,
)


def is_credit(record: CanonicalRecord) -> bool:
    return any(predicate(record) for predicate in CREDIT_PREDICATES)


def payment_method_display(record: CanonicalRecord) -> str:
    """Label shown in the payment column; credit sales always read "Credit"."""
    if is_credit(record):
        return "Credit"
    for value in (record.payment_method, record.payment_mode, record.payment_status):
        if value and value.strip():
            return value.strip()
    return "N/A"
