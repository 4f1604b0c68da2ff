from datetime import date, datetime
from decimal import Decimal

from branch_recon.aggregate import aggregate, in_period
from branch_recon.models import CanonicalRecord, Cutoff, Source

TODAY = date(2024, 1, 15)
MIDNIGHT = Cutoff(instant=datetime(2024, 1, 15), from_dayend=False)
DAYEND = Cutoff(instant=datetime(2024, 1, 15, 18, 0), from_dayend=True)


def rec(record_id, at, amount="0", source=Source.SALES, **kw):
    return CanonicalRecord(
        record_id=record_id,
        branch_id="5",
        source_origin=source,
        occurred_at=at,
        amount=Decimal(amount),
        **kw,
    )


def test_start_of_day_fallback_uses_calendar_date():
    assert in_period(rec("a", datetime(2024, 1, 15, 0, 0, 1)), MIDNIGHT, TODAY)
    assert not in_period(rec("b", datetime(2024, 1, 14, 23, 59, 59)), MIDNIGHT, TODAY)


def test_dayend_cutoff_is_strict():
    assert not in_period(rec("a", datetime(2024, 1, 15, 18, 0)), DAYEND, TODAY)
    assert in_period(rec("b", datetime(2024, 1, 15, 18, 0, 1)), DAYEND, TODAY)
    # a late-night dayend leaves the next calendar day's sales in period
    late = Cutoff(instant=datetime(2024, 1, 14, 23, 0), from_dayend=True)
    assert in_period(rec("c", datetime(2024, 1, 14, 23, 30)), late, TODAY)


def test_undated_records_are_never_in_period():
    assert not in_period(rec("a", None, "100"), MIDNIGHT, TODAY)


def test_daily_sales_and_credit():
    ledger = [
        rec("1", datetime(2024, 1, 15, 19), "1000", payment_method="Cash"),
        rec("2", datetime(2024, 1, 15, 19, 30), "500", payment_method="Credit"),
        rec("3", datetime(2024, 1, 15, 17), "700"),
        rec("4", datetime(2024, 1, 15, 19), "0"),
    ]
    out = aggregate(ledger, [], DAYEND, TODAY)
    assert out.daily_sales == Decimal("1500")
    assert out.credit_sales_total == Decimal("500")
    assert out.complete_bills == 2
    assert out.reported_complete_bills == 2
    assert out.payment_breakdown == {"Cash": Decimal("1000"), "Credit": Decimal("500"), "N/A": Decimal("0")}


def test_cancelled_and_registration_rows_are_excluded():
    ledger = [
        rec("1", datetime(2024, 1, 15, 19), "1000"),
        rec("2", datetime(2024, 1, 15, 19), "300", status="cancelled"),
        rec("3", datetime(2024, 1, 15, 19), "50", status="customer_registration"),
    ]
    out = aggregate(ledger, [], DAYEND, TODAY)
    assert out.daily_sales == Decimal("1000")
    assert out.complete_bills == 1


def test_running_orders_ignore_cutoff():
    orders = [
        rec("o1", datetime(2024, 1, 14, 22), "300", Source.ORDERS, status="preparing"),
        rec("o2", datetime(2024, 1, 15, 19), "200", Source.ORDERS, status="pending"),
        rec("o3", datetime(2024, 1, 15, 19), "200", Source.ORDERS, status="completed"),
        rec("o4", None, "200", Source.ORDERS, status="ready"),
    ]
    out = aggregate([], orders, DAYEND, TODAY)
    assert out.running_orders == 3


def test_todays_orders_supersede_ledger_bill_count():
    ledger = [rec("1", datetime(2024, 1, 15, 19), "1000")]
    orders = [
        rec("o1", datetime(2024, 1, 15, 19), "300", Source.ORDERS, status="completed"),
        rec("o2", datetime(2024, 1, 15, 20), "200", Source.ORDERS, status="ready"),
        rec("o3", datetime(2024, 1, 15, 20), "200", Source.ORDERS, status="cancelled"),
    ]
    out = aggregate(ledger, orders, DAYEND, TODAY)
    assert out.complete_bills == 1
    assert out.todays_orders == 2
    assert out.reported_complete_bills == 2
    # orders never count toward sales
    assert out.daily_sales == Decimal("1000")


def test_empty_inputs():
    out = aggregate([], [], MIDNIGHT, TODAY)
    assert out.daily_sales == Decimal("0")
    assert out.reported_complete_bills == 0
    assert out.running_orders == 0


def test_credit_total_ignores_status_exclusions():
    ledger = [
        rec("1", datetime(2024, 1, 15, 19), "400", status="cancelled", payment_method="credit"),
        rec("2", datetime(2024, 1, 15, 19), "250", payment_method="Cash"),
        rec("3", datetime(2024, 1, 15, 17), "900", payment_method="credit"),
    ]
    out = aggregate(ledger, [], DAYEND, TODAY)
    assert out.daily_sales == Decimal("250")
    assert out.complete_bills == 1
    assert out.credit_sales_total == Decimal("400")
