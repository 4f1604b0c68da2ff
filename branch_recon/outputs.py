"""
Output Formatting

Money formatting for the dashboard and the branch statistics workbook:
- Summary sheet with totals across the branches that reconciled
- Branches sheet, one row per branch, failed branches highlighted
"""
from __future__ import annotations

import io
from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from .models import BranchStatisticsSnapshot


# =============================================================================
# Money
# =============================================================================

def format_pkr(amount: Any, show_symbol: bool = True) -> str:
    """'PKR 1,500.00'; empty or non-numeric amounts format as zero"""
    value = _to_decimal(amount)
    text = f"{value.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP):,.2f}"
    return f"PKR {text}" if show_symbol else text

def format_price(amount: Any) -> str:
    return format_pkr(amount, show_symbol=False)

def parse_price(price: Any) -> Decimal:
    """Inverse of format_pkr: 'PKR 1,500.00' -> Decimal('1500.00'); junk -> 0"""
    if price is None:
        return Decimal("0")
    cleaned = str(price).upper().replace("PKR", "").replace(",", "").strip()
    return _to_decimal(cleaned)

def _to_decimal(amount: Any) -> Decimal:
    if amount is None or amount == "" or isinstance(amount, bool):
        return Decimal("0")
    try:
        value = Decimal(str(amount).strip())
    except InvalidOperation:
        return Decimal("0")
    return value if value.is_finite() else Decimal("0")


# =============================================================================
# Tables
# =============================================================================

COLUMNS = [
    "branch_id",
    "branch_name",
    "daily_sales",
    "running_orders",
    "complete_bills",
    "credit_sales_total",
    "cutoff",
    "cutoff_from_dayend",
    "unavailable_sources",
    "error",
]

def snapshots_frame(snapshots: Sequence[BranchStatisticsSnapshot]) -> pd.DataFrame:
    rows = []
    for s in snapshots:
        row = s.to_dict()
        row["unavailable_sources"] = ", ".join(row["unavailable_sources"])
        rows.append({c: row[c] for c in COLUMNS})
    return pd.DataFrame(rows, columns=COLUMNS)

def totals(snapshots: Sequence[BranchStatisticsSnapshot]) -> Dict[str, Any]:
    ok = [s for s in snapshots if not s.error]
    return {
        "branches": len(snapshots),
        "failed_branches": len(snapshots) - len(ok),
        "daily_sales": sum((s.daily_sales for s in ok), Decimal("0")),
        "credit_sales_total": sum((s.credit_sales_total for s in ok), Decimal("0")),
        "running_orders": sum(s.running_orders for s in ok),
        "complete_bills": sum(s.complete_bills for s in ok),
    }


# =============================================================================
# Style Constants
# =============================================================================

HEADER_FILL = PatternFill(start_color="366092", end_color="366092", fill_type="solid")
HEADER_FONT = Font(bold=True, color="FFFFFF")

RED_FILL = PatternFill(start_color="FFC7CE", end_color="FFC7CE", fill_type="solid")
YELLOW_FILL = PatternFill(start_color="FFEB9C", end_color="FFEB9C", fill_type="solid")

THIN_BORDER = Border(
    left=Side(style='thin'),
    right=Side(style='thin'),
    top=Side(style='thin'),
    bottom=Side(style='thin')
)

CURRENCY_FORMAT = '"PKR" #,##0.00'


# =============================================================================
# Main Output Function
# =============================================================================

def write_stats_xlsx(
    output: io.BytesIO | Path,
    snapshots: Sequence[BranchStatisticsSnapshot],
    meta: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Write branch statistics to Excel.

    Sheets:
    - Summary: totals across non-error branches
    - Branches: one row per branch (red = pipeline failed, yellow = a source was down)
    """
    meta = meta or {}
    wb = Workbook()
    wb.remove(wb.active)

    _create_summary_sheet(wb, snapshots, meta)
    _create_branches_sheet(wb, snapshots)

    if isinstance(output, io.BytesIO):
        wb.save(output)
        output.seek(0)
    else:
        wb.save(str(output))


def _create_summary_sheet(wb: Workbook, snapshots: Sequence[BranchStatisticsSnapshot], meta: Dict[str, Any]):
    ws = wb.create_sheet("Summary")

    ws["A1"] = "Branch Statistics Summary"
    ws["A1"].font = Font(bold=True, size=14)
    ws["A2"] = f"Generated: {meta.get('generated_at') or datetime.now().strftime('%Y-%m-%d %H:%M:%S')}"

    t = totals(snapshots)
    rows = [
        ("Branches:", t["branches"], None),
        ("Failed branches:", t["failed_branches"], None),
        ("Daily sales:", float(t["daily_sales"]), CURRENCY_FORMAT),
        ("Credit sales:", float(t["credit_sales_total"]), CURRENCY_FORMAT),
        ("Running orders:", t["running_orders"], None),
        ("Complete bills:", t["complete_bills"], None),
    ]
    row = 4
    for label, value, fmt in rows:
        ws[f"A{row}"] = label
        ws[f"B{row}"] = value
        if fmt:
            ws[f"B{row}"].number_format = fmt
        row += 1
    if t["failed_branches"]:
        ws["B5"].fill = RED_FILL

    _auto_width(ws)


def _create_branches_sheet(wb: Workbook, snapshots: Sequence[BranchStatisticsSnapshot]):
    ws = wb.create_sheet("Branches")

    headers = ["Branch ID", "Branch", "Daily Sales", "Running Orders", "Complete Bills",
               "Credit Sales", "Period Start", "Dayend", "Unavailable Sources", "Status"]
    for col, header in enumerate(headers, 1):
        cell = ws.cell(row=1, column=col, value=header)
        cell.fill = HEADER_FILL
        cell.font = HEADER_FONT
        cell.border = THIN_BORDER
        cell.alignment = Alignment(horizontal="center")

    frame = snapshots_frame(snapshots)
    for row, record in enumerate(frame.to_dict(orient="records"), 2):
        values = [
            record["branch_id"],
            record["branch_name"],
            record["daily_sales"],
            record["running_orders"],
            record["complete_bills"],
            record["credit_sales_total"],
            record["cutoff"] or "",
            "Yes" if record["cutoff_from_dayend"] else "No",
            record["unavailable_sources"],
            "ERROR" if record["error"] else "OK",
        ]
        for col, value in enumerate(values, 1):
            cell = ws.cell(row=row, column=col, value=value)
            cell.border = THIN_BORDER
        ws.cell(row=row, column=3).number_format = CURRENCY_FORMAT
        ws.cell(row=row, column=6).number_format = CURRENCY_FORMAT

        fill = RED_FILL if record["error"] else (YELLOW_FILL if record["unavailable_sources"] else None)
        if fill is not None:
            for col in range(1, len(headers) + 1):
                ws.cell(row=row, column=col).fill = fill

    _auto_width(ws)


def _auto_width(ws):
    """Auto-adjust column widths"""
    for column in ws.columns:
        max_length = 0
        column_letter = get_column_letter(column[0].column)

        for cell in column:
            if cell.value is not None:
                max_length = max(max_length, len(str(cell.value)))

        ws.column_dimensions[column_letter].width = min(max_length + 2, 50)


def export_filename(now: datetime) -> str:
    return f"branch_stats_{now.strftime('%Y-%m-%d_%H%M')}.xlsx"
