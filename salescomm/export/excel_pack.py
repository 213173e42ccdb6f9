# export/excel_pack.py
"""
Period commission report as an Excel workbook.

Sheets:
  1. Summary: one row per representative plus a totals row
  2. Customer Details: per representative, per customer sales and deductions
  3. Managers: team totals and manager commission
  4. Team Breakdown: each manager's subordinates with their net figures
"""
import logging
from collections import defaultdict
from io import BytesIO
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd

from ..core.aggregator import TARGET_PREFIX, build_customer_index, classify_goods
from ..core.pipeline import compute_period
from ..core.resolver import build_mapping_index, resolve_linked_label
from ..models.schemas import Category, CommissionReport, PeriodSnapshot

logger = logging.getLogger(__name__)

SHEET_COLUMNS = {
    "Summary": [
        "Rep Name", "Target Net", "Target Commission", "Beta Net",
        "Beta Commission", "Other Net", "Other Commission", "Volume Bonus",
        "Total Commission", "Total Net",
    ],
    "Customer Details": [
        "Rep Name", "Customer", "Target Sales", "Target Deductions",
        "Beta Sales", "Beta Deductions", "Other Sales", "Other Deductions",
        "Net Total",
    ],
    "Managers": [
        "Manager", "Team Target", "Team Beta", "Team Other",
        "Team Deductions", "Commission",
    ],
    "Team Breakdown": [
        "Manager", "Rep Name", "Target Net", "Beta Net", "Other Net",
        "Total Net",
    ],
}

TOTALS_LABEL = "Total"

_DETAIL_SALES = {
    Category.TARGET: "Target Sales",
    Category.PROXY: "Beta Sales",
    Category.OTHER: "Other Sales",
}
_DETAIL_DEDUCTIONS = {
    Category.TARGET: "Target Deductions",
    Category.PROXY: "Beta Deductions",
    Category.OTHER: "Other Deductions",
}


def build_report_sheets(
    snapshot: PeriodSnapshot,
    report: Optional[CommissionReport] = None,
    target_prefix: str = TARGET_PREFIX,
) -> Dict[str, pd.DataFrame]:
    """
    Build the report DataFrames for one period.

    Args:
        snapshot: The period inputs
        report: Already computed figures; recomputed from ``snapshot`` if omitted
        target_prefix: Product code prefix marking Target goods

    Returns:
        Dict mapping sheet names to DataFrames
    """
    if report is None:
        report = compute_period(snapshot, target_prefix=target_prefix)

    return {
        "Summary": _build_summary(report),
        "Customer Details": _build_customer_details(snapshot, report, target_prefix),
        "Managers": _build_managers(report),
        "Team Breakdown": _build_team_breakdown(report),
    }


def _build_summary(report: CommissionReport) -> pd.DataFrame:
    rows = []
    for rep in report.rep_aggregates:
        rows.append({
            "Rep Name": rep.rep_name,
            "Target Net": rep.target_net,
            "Target Commission": rep.commission_target,
            "Beta Net": rep.proxy_net,
            "Beta Commission": rep.commission_proxy,
            "Other Net": rep.other_net,
            "Other Commission": rep.commission_other,
            "Volume Bonus": rep.commission_total,
            "Total Commission": rep.total_commission,
            "Total Net": rep.total_net,
        })
    totals: Dict[str, object] = {"Rep Name": TOTALS_LABEL}
    for column in SHEET_COLUMNS["Summary"][1:]:
        totals[column] = sum(row[column] for row in rows)
    rows.append(totals)
    return pd.DataFrame(rows, columns=SHEET_COLUMNS["Summary"])


def _build_customer_details(
    snapshot: PeriodSnapshot,
    report: CommissionReport,
    target_prefix: str,
) -> pd.DataFrame:
    mapping_index = build_mapping_index(snapshot.beta_mappings)
    customers = build_customer_index(snapshot.person_sales, mapping_index)

    # rep -> customer -> column -> amount
    figures: Dict[str, Dict[str, Dict[str, float]]] = defaultdict(
        lambda: defaultdict(lambda: defaultdict(float))
    )

    for good in snapshot.goods_sales:
        buyer = (good.buyer_name or "").strip()
        info = customers.get(buyer)
        if info is None or not info.rep:
            continue
        category = classify_goods(good.product_code, info.is_proxy_channel, target_prefix)
        figures[info.rep][buyer][_DETAIL_SALES[category]] += good.net_sales or 0.0

    for expense in report.linked_expenses:
        if not expense.linked_rep or expense.assigned_category not in _DETAIL_DEDUCTIONS:
            continue
        rep = resolve_linked_label(expense.linked_rep, mapping_index)
        column = _DETAIL_DEDUCTIONS[expense.assigned_category]
        figures[rep][expense.executor_name.strip()][column] += expense.amount or 0.0

    # Customers without goods lines show their person-sales net instead
    owners = {row.customer_name.strip(): row for row in snapshot.person_sales if row.customer_name}
    for customer, row in owners.items():
        info = customers[customer]
        if not info.rep or not row.net_sales:
            continue
        values = figures[info.rep][customer]
        if sum(values[c] for c in _DETAIL_SALES.values()) == 0:
            category = Category.PROXY if info.is_proxy_channel else Category.OTHER
            values[_DETAIL_SALES[category]] += row.net_sales

    rows: List[Dict[str, object]] = []
    for rep_name in sorted(figures):
        for customer, values in figures[rep_name].items():
            if not any(values.values()):
                continue
            sales = sum(values[c] for c in _DETAIL_SALES.values())
            deductions = sum(values[c] for c in _DETAIL_DEDUCTIONS.values())
            row: Dict[str, object] = {"Rep Name": rep_name, "Customer": customer}
            for column in SHEET_COLUMNS["Customer Details"][2:-1]:
                row[column] = values[column]
            row["Net Total"] = sales - deductions
            rows.append(row)
    return pd.DataFrame(rows, columns=SHEET_COLUMNS["Customer Details"])


def _build_managers(report: CommissionReport) -> pd.DataFrame:
    rows = []
    for mgr in report.manager_aggregates:
        rows.append({
            "Manager": mgr.manager_name,
            "Team Target": mgr.team_total_target,
            "Team Beta": mgr.team_total_proxy,
            "Team Other": mgr.team_total_other,
            "Team Deductions": mgr.team_total_deductions,
            "Commission": mgr.commission,
        })
    return pd.DataFrame(rows, columns=SHEET_COLUMNS["Managers"])


def _build_team_breakdown(report: CommissionReport) -> pd.DataFrame:
    rows = []
    for mgr in report.manager_aggregates:
        for sub in mgr.subordinates_details:
            rows.append({
                "Manager": mgr.manager_name,
                "Rep Name": sub.rep_name,
                "Target Net": sub.target_net,
                "Beta Net": sub.proxy_net,
                "Other Net": sub.other_net,
                "Total Net": sub.total_net,
            })
    return pd.DataFrame(rows, columns=SHEET_COLUMNS["Team Breakdown"])


def write_report_workbook(
    sheets: Dict[str, pd.DataFrame],
    output_path: Optional[Path] = None,
) -> bytes:
    """
    Write the report DataFrames to an Excel workbook.

    Returns:
        bytes of the Excel workbook
    """
    buffer = BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        for sheet_name, df in sheets.items():
            df.to_excel(writer, sheet_name=sheet_name, index=False)

            # Thousands separators on amounts, wider name columns
            ws = writer.sheets[sheet_name]
            for col_idx, column in enumerate(df.columns, start=1):
                letter = ws.cell(row=1, column=col_idx).column_letter
                if pd.api.types.is_numeric_dtype(df[column]):
                    ws.column_dimensions[letter].width = 18
                    for row in ws.iter_rows(min_row=2, min_col=col_idx, max_col=col_idx):
                        for cell in row:
                            cell.number_format = "#,##0"
                else:
                    ws.column_dimensions[letter].width = 25

    workbook_bytes = buffer.getvalue()

    if output_path:
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_bytes(workbook_bytes)
        logger.info("Commission report written to %s", output_path)

    return workbook_bytes


def export_period_report(
    snapshot: PeriodSnapshot,
    output_path: Optional[Path] = None,
    target_prefix: str = TARGET_PREFIX,
) -> bytes:
    """Compute a period and return (and optionally write) its report workbook."""
    return write_report_workbook(
        build_report_sheets(snapshot, target_prefix=target_prefix),
        output_path=output_path,
    )
