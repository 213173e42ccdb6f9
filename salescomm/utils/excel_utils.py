"""
Ledger ingestion from accounting spreadsheet exports.

Each export is read into a DataFrame (first sheet by default) and mapped to
typed records. Column headers are the Persian headers of the accounting
package; numeric cells may carry thousands separators or accounting-style
negatives such as ``(1,200)``.
"""

import os
import math
import logging
from io import BytesIO
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

import pandas as pd

from ..models.schemas import ExpenseRecord, GoodsSalesRecord, PersonSalesRecord

logger = logging.getLogger(__name__)

PERSON_SALES_HEADERS = {
    "NAME": "نام",
    "SUBGROUP": "نام زیرگروه",
    "NET_SALES": "فروش خالص با احتساب عوارض و مالیات",
    "RETURNS": "برگشت از فروش خالص",
    "RETURNS_TAX": "عوارض و مالیات برگشت از فروش",
    "IS_BETA": "is beta",
}

GOODS_SALES_HEADERS = {
    "BUYER": "نام خریدار",
    "CODE": "کد کالا",
    "NAME": "نام کالا",
    "NET_SALES": "فروش خالص با احتساب عوارض و مالیات",
    "RETURNS": "برگشت از فروش خالص",
    "RETURNS_TAX": "عوارض و مالیات برگشت از فروش",
}

# Expense exports come from several report layouts; per row, the first non-empty header wins
EXPENSE_NAME_KEYS = ["نام مجری", "نام طرف حساب", "نام خریدار", "نام", "طرف حساب", "نام تفصیلی"]
EXPENSE_AMOUNT_KEYS = ["مبلغ", "جمع کسورات", "بدهکار", "هزینه", "مبلغ هزینه", "مانده"]
EXPENSE_DESC_KEYS = ["شرح", "توضیحات", "بابت", "شرح سند"]

DEFAULT_SUBGROUP = "Unassigned"
DEFAULT_EXECUTOR = "Unknown"
DEFAULT_EXPENSE_DESCRIPTION = "هزینه ثبت شده"

# Subgroup labels containing either marker belong to the proxy channel
PROXY_MARKERS = ("بتا", "beta")
TRUE_VALUES = {"true", "yes", "bale", "بله", "1"}

Source = Union[str, os.PathLike, pd.DataFrame]


def load_excel_data(file_path, sheet_name=0):
    """
    Load data from an Excel or CSV file.

    Args:
        file_path (str): Path to the file
        sheet_name: Sheet to load (defaults to the first sheet)

    Returns:
        DataFrame with the sheet contents
    """
    logger.info(f"Loading data from file: {file_path}")

    if not os.path.exists(file_path):
        logger.error(f"File not found: {file_path}")
        raise FileNotFoundError(f"File not found: {file_path}")

    if str(file_path).lower().endswith(".csv"):
        return pd.read_csv(file_path)
    return pd.read_excel(file_path, sheet_name=sheet_name)


def load_uploaded_data(content: bytes, filename: str) -> pd.DataFrame:
    """Read an uploaded CSV or Excel file held in memory (first sheet)."""
    logger.info(f"Reading uploaded file: {filename} ({len(content)} bytes)")
    if filename.lower().endswith(".csv"):
        return pd.read_csv(BytesIO(content))
    return pd.read_excel(BytesIO(content))


def _frame(source: Source) -> pd.DataFrame:
    if isinstance(source, pd.DataFrame):
        return source
    return load_excel_data(source)


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def parse_number(value: Any) -> float:
    """Parse a spreadsheet cell as a number; anything unparsable is 0."""
    if _is_missing(value) or isinstance(value, bool):
        return 0.0

    if isinstance(value, (int, float)):
        number = float(value)
        return number if math.isfinite(number) else 0.0

    text = str(value).replace(",", "").strip()
    # Accounting negatives: (100) -> -100
    if text.startswith("(") and text.endswith(")"):
        text = "-" + text[1:-1]
    try:
        number = float(text)
    except ValueError:
        return 0.0
    return number if math.isfinite(number) else 0.0


def parse_boolean(value: Any) -> bool:
    if _is_missing(value) or not value:
        return False
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in TRUE_VALUES


def _text(value: Any, default: str = "") -> str:
    if _is_missing(value):
        return default
    text = str(value).strip()
    return text or default


def find_column(columns: Iterable[Any], candidates: Sequence[str]) -> Optional[str]:
    """Return the first candidate header present in ``columns``."""
    present = {str(c).strip(): c for c in columns}
    for candidate in candidates:
        if candidate in present:
            return present[candidate]
    return None


def require_columns(df: pd.DataFrame, required: Sequence[str], ledger: str) -> None:
    """Raise ValueError if any required header is missing from ``df``."""
    columns = {str(c).strip() for c in df.columns}
    missing = [c for c in required if c not in columns]
    if missing:
        logger.error(f"{ledger} sheet is missing columns: {missing}")
        raise ValueError(f"{ledger} sheet is missing required columns: {', '.join(missing)}")


def _strip_headers(df: pd.DataFrame) -> pd.DataFrame:
    return df.rename(columns=lambda c: str(c).strip())


def is_proxy_label(subgroup: str) -> bool:
    lowered = subgroup.lower()
    return any(marker in lowered for marker in PROXY_MARKERS)


def parse_person_sales(source: Source) -> List[PersonSalesRecord]:
    """Map the person-sales export to records.

    Net sales are reduced by returns and the tax on returns. Rows with no
    customer name or zero net sales are dropped.
    """
    h = PERSON_SALES_HEADERS
    df = _strip_headers(_frame(source))
    require_columns(df, [h["NAME"], h["NET_SALES"]], "Person sales")

    records = []
    for row in df.to_dict(orient="records"):
        gross = parse_number(row.get(h["NET_SALES"]))
        returns_net = parse_number(row.get(h["RETURNS"]))
        returns_tax = parse_number(row.get(h["RETURNS_TAX"]))
        subgroup = _text(row.get(h["SUBGROUP"]), DEFAULT_SUBGROUP)

        is_proxy = parse_boolean(row.get(h["IS_BETA"])) or is_proxy_label(subgroup)

        record = PersonSalesRecord(
            customer_name=_text(row.get(h["NAME"])),
            subgroup_label=subgroup,
            net_sales=gross - returns_net - returns_tax,
            returns=returns_net + returns_tax,
            is_proxy_channel=is_proxy,
        )
        if record.customer_name and record.net_sales != 0:
            records.append(record)

    logger.info(f"Parsed {len(records)} person-sales rows out of {len(df)}")
    return records


def parse_goods_sales(source: Source) -> List[GoodsSalesRecord]:
    """Map the goods-sales export to records with returns already netted out."""
    h = GOODS_SALES_HEADERS
    df = _strip_headers(_frame(source))
    require_columns(df, [h["BUYER"], h["NET_SALES"]], "Goods sales")

    records = []
    for row in df.to_dict(orient="records"):
        sales_with_tax = parse_number(row.get(h["NET_SALES"]))
        returns_net = parse_number(row.get(h["RETURNS"]))
        returns_tax = parse_number(row.get(h["RETURNS_TAX"]))

        record = GoodsSalesRecord(
            buyer_name=_text(row.get(h["BUYER"])),
            product_code=_text(row.get(h["CODE"])),
            net_sales=sales_with_tax - returns_net - returns_tax,
            returns=returns_net + returns_tax,
        )
        if record.buyer_name and (record.net_sales != 0 or record.returns != 0):
            records.append(record)

    logger.info(f"Parsed {len(records)} goods-sales rows out of {len(df)}")
    return records


def find_value(row: Dict[str, Any], candidates: Sequence[str]) -> Any:
    """Return the row's first non-empty cell among the ``candidates`` headers."""
    for candidate in candidates:
        value = row.get(candidate)
        if not _is_missing(value):
            return value
    return None


def parse_expenses(source: Source) -> List[ExpenseRecord]:
    """Map an expense export to records; only positive amounts are kept.

    Name, amount and description are looked up per row, so a row with an
    empty ``مبلغ`` cell still takes its amount from the next amount header.
    """
    df = _strip_headers(_frame(source))
    if find_column(df.columns, EXPENSE_AMOUNT_KEYS) is None:
        logger.error(f"Expense sheet has no amount column; tried {EXPENSE_AMOUNT_KEYS}")
        raise ValueError("Expense sheet is missing an amount column")

    records = []
    for row in df.to_dict(orient="records"):
        record = ExpenseRecord(
            executor_name=_text(find_value(row, EXPENSE_NAME_KEYS), DEFAULT_EXECUTOR),
            amount=parse_number(find_value(row, EXPENSE_AMOUNT_KEYS)),
            description=_text(find_value(row, EXPENSE_DESC_KEYS), DEFAULT_EXPENSE_DESCRIPTION),
        )
        if record.amount > 0:
            records.append(record)

    logger.info(f"Parsed {len(records)} expense rows out of {len(df)}")
    return records
