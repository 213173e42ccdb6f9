"""Attach expense records to the subgroup label of the customer who incurred them."""

import logging
from typing import Dict, List, Sequence

from ..models.schemas import ExpenseRecord, PersonSalesRecord

logger = logging.getLogger(__name__)


def build_label_index(person_sales: Sequence[PersonSalesRecord]) -> Dict[str, str]:
    """Map trimmed customer name to raw subgroup label.

    A customer listed twice keeps the label of its last row.
    """
    index: Dict[str, str] = {}
    for row in person_sales:
        if row.customer_name and row.subgroup_label:
            index[row.customer_name.strip()] = row.subgroup_label
    return index


def link_expenses(
    expenses: Sequence[ExpenseRecord],
    person_sales: Sequence[PersonSalesRecord],
) -> List[ExpenseRecord]:
    """Return copies of the linkable expenses with ``linked_rep`` set.

    ``linked_rep`` holds the raw label; resolution to a representative happens
    at aggregation time. Expenses whose executor is not a known customer are
    dropped.
    """
    index = build_label_index(person_sales)
    linked: List[ExpenseRecord] = []
    for expense in expenses:
        label = index.get((expense.executor_name or "").strip())
        if label:
            linked.append(expense.model_copy(update={"linked_rep": label}))

    dropped = len(expenses) - len(linked)
    if dropped:
        logger.debug(f"Dropped {dropped} of {len(expenses)} expenses with no matching customer")
    return linked
