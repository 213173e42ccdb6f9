"""
Per-representative sales aggregation.

Combines the person-sales ledger (who owns each customer), the goods ledger
(what each customer bought), linked expenses and manual deductions into one
RepAggregate per representative, then prices each category's net figure
against the representative's commission profile.

Steps:
  1. Customer index: trimmed customer name -> (resolved rep, proxy flag)
  2. Goods: TG-prefixed codes -> Target, proxy customers -> Beta, else Other
  3. Linked expenses: raw label re-resolved, amount added to deductions
  4. Manual deductions: added to the named rep's deductions
  5. Nets and commission
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..models.schemas import (
    BetaMapping,
    Category,
    CommissionProfile,
    ExpenseRecord,
    GoodsSalesRecord,
    ManualDeduction,
    PersonSalesRecord,
    RepAggregate,
    RepSettings,
    SALES_CATEGORIES,
)
from .resolver import build_mapping_index, resolve_linked_label, resolve_rep_name
from .tiers import evaluate_tier

logger = logging.getLogger(__name__)

# Product codes starting with this prefix (any case) are Target goods
TARGET_PREFIX = "TG"

# RepAggregate field stem of each sales category
_FIELD_STEM = dict(zip(SALES_CATEGORIES, ("target", "proxy", "other")))
_SALES_FIELD = {category: f"{stem}_sales" for category, stem in _FIELD_STEM.items()}
_DEDUCTION_FIELD = {category: f"{stem}_deductions" for category, stem in _FIELD_STEM.items()}


@dataclass(frozen=True)
class CustomerInfo:
    rep: str
    is_proxy_channel: bool


def build_customer_index(
    person_sales: Sequence[PersonSalesRecord],
    mapping_index: Mapping[str, str],
) -> Dict[str, CustomerInfo]:
    """Index customers by trimmed name; a repeated name keeps its last row."""
    index: Dict[str, CustomerInfo] = {}
    for row in person_sales:
        if not row.customer_name:
            continue
        rep = resolve_rep_name(row.subgroup_label, row.is_proxy_channel, mapping_index)
        index[row.customer_name.strip()] = CustomerInfo(rep, row.is_proxy_channel)
    return index


def _first_by(items, key) -> Dict[str, Any]:
    index: Dict[str, Any] = {}
    for item in items:
        index.setdefault(key(item), item)
    return index


def classify_goods(
    product_code: Optional[str],
    is_proxy_channel: bool,
    target_prefix: str = TARGET_PREFIX,
) -> Category:
    """Return the single category a goods line counts toward."""
    if product_code and product_code.upper().startswith(target_prefix.upper()):
        return Category.TARGET
    if is_proxy_channel:
        return Category.PROXY
    return Category.OTHER


def _add(aggregate: RepAggregate, field_name: str, amount: float) -> None:
    setattr(aggregate, field_name, getattr(aggregate, field_name) + amount)


def _apply_commission(
    aggregate: RepAggregate,
    profile: Optional[CommissionProfile],
) -> None:
    if profile is None:
        return

    def _priced(category: Category, amount: float) -> float:
        rule = profile.rule_for(category)
        return evaluate_tier(amount, rule.tiers) if rule else 0.0

    for category, stem in _FIELD_STEM.items():
        setattr(aggregate, f"commission_{stem}", _priced(category, getattr(aggregate, f"{stem}_net")))
    aggregate.commission_total = _priced(Category.TOTAL, aggregate.total_net)
    aggregate.total_commission = (
        aggregate.commission_target
        + aggregate.commission_proxy
        + aggregate.commission_other
    )


def aggregate(
    person_sales: Sequence[PersonSalesRecord],
    goods_sales: Sequence[GoodsSalesRecord],
    linked_expenses: Sequence[ExpenseRecord],
    manual_deductions: Sequence[ManualDeduction],
    profiles: Sequence[CommissionProfile],
    rep_settings: Sequence[RepSettings],
    beta_mappings: Sequence[BetaMapping] = (),
    target_prefix: str = TARGET_PREFIX,
) -> List[RepAggregate]:
    """Build one RepAggregate per representative found in ``person_sales``.

    Returned in order of each representative's first appearance.
    """
    mapping_index = build_mapping_index(beta_mappings)
    customers = build_customer_index(person_sales, mapping_index)

    # Reps of overwritten customer rows still get a (possibly empty) aggregate
    reps: Dict[str, RepAggregate] = {}
    for row in person_sales:
        if not row.customer_name:
            continue
        rep = resolve_rep_name(row.subgroup_label, row.is_proxy_channel, mapping_index)
        if rep and rep not in reps:
            reps[rep] = RepAggregate(rep_name=rep)

    unmatched_goods = 0
    for good in goods_sales:
        info = customers.get((good.buyer_name or "").strip())
        stats = reps.get(info.rep) if info else None
        if stats is None:
            unmatched_goods += 1
            continue
        category = classify_goods(good.product_code, info.is_proxy_channel, target_prefix)
        _add(stats, _SALES_FIELD[category], good.net_sales or 0.0)

    for expense in linked_expenses:
        if not expense.linked_rep or not expense.assigned_category:
            continue
        field_name = _DEDUCTION_FIELD.get(expense.assigned_category)
        stats = reps.get(resolve_linked_label(expense.linked_rep, mapping_index))
        if stats is not None and field_name:
            _add(stats, field_name, expense.amount or 0.0)

    for deduction in manual_deductions:
        field_name = _DEDUCTION_FIELD.get(deduction.category)
        stats = reps.get(deduction.rep_name)
        if stats is not None and field_name:
            _add(stats, field_name, deduction.amount or 0.0)

    settings = _first_by(rep_settings, lambda s: s.rep_name)
    profiles_by_id = _first_by(profiles, lambda p: p.id)

    for stats in reps.values():
        total = stats.target_net + stats.proxy_net + stats.other_net
        stats.total_net = total if math.isfinite(total) else 0.0
        setting = settings.get(stats.rep_name)
        _apply_commission(stats, profiles_by_id.get(setting.profile_id) if setting else None)

    if unmatched_goods:
        logger.debug(f"Ignored {unmatched_goods} goods rows with no matching customer")
    logger.info(f"Aggregated {len(reps)} representatives from {len(person_sales)} customers")
    return list(reps.values())
