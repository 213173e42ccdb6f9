# models/schemas.py - Pydantic models for ledgers, rule sets and computed aggregates
"""
Record types flowing through the commission engine.

Input ledgers (produced by ingestion, frozen once built):
  PersonSalesRecord, GoodsSalesRecord, ExpenseRecord, ManualDeduction

Administrator configuration:
  BetaMapping, CommissionProfile / CategoryRule / Tier, RepSettings, Manager

Derived per computation pass:
  RepAggregate, ManagerAggregate, SubordinateDetail, CommissionReport

Persisted per period:
  PeriodSnapshot, SavedReportMetadata
"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field


class Category(str, Enum):
    """Sales partition a commission rule applies to.

    Values match the strings stored in saved snapshots.
    """
    TARGET = "Target (TG)"
    PROXY = "Beta"
    OTHER = "Other"
    TOTAL = "Total (All Categories)"


# Categories that carry gross sales and deductions of their own
SALES_CATEGORIES = (Category.TARGET, Category.PROXY, Category.OTHER)


class TierKind(str, Enum):
    PERCENT = "percent"
    FIXED = "fixed"


# ---------- Ledgers ----------

class PersonSalesRecord(BaseModel):
    """One row per customer per period from the person-sales ledger."""
    model_config = ConfigDict(frozen=True)

    customer_name: str
    subgroup_label: str = ""
    net_sales: float = 0.0
    returns: float = 0.0
    is_proxy_channel: bool = False


class GoodsSalesRecord(BaseModel):
    """Goods-sales row; ``net_sales`` is already net of returns and return tax."""
    model_config = ConfigDict(frozen=True)

    buyer_name: str
    product_code: str = ""
    net_sales: float = 0.0
    returns: float = 0.0


class ExpenseRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    executor_name: str
    amount: float = 0.0
    description: str = ""
    assigned_category: Optional[Category] = None
    linked_rep: Optional[str] = None


class ManualDeduction(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = ""
    rep_name: str
    amount: float = 0.0
    category: Category = Category.OTHER
    description: str = ""


# ---------- Configuration ----------

class BetaMapping(BaseModel):
    """Maps an extracted proxy-channel name to the representative credited."""
    proxy_group_key: str
    assigned_rep_name: str


class Tier(BaseModel):
    """Amount range ``[min, max]`` (inclusive) with a percent or fixed payout."""
    min: float = 0.0
    max: float = 0.0
    value: float = 0.0
    kind: TierKind = TierKind.PERCENT


class CategoryRule(BaseModel):
    category: Category
    tiers: List[Tier] = []


class CommissionProfile(BaseModel):
    id: str
    name: str = ""
    rules: List[CategoryRule] = []

    def rule_for(self, category: Category) -> Optional[CategoryRule]:
        """Return the first rule authored for ``category``, if any."""
        for rule in self.rules:
            if rule.category == category:
                return rule
        return None


class RepSettings(BaseModel):
    rep_name: str
    profile_id: str


class Manager(BaseModel):
    id: str
    name: str
    subordinates: List[str] = []
    profile_id: str = ""


class RuleSet(BaseModel):
    """Administrator-authored configuration read before each computation."""
    profiles: List[CommissionProfile] = []
    managers: List[Manager] = []
    rep_settings: List[RepSettings] = []
    beta_mappings: List[BetaMapping] = []


# ---------- Derived aggregates ----------

class RepAggregate(BaseModel):
    """Per-representative totals for one computation pass."""
    rep_name: str
    target_sales: float = 0.0
    proxy_sales: float = 0.0
    other_sales: float = 0.0
    target_deductions: float = 0.0
    proxy_deductions: float = 0.0
    other_deductions: float = 0.0
    total_net: float = 0.0

    commission_target: float = 0.0
    commission_proxy: float = 0.0
    commission_other: float = 0.0
    # Volume bonus on total_net; reported separately from total_commission
    commission_total: float = 0.0
    total_commission: float = 0.0

    @computed_field
    @property
    def target_net(self) -> float:
        return self.target_sales - self.target_deductions

    @computed_field
    @property
    def proxy_net(self) -> float:
        return self.proxy_sales - self.proxy_deductions

    @computed_field
    @property
    def other_net(self) -> float:
        return self.other_sales - self.other_deductions

    @computed_field
    @property
    def total_deductions(self) -> float:
        return self.target_deductions + self.proxy_deductions + self.other_deductions


class SubordinateDetail(BaseModel):
    rep_name: str
    target_net: float = 0.0
    proxy_net: float = 0.0
    other_net: float = 0.0
    total_net: float = 0.0


class ManagerAggregate(BaseModel):
    manager_name: str
    team_total_target: float = 0.0
    team_total_proxy: float = 0.0
    team_total_other: float = 0.0
    team_total_deductions: float = 0.0
    commission: float = 0.0
    subordinates_details: List[SubordinateDetail] = []


class CommissionReport(BaseModel):
    """Everything a dashboard, print view or export needs for one period."""
    rep_aggregates: List[RepAggregate] = []
    manager_aggregates: List[ManagerAggregate] = []
    linked_expenses: List[ExpenseRecord] = []


# ---------- Period snapshots ----------

# camelCase keys written by the legacy web client, per record type
_LEGACY_KEYS: Dict[str, Dict[str, str]] = {
    "person_sales": {
        "customerName": "customer_name",
        "subgroup": "subgroup_label",
        "subgroupLabel": "subgroup_label",
        "netSales": "net_sales",
        "isBeta": "is_proxy_channel",
        "isProxyChannel": "is_proxy_channel",
    },
    "goods_sales": {
        "buyerName": "buyer_name",
        "productCode": "product_code",
        "netSales": "net_sales",
    },
    "expenses": {
        "executorName": "executor_name",
        "linkedRep": "linked_rep",
        "assignedCategory": "assigned_category",
    },
    "manual_deductions": {
        "repName": "rep_name",
    },
    "beta_mappings": {
        "betaSubgroup": "proxy_group_key",
        "proxyGroupKey": "proxy_group_key",
        "assignedRepName": "assigned_rep_name",
    },
    "profiles": {},
    "managers": {
        "profileId": "profile_id",
    },
    "rep_settings": {
        "name": "rep_name",
        "repName": "rep_name",
        "profileId": "profile_id",
    },
}

_LEGACY_SECTIONS = {
    "personSales": "person_sales",
    "goodsSales": "goods_sales",
    "manualDeductions": "manual_deductions",
    "betaMappings": "beta_mappings",
    "repSettings": "rep_settings",
}


def _rename_keys(row: Dict[str, Any], mapping: Dict[str, str]) -> Dict[str, Any]:
    return {mapping.get(key, key): value for key, value in row.items()}


def _legacy_profile(profile: Dict[str, Any]) -> Dict[str, Any]:
    rules = []
    for rule in profile.get("rules") or []:
        tiers = [_rename_keys(t, {"type": "kind"}) for t in rule.get("tiers") or []]
        rules.append({**rule, "tiers": tiers})
    return {**profile, "rules": rules}


class PeriodSnapshot(BaseModel):
    """All inputs of one period, configuration included, for exact replay."""
    person_sales: List[PersonSalesRecord] = []
    goods_sales: List[GoodsSalesRecord] = []
    expenses: List[ExpenseRecord] = []
    manual_deductions: List[ManualDeduction] = []
    beta_mappings: List[BetaMapping] = []
    profiles: List[CommissionProfile] = []
    managers: List[Manager] = []
    rep_settings: List[RepSettings] = []

    @property
    def rules(self) -> RuleSet:
        return RuleSet(
            profiles=self.profiles,
            managers=self.managers,
            rep_settings=self.rep_settings,
            beta_mappings=self.beta_mappings,
        )

    def with_rules(self, rules: RuleSet) -> "PeriodSnapshot":
        """Return a copy whose configuration is replaced by ``rules``."""
        return self.model_copy(update={
            "profiles": rules.profiles,
            "managers": rules.managers,
            "rep_settings": rules.rep_settings,
            "beta_mappings": rules.beta_mappings,
        })

    @classmethod
    def from_legacy(cls, data: Dict[str, Any]) -> "PeriodSnapshot":
        """Build a snapshot from either snake_case or legacy camelCase JSON."""
        normalized: Dict[str, Any] = {}
        for section, rows in data.items():
            section = _LEGACY_SECTIONS.get(section, section)
            if section not in _LEGACY_KEYS:
                continue
            mapping = _LEGACY_KEYS[section]
            renamed = [_rename_keys(row, mapping) for row in rows or []]
            if section == "profiles":
                renamed = [_legacy_profile(p) for p in renamed]
            normalized[section] = renamed
        return cls.model_validate(normalized)


class SavedReportMetadata(BaseModel):
    year: int
    month: int = Field(..., ge=1, le=12)
    created_at: datetime
