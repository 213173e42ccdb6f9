"""Tests for per-representative aggregation and commission."""
import math

import pytest

from salescomm.core.aggregator import aggregate, build_customer_index, classify_goods
from salescomm.models.schemas import (
    BetaMapping,
    Category,
    CategoryRule,
    CommissionProfile,
    ExpenseRecord,
    GoodsSalesRecord,
    ManualDeduction,
    PersonSalesRecord,
    RepSettings,
    SALES_CATEGORIES,
    Tier,
    TierKind,
)


PROXY_LABEL = "گروه بتا (مشتری John Doe)"


def _profile(profile_id="p1", **rules):
    """Profile with one single-tier percent rule per keyword (target, proxy, other, total)."""
    categories = {
        "target": Category.TARGET,
        "proxy": Category.PROXY,
        "other": Category.OTHER,
        "total": Category.TOTAL,
    }
    return CommissionProfile(
        id=profile_id,
        name=profile_id,
        rules=[
            CategoryRule(category=categories[key], tiers=[Tier(min=0, max=1_000_000, value=rate)])
            for key, rate in rules.items()
        ],
    )


def _by_rep(aggregates):
    return {a.rep_name: a for a in aggregates}


class TestClassifyGoods:
    def test_target_prefix_case_insensitive(self):
        assert classify_goods("TG-5", False) == Category.TARGET
        assert classify_goods("tg100", False) == Category.TARGET

    def test_target_beats_proxy(self):
        assert classify_goods("TG-5", True) == Category.TARGET

    def test_proxy_customer(self):
        assert classify_goods("X-1", True) == Category.PROXY

    def test_other(self):
        assert classify_goods("X-1", False) == Category.OTHER
        assert classify_goods("", False) == Category.OTHER
        assert classify_goods(None, False) == Category.OTHER

    def test_prefix_must_lead(self):
        assert classify_goods("X-TG", False) == Category.OTHER

    def test_custom_prefix(self):
        assert classify_goods("ab-1", False, target_prefix="AB") == Category.TARGET


class TestAggregate:
    def test_end_to_end_single_customer(self):
        result = aggregate(
            person_sales=[PersonSalesRecord(customer_name="A", subgroup_label="Rep1", net_sales=1000)],
            goods_sales=[GoodsSalesRecord(buyer_name="A", product_code="TG-5", net_sales=1000)],
            linked_expenses=[],
            manual_deductions=[],
            profiles=[CommissionProfile(
                id="p1",
                rules=[CategoryRule(
                    category=Category.TARGET,
                    tiers=[Tier(min=0, max=2000, value=10, kind=TierKind.PERCENT)],
                )],
            )],
            rep_settings=[RepSettings(rep_name="Rep1", profile_id="p1")],
        )
        assert len(result) == 1
        rep = result[0]
        assert rep.rep_name == "Rep1"
        assert rep.target_sales == 1000
        assert rep.commission_target == 100
        assert rep.total_commission == 100

    def test_goods_split_by_category(self):
        result = aggregate(
            person_sales=[
                PersonSalesRecord(customer_name="A", subgroup_label="Rep1", net_sales=1),
                PersonSalesRecord(customer_name="B", subgroup_label=PROXY_LABEL, net_sales=1, is_proxy_channel=True),
            ],
            goods_sales=[
                GoodsSalesRecord(buyer_name="A", product_code="TG-1", net_sales=100),
                GoodsSalesRecord(buyer_name="A", product_code="X-1", net_sales=30),
                GoodsSalesRecord(buyer_name=" B ", product_code="X-2", net_sales=70),
                GoodsSalesRecord(buyer_name="B", product_code="tg-2", net_sales=5),
            ],
            linked_expenses=[],
            manual_deductions=[],
            profiles=[],
            rep_settings=[],
            beta_mappings=[BetaMapping(proxy_group_key="John Doe", assigned_rep_name="Rep1")],
        )
        rep = _by_rep(result)["Rep1"]
        assert len(result) == 1
        assert rep.target_sales == 105
        assert rep.other_sales == 30
        assert rep.proxy_sales == 70

    def test_unmapped_proxy_groups_under_extracted_name(self):
        result = aggregate(
            [PersonSalesRecord(customer_name="B", subgroup_label=PROXY_LABEL, is_proxy_channel=True)],
            [GoodsSalesRecord(buyer_name="B", product_code="X", net_sales=40)],
            [], [], [], [],
        )
        assert _by_rep(result)["John Doe"].proxy_sales == 40

    def test_unknown_buyer_ignored(self):
        result = aggregate(
            [PersonSalesRecord(customer_name="A", subgroup_label="Rep1")],
            [GoodsSalesRecord(buyer_name="Nobody", product_code="TG-1", net_sales=500)],
            [], [], [], [],
        )
        rep = result[0]
        assert rep.target_sales == rep.proxy_sales == rep.other_sales == 0
        assert rep.total_net == 0

    def test_linked_expense_deducted_from_resolved_rep(self):
        result = aggregate(
            [PersonSalesRecord(customer_name="B", subgroup_label=PROXY_LABEL, is_proxy_channel=True)],
            [GoodsSalesRecord(buyer_name="B", product_code="X", net_sales=100)],
            [ExpenseRecord(executor_name="B", amount=30, assigned_category=Category.PROXY, linked_rep=PROXY_LABEL)],
            [], [], [],
            beta_mappings=[BetaMapping(proxy_group_key="John Doe", assigned_rep_name="Real Rep")],
        )
        rep = _by_rep(result)["Real Rep"]
        assert rep.proxy_deductions == 30
        assert rep.proxy_net == 70
        assert rep.total_net == 70

    def test_uncategorised_expense_not_deducted(self):
        result = aggregate(
            [PersonSalesRecord(customer_name="A", subgroup_label="Rep1")],
            [],
            [ExpenseRecord(executor_name="A", amount=30, linked_rep="Rep1")],
            [], [], [],
        )
        assert result[0].total_deductions == 0

    def test_manual_deduction(self):
        result = aggregate(
            [PersonSalesRecord(customer_name="A", subgroup_label="Rep1")],
            [GoodsSalesRecord(buyer_name="A", product_code="X", net_sales=100)],
            [],
            [
                ManualDeduction(id="d1", rep_name="Rep1", amount=25, category=Category.OTHER),
                ManualDeduction(id="d2", rep_name="Ghost", amount=999),
            ],
            [], [],
        )
        assert len(result) == 1
        assert result[0].other_deductions == 25
        assert result[0].other_net == 75

    def test_negative_net_preserved(self):
        result = aggregate(
            [PersonSalesRecord(customer_name="A", subgroup_label="Rep1")],
            [GoodsSalesRecord(buyer_name="A", product_code="TG-1", net_sales=100)],
            [],
            [ManualDeduction(rep_name="Rep1", amount=300, category=Category.TARGET)],
            [_profile(target=10)],
            [RepSettings(rep_name="Rep1", profile_id="p1")],
        )
        rep = result[0]
        assert rep.target_net == -200
        assert rep.total_net == -200
        assert rep.commission_target == 0

    def test_conservation(self):
        result = aggregate(
            [
                PersonSalesRecord(customer_name="A", subgroup_label="Rep1"),
                PersonSalesRecord(customer_name="B", subgroup_label="Rep2"),
            ],
            [
                GoodsSalesRecord(buyer_name="A", product_code="TG-1", net_sales=1234.5),
                GoodsSalesRecord(buyer_name="A", product_code="Z", net_sales=10),
                GoodsSalesRecord(buyer_name="B", product_code="Z", net_sales=77),
            ],
            [ExpenseRecord(executor_name="B", amount=7, assigned_category=Category.OTHER, linked_rep="Rep2")],
            [ManualDeduction(rep_name="Rep1", amount=4.5, category=Category.TARGET)],
            [], [],
        )
        for rep in result:
            expected = (
                (rep.target_sales - rep.target_deductions)
                + (rep.proxy_sales - rep.proxy_deductions)
                + (rep.other_sales - rep.other_deductions)
            )
            assert math.isclose(rep.total_net, expected)

    def test_non_finite_total_clamped(self):
        result = aggregate(
            [PersonSalesRecord(customer_name="A", subgroup_label="Rep1")],
            [GoodsSalesRecord(buyer_name="A", product_code="TG-1", net_sales=float("inf"))],
            [],
            [ManualDeduction(rep_name="Rep1", amount=float("inf"), category=Category.TARGET)],
            [], [],
        )
        assert result[0].total_net == 0

    def test_reps_in_order_of_first_appearance(self):
        result = aggregate(
            [
                PersonSalesRecord(customer_name="A", subgroup_label="Zed"),
                PersonSalesRecord(customer_name="B", subgroup_label="Amy"),
                PersonSalesRecord(customer_name="C", subgroup_label="Zed"),
            ],
            [], [], [], [], [],
        )
        assert [r.rep_name for r in result] == ["Zed", "Amy"]

    def test_duplicate_customer_last_row_owns_goods(self):
        result = aggregate(
            [
                PersonSalesRecord(customer_name="A", subgroup_label="Rep1"),
                PersonSalesRecord(customer_name="A", subgroup_label="Rep2"),
            ],
            [GoodsSalesRecord(buyer_name="A", product_code="X", net_sales=50)],
            [], [], [], [],
        )
        reps = _by_rep(result)
        assert set(reps) == {"Rep1", "Rep2"}
        assert reps["Rep1"].other_sales == 0
        assert reps["Rep2"].other_sales == 50

    def test_goods_credited_to_customer_index_owner(self):
        person_sales = [
            PersonSalesRecord(customer_name=" A ", subgroup_label="Rep1"),
            PersonSalesRecord(customer_name="B", subgroup_label=PROXY_LABEL, is_proxy_channel=True),
            PersonSalesRecord(customer_name="A", subgroup_label="Rep2"),
        ]
        mappings = [BetaMapping(proxy_group_key="John Doe", assigned_rep_name="Real Rep")]
        goods = [
            GoodsSalesRecord(buyer_name="A", product_code="X", net_sales=10),
            GoodsSalesRecord(buyer_name="B", product_code="X", net_sales=20),
        ]
        index = build_customer_index(person_sales, {"John Doe": "Real Rep"})
        reps = _by_rep(aggregate(person_sales, goods, [], [], [], [], mappings))

        assert index["A"].rep == "Rep2"
        assert reps[index["A"].rep].other_sales == 10
        assert reps[index["B"].rep].proxy_sales == 20

    @pytest.mark.parametrize("category", SALES_CATEGORIES)
    def test_deduction_lands_in_its_category(self, category):
        result = aggregate(
            [PersonSalesRecord(customer_name="A", subgroup_label="Rep1")],
            [],
            [],
            [ManualDeduction(id="d1", rep_name="Rep1", amount=40, category=category)],
            [], [],
        )
        deductions = {
            Category.TARGET: result[0].target_deductions,
            Category.PROXY: result[0].proxy_deductions,
            Category.OTHER: result[0].other_deductions,
        }
        assert deductions == {c: (40 if c == category else 0) for c in SALES_CATEGORIES}
        assert result[0].total_deductions == 40


class TestCommission:
    def _run(self, profiles, settings, goods):
        return aggregate(
            [
                PersonSalesRecord(customer_name="A", subgroup_label="Rep1"),
                PersonSalesRecord(customer_name="B", subgroup_label=PROXY_LABEL, is_proxy_channel=True),
            ],
            goods, [], [], profiles, settings,
            beta_mappings=[BetaMapping(proxy_group_key="John Doe", assigned_rep_name="Rep1")],
        )[0]

    GOODS = [
        GoodsSalesRecord(buyer_name="A", product_code="TG-1", net_sales=1000),
        GoodsSalesRecord(buyer_name="B", product_code="X", net_sales=2000),
        GoodsSalesRecord(buyer_name="A", product_code="X", net_sales=3000),
    ]

    def test_unbound_rep_earns_nothing_but_totals_reported(self):
        rep = self._run([_profile(target=10, proxy=10, other=10)], [], self.GOODS)
        assert rep.total_net == 6000
        assert rep.total_commission == 0
        assert rep.commission_target == rep.commission_proxy == rep.commission_other == 0

    def test_each_category_priced_separately(self):
        rep = self._run(
            [_profile(target=10, proxy=5, other=1)],
            [RepSettings(rep_name="Rep1", profile_id="p1")],
            self.GOODS,
        )
        assert rep.commission_target == 100
        assert rep.commission_proxy == 100
        assert rep.commission_other == 30
        assert rep.total_commission == 230

    def test_missing_category_rule_contributes_zero(self):
        rep = self._run(
            [_profile(target=10)],
            [RepSettings(rep_name="Rep1", profile_id="p1")],
            self.GOODS,
        )
        assert rep.commission_target == 100
        assert rep.commission_proxy == 0
        assert rep.total_commission == 100

    def test_total_rule_reported_separately(self):
        rep = self._run(
            [_profile(target=10, total=1)],
            [RepSettings(rep_name="Rep1", profile_id="p1")],
            self.GOODS,
        )
        assert rep.commission_total == 60
        assert rep.total_commission == 100

    def test_first_setting_and_profile_win(self):
        rep = self._run(
            [_profile("p1", target=10), _profile("p1", target=50), _profile("p2", target=20)],
            [RepSettings(rep_name="Rep1", profile_id="p1"), RepSettings(rep_name="Rep1", profile_id="p2")],
            self.GOODS,
        )
        assert rep.commission_target == 100

    def test_fixed_tier_payout(self):
        profile = CommissionProfile(
            id="transport",
            rules=[CategoryRule(
                category=Category.OTHER,
                tiers=[Tier(min=1000, max=5000, value=250, kind=TierKind.FIXED)],
            )],
        )
        rep = self._run([profile], [RepSettings(rep_name="Rep1", profile_id="transport")], self.GOODS)
        assert rep.commission_other == pytest.approx(250)
