"""Manager-level rollup of subordinate representatives' net figures."""

import logging
from typing import Dict, List, Sequence

from ..models.schemas import (
    Category,
    CommissionProfile,
    Manager,
    ManagerAggregate,
    RepAggregate,
    SubordinateDetail,
)
from .tiers import evaluate_tier

logger = logging.getLogger(__name__)


def _team_commission(result: ManagerAggregate, profile: CommissionProfile) -> float:
    commission = 0.0
    for category, amount in (
        (Category.TARGET, result.team_total_target),
        (Category.PROXY, result.team_total_proxy),
        (Category.OTHER, result.team_total_other),
    ):
        rule = profile.rule_for(category)
        if rule:
            commission += evaluate_tier(amount, rule.tiers)
    return commission


def rollup(
    rep_aggregates: Sequence[RepAggregate],
    managers: Sequence[Manager],
    profiles: Sequence[CommissionProfile],
) -> List[ManagerAggregate]:
    """Return one ManagerAggregate per manager, in ``managers`` order.

    Subordinates with no aggregate this period are skipped.
    """
    reps: Dict[str, RepAggregate] = {}
    for rep in rep_aggregates:
        reps.setdefault(rep.rep_name, rep)
    profiles_by_id: Dict[str, CommissionProfile] = {}
    for profile in profiles:
        profiles_by_id.setdefault(profile.id, profile)

    results: List[ManagerAggregate] = []
    for manager in managers:
        result = ManagerAggregate(manager_name=manager.name)

        for rep_name in manager.subordinates:
            rep = reps.get(rep_name)
            if rep is None:
                continue
            result.team_total_target += rep.target_net
            result.team_total_proxy += rep.proxy_net
            result.team_total_other += rep.other_net
            result.team_total_deductions += rep.total_deductions
            result.subordinates_details.append(SubordinateDetail(
                rep_name=rep.rep_name,
                target_net=rep.target_net,
                proxy_net=rep.proxy_net,
                other_net=rep.other_net,
                total_net=rep.total_net,
            ))

        profile = profiles_by_id.get(manager.profile_id)
        if profile is not None:
            result.commission = _team_commission(result, profile)
        else:
            logger.debug(f"Manager {manager.name} has no bound profile; commission is 0")

        results.append(result)
    return results
