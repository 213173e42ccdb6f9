# core/pipeline.py
import logging
from typing import Optional

from ..models.schemas import CommissionReport, PeriodSnapshot
from ..utils.logging_utils import LoggerAdapter
from .aggregator import TARGET_PREFIX, aggregate
from .linker import link_expenses
from .rollup import rollup

logger = logging.getLogger(__name__)


def compute_period(
    snapshot: PeriodSnapshot,
    target_prefix: str = TARGET_PREFIX,
    period: Optional[str] = None,
) -> CommissionReport:
    """Run linking, aggregation and manager rollup over one period's inputs.

    Every call recomputes from scratch with the configuration carried inside
    ``snapshot``, so replaying a stored snapshot reproduces its figures.
    """
    log = LoggerAdapter(logger, {"period": period} if period else None)

    linked = link_expenses(snapshot.expenses, snapshot.person_sales)
    reps = aggregate(
        snapshot.person_sales,
        snapshot.goods_sales,
        linked,
        snapshot.manual_deductions,
        snapshot.profiles,
        snapshot.rep_settings,
        snapshot.beta_mappings,
        target_prefix=target_prefix,
    )
    managers = rollup(reps, snapshot.managers, snapshot.profiles)

    pending = sum(1 for e in linked if e.assigned_category is None)
    if pending:
        log.warning(f"{pending} linked expenses have no category and were not deducted")
    log.info(
        f"Computed {len(reps)} reps, {len(managers)} managers, "
        f"total commission {sum(r.total_commission for r in reps):,.0f}"
    )
    return CommissionReport(
        rep_aggregates=reps,
        manager_aggregates=managers,
        linked_expenses=linked,
    )
