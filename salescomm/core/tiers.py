"""
Tiered rate lookup.

A rule is an ordered list of tiers. The first tier whose inclusive range
contains the amount decides the payout; later overlapping tiers are never
consulted. Amounts outside every range earn nothing.
"""

import math
from typing import Optional, Sequence

from ..models.schemas import Tier, TierKind


def find_tier(amount: float, tiers: Optional[Sequence[Tier]]) -> Optional[Tier]:
    """Return the first tier with ``min <= amount <= max``, if any."""
    for tier in tiers or ():
        if tier.min <= amount <= tier.max:
            return tier
    return None


def evaluate_tier(amount: float, tiers: Optional[Sequence[Tier]]) -> float:
    """Return the commission earned on ``amount`` under ``tiers``."""
    if not tiers or not math.isfinite(amount) or amount <= 0:
        return 0.0

    tier = find_tier(amount, tiers)
    if tier is None:
        return 0.0

    if tier.kind == TierKind.FIXED:
        return tier.value
    return amount * tier.value / 100
