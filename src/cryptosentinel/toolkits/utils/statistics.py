from __future__ import annotations

"""Holder Statistics for Data Toolkits
=====================================

Statistical helpers for token holder sets, using NumPy.

Key Features:
- Per-owner balance aggregation preserving first-seen order
- Stable descending top-N ranking (ties keep arrival order)
- Top-N concentration against an estimated supply
- Fixed four-bucket distribution (whales, large, medium, small)
- Gini coefficient and percentile summaries of balances
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

import numpy as _np

__all__ = ["StatisticalAnalyzer", "HolderAggregate", "DISTRIBUTION_BUCKETS"]

# (label, lower fraction of supply, upper fraction of supply); bounds are
# inclusive-lower / exclusive-upper and evaluated in this order.
DISTRIBUTION_BUCKETS: Tuple[Tuple[str, Optional[float], Optional[float]], ...] = (
    ("Whales (>1%)", 0.01, None),
    ("Large (0.1-1%)", 0.001, 0.01),
    ("Medium (0.01-0.1%)", 0.0001, 0.001),
    ("Small (<0.01%)", None, 0.0001),
)


@dataclass
class HolderAggregate:
    """Derived view over a collection of holder balances."""

    unique_holder_count: int
    per_owner_balance: Dict[str, float]
    top_holders: List[Dict[str, Any]]
    concentration_percent: float
    distribution_buckets: List[Dict[str, Any]]
    gini_coefficient: float
    balance_stats: Dict[str, float] = field(default_factory=dict)

    @property
    def holders_by_balance_range(self) -> Dict[str, int]:
        return {bucket["label"]: bucket["count"] for bucket in self.distribution_buckets}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "unique_holder_count": self.unique_holder_count,
            "top_holders": self.top_holders,
            "top10_concentration_percent": self.concentration_percent,
            "holders_by_balance_range": self.holders_by_balance_range,
            "distribution_buckets": self.distribution_buckets,
            "gini_coefficient": self.gini_coefficient,
            "balance_stats": self.balance_stats,
        }


class StatisticalAnalyzer:
    """Helper class for statistical analysis of holder balances.

    All methods are static so toolkits can use them without inheritance.

    Example:
        ```python
        aggregate = StatisticalAnalyzer.build_holder_aggregate(
            [(r.owner, r.ui_amount) for r in result.records],
            total_supply=result.total_supply_estimate,
        )
        ```
    """

    @staticmethod
    def sum_balances_by_owner(entries: Iterable[Tuple[str, float]]) -> Dict[str, float]:
        """Sum balances per owner. Dict order is first-seen order."""
        balances: Dict[str, float] = {}
        for owner, amount in entries:
            if not owner:
                continue
            balances[owner] = balances.get(owner, 0.0) + float(amount)
        return balances

    @staticmethod
    def rank_top_holders(balances: Dict[str, float], top_n: int = 10) -> List[Tuple[str, float]]:
        """Return the ``top_n`` owners by balance, descending.

        ``sorted`` is stable, so equal balances keep first-seen order.
        """
        return sorted(balances.items(), key=lambda item: item[1], reverse=True)[:top_n]

    @staticmethod
    def concentration_percent(top_balances: Iterable[float], total_supply: float) -> float:
        if total_supply <= 0:
            return 0.0
        return round(sum(top_balances) / total_supply * 100, 2)

    @staticmethod
    def bucket_label(balance: float, total_supply: float) -> str:
        """First bucket (in priority order) whose bounds contain ``balance``."""
        for label, lower, upper in DISTRIBUTION_BUCKETS:
            if lower is not None and balance < lower * total_supply:
                continue
            if upper is not None and balance >= upper * total_supply:
                continue
            return label
        # Unreachable for finite balances; the last bucket has no lower bound
        return DISTRIBUTION_BUCKETS[-1][0]

    @staticmethod
    def distribution_buckets(balances: Dict[str, float], total_supply: float) -> List[Dict[str, Any]]:
        """Count each owner into exactly one bucket."""
        counts = {label: 0 for label, _, _ in DISTRIBUTION_BUCKETS}
        for balance in balances.values():
            counts[StatisticalAnalyzer.bucket_label(balance, total_supply)] += 1

        return [
            {
                "label": label,
                "lower_bound": lower * total_supply if lower is not None else None,
                "upper_bound": upper * total_supply if upper is not None else None,
                "count": counts[label],
            }
            for label, lower, upper in DISTRIBUTION_BUCKETS
        ]

    @staticmethod
    def calculate_gini_coefficient(values: _np.ndarray) -> float:
        """Calculate Gini coefficient for a balance distribution.

        Ranges from 0 (perfect equality) to 1 (one holder owns everything).

        Args:
            values: Array of token balances

        Returns:
            float: Gini coefficient between 0 and 1
        """
        if len(values) == 0:
            return 0.0

        sorted_values = _np.sort(values)
        n = len(sorted_values)

        total = _np.sum(sorted_values)
        if total == 0:
            return 0.0

        cumsum = _np.sum((2 * _np.arange(1, n + 1) - n - 1) * sorted_values)
        gini = cumsum / (n * total)

        return float(max(0.0, min(1.0, gini)))

    @staticmethod
    def calculate_distribution_stats(values: _np.ndarray) -> Dict[str, float]:
        """Percentiles and spread of an array of balances."""
        if len(values) == 0:
            return {}

        stats = {f"p{p}": float(_np.percentile(values, p)) for p in (25, 50, 75, 90, 99)}
        stats.update({
            "mean": float(_np.mean(values)),
            "median": float(_np.median(values)),
            "min": float(_np.min(values)),
            "max": float(_np.max(values)),
        })
        return stats

    @staticmethod
    def build_holder_aggregate(
        entries: Iterable[Tuple[str, float]],
        total_supply: float,
        top_n: int = 10,
    ) -> HolderAggregate:
        """Build the full holder aggregate from ``(owner, balance)`` entries.

        Args:
            entries: Owner/balance pairs in arrival order (owners may repeat)
            total_supply: Supply used as the denominator for percentages. The
                collector passes the sum of observed balances, which is an
                approximation of the real mint supply.
            top_n: Number of holders in the ranking

        Returns:
            HolderAggregate
        """
        balances = StatisticalAnalyzer.sum_balances_by_owner(entries)
        top = StatisticalAnalyzer.rank_top_holders(balances, top_n)
        values = _np.array(list(balances.values()), dtype=float)

        return HolderAggregate(
            unique_holder_count=len(balances),
            per_owner_balance=balances,
            top_holders=[{"owner": owner, "balance": balance} for owner, balance in top],
            concentration_percent=StatisticalAnalyzer.concentration_percent(
                (balance for _, balance in top), total_supply
            ),
            distribution_buckets=StatisticalAnalyzer.distribution_buckets(balances, total_supply),
            gini_coefficient=round(StatisticalAnalyzer.calculate_gini_coefficient(values), 4),
            balance_stats=StatisticalAnalyzer.calculate_distribution_stats(values),
        )

    @staticmethod
    def classify_activity_trend(activity_ratio: float) -> str:
        """Classify transaction momentum from the day-vs-week activity ratio."""
        if activity_ratio > 1:
            return "Increasing"
        elif activity_ratio < 0.5:
            return "Decreasing"
        return "Stable"
