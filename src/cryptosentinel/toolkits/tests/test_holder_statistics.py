"""Tests for holder aggregate statistics."""

import numpy as np
import pytest

from cryptosentinel.toolkits.utils.statistics import DISTRIBUTION_BUCKETS, StatisticalAnalyzer


class TestHolderAggregate:
    """Holder aggregation, ranking and bucketing."""

    def setup_method(self):
        """Set up test data."""
        self.entries = [
            ("whale", 5000.0),
            ("large", 50.0),
            ("medium", 5.0),
            ("small", 0.05),
            ("whale", 1000.0),
        ]
        self.total_supply = 10000.0

    def test_balances_summed_per_owner(self):
        aggregate = StatisticalAnalyzer.build_holder_aggregate(self.entries, self.total_supply)

        assert aggregate.unique_holder_count == 4
        assert aggregate.per_owner_balance["whale"] == 6000.0

    def test_each_owner_in_exactly_one_bucket(self):
        aggregate = StatisticalAnalyzer.build_holder_aggregate(self.entries, self.total_supply)
        counts = aggregate.holders_by_balance_range

        assert sum(counts.values()) == aggregate.unique_holder_count
        assert counts == {
            "Whales (>1%)": 1,
            "Large (0.1-1%)": 1,
            "Medium (0.01-0.1%)": 1,
            "Small (<0.01%)": 1,
        }

    def test_bucket_bounds_inclusive_lower(self):
        # Exactly 1% of supply is a whale; exactly 0.1% is large
        assert StatisticalAnalyzer.bucket_label(100.0, 10000.0) == DISTRIBUTION_BUCKETS[0][0]
        assert StatisticalAnalyzer.bucket_label(10.0, 10000.0) == DISTRIBUTION_BUCKETS[1][0]
        assert StatisticalAnalyzer.bucket_label(0.0, 10000.0) == DISTRIBUTION_BUCKETS[3][0]

    @pytest.mark.parametrize("owners", [1, 7, 25, 200])
    def test_bucket_counts_sum_to_owner_count(self, owners):
        rng = np.random.default_rng(owners)
        entries = [(f"owner{i}", float(rng.pareto(1.2) * 100)) for i in range(owners)]
        total = sum(balance for _, balance in entries)

        aggregate = StatisticalAnalyzer.build_holder_aggregate(entries, total)

        assert sum(b["count"] for b in aggregate.distribution_buckets) == owners

    def test_top_holders_stable_for_ties(self):
        entries = [(f"tied{i}", 100.0) for i in range(12)] + [("big", 500.0)]
        aggregate = StatisticalAnalyzer.build_holder_aggregate(entries, 1700.0)

        owners = [h["owner"] for h in aggregate.top_holders]
        assert owners == ["big"] + [f"tied{i}" for i in range(9)]

    def test_top_holders_length(self):
        few = StatisticalAnalyzer.build_holder_aggregate([("a", 1.0), ("b", 2.0)], 3.0)
        assert len(few.top_holders) == 2

        many = StatisticalAnalyzer.build_holder_aggregate([(f"o{i}", float(i)) for i in range(30)], 435.0)
        assert len(many.top_holders) == 10

    def test_concentration_percent(self):
        aggregate = StatisticalAnalyzer.build_holder_aggregate(self.entries, self.total_supply)
        assert aggregate.concentration_percent == pytest.approx(60.55, abs=0.01)

    def test_zero_supply(self):
        aggregate = StatisticalAnalyzer.build_holder_aggregate([], 0.0)

        assert aggregate.unique_holder_count == 0
        assert aggregate.concentration_percent == 0.0
        assert aggregate.gini_coefficient == 0.0
        assert aggregate.top_holders == []


class TestGiniAndTrend:
    """Gini coefficient and activity trend helpers."""

    def test_equal_balances_have_zero_gini(self):
        assert StatisticalAnalyzer.calculate_gini_coefficient(np.array([5.0, 5.0, 5.0])) == pytest.approx(0.0)

    def test_concentrated_balances_have_high_gini(self):
        gini = StatisticalAnalyzer.calculate_gini_coefficient(np.array([0.0] * 99 + [100.0]))
        assert gini > 0.9

    @pytest.mark.parametrize("ratio,trend", [(1.5, "Increasing"), (0.3, "Decreasing"), (0.8, "Stable")])
    def test_activity_trend(self, ratio, trend):
        assert StatisticalAnalyzer.classify_activity_trend(ratio) == trend
