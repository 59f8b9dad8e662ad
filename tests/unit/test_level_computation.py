"""Level computation tests: tier boundaries, multipliers, monotonic levels."""

import pytest

from dulp.errors import InvalidAmount
from dulp.progression.level_thresholds import LEVEL_THRESHOLDS, _check_table, compute_level, level_multiplier
from dulp.progression.service import apply_xp
from dulp.store.records import ProgressionStats


class TestLevelComputation:
    def test_level_1_at_zero_xp(self):
        result = compute_level(0)
        assert result["level"] == 1
        assert result["title"] == "Bronze"
        assert result["multiplier"] == 1.00

    def test_level_boundary_499_xp(self):
        """499 XP is still Bronze."""
        assert compute_level(499)["level"] == 1

    def test_level_2_at_500_xp(self):
        result = compute_level(500)
        assert result["level"] == 2
        assert result["title"] == "Silver"

    def test_xp_into_level_calculation(self):
        result = compute_level(600)
        assert result["xp_into_level"] == 100
        assert result["xp_for_level"] == 1000  # 1500 - 500
        assert result["next_level"] == 3
        assert result["next_title"] == "Gold"

    def test_legend_at_60000(self):
        result = compute_level(60000)
        assert result["level"] == 8
        assert result["title"] == "Legend"

    def test_max_level_exceeded(self):
        result = compute_level(10_000_000)
        assert result["level"] == 8
        assert result["next_level"] == 8

    def test_every_threshold_maps_to_its_tier(self):
        for tier in LEVEL_THRESHOLDS:
            assert compute_level(tier["xp_required"])["level"] == tier["level"]
            if tier["xp_required"] > 0:
                assert compute_level(tier["xp_required"] - 1)["level"] == tier["level"] - 1

    def test_level_never_decreases_with_xp(self):
        previous = 1
        for xp in range(0, 70000, 250):
            level = compute_level(xp)["level"]
            assert level >= previous
            previous = level


class TestLevelMultiplier:
    def test_known_levels(self):
        assert level_multiplier(1) == 1.00
        assert level_multiplier(3) == 1.05
        assert level_multiplier(8) == 1.30

    def test_unknown_level_is_neutral(self):
        assert level_multiplier(99) == 1.0


class TestThresholdTable:
    def test_rejects_non_increasing_thresholds(self):
        table = [
            {"level": 1, "title": "A", "xp_required": 0, "multiplier": 1.0},
            {"level": 2, "title": "B", "xp_required": 0, "multiplier": 1.1},
        ]
        with pytest.raises(ValueError):
            _check_table(table)

    def test_rejects_nonzero_first_tier(self):
        with pytest.raises(ValueError):
            _check_table([{"level": 1, "title": "A", "xp_required": 10, "multiplier": 1.0}])


class TestApplyXp:
    def test_level_up_reported(self):
        stats = ProgressionStats(user_id=1)
        result = apply_xp(stats, 500)
        assert result.leveled_up is True
        assert result.old_level == 1
        assert result.new_level == 2
        assert result.title == "Silver"
        assert stats.xp == 500
        assert stats.level == 2

    def test_no_level_up(self):
        stats = ProgressionStats(user_id=1)
        result = apply_xp(stats, 100)
        assert result.leveled_up is False
        assert stats.level == 1

    def test_multi_tier_jump(self):
        stats = ProgressionStats(user_id=1)
        result = apply_xp(stats, 4000)
        assert result.new_level == 4
        assert result.title == "Platinum"

    def test_zero_xp_is_allowed(self):
        stats = ProgressionStats(user_id=1, xp=10)
        apply_xp(stats, 0)
        assert stats.xp == 10

    def test_negative_xp_rejected(self):
        stats = ProgressionStats(user_id=1, xp=10)
        with pytest.raises(InvalidAmount):
            apply_xp(stats, -5)
        assert stats.xp == 10
