"""
Unit tests for the sell trigger policies and the mixture distribution.
"""

import random
from collections import Counter

import pytest
from pydantic import ValidationError

from config.settings import Settings
from core.sell_trigger import (
    DistributionSellTrigger,
    FixedSellTrigger,
    MixtureDistribution,
    build_sell_trigger,
)
from models.policy import DistributionConfig, SellTriggerConfig, SellTriggerMode

DRAWS = 10_000


class TestMixtureDistribution:
    """MixtureDistribution tests"""

    def test_threshold_mean_matches_config(self):
        config = SellTriggerConfig().threshold
        dist = MixtureDistribution(config)
        assert dist.expected_value == pytest.approx(config.mean, abs=1e-9)

        rng = random.Random(2024)
        draws = [dist.draw(rng) for _ in range(DRAWS)]
        assert all(config.minimum <= d <= config.maximum for d in draws)
        assert sum(draws) / DRAWS == pytest.approx(config.mean, abs=0.25)

    def test_consecutive_mean_matches_config(self):
        config = SellTriggerConfig().consecutive
        dist = MixtureDistribution(config)
        rng = random.Random(99)
        draws = [dist.draw(rng) for _ in range(DRAWS)]
        assert all(1 <= d <= 7 for d in draws)
        assert sum(draws) / DRAWS == pytest.approx(config.mean, abs=0.15)

    def test_most_draws_near_mean(self):
        config = SellTriggerConfig().threshold
        dist = MixtureDistribution(config)
        rng = random.Random(5)
        center = round(config.mean)
        near = sum(1 for _ in range(DRAWS) if abs(dist.draw(rng) - center) <= config.central_width)
        assert near / DRAWS >= 0.65

    def test_extremes_are_hit(self):
        config = SellTriggerConfig().threshold
        dist = MixtureDistribution(config)
        rng = random.Random(8)
        counts = Counter(dist.draw(rng) for _ in range(DRAWS))
        assert counts[config.minimum] > 0
        assert counts[config.maximum] > 0

    def test_upper_cap(self):
        dist = MixtureDistribution(SellTriggerConfig().consecutive, upper=3)
        rng = random.Random(1)
        assert {dist.draw(rng) for _ in range(1_000)} <= {1, 2, 3}

    def test_single_value_range(self):
        dist = MixtureDistribution(DistributionConfig(minimum=4, maximum=4, mean=4))
        assert dist.draw(random.Random()) == 4

    def test_invalid_configs_rejected(self):
        with pytest.raises(ValidationError):
            DistributionConfig(minimum=5, maximum=2, mean=3)
        with pytest.raises(ValidationError):
            DistributionConfig(minimum=1, maximum=5, mean=9)
        with pytest.raises(ValidationError):
            DistributionConfig(minimum=1, maximum=5, mean=3, central_weight=0.9)


class TestDistributionSellTrigger:
    """DistributionSellTrigger tests"""

    def setup_method(self):
        self.trigger = DistributionSellTrigger(SellTriggerConfig(), random.Random(17))

    def test_threshold_range(self):
        for _ in range(500):
            assert 4 <= self.trigger.next_sell_threshold() <= 17

    def test_consecutive_capped_by_eligible_wallets(self):
        for available in range(0, 10):
            for _ in range(100):
                n = self.trigger.consecutive_sells(available)
                assert 0 <= n <= min(available, 7)
                if available:
                    assert n >= 1

    def test_inter_sell_delay_band(self):
        for _ in range(200):
            assert 650 <= self.trigger.inter_sell_delay() <= 2000

    def test_retry_after_failure_is_short(self):
        for _ in range(200):
            assert 2 <= self.trigger.retry_after_failure() <= 4

    def test_describe(self):
        info = self.trigger.describe()
        assert info["mode"] == "distribution"
        assert "avg 7.37" in info["buys_before_sell"]


class TestFixedSellTrigger:
    """FixedSellTrigger tests"""

    def test_fixed_values(self):
        trigger = FixedSellTrigger(SellTriggerConfig(mode=SellTriggerMode.FIXED, fixed_interval=6, fixed_sells=3))
        assert trigger.next_sell_threshold() == 6
        assert trigger.consecutive_sells(10) == 3
        assert trigger.consecutive_sells(2) == 2
        assert trigger.consecutive_sells(0) == 0


def test_build_sell_trigger():
    assert isinstance(build_sell_trigger(SellTriggerConfig()), DistributionSellTrigger)
    assert isinstance(build_sell_trigger(SellTriggerConfig(mode=SellTriggerMode.FIXED)), FixedSellTrigger)


def test_unordered_delay_range_rejected():
    with pytest.raises(ValidationError):
        SellTriggerConfig(sell_delay_ms=(2000, 650))


def test_config_from_settings():
    settings = Settings(
        sell_trigger_mode="fixed",
        sell_threshold_min=3,
        sell_threshold_max=12,
        sell_threshold_mean=6.0,
        sell_threshold_weights=(0.6, 0.3, 0.1),
        min_sell_delay_ms=100,
        max_sell_delay_ms=200,
        min_retry_after_buys=1,
        max_retry_after_buys=2,
        fixed_sell_interval=5,
        fixed_sells=4,
    )
    config = SellTriggerConfig.from_settings(settings)

    assert config.mode == SellTriggerMode.FIXED
    assert (config.threshold.minimum, config.threshold.maximum, config.threshold.mean) == (3, 12, 6.0)
    assert config.threshold.central_weight == 0.6
    assert config.consecutive.mean == 2.95
    assert config.sell_delay_ms == (100, 200)
    assert config.retry_after_buys == (1, 2)
    assert (config.fixed_interval, config.fixed_sells) == (5, 4)


def test_bad_weights_from_settings_rejected():
    with pytest.raises(ValidationError):
        SellTriggerConfig.from_settings(Settings(consecutive_sells_weights=(0.5, 0.5, 0.5)))
