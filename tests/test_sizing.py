"""
Unit tests for the buy sizing policies.
"""

import random

import pytest

from core.errors import BelowMinimumTrade, LiquidityUnavailable, NoAllocation, WalletExhausted
from core.quote_engine import quote_buy
from core.sizing import DeterministicSizing, DynamicSizing, build_sizing_policy
from models.liquidity import LiquidityState
from models.policy import SizingConfig, SizingMode
from models.wallet import WalletRecord


def record(index: int = 1) -> WalletRecord:
    return WalletRecord(address=f"Sizing{index:02d}" + "q" * 32, index=index)


class TestDeterministicSizing:
    """DeterministicSizing tests"""

    def setup_method(self):
        self.wallet = record(2)
        self.config = SizingConfig(
            mode=SizingMode.DETERMINISTIC,
            safety_reserve=1_000,
            min_trade_amount=100,
            allocations={self.wallet.address: 5_000, "wallet3": 7_000},
        )
        self.policy = DeterministicSizing(self.config)

    def test_allocation_by_address(self):
        assert self.policy.size_buy(self.wallet, None, 100_000) == 5_000

    def test_allocation_by_position(self):
        assert self.policy.size_buy(record(3), None, 100_000) == 7_000

    def test_missing_allocation(self):
        with pytest.raises(NoAllocation):
            self.policy.size_buy(record(9), None, 100_000)

    def test_clamped_to_spendable(self):
        assert self.policy.size_buy(self.wallet, None, 3_000) == 2_000

    def test_reserve_not_covered(self):
        with pytest.raises(WalletExhausted):
            self.policy.size_buy(self.wallet, None, 1_000)

    def test_below_minimum_after_clamp(self):
        with pytest.raises(BelowMinimumTrade) as exc:
            self.policy.size_buy(self.wallet, None, 1_050)
        assert exc.value.amount == 50
        assert exc.value.minimum == 100


class TestDynamicSizing:
    """DynamicSizing tests"""

    def test_band_by_balance(self):
        policy = DynamicSizing(SizingConfig())
        assert policy.band_for(6_000_000_000) == (4000, 6000)
        assert policy.band_for(2_000_000_000) == (5000, 7000)
        assert policy.band_for(500_000_000) == (6000, 8000)

    def test_amount_within_band_without_liquidity(self):
        config = SizingConfig(safety_reserve=0, max_supply_exposure=None)
        policy = DynamicSizing(config, random.Random(5))
        for _ in range(50):
            amount = policy.size_buy(record(), None, 500_000_000)
            assert 300_000_000 <= amount <= 400_000_000

    def test_capped_at_max_buy(self):
        config = SizingConfig(safety_reserve=0, max_buy_amount=1_000_000_000, max_supply_exposure=None)
        policy = DynamicSizing(config, random.Random(5))
        assert policy.size_buy(record(), None, 100_000_000_000) == 1_000_000_000

    def test_exhausted_wallet(self):
        policy = DynamicSizing(SizingConfig())
        with pytest.raises(WalletExhausted):
            policy.size_buy(record(), None, 0)

    def test_below_minimum(self):
        policy = DynamicSizing(SizingConfig(safety_reserve=0, min_trade_amount=10_000_000))
        with pytest.raises(BelowMinimumTrade):
            policy.size_buy(record(), None, 1_000_000)

    def test_exposure_cap_limits_expected_output(self, liquidity):
        limit = 10_000_000 * 10**6
        config = SizingConfig(max_supply_exposure=limit)
        policy = DynamicSizing(config, random.Random(11))
        amount = policy.size_buy(record(), liquidity, 50_000_000_000)
        assert quote_buy(liquidity, amount) <= limit
        # Largest such amount
        assert quote_buy(liquidity, amount + 1) > limit

    def test_exposure_cap_untouched_when_small(self, liquidity):
        policy = DynamicSizing(SizingConfig())
        assert policy.cap_exposure(1_000_000, liquidity) == 1_000_000

    def test_low_real_reserve_caps_buy(self):
        pool = LiquidityState(virtual_base=10**15, virtual_quote=3 * 10**10, real_base=10**11, real_quote=0)
        config = SizingConfig(safety_reserve=0, low_reserve_buy_cap=200_000_000, max_supply_exposure=None)
        policy = DynamicSizing(config, random.Random(2))
        assert policy.size_buy(record(), pool, 10_000_000_000) == 200_000_000

    def test_unreadable_reserves_without_fallback(self):
        policy = DynamicSizing(SizingConfig(require_liquidity=True))
        with pytest.raises(LiquidityUnavailable):
            policy.size_buy(record(), None, 2_000_000_000)


def test_build_sizing_policy():
    assert isinstance(build_sizing_policy(SizingConfig()), DynamicSizing)
    assert isinstance(build_sizing_policy(SizingConfig(mode=SizingMode.DETERMINISTIC)), DeterministicSizing)
