"""
Buy sizing policies for the Volume Orchestrator.
"""

import random
from abc import ABC, abstractmethod
from typing import Optional, Tuple

from core.errors import BelowMinimumTrade, LiquidityUnavailable, NoAllocation, WalletExhausted
from core.quote_engine import quote_buy
from models.liquidity import LiquidityState
from models.policy import SizingConfig, SizingMode
from models.wallet import WalletRecord
from utils.logger import get_logger

logger = get_logger(__name__)

BPS = 10_000


class SizingPolicy(ABC):
    """Base class for buy sizing policies."""

    mode: SizingMode

    def __init__(self, config: SizingConfig, rng: Optional[random.Random] = None):
        """
        Initialize sizing policy.

        Args:
            config: Sizing tunables
            rng: Random source, injectable for reproducible runs
        """
        self.config = config
        self.rng = rng or random.Random()

    @abstractmethod
    def size_buy(
        self,
        wallet: WalletRecord,
        liquidity: Optional[LiquidityState],
        balance: int,
    ) -> int:
        """
        Compute the buy amount for a wallet.

        Args:
            wallet: Ledger record of the buying wallet
            liquidity: Fresh reserve snapshot, or None if unreadable
            balance: On-hand quote balance in atomic units

        Returns:
            Quote amount to spend, in atomic units

        Raises:
            WalletExhausted: Nothing spendable after the safety reserve
            NoAllocation: Deterministic sizing has no entry for the wallet
            BelowMinimumTrade: Amount is below the minimum trade size
        """

    def spendable(self, balance: int) -> int:
        """Balance left after keeping the fee reserve."""
        return max(0, balance - self.config.safety_reserve)

    def _require_minimum(self, amount: int, wallet: WalletRecord) -> int:
        if amount < self.config.min_trade_amount:
            raise BelowMinimumTrade(amount, self.config.min_trade_amount, wallet.address)
        return amount

    def _require_spendable(self, balance: int, wallet: WalletRecord) -> int:
        spendable = self.spendable(balance)
        if spendable <= 0:
            raise WalletExhausted(
                f"balance {balance} does not cover reserve {self.config.safety_reserve}",
                wallet.address,
            )
        return spendable


class DeterministicSizing(SizingPolicy):
    """Pre-assigned amount per wallet from the allocation table."""

    mode = SizingMode.DETERMINISTIC

    def allocation_for(self, wallet: WalletRecord) -> Optional[int]:
        allocations = self.config.allocations
        if wallet.address in allocations:
            return allocations[wallet.address]
        return allocations.get(f"wallet{wallet.index}")

    def size_buy(self, wallet, liquidity, balance):
        allocation = self.allocation_for(wallet)
        if allocation is None:
            raise NoAllocation(f"no allocation for wallet #{wallet.index}", wallet.address)

        spendable = self._require_spendable(balance, wallet)
        amount = allocation
        if amount > spendable:
            logger.info("Allocation exceeds spendable balance, adjusting down",
                        wallet=wallet.short_address, allocation=allocation, spendable=spendable)
            amount = spendable

        return self._require_minimum(amount, wallet)


class DynamicSizing(SizingPolicy):
    """
    Percentage of spendable balance, banded by wallet size.

    Larger balances spend a smaller share so that large and small wallets
    end up with comparable absolute exposure. The result is capped so the
    expected base output stays under ``max_supply_exposure``.
    """

    mode = SizingMode.DYNAMIC

    def band_for(self, spendable: int) -> Tuple[int, int]:
        if spendable > self.config.large_balance_threshold:
            return self.config.large_band_bps
        if spendable > self.config.small_balance_threshold:
            return self.config.medium_band_bps
        return self.config.small_band_bps

    def size_buy(self, wallet, liquidity, balance):
        spendable = self._require_spendable(balance, wallet)

        low, high = self.band_for(spendable)
        share_bps = self.rng.randint(low, high)
        amount = min(spendable * share_bps // BPS, self.config.max_buy_amount)

        if liquidity is None or liquidity.is_degenerate:
            if self.config.require_liquidity:
                raise LiquidityUnavailable("reserves unreadable and no balance-only fallback allowed", wallet.address)
            logger.info("Reserves unavailable, sizing from balance only",
                        wallet=wallet.short_address, amount=amount)
        else:
            if liquidity.real_base < self.config.low_reserve_threshold:
                capped = min(amount, self.config.low_reserve_buy_cap, spendable // 2)
                logger.info("Real reserves low, limiting buy",
                            wallet=wallet.short_address, real_base=liquidity.real_base, amount=capped)
                amount = capped
            amount = self.cap_exposure(amount, liquidity)

        logger.debug("Dynamic buy sized", wallet=wallet.short_address, spendable=spendable,
                     share_bps=share_bps, amount=amount)
        return self._require_minimum(amount, wallet)

    def cap_exposure(self, amount: int, liquidity: LiquidityState) -> int:
        """Reduce ``amount`` until its expected output fits under the exposure cap."""
        limit = self.config.max_supply_exposure
        if limit is None:
            return amount

        expected = quote_buy(liquidity, amount)
        if expected <= limit:
            return amount

        reduced = amount * limit // expected
        if quote_buy(liquidity, reduced) <= limit:
            logger.info("Buy reduced to supply exposure cap",
                        requested=amount, reduced=reduced, expected_out=expected, limit=limit)
            return reduced

        # Output is concave in the input, so a proportional cut can overshoot slightly
        lo, hi = 0, reduced
        while lo < hi:
            mid = (lo + hi + 1) // 2
            if quote_buy(liquidity, mid) <= limit:
                lo = mid
            else:
                hi = mid - 1
        logger.info("Buy reduced to supply exposure cap",
                    requested=amount, reduced=lo, expected_out=expected, limit=limit)
        return lo


def build_sizing_policy(config: SizingConfig, rng: Optional[random.Random] = None) -> SizingPolicy:
    """Sizing policy for the configured mode."""
    if config.mode == SizingMode.DETERMINISTIC:
        return DeterministicSizing(config, rng)
    return DynamicSizing(config, rng)
