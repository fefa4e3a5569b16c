"""
Sell trigger policies for the Volume Orchestrator.

A policy decides after how many buys a sell sequence fires, how many
consecutive sells it contains and how long to wait between them.
"""

import random
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from models.policy import DistributionConfig, SellTriggerConfig, SellTriggerMode
from utils.logger import get_logger

logger = get_logger(__name__)


class MixtureDistribution:
    """
    Integer sampler matching a configured mean inside ``[minimum, maximum]``.

    Draws come from three components: a central band around the mean, the
    outer bands on either side of it, and the two bounds themselves. The
    split between the low and the high side is solved so that the expected
    value equals the configured mean.
    """

    def __init__(self, config: DistributionConfig, upper: Optional[int] = None):
        self.config = config
        self.low = config.minimum
        self.high = config.maximum if upper is None else min(config.maximum, upper)
        self.mean = min(max(config.mean, self.low), self.high)

        if self.high <= self.low:
            self.central: List[int] = [self.high]
            self.low_band: List[int] = [self.high]
            self.high_band: List[int] = [self.high]
            self.low_side = 0.5
            return

        center = min(max(int(round(self.mean)), self.low), self.high)
        c_lo = max(self.low, center - config.central_width)
        c_hi = min(self.high, center + config.central_width)
        self.central = list(range(c_lo, c_hi + 1))
        self.low_band = list(range(self.low, c_lo)) or [self.low]
        self.high_band = list(range(c_hi + 1, self.high + 1)) or [self.high]
        self.low_side = self._solve_low_side()

    @staticmethod
    def _avg(values: List[int]) -> float:
        return sum(values) / len(values)

    def _solve_low_side(self) -> float:
        c = self.config
        e_central = self._avg(self.central)
        e_low = self._avg(self.low_band)
        e_high = self._avg(self.high_band)
        spread = c.outer_weight * (e_high - e_low) + c.extreme_weight * (self.high - self.low)
        if spread <= 0:
            return 0.5
        low_side = (c.central_weight * e_central + c.outer_weight * e_high
                    + c.extreme_weight * self.high - self.mean) / spread
        if not 0.0 <= low_side <= 1.0:
            logger.warning("Configured mean is not reachable with these weights",
                           mean=self.mean, minimum=self.low, maximum=self.high)
        return min(max(low_side, 0.0), 1.0)

    @property
    def expected_value(self) -> float:
        c = self.config
        s = self.low_side
        return (c.central_weight * self._avg(self.central)
                + c.outer_weight * (s * self._avg(self.low_band) + (1 - s) * self._avg(self.high_band))
                + c.extreme_weight * (s * self.low + (1 - s) * self.high))

    def draw(self, rng: random.Random) -> int:
        if self.high <= self.low:
            return self.high

        c = self.config
        roll = rng.random()
        if roll < c.central_weight:
            return rng.choice(self.central)
        low_side = rng.random() < self.low_side
        if roll < c.central_weight + c.outer_weight:
            return rng.choice(self.low_band if low_side else self.high_band)
        return self.low if low_side else self.high


class SellTriggerPolicy(ABC):
    """Base class for sell trigger policies."""

    mode: SellTriggerMode

    def __init__(self, config: SellTriggerConfig, rng: Optional[random.Random] = None):
        self.config = config
        self.rng = rng or random.Random()

    @abstractmethod
    def next_sell_threshold(self) -> int:
        """Buys until the next sell sequence."""

    @abstractmethod
    def consecutive_sells(self, available_wallets: int) -> int:
        """Length of the next sell sequence, never more than ``available_wallets``."""

    def inter_sell_delay(self) -> int:
        """Milliseconds to wait between two sells of one sequence."""
        low, high = self.config.sell_delay_ms
        return self.rng.randint(low, high)

    def retry_after_failure(self) -> int:
        """Buys until the next attempt when a whole sequence failed."""
        low, high = self.config.retry_after_buys
        return self.rng.randint(low, high)

    def describe(self) -> Dict[str, object]:
        return {"mode": self.mode.value, "sell_delay_ms": self.config.sell_delay_ms}


class DistributionSellTrigger(SellTriggerPolicy):
    """Thresholds and run lengths drawn from mixture distributions."""

    mode = SellTriggerMode.DISTRIBUTION

    def __init__(self, config: SellTriggerConfig, rng: Optional[random.Random] = None):
        super().__init__(config, rng)
        self._threshold = MixtureDistribution(config.threshold)
        self._consecutive: Dict[int, MixtureDistribution] = {}

    def next_sell_threshold(self) -> int:
        return self._threshold.draw(self.rng)

    def consecutive_sells(self, available_wallets: int) -> int:
        if available_wallets <= 1:
            return min(1, max(available_wallets, 0))
        cap = min(self.config.consecutive.maximum, available_wallets)
        distribution = self._consecutive.get(cap)
        if distribution is None:
            distribution = MixtureDistribution(self.config.consecutive, upper=cap)
            self._consecutive[cap] = distribution
        return min(distribution.draw(self.rng), available_wallets)

    def describe(self):
        info = super().describe()
        t, c = self.config.threshold, self.config.consecutive
        info.update({
            "buys_before_sell": f"{t.minimum}-{t.maximum} (avg {t.mean})",
            "consecutive_sells": f"{c.minimum}-{c.maximum} (avg {c.mean})",
        })
        return info


class FixedSellTrigger(SellTriggerPolicy):
    """Sell every ``fixed_interval`` buys, ``fixed_sells`` wallets at a time."""

    mode = SellTriggerMode.FIXED

    def next_sell_threshold(self) -> int:
        return self.config.fixed_interval

    def consecutive_sells(self, available_wallets: int) -> int:
        return max(0, min(self.config.fixed_sells, available_wallets))

    def describe(self):
        info = super().describe()
        info.update({"interval": self.config.fixed_interval, "sells": self.config.fixed_sells})
        return info


def build_sell_trigger(config: SellTriggerConfig, rng: Optional[random.Random] = None) -> SellTriggerPolicy:
    """Sell trigger policy for the configured mode."""
    if config.mode == SellTriggerMode.FIXED:
        return FixedSellTrigger(config, rng)
    return DistributionSellTrigger(config, rng)
