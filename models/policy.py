"""
Policy configuration models for the Volume Orchestrator.

Every tunable of the sizing, sell-trigger and scheduling policies lives here
so that a run is fully described by these structures.
"""

from typing import Tuple, Dict, Optional
from pydantic import BaseModel, Field, model_validator
from enum import Enum

from config.settings import Settings
from models.wallet import SelectionPolicy


class SizingMode(str, Enum):
    """Sizing policy variants."""
    DYNAMIC = "dynamic"
    DETERMINISTIC = "deterministic"


class SellTriggerMode(str, Enum):
    """Sell trigger policy variants."""
    DISTRIBUTION = "distribution"
    FIXED = "fixed"


class DistributionConfig(BaseModel):
    """
    Integer distribution drawn as a three-part mixture.

    Most draws land in the central band ``round(mean) +/- central_width``,
    some in the outer bands between the central band and the bounds, and the
    rest exactly on ``minimum`` or ``maximum``.
    """
    minimum: int = Field(ge=0)
    maximum: int = Field(ge=0)
    mean: float
    central_width: int = Field(default=2, ge=0)
    central_weight: float = Field(default=0.70, ge=0.0, le=1.0)
    outer_weight: float = Field(default=0.20, ge=0.0, le=1.0)
    extreme_weight: float = Field(default=0.10, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _check_bounds(self) -> "DistributionConfig":
        if self.minimum > self.maximum:
            raise ValueError("minimum must not exceed maximum")
        if not self.minimum <= self.mean <= self.maximum:
            raise ValueError("mean must lie within [minimum, maximum]")
        total = self.central_weight + self.outer_weight + self.extreme_weight
        if abs(total - 1.0) > 1e-6:
            raise ValueError(f"mixture weights must sum to 1.0, got {total}")
        return self


class SellTriggerConfig(BaseModel):
    """Sell trigger tunables."""
    mode: SellTriggerMode = SellTriggerMode.DISTRIBUTION
    threshold: DistributionConfig = Field(
        default_factory=lambda: DistributionConfig(minimum=4, maximum=17, mean=7.37, central_width=2)
    )
    consecutive: DistributionConfig = Field(
        default_factory=lambda: DistributionConfig(
            minimum=1, maximum=7, mean=2.95, central_width=1,
            central_weight=0.65, outer_weight=0.25, extreme_weight=0.10,
        )
    )
    sell_delay_ms: Tuple[int, int] = (650, 2000)
    retry_after_buys: Tuple[int, int] = (2, 4)
    # Used by the fixed variant only
    fixed_interval: int = Field(default=8, ge=1)
    fixed_sells: int = Field(default=2, ge=1)

    @model_validator(mode="after")
    def _check_ranges(self) -> "SellTriggerConfig":
        for name in ("sell_delay_ms", "retry_after_buys"):
            low, high = getattr(self, name)
            if low < 0 or low > high:
                raise ValueError(f"{name} must be an ordered non-negative range")
        return self

    @classmethod
    def from_settings(cls, settings: Settings) -> "SellTriggerConfig":
        central, outer, extreme = settings.sell_threshold_weights
        c_central, c_outer, c_extreme = settings.consecutive_sells_weights
        return cls(
            mode=SellTriggerMode(settings.sell_trigger_mode),
            threshold=DistributionConfig(
                minimum=settings.sell_threshold_min,
                maximum=settings.sell_threshold_max,
                mean=settings.sell_threshold_mean,
                central_width=settings.sell_threshold_width,
                central_weight=central,
                outer_weight=outer,
                extreme_weight=extreme,
            ),
            consecutive=DistributionConfig(
                minimum=settings.consecutive_sells_min,
                maximum=settings.consecutive_sells_max,
                mean=settings.consecutive_sells_mean,
                central_width=settings.consecutive_sells_width,
                central_weight=c_central,
                outer_weight=c_outer,
                extreme_weight=c_extreme,
            ),
            sell_delay_ms=(settings.min_sell_delay_ms, settings.max_sell_delay_ms),
            retry_after_buys=(settings.min_retry_after_buys, settings.max_retry_after_buys),
            fixed_interval=settings.fixed_sell_interval,
            fixed_sells=settings.fixed_sells,
        )


class SizingConfig(BaseModel):
    """Sizing tunables. Amounts are atomic quote units unless noted."""
    mode: SizingMode = SizingMode.DYNAMIC
    safety_reserve: int = Field(default=50_000_000, ge=0)
    min_trade_amount: int = Field(default=10_000_000, ge=1)
    max_buy_amount: int = Field(default=5_000_000_000, ge=1)
    large_balance_threshold: int = 5_000_000_000
    small_balance_threshold: int = 1_000_000_000
    # Percentage bands in basis points
    large_band_bps: Tuple[int, int] = (4000, 6000)
    medium_band_bps: Tuple[int, int] = (5000, 7000)
    small_band_bps: Tuple[int, int] = (6000, 8000)
    max_supply_exposure: Optional[int] = 29_000_000 * 10**6  # atomic base units
    low_reserve_threshold: int = 1_000_000 * 10**6  # atomic base units
    low_reserve_buy_cap: int = 200_000_000
    require_liquidity: bool = False
    allocations: Dict[str, int] = Field(default_factory=dict)

    @classmethod
    def from_settings(cls, settings: Settings, allocations: Optional[Dict[str, int]] = None) -> "SizingConfig":
        return cls(
            mode=SizingMode(settings.sizing_mode),
            safety_reserve=settings.safety_reserve,
            min_trade_amount=settings.min_trade_amount,
            max_buy_amount=settings.max_buy_amount,
            large_balance_threshold=settings.large_balance_threshold,
            small_balance_threshold=settings.small_balance_threshold,
            max_supply_exposure=settings.max_supply_exposure,
            low_reserve_threshold=settings.low_reserve_threshold,
            low_reserve_buy_cap=settings.low_reserve_buy_cap,
            require_liquidity=settings.require_liquidity,
            allocations=allocations or {},
        )


class SchedulerConfig(BaseModel):
    """Control loop tunables."""
    pool_id: str = ""
    asset_id: str = ""
    min_delay_ms: int = Field(default=1500, ge=0)
    max_delay_ms: int = Field(default=6000, ge=0)
    trade_timeout_seconds: float = Field(default=5.0, gt=0)
    lookup_timeout_seconds: float = Field(default=5.0, gt=0)
    pause_poll_seconds: float = Field(default=1.0, gt=0)
    selection_policy: SelectionPolicy = SelectionPolicy.RANDOM
    rebuy_ceiling: int = Field(default=10, ge=0)
    max_consecutive_skips: int = Field(default=5, ge=1)
    summary_every_buys: int = Field(default=10, ge=1)

    @model_validator(mode="after")
    def _check_delays(self) -> "SchedulerConfig":
        if self.min_delay_ms > self.max_delay_ms:
            raise ValueError("min_delay_ms must not exceed max_delay_ms")
        return self

    @classmethod
    def from_settings(cls, settings: Settings) -> "SchedulerConfig":
        return cls(
            pool_id=settings.pool_id,
            asset_id=settings.asset_id,
            min_delay_ms=settings.min_delay_ms,
            max_delay_ms=settings.max_delay_ms,
            trade_timeout_seconds=settings.trade_timeout_seconds,
            lookup_timeout_seconds=settings.lookup_timeout_seconds,
            pause_poll_seconds=settings.pause_poll_seconds,
            selection_policy=SelectionPolicy(settings.selection_policy),
            rebuy_ceiling=settings.rebuy_ceiling,
            max_consecutive_skips=settings.max_consecutive_skips,
            summary_every_buys=settings.summary_every_buys,
        )
