"""
Settings configuration for the Volume Orchestrator.
"""

from typing import Optional, Tuple
from pydantic_settings import BaseSettings
from pydantic import Field
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


class Settings(BaseSettings):
    """Application settings."""

    # Asset Configuration
    pool_id: str = Field(default="", description="Liquidity pool / bonding curve identifier")
    asset_id: str = Field(default="", description="Mint of the traded asset")
    quote_decimals: int = 9
    base_decimals: int = 6

    # Logging
    log_level: str = Field(default="info")

    # Configuration Files
    wallets_file: str = Field(default="wallets.json")
    allocation_file: Optional[str] = Field(default=None)

    # Server Configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # Run Modes
    dry_run: bool = True
    gateway: Optional[str] = Field(default=None, description="module:factory returning the live execution backend")
    paper_quote_balance: int = 2_000_000_000  # per wallet, dry runs only
    sizing_mode: str = "dynamic"  # dynamic, deterministic
    sell_trigger_mode: str = "distribution"  # distribution, fixed

    # Pacing (milliseconds)
    min_delay_ms: int = 1500
    max_delay_ms: int = 6000

    # Timeouts (seconds)
    trade_timeout_seconds: float = 5.0
    lookup_timeout_seconds: float = 5.0
    pause_poll_seconds: float = 1.0

    # Sizing (atomic quote units unless noted)
    safety_reserve: int = 50_000_000
    min_trade_amount: int = 10_000_000
    max_buy_amount: int = 5_000_000_000
    large_balance_threshold: int = 5_000_000_000
    small_balance_threshold: int = 1_000_000_000
    max_supply_exposure: int = 29_000_000 * 10**6  # atomic base units
    low_reserve_threshold: int = 1_000_000 * 10**6  # atomic base units
    low_reserve_buy_cap: int = 200_000_000
    require_liquidity: bool = False  # no balance-only fallback when reserves are unreadable

    # Sell Trigger (distribution variant)
    sell_threshold_min: int = 4
    sell_threshold_max: int = 17
    sell_threshold_mean: float = 7.37
    sell_threshold_width: int = 2
    sell_threshold_weights: Tuple[float, float, float] = (0.70, 0.20, 0.10)  # central, outer, extreme
    consecutive_sells_min: int = 1
    consecutive_sells_max: int = 7
    consecutive_sells_mean: float = 2.95
    consecutive_sells_width: int = 1
    consecutive_sells_weights: Tuple[float, float, float] = (0.65, 0.25, 0.10)
    min_sell_delay_ms: int = 650
    max_sell_delay_ms: int = 2000
    min_retry_after_buys: int = 2
    max_retry_after_buys: int = 4

    # Sell Trigger (fixed variant)
    fixed_sell_interval: int = 8
    fixed_sells: int = 2

    # Wallet Lifecycle
    selection_policy: str = "random"  # random, round_robin
    rebuy_ceiling: int = 10
    max_consecutive_skips: int = 5

    # Reporting
    summary_every_buys: int = 10

    class Config:
        env_file = ".env"
        env_prefix = "VOLUME_"
        case_sensitive = False


# Global settings instance
settings = Settings()
