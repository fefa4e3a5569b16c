"""
Shared fixtures for the Volume Orchestrator tests.

Run with:
    pytest tests/ -v
"""

import random
import sys
from pathlib import Path
from typing import List

import pytest

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.control import RunControl
from core.paper_market import DEFAULT_LIQUIDITY, PaperMarket
from core.sell_trigger import build_sell_trigger
from core.sizing import build_sizing_policy
from core.wallet_ledger import WalletLedger
from models.liquidity import LiquidityState
from models.policy import SchedulerConfig, SellTriggerConfig, SellTriggerMode, SizingConfig
from models.wallet import SelectionPolicy, WalletConfig
from strategies.volume_scheduler import build_scheduler

FUNDED = 2_000_000_000  # 2 whole quote units


def make_wallets(count: int) -> List[WalletConfig]:
    return [
        WalletConfig(address=f"Wallet{i:02d}" + "x" * 32, name=f"Wallet {i}")
        for i in range(1, count + 1)
    ]


class SleepRecorder:
    """Awaitable stand-in for asyncio.sleep that returns immediately."""

    def __init__(self):
        self.calls: List[float] = []
        self.hook = None

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        if self.hook is not None:
            self.hook(seconds)


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def liquidity():
    return LiquidityState(**DEFAULT_LIQUIDITY)


@pytest.fixture
def small_pool():
    return LiquidityState(virtual_base=1_000_000, virtual_quote=1_000_000_000, real_base=900_000, real_quote=0)


@pytest.fixture
def sleep():
    return SleepRecorder()


@pytest.fixture
def scheduler_config():
    return SchedulerConfig(
        min_delay_ms=0,
        max_delay_ms=0,
        trade_timeout_seconds=0.05,
        lookup_timeout_seconds=0.05,
        pause_poll_seconds=0.01,
        selection_policy=SelectionPolicy.ROUND_ROBIN,
        rebuy_ceiling=10,
        max_consecutive_skips=2,
        summary_every_buys=5,
    )


@pytest.fixture
def fixed_trigger_config():
    """Sell one wallet after every two buys, no waiting between sells."""
    return SellTriggerConfig(
        mode=SellTriggerMode.FIXED,
        fixed_interval=2,
        fixed_sells=1,
        sell_delay_ms=(0, 0),
        retry_after_buys=(1, 1),
    )


@pytest.fixture
def make_scheduler(rng, liquidity, sleep, scheduler_config, fixed_trigger_config):
    """Factory wiring a scheduler to a funded paper market."""

    def factory(wallet_count=3, balances=None, trigger_config=None, sizing_config=None,
                config=None, control=None, market=None):
        wallets = make_wallets(wallet_count)
        config = config or scheduler_config
        ledger = WalletLedger.from_selection(wallets, rebuy_ceiling=config.rebuy_ceiling, rng=rng)
        if market is None:
            market = PaperMarket.for_wallets([w.address for w in wallets], FUNDED, liquidity=liquidity)
        for address, balance in (balances or {}).items():
            market.balances[address] = balance
        scheduler = build_scheduler(
            ledger,
            build_sizing_policy(sizing_config or SizingConfig(), rng),
            build_sell_trigger(trigger_config or fixed_trigger_config, rng),
            market,
            config=config,
            control=control or RunControl(),
            rng=rng,
            sleep=sleep,
        )
        return scheduler, market

    return factory
