"""
Boundaries to the external collaborators of the Volume Orchestrator.

Signing, transaction building, submission and account lookups live behind
these interfaces. Every implementation is treated as fallible: the scheduler
wraps each call in a timeout and turns any exception into a skip.
"""

from abc import ABC, abstractmethod
from typing import Optional

from models.liquidity import LiquidityState
from models.trade import TradeIntent, TradeOutcome


class BalanceLookup(ABC):
    """Spendable quote balance of a wallet."""

    @abstractmethod
    async def get_spendable_balance(self, wallet: str) -> int:
        """Quote balance in atomic units. Raises on lookup failure."""


class HoldingLookup(ABC):
    """Amount of the traded asset a wallet holds."""

    @abstractmethod
    async def get_held_amount(self, wallet: str, asset: str) -> Optional[int]:
        """Held base amount in atomic units, or None if the wallet has no holding account."""


class LiquiditySource(ABC):
    """Reserve snapshots of the priced pool."""

    @abstractmethod
    async def get_liquidity_state(self, pool: str) -> LiquidityState:
        """Current reserves. Raises when the pool cannot be read."""


class ExecutionGateway(ABC):
    """Builds, signs and submits trades."""

    @abstractmethod
    async def submit(self, intent: TradeIntent) -> TradeOutcome:
        """Submit one trade and report its outcome."""
