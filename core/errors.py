"""
Error taxonomy for the Volume Orchestrator.

None of these ever escape the scheduler's run loop; each one maps to a skip,
a blacklist or the end of one tick.
"""

from typing import Optional


class VolumeBotError(Exception):
    """Base class for orchestration errors."""

    def __init__(self, message: str, wallet: Optional[str] = None):
        super().__init__(message)
        self.wallet = wallet


class TransientError(VolumeBotError):
    """Network failure or temporary condition; the next scheduled attempt retries."""


class TradeTimeout(TransientError):
    """An external call did not answer within its timeout."""


class WalletExhausted(VolumeBotError):
    """Insufficient spendable balance or zero holdings."""


class RebuyCeilingReached(VolumeBotError):
    """The wallet has used up its rebuys for this session."""


class SizingError(VolumeBotError):
    """No usable trade amount could be computed."""


class NoAllocation(SizingError):
    """Deterministic sizing has no entry for the wallet."""


class BelowMinimumTrade(SizingError):
    """The computed amount is below the minimum trade size."""

    def __init__(self, amount: int, minimum: int, wallet: Optional[str] = None):
        super().__init__(f"amount {amount} below minimum trade {minimum}", wallet)
        self.amount = amount
        self.minimum = minimum


class LiquidityUnavailable(VolumeBotError):
    """Reserves could not be read and no fallback exists; aborts the current tick only."""
