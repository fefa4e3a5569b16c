"""
Paper market for dry runs of the Volume Orchestrator.

Simulates a constant-product pool together with wallet balances and
holdings, and implements every external interface the scheduler needs.
No real funds move. Failures and hung submissions can be injected per
wallet.
"""

import asyncio
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Set

from core.interfaces import BalanceLookup, ExecutionGateway, HoldingLookup, LiquiditySource
from core.quote_engine import apply_buy, apply_sell, quote_buy, quote_sell
from models.liquidity import LiquidityState
from models.trade import TradeDirection, TradeIntent, TradeOutcome, TradeStatus
from utils.helpers import generate_signature
from utils.logger import get_logger

logger = get_logger(__name__)

# Fresh bonding-curve reserves, atomic units
DEFAULT_LIQUIDITY = dict(
    virtual_base=1_073_000_000 * 10**6,
    virtual_quote=30 * 10**9,
    real_base=793_100_000 * 10**6,
    real_quote=0,
)


@dataclass
class PaperStats:
    """Aggregate statistics for a paper session."""
    buys: int = 0
    sells: int = 0
    failures: int = 0
    quote_in: int = 0
    quote_out: int = 0
    fees: int = 0


@dataclass
class PaperFill:
    """One filled paper trade."""
    sequence: int
    wallet: str
    direction: str
    amount: int
    received: int
    signature: str


class PaperMarket(BalanceLookup, HoldingLookup, LiquiditySource, ExecutionGateway):
    """In-memory pool, balances and holdings."""

    def __init__(
        self,
        liquidity: LiquidityState,
        balances: Optional[Dict[str, int]] = None,
        holdings: Optional[Dict[str, int]] = None,
        fee: int = 5_000,
        hang_seconds: float = 3600.0,
    ):
        self.liquidity = liquidity
        self.balances: Dict[str, int] = dict(balances or {})
        self.holdings: Dict[str, int] = dict(holdings or {})
        self.fee = fee
        self.hang_seconds = hang_seconds

        # Failure injection
        self.failing_wallets: Set[str] = set()
        self.hanging_wallets: Set[str] = set()
        self.unreadable_balances: Set[str] = set()
        self.liquidity_unavailable = False

        self.submitted: List[TradeIntent] = []
        self.fills: List[PaperFill] = []
        self.stats = PaperStats()

    @classmethod
    def for_wallets(
        cls,
        addresses: Iterable[str],
        quote_balance: int,
        liquidity: Optional[LiquidityState] = None,
    ) -> "PaperMarket":
        """Paper market with every wallet funded with ``quote_balance``."""
        market = cls(
            liquidity=liquidity or LiquidityState(**DEFAULT_LIQUIDITY),
            balances={address: quote_balance for address in addresses},
        )
        logger.info("Paper market ready", wallets=len(market.balances), quote_balance=quote_balance,
                    virtual_base=market.liquidity.virtual_base, virtual_quote=market.liquidity.virtual_quote)
        return market

    async def get_spendable_balance(self, wallet: str) -> int:
        if wallet in self.unreadable_balances:
            raise ConnectionError(f"balance lookup failed for {wallet}")
        return self.balances.get(wallet, 0)

    async def get_held_amount(self, wallet: str, asset: str) -> Optional[int]:
        return self.holdings.get(wallet)

    async def get_liquidity_state(self, pool: str) -> LiquidityState:
        if self.liquidity_unavailable:
            raise ConnectionError(f"pool {pool or '<default>'} unreadable")
        return self.liquidity

    async def submit(self, intent: TradeIntent) -> TradeOutcome:
        self.submitted.append(intent)

        if intent.wallet in self.hanging_wallets:
            await asyncio.sleep(self.hang_seconds)
        if intent.wallet in self.failing_wallets:
            return self._fail("simulated rejection")

        if intent.direction == TradeDirection.BUY:
            return self._fill_buy(intent)
        return self._fill_sell(intent)

    def _fail(self, reason: str) -> TradeOutcome:
        self.stats.failures += 1
        return TradeOutcome(status=TradeStatus.FAILED, error_message=reason)

    def _fill_buy(self, intent: TradeIntent) -> TradeOutcome:
        balance = self.balances.get(intent.wallet, 0)
        if intent.amount + self.fee > balance:
            return self._fail("insufficient balance")

        base_out = quote_buy(self.liquidity, intent.amount)
        if base_out <= 0:
            return self._fail("no output at current reserves")

        self.liquidity = apply_buy(self.liquidity, intent.amount)
        self.balances[intent.wallet] = balance - intent.amount - self.fee
        held = self.holdings.get(intent.wallet, 0) + base_out
        self.holdings[intent.wallet] = held

        self.stats.buys += 1
        self.stats.quote_in += intent.amount
        self.stats.fees += self.fee
        return self._record(intent, base_out, held)

    def _fill_sell(self, intent: TradeIntent) -> TradeOutcome:
        held = self.holdings.get(intent.wallet, 0)
        if intent.amount > held:
            return self._fail("sell exceeds holdings")
        if self.balances.get(intent.wallet, 0) < self.fee:
            return self._fail("insufficient balance for fee")

        quote_out = quote_sell(self.liquidity, intent.amount)
        self.liquidity = apply_sell(self.liquidity, intent.amount)
        self.balances[intent.wallet] = self.balances.get(intent.wallet, 0) + quote_out - self.fee
        self.holdings[intent.wallet] = held - intent.amount

        self.stats.sells += 1
        self.stats.quote_out += quote_out
        self.stats.fees += self.fee
        return self._record(intent, quote_out, held - intent.amount)

    def _record(self, intent: TradeIntent, received: int, held: int) -> TradeOutcome:
        signature = generate_signature(intent.sequence)
        self.fills.append(PaperFill(
            sequence=intent.sequence,
            wallet=intent.wallet,
            direction=intent.direction.value,
            amount=intent.amount,
            received=received,
            signature=signature,
        ))
        logger.debug("Paper fill", sequence=intent.sequence, direction=intent.direction.value,
                     amount=intent.amount, received=received)
        return TradeOutcome(status=TradeStatus.CONFIRMED, signature=signature, holding_amount=held)
