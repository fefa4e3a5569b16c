"""
Trade scheduler for the Volume Orchestrator.

Drives the buy cycle over the wallet ledger, fires sell sequences when the
buy counter reaches the drawn threshold, and keeps the run alive through
individual wallet failures. One tick is one buy attempt, possibly followed
by a sell sequence.
"""

import asyncio
import random
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel

from core.control import RunControl, Sleep
from core.errors import (
    LiquidityUnavailable,
    RebuyCeilingReached,
    SizingError,
    TransientError,
    WalletExhausted,
)
from core.interfaces import BalanceLookup, ExecutionGateway, HoldingLookup, LiquiditySource
from core.sell_trigger import SellTriggerPolicy
from core.sizing import SizingPolicy
from core.wallet_ledger import WalletLedger
from models.liquidity import LiquidityState
from models.policy import SchedulerConfig, SizingMode
from models.trade import SchedulerState, SessionSummary, TradeDirection, TradeIntent
from models.wallet import WalletRecord, WalletStatus
from strategies.base_strategy import BaseStrategy
from utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class CycleEntry:
    """A wallet queued for one buy attempt in the current cycle."""
    address: str
    is_rebuy: bool = False


class SessionState(BaseModel):
    """Counters and lifecycle of one session."""
    ledger: WalletLedger
    state: SchedulerState = SchedulerState.IDLE
    buy_counter: int = 0
    sell_counter: int = 0
    skip_counter: int = 0
    failed_sell_sequences: int = 0
    next_sell_at: int = 0
    sequence: int = 0
    paused: bool = False
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    class Config:
        arbitrary_types_allowed = True


class TradeScheduler(BaseStrategy):
    """Buy/sell state machine over a pool of wallets."""

    def __init__(
        self,
        ledger: WalletLedger,
        sizing: SizingPolicy,
        sell_trigger: SellTriggerPolicy,
        balances: BalanceLookup,
        holdings: HoldingLookup,
        liquidity: LiquiditySource,
        gateway: ExecutionGateway,
        config: Optional[SchedulerConfig] = None,
        control: Optional[RunControl] = None,
        rng: Optional[random.Random] = None,
        sleep: Optional[Sleep] = None,
    ):
        """
        Initialize trade scheduler.

        Args:
            ledger: Wallet pool for the session
            sizing: Buy sizing policy
            sell_trigger: Sell trigger policy
            balances: Quote balance lookup
            holdings: Asset holding lookup
            liquidity: Reserve snapshot source
            gateway: Trade submission gateway
            config: Pacing, timeout and lifecycle tunables
            control: Pause/stop flags shared with the control surfaces
            rng: Random source for pacing and cycle order
            sleep: Awaitable sleep, injectable for tests
        """
        super().__init__("VolumeScheduler")
        self.ledger = ledger
        self.sizing = sizing
        self.sell_trigger = sell_trigger
        self.balances = balances
        self.holdings = holdings
        self.liquidity = liquidity
        self.gateway = gateway
        self.config = config or SchedulerConfig()
        self.control = control or RunControl()
        self.rng = rng or random.Random()
        self._sleep: Sleep = sleep or asyncio.sleep

        self.session = SessionState(ledger=ledger)
        # Wallets still to buy in the current cycle, address -> is_rebuy
        self._pending: Dict[str, bool] = {}

    @property
    def state(self) -> SchedulerState:
        return self.session.state

    def _set_state(self, state: SchedulerState) -> None:
        if self.session.state != state:
            logger.debug("Scheduler state change", previous=self.session.state.value, state=state.value)
            self.session.state = state

    def _next_sequence(self) -> int:
        self.session.sequence += 1
        return self.session.sequence

    # Lifecycle

    async def initialize(self) -> bool:
        """Reconcile holdings, draw the first sell threshold and build the first cycle."""
        if not len(self.ledger):
            logger.error("❌ No wallets in the ledger, nothing to do")
            return False

        moved = await self.reconcile_holdings()
        if moved:
            logger.info("💼 Wallets already holding the asset", count=moved)

        self._pending = {r.address: False for r in self.ledger.available_for_buy()}

        self.session.next_sell_at = self.session.buy_counter + self.sell_trigger.next_sell_threshold()
        self.session.started_at = datetime.utcnow()

        logger.info("🚀 Session initialized",
                    wallets=len(self.ledger),
                    first_cycle=len(self._pending),
                    selection=self.config.selection_policy.value,
                    first_sell_after=self.session.next_sell_at,
                    sell_trigger=self.sell_trigger.describe(),
                    sizing=self.sizing.mode.value)
        return True

    async def reconcile_holdings(self) -> int:
        """
        Look up every wallet's holding concurrently and fold the results in.

        Returns:
            Number of wallets moved to ``Holding``
        """
        addresses = [record.address for record in self.ledger]
        results = await asyncio.gather(*(self._lookup_holding(address) for address in addresses))
        return self.ledger.merge_holdings(dict(zip(addresses, results)))

    async def _lookup_holding(self, address: str) -> Optional[int]:
        try:
            return await self.call_external(
                self.holdings.get_held_amount(address, self.config.asset_id),
                self.config.lookup_timeout_seconds,
                "holding lookup",
            )
        except TransientError as e:
            get_logger(__name__, wallet=address).warning("⚠️ Holding lookup failed", error=str(e))
            return None

    async def run(self, max_ticks: Optional[int] = None) -> SessionSummary:
        """
        Run until stopped, drained or ``max_ticks`` ticks have executed.

        Returns:
            Final session summary
        """
        if not await self.initialize():
            self._set_state(SchedulerState.STOPPED)
            return self.summary()

        self.is_running = True
        self._set_state(SchedulerState.RUNNING)
        ticks = 0
        try:
            while True:
                if await self._checkpoint():
                    logger.info("🛑 Stop requested, ending session")
                    break
                await self.serve_sell_request()
                if not await self.execute():
                    break
                ticks += 1
                if max_ticks is not None and ticks >= max_ticks:
                    logger.info("Tick limit reached", ticks=ticks)
                    break
        finally:
            self.is_running = False
            self._set_state(SchedulerState.STOPPED)
            self.session.finished_at = datetime.utcnow()
            self.log_summary("🏁 Session finished")

        return self.summary()

    async def _checkpoint(self) -> bool:
        """
        Honor the pause flag. Called before every trade attempt.

        Returns:
            True if a stop was requested
        """
        if self.control.is_paused and not self.control.stop_requested:
            previous = self.session.state
            self._set_state(SchedulerState.PAUSED)
            self.session.paused = True
            stopped = await self.control.wait_while_paused(self.config.pause_poll_seconds, self._sleep)
            self.session.paused = False
            if stopped:
                return True
            self._set_state(previous)
        return self.control.stop_requested

    async def stop(self) -> None:
        self.control.request_stop()

    # Buy cycle

    async def execute(self) -> bool:
        """
        Run one tick.

        Returns:
            False once no wallet can buy anymore
        """
        entry = await self._next_entry()
        if entry is None:
            if self.ledger.by_status(WalletStatus.HOLDING):
                # Holders could not be sold this tick, try them again on the next one
                await self._pace()
                return True
            self._drain()
            return False

        record = self.ledger.get(entry.address)
        expected = WalletStatus.USED_FOR_SELL if entry.is_rebuy else WalletStatus.AVAILABLE
        if record is None or record.status != expected:
            # Status changed after the wallet was queued
            return True

        await self._pace()
        if not await self._buy(entry, record):
            return True

        if self.session.buy_counter >= self.session.next_sell_at:
            await self.run_sell_sequence(last_buyer=entry.address)

        if self.session.buy_counter % self.config.summary_every_buys == 0:
            self.log_summary("📊 Progress")
        return True

    async def _next_entry(self) -> Optional[CycleEntry]:
        """
        Pick the next wallet of the cycle through the ledger's selection
        policy, starting a new cycle when the current one is used up.

        Returns None when no wallet can buy this tick.
        """
        while True:
            if not self._pending:
                self._pending = self._replenish_cycle()
                if not self._pending and self.ledger.by_status(WalletStatus.HOLDING):
                    # Nobody can buy, so the threshold would never be reached
                    logger.info("🔄 No wallet left to buy, selling from holders to free rebuys")
                    if await self.run_sell_sequence(last_buyer=self.ledger.last_buyer):
                        self._pending = self._replenish_cycle()
                if not self._pending:
                    return None

            record = self.ledger.select(self.config.selection_policy, among=self._pending)
            if record is None:
                # Every queued wallet changed status after it was queued
                self._pending = {}
                continue
            return CycleEntry(record.address, is_rebuy=self._pending.pop(record.address))

    def _replenish_cycle(self) -> Dict[str, bool]:
        """
        Next buy cycle: sold-out wallets coming back for a rebuy plus
        available wallets whose earlier attempts were skipped.
        """
        entries: Dict[str, bool] = {}

        for record in self.ledger.by_status(WalletStatus.AVAILABLE):
            if record.consecutive_skips >= self.config.max_consecutive_skips:
                self.ledger.mark_blacklisted(record.address, f"sustained sizing failure: {record.last_error}")
            else:
                entries[record.address] = False

        for record in self.ledger.rebuy_candidates():
            if record.rebuy_count >= self.config.rebuy_ceiling:
                error = RebuyCeilingReached(f"rebuy ceiling {self.config.rebuy_ceiling} reached", record.address)
                self.ledger.mark_blacklisted(record.address, str(error))
                continue
            entries[record.address] = True

        if entries:
            logger.info("🔄 New buy cycle",
                        wallets=len(entries),
                        rebuys=sum(1 for is_rebuy in entries.values() if is_rebuy))
        return entries

    def _drain(self) -> None:
        self._set_state(SchedulerState.DRAINING)
        holders = self.ledger.by_status(WalletStatus.HOLDING)
        logger.info("🏁 No wallet left to buy, draining",
                    holding=[r.short_address for r in holders],
                    blacklisted=len(self.ledger.by_status(WalletStatus.BLACKLISTED)))

    async def _pace(self) -> None:
        delay_ms = self.rng.randint(self.config.min_delay_ms, self.config.max_delay_ms)
        await self._sleep(delay_ms / 1000)

    async def _read_liquidity(self) -> Optional[LiquidityState]:
        try:
            return await self.call_external(
                self.liquidity.get_liquidity_state(self.config.pool_id),
                self.config.lookup_timeout_seconds,
                "liquidity snapshot",
            )
        except TransientError as e:
            logger.warning("⚠️ Reserves unreadable", error=str(e))
            return None

    async def _buy(self, entry: CycleEntry, record: WalletRecord) -> bool:
        log = get_logger(__name__, wallet=record.address)

        try:
            balance = await self.call_external(
                self.balances.get_spendable_balance(record.address),
                self.config.lookup_timeout_seconds,
                "balance lookup",
            )
        except TransientError as e:
            self._skip(record, str(e), retires=False)
            return False

        liquidity = await self._read_liquidity()

        try:
            amount = self.sizing.size_buy(record, liquidity, balance)
        except LiquidityUnavailable as e:
            log.error("❌ Sizing aborted for this tick", error=str(e))
            self._skip(record, str(e), retires=False)
            return False
        except WalletExhausted as e:
            self._skip(record, str(e), retires=False)
            return False
        except SizingError as e:
            if entry.is_rebuy:
                self.ledger.mark_blacklisted(record.address, f"rebuy sizing: {e}")
                self.session.skip_counter += 1
            else:
                # Only dynamic sizing retires a wallet that keeps sizing under the minimum
                self._skip(record, str(e), retires=self.sizing.mode == SizingMode.DYNAMIC)
            return False

        intent = TradeIntent(
            wallet=record.address,
            direction=TradeDirection.BUY,
            amount=amount,
            sequence=self._next_sequence(),
            is_rebuy=entry.is_rebuy,
        )
        outcome = await self.submit_trade(self.gateway, intent, self.config.trade_timeout_seconds)
        if not outcome.confirmed:
            self._skip(record, outcome.error_message or outcome.status.value, retires=False)
            return False

        held = outcome.holding_amount
        if held is None:
            held = await self._lookup_holding(record.address)

        self.ledger.mark_holding(record.address, held, amount, is_rebuy=entry.is_rebuy)
        self.session.buy_counter += 1
        log.info("🟢 Buy recorded",
                 buys=self.session.buy_counter,
                 next_sell_at=self.session.next_sell_at,
                 rebuy=entry.is_rebuy,
                 rebuy_count=record.rebuy_count)
        return True

    def _skip(self, record: WalletRecord, reason: str, retires: bool) -> None:
        self.ledger.record_skip(record.address, reason, retires=retires)
        self.session.skip_counter += 1
        get_logger(__name__, wallet=record.address).warning(
            "⏭️ Skipped", reason=reason, consecutive=record.consecutive_skips)

    # Sell sequence

    async def run_sell_sequence(self, last_buyer: Optional[str] = None) -> int:
        """
        Sell from a run of holding wallets, then schedule the next sequence.

        Returns:
            Number of successful sells
        """
        eligible = self.ledger.eligible_for_sell()
        planned = self.sell_trigger.consecutive_sells(len(eligible))
        logger.info("🔴 Sell sequence triggered",
                    buys=self.session.buy_counter, planned=planned, holding=len(eligible))

        successful = 0
        for i in range(planned):
            if await self._checkpoint():
                break

            # The most recent buyer stays excluded for the whole sequence
            sold = await self._sell_one(last_buyer)
            if sold is None:
                logger.warning(f"⚠️ Sell {i + 1}/{planned} found no seller, ending sequence")
                break

            successful += 1
            if i < planned - 1:
                await self._sleep(self.sell_trigger.inter_sell_delay() / 1000)

        if successful:
            offset = self.sell_trigger.next_sell_threshold()
            logger.info("✅ Sell sequence complete", sold=successful, next_sell_in=offset)
        else:
            offset = self.sell_trigger.retry_after_failure()
            self.session.failed_sell_sequences += 1
            logger.warning("⚠️ Sell sequence failed, retrying later", retry_in=offset)
        self.session.next_sell_at = self.session.buy_counter + offset
        return successful

    async def _sell_one(self, excluding: Optional[str]) -> Optional[str]:
        """Sell from one wallet, trying other candidates on failure. Returns the seller."""
        tried: List[str] = []
        for _ in range(len(self.ledger.eligible_for_sell())):
            record = self.ledger.pick_for_sell(excluding=excluding, skip=tried)
            if record is None:
                break
            tried.append(record.address)
            if await self._sell(record):
                return record.address
        return None

    async def serve_sell_request(self) -> int:
        """
        Sell from the most recent buyers if a manual sell was requested.

        Runs on the control loop between attempts. The sell threshold is left
        untouched.

        Returns:
            Number of successful sells
        """
        count = self.control.take_sell_request()
        if count is None:
            return 0

        targets = self.ledger.recent_buyers(count)
        logger.info("🔴 Selling recent buyers on request", requested=count,
                    wallets=[r.short_address for r in targets])

        successful = 0
        for i, record in enumerate(targets):
            if i and await self._checkpoint():
                break
            if record.status != WalletStatus.HOLDING:
                continue
            if await self._sell(record):
                successful += 1
            if i < len(targets) - 1:
                await self._sleep(self.sell_trigger.inter_sell_delay() / 1000)

        logger.info("✅ Requested sells complete", sold=successful, requested=count)
        return successful

    async def _sell(self, record: WalletRecord) -> bool:
        log = get_logger(__name__, wallet=record.address)

        try:
            held = await self.call_external(
                self.holdings.get_held_amount(record.address, self.config.asset_id),
                self.config.lookup_timeout_seconds,
                "holding lookup",
            )
        except TransientError as e:
            log.warning("⚠️ Holding lookup failed, using last known balance", error=str(e))
            held = None
            fallback = record.last_known_token_balance
        else:
            fallback = record.last_known_token_balance if held is None else held

        if held == 0:
            # Confirmed empty: nothing to sell, send it back for a rebuy
            self.ledger.mark_used_for_sell(record.address, sold=False)
            self._skip(record, "holding is empty", retires=False)
            return False
        if not fallback or fallback <= 0:
            self._skip(record, "holding unknown", retires=False)
            return False

        intent = TradeIntent(
            wallet=record.address,
            direction=TradeDirection.SELL,
            amount=fallback,
            sequence=self._next_sequence(),
        )
        outcome = await self.submit_trade(self.gateway, intent, self.config.trade_timeout_seconds)
        if not outcome.confirmed:
            self._skip(record, outcome.error_message or outcome.status.value, retires=False)
            return False

        self.ledger.mark_used_for_sell(record.address)
        self.session.sell_counter += 1
        log.info("🔴 Sell recorded", sells=self.session.sell_counter, amount=fallback,
                 status=record.status.value)
        return True

    # Reporting

    def summary(self) -> SessionSummary:
        counts: Dict[str, int] = self.ledger.status_counts()
        return SessionSummary(
            state=self.session.state,
            buys=self.session.buy_counter,
            sells=self.session.sell_counter,
            rebuys=self.ledger.total_rebuys,
            skips=self.session.skip_counter,
            failed_sell_sequences=self.session.failed_sell_sequences,
            next_sell_at=self.session.next_sell_at,
            wallets=counts,
            blacklisted=counts[WalletStatus.BLACKLISTED.value],
            started_at=self.session.started_at,
            finished_at=self.session.finished_at,
        )

    def log_summary(self, title: str) -> None:
        summary = self.summary()
        logger.info(title,
                    state=summary.state.value,
                    buys=summary.buys,
                    sells=summary.sells,
                    rebuys=summary.rebuys,
                    skips=summary.skips,
                    next_sell_at=summary.next_sell_at,
                    wallets=summary.wallets)


def build_scheduler(
    ledger: WalletLedger,
    sizing: SizingPolicy,
    sell_trigger: SellTriggerPolicy,
    market,
    config: Optional[SchedulerConfig] = None,
    control: Optional[RunControl] = None,
    rng: Optional[random.Random] = None,
    sleep: Optional[Sleep] = None,
) -> TradeScheduler:
    """Scheduler wired to a single object implementing every external interface."""
    return TradeScheduler(
        ledger=ledger,
        sizing=sizing,
        sell_trigger=sell_trigger,
        balances=market,
        holdings=market,
        liquidity=market,
        gateway=market,
        config=config,
        control=control,
        rng=rng,
        sleep=sleep,
    )
