"""
Wallet pool bookkeeping for the Volume Orchestrator.

The ledger owns every wallet record for a session. Records are never
deleted: blacklisted and sold-out wallets stay visible for the summary.
Only the scheduler's control loop mutates it.
"""

import random
from datetime import datetime
from typing import Dict, Iterable, Iterator, List, Optional

from models.wallet import (
    SelectionMode,
    SelectionPolicy,
    WalletConfig,
    WalletRecord,
    WalletSelection,
    WalletStatus,
)
from utils.logger import get_logger

logger = get_logger(__name__)


class WalletLedger:
    """Tracks status, rebuy counts and holdings for the session's wallets."""

    def __init__(self, rebuy_ceiling: int = 10, rng: Optional[random.Random] = None):
        self.rebuy_ceiling = rebuy_ceiling
        self.records: Dict[str, WalletRecord] = {}
        self._rng = rng or random.Random()
        self._cursor = 0  # Index of the last round-robin pick
        self._buy_order: List[str] = []

    @classmethod
    def from_selection(
        cls,
        wallets: List[WalletConfig],
        selection: Optional[WalletSelection] = None,
        rebuy_ceiling: int = 10,
        rng: Optional[random.Random] = None,
    ) -> "WalletLedger":
        """Build a ledger holding only the participants picked by ``selection``."""
        ledger = cls(rebuy_ceiling=rebuy_ceiling, rng=rng)
        enabled = [(i + 1, w) for i, w in enumerate(wallets) if w.enabled]
        for index, config in select_participants(enabled, selection or WalletSelection(), ledger._rng):
            ledger.register(config, index=index)
        logger.info("Wallet ledger initialized", wallets=len(ledger), rebuy_ceiling=rebuy_ceiling)
        return ledger

    def register(self, config: WalletConfig, index: Optional[int] = None) -> WalletRecord:
        """Add a wallet to the ledger. Registering the same address twice returns the existing record."""
        existing = self.records.get(config.address)
        if existing:
            logger.warning("Duplicate wallet ignored", wallet=existing.short_address)
            return existing

        record = WalletRecord(
            address=config.address,
            index=index or len(self.records) + 1,
            name=config.name,
            signer_ref=config.signer_ref,
        )
        self.records[config.address] = record
        return record

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[WalletRecord]:
        return iter(self.records.values())

    def __contains__(self, address: str) -> bool:
        return address in self.records

    def get(self, address: str) -> Optional[WalletRecord]:
        return self.records.get(address)

    def _require(self, address: str) -> WalletRecord:
        record = self.records.get(address)
        if record is None:
            raise KeyError(f"Unknown wallet {address}")
        return record

    def by_status(self, *statuses: WalletStatus) -> List[WalletRecord]:
        return [r for r in self.records.values() if r.status in statuses]

    @property
    def last_buyer(self) -> Optional[str]:
        return self._buy_order[-1] if self._buy_order else None

    def recent_buyers(self, count: int) -> List[WalletRecord]:
        """Up to ``count`` holding wallets, most recent buy first."""
        picked: Dict[str, WalletRecord] = {}
        for address in reversed(self._buy_order):
            if len(picked) >= count:
                break
            record = self.records[address]
            if record.status == WalletStatus.HOLDING and address not in picked:
                picked[address] = record
        return list(picked.values())

    # Selection

    def available_for_buy(self, max_consecutive_skips: Optional[int] = None) -> List[WalletRecord]:
        """Wallets in ``Available`` that have not been retired by repeated skips."""
        return [
            r for r in self.by_status(WalletStatus.AVAILABLE)
            if max_consecutive_skips is None or r.consecutive_skips < max_consecutive_skips
        ]

    def select(
        self,
        policy: SelectionPolicy = SelectionPolicy.ROUND_ROBIN,
        among: Optional[Iterable[str]] = None,
    ) -> Optional[WalletRecord]:
        """
        Next wallet that may open a position, or None if none is available.

        Args:
            policy: Round-robin by wallet index, or uniformly random
            among: Restrict the pick to these addresses. Wallets waiting for
                a rebuy qualify here as well as available ones.
        """
        if among is None:
            candidates = self.available_for_buy()
        else:
            queued = set(among)
            candidates = [
                r for r in self.by_status(WalletStatus.AVAILABLE, WalletStatus.USED_FOR_SELL)
                if r.address in queued
            ]
        if not candidates:
            logger.warning("No available wallets")
            return None

        if policy == SelectionPolicy.RANDOM:
            selected = self._rng.choice(candidates)
        else:
            ordered = sorted(candidates, key=lambda r: r.index)
            selected = next((r for r in ordered if r.index > self._cursor), ordered[0])
            self._cursor = selected.index

        logger.debug("Selected wallet", wallet=selected.short_address, policy=policy.value)
        return selected

    def rebuy_candidates(self) -> List[WalletRecord]:
        """Wallets that sold out and may re-enter the buy cycle."""
        return self.by_status(WalletStatus.USED_FOR_SELL)

    def eligible_for_sell(self, excluding: Optional[str] = None) -> List[WalletRecord]:
        """
        Holding wallets ordered by index.

        ``excluding`` is dropped from the set unless it is the only eligible
        wallet left, in which case it is returned as the fallback.
        """
        holding = self.by_status(WalletStatus.HOLDING)
        if excluding is None:
            return holding

        others = [r for r in holding if r.address != excluding]
        if others:
            return others
        return holding

    def pick_for_sell(self, excluding: Optional[str] = None, skip: Iterable[str] = ()) -> Optional[WalletRecord]:
        """Random wallet from :meth:`eligible_for_sell`, ignoring addresses in ``skip``."""
        skipped = set(skip)
        candidates = [r for r in self.eligible_for_sell(excluding) if r.address not in skipped]
        if not candidates and excluding is not None and excluding not in skipped:
            fallback = self.get(excluding)
            if fallback and fallback.status == WalletStatus.HOLDING:
                logger.info("Only the most recent wallet is eligible, using it as fallback",
                            wallet=fallback.short_address)
                return fallback
        if not candidates:
            return None
        return self._rng.choice(candidates)

    # Transitions

    def mark_holding(
        self,
        address: str,
        balance: Optional[int],
        amount: Optional[int] = None,
        is_rebuy: bool = False,
    ) -> WalletRecord:
        """Record a confirmed buy."""
        record = self._require(address)
        if record.status == WalletStatus.BLACKLISTED:
            raise ValueError(f"Blacklisted wallet {record.short_address} cannot hold a new position")

        if is_rebuy:
            if record.status != WalletStatus.USED_FOR_SELL:
                raise ValueError(f"Wallet {record.short_address} is not waiting for a rebuy")
            record.rebuy_count += 1

        record.status = WalletStatus.HOLDING
        if balance is not None:
            record.last_known_token_balance = balance
        if amount is not None:
            if record.original_buy_amount is None:
                record.original_buy_amount = amount
            record.last_buy_amount = amount
            record.total_bought += amount
        record.buys += 1
        record.consecutive_skips = 0
        record.last_error = None
        record.last_activity = datetime.utcnow()
        self._buy_order.append(address)
        return record

    def mark_used_for_sell(self, address: str, sold: bool = True) -> WalletRecord:
        """
        Record a confirmed sell. A wallet at its rebuy ceiling is retired instead.

        ``sold=False`` releases a wallet found holding nothing without counting a sell.
        """
        record = self._require(address)
        if record.status != WalletStatus.HOLDING:
            raise ValueError(f"Wallet {record.short_address} is not holding ({record.status.value})")

        record.status = WalletStatus.USED_FOR_SELL
        record.last_known_token_balance = 0
        if sold:
            record.sells += 1
        record.last_activity = datetime.utcnow()

        if record.rebuy_count >= self.rebuy_ceiling:
            self.mark_blacklisted(address, f"rebuy ceiling {self.rebuy_ceiling} reached")
        return record

    def mark_blacklisted(self, address: str, reason: str = "") -> WalletRecord:
        """Permanently retire a wallet for the session."""
        record = self._require(address)
        if record.status == WalletStatus.BLACKLISTED:
            return record
        record.status = WalletStatus.BLACKLISTED
        record.blacklist_reason = reason or None
        record.last_activity = datetime.utcnow()
        logger.warning("Wallet blacklisted", wallet=record.short_address, reason=reason)
        return record

    def record_skip(self, address: str, reason: str, retires: bool = True) -> WalletRecord:
        """
        Count a skipped attempt.

        Args:
            address: Wallet address
            reason: Why the attempt was skipped
            retires: Whether the skip counts toward retiring the wallet
        """
        record = self._require(address)
        record.skip_count += 1
        if retires:
            record.consecutive_skips += 1
        record.last_error = reason
        return record

    def merge_holdings(self, holdings: Dict[str, Optional[int]]) -> int:
        """
        Fold looked-up holdings into the ledger.

        Available wallets that already hold the asset become ``Holding``.

        Returns:
            Number of wallets moved to ``Holding``
        """
        moved = 0
        for address, amount in holdings.items():
            record = self.records.get(address)
            if record is None or not amount or amount <= 0:
                continue
            record.last_known_token_balance = amount
            if record.status == WalletStatus.AVAILABLE:
                record.status = WalletStatus.HOLDING
                moved += 1
        return moved

    def status_counts(self) -> Dict[str, int]:
        counts = {status.value: 0 for status in WalletStatus}
        for record in self.records.values():
            counts[record.status.value] += 1
        return counts

    @property
    def total_rebuys(self) -> int:
        return sum(r.rebuy_count for r in self.records.values())


def select_participants(
    wallets: List[tuple],
    selection: WalletSelection,
    rng: Optional[random.Random] = None,
) -> List[tuple]:
    """
    Pick the wallets that take part in a run.

    Args:
        wallets: ``(index, WalletConfig)`` pairs, indices 1-based
        selection: Selection mode and its parameters
        rng: Random source for random selection

    Returns:
        Selected ``(index, WalletConfig)`` pairs
    """
    if not wallets:
        logger.error("No wallets available for selection")
        return []

    rng = rng or random.Random()

    if selection.mode == SelectionMode.RANDOM:
        count = min(selection.count, len(wallets))
        if count == len(wallets):
            return list(wallets)
        chosen = rng.sample(wallets, count)
        logger.info("Randomly selected wallets", indices=[i for i, _ in chosen])
        return chosen

    if selection.mode == SelectionMode.SPECIFIC:
        by_index = dict(wallets)
        valid = []
        for idx in selection.indices:
            if idx in by_index and idx not in valid:
                valid.append(idx)
        if not valid:
            logger.warning("No valid wallet indices provided, using first wallet")
            return [wallets[0]]
        logger.info("Selected specific wallets", indices=valid)
        return [(idx, by_index[idx]) for idx in valid]

    return list(wallets)
