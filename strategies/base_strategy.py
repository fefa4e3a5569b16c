"""
Base strategy class for the Volume Orchestrator.
"""

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Awaitable, TypeVar

from core.errors import TradeTimeout, TransientError
from core.interfaces import ExecutionGateway
from models.trade import TradeIntent, TradeOutcome, TradeStatus
from utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class BaseStrategy(ABC):
    """Base class for all trading strategies."""

    def __init__(self, strategy_name: str):
        """
        Initialize base strategy.

        Args:
            strategy_name: Name of the strategy
        """
        self.strategy_name = strategy_name
        self.is_running = False
        self.last_update = datetime.utcnow()

    @abstractmethod
    async def initialize(self) -> bool:
        """
        Prepare the strategy for a run.

        Returns:
            True if initialization successful
        """
        pass

    @abstractmethod
    async def execute(self) -> bool:
        """
        Execute one step of the strategy.

        Returns:
            False once there is nothing left to do
        """
        pass

    @abstractmethod
    async def stop(self) -> None:
        """Stop the strategy."""
        pass

    async def call_external(self, call: Awaitable[T], timeout: float, what: str) -> T:
        """
        Await an external call under a timeout.

        Args:
            call: Awaitable returned by an external collaborator
            timeout: Seconds to wait
            what: Short description for error messages

        Returns:
            The call's result

        Raises:
            TradeTimeout: The call did not finish in time
            TransientError: The call raised
        """
        try:
            return await asyncio.wait_for(call, timeout=timeout)
        except asyncio.TimeoutError as e:
            raise TradeTimeout(f"{what} timed out after {timeout}s") from e
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise TransientError(f"{what} failed: {e}") from e

    async def submit_trade(
        self,
        gateway: ExecutionGateway,
        intent: TradeIntent,
        timeout: float,
    ) -> TradeOutcome:
        """
        Submit a trade and wait a bounded time for its outcome.

        Never raises for gateway failures; they come back as a failed or
        timed-out outcome.
        """
        logger.info(f"📤 Submitting {intent.direction.value.upper()} #{intent.sequence}",
                    wallet=intent.wallet, amount=intent.amount, rebuy=intent.is_rebuy)
        try:
            outcome = await self.call_external(gateway.submit(intent), timeout, "trade submission")
        except TradeTimeout as e:
            logger.warning(f"⏱️ Trade #{intent.sequence} timed out", wallet=intent.wallet, error=str(e))
            return TradeOutcome(status=TradeStatus.TIMEOUT, error_message=str(e))
        except TransientError as e:
            logger.error(f"❌ Trade #{intent.sequence} failed", wallet=intent.wallet, error=str(e))
            return TradeOutcome(status=TradeStatus.FAILED, error_message=str(e))

        self.last_update = datetime.utcnow()
        if outcome.confirmed:
            logger.info(f"✅ Trade #{intent.sequence} confirmed", wallet=intent.wallet,
                        signature=outcome.signature, holding=outcome.holding_amount)
        else:
            logger.warning(f"⚠️ Trade #{intent.sequence} not confirmed", wallet=intent.wallet,
                           status=outcome.status.value, error=outcome.error_message)
        return outcome
