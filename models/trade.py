"""
Trade data models for the Volume Orchestrator.
"""

from typing import Optional, Dict
from pydantic import BaseModel, Field
from enum import Enum
from datetime import datetime


class TradeDirection(str, Enum):
    """Trade direction enumeration."""
    BUY = "buy"
    SELL = "sell"


class TradeStatus(str, Enum):
    """Outcome of a submitted trade."""
    CONFIRMED = "confirmed"
    FAILED = "failed"
    TIMEOUT = "timeout"


class TradeIntent(BaseModel):
    """A single trade request, consumed once by the execution gateway."""
    wallet: str
    direction: TradeDirection
    amount: int = Field(gt=0)  # atomic units: quote for buys, base for sells
    sequence: int = Field(ge=0)
    is_rebuy: bool = False
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        frozen = True


class TradeOutcome(BaseModel):
    """Result reported by the execution gateway."""
    status: TradeStatus
    signature: Optional[str] = None
    holding_amount: Optional[int] = None
    error_message: Optional[str] = None

    @property
    def confirmed(self) -> bool:
        return self.status == TradeStatus.CONFIRMED


class SchedulerState(str, Enum):
    """Trade scheduler lifecycle."""
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    DRAINING = "draining"
    STOPPED = "stopped"


class SessionSummary(BaseModel):
    """Aggregate view of a session, for logs and the control API."""
    state: SchedulerState
    buys: int = 0
    sells: int = 0
    rebuys: int = 0
    skips: int = 0
    failed_sell_sequences: int = 0
    next_sell_at: Optional[int] = None
    wallets: Dict[str, int] = Field(default_factory=dict)
    blacklisted: int = 0
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
