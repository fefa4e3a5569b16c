"""
Wallet data models for the Volume Orchestrator.
"""

from typing import Optional, List
from pydantic import BaseModel, Field
from enum import Enum
from datetime import datetime

from utils.helpers import short_address


class WalletStatus(str, Enum):
    """Wallet lifecycle status."""
    AVAILABLE = "available"
    HOLDING = "holding"
    USED_FOR_SELL = "used_for_sell"
    BLACKLISTED = "blacklisted"


class WalletConfig(BaseModel):
    """
    Wallet configuration model.

    The signing authority stays with the external signer; only a reference
    to it is kept here.
    """
    address: str
    name: Optional[str] = None
    signer_ref: Optional[str] = None
    enabled: bool = True


class WalletRecord(BaseModel):
    """Per-wallet state tracked by the ledger for one session."""
    address: str
    index: int = Field(ge=1)
    name: Optional[str] = None
    signer_ref: Optional[str] = None
    status: WalletStatus = WalletStatus.AVAILABLE
    rebuy_count: int = Field(default=0, ge=0)
    last_known_token_balance: Optional[int] = None
    original_buy_amount: Optional[int] = None
    last_buy_amount: Optional[int] = None
    total_bought: int = 0
    buys: int = 0
    sells: int = 0
    skip_count: int = 0
    consecutive_skips: int = 0
    last_error: Optional[str] = None
    blacklist_reason: Optional[str] = None
    last_activity: Optional[datetime] = None

    @property
    def short_address(self) -> str:
        return short_address(self.address)


class SelectionMode(str, Enum):
    """How the session picks its participants from the wallet list."""
    ALL = "all"
    RANDOM = "random"
    SPECIFIC = "specific"


class WalletSelection(BaseModel):
    """Participant selection for a run."""
    mode: SelectionMode = SelectionMode.ALL
    count: int = Field(default=1, ge=1)
    indices: List[int] = Field(default_factory=list)  # 1-based


class SelectionPolicy(str, Enum):
    """Order in which the ledger hands out buy-eligible wallets."""
    ROUND_ROBIN = "round_robin"
    RANDOM = "random"
