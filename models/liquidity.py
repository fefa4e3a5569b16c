"""
Liquidity snapshot model for the Volume Orchestrator.
"""

from datetime import datetime
from pydantic import BaseModel, Field


class LiquidityState(BaseModel):
    """
    Reserves of a constant-product pool at one point in time.

    All values are atomic units. Virtual reserves price the curve; the real
    base reserve is what can actually be bought out of it.
    """
    virtual_base: int = Field(default=0, ge=0)
    virtual_quote: int = Field(default=0, ge=0)
    real_base: int = Field(default=0, ge=0)
    real_quote: int = Field(default=0, ge=0)
    observed_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        frozen = True

    @property
    def is_degenerate(self) -> bool:
        return self.virtual_base == 0 or self.virtual_quote == 0
