"""
Constant-product quotes for the Volume Orchestrator.

All arithmetic is on Python integers in atomic units. No floats are involved,
so a quote is exact and reproducible for a given reserve snapshot.
"""

from typing import Optional

from models.liquidity import LiquidityState


def _ceil_div(numerator: int, denominator: int) -> int:
    return -(-numerator // denominator)


def quote_buy(liquidity: Optional[LiquidityState], quote_in: int) -> int:
    """
    Base units received for ``quote_in`` quote units.

    out = virtual_base - ceil(virtual_base * virtual_quote / (virtual_quote + quote_in)),
    clamped to the real base reserve. Degenerate inputs quote 0.

    Args:
        liquidity: Reserve snapshot, or None when unavailable
        quote_in: Quote amount in atomic units

    Returns:
        Base amount in atomic units
    """
    if liquidity is None or quote_in <= 0 or liquidity.is_degenerate:
        return 0

    product = liquidity.virtual_base * liquidity.virtual_quote
    remaining_base = _ceil_div(product, liquidity.virtual_quote + quote_in)
    base_out = liquidity.virtual_base - remaining_base
    return max(0, min(base_out, liquidity.real_base))


def quote_sell(liquidity: Optional[LiquidityState], base_in: int) -> int:
    """
    Quote units received for ``base_in`` base units.

    Mirror of :func:`quote_buy`, clamped to the real quote reserve.
    """
    if liquidity is None or base_in <= 0 or liquidity.is_degenerate:
        return 0

    product = liquidity.virtual_base * liquidity.virtual_quote
    remaining_quote = _ceil_div(product, liquidity.virtual_base + base_in)
    quote_out = liquidity.virtual_quote - remaining_quote
    return max(0, min(quote_out, liquidity.real_quote))


def apply_buy(liquidity: LiquidityState, quote_in: int) -> LiquidityState:
    """Reserve state after a buy of ``quote_in`` has been filled."""
    base_out = quote_buy(liquidity, quote_in)
    return LiquidityState(
        virtual_base=liquidity.virtual_base - base_out,
        virtual_quote=liquidity.virtual_quote + quote_in,
        real_base=liquidity.real_base - base_out,
        real_quote=liquidity.real_quote + quote_in,
    )


def apply_sell(liquidity: LiquidityState, base_in: int) -> LiquidityState:
    """Reserve state after a sell of ``base_in`` has been filled."""
    quote_out = quote_sell(liquidity, base_in)
    return LiquidityState(
        virtual_base=liquidity.virtual_base + base_in,
        virtual_quote=liquidity.virtual_quote - quote_out,
        real_base=liquidity.real_base + base_in,
        real_quote=liquidity.real_quote - quote_out,
    )
