"""
lending.py - Collateral, debt and liquidation math

PURE FUNCTIONS - all inputs explicit, no ledger access.

Key Formulas:
    collateral_value = shares * exchange_rate / PRECISION
    max_borrow       = collateral_value * collateral_factor / 10000
    health_factor    = collateral_value * liquidation_threshold * PRECISION / (debt * 10000)
    actual_repay     = min(repay_offer, debt / 2)
    seize            = min(collateral, (actual_repay * PRECISION / rate) * (10000 + bonus) / 10000)

health_factor >= PRECISION means healthy. A position without debt has
health U512_MAX and can never be liquidated.
"""

from __future__ import annotations
from dataclasses import dataclass

from .core import PRECISION, BPS, U512_MAX


@dataclass(frozen=True, slots=True)
class BorrowerPosition:
    """
    Collateral (shares in custody) and debt (base asset owed) of one account.
    """
    collateral: int = 0
    debt: int = 0


@dataclass(frozen=True, slots=True)
class LiquidationQuote:
    """
    Result of a liquidation calculation.

    Attributes:
        actual_repay: Debt actually repaid (at most half the debt)
        refund: Part of the offer returned to the liquidator
        seize: Collateral shares transferred to the liquidator
    """
    actual_repay: int
    refund: int
    seize: int


def collateral_value(shares: int, rate: int) -> int:
    """Base-asset value of ``shares`` at exchange rate ``rate``."""
    return shares * rate // PRECISION


def shares_for_value(value: int, rate: int) -> int:
    """
    Shares worth ``value`` of base asset at ``rate``.

    A zero rate makes every share worthless, so no finite share count covers
    the value and U512_MAX is returned.
    """
    if value == 0:
        return 0
    if rate == 0:
        return U512_MAX
    return value * PRECISION // rate


def max_borrow(value: int, collateral_factor_bps: int) -> int:
    return value * collateral_factor_bps // BPS


def health_factor(value: int, debt: int, liquidation_threshold_bps: int) -> int:
    if debt == 0:
        return U512_MAX
    return value * liquidation_threshold_bps * PRECISION // (debt * BPS)


def is_liquidatable(hf: int) -> bool:
    return hf < PRECISION


def available_liquidity(total_deposits: int, total_borrowed: int) -> int:
    return max(0, total_deposits - total_borrowed)


def utilization_bps(total_deposits: int, total_borrowed: int) -> int:
    """Borrowed share of deposits in bps (0 for an empty pool)."""
    if total_deposits == 0:
        return 0
    return total_borrowed * BPS // total_deposits


def liquidation_amounts(
    debt: int,
    collateral: int,
    repay_offer: int,
    rate: int,
    liquidation_bonus_bps: int,
) -> LiquidationQuote:
    """
    Compute a liquidation from explicit inputs.

    At most half the debt is repaid per call. The repaid value is converted
    to shares at the current rate, increased by the liquidation bonus, and
    capped at the borrower's collateral.

    Example:
        q = liquidation_amounts(debt=1000, collateral=2000, repay_offer=800,
                                rate=PRECISION, liquidation_bonus_bps=500)
        # q.actual_repay == 500, q.refund == 300, q.seize == 525
    """
    actual = min(repay_offer, debt // 2)
    seize = shares_for_value(actual, rate) * (BPS + liquidation_bonus_bps) // BPS
    return LiquidationQuote(
        actual_repay=actual,
        refund=repay_offer - actual,
        seize=min(seize, collateral),
    )
