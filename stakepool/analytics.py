"""
analytics.py - Position reporting and stress testing

Reporting helpers that sit beside the contracts and never mutate them:

1. health_status(): band a fixed-point health factor
2. estimated_borrow_rate_bps(): utilisation-scaled borrow rate
3. project_leverage(): expected exposure, leverage, APY and health of a
   leverage loop before it is executed
4. stress_health_factors() / liquidation_exchange_rate(): how a position's
   health moves with the exchange rate

Projections and stress grids are float64 numpy arithmetic; they are
estimates for display and risk checks, never inputs to the ledger.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Sequence, Tuple

import numpy as np

from .core import PRECISION, BPS, U512_MAX, check_amount
from .leverage import check_loop_count


# Health status constants
HEALTH_STATUS_HEALTHY = "HEALTHY"
HEALTH_STATUS_MODERATE = "MODERATE"
HEALTH_STATUS_AT_RISK = "AT_RISK"
HEALTH_STATUS_DANGER = "DANGER"
HEALTH_STATUS_LIQUIDATABLE = "LIQUIDATABLE"

# Band floors as (numerator, denominator) of PRECISION
_HEALTHY_FLOOR = (2, 1)
_MODERATE_FLOOR = (3, 2)
_AT_RISK_FLOOR = (11, 10)


def _at_least(hf: int, floor: Tuple[int, int]) -> bool:
    num, den = floor
    return hf * den >= num * PRECISION


def health_status(hf: int) -> str:
    """
    Band a fixed-point health factor.

    >= 2.0 HEALTHY, >= 1.5 MODERATE, >= 1.1 AT_RISK, >= 1.0 DANGER,
    below 1.0 LIQUIDATABLE.
    """
    if _at_least(hf, _HEALTHY_FLOOR):
        return HEALTH_STATUS_HEALTHY
    if _at_least(hf, _MODERATE_FLOOR):
        return HEALTH_STATUS_MODERATE
    if _at_least(hf, _AT_RISK_FLOOR):
        return HEALTH_STATUS_AT_RISK
    if hf >= PRECISION:
        return HEALTH_STATUS_DANGER
    return HEALTH_STATUS_LIQUIDATABLE


def to_float(fixed: int) -> float:
    """Fixed-point value as a float; U512_MAX maps to infinity."""
    if fixed >= U512_MAX:
        return float("inf")
    return fixed / PRECISION


def estimated_borrow_rate_bps(base_rate_bps: int, utilization_bps: int) -> int:
    """
    Borrow rate rising linearly with utilisation.

    rate = base + utilization% * base / 50, so full utilisation triples the
    base rate.
    """
    return base_rate_bps + utilization_bps * base_rate_bps // (50 * 100)


@dataclass(frozen=True, slots=True)
class LeverageProjection:
    """
    Expected outcome of a leverage loop, assuming every borrow succeeds.

    Attributes:
        stake_amounts: Amount staked on each iteration
        total_exposure: Sum of stake_amounts
        effective_leverage: total_exposure / initial_amount
        gross_apy: Staking APY scaled by leverage (percent)
        borrow_apy: Borrow APY used for the projection (percent)
        net_apy: gross_apy - borrow_apy * (leverage - 1) (percent)
        estimated_health_factor: Health factor implied by the leverage
    """
    stake_amounts: Tuple[float, ...]
    total_exposure: float
    effective_leverage: float
    gross_apy: float
    borrow_apy: float
    net_apy: float
    estimated_health_factor: float


def leverage_stake_amounts(initial_amount: float, loops: int, collateral_factor_bps: int) -> np.ndarray:
    """Geometric series initial * cf**i for i in [0, loops)."""
    cf = collateral_factor_bps / BPS
    return initial_amount * np.power(cf, np.arange(loops, dtype=np.float64))


def project_leverage(
    initial_amount: int,
    loops: int,
    collateral_factor_bps: int,
    liquidation_threshold_bps: int,
    staking_apy: float,
    borrow_apy: float,
) -> LeverageProjection:
    """
    Project a leverage loop before executing it.

    Raises:
        InvalidLoopCount: loops outside [1, 4]

    Example:
        p = project_leverage(100, 2, 7500, 8000, staking_apy=8.5, borrow_apy=6.0)
        # p.total_exposure == 175.0, p.effective_leverage == 1.75
    """
    check_amount(initial_amount, "initial_amount")
    check_loop_count(loops)
    amounts = leverage_stake_amounts(float(initial_amount), loops, collateral_factor_bps)
    exposure = float(amounts.sum())
    leverage = exposure / initial_amount if initial_amount > 0 else float(loops)
    gross = staking_apy * leverage
    net = gross - borrow_apy * (leverage - 1)

    if leverage <= 1:
        est_hf = float("inf")
    else:
        est_hf = (
            (collateral_factor_bps / BPS) * (liquidation_threshold_bps / BPS)
            * leverage / (leverage - 1)
        )

    return LeverageProjection(
        stake_amounts=tuple(float(a) for a in amounts),
        total_exposure=exposure,
        effective_leverage=leverage,
        gross_apy=gross,
        borrow_apy=borrow_apy,
        net_apy=net,
        estimated_health_factor=est_hf,
    )


def stress_health_factors(
    collateral: int,
    debt: int,
    rates: Sequence[float],
    liquidation_threshold_bps: int,
) -> np.ndarray:
    """
    Health factor of one position at each exchange rate in ``rates``.

    ``rates`` are base asset per share as plain numbers (1.0 == PRECISION).
    A debt-free position is infinitely healthy at every rate.

    Example:
        stress_health_factors(1000, 750, [1.0, 0.9], 8000)
        # -> [1.0667, 0.96]
    """
    rates_arr = np.asarray(rates, dtype=np.float64)
    if debt == 0:
        return np.full(rates_arr.shape, np.inf)
    values = float(collateral) * rates_arr
    return values * (liquidation_threshold_bps / BPS) / float(debt)


def liquidation_exchange_rate(collateral: int, debt: int, liquidation_threshold_bps: int) -> float:
    """
    Exchange rate (as a plain number) at which a position's health hits 1.0.

    0.0 for a debt-free position; infinity when there is debt but no
    collateral or no liquidation weight.
    """
    if debt == 0:
        return 0.0
    if collateral == 0 or liquidation_threshold_bps == 0:
        return float("inf")
    return debt * BPS / (collateral * liquidation_threshold_bps)


def rate_shock_grid(current_rate: int, shocks: Sequence[float]) -> np.ndarray:
    """Exchange rates after relative shocks, e.g. shocks=[-0.1, 0.0]."""
    return to_float(current_rate) * (1.0 + np.asarray(shocks, dtype=np.float64))
