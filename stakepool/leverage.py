"""
leverage.py - Bounded leverage loop

Each iteration stakes the current amount, and on every iteration but the
last posts the minted shares as the caller's collateral and borrows
collateral_factor of their value from lender liquidity to stake again.

The loop stops early, without error, as soon as a borrow would be zero
(collateral_factor 0) or would exceed the available liquidity. Shares minted
on the last executed iteration that were not posted as collateral belong
to the caller.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .core import (
    Address, MIN_LEVERAGE_LOOPS, MAX_LEVERAGE_LOOPS,
    InvalidLoopCount, AmountMustBePositive,
)
from .lending import collateral_value, max_borrow

if TYPE_CHECKING:
    from .lending_pool import LendingPool


@dataclass(frozen=True, slots=True)
class LeverageResult:
    """
    Aggregate outcome of leverage_stake().

    Attributes:
        initial_amount: Base asset supplied by the caller
        total_staked: Base asset staked over all executed iterations
        total_shares: Shares minted over all executed iterations
        loops_requested: Loop count asked for
        loops_executed: Iterations that actually staked
        total_borrowed: Debt added to the caller's position
        collateral_posted: Shares added to the caller's collateral
        shares_to_caller: Shares delivered to the caller's wallet
    """
    initial_amount: int
    total_staked: int
    total_shares: int
    loops_requested: int
    loops_executed: int
    total_borrowed: int
    collateral_posted: int
    shares_to_caller: int

    @property
    def stopped_early(self) -> bool:
        return self.loops_executed < self.loops_requested


def check_loop_count(loops: int) -> int:
    """
    Raises:
        InvalidLoopCount: loops outside [1, 4]
    """
    if isinstance(loops, bool) or not isinstance(loops, int):
        raise InvalidLoopCount(f"loops must be int, got {type(loops).__name__}")
    if not MIN_LEVERAGE_LOOPS <= loops <= MAX_LEVERAGE_LOOPS:
        raise InvalidLoopCount(
            f"loops must be in [{MIN_LEVERAGE_LOOPS}, {MAX_LEVERAGE_LOOPS}], got {loops}"
        )
    return loops


def run_leverage_loop(
    pool: 'LendingPool',
    caller: Address,
    initial_amount: int,
    loops: int,
) -> LeverageResult:
    """
    Drive the stake / post / borrow cycle against a lending pool.

    The lending pool must already hold ``initial_amount`` of the caller's
    base asset. Raises whatever staking raises (pause, minimum stake); the
    surrounding entry point rolls every iteration back in that case.
    """
    if initial_amount == 0:
        raise AmountMustBePositive("initial amount must be positive")
    check_loop_count(loops)

    params = pool.risk_parameters
    total_staked = 0
    total_shares = 0
    total_borrowed = 0
    collateral_posted = 0
    shares_to_caller = 0
    executed = 0
    amount = initial_amount

    for i in range(loops):
        shares = pool._stake_for_loop(amount)
        executed += 1
        total_staked += amount
        total_shares += shares

        if i == loops - 1:
            shares_to_caller = shares
            break

        pool._post_collateral(caller, shares)
        collateral_posted += shares

        borrow_amount = max_borrow(
            collateral_value(shares, pool.exchange_rate()), params.collateral_factor
        )
        # A zero borrow would restake nothing and fail the minimum stake
        if borrow_amount == 0 or borrow_amount > pool.available_liquidity():
            break

        pool._record_borrow(caller, borrow_amount)
        total_borrowed += borrow_amount
        amount = borrow_amount

    return LeverageResult(
        initial_amount=initial_amount,
        total_staked=total_staked,
        total_shares=total_shares,
        loops_requested=loops,
        loops_executed=executed,
        total_borrowed=total_borrowed,
        collateral_posted=collateral_posted,
        shares_to_caller=shares_to_caller,
    )
