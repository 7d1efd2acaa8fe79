"""
exchange_rate.py - Share price math

PURE FUNCTIONS - all inputs explicit, no ledger access.

Key Formulas:
    exchange_rate = total_pooled * PRECISION / total_shares   (PRECISION if no shares)
    shares_out    = amount * total_shares / total_pooled      (amount on an empty pool)
    assets_out    = shares * total_pooled / total_shares
    fee           = rewards * fee_bps / 10000

All divisions floor. Rounding therefore always favours the pool: a staker
never receives more shares, and an unstaker never more base asset, than
their exact pro-rata claim.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Tuple

from .core import PRECISION, BPS


@dataclass(slots=True)
class PoolState:
    """
    Pooled base asset and outstanding shares of one staking pool.

    Attributes:
        total_pooled: Base asset backing the shares (delegated plus compounded)
        total_shares: Shares outstanding
    """
    total_pooled: int = 0
    total_shares: int = 0

    @property
    def exchange_rate(self) -> int:
        return exchange_rate(self.total_pooled, self.total_shares)


def exchange_rate(total_pooled: int, total_shares: int) -> int:
    """Base asset per share, 18-decimal fixed point. Never raises."""
    if total_shares == 0:
        return PRECISION
    return total_pooled * PRECISION // total_shares


def shares_for_deposit(amount: int, total_pooled: int, total_shares: int) -> int:
    """
    Shares minted for depositing ``amount`` of base asset.

    An empty pool (no shares, or no pooled asset backing them) mints 1:1.
    """
    if total_shares == 0 or total_pooled == 0:
        return amount
    return amount * total_shares // total_pooled


def assets_for_shares(shares: int, total_pooled: int, total_shares: int) -> int:
    """Base asset redeemed by burning ``shares``."""
    if total_shares == 0:
        return 0
    return shares * total_pooled // total_shares


def split_rewards(rewards: int, fee_bps: int) -> Tuple[int, int]:
    """
    Split harvested rewards into (protocol_fee, rewards_to_pool).

    Example:
        split_rewards(100, 1000)  # (10, 90)
    """
    fee = rewards * fee_bps // BPS
    return fee, rewards - fee


def balance_delta_rewards(delegated_amount: int, total_pooled: int) -> int:
    """
    Reward signal: growth of the delegated stake over the tracked pool.

    Any external change in the delegated balance is read as reward.
    """
    return max(0, delegated_amount - total_pooled)
