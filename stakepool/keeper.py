"""
keeper.py - Protocol lifecycle driver

Combines reward accrual, compounding and liquidation discovery into one
step() per block time.

Execution order each step():
1. Advance block time
2. Accrue validator rewards to the staking pool's delegation
3. Compound the staking pool (callable by anyone; the keeper is "anyone")
4. Report lending positions whose health factor is below 1.0

The runtime's event log is the audit trail - no separate keeper history is
kept beyond the returned reports.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from .core import Address, ValidatorNotSet
from .lending_pool import LendingPool
from .staking_pool import StakingPool
from .validators import InMemoryValidatorStaking


@dataclass(frozen=True, slots=True)
class KeeperReport:
    """
    Outcome of one keeper step.

    Attributes:
        time_ms: Block time of the step
        rewards_accrued: Rewards minted to the pool's delegation this step
        compounded: Rewards added to the pool by compound()
        exchange_rate: Exchange rate after compounding
        liquidatable: Borrowers with health factor below 1.0
    """
    time_ms: int
    rewards_accrued: int
    compounded: int
    exchange_rate: int
    liquidatable: Tuple[Address, ...]


class Keeper:
    """
    Periodic maintenance of a deployed protocol.

    Example:
        keeper = Keeper(d.staking_pool, d.validators, d.lending_pool)
        reports = keeper.run([HOUR, 2 * HOUR], lambda t: 5 * ONE)
    """

    def __init__(
        self,
        staking_pool: StakingPool,
        validators: InMemoryValidatorStaking,
        lending_pool: Optional[LendingPool] = None,
        address: Address = "keeper",
    ):
        self.staking_pool = staking_pool
        self.validators = validators
        self.lending_pool = lending_pool
        self.address = address
        self.runtime = staking_pool.runtime
        self.verbose = self.runtime.verbose

    def step(self, time_ms: int, rewards: int = 0) -> KeeperReport:
        """
        Advance to ``time_ms``, accrue ``rewards`` and compound.

        Raises:
            ValueError: If time_ms is before the current block time
            ValidatorNotSet: rewards given but the pool has no validator
        """
        self.runtime.set_time(time_ms)

        if rewards:
            validator = self.staking_pool.validator
            if validator is None:
                raise ValidatorNotSet("validator not set")
            self.validators.accrue_reward(self.staking_pool.address, validator, rewards)

        compounded = 0
        if self.staking_pool.pending_rewards():
            compounded = self.staking_pool.compound(self.address)

        liquidatable: Tuple[Address, ...] = ()
        if self.lending_pool is not None:
            liquidatable = tuple(self.lending_pool.liquidatable_accounts())

        report = KeeperReport(
            time_ms=time_ms,
            rewards_accrued=rewards,
            compounded=compounded,
            exchange_rate=self.staking_pool.get_exchange_rate(),
            liquidatable=liquidatable,
        )
        if self.verbose:
            print(f"[KEEPER] t={time_ms} compounded={compounded} "
                  f"rate={report.exchange_rate} liquidatable={list(liquidatable)}")
        return report

    def run(
        self,
        timestamps: List[int],
        rewards_at: Callable[[int], int],
    ) -> List[KeeperReport]:
        """
        Run step() for each timestamp.

        Args:
            timestamps: Block times in ascending order
            rewards_at: Rewards to accrue at a given block time
        """
        return [self.step(t, rewards_at(t)) for t in timestamps]
