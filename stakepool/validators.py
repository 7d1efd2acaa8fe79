"""
validators.py - In-memory validator staking system

Reference implementation of the ValidatorStaking protocol. Delegated base
asset is held in this contract's account. Rewards accrue per
(delegator, validator) pair and are minted from the system wallet, the way
a chain mints staking rewards.

delegated_amount() reports principal plus accrued rewards, so rewards show
up as growth of the delegated stake. Undelegated funds are returned to the
delegator immediately; callers that need an unbonding delay enforce it
themselves.
"""

from __future__ import annotations
from typing import Dict, Tuple

from .core import Address, InsufficientDelegation, check_amount
from .environment import Runtime, Contract, entrypoint


DelegationKey = Tuple[Address, str]


class InMemoryValidatorStaking(Contract):
    """Validator staking system with manual reward accrual."""

    STATE_FIELDS = ()

    def __init__(self, runtime: Runtime, address: Address = "validator_staking"):
        super().__init__(runtime, address)
        self.principal: Dict[DelegationKey, int] = self.journaled()
        self.rewards: Dict[DelegationKey, int] = self.journaled()

    @entrypoint
    def delegate(self, delegator: Address, validator: str, amount: int) -> None:
        check_amount(amount)
        key = (delegator, validator)
        self.principal[key] = self.principal.get(key, 0) + amount
        self.runtime.transfer_native(delegator, self.address, amount, "delegate")
        self.emit("Delegated", delegator=delegator, validator=validator, amount=amount)

    @entrypoint
    def undelegate(self, delegator: Address, validator: str, amount: int) -> None:
        """
        Raises:
            InsufficientDelegation: If amount exceeds the delegated principal
        """
        check_amount(amount)
        key = (delegator, validator)
        current = self.principal.get(key, 0)
        if amount > current:
            raise InsufficientDelegation(
                f"{delegator} has {current} delegated to {validator}, cannot undelegate {amount}"
            )
        self.principal[key] = current - amount
        self.runtime.transfer_native(self.address, delegator, amount, "undelegate")
        self.emit("Undelegated", delegator=delegator, validator=validator, amount=amount)

    def query_pending_reward(self, delegator: Address, validator: str) -> int:
        return self.rewards.get((delegator, validator), 0)

    @entrypoint
    def withdraw_reward(self, delegator: Address, validator: str) -> int:
        amount = self.rewards.pop((delegator, validator), 0)
        self.runtime.transfer_native(self.address, delegator, amount, "withdraw_reward")
        if amount:
            self.emit("RewardWithdrawn", delegator=delegator, validator=validator, amount=amount)
        return amount

    def delegated_amount(self, delegator: Address, validator: str) -> int:
        key = (delegator, validator)
        return self.principal.get(key, 0) + self.rewards.get(key, 0)

    @entrypoint
    def accrue_reward(self, delegator: Address, validator: str, amount: int) -> None:
        """Mint ``amount`` of staking reward to a delegation."""
        check_amount(amount)
        if amount == 0:
            return
        key = (delegator, validator)
        self.rewards[key] = self.rewards.get(key, 0) + amount
        self.runtime.ledger.issue(self.address, self.runtime.base_symbol, amount, "staking_reward")
        self.emit("RewardAccrued", delegator=delegator, validator=validator, amount=amount)

    def total_delegated(self) -> int:
        return sum(self.principal.values())
