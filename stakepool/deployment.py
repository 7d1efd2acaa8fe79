"""
deployment.py - Wire a complete protocol instance

deploy() creates one runtime and, on it, the share token, the validator
staking system, the staking pool (as the token's minter) and the lending
pool, then registers the admin and treasury accounts.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Type

from .core import (
    Address, BASE_SYMBOL, SHARE_SYMBOL,
    DEFAULT_PROTOCOL_FEE_BPS, DEFAULT_MIN_STAKE, UNBONDING_PERIOD_MS,
    MAX_PROTOCOL_FEE_BPS, FeeTooHigh, check_amount,
)
from .config import RiskParameters, StakingSettings, DEFAULT_RISK_PARAMETERS
from .environment import Runtime
from .keeper import Keeper
from .lending_pool import LendingPool
from .share_token import ShareToken
from .staking_pool import StakingPool
from .validators import InMemoryValidatorStaking


@dataclass
class Deployment:
    runtime: Runtime
    share_token: ShareToken
    validators: InMemoryValidatorStaking
    staking_pool: StakingPool
    lending_pool: LendingPool
    admin: Address
    treasury: Optional[Address]
    validator: Optional[str]

    @property
    def ledger(self):
        return self.runtime.ledger

    def fund(self, account: Address, amount: int) -> Address:
        """Create ``account`` (if needed) and credit it with base asset."""
        return self.runtime.create_account(account, amount)

    def keeper(self, address: Address = "keeper") -> Keeper:
        return Keeper(self.staking_pool, self.validators, self.lending_pool, address)


def deploy(
    admin: Address = "admin",
    treasury: Optional[Address] = "treasury",
    validator: Optional[str] = "validator-1",
    protocol_fee_bps: int = DEFAULT_PROTOCOL_FEE_BPS,
    min_stake: int = DEFAULT_MIN_STAKE,
    risk_parameters: RiskParameters = DEFAULT_RISK_PARAMETERS,
    unbonding_period_ms: int = UNBONDING_PERIOD_MS,
    start_ms: int = 0,
    base_symbol: str = BASE_SYMBOL,
    share_symbol: str = SHARE_SYMBOL,
    verbose: bool = False,
    runtime: Optional[Runtime] = None,
    validators_cls: Type[InMemoryValidatorStaking] = InMemoryValidatorStaking,
    token_cls: Type[ShareToken] = ShareToken,
) -> Deployment:
    """
    Deploy the protocol on a fresh (or given) runtime.

    validators_cls and token_cls let tests substitute instrumented
    collaborators.

    Example:
        d = deploy()
        d.fund("alice", 1_000 * ONE)
        d.staking_pool.stake("alice", 100 * ONE)
    """
    if protocol_fee_bps > MAX_PROTOCOL_FEE_BPS:
        raise FeeTooHigh(f"{protocol_fee_bps} bps > max {MAX_PROTOCOL_FEE_BPS}")
    check_amount(min_stake, "min_stake")
    risk_parameters.validate()

    rt = runtime or Runtime(start_ms=start_ms, base_symbol=base_symbol, verbose=verbose)
    rt.create_account(admin)
    if treasury is not None:
        rt.create_account(treasury)

    validators = validators_cls(rt)
    staking_address = "staking_pool"
    token = token_cls(rt, minter=staking_address, symbol=share_symbol)
    staking_pool = StakingPool(
        rt, validators,
        address=staking_address,
        share_token=token,
        settings=StakingSettings(
            admin=admin,
            treasury=treasury,
            validator=validator,
            protocol_fee_bps=protocol_fee_bps,
            min_stake=min_stake,
        ),
        unbonding_period_ms=unbonding_period_ms,
    )
    lending_pool = LendingPool(
        rt, staking_pool, token,
        admin=admin,
        risk_parameters=risk_parameters,
    )
    return Deployment(
        runtime=rt,
        share_token=token,
        validators=validators,
        staking_pool=staking_pool,
        lending_pool=lending_pool,
        admin=admin,
        treasury=treasury,
        validator=validator,
    )
