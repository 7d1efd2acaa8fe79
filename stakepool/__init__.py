"""
stakepool - Liquid staking and collateralised lending accounting engine

Share-price based accounting for a liquid-staking pool and a lending market
that accepts its shares as collateral.

Usage:
    from stakepool import deploy, ONE, UNBONDING_PERIOD_MS

    d = deploy()
    d.fund("alice", 1_000 * ONE)

    shares = d.staking_pool.stake("alice", 100 * ONE)
    wid = d.staking_pool.unstake("alice", shares)

    d.runtime.advance_time(UNBONDING_PERIOD_MS)
    d.staking_pool.claim("alice", wid)
"""

# Core types
from .core import (
    PRECISION, BPS, U512_MAX, ONE, BASE_DECIMALS,
    UNBONDING_PERIOD_MS,
    DEFAULT_PROTOCOL_FEE_BPS, MAX_PROTOCOL_FEE_BPS, DEFAULT_MIN_STAKE,
    DEFAULT_COLLATERAL_FACTOR, DEFAULT_LIQUIDATION_THRESHOLD,
    DEFAULT_LIQUIDATION_BONUS, DEFAULT_BASE_RATE,
    MIN_LEVERAGE_LOOPS, MAX_LEVERAGE_LOOPS,
    SYSTEM_WALLET, BASE_SYMBOL, SHARE_SYMBOL,
    UNIT_TYPE_NATIVE, UNIT_TYPE_SHARE,
    Clock, LedgerView, ShareLedger, ValidatorStaking, Stateful,
    Move, PendingTransaction, Transaction, TransactionOrigin, OriginType,
    ExecuteResult, Unit, build_transaction, native_asset, share_units,
    check_amount,
    # Errors
    ProtocolError, ValidationError, AuthorizationError, StateConflict, ConfigurationError,
    BelowMinimumStake, AmountMustBePositive, FeeTooHigh, InvalidParameter,
    InvalidLoopCount, InvalidAmount,
    NotWithdrawalOwner, NotAdmin, NotMinter,
    ContractPaused, InsufficientBalance, WithdrawalNotFound, AlreadyClaimed,
    StillUnbonding, InsufficientDeposit, InsufficientLiquidity,
    InsufficientCollateral, ExceedsMaxBorrow, WouldBecomeUndercollateralized,
    PositionHealthy, InsufficientDelegation,
    ValidatorNotSet, TreasuryNotSet, AdminNotSet, MinterNotSet, TokenNotSet,
    LedgerError, InsufficientFunds, BalanceConstraintViolation,
    UnitNotRegistered, WalletNotRegistered,
)

# Ledger and runtime
from .journal import Journal, JournaledDict
from .ledger import Ledger
from .environment import ManualClock, Event, Runtime, Contract, entrypoint

# Configuration
from .config import RiskParameters, StakingSettings, DEFAULT_RISK_PARAMETERS, require_admin

# Collaborators
from .share_token import ShareToken
from .validators import InMemoryValidatorStaking

# Exchange-rate ledger
from .exchange_rate import (
    PoolState, exchange_rate, shares_for_deposit, assets_for_shares,
    split_rewards, balance_delta_rewards,
)
from .withdrawals import WithdrawalRequest, WithdrawalQueue
from .staking_pool import StakingPool

# Lending
from .lending import (
    BorrowerPosition, LiquidationQuote,
    collateral_value, shares_for_value, max_borrow, health_factor,
    is_liquidatable, available_liquidity, utilization_bps, liquidation_amounts,
)
from .leverage import LeverageResult, check_loop_count, run_leverage_loop
from .lending_pool import LendingPool, LiquidityState

# Analytics
from .analytics import (
    HEALTH_STATUS_HEALTHY, HEALTH_STATUS_MODERATE, HEALTH_STATUS_AT_RISK,
    HEALTH_STATUS_DANGER, HEALTH_STATUS_LIQUIDATABLE,
    health_status, to_float, estimated_borrow_rate_bps,
    LeverageProjection, leverage_stake_amounts, project_leverage,
    stress_health_factors, liquidation_exchange_rate, rate_shock_grid,
)

# Lifecycle and wiring
from .keeper import Keeper, KeeperReport
from .deployment import Deployment, deploy


__all__ = [
    # Constants
    'PRECISION', 'BPS', 'U512_MAX', 'ONE', 'BASE_DECIMALS', 'UNBONDING_PERIOD_MS',
    'DEFAULT_PROTOCOL_FEE_BPS', 'MAX_PROTOCOL_FEE_BPS', 'DEFAULT_MIN_STAKE',
    'DEFAULT_COLLATERAL_FACTOR', 'DEFAULT_LIQUIDATION_THRESHOLD',
    'DEFAULT_LIQUIDATION_BONUS', 'DEFAULT_BASE_RATE',
    'MIN_LEVERAGE_LOOPS', 'MAX_LEVERAGE_LOOPS',
    'SYSTEM_WALLET', 'BASE_SYMBOL', 'SHARE_SYMBOL', 'UNIT_TYPE_NATIVE', 'UNIT_TYPE_SHARE',
    # Protocols and records
    'Clock', 'LedgerView', 'ShareLedger', 'ValidatorStaking', 'Stateful',
    'Move', 'PendingTransaction', 'Transaction', 'TransactionOrigin', 'OriginType',
    'ExecuteResult', 'Unit', 'build_transaction', 'native_asset', 'share_units',
    'check_amount',
    # Errors
    'ProtocolError', 'ValidationError', 'AuthorizationError', 'StateConflict',
    'ConfigurationError',
    'BelowMinimumStake', 'AmountMustBePositive', 'FeeTooHigh', 'InvalidParameter',
    'InvalidLoopCount', 'InvalidAmount',
    'NotWithdrawalOwner', 'NotAdmin', 'NotMinter',
    'ContractPaused', 'InsufficientBalance', 'WithdrawalNotFound', 'AlreadyClaimed',
    'StillUnbonding', 'InsufficientDeposit', 'InsufficientLiquidity',
    'InsufficientCollateral', 'ExceedsMaxBorrow', 'WouldBecomeUndercollateralized',
    'PositionHealthy', 'InsufficientDelegation',
    'ValidatorNotSet', 'TreasuryNotSet', 'AdminNotSet', 'MinterNotSet', 'TokenNotSet',
    'LedgerError', 'InsufficientFunds', 'BalanceConstraintViolation',
    'UnitNotRegistered', 'WalletNotRegistered',
    # Ledger and runtime
    'Journal', 'JournaledDict',
    'Ledger', 'ManualClock', 'Event', 'Runtime', 'Contract', 'entrypoint',
    # Config
    'RiskParameters', 'StakingSettings', 'DEFAULT_RISK_PARAMETERS', 'require_admin',
    # Collaborators
    'ShareToken', 'InMemoryValidatorStaking',
    # Exchange-rate ledger
    'PoolState', 'exchange_rate', 'shares_for_deposit', 'assets_for_shares',
    'split_rewards', 'balance_delta_rewards',
    'WithdrawalRequest', 'WithdrawalQueue', 'StakingPool',
    # Lending
    'BorrowerPosition', 'LiquidationQuote',
    'collateral_value', 'shares_for_value', 'max_borrow', 'health_factor',
    'is_liquidatable', 'available_liquidity', 'utilization_bps', 'liquidation_amounts',
    'LeverageResult', 'check_loop_count', 'run_leverage_loop',
    'LendingPool', 'LiquidityState',
    # Analytics
    'HEALTH_STATUS_HEALTHY', 'HEALTH_STATUS_MODERATE', 'HEALTH_STATUS_AT_RISK',
    'HEALTH_STATUS_DANGER', 'HEALTH_STATUS_LIQUIDATABLE',
    'health_status', 'to_float', 'estimated_borrow_rate_bps',
    'LeverageProjection', 'leverage_stake_amounts', 'project_leverage',
    'stress_health_factors', 'liquidation_exchange_rate', 'rate_shock_grid',
    # Lifecycle and wiring
    'Keeper', 'KeeperReport', 'Deployment', 'deploy',
]

__version__ = '1.0.0'
