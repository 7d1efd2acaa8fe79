"""
Core types and pure functions for the stakepool accounting engine.

This module provides the foundational data structures and protocols:
1. Constants: fixed-point precision, basis points, unbonding period, defaults
2. Protocols: LedgerView, Clock and the external collaborator interfaces
3. Exceptions: ProtocolError taxonomy and the ledger errors
4. Immutable data structures: Move, PendingTransaction, Transaction, Unit
5. Unit factories: native_asset() and share_units()

All amounts are Python ints in the unsigned 512-bit range. Every division
in the protocol is floor division on non-negative integers.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import (
    Dict, List, Set, Optional, Any, Protocol, Tuple, FrozenSet,
    runtime_checkable,
)


# ============================================================================
# CONSTANTS
# ============================================================================

# 18-decimal fixed point used for exchange rates and health factors.
PRECISION = 10 ** 18

# Basis-point denominator (10000 bps = 100%).
BPS = 10_000

# Largest representable amount. Also the health factor of a debt-free position.
U512_MAX = 2 ** 512 - 1

# Base asset has 9 decimals: 1 whole unit = 10**9 motes.
BASE_DECIMALS = 9
ONE = 10 ** BASE_DECIMALS

# Delay between unstake and claim (14 hours, in milliseconds).
UNBONDING_PERIOD_MS = 14 * 60 * 60 * 1000

# Staking defaults
DEFAULT_PROTOCOL_FEE_BPS = 1000
MAX_PROTOCOL_FEE_BPS = 3000
DEFAULT_MIN_STAKE = 10 * ONE

# Lending defaults (bps)
DEFAULT_COLLATERAL_FACTOR = 7500
DEFAULT_LIQUIDATION_THRESHOLD = 8000
DEFAULT_LIQUIDATION_BONUS = 500
DEFAULT_BASE_RATE = 500

# Leverage loop bounds (inclusive)
MIN_LEVERAGE_LOOPS = 1
MAX_LEVERAGE_LOOPS = 4

# Reserved wallet for issuance and redemption. Exempt from balance validation.
SYSTEM_WALLET = "system"

# Unit type constants
UNIT_TYPE_NATIVE = "NATIVE"
UNIT_TYPE_SHARE = "SHARE"

# Default unit symbols
BASE_SYMBOL = "CSPR"
SHARE_SYMBOL = "thCSPR"


# ============================================================================
# TYPE ALIASES
# ============================================================================

# Account identifier (wallet id / contract address).
Address = str

# Mapping from wallet ID to quantity held for a specific unit.
Positions = Dict[str, int]

# Mapping from unit symbol to quantity held in a single wallet.
BalanceMap = Dict[str, int]


# ============================================================================
# EXCEPTIONS
# ============================================================================

class ProtocolError(Exception):
    """
    Base exception for every protocol-level failure.

    Each subclass carries a stable numeric ``code`` and a ``tag`` equal to its
    class name, so callers can match on either.
    """
    code = 0

    @property
    def tag(self) -> str:
        return type(self).__name__


class ValidationError(ProtocolError):
    """Input outside its allowed range."""
    pass


class AuthorizationError(ProtocolError):
    """Caller lacks the role required by the operation."""
    pass


class StateConflict(ProtocolError):
    """Operation is well-formed but the current state does not allow it."""
    pass


class ConfigurationError(ProtocolError):
    """A required binding (admin, treasury, validator, token) is missing."""
    pass


# Validation

class BelowMinimumStake(ValidationError):
    code = 1


class AmountMustBePositive(ValidationError):
    code = 4


class FeeTooHigh(ValidationError):
    code = 11


class InvalidParameter(ValidationError):
    code = 107


class InvalidLoopCount(ValidationError):
    code = 108


class InvalidAmount(ValidationError):
    """Amount is not an int in [0, U512_MAX]."""
    code = 199


# Authorization

class NotWithdrawalOwner(AuthorizationError):
    code = 6


class NotAdmin(AuthorizationError):
    code = 9


class NotMinter(AuthorizationError):
    code = 10


# State conflicts

class ContractPaused(StateConflict):
    code = 2


class InsufficientBalance(StateConflict):
    code = 3


class WithdrawalNotFound(StateConflict):
    code = 5


class AlreadyClaimed(StateConflict):
    code = 7


class StillUnbonding(StateConflict):
    code = 8


class InsufficientDeposit(StateConflict):
    code = 101


class InsufficientLiquidity(StateConflict):
    code = 102


class InsufficientCollateral(StateConflict):
    code = 103


class ExceedsMaxBorrow(StateConflict):
    code = 104


class WouldBecomeUndercollateralized(StateConflict):
    code = 105


class PositionHealthy(StateConflict):
    code = 106


class InsufficientDelegation(StateConflict):
    """Undelegate or reward withdrawal larger than what is delegated."""
    code = 110


# Configuration

class ValidatorNotSet(ConfigurationError):
    code = 12


class TreasuryNotSet(ConfigurationError):
    code = 13


class AdminNotSet(ConfigurationError):
    code = 14


class MinterNotSet(ConfigurationError):
    code = 15


class TokenNotSet(ConfigurationError):
    code = 16


# Ledger errors

class LedgerError(StateConflict):
    """Base exception for all ledger-related errors."""
    code = 200


class InsufficientFunds(LedgerError):
    """Raised when a move would cause a wallet balance to fall below the unit's minimum."""
    code = 201


class BalanceConstraintViolation(LedgerError):
    """Raised when a move would push a wallet balance above the unit's maximum."""
    code = 202


class UnitNotRegistered(LedgerError):
    """Raised when attempting to operate on a unit that has not been registered with the ledger."""
    code = 203


class WalletNotRegistered(LedgerError):
    """Raised when attempting to operate on a wallet that has not been registered with the ledger."""
    code = 204


def check_amount(value: Any, name: str = "amount") -> int:
    """
    Validate that ``value`` is an int in [0, U512_MAX] and return it.

    Raises:
        InvalidAmount: on bools, non-ints, negatives, and overflow
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidAmount(f"{name} must be int, got {type(value).__name__}")
    if value < 0 or value > U512_MAX:
        raise InvalidAmount(f"{name} out of range: {value}")
    return value


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class Clock(Protocol):
    """Monotonic time source. Read-only to the protocol."""

    @property
    def now_ms(self) -> int:
        """Current block time in milliseconds since the epoch."""
        ...


@runtime_checkable
class LedgerView(Protocol):
    """
    Read-only interface to token balances.

    Functions accepting a LedgerView declare their read-only intent. The
    Ledger class implements this protocol but also provides mutation methods.
    """

    @property
    def current_time(self) -> int:
        """Return the current logical time in milliseconds."""
        ...

    def get_balance(self, wallet_id: str, unit_symbol: str) -> int:
        ...

    def get_positions(self, unit_symbol: str) -> Positions:
        ...

    def list_wallets(self) -> Set[str]:
        ...

    def get_unit(self, symbol: str) -> 'Unit':
        ...


@runtime_checkable
class ShareLedger(Protocol):
    """
    Fungible share token as seen by the pools.

    The caller is explicit in every mutating call. ``mint`` and ``burn``
    succeed only for the configured minter.
    """

    def mint(self, caller: Address, to: Address, amount: int) -> None:
        ...

    def burn(self, caller: Address, owner: Address, amount: int) -> None:
        ...

    def balance_of(self, account: Address) -> int:
        ...

    def transfer(self, caller: Address, to: Address, amount: int) -> None:
        ...

    def transfer_from(self, caller: Address, owner: Address, to: Address, amount: int) -> None:
        ...


@runtime_checkable
class ValidatorStaking(Protocol):
    """
    Validator staking system the staking pool delegates to.

    ``delegate`` pulls base asset from the delegator; ``undelegate`` and
    ``withdraw_reward`` pay base asset back to it.
    """

    def delegate(self, delegator: Address, validator: str, amount: int) -> None:
        ...

    def undelegate(self, delegator: Address, validator: str, amount: int) -> None:
        ...

    def query_pending_reward(self, delegator: Address, validator: str) -> int:
        ...

    def withdraw_reward(self, delegator: Address, validator: str) -> int:
        ...

    def delegated_amount(self, delegator: Address, validator: str) -> int:
        ...


@runtime_checkable
class Stateful(Protocol):
    """Component whose state the runtime can snapshot and restore."""

    def snapshot(self) -> Any:
        ...

    def restore(self, snapshot: Any) -> None:
        ...


# ============================================================================
# ENUMS
# ============================================================================

class ExecuteResult(Enum):
    """
    Outcome of a transaction execution attempt.

    APPLIED: Transaction was validated and applied to the ledger.
    REJECTED: Transaction failed validation (insufficient funds, unknown
              wallet or unit, balance constraint).
    """
    APPLIED = "applied"
    REJECTED = "rejected"


class OriginType(Enum):
    """Classification of where a transaction originated."""
    USER_ACTION = "user_action"           # Direct account-to-account transfer
    CONTRACT = "contract"                 # Pool or token contract
    LIFECYCLE = "lifecycle"               # Keeper-driven (reward accrual)
    SYSTEM = "system"                     # Issuance and initial funding


# ============================================================================
# TRANSACTION ORIGIN
# ============================================================================

@dataclass(frozen=True, slots=True)
class TransactionOrigin:
    """
    Immutable record of a transaction's origin for audit purposes.

    Attributes:
        origin_type: Classification of the origin source
        source_id: Identifier of the specific source (contract name, account)
        event_type: Operation that produced it (e.g. "stake", "borrow")
    """
    origin_type: OriginType
    source_id: str
    event_type: Optional[str] = None

    def __repr__(self) -> str:
        parts = [f"{self.origin_type.value}:{self.source_id}"]
        if self.event_type:
            parts.append(f"event={self.event_type}")
        return f"Origin({', '.join(parts)})"


# ============================================================================
# CORE DATA STRUCTURES
# ============================================================================

@dataclass(frozen=True, slots=True)
class Move:
    """
    A single transfer of value between two wallets.

    Attributes:
        quantity: The amount to transfer (positive int).
        unit_symbol: The symbol of the unit being transferred.
        source: The wallet ID from which value is debited.
        dest: The wallet ID to which value is credited.
        contract_id: Identifier of the operation generating this move.

    All fields are validated in __post_init__.
    """
    quantity: int
    unit_symbol: str
    source: str
    dest: str
    contract_id: str

    def __post_init__(self):
        if not self.source or not self.source.strip():
            raise ValueError("Move source cannot be empty")
        if not self.dest or not self.dest.strip():
            raise ValueError("Move dest cannot be empty")
        if not self.unit_symbol or not self.unit_symbol.strip():
            raise ValueError("Move unit_symbol cannot be empty")
        if not self.contract_id or not self.contract_id.strip():
            raise ValueError("Move contract_id cannot be empty")
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int):
            raise ValueError(f"Move quantity must be int, got {type(self.quantity)}")
        if self.quantity <= 0:
            raise ValueError(f"Move quantity must be positive, got {self.quantity}")
        if self.source == self.dest:
            raise ValueError("Source and dest must be different")

    def __repr__(self) -> str:
        return f"Move({self.quantity} {self.unit_symbol}: {self.source}→{self.dest})"


@dataclass(frozen=True, slots=True)
class PendingTransaction:
    """
    A transaction before execution - represents INTENT.

    Attributes:
        moves: Tuple of value transfers between wallets
        origin: Who/what created this transaction and why
        timestamp: Clock time (ms) when it was built
    """
    moves: Tuple[Move, ...]
    origin: TransactionOrigin
    timestamp: int

    def is_empty(self) -> bool:
        return not self.moves

    def __repr__(self) -> str:
        return f"PendingTransaction({len(self.moves)} moves, {self.origin})"


def build_transaction(
    view: LedgerView,
    moves: List[Move],
    origin: Optional[TransactionOrigin] = None,
) -> PendingTransaction:
    """
    Build a PendingTransaction from moves.

    Args:
        view: Read-only ledger view (provides current_time)
        moves: Moves to include in the transaction
        origin: Transaction origin (defaults to CONTRACT origin)

    Example:
        tx = build_transaction(ledger, [
            Move(100, "CSPR", "alice", "staking_pool", "stake")
        ])
        ledger.apply(tx)
    """
    if origin is None:
        origin = TransactionOrigin(OriginType.CONTRACT, "contract")
    return PendingTransaction(
        moves=tuple(moves),
        origin=origin,
        timestamp=view.current_time,
    )


@dataclass(frozen=True, slots=True)
class Transaction:
    """
    An executed, immutable record of balance changes - represents FACT.

    Attributes:
        moves: Tuple of value transfers between wallets
        origin: Who/what created this transaction and why
        timestamp: When the PendingTransaction was built (ms)
        exec_id: Unique execution identifier (ledger + sequence + time)
        ledger_name: Name of the ledger that executed this
        sequence_number: Monotonic sequence within the ledger
        contract_ids: Operation ids from moves (auto-populated)
    """
    moves: Tuple[Move, ...]
    origin: TransactionOrigin
    timestamp: int
    exec_id: str
    ledger_name: str
    sequence_number: int
    contract_ids: FrozenSet[str] = None

    def __post_init__(self):
        if not self.moves:
            raise ValueError("Transaction must have moves")
        if self.contract_ids is None:
            object.__setattr__(
                self, 'contract_ids',
                frozenset(m.contract_id for m in self.moves)
            )

    def __repr__(self) -> str:
        moves = ", ".join(
            f"{m.quantity} {m.unit_symbol}: {m.source}→{m.dest}" for m in self.moves
        )
        return f"Transaction({self.exec_id}, {self.origin}, [{moves}])"


@dataclass(frozen=True, slots=True)
class Unit:
    """
    Definition of a token (asset type) held in the ledger.

    Attributes:
        symbol: Short identifier (e.g. "CSPR", "thCSPR").
        name: Human-readable name.
        unit_type: NATIVE or SHARE.
        decimals: Display decimals; balances are always integer base units.
        min_balance: Minimum allowed balance in any non-system wallet.
        max_balance: Maximum allowed balance in any wallet.
    """
    symbol: str
    name: str
    unit_type: str
    decimals: int = BASE_DECIMALS
    min_balance: int = 0
    max_balance: int = U512_MAX

    def format(self, quantity: int) -> str:
        """Render an integer amount in whole units, e.g. 1500000000 -> '1.5'."""
        whole, frac = divmod(quantity, 10 ** self.decimals)
        if not frac:
            return str(whole)
        return f"{whole}.{str(frac).rjust(self.decimals, '0').rstrip('0')}"


# ============================================================================
# UNIT FACTORIES
# ============================================================================

def native_asset(symbol: str = BASE_SYMBOL, name: str = "Casper") -> Unit:
    """Create the chain's native base asset unit."""
    return Unit(symbol=symbol, name=name, unit_type=UNIT_TYPE_NATIVE)


def share_units(symbol: str = SHARE_SYMBOL, name: str = "Thaw Staked CSPR") -> Unit:
    """Create the liquid-staking share token unit."""
    return Unit(symbol=symbol, name=name, unit_type=UNIT_TYPE_SHARE)
