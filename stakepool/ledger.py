"""
ledger.py - Double-Entry Token Ledger

The Ledger class holds every token balance in the system: the native base
asset and the liquid-staking share token. Pools and the share token never
keep their own balance maps; they move value through the ledger.

Key responsibilities:
    - Implements LedgerView protocol for read-only access
    - Applies transactions atomically (all moves succeed or all fail)
    - Maintains wallet balances and unit definitions
    - Always validates and always logs - every applied transaction lands in
      transaction_log
    - Records every write on an undo Journal so the runtime can roll back a
      failed operation
"""

from __future__ import annotations
from collections import defaultdict
from functools import partial
from typing import Dict, List, Set, Optional, Tuple, Any

from .core import (
    # Types
    Move, Transaction, Unit, PendingTransaction, TransactionOrigin,
    ExecuteResult, Clock, OriginType,
    Positions, BalanceMap,
    # Constants
    SYSTEM_WALLET,
    # Exceptions
    LedgerError, InsufficientFunds, BalanceConstraintViolation,
    UnitNotRegistered, WalletNotRegistered,
    # Helpers
    build_transaction,
)
from .journal import Journal


class Ledger:
    """
    Double-entry token ledger with full validation and audit trail.

    Time is read from an injected Clock so that transaction records carry the
    same block time the contracts see.

    Thread Safety:
        Not thread-safe. Each thread should maintain its own Ledger instance.

    Example:
        ledger = Ledger("main", clock)
        ledger.register_unit(native_asset())
        ledger.register_wallet("alice")
        ledger.issue("alice", "CSPR", 1000)
        ledger.transfer("CSPR", "alice", "bob", 100, "payment_001")
    """

    def __init__(
        self,
        name: str,
        clock: Clock,
        verbose: bool = True,
        test_mode: bool = False,
        journal: Optional[Journal] = None,
    ):
        """
        Create a ledger.

        Args:
            name: Ledger identifier
            clock: Time source for transaction records
            verbose: Print applied and rejected transactions (default: True)
            test_mode: Allow set_balance() calls (default: False)
            journal: Undo journal shared with the runtime (default: a private one)
        """
        self.name = name
        self.clock = clock
        self.balances: Dict[str, Dict[str, int]] = {}
        self.units: Dict[str, Unit] = {}
        self.registered_wallets: Set[str] = set()
        self.transaction_log: List[Transaction] = []
        self.verbose = verbose
        self.journal = journal if journal is not None else Journal()
        self._test_mode = test_mode
        self._next_sequence: int = 0
        # Inverted index unit -> {wallet -> quantity}, non-zero entries only
        self._positions_by_unit: Dict[str, Dict[str, int]] = defaultdict(dict)

        self.registered_wallets.add(SYSTEM_WALLET)
        self.balances[SYSTEM_WALLET] = defaultdict(int)

    # ========================================================================
    # LedgerView PROTOCOL IMPLEMENTATION (read-only methods)
    # ========================================================================

    @property
    def current_time(self) -> int:
        """Current block time in milliseconds."""
        return self.clock.now_ms

    def get_balance(self, wallet_id: str, unit_symbol: str) -> int:
        """
        Get the balance of a specific unit in a wallet.

        Raises:
            WalletNotRegistered: If wallet is not registered
            UnitNotRegistered: If unit is not registered
        """
        if wallet_id not in self.registered_wallets:
            raise WalletNotRegistered(f"Wallet {wallet_id} not registered")
        if unit_symbol not in self.units:
            raise UnitNotRegistered(f"Unit {unit_symbol} not registered")
        return self.balances[wallet_id].get(unit_symbol, 0)

    def get_positions(self, unit_symbol: str) -> Positions:
        """All non-zero positions for a unit, via the inverted index."""
        return dict(self._positions_by_unit.get(unit_symbol, {}))

    def list_wallets(self) -> Set[str]:
        return self.registered_wallets.copy()

    def list_units(self) -> List[str]:
        return sorted(self.units.keys())

    def get_unit(self, symbol: str) -> Unit:
        if symbol not in self.units:
            raise UnitNotRegistered(f"Unit {symbol} not registered")
        return self.units[symbol]

    def get_wallet_balances(self, wallet_id: str) -> BalanceMap:
        if wallet_id not in self.registered_wallets:
            raise WalletNotRegistered(f"Wallet {wallet_id} not registered")
        return dict(self.balances[wallet_id])

    def total_supply(self, unit_symbol: str) -> int:
        """
        Sum of a unit's balances across all wallets, system wallet included.

        Issuance debits the system wallet, so this is 0 for any unit whose
        value only ever entered through the ledger.
        """
        if unit_symbol not in self.units:
            raise UnitNotRegistered(f"Unit {unit_symbol} not registered")
        return sum(self.balances[w].get(unit_symbol, 0) for w in sorted(self.registered_wallets))

    def circulating_supply(self, unit_symbol: str) -> int:
        """Sum of a unit's balances outside the system wallet."""
        if unit_symbol not in self.units:
            raise UnitNotRegistered(f"Unit {unit_symbol} not registered")
        return sum(
            qty for wallet, qty in self._positions_by_unit.get(unit_symbol, {}).items()
            if wallet != SYSTEM_WALLET
        )

    def verify_double_entry(self) -> Dict[str, Any]:
        """
        Verify that conservation holds for all units.

        Every unit's balances, system wallet included, must sum to zero.

        Returns:
            Dict with keys:
            - 'valid': bool
            - 'supplies': Dict[str, int] - total per unit
            - 'discrepancies': List[Dict] - unit and actual for each violation
        """
        supplies = {}
        discrepancies = []
        for unit_symbol in self.units:
            current_supply = self.total_supply(unit_symbol)
            supplies[unit_symbol] = current_supply
            if current_supply != 0:
                discrepancies.append({'unit': unit_symbol, 'actual': current_supply})
        return {
            'valid': len(discrepancies) == 0,
            'supplies': supplies,
            'discrepancies': discrepancies,
        }

    def is_registered(self, wallet_id: str) -> bool:
        return wallet_id in self.registered_wallets

    # ========================================================================
    # REGISTRATION (Mutating)
    # ========================================================================

    def register_wallet(self, wallet_id: str) -> str:
        """
        Register a new wallet.

        Raises:
            ValueError: If wallet is already registered or the id is blank
        """
        if not wallet_id or not wallet_id.strip():
            raise ValueError("Wallet id cannot be empty")
        if wallet_id in self.registered_wallets:
            raise ValueError(f"Wallet {wallet_id} already registered")
        self.registered_wallets.add(wallet_id)
        self.balances[wallet_id] = defaultdict(int)
        self.journal.record(partial(self._unregister_wallet, wallet_id))
        return wallet_id

    def ensure_wallet(self, wallet_id: str) -> str:
        """Register a wallet if it is not registered yet."""
        if wallet_id not in self.registered_wallets:
            self.register_wallet(wallet_id)
        return wallet_id

    def register_unit(self, unit: Unit) -> None:
        """
        Register a new unit.

        Raises:
            ValueError: If unit symbol is already registered
        """
        if unit.symbol in self.units:
            raise ValueError(f"Unit {unit.symbol} already registered")
        self.units[unit.symbol] = unit
        self.journal.record(partial(self.units.pop, unit.symbol))
        if self.verbose:
            print(f"📝 Registered: {unit.symbol} ({unit.name}) [{unit.unit_type}]")

    def set_balance(self, wallet_id: str, unit_symbol: str, quantity: int) -> None:
        """
        Set a wallet's balance directly.

        WARNING: bypasses double-entry accounting. Only available in test mode.

        Raises:
            LedgerError: If called when test_mode is False
        """
        if not self._test_mode:
            raise LedgerError(
                "set_balance() is disabled in production mode. "
                "Use issue() or transfer() to modify balances. "
                "Set test_mode=True when creating Ledger for testing."
            )
        if wallet_id not in self.registered_wallets:
            raise WalletNotRegistered(f"Wallet {wallet_id} not registered")
        if unit_symbol not in self.units:
            raise UnitNotRegistered(f"Unit {unit_symbol} not registered")
        self._write_balance(wallet_id, unit_symbol, quantity)

    # ========================================================================
    # TRANSACTION EXECUTION (Mutating)
    # ========================================================================

    def _generate_exec_id(self, sequence: int) -> str:
        """Format: exec:{ledger_name}:{sequence:012d}:{time_ms}"""
        return f"exec:{self.name}:{sequence:012d}:{self.current_time}"

    def execute(self, pending: PendingTransaction) -> ExecuteResult:
        """
        Execute a PendingTransaction atomically.

        Returns:
            ExecuteResult.APPLIED if successful
            ExecuteResult.REJECTED if validation failed
        """
        try:
            self.apply(pending)
        except LedgerError as e:
            if self.verbose:
                print(f"✗ REJECTED: {e}")
            return ExecuteResult.REJECTED
        return ExecuteResult.APPLIED

    def apply(self, pending: PendingTransaction) -> Optional[Transaction]:
        """
        Validate and apply a PendingTransaction, raising on rejection.

        Returns:
            The logged Transaction, or None for an empty pending transaction

        Raises:
            UnitNotRegistered, WalletNotRegistered: unknown unit or wallet
            InsufficientFunds: a balance would fall below the unit minimum
            BalanceConstraintViolation: a balance would exceed the unit maximum
        """
        if pending.is_empty():
            return None

        self._check_pending(pending)

        sequence = self._next_sequence
        self._next_sequence += 1
        tx = Transaction(
            moves=pending.moves,
            origin=pending.origin,
            timestamp=pending.timestamp,
            exec_id=self._generate_exec_id(sequence),
            ledger_name=self.name,
            sequence_number=sequence,
        )
        self._execute_moves(tx.moves)

        # Audit trail is mandatory
        self.transaction_log.append(tx)
        self.journal.record(partial(self._unlog, sequence))
        if self.verbose:
            print(f"✓ APPLIED: {tx!r}")
        return tx

    def transfer(
        self,
        unit_symbol: str,
        source: str,
        dest: str,
        quantity: int,
        contract_id: str,
        origin: Optional[TransactionOrigin] = None,
    ) -> Optional[Transaction]:
        """
        Move ``quantity`` of one unit between two wallets.

        A zero quantity is a no-op and returns None.
        """
        if quantity == 0:
            return None
        tx = build_transaction(self, [Move(quantity, unit_symbol, source, dest, contract_id)], origin)
        return self.apply(tx)

    def issue(self, wallet_id: str, unit_symbol: str, quantity: int, contract_id: str = "issue") -> Optional[Transaction]:
        """Credit a wallet from the system wallet."""
        origin = TransactionOrigin(OriginType.SYSTEM, SYSTEM_WALLET, contract_id)
        return self.transfer(unit_symbol, SYSTEM_WALLET, wallet_id, quantity, contract_id, origin)

    def redeem(self, wallet_id: str, unit_symbol: str, quantity: int, contract_id: str = "redeem") -> Optional[Transaction]:
        """Debit a wallet back to the system wallet."""
        origin = TransactionOrigin(OriginType.SYSTEM, SYSTEM_WALLET, contract_id)
        return self.transfer(unit_symbol, wallet_id, SYSTEM_WALLET, quantity, contract_id, origin)

    def _check_pending(self, pending: PendingTransaction) -> None:
        """
        Validate a pending transaction against all constraints.

        Checks performed:
        1. Unit and wallet registration
        2. Balance constraints on the net effect of all moves

        Raises the matching LedgerError on the first violation.
        """
        for move in pending.moves:
            if move.unit_symbol not in self.units:
                raise UnitNotRegistered(f"unit not registered: {move.unit_symbol}")
            if not self.is_registered(move.source):
                raise WalletNotRegistered(f"wallet not registered: {move.source}")
            if not self.is_registered(move.dest):
                raise WalletNotRegistered(f"wallet not registered: {move.dest}")

        net: Dict[Tuple[str, str], int] = {}
        for move in pending.moves:
            key_src = (move.source, move.unit_symbol)
            key_dst = (move.dest, move.unit_symbol)
            net[key_src] = net.get(key_src, 0) - move.quantity
            net[key_dst] = net.get(key_dst, 0) + move.quantity

        # SYSTEM_WALLET can hold any balance
        for (wallet, unit_sym), delta in net.items():
            if wallet == SYSTEM_WALLET:
                continue
            current = self.balances[wallet][unit_sym]
            unit = self.units[unit_sym]
            proposed = current + delta
            if proposed < unit.min_balance:
                raise InsufficientFunds(
                    f"{wallet} {unit_sym}: {proposed} < min {unit.min_balance}"
                )
            if proposed > unit.max_balance:
                raise BalanceConstraintViolation(
                    f"{wallet} {unit_sym}: {proposed} > max {unit.max_balance}"
                )

    def _update_position_index(self, wallet_id: str, unit_symbol: str, quantity: int) -> None:
        if quantity:
            self._positions_by_unit[unit_symbol][wallet_id] = quantity
        else:
            self._positions_by_unit[unit_symbol].pop(wallet_id, None)

    def _put_balance(self, wallet_id: str, unit_symbol: str, quantity: int) -> None:
        self.balances[wallet_id][unit_symbol] = quantity
        self._update_position_index(wallet_id, unit_symbol, quantity)

    def _write_balance(self, wallet_id: str, unit_symbol: str, quantity: int) -> None:
        old = self.balances[wallet_id].get(unit_symbol, 0)
        self.journal.record(partial(self._put_balance, wallet_id, unit_symbol, old))
        self._put_balance(wallet_id, unit_symbol, quantity)

    def _execute_moves(self, moves) -> None:
        for move in moves:
            src = self.balances[move.source].get(move.unit_symbol, 0)
            self._write_balance(move.source, move.unit_symbol, src - move.quantity)
            dst = self.balances[move.dest].get(move.unit_symbol, 0)
            self._write_balance(move.dest, move.unit_symbol, dst + move.quantity)

    # ========================================================================
    # UNDO
    # ========================================================================

    def _unregister_wallet(self, wallet_id: str) -> None:
        self.registered_wallets.discard(wallet_id)
        self.balances.pop(wallet_id, None)
        for positions in self._positions_by_unit.values():
            positions.pop(wallet_id, None)

    def _unlog(self, sequence: int) -> None:
        self.transaction_log.pop()
        self._next_sequence = sequence
