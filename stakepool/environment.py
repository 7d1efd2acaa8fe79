"""
environment.py - Execution host for the protocol contracts

Provides the pieces a chain runtime would otherwise supply:

1. ManualClock: monotonic block time in milliseconds
2. Runtime: the shared token ledger, account creation, native transfers,
   the audit event log, and fail-atomic execution of entry points
3. Contract: base class binding a contract to its runtime and account
4. entrypoint: decorator that runs a contract method inside Runtime.atomic()

Fail-atomic execution: the outermost entry point opens the runtime's undo
Journal and every entry point takes a savepoint on it. Ledger balances,
registrations, the transaction log and every per-account contract map
record their writes there. If an exception escapes, the journal is rolled
back to the savepoint, the few fixed-size contract fields are restored and
the exception is re-raised. Nested calls (a pool calling the share token, a
reentrant collaborator) take their own savepoint, so an inner failure that
the outer call handles only rolls back the inner effects.
"""

from __future__ import annotations
from contextlib import contextmanager
from dataclasses import dataclass, field
import copy
import functools
from typing import Dict, List, Any, Iterator, Tuple

from .core import (
    Address, Stateful, TransactionOrigin, OriginType,
    BASE_SYMBOL,
    ProtocolError, native_asset, check_amount,
)
from .journal import Journal, JournaledDict
from .ledger import Ledger


class ManualClock:
    """Block time that only moves when told to, and only forward."""

    def __init__(self, start_ms: int = 0):
        self._now_ms = start_ms

    @property
    def now_ms(self) -> int:
        return self._now_ms

    def set(self, time_ms: int) -> None:
        """
        Move the clock to an absolute time.

        Raises:
            ValueError: If time_ms is before the current time
        """
        if time_ms < self._now_ms:
            raise ValueError(f"Cannot move time backwards: {time_ms} < {self._now_ms}")
        self._now_ms = time_ms

    def advance(self, delta_ms: int) -> int:
        if delta_ms < 0:
            raise ValueError(f"Cannot move time backwards by {delta_ms} ms")
        self._now_ms += delta_ms
        return self._now_ms


@dataclass(frozen=True, slots=True)
class Event:
    """
    Audit record emitted by a contract.

    Attributes:
        name: Event name (e.g. "Staked", "Liquidated")
        source: Address of the emitting contract
        time_ms: Block time of emission
        fields: Event payload
    """
    name: str
    source: str
    time_ms: int
    fields: Dict[str, Any] = field(default_factory=dict)

    def __getitem__(self, key: str) -> Any:
        return self.fields[key]


class Runtime:
    """
    Shared execution host: one clock, one ledger, one event log.

    Example:
        rt = Runtime(verbose=False)
        rt.create_account("alice", 1_000 * ONE)
        rt.transfer_native("alice", "bob", 10 * ONE, "gift")
    """

    def __init__(
        self,
        name: str = "stakepool",
        start_ms: int = 0,
        base_symbol: str = BASE_SYMBOL,
        verbose: bool = False,
        test_mode: bool = False,
    ):
        self.clock = ManualClock(start_ms)
        self.journal = Journal()
        self.ledger = Ledger(name, self.clock, verbose=verbose, test_mode=test_mode, journal=self.journal)
        self.base_symbol = base_symbol
        self.ledger.register_unit(native_asset(base_symbol))
        self.events: List[Event] = []
        self.verbose = verbose
        self._components: Dict[str, Stateful] = {}
        self._depth = 0

    # ========================================================================
    # TIME
    # ========================================================================

    @property
    def now_ms(self) -> int:
        return self.clock.now_ms

    def advance_time(self, delta_ms: int) -> int:
        return self.clock.advance(delta_ms)

    def set_time(self, time_ms: int) -> None:
        self.clock.set(time_ms)

    # ========================================================================
    # ACCOUNTS AND NATIVE TRANSFERS
    # ========================================================================

    def create_account(self, account: Address, balance: int = 0) -> Address:
        """Register an account and optionally fund it from the system wallet."""
        self.ledger.ensure_wallet(account)
        if balance:
            self.ledger.issue(account, self.base_symbol, check_amount(balance, "balance"), "fund")
        return account

    def balance(self, account: Address) -> int:
        """Native balance of an account (0 for unknown accounts)."""
        if not self.ledger.is_registered(account):
            return 0
        return self.ledger.get_balance(account, self.base_symbol)

    def transfer_native(self, source: Address, dest: Address, amount: int, contract_id: str) -> None:
        """Move base asset between accounts; zero amounts are a no-op."""
        self.ledger.ensure_wallet(dest)
        origin = TransactionOrigin(OriginType.CONTRACT, source, contract_id)
        self.ledger.transfer(self.base_symbol, source, dest, amount, contract_id, origin)

    # ========================================================================
    # EVENTS AND LOGGING
    # ========================================================================

    def emit(self, emitter: str, event_name: str, **fields: Any) -> Event:
        event = Event(name=event_name, source=emitter, time_ms=self.now_ms, fields=fields)
        self.events.append(event)
        return event

    def events_named(self, name: str) -> List[Event]:
        return [e for e in self.events if e.name == name]

    def _log(self, message: str) -> None:
        if self.verbose:
            print(f"{'  ' * self._depth}{message}")

    # ========================================================================
    # FAIL-ATOMIC EXECUTION
    # ========================================================================

    def register(self, name: str, component: Stateful) -> None:
        """
        Register a component for snapshot/restore around every entry point.

        Raises:
            ValueError: If the name is taken
        """
        if name in self._components:
            raise ValueError(f"Component {name} already registered")
        self._components[name] = component

    def component(self, name: str) -> Stateful:
        return self._components[name]

    def _snapshot(self) -> Tuple[Dict[str, Any], int]:
        return (
            {name: c.snapshot() for name, c in self._components.items()},
            len(self.events),
        )

    def _restore(self, snap: Tuple[Dict[str, Any], int]) -> None:
        component_snaps, n_events = snap
        for name, state in component_snaps.items():
            self._components[name].restore(state)
        del self.events[n_events:]

    @contextmanager
    def atomic(self, operation: str) -> Iterator[None]:
        """
        Run a block fail-atomically.

        Everything written inside the block is undone if an exception
        escapes it, and the exception is re-raised unchanged.
        """
        outermost = self._depth == 0
        if outermost:
            self.journal.open()
        savepoint = self.journal.savepoint()
        snap = self._snapshot()
        self._log(f"→ {operation}")
        self._depth += 1
        try:
            yield
        except Exception as e:
            self.journal.rollback(savepoint)
            self._restore(snap)
            self._depth -= 1
            reason = e.tag if isinstance(e, ProtocolError) else type(e).__name__
            self._log(f"✗ REVERTED {operation}: {reason}: {e}")
            raise
        else:
            self._depth -= 1
            self._log(f"✓ {operation}")
        finally:
            if outermost:
                self.journal.close()


def entrypoint(method):
    """Run a Contract method inside its runtime's atomic() block."""
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        with self.runtime.atomic(f"{self.address}.{method.__name__}"):
            return method(self, *args, **kwargs)
    return wrapper


class Contract:
    """
    Base class for protocol contracts.

    Subclasses list their fixed-size mutable attributes (totals, settings,
    scalars) in STATE_FIELDS, which are shallow-copied at every entry point,
    and collaborator bindings in BINDING_FIELDS, which are reference-copied
    so rollback rebinds without cloning the collaborator. Per-account maps
    are JournaledDicts from journaled(); they are never copied.
    """

    STATE_FIELDS: Tuple[str, ...] = ()
    BINDING_FIELDS: Tuple[str, ...] = ()

    def __init__(self, runtime: Runtime, address: Address):
        self.runtime = runtime
        self.address = runtime.create_account(address)
        runtime.register(address, self)

    @property
    def now_ms(self) -> int:
        return self.runtime.now_ms

    def journaled(self) -> JournaledDict:
        """An empty dict whose writes roll back with the runtime."""
        return JournaledDict(self.runtime.journal)

    def emit(self, event_name: str, **fields: Any) -> Event:
        return self.runtime.emit(self.address, event_name, **fields)

    def snapshot(self) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        return (
            {f: copy.copy(getattr(self, f)) for f in self.STATE_FIELDS},
            {f: getattr(self, f) for f in self.BINDING_FIELDS},
        )

    def restore(self, snapshot: Tuple[Dict[str, Any], Dict[str, Any]]) -> None:
        state, bindings = snapshot
        for name, value in state.items():
            # Copy again so the snapshot stays reusable
            setattr(self, name, copy.copy(value))
        for name, value in bindings.items():
            setattr(self, name, value)
