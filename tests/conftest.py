"""
conftest.py - Shared pytest fixtures for stakepool tests

Provides common fixtures used across unit, conformance and functional tests:
- A bare runtime and ledger
- Deployed protocols (realistic mote amounts, and raw small-integer amounts)
- Protocols with a borrower position already open
- State fingerprints for rollback comparisons
- Accounting identity checks shared by conformance and functional tests
"""

import pytest
from typing import Any, Dict

from stakepool import (
    Runtime, Ledger, ManualClock, Deployment, deploy,
    native_asset, ONE,
)


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def fingerprint(d: Deployment) -> Dict[str, Any]:
    """Every piece of mutable protocol state, in comparable form."""
    ledger = d.runtime.ledger
    return {
        "balances": {u: ledger.get_positions(u) for u in ledger.list_units()},
        "log_len": len(ledger.transaction_log),
        "events": len(d.runtime.events),
        "pool": (d.staking_pool.total_pooled, d.staking_pool.total_shares),
        "settings": repr(d.staking_pool.settings),
        "withdrawals": d.staking_pool.withdrawals.all(),
        "allowances": dict(d.share_token.allowances),
        "principal": dict(d.validators.principal),
        "rewards": dict(d.validators.rewards),
        "deposits": dict(d.lending_pool.lender_deposits),
        "positions": dict(d.lending_pool.positions),
        "liquidity": (d.lending_pool.total_deposits, d.lending_pool.total_borrowed),
        "config": d.lending_pool.config_word,
        "lending_admin": d.lending_pool.admin,
    }


def open_position(d: Deployment, account: str, stake: int, collateral: int, borrow: int) -> int:
    """Stake, post ``collateral`` shares and borrow; returns shares minted."""
    shares = d.staking_pool.stake(account, stake)
    d.share_token.approve(account, d.lending_pool.address, collateral)
    d.lending_pool.deposit_collateral(account, collateral)
    if borrow:
        d.lending_pool.borrow(account, borrow)
    return shares


def assert_conserved(d: Deployment) -> None:
    """Every accounting identity between the ledger and the contracts."""
    pool = d.staking_pool
    lending = d.lending_pool
    token = d.share_token
    rt = d.runtime

    assert d.ledger.verify_double_entry()["valid"]
    assert pool.total_shares == token.total_supply()
    assert pool.total_pooled == d.validators.principal.get((pool.address, d.validator), 0)
    assert rt.balance(pool.address) == pool.withdrawals.pending_total()
    assert rt.balance(lending.address) == lending.total_deposits - lending.total_borrowed
    assert token.balance_of(lending.address) == sum(p.collateral for p in lending.positions.values())
    assert lending.total_borrowed == sum(p.debt for p in lending.positions.values())
    assert lending.total_borrowed <= lending.total_deposits
    assert lending.total_deposits == sum(lending.lender_deposits.values())
    assert rt.balance(d.validators.address) == (
        d.validators.total_delegated() + sum(d.validators.rewards.values())
    )


# =============================================================================
# BASIC FIXTURES
# =============================================================================

@pytest.fixture
def clock():
    return ManualClock(0)


@pytest.fixture
def ledger(clock):
    """Ledger with the native asset and two wallets."""
    ledger = Ledger("test", clock, verbose=False, test_mode=True)
    ledger.register_unit(native_asset())
    ledger.register_wallet("alice")
    ledger.register_wallet("bob")
    return ledger


@pytest.fixture
def runtime():
    return Runtime(verbose=False)


# =============================================================================
# PROTOCOL FIXTURES
# =============================================================================

@pytest.fixture
def protocol():
    """Deployed protocol; alice, bob, carol and lender hold 10,000 CSPR each."""
    d = deploy()
    for account in ("alice", "bob", "carol", "lender"):
        d.fund(account, 10_000 * ONE)
    return d


@pytest.fixture
def raw_protocol():
    """Deployed protocol with min_stake=1 and small integer balances."""
    d = deploy(min_stake=1)
    for account in ("alice", "bob", "carol", "lender"):
        d.fund(account, 1_000_000)
    return d


@pytest.fixture
def borrowed_protocol(protocol):
    """
    alice: 1,000 shares posted, 750 CSPR borrowed (max at cf 75%).
    lender: 5,000 CSPR deposited.
    """
    protocol.lending_pool.deposit("lender", 5_000 * ONE)
    open_position(protocol, "alice", 1_000 * ONE, 1_000 * ONE, 750 * ONE)
    return protocol
