"""
Conservation Law Conformance Tests

INVARIANTS, after every operation (accepted or rejected):

    Σ_{w} balance(w, u) = 0 for every unit u (system wallet included)
    total_shares         = share token circulating supply
    total_pooled         = principal delegated by the staking pool
    pool native balance  = base asset owed to unclaimed withdrawals
    lending native       = total_deposits - total_borrowed
    lending share custody = Σ collateral
    total_borrowed       = Σ debt ≤ total_deposits
    total_deposits       = Σ lender deposits

These tests use property-based testing to verify conservation holds for
arbitrary operation sequences.
"""

import pytest
from hypothesis import given, settings, note

from stakepool import ProtocolError, PRECISION, ONE, UNBONDING_PERIOD_MS

from tests.conftest import assert_conserved
from tests.operations import fresh_protocol, op_sequences, perform


class TestConservationProperties:
    """Property-based conservation tests."""

    @given(op_sequences())
    @settings(max_examples=60, deadline=None)
    def test_invariants_hold_after_every_operation(self, ops):
        """
        PROPERTY: Every accounting identity holds after each operation.
        """
        d = fresh_protocol()
        for op in ops:
            try:
                perform(d, op)
            except ProtocolError as e:
                note(f"{op} rejected: {e.tag}")
            assert_conserved(d)

    @given(op_sequences())
    @settings(max_examples=40, deadline=None)
    def test_exchange_rate_never_decreases(self, ops):
        """
        PROPERTY: While shares are outstanding the exchange rate only rises.
        """
        d = fresh_protocol()
        for op in ops:
            shares_before = d.staking_pool.total_shares
            rate_before = d.staking_pool.get_exchange_rate()
            try:
                perform(d, op)
            except ProtocolError:
                pass
            if shares_before and d.staking_pool.total_shares:
                assert d.staking_pool.get_exchange_rate() >= rate_before

    @given(op_sequences())
    @settings(max_examples=40, deadline=None)
    def test_every_withdrawal_is_paid_once(self, ops):
        """
        PROPERTY: After unbonding, each open withdrawal can be claimed exactly
        once and the pool's base-asset balance drains to zero.
        """
        d = fresh_protocol()
        for op in ops:
            try:
                perform(d, op)
            except ProtocolError:
                pass

        d.runtime.advance_time(UNBONDING_PERIOD_MS)
        for request in d.staking_pool.withdrawals.all():
            if not request.claimed:
                assert d.staking_pool.claim(request.owner, request.id) == request.base_amount
        assert d.runtime.balance(d.staking_pool.address) == 0


class TestConservationExamples:
    """Explicit conservation examples."""

    def test_full_cycle_returns_principal(self, protocol):
        pool = protocol.staking_pool
        shares = pool.stake("alice", 500 * ONE)
        wid = pool.unstake("alice", shares)
        protocol.runtime.advance_time(UNBONDING_PERIOD_MS)
        pool.claim("alice", wid)
        assert protocol.runtime.balance("alice") == 10_000 * ONE
        assert_conserved(protocol)

    def test_rewards_are_split_not_created(self, raw_protocol):
        d = raw_protocol
        d.staking_pool.stake("alice", 1000)
        d.validators.accrue_reward("staking_pool", "validator-1", 100)
        d.staking_pool.compound("keeper")
        assert d.runtime.balance("treasury") + (d.staking_pool.total_pooled - 1000) == 100
        assert d.staking_pool.get_exchange_rate() == 1090 * PRECISION // 1000
        assert_conserved(d)

    def test_leverage_and_liquidation_conserve(self, borrowed_protocol):
        d = borrowed_protocol
        d.lending_pool.leverage_stake("bob", 100 * ONE, 4)
        assert_conserved(d)
        d.lending_pool.set_config("admin", 7500, 7000, 500)
        d.lending_pool.liquidate("carol", "alice", 500 * ONE)
        assert_conserved(d)
