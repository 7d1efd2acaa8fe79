"""
test_liquidation_lifecycle.py - End-to-end lending and liquidation scenarios

Tests complete lending lifecycles:
- Leveraged position monitored by the keeper and analytics
- Risk parameters tightened until the position is liquidatable
- Liquidation, repayment, collateral release and exit
- Lender exit after all debt is settled
"""

import pytest

from stakepool import (
    ONE, PRECISION, UNBONDING_PERIOD_MS,
    PositionHealthy, WouldBecomeUndercollateralized,
    health_status, to_float, stress_health_factors, liquidation_exchange_rate,
    HEALTH_STATUS_DANGER, HEALTH_STATUS_LIQUIDATABLE, HEALTH_STATUS_HEALTHY,
)
from tests.conftest import assert_conserved


HOUR = 3_600_000


class TestLeveragedLiquidation:
    """A four-loop position from opening to full exit."""

    def test_full_lifecycle(self, protocol):
        d = protocol
        lp = d.lending_pool
        keeper = d.keeper()

        # Open
        lp.deposit("lender", 5_000 * ONE)
        result = lp.leverage_stake("alice", 1_000 * ONE, 4)
        assert result.loops_executed == 4
        assert result.total_borrowed == 1_734_375_000_000
        assert result.collateral_posted == 2_312_500_000_000
        assert health_status(lp.get_health_factor("alice")) == HEALTH_STATUS_DANGER
        assert_conserved(d)

        # Rewards lift the exchange rate and the position's health
        hf_open = lp.get_health_factor("alice")
        report = keeper.step(HOUR, rewards=100 * ONE)
        assert report.compounded == 90 * ONE
        assert report.liquidatable == ()
        assert lp.get_health_factor("alice") > hf_open

        # Tighter liquidation threshold pushes it under water
        lp.set_config("admin", 7500, 7000, 500)
        report = keeper.step(2 * HOUR)
        assert report.liquidatable == ("alice",)
        assert health_status(lp.get_health_factor("alice")) == HEALTH_STATUS_LIQUIDATABLE

        # Liquidate half the debt
        debt = lp.get_position("alice").debt
        collateral = lp.get_position("alice").collateral
        seized = lp.liquidate("carol", "alice", 1_000 * ONE)

        position = lp.get_position("alice")
        assert position.debt == debt - debt // 2
        assert position.collateral == collateral - seized
        assert d.share_token.balance_of("carol") == seized
        assert lp.get_health_factor("alice") >= PRECISION
        assert lp.liquidatable_accounts() == []
        with pytest.raises(PositionHealthy):
            lp.liquidate("carol", "alice", ONE)
        assert_conserved(d)

        # Liquidator's shares are worth more than what they paid
        assert d.staking_pool.preview_unstake(seized) > debt // 2

        # Collateral stays locked while debt is outstanding
        with pytest.raises(WouldBecomeUndercollateralized):
            lp.withdraw_collateral("alice", position.collateral)

        # Exit
        assert lp.repay("alice", 1_000 * ONE) == position.debt
        lp.withdraw_collateral("alice", position.collateral)
        assert health_status(lp.get_health_factor("alice")) == HEALTH_STATUS_HEALTHY
        assert "alice" not in lp.positions

        wid = d.staking_pool.unstake("alice", d.share_token.balance_of("alice"))
        d.runtime.advance_time(UNBONDING_PERIOD_MS)
        d.staking_pool.claim("alice", wid)

        lp.withdraw("lender", 5_000 * ONE)
        assert lp.total_deposits == 0
        assert lp.total_borrowed == 0
        assert d.staking_pool.total_shares == seized
        assert_conserved(d)


class TestStressReport:
    """Analytics agree with the on-ledger health engine."""

    def test_stress_matches_health_factor(self, borrowed_protocol):
        lp = borrowed_protocol.lending_pool
        position = lp.get_position("alice")
        params = lp.risk_parameters

        on_ledger = to_float(lp.get_health_factor("alice"))
        stressed = stress_health_factors(
            position.collateral, position.debt, [to_float(lp.exchange_rate())],
            params.liquidation_threshold,
        )
        assert stressed[0] == pytest.approx(on_ledger)

    def test_position_already_below_par(self, borrowed_protocol):
        lp = borrowed_protocol.lending_pool
        position = lp.get_position("alice")
        breakeven = liquidation_exchange_rate(position.collateral, position.debt, 7000)
        assert breakeven > to_float(lp.exchange_rate())
        lp.set_config("admin", 7500, 7000, 500)
        assert lp.liquidatable_accounts() == ["alice"]


class TestMultipleBorrowers:
    """Liquidating one borrower leaves the others untouched."""

    def test_only_unhealthy_borrower_is_liquidated(self, protocol):
        d = protocol
        lp = d.lending_pool
        lp.deposit("lender", 5_000 * ONE)

        for account, borrow in (("alice", 750 * ONE), ("bob", 500 * ONE)):
            d.staking_pool.stake(account, 1_000 * ONE)
            d.share_token.approve(account, lp.address, 1_000 * ONE)
            lp.deposit_collateral(account, 1_000 * ONE)
            lp.borrow(account, borrow)

        lp.set_config("admin", 7500, 7000, 500)
        assert lp.liquidatable_accounts() == ["alice"]

        bob_before = lp.get_position("bob")
        lp.liquidate("carol", "alice", 375 * ONE)
        assert lp.get_position("bob") == bob_before
        with pytest.raises(PositionHealthy):
            lp.liquidate("carol", "bob", ONE)
        assert_conserved(d)
