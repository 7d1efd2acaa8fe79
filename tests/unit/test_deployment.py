"""
test_deployment.py - Unit tests for deployment.py

Tests:
- Wiring of a fresh protocol
- Parameter validation at deploy time
"""

import pytest

from stakepool import (
    deploy, RiskParameters, ONE, FeeTooHigh, InvalidParameter, InvalidAmount,
)


class TestDeploy:

    def test_wiring(self):
        d = deploy()
        assert d.share_token.minter == d.staking_pool.address
        assert d.staking_pool.share_token is d.share_token
        assert d.staking_pool.validators is d.validators
        assert d.lending_pool.staking_pool is d.staking_pool
        assert d.staking_pool.admin == "admin"
        assert d.lending_pool.admin == "admin"
        assert d.ledger.is_registered("treasury")
        assert d.ledger.list_units() == ["CSPR", "thCSPR"]

    def test_custom_parameters(self):
        d = deploy(
            protocol_fee_bps=500, min_stake=ONE,
            risk_parameters=RiskParameters(6000, 7000, 300, 200),
            unbonding_period_ms=1_000, start_ms=50,
        )
        assert d.staking_pool.protocol_fee_bps == 500
        assert d.staking_pool.min_stake == ONE
        assert d.lending_pool.risk_parameters.collateral_factor == 6000
        assert d.staking_pool.withdrawals.unbonding_period_ms == 1_000
        assert d.runtime.now_ms == 50

    def test_fee_too_high(self):
        with pytest.raises(FeeTooHigh):
            deploy(protocol_fee_bps=3001)

    def test_invalid_risk_parameters(self):
        with pytest.raises(InvalidParameter):
            deploy(risk_parameters=RiskParameters(collateral_factor=20_000))

    def test_invalid_min_stake(self):
        with pytest.raises(InvalidAmount):
            deploy(min_stake=-1)

    def test_fund(self):
        d = deploy()
        d.fund("alice", 5 * ONE)
        assert d.runtime.balance("alice") == 5 * ONE
