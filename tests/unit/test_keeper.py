"""
test_keeper.py - Unit tests for keeper.py

Tests:
- step(): time, accrual, compounding, liquidation discovery
- run(): sequence of steps
"""

import pytest

from stakepool import Keeper, ONE, PRECISION, ValidatorNotSet, deploy
from tests.conftest import open_position


HOUR = 3_600_000


class TestStep:

    def test_step_accrues_and_compounds(self, raw_protocol):
        d = raw_protocol
        d.staking_pool.stake("alice", 1000)
        keeper = d.keeper()

        report = keeper.step(HOUR, rewards=100)

        assert report.time_ms == HOUR
        assert report.rewards_accrued == 100
        assert report.compounded == 90
        assert report.exchange_rate == 1_090_000_000_000_000_000
        assert report.liquidatable == ()
        assert d.runtime.now_ms == HOUR

    def test_step_without_rewards(self, raw_protocol):
        raw_protocol.staking_pool.stake("alice", 1000)
        report = raw_protocol.keeper().step(HOUR)
        assert report.compounded == 0
        assert report.exchange_rate == PRECISION

    def test_time_cannot_go_back(self, raw_protocol):
        keeper = raw_protocol.keeper()
        keeper.step(HOUR)
        with pytest.raises(ValueError):
            keeper.step(HOUR - 1)

    def test_missing_validator(self):
        d = deploy(validator=None)
        with pytest.raises(ValidatorNotSet):
            d.keeper().step(HOUR, rewards=10)

    def test_reports_liquidatable(self, borrowed_protocol):
        d = borrowed_protocol
        d.lending_pool.set_config("admin", 7500, 7000, 500)
        report = d.keeper().step(HOUR)
        assert report.liquidatable == ("alice",)

    def test_without_lending_pool(self, raw_protocol):
        keeper = Keeper(raw_protocol.staking_pool, raw_protocol.validators)
        assert keeper.step(HOUR).liquidatable == ()


class TestRun:

    def test_run_compounds_each_step(self, raw_protocol):
        d = raw_protocol
        d.staking_pool.stake("alice", 1000)
        reports = d.keeper().run([HOUR, 2 * HOUR, 3 * HOUR], lambda t: 100)
        assert [r.compounded for r in reports] == [90, 90, 90]
        assert d.staking_pool.total_pooled == 1270
        assert d.runtime.balance("treasury") == 30
        rates = [r.exchange_rate for r in reports]
        assert rates == sorted(rates)

    def test_rewards_raise_borrowing_power(self, protocol):
        d = protocol
        d.lending_pool.deposit("lender", 1_000 * ONE)
        open_position(d, "alice", 100 * ONE, 100 * ONE, 75 * ONE)
        d.keeper().step(HOUR, rewards=10 * ONE)
        assert d.lending_pool.get_max_borrow("alice") > 0
