"""
test_config.py - Unit tests for config.py

Tests:
- RiskParameters validation
- Packed configuration word layout
- Admin gating
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from stakepool import (
    RiskParameters, DEFAULT_RISK_PARAMETERS, StakingSettings, require_admin,
    InvalidParameter, NotAdmin, AdminNotSet, DEFAULT_MIN_STAKE,
)
from stakepool.config import FIELD_MASK


bps = st.integers(min_value=0, max_value=10_000)


class TestRiskParameters:

    def test_defaults(self):
        p = DEFAULT_RISK_PARAMETERS
        assert (p.collateral_factor, p.liquidation_threshold,
                p.liquidation_bonus, p.base_rate) == (7500, 8000, 500, 500)

    def test_pack_layout(self):
        word = RiskParameters(7500, 8000, 500, 500).pack()
        assert word & FIELD_MASK == 7500
        assert (word >> 16) & FIELD_MASK == 8000
        assert (word >> 32) & FIELD_MASK == 500
        assert (word >> 48) & FIELD_MASK == 500

    @given(bps, bps, bps, bps)
    @settings(max_examples=50)
    def test_unpack_inverts_pack(self, cf, lt, bonus, rate):
        params = RiskParameters(cf, lt, bonus, rate)
        assert RiskParameters.unpack(params.pack()) == params

    def test_unpack_masks_high_bits(self):
        word = RiskParameters(1, 2, 3, 4).pack() | (0xABCD << 64)
        assert RiskParameters.unpack(word) == RiskParameters(1, 2, 3, 4)

    @pytest.mark.parametrize("field", [
        "collateral_factor", "liquidation_threshold", "liquidation_bonus", "base_rate",
    ])
    def test_rejects_above_bps(self, field):
        with pytest.raises(InvalidParameter, match=field):
            DEFAULT_RISK_PARAMETERS.with_updates(**{field: 10_001})

    def test_rejects_negative(self):
        with pytest.raises(InvalidParameter):
            RiskParameters(collateral_factor=-1).validate()

    def test_with_updates_keeps_other_fields(self):
        updated = DEFAULT_RISK_PARAMETERS.with_updates(collateral_factor=5000)
        assert updated.collateral_factor == 5000
        assert updated.base_rate == 500


class TestStakingSettings:

    def test_defaults(self):
        s = StakingSettings()
        assert s.protocol_fee_bps == 1000
        assert s.min_stake == DEFAULT_MIN_STAKE
        assert not s.paused
        assert s.admin is None


class TestRequireAdmin:

    def test_admin_passes(self):
        require_admin("admin", "admin")

    def test_other_caller_rejected(self):
        with pytest.raises(NotAdmin):
            require_admin("admin", "mallory")

    def test_missing_admin(self):
        with pytest.raises(AdminNotSet):
            require_admin(None, "admin")
