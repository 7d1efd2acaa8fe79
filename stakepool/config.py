"""
config.py - Protocol parameters and admin gating

RiskParameters is the only code that knows the packed bit layout of the
lending configuration word:

    bits  0-15  collateral_factor      (bps)
    bits 16-31  liquidation_threshold  (bps)
    bits 32-47  liquidation_bonus      (bps)
    bits 48-63  base_rate              (bps)

Every field is masked to 16 bits on unpack.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from typing import Optional

from .core import (
    Address, BPS,
    DEFAULT_COLLATERAL_FACTOR, DEFAULT_LIQUIDATION_THRESHOLD,
    DEFAULT_LIQUIDATION_BONUS, DEFAULT_BASE_RATE,
    DEFAULT_PROTOCOL_FEE_BPS, DEFAULT_MIN_STAKE,
    AdminNotSet, NotAdmin, InvalidParameter,
)


FIELD_MASK = 0xFFFF
COLLATERAL_FACTOR_SHIFT = 0
LIQUIDATION_THRESHOLD_SHIFT = 16
LIQUIDATION_BONUS_SHIFT = 32
BASE_RATE_SHIFT = 48


@dataclass(frozen=True, slots=True)
class RiskParameters:
    """
    Lending risk parameters, all in basis points.

    Attributes:
        collateral_factor: Share of collateral value that may be borrowed
        liquidation_threshold: Collateral weight used by the health factor
        liquidation_bonus: Extra collateral paid to liquidators
        base_rate: Reference borrow rate (reporting only, no interest accrues)
    """
    collateral_factor: int = DEFAULT_COLLATERAL_FACTOR
    liquidation_threshold: int = DEFAULT_LIQUIDATION_THRESHOLD
    liquidation_bonus: int = DEFAULT_LIQUIDATION_BONUS
    base_rate: int = DEFAULT_BASE_RATE

    def validate(self) -> 'RiskParameters':
        """
        Raises:
            InvalidParameter: If any field is outside [0, 10000]
        """
        for name in ("collateral_factor", "liquidation_threshold", "liquidation_bonus", "base_rate"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= BPS:
                raise InvalidParameter(f"{name} must be in [0, {BPS}] bps, got {value!r}")
        return self

    def pack(self) -> int:
        return (
            (self.collateral_factor & FIELD_MASK) << COLLATERAL_FACTOR_SHIFT
            | (self.liquidation_threshold & FIELD_MASK) << LIQUIDATION_THRESHOLD_SHIFT
            | (self.liquidation_bonus & FIELD_MASK) << LIQUIDATION_BONUS_SHIFT
            | (self.base_rate & FIELD_MASK) << BASE_RATE_SHIFT
        )

    @classmethod
    def unpack(cls, word: int) -> 'RiskParameters':
        return cls(
            collateral_factor=(word >> COLLATERAL_FACTOR_SHIFT) & FIELD_MASK,
            liquidation_threshold=(word >> LIQUIDATION_THRESHOLD_SHIFT) & FIELD_MASK,
            liquidation_bonus=(word >> LIQUIDATION_BONUS_SHIFT) & FIELD_MASK,
            base_rate=(word >> BASE_RATE_SHIFT) & FIELD_MASK,
        )

    def with_updates(self, **changes) -> 'RiskParameters':
        """Copy with some fields replaced, validated."""
        return replace(self, **changes).validate()


DEFAULT_RISK_PARAMETERS = RiskParameters()


@dataclass(slots=True)
class StakingSettings:
    """
    Mutable staking pool configuration.

    Attributes:
        admin: Sole account allowed to change settings
        treasury: Receiver of protocol fees
        validator: Validator the pool delegates to
        protocol_fee_bps: Fee on compounded rewards (max 3000)
        min_stake: Smallest accepted stake amount
        paused: Blocks stake and unstake; claim is never blocked
    """
    admin: Optional[Address] = None
    treasury: Optional[Address] = None
    validator: Optional[str] = None
    protocol_fee_bps: int = DEFAULT_PROTOCOL_FEE_BPS
    min_stake: int = DEFAULT_MIN_STAKE
    paused: bool = False


def require_admin(admin: Optional[Address], caller: Address) -> None:
    """
    Raises:
        AdminNotSet: If no admin is configured
        NotAdmin: If caller is not the admin
    """
    if admin is None:
        raise AdminNotSet("admin not set")
    if caller != admin:
        raise NotAdmin(f"{caller} is not admin")
