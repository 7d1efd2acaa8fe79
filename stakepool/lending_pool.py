"""
lending_pool.py - Collateral/debt ledger and health engine

Lenders deposit base asset. Share holders post shares as collateral and
borrow base asset against their value at the staking pool's exchange rate.
Positions whose health factor falls below 1.0 can be liquidated, half the
debt at a time, with a bonus paid in collateral shares.

Invariants:
    total_borrowed <= total_deposits (checked at borrow and withdraw)
    debt <= max_borrow(collateral_value(collateral)) after every borrow and
    collateral withdrawal; only exchange-rate drift can break it

No interest accrues; base_rate is a reporting parameter.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from typing import Dict, List, Optional

from .core import (
    Address, ShareLedger,
    AmountMustBePositive, InsufficientDeposit, InsufficientLiquidity,
    InsufficientCollateral, ExceedsMaxBorrow, WouldBecomeUndercollateralized,
    PositionHealthy, check_amount,
)
from .config import RiskParameters, DEFAULT_RISK_PARAMETERS, require_admin
from .environment import Runtime, Contract, entrypoint
from .lending import (
    BorrowerPosition, collateral_value, max_borrow, health_factor,
    is_liquidatable, liquidation_amounts,
)
from .lending import available_liquidity as _available_liquidity
from .lending import utilization_bps as _utilization_bps
from .leverage import LeverageResult, check_loop_count, run_leverage_loop
from .staking_pool import StakingPool


@dataclass(slots=True)
class LiquidityState:
    total_deposits: int = 0
    total_borrowed: int = 0


class LendingPool(Contract):
    """
    Lending market for the base asset, collateralised by staking shares.

    Attributes:
        lender_deposits: lender -> deposited base asset
        positions: borrower -> BorrowerPosition
        liquidity: Pool totals
        config_word: Packed RiskParameters
        admin: Sole account allowed to change the risk parameters
        staking_pool: Source of the exchange rate, target of leverage stakes
        share_token: Collateral token
    """

    STATE_FIELDS = ("liquidity", "config_word", "admin")
    BINDING_FIELDS = ("staking_pool", "share_token")

    def __init__(
        self,
        runtime: Runtime,
        staking_pool: StakingPool,
        share_token: ShareLedger,
        address: Address = "lending_pool",
        admin: Optional[Address] = None,
        risk_parameters: RiskParameters = DEFAULT_RISK_PARAMETERS,
    ):
        super().__init__(runtime, address)
        self.staking_pool = staking_pool
        self.share_token = share_token
        self.admin = admin
        self.lender_deposits: Dict[Address, int] = self.journaled()
        self.positions: Dict[Address, BorrowerPosition] = self.journaled()
        self.liquidity = LiquidityState()
        self.config_word = risk_parameters.validate().pack()

    # ========================================================================
    # INTERNAL BOOKKEEPING
    # ========================================================================

    def _position(self, account: Address) -> BorrowerPosition:
        return self.positions.get(account, BorrowerPosition())

    def _set_position(self, account: Address, position: BorrowerPosition) -> None:
        if position.collateral == 0 and position.debt == 0:
            self.positions.pop(account, None)
        else:
            self.positions[account] = position

    def _post_collateral(self, account: Address, shares: int) -> None:
        position = self._position(account)
        self._set_position(account, replace(position, collateral=position.collateral + shares))

    def _record_borrow(self, account: Address, amount: int) -> None:
        position = self._position(account)
        self._set_position(account, replace(position, debt=position.debt + amount))
        self.liquidity.total_borrowed += amount

    def _stake_for_loop(self, amount: int) -> int:
        return self.staking_pool.stake(self.address, amount)

    # ========================================================================
    # LENDER SIDE
    # ========================================================================

    @entrypoint
    def deposit(self, caller: Address, amount: int) -> None:
        check_amount(amount)
        if amount == 0:
            raise AmountMustBePositive("deposit must be positive")
        self.runtime.transfer_native(caller, self.address, amount, "deposit")
        self.lender_deposits[caller] = self.lender_deposits.get(caller, 0) + amount
        self.liquidity.total_deposits += amount
        self.emit("Deposited", lender=caller, amount=amount, total_deposits=self.liquidity.total_deposits)

    @entrypoint
    def withdraw(self, caller: Address, amount: int) -> None:
        """
        Raises:
            InsufficientDeposit: amount exceeds the caller's deposit
            InsufficientLiquidity: amount exceeds the unborrowed liquidity
        """
        check_amount(amount)
        deposit = self.lender_deposits.get(caller, 0)
        if amount > deposit:
            raise InsufficientDeposit(f"{caller} deposited {deposit}, cannot withdraw {amount}")
        available = self.available_liquidity()
        if amount > available:
            raise InsufficientLiquidity(f"{available} available, {amount} requested")

        self.lender_deposits[caller] = deposit - amount
        self.liquidity.total_deposits -= amount
        self.runtime.transfer_native(self.address, caller, amount, "withdraw")
        self.emit("Withdrawn", lender=caller, amount=amount, total_deposits=self.liquidity.total_deposits)

    # ========================================================================
    # BORROWER SIDE
    # ========================================================================

    @entrypoint
    def deposit_collateral(self, caller: Address, amount: int) -> None:
        """Pull ``amount`` shares from the caller; requires a prior approve()."""
        check_amount(amount)
        if amount == 0:
            raise AmountMustBePositive("collateral must be positive")
        self.share_token.transfer_from(self.address, caller, self.address, amount)
        self._post_collateral(caller, amount)
        self.emit(
            "CollateralDeposited", user=caller, amount=amount,
            total_collateral=self._position(caller).collateral,
        )

    @entrypoint
    def withdraw_collateral(self, caller: Address, amount: int) -> None:
        """
        Raises:
            InsufficientCollateral: amount exceeds posted collateral
            WouldBecomeUndercollateralized: remaining collateral would not
                cover the debt
        """
        check_amount(amount)
        position = self._position(caller)
        if amount > position.collateral:
            raise InsufficientCollateral(f"{caller} posted {position.collateral}, cannot withdraw {amount}")
        remaining = position.collateral - amount
        limit = max_borrow(collateral_value(remaining, self.exchange_rate()), self.risk_parameters.collateral_factor)
        if position.debt > limit:
            raise WouldBecomeUndercollateralized(f"debt {position.debt} > max borrow {limit} after withdrawal")

        self._set_position(caller, replace(position, collateral=remaining))
        self.share_token.transfer(self.address, caller, amount)
        self.emit("CollateralWithdrawn", user=caller, amount=amount, remaining_collateral=remaining)

    @entrypoint
    def borrow(self, caller: Address, amount: int) -> None:
        """
        Raises:
            AmountMustBePositive: amount == 0
            InsufficientLiquidity: amount exceeds the unborrowed liquidity
            ExceedsMaxBorrow: debt would exceed the collateral's borrowing power
        """
        check_amount(amount)
        if amount == 0:
            raise AmountMustBePositive("borrow must be positive")
        available = self.available_liquidity()
        if amount > available:
            raise InsufficientLiquidity(f"{available} available, {amount} requested")
        position = self._position(caller)
        value = collateral_value(position.collateral, self.exchange_rate())
        limit = max_borrow(value, self.risk_parameters.collateral_factor)
        if position.debt + amount > limit:
            raise ExceedsMaxBorrow(f"debt {position.debt + amount} > max borrow {limit}")

        self._record_borrow(caller, amount)
        self.runtime.transfer_native(self.address, caller, amount, "borrow")
        self.emit(
            "Borrowed", borrower=caller, amount=amount,
            total_debt=position.debt + amount, collateral_value=value,
        )

    @entrypoint
    def repay(self, caller: Address, amount: int) -> int:
        """
        Repay up to the outstanding debt; any excess is refunded.

        Returns:
            Debt actually repaid
        """
        check_amount(amount)
        self.runtime.transfer_native(caller, self.address, amount, "repay")
        position = self._position(caller)
        applied = min(amount, position.debt)

        self._set_position(caller, replace(position, debt=position.debt - applied))
        self.liquidity.total_borrowed -= applied
        self.runtime.transfer_native(self.address, caller, amount - applied, "repay_refund")
        self.emit("Repaid", borrower=caller, amount=applied, remaining_debt=position.debt - applied)
        return applied

    @entrypoint
    def liquidate(self, liquidator: Address, borrower: Address, repay_amount: int) -> int:
        """
        Repay part of an unhealthy position's debt in exchange for its collateral.

        Returns:
            Shares seized

        Raises:
            PositionHealthy: borrower's health factor >= 1.0
        """
        check_amount(repay_amount, "repay_amount")
        hf = self.get_health_factor(borrower)
        if not is_liquidatable(hf):
            raise PositionHealthy(f"{borrower} health factor {hf} >= 1.0")

        self.runtime.transfer_native(liquidator, self.address, repay_amount, "liquidate")
        position = self._position(borrower)
        quote = liquidation_amounts(
            position.debt, position.collateral, repay_amount,
            self.exchange_rate(), self.risk_parameters.liquidation_bonus,
        )

        self._set_position(borrower, BorrowerPosition(
            collateral=position.collateral - quote.seize,
            debt=position.debt - quote.actual_repay,
        ))
        self.liquidity.total_borrowed -= quote.actual_repay

        self.runtime.transfer_native(self.address, liquidator, quote.refund, "liquidate_refund")
        if quote.seize:
            self.share_token.transfer(self.address, liquidator, quote.seize)
        self.emit(
            "Liquidated", liquidator=liquidator, borrower=borrower,
            repaid_amount=quote.actual_repay, collateral_seized=quote.seize,
        )
        return quote.seize

    @entrypoint
    def leverage_stake(self, caller: Address, initial_amount: int, loops: int) -> LeverageResult:
        """
        Stake, post, borrow and restake up to ``loops`` times.

        Raises:
            InvalidLoopCount: loops outside [1, 4]
            AmountMustBePositive: initial_amount == 0
            plus anything stake() raises on any iteration
        """
        check_amount(initial_amount, "initial_amount")
        if initial_amount == 0:
            raise AmountMustBePositive("initial amount must be positive")
        check_loop_count(loops)
        self.runtime.transfer_native(caller, self.address, initial_amount, "leverage_stake")
        result = run_leverage_loop(self, caller, initial_amount, loops)
        if result.shares_to_caller:
            self.share_token.transfer(self.address, caller, result.shares_to_caller)
        self.emit(
            "LeveragedStake", user=caller, initial_amount=initial_amount,
            total_staked=result.total_staked, total_shares=result.total_shares,
            leverage_loops=result.loops_executed,
        )
        return result

    # ========================================================================
    # VIEWS
    # ========================================================================

    @property
    def risk_parameters(self) -> RiskParameters:
        return RiskParameters.unpack(self.config_word)

    @property
    def total_deposits(self) -> int:
        return self.liquidity.total_deposits

    @property
    def total_borrowed(self) -> int:
        return self.liquidity.total_borrowed

    def exchange_rate(self) -> int:
        return self.staking_pool.get_exchange_rate()

    def available_liquidity(self) -> int:
        return _available_liquidity(self.liquidity.total_deposits, self.liquidity.total_borrowed)

    def utilization_bps(self) -> int:
        return _utilization_bps(self.liquidity.total_deposits, self.liquidity.total_borrowed)

    def get_position(self, account: Address) -> BorrowerPosition:
        return self._position(account)

    def get_lender_deposit(self, account: Address) -> int:
        return self.lender_deposits.get(account, 0)

    def get_collateral_value(self, account: Address) -> int:
        return collateral_value(self._position(account).collateral, self.exchange_rate())

    def get_health_factor(self, account: Address) -> int:
        position = self._position(account)
        return health_factor(
            collateral_value(position.collateral, self.exchange_rate()),
            position.debt,
            self.risk_parameters.liquidation_threshold,
        )

    def get_max_borrow(self, account: Address) -> int:
        """Remaining borrowing headroom of an account."""
        position = self._position(account)
        limit = max_borrow(
            collateral_value(position.collateral, self.exchange_rate()),
            self.risk_parameters.collateral_factor,
        )
        return max(0, limit - position.debt)

    def borrowers(self) -> List[Address]:
        return sorted(a for a, p in self.positions.items() if p.debt > 0)

    def liquidatable_accounts(self) -> List[Address]:
        return [a for a in self.borrowers() if is_liquidatable(self.get_health_factor(a))]

    # ========================================================================
    # ADMIN
    # ========================================================================

    @entrypoint
    def set_config(
        self,
        caller: Address,
        collateral_factor: int,
        liquidation_threshold: int,
        liquidation_bonus: int,
    ) -> RiskParameters:
        """
        Replace the three risk fields; base_rate is kept.

        Raises:
            InvalidParameter: any value outside [0, 10000]
        """
        require_admin(self.admin, caller)
        params = self.risk_parameters.with_updates(
            collateral_factor=collateral_factor,
            liquidation_threshold=liquidation_threshold,
            liquidation_bonus=liquidation_bonus,
        )
        self.config_word = params.pack()
        self.emit(
            "ConfigUpdated", collateral_factor=collateral_factor,
            liquidation_threshold=liquidation_threshold, liquidation_bonus=liquidation_bonus,
            base_rate=params.base_rate,
        )
        return params

    @entrypoint
    def set_base_rate(self, caller: Address, base_rate: int) -> RiskParameters:
        require_admin(self.admin, caller)
        params = self.risk_parameters.with_updates(base_rate=base_rate)
        self.config_word = params.pack()
        self.emit("ConfigUpdated", base_rate=base_rate)
        return params

    @entrypoint
    def transfer_admin(self, caller: Address, new_admin: Address) -> None:
        require_admin(self.admin, caller)
        old = self.admin
        self.admin = new_admin
        self.emit("AdminTransferred", old_admin=old, new_admin=new_admin)
