"""
staking_pool.py - Exchange-rate ledger for liquid staking

Users stake the base asset and receive shares; shares are redeemed through
a time-delayed withdrawal queue. Harvested validator rewards raise the
exchange rate for every holder.

Ordering inside every entry point: checks, then pool state updates, then
collaborator calls (share mint/burn, delegation). A collaborator that calls
back into the pool sees the already-updated totals.

Pause blocks stake and unstake only. Claim and compound always work.
"""

from __future__ import annotations
from typing import List, Optional

from .core import (
    Address, ShareLedger, ValidatorStaking,
    MAX_PROTOCOL_FEE_BPS, UNBONDING_PERIOD_MS,
    ContractPaused, BelowMinimumStake, AmountMustBePositive,
    InsufficientBalance, NotWithdrawalOwner, StillUnbonding, AlreadyClaimed,
    FeeTooHigh, ValidatorNotSet, TreasuryNotSet, TokenNotSet,
    InsufficientDelegation,
    check_amount,
)
from .config import StakingSettings, require_admin
from .environment import Runtime, Contract, entrypoint
from .exchange_rate import (
    PoolState, exchange_rate, shares_for_deposit, assets_for_shares,
    split_rewards, balance_delta_rewards,
)
from .withdrawals import WithdrawalQueue, WithdrawalRequest


class StakingPool(Contract):
    """
    Liquid-staking pool.

    Attributes:
        state: Pooled base asset and outstanding shares
        settings: Admin, treasury, validator, fee, min stake, pause flag
        withdrawals: Queue of unstake requests
        share_token: ShareLedger the pool mints and burns
        validators: ValidatorStaking system the pool delegates to

    Example:
        pool = StakingPool(rt, validators, admin="admin", validator="val-1")
        pool.set_share_token("admin", token)
        shares = pool.stake("alice", 100 * ONE)
        wid = pool.unstake("alice", shares)
        rt.advance_time(UNBONDING_PERIOD_MS)
        pool.claim("alice", wid)
    """

    STATE_FIELDS = ("state", "settings")
    BINDING_FIELDS = ("share_token", "validators")

    def __init__(
        self,
        runtime: Runtime,
        validators: ValidatorStaking,
        address: Address = "staking_pool",
        admin: Optional[Address] = None,
        treasury: Optional[Address] = None,
        validator: Optional[str] = None,
        share_token: Optional[ShareLedger] = None,
        settings: Optional[StakingSettings] = None,
        unbonding_period_ms: int = UNBONDING_PERIOD_MS,
    ):
        super().__init__(runtime, address)
        self.state = PoolState()
        self.settings = settings or StakingSettings()
        if admin is not None:
            self.settings.admin = admin
        if treasury is not None:
            self.settings.treasury = treasury
        if validator is not None:
            self.settings.validator = validator
        self.withdrawals = WithdrawalQueue(unbonding_period_ms, runtime.journal)
        self.share_token = share_token
        self.validators = validators

    # ========================================================================
    # BINDINGS
    # ========================================================================

    def _token(self) -> ShareLedger:
        if self.share_token is None:
            raise TokenNotSet("share token not set")
        return self.share_token

    def _validator(self) -> str:
        if self.settings.validator is None:
            raise ValidatorNotSet("validator not set")
        return self.settings.validator

    # ========================================================================
    # USER OPERATIONS
    # ========================================================================

    @entrypoint
    def stake(self, caller: Address, amount: int) -> int:
        """
        Deposit ``amount`` of base asset and mint shares to the caller.

        Returns:
            Shares minted

        Raises:
            ContractPaused: pool is paused
            BelowMinimumStake: amount < min_stake
            TokenNotSet, ValidatorNotSet: pool not fully configured
        """
        check_amount(amount)
        if self.settings.paused:
            raise ContractPaused("staking is paused")
        if amount < self.settings.min_stake:
            raise BelowMinimumStake(f"{amount} < min stake {self.settings.min_stake}")
        token = self._token()
        validator = self._validator()

        # Attached value
        self.runtime.transfer_native(caller, self.address, amount, "stake")

        shares = shares_for_deposit(amount, self.state.total_pooled, self.state.total_shares)
        self.state.total_pooled += amount
        self.state.total_shares += shares

        token.mint(self.address, caller, shares)
        self.validators.delegate(self.address, validator, amount)

        self.emit(
            "Staked", user=caller, amount=amount, shares_minted=shares,
            exchange_rate=self.get_exchange_rate(),
        )
        return shares

    @entrypoint
    def unstake(self, caller: Address, shares: int) -> int:
        """
        Burn ``shares`` and queue their base-asset value for claim.

        Returns:
            Withdrawal id

        Raises:
            ContractPaused: pool is paused
            AmountMustBePositive: shares == 0
            InsufficientBalance: caller holds fewer shares
        """
        check_amount(shares, "shares")
        if self.settings.paused:
            raise ContractPaused("unstaking is paused")
        if shares == 0:
            raise AmountMustBePositive("shares must be positive")
        token = self._token()
        validator = self._validator()
        balance = token.balance_of(caller)
        if balance < shares:
            raise InsufficientBalance(f"{caller} holds {balance} shares, needs {shares}")

        base_amount = assets_for_shares(shares, self.state.total_pooled, self.state.total_shares)
        self.state.total_pooled -= base_amount
        self.state.total_shares -= shares
        request = self.withdrawals.enqueue(caller, base_amount, shares, self.now_ms)

        token.burn(self.address, caller, shares)
        self.validators.undelegate(self.address, validator, base_amount)

        self.emit(
            "Unstaked", user=caller, shares_burned=shares, amount=base_amount,
            withdrawal_id=request.id, claimable_time=request.claimable_time,
        )
        return request.id

    @entrypoint
    def claim(self, caller: Address, withdrawal_id: int) -> int:
        """
        Pay out a matured withdrawal. Never blocked by pause.

        Raises:
            WithdrawalNotFound: unknown id
            NotWithdrawalOwner: caller did not create the request
            AlreadyClaimed: request was claimed before
            StillUnbonding: now < claimable_time
        """
        request = self.withdrawals.require(withdrawal_id)
        if request.owner != caller:
            raise NotWithdrawalOwner(f"withdrawal {withdrawal_id} belongs to {request.owner}")
        if request.claimed:
            raise AlreadyClaimed(f"withdrawal {withdrawal_id} already claimed")
        if self.now_ms < request.claimable_time:
            raise StillUnbonding(
                f"withdrawal {withdrawal_id} claimable in {request.remaining_ms(self.now_ms)} ms"
            )

        self.withdrawals.mark_claimed(withdrawal_id)
        self.runtime.transfer_native(self.address, caller, request.base_amount, "claim")

        self.emit("Claimed", user=caller, withdrawal_id=withdrawal_id, amount=request.base_amount)
        return request.base_amount

    @entrypoint
    def compound(self, caller: Address) -> int:
        """
        Harvest validator rewards into the pool. Callable by anyone.

        The reward is the growth of the delegated stake over total_pooled.
        A protocol fee goes to the treasury; the rest is re-delegated and
        added to total_pooled, raising the exchange rate.

        Returns:
            Rewards added to the pool (0 when there is nothing to harvest)

        Raises:
            TreasuryNotSet: a non-zero fee is due and no treasury is set
            InsufficientDelegation: the validator paid out less than the
                reward signal
        """
        validator = self._validator()
        rewards = balance_delta_rewards(
            self.validators.delegated_amount(self.address, validator),
            self.state.total_pooled,
        )
        if rewards == 0:
            return 0

        fee, to_pool = split_rewards(rewards, self.settings.protocol_fee_bps)
        treasury = self.settings.treasury
        if fee > 0 and treasury is None:
            raise TreasuryNotSet("treasury not set")

        self.state.total_pooled += to_pool

        harvested = self.validators.withdraw_reward(self.address, validator)
        if harvested < rewards:
            raise InsufficientDelegation(f"harvested {harvested} < reward signal {rewards}")
        if fee > 0:
            self.runtime.transfer_native(self.address, treasury, fee, "protocol_fee")
        if to_pool > 0:
            self.validators.delegate(self.address, validator, to_pool)

        self.emit(
            "Compounded", caller=caller, rewards_harvested=rewards, protocol_fee=fee,
            rewards_to_pool=to_pool, exchange_rate=self.get_exchange_rate(),
        )
        return to_pool

    # ========================================================================
    # VIEWS
    # ========================================================================

    def get_exchange_rate(self) -> int:
        return exchange_rate(self.state.total_pooled, self.state.total_shares)

    @property
    def total_pooled(self) -> int:
        return self.state.total_pooled

    @property
    def total_shares(self) -> int:
        return self.state.total_shares

    def pending_rewards(self) -> int:
        """Rewards compound() would harvest right now (0 without a validator)."""
        if self.settings.validator is None:
            return 0
        return balance_delta_rewards(
            self.validators.delegated_amount(self.address, self.settings.validator),
            self.state.total_pooled,
        )

    def preview_stake(self, amount: int) -> int:
        return shares_for_deposit(amount, self.state.total_pooled, self.state.total_shares)

    def preview_unstake(self, shares: int) -> int:
        return assets_for_shares(shares, self.state.total_pooled, self.state.total_shares)

    def get_withdrawal(self, withdrawal_id: int) -> Optional[WithdrawalRequest]:
        return self.withdrawals.get(withdrawal_id)

    def get_user_withdrawals(self, owner: Address) -> List[WithdrawalRequest]:
        return self.withdrawals.requests_for(owner)

    def withdrawal_ids(self, owner: Address) -> List[int]:
        return self.withdrawals.ids_for(owner)

    @property
    def admin(self) -> Optional[Address]:
        return self.settings.admin

    @property
    def treasury(self) -> Optional[Address]:
        return self.settings.treasury

    @property
    def validator(self) -> Optional[str]:
        return self.settings.validator

    @property
    def protocol_fee_bps(self) -> int:
        return self.settings.protocol_fee_bps

    @property
    def min_stake(self) -> int:
        return self.settings.min_stake

    @property
    def paused(self) -> bool:
        return self.settings.paused

    # ========================================================================
    # ADMIN
    # ========================================================================

    @entrypoint
    def pause(self, caller: Address) -> None:
        require_admin(self.settings.admin, caller)
        self.settings.paused = True
        self.emit("Paused", by=caller)

    @entrypoint
    def unpause(self, caller: Address) -> None:
        require_admin(self.settings.admin, caller)
        self.settings.paused = False
        self.emit("Unpaused", by=caller)

    @entrypoint
    def set_protocol_fee(self, caller: Address, fee_bps: int) -> None:
        """
        Raises:
            FeeTooHigh: fee_bps > 3000
        """
        require_admin(self.settings.admin, caller)
        check_amount(fee_bps, "fee_bps")
        if fee_bps > MAX_PROTOCOL_FEE_BPS:
            raise FeeTooHigh(f"{fee_bps} bps > max {MAX_PROTOCOL_FEE_BPS}")
        old = self.settings.protocol_fee_bps
        self.settings.protocol_fee_bps = fee_bps
        self.emit("FeeUpdated", old_fee_bps=old, new_fee_bps=fee_bps)

    @entrypoint
    def set_min_stake(self, caller: Address, min_stake: int) -> None:
        require_admin(self.settings.admin, caller)
        self.settings.min_stake = check_amount(min_stake, "min_stake")
        self.emit("SettingUpdated", setting="min_stake", value=min_stake)

    @entrypoint
    def set_treasury(self, caller: Address, treasury: Address) -> None:
        require_admin(self.settings.admin, caller)
        self.settings.treasury = treasury
        self.emit("SettingUpdated", setting="treasury", value=treasury)

    @entrypoint
    def set_validator(self, caller: Address, validator: str) -> None:
        require_admin(self.settings.admin, caller)
        self.settings.validator = validator
        self.emit("SettingUpdated", setting="validator", value=validator)

    @entrypoint
    def set_share_token(self, caller: Address, token: ShareLedger) -> None:
        require_admin(self.settings.admin, caller)
        self.share_token = token
        self.emit("SettingUpdated", setting="share_token", value=getattr(token, "address", None))

    @entrypoint
    def transfer_admin(self, caller: Address, new_admin: Address) -> None:
        require_admin(self.settings.admin, caller)
        old = self.settings.admin
        self.settings.admin = new_admin
        self.emit("AdminTransferred", old_admin=old, new_admin=new_admin)
