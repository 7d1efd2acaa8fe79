"""
share_token.py - Liquid-staking share token

A fungible token whose balances live in the shared Ledger under its own
unit. Minting and burning are reserved for the minter (the staking pool);
everything else follows the usual transfer / approve / transfer_from model.
"""

from __future__ import annotations
from typing import Dict, Optional, Tuple

from .core import (
    Address, SHARE_SYMBOL, SYSTEM_WALLET, TransactionOrigin, OriginType,
    NotMinter, MinterNotSet, InsufficientBalance, InsufficientFunds,
    check_amount, share_units,
)
from .environment import Runtime, Contract, entrypoint


class ShareToken(Contract):
    """
    Share token implementing the ShareLedger protocol.

    Attributes:
        symbol: Ledger unit symbol
        minter: Only account allowed to mint and burn
        allowances: (owner, spender) -> remaining allowance
    """

    STATE_FIELDS = ("minter",)

    def __init__(
        self,
        runtime: Runtime,
        address: Address = "share_token",
        minter: Optional[Address] = None,
        symbol: str = SHARE_SYMBOL,
        name: str = "Thaw Staked CSPR",
    ):
        super().__init__(runtime, address)
        self.symbol = symbol
        self.name = name
        self.minter = minter
        self.allowances: Dict[Tuple[Address, Address], int] = self.journaled()
        runtime.ledger.register_unit(share_units(symbol, name))

    @property
    def ledger(self):
        return self.runtime.ledger

    def _origin(self, event_type: str) -> TransactionOrigin:
        return TransactionOrigin(OriginType.CONTRACT, self.address, event_type)

    def _require_minter(self, caller: Address) -> None:
        if self.minter is None:
            raise MinterNotSet("share token minter not set")
        if caller != self.minter:
            raise NotMinter(f"{caller} is not the minter")

    def _move(self, source: Address, dest: Address, amount: int, event_type: str) -> None:
        self.ledger.ensure_wallet(dest)
        if self.balance_of(source) < amount:
            raise InsufficientBalance(
                f"{source} holds {self.balance_of(source)} {self.symbol}, needs {amount}"
            )
        if source == dest:
            return
        self.ledger.transfer(self.symbol, source, dest, amount, event_type, self._origin(event_type))

    # ========================================================================
    # MINT / BURN
    # ========================================================================

    @entrypoint
    def mint(self, caller: Address, to: Address, amount: int) -> None:
        self._require_minter(caller)
        check_amount(amount)
        self.ledger.ensure_wallet(to)
        self.ledger.issue(to, self.symbol, amount, "mint")
        self.emit("Transfer", source=None, to=to, amount=amount)

    @entrypoint
    def burn(self, caller: Address, owner: Address, amount: int) -> None:
        self._require_minter(caller)
        check_amount(amount)
        if self.balance_of(owner) < amount:
            raise InsufficientBalance(f"{owner} cannot burn {amount} {self.symbol}")
        self.ledger.redeem(owner, self.symbol, amount, "burn")
        self.emit("Transfer", source=owner, to=None, amount=amount)

    # ========================================================================
    # TRANSFERS
    # ========================================================================

    @entrypoint
    def transfer(self, caller: Address, to: Address, amount: int) -> None:
        check_amount(amount)
        self._move(caller, to, amount, "transfer")
        self.emit("Transfer", source=caller, to=to, amount=amount)

    @entrypoint
    def approve(self, caller: Address, spender: Address, amount: int) -> None:
        check_amount(amount)
        self.allowances[(caller, spender)] = amount
        self.emit("Approval", owner=caller, spender=spender, amount=amount)

    @entrypoint
    def transfer_from(self, caller: Address, owner: Address, to: Address, amount: int) -> None:
        """
        Move ``amount`` from ``owner`` to ``to`` using caller's allowance.

        Raises:
            InsufficientFunds: allowance below amount
            InsufficientBalance: owner balance below amount
        """
        check_amount(amount)
        allowed = self.allowance(owner, caller)
        if allowed < amount:
            raise InsufficientFunds(f"allowance {allowed} < {amount} for {caller} on {owner}")
        self.allowances[(owner, caller)] = allowed - amount
        self._move(owner, to, amount, "transfer_from")
        self.emit("Transfer", source=owner, to=to, amount=amount)

    # ========================================================================
    # VIEWS
    # ========================================================================

    def balance_of(self, account: Address) -> int:
        if not self.ledger.is_registered(account):
            return 0
        return self.ledger.get_balance(account, self.symbol)

    def allowance(self, owner: Address, spender: Address) -> int:
        return self.allowances.get((owner, spender), 0)

    def total_supply(self) -> int:
        return self.ledger.circulating_supply(self.symbol)

    def holders(self) -> Dict[Address, int]:
        return {
            account: qty for account, qty in self.ledger.get_positions(self.symbol).items()
            if account != SYSTEM_WALLET
        }
