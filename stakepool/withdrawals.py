"""
withdrawals.py - Time-delayed withdrawal queue

Every unstake creates one WithdrawalRequest with a dense id starting at 0.
A request is replaced exactly once (claimed=True) and never deleted. Ids
are never reused. Each owner has an append-only list of their ids.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from functools import partial
from typing import Dict, List, Optional

from .core import (
    Address, UNBONDING_PERIOD_MS,
    WithdrawalNotFound, AlreadyClaimed,
)
from .journal import Journal


@dataclass(frozen=True, slots=True)
class WithdrawalRequest:
    """
    A pending or claimed unstake.

    Attributes:
        id: Position in the queue
        owner: Account that unstaked and may claim
        base_amount: Base asset owed, frozen at unstake time
        shares_burned: Shares destroyed by the unstake
        request_time: Block time of the unstake (ms)
        claimable_time: Earliest claim time (ms)
        claimed: Set once, on claim
    """
    id: int
    owner: Address
    base_amount: int
    shares_burned: int
    request_time: int
    claimable_time: int
    claimed: bool = False

    def is_claimable(self, now_ms: int) -> bool:
        return not self.claimed and now_ms >= self.claimable_time

    def remaining_ms(self, now_ms: int) -> int:
        return max(0, self.claimable_time - now_ms)


class WithdrawalQueue:
    """
    Append-only store of WithdrawalRequests with a per-owner index.

    Example:
        queue = WithdrawalQueue()
        req = queue.enqueue("alice", base_amount=10, shares_burned=10, now_ms=0)
        queue.mark_claimed(req.id)
    """

    def __init__(self, unbonding_period_ms: int = UNBONDING_PERIOD_MS, journal: Optional[Journal] = None):
        self.unbonding_period_ms = unbonding_period_ms
        self.journal = journal if journal is not None else Journal()
        self._requests: List[WithdrawalRequest] = []
        self._by_owner: Dict[Address, List[int]] = {}
        self._pending_total = 0

    def __len__(self) -> int:
        return len(self._requests)

    @property
    def next_id(self) -> int:
        return len(self._requests)

    def enqueue(self, owner: Address, base_amount: int, shares_burned: int, now_ms: int) -> WithdrawalRequest:
        request = WithdrawalRequest(
            id=self.next_id,
            owner=owner,
            base_amount=base_amount,
            shares_burned=shares_burned,
            request_time=now_ms,
            claimable_time=now_ms + self.unbonding_period_ms,
        )
        self._requests.append(request)
        self._by_owner.setdefault(owner, []).append(request.id)
        self._pending_total += base_amount
        self.journal.record(partial(self._unenqueue, owner))
        return request

    def get(self, withdrawal_id: int) -> Optional[WithdrawalRequest]:
        if isinstance(withdrawal_id, bool) or not isinstance(withdrawal_id, int):
            return None
        if 0 <= withdrawal_id < len(self._requests):
            return self._requests[withdrawal_id]
        return None

    def require(self, withdrawal_id: int) -> WithdrawalRequest:
        request = self.get(withdrawal_id)
        if request is None:
            raise WithdrawalNotFound(f"withdrawal {withdrawal_id} not found")
        return request

    def mark_claimed(self, withdrawal_id: int) -> WithdrawalRequest:
        """
        Raises:
            WithdrawalNotFound: unknown id
            AlreadyClaimed: request was claimed before
        """
        request = self.require(withdrawal_id)
        if request.claimed:
            raise AlreadyClaimed(f"withdrawal {withdrawal_id} already claimed")
        claimed = replace(request, claimed=True)
        self._requests[withdrawal_id] = claimed
        self._pending_total -= request.base_amount
        self.journal.record(partial(self._unclaim, request))
        return claimed

    def all(self) -> List[WithdrawalRequest]:
        return list(self._requests)

    def ids_for(self, owner: Address) -> List[int]:
        return list(self._by_owner.get(owner, []))

    def requests_for(self, owner: Address) -> List[WithdrawalRequest]:
        return [self._requests[i] for i in self._by_owner.get(owner, [])]

    def pending_total(self) -> int:
        """Base asset owed to unclaimed requests."""
        return self._pending_total

    # ========================================================================
    # UNDO
    # ========================================================================

    def _unenqueue(self, owner: Address) -> None:
        request = self._requests.pop()
        ids = self._by_owner[owner]
        ids.pop()
        if not ids:
            del self._by_owner[owner]
        self._pending_total -= request.base_amount

    def _unclaim(self, request: WithdrawalRequest) -> None:
        self._requests[request.id] = request
        self._pending_total += request.base_amount
