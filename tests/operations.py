"""
operations.py - Random protocol operation sequences for property tests

op_sequences() draws lists of operations; perform() runs one against a
deployment. Operations cover every user, keeper and admin entry point, with
amounts small enough that raw_protocol-style accounts can afford most of
them, so a sequence mixes accepted and rejected calls.
"""

from __future__ import annotations
from typing import Any, Tuple

from hypothesis import strategies as st

from stakepool import Deployment, U512_MAX, deploy


ACTORS = ("alice", "bob", "carol")
LENDER = "lender"

Op = Tuple[Any, ...]


def fresh_protocol(balance: int = 100_000) -> Deployment:
    """min_stake=1 protocol; every actor approves the lending pool without limit."""
    d = deploy(min_stake=1)
    for account in ACTORS + (LENDER,):
        d.fund(account, balance)
        d.share_token.approve(account, d.lending_pool.address, U512_MAX)
    return d


actor = st.sampled_from(ACTORS)
amount = st.integers(min_value=0, max_value=5_000)
percent = st.integers(min_value=0, max_value=100)


@st.composite
def operation(draw) -> Op:
    kind = draw(st.sampled_from([
        "stake", "unstake", "claim", "advance", "accrue", "compound",
        "deposit", "withdraw", "collateral", "withdraw_collateral",
        "borrow", "repay", "leverage", "liquidate", "set_config", "pause",
    ]))
    if kind in ("stake", "deposit", "borrow", "repay", "collateral", "withdraw_collateral"):
        return (kind, draw(actor), draw(amount))
    if kind == "unstake":
        return (kind, draw(actor), draw(percent))
    if kind == "claim":
        return (kind, draw(actor), draw(st.integers(min_value=0, max_value=5)))
    if kind == "advance":
        return (kind, draw(st.sampled_from([0, 1, 3_600_000, 14 * 3_600_000])))
    if kind == "accrue":
        return (kind, draw(st.integers(min_value=0, max_value=500)))
    if kind == "withdraw":
        return (kind, LENDER, draw(amount))
    if kind == "leverage":
        return (kind, draw(actor), draw(amount), draw(st.integers(min_value=0, max_value=5)))
    if kind == "liquidate":
        return (kind, draw(actor), draw(actor), draw(amount))
    if kind == "set_config":
        lt = draw(st.integers(min_value=5000, max_value=9000))
        return (kind, draw(st.integers(min_value=0, max_value=lt)), lt, draw(st.integers(0, 1000)))
    return (kind, draw(st.booleans()))


def op_sequences(max_size: int = 25):
    return st.lists(operation(), min_size=1, max_size=max_size)


def perform(d: Deployment, op: Op) -> Any:
    """Run one operation; protocol errors propagate to the caller."""
    kind = op[0]
    pool = d.staking_pool
    lending = d.lending_pool

    if kind == "stake":
        return pool.stake(op[1], op[2])
    if kind == "unstake":
        shares = d.share_token.balance_of(op[1]) * op[2] // 100
        return pool.unstake(op[1], shares)
    if kind == "claim":
        ids = pool.withdrawal_ids(op[1])
        wid = ids[op[2] % len(ids)] if ids else op[2]
        return pool.claim(op[1], wid)
    if kind == "advance":
        return d.runtime.advance_time(op[1])
    if kind == "accrue":
        return d.validators.accrue_reward(pool.address, d.validator, op[1])
    if kind == "compound":
        return pool.compound("keeper")
    if kind == "deposit":
        return lending.deposit(LENDER if op[1] == "carol" else op[1], op[2])
    if kind == "withdraw":
        return lending.withdraw(op[1], op[2])
    if kind == "collateral":
        return lending.deposit_collateral(op[1], op[2])
    if kind == "withdraw_collateral":
        return lending.withdraw_collateral(op[1], op[2])
    if kind == "borrow":
        return lending.borrow(op[1], op[2])
    if kind == "repay":
        return lending.repay(op[1], op[2])
    if kind == "leverage":
        return lending.leverage_stake(op[1], op[2], op[3])
    if kind == "liquidate":
        return lending.liquidate(op[1], op[2], op[3])
    if kind == "set_config":
        return lending.set_config(d.admin, op[1], op[2], op[3])
    if kind == "pause":
        return pool.pause(d.admin) if op[1] else pool.unpause(d.admin)
    raise ValueError(f"unknown operation {kind}")
