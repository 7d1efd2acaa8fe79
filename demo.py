#!/usr/bin/env python3
"""
demo.py - Interactive Tutorial: Liquid Staking and Leverage Step by Step

A walk through the protocol, one operation at a time. Each step builds on
the previous one. Press Enter to advance.

WHAT YOU'LL LEARN:
  1-3:   Staking      - Deployment, first stake, exchange rate
  4-5:   Rewards      - Compounding, protocol fee, rate growth
  6-7:   Withdrawals  - Unstake, unbonding period, claim
  8-9:   Lending      - Lender deposits, collateral, borrowing, health
  10:    Leverage     - Stake / borrow / restake loop
  11-12: Risk         - Stress report, liquidation
  13:    Atomicity    - Failed calls leave no trace
  14:    Conservation - Every identity still holds

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
"""

from dataclasses import dataclass
import sys

from stakepool import (
    # Wiring
    Deployment, deploy,
    # Constants
    ONE, PRECISION, SYSTEM_WALLET,
    # Errors
    ProtocolError, StillUnbonding,
    # Analytics
    health_status, to_float, project_leverage,
    stress_health_factors, liquidation_exchange_rate, rate_shock_grid,
    estimated_borrow_rate_bps,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Configuration for the tutorial. Modify these to experiment."""
    # Initial funding (whole CSPR)
    alice_initial: int = 10_000
    bob_initial: int = 10_000
    lender_initial: int = 50_000
    liquidator_initial: int = 10_000

    # Staking
    alice_stake: int = 1_000
    bob_stake: int = 500
    reward: int = 100

    # Lending
    lender_deposit: int = 20_000
    bob_collateral: int = 400
    bob_borrow: int = 300

    # Leverage
    leverage_amount: int = 1_000
    leverage_loops: int = 4
    staking_apy: float = 8.5
    borrow_apy: float = 6.0


CONFIG = DemoConfig()

# Global state for interactive mode
QUICK_MODE = "--quick" in sys.argv

HOUR = 3_600_000


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str, objective: str):
    """Print a step header with learning objective."""
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}")
    print(f"\nObjective: {objective}\n")


def section_header(text: str):
    """Print a section header within a step."""
    print(f"\n--- {text} ---\n")


def cspr(amount: int) -> str:
    return f"{amount / ONE:,.4f}"


def rate(value: int) -> str:
    return f"{value / PRECISION:.6f}"


def print_pool(d: Deployment):
    pool = d.staking_pool
    print(f"  total_pooled:   {cspr(pool.total_pooled)} CSPR")
    print(f"  total_shares:   {cspr(pool.total_shares)} thCSPR")
    print(f"  exchange rate:  {rate(pool.get_exchange_rate())}")


# ============================================================================
# PHASE 1: STAKING (Steps 1-3)
# ============================================================================

def step_01_deploy() -> Deployment:
    """Deploy the protocol and fund the actors."""
    step_header(1, "Deploy the Protocol",
        "See every component that deploy() wires onto one runtime.")

    print("""
    One Runtime hosts everything: a block clock, a double-entry token
    ledger and the audit event log. On top of it deploy() creates:

    1. SHARE TOKEN       - thCSPR, minted and burned only by the staking pool
    2. VALIDATORS        - where the staking pool delegates its CSPR
    3. STAKING POOL      - CSPR in, shares out, priced by the exchange rate
    4. LENDING POOL      - lends CSPR against thCSPR collateral
    """)

    print(">>> d = deploy()")
    d = deploy()
    d.fund("alice", CONFIG.alice_initial * ONE)
    d.fund("bob", CONFIG.bob_initial * ONE)
    d.fund("lender", CONFIG.lender_initial * ONE)
    d.fund("carol", CONFIG.liquidator_initial * ONE)

    section_header("Initial State")
    print(f"Units:            {d.ledger.list_units()}")
    print(f"Wallets:          {sorted(d.ledger.list_wallets())}")
    print(f"Protocol fee:     {d.staking_pool.protocol_fee_bps} bps")
    print(f"Minimum stake:    {cspr(d.staking_pool.min_stake)} CSPR")
    print(f"Risk parameters:  {d.lending_pool.risk_parameters}")

    section_header("Key Insight")
    print(f"""
    Funding comes from the '{SYSTEM_WALLET}' wallet, so its CSPR balance is
    the negative of everything in circulation:
      {SYSTEM_WALLET}: {cspr(d.ledger.get_balance(SYSTEM_WALLET, 'CSPR'))} CSPR
    """)
    return d


def step_02_first_stake(d: Deployment) -> Deployment:
    """The first staker receives shares 1:1."""
    step_header(2, "The First Stake",
        "Understand why an empty pool mints shares 1:1.")

    amount = CONFIG.alice_stake * ONE
    print(f">>> d.staking_pool.stake('alice', {CONFIG.alice_stake} * ONE)")
    shares = d.staking_pool.stake("alice", amount)

    section_header("Result")
    print(f"  alice received: {cspr(shares)} thCSPR")
    print_pool(d)
    print(f"  delegated:      {cspr(d.validators.delegated_amount('staking_pool', d.validator))} CSPR")

    section_header("Key Insight")
    print("""
    With no shares outstanding the exchange rate is defined as 1.0, so the
    first deposit mints exactly as many shares as base units deposited.
    Every staked unit is delegated to the validator immediately.
    """)
    return d


def step_03_second_stake(d: Deployment) -> Deployment:
    """A second staker at an unchanged rate."""
    step_header(3, "A Second Stake",
        "Shares are priced by total_pooled / total_shares.")

    shares = d.staking_pool.stake("bob", CONFIG.bob_stake * ONE)
    print(f"  bob received:   {cspr(shares)} thCSPR")
    print_pool(d)
    return d


# ============================================================================
# PHASE 2: REWARDS (Steps 4-5)
# ============================================================================

def step_04_rewards(d: Deployment) -> Deployment:
    """Rewards accrue at the validator."""
    step_header(4, "Validator Rewards",
        "See how rewards show up as growth of the delegated stake.")

    print(f">>> d.validators.accrue_reward('staking_pool', '{d.validator}', {CONFIG.reward} * ONE)")
    d.validators.accrue_reward("staking_pool", d.validator, CONFIG.reward * ONE)

    section_header("Before compounding")
    print(f"  delegated:       {cspr(d.validators.delegated_amount('staking_pool', d.validator))} CSPR")
    print(f"  total_pooled:    {cspr(d.staking_pool.total_pooled)} CSPR")
    print(f"  pending reward:  {cspr(d.staking_pool.pending_rewards())} CSPR")
    print("""
    The pool reads its reward as delegated - total_pooled. Nothing changes
    for share holders until someone calls compound().
    """)
    return d


def step_05_compound(d: Deployment) -> Deployment:
    """Compound through the keeper."""
    step_header(5, "Compounding",
        "Harvest rewards, pay the protocol fee, raise the exchange rate.")

    keeper = d.keeper()
    print(">>> keeper.step(now + 1 hour)")
    report = keeper.step(d.runtime.now_ms + HOUR)

    section_header("Keeper Report")
    print(f"  compounded into pool: {cspr(report.compounded)} CSPR")
    print(f"  treasury fee:         {cspr(d.runtime.balance('treasury'))} CSPR")
    print_pool(d)

    section_header("Share Values")
    for account in ("alice", "bob"):
        shares = d.share_token.balance_of(account)
        print(f"  {account:6s} {cspr(shares)} thCSPR -> {cspr(d.staking_pool.preview_unstake(shares))} CSPR")
    return d


# ============================================================================
# PHASE 3: WITHDRAWALS (Steps 6-7)
# ============================================================================

def step_06_unstake(d: Deployment):
    """Unstake creates a withdrawal request."""
    step_header(6, "Unstake",
        "Burn shares now, receive the base asset after the unbonding period.")

    shares = d.share_token.balance_of("alice") // 4
    print(f">>> d.staking_pool.unstake('alice', {cspr(shares)} thCSPR)")
    wid = d.staking_pool.unstake("alice", shares)
    request = d.staking_pool.get_withdrawal(wid)

    section_header("Withdrawal Request")
    print(f"  id:              {request.id}")
    print(f"  base_amount:     {cspr(request.base_amount)} CSPR (fixed from now on)")
    print(f"  claimable_time:  {request.claimable_time} ms "
          f"({request.remaining_ms(d.runtime.now_ms) / HOUR:.1f} h from now)")
    return d, wid


def step_07_claim(d: Deployment, wid: int) -> Deployment:
    """Claim after the unbonding period."""
    step_header(7, "Claim",
        "Claims fail one millisecond early and succeed exactly on time.")

    request = d.staking_pool.get_withdrawal(wid)
    d.runtime.set_time(request.claimable_time - 1)
    try:
        d.staking_pool.claim("alice", wid)
    except StillUnbonding as e:
        print(f"  t = claimable - 1 ms: ✗ {e.tag}: {e}")

    d.runtime.set_time(request.claimable_time)
    paid = d.staking_pool.claim("alice", wid)
    print(f"  t = claimable:        ✓ paid {cspr(paid)} CSPR")
    return d


# ============================================================================
# PHASE 4: LENDING (Steps 8-9)
# ============================================================================

def step_08_lenders(d: Deployment) -> Deployment:
    """Lenders supply liquidity."""
    step_header(8, "Lender Deposits",
        "Liquidity is what borrowers and leverage loops draw on.")

    d.lending_pool.deposit("lender", CONFIG.lender_deposit * ONE)
    print(f"  total_deposits:   {cspr(d.lending_pool.total_deposits)} CSPR")
    print(f"  available:        {cspr(d.lending_pool.available_liquidity())} CSPR")
    return d


def step_09_borrow(d: Deployment) -> Deployment:
    """Post shares and borrow against them."""
    step_header(9, "Collateral and Borrowing",
        "Borrow up to collateral_factor of the collateral's value.")

    lp = d.lending_pool
    collateral = CONFIG.bob_collateral * ONE
    d.share_token.approve("bob", lp.address, collateral)
    lp.deposit_collateral("bob", collateral)
    print(f"  bob posted:       {cspr(collateral)} thCSPR "
          f"(worth {cspr(lp.get_collateral_value('bob'))} CSPR)")
    print(f"  max borrow:       {cspr(lp.get_max_borrow('bob'))} CSPR")

    lp.borrow("bob", CONFIG.bob_borrow * ONE)
    hf = lp.get_health_factor("bob")
    print(f"  bob borrowed:     {cspr(CONFIG.bob_borrow * ONE)} CSPR")
    print(f"  health factor:    {to_float(hf):.4f} ({health_status(hf)})")
    print(f"  utilization:      {lp.utilization_bps()} bps, "
          f"est. borrow rate {estimated_borrow_rate_bps(lp.risk_parameters.base_rate, lp.utilization_bps())} bps")
    return d


# ============================================================================
# PHASE 5: LEVERAGE (Step 10)
# ============================================================================

def step_10_leverage(d: Deployment) -> Deployment:
    """Run the leverage loop."""
    step_header(10, "Leverage Loop",
        "Stake, post, borrow and restake up to four times in one call.")

    params = d.lending_pool.risk_parameters
    projection = project_leverage(
        CONFIG.leverage_amount * ONE, CONFIG.leverage_loops,
        params.collateral_factor, params.liquidation_threshold,
        CONFIG.staking_apy, CONFIG.borrow_apy,
    )
    section_header("Projection")
    print(f"  stake amounts:    {[round(a / ONE, 4) for a in projection.stake_amounts]}")
    print(f"  leverage:         {projection.effective_leverage:.4f}x")
    print(f"  net APY:          {projection.net_apy:.3f}%")

    result = d.lending_pool.leverage_stake("alice", CONFIG.leverage_amount * ONE, CONFIG.leverage_loops)
    section_header("Executed")
    print(f"  loops executed:   {result.loops_executed}/{result.loops_requested}")
    print(f"  total staked:     {cspr(result.total_staked)} CSPR")
    print(f"  total borrowed:   {cspr(result.total_borrowed)} CSPR")
    print(f"  collateral:       {cspr(result.collateral_posted)} thCSPR")
    print(f"  to alice wallet:  {cspr(result.shares_to_caller)} thCSPR")
    hf = d.lending_pool.get_health_factor("alice")
    print(f"  health factor:    {to_float(hf):.4f} ({health_status(hf)})")
    return d


# ============================================================================
# PHASE 6: RISK (Steps 11-12)
# ============================================================================

def step_11_stress(d: Deployment) -> Deployment:
    """Exchange-rate stress of alice's position."""
    step_header(11, "Stress Report",
        "How far can the exchange rate fall before liquidation?")

    lp = d.lending_pool
    position = lp.get_position("alice")
    lt = lp.risk_parameters.liquidation_threshold
    rates = rate_shock_grid(lp.exchange_rate(), [-0.10, -0.05, 0.0, 0.05])
    hfs = stress_health_factors(position.collateral, position.debt, rates, lt)
    for r, hf in zip(rates, hfs):
        print(f"  rate {r:.4f} -> health {hf:.4f}")
    print(f"  liquidation rate: {liquidation_exchange_rate(position.collateral, position.debt, lt):.4f}")
    print("""
    The exchange rate only rises, so in practice a position becomes
    liquidatable when the admin tightens the liquidation threshold.
    """)
    return d


def step_12_liquidation(d: Deployment) -> Deployment:
    """Tighten the threshold and liquidate."""
    step_header(12, "Liquidation",
        "Repay up to half the debt, receive collateral plus a bonus.")

    lp = d.lending_pool
    print(">>> lp.set_config('admin', 7500, 7000, 500)")
    lp.set_config(d.admin, 7500, 7000, 500)
    print(f"  liquidatable:     {lp.liquidatable_accounts()}")

    before = lp.get_position("alice")
    seized = lp.liquidate("carol", "alice", before.debt)
    after = lp.get_position("alice")
    print(f"  debt:             {cspr(before.debt)} -> {cspr(after.debt)} CSPR")
    print(f"  collateral:       {cspr(before.collateral)} -> {cspr(after.collateral)} thCSPR")
    print(f"  carol seized:     {cspr(seized)} thCSPR "
          f"(worth {cspr(d.staking_pool.preview_unstake(seized))} CSPR)")
    hf = lp.get_health_factor("alice")
    print(f"  health factor:    {to_float(hf):.4f} ({health_status(hf)})")
    return d


# ============================================================================
# PHASE 7: GUARANTEES (Steps 13-14)
# ============================================================================

def step_13_atomicity(d: Deployment) -> Deployment:
    """A failing call leaves no trace."""
    step_header(13, "Atomicity",
        "Every entry point is all-or-nothing.")

    log_len = len(d.ledger.transaction_log)
    events = len(d.runtime.events)
    try:
        d.lending_pool.leverage_stake("carol", 12 * ONE, 2)
    except ProtocolError as e:
        print(f"  leverage_stake('carol', 12, 2): ✗ {e.tag}: {e}")
    print(f"  transaction log:  {log_len} -> {len(d.ledger.transaction_log)}")
    print(f"  events:           {events} -> {len(d.runtime.events)}")
    print("""
    The first iteration staked 12 CSPR and borrowed about 9 CSPR, which is
    below the minimum stake, so the second iteration failed and everything the call
    did was rolled back.
    """)
    return d


def step_14_conservation(d: Deployment) -> Deployment:
    """Every accounting identity holds."""
    step_header(14, "Conservation",
        "Ledger balances and contract bookkeeping agree.")

    result = d.ledger.verify_double_entry()
    pool = d.staking_pool
    lp = d.lending_pool
    print(f"  double entry valid:          {result['valid']} {result['supplies']}")
    print(f"  shares == token supply:      {pool.total_shares == d.share_token.total_supply()}")
    print(f"  pool cash == owed claims:    "
          f"{d.runtime.balance(pool.address) == pool.withdrawals.pending_total()}")
    print(f"  lending cash == idle liq.:   "
          f"{d.runtime.balance(lp.address) == lp.available_liquidity()}")
    return d


def main():
    """Run the complete tutorial."""
    print("=" * 70)
    print("       STAKEPOOL - INTERACTIVE TUTORIAL")
    print("=" * 70)
    print("""
    PHASES:
      1-3:   Staking      - Deployment, first stake, exchange rate
      4-5:   Rewards      - Compounding and the protocol fee
      6-7:   Withdrawals  - Unstake, unbonding, claim
      8-9:   Lending      - Deposits, collateral, borrowing
      10:    Leverage     - The stake / borrow loop
      11-12: Risk         - Stress report and liquidation
      13-14: Guarantees   - Atomicity and conservation
    """)

    if QUICK_MODE:
        print("Running in QUICK mode (no pauses)")
    else:
        print("Running in INTERACTIVE mode (press Enter to advance)")

    wait_for_enter()

    d = step_01_deploy()
    wait_for_enter()

    d = step_02_first_stake(d)
    wait_for_enter()

    d = step_03_second_stake(d)
    wait_for_enter()

    d = step_04_rewards(d)
    wait_for_enter()

    d = step_05_compound(d)
    wait_for_enter()

    d, wid = step_06_unstake(d)
    wait_for_enter()

    d = step_07_claim(d, wid)
    wait_for_enter()

    d = step_08_lenders(d)
    wait_for_enter()

    d = step_09_borrow(d)
    wait_for_enter()

    d = step_10_leverage(d)
    wait_for_enter()

    d = step_11_stress(d)
    wait_for_enter()

    d = step_12_liquidation(d)
    wait_for_enter()

    d = step_13_atomicity(d)
    wait_for_enter()

    step_14_conservation(d)

    print("\n" + "=" * 70)
    print("       TUTORIAL COMPLETE!")
    print("=" * 70)
    print("""
    Next steps:
      - Run tests: pytest tests/
      - Change DemoConfig and run again with --quick
    """)


if __name__ == "__main__":
    main()
