#!/usr/bin/env python3
"""
demo.py - Interactive Tutorial: Learn the Course Marketplace Step by Step

A walk through a full deployment: the payment token, course listings,
purchases with a platform fee, rejections, administration, the token
exchange and a red envelope. Each step builds on the previous one.

WHAT YOU'LL LEARN:
  1-3:  Foundation     - Deployment, funding, conservation
  4-6:  Courses        - Listing, approving, buying
  7-8:  Rejections     - Atomic failures, duplicate purchases
  9-10: Administration - Fee changes, pause and resume
  11-12: Extras        - Buying and selling tokens, red envelopes

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
import random
import sys

from course_ledger import (
    Deployment, deploy_marketplace,
    LedgerError, WEI,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Configuration for the tutorial. Modify these to experiment."""
    start_time: datetime = datetime(2025, 1, 1, 9, 0, 0)

    owner: str = "0x" + "10" * 20
    instructor: str = "0x" + "20" * 20
    alice: str = "0x" + "a1" * 20
    bob: str = "0x" + "b0" * 20

    student_funding: int = 1000 * WEI
    course_price: int = 100 * WEI
    alice_eth: int = 2 * WEI
    envelope_amount: int = WEI
    envelope_shares: int = 3


CONFIG = DemoConfig()

QUICK_MODE = "--quick" in sys.argv


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str, objective: str):
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}")
    print(f"\nObjective: {objective}\n")


def section_header(text: str):
    print(f"\n--- {text} ---\n")


def ydt(amount: int) -> str:
    """Format a smallest-unit amount as whole tokens."""
    return f"{amount / WEI:,.2f}"


def show_balances(d: Deployment, *accounts: str):
    names = {CONFIG.owner: "owner", CONFIG.instructor: "instructor",
             CONFIG.alice: "alice", CONFIG.bob: "bob"}
    for account in accounts:
        print(f"    {names.get(account, account):<12} {ydt(d.token.balance_of(account)):>14} YDT")


# ============================================================================
# PHASE 1: FOUNDATION (Steps 1-3)
# ============================================================================

def step_01_deploy() -> Deployment:
    step_header(1, "Deployment",
        "See what one deploy_marketplace() call wires together.")
    print("""
    A deployment has four parts sharing one lock, one clock and one event log:

      token        the YDT payment token; the owner starts with 1,000,000 YDT
      native       the native currency (ETH) used by the exchange
      exchange     swaps ETH for YDT at a fixed rate
      marketplace  course listings, purchases and platform administration
    """)
    d = deploy_marketplace(CONFIG.owner, initial_time=CONFIG.start_time, verbose=True)
    print(f"\n    Total supply: {ydt(d.token.total_supply)} YDT")
    print(f"    Platform fee: {d.marketplace.platform_fee_percentage}%")
    return d


def step_02_fund_students(d: Deployment) -> Deployment:
    step_header(2, "Funding Students",
        "Move tokens from the owner's reserve to two students.")
    for student in (CONFIG.alice, CONFIG.bob):
        d.token.transfer(CONFIG.owner, student, CONFIG.student_funding)
    show_balances(d, CONFIG.owner, CONFIG.alice, CONFIG.bob)
    return d


def step_03_conservation(d: Deployment) -> Deployment:
    step_header(3, "Conservation",
        "Transfers redistribute tokens; they never create or destroy them.")
    report = d.token.verify_conservation()
    print(f"    total supply:    {ydt(report['total_supply'])}")
    print(f"    sum of balances: {ydt(report['sum_of_balances'])}")
    print(f"    valid:           {report['valid']}")
    return d


# ============================================================================
# PHASE 2: COURSES (Steps 4-6)
# ============================================================================

def step_04_list_course(d: Deployment) -> int:
    step_header(4, "Listing a Course",
        "An instructor lists a course with a price and a metadata reference.")
    course_id = d.marketplace.create_course(CONFIG.instructor, "QmIntroToSolidity", CONFIG.course_price)
    course = d.marketplace.get_course(course_id)
    print(f"\n    Course #{course.id}: {ydt(course.price)} YDT, active={course.is_active}")
    return course_id


def step_05_approve(d: Deployment) -> Deployment:
    step_header(5, "Approving the Marketplace",
        "Students let the marketplace spend the course price on their behalf.")
    d.token.approve(CONFIG.alice, d.marketplace.address, CONFIG.course_price)
    print(f"\n    allowance: {ydt(d.token.allowance(CONFIG.alice, d.marketplace.address))} YDT")
    return d


def step_06_purchase(d: Deployment, course_id: int) -> Deployment:
    step_header(6, "Buying a Course",
        "One purchase pays the platform fee and the instructor in a single batch.")
    d.marketplace.purchase_course(CONFIG.alice, course_id)
    show_balances(d, CONFIG.alice, CONFIG.instructor, CONFIG.owner)
    print(f"\n    alice enrolled: {d.marketplace.has_enrolled(course_id, CONFIG.alice)}")
    print(f"    content: {d.marketplace.get_course_content(CONFIG.alice, course_id)}")
    return d


# ============================================================================
# PHASE 3: REJECTIONS (Steps 7-8)
# ============================================================================

def step_07_rejection(d: Deployment, course_id: int) -> Deployment:
    step_header(7, "A Rejected Purchase",
        "Without enough allowance nothing moves, not even the fee.")
    d.token.approve(CONFIG.bob, d.marketplace.address, CONFIG.course_price // 2)
    before = d.token.balance_of(CONFIG.bob)
    try:
        d.marketplace.purchase_course(CONFIG.bob, course_id)
    except LedgerError as e:
        print(f"\n    rejected: {type(e).__name__}")
    print(f"    bob's balance unchanged: {d.token.balance_of(CONFIG.bob) == before}")
    return d


def step_08_duplicate(d: Deployment, course_id: int) -> Deployment:
    step_header(8, "Buying Twice",
        "An enrollment exists at most once, so a second purchase is refused.")
    d.token.approve(CONFIG.alice, d.marketplace.address, CONFIG.course_price)
    try:
        d.marketplace.purchase_course(CONFIG.alice, course_id)
    except LedgerError as e:
        print(f"\n    rejected: {type(e).__name__}: {e}")
    return d


# ============================================================================
# PHASE 4: ADMINISTRATION (Steps 9-10)
# ============================================================================

def step_09_fees(d: Deployment, course_id: int) -> Deployment:
    step_header(9, "Changing the Platform Fee",
        "The owner may set any fee from 0% to 20%.")
    try:
        d.marketplace.set_platform_fee_percentage(CONFIG.owner, 21)
    except LedgerError as e:
        print(f"\n    21%: {type(e).__name__}")
    d.marketplace.set_platform_fee_percentage(CONFIG.owner, 10)
    d.token.approve(CONFIG.bob, d.marketplace.address, CONFIG.course_price)
    d.marketplace.purchase_course(CONFIG.bob, course_id)
    stats = d.marketplace.get_course_stats(CONFIG.instructor, course_id)
    print(f"\n    students={stats.total_students} revenue={ydt(stats.total_revenue)} YDT")
    return d


def step_10_pause(d: Deployment) -> Deployment:
    step_header(10, "Emergency Pause",
        "While paused, listings and purchases stop; reads keep working.")
    d.marketplace.emergency_pause(CONFIG.owner)
    try:
        d.marketplace.create_course(CONFIG.instructor, "QmAdvanced", CONFIG.course_price)
    except LedgerError as e:
        print(f"\n    rejected: {type(e).__name__}")
    d.marketplace.resume(CONFIG.owner)
    d.advance_time(CONFIG.start_time + timedelta(days=7))
    d.marketplace.create_course(CONFIG.instructor, "QmAdvanced", 2 * CONFIG.course_price)
    courses, total = d.marketplace.get_active_courses(0, 10)
    print(f"\n    active courses: {[c.id for c in courses]} (total {total})")
    return d


# ============================================================================
# PHASE 5: EXTRAS (Steps 11-12)
# ============================================================================

def step_11_exchange(d: Deployment) -> Deployment:
    step_header(11, "The Token Exchange",
        "Buy YDT with ETH at 2500 per ETH, then sell some back for a fee.")
    d.fund_eth(CONFIG.alice, CONFIG.alice_eth)
    bought = d.exchange.buy_tokens(CONFIG.alice, WEI)
    net, fee = d.exchange.get_sell_quote(bought // 2)
    print(f"\n    bought {ydt(bought)} YDT; selling half returns {ydt(net)} ETH (fee {ydt(fee)})")
    d.exchange.sell_tokens(CONFIG.alice, bought // 2)
    print(f"    exchange holds {ydt(d.exchange.contract_eth_balance())} ETH")
    print(f"    owner withdraws {ydt(d.exchange.withdraw_eth(CONFIG.owner))} ETH")
    return d


def step_12_red_envelope(d: Deployment) -> Deployment:
    step_header(12, "A Red Envelope",
        "Split ETH into random shares; each account grabs once.")
    envelope = d.new_red_envelope("0x" + "ed" * 20, rng=random.Random(2025))
    envelope.set_red_envelope(CONFIG.alice, CONFIG.envelope_amount, CONFIG.envelope_shares, False)
    for grabber in (CONFIG.bob, CONFIG.instructor, CONFIG.owner):
        envelope.grab(grabber)
    for grabber in envelope.get_all_grabbers():
        info = envelope.get_user_grab_info(grabber)
        print(f"    #{info.grab_index}: {grabber[:10]}... took {ydt(info.amount)} ETH")
    print(f"\n    both ledgers conserve: "
          f"{d.token.verify_conservation()['valid'] and d.native.verify_conservation()['valid']}")
    return d


def main():
    """Run the complete tutorial."""
    print("=" * 70)
    print("       COURSE MARKETPLACE - INTERACTIVE TUTORIAL")
    print("=" * 70)
    if QUICK_MODE:
        print("Running in QUICK mode (no pauses)")
    else:
        print("Running in INTERACTIVE mode (press Enter to advance)")
    wait_for_enter()

    d = step_01_deploy()
    wait_for_enter()
    d = step_02_fund_students(d)
    wait_for_enter()
    d = step_03_conservation(d)
    wait_for_enter()

    course_id = step_04_list_course(d)
    wait_for_enter()
    d = step_05_approve(d)
    wait_for_enter()
    d = step_06_purchase(d, course_id)
    wait_for_enter()

    d = step_07_rejection(d, course_id)
    wait_for_enter()
    d = step_08_duplicate(d, course_id)
    wait_for_enter()

    d = step_09_fees(d, course_id)
    wait_for_enter()
    d = step_10_pause(d)
    wait_for_enter()

    d = step_11_exchange(d)
    wait_for_enter()
    step_12_red_envelope(d)

    print(f"\n{'='*70}")
    print(f"Done. {len(d.events)} events recorded.")
    print(f"{'='*70}")


if __name__ == "__main__":
    main()
