"""
Conservation Law Conformance Tests

INVARIANT: For each ledger, at all times:
    Σ_{a ∈ accounts} balance(a) = total_supply

Transfers, purchases and swaps redistribute value but never create or
destroy it. Only mint changes total_supply, and it changes the sum of
balances by the same amount.

These tests use property-based testing to verify conservation holds for
arbitrary operation sequences, including sequences where some operations
are rejected.
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from course_ledger import (
    LedgerError, MarketplaceConfig, deploy_marketplace,
)

from tests.accounts import OWNER, INSTRUCTOR, INSTRUCTOR2, STUDENTS, START_TIME


ACCOUNTS = [OWNER, INSTRUCTOR, INSTRUCTOR2, *STUDENTS]


# =============================================================================
# STRATEGIES FOR PROPERTY-BASED TESTING
# =============================================================================

account = st.sampled_from(ACCOUNTS)
student = st.sampled_from(STUDENTS)
amount = st.integers(min_value=0, max_value=5_000)

operation = st.one_of(
    st.tuples(st.just("transfer"), account, account, amount),
    st.tuples(st.just("approve"), student, amount),
    st.tuples(st.just("create"), st.sampled_from([INSTRUCTOR, INSTRUCTOR2]), st.integers(1, 2_000)),
    st.tuples(st.just("purchase"), account, st.integers(1, 6)),
    st.tuples(st.just("toggle"), st.integers(1, 6)),
    st.tuples(st.just("fee"), st.integers(0, 25)),
    st.tuples(st.just("buy"), student, st.integers(0, 3)),
    st.tuples(st.just("sell"), student, st.integers(0, 20_000)),
)


def fresh_deployment():
    config = MarketplaceConfig(initial_supply=100_000, exchange_rate=2500)
    d = deploy_marketplace(OWNER, config=config, initial_time=START_TIME, verbose=False)
    for s in STUDENTS:
        d.token.transfer(OWNER, s, 10_000)
        d.fund_eth(s, 5)
    return d


def apply(d, op):
    kind, *args = op
    market = d.marketplace
    if kind == "transfer":
        d.token.transfer(*args)
    elif kind == "approve":
        d.token.approve(args[0], market.address, args[1])
    elif kind == "create":
        market.create_course(args[0], "QmCourse", args[1])
    elif kind == "purchase":
        market.purchase_course(*args)
    elif kind == "toggle":
        course = market.get_course(args[0])
        market.toggle_course_status(course.instructor, args[0])
    elif kind == "fee":
        market.set_platform_fee_percentage(OWNER, args[0])
    elif kind == "buy":
        d.exchange.buy_tokens(*args)
    elif kind == "sell":
        d.exchange.sell_tokens(*args)


def run(d, ops):
    for op in ops:
        try:
            apply(d, op)
        except LedgerError:
            pass


# =============================================================================
# PROPERTY TESTS
# =============================================================================

class TestConservationProperties:
    """Property-based conservation tests."""

    @given(st.lists(operation, min_size=1, max_size=40))
    @settings(max_examples=50)
    def test_token_conservation(self, ops):
        """
        PROPERTY: Sum of token balances equals total supply after any sequence.
        """
        d = fresh_deployment()
        supply = d.token.total_supply
        run(d, ops)
        report = d.token.verify_conservation()
        assert report['valid'], report
        assert d.token.total_supply == supply

    @given(st.lists(operation, min_size=1, max_size=40))
    @settings(max_examples=50)
    def test_native_conservation(self, ops):
        """
        PROPERTY: Swaps move native currency but never change its supply.
        """
        d = fresh_deployment()
        supply = d.native.total_supply
        run(d, ops)
        assert d.native.verify_conservation()['valid']
        assert d.native.total_supply == supply

    @given(st.lists(operation, min_size=1, max_size=40))
    @settings(max_examples=50)
    def test_enrollment_counts_match(self, ops):
        """
        PROPERTY: total_students of every course equals its enrollments.
        """
        d = fresh_deployment()
        run(d, ops)
        assert d.marketplace.verify_invariants()['valid']

    @given(st.integers(min_value=1, max_value=10_000), st.integers(min_value=0, max_value=20))
    @settings(max_examples=50)
    def test_purchase_conserves_price(self, price, fee):
        """
        PROPERTY: Student's loss = instructor's gain + owner's gain = price.
        """
        d = fresh_deployment()
        market = d.marketplace
        market.set_platform_fee_percentage(OWNER, fee)
        course_id = market.create_course(INSTRUCTOR, "QmCourse", price)
        buyer = STUDENTS[0]
        d.token.approve(buyer, market.address, price)
        before = {a: d.token.balance_of(a) for a in (buyer, INSTRUCTOR, OWNER)}

        market.purchase_course(buyer, course_id)

        student_loss = before[buyer] - d.token.balance_of(buyer)
        instructor_gain = d.token.balance_of(INSTRUCTOR) - before[INSTRUCTOR]
        owner_gain = d.token.balance_of(OWNER) - before[OWNER]
        assert student_loss == price
        assert instructor_gain + owner_gain == price
        assert owner_gain == price * fee // 100


class TestConservationExamples:

    def test_mint_raises_supply_and_balances_together(self):
        d = fresh_deployment()
        d.token.mint(OWNER, INSTRUCTOR, 777)
        report = d.token.verify_conservation()
        assert report['valid']
        assert report['total_supply'] == 100_777

    def test_rejected_operations_do_not_leak(self):
        d = fresh_deployment()
        with pytest.raises(LedgerError):
            d.token.transfer(STUDENTS[0], STUDENTS[1], 10**9)
        assert d.token.verify_conservation()['difference'] == 0
