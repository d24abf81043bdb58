"""
Serialization Conformance Tests

INVARIANTS:
    - Operations of a deployment execute in a single total order; concurrent
      callers observe the same outcome as some sequential interleaving.
    - An operation that re-enters its own component before finishing is
      rejected with ReentrantCall and leaves no trace.
"""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from course_ledger import (
    AlreadyEnrolled, CourseMarketplace, ReentrantCall, TokenLedger,
    deploy_marketplace,
)

from tests.accounts import OWNER, INSTRUCTOR, STUDENT1, STUDENT2, START_TIME


MARKET = "0x" + "c0" * 20


class HookedToken(TokenLedger):
    """Token ledger that runs a one-shot callback when a batch is executed."""

    hook = None

    def execute(self, moves, spender=None):
        if self.hook is not None:
            hook, self.hook = self.hook, None
            hook()
        return super().execute(moves, spender)


def student(i: int) -> str:
    return "0x" + f"{i + 1:040x}"


class TestReentrancy:

    def _market(self):
        token = HookedToken("YDT", "YD Token", OWNER, initial_supply=100_000, verbose=False)
        market = CourseMarketplace(token, OWNER, MARKET, verbose=False)
        for s in (STUDENT1, STUDENT2):
            token.transfer(OWNER, s, 1_000)
            token.approve(s, MARKET, 1_000)
        course_id = market.create_course(INSTRUCTOR, "QmCourse", 100)
        return token, market, course_id

    def test_purchase_reentering_purchase_is_rejected(self):
        token, market, course_id = self._market()
        token.hook = lambda: market.purchase_course(STUDENT2, course_id)
        balances = token.holders()
        events = len(token.events)

        with pytest.raises(ReentrantCall):
            market.purchase_course(STUDENT1, course_id)

        assert token.holders() == balances
        assert len(token.events) == events
        assert market.get_course_students(course_id) == []
        assert market.get_course(course_id).total_students == 0

    def test_purchase_reentering_create_is_rejected(self):
        token, market, course_id = self._market()
        token.hook = lambda: market.create_course(STUDENT1, "QmSneaky", 1)
        with pytest.raises(ReentrantCall):
            market.purchase_course(STUDENT1, course_id)
        assert market.next_course_id == 2

    def test_marketplace_recovers_after_rejection(self):
        token, market, course_id = self._market()
        token.hook = lambda: market.purchase_course(STUDENT2, course_id)
        with pytest.raises(ReentrantCall):
            market.purchase_course(STUDENT1, course_id)
        market.purchase_course(STUDENT1, course_id)
        assert market.has_enrolled(course_id, STUDENT1)

    def test_calls_into_another_component_are_allowed(self):
        token, market, course_id = self._market()
        token.hook = lambda: token.transfer(OWNER, STUDENT2, 5)
        market.purchase_course(STUDENT1, course_id)
        assert token.balance_of(STUDENT2) == 1_005
        assert market.has_enrolled(course_id, STUDENT1)


class TestConcurrentCallers:

    @given(st.integers(min_value=2, max_value=16))
    @settings(max_examples=20, deadline=None)
    def test_concurrent_purchases_by_distinct_students(self, num_students):
        """
        PROPERTY: N students buying concurrently yields N enrollments and conserved balances.
        """
        d = deploy_marketplace(OWNER, initial_time=START_TIME, verbose=False)
        market = d.marketplace
        course_id = market.create_course(INSTRUCTOR, "QmCourse", 100)
        buyers = [student(i) for i in range(num_students)]
        for b in buyers:
            d.token.transfer(OWNER, b, 100)
            d.token.approve(b, market.address, 100)

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(lambda b: market.purchase_course(b, course_id), buyers))

        assert market.get_course(course_id).total_students == num_students
        assert sorted(market.get_course_students(course_id)) == sorted(buyers)
        assert d.token.balance_of(INSTRUCTOR) == 95 * num_students
        assert market.verify_invariants()['valid']

    def test_concurrent_duplicate_purchases_charge_once(self):
        d = deploy_marketplace(OWNER, initial_time=START_TIME, verbose=False)
        market = d.marketplace
        course_id = market.create_course(INSTRUCTOR, "QmCourse", 100)
        d.token.transfer(OWNER, STUDENT1, 1_000)
        d.token.approve(STUDENT1, market.address, 1_000)
        outcomes = []
        record = threading.Lock()

        def attempt():
            try:
                market.purchase_course(STUDENT1, course_id)
                result = "ok"
            except AlreadyEnrolled:
                result = "dup"
            with record:
                outcomes.append(result)

        threads = [threading.Thread(target=attempt) for _ in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert outcomes.count("ok") == 1
        assert outcomes.count("dup") == 9
        assert d.token.balance_of(STUDENT1) == 900

    def test_concurrent_creates_get_distinct_ids(self):
        d = deploy_marketplace(OWNER, initial_time=START_TIME, verbose=False)
        market = d.marketplace
        with ThreadPoolExecutor(max_workers=8) as pool:
            ids = list(pool.map(lambda i: market.create_course(INSTRUCTOR, f"Qm{i}", 1), range(50)))
        assert sorted(ids) == list(range(1, 51))
