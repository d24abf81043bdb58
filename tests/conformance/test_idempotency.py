"""
Idempotency Conformance Tests

INVARIANT: A student pays for a course at most once.

    ∀ course c, student s:
        |{enrollments (c, s)}| ≤ 1
        purchase(c, s) after success ⟹ AlreadyEnrolled, state unchanged

Repeating a rejected purchase is equally harmless: every retry fails the
same way until the cause is fixed.
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from course_ledger import (
    AlreadyEnrolled, InsufficientAllowance, MarketplaceConfig, deploy_marketplace,
)

from tests.accounts import OWNER, INSTRUCTOR, STUDENT1, STUDENTS, START_TIME, snapshot


def fresh_deployment():
    config = MarketplaceConfig(initial_supply=100_000)
    d = deploy_marketplace(OWNER, config=config, initial_time=START_TIME, verbose=False)
    for s in STUDENTS:
        d.token.transfer(OWNER, s, 10_000)
    return d


class TestIdempotencyProperties:

    @given(st.integers(min_value=1, max_value=5), st.integers(min_value=1, max_value=1_000))
    @settings(max_examples=50)
    def test_repeated_purchase_charges_once(self, num_repeats, price):
        """
        PROPERTY: N purchase attempts charge the student exactly once.
        """
        d = fresh_deployment()
        market = d.marketplace
        course_id = market.create_course(INSTRUCTOR, "QmCourse", price)
        d.token.approve(STUDENT1, market.address, price * (num_repeats + 1))

        market.purchase_course(STUDENT1, course_id)
        after_first = snapshot(d)
        for _ in range(num_repeats):
            with pytest.raises(AlreadyEnrolled):
                market.purchase_course(STUDENT1, course_id)

        assert snapshot(d) == after_first
        assert market.get_course_students(course_id) == [STUDENT1]
        assert market.get_student_courses(STUDENT1) == [course_id]

    @given(st.lists(st.tuples(st.sampled_from(STUDENTS), st.integers(1, 3)), min_size=1, max_size=20))
    @settings(max_examples=50)
    def test_enrollment_pairs_unique(self, attempts):
        """
        PROPERTY: Any sequence of purchases yields each (course, student) at most once.
        """
        d = fresh_deployment()
        market = d.marketplace
        for i in range(3):
            market.create_course(INSTRUCTOR, f"QmCourse{i}", 10)
        for s in STUDENTS:
            d.token.approve(s, market.address, 10_000)

        for student, course_id in attempts:
            try:
                market.purchase_course(student, course_id)
            except AlreadyEnrolled:
                pass

        for course_id in (1, 2, 3):
            students = market.get_course_students(course_id)
            assert len(students) == len(set(students))
            assert market.get_course(course_id).total_students == len(students)
        distinct = set(attempts)
        assert sum(len(market.get_student_courses(s)) for s in STUDENTS) == len(distinct)


class TestIdempotencyExamples:

    def test_rejected_purchase_can_be_retried(self):
        d = fresh_deployment()
        market = d.marketplace
        course_id = market.create_course(INSTRUCTOR, "QmCourse", 100)
        d.token.approve(STUDENT1, market.address, 50)
        for _ in range(3):
            with pytest.raises(InsufficientAllowance):
                market.purchase_course(STUDENT1, course_id)
        d.token.approve(STUDENT1, market.address, 100)
        market.purchase_course(STUDENT1, course_id)
        assert market.has_enrolled(course_id, STUDENT1)
