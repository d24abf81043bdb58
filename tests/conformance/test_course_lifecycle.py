"""
Course Lifecycle Conformance Tests

INVARIANTS:
    - Course ids are allocated 1, 2, 3, ... with no gaps and never reused,
      even when creations are rejected in between.
    - toggle_course_status is an involution: two toggles restore the course.
    - Active-course pagination returns exactly the active courses in id order.
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from course_ledger import InvalidPrice, deploy_marketplace, WEI

from tests.accounts import OWNER, INSTRUCTOR, START_TIME


def fresh_market():
    return deploy_marketplace(OWNER, initial_time=START_TIME, verbose=False).marketplace


class TestCourseIdProperties:

    @given(st.lists(st.integers(min_value=0, max_value=100), min_size=1, max_size=30))
    @settings(max_examples=50)
    def test_sequential_ids(self, prices):
        """
        PROPERTY: Successful creations get consecutive ids from 1; rejected ones consume none.
        """
        market = fresh_market()
        ids = []
        for price in prices:
            try:
                ids.append(market.create_course(INSTRUCTOR, "QmCourse", price))
            except InvalidPrice:
                assert price == 0
        assert ids == list(range(1, len(ids) + 1))
        assert market.next_course_id == len(ids) + 1


class TestToggleProperties:

    @given(st.integers(min_value=0, max_value=10))
    @settings(max_examples=50)
    def test_toggle_parity(self, toggles):
        """
        PROPERTY: After n toggles a course is active iff n is even.
        """
        market = fresh_market()
        course_id = market.create_course(INSTRUCTOR, "QmCourse", WEI)
        original = market.get_course(course_id)
        for _ in range(toggles):
            market.toggle_course_status(INSTRUCTOR, course_id)
        course = market.get_course(course_id)
        assert course.is_active == (toggles % 2 == 0)
        if toggles % 2 == 0:
            assert course == original


class TestPaginationProperties:

    @given(
        st.lists(st.booleans(), min_size=1, max_size=20),
        st.integers(min_value=0, max_value=25),
        st.integers(min_value=0, max_value=25),
    )
    @settings(max_examples=50)
    def test_pages_slice_active_courses(self, active_flags, offset, limit):
        """
        PROPERTY: get_active_courses(offset, limit) is the [offset:offset+limit]
        slice of active ids; total_count ignores paging.
        """
        market = fresh_market()
        for flag in active_flags:
            course_id = market.create_course(INSTRUCTOR, "QmCourse", WEI)
            if not flag:
                market.toggle_course_status(INSTRUCTOR, course_id)

        active_ids = [i + 1 for i, flag in enumerate(active_flags) if flag]
        courses, total = market.get_active_courses(offset, limit)
        assert [c.id for c in courses] == active_ids[offset:offset + limit]
        assert total == len(active_ids)
        assert all(c.is_active for c in courses)
