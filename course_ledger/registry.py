"""
registry.py - Course Registry

Stores Course records keyed by sequential id (starting at 1, never reused)
and an index of course ids per instructor.

Course records are frozen; every change replaces the stored record with a
new one built by dataclasses.replace(). The registry performs no locking of
its own: it is owned by a CourseMarketplace, which serializes access.
"""

from __future__ import annotations
from dataclasses import replace
from datetime import datetime
from typing import Dict, List

from .core import (
    Course, ActiveCoursesPage,
    InvalidMetadata, InvalidPrice, NotFound, Unauthorized,
    normalize_address, require_amount,
)


def _check_listing(price: int, ipfs_cid: str) -> None:
    require_amount(price, "price")
    if price == 0:
        raise InvalidPrice("Price must be greater than 0")
    if not isinstance(ipfs_cid, str) or not ipfs_cid.strip():
        raise InvalidMetadata("IPFS CID cannot be empty")


class CourseRegistry:
    """
    Course records and the instructor → course-id index.

    Example:
        registry = CourseRegistry()
        course = registry.create(instructor, 100, "bafy...", now)
        registry.toggle_status(instructor, course.id)
        courses, total = registry.active_courses(0, 10)
    """

    def __init__(self):
        self._courses: Dict[int, Course] = {}
        self._instructor_courses: Dict[str, List[int]] = {}
        self._next_course_id: int = 1

    @property
    def next_course_id(self) -> int:
        return self._next_course_id

    def __len__(self) -> int:
        return len(self._courses)

    def __contains__(self, course_id: int) -> bool:
        return course_id in self._courses

    def get(self, course_id: int) -> Course:
        """
        Return the course with course_id.

        Raises:
            NotFound: If no such course exists
        """
        try:
            return self._courses[course_id]
        except (KeyError, TypeError):
            raise NotFound(f"Course does not exist: {course_id!r}") from None

    def instructor_courses(self, instructor: str) -> List[int]:
        """Ids of courses created by instructor, in creation order."""
        return list(self._instructor_courses.get(normalize_address(instructor), []))

    def all_courses(self) -> List[Course]:
        return [self._courses[i] for i in sorted(self._courses)]

    def create(self, instructor: str, price: int, ipfs_cid: str, created_at: datetime) -> Course:
        """
        Allocate the next id and store a new active course.

        Raises:
            InvalidPrice: If price is 0
            InvalidMetadata: If ipfs_cid is empty
        """
        instructor = normalize_address(instructor)
        _check_listing(price, ipfs_cid)

        course = Course(
            id=self._next_course_id,
            ipfs_cid=ipfs_cid,
            price=price,
            instructor=instructor,
            is_active=True,
            created_at=created_at,
            total_students=0,
        )
        self._courses[course.id] = course
        self._instructor_courses.setdefault(instructor, []).append(course.id)
        self._next_course_id += 1
        return course

    def _owned(self, caller: str, course_id: int, action: str) -> Course:
        course = self.get(course_id)
        if normalize_address(caller) != course.instructor:
            raise Unauthorized(f"Only instructor can {action} course")
        return course

    def update(self, caller: str, course_id: int, new_ipfs_cid: str, new_price: int) -> Course:
        """
        Change price and metadata reference; id, instructor and created_at stay.

        Raises:
            NotFound, Unauthorized, InvalidPrice, InvalidMetadata
        """
        course = self._owned(caller, course_id, "update")
        _check_listing(new_price, new_ipfs_cid)
        updated = replace(course, ipfs_cid=new_ipfs_cid, price=new_price)
        self._courses[course_id] = updated
        return updated

    def toggle_status(self, caller: str, course_id: int) -> Course:
        """
        Flip is_active. Two consecutive toggles restore the original state.

        Raises:
            NotFound, Unauthorized
        """
        course = self._owned(caller, course_id, "toggle")
        toggled = replace(course, is_active=not course.is_active)
        self._courses[course_id] = toggled
        return toggled

    def increment_students(self, course_id: int) -> Course:
        course = self.get(course_id)
        bumped = replace(course, total_students=course.total_students + 1)
        self._courses[course_id] = bumped
        return bumped

    def active_courses(self, offset: int, limit: int) -> ActiveCoursesPage:
        """
        Page through active courses in ascending id order.

        The filter runs over every stored course on each call, so a course
        deactivated a moment ago is already absent.

        Args:
            offset: Number of active courses to skip
            limit: Maximum number of courses to return

        Returns:
            ActiveCoursesPage(courses, total_count); total_count counts all
            active courses regardless of offset and limit
        """
        require_amount(offset, "offset")
        require_amount(limit, "limit")
        active = [self._courses[i] for i in sorted(self._courses) if self._courses[i].is_active]
        return ActiveCoursesPage(
            courses=tuple(active[offset:offset + limit]),
            total_count=len(active),
        )
