"""
enrollment.py - Enrollment Ledger

Records which students have paid for which courses. An enrollment exists at
most once per (course, student) pair and is never removed; this guard is
what prevents a student from paying twice.
"""

from __future__ import annotations
from typing import Any, Dict, List, Set, Tuple

from .core import AlreadyEnrolled, normalize_address
from .registry import CourseRegistry


class EnrollmentLedger:
    """
    (course, student) pairs with insertion-ordered indices in both directions.

    Recording an enrollment also bumps the course's total_students in the
    registry, so the two can never drift apart.
    """

    def __init__(self, registry: CourseRegistry):
        self._registry = registry
        self._enrolled: Set[Tuple[int, str]] = set()
        self._course_students: Dict[int, List[str]] = {}
        self._student_courses: Dict[str, List[int]] = {}

    def has_enrolled(self, course_id: int, student: str) -> bool:
        return (course_id, normalize_address(student)) in self._enrolled

    def check(self, course_id: int, student: str) -> None:
        """
        Raises:
            AlreadyEnrolled: If student already holds course_id
        """
        if self.has_enrolled(course_id, student):
            raise AlreadyEnrolled("Already enrolled in this course")

    def record(self, course_id: int, student: str) -> None:
        """
        Insert the pair and update both indices and the course's student count.

        Raises:
            AlreadyEnrolled: If the pair already exists
            NotFound: If course_id is unknown to the registry
        """
        student = normalize_address(student)
        self.check(course_id, student)
        self._registry.increment_students(course_id)
        self._enrolled.add((course_id, student))
        self._course_students.setdefault(course_id, []).append(student)
        self._student_courses.setdefault(student, []).append(course_id)

    def student_courses(self, student: str) -> List[int]:
        return list(self._student_courses.get(normalize_address(student), []))

    def course_students(self, course_id: int) -> List[str]:
        return list(self._course_students.get(course_id, []))

    def __len__(self) -> int:
        return len(self._enrolled)

    def verify(self) -> Dict[str, Any]:
        """
        Check that every course's total_students equals its enrollment count.

        Returns:
            Dict with 'valid' and a list of 'discrepancies', each holding
            course_id, total_students and enrollments.
        """
        discrepancies = []
        for course in self._registry.all_courses():
            enrolled = len(self._course_students.get(course.id, []))
            if enrolled != course.total_students:
                discrepancies.append({
                    'course_id': course.id,
                    'total_students': course.total_students,
                    'enrollments': enrolled,
                })
        return {
            'valid': not discrepancies,
            'discrepancies': discrepancies,
        }
