"""
marketplace.py - Course Marketplace Engine

The CourseMarketplace is the single entry point for course and enrollment
state. It owns a CourseRegistry and an EnrollmentLedger, holds the platform
configuration (fee percentage, owner, pause flag) and moves payments through
a TokenLedger it does not own.

Key responsibilities:
    - Course lifecycle: create, update, toggle active/inactive
    - Atomic purchase: fee + instructor payment in one token batch, then
      enrollment, with every precondition checked before any value moves
    - Platform administration: fee changes, ownership, emergency pause
    - Events: CourseCreated, CoursePurchased, CourseUpdated,
      CourseStatusToggled, PlatformFeeUpdated, OwnershipTransferred,
      MarketplacePaused, MarketplaceResumed
"""

from __future__ import annotations
from datetime import datetime
from typing import Any, Dict, List, Optional
import threading

from .core import (
    # Types
    Move, Course, CourseStats, ActiveCoursesPage, MarketplaceConfig,
    EventLog, LedgerEvent, LogicalClock, OperationGuard,
    # Constants
    ZERO_ADDRESS,
    # Exceptions
    CourseInactive, FeeTooHigh, InsufficientBalance, InvalidOwner,
    MarketplacePaused, SelfPurchase, Unauthorized,
    # Helper functions
    compute_fee_split, normalize_address, trace,
)
from .enrollment import EnrollmentLedger
from .registry import CourseRegistry
from .token import TokenLedger


class CourseMarketplace:
    """
    Course marketplace with escrow-style payment splitting.

    Students approve the marketplace address on the token ledger, then call
    purchase_course(). The price leaves the student's balance as one
    transfer_from split into a platform-fee leg (to the owner) and an
    instructor-payment leg.

    Thread Safety:
        Shares the token ledger's lock by default, so purchases, token
        transfers and reads are totally ordered. Re-entering the marketplace
        from inside one of its own operations raises ReentrantCall.

    Example:
        market = CourseMarketplace(token, owner=owner, address=market_addr)
        course_id = market.create_course(instructor, "bafy...", 100 * WEI)
        token.approve(student, market_addr, 100 * WEI)
        market.purchase_course(student, course_id)
    """

    def __init__(
        self,
        token: TokenLedger,
        owner: str,
        address: str,
        config: Optional[MarketplaceConfig] = None,
        event_log: Optional[EventLog] = None,
        clock: Optional[LogicalClock] = None,
        lock: Optional[threading.RLock] = None,
        verbose: bool = True,
    ):
        """
        Create a marketplace over an existing token ledger.

        Args:
            token: Ledger of the payment token
            owner: Platform owner; receives fees and administers the platform
            address: The marketplace's own account (the spender students approve)
            config: Fee settings (MarketplaceConfig defaults if omitted)
            event_log: Event log (defaults to the token's)
            clock: Logical clock (defaults to the token's)
            lock: Serialization lock (defaults to the token's)
            verbose: Print a trace line per operation
        """
        self.token = token
        self.address = normalize_address(address)
        self.config = config or MarketplaceConfig()
        self.events = event_log if event_log is not None else token.events
        self.clock = clock if clock is not None else token.clock
        self.verbose = verbose
        self._guard = OperationGuard(lock if lock is not None else token.lock)
        self._owner = normalize_address(owner)
        self._platform_fee: int = self.config.platform_fee_percentage
        self._paused: bool = False
        self._registry = CourseRegistry()
        self._enrollments = EnrollmentLedger(self._registry)

    # ========================================================================
    # PLATFORM STATE (read-only)
    # ========================================================================

    @property
    def owner(self) -> str:
        with self._guard.reading():
            return self._owner

    @property
    def platform_fee_percentage(self) -> int:
        with self._guard.reading():
            return self._platform_fee

    @property
    def paused(self) -> bool:
        with self._guard.reading():
            return self._paused

    @property
    def next_course_id(self) -> int:
        with self._guard.reading():
            return self._registry.next_course_id

    @property
    def current_time(self) -> datetime:
        return self.clock.current_time

    def advance_time(self, new_time: datetime) -> None:
        self.clock.advance(new_time)

    # ========================================================================
    # COURSE QUERIES
    # ========================================================================

    def get_course(self, course_id: int) -> Course:
        """
        Raises:
            NotFound: If course_id does not exist
        """
        with self._guard.reading():
            return self._registry.get(course_id)

    def get_active_courses(self, offset: int, limit: int) -> ActiveCoursesPage:
        """Active courses by ascending id, paginated, plus the total active count."""
        with self._guard.reading():
            return self._registry.active_courses(offset, limit)

    def get_instructor_courses(self, instructor: str) -> List[int]:
        with self._guard.reading():
            return self._registry.instructor_courses(instructor)

    def get_student_courses(self, student: str) -> List[int]:
        with self._guard.reading():
            return self._enrollments.student_courses(student)

    def get_course_students(self, course_id: int) -> List[str]:
        with self._guard.reading():
            return self._enrollments.course_students(course_id)

    def has_enrolled(self, course_id: int, student: str) -> bool:
        with self._guard.reading():
            return self._enrollments.has_enrolled(course_id, student)

    check_enrollment = has_enrolled

    def get_course_content(self, caller: str, course_id: int) -> str:
        """
        Return the course's metadata reference to its instructor or a student.

        Raises:
            NotFound: If course_id does not exist
            Unauthorized: If caller neither teaches nor bought the course
        """
        caller = normalize_address(caller)
        with self._guard.reading():
            course = self._registry.get(course_id)
            if caller != course.instructor and not self._enrollments.has_enrolled(course_id, caller):
                raise Unauthorized("Access denied: must purchase course first")
            return course.ipfs_cid

    def get_course_stats(self, caller: str, course_id: int) -> CourseStats:
        """
        Students, revenue and active flag of a course, for its instructor.

        Revenue is total_students * current price. There is no per-purchase
        price record, so changing the price changes reported revenue.

        Raises:
            NotFound: If course_id does not exist
            Unauthorized: If caller is not the instructor
        """
        caller = normalize_address(caller)
        with self._guard.reading():
            course = self._registry.get(course_id)
            if caller != course.instructor:
                raise Unauthorized("Only instructor can view stats")
            return CourseStats(
                total_students=course.total_students,
                total_revenue=course.total_students * course.price,
                is_active=course.is_active,
            )

    def verify_invariants(self) -> Dict[str, Any]:
        """
        Check enrollment counts and token conservation together.

        Returns:
            Dict with 'valid', 'enrollments' (EnrollmentLedger.verify result)
            and 'token' (TokenLedger.verify_conservation result)
        """
        with self._guard.reading():
            enrollments = self._enrollments.verify()
            conservation = self.token.verify_conservation()
            return {
                'valid': enrollments['valid'] and conservation['valid'],
                'enrollments': enrollments,
                'token': conservation,
            }

    # ========================================================================
    # COURSE LIFECYCLE (Mutating)
    # ========================================================================

    def create_course(self, caller: str, ipfs_cid: str, price: int) -> int:
        """
        List a new course taught by caller.

        Returns:
            The new course id

        Raises:
            MarketplacePaused, InvalidPrice, InvalidMetadata
        """
        caller = normalize_address(caller)
        with self._guard.operation("create_course", self.verbose):
            self._require_not_paused()
            course = self._registry.create(caller, price, ipfs_cid, self.clock.current_time)
            self._emit("CourseCreated", courseId=course.id, instructor=caller,
                       ipfsCid=course.ipfs_cid, price=course.price)
            return course.id

    def update_course(self, caller: str, course_id: int, new_ipfs_cid: str, new_price: int) -> None:
        """
        Raises:
            MarketplacePaused, NotFound, Unauthorized, InvalidPrice, InvalidMetadata
        """
        with self._guard.operation("update_course", self.verbose):
            self._require_not_paused()
            course = self._registry.update(caller, course_id, new_ipfs_cid, new_price)
            self._emit("CourseUpdated", courseId=course.id, instructor=course.instructor,
                       newIpfsCid=course.ipfs_cid)

    def toggle_course_status(self, caller: str, course_id: int) -> bool:
        """
        Flip a course between active and inactive.

        Returns:
            The new is_active value

        Raises:
            NotFound, Unauthorized
        """
        with self._guard.operation("toggle_course_status", self.verbose):
            course = self._registry.toggle_status(caller, course_id)
            self._emit("CourseStatusToggled", courseId=course.id, instructor=course.instructor,
                       isActive=course.is_active)
            return course.is_active

    # ========================================================================
    # PURCHASE (Mutating)
    # ========================================================================

    def purchase_course(self, student: str, course_id: int) -> None:
        """
        Buy course_id for student.

        Preconditions are checked in order, and nothing moves until all of
        them pass:
            1. NotFound         - course does not exist
            2. CourseInactive   - course is deactivated
            3. SelfPurchase     - student is the instructor
            4. AlreadyEnrolled  - student already bought it
            5. InsufficientBalance / InsufficientAllowance - from the token

        The fee (price * fee% // 100) goes to the owner and the rest to the
        instructor in a single token batch spent by the marketplace address.

        Raises:
            MarketplacePaused, NotFound, CourseInactive, SelfPurchase,
            AlreadyEnrolled, InsufficientBalance, InsufficientAllowance,
            InvalidRecipient (fee leg after ownership was renounced)
        """
        student = normalize_address(student)
        with self._guard.operation("purchase_course", self.verbose):
            self._require_not_paused()
            course = self._registry.get(course_id)
            if not course.is_active:
                raise CourseInactive("Course is not active")
            if student == course.instructor:
                raise SelfPurchase("Instructor cannot buy own course")
            self._enrollments.check(course_id, student)
            if self.token.balance_of(student) < course.price:
                raise InsufficientBalance(f"Insufficient {self.token.symbol} balance")

            fee, payment = compute_fee_split(course.price, self._platform_fee)
            moves = []
            if fee:
                moves.append(Move(fee, student, self._owner, "platform_fee"))
            moves.append(Move(payment, student, course.instructor, "instructor_payment"))
            self.token.execute(moves, spender=self.address)

            self._enrollments.record(course_id, student)
            self._emit("CoursePurchased", courseId=course_id, student=student,
                       instructor=course.instructor, price=course.price)

    # ========================================================================
    # ADMINISTRATION (Mutating, owner only)
    # ========================================================================

    def set_platform_fee_percentage(self, caller: str, new_fee: int) -> None:
        """
        Raises:
            Unauthorized: If caller is not the owner
            FeeTooHigh: If new_fee exceeds config.max_platform_fee (20)
        """
        caller = normalize_address(caller)
        if isinstance(new_fee, bool) or not isinstance(new_fee, int) or new_fee < 0:
            raise ValueError(f"Fee must be a non-negative int, got {new_fee!r}")
        with self._guard.operation("set_platform_fee_percentage", self.verbose):
            self._require_owner(caller)
            if new_fee > self.config.max_platform_fee:
                raise FeeTooHigh(f"Fee cannot exceed {self.config.max_platform_fee}%")
            previous, self._platform_fee = self._platform_fee, new_fee
            self._emit("PlatformFeeUpdated", previousFee=previous, newFee=new_fee)

    def transfer_ownership(self, caller: str, new_owner: str) -> None:
        """
        Raises:
            Unauthorized: If caller is not the owner
            InvalidOwner: If new_owner is the zero account
        """
        caller = normalize_address(caller)
        new_owner = normalize_address(new_owner)
        with self._guard.operation("transfer_ownership", self.verbose):
            self._require_owner(caller)
            if new_owner == ZERO_ADDRESS:
                raise InvalidOwner("New owner is the zero account")
            self._set_owner(new_owner)

    def renounce_ownership(self, caller: str) -> None:
        """
        Give up ownership for good. Fees can no longer be paid out, so
        purchases of courses with a non-zero fee fail with InvalidRecipient.
        """
        caller = normalize_address(caller)
        with self._guard.operation("renounce_ownership", self.verbose):
            self._require_owner(caller)
            self._set_owner(ZERO_ADDRESS)

    def emergency_pause(self, caller: str) -> None:
        """Stop course creation, updates and purchases until resume()."""
        caller = normalize_address(caller)
        with self._guard.operation("emergency_pause", self.verbose):
            self._require_owner(caller)
            if not self._paused:
                self._paused = True
                self._emit("MarketplacePaused", account=caller)

    def resume(self, caller: str) -> None:
        caller = normalize_address(caller)
        with self._guard.operation("resume", self.verbose):
            self._require_owner(caller)
            if self._paused:
                self._paused = False
                self._emit("MarketplaceResumed", account=caller)

    # ========================================================================
    # INTERNALS
    # ========================================================================

    def _require_owner(self, caller: str) -> None:
        if caller != self._owner:
            raise Unauthorized(f"Caller {caller} is not the owner")

    def _require_not_paused(self) -> None:
        if self._paused:
            raise MarketplacePaused("Marketplace is paused")

    def _set_owner(self, new_owner: str) -> None:
        previous, self._owner = self._owner, new_owner
        self._emit("OwnershipTransferred", previousOwner=previous, newOwner=new_owner)

    def _emit(self, name: str, **args: Any) -> LedgerEvent:
        event = self.events.emit(name, self.clock.current_time, **args)
        trace(self.verbose, f"✓ APPLIED {event!r}")
        return event

    def __repr__(self) -> str:
        return (f"CourseMarketplace({self.address}, courses={len(self._registry)}, "
                f"enrollments={len(self._enrollments)}, fee={self._platform_fee}%)")
