"""
Core types and pure functions for the course marketplace ledger.

This module provides the foundational pieces shared by every component:
1. Constants: addresses, integer bounds, fee and exchange-rate defaults
2. Exceptions: LedgerError and one subclass per failure kind
3. Immutable data structures: Move, Course, CourseStats, ActiveCoursesPage,
   GrabInfo, LedgerEvent, MarketplaceConfig
4. Infrastructure: EventLog, LogicalClock, OperationGuard
5. Pure functions: address/amount validation and fee math

Nothing in this module owns ledger state. Components in token.py,
registry.py, enrollment.py and marketplace.py are the only mutators.
"""

from __future__ import annotations
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
import re
import threading
from typing import Any, Dict, Iterator, List, Optional, Tuple


# ============================================================================
# CONSTANTS
# ============================================================================

# The null account. Never a valid recipient.
ZERO_ADDRESS = "0x" + "0" * 40

# Amounts are unsigned 256-bit integers.
MAX_UINT256 = 2 ** 256 - 1

TOKEN_DECIMALS = 18
WEI = 10 ** TOKEN_DECIMALS

# Fixed token-per-ETH multiplier of the exchange.
EXCHANGE_RATE = 2500

# Minted to the token owner at construction (1,000,000 tokens).
INITIAL_SUPPLY = 1_000_000 * WEI

DEFAULT_PLATFORM_FEE = 5
MAX_PLATFORM_FEE = 20
DEFAULT_SELL_FEE = 2
FEE_DENOMINATOR = 100

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


# ============================================================================
# EXCEPTIONS
# ============================================================================

class LedgerError(Exception):
    """Base exception for all ledger-related errors."""
    pass


class NotFound(LedgerError):
    """Raised when a course id does not exist."""
    pass


class Unauthorized(LedgerError):
    """Raised when the caller lacks the role an operation requires."""
    pass


class CourseInactive(LedgerError):
    """Raised when purchasing a deactivated course."""
    pass


class SelfPurchase(LedgerError):
    """Raised when an instructor tries to buy their own course."""
    pass


class AlreadyEnrolled(LedgerError):
    """Raised when a (course, student) enrollment already exists."""
    pass


class InvalidPrice(LedgerError):
    """Raised when a course price is zero."""
    pass


class InvalidMetadata(LedgerError):
    """Raised when a metadata reference is empty."""
    pass


class InvalidRecipient(LedgerError):
    """Raised when value would be sent to the zero account."""
    pass


class InvalidAddress(LedgerError):
    """Raised when an account identifier is not a 20-byte hex address."""
    pass


class InvalidOwner(LedgerError):
    """Raised when ownership would be transferred to the zero account."""
    pass


class InvalidAmount(LedgerError):
    """Raised when an amount is zero or too small to be meaningful."""
    pass


class InsufficientBalance(LedgerError):
    """Raised when a debit exceeds the source account's balance."""
    pass


class InsufficientAllowance(LedgerError):
    """Raised when a spender debits more than it was approved for."""
    pass


class InsufficientLiquidity(LedgerError):
    """Raised when the exchange or token reserve cannot cover a swap."""
    pass


class FeeTooHigh(LedgerError):
    """Raised when a platform fee above the configured maximum is requested."""
    pass


class MarketplacePaused(LedgerError):
    """Raised by state-changing marketplace operations while paused."""
    pass


class ReentrantCall(LedgerError):
    """Raised when an operation is entered while another one is in progress."""
    pass


class EnvelopeNotSet(LedgerError):
    """Raised when grabbing before a red envelope has been funded."""
    pass


class EnvelopeAlreadySet(LedgerError):
    """Raised when funding a red envelope a second time."""
    pass


class AlreadyGrabbed(LedgerError):
    """Raised when an account grabs the same red envelope twice."""
    pass


class EnvelopeEmpty(LedgerError):
    """Raised when every share of a red envelope has been taken."""
    pass


# ============================================================================
# VALIDATION
# ============================================================================

def normalize_address(address: Any) -> str:
    """
    Validate an account identifier and return its canonical lowercase form.

    Raises:
        InvalidAddress: If address is not '0x' followed by 40 hex digits.
    """
    if not isinstance(address, str) or not _ADDRESS_RE.match(address):
        raise InvalidAddress(f"Invalid address: {address!r}")
    return address.lower()


def require_amount(value: Any, name: str = "amount") -> int:
    """
    Check that value is an unsigned 256-bit integer.

    Bools are rejected even though they are ints. Zero is allowed here;
    callers that forbid zero raise their own domain error.

    Raises:
        ValueError: If value is not an int in [0, MAX_UINT256].
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be int, got {type(value).__name__}")
    if value < 0 or value > MAX_UINT256:
        raise ValueError(f"{name} out of uint256 range: {value}")
    return value


# ============================================================================
# PURE FUNCTIONS
# ============================================================================

def compute_fee_split(price: int, fee_percentage: int) -> Tuple[int, int]:
    """
    Split a payment into (platform_fee, instructor_payment).

    The fee is truncated toward zero, so the instructor receives the
    rounding remainder. fee + payment == price always.

    Example:
        compute_fee_split(100, 5)  # (5, 95)
        compute_fee_split(19, 5)   # (0, 19)
    """
    fee = price * fee_percentage // FEE_DENOMINATOR
    return fee, price - fee


# ============================================================================
# CORE DATA STRUCTURES
# ============================================================================

@dataclass(frozen=True, slots=True)
class Move:
    """
    A single transfer of token value between two accounts.

    Attributes:
        amount: Units to transfer (uint256; zero is allowed, as in ERC20).
        source: Account debited.
        dest: Account credited.
        memo: Why this move exists (e.g. "platform_fee", "instructor_payment").

    Addresses are normalized in __post_init__, so two Moves built from
    differently-cased addresses compare equal.
    """
    amount: int
    source: str
    dest: str
    memo: str

    def __post_init__(self):
        require_amount(self.amount)
        object.__setattr__(self, 'source', normalize_address(self.source))
        object.__setattr__(self, 'dest', normalize_address(self.dest))
        if not self.memo or not self.memo.strip():
            raise ValueError("Move memo cannot be empty")

    def __repr__(self) -> str:
        return f"Move({self.amount}: {self.source}→{self.dest} [{self.memo}])"


@dataclass(frozen=True, slots=True)
class Course:
    """
    On-ledger course record.

    Only price and ipfs_cid change after creation (via update), plus
    is_active (via toggle) and total_students (via enrollment).
    """
    id: int
    ipfs_cid: str
    price: int
    instructor: str
    is_active: bool
    created_at: datetime
    total_students: int = 0


@dataclass(frozen=True, slots=True)
class CourseStats:
    """Instructor-facing summary; revenue is computed from the current price."""
    total_students: int
    total_revenue: int
    is_active: bool

    def __iter__(self):
        return iter((self.total_students, self.total_revenue, self.is_active))


@dataclass(frozen=True, slots=True)
class ActiveCoursesPage:
    """
    One page of active courses plus the total number of active courses.

    Unpacks like the contract's return tuple:
        courses, total_count = marketplace.get_active_courses(0, 10)
    """
    courses: Tuple[Course, ...]
    total_count: int

    def __iter__(self):
        return iter((self.courses, self.total_count))


@dataclass(frozen=True, slots=True)
class GrabInfo:
    """What a single account received from a red envelope."""
    amount: int = 0
    has_grabbed: bool = False
    grab_time: Optional[datetime] = None
    grab_index: int = 0


@dataclass(frozen=True)
class MarketplaceConfig:
    """
    Construction-time settings for a deployment.

    Modify a copy (dataclasses.replace) to experiment; components never read
    configuration from anywhere else.
    """
    platform_fee_percentage: int = DEFAULT_PLATFORM_FEE
    max_platform_fee: int = MAX_PLATFORM_FEE
    exchange_rate: int = EXCHANGE_RATE
    sell_fee_percentage: int = DEFAULT_SELL_FEE
    initial_supply: int = INITIAL_SUPPLY
    token_symbol: str = "YDT"
    token_name: str = "YD Token"
    decimals: int = TOKEN_DECIMALS

    def __post_init__(self):
        if not 0 <= self.max_platform_fee <= FEE_DENOMINATOR:
            raise ValueError(f"max_platform_fee must be in [0, 100], got {self.max_platform_fee}")
        if not 0 <= self.platform_fee_percentage <= self.max_platform_fee:
            raise ValueError(
                f"platform_fee_percentage must be in [0, {self.max_platform_fee}], "
                f"got {self.platform_fee_percentage}"
            )
        if not 0 <= self.sell_fee_percentage < FEE_DENOMINATOR:
            raise ValueError(f"sell_fee_percentage must be in [0, 100), got {self.sell_fee_percentage}")
        if self.exchange_rate <= 0:
            raise ValueError(f"exchange_rate must be positive, got {self.exchange_rate}")
        require_amount(self.initial_supply, "initial_supply")


# ============================================================================
# EVENTS
# ============================================================================

def _freeze_args(args: Dict[str, Any]) -> Tuple[Tuple[str, Any], ...]:
    """Convert event arguments to a hashable tuple, keeping emission order."""
    return tuple(args.items())


@dataclass(frozen=True, slots=True)
class LedgerEvent:
    """
    An emitted fact, recorded only after its operation committed.

    Attributes:
        sequence: Position in the event log (0-based, gap-free).
        name: Event name, e.g. "CoursePurchased".
        timestamp: Logical time of emission.
        _frozen_args: Event arguments in emission order.
    """
    sequence: int
    name: str
    timestamp: datetime
    _frozen_args: Tuple[Tuple[str, Any], ...] = field(default_factory=tuple)

    @property
    def args(self) -> Dict[str, Any]:
        """Event arguments as a new dict each time."""
        return dict(self._frozen_args)

    def __getitem__(self, key: str) -> Any:
        return self.args[key]

    def __repr__(self) -> str:
        rendered = ", ".join(f"{k}={v!r}" for k, v in self._frozen_args)
        return f"{self.name}({rendered})"


class EventLog:
    """
    Append-only, totally ordered record of emitted events.

    One log is usually shared by every component of a deployment so that
    external indexers see a single ordering.
    """

    def __init__(self):
        self._events: List[LedgerEvent] = []
        self._lock = threading.Lock()

    def emit(self, name: str, timestamp: datetime, **args: Any) -> LedgerEvent:
        with self._lock:
            event = LedgerEvent(
                sequence=len(self._events),
                name=name,
                timestamp=timestamp,
                _frozen_args=_freeze_args(args),
            )
            self._events.append(event)
            return event

    def filter(self, name: Optional[str] = None) -> List[LedgerEvent]:
        """Return events with the given name (all events if name is None)."""
        with self._lock:
            if name is None:
                return list(self._events)
            return [e for e in self._events if e.name == name]

    def last(self, name: Optional[str] = None) -> Optional[LedgerEvent]:
        matching = self.filter(name)
        return matching[-1] if matching else None

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[LedgerEvent]:
        return iter(self.filter())


# ============================================================================
# TIME
# ============================================================================

class LogicalClock:
    """
    Monotonic logical time shared by the components of a deployment.

    Time only moves forward; course creation and red-envelope grabs are
    stamped with it.
    """

    def __init__(self, initial_time: Optional[datetime] = None):
        self._current_time: datetime = initial_time or datetime(1970, 1, 1)

    @property
    def current_time(self) -> datetime:
        return self._current_time

    def advance(self, new_time: datetime) -> None:
        """
        Move the clock to new_time.

        Raises:
            ValueError: If new_time is before the current time
        """
        if new_time < self._current_time:
            raise ValueError(
                f"Cannot move time backwards: {new_time} < {self._current_time}"
            )
        self._current_time = new_time


# ============================================================================
# SERIAL EXECUTION
# ============================================================================

class OperationGuard:
    """
    Serializes operations and rejects re-entry.

    Components wired together share one RLock, so every operation across
    the deployment runs in a single total order and reads never observe a
    half-applied write. Each guard also tracks whether its own component
    is mid-operation; entering it again from inside raises ReentrantCall.
    A component may still call into a *different* component (the
    marketplace calls the token ledger) because that component has its
    own guard.
    """

    def __init__(self, lock: Optional[threading.RLock] = None):
        self.lock = lock if lock is not None else threading.RLock()
        self._active: Optional[str] = None

    @property
    def active(self) -> Optional[str]:
        """Name of the operation in progress, or None."""
        return self._active

    @contextmanager
    def operation(self, name: str, verbose: bool = False):
        """
        Run one operation exclusively.

        Any LedgerError raised inside is traced as a rejection (when verbose)
        and re-raised unchanged.
        """
        with self.lock:
            if self._active is not None:
                raise ReentrantCall(f"{name} entered while {self._active} in progress")
            self._active = name
            try:
                yield
            except LedgerError as e:
                trace(verbose, f"✗ REJECTED {name}: {type(e).__name__}: {e}")
                raise
            finally:
                self._active = None

    @contextmanager
    def reading(self):
        with self.lock:
            yield


def trace(verbose: bool, message: str) -> None:
    """Print a one-line operation trace when verbose is on."""
    if verbose:
        print(message)
