"""
red_envelope.py - Red Envelope Lottery

A sender deposits a pool of native currency split into a fixed number of
shares. Each account may grab one share. Shares are either equal (the last
grabber also takes the rounding remainder) or random, with every grabber
guaranteed at least one unit and the last grabber taking what is left.
"""

from __future__ import annotations
from dataclasses import replace
from typing import Dict, List, Optional
import random
import threading

from .core import (
    Move, GrabInfo, EventLog, LogicalClock, OperationGuard,
    AlreadyGrabbed, EnvelopeAlreadySet, EnvelopeEmpty, EnvelopeNotSet, InvalidAmount,
    normalize_address, require_amount, trace,
)
from .token import TokenLedger


def compute_grab_amount(
    remaining: int,
    shares_left: int,
    total: int,
    count: int,
    is_equal: bool,
    rng: random.Random,
) -> int:
    """
    Size of the next share.

    Args:
        remaining: Pool left before this grab
        shares_left: Shares left before this grab (>= 1)
        total: Original pool
        count: Original number of shares
        is_equal: Equal split instead of random
        rng: Source of randomness for random splits

    Invariant: remaining >= shares_left on entry, and the pool left after
    the grab still covers one unit for each remaining share.
    """
    if shares_left == 1:
        return remaining
    if is_equal:
        return total // count
    upper = min(2 * remaining // shares_left, remaining - (shares_left - 1))
    return rng.randint(1, max(upper, 1))


class RedEnvelope:
    """
    One-shot red envelope held at its own address on the native ledger.

    Example:
        envelope = RedEnvelope(native, address=env_addr, owner=deployer, rng=random.Random(7))
        envelope.set_red_envelope(alice, 10 * WEI, count=3, is_equal=False)
        envelope.grab(bob)
    """

    def __init__(
        self,
        native: TokenLedger,
        address: str,
        owner: str,
        rng: Optional[random.Random] = None,
        event_log: Optional[EventLog] = None,
        clock: Optional[LogicalClock] = None,
        lock: Optional[threading.RLock] = None,
        verbose: bool = True,
    ):
        self.native = native
        self.address = normalize_address(address)
        self.owner = normalize_address(owner)
        self.events = event_log if event_log is not None else native.events
        self.clock = clock if clock is not None else native.clock
        self.verbose = verbose
        self._rng = rng or random.Random()
        self._guard = OperationGuard(lock if lock is not None else native.lock)

        self._red_owner: Optional[str] = None
        self._total_amount: int = 0
        self._remaining_amount: int = 0
        self._count: int = 0
        self._is_equal: bool = False
        self._grab_infos: Dict[str, GrabInfo] = {}
        self._grabbers: List[str] = []

    # ========================================================================
    # READS
    # ========================================================================

    @property
    def is_set(self) -> bool:
        return self._red_owner is not None

    @property
    def red_owner(self) -> Optional[str]:
        return self._red_owner

    @property
    def total_amount(self) -> int:
        return self._total_amount

    @property
    def remaining_amount(self) -> int:
        return self._remaining_amount

    @property
    def count(self) -> int:
        return self._count

    @property
    def is_equal(self) -> bool:
        return self._is_equal

    @property
    def grabbed_count(self) -> int:
        return len(self._grabbers)

    def remaining_count(self) -> int:
        with self._guard.reading():
            return self._count - len(self._grabbers)

    def contract_balance(self) -> int:
        return self.native.balance_of(self.address)

    def get_user_grab_info(self, user: str) -> GrabInfo:
        with self._guard.reading():
            return self._grab_infos.get(normalize_address(user), GrabInfo())

    def get_all_grabbers(self) -> List[str]:
        with self._guard.reading():
            return list(self._grabbers)

    # ========================================================================
    # OPERATIONS (Mutating)
    # ========================================================================

    def set_red_envelope(self, sender: str, amount: int, count: int, is_equal: bool) -> None:
        """
        Fund the envelope with amount split into count shares.

        Raises:
            EnvelopeAlreadySet: If the envelope was funded before
            InvalidAmount: If amount or count is 0, or amount < count
            InsufficientBalance: If sender lacks the native currency
        """
        sender = normalize_address(sender)
        require_amount(amount)
        require_amount(count, "count")
        with self._guard.operation("set_red_envelope", self.verbose):
            if self.is_set:
                raise EnvelopeAlreadySet("Red envelope already set")
            if amount == 0 or count == 0:
                raise InvalidAmount("Amount and count must be greater than 0")
            if amount < count:
                raise InvalidAmount("Amount must cover at least one unit per share")

            self.native.execute([Move(amount, sender, self.address, "red_envelope_deposit")])
            self._red_owner = sender
            self._total_amount = amount
            self._remaining_amount = amount
            self._count = count
            self._is_equal = bool(is_equal)
            self.events.emit("RedEnvelopeSet", self.clock.current_time,
                             totalAmount=amount, count=count, isEqual=self._is_equal)
            trace(self.verbose, f"✓ APPLIED set_red_envelope: {amount} in {count} shares")

    def grab(self, user: str) -> int:
        """
        Take one share of the envelope.

        Returns:
            Amount received

        Raises:
            EnvelopeNotSet, AlreadyGrabbed, EnvelopeEmpty
        """
        user = normalize_address(user)
        with self._guard.operation("grab", self.verbose):
            if not self.is_set:
                raise EnvelopeNotSet("Red envelope not set")
            if user in self._grab_infos:
                raise AlreadyGrabbed("Already grabbed")
            shares_left = self._count - len(self._grabbers)
            if shares_left == 0:
                raise EnvelopeEmpty("All red envelopes have been grabbed")

            amount = compute_grab_amount(
                self._remaining_amount, shares_left,
                self._total_amount, self._count, self._is_equal, self._rng,
            )
            self.native.execute([Move(amount, self.address, user, "red_envelope_grab")])
            self._remaining_amount -= amount
            self._grabbers.append(user)
            grab_index = len(self._grabbers)
            self._grab_infos[user] = replace(
                GrabInfo(),
                amount=amount,
                has_grabbed=True,
                grab_time=self.clock.current_time,
                grab_index=grab_index,
            )
            self.events.emit("RedEnvelopeGrabbed", self.clock.current_time,
                             grabber=user, amount=amount, grabIndex=grab_index)
            trace(self.verbose, f"✓ APPLIED grab: {user} took {amount} (#{grab_index})")
            return amount
