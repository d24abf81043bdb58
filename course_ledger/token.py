"""
token.py - Fungible Token Ledger

Balance and allowance bookkeeping for a single fungible asset, with ERC20
semantics. The TokenLedger is the only object that mutates balances and
allowances; every other component moves value through transfer(),
transfer_from() or a validated batch of Moves via execute().

Key responsibilities:
    - Reads: balance_of, allowance, total_supply
    - Transfers: transfer, transfer_from, approve, mint
    - Atomic batches: validate() a list of Moves as a whole, then execute()
      all of them or none
    - Conservation: the sum of balances always equals total_supply
"""

from __future__ import annotations
from collections import defaultdict
from typing import Any, Dict, Iterable, List, Optional, Tuple
import threading

from .core import (
    # Types
    Move, EventLog, LogicalClock, OperationGuard,
    # Constants
    MAX_UINT256, TOKEN_DECIMALS, ZERO_ADDRESS,
    # Exceptions
    InsufficientAllowance, InsufficientBalance, InvalidAmount,
    InvalidOwner, InvalidRecipient, Unauthorized,
    # Helper functions
    normalize_address, require_amount, trace,
)


class TokenLedger:
    """
    Single-asset ledger with balances, allowances and an owner who may mint.

    Thread Safety:
        Every public method runs under an OperationGuard. Pass the same
        lock to every component of a deployment to serialize them together.

    Example:
        token = TokenLedger("YDT", "YD Token", owner, initial_supply=10**24)
        token.transfer(owner, alice, 100)
        token.approve(alice, market, 50)
        token.transfer_from(market, alice, bob, 30)
    """

    def __init__(
        self,
        symbol: str,
        name: str,
        owner: str,
        initial_supply: int = 0,
        decimals: int = TOKEN_DECIMALS,
        event_log: Optional[EventLog] = None,
        clock: Optional[LogicalClock] = None,
        lock: Optional[threading.RLock] = None,
        verbose: bool = True,
    ):
        """
        Create a token ledger.

        Args:
            symbol: Ticker (e.g. "YDT", "ETH")
            name: Human-readable name
            owner: Account allowed to mint; receives initial_supply
            initial_supply: Units minted to owner at construction
            decimals: Display precision (amounts are always integers)
            event_log: Shared event log (a private one is created if omitted)
            clock: Shared logical clock for event timestamps
            lock: Shared lock serializing all components of a deployment
            verbose: Print a trace line per operation
        """
        if not symbol or not symbol.strip():
            raise ValueError("Token symbol cannot be empty")
        self.symbol = symbol
        self.name = name
        self.decimals = decimals
        self.verbose = verbose
        self._owner = normalize_address(owner)
        self.events = event_log if event_log is not None else EventLog()
        self.clock = clock if clock is not None else LogicalClock()
        self._guard = OperationGuard(lock)
        self._balances: Dict[str, int] = defaultdict(int)
        self._allowances: Dict[str, Dict[str, int]] = defaultdict(lambda: defaultdict(int))
        self._total_supply: int = 0

        require_amount(initial_supply, "initial_supply")
        if initial_supply:
            self._mint(self._owner, initial_supply)

    # ========================================================================
    # READS
    # ========================================================================

    @property
    def owner(self) -> str:
        return self._owner

    @property
    def lock(self):
        """The lock this ledger serializes on; share it with collaborators."""
        return self._guard.lock

    @property
    def total_supply(self) -> int:
        with self._guard.reading():
            return self._total_supply

    def balance_of(self, account: str) -> int:
        """Balance of account (0 for accounts never seen)."""
        account = normalize_address(account)
        with self._guard.reading():
            return self._balances.get(account, 0)

    def allowance(self, owner: str, spender: str) -> int:
        """Remaining amount spender may move out of owner's balance."""
        owner = normalize_address(owner)
        spender = normalize_address(spender)
        with self._guard.reading():
            return self._allowances.get(owner, {}).get(spender, 0)

    def holders(self) -> Dict[str, int]:
        """All accounts with a non-zero balance."""
        with self._guard.reading():
            return {a: b for a, b in self._balances.items() if b}

    def verify_conservation(self) -> Dict[str, Any]:
        """
        Check that the sum of all balances equals total supply.

        Returns:
            Dict with keys:
            - 'valid': bool
            - 'total_supply': int
            - 'sum_of_balances': int
            - 'difference': int (sum_of_balances - total_supply)
        """
        with self._guard.reading():
            # Sorted for a deterministic accumulation order
            held = sum(self._balances[a] for a in sorted(self._balances))
            return {
                'valid': held == self._total_supply,
                'total_supply': self._total_supply,
                'sum_of_balances': held,
                'difference': held - self._total_supply,
            }

    # ========================================================================
    # ERC20 OPERATIONS (Mutating)
    # ========================================================================

    def approve(self, owner: str, spender: str, amount: int) -> None:
        """
        Set allowance[owner][spender] = amount, replacing any prior value.

        Raises:
            InvalidRecipient: If spender is the zero account
        """
        owner = normalize_address(owner)
        spender = normalize_address(spender)
        require_amount(amount)
        with self._guard.operation("approve", self.verbose):
            if spender == ZERO_ADDRESS:
                raise InvalidRecipient("Cannot approve the zero account")
            self._allowances[owner][spender] = amount
            self.events.emit("Approval", self.clock.current_time,
                             owner=owner, spender=spender, value=amount)
            trace(self.verbose, f"✓ APPLIED approve: {owner} → {spender} = {amount} {self.symbol}")

    def transfer(self, sender: str, to: str, amount: int) -> None:
        """
        Move amount from sender to to.

        Raises:
            InvalidRecipient: If to is the zero account
            InsufficientBalance: If sender's balance is below amount
        """
        move = Move(amount, sender, to, "transfer")
        with self._guard.operation("transfer", self.verbose):
            self._validate([move], spender=None)
            self._apply([move], spender=None)

    def transfer_from(self, spender: str, source: str, to: str, amount: int) -> None:
        """
        Move amount from source to to on behalf of spender.

        The allowance is decremented by amount on success.

        Raises:
            InvalidRecipient: If to is the zero account
            InsufficientAllowance: If spender's allowance over source is below amount
            InsufficientBalance: If source's balance is below amount
        """
        spender = normalize_address(spender)
        move = Move(amount, source, to, "transfer_from")
        with self._guard.operation("transfer_from", self.verbose):
            self._validate([move], spender=spender)
            self._apply([move], spender=spender)

    def mint(self, caller: str, to: str, amount: int) -> None:
        """
        Create amount new units in to's balance.

        Raises:
            Unauthorized: If caller is not the owner
            InvalidRecipient: If to is the zero account
            InvalidAmount: If total supply would exceed uint256
        """
        caller = normalize_address(caller)
        to = normalize_address(to)
        require_amount(amount)
        with self._guard.operation("mint", self.verbose):
            if caller != self._owner:
                raise Unauthorized(f"Only owner can mint {self.symbol}")
            if to == ZERO_ADDRESS:
                raise InvalidRecipient("Cannot mint to the zero account")
            if self._total_supply + amount > MAX_UINT256:
                raise InvalidAmount("Mint would overflow total supply")
            self._mint(to, amount)

    def transfer_ownership(self, caller: str, new_owner: str) -> None:
        """
        Hand the mint right to new_owner.

        Raises:
            Unauthorized: If caller is not the owner
            InvalidOwner: If new_owner is the zero account
        """
        caller = normalize_address(caller)
        new_owner = normalize_address(new_owner)
        with self._guard.operation("transfer_ownership", self.verbose):
            if caller != self._owner:
                raise Unauthorized(f"Only owner can transfer {self.symbol} ownership")
            if new_owner == ZERO_ADDRESS:
                raise InvalidOwner("New owner is the zero account")
            previous, self._owner = self._owner, new_owner
            self.events.emit("OwnershipTransferred", self.clock.current_time,
                             previousOwner=previous, newOwner=new_owner)

    # ========================================================================
    # BATCHES
    # ========================================================================

    def validate(self, moves: Iterable[Move], spender: Optional[str] = None) -> None:
        """
        Check that a batch of moves could be applied, without applying it.

        Used by components that must move value on two ledgers in one
        atomic step: validate on both, then execute on both.

        Raises:
            InvalidRecipient, InsufficientAllowance, InsufficientBalance
        """
        moves = list(moves)
        if spender is not None:
            spender = normalize_address(spender)
        with self._guard.reading():
            self._validate(moves, spender)

    def execute(self, moves: Iterable[Move], spender: Optional[str] = None) -> Tuple[Move, ...]:
        """
        Apply a batch of moves atomically.

        All moves succeed together or none is applied. When spender is
        given, the total debited from each source is charged against that
        source's allowance for spender, as one transfer_from split across
        several recipients.

        Args:
            moves: Moves to apply, in order
            spender: Account spending on behalf of the sources (optional)

        Returns:
            The applied moves

        Raises:
            InvalidRecipient, InsufficientAllowance, InsufficientBalance
        """
        moves = list(moves)
        if spender is not None:
            spender = normalize_address(spender)
        with self._guard.operation("execute", self.verbose):
            self._validate(moves, spender)
            self._apply(moves, spender)
        return tuple(moves)

    # ========================================================================
    # INTERNALS
    # ========================================================================

    @staticmethod
    def _debits(moves: List[Move]) -> Dict[str, int]:
        totals: Dict[str, int] = {}
        for move in moves:
            totals[move.source] = totals.get(move.source, 0) + move.amount
        return totals

    def _validate(self, moves: List[Move], spender: Optional[str]) -> None:
        for move in moves:
            if move.dest == ZERO_ADDRESS:
                raise InvalidRecipient(f"{move.memo}: recipient is the zero account")

        debits = self._debits(moves)
        if spender is not None:
            for source, total in debits.items():
                allowed = self._allowances.get(source, {}).get(spender, 0)
                if allowed < total:
                    raise InsufficientAllowance(
                        f"{spender} may spend {allowed} {self.symbol} of {source}, needs {total}"
                    )
        for source, total in debits.items():
            held = self._balances.get(source, 0)
            if held < total:
                raise InsufficientBalance(
                    f"{source} holds {held} {self.symbol}, needs {total}"
                )

    def _apply(self, moves: List[Move], spender: Optional[str]) -> None:
        for move in moves:
            self._balances[move.source] -= move.amount
            self._balances[move.dest] += move.amount
        if spender is not None:
            for source, total in self._debits(moves).items():
                self._allowances[source][spender] -= total
        now = self.clock.current_time
        for move in moves:
            self.events.emit("Transfer", now, **{"from": move.source, "to": move.dest, "value": move.amount})
            trace(self.verbose, f"✓ APPLIED {move.memo}: {move.amount} {self.symbol} {move.source} → {move.dest}")

    def _mint(self, to: str, amount: int) -> None:
        self._balances[to] += amount
        self._total_supply += amount
        self.events.emit("Transfer", self.clock.current_time,
                         **{"from": ZERO_ADDRESS, "to": to, "value": amount})
        trace(self.verbose, f"✓ APPLIED mint: {amount} {self.symbol} → {to}")

    def __repr__(self) -> str:
        return f"TokenLedger({self.symbol}, supply={self._total_supply}, holders={len(self.holders())})"
