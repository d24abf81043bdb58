"""
exchange.py - Fixed-Rate Token Exchange

Buys and sells the payment token against the native currency at a constant
rate (2500 tokens per native unit by default). Tokens come from, and return
to, the token owner's reserve; native currency paid in accumulates at the
exchange's own address until the owner withdraws it.

Every swap touches two ledgers. Both batches are validated first and only
then executed, so a swap either lands on both ledgers or on neither.
"""

from __future__ import annotations
from typing import Optional, Tuple
import threading

from .core import (
    Move, EventLog, LogicalClock, OperationGuard,
    DEFAULT_SELL_FEE, EXCHANGE_RATE, MAX_UINT256,
    InsufficientLiquidity, InvalidAmount, Unauthorized,
    compute_fee_split, normalize_address, require_amount, trace,
)
from .token import TokenLedger


def tokens_for_eth(eth_amount: int, exchange_rate: int = EXCHANGE_RATE) -> int:
    """Tokens bought by eth_amount (both in smallest units)."""
    return eth_amount * exchange_rate


def sell_quote(token_amount: int, exchange_rate: int = EXCHANGE_RATE,
               sell_fee_percentage: int = DEFAULT_SELL_FEE) -> Tuple[int, int]:
    """
    Native currency returned for token_amount.

    Returns:
        (net_eth, fee): gross = token_amount // rate; fee is truncated
        toward zero and kept by the exchange.
    """
    gross = token_amount // exchange_rate
    fee, net = compute_fee_split(gross, sell_fee_percentage)
    return net, fee


class TokenExchange:
    """
    Buy/sell desk between a native-currency ledger and a token ledger.

    Example:
        exchange = TokenExchange(token, native, address=desk)
        exchange.buy_tokens(alice, WEI)          # alice receives 2500 * WEI tokens
        exchange.sell_tokens(alice, 1000 * WEI)  # alice receives 0.4 ETH less the fee
        exchange.withdraw_eth(token.owner)
    """

    def __init__(
        self,
        token: TokenLedger,
        native: TokenLedger,
        address: str,
        exchange_rate: int = EXCHANGE_RATE,
        sell_fee_percentage: int = DEFAULT_SELL_FEE,
        event_log: Optional[EventLog] = None,
        clock: Optional[LogicalClock] = None,
        lock: Optional[threading.RLock] = None,
        verbose: bool = True,
    ):
        if exchange_rate <= 0:
            raise ValueError(f"exchange_rate must be positive, got {exchange_rate}")
        if not 0 <= sell_fee_percentage < 100:
            raise ValueError(f"sell_fee_percentage must be in [0, 100), got {sell_fee_percentage}")
        self.token = token
        self.native = native
        self.address = normalize_address(address)
        self.exchange_rate = exchange_rate
        self.sell_fee_percentage = sell_fee_percentage
        self.events = event_log if event_log is not None else token.events
        self.clock = clock if clock is not None else token.clock
        self.verbose = verbose
        self._guard = OperationGuard(lock if lock is not None else token.lock)

    # ========================================================================
    # READS
    # ========================================================================

    def contract_eth_balance(self) -> int:
        """Native currency held by the exchange (sale proceeds plus sell fees)."""
        return self.native.balance_of(self.address)

    def token_reserve(self) -> int:
        """Tokens available for sale (the token owner's balance)."""
        return self.token.balance_of(self.token.owner)

    def get_sell_quote(self, token_amount: int) -> Tuple[int, int]:
        require_amount(token_amount, "token_amount")
        return sell_quote(token_amount, self.exchange_rate, self.sell_fee_percentage)

    # ========================================================================
    # SWAPS (Mutating)
    # ========================================================================

    def buy_tokens(self, buyer: str, eth_amount: int) -> int:
        """
        Pay eth_amount of native currency for eth_amount * rate tokens.

        Returns:
            Tokens received

        Raises:
            InvalidAmount: If eth_amount is 0 or the token amount overflows
            InsufficientLiquidity: If the owner's reserve is too small
            InsufficientBalance: If buyer lacks the native currency
        """
        buyer = normalize_address(buyer)
        require_amount(eth_amount, "eth_amount")
        with self._guard.operation("buy_tokens", self.verbose):
            if eth_amount == 0:
                raise InvalidAmount("Must send ETH to buy tokens")
            token_amount = tokens_for_eth(eth_amount, self.exchange_rate)
            if token_amount > MAX_UINT256:
                raise InvalidAmount("Token amount overflows uint256")
            if self.token_reserve() < token_amount:
                raise InsufficientLiquidity("Not enough tokens available")

            payment = [Move(eth_amount, buyer, self.address, "buy_tokens_payment")]
            delivery = [Move(token_amount, self.token.owner, buyer, "buy_tokens_delivery")]
            self.native.validate(payment)
            self.token.validate(delivery)
            self.native.execute(payment)
            self.token.execute(delivery)

            self.events.emit("TokensPurchased", self.clock.current_time,
                             buyer=buyer, ethAmount=eth_amount, tokenAmount=token_amount)
            trace(self.verbose, f"✓ APPLIED buy_tokens: {buyer} paid {eth_amount} for {token_amount}")
            return token_amount

    def sell_tokens(self, seller: str, token_amount: int) -> int:
        """
        Return token_amount tokens to the reserve for native currency.

        Returns:
            Native currency received after the sell fee

        Raises:
            InvalidAmount: If token_amount is worth less than one native unit
            InsufficientBalance: If seller lacks the tokens
            InsufficientLiquidity: If the exchange cannot pay out
        """
        seller = normalize_address(seller)
        require_amount(token_amount, "token_amount")
        with self._guard.operation("sell_tokens", self.verbose):
            net, fee = sell_quote(token_amount, self.exchange_rate, self.sell_fee_percentage)
            if net + fee == 0:
                raise InvalidAmount("Token amount too small")

            returned = [Move(token_amount, seller, self.token.owner, "sell_tokens_return")]
            self.token.validate(returned)
            if self.contract_eth_balance() < net:
                raise InsufficientLiquidity("Contract ETH balance insufficient")
            payout = [Move(net, self.address, seller, "sell_tokens_payout")]
            self.native.validate(payout)
            self.token.execute(returned)
            self.native.execute(payout)

            self.events.emit("TokensSold", self.clock.current_time,
                             seller=seller, tokenAmount=token_amount, ethAmount=net, fee=fee)
            trace(self.verbose, f"✓ APPLIED sell_tokens: {seller} sold {token_amount} for {net}")
            return net

    def withdraw_eth(self, caller: str) -> int:
        """
        Send everything the exchange holds to the token owner.

        Raises:
            Unauthorized: If caller is not the token owner
            InvalidAmount: If there is nothing to withdraw
        """
        caller = normalize_address(caller)
        with self._guard.operation("withdraw_eth", self.verbose):
            if caller != self.token.owner:
                raise Unauthorized("Only owner can withdraw ETH")
            held = self.contract_eth_balance()
            if held == 0:
                raise InvalidAmount("No ETH to withdraw")
            self.native.execute([Move(held, self.address, caller, "withdraw_eth")])
            self.events.emit("EthWithdrawn", self.clock.current_time, owner=caller, amount=held)
            return held
