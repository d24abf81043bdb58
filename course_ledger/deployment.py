"""
deployment.py - Wiring a Complete Marketplace

deploy_marketplace() builds the payment token, a native-currency ledger, the
token exchange and the course marketplace, all sharing one lock, one logical
clock and one event log. It is the usual entry point for demos and tests.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from typing import Optional
import random
import threading

from .core import (
    EventLog, LogicalClock, MarketplaceConfig,
    normalize_address,
)
from .exchange import TokenExchange
from .marketplace import CourseMarketplace
from .red_envelope import RedEnvelope
from .token import TokenLedger


# Account that issues native currency on the simulated chain.
NATIVE_ISSUER = "0x" + "ee" * 20

DEFAULT_MARKETPLACE_ADDRESS = "0x" + "c0" * 20
DEFAULT_EXCHANGE_ADDRESS = "0x" + "e0" * 20


@dataclass
class Deployment:
    """Components of one deployment plus the state they share."""
    token: TokenLedger
    native: TokenLedger
    exchange: TokenExchange
    marketplace: CourseMarketplace
    events: EventLog
    clock: LogicalClock
    lock: threading.RLock
    config: MarketplaceConfig
    verbose: bool = True

    def advance_time(self, new_time: datetime) -> None:
        self.clock.advance(new_time)

    def fund_eth(self, account: str, amount: int) -> None:
        """Credit native currency to account, as a faucet would."""
        self.native.mint(NATIVE_ISSUER, account, amount)

    def new_red_envelope(self, address: str, owner: Optional[str] = None,
                         rng: Optional[random.Random] = None) -> RedEnvelope:
        """Create a red envelope on the shared native ledger."""
        return RedEnvelope(
            self.native,
            address=address,
            owner=owner if owner is not None else self.token.owner,
            rng=rng,
            event_log=self.events,
            clock=self.clock,
            lock=self.lock,
            verbose=self.verbose,
        )


def deploy_marketplace(
    owner: str,
    config: Optional[MarketplaceConfig] = None,
    marketplace_address: str = DEFAULT_MARKETPLACE_ADDRESS,
    exchange_address: str = DEFAULT_EXCHANGE_ADDRESS,
    initial_time: Optional[datetime] = None,
    verbose: bool = True,
) -> Deployment:
    """
    Deploy token, native ledger, exchange and marketplace owned by owner.

    The token's whole initial supply is minted to owner, who is also the
    marketplace owner and fee recipient.

    Args:
        owner: Deployer account
        config: Fees, rate and supply (MarketplaceConfig defaults if omitted)
        marketplace_address: Account students approve as spender
        exchange_address: Account holding the exchange's native currency
        initial_time: Starting logical time
        verbose: Print operation traces

    Returns:
        Deployment with every component wired to the shared lock, clock
        and event log
    """
    owner = normalize_address(owner)
    config = config or MarketplaceConfig()
    events = EventLog()
    clock = LogicalClock(initial_time)
    lock = threading.RLock()

    token = TokenLedger(
        config.token_symbol, config.token_name, owner,
        initial_supply=config.initial_supply, decimals=config.decimals,
        event_log=events, clock=clock, lock=lock, verbose=verbose,
    )
    native = TokenLedger(
        "ETH", "Ether", NATIVE_ISSUER,
        event_log=events, clock=clock, lock=lock, verbose=verbose,
    )
    exchange = TokenExchange(
        token, native, exchange_address,
        exchange_rate=config.exchange_rate,
        sell_fee_percentage=config.sell_fee_percentage,
        event_log=events, clock=clock, lock=lock, verbose=verbose,
    )
    marketplace = CourseMarketplace(
        token, owner, marketplace_address, config=config,
        event_log=events, clock=clock, lock=lock, verbose=verbose,
    )
    return Deployment(
        token=token,
        native=native,
        exchange=exchange,
        marketplace=marketplace,
        events=events,
        clock=clock,
        lock=lock,
        config=config,
        verbose=verbose,
    )
