"""
account.py - Account ledger for a single simulator

ARCHITECTURE (Pure Function Pattern):
=====================================

1. FROZEN DATACLASS:
   - Account: cash, spot holdings, realized P&L and bounded trade history

2. PURE FUNCTIONS:
   - credit / debit: move quote currency
   - add_holdings / remove_holdings: move base asset, tracking the
     volume-weighted average entry price
   - record_trade: append to the bounded history and book realized P&L

Every function returns a new Account and never reads a price feed. Settlement
modules decide amounts; this module only enforces the balance rules:

    cash >= 0 after any debit, unless the debit is forced (liquidation)
    holdings >= 0 after any removal
    len(history) <= history_limit, oldest records dropped first
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Tuple

from .core import (
    InsufficientFunds, InsufficientHoldings, InvalidParameter,
    QUANTITY_EPSILON, TradeRecord, require_positive, to_decimal,
)


DEFAULT_HISTORY_LIMIT = 20


@dataclass(frozen=True, slots=True)
class Account:
    """
    Immutable account snapshot.

    Attributes:
        cash: Quote currency available
        initial_balance: Cash the account was opened with
        holdings: Base asset held outright (spot and bot)
        avg_entry_price: Volume-weighted average cost of holdings
        realized_pnl: Sum of pnl over every recorded trade
        history: Most recent TradeRecords, oldest first
        history_limit: Maximum number of records kept
    """
    cash: Decimal
    initial_balance: Decimal
    holdings: Decimal = Decimal("0")
    avg_entry_price: Decimal = Decimal("0")
    realized_pnl: Decimal = Decimal("0")
    history: Tuple[TradeRecord, ...] = ()
    history_limit: int = DEFAULT_HISTORY_LIMIT

    def __post_init__(self):
        """Convert float values to Decimal to ensure type consistency."""
        for name in ('cash', 'initial_balance', 'holdings', 'avg_entry_price', 'realized_pnl'):
            value = getattr(self, name)
            if not isinstance(value, Decimal):
                object.__setattr__(self, name, Decimal(str(value)))
        if self.history_limit < 1:
            raise InvalidParameter(f"history_limit must be at least 1, got {self.history_limit}")

    def equity(self, price: Decimal) -> Decimal:
        """Cash plus holdings marked at price. Open positions are valued by their own module."""
        return self.cash + self.holdings * price

    def unrealized_pnl(self, price: Decimal) -> Decimal:
        """Mark-to-market P&L of spot holdings against their average entry."""
        if self.holdings <= QUANTITY_EPSILON:
            return Decimal("0")
        return (price - self.avg_entry_price) * self.holdings


def open_account(balance, history_limit: int = DEFAULT_HISTORY_LIMIT) -> Account:
    """Create a fresh account holding only cash."""
    cash = to_decimal(balance, "balance")
    if cash < 0:
        raise InvalidParameter(f"initial balance cannot be negative, got {cash}")
    return Account(cash=cash, initial_balance=cash, history_limit=history_limit)


def credit(account: Account, amount) -> Account:
    """Add quote currency. Zero is allowed (e.g. a fully forfeited close)."""
    value = to_decimal(amount, "amount")
    if value < 0:
        raise InvalidParameter(f"credit amount cannot be negative, got {value}")
    return replace(account, cash=account.cash + value)


def debit(account: Account, amount, force: bool = False) -> Account:
    """
    Remove quote currency.

    Args:
        account: Account to debit
        amount: Non-negative amount
        force: Allow cash to go negative (liquidation forfeiture only)

    Raises:
        InsufficientFunds: If the debit would leave cash below zero and force is False
    """
    value = to_decimal(amount, "amount")
    if value < 0:
        raise InvalidParameter(f"debit amount cannot be negative, got {value}")
    remaining = account.cash - value
    if remaining < 0 and not force:
        raise InsufficientFunds(f"need {value}, have {account.cash}")
    return replace(account, cash=remaining)


def add_holdings(account: Account, amount, price) -> Account:
    """
    Add base asset bought at price, re-averaging the entry price.

    avg' = (avg * held + price * amount) / (held + amount)
    """
    qty = require_positive(amount, "amount")
    px = require_positive(price, "price")
    held = account.holdings if account.holdings > QUANTITY_EPSILON else Decimal("0")
    new_holdings = held + qty
    new_avg = (account.avg_entry_price * held + px * qty) / new_holdings
    return replace(account, holdings=new_holdings, avg_entry_price=new_avg)


def remove_holdings(account: Account, amount) -> Account:
    """
    Remove base asset. The average entry price is unchanged unless the
    position is emptied, in which case it resets to zero.

    Raises:
        InsufficientHoldings: If amount exceeds what the account holds
    """
    qty = require_positive(amount, "amount")
    if qty > account.holdings + QUANTITY_EPSILON:
        raise InsufficientHoldings(f"need {qty}, hold {account.holdings}")
    remaining = account.holdings - qty
    if remaining <= QUANTITY_EPSILON:
        return replace(account, holdings=Decimal("0"), avg_entry_price=Decimal("0"))
    return replace(account, holdings=remaining)


def record_trade(account: Account, record: TradeRecord) -> Account:
    """
    Append a record to the bounded history and add its pnl to realized P&L.

    History is append-only: once the limit is reached the oldest record is
    dropped.
    """
    history = account.history + (record,)
    if len(history) > account.history_limit:
        history = history[len(history) - account.history_limit:]
    return replace(
        account,
        history=history,
        realized_pnl=account.realized_pnl + record.pnl,
    )
