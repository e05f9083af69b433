"""
spot.py - Spot trading with a flat taker fee and resting limit orders

=== FEES AND P&L ===

    buy  amount at P:  cash -= P * amount * (1 + fee)
    sell amount at P:  cash += P * amount * (1 - fee)
    realized pnl of a sell = (P - avg_entry) * amount - P * amount * fee

Buys are recorded with pnl 0 and the buy fee in TradeRecord.fee; the buy fee
is not folded into the average entry price. Spot never liquidates.

=== LIMIT ORDERS ===

A limit buy at or above the current price (a sell at or below) is marketable
and fills immediately at the current price. Anything else rests until a tick
close crosses the limit, then fills at the limit price. Funds and holdings are
re-checked at fill time; a fill that would fail cancels the order instead.
"""

from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Tuple

from ..account import Account, add_holdings, debit, credit, record_trade, remove_holdings
from ..core import (
    Event, EventType, InstrumentKind, LimitOrder, OrderSide, SettlementResult,
    SimulatorError, TradeRecord, InsufficientFunds, InsufficientHoldings,
    QUANTITY_EPSILON, REASON_LIMIT_FILL, REASON_MANUAL, require_positive,
)


@dataclass(frozen=True, slots=True)
class SpotTerms:
    fee_rate: Decimal = Decimal("0.001")

    def __post_init__(self):
        if not isinstance(self.fee_rate, Decimal):
            object.__setattr__(self, 'fee_rate', Decimal(str(self.fee_rate)))


def buy_cost(price: Decimal, amount: Decimal, terms: SpotTerms) -> Decimal:
    """Cash needed to buy amount at price, fee included."""
    return price * amount * (1 + terms.fee_rate)


def buy(account: Account, amount, price, tick: int, terms: SpotTerms,
        reason: str = REASON_MANUAL) -> SettlementResult:
    """
    Buy base asset at price.

    Raises:
        InvalidParameter: If amount or price is not positive
        InsufficientFunds: If cash does not cover price * amount * (1 + fee)
    """
    qty = require_positive(amount, "amount")
    px = require_positive(price, "price")
    fee = px * qty * terms.fee_rate
    updated = debit(account, px * qty + fee)
    updated = add_holdings(updated, qty, px)
    record = TradeRecord(
        tick=tick, instrument=InstrumentKind.SPOT, side=OrderSide.BUY.value,
        price=px, size=qty, fee=fee, pnl=Decimal("0"), reason=reason,
    )
    updated = record_trade(updated, record)
    event = Event(tick, EventType.TRADE, f"bought {qty} @ {px}",
                  {'side': 'buy', 'amount': qty, 'price': px, 'fee': fee, 'reason': reason})
    return SettlementResult(account=updated, position=None, record=record, events=(event,))


def sell(account: Account, amount, price, tick: int, terms: SpotTerms,
         reason: str = REASON_MANUAL) -> SettlementResult:
    """
    Sell base asset at price, realizing (price - avg_entry) * amount - fee.

    Raises:
        InvalidParameter: If amount or price is not positive
        InsufficientHoldings: If amount exceeds holdings
    """
    qty = require_positive(amount, "amount")
    px = require_positive(price, "price")
    entry = account.avg_entry_price
    updated = remove_holdings(account, qty)
    fee = px * qty * terms.fee_rate
    updated = credit(updated, px * qty - fee)
    pnl = (px - entry) * qty - fee
    record = TradeRecord(
        tick=tick, instrument=InstrumentKind.SPOT, side=OrderSide.SELL.value,
        price=px, size=qty, fee=fee, pnl=pnl, reason=reason, entry_price=entry,
    )
    updated = record_trade(updated, record)
    event = Event(tick, EventType.TRADE, f"sold {qty} @ {px}, pnl {pnl:.2f}",
                  {'side': 'sell', 'amount': qty, 'price': px, 'fee': fee, 'pnl': pnl, 'reason': reason})
    return SettlementResult(account=updated, position=None, record=record, events=(event,))


def execute(account: Account, side: OrderSide, amount, price, tick: int, terms: SpotTerms,
            reason: str = REASON_MANUAL) -> SettlementResult:
    if side is OrderSide.BUY:
        return buy(account, amount, price, tick, terms, reason)
    return sell(account, amount, price, tick, terms, reason)


# ============================================================================
# LIMIT ORDERS
# ============================================================================

def is_marketable(side: OrderSide, limit_price: Decimal, price: Decimal) -> bool:
    """True if a new limit order would fill right away at price."""
    if side is OrderSide.BUY:
        return limit_price >= price
    return limit_price <= price


def is_crossed(order: LimitOrder, price: Decimal) -> bool:
    """True once a resting order's limit has been reached by price."""
    if order.side is OrderSide.BUY:
        return price <= order.price
    return price >= order.price


def validate_order(account: Account, side: OrderSide, amount: Decimal, limit_price: Decimal,
                   terms: SpotTerms) -> None:
    """
    Check an order could be filled against the account as it stands now.

    Nothing is reserved: the check is repeated when the order fills.
    """
    if side is OrderSide.BUY:
        cost = buy_cost(limit_price, amount, terms)
        if cost > account.cash:
            raise InsufficientFunds(f"need {cost}, have {account.cash}")
    elif amount > account.holdings + QUANTITY_EPSILON:
        raise InsufficientHoldings(f"need {amount}, hold {account.holdings}")


def fill_orders(account: Account, orders: Tuple[LimitOrder, ...], price: Decimal, tick: int,
                terms: SpotTerms) -> Tuple[Account, Tuple[LimitOrder, ...], List[Event]]:
    """
    Fill every resting order crossed by price, oldest first.

    Returns:
        (account, remaining orders, events). Orders that can no longer be
        funded are dropped with an ORDER_CANCELLED event.
    """
    remaining: List[LimitOrder] = []
    events: List[Event] = []
    for order in orders:
        if not is_crossed(order, price):
            remaining.append(order)
            continue
        try:
            result = execute(account, order.side, order.amount, order.price, tick, terms,
                             reason=REASON_LIMIT_FILL)
        except SimulatorError as exc:
            events.append(Event(tick, EventType.ORDER_CANCELLED,
                                f"order #{order.order_id} cancelled: {exc}",
                                {'order_id': order.order_id, 'reason': str(exc)}))
            continue
        account = result.account
        events.append(Event(tick, EventType.ORDER_FILLED,
                            f"order #{order.order_id} filled {order.side.value} {order.amount} @ {order.price}",
                            {'order_id': order.order_id, 'side': order.side.value,
                             'amount': order.amount, 'price': order.price}))
        events.extend(result.events)
    return account, tuple(remaining), events
