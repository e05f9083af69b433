"""
future.py - Perpetual futures with isolated margin

One position at a time. The trader posts margin M at leverage L and controls
a contract worth M * L.

=== THE ISOLATED MARGIN MODEL ===

At open (entry price E):
    contract_value = M * L
    size           = contract_value / E
    liquidation    = E * (1 - 1/L + mr)   long
                     E * (1 + 1/L - mr)   short     (mr = maintenance rate)

Every tick at price P, checked in this order:
    1. liquidation breached  -> margin forfeited, pnl = -M
    2. funding interval hit  -> accrued_funding += contract_value * rate * sign
                                (longs pay, shorts receive)
    3. take-profit/stop-loss -> close at P

Manual close at P:
    pnl    = sign * (P - E) / E * contract_value
    payout = max(M + pnl - accrued_funding, 0)

The recorded pnl is payout - M, so a close can never lose more than the
margin. The liquidation price is fixed at open and never recomputed.

=== LIMIT ENTRIES ===

A limit entry rests until the price reaches it (at or below the limit for a
long, at or above for a short) and then opens at the limit price. Margin is
checked at placement and debited only at the fill.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import List, Optional, Tuple

from ..account import Account, credit, debit, record_trade
from ..core import (
    Direction, EntryOrder, Event, EventType, InstrumentKind, InsufficientFunds, InvalidParameter,
    Position, PositionAlreadyOpen, PositionRisk, SettlementResult, SimulatorError, TradeRecord,
    REASON_LIQUIDATION, REASON_MANUAL, REASON_REVERSE, REASON_STOP_LOSS, REASON_TAKE_PROFIT,
    quantize_price, require_positive, to_decimal,
)


@dataclass(frozen=True, slots=True)
class FutureTerms:
    """Exchange parameters shared by every futures position."""
    maintenance_rate: Decimal = Decimal("0.005")
    funding_rate: Decimal = Decimal("0.0001")
    funding_interval_ticks: int = 8
    max_leverage: Decimal = Decimal("200")

    def __post_init__(self):
        """Convert float values to Decimal to ensure type consistency."""
        if not isinstance(self.maintenance_rate, Decimal):
            object.__setattr__(self, 'maintenance_rate', Decimal(str(self.maintenance_rate)))
        if not isinstance(self.funding_rate, Decimal):
            object.__setattr__(self, 'funding_rate', Decimal(str(self.funding_rate)))
        if not isinstance(self.max_leverage, Decimal):
            object.__setattr__(self, 'max_leverage', Decimal(str(self.max_leverage)))
        if self.funding_interval_ticks < 1:
            raise InvalidParameter("funding_interval_ticks must be at least 1")


# ============================================================================
# PURE CALCULATIONS
# ============================================================================

def calculate_liquidation_price(direction: Direction, entry: Decimal, leverage: Decimal,
                                maintenance_rate: Decimal) -> Decimal:
    """Price at which the posted margin is exhausted down to the maintenance rate."""
    one = Decimal("1")
    if direction is Direction.LONG:
        return quantize_price(entry * (one - one / leverage + maintenance_rate))
    return quantize_price(entry * (one + one / leverage - maintenance_rate))


def calculate_pnl(position: Position, price: Decimal) -> Decimal:
    """Price P&L before funding: sign * (P - E) / E * contract_value."""
    move = (price - position.entry_price) / position.entry_price
    return position.direction.sign * move * position.contract_value


def is_liquidated(position: Position, price: Decimal) -> bool:
    if position.direction is Direction.LONG:
        return price <= position.risk.liquidation_price
    return price >= position.risk.liquidation_price


def unrealized_pnl(position: Position, price: Decimal, tick: int, terms: FutureTerms) -> Decimal:
    """Mark-to-market P&L net of accrued funding."""
    return calculate_pnl(position, price) - position.accrued_funding


def validate_protection(position: Position, price: Decimal,
                        take_profit: Optional[Decimal], stop_loss: Optional[Decimal]) -> None:
    """
    Take-profit must lie on the profitable side of the current price and
    stop-loss on the losing side.
    """
    long = position.direction is Direction.LONG
    if take_profit is not None:
        if take_profit <= 0 or (take_profit <= price if long else take_profit >= price):
            raise InvalidParameter(f"take-profit {take_profit} is on the wrong side of {price}")
    if stop_loss is not None:
        if stop_loss <= 0 or (stop_loss >= price if long else stop_loss <= price):
            raise InvalidParameter(f"stop-loss {stop_loss} is on the wrong side of {price}")


def check_leverage(leverage, terms: FutureTerms) -> Decimal:
    lev = to_decimal(leverage, "leverage")
    if lev < 1 or lev > terms.max_leverage:
        raise InvalidParameter(f"leverage must be within [1, {terms.max_leverage}], got {lev}")
    return lev


def protection_trigger(position: Position, price: Decimal) -> Optional[str]:
    """Return REASON_TAKE_PROFIT / REASON_STOP_LOSS if price crossed either trigger."""
    long = position.direction is Direction.LONG
    tp, sl = position.take_profit, position.stop_loss
    if tp is not None and (price >= tp if long else price <= tp):
        return REASON_TAKE_PROFIT
    if sl is not None and (price <= sl if long else price >= sl):
        return REASON_STOP_LOSS
    return None


# ============================================================================
# SETTLEMENT
# ============================================================================

def open_position(account: Account, direction: Direction, margin, leverage, price,
                  tick: int, position_id: int, terms: FutureTerms) -> SettlementResult:
    """
    Post margin and open a position at price.

    Raises:
        InvalidParameter: Non-positive margin/price or leverage outside [1, max_leverage]
        InsufficientFunds: If margin exceeds cash
    """
    own = require_positive(margin, "margin")
    px = require_positive(price, "price")
    lev = check_leverage(leverage, terms)

    updated = debit(account, own)
    position = Position(
        position_id=position_id,
        kind=InstrumentKind.FUTURE,
        direction=direction,
        entry_price=px,
        size=own * lev / px,
        leverage=lev,
        margin=own,
        opened_at_tick=tick,
        risk=PositionRisk(
            liquidation_price=calculate_liquidation_price(direction, px, lev, terms.maintenance_rate),
            maintenance_ratio=terms.maintenance_rate,
        ),
    )
    event = Event(tick, EventType.TRADE,
                  f"opened {direction.value} {lev}x @ {px}, liquidation {position.risk.liquidation_price}",
                  {'position_id': position_id, 'direction': direction.value, 'margin': own,
                   'leverage': lev, 'price': px, 'liquidation_price': position.risk.liquidation_price})
    return SettlementResult(account=updated, position=position, events=(event,))


def close_position(account: Account, position: Position, price, tick: int, terms: FutureTerms,
                   reason: str = REASON_MANUAL) -> SettlementResult:
    """Close at price and return max(margin + pnl - funding, 0) to cash."""
    px = require_positive(price, "price")
    payout = max(position.margin + calculate_pnl(position, px) - position.accrued_funding, Decimal("0"))
    updated = credit(account, payout)
    record = TradeRecord(
        tick=tick, instrument=InstrumentKind.FUTURE, side=position.direction.value,
        price=px, size=position.size, fee=position.accrued_funding,
        pnl=payout - position.margin, reason=reason, entry_price=position.entry_price,
    )
    updated = record_trade(updated, record)
    event_type = {
        REASON_TAKE_PROFIT: EventType.TAKE_PROFIT,
        REASON_STOP_LOSS: EventType.STOP_LOSS,
    }.get(reason, EventType.TRADE)
    event = Event(tick, event_type, f"closed {position.direction.value} @ {px}, pnl {record.pnl:.2f}",
                  {'position_id': position.position_id, 'price': px, 'pnl': record.pnl, 'reason': reason})
    return SettlementResult(account=updated, position=None, record=record, events=(event,))


def liquidate(account: Account, position: Position, price, tick: int) -> SettlementResult:
    """
    Force-close a breached position. The margin was debited at open, so cash
    is untouched and the record books the full forfeiture.
    """
    px = to_decimal(price, "price")
    record = TradeRecord(
        tick=tick, instrument=InstrumentKind.FUTURE, side=position.direction.value,
        price=px, size=position.size, fee=position.accrued_funding,
        pnl=-position.margin, reason=REASON_LIQUIDATION, entry_price=position.entry_price,
    )
    updated = record_trade(account, record)
    event = Event(tick, EventType.LIQUIDATION,
                  f"{position.direction.value} liquidated @ {px}, margin {position.margin} lost",
                  {'position_id': position.position_id, 'price': px,
                   'liquidation_price': position.risk.liquidation_price, 'pnl': record.pnl})
    return SettlementResult(account=updated, position=None, record=record, events=(event,))


def accrue_funding(position: Position, tick: int, terms: FutureTerms) -> Optional[Position]:
    """Return the position with one more funding period accrued, or None if no payment is due."""
    elapsed = tick - position.opened_at_tick
    if elapsed <= 0 or elapsed % terms.funding_interval_ticks != 0:
        return None
    payment = position.contract_value * terms.funding_rate * position.direction.sign
    return replace(position, accrued_funding=position.accrued_funding + payment)


def check_position(account: Account, position: Position, price, tick: int,
                   terms: FutureTerms) -> SettlementResult:
    """Per-tick risk pass: liquidation, then funding, then take-profit/stop-loss."""
    px = to_decimal(price, "price")
    if is_liquidated(position, px):
        return liquidate(account, position, px, tick)

    events: List[Event] = []
    funded = accrue_funding(position, tick, terms)
    if funded is not None:
        payment = funded.accrued_funding - position.accrued_funding
        events.append(Event(tick, EventType.FUNDING, f"funding {payment:.4f}",
                            {'position_id': position.position_id, 'payment': payment,
                             'accrued_funding': funded.accrued_funding}))
        position = funded

    trigger = protection_trigger(position, px)
    if trigger is not None:
        closed = close_position(account, position, px, tick, terms, reason=trigger)
        return replace(closed, events=tuple(events) + closed.events)
    return SettlementResult(account=account, position=position, events=tuple(events))


def reverse_position(account: Account, position: Position, price, tick: int,
                     position_id: int, terms: FutureTerms) -> SettlementResult:
    """
    Close, then open the opposite direction at the same leverage with the
    returned margin (capped at the margin posted before the close).

    Raises:
        InvalidParameter: If the close returns nothing to re-post
    """
    px = require_positive(price, "price")
    closed = close_position(account, position, px, tick, terms, reason=REASON_REVERSE)
    new_margin = min(position.margin + closed.record.pnl, position.margin)
    if new_margin <= 0:
        raise InvalidParameter("nothing left to reverse: the close returned no margin")
    opened = open_position(closed.account, position.direction.opposite(), new_margin,
                           position.leverage, px, tick, position_id, terms)
    return SettlementResult(account=opened.account, position=opened.position,
                            record=closed.record, events=closed.events + opened.events)


# ============================================================================
# LIMIT ENTRIES
# ============================================================================

def is_entry_marketable(direction: Direction, limit_price: Decimal, price: Decimal) -> bool:
    """True if a new limit entry would open right away at price."""
    if direction is Direction.LONG:
        return limit_price >= price
    return limit_price <= price


def is_entry_triggered(order: EntryOrder, price: Decimal) -> bool:
    """Longs enter once price falls to the limit, shorts once it rises to it."""
    if order.direction is Direction.LONG:
        return price <= order.price
    return price >= order.price


def validate_entry(account: Account, margin, leverage, terms: FutureTerms) -> Tuple[Decimal, Decimal]:
    """
    Check an entry could be opened against the account as it stands now.

    Nothing is reserved: the check is repeated when the entry fills.

    Returns:
        (margin, leverage) as Decimals
    """
    own = require_positive(margin, "margin")
    lev = check_leverage(leverage, terms)
    if own > account.cash:
        raise InsufficientFunds(f"need {own}, have {account.cash}")
    return own, lev


def fill_entry_orders(account: Account, position: Optional[Position],
                      orders: Tuple[EntryOrder, ...], price: Decimal, tick: int,
                      terms: FutureTerms) -> Tuple[Account, Optional[Position], Tuple[EntryOrder, ...], List[Event]]:
    """
    Open a position at the limit of the oldest entry triggered by price.

    A triggered entry that finds a position already open, or cash short of
    its margin, is dropped with an ORDER_CANCELLED event. The position takes
    the entry's order id.

    Returns:
        (account, position, remaining orders, events)
    """
    remaining: List[EntryOrder] = []
    events: List[Event] = []
    for order in orders:
        if not is_entry_triggered(order, price):
            remaining.append(order)
            continue
        try:
            if position is not None:
                raise PositionAlreadyOpen(f"position #{position.position_id} is already open")
            result = open_position(account, order.direction, order.margin, order.leverage,
                                   order.price, tick, order.order_id, terms)
        except SimulatorError as exc:
            events.append(Event(tick, EventType.ORDER_CANCELLED,
                                f"order #{order.order_id} cancelled: {exc}",
                                {'order_id': order.order_id, 'reason': str(exc)}))
            continue
        account, position = result.account, result.position
        events.append(Event(tick, EventType.ORDER_FILLED,
                            f"order #{order.order_id} filled {order.direction.value} @ {order.price}",
                            {'order_id': order.order_id, 'direction': order.direction.value,
                             'margin': order.margin, 'leverage': order.leverage,
                             'price': order.price}))
        events.extend(result.events)
    return account, position, tuple(remaining), events
