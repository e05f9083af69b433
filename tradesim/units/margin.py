"""
margin.py - Borrowed-spot margin trading

ARCHITECTURE (Pure Function Pattern):
=====================================

1. FROZEN DATACLASS:
   - MarginTerms: broker parameters (interest rate, cushions, max ratio)

2. PURE CALCULATION FUNCTIONS (calculate_*):
   - Take every input explicitly, no hidden state

3. SETTLEMENT FUNCTIONS:
   - open_position / close_position / liquidate / check_position
   - Take an Account and Position, return a SettlementResult

Key Formulas (own funds F, ratio R, entry E):
    borrowed          = F * (R - 1)
    size              = F * R / E
    interest          = borrowed * hourly_rate * ticks_held   (1 tick = 1 hour)
    margin call price = E * (1 - 0.5 / R)   long,  E * (1 + 0.5 / R)   short
    liquidation price = E * (1 - 0.85 / R)  long,  E * (1 + 0.85 / R)  short
    payout on close   = max(F + sign * (P - E) * size - interest, 0)

State machine:
    OPEN -> (MARGIN_CALL_WARNED) -> LIQUIDATED | CLOSED

The margin-call warning fires at most once per position.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from decimal import Decimal

from ..account import Account, credit, debit, record_trade
from ..core import (
    Direction, Event, EventType, InstrumentKind, InvalidParameter, Position, PositionRisk,
    SettlementResult, TradeRecord,
    REASON_LIQUIDATION, REASON_MANUAL,
    quantize_price, require_positive, to_decimal,
)


# Margin status constants
MARGIN_STATUS_OPEN = "OPEN"
MARGIN_STATUS_WARNED = "MARGIN_CALL_WARNED"


@dataclass(frozen=True, slots=True)
class MarginTerms:
    """
    Immutable broker parameters - the same for every position.

    Cushions are fractions of own funds: the call fires once the price has
    moved far enough to erase call_cushion of them, liquidation once
    liquidation_cushion is gone.
    """
    hourly_rate: Decimal = Decimal("0.0001")
    call_cushion: Decimal = Decimal("0.5")
    liquidation_cushion: Decimal = Decimal("0.85")
    max_ratio: Decimal = Decimal("10")

    def __post_init__(self):
        """Convert float values to Decimal to ensure type consistency."""
        if not isinstance(self.hourly_rate, Decimal):
            object.__setattr__(self, 'hourly_rate', Decimal(str(self.hourly_rate)))
        if not isinstance(self.call_cushion, Decimal):
            object.__setattr__(self, 'call_cushion', Decimal(str(self.call_cushion)))
        if not isinstance(self.liquidation_cushion, Decimal):
            object.__setattr__(self, 'liquidation_cushion', Decimal(str(self.liquidation_cushion)))
        if not isinstance(self.max_ratio, Decimal):
            object.__setattr__(self, 'max_ratio', Decimal(str(self.max_ratio)))
        if not self.call_cushion < self.liquidation_cushion:
            raise InvalidParameter("call_cushion must be below liquidation_cushion")


# ============================================================================
# PURE CALCULATIONS
# ============================================================================

def calculate_trigger_price(direction: Direction, entry: Decimal, ratio: Decimal,
                            cushion: Decimal) -> Decimal:
    """Price at which `cushion` of own funds has been lost."""
    if direction is Direction.LONG:
        return quantize_price(entry * (1 - cushion / ratio))
    return quantize_price(entry * (1 + cushion / ratio))


def calculate_interest(position: Position, tick: int, terms: MarginTerms) -> Decimal:
    """Simple interest on the borrowed amount for every tick held."""
    elapsed = max(tick - position.opened_at_tick, 0)
    return position.borrowed * terms.hourly_rate * elapsed


def calculate_pnl(position: Position, price: Decimal) -> Decimal:
    """Price P&L on the full (own + borrowed) size."""
    return position.direction.sign * (price - position.entry_price) * position.size


def unrealized_pnl(position: Position, price: Decimal, tick: int, terms: MarginTerms) -> Decimal:
    return calculate_pnl(position, price) - calculate_interest(position, tick, terms)


def margin_status(position: Position) -> str:
    return MARGIN_STATUS_WARNED if position.margin_call_warned else MARGIN_STATUS_OPEN


def _breached(direction: Direction, price: Decimal, trigger: Decimal) -> bool:
    if direction is Direction.LONG:
        return price <= trigger
    return price >= trigger


# ============================================================================
# SETTLEMENT
# ============================================================================

def open_position(account: Account, direction: Direction, own_funds, ratio, price,
                  tick: int, position_id: int, terms: MarginTerms) -> SettlementResult:
    """
    Post own funds, borrow the rest and open at price.

    Raises:
        InvalidParameter: Non-positive funds/price or ratio outside (1, max_ratio]
        InsufficientFunds: If own funds exceed cash
    """
    own = require_positive(own_funds, "own_funds")
    px = require_positive(price, "price")
    r = to_decimal(ratio, "ratio")
    if r <= 1 or r > terms.max_ratio:
        raise InvalidParameter(f"ratio must be within (1, {terms.max_ratio}], got {r}")

    updated = debit(account, own)
    position = Position(
        position_id=position_id,
        kind=InstrumentKind.MARGIN,
        direction=direction,
        entry_price=px,
        size=own * r / px,
        leverage=r,
        margin=own,
        opened_at_tick=tick,
        borrowed=own * (r - 1),
        risk=PositionRisk(
            liquidation_price=calculate_trigger_price(direction, px, r, terms.liquidation_cushion),
            margin_call_price=calculate_trigger_price(direction, px, r, terms.call_cushion),
            maintenance_ratio=1 - terms.liquidation_cushion,
        ),
    )
    event = Event(tick, EventType.TRADE,
                  f"opened {direction.value} {r}x margin @ {px}, borrowed {position.borrowed}",
                  {'position_id': position_id, 'direction': direction.value, 'own_funds': own,
                   'ratio': r, 'borrowed': position.borrowed, 'price': px,
                   'margin_call_price': position.risk.margin_call_price,
                   'liquidation_price': position.risk.liquidation_price})
    return SettlementResult(account=updated, position=position, events=(event,))


def close_position(account: Account, position: Position, price, tick: int, terms: MarginTerms,
                   reason: str = REASON_MANUAL) -> SettlementResult:
    """Repay the loan and interest, return max(own + pnl - interest, 0) to cash."""
    px = require_positive(price, "price")
    interest = calculate_interest(position, tick, terms)
    payout = max(position.margin + calculate_pnl(position, px) - interest, Decimal("0"))
    updated = credit(account, payout)
    record = TradeRecord(
        tick=tick, instrument=InstrumentKind.MARGIN, side=position.direction.value,
        price=px, size=position.size, fee=interest,
        pnl=payout - position.margin, reason=reason, entry_price=position.entry_price,
    )
    updated = record_trade(updated, record)
    event = Event(tick, EventType.TRADE,
                  f"closed margin {position.direction.value} @ {px}, pnl {record.pnl:.2f}",
                  {'position_id': position.position_id, 'price': px, 'pnl': record.pnl,
                   'interest': interest, 'reason': reason})
    return SettlementResult(account=updated, position=None, record=record, events=(event,))


def liquidate(account: Account, position: Position, price, tick: int,
              terms: MarginTerms) -> SettlementResult:
    """Forfeit own funds; the broker keeps the collateral and the interest."""
    px = to_decimal(price, "price")
    interest = calculate_interest(position, tick, terms)
    record = TradeRecord(
        tick=tick, instrument=InstrumentKind.MARGIN, side=position.direction.value,
        price=px, size=position.size, fee=interest,
        pnl=-position.margin, reason=REASON_LIQUIDATION, entry_price=position.entry_price,
    )
    updated = record_trade(account, record)
    event = Event(tick, EventType.LIQUIDATION,
                  f"margin {position.direction.value} liquidated @ {px}, {position.margin} lost",
                  {'position_id': position.position_id, 'price': px,
                   'liquidation_price': position.risk.liquidation_price,
                   'pnl': record.pnl, 'interest': interest})
    return SettlementResult(account=updated, position=None, record=record, events=(event,))


def check_position(account: Account, position: Position, price, tick: int,
                   terms: MarginTerms) -> SettlementResult:
    """
    Per-tick risk pass.

    Liquidation wins over the warning: a price that gaps straight through
    both triggers liquidates without a margin-call event.
    """
    px = to_decimal(price, "price")
    if _breached(position.direction, px, position.risk.liquidation_price):
        return liquidate(account, position, px, tick, terms)
    if (not position.margin_call_warned
            and _breached(position.direction, px, position.risk.margin_call_price)):
        warned = replace(position, margin_call_warned=True)
        event = Event(tick, EventType.MARGIN_CALL,
                      f"margin call @ {px}, liquidation at {position.risk.liquidation_price}",
                      {'position_id': position.position_id, 'price': px,
                       'margin_call_price': position.risk.margin_call_price,
                       'liquidation_price': position.risk.liquidation_price})
        return SettlementResult(account=account, position=warned, events=(event,))
    return SettlementResult(account=account, position=position)
