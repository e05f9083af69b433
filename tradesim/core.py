"""
Core types and helpers for the trading simulation engine.

This module provides the foundational data structures shared by every simulator:
1. Enums: simulator kinds, instrument kinds, directions, order and option sides
2. Immutable data structures: PricePoint, Position, OptionContract, LimitOrder,
   EntryOrder, TradeRecord, Event, SettlementResult
3. Exceptions: SimulatorError and the user-facing rejection types
4. Coercion helpers: Decimal conversion with validation

Everything here is immutable. State changes are expressed by building new
instances (dataclasses.replace), never by mutating existing ones.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_EVEN, getcontext
from enum import Enum
from typing import Any, Dict, Optional, Tuple


# ============================================================================
# DECIMAL CONTEXT CONFIGURATION
# ============================================================================
#
# Money and prices are Decimal throughout. The global context is configured
# once at import time.
#
#   - prec=50: enough headroom for leverage and fee products
#   - rounding=ROUND_HALF_EVEN: banker's rounding
#
_SIM_DECIMAL_CONTEXT = getcontext()
_SIM_DECIMAL_CONTEXT.prec = 50
_SIM_DECIMAL_CONTEXT.rounding = ROUND_HALF_EVEN


# ============================================================================
# CONSTANTS
# ============================================================================

# Quantities with absolute value below this threshold are treated as zero.
QUANTITY_EPSILON = Decimal("1e-12")

# Prices are quoted to the cent.
PRICE_QUANTUM = Decimal("0.01")

# Close reasons recorded on TradeRecord.reason
REASON_MANUAL = "manual"
REASON_LIQUIDATION = "liquidation"
REASON_TAKE_PROFIT = "take_profit"
REASON_STOP_LOSS = "stop_loss"
REASON_EXPIRY = "expiry"
REASON_EXERCISE = "exercise"
REASON_LIMIT_FILL = "limit_fill"
REASON_REVERSE = "reverse"


# ============================================================================
# ENUMS
# ============================================================================

class SimulatorKind(Enum):
    """Which simulator page an engine instance backs."""
    SPOT = "spot"
    FUTURES = "futures"
    MARGIN = "margin"
    OPTIONS = "options"
    BOT = "bot"


class InstrumentKind(Enum):
    """Settlement family tag. Selects the rule module in the dispatch table."""
    SPOT = "spot"
    FUTURE = "future"
    MARGIN = "margin"
    OPTION = "option"


class Direction(Enum):
    LONG = "long"
    SHORT = "short"

    @property
    def sign(self) -> Decimal:
        return Decimal("1") if self is Direction.LONG else Decimal("-1")

    def opposite(self) -> Direction:
        return Direction.SHORT if self is Direction.LONG else Direction.LONG


class OrderSide(Enum):
    BUY = "buy"
    SELL = "sell"


class OrderType(Enum):
    MARKET = "market"
    LIMIT = "limit"


class OptionType(Enum):
    CALL = "call"
    PUT = "put"


class OptionAction(Enum):
    BUY = "buy"
    SELL = "sell"


class EventType(Enum):
    """
    Engine-driven transitions surfaced to the UI layer.

    None of these are errors: they always succeed and always get reported.
    """
    TRADE = "trade"
    LIQUIDATION = "liquidation"
    MARGIN_CALL = "margin_call"
    TAKE_PROFIT = "take_profit"
    STOP_LOSS = "stop_loss"
    FUNDING = "funding"
    OPTION_EXPIRY = "option_expiry"
    ORDER_FILLED = "order_filled"
    ORDER_CANCELLED = "order_cancelled"
    BOT_ACTION = "bot_action"
    RESET = "reset"


# ============================================================================
# EXCEPTIONS
# ============================================================================

class SimulatorError(Exception):
    """Base exception for all rejected simulator actions."""
    pass


class InsufficientFunds(SimulatorError):
    """Raised when a debit would drive cash below zero."""
    pass


class InsufficientHoldings(SimulatorError):
    """Raised when selling more base asset than the account holds."""
    pass


class InvalidParameter(SimulatorError):
    """Raised for non-positive amounts, out-of-range leverage, malformed prices, etc."""
    pass


class PositionAlreadyOpen(SimulatorError):
    """Raised when opening a leveraged position while one is already open."""
    pass


class NoOpenPosition(SimulatorError):
    """Raised when closing or amending a position (or contract) that does not exist."""
    pass


# ============================================================================
# COERCION HELPERS
# ============================================================================

def to_decimal(value: Any, name: str = "value") -> Decimal:
    """
    Convert a number to Decimal, rejecting NaN and infinities.

    Floats go through str() so 0.1 becomes Decimal("0.1"), not its binary
    expansion.

    Raises:
        InvalidParameter: If the value cannot be converted or is not finite
    """
    if isinstance(value, bool):
        raise InvalidParameter(f"{name} must be a number, got {value!r}")
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except (ArithmeticError, ValueError, TypeError):
        raise InvalidParameter(f"{name} must be a number, got {value!r}") from None
    if not result.is_finite():
        raise InvalidParameter(f"{name} must be finite, got {value!r}")
    return result


def require_positive(value: Any, name: str) -> Decimal:
    """Convert to Decimal and require value > 0."""
    result = to_decimal(value, name)
    if result <= 0:
        raise InvalidParameter(f"{name} must be positive, got {result}")
    return result


def quantize_price(price: Decimal) -> Decimal:
    """Round a price to the quoting quantum."""
    return price.quantize(PRICE_QUANTUM, rounding=ROUND_HALF_EVEN)


# ============================================================================
# CORE DATA STRUCTURES
# ============================================================================

@dataclass(frozen=True, slots=True)
class PricePoint:
    """
    One tick of the price process.

    close is the scalar price every simulator reads. The candle fields are
    only populated by the candle-based views (spot, futures).
    """
    tick: int
    close: Decimal
    open: Optional[Decimal] = None
    high: Optional[Decimal] = None
    low: Optional[Decimal] = None
    volume: Optional[Decimal] = None

    @property
    def is_candle(self) -> bool:
        return self.open is not None


@dataclass(frozen=True, slots=True)
class PositionRisk:
    """
    Trigger prices derived at open time.

    These describe where the position WILL be liquidated (or warned), not
    its current state, and are never recomputed after the position opens.
    """
    liquidation_price: Decimal
    maintenance_ratio: Decimal
    margin_call_price: Optional[Decimal] = None


@dataclass(frozen=True, slots=True)
class Position:
    """
    An open leveraged exposure (futures or borrowed-spot margin).

    Attributes:
        position_id: Engine-assigned identifier
        kind: InstrumentKind.FUTURE or InstrumentKind.MARGIN
        direction: LONG or SHORT
        entry_price: Price at open
        size: Base-asset quantity controlled
        leverage: Leverage (futures) or margin ratio (margin)
        margin: Own funds escrowed at open; forfeited on liquidation
        opened_at_tick: Tick index at open
        risk: Trigger prices fixed at open
        borrowed: Borrowed quote amount (margin only)
        accrued_funding: Net funding owed by the position (futures only, negative = receivable)
        take_profit: Optional take-profit trigger
        stop_loss: Optional stop-loss trigger
        margin_call_warned: Whether the margin-call warning already fired
    """
    position_id: int
    kind: InstrumentKind
    direction: Direction
    entry_price: Decimal
    size: Decimal
    leverage: Decimal
    margin: Decimal
    opened_at_tick: int
    risk: PositionRisk
    borrowed: Decimal = Decimal("0")
    accrued_funding: Decimal = Decimal("0")
    take_profit: Optional[Decimal] = None
    stop_loss: Optional[Decimal] = None
    margin_call_warned: bool = False

    @property
    def contract_value(self) -> Decimal:
        """Notional controlled at entry (margin * leverage)."""
        return self.margin * self.leverage

    def __repr__(self) -> str:
        return (f"Position(#{self.position_id} {self.kind.value} {self.direction.value} "
                f"{self.size}@{self.entry_price} x{self.leverage}, liq={self.risk.liquidation_price})")


@dataclass(frozen=True, slots=True)
class OptionContract:
    """
    A European, cash-settled option held or written by the account.

    premium is per unit of underlying; cash amounts scale by
    contracts * unit_size. collateral is the cash escrowed by a writer
    (zero for a buyer).
    """
    contract_id: int
    option_type: OptionType
    action: OptionAction
    strike: Decimal
    expiry_tick: int
    premium: Decimal
    contracts: int
    underlying_at_entry: Decimal
    opened_at_tick: int
    collateral: Decimal = Decimal("0")


@dataclass(frozen=True, slots=True)
class LimitOrder:
    """A resting spot limit order waiting for the price to cross."""
    order_id: int
    side: OrderSide
    price: Decimal
    amount: Decimal
    placed_at_tick: int


@dataclass(frozen=True, slots=True)
class EntryOrder:
    """A resting futures limit entry. margin is debited only when it fills."""
    order_id: int
    direction: Direction
    price: Decimal
    margin: Decimal
    leverage: Decimal
    placed_at_tick: int


@dataclass(frozen=True, slots=True)
class TradeRecord:
    """
    Immutable audit entry appended on every execution or settlement.

    Attributes:
        tick: Tick index at which the record was produced
        instrument: Settlement family that produced it
        side: "buy"/"sell" (spot), "long"/"short" (leveraged), "call"/"put" (options)
        price: Execution or settlement price
        size: Base quantity (or contracts for options)
        fee: Fee, interest or funding charged on this event
        pnl: Realized profit and loss of this event
        reason: Why it happened (manual, liquidation, expiry, bot reason, ...)
        entry_price: Entry price of the closed exposure, if any
    """
    tick: int
    instrument: InstrumentKind
    side: str
    price: Decimal
    size: Decimal
    fee: Decimal
    pnl: Decimal
    reason: str = REASON_MANUAL
    entry_price: Optional[Decimal] = None


@dataclass(frozen=True, slots=True)
class Event:
    """A descriptive notification for the UI layer."""
    tick: int
    event_type: EventType
    message: str
    data: Dict[str, Any] = field(default_factory=dict)

    def __repr__(self) -> str:
        return f"Event({self.event_type.value}@{self.tick}: {self.message})"


@dataclass(frozen=True, slots=True)
class SettlementResult:
    """
    Output of a settlement rule: the new account, the surviving position
    (None once closed), the record produced (if any) and the events to surface.

    Settlement functions never mutate their inputs; the caller swaps the
    returned values into the simulator state in one step.
    """
    account: Any
    position: Optional[Position]
    record: Optional[TradeRecord] = None
    events: Tuple[Event, ...] = ()

    @property
    def closed(self) -> bool:
        return self.position is None
