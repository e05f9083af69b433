"""
actions.py - User actions accepted by the simulator

Each action is an immutable value handed to simulator.apply_action(). The
simulator kind decides which actions it accepts; anything else is rejected
with InvalidParameter.

    SPOT     PlaceOrder, CancelOrder
    FUTURES  OpenPosition, ClosePosition, ReversePosition, SetProtection, CancelOrder
    MARGIN   OpenPosition, ClosePosition
    OPTIONS  TradeOption, ExerciseOption
    BOT      SetStrategy, ToggleBot, PlaceOrder, CancelOrder

Reset is accepted by every kind.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Mapping, Optional, Union

from .core import Direction, OptionAction, OptionType, OrderSide, OrderType
from .strategies.bots import StrategyKind


@dataclass(frozen=True, slots=True)
class OpenPosition:
    """
    Open a leveraged position.

    amount is the margin (futures) or own funds (margin trading) posted;
    leverage is the futures leverage or the margin ratio. LIMIT entries are
    futures only and rest until the price reaches limit_price.
    """
    direction: Direction
    amount: Decimal
    leverage: Decimal
    order_type: OrderType = OrderType.MARKET
    limit_price: Optional[Decimal] = None


@dataclass(frozen=True, slots=True)
class ClosePosition:
    pass


@dataclass(frozen=True, slots=True)
class ReversePosition:
    pass


@dataclass(frozen=True, slots=True)
class SetProtection:
    """Set (or clear, with None) take-profit and stop-loss on the open position."""
    take_profit: Optional[Decimal] = None
    stop_loss: Optional[Decimal] = None


@dataclass(frozen=True, slots=True)
class PlaceOrder:
    """Spot order. amount is in base asset; limit_price is required for LIMIT."""
    side: OrderSide
    amount: Decimal
    order_type: OrderType = OrderType.MARKET
    limit_price: Optional[Decimal] = None


@dataclass(frozen=True, slots=True)
class CancelOrder:
    order_id: int


@dataclass(frozen=True, slots=True)
class TradeOption:
    option_type: OptionType
    action: OptionAction
    strike: Decimal
    days: Decimal
    contracts: int = 1


@dataclass(frozen=True, slots=True)
class ExerciseOption:
    contract_id: int


@dataclass(frozen=True, slots=True)
class SetStrategy:
    kind: StrategyKind
    params: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ToggleBot:
    enabled: bool


@dataclass(frozen=True, slots=True)
class Reset:
    pass


Action = Union[
    OpenPosition, ClosePosition, ReversePosition, SetProtection,
    PlaceOrder, CancelOrder, TradeOption, ExerciseOption,
    SetStrategy, ToggleBot, Reset,
]
