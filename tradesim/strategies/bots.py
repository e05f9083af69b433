"""
bots.py - Automated trading strategies for the bot simulator

Every strategy is a pure decision function:

    decide(snapshot, params, state) -> Decision(instruction | None, new_state, reason)

The snapshot is an immutable copy of what the bot may see (recent closes,
tick counter, cash, holdings, fee). The function never touches the account;
the simulator executes the returned instruction through spot settlement.

Strategies:
- GRID: buy on entering the range or after a fall of 0.8 band below the
  last buy, sell back after a rise of 0.8 band above it
- DCA: buy a fixed notional every `interval` ticks
- MA_CROSS: buy on a bullish short/long crossover, sell part of the
  holdings on a bearish one
- RSI: buy below the oversold line, sell part above the overbought line

Buys need cash >= notional * (1 + fee). Sells need holdings above
MIN_SELL_HOLDINGS.
"""

from __future__ import annotations
from dataclasses import dataclass, fields, replace
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

import numpy as np

from ..core import InvalidParameter, OrderSide, to_decimal
from .indicators import rsi, sma


MIN_SELL_HOLDINGS = Decimal("0.001")
GRID_TRIGGER_FRACTION = Decimal("0.8")


class StrategyKind(Enum):
    GRID = "grid"
    DCA = "dca"
    MA_CROSS = "ma_cross"
    RSI = "rsi"


# ============================================================================
# PARAMETERS
# ============================================================================

def _coerce_decimals(obj, names) -> None:
    for name in names:
        value = getattr(obj, name)
        if not isinstance(value, Decimal):
            object.__setattr__(obj, name, to_decimal(value, name))


def _require_ints(obj, names) -> None:
    for name in names:
        value = getattr(obj, name)
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidParameter(f"{name} must be an integer, got {value!r}")


@dataclass(frozen=True, slots=True)
class GridParams:
    lower: Decimal = Decimal("60000")
    upper: Decimal = Decimal("70000")
    grids: int = 10
    notional: Decimal = Decimal("200")

    def __post_init__(self):
        _coerce_decimals(self, ('lower', 'upper', 'notional'))
        _require_ints(self, ('grids',))

    def validate(self) -> None:
        if self.lower <= 0:
            raise InvalidParameter(f"lower must be positive, got {self.lower}")
        if self.lower >= self.upper:
            raise InvalidParameter(f"lower ({self.lower}) must be below upper ({self.upper})")
        if self.grids < 2:
            raise InvalidParameter(f"grids must be at least 2, got {self.grids}")
        if self.notional <= 0:
            raise InvalidParameter(f"notional must be positive, got {self.notional}")

    @property
    def band(self) -> Decimal:
        return (self.upper - self.lower) / self.grids


@dataclass(frozen=True, slots=True)
class DCAParams:
    interval: int = 20
    amount: Decimal = Decimal("200")

    def __post_init__(self):
        _coerce_decimals(self, ('amount',))
        _require_ints(self, ('interval',))

    def validate(self) -> None:
        if self.interval < 1:
            raise InvalidParameter(f"interval must be at least 1, got {self.interval}")
        if self.amount <= 0:
            raise InvalidParameter(f"amount must be positive, got {self.amount}")


@dataclass(frozen=True, slots=True)
class MACrossParams:
    short_window: int = 5
    long_window: int = 20
    notional: Decimal = Decimal("500")
    sell_fraction: Decimal = Decimal("0.5")

    def __post_init__(self):
        _coerce_decimals(self, ('notional', 'sell_fraction'))
        _require_ints(self, ('short_window', 'long_window'))

    def validate(self) -> None:
        if self.short_window < 1:
            raise InvalidParameter(f"short_window must be at least 1, got {self.short_window}")
        if self.short_window >= self.long_window:
            raise InvalidParameter(
                f"short_window ({self.short_window}) must be below long_window ({self.long_window})")
        if self.notional <= 0:
            raise InvalidParameter(f"notional must be positive, got {self.notional}")
        if not 0 < self.sell_fraction <= 1:
            raise InvalidParameter(f"sell_fraction must be within (0, 1], got {self.sell_fraction}")


@dataclass(frozen=True, slots=True)
class RSIParams:
    period: int = 14
    oversold: Decimal = Decimal("30")
    overbought: Decimal = Decimal("70")
    notional: Decimal = Decimal("300")
    sell_fraction: Decimal = Decimal("0.5")

    def __post_init__(self):
        _coerce_decimals(self, ('oversold', 'overbought', 'notional', 'sell_fraction'))
        _require_ints(self, ('period',))

    def validate(self) -> None:
        if self.period < 1:
            raise InvalidParameter(f"period must be at least 1, got {self.period}")
        if not 0 < self.oversold < self.overbought < 100:
            raise InvalidParameter(
                f"need 0 < oversold ({self.oversold}) < overbought ({self.overbought}) < 100")
        if self.notional <= 0:
            raise InvalidParameter(f"notional must be positive, got {self.notional}")
        if not 0 < self.sell_fraction <= 1:
            raise InvalidParameter(f"sell_fraction must be within (0, 1], got {self.sell_fraction}")


# ============================================================================
# SNAPSHOT, STATE AND DECISION
# ============================================================================

@dataclass(frozen=True, slots=True)
class StrategyState:
    """Memory a strategy carries between ticks. Cleared when the strategy changes or the bot is toggled."""
    last_buy_price: Optional[Decimal] = None
    prev_short_ma: Optional[float] = None
    prev_long_ma: Optional[float] = None


@dataclass(frozen=True, slots=True)
class MarketSnapshot:
    """Read-only view handed to a strategy."""
    prices: Tuple[Decimal, ...]
    tick: int
    cash: Decimal
    holdings: Decimal
    fee_rate: Decimal = Decimal("0.001")

    @property
    def price(self) -> Decimal:
        return self.prices[-1]

    def closes_array(self) -> np.ndarray:
        return np.array([float(p) for p in self.prices], dtype=float)

    def can_buy(self, notional: Decimal) -> bool:
        return self.cash >= notional * (1 + self.fee_rate)

    def can_sell(self) -> bool:
        return self.holdings > MIN_SELL_HOLDINGS


@dataclass(frozen=True, slots=True)
class TradeInstruction:
    """What the bot wants done. amount is always in base asset."""
    side: OrderSide
    amount: Decimal
    reason: str


@dataclass(frozen=True, slots=True)
class Decision:
    instruction: Optional[TradeInstruction]
    state: StrategyState
    reason: str = ""


def _hold(state: StrategyState, reason: str) -> Decision:
    return Decision(instruction=None, state=state, reason=reason)


def _buy(snapshot: MarketSnapshot, notional: Decimal, state: StrategyState, reason: str) -> Decision:
    instruction = TradeInstruction(OrderSide.BUY, notional / snapshot.price, reason)
    return Decision(instruction=instruction, state=state, reason=reason)


def _sell(amount: Decimal, state: StrategyState, reason: str) -> Decision:
    instruction = TradeInstruction(OrderSide.SELL, amount, reason)
    return Decision(instruction=instruction, state=state, reason=reason)


# ============================================================================
# STRATEGIES
# ============================================================================

def decide_grid(snapshot: MarketSnapshot, params: GridParams, state: StrategyState) -> Decision:
    price = snapshot.price
    if price < params.lower or price > params.upper:
        return _hold(state, f"price {price} outside grid [{params.lower}, {params.upper}]")

    trigger = params.band * GRID_TRIGGER_FRACTION
    level = int((price - params.lower) / params.band)
    last = state.last_buy_price

    if last is None or price <= last - trigger:
        if not snapshot.can_buy(params.notional):
            return _hold(state, "not enough cash for grid buy")
        return _buy(snapshot, params.notional, replace(state, last_buy_price=price),
                    f"grid buy level {level}")

    if price >= last + trigger:
        if not snapshot.can_sell():
            return _hold(state, "no holdings for grid sell")
        amount = min(snapshot.holdings, params.notional / price)
        gain = (price - last) / last * 100
        return _sell(amount, replace(state, last_buy_price=None), f"grid sell +{gain:.1f}%")

    return _hold(state, "inside grid band")


def decide_dca(snapshot: MarketSnapshot, params: DCAParams, state: StrategyState) -> Decision:
    if snapshot.tick % params.interval != 0:
        return _hold(state, "waiting for next interval")
    if not snapshot.can_buy(params.amount):
        return _hold(state, "not enough cash for DCA buy")
    return _buy(snapshot, params.amount, state, f"DCA ${params.amount}")


def decide_ma_cross(snapshot: MarketSnapshot, params: MACrossParams, state: StrategyState) -> Decision:
    if len(snapshot.prices) < params.long_window + 1:
        return _hold(state, f"need {params.long_window + 1} prices")

    closes = snapshot.closes_array()
    short_ma = sma(closes, params.short_window)
    long_ma = sma(closes, params.long_window)
    new_state = replace(state, prev_short_ma=short_ma, prev_long_ma=long_ma)
    prev_short, prev_long = state.prev_short_ma, state.prev_long_ma
    label = f"MA{params.short_window}/MA{params.long_window}"

    if prev_short is None or prev_long is None:
        return _hold(new_state, "collecting moving averages")
    if prev_short <= prev_long and short_ma > long_ma:
        if snapshot.can_buy(params.notional):
            return _buy(snapshot, params.notional, new_state, f"golden cross {label}")
        return _hold(new_state, "not enough cash for crossover buy")
    if prev_short >= prev_long and short_ma < long_ma:
        if snapshot.can_sell():
            return _sell(snapshot.holdings * params.sell_fraction, new_state, f"death cross {label}")
        return _hold(new_state, "no holdings for crossover sell")
    return _hold(new_state, "no crossover")


def decide_rsi(snapshot: MarketSnapshot, params: RSIParams, state: StrategyState) -> Decision:
    if len(snapshot.prices) < params.period + 1:
        return _hold(state, f"need {params.period + 1} prices")

    value = Decimal(str(rsi(snapshot.closes_array(), params.period)))
    if value < params.oversold and snapshot.can_buy(params.notional):
        return _buy(snapshot, params.notional, state, f"RSI oversold {value:.1f}<{params.oversold}")
    if value > params.overbought and snapshot.can_sell():
        return _sell(snapshot.holdings * params.sell_fraction, state,
                     f"RSI overbought {value:.1f}>{params.overbought}")
    return _hold(state, f"RSI {value:.1f}")


# ============================================================================
# DISPATCH
# ============================================================================

@dataclass(frozen=True, slots=True)
class StrategySpec:
    params_type: type
    decide: Callable[[MarketSnapshot, Any, StrategyState], Decision]


STRATEGIES: Dict[StrategyKind, StrategySpec] = {
    StrategyKind.GRID: StrategySpec(GridParams, decide_grid),
    StrategyKind.DCA: StrategySpec(DCAParams, decide_dca),
    StrategyKind.MA_CROSS: StrategySpec(MACrossParams, decide_ma_cross),
    StrategyKind.RSI: StrategySpec(RSIParams, decide_rsi),
}


def make_params(kind: StrategyKind, overrides: Optional[Mapping[str, Any]] = None):
    """
    Build validated parameters for a strategy from defaults plus overrides.

    Raises:
        InvalidParameter: Unknown keys or values failing validation
    """
    params_type = STRATEGIES[kind].params_type
    overrides = dict(overrides or {})
    known = {f.name for f in fields(params_type)}
    unknown = set(overrides) - known
    if unknown:
        raise InvalidParameter(f"unknown {kind.value} parameters: {sorted(unknown)}")
    try:
        params = params_type(**overrides)
        params.validate()
    except (TypeError, ValueError) as exc:
        raise InvalidParameter(f"bad {kind.value} parameters: {exc}") from None
    return params


def decide(kind: StrategyKind, snapshot: MarketSnapshot, params, state: StrategyState) -> Decision:
    strategy = STRATEGIES[kind]
    if not isinstance(params, strategy.params_type):
        raise InvalidParameter(f"{kind.value} expects {strategy.params_type.__name__}")
    return strategy.decide(snapshot, params, state)
