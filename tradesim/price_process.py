"""
price_process.py - Synthetic price generation for the simulators

Provides the random walk every simulator is driven by, plus the rolling
window the charts and strategies read from.

Functions:
- next_price: one step of the biased multiplicative random walk
- next_candle: one OHLCV candle around the same step
- seed_series: warm-up history for a fresh simulator

Classes:
- PriceSeries: immutable, bounded rolling window of PricePoints
- PriceFeed: Protocol producing the next PricePoint
- RandomWalkFeed: numpy Generator backed feed (seedable)
- ScriptedFeed: replays a fixed list of closes (tests, demos)

The walk is p' = max(p * (1 + (u - 0.48) * vol), floor) with u ~ U[0, 1).
The 0.48 centre gives a slight upward drift.
"""

from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, List, Optional, Protocol, Sequence, Tuple, runtime_checkable

import numpy as np

from .core import InvalidParameter, PricePoint, quantize_price, require_positive, to_decimal


DRIFT_CENTRE = Decimal("0.48")
WICK_SCALE = Decimal("0.5")
VOLUME_SCALE = Decimal("500")
VOLUME_BASE = Decimal("100")
DEFAULT_PRICE_FLOOR = Decimal("1")


def _uniform(rng: np.random.Generator) -> Decimal:
    return Decimal(str(float(rng.random())))


def next_price(previous: Decimal, volatility: Decimal, rng: np.random.Generator,
               price_floor: Decimal = DEFAULT_PRICE_FLOOR) -> Decimal:
    """
    Advance the random walk by one step.

    Args:
        previous: Last close (> 0)
        volatility: Per-step scale of the shock
        rng: numpy Generator supplying u ~ U[0, 1)
        price_floor: Lower bound of the result (> 0)

    Returns:
        The next close, quantized to the cent and never below price_floor
    """
    shock = (_uniform(rng) - DRIFT_CENTRE) * volatility
    return max(quantize_price(previous * (1 + shock)), price_floor)


def next_candle(previous_close: Decimal, volatility: Decimal, rng: np.random.Generator,
                tick: int, price_floor: Decimal = DEFAULT_PRICE_FLOOR) -> PricePoint:
    """
    Build one OHLCV candle opening at previous_close.

    The wick w = u' * vol * 0.5 stretches high above max(open, close) and low
    below min(open, close). Volume is u'' * 500 + 100.
    """
    open_ = previous_close
    close = next_price(previous_close, volatility, rng, price_floor)
    wick = _uniform(rng) * volatility * WICK_SCALE
    high = quantize_price(max(open_, close) * (1 + wick))
    low = max(quantize_price(min(open_, close) * (1 - wick)), price_floor)
    volume = quantize_price(_uniform(rng) * VOLUME_SCALE + VOLUME_BASE)
    return PricePoint(tick=tick, close=close, open=open_, high=high, low=low, volume=volume)


# ============================================================================
# ROLLING WINDOW
# ============================================================================

@dataclass(frozen=True, slots=True)
class PriceSeries:
    """
    Bounded window of the most recent PricePoints, oldest first.

    append() returns a new series; once maxlen is reached the oldest point
    is dropped.
    """
    points: Tuple[PricePoint, ...]
    maxlen: int

    def __post_init__(self):
        if self.maxlen < 1:
            raise InvalidParameter(f"maxlen must be at least 1, got {self.maxlen}")
        if len(self.points) > self.maxlen:
            object.__setattr__(self, 'points', tuple(self.points[-self.maxlen:]))

    @classmethod
    def empty(cls, maxlen: int) -> PriceSeries:
        return cls(points=(), maxlen=maxlen)

    def append(self, point: PricePoint) -> PriceSeries:
        points = self.points + (point,)
        if len(points) > self.maxlen:
            points = points[len(points) - self.maxlen:]
        return PriceSeries(points=points, maxlen=self.maxlen)

    @property
    def last(self) -> PricePoint:
        if not self.points:
            raise InvalidParameter("price series is empty")
        return self.points[-1]

    def closes(self) -> List[Decimal]:
        return [p.close for p in self.points]

    def closes_array(self) -> np.ndarray:
        """Closes as a float array for the indicator math."""
        return np.array([float(p.close) for p in self.points], dtype=float)

    def __len__(self) -> int:
        return len(self.points)

    def __iter__(self):
        return iter(self.points)


# ============================================================================
# FEEDS
# ============================================================================

@runtime_checkable
class PriceFeed(Protocol):
    """
    Protocol for price feeds.

    A feed turns the previous close into the next PricePoint. Feeds own
    their randomness; the simulator never touches a generator directly.
    """

    def next_point(self, previous_close: Decimal, tick: int) -> PricePoint:
        """Produce the point for `tick` given the last close."""
        ...


class RandomWalkFeed:
    """
    Feed backed by a numpy Generator.

    Passing a seed gives a reproducible path. Without one, numpy draws fresh
    OS entropy.
    """

    def __init__(self, volatility, candles: bool = False, seed: Optional[int] = None,
                 rng: Optional[np.random.Generator] = None,
                 price_floor=DEFAULT_PRICE_FLOOR):
        self.volatility = require_positive(volatility, "volatility")
        self.price_floor = require_positive(price_floor, "price_floor")
        self.candles = candles
        self.rng = rng if rng is not None else np.random.default_rng(seed)

    def next_point(self, previous_close: Decimal, tick: int) -> PricePoint:
        if self.candles:
            return next_candle(previous_close, self.volatility, self.rng, tick, self.price_floor)
        close = next_price(previous_close, self.volatility, self.rng, self.price_floor)
        return PricePoint(tick=tick, close=close)

    def __repr__(self):
        return f"RandomWalkFeed(vol={self.volatility}, candles={self.candles})"


class ScriptedFeed:
    """
    Feed that replays a fixed sequence of closes.

    Once the script is exhausted the last close repeats. With candles=True
    each point is a flat candle opening at the previous close.
    """

    def __init__(self, closes: Iterable, candles: bool = False):
        self.closes = [require_positive(c, "close") for c in closes]
        if not self.closes:
            raise InvalidParameter("scripted feed needs at least one close")
        self.candles = candles
        self.position = 0

    def next_point(self, previous_close: Decimal, tick: int) -> PricePoint:
        index = min(self.position, len(self.closes) - 1)
        close = self.closes[index]
        self.position += 1
        if not self.candles:
            return PricePoint(tick=tick, close=close)
        return PricePoint(
            tick=tick,
            close=close,
            open=previous_close,
            high=max(previous_close, close),
            low=min(previous_close, close),
            volume=VOLUME_BASE,
        )

    def __repr__(self):
        return f"ScriptedFeed({len(self.closes)} closes, at={self.position})"


def seed_series(feed: PriceFeed, start_price, length: int, maxlen: int) -> PriceSeries:
    """
    Build the warm-up window a simulator starts with.

    The first point is start_price; the remaining length - 1 points come from
    the feed. Ticks run from -(length - 1) up to 0 so that live ticks start
    at 1.
    """
    if length < 1:
        raise InvalidParameter(f"warm-up length must be at least 1, got {length}")
    start = quantize_price(require_positive(start_price, "start_price"))
    first_tick = -(length - 1)
    series = PriceSeries.empty(maxlen).append(PricePoint(tick=first_tick, close=start))
    close = start
    for tick in range(first_tick + 1, 1):
        point = feed.next_point(close, tick)
        series = series.append(point)
        close = point.close
    return series


def series_from_closes(closes: Sequence, maxlen: Optional[int] = None) -> PriceSeries:
    """Wrap plain closes in a PriceSeries with ticks 0..n-1 (tests, strategy inputs)."""
    points = tuple(PricePoint(tick=i, close=to_decimal(c, "close")) for i, c in enumerate(closes))
    return PriceSeries(points=points, maxlen=maxlen or max(len(points), 1))
