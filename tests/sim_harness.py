"""
sim_harness.py - Test helpers for driving simulators with exact prices

Provides scripted simulator states and helpers to push closes through the
tick reducer without a random feed or an event loop.
"""

from __future__ import annotations
from decimal import Decimal
from typing import Iterable, List, Tuple

from tradesim import Event, ScriptedFeed, SimulatorKind, SimulatorState, advance, default_config, initial_state
from tradesim.core import PricePoint


def scripted_state(kind: SimulatorKind, start_price="65000", **overrides) -> SimulatorState:
    """
    A simulator whose warm-up history is the single point start_price.

    Example:
        state = scripted_state(SimulatorKind.FUTURES)
        state, events = push_prices(state, [64000, 58000])
    """
    values = dict(start_price=start_price, warmup=1)
    values.update(overrides)
    config = default_config(kind, **values)
    return initial_state(config, ScriptedFeed([start_price]))


def push_prices(state: SimulatorState, closes: Iterable) -> Tuple[SimulatorState, List[Event]]:
    """Advance through each close in turn, collecting every event."""
    events: List[Event] = []
    for close in closes:
        point = PricePoint(tick=state.tick + 1, close=Decimal(str(close)))
        result = advance(state, point)
        state = result.state
        events.extend(result.events)
    return state, events


def event_types(events: Iterable[Event]) -> List:
    return [e.event_type for e in events]


class RecordingListener:
    """Clock listener that keeps every (tick, events) notification."""

    def __init__(self):
        self.calls: List[Tuple[int, Tuple[Event, ...]]] = []

    def __call__(self, state: SimulatorState, events: Tuple[Event, ...]) -> None:
        self.calls.append((state.tick, events))

    @property
    def ticks(self) -> List[int]:
        return [tick for tick, _ in self.calls]
