"""
clock.py - Simulation clock

Drives one simulator: owns the current SimulatorState and the price feed,
produces ticks at the configured speed and serializes user actions with
those ticks.

Two ways to drive it:
- Synchronous: step() for one tick, dispatch(action) for one action.
  Used by tests and scripts; no event loop needed.
- Asynchronous: run() is the single writer. Actions sent with
  `await clock.submit(action)` are queued and applied by the run loop
  between ticks, so an action never interleaves with a tick.

Pausing stops ticks only. Queued actions (closing a position, resetting)
are still applied while paused.
"""

from __future__ import annotations
import asyncio
import logging
from enum import Enum
from typing import Callable, List, Optional, Tuple

from . import actions as act
from .config import SimulatorConfig
from .core import Event
from .price_process import PriceFeed
from .simulator import (
    ActionResult, SimulatorState, StepResult,
    apply_action, initial_state, make_feed, snapshot, step,
)


logger = logging.getLogger(__name__)


class Speed(Enum):
    SLOW = "slow"
    FAST = "fast"


Listener = Callable[[SimulatorState, Tuple[Event, ...]], None]


class SimulationClock:
    """
    Tick driver for a single simulator instance.

    Features:
    - Two speeds with per-kind intervals from the config
    - Pause/resume without blocking user actions
    - Listeners notified after every tick and every applied action
    - Reset rebuilds prices, account and positions in one step
    """

    def __init__(self, config: SimulatorConfig, feed: Optional[PriceFeed] = None):
        """
        Args:
            config: Simulator configuration
            feed: Price feed (default: seeded random walk from the config;
                  a fresh one is built on every reset so seeded runs replay)
        """
        self.config = config
        self._custom_feed = feed is not None
        self.feed = feed if feed is not None else make_feed(config)
        self.state = initial_state(config, self.feed)
        self.speed = Speed.SLOW
        self.paused = False
        self.listeners: List[Listener] = []
        self._queue: asyncio.Queue = asyncio.Queue()

    @property
    def interval(self) -> float:
        """Seconds between ticks at the current speed."""
        if self.speed is Speed.FAST:
            return self.config.fast_interval
        return self.config.slow_interval

    def subscribe(self, listener: Listener) -> None:
        self.listeners.append(listener)

    def _notify(self, events: Tuple[Event, ...]) -> None:
        for listener in self.listeners:
            listener(self.state, events)

    # ------------------------------------------------------------------
    # Synchronous driving
    # ------------------------------------------------------------------

    def step(self) -> StepResult:
        """Advance one tick, regardless of pause."""
        result = step(self.state, self.feed)
        self.state = result.state
        self._notify(result.events)
        return result

    def run_ticks(self, count: int) -> List[Event]:
        """Advance `count` ticks and return every event produced."""
        events: List[Event] = []
        for _ in range(count):
            events.extend(self.step().events)
        return events

    def dispatch(self, action: act.Action) -> ActionResult:
        """Apply a user action. Rejections leave the state untouched."""
        feed = self.feed
        if isinstance(action, act.Reset) and not self._custom_feed:
            feed = make_feed(self.config)
            self.feed = feed
        result = apply_action(self.state, action, feed)
        if result.applied:
            self.state = result.state
            self._notify(result.events)
        return result

    def reset(self) -> ActionResult:
        return self.dispatch(act.Reset())

    def pause(self) -> None:
        self.paused = True
        logger.info("Clock paused at tick %d", self.state.tick)

    def resume(self) -> None:
        self.paused = False
        logger.info("Clock resumed at tick %d", self.state.tick)

    def set_speed(self, speed: Speed) -> None:
        self.speed = speed
        logger.info("Clock speed set to %s (%.2fs per tick)", speed.value, self.interval)

    def snapshot(self) -> dict:
        return snapshot(self.state)

    # ------------------------------------------------------------------
    # Asynchronous driving
    # ------------------------------------------------------------------

    async def submit(self, action: act.Action) -> ActionResult:
        """
        Queue an action for the run loop and wait for its result.

        Only completes while run() is active.
        """
        future = asyncio.get_running_loop().create_future()
        await self._queue.put((action, future))
        return await future

    async def run(self, stop_event: Optional[asyncio.Event] = None,
                  max_ticks: Optional[int] = None) -> int:
        """
        Tick until stop_event is set or max_ticks ticks have been produced.

        Queued actions are applied as they arrive; a tick fires whenever the
        interval elapses without the clock being paused.

        Returns:
            Number of ticks produced
        """
        stop_event = stop_event or asyncio.Event()
        loop = asyncio.get_running_loop()
        ticks = 0
        next_tick = loop.time() + self.interval
        logger.info("Clock running %s simulator", self.config.kind.value)

        try:
            while not stop_event.is_set():
                timeout = max(next_tick - loop.time(), 0.0)
                try:
                    action, future = await asyncio.wait_for(self._queue.get(), timeout=timeout)
                except asyncio.TimeoutError:
                    next_tick = loop.time() + self.interval
                    if self.paused:
                        continue
                    self.step()
                    ticks += 1
                    if max_ticks is not None and ticks >= max_ticks:
                        break
                    continue

                result = self.dispatch(action)
                if not future.done():
                    future.set_result(result)
        finally:
            self._cancel_pending()
            logger.info("Clock stopped after %d ticks", ticks)
        return ticks

    def _cancel_pending(self) -> None:
        while not self._queue.empty():
            _, future = self._queue.get_nowait()
            if not future.done():
                future.cancel()
