"""
test_bot_lifecycle.py - The strategy bot driven tick by tick

The bot trades through spot settlement on the simulator's own account, so
every decision shows up as a BOT_ACTION event followed by the TRADE it
caused.
"""

import pytest
from decimal import Decimal

from tradesim import ActionStatus, EventType, OrderSide, SimulatorKind
from tradesim.actions import PlaceOrder, SetStrategy, ToggleBot
from tradesim.simulator import apply_action
from tradesim.strategies import DCAParams, StrategyKind, StrategyState

from tests.sim_harness import event_types, push_prices, scripted_state


def applied(state, action):
    result = apply_action(state, action)
    assert result.status is ActionStatus.APPLIED, result.message
    return result.state


class TestGridBot:
    def test_buy_hold_sell_cycle(self, bot_state):
        state = applied(bot_state, ToggleBot(True))

        state, events = push_prices(state, [65000])
        assert event_types(events) == [EventType.BOT_ACTION, EventType.TRADE]
        assert state.account.holdings == Decimal("200") / Decimal("65000")
        assert state.bot.memory.last_buy_price == Decimal("65000")

        state, events = push_prices(state, [65300])
        assert events == []
        assert state.bot.last_message == "inside grid band"

        state, events = push_prices(state, [65800])
        assert event_types(events) == [EventType.BOT_ACTION, EventType.TRADE]
        assert events[0].data['side'] == "sell"
        assert state.bot.memory.last_buy_price is None
        assert state.account.history[-1].reason.startswith("grid sell")

    def test_disabled_bot_is_idle(self, bot_state):
        state, events = push_prices(bot_state, [65000, 64000, 66000])
        assert events == []
        assert state.account.holdings == Decimal("0")
        assert state.bot.memory == StrategyState()

    def test_stopping_the_bot(self, bot_state):
        state = applied(bot_state, ToggleBot(True))
        state, _ = push_prices(state, [65000])
        state = applied(state, ToggleBot(False))
        assert state.bot.last_message == "bot stopped"
        state, events = push_prices(state, [60000])
        assert events == []

    def test_not_enough_cash(self):
        state = scripted_state(SimulatorKind.BOT, initial_balance=100)
        state = applied(state, ToggleBot(True))
        state, events = push_prices(state, [65000])
        assert events == []
        assert state.bot.last_message == "not enough cash for grid buy"


class TestStrategySwitching:
    def test_dca_after_switch(self, bot_state):
        state = applied(bot_state, ToggleBot(True))
        state = applied(state, SetStrategy(StrategyKind.DCA, {'interval': 2, 'amount': 100}))
        assert state.bot.enabled
        assert state.bot.params == DCAParams(interval=2, amount=Decimal("100"))

        state, events = push_prices(state, [65000] * 4)
        bot_events = [e for e in events if e.event_type is EventType.BOT_ACTION]
        assert [e.tick for e in bot_events] == [2, 4]
        assert state.account.holdings == Decimal("100") / Decimal("65000") * 2

    def test_switch_clears_memory_keeps_holdings(self, bot_state):
        state = applied(bot_state, ToggleBot(True))
        state, _ = push_prices(state, [65000])
        holdings = state.account.holdings
        state = applied(state, SetStrategy(StrategyKind.RSI))
        assert state.bot.memory == StrategyState()
        assert state.account.holdings == holdings

    def test_bad_params_rejected(self, bot_state):
        result = apply_action(bot_state, SetStrategy(StrategyKind.MA_CROSS, {'short_window': 30, 'long_window': 20}))
        assert result.status is ActionStatus.REJECTED
        assert result.state.bot.strategy is StrategyKind.GRID

    @pytest.mark.parametrize("kind,params", [
        (StrategyKind.RSI, {'period': 14.0}),
        (StrategyKind.GRID, {'grids': "10"}),
    ])
    def test_non_integer_windows_rejected(self, bot_state, kind, params):
        state = applied(bot_state, ToggleBot(True))
        result = apply_action(state, SetStrategy(kind, params))
        assert result.status is ActionStatus.REJECTED
        assert "integer" in result.message
        assert result.state is state

        state, events = push_prices(result.state, [65000, 64000])
        assert state.tick == 2
        assert state.bot.strategy is StrategyKind.GRID

    def test_ma_crossover_bot(self):
        state = scripted_state(SimulatorKind.BOT, start_price="100")
        state = applied(state, SetStrategy(StrategyKind.MA_CROSS, {'short_window': 2, 'long_window': 3}))
        state = applied(state, ToggleBot(True))

        state, events = push_prices(state, [100, 100, 100])
        assert events == []
        assert state.bot.memory.prev_short_ma == pytest.approx(100.0)

        state, events = push_prices(state, [130])
        assert event_types(events) == [EventType.BOT_ACTION, EventType.TRADE]
        assert events[0].data['strategy'] == "ma_cross"
        assert state.account.holdings == Decimal("500") / Decimal("130")

    def test_restart_does_not_cross_against_stale_averages(self):
        state = scripted_state(SimulatorKind.BOT, start_price="70000")
        state = applied(state, SetStrategy(StrategyKind.MA_CROSS, {'short_window': 2, 'long_window': 4}))
        state = applied(state, ToggleBot(True))
        state, events = push_prices(state, [69000, 68000, 67000, 66000, 65000])
        assert events == []
        assert state.bot.memory.prev_short_ma < state.bot.memory.prev_long_ma

        state = applied(state, ToggleBot(False))
        assert state.bot.memory == StrategyState()
        state, _ = push_prices(state, [66000, 67000])

        state = applied(state, ToggleBot(True))
        state, events = push_prices(state, [68000])
        assert events == []
        assert state.account.holdings == Decimal("0")
        assert state.bot.last_message == "collecting moving averages"
        assert state.bot.memory.prev_short_ma == pytest.approx(67500.0)


class TestManualTradingAlongsideBot:
    def test_manual_order(self, bot_state):
        state = applied(bot_state, PlaceOrder(OrderSide.BUY, Decimal("0.01")))
        assert state.account.holdings == Decimal("0.01")

    def test_bot_actions_only_on_bot_page(self, spot_state):
        result = apply_action(spot_state, ToggleBot(True))
        assert not result.applied
