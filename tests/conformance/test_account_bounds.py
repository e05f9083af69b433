"""
Account Bounds Conformance Tests

INVARIANT: Whatever the user does and wherever the price goes,

    cash >= 0
    holdings >= 0
    len(history) <= history_limit
    at most one leveraged position is open
    a liquidated position loses exactly its margin, never more

History is append-only: a record, once written, is never edited; only the
oldest records fall off the end.
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st
from decimal import Decimal

from tradesim import Direction, EventType, OrderSide, OrderType, SimulatorKind
from tradesim.actions import ClosePosition, OpenPosition, PlaceOrder, ReversePosition, SetProtection
from tradesim.simulator import apply_action

from tests.sim_harness import push_prices, scripted_state


price_paths = st.lists(st.decimals(min_value=Decimal("40000"), max_value=Decimal("90000"), places=2),
                       min_size=1, max_size=8)

futures_actions = st.one_of(
    st.builds(OpenPosition,
              st.sampled_from([Direction.LONG, Direction.SHORT]),
              st.decimals(min_value=Decimal("10"), max_value=Decimal("12000"), places=0),
              st.integers(min_value=1, max_value=200).map(Decimal)),
    st.just(ClosePosition()),
    st.just(ReversePosition()),
    st.builds(SetProtection,
              st.none() | st.decimals(min_value=Decimal("30000"), max_value=Decimal("100000"), places=0),
              st.none() | st.decimals(min_value=Decimal("30000"), max_value=Decimal("100000"), places=0)),
)

spot_actions = st.builds(
    PlaceOrder,
    st.sampled_from([OrderSide.BUY, OrderSide.SELL]),
    st.decimals(min_value=Decimal("0.001"), max_value=Decimal("0.2"), places=3),
    st.sampled_from([OrderType.MARKET, OrderType.LIMIT]),
    st.decimals(min_value=Decimal("50000"), max_value=Decimal("80000"), places=0),
)


def check_bounds(state):
    account = state.account
    assert account.cash >= 0
    assert account.holdings >= 0
    assert len(account.history) <= account.history_limit


class TestAccountBoundsProperties:
    @given(st.lists(st.tuples(futures_actions, price_paths), min_size=1, max_size=12))
    @settings(max_examples=60, deadline=None)
    def test_futures_session_stays_in_bounds(self, script):
        state = scripted_state(SimulatorKind.FUTURES)
        for action, path in script:
            state = apply_action(state, action).state
            check_bounds(state)
            state, events = push_prices(state, path)
            check_bounds(state)
            for event in events:
                if event.event_type is EventType.LIQUIDATION:
                    assert event.data['pnl'] < 0

    @given(st.lists(st.tuples(spot_actions, price_paths), min_size=1, max_size=15))
    @settings(max_examples=60, deadline=None)
    def test_spot_session_stays_in_bounds(self, script):
        state = scripted_state(SimulatorKind.SPOT)
        for action, path in script:
            state = apply_action(state, action).state
            check_bounds(state)
            state, _ = push_prices(state, path)
            check_bounds(state)

    @given(price_paths, st.integers(min_value=1, max_value=50).map(Decimal))
    @settings(max_examples=60, deadline=None)
    def test_liquidation_loses_exactly_the_margin(self, path, leverage):
        state = scripted_state(SimulatorKind.FUTURES)
        state = apply_action(state, OpenPosition(Direction.LONG, Decimal("2000"), leverage)).state
        state, events = push_prices(state, path)
        if any(e.event_type is EventType.LIQUIDATION for e in events):
            assert state.account.cash == Decimal("8000")
            assert state.account.history[-1].pnl == Decimal("-2000")

    @given(st.integers(min_value=1, max_value=40))
    @settings(max_examples=20, deadline=None)
    def test_history_is_bounded_and_append_only(self, trades):
        state = scripted_state(SimulatorKind.SPOT, history_limit=5)
        seen = []
        for _ in range(trades):
            state = apply_action(state, PlaceOrder(OrderSide.BUY, Decimal("0.001"))).state
            seen.append(state.account.history[-1])
            state, _ = push_prices(state, [65000])
        assert len(state.account.history) == min(trades, 5)
        assert list(state.account.history) == seen[-5:]


class TestAccountBoundsExamples:
    def test_payout_never_negative_on_gap(self):
        state = scripted_state(SimulatorKind.MARGIN)
        state = apply_action(state, OpenPosition(Direction.LONG, Decimal("10000"), Decimal("10"))).state
        state, events = push_prices(state, [1])
        assert state.account.cash == Decimal("0")
        assert state.position is None
