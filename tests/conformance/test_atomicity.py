"""
Atomicity Conformance Tests

INVARIANT: User actions are all-or-nothing.

    ∀ state S, action A:
        apply(S, A) applied  ⟹ every effect of A is in the new state
        apply(S, A) rejected ⟹ the returned state is S itself

A rejected action never debits cash, opens a position or queues an order.
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st
from decimal import Decimal

from tradesim import ActionStatus, Direction, OptionAction, OptionType, OrderSide, OrderType, SimulatorKind
from tradesim.actions import OpenPosition, PlaceOrder, TradeOption
from tradesim.simulator import apply_action

from tests.sim_harness import scripted_state


amounts = st.decimals(min_value=Decimal("0.0001"), max_value=Decimal("1"), places=4)
margins = st.decimals(min_value=Decimal("1"), max_value=Decimal("20000"), places=2)


class TestAtomicityProperties:
    """Property-based atomicity tests."""

    @given(amounts)
    @settings(max_examples=60, deadline=None)
    def test_market_buy_all_or_nothing(self, amount):
        """
        PROPERTY: A market buy either debits exactly price * amount * 1.001
        and credits the holdings, or changes nothing.
        """
        state = scripted_state(SimulatorKind.SPOT)
        result = apply_action(state, PlaceOrder(OrderSide.BUY, amount))
        cost = state.price * amount * Decimal("1.001")
        if cost > state.account.cash:
            assert result.status is ActionStatus.REJECTED
            assert result.state is state
        else:
            assert result.applied
            assert result.state.account.cash == state.account.cash - cost
            assert result.state.account.holdings == amount

    @given(margins, st.integers(min_value=1, max_value=250),
           st.sampled_from([Direction.LONG, Direction.SHORT]))
    @settings(max_examples=60, deadline=None)
    def test_open_position_all_or_nothing(self, margin, leverage, direction):
        """
        PROPERTY: Opening either posts the margin and creates the position,
        or leaves cash and position untouched.
        """
        state = scripted_state(SimulatorKind.FUTURES)
        result = apply_action(state, OpenPosition(direction, margin, Decimal(leverage)))
        if margin > state.account.cash or leverage > 200:
            assert not result.applied
            assert result.state is state
            assert result.state.position is None
        else:
            assert result.applied
            assert result.state.account.cash == state.account.cash - margin
            assert result.state.position.margin == margin

    @given(st.decimals(min_value=Decimal("1000"), max_value=Decimal("200000"), places=0),
           st.integers(min_value=1, max_value=50))
    @settings(max_examples=40, deadline=None)
    def test_writing_options_all_or_nothing(self, strike, contracts):
        """
        PROPERTY: Writing either escrows the collateral or changes nothing.
        """
        state = scripted_state(SimulatorKind.OPTIONS)
        result = apply_action(state, TradeOption(OptionType.CALL, OptionAction.SELL, strike, Decimal("7"), contracts))
        if result.applied:
            contract = result.state.options[0]
            assert contract.collateral == max(strike, state.price) * contracts * Decimal("0.01")
            assert result.state.account.cash >= 0
        else:
            assert result.state is state
            assert result.state.options == ()

    @given(amounts, st.decimals(min_value=Decimal("1000"), max_value=Decimal("64999"), places=2))
    @settings(max_examples=40, deadline=None)
    def test_resting_order_not_queued_when_unfunded(self, amount, limit):
        state = scripted_state(SimulatorKind.SPOT, initial_balance=1000)
        result = apply_action(state, PlaceOrder(OrderSide.BUY, amount, OrderType.LIMIT, limit))
        if limit * amount * Decimal("1.001") > Decimal("1000"):
            assert not result.applied
            assert result.state.orders == ()
        else:
            assert len(result.state.orders) == 1
            assert result.state.account.cash == Decimal("1000")

    @given(margins, st.decimals(min_value=Decimal("1000"), max_value=Decimal("64999"), places=2))
    @settings(max_examples=40, deadline=None)
    def test_resting_entry_not_queued_when_unfunded(self, margin, limit):
        state = scripted_state(SimulatorKind.FUTURES)
        result = apply_action(state, OpenPosition(Direction.LONG, margin, Decimal("10"), OrderType.LIMIT, limit))
        if margin > Decimal("10000"):
            assert result.state is state
        else:
            assert len(result.state.entries) == 1
            assert result.state.account.cash == Decimal("10000")
            assert result.state.position is None


class TestAtomicityExamples:
    def test_rejected_action_carries_reason(self):
        state = scripted_state(SimulatorKind.FUTURES)
        result = apply_action(state, OpenPosition(Direction.LONG, Decimal("10001"), Decimal("10")))
        assert result.status is ActionStatus.REJECTED
        assert result.events == ()
        assert "need 10001" in result.message
